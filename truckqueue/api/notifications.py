"""
Truck Queue — SSE notification streams

  /notifications/queue/stream   every client; queueUpdate events, starting
                                with the current snapshot
  /notifications/orders/stream  one customer's channel; orderStatusUpdate
                                events for their orders

Nothing is replayed: a client that reconnects starts from the live state.
"""
import json
import logging
from typing import AsyncGenerator

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from fastapi.responses import StreamingResponse

from truckqueue.api.deps import get_notifier, get_order_service
from truckqueue.core.config import get_settings
from truckqueue.middleware.auth import current_user
from truckqueue.orders.domain import Event
from truckqueue.orders.service import OrderService
from truckqueue.realtime.notifier import QUEUE_CHANNEL, Notifier, Subscription, owner_channel

settings = get_settings()
logger = logging.getLogger(__name__)
router = APIRouter(prefix="/notifications", tags=["notifications"])

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "X-Accel-Buffering": "no",  # Disable Nginx buffering
    "Connection": "keep-alive",
}


def format_sse(event: dict) -> str:
    name = event.get("event", "message")
    data = event.get("data", event)
    return f"event: {name}\ndata: {json.dumps(data)}\n\n"


async def sse_stream(
    subscription: Subscription,
    request: Request,
    initial: dict | None = None,
) -> AsyncGenerator[str, None]:
    """Yield SSE frames from a subscription until the client goes away."""
    try:
        yield f": connected to {subscription.channel}\n\n"
        yield f"retry: {settings.SSE_RETRY_MILLISECONDS}\n\n"
        if initial is not None:
            yield format_sse(initial)

        while True:
            if await request.is_disconnected():
                break
            event = await subscription.get(timeout=settings.SSE_KEEPALIVE_INTERVAL_SECONDS)
            if event is None:
                yield ": keepalive\n\n"
                continue
            yield format_sse(event)
    finally:
        await subscription.close()


@router.get("/queue/stream")
async def stream_queue(
    request: Request,
    service: OrderService = Depends(get_order_service),
    notifier: Notifier = Depends(get_notifier),
):
    subscription = await notifier.subscribe(QUEUE_CHANNEL)
    try:
        # Read after subscribing so no update falls between snapshot and stream
        snapshot = await service.get_queue_snapshot()
    except Exception:
        await subscription.close()
        raise
    initial = Event("queueUpdate", snapshot.as_event()).to_dict()
    return StreamingResponse(
        sse_stream(subscription, request, initial),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )


@router.get("/orders/stream")
async def stream_owner_orders(
    request: Request,
    owner_id: str | None = Query(None, description="Admins only: join another customer's channel"),
    user: dict = Depends(current_user),
    notifier: Notifier = Depends(get_notifier),
):
    """Join the caller's own channel (the socket 'join' of the web client)."""
    target = owner_id or user["sub"]
    if target != user["sub"] and not user.get("is_admin"):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Cannot join another customer's channel.",
        )

    subscription = await notifier.subscribe(owner_channel(target))
    logger.info("Owner %s joined their order channel", target)
    return StreamingResponse(
        sse_stream(subscription, request),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )
