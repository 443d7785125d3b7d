"""
Truck Queue — Orders API

Customers place and follow their own orders; admins see every order and
move orders through the queue. The queue snapshot is public.
"""
from fastapi import APIRouter, Depends, Query, status

from truckqueue.api.deps import get_order_service
from truckqueue.core.errors import NotFound
from truckqueue.middleware.auth import current_user, require_admin
from truckqueue.orders.domain import LineItem, OrderStatus
from truckqueue.orders.service import OrderService
from truckqueue.schemas.order import (
    OrderResponse,
    PlaceOrderRequest,
    QueueSnapshotResponse,
    StatusUpdateRequest,
)

router = APIRouter(prefix="/orders", tags=["orders"])


@router.post("", response_model=OrderResponse, status_code=status.HTTP_201_CREATED)
async def place_order(
    payload: PlaceOrderRequest,
    user: dict = Depends(current_user),
    service: OrderService = Depends(get_order_service),
):
    """Place an order for the authenticated customer."""
    order = await service.place_order(
        user["sub"],
        [LineItem(catalog_item_id=i.catalog_item_id, quantity=i.quantity) for i in payload.items],
    )
    return OrderResponse.model_validate(order)


@router.get("/mine", response_model=list[OrderResponse])
async def list_my_orders(
    user: dict = Depends(current_user),
    service: OrderService = Depends(get_order_service),
):
    """The caller's orders, newest first."""
    orders = await service.list_orders_for_owner(user["sub"])
    return [OrderResponse.model_validate(o) for o in orders]


@router.get("/queue", response_model=QueueSnapshotResponse)
async def get_queue(service: OrderService = Depends(get_order_service)):
    snapshot = await service.get_queue_snapshot()
    return QueueSnapshotResponse.model_validate(snapshot)


@router.get("", response_model=list[OrderResponse])
async def list_all_orders(
    status: OrderStatus | None = Query(None, description="Filter by status"),
    _: dict = Depends(require_admin),
    service: OrderService = Depends(get_order_service),
):
    """Admin board: all orders, newest first."""
    orders = await service.list_all_orders(status)
    return [OrderResponse.model_validate(o) for o in orders]


@router.get("/{order_id}", response_model=OrderResponse)
async def get_order(
    order_id: str,
    user: dict = Depends(current_user),
    service: OrderService = Depends(get_order_service),
):
    order = await service.get_order(order_id)
    if order.owner_id != user["sub"] and not user.get("is_admin"):
        # Indistinguishable from a missing order
        raise NotFound(f"Order {order_id} not found.")
    return OrderResponse.model_validate(order)


@router.put("/{order_id}", response_model=OrderResponse)
async def update_order_status(
    order_id: str,
    payload: StatusUpdateRequest,
    _: dict = Depends(require_admin),
    service: OrderService = Depends(get_order_service),
):
    """Move an order to its next status (truck staff action)."""
    order = await service.update_order_status(order_id, payload.status)
    return OrderResponse.model_validate(order)
