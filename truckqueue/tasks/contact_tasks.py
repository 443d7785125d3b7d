"""
Truck Queue — Celery tasks (customer contact)

The worker asks the SMS gateway to text the customer when their order is
ready for pickup or was cancelled. Delivery itself is the gateway's job.
"""
import logging

import httpx

from truckqueue.core.celery_app import celery_app
from truckqueue.core.config import get_settings
from truckqueue.orders.domain import Order, OrderStatus

settings = get_settings()
logger = logging.getLogger(__name__)

MESSAGES = {
    OrderStatus.READY.value: "Your order #{number} is ready for pickup at the truck!",
    OrderStatus.CANCELLED.value: "Your order #{number} was cancelled. Sorry about that.",
}


def build_message(order_id: str, status: str) -> str | None:
    template = MESSAGES.get(status)
    if template is None:
        return None
    return template.format(number=order_id[-6:].upper())


@celery_app.task(
    name="send_order_message",
    bind=True,
    max_retries=3,
    default_retry_delay=5,
    acks_late=True,
)
def send_order_message(self, order_id: str, phone: str, status: str):
    message = build_message(order_id, status)
    if message is None or not phone:
        logger.info("Order %s: nothing to send for status %s", order_id, status)
        return

    try:
        with httpx.Client(timeout=settings.HTTP_TIMEOUT_SECONDS) as client:
            r = client.post(settings.CONTACT_GATEWAY_URL, json={"to": phone, "message": message})
            r.raise_for_status()
    except httpx.HTTPError as exc:
        logger.warning("SMS gateway failed for order %s: %s", order_id, exc)
        raise self.retry(exc=exc)

    logger.info("Order %s: %s message sent", order_id, status)


def dispatch_order_message(order: Order) -> None:
    """Enqueue the customer message for the order's current status."""
    send_order_message.delay(order.id, order.contact_phone, order.status.value)
