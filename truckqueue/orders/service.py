"""
Truck Queue — Order service

Placement:
  1. Validate input (no lookups before this passes)
  2. Resolve the customer and price every line against the catalog
  3. Count the live queue, freeze the wait estimate
  4. Persist, then broadcast the post-insertion queue snapshot

Status update:
  1. Validate the transition against the state machine
  2. Conditional write (retried on a lost race, re-validating each time)
  3. Broadcast the live snapshot; notify the owner on Ready/Delivered/Cancelled

Notifications are sent only after the store write and never fail the
operation they report on.
"""
import asyncio
import logging
from collections.abc import Callable, Sequence
from decimal import Decimal

from truckqueue.clients.directory import Catalog, UserDirectory
from truckqueue.core.config import Settings, get_settings
from truckqueue.core.errors import InvalidTransition, NotificationFailure, StoreUnavailable, ValidationError
from truckqueue.core.optimistic_lock import with_optimistic_retry
from truckqueue.db.order_store import OrderStore
from truckqueue.orders.domain import (
    ACTIVE_STATUSES,
    CatalogItem,
    Event,
    LineItem,
    NewOrder,
    Order,
    OrderStatus,
    QueueSnapshot,
)
from truckqueue.orders.estimator import estimate_order_wait, snapshot_queue
from truckqueue.orders.state_machine import Rejected, plan_legacy_transition, plan_transition
from truckqueue.realtime.notifier import Notifier

logger = logging.getLogger(__name__)

OWNER_NOTIFY_STATUSES = frozenset({OrderStatus.READY, OrderStatus.DELIVERED, OrderStatus.CANCELLED})
CONTACT_STATUSES = frozenset({OrderStatus.READY, OrderStatus.CANCELLED})


def parse_status(value: OrderStatus | str) -> OrderStatus:
    if isinstance(value, OrderStatus):
        return value
    try:
        return OrderStatus(value)
    except ValueError:
        allowed = ", ".join(s.value for s in OrderStatus)
        raise ValidationError(f"Unknown status '{value}'. Expected one of: {allowed}.")


class OrderService:
    def __init__(
        self,
        store: OrderStore,
        catalog: Catalog,
        users: UserDirectory,
        notifier: Notifier,
        contact: Callable[[Order], None] | None = None,
        config: Settings | None = None,
    ):
        self.store = store
        self.catalog = catalog
        self.users = users
        self.notifier = notifier
        self.contact = contact
        self.settings = config or get_settings()

    # ── Placement ─────────────────────────────────────────────────────────────

    @staticmethod
    def _validate_placement(owner_id: str, line_items: Sequence[LineItem]) -> None:
        if not owner_id or not owner_id.strip():
            raise ValidationError("owner_id is required.")
        if not line_items:
            raise ValidationError("An order needs at least one item.")
        for i, line in enumerate(line_items):
            if not line.catalog_item_id:
                raise ValidationError(f"Item {i} has no catalog_item_id.")
            if isinstance(line.quantity, bool) or not isinstance(line.quantity, int) or line.quantity < 1:
                raise ValidationError(f"Item {i} ({line.catalog_item_id}) must have quantity >= 1.")

    async def place_order(self, owner_id: str, line_items: Sequence[LineItem]) -> Order:
        self._validate_placement(owner_id, line_items)

        customer = await self.users.get_user(owner_id)

        priced: list[tuple[LineItem, CatalogItem]] = []
        for line in line_items:
            item = await self.catalog.get_catalog_item(line.catalog_item_id)
            priced.append((line, item))

        total_price = sum((item.price * line.quantity for line, item in priced), Decimal("0"))
        queue_length = await self.store.count_where(ACTIVE_STATUSES)
        estimated_wait = estimate_order_wait(
            priced,
            queue_length,
            default_prep_minutes=self.settings.DEFAULT_PREP_MINUTES,
            minutes_per_queued_order=self.settings.QUEUE_MINUTES_PER_ORDER,
        )

        order = await self.store.create(NewOrder(
            owner_id=owner_id,
            line_items=tuple(line_items),
            total_price=total_price,
            estimated_wait_minutes=estimated_wait,
            contact_phone=customer.phone,
        ))
        logger.info(
            "Order %s placed for owner %s: total=%s wait=%dmin (queue before=%d)",
            order.id, owner_id, total_price, estimated_wait, queue_length,
        )

        await self._broadcast_queue()
        return order

    # ── Status updates ────────────────────────────────────────────────────────

    @with_optimistic_retry()
    async def update_order_status(self, order_id: str, new_status: OrderStatus | str) -> Order:
        requested = parse_status(new_status)
        order = await self.store.get_by_id(order_id)

        if self.settings.STRICT_TRANSITIONS:
            outcome = plan_transition(order.status, requested)
        else:
            outcome = plan_legacy_transition(order.status, requested)

        if isinstance(outcome, Rejected):
            logger.info(
                "Order %s: rejected transition %s -> %s",
                order_id, outcome.current.value, outcome.requested.value,
            )
            raise InvalidTransition(outcome.current.value, outcome.requested.value)

        updated = await self.store.update_status(
            order_id, outcome.status, outcome.fields, expected_status=order.status
        )
        logger.info("Order %s: %s -> %s", order_id, order.status.value, updated.status.value)

        await self._broadcast_queue()
        if updated.status in OWNER_NOTIFY_STATUSES:
            await self._notify_owner(updated)
        if updated.status in CONTACT_STATUSES:
            await self._contact_customer(updated)
        return updated

    # ── Reads ─────────────────────────────────────────────────────────────────

    async def get_queue_snapshot(self) -> QueueSnapshot:
        active = await self.store.list_where(ACTIVE_STATUSES)
        return snapshot_queue(active, fallback_minutes=self.settings.DEFAULT_PREP_MINUTES)

    async def get_order(self, order_id: str) -> Order:
        return await self.store.get_by_id(order_id)

    async def list_orders_for_owner(self, owner_id: str) -> list[Order]:
        return await self.store.list_by_owner(owner_id)

    async def list_all_orders(self, status: OrderStatus | str | None = None) -> list[Order]:
        return await self.store.list_all(parse_status(status) if status else None)

    # ── Fan-out ───────────────────────────────────────────────────────────────

    async def _broadcast_queue(self) -> None:
        try:
            snapshot = await self.get_queue_snapshot()
            logger.debug("Broadcasting queueUpdate: %s", snapshot)
            await self.notifier.broadcast(Event("queueUpdate", snapshot.as_event()).to_dict())
        except (NotificationFailure, StoreUnavailable) as exc:
            logger.warning("Queue update not broadcast: %s", exc)

    async def _notify_owner(self, order: Order) -> None:
        event = Event("orderStatusUpdate", {"order_id": order.id, "status": order.status.value})
        try:
            await self.notifier.send_to_owner(order.owner_id, event.to_dict())
        except NotificationFailure as exc:
            logger.warning("Owner %s not notified about order %s: %s", order.owner_id, order.id, exc)

    async def _contact_customer(self, order: Order) -> None:
        if self.contact is None or not self.settings.CONTACT_ENABLED:
            return
        try:
            await asyncio.to_thread(self.contact, order)
        except Exception as exc:
            # Broker trouble must not fail an update that is already persisted
            logger.warning("Customer message for order %s not queued: %s", order.id, exc)
