"""
Truck Queue — Wait-time estimation

Two distinct numbers:
  - the per-order estimate, computed once at placement and frozen into the
    order record, so the wait promised to a customer never drifts;
  - the queue aggregate, recomputed from the active orders on every query.
"""
from collections.abc import Iterable
from decimal import ROUND_HALF_UP, Decimal

from truckqueue.orders.domain import ACTIVE_STATUSES, CatalogItem, LineItem, Order, QueueSnapshot

DEFAULT_PREP_MINUTES = 5
QUEUE_MINUTES_PER_ORDER = 5


def estimate_order_wait(
    priced_lines: Iterable[tuple[LineItem, CatalogItem]],
    queue_length: int,
    default_prep_minutes: int = DEFAULT_PREP_MINUTES,
    minutes_per_queued_order: int = QUEUE_MINUTES_PER_ORDER,
) -> int:
    """
    Estimated wait for a new order.

    `queue_length` is the number of active orders counted before this order
    is inserted; the new order never counts towards its own queue term.
    Fractional prep times are summed exactly and the total is rounded half-up
    to whole minutes.
    """
    if queue_length < 0:
        raise ValueError("queue_length cannot be negative")
    prep = Decimal(0)
    for line, item in priced_lines:
        item_prep = item.prep_time_minutes if item.prep_time_minutes is not None else default_prep_minutes
        prep += line.quantity * item_prep
    total = prep + queue_length * minutes_per_queued_order
    return int(total.quantize(Decimal(1), rounding=ROUND_HALF_UP))


def snapshot_queue(orders: Iterable[Order], fallback_minutes: int = DEFAULT_PREP_MINUTES) -> QueueSnapshot:
    """Live queue aggregate over the active orders in `orders`."""
    length = 0
    total = 0
    for order in orders:
        if order.status not in ACTIVE_STATUSES:
            continue
        length += 1
        total += order.estimated_wait_minutes if order.estimated_wait_minutes is not None else fallback_minutes
    return QueueSnapshot(length=length, estimated_wait_minutes=total)
