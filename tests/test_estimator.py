"""
Wait-time estimation: frozen per-order estimate and live queue aggregate.
"""
from datetime import datetime, timezone
from decimal import Decimal

import pytest

from truckqueue.orders.domain import CatalogItem, LineItem, Order, OrderStatus
from truckqueue.orders.estimator import estimate_order_wait, snapshot_queue

TACO = CatalogItem(id="taco", price=Decimal("10"), prep_time_minutes=8)
CHURRO = CatalogItem(id="churro", price=Decimal("4.50"))


def _order(status: OrderStatus, wait: int | None) -> Order:
    now = datetime.now(tz=timezone.utc)
    return Order(
        id="0000000000abcdef",
        owner_id="user-1",
        line_items=(LineItem("taco", 1),),
        total_price=Decimal("10"),
        estimated_wait_minutes=wait,
        status=status,
        contact_phone="+1555",
        created_at=now,
        updated_at=now,
    )


def test_estimate_sums_prep_and_queue_term():
    assert estimate_order_wait([(LineItem("taco", 2), TACO)], queue_length=2) == 2 * 8 + 2 * 5


def test_missing_prep_time_defaults_to_five_minutes():
    assert estimate_order_wait([(LineItem("churro", 3), CHURRO)], queue_length=0) == 15


def test_zero_prep_time_is_not_replaced_by_default():
    soda = CatalogItem(id="soda", price=Decimal("2"), prep_time_minutes=0)
    assert estimate_order_wait([(LineItem("soda", 4), soda)], queue_length=1) == 5


def test_fractional_prep_times_are_summed_before_rounding():
    flan = CatalogItem(id="flan", price=Decimal("3"), prep_time_minutes=Decimal("2.5"))
    assert estimate_order_wait([(LineItem("flan", 2), flan)], queue_length=0) == 5
    assert estimate_order_wait([(LineItem("flan", 1), flan)], queue_length=1) == 8


def test_estimate_constants_are_configurable():
    lines = [(LineItem("churro", 1), CHURRO)]
    assert estimate_order_wait(lines, 3, default_prep_minutes=7, minutes_per_queued_order=2) == 7 + 6


def test_negative_queue_length_is_rejected():
    with pytest.raises(ValueError):
        estimate_order_wait([(LineItem("taco", 1), TACO)], queue_length=-1)


def test_snapshot_counts_only_active_orders():
    orders = [
        _order(OrderStatus.PENDING, 12),
        _order(OrderStatus.PREPARING, 20),
        _order(OrderStatus.READY, 40),
        _order(OrderStatus.DELIVERED, 40),
        _order(OrderStatus.CANCELLED, 40),
    ]
    snapshot = snapshot_queue(orders)
    assert snapshot.length == 2
    assert snapshot.estimated_wait_minutes == 32


def test_snapshot_falls_back_for_orders_without_estimate():
    snapshot = snapshot_queue([_order(OrderStatus.PENDING, None), _order(OrderStatus.PENDING, 9)])
    assert snapshot.estimated_wait_minutes == 5 + 9


def test_empty_queue():
    snapshot = snapshot_queue([])
    assert (snapshot.length, snapshot.estimated_wait_minutes) == (0, 0)
