"""
Truck Queue — Order status state machine

Pending → Preparing → Ready → Delivered, with Cancelled reachable from
Pending or Preparing. Every accepted transition stamps `updated_at`; the
transitions into Ready, Delivered and Cancelled also stamp their own
timestamp. Who may request a transition is not decided here.
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone

from truckqueue.orders.domain import OrderStatus

# ── Transition table ──────────────────────────────────────────────────────────
# (from, to) -> timestamp field stamped by the transition
TRANSITIONS: dict[tuple[OrderStatus, OrderStatus], str | None] = {
    (OrderStatus.PENDING, OrderStatus.PREPARING): None,
    (OrderStatus.PENDING, OrderStatus.CANCELLED): "cancelled_at",
    (OrderStatus.PREPARING, OrderStatus.READY): "ready_at",
    (OrderStatus.PREPARING, OrderStatus.CANCELLED): "cancelled_at",
    (OrderStatus.READY, OrderStatus.DELIVERED): "delivered_at",
}

STAMP_FIELDS: dict[OrderStatus, str] = {
    OrderStatus.READY: "ready_at",
    OrderStatus.DELIVERED: "delivered_at",
    OrderStatus.CANCELLED: "cancelled_at",
}


@dataclass(frozen=True)
class Accepted:
    status: OrderStatus
    fields: dict[str, datetime] = field(default_factory=dict)


@dataclass(frozen=True)
class Rejected:
    current: OrderStatus
    requested: OrderStatus


def allowed_targets(current: OrderStatus) -> frozenset[OrderStatus]:
    return frozenset(to for (frm, to) in TRANSITIONS if frm == current)


def plan_transition(
    current: OrderStatus,
    requested: OrderStatus,
    now: datetime | None = None,
) -> Accepted | Rejected:
    if (current, requested) not in TRANSITIONS:
        return Rejected(current=current, requested=requested)
    now = now or datetime.now(tz=timezone.utc)
    fields = {"updated_at": now}
    stamp = TRANSITIONS[(current, requested)]
    if stamp:
        fields[stamp] = now
    return Accepted(status=requested, fields=fields)


def plan_legacy_transition(
    current: OrderStatus,
    requested: OrderStatus,
    now: datetime | None = None,
) -> Accepted:
    """Lenient mode: any status is accepted and its timestamp stamped, as the
    first version of the truck's ordering backend did."""
    now = now or datetime.now(tz=timezone.utc)
    fields = {"updated_at": now}
    stamp = STAMP_FIELDS.get(requested)
    if stamp:
        fields[stamp] = now
    return Accepted(status=requested, fields=fields)
