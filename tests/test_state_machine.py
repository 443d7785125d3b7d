"""
Order status transitions: only the table's edges are legal.
"""
from datetime import datetime, timezone

import pytest

from truckqueue.orders.domain import OrderStatus as S
from truckqueue.orders.state_machine import (
    TRANSITIONS,
    Accepted,
    Rejected,
    allowed_targets,
    plan_legacy_transition,
    plan_transition,
)

NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)

LEGAL = {
    (S.PENDING, S.PREPARING): set(),
    (S.PENDING, S.CANCELLED): {"cancelled_at"},
    (S.PREPARING, S.READY): {"ready_at"},
    (S.PREPARING, S.CANCELLED): {"cancelled_at"},
    (S.READY, S.DELIVERED): {"delivered_at"},
}


def test_table_matches_the_documented_edges():
    assert set(TRANSITIONS) == set(LEGAL)


@pytest.mark.parametrize("current,requested", list(LEGAL))
def test_legal_transition_stamps_its_own_timestamp_and_updated_at(current, requested):
    outcome = plan_transition(current, requested, now=NOW)
    assert isinstance(outcome, Accepted)
    assert outcome.status == requested
    assert set(outcome.fields) == {"updated_at"} | LEGAL[(current, requested)]
    assert all(v == NOW for v in outcome.fields.values())


ILLEGAL = [(a, b) for a in S for b in S if (a, b) not in LEGAL]


@pytest.mark.parametrize("current,requested", ILLEGAL)
def test_everything_else_is_rejected(current, requested):
    outcome = plan_transition(current, requested, now=NOW)
    assert outcome == Rejected(current=current, requested=requested)


def test_terminal_states_have_no_way_out():
    assert allowed_targets(S.DELIVERED) == frozenset()
    assert allowed_targets(S.CANCELLED) == frozenset()
    assert allowed_targets(S.PENDING) == {S.PREPARING, S.CANCELLED}


def test_legacy_mode_accepts_skips_and_stamps():
    outcome = plan_legacy_transition(S.PENDING, S.DELIVERED, now=NOW)
    assert outcome.status == S.DELIVERED
    assert outcome.fields == {"updated_at": NOW, "delivered_at": NOW}
