"""
Truck Queue — Retry of conditional status writes

The store writes a status only if the order still has the status that was
validated (UPDATE ... WHERE status = <expected>). A write that finds another
status raises StaleStatusError; the decorated operation then re-reads and
re-validates the order after a backoff. Once the attempts are used up the
conflict leaves as ConcurrentUpdate, which the API answers with 409.
"""
import asyncio
import functools
import logging
import random

from truckqueue.core.config import get_settings
from truckqueue.core.errors import ConcurrentUpdate
from truckqueue.orders.domain import OrderStatus

settings = get_settings()
logger = logging.getLogger(__name__)


class StaleStatusError(Exception):
    """The stored status of an order is no longer the one we validated against."""

    def __init__(self, order_id: str, current: OrderStatus, expected: OrderStatus):
        super().__init__(
            f"Order {order_id} moved to {current.value} while updating from {expected.value}."
        )
        self.order_id = order_id
        self.current = current
        self.expected = expected


def backoff_delay(attempt: int) -> float:
    """Seconds to wait before attempt `attempt + 1`."""
    base = settings.OPT_LOCK_BASE_DELAY_MS / 1000.0
    cap = settings.OPT_LOCK_MAX_DELAY_MS / 1000.0
    jitter = random.uniform(0, settings.OPT_LOCK_JITTER_MS / 1000.0)
    return min(base * (2 ** attempt), cap) + jitter


def with_optimistic_retry(max_retries: int | None = None):
    """
    Re-run an async read-validate-write operation while it loses status races.

    Usage:
        @with_optimistic_retry()
        async def update_order_status(self, order_id, new_status):
            ...
    """
    attempts = max_retries or settings.OPT_LOCK_MAX_RETRIES

    def decorator(func):
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            for attempt in range(1, attempts + 1):
                try:
                    return await func(*args, **kwargs)
                except StaleStatusError as exc:
                    if attempt == attempts:
                        logger.error(
                            "Order %s: status conflict unresolved after %d attempts in %s",
                            exc.order_id, attempts, func.__name__,
                        )
                        raise ConcurrentUpdate(
                            f"Order {exc.order_id} is being updated concurrently; try again."
                        ) from exc
                    delay = backoff_delay(attempt)
                    logger.warning(
                        "Order %s: expected %s but found %s (attempt %d/%d), retrying in %.3fs",
                        exc.order_id, exc.expected.value, exc.current.value, attempt, attempts, delay,
                    )
                    await asyncio.sleep(delay)
        return wrapper
    return decorator
