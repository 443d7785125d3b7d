"""
Truck Queue — Domain errors

Each error carries the HTTP status the API layer answers with.
"""


class OrderQueueError(Exception):
    status_code: int = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFound(OrderQueueError):
    """Referenced order, user or catalog item does not exist."""
    status_code = 404


class InvalidTransition(OrderQueueError):
    """Requested status change is not legal from the current status."""
    status_code = 409

    def __init__(self, current: str, requested: str):
        super().__init__(f"Cannot move order from '{current}' to '{requested}'.")
        self.current = current
        self.requested = requested


class ValidationError(OrderQueueError):
    """Malformed input, rejected before any store interaction."""
    status_code = 422


class StoreUnavailable(OrderQueueError):
    status_code = 503


class DependencyUnavailable(OrderQueueError):
    """Catalog or identity service could not be reached."""
    status_code = 503


class NotificationFailure(OrderQueueError):
    """Real-time fan-out did not reach every subscriber.

    Order operations log and swallow it; only opening a stream can surface it.
    """
    status_code = 503


class ConcurrentUpdate(OrderQueueError):
    """Other writers kept changing the order faster than we could re-validate."""
    status_code = 409
