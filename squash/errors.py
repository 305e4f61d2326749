"""
Business exceptions.

Command and button handlers catch SquashError and show `str(error)` to the user.
"""


class SquashError(Exception):
    """Base class for all recoverable business errors."""
    pass


class NotFound(SquashError):
    """Referenced event / scaffold / participant / payment does not exist."""

    def __init__(self, kind: str, ref):
        self.kind = kind
        self.ref = ref
        super().__init__(f"{kind.capitalize()} {ref} not found")


class InvalidScaffold(SquashError):
    """Malformed day of week, time, deadline offset or resulting date."""
    pass


class Forbidden(SquashError):
    """Caller lacks owner/admin rights."""
    pass


class Conflict(SquashError):
    """Event lock already held, or a duplicate would be created."""
    pass


class Unconfigured(SquashError):
    """Missing owner / main channel / admin configuration."""
    pass


class Rejected(SquashError):
    """Business rule refused the operation (last court, nobody signed up, ...)."""
    pass


class InvalidTransition(Rejected):
    """Action not allowed from the event's current status."""

    def __init__(self, event_id: str, status, action):
        self.event_id = event_id
        self.status = status
        self.action = action
        status_value = getattr(status, "value", status)
        action_value = getattr(action, "value", action)
        super().__init__(f"Cannot {action_value} event {event_id}: it is {status_value}")


class DeliveryFailed(SquashError):
    """A message that the operation depends on could not be delivered."""
    pass
