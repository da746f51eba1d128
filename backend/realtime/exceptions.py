"""Custom exceptions for the realtime presence layer."""


class MalformedEventError(Exception):
    """Raised when an inbound websocket event fails validation."""
    pass


class IdentityMismatchError(MalformedEventError):
    """Raised when an event's userId differs from the session's bound user."""
    pass


class SessionClosedError(Exception):
    """Raised when a closed presence session receives another transition."""
    pass
