from __future__ import annotations


class PresenceError(Exception):
    """Base class for presence reconstruction errors."""


class InvalidRangeError(PresenceError, ValueError):
    """Raised when a date range starts after it ends."""


class MalformedEventError(PresenceError, ValueError):
    """Raised when a storage row cannot be turned into a RawEvent."""
