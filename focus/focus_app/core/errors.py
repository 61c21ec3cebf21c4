from __future__ import annotations


class FocusError(Exception):
    pass


class PreconditionError(FocusError, ValueError):
    """Raised before any state change when an operation cannot start."""


class PersistenceError(FocusError):
    pass


class BreakdownError(FocusError):
    pass
