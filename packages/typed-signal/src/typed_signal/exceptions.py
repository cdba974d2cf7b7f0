"""Custom exceptions for typed signals."""


class SignalError(Exception):
    """Base exception for signal errors."""


class ListenerNotFoundError(SignalError):
    """Raised by a strict removal when the handle is not registered."""

    def __init__(self, handle: str) -> None:
        super().__init__(f"Listener not found: {handle}")
        self.handle = handle


class InvalidOperationError(SignalError):
    """Raised when a signal is misused, e.g. dispatching after close()."""

    def __init__(self, operation: str, reason: str = "signal is closed") -> None:
        super().__init__(f"Cannot {operation}: {reason}")
        self.operation = operation
        self.reason = reason
