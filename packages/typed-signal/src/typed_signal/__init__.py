"""Typed Signal — thread-safe typed observer with memorization and once-listeners."""

from .core import Signal
from .delivery import (
    Delivery,
    SerialDelivery,
    SyncDelivery,
    log_listener_error,
)
from .exceptions import (
    InvalidOperationError,
    ListenerNotFoundError,
    SignalError,
)
from .models import DeliveryMode, Listener, SignalConfig

__all__ = [
    "Signal",
    "SignalConfig",
    "DeliveryMode",
    "Listener",
    "Delivery",
    "SyncDelivery",
    "SerialDelivery",
    "log_listener_error",
    "SignalError",
    "ListenerNotFoundError",
    "InvalidOperationError",
]
