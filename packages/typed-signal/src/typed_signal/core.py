"""Core signal — the main entry point."""

from __future__ import annotations

import logging
import threading
from typing import Any, Generic, TypeVar

from .delivery import ErrorSink, make_delivery
from .exceptions import InvalidOperationError, ListenerNotFoundError
from .models import DeliveryMode, Listener, ListenerCallback, SignalConfig

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Signal(Generic[T]):
    """Thread-safe typed signal.

    Register callbacks with `add()` / `add_once()`, notify them with
    `dispatch()`. Every handle returned by `add*` is unique and is the only
    way to refer to a listener later.

    All state is guarded by one lock; callbacks are never run while it is
    held, so a callback may call back into the same signal.
    """

    def __init__(
        self,
        config: SignalConfig | None = None,
        *,
        memorize: bool | None = None,
        delivery: DeliveryMode | str | None = None,
        on_error: ErrorSink | None = None,
    ) -> None:
        config = config or SignalConfig()
        overrides: dict[str, Any] = {}
        if memorize is not None:
            overrides["memorize"] = memorize
        if delivery is not None:
            overrides["delivery"] = delivery
        if overrides:
            config = SignalConfig(**{**config.model_dump(), **overrides})
        self.config = config

        self._lock = threading.Lock()
        self._listeners: list[Listener] = []
        self._memorize = config.memorize
        self._last_value: T | None = None
        self._has_value = False
        self._active = True
        self._closed = False
        self._delivery = make_delivery(config, on_error)

    def __enter__(self) -> Signal[T]:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def __len__(self) -> int:
        return self.num_listeners()

    def __repr__(self) -> str:
        return (
            f"<Signal listeners={self.num_listeners()} active={self._active} "
            f"memorize={self._memorize} delivery={self.config.delivery.value}>"
        )

    # ── Registration ──

    def add(self, callback: ListenerCallback) -> str:
        """Register a callback for every future dispatch. Returns its handle."""
        return self._register(callback, once=False)

    def add_once(self, callback: ListenerCallback) -> str:
        """Register a callback that is removed by the first dispatch reaching it."""
        return self._register(callback, once=True)

    def _register(self, callback: ListenerCallback, once: bool) -> str:
        listener = Listener(callback=callback, once=once)
        replay = None
        with self._lock:
            if self._closed:
                raise InvalidOperationError("add listener")
            self._listeners.append(listener)
            # Replaying the memorized value does not consume a once-listener.
            if self._memorize and self._has_value:
                replay = self._delivery.replay(listener, self._last_value)
        logger.debug("Added %slistener %s", "once-" if once else "", listener.id)
        if replay is not None:
            replay()
        return listener.id

    def remove(self, handle: str, *, strict: bool = False) -> None:
        """Remove the listener registered under `handle`.

        Unknown handles are ignored unless `strict` is set, in which case
        ListenerNotFoundError is raised.
        """
        with self._lock:
            for index, listener in enumerate(self._listeners):
                if listener.id == handle:
                    del self._listeners[index]
                    break
            else:
                if strict:
                    raise ListenerNotFoundError(handle)
                logger.debug("No listener %s to remove", handle)
                return
        logger.debug("Removed listener %s", handle)

    def remove_all(self) -> None:
        """Drop every listener. Memorized value and flags are kept."""
        with self._lock:
            self._listeners = []

    # ── Dispatch ──

    def dispatch(self, value: T) -> None:
        """Deliver `value` to every registered listener, in registration order.

        Once-listeners are taken out of the listener list in the same locked
        step that snapshots it, so no later dispatch can reach them.
        """
        sweep = None
        with self._lock:
            if self._closed:
                raise InvalidOperationError("dispatch")
            if not self._active:
                logger.debug("Dispatch on inactive signal ignored")
                return
            if self._memorize:
                self._last_value = value
                self._has_value = True
            listeners = self._listeners
            if any(listener.once for listener in listeners):
                self._listeners = [entry for entry in listeners if not entry.once]
            else:
                listeners = list(listeners)
            if listeners:
                sweep = self._delivery.schedule(listeners, value)
        if sweep is not None:
            sweep()

    # ── Queries ──

    def has(self, handle: str) -> bool:
        with self._lock:
            return any(listener.id == handle for listener in self._listeners)

    def num_listeners(self) -> int:
        with self._lock:
            return len(self._listeners)

    def listener_ids(self) -> list[str]:
        """Return the registered handles in dispatch order."""
        with self._lock:
            return [listener.id for listener in self._listeners]

    @property
    def active(self) -> bool:
        with self._lock:
            return self._active

    @property
    def memorize(self) -> bool:
        with self._lock:
            return self._memorize

    @property
    def last_value(self) -> T | None:
        """The memorized value, or None if there is none."""
        with self._lock:
            return self._last_value if self._has_value else None

    @property
    def closed(self) -> bool:
        with self._lock:
            return self._closed

    # ── Flags ──

    def set_active(self, active: bool) -> None:
        """Enable or disable dispatching. Listeners and memorized value are kept."""
        with self._lock:
            self._active = active

    def set_memorize(self, enabled: bool) -> None:
        """Toggle memorization. Turning it off discards the memorized value."""
        with self._lock:
            self._memorize = enabled
            if not enabled:
                self._last_value = None
                self._has_value = False

    # ── Teardown ──

    def close(self, wait: bool = True) -> None:
        """Tear the signal down.

        Listeners are dropped and the delivery strategy is shut down; with
        `wait` set, sweeps already queued for a SERIAL signal run first.
        Adding or dispatching afterwards raises InvalidOperationError.
        """
        with self._lock:
            if self._closed:
                return
            self._closed = True
            self._listeners = []
        self._delivery.shutdown(wait=wait)
        logger.debug("Signal closed")
