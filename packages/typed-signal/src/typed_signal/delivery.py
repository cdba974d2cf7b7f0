"""Delivery strategies: where and in which order listener callbacks run.

A Signal never invokes callbacks while holding its own lock. Instead it
hands a snapshot of listeners to a delivery strategy from inside the lock
(so sweeps are ordered the same way dispatches were), and the strategy
either returns a callable for the signal to run once the lock is released
(SYNC) or runs the sweep itself on a dedicated thread (SERIAL).
"""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor
from functools import partial
from typing import Any, Callable, Sequence

from .models import DeliveryMode, Listener, SignalConfig

logger = logging.getLogger(__name__)

ErrorSink = Callable[[Exception, Listener, Any], None]
PendingSweep = Callable[[], None]


def log_listener_error(exc: Exception, listener: Listener, value: Any) -> None:
    """Default error sink: log the failure with its traceback."""
    logger.error(
        "Listener %s raised while handling %r", listener.id, value, exc_info=exc
    )


class Delivery(ABC):
    """Base class for delivery strategies.

    `schedule()` and `replay()` are called with the owning signal's lock
    held and must not invoke callbacks themselves.
    """

    def __init__(self, on_error: ErrorSink | None = None) -> None:
        self._on_error = on_error or log_listener_error
        self._local = threading.local()

    @abstractmethod
    def schedule(self, listeners: Sequence[Listener], value: Any) -> PendingSweep | None:
        """Order a sweep of `value` over `listeners`.

        Returns a callable the signal runs after releasing its lock, or
        None if the sweep has been handed off.
        """
        ...

    @abstractmethod
    def replay(self, listener: Listener, value: Any) -> PendingSweep | None:
        """Order a one-off delivery of a memorized value to a new listener."""
        ...

    def shutdown(self, wait: bool = True) -> None:
        """Release any resources held by the strategy."""

    def in_delivery(self) -> bool:
        """True when the current thread is inside a sweep of this strategy."""
        return getattr(self._local, "depth", 0) > 0

    def _sweep(self, listeners: Sequence[Listener], value: Any) -> None:
        self._local.depth = getattr(self._local, "depth", 0) + 1
        try:
            for listener in listeners:
                try:
                    listener(value)
                except Exception as exc:
                    self._report(exc, listener, value)
        finally:
            self._local.depth -= 1

    def _report(self, exc: Exception, listener: Listener, value: Any) -> None:
        try:
            self._on_error(exc, listener, value)
        except Exception:
            logger.exception("Error sink failed while reporting listener %s", listener.id)


class SyncDelivery(Delivery):
    """Run callbacks on the dispatching thread.

    Each sweep takes a ticket while the signal's lock is held and waits for
    its turn after the lock is released, so sweeps from concurrent
    dispatches never interleave and run in dispatch order. Memorized
    replays queue the same way, so a new listener sees the replayed value
    before any value dispatched after it was added. A dispatch made from
    inside a callback runs its sweep immediately (nested), since waiting
    for the outer sweep to finish would never return.
    """

    def __init__(self, on_error: ErrorSink | None = None) -> None:
        super().__init__(on_error)
        self._turn = threading.Condition()
        self._next_ticket = 0
        self._serving = 0
        self._abandoned: set[int] = set()

    def schedule(self, listeners: Sequence[Listener], value: Any) -> PendingSweep | None:
        if self.in_delivery():
            return partial(self._sweep, listeners, value)
        return partial(self._sweep_in_turn, self._take_ticket(), listeners, value)

    def replay(self, listener: Listener, value: Any) -> PendingSweep | None:
        return self.schedule([listener], value)

    def _take_ticket(self) -> int:
        with self._turn:
            ticket = self._next_ticket
            self._next_ticket += 1
        return ticket

    def _sweep_in_turn(
        self, ticket: int, listeners: Sequence[Listener], value: Any
    ) -> None:
        try:
            with self._turn:
                self._turn.wait_for(lambda: self._serving == ticket)
        except BaseException:
            self._give_up(ticket)
            raise
        try:
            self._sweep(listeners, value)
        finally:
            with self._turn:
                self._advance()

    def _give_up(self, ticket: int) -> None:
        # A ticket that never ran still has to pass the turn on.
        with self._turn:
            if self._serving == ticket:
                self._advance()
            else:
                self._abandoned.add(ticket)

    def _advance(self) -> None:
        self._serving += 1
        while self._serving in self._abandoned:
            self._abandoned.discard(self._serving)
            self._serving += 1
        self._turn.notify_all()


class SerialDelivery(Delivery):
    """Run every sweep on a single delivery thread, in dispatch order.

    `dispatch()` returns as soon as the sweep is queued.
    """

    def __init__(
        self, on_error: ErrorSink | None = None, thread_name: str = "signal-delivery"
    ) -> None:
        super().__init__(on_error)
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix=thread_name)

    def schedule(self, listeners: Sequence[Listener], value: Any) -> PendingSweep | None:
        self._executor.submit(self._sweep, listeners, value)
        return None

    def replay(self, listener: Listener, value: Any) -> PendingSweep | None:
        self._executor.submit(self._sweep, [listener], value)
        return None

    def shutdown(self, wait: bool = True) -> None:
        # The delivery thread cannot join itself.
        self._executor.shutdown(wait=wait and not self.in_delivery())


def make_delivery(config: SignalConfig, on_error: ErrorSink | None = None) -> Delivery:
    """Build the delivery strategy selected by `config.delivery`."""
    match config.delivery:
        case DeliveryMode.SYNC:
            return SyncDelivery(on_error)
        case DeliveryMode.SERIAL:
            return SerialDelivery(on_error, thread_name=config.thread_name)
