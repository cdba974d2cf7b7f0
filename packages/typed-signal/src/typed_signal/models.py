"""Data models for typed signals."""

from __future__ import annotations

import uuid
from enum import Enum
from typing import Any, Callable

from pydantic import BaseModel, ConfigDict, Field

ListenerCallback = Callable[[Any], Any]


class DeliveryMode(Enum):
    SYNC = "sync"
    SERIAL = "serial"


class SignalConfig(BaseModel):
    """Construction-time settings for a Signal.

    `delivery` picks where callbacks run: SYNC invokes them on the
    dispatching thread, SERIAL hands every sweep to a single delivery
    thread in dispatch order.
    """

    memorize: bool = False
    delivery: DeliveryMode = DeliveryMode.SYNC
    thread_name: str = "signal-delivery"


class Listener(BaseModel):
    """A registered callback and the handle it was registered under."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    callback: ListenerCallback
    once: bool = False

    def __call__(self, value: Any) -> Any:
        return self.callback(value)
