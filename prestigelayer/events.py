"""Synchronous, fire-and-forget notifications for presentation layers."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any, Callable

logger = logging.getLogger(__name__)


class LayerEvent(Enum):
    UNLOCK_PURCHASED = auto()
    UNLOCK_GRANTED = auto()
    REBUYABLE_PURCHASED = auto()
    STAGE_ENTERED = auto()
    RUN_STARTED = auto()
    RUN_STOPPED = auto()
    RESET = auto()


@dataclass(frozen=True)
class EventRecord:
    """What happened, where, and any details worth passing on."""

    event: LayerEvent
    source: str
    detail: dict[str, Any] = field(default_factory=dict)


Handler = Callable[[EventRecord], None]


class EventHub:
    """Dispatches records to handlers in registration order.

    Callers dispatch only after their state change is committed. A handler
    that raises is logged and the exception propagates; handlers after it
    do not run.
    """

    def __init__(self) -> None:
        self._handlers: dict[LayerEvent, list[Handler]] = {}

    def on(self, event: LayerEvent, handler: Handler) -> None:
        self._handlers.setdefault(event, []).append(handler)

    def off(self, event: LayerEvent, handler: Handler) -> None:
        handlers = self._handlers.get(event, [])
        if handler in handlers:
            handlers.remove(handler)

    def dispatch(self, record: EventRecord) -> None:
        for handler in list(self._handlers.get(record.event, [])):
            try:
                handler(record)
            except Exception:
                logger.exception(
                    "Handler %r failed for %s from %s",
                    handler, record.event.name, record.source,
                )
                raise
