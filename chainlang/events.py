"""Progress notifications.

Each executor owns an :class:`EventEmitter`. Callers either register a
callback with ``subscribe`` or drain an ``asyncio.Queue`` from ``queue``;
both hand back a callable that stops the delivery.
"""
from __future__ import annotations

import asyncio
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple

from loguru import logger


class EventType(str, Enum):
    CHAIN_START = "chain-start"
    CHAIN_COMPLETE = "chain-complete"
    CHAIN_ERROR = "chain-error"
    NODE_START = "node-start"
    NODE_COMPLETE = "node-complete"
    NODE_ERROR = "node-error"
    PARALLEL_START = "parallel-start"
    PARALLEL_COMPLETE = "parallel-complete"
    STEP_START = "step-start"
    STEP_COMPLETE = "step-complete"
    STEP_ERROR = "step-error"


@dataclass(frozen=True)
class ChainEvent:
    type: EventType
    node: Any
    context: Dict[str, Any] = field(default_factory=dict)
    error: Optional[BaseException] = None
    result: Any = None
    step: Optional[int] = None
    source: Optional[str] = None  # "sequential" | "parallel" for forwarded events

    def retag(self, type: EventType, source: str) -> "ChainEvent":
        return replace(self, type=type, source=source)


Listener = Callable[[ChainEvent], None]


class EventEmitter:
    def __init__(self) -> None:
        self._listeners: List[Listener] = []

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def queue(self, maxsize: int = 0) -> Tuple["asyncio.Queue[ChainEvent]", Callable[[], None]]:
        """Feed events into a new queue; return it with its unsubscribe callable.

        When a bounded queue is full the event is dropped for that queue only.
        """
        q: "asyncio.Queue[ChainEvent]" = asyncio.Queue(maxsize)

        def put(event: ChainEvent) -> None:
            try:
                q.put_nowait(event)
            except asyncio.QueueFull:
                logger.warning("Event queue full, dropping {}", event.type.value)

        return q, self.subscribe(put)

    def emit(self, event: ChainEvent) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                # Listener failures never reach the chain.
                logger.exception("Event listener failed on {}", event.type.value)
