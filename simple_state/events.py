"""Outcome publication and in-process event sinks."""

from __future__ import annotations

import enum
import fnmatch
import logging
import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Protocol

from .machine import underscore

logger = logging.getLogger(__name__)


class Outcome(str, enum.Enum):
    SUCCESS = "success"
    FAILED = "failed"
    INVALID = "invalid"


@dataclass(frozen=True)
class TransitionOutcome:
    outcome: Outcome
    entity_type: str
    entity_id: Any
    from_state: Optional[str]
    to_state: str
    event: str
    timestamp: datetime
    record: Any = None

    @property
    def event_name(self) -> str:
        return ".".join([self.entity_type, underscore(self.event), self.outcome.value])

    def payload(self) -> Dict[str, Any]:
        return {
            "record": self.record,
            "record_id": self.entity_id,
            "from_state": self.from_state,
            "to_state": self.to_state,
            "event": self.event,
            "timestamp": self.timestamp,
        }


class Sink(Protocol):
    def emit(self, name: str, payload: Dict[str, Any]) -> None:
        ...


Subscriber = Callable[[str, Dict[str, Any]], None]


class Notifications:
    """In-process subscriber registry.

    Patterns are exact event names or fnmatch wildcards, e.g.
    ``"employee.*.failed"`` or ``"*"``.
    """

    def __init__(self) -> None:
        self._subscribers: List[tuple] = []
        self._lock = threading.Lock()

    def subscribe(self, pattern: str, fn: Subscriber) -> tuple:
        handle = (pattern, fn)
        with self._lock:
            self._subscribers.append(handle)
        return handle

    def unsubscribe(self, handle: tuple) -> None:
        with self._lock:
            if handle in self._subscribers:
                self._subscribers.remove(handle)

    def clear(self) -> None:
        with self._lock:
            self._subscribers.clear()

    def emit(self, name: str, payload: Dict[str, Any]) -> None:
        with self._lock:
            subscribers = list(self._subscribers)
        for pattern, fn in subscribers:
            if not fnmatch.fnmatchcase(name, pattern):
                continue
            try:
                fn(name, payload)
            except Exception:
                logger.warning("Subscriber %r failed for %s", fn, name, exc_info=True)


class LoggingSink:
    """Writes every event to a logger."""

    def __init__(self, log: Optional[logging.Logger] = None, level: int = logging.INFO):
        self.log = log or logger
        self.level = level

    def emit(self, name: str, payload: Dict[str, Any]) -> None:
        self.log.log(
            self.level,
            "%s record_id=%s from=%s to=%s",
            name,
            payload.get("record_id"),
            payload.get("from_state"),
            payload.get("to_state"),
        )


class CompositeSink:
    def __init__(self, *sinks: Sink):
        self.sinks = list(sinks)

    def emit(self, name: str, payload: Dict[str, Any]) -> None:
        for sink in self.sinks:
            try:
                sink.emit(name, payload)
            except Exception:
                logger.warning("Sink %r failed for %s", sink, name, exc_info=True)


# Process-wide default sink used by entities that are not handed an executor.
notifications = Notifications()


class OutcomePublisher:
    """Delivers transition outcomes to a sink, fire-and-forget."""

    def __init__(self, sink: Optional[Sink] = None):
        self.sink = sink if sink is not None else notifications

    def publish(self, outcome: TransitionOutcome) -> None:
        name = outcome.event_name
        try:
            self.sink.emit(name, outcome.payload())
        except Exception:
            # A broken sink never replaces the transition's own result.
            logger.warning("Failed to publish %s", name, exc_info=True)
