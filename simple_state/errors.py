"""Error types raised by the transition engine."""

from __future__ import annotations

from typing import Any, Optional


class SimpleStateError(Exception):
    """Base class for all simple_state errors."""


class DefinitionError(SimpleStateError, ValueError):
    """A transition was declared against states the entity type does not have,
    redeclared, or declared after the machine was frozen."""


class UnknownTransition(SimpleStateError, LookupError):
    """Raised when a transition name is not registered for an entity type."""

    def __init__(self, name: str, entity_type: str):
        self.name = name
        self.entity_type = entity_type
        super().__init__(f"Unknown transition {name!r} for {entity_type}")


class TransitionError(SimpleStateError):
    """Raised when a transition is not allowed from the current state or its guard fails."""

    def __init__(self, *, record: Any, to: str, from_state: Optional[str], event: str):
        self.record = record
        self.to = to
        self.from_state = from_state
        self.event = event
        record_id = getattr(record, "id", None)
        super().__init__(
            f"Invalid transition: {type(record).__name__} #{record_id} "
            f"from {from_state!r} -> {to!r} on {event}"
        )
