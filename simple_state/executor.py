"""Transition executor: validate, guard, write atomically, publish."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable, List, Optional

from .callbacks import evaluate
from .errors import DefinitionError, TransitionError
from .events import Outcome, OutcomePublisher, TransitionOutcome
from .machine import StateMachineSpec, TransitionDefinition, state_token, underscore
from .store import Store, store_for

logger = logging.getLogger(__name__)


def spec_for(entity: Any) -> StateMachineSpec:
    spec = getattr(type(entity), "state_machine", None)
    if not isinstance(spec, StateMachineSpec):
        raise DefinitionError(f"{type(entity).__name__} has no state machine")
    return spec


class TransitionExecutor:
    """Runs named transitions against entities.

    ``store`` defaults to the entity's own session (``SessionStore``) or
    to plain attributes when it has none. ``publisher`` defaults to the
    process-wide ``notifications`` sink.
    """

    def __init__(
        self,
        store: Optional[Store] = None,
        publisher: Optional[OutcomePublisher] = None,
        clock: Callable[[], datetime] = datetime.utcnow,
    ):
        self.store = store
        self.publisher = publisher or OutcomePublisher()
        self.clock = clock

    def _store(self, entity: Any) -> Store:
        return self.store if self.store is not None else store_for(entity)

    def _current_state(self, store: Store, entity: Any, spec: StateMachineSpec) -> Any:
        return state_token(store.read(entity, spec.field))

    def can_transition(self, entity: Any, name: str, spec: Optional[StateMachineSpec] = None) -> bool:
        """True if ``execute`` would get past validation and the guard.

        Never writes and never publishes.
        """
        spec = spec or spec_for(entity)
        definition = spec.lookup(name)
        current = self._current_state(self._store(entity), entity, spec)
        if current is None or current not in definition.from_states:
            return False
        return evaluate(entity, definition.guard)

    def available_transitions(self, entity: Any, spec: Optional[StateMachineSpec] = None) -> List[str]:
        spec = spec or spec_for(entity)
        return [name for name in spec.transitions if self.can_transition(entity, name, spec)]

    def execute(self, entity: Any, name: str, spec: Optional[StateMachineSpec] = None) -> bool:
        """Perform transition ``name`` on ``entity``.

        Returns:
            True once the change is committed and the success outcome published

        Raises:
            UnknownTransition: name is not registered (nothing published)
            TransitionError: missing/disallowed current state or failed guard
            Exception: persistence or post-action error, re-raised unchanged
                after rollback
        """
        spec = spec or spec_for(entity)
        spec.freeze()
        definition = spec.lookup(name)
        store = self._store(entity)

        current = self._current_state(store, entity, spec)
        if current is None or current not in definition.from_states:
            self._reject(entity, spec, definition, current)

        try:
            allowed = evaluate(entity, definition.guard)
        except Exception:
            self._publish(Outcome.FAILED, entity, spec, definition, current)
            raise
        if not allowed:
            self._reject(entity, spec, definition, current)

        values = {spec.field: definition.to}
        if definition.timestamp_field:
            values[definition.timestamp_field] = self.clock()

        try:
            with store.transaction():
                store.write(entity, values)
                if definition.action is not None:
                    definition.action.run(entity)
        except Exception:
            self._publish(Outcome.FAILED, entity, spec, definition, current)
            raise

        self._publish(Outcome.SUCCESS, entity, spec, definition, current)
        return True

    def _reject(
        self,
        entity: Any,
        spec: StateMachineSpec,
        definition: TransitionDefinition,
        current: Any,
    ) -> None:
        self._publish(Outcome.INVALID, entity, spec, definition, current)
        raise TransitionError(record=entity, to=definition.to, from_state=current, event=definition.name)

    def _publish(
        self,
        outcome: Outcome,
        entity: Any,
        spec: StateMachineSpec,
        definition: TransitionDefinition,
        current: Any,
    ) -> None:
        entity_type = spec.entity_type or underscore(type(entity).__name__)
        entity_id = getattr(entity, "id", None)
        log = logger.debug if outcome is Outcome.SUCCESS else logger.info
        log(
            "%s #%s %s: %s -> %s (%s)",
            entity_type, entity_id, definition.name, current, definition.to, outcome.value,
        )
        self.publisher.publish(
            TransitionOutcome(
                outcome=outcome,
                entity_type=entity_type,
                entity_id=entity_id,
                from_state=current,
                to_state=definition.to,
                event=definition.name,
                timestamp=self.clock(),
                record=entity,
            )
        )
