"""Transition registry: declarative transition table for one entity type."""

from __future__ import annotations

import enum
import re
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Dict, FrozenSet, Iterable, Mapping, Optional, Union

from .callbacks import Action, ActionRef, GuardRef, Predicate, as_action, as_predicate
from .errors import DefinitionError, UnknownTransition


def state_token(value: Any) -> Any:
    """Normalize a state value: enum members compare by their value."""
    if isinstance(value, enum.Enum):
        return value.value
    return value


def underscore(name: str) -> str:
    """ContractWorker -> contract_worker"""
    name = re.sub(r"([A-Z]+)([A-Z][a-z])", r"\1_\2", name)
    name = re.sub(r"([a-z\d])([A-Z])", r"\1_\2", name)
    return name.replace("-", "_").lower()


@dataclass(frozen=True)
class TransitionDefinition:
    name: str
    to: str
    from_states: FrozenSet[str]
    timestamp: Union[bool, str, None] = None
    guard: Optional[Predicate] = None
    action: Optional[Action] = None

    @property
    def timestamp_field(self) -> Optional[str]:
        """Column stamped on success: True means "<to>_at"."""
        if self.timestamp is True:
            return f"{self.to}_at"
        if self.timestamp:
            return str(self.timestamp)
        return None


class StateMachineSpec:
    """Transitions for one state field of one entity type.

    Definitions are appended during setup; after ``freeze()`` (done by
    ``attach`` and on first execution) the table is read-only and safe
    to share between threads.
    """

    def __init__(
        self,
        field: str,
        states: Union[Iterable[Any], type],
        entity_type: Optional[str] = None,
    ):
        tokens = frozenset(state_token(s) for s in states)
        if not tokens:
            raise DefinitionError(f"No valid states declared for {field!r}")
        self.field = field
        self.states: FrozenSet[Any] = tokens
        self.entity_type = entity_type
        self.entity_class: Optional[type] = None
        self._transitions: Dict[str, TransitionDefinition] = {}
        self._frozen = False

    def __repr__(self) -> str:
        return (
            f"<StateMachineSpec {self.entity_type or '?'}.{self.field} "
            f"transitions={list(self._transitions)}>"
        )

    @property
    def frozen(self) -> bool:
        return self._frozen

    @property
    def transitions(self) -> Mapping[str, TransitionDefinition]:
        return MappingProxyType(self._transitions)

    def _check_state(self, state: Any) -> Any:
        token = state_token(state)
        if token not in self.states:
            valid = ", ".join(sorted(str(s) for s in self.states))
            raise DefinitionError(
                f"Invalid state {token!r} for {self.field}. Valid states: {valid}"
            )
        return token

    def define(
        self,
        name: str,
        *,
        to: Any,
        from_: Union[Any, Iterable[Any]],
        timestamp: Union[bool, str, None] = None,
        guard: GuardRef = None,
        action: ActionRef = None,
    ) -> TransitionDefinition:
        """Register a transition.

        Args:
            name: Transition (event) name, unique within this spec
            to: Target state
            from_: A state or an iterable of states allowed as source
            timestamp: True to stamp "<to>_at", or an explicit column name
            guard: Method name or callable that must return truthy
            action: Method name or callable run after the state write, before commit

        Raises:
            DefinitionError: on unknown states, empty sources, duplicate
                names, or a frozen spec
        """
        if self._frozen:
            raise DefinitionError(f"Cannot define {name!r}: state machine is frozen")
        if name in self._transitions:
            raise DefinitionError(f"Transition {name!r} is already defined")

        if isinstance(from_, (str, enum.Enum)) or not hasattr(from_, "__iter__"):
            from_ = [from_]
        sources = frozenset(self._check_state(s) for s in from_)
        if not sources:
            raise DefinitionError(f"Transition {name!r} needs at least one source state")

        definition = TransitionDefinition(
            name=name,
            to=self._check_state(to),
            from_states=sources,
            timestamp=timestamp,
            guard=as_predicate(guard),
            action=as_action(action),
        )
        self._transitions[name] = definition
        return definition

    def lookup(self, name: str) -> TransitionDefinition:
        try:
            return self._transitions[name]
        except KeyError:
            raise UnknownTransition(name, self.entity_type or "?") from None

    def freeze(self) -> "StateMachineSpec":
        self._frozen = True
        return self
