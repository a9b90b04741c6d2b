"""Guard predicates and post-transition actions.

A guard or action is declared either by name (a zero-argument method on
the entity) or inline (a callable that receives the entity as its only
argument). Both shapes resolve to one call: ``Predicate.evaluate(entity)``
or ``Action.run(entity)``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Optional, Union

from .errors import DefinitionError


def _bound_method(entity: Any, name: str) -> Callable[[], Any]:
    method = getattr(entity, name, None)
    if not callable(method):
        raise DefinitionError(f"{type(entity).__name__} has no callable {name!r}")
    return method


class Predicate:
    def evaluate(self, entity: Any) -> bool:
        raise NotImplementedError


@dataclass(frozen=True)
class NamedPredicate(Predicate):
    name: str

    def evaluate(self, entity: Any) -> bool:
        return bool(_bound_method(entity, self.name)())


@dataclass(frozen=True)
class InlinePredicate(Predicate):
    fn: Callable[[Any], Any]

    def evaluate(self, entity: Any) -> bool:
        return bool(self.fn(entity))


class Action:
    def run(self, entity: Any) -> None:
        raise NotImplementedError


@dataclass(frozen=True)
class NamedAction(Action):
    name: str

    def run(self, entity: Any) -> None:
        _bound_method(entity, self.name)()


@dataclass(frozen=True)
class InlineAction(Action):
    fn: Callable[[Any], Any]

    def run(self, entity: Any) -> None:
        self.fn(entity)


GuardRef = Union[str, Callable[[Any], Any], Predicate, None]
ActionRef = Union[str, Callable[[Any], Any], Action, None]


def as_predicate(ref: GuardRef) -> Optional[Predicate]:
    """Normalize a guard declaration (method name, callable or Predicate)."""
    if ref is None or isinstance(ref, Predicate):
        return ref
    if isinstance(ref, str):
        return NamedPredicate(ref)
    if callable(ref):
        return InlinePredicate(ref)
    raise DefinitionError(f"Guard must be a method name or a callable, got {ref!r}")


def as_action(ref: ActionRef) -> Optional[Action]:
    """Normalize a post-action declaration (method name, callable or Action)."""
    if ref is None or isinstance(ref, Action):
        return ref
    if isinstance(ref, str):
        return NamedAction(ref)
    if callable(ref):
        return InlineAction(ref)
    raise DefinitionError(f"Action must be a method name or a callable, got {ref!r}")


def evaluate(entity: Any, guard: Optional[Predicate]) -> bool:
    """Return True when no guard is configured, otherwise the guard's result."""
    if guard is None:
        return True
    return guard.evaluate(entity)
