"""Binding a state machine to an entity class."""

from __future__ import annotations

from typing import Any, List, Optional

from .errors import DefinitionError
from .executor import TransitionExecutor
from .machine import StateMachineSpec, underscore


def _transition_method(name: str):
    def method(self, executor: Optional[TransitionExecutor] = None) -> bool:
        return (executor or TransitionExecutor()).execute(self, name, type(self).state_machine)

    method.__name__ = name
    method.__doc__ = f"Run the {name!r} transition."
    return method


def _can_method(name: str):
    def method(self, executor: Optional[TransitionExecutor] = None) -> bool:
        return (executor or TransitionExecutor()).can_transition(self, name, type(self).state_machine)

    method.__name__ = f"can_{name}"
    return method


def attach(cls: type, spec: StateMachineSpec) -> type:
    """Install ``spec`` on ``cls`` with one method per transition, then freeze it.

    ``Employee.reactivate(employee)`` runs the transition and
    ``employee.can_reactivate()`` checks it.
    """
    if spec.entity_class is not None and spec.entity_class is not cls:
        raise DefinitionError(f"{spec!r} is already attached to {spec.entity_class.__name__}")

    if getattr(cls, "__tablename__", None) or getattr(cls, "__table__", None) is not None:
        # Declarative columns: every field a transition writes must exist on the class
        fields = [spec.field] + [d.timestamp_field for d in spec.transitions.values() if d.timestamp_field]
        missing = sorted({f for f in fields if not hasattr(cls, f)})
        if missing:
            raise DefinitionError(f"{cls.__name__} has no column(s): {', '.join(missing)}")

    for name in spec.transitions:
        for attr in (name, f"can_{name}"):
            if attr in cls.__dict__ or any(attr in vars(base) for base in cls.__mro__[1:]):
                raise DefinitionError(f"{cls.__name__}.{attr} already exists")
        setattr(cls, name, _transition_method(name))
        setattr(cls, f"can_{name}", _can_method(name))

    spec.entity_class = cls
    if spec.entity_type is None:
        spec.entity_type = underscore(cls.__name__)
    cls.state_machine = spec
    spec.freeze()
    return cls


class StatefulMixin:
    """Mixin for classes that declare ``state_machine`` in their body.

    The machine is attached when the subclass is created, so transitions
    must be defined inside the class body.
    """

    def __init_subclass__(cls, **kwargs: Any):
        super().__init_subclass__(**kwargs)
        spec = cls.__dict__.get("state_machine")
        if isinstance(spec, StateMachineSpec):
            attach(cls, spec)

    def fire(self, name: str, executor: Optional[TransitionExecutor] = None) -> bool:
        return (executor or TransitionExecutor()).execute(self, name)

    def can_fire(self, name: str, executor: Optional[TransitionExecutor] = None) -> bool:
        return (executor or TransitionExecutor()).can_transition(self, name)

    def available_transitions(self, executor: Optional[TransitionExecutor] = None) -> List[str]:
        return (executor or TransitionExecutor()).available_transitions(self)
