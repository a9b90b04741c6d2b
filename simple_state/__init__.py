"""Declarative state transitions for persisted entities.

This package keeps the transition logic (registry, guards, executor,
outcome publication) independent of the web app so it can be exercised
from tests and from the FastAPI router alike. Storage is reached through
``simple_state.store`` and outcomes leave through ``simple_state.events``.
"""

from .callbacks import Action, InlineAction, InlinePredicate, NamedAction, NamedPredicate, Predicate
from .entity import StatefulMixin, attach
from .errors import DefinitionError, SimpleStateError, TransitionError, UnknownTransition
from .events import (
    CompositeSink,
    LoggingSink,
    Notifications,
    Outcome,
    OutcomePublisher,
    TransitionOutcome,
    notifications,
)
from .executor import TransitionExecutor, spec_for
from .machine import StateMachineSpec, TransitionDefinition
from .store import AttributeStore, SessionStore, store_for

__all__ = [
    "Action",
    "AttributeStore",
    "CompositeSink",
    "DefinitionError",
    "InlineAction",
    "InlinePredicate",
    "LoggingSink",
    "NamedAction",
    "NamedPredicate",
    "Notifications",
    "Outcome",
    "OutcomePublisher",
    "Predicate",
    "SessionStore",
    "SimpleStateError",
    "StateMachineSpec",
    "StatefulMixin",
    "TransitionDefinition",
    "TransitionError",
    "TransitionExecutor",
    "TransitionOutcome",
    "UnknownTransition",
    "attach",
    "notifications",
    "spec_for",
    "store_for",
]
