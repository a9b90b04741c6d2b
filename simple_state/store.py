"""Persistence adapters used by the executor.

The executor only needs three things from storage: read a field, write
a set of fields, and run a block atomically. ``SessionStore`` does this
against a SQLAlchemy ``Session``; ``AttributeStore`` does it on plain
attributes for detached or non-ORM objects.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterator, Mapping, Optional, Protocol

from sqlalchemy import inspect
from sqlalchemy.orm import Session, object_session
from sqlalchemy.orm.exc import UnmappedInstanceError

from .errors import DefinitionError

logger = logging.getLogger(__name__)


class Store(Protocol):
    def read(self, entity: Any, field: str) -> Any:
        ...

    def write(self, entity: Any, values: Mapping[str, Any]) -> None:
        ...

    def transaction(self) -> Any:
        ...


class SessionStore:
    """SQLAlchemy-backed store.

    ``write`` rejects fields that are not mapped attributes, then assigns
    and flushes, so ``@validates`` hooks, constraints and
    ``version_id_col`` checks fail inside the transactional scope.

    With ``commit=True`` (the default) a successful scope commits the
    session, and the published ``success`` describes committed state.
    With ``commit=False`` the scope is a SAVEPOINT inside the caller's
    transaction: ``success`` is published when the SAVEPOINT is
    released, and a later rollback by the caller is not reported.
    """

    def __init__(self, session: Session, commit: bool = True):
        self.session = session
        self.commit = commit

    @classmethod
    def for_entity(cls, entity: Any, commit: bool = True) -> Optional["SessionStore"]:
        try:
            session = object_session(entity)
        except UnmappedInstanceError:
            return None
        if session is None:
            return None
        return cls(session, commit=commit)

    def read(self, entity: Any, field: str) -> Any:
        return getattr(entity, field)

    def write(self, entity: Any, values: Mapping[str, Any]) -> None:
        mapper = inspect(entity).mapper
        unmapped = [field for field in values if field not in mapper.attrs]
        if unmapped:
            raise DefinitionError(
                f"{type(entity).__name__} has no mapped column(s): {', '.join(unmapped)}"
            )
        for field, value in values.items():
            setattr(entity, field, value)
        self.session.flush()

    @contextmanager
    def transaction(self) -> Iterator[None]:
        if self.commit and not self.session.in_transaction():
            with self.session.begin():
                yield
            return

        with self.session.begin_nested():
            yield
        if self.commit:
            self.session.commit()


class AttributeStore:
    """Store for objects that are not attached to a session.

    Values written inside ``transaction()`` are restored to their
    previous values if the block raises.
    """

    def __init__(self) -> None:
        self._snapshots: list = []

    def read(self, entity: Any, field: str) -> Any:
        return getattr(entity, field)

    def write(self, entity: Any, values: Mapping[str, Any]) -> None:
        for snapshot in self._snapshots:
            for field in values:
                key = (id(entity), field)
                if key not in snapshot:
                    snapshot[key] = (entity, field, getattr(entity, field, None))
        for field, value in values.items():
            setattr(entity, field, value)

    @contextmanager
    def transaction(self) -> Iterator[None]:
        snapshot: Dict[tuple, Any] = {}
        self._snapshots.append(snapshot)
        try:
            yield
        except BaseException:
            for entity, field, value in snapshot.values():
                setattr(entity, field, value)
            logger.debug("Rolled back %d attribute(s)", len(snapshot))
            raise
        finally:
            self._snapshots.pop()


def store_for(entity: Any) -> Store:
    """SessionStore when the entity belongs to a session, else AttributeStore."""
    return SessionStore.for_entity(entity) or AttributeStore()
