"""
Module: atelier_kernel.db.store
Responsibility: The key-value persistence port and its two adapters.

Architecture position: Kernel > DB.  Services receive a ``KeyValueStore``
    by constructor injection and never know what backs it.

Invariants enforced:
    - ``get(key, default)`` / ``set(key, value)`` are synchronous and deal in
      whole JSON-serializable collections.
    - Values handed out by ``get`` are fresh copies: mutating them never
      changes what is stored.
    - Last write wins; there is no locking or compare-and-swap.

Failure modes:
    - TypeError from ``json.dumps`` when a caller stores a value that is not
      JSON-serializable (both adapters check this on ``set``).
    - StoreNotInitializedError when SqlKeyValueStore is built before the
      engine.
"""

from __future__ import annotations

import copy
import json
from typing import Any, Protocol, runtime_checkable

from sqlalchemy import select
from sqlalchemy.orm import Session, sessionmaker

from atelier_kernel.db.engine import get_session_factory, session_scope
from atelier_kernel.logging_config import get_logger
from atelier_kernel.models.snapshot import StoredSnapshot

logger = get_logger("db.store")


@runtime_checkable
class KeyValueStore(Protocol):
    """Synchronous load/save port keyed by string identifiers."""

    def get(self, key: str, default: Any = None) -> Any:
        ...

    def set(self, key: str, value: Any) -> None:
        ...


class InMemoryStore:
    """Dict-backed store.  Stands in for the browser key-value store."""

    def __init__(self, initial: dict[str, Any] | None = None) -> None:
        self._data: dict[str, str] = {}
        for key, value in (initial or {}).items():
            self.set(key, value)

    def get(self, key: str, default: Any = None) -> Any:
        raw = self._data.get(key)
        if raw is None:
            return copy.deepcopy(default)
        return json.loads(raw)

    def set(self, key: str, value: Any) -> None:
        self._data[key] = json.dumps(value)

    def keys(self) -> list[str]:
        return sorted(self._data)


class SqlKeyValueStore:
    """Store backed by the ``kv_snapshots`` table."""

    def __init__(self, session_factory: sessionmaker[Session] | None = None) -> None:
        self._session_factory = session_factory or get_session_factory()

    def get(self, key: str, default: Any = None) -> Any:
        with session_scope(self._session_factory) as session:
            payload = session.execute(
                select(StoredSnapshot.payload).where(StoredSnapshot.key == key)
            ).scalar_one_or_none()
        if payload is None:
            return copy.deepcopy(default)
        return payload

    def set(self, key: str, value: Any) -> None:
        # Fail on non-JSON values here rather than inside the driver.
        payload = json.loads(json.dumps(value))
        with session_scope(self._session_factory) as session:
            session.merge(StoredSnapshot(key=key, payload=payload))
        logger.debug("snapshot_saved", extra={"key": key})
