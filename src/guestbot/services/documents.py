"""Persistent document store backends.

The security pipeline only needs three primitives from its persistent store:
``get_doc``, ``set_doc`` and ``run_transaction``. Each transaction reads and
writes whole JSON documents; its writes commit atomically when the callback
returns and are discarded when it raises.

Backends:

- ``InMemoryDocumentStore``: single-process, used by tests and local runs
- ``SqlDocumentStore``: SQLAlchemy, row locks via ``SELECT ... FOR UPDATE``
- ``RedisDocumentStore``: optimistic WATCH/MULTI with bounded retries
"""

from __future__ import annotations

import copy
import json
import logging
from collections.abc import Callable
from threading import RLock
from typing import Any, Final, Protocol, TypeVar

import redis
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from guestbot.core.errors import StoreError
from guestbot.core.settings import settings
from guestbot.models import StoredDocument

logger = logging.getLogger(__name__)

T = TypeVar("T")
Document = dict[str, Any]

_REDIS_MAX_RETRIES: Final[int] = 5


class Transaction(Protocol):
    """Transactional view handed to ``run_transaction`` callbacks."""

    def get(self, key: str) -> Document | None: ...

    def set(self, key: str, value: Document, merge: bool = False) -> None: ...


class DocumentStore(Protocol):
    """Minimal persistent key/document interface."""

    def get_doc(self, key: str) -> Document | None: ...

    def set_doc(self, key: str, value: Document, merge: bool = False) -> None: ...

    def run_transaction(self, fn: Callable[[Transaction], T]) -> T: ...


def _merged(current: Document | None, value: Document, merge: bool) -> Document:
    if merge and current is not None:
        combined = dict(current)
        combined.update(value)
        return combined
    return dict(value)


class _BufferedTransaction:
    """Read-through transaction that buffers writes until commit."""

    def __init__(self, read: Callable[[str], Document | None]) -> None:
        self._read = read
        self.writes: dict[str, Document] = {}

    def get(self, key: str) -> Document | None:
        if key in self.writes:
            return copy.deepcopy(self.writes[key])
        return self._read(key)

    def set(self, key: str, value: Document, merge: bool = False) -> None:
        self.writes[key] = _merged(self.get(key), copy.deepcopy(value), merge)


class InMemoryDocumentStore:
    """Process-local document store with serialized transactions."""

    def __init__(self) -> None:
        self._documents: dict[str, Document] = {}
        self._lock = RLock()

    def get_doc(self, key: str) -> Document | None:
        with self._lock:
            document = self._documents.get(key)
            return copy.deepcopy(document) if document is not None else None

    def set_doc(self, key: str, value: Document, merge: bool = False) -> None:
        with self._lock:
            current = self._documents.get(key)
            self._documents[key] = _merged(current, copy.deepcopy(value), merge)

    def run_transaction(self, fn: Callable[[Transaction], T]) -> T:
        with self._lock:
            tx = _BufferedTransaction(self.get_doc)
            result = fn(tx)
            self._documents.update(tx.writes)
            return result

    def keys(self) -> list[str]:
        """Return every stored key (test helper)."""
        with self._lock:
            return list(self._documents)


class _SqlTransaction:
    def __init__(self, session: Session) -> None:
        self._session = session

    def get(self, key: str) -> Document | None:
        row = self._session.get(StoredDocument, key, with_for_update=True)
        return copy.deepcopy(row.value) if row is not None else None

    def set(self, key: str, value: Document, merge: bool = False) -> None:
        row = self._session.get(StoredDocument, key, with_for_update=True)
        if row is None:
            self._session.add(StoredDocument(key=key, value=dict(value)))
            self._session.flush()
            return
        # Reassign rather than mutate so the JSON column is flagged dirty.
        row.value = _merged(row.value, value, merge)


class SqlDocumentStore:
    """Document store backed by the ``documents`` table."""

    def __init__(self, session_factory: sessionmaker[Session] | None = None) -> None:
        if session_factory is None:
            from guestbot.db.session import SessionLocal

            session_factory = SessionLocal
        self._session_factory = session_factory

    def get_doc(self, key: str) -> Document | None:
        try:
            with self._session_factory() as session:
                row = session.get(StoredDocument, key)
                return copy.deepcopy(row.value) if row is not None else None
        except SQLAlchemyError as exc:
            raise StoreError(f"read failed for {key}") from exc

    def set_doc(self, key: str, value: Document, merge: bool = False) -> None:
        self.run_transaction(lambda tx: tx.set(key, value, merge))

    def run_transaction(self, fn: Callable[[Transaction], T]) -> T:
        try:
            with self._session_factory() as session, session.begin():
                return fn(_SqlTransaction(session))
        except SQLAlchemyError as exc:
            raise StoreError("transaction failed") from exc


class RedisDocumentStore:
    """Document store over Redis strings holding JSON documents."""

    def __init__(self, client: redis.Redis | None = None) -> None:
        self._redis = client if client is not None else redis.from_url(settings.redis_url)

    def get_doc(self, key: str) -> Document | None:
        try:
            raw = self._redis.get(key)
        except redis.RedisError as exc:
            raise StoreError(f"read failed for {key}") from exc
        return json.loads(raw) if raw is not None else None

    def set_doc(self, key: str, value: Document, merge: bool = False) -> None:
        self.run_transaction(lambda tx: tx.set(key, value, merge))

    def run_transaction(self, fn: Callable[[Transaction], T]) -> T:
        try:
            with self._redis.pipeline() as pipe:
                for _attempt in range(_REDIS_MAX_RETRIES):
                    tx = _BufferedTransaction(lambda key: self._watched_read(pipe, key))
                    try:
                        result = fn(tx)
                        pipe.multi()
                        for key, value in tx.writes.items():
                            pipe.set(key, json.dumps(value))
                        pipe.execute()
                        return result
                    except redis.WatchError:
                        logger.debug("Redis transaction conflict, retrying")
                        pipe.reset()
                        continue
        except redis.RedisError as exc:
            raise StoreError("transaction failed") from exc
        raise StoreError("transaction retries exhausted")

    @staticmethod
    def _watched_read(pipe: Any, key: str) -> Document | None:
        pipe.watch(key)
        raw = pipe.get(key)
        return json.loads(raw) if raw is not None else None


def build_document_store(backend: str | None = None) -> DocumentStore:
    """Return the store selected by ``DOCUMENT_STORE_BACKEND``."""
    selected = backend or settings.document_store_backend
    if selected == "memory":
        return InMemoryDocumentStore()
    if selected == "redis":
        return RedisDocumentStore()
    if selected == "sql":
        from guestbot.db.session import create_tables

        create_tables()
        return SqlDocumentStore()
    raise ValueError(f"Unknown document store backend: {selected}")
