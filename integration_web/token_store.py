"""
Session token store: binds one TokenRecord to an opaque session id.
In-memory by default; SqlSessionTokenStore when SESSION_STORE_URL is configured.
"""
import logging
import threading
import time
from typing import Protocol

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from integration_web.database import create_db_engine, init_db, make_session_factory
from integration_web.errors import SessionStoreError
from integration_web.models import SessionToken, TokenRecord

logger = logging.getLogger(__name__)


class SessionTokenStore(Protocol):
    def get(self, session_id: str) -> TokenRecord | None: ...

    def set(self, session_id: str, record: TokenRecord) -> None: ...

    def delete(self, session_id: str) -> None: ...


class InMemorySessionTokenStore:
    """
    Process-local store. Entries idle longer than ttl_seconds are dropped on access
    or swept on the next write, mirroring a session store's own expiry.
    ttl_seconds=None keeps entries forever.
    """

    def __init__(self, ttl_seconds: float | None = None) -> None:
        self._ttl = ttl_seconds
        self._entries: dict[str, tuple[TokenRecord, float]] = {}
        self._lock = threading.Lock()

    def _expired(self, touched_at: float, now: float) -> bool:
        return self._ttl is not None and (now - touched_at) > self._ttl

    def get(self, session_id: str) -> TokenRecord | None:
        now = time.monotonic()
        with self._lock:
            entry = self._entries.get(session_id)
            if entry is None:
                return None
            record, touched_at = entry
            if self._expired(touched_at, now):
                del self._entries[session_id]
                return None
            self._entries[session_id] = (record, now)
            return record

    def set(self, session_id: str, record: TokenRecord) -> None:
        now = time.monotonic()
        with self._lock:
            # Abandoned sessions are never read again; sweep them on each write
            self._purge(now)
            self._entries[session_id] = (record, now)

    def delete(self, session_id: str) -> None:
        with self._lock:
            self._entries.pop(session_id, None)

    def purge_expired(self) -> int:
        with self._lock:
            return self._purge(time.monotonic())

    def _purge(self, now: float) -> int:
        if self._ttl is None:
            return 0
        stale = [sid for sid, (_, t) in self._entries.items() if self._expired(t, now)]
        for sid in stale:
            del self._entries[sid]
        return len(stale)


class SqlSessionTokenStore:
    """Store backed by the session_tokens table; last writer wins per session id."""

    def __init__(self, session_factory: sessionmaker) -> None:
        self._session_factory = session_factory

    @classmethod
    def from_url(cls, url: str) -> "SqlSessionTokenStore":
        engine = create_db_engine(url)
        init_db(engine)
        return cls(make_session_factory(engine))

    def get(self, session_id: str) -> TokenRecord | None:
        try:
            with self._session_factory() as db:
                row = db.get(SessionToken, session_id)
                return row.to_record() if row is not None else None
        except SQLAlchemyError as e:
            raise SessionStoreError(f"reading session token failed: {type(e).__name__}") from e

    def set(self, session_id: str, record: TokenRecord) -> None:
        try:
            with self._session_factory() as db:
                db.merge(SessionToken(session_id=session_id, **record.to_dict()))
                db.commit()
        except SQLAlchemyError as e:
            raise SessionStoreError(f"writing session token failed: {type(e).__name__}") from e

    def delete(self, session_id: str) -> None:
        try:
            with self._session_factory() as db:
                row = db.get(SessionToken, session_id)
                if row is not None:
                    db.delete(row)
                    db.commit()
        except SQLAlchemyError as e:
            raise SessionStoreError(f"deleting session token failed: {type(e).__name__}") from e


def build_token_store(url: str | None, ttl_seconds: float | None = None) -> SessionTokenStore:
    if url:
        logger.info("Using SQL session token store")
        return SqlSessionTokenStore.from_url(url)
    return InMemorySessionTokenStore(ttl_seconds=ttl_seconds)
