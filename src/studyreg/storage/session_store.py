"""
Session Store

Persistence for feasibility wizard sessions.

Writes are last-write-wins: each request loads the session, mutates it and
saves it back whole.
"""

import json
import logging
import sqlite3
import uuid
from abc import ABC, abstractmethod
from contextlib import contextmanager
from pathlib import Path
from threading import Lock
from typing import Generator

from pydantic import ValidationError as PydanticValidationError

from studyreg.config import Settings, get_settings
from studyreg.core.exceptions import SessionNotFoundError, StorageError
from studyreg.observability.metrics import metrics
from studyreg.wizard.state import WizardSession, utcnow

logger = logging.getLogger(__name__)


class SessionStore(ABC):
    """Interface shared by the session backends."""

    def create(self) -> WizardSession:
        """Create and persist an empty session."""
        session = WizardSession(session_id=uuid.uuid4().hex)
        self._insert(session)
        logger.info("Created session %s", session.session_id)
        metrics.counter(metrics.SESSIONS_CREATED)
        return session

    @abstractmethod
    def _insert(self, session: WizardSession) -> None: ...

    @abstractmethod
    def get(self, session_id: str) -> WizardSession:
        """Load a session or raise SessionNotFoundError."""

    @abstractmethod
    def save(self, session: WizardSession) -> None:
        """Persist the whole session, replacing the stored copy."""

    @abstractmethod
    def delete(self, session_id: str) -> None:
        """Remove a session. Unknown ids are ignored."""

    @abstractmethod
    def list_ids(self) -> list[str]:
        """Session ids, oldest first."""


class InMemorySessionStore(SessionStore):
    """Process-local store. Callers get copies, never the stored objects."""

    def __init__(self) -> None:
        self._sessions: dict[str, WizardSession] = {}
        self._lock = Lock()

    def _insert(self, session: WizardSession) -> None:
        with self._lock:
            self._sessions[session.session_id] = session.model_copy(deep=True)

    def get(self, session_id: str) -> WizardSession:
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                raise SessionNotFoundError(session_id)
            return session.model_copy(deep=True)

    def save(self, session: WizardSession) -> None:
        session.updated_at = utcnow()
        with self._lock:
            self._sessions[session.session_id] = session.model_copy(deep=True)

    def delete(self, session_id: str) -> None:
        with self._lock:
            self._sessions.pop(session_id, None)

    def list_ids(self) -> list[str]:
        with self._lock:
            return list(self._sessions)


class SqliteSessionStore(SessionStore):
    """
    SQLite-backed store.

    Tables:
        - sessions: one JSON document per session
    """

    def __init__(self, db_path: Path | None = None) -> None:
        """
        Initialize session store.

        Args:
            db_path: Database file. Defaults to STUDYREG_DB_PATH.
        """
        self._db_path = db_path or get_settings().sessions.db_path
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_schema()

    @property
    def db_path(self) -> Path:
        return self._db_path

    @contextmanager
    def _connection(self) -> Generator[sqlite3.Connection, None, None]:
        """One connection per operation; commits on success, rolls back on error."""
        conn = sqlite3.connect(self._db_path, timeout=30.0)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode = WAL")
        conn.execute("PRAGMA busy_timeout = 30000")
        try:
            yield conn
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            raise StorageError(f"Database error: {e}") from e
        finally:
            conn.close()

    def _init_schema(self) -> None:
        with self._connection() as conn:
            conn.executescript("""
                CREATE TABLE IF NOT EXISTS sessions (
                    session_id TEXT PRIMARY KEY,
                    data_json TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                );

                CREATE INDEX IF NOT EXISTS idx_sessions_created_at ON sessions(created_at);
            """)

    def _insert(self, session: WizardSession) -> None:
        with self._connection() as conn:
            conn.execute(
                """
                INSERT INTO sessions (session_id, data_json, created_at, updated_at)
                VALUES (?, ?, ?, ?)
                """,
                (
                    session.session_id,
                    session.feasibility.model_dump_json(),
                    session.created_at.isoformat(),
                    session.updated_at.isoformat(),
                ),
            )

    def get(self, session_id: str) -> WizardSession:
        with self._connection() as conn:
            row = conn.execute(
                "SELECT * FROM sessions WHERE session_id = ?", (session_id,)
            ).fetchone()

        if row is None:
            raise SessionNotFoundError(session_id)
        try:
            return WizardSession(
                session_id=row["session_id"],
                feasibility=json.loads(row["data_json"]),
                created_at=row["created_at"],
                updated_at=row["updated_at"],
            )
        except (json.JSONDecodeError, PydanticValidationError) as e:
            raise StorageError(
                f"Corrupt session record: {session_id}", {"session_id": session_id}
            ) from e

    def save(self, session: WizardSession) -> None:
        session.updated_at = utcnow()
        with self._connection() as conn:
            conn.execute(
                """
                INSERT INTO sessions (session_id, data_json, created_at, updated_at)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(session_id) DO UPDATE SET
                    data_json = excluded.data_json,
                    updated_at = excluded.updated_at
                """,
                (
                    session.session_id,
                    session.feasibility.model_dump_json(),
                    session.created_at.isoformat(),
                    session.updated_at.isoformat(),
                ),
            )

    def delete(self, session_id: str) -> None:
        with self._connection() as conn:
            conn.execute("DELETE FROM sessions WHERE session_id = ?", (session_id,))

    def list_ids(self) -> list[str]:
        with self._connection() as conn:
            rows = conn.execute(
                "SELECT session_id FROM sessions ORDER BY created_at, rowid"
            ).fetchall()
        return [row["session_id"] for row in rows]


# Global session store
_store: SessionStore | None = None


def build_session_store(settings: Settings | None = None) -> SessionStore:
    """Construct the backend named by STUDYREG_SESSION_BACKEND."""
    settings = settings or get_settings()
    if settings.sessions.backend == "sqlite":
        return SqliteSessionStore(settings.sessions.db_path)
    return InMemorySessionStore()


def get_session_store() -> SessionStore:
    """Get the configured session store (singleton)."""
    global _store
    if _store is None:
        _store = build_session_store()
    return _store


def reset_session_store() -> None:
    """Drop the global store (useful for testing)."""
    global _store
    _store = None
