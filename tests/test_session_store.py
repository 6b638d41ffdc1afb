"""
Tests for SessionStore persistence module.

Tests:
1. Session lifecycle (create, get, save, list, delete) on both backends
2. Full wizard state round trip through SQLite
3. Error handling (unknown ids, corrupt records)
4. Backend selection from settings
"""

import sqlite3
import tempfile
from pathlib import Path

import pytest

from studyreg.config import get_settings
from studyreg.core.enums import Platform, SectionStatus, WizardSection
from studyreg.core.exceptions import SessionNotFoundError, StorageError
from studyreg.observability.metrics import get_registry, metrics
from studyreg.storage.session_store import (
    InMemorySessionStore,
    SqliteSessionStore,
    build_session_store,
    get_session_store,
)
from studyreg.wizard.forms import save_section


@pytest.fixture
def temp_db():
    """Create temporary database for testing."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir) / "test_sessions.db"


@pytest.fixture(params=["memory", "sqlite"])
def store(request, temp_db):
    """Each test runs against both backends."""
    if request.param == "sqlite":
        return SqliteSessionStore(db_path=temp_db)
    return InMemorySessionStore()


class TestSessionLifecycle:
    """Tests shared by both backends."""

    def test_create_and_get(self, store) -> None:
        """A created session can be loaded back."""
        session = store.create()
        loaded = store.get(session.session_id)
        assert loaded.session_id == session.session_id
        assert loaded.feasibility.completed is False

    def test_create_counted(self, store) -> None:
        store.create()
        store.create()
        assert get_registry().counter(metrics.SESSIONS_CREATED).total() == 2

    def test_unknown_session(self, store) -> None:
        with pytest.raises(SessionNotFoundError):
            store.get("missing")

    def test_save_replaces_state(self, store) -> None:
        """Saved wizard answers survive a reload."""
        session = store.create()
        save_section(session.feasibility, "platform", {"platform": "jdr"})
        store.save(session)

        loaded = store.get(session.session_id)
        assert loaded.feasibility.platform.platform is Platform.JDR
        assert loaded.feasibility.status_of(WizardSection.PLATFORM) is SectionStatus.COMPLETED
        assert loaded.updated_at >= loaded.created_at

    def test_loaded_copy_is_detached(self, store) -> None:
        """Mutating a loaded session does not change the store until saved."""
        session = store.create()
        loaded = store.get(session.session_id)
        loaded.feasibility.completed = True
        assert store.get(session.session_id).feasibility.completed is False

    def test_list_and_delete(self, store) -> None:
        first = store.create()
        second = store.create()
        assert store.list_ids() == [first.session_id, second.session_id]

        store.delete(first.session_id)
        store.delete("never-existed")
        assert store.list_ids() == [second.session_id]


class TestSqliteSessionStore:
    """SQLite-specific behaviour."""

    def test_creates_parent_directories(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            db_path = Path(tmpdir) / "nested" / "deep" / "sessions.db"
            SqliteSessionStore(db_path=db_path)
            assert db_path.exists()

    def test_survives_reopen(self, temp_db: Path) -> None:
        session = SqliteSessionStore(db_path=temp_db).create()
        save_section(session.feasibility, "medical", {"exclude": ["Stroke", "Epilepsy"]})
        SqliteSessionStore(db_path=temp_db).save(session)

        reopened = SqliteSessionStore(db_path=temp_db)
        assert reopened.get(session.session_id).feasibility.medical.exclude == [
            "Stroke",
            "Epilepsy",
        ]

    def test_full_state_round_trip(self, temp_db: Path) -> None:
        store = SqliteSessionStore(db_path=temp_db)
        session = store.create()
        state = session.feasibility
        save_section(state, "target", {"target_recruitment": "75"})
        save_section(
            state,
            "sites",
            {"sites": [{"name": "Y", "coverage_type": "postcode", "districts": "YO1 YO2"}]},
        )
        save_section(state, "demographics", {"age_mode": "preset", "age_preset": "60plus"})
        store.save(session)

        assert store.get(session.session_id).feasibility == state

    def test_corrupt_record(self, temp_db: Path) -> None:
        store = SqliteSessionStore(db_path=temp_db)
        session = store.create()
        with sqlite3.connect(temp_db) as conn:
            conn.execute(
                "UPDATE sessions SET data_json = ? WHERE session_id = ?",
                ("{not json", session.session_id),
            )

        with pytest.raises(StorageError) as exc_info:
            store.get(session.session_id)
        assert not isinstance(exc_info.value, SessionNotFoundError)


class TestBackendSelection:
    """Tests for build_session_store."""

    def test_memory_default(self) -> None:
        assert isinstance(build_session_store(), InMemorySessionStore)

    def test_sqlite_from_environment(self, monkeypatch: pytest.MonkeyPatch, temp_db: Path) -> None:
        monkeypatch.setenv("STUDYREG_SESSION_BACKEND", "sqlite")
        monkeypatch.setenv("STUDYREG_DB_PATH", str(temp_db))
        store = build_session_store(get_settings())
        assert isinstance(store, SqliteSessionStore)
        assert store.db_path == temp_db.resolve()

    def test_singleton(self) -> None:
        assert get_session_store() is get_session_store()
