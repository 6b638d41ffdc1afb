"""
Study Registration Storage Layer

Wizard session persistence.
"""

from studyreg.storage.session_store import (
    InMemorySessionStore,
    SessionStore,
    SqliteSessionStore,
    build_session_store,
    get_session_store,
    reset_session_store,
)

__all__ = [
    "SessionStore",
    "InMemorySessionStore",
    "SqliteSessionStore",
    "build_session_store",
    "get_session_store",
    "reset_session_store",
]
