"""
core/db.py -- Engine construction shared by every store.

CredentialStore and PreferenceStore hold separate engines against the same
database; both build them here so their SQLite settings cannot drift apart.

Layer rule: core/ is the kernel. This module may not import from api/,
auth/, or prefs/.
"""

from __future__ import annotations

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode for concurrent read safety.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def make_engine(db_url: str) -> Engine:
    """Create an engine with the SQLite settings every store in the app uses.

    check_same_thread is off because FastAPI runs sync handlers in a
    threadpool and the pool hands connections across threads.
    """
    connect_args: dict = {}
    if db_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
    engine = create_engine(db_url, connect_args=connect_args)
    if db_url.startswith("sqlite"):
        event.listen(engine, "connect", _set_wal_mode)
    return engine
