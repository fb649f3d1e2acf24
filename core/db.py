"""
core/db.py -- Engine construction shared by every SQLAlchemy Core store.

UserStore, SessionStore and BoardStore each own an engine built here, so the
SQLite-specific tweaks live in one place. Any SQLAlchemy URL works; swapping
SQLite for PostgreSQL is a DATABASE_URL change, not a rewrite.

Layer rule: core/ is the kernel. No imports from api/, auth/, or board/.
"""

from datetime import datetime, timezone

from sqlalchemy import MetaData, create_engine, event
from sqlalchemy.engine import Engine


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode for concurrent read safety.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def create_store_engine(db_url: str, metadata: MetaData) -> Engine:
    """Build an engine for db_url and create any missing tables in metadata."""
    connect_args: dict = {}
    if db_url.startswith("sqlite"):
        # FastAPI runs sync handlers in a thread pool; the same pooled
        # connection may be used from several threads.
        connect_args["check_same_thread"] = False
    engine = create_engine(db_url, connect_args=connect_args)
    if db_url.startswith("sqlite"):
        event.listen(engine, "connect", _set_wal_mode)
    metadata.create_all(engine)
    return engine


def now_iso() -> str:
    # Fixed precision keeps stored timestamps lexicographically comparable.
    return datetime.now(timezone.utc).isoformat(timespec="microseconds")
