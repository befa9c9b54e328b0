# persistence/db.py
"""
SQLite database connection and schema management.

Uses a file-based SQLite database for persistence.
Point IMAGECHECK_DB_PATH at a persistent volume in deployment.
"""

from __future__ import annotations

import logging
import os
import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path

_logger = logging.getLogger(__name__)

# Database file location (configurable via env var)
DEFAULT_DB_PATH = Path(__file__).parent.parent / "data" / "imagecheck.db"

# Connection pool (one connection per thread)
_local = threading.local()
_init_lock = threading.Lock()
_initialized = False


def get_db_path() -> Path:
    """Get the database file path."""
    return Path(os.environ.get("IMAGECHECK_DB_PATH", str(DEFAULT_DB_PATH)))


def _get_connection() -> sqlite3.Connection:
    """Get thread-local database connection."""
    if not hasattr(_local, "connection") or _local.connection is None:
        db_path = get_db_path()
        if str(db_path) != ":memory:":
            db_path.parent.mkdir(parents=True, exist_ok=True)

        conn = sqlite3.connect(
            str(db_path),
            timeout=30.0,
            check_same_thread=False,
        )
        conn.execute("PRAGMA foreign_keys = ON")
        # Return rows as dicts
        conn.row_factory = sqlite3.Row
        _local.connection = conn

    return _local.connection


@contextmanager
def get_db():
    """
    Get database connection context manager.

    Commits when the block exits cleanly, rolls back otherwise, so every
    block is one atomic unit of work.

    Usage:
        with get_db() as conn:
            cursor = conn.execute("SELECT ...")
    """
    conn = _get_connection()
    try:
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise


def init_db() -> None:
    """
    Initialize database schema.

    Creates tables if they don't exist.
    Safe to call multiple times (idempotent).
    """
    global _initialized

    with _init_lock:
        if _initialized:
            return

        with get_db() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS users (
                    id TEXT PRIMARY KEY,
                    name TEXT NOT NULL,
                    email TEXT NOT NULL UNIQUE,
                    password_hash TEXT NOT NULL,
                    is_active INTEGER NOT NULL DEFAULT 1,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)

            conn.execute("""
                CREATE TABLE IF NOT EXISTS sessions (
                    id TEXT PRIMARY KEY,
                    user_id TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    expires_at TEXT NOT NULL,
                    ip_address TEXT,
                    user_agent TEXT,
                    FOREIGN KEY (user_id) REFERENCES users(id) ON DELETE CASCADE
                )
            """)
            conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_sessions_user
                ON sessions(user_id)
            """)

            # One JSON document per history record; seq keeps insertion order
            conn.execute("""
                CREATE TABLE IF NOT EXISTS image_history (
                    seq INTEGER PRIMARY KEY AUTOINCREMENT,
                    id TEXT NOT NULL UNIQUE,
                    owner_id TEXT NOT NULL,
                    owner_email TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    verdict TEXT NOT NULL,
                    document_json TEXT NOT NULL
                )
            """)
            conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_history_owner_email_created
                ON image_history(owner_email, created_at DESC)
            """)
            conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_history_owner_id_created
                ON image_history(owner_id, created_at DESC)
            """)

            _logger.info(f"Database initialized at {get_db_path()}")
            _initialized = True


def close_db() -> None:
    """Close thread-local database connection."""
    if hasattr(_local, "connection") and _local.connection is not None:
        _local.connection.close()
        _local.connection = None


def reset_db() -> None:
    """Reset database (for testing). Drops all tables."""
    global _initialized

    with _init_lock:
        with get_db() as conn:
            conn.execute("DROP TABLE IF EXISTS image_history")
            conn.execute("DROP TABLE IF EXISTS sessions")
            conn.execute("DROP TABLE IF EXISTS users")
        _initialized = False
