# persistence/history.py
"""
Image history document storage.

Each record is one JSON document keyed by its id. Owner columns and
created_at are denormalized out of the document so the per-owner listing
can use the (owner_email, created_at DESC) index.

Every query here filters on both owner_id and owner_email. Callers pass
the owner from the resolved identity, never from client input.
"""

from __future__ import annotations

import json
import logging
from typing import Optional

from persistence.db import get_db, init_db

_logger = logging.getLogger(__name__)

_OWNER_FILTER = "owner_id = ? AND owner_email = ?"


def insert_document(
    record_id: str,
    owner_id: str,
    owner_email: str,
    created_at: str,
    verdict: str,
    document: dict,
) -> None:
    """
    Persist one history document in a single transaction.

    Args:
        record_id: Store-assigned record ID
        owner_id: Owning user ID
        owner_email: Owning user email
        created_at: ISO8601 UTC timestamp (fixed microsecond precision)
        verdict: AI|REAL, kept as a column for counting
        document: Full record as a JSON-serializable dict
    """
    init_db()

    with get_db() as conn:
        conn.execute(
            """
            INSERT INTO image_history
            (id, owner_id, owner_email, created_at, verdict, document_json)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (
                record_id,
                owner_id,
                owner_email,
                created_at,
                verdict,
                json.dumps(document),
            ),
        )

    _logger.debug(f"Saved history document {record_id}")


def list_documents(
    owner_id: str,
    owner_email: str,
    limit: int = 50,
    skip: int = 0,
) -> list[dict]:
    """Get an owner's documents, newest first (ties: latest insert first)."""
    init_db()

    with get_db() as conn:
        rows = conn.execute(
            f"""
            SELECT document_json FROM image_history
            WHERE {_OWNER_FILTER}
            ORDER BY created_at DESC, seq DESC
            LIMIT ? OFFSET ?
            """,
            (owner_id, owner_email, limit, skip),
        ).fetchall()

    return [json.loads(row["document_json"]) for row in rows]


def count_documents(owner_id: str, owner_email: str) -> int:
    """Count all documents owned by one user."""
    init_db()

    with get_db() as conn:
        row = conn.execute(
            f"SELECT COUNT(*) AS total FROM image_history WHERE {_OWNER_FILTER}",
            (owner_id, owner_email),
        ).fetchone()

    return row["total"]


def count_by_verdict(owner_id: str, owner_email: str) -> dict[str, int]:
    """Count an owner's documents grouped by verdict."""
    init_db()

    with get_db() as conn:
        rows = conn.execute(
            f"""
            SELECT verdict, COUNT(*) AS total FROM image_history
            WHERE {_OWNER_FILTER}
            GROUP BY verdict
            """,
            (owner_id, owner_email),
        ).fetchall()

    return {row["verdict"]: row["total"] for row in rows}


def get_document(record_id: str, owner_id: str, owner_email: str) -> Optional[dict]:
    """
    Get one document by ID.

    Returns None if not found or owned by someone else.
    """
    init_db()

    with get_db() as conn:
        row = conn.execute(
            f"SELECT document_json FROM image_history WHERE id = ? AND {_OWNER_FILTER}",
            (record_id, owner_id, owner_email),
        ).fetchone()

    if row is None:
        return None

    return json.loads(row["document_json"])


def delete_document(record_id: str, owner_id: str, owner_email: str) -> bool:
    """
    Delete one document if id and both owner fields match.

    Returns:
        True if a row was deleted, False otherwise
    """
    init_db()

    with get_db() as conn:
        cursor = conn.execute(
            f"DELETE FROM image_history WHERE id = ? AND {_OWNER_FILTER}",
            (record_id, owner_id, owner_email),
        )
        deleted = cursor.rowcount > 0

    if deleted:
        _logger.info(f"Deleted history document {record_id}")

    return deleted
