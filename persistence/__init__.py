# persistence/__init__.py
"""
Persistence layer.

Provides SQLite-backed storage for:
- Users and sessions (auth)
- Image detection history documents
"""

from persistence.db import get_db, init_db, close_db
from persistence.history import (
    insert_document,
    list_documents,
    count_documents,
    get_document,
    delete_document,
)

__all__ = [
    "get_db",
    "init_db",
    "close_db",
    "insert_document",
    "list_documents",
    "count_documents",
    "get_document",
    "delete_document",
]
