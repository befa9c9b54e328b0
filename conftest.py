"""Configure pytest for the imagecheck project."""
import os
import tempfile
from pathlib import Path

import pytest

# =============================================================================
# Test Environment Configuration
# =============================================================================
# Set environment for tests BEFORE any imports of app modules.
# A file database (not :memory:) is required because TestClient serves
# requests from another thread, and connections are per thread.
_test_db_dir = tempfile.mkdtemp(prefix="imagecheck-tests-")
os.environ["IMAGECHECK_DB_PATH"] = str(Path(_test_db_dir) / "test.db")
os.environ["ENVIRONMENT"] = "test"
os.environ.setdefault("BCRYPT_ROUNDS", "4")


@pytest.fixture(autouse=True)
def fresh_database():
    """Give every test empty tables and freshly loaded config."""
    from app.config import reset_config
    from persistence.db import close_db, init_db, reset_db

    reset_config()
    reset_db()
    init_db()
    yield
    reset_db()
    close_db()
    reset_config()
