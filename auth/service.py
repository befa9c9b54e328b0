# auth/service.py
"""
Authentication service.

Handles:
- User registration and lookup
- Password verification
- Session creation and validation
"""

from __future__ import annotations

import logging
import re
import sqlite3
from datetime import datetime
from typing import Optional

from auth.models import User, Session
from auth.password import hash_password, verify_password, is_password_strong
from persistence.db import get_db, init_db

_logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[A-Za-z]{2,}$")

MAX_NAME_LENGTH = 100


class AuthError(Exception):
    """Base authentication error."""
    pass


class InvalidSignupError(AuthError):
    """Missing or malformed sign-up field."""
    pass


class UserExistsError(AuthError):
    """User with this email already exists."""
    pass


class WeakPasswordError(AuthError):
    """Password doesn't meet requirements."""
    pass


class InvalidCredentialsError(AuthError):
    """Invalid email or password."""
    pass


def create_user(name: str, email: str, password: str) -> User:
    """
    Create a new user account.

    Args:
        name: Display name
        email: User's email address
        password: Plain text password

    Returns:
        Created User object

    Raises:
        InvalidSignupError: If name or email is missing or malformed
        WeakPasswordError: If password doesn't meet requirements
        UserExistsError: If email already registered
    """
    init_db()

    name = (name or "").strip()
    email = (email or "").lower().strip()

    if not name or not email or not password:
        raise InvalidSignupError("Please provide all required fields")
    if len(name) > MAX_NAME_LENGTH:
        raise InvalidSignupError(f"Name must be at most {MAX_NAME_LENGTH} characters")
    if not EMAIL_PATTERN.match(email):
        raise InvalidSignupError("Please provide a valid email")

    is_strong, error_msg = is_password_strong(password)
    if not is_strong:
        raise WeakPasswordError(error_msg)

    if get_user_by_email(email):
        raise UserExistsError("User with this email already exists")

    user = User.new(name=name, email=email, password_hash=hash_password(password))

    try:
        with get_db() as conn:
            conn.execute(
                """
                INSERT INTO users (id, name, email, password_hash, is_active, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    user.id,
                    user.name,
                    user.email,
                    user.password_hash,
                    1,
                    user.created_at.isoformat(),
                    user.updated_at.isoformat(),
                ),
            )
    except sqlite3.IntegrityError:
        # Lost a race with a concurrent sign-up for the same email
        raise UserExistsError("User with this email already exists")

    _logger.info(f"Created user: {user.id}")
    return user


def get_user_by_email(email: str) -> Optional[User]:
    """Get user by email address, or None."""
    init_db()
    email = email.lower().strip()

    with get_db() as conn:
        row = conn.execute(
            "SELECT * FROM users WHERE email = ?",
            (email,),
        ).fetchone()

    if not row:
        return None

    return _row_to_user(row)


def get_user_by_id(user_id: str) -> Optional[User]:
    """Get user by ID, or None."""
    init_db()

    with get_db() as conn:
        row = conn.execute(
            "SELECT * FROM users WHERE id = ?",
            (user_id,),
        ).fetchone()

    if not row:
        return None

    return _row_to_user(row)


def _row_to_user(row) -> User:
    """Convert a database row to a User object."""
    return User(
        id=row["id"],
        name=row["name"],
        email=row["email"],
        password_hash=row["password_hash"],
        is_active=bool(row["is_active"]),
        created_at=datetime.fromisoformat(row["created_at"]),
        updated_at=datetime.fromisoformat(row["updated_at"]),
    )


def authenticate_user(email: str, password: str) -> User:
    """
    Authenticate user with email and password.

    Raises:
        InvalidCredentialsError: If credentials are invalid
    """
    user = get_user_by_email(email or "")

    if not user or not user.is_active:
        _logger.warning("Login attempt for unknown or inactive account")
        raise InvalidCredentialsError("Invalid email or password")

    if not verify_password(password, user.password_hash):
        _logger.warning(f"Invalid password for user: {user.id}")
        raise InvalidCredentialsError("Invalid email or password")

    _logger.info(f"User authenticated: {user.id}")
    return user


def create_session(
    user_id: str,
    duration_days: int = 30,
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None,
) -> Session:
    """
    Create a new session for a user.

    Args:
        user_id: User ID
        duration_days: Session duration in days
        ip_address: Client IP (optional)
        user_agent: Client user agent (optional)

    Returns:
        Created Session object
    """
    init_db()

    session = Session.new(
        user_id=user_id,
        duration_days=duration_days,
        ip_address=ip_address,
        user_agent=user_agent,
    )

    with get_db() as conn:
        conn.execute(
            """
            INSERT INTO sessions (id, user_id, created_at, expires_at, ip_address, user_agent)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (
                session.id,
                session.user_id,
                session.created_at.isoformat(),
                session.expires_at.isoformat(),
                session.ip_address,
                session.user_agent,
            ),
        )

    _logger.debug(f"Created session for user: {user_id}")
    return session


def get_session(session_id: str) -> Optional[Session]:
    """
    Get session by ID.

    Returns:
        Session if found and valid, None otherwise
    """
    init_db()

    with get_db() as conn:
        row = conn.execute(
            "SELECT * FROM sessions WHERE id = ?",
            (session_id,),
        ).fetchone()

    if not row:
        return None

    session = Session(
        id=row["id"],
        user_id=row["user_id"],
        created_at=datetime.fromisoformat(row["created_at"]),
        expires_at=datetime.fromisoformat(row["expires_at"]),
        ip_address=row["ip_address"],
        user_agent=row["user_agent"],
    )

    if not session.is_valid:
        invalidate_session(session_id)
        return None

    return session


def invalidate_session(session_id: str) -> bool:
    """
    Invalidate (delete) a session.

    Returns:
        True if deleted, False if not found
    """
    init_db()

    with get_db() as conn:
        cursor = conn.execute(
            "DELETE FROM sessions WHERE id = ?",
            (session_id,),
        )
        return cursor.rowcount > 0


def get_current_user(session_id: Optional[str]) -> Optional[User]:
    """
    Get the current user from a session ID.

    This is the main entry point for the auth bridge.

    Returns:
        User if session is valid and the account active, None otherwise
    """
    if not session_id:
        return None

    session = get_session(session_id)
    if not session:
        return None

    user = get_user_by_id(session.user_id)
    if not user or not user.is_active:
        return None

    return user


def cleanup_expired_sessions() -> int:
    """
    Remove expired sessions from database.

    Returns:
        Number of sessions cleaned up
    """
    init_db()

    with get_db() as conn:
        cursor = conn.execute(
            "DELETE FROM sessions WHERE expires_at < ?",
            (datetime.utcnow().isoformat(),),
        )
        count = cursor.rowcount

    if count > 0:
        _logger.info(f"Cleaned up {count} expired sessions")

    return count
