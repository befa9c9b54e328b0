# auth/password.py
"""
Password hashing using bcrypt.
"""

from __future__ import annotations

import logging
import os

import bcrypt

_logger = logging.getLogger(__name__)

# Work factor (cost) - higher = slower; tests lower it via BCRYPT_ROUNDS
BCRYPT_ROUNDS = int(os.environ.get("BCRYPT_ROUNDS", "12"))

MIN_PASSWORD_LENGTH = 6

# bcrypt only looks at the first 72 bytes
MAX_PASSWORD_BYTES = 72


def hash_password(password: str, rounds: int | None = None) -> str:
    """
    Hash a password using bcrypt.

    Args:
        password: Plain text password
        rounds: bcrypt cost factor (default BCRYPT_ROUNDS)

    Returns:
        Bcrypt hash string (includes salt)
    """
    if not password:
        raise ValueError("Password cannot be empty")

    password_bytes = password.encode("utf-8")
    salt = bcrypt.gensalt(rounds=rounds or BCRYPT_ROUNDS)
    hashed = bcrypt.hashpw(password_bytes, salt)

    return hashed.decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """
    Verify a password against its hash.

    Returns:
        True if password matches, False otherwise
    """
    if not password or not password_hash:
        return False

    try:
        password_bytes = password.encode("utf-8")
        hash_bytes = password_hash.encode("utf-8")
        return bcrypt.checkpw(password_bytes, hash_bytes)
    except ValueError as e:
        _logger.warning(f"Password verification error: {e}")
        return False


def is_password_strong(password: str) -> tuple[bool, str]:
    """
    Check if a password meets minimum requirements.

    Requirements:
    - At least 6 characters
    - At most 72 bytes once encoded

    Returns:
        Tuple of (is_valid, error_message)
    """
    if not password:
        return False, "Password cannot be empty"

    if len(password) < MIN_PASSWORD_LENGTH:
        return False, f"Password must be at least {MIN_PASSWORD_LENGTH} characters"

    if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
        return False, f"Password must be at most {MAX_PASSWORD_BYTES} bytes"

    return True, ""
