# auth/models.py
"""
User, Session and Identity models for authentication.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
import uuid


def _utcnow() -> datetime:
    return datetime.utcnow()


@dataclass
class User:
    """
    User account model.

    Attributes:
        id: Unique user ID (UUID)
        name: Display name
        email: User's email (unique, used for login)
        password_hash: Bcrypt-hashed password
        is_active: Inactive users cannot sign in
        created_at: Account creation timestamp
        updated_at: Last update timestamp
    """
    id: str
    name: str
    email: str
    password_hash: str
    is_active: bool = True
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)

    @classmethod
    def new(cls, name: str, email: str, password_hash: str) -> User:
        """Create a new user with generated ID."""
        now = _utcnow()
        return cls(
            id=str(uuid.uuid4()),
            name=name.strip(),
            email=email.lower().strip(),
            password_hash=password_hash,
            is_active=True,
            created_at=now,
            updated_at=now,
        )

    def identity(self) -> Identity:
        """The identity history operations are scoped to."""
        return Identity(id=self.id, email=self.email, display_name=self.name)

    def to_dict(self) -> dict:
        """Convert to dictionary (excludes password_hash for safety)."""
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }


@dataclass
class Session:
    """
    User session model.

    Attributes:
        id: Unique session ID (used as cookie value or bearer token)
        user_id: Associated user ID
        created_at: Session creation timestamp
        expires_at: Session expiration timestamp
        ip_address: Client IP (optional, for audit)
        user_agent: Client user agent (optional, for audit)
    """
    id: str
    user_id: str
    created_at: datetime = field(default_factory=_utcnow)
    expires_at: datetime = field(default_factory=lambda: _utcnow() + timedelta(days=30))
    ip_address: str | None = None
    user_agent: str | None = None

    @classmethod
    def new(
        cls,
        user_id: str,
        duration_days: int = 30,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> Session:
        """Create a new session with generated ID."""
        now = _utcnow()
        return cls(
            id=str(uuid.uuid4()),
            user_id=user_id,
            created_at=now,
            expires_at=now + timedelta(days=duration_days),
            ip_address=ip_address,
            user_agent=user_agent,
        )

    @property
    def is_valid(self) -> bool:
        """Check if session is still valid (not expired)."""
        return _utcnow() < self.expires_at


@dataclass(frozen=True)
class Identity:
    """Resolved caller identity: every history operation is scoped to one."""

    id: str
    email: str
    display_name: str

    def to_dict(self) -> dict:
        return {"id": self.id, "email": self.email, "name": self.display_name}
