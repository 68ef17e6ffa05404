"""
User models.

``UserRecord`` maps the ``users`` table as stored: the ``email`` column only
ever holds codec ciphertext. ``User`` is the plaintext value handed to callers.
"""
from dataclasses import dataclass
from sqlalchemy import Column, Integer, Text

from .base import Base


class UserRecord(Base):
    """Stored user row. ``email`` is ciphertext at rest."""

    __tablename__ = "users"
    # AUTOINCREMENT keeps ids monotonic; deleted ids are never reused
    __table_args__ = {"sqlite_autoincrement": True}

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(Text, nullable=False)
    email = Column(Text)

    def __repr__(self) -> str:
        return f"<UserRecord(id={self.id})>"


@dataclass(frozen=True)
class User:
    """User as surfaced to callers, with plaintext email."""
    id: int
    name: str
    email: str

    def __repr__(self) -> str:
        # Keep PII out of logs and tracebacks
        return f"User(id={self.id!r}, name={self.name!r}, email='***')"
