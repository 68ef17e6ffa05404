"""Database models."""

from .base import Base
from .user import User, UserRecord

__all__ = [
    "Base",
    "User",
    "UserRecord",
]
