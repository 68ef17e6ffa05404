"""Test data factories for user directory testing."""

from .user_factory import UserCreateFactory, UserFactory

__all__ = [
    "UserCreateFactory",
    "UserFactory",
]
