"""
Interface definitions for dependency abstraction.
"""

from .encryption_interface import IFieldCodec
from .repository_interface import IUserRepository

__all__ = [
    "IFieldCodec",
    "IUserRepository",
]
