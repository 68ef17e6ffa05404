"""
Pydantic schemas for request/response validation.
"""

from .user_schemas import UserCreate, UserResponse
from .chat_schemas import ChatRequest

__all__ = [
    "UserCreate",
    "UserResponse",
    "ChatRequest",
]
