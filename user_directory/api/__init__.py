"""
HTTP routers for the user directory.
"""

from .users import router as users_router
from .chat import router as chat_router

__all__ = [
    "users_router",
    "chat_router",
]
