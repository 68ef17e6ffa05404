"""
Services that sit beside the user store.
"""

from .chat_service import ChatService

__all__ = [
    "ChatService"
]
