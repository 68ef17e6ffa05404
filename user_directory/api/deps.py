"""
Dependency injection for FastAPI endpoints.
Resolves services from the application container.
"""
from fastapi import HTTPException, status
import structlog

from ..container.container import get_container
from ..interfaces.repository_interface import IUserRepository
from ..services.chat_service import ChatService

logger = structlog.get_logger()


def get_user_repository() -> IUserRepository:
    """Resolve a repository for this request."""
    return get_container().get(IUserRepository)


def get_chat_service() -> ChatService:
    """Resolve the chat service, or 503 when chat is disabled."""
    try:
        return get_container().get(ChatService)
    except ValueError:
        logger.info("Chat requested while disabled")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Chat is disabled"
        )
