"""
User directory endpoints.
Write endpoints return the refreshed directory, as the desktop shell re-reads
the list after every change.
"""
from typing import List
from fastapi import APIRouter, Depends, status
import structlog

from ..interfaces.repository_interface import IUserRepository
from ..schemas.user_schemas import UserCreate, UserResponse
from .deps import get_user_repository

logger = structlog.get_logger()

router = APIRouter(prefix="/users", tags=["users"])


@router.get("", response_model=List[UserResponse])
async def list_users(
    repository: IUserRepository = Depends(get_user_repository)
) -> List[UserResponse]:
    """List all users with plaintext email."""
    users = await repository.list()
    return [UserResponse.model_validate(user) for user in users]


@router.post("", response_model=List[UserResponse], status_code=status.HTTP_201_CREATED)
async def create_user(
    user_in: UserCreate,
    repository: IUserRepository = Depends(get_user_repository)
) -> List[UserResponse]:
    """Add a user and return the refreshed directory."""
    await repository.create(name=user_in.name, email=str(user_in.email))
    users = await repository.list()
    return [UserResponse.model_validate(user) for user in users]


@router.delete("/{user_id}", response_model=List[UserResponse])
async def remove_user(
    user_id: int,
    repository: IUserRepository = Depends(get_user_repository)
) -> List[UserResponse]:
    """Remove a user (missing ids are ignored) and return the refreshed directory."""
    await repository.remove(user_id)
    users = await repository.list()
    return [UserResponse.model_validate(user) for user in users]
