"""
User repository implementation following the Repository pattern.
Encrypts email on the way into the store and decrypts it on the way out.
"""

import asyncio
from typing import List, Optional
from sqlalchemy import delete, insert, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker
import structlog

from ..interfaces.repository_interface import IUserRepository
from ..interfaces.encryption_interface import IFieldCodec
from ..core.exceptions import CryptoError, StorageError
from ..models.user import User, UserRecord

logger = structlog.get_logger()

DEFAULT_DECRYPT_CONCURRENCY = 8


class UserRepository(IUserRepository):
    """Repository for user data access operations."""

    def __init__(
        self,
        codec: IFieldCodec,
        session_factory: async_sessionmaker,
        decrypt_concurrency: int = DEFAULT_DECRYPT_CONCURRENCY
    ):
        if decrypt_concurrency < 1:
            raise ValueError("decrypt_concurrency must be at least 1")
        self.codec = codec
        self.session_factory = session_factory
        self.decrypt_concurrency = decrypt_concurrency

    async def list(self) -> List[User]:
        """
        Read all users and decrypt their emails.

        Decrypts run concurrently on worker threads and are gathered back in
        row order. Every decrypt is joined before returning; a single failure
        fails the whole call.

        Returns:
            Users with plaintext email, in store row order
        """
        try:
            async with self.session_factory() as session:
                result = await session.execute(select(UserRecord.__table__))
                rows = result.all()
        except SQLAlchemyError as e:
            logger.error("Failed to read users", error=str(e))
            raise StorageError("Failed to read users") from e

        semaphore = asyncio.Semaphore(self.decrypt_concurrency)

        async def decrypt_row(row) -> User:
            async with semaphore:
                email = await asyncio.to_thread(self.codec.decrypt, row.email)
            return User(id=row.id, name=row.name, email=email)

        results = await asyncio.gather(
            *(decrypt_row(row) for row in rows),
            return_exceptions=True
        )

        failed_row_ids = [
            row.id for row, outcome in zip(rows, results)
            if isinstance(outcome, BaseException)
        ]
        if failed_row_ids:
            first_error = next(r for r in results if isinstance(r, BaseException))
            logger.error(
                "Failed to decrypt user rows",
                row_count=len(rows),
                failed_row_ids=failed_row_ids,
                error=str(first_error),
                error_type=type(first_error).__name__
            )
            if isinstance(first_error, CryptoError):
                raise CryptoError(
                    f"Failed to decrypt {len(failed_row_ids)} of {len(rows)} user rows"
                ) from first_error
            raise first_error

        logger.debug("Users listed", row_count=len(rows))
        return list(results)

    async def create(self, name: str, email: str) -> None:
        """
        Create a new user with encrypted email.

        Encryption happens before a session is opened, so a codec failure
        leaves the store untouched.

        Args:
            name: User's name
            email: User's email in plaintext
        """
        ciphertext = self.codec.encrypt(email)

        try:
            async with self.session_factory() as session:
                result = await session.execute(
                    insert(UserRecord).values(name=name, email=ciphertext)
                )
                await session.commit()
                user_id: Optional[int] = (
                    result.inserted_primary_key[0] if result.inserted_primary_key else None
                )
        except SQLAlchemyError as e:
            logger.error("User creation failed", error=str(e))
            raise StorageError("Failed to create user") from e

        logger.info("User created successfully", user_id=user_id)

    async def remove(self, user_id: int) -> None:
        """
        Delete a user by id.

        Args:
            user_id: User ID; a missing id is a successful no-op
        """
        try:
            async with self.session_factory() as session:
                result = await session.execute(
                    delete(UserRecord).where(UserRecord.id == user_id)
                )
                await session.commit()
        except SQLAlchemyError as e:
            logger.error("User removal failed", user_id=user_id, error=str(e))
            raise StorageError("Failed to remove user") from e

        if result.rowcount:
            logger.info("User removed", user_id=user_id)
        else:
            logger.info("User removal was a no-op", user_id=user_id)
