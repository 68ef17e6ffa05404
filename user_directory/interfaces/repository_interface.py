"""
Repository interfaces for dependency abstraction.
Defines the plaintext-only contract callers see; ciphertext never crosses it.
"""

from typing import List, Protocol, runtime_checkable

from ..models.user import User


@runtime_checkable
class IUserRepository(Protocol):
    """Protocol for user repository operations."""

    async def list(self) -> List[User]:
        """
        Read every user with plaintext email, in store row order.

        Raises:
            CryptoError: If any row fails to decrypt
            StorageError: If the store cannot be read
        """
        ...

    async def create(self, name: str, email: str) -> None:
        """
        Encrypt the email and insert a new user.

        Args:
            name: Plaintext name
            email: Plaintext email

        Raises:
            CryptoError: If encryption fails (nothing is inserted)
            StorageError: If the insert fails
        """
        ...

    async def remove(self, user_id: int) -> None:
        """
        Delete a user by id. A missing id is not an error.

        Args:
            user_id: Id assigned by the store
        """
        ...
