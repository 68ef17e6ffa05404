"""
Field codec interface for dependency abstraction.
Defines the contract for the plaintext <-> ciphertext transformation so the
repository can be tested with a stand-in codec.
"""

from typing import Protocol, runtime_checkable


@runtime_checkable
class IFieldCodec(Protocol):
    """Protocol for single-field encryption operations."""

    def encrypt(self, plaintext: str) -> str:
        """
        Encrypt a plaintext field value.

        Args:
            plaintext: Value to encrypt, may be empty

        Returns:
            Self-contained ciphertext, different on every call

        Raises:
            CryptoError: If key material is unavailable
        """
        ...

    def decrypt(self, ciphertext: str) -> str:
        """
        Decrypt a value produced by ``encrypt`` under the same key.

        Args:
            ciphertext: Stored ciphertext

        Returns:
            Original plaintext

        Raises:
            CryptoError: If the value is malformed, tampered or under another key
        """
        ...
