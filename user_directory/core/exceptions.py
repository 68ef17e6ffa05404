"""
Error taxonomy for the user directory.

Both the codec and the repository raise these to their caller; the HTTP
layer maps them to responses. A ``CryptoError`` is never retried.
"""


class UserDirectoryError(Exception):
    """Base class for all user directory errors."""

    error_code = "USER_DIRECTORY_ERROR"


class CryptoError(UserDirectoryError):
    """Key unavailable, or ciphertext malformed, tampered or under another key."""

    error_code = "CRYPTO_ERROR"


class StorageError(UserDirectoryError):
    """Underlying store unreachable, constraint violation or malformed statement."""

    error_code = "STORAGE_ERROR"


class NotFoundError(UserDirectoryError):
    """Reserved for point lookups. ``remove`` on a missing id is not an error."""

    error_code = "NOT_FOUND"


class ChatError(UserDirectoryError):
    """Chat service unreachable or returned an error payload."""

    error_code = "CHAT_ERROR"
