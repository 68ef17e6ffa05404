"""
Field-level encryption for the email column.
Fernet tokens (AES-CBC + HMAC-SHA256, random IV per call) wrapped in a
versioned prefix, with an explicitly initialized key provider and read-side
key rotation through MultiFernet.
"""
import base64
import binascii
import os
from pathlib import Path
from typing import Optional, Sequence
from cryptography.fernet import Fernet, InvalidToken, MultiFernet
import structlog

from .config import Settings, describe_key_source
from .exceptions import CryptoError

logger = structlog.get_logger()

# Ciphertext format: CIPHERTEXT_PREFIX + canonical url-safe base64 Fernet token
CIPHERTEXT_PREFIX = "enc1:"
KEY_FILE_MODE = 0o600
TEXT_ENCODING = "utf-8"
# Round-trips every Python str, lone surrogates included
TEXT_ERRORS = "surrogatepass"


class KeyProvider:
    """
    Holds the symmetric key material for the lifetime of the process.

    Key sources, in order:
    - an explicit primary key
    - a freshly generated in-memory key (ephemeral)
    - a key file, created on first use when autocreate is enabled

    ``initialize()`` must be called before the codec is used; ``cleanup()``
    drops the key material.
    """

    def __init__(
        self,
        primary_key: Optional[bytes] = None,
        retired_keys: Sequence[bytes] = (),
        key_file: Optional[Path] = None,
        autocreate: bool = False,
        ephemeral: bool = False,
    ):
        self._primary_key = primary_key
        self._retired_keys = list(retired_keys)
        self._key_file = key_file
        self._autocreate = autocreate
        self._ephemeral = ephemeral
        self._fernet: Optional[MultiFernet] = None

    @classmethod
    def from_settings(cls, settings: Settings) -> "KeyProvider":
        """Build a provider following the configured key-persistence policy."""
        return cls(
            primary_key=settings.ENCRYPTION_KEY.encode(TEXT_ENCODING) if settings.ENCRYPTION_KEY else None,
            retired_keys=[key.encode(TEXT_ENCODING) for key in settings.RETIRED_ENCRYPTION_KEYS],
            key_file=settings.key_file_path,
            autocreate=settings.ENCRYPTION_KEY_AUTOCREATE,
            ephemeral=settings.EPHEMERAL_ENCRYPTION_KEY,
        )

    @classmethod
    def ephemeral(cls) -> "KeyProvider":
        return cls(ephemeral=True)

    @staticmethod
    def generate_key() -> str:
        """Generate a new url-safe base64-encoded key."""
        return Fernet.generate_key().decode(TEXT_ENCODING)

    @property
    def is_initialized(self) -> bool:
        return self._fernet is not None

    def initialize(self) -> None:
        """Load or create key material. Safe to call more than once."""
        if self._fernet is not None:
            return

        if self._primary_key is not None:
            primary = self._primary_key
            source = "explicit"
        elif self._ephemeral:
            primary = Fernet.generate_key()
            source = "ephemeral"
        elif self._key_file is not None:
            primary = self._load_key_file(self._key_file)
            source = "key_file"
        else:
            raise CryptoError("No encryption key source configured")

        try:
            fernets = [Fernet(primary)] + [Fernet(key) for key in self._retired_keys]
        except (ValueError, TypeError) as e:
            logger.error("Invalid encryption key material", source=source)
            raise CryptoError("Encryption key material is invalid") from e

        self._primary_key = primary
        self._fernet = MultiFernet(fernets)
        logger.info(
            "Key provider initialized",
            source=source,
            retired_key_count=len(self._retired_keys),
        )

    def _load_key_file(self, path: Path) -> bytes:
        if path.exists():
            try:
                return path.read_bytes().strip()
            except OSError as e:
                logger.error("Failed to read key file", path=str(path), error=str(e))
                raise CryptoError("Encryption key file is unreadable") from e

        if not self._autocreate:
            raise CryptoError(f"Encryption key file not found: {path}")

        key = Fernet.generate_key()
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, KEY_FILE_MODE)
            with os.fdopen(fd, "wb") as f:
                f.write(key)
        except OSError as e:
            logger.error("Failed to create key file", path=str(path), error=str(e))
            raise CryptoError("Encryption key file could not be created") from e

        logger.warning("Created new encryption key file", path=str(path))
        return key

    def fernet(self) -> MultiFernet:
        """Return the primary-first MultiFernet; fails if not initialized."""
        if self._fernet is None:
            raise CryptoError("Encryption key is not initialized")
        return self._fernet

    def cleanup(self) -> None:
        """Drop key material at process teardown."""
        self._fernet = None
        if self._ephemeral or self._key_file is not None:
            self._primary_key = None
        logger.info("Key provider torn down")


class FernetFieldCodec:
    """Fernet-based implementation of the field codec interface."""

    def __init__(self, key_provider: KeyProvider):
        self.key_provider = key_provider

    def encrypt(self, plaintext: str) -> str:
        """
        Encrypt a string value with a fresh IV.

        Format: enc1:<fernet token>
        """
        if not isinstance(plaintext, str):
            raise CryptoError(f"Expected str plaintext, got {type(plaintext).__name__}")

        fernet = self.key_provider.fernet()
        token = fernet.encrypt(plaintext.encode(TEXT_ENCODING, TEXT_ERRORS))
        return CIPHERTEXT_PREFIX + token.decode("ascii")

    def decrypt(self, ciphertext: str) -> str:
        """
        Decrypt a value produced by ``encrypt``.

        Tries the primary key, then retired keys. Any malformed, truncated,
        altered or foreign value raises ``CryptoError``.
        """
        if not isinstance(ciphertext, str):
            raise CryptoError(f"Expected str ciphertext, got {type(ciphertext).__name__}")
        if not ciphertext.startswith(CIPHERTEXT_PREFIX):
            raise CryptoError("Ciphertext has an unknown format")

        fernet = self.key_provider.fernet()
        token = _canonical_token(ciphertext[len(CIPHERTEXT_PREFIX):])

        try:
            plaintext = fernet.decrypt(token)
        except InvalidToken as e:
            raise CryptoError("Ciphertext failed integrity check") from e

        try:
            return plaintext.decode(TEXT_ENCODING, TEXT_ERRORS)
        except UnicodeDecodeError as e:
            raise CryptoError("Decrypted value is not valid text") from e


def _canonical_token(token: str) -> bytes:
    # Non-canonical base64 (ignored characters, altered padding bits) would
    # decode to the same bytes; reject anything that does not re-encode exactly.
    try:
        token_bytes = token.encode("ascii")
        raw = base64.urlsafe_b64decode(token_bytes)
    except (UnicodeEncodeError, binascii.Error, ValueError) as e:
        raise CryptoError("Ciphertext is not valid base64") from e

    if not raw or base64.urlsafe_b64encode(raw) != token_bytes:
        raise CryptoError("Ciphertext encoding is not canonical")
    return token_bytes


def is_ciphertext(value: object) -> bool:
    """Cheap format check; does not verify integrity."""
    return isinstance(value, str) and value.startswith(CIPHERTEXT_PREFIX)


# Process-wide codec behind the encrypt_string / decrypt_string entry points
_codec: Optional[FernetFieldCodec] = None


def configure_codec(codec: FernetFieldCodec) -> None:
    global _codec
    _codec = codec


def reset_codec() -> None:
    global _codec
    _codec = None


def get_codec() -> FernetFieldCodec:
    if _codec is None:
        raise CryptoError("Codec is not initialized")
    return _codec


def encrypt_string(value: str) -> str:
    """Encrypt a single field value with the process-wide codec."""
    return get_codec().encrypt(value)


def decrypt_string(value: str) -> str:
    """Decrypt a single field value with the process-wide codec."""
    return get_codec().decrypt(value)


def build_codec(settings: Settings) -> FernetFieldCodec:
    """Create and initialize a codec from settings."""
    key_provider = KeyProvider.from_settings(settings)
    logger.debug("Building field codec", key_source=describe_key_source(settings))
    key_provider.initialize()
    return FernetFieldCodec(key_provider)
