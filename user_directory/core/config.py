from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict
from pydantic import Field, field_validator, ValidationError
from typing import Annotated, List, Optional, Any
from pathlib import Path
import sys
from functools import lru_cache
from cryptography.fernet import Fernet
import structlog

logger = structlog.get_logger()


class Settings(BaseSettings):
    """
    User Directory Configuration

    Key material is resolved by the key provider according to the
    key-persistence policy: ENCRYPTION_KEY, then an ephemeral key when
    EPHEMERAL_ENCRYPTION_KEY is set, then ENCRYPTION_KEY_FILE.
    """

    model_config = SettingsConfigDict(
        case_sensitive=True,
        env_file=".env",
        validate_assignment=True,
        extra="ignore",
    )

    # Application settings
    APP_NAME: str = "User Directory"
    VERSION: str = "1.0.0"
    DEBUG: bool = False
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    # API settings
    API_V1_STR: str = "/api/v1"
    HOST: str = "127.0.0.1"
    PORT: int = Field(default=8000, ge=1, le=65535)

    # Database
    DATABASE_URL: str = "sqlite+aiosqlite:///./users.db"
    DATABASE_ECHO: bool = False

    # Encryption - see key-persistence policy above
    ENCRYPTION_KEY: Optional[str] = None
    RETIRED_ENCRYPTION_KEYS: Annotated[List[str], NoDecode] = Field(default_factory=list)
    ENCRYPTION_KEY_FILE: str = "~/.user-directory/master.key"
    ENCRYPTION_KEY_AUTOCREATE: bool = True
    EPHEMERAL_ENCRYPTION_KEY: bool = False
    DECRYPT_MAX_CONCURRENCY: int = Field(default=8, ge=1, le=64)

    # Chat integration
    CHAT_ENABLED: bool = True
    OLLAMA_BASE_URL: str = "http://localhost:11434"
    CHAT_MODEL: str = "llama3.1"
    CHAT_TIMEOUT_SECONDS: float = Field(default=60.0, gt=0, le=600)

    @field_validator("ENCRYPTION_KEY")
    @classmethod
    def validate_encryption_key(cls, v: Optional[str]) -> Optional[str]:
        """Validate that the primary key is a usable Fernet key"""
        if v is None:
            return v
        _check_fernet_key(v, "ENCRYPTION_KEY")
        return v

    @field_validator("RETIRED_ENCRYPTION_KEYS", mode="before")
    @classmethod
    def parse_retired_keys(cls, v: Any) -> List[str]:
        """Parse retired keys from comma-separated string or list"""
        if v is None:
            return []
        if isinstance(v, str):
            v = [key.strip() for key in v.split(",") if key.strip()]
        for key in v:
            _check_fernet_key(key, "RETIRED_ENCRYPTION_KEYS")
        return list(v)

    @field_validator("ENVIRONMENT")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        valid_envs = ["development", "test", "staging", "production"]
        if v not in valid_envs:
            raise ValueError(f"ENVIRONMENT must be one of: {valid_envs}")
        return v

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unsupported LOG_LEVEL: {v}")
        return level

    @property
    def key_file_path(self) -> Path:
        return Path(self.ENCRYPTION_KEY_FILE).expanduser()

    @property
    def database_path(self) -> Optional[Path]:
        """Filesystem path of a file-backed SQLite database, if any."""
        if not self.DATABASE_URL.startswith("sqlite"):
            return None
        _, _, path = self.DATABASE_URL.partition(":///")
        if not path or path.startswith(":memory:"):
            return None
        return Path(path.split("?", 1)[0]).expanduser()


def _check_fernet_key(value: str, name: str) -> None:
    try:
        Fernet(value.encode("utf-8"))
    except (ValueError, TypeError):
        raise ValueError(f"{name} must be a url-safe base64-encoded 32-byte key")


def validate_required_settings(settings: Settings) -> None:
    """
    Validate settings that depend on each other.
    Fail fast if the key-persistence policy is unsafe for the environment.
    """
    errors = []

    if settings.ENVIRONMENT == "production":
        if settings.DEBUG:
            errors.append("DEBUG must be False in production")

        if settings.EPHEMERAL_ENCRYPTION_KEY:
            errors.append("EPHEMERAL_ENCRYPTION_KEY cannot be used in production")

    database_path = settings.database_path
    if database_path is not None and not settings.ENCRYPTION_KEY:
        if settings.key_file_path.resolve() == database_path.resolve():
            errors.append("ENCRYPTION_KEY_FILE must not be the database file")

    if errors:
        error_msg = "Configuration validation failed:\n" + "\n".join(f"  - {e}" for e in errors)
        logger.error(error_msg)
        raise ValueError(error_msg)

    logger.info(
        "Configuration validated successfully",
        environment=settings.ENVIRONMENT,
        debug=settings.DEBUG,
        key_source=describe_key_source(settings),
        retired_key_count=len(settings.RETIRED_ENCRYPTION_KEYS),
        chat_enabled=settings.CHAT_ENABLED,
    )


def describe_key_source(settings: Settings) -> str:
    if settings.ENCRYPTION_KEY:
        return "environment"
    if settings.EPHEMERAL_ENCRYPTION_KEY:
        return "ephemeral"
    return "key_file"


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.
    Fails fast if environment variables are invalid.
    """
    try:
        settings = Settings()
        validate_required_settings(settings)
        return settings
    except ValidationError as e:
        logger.error("Failed to load settings", errors=e.errors())
        print("\n" + "="*60)
        print("CONFIGURATION ERROR")
        print("="*60)
        print("\nEnvironment variables are invalid:")
        for error in e.errors():
            field = error.get("loc", ["unknown"])[0]
            msg = error.get("msg", "Invalid value")
            print(f"  - {field}: {msg}")
        print("\nPlease check your environment variables and .env file")
        print("="*60 + "\n")
        sys.exit(1)
    except ValueError as e:
        logger.error("Invalid configuration", error=str(e))
        sys.exit(1)


# Initialize settings on module import
settings = get_settings()
