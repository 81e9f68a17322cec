"""Application settings and configuration management.

This module provides Pydantic-based settings management that loads
configuration from environment variables or a .env file. Settings include
the root directory holding one SQLite file per cached layer, the SQLite
connection timeout, the metadata read policy, logging level and the CORS
origins of the HTTP surface.

Example:
    Settings can be accessed via the cached get_settings() function:
        >>> from tilestore.core.config import get_settings
        >>> settings = get_settings()
        >>> print(settings.storage_dir)

    Environment variables can override defaults:
        >>> STORAGE_DIR=/var/cache/tiles
        >>> CONNECT_TIMEOUT=10
        >>> METADATA_READ_ERRORS_AS_ABSENT=false
"""

import functools
import pathlib

import pydantic
import pydantic_settings


class Settings(pydantic_settings.BaseSettings):
    """Runtime configuration pulled from environment variables or defaults.

    All settings can be overridden via environment variables or .env file.
    The storage directory is created on demand via ensure_directories().

    Attributes:
        storage_dir: Root directory holding one ``<layer>.sqlite`` file per
            cached layer.
        file_extension: Suffix of the per-layer store files.
        connect_timeout: Seconds SQLite waits on a locked database file
            before failing a statement.
        metadata_read_errors_as_absent: When true, layer metadata reads that
            fail on the storage side report the value as absent instead of
            raising. Writes always raise.
        log_level: Root logging level applied by the application factory.
        allow_origins: List of allowed CORS origins (["*"] allows all).

    Example:
        Create settings with custom values:
            >>> settings = Settings(
            ...     storage_dir=Path("/var/cache/tiles"),
            ...     metadata_read_errors_as_absent=False,
            ... )
            >>> settings.ensure_directories()
    """

    storage_dir: pathlib.Path = pathlib.Path("/tmp/tilestore/layers")
    file_extension: str = ".sqlite"
    connect_timeout: float = pydantic.Field(default=5.0, gt=0)
    metadata_read_errors_as_absent: bool = True
    log_level: str = "INFO"
    allow_origins: list[str] = ["*"]

    model_config = pydantic_settings.SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    @pydantic.field_validator("file_extension")
    @classmethod
    def _dotted_extension(cls, value: str) -> str:
        """Normalize the extension so it always starts with a dot."""
        value = value.strip()
        if not value.strip("."):
            raise ValueError("file_extension must not be empty")
        return value if value.startswith(".") else f".{value}"

    def ensure_directories(self) -> None:
        """Create the storage root if it does not exist yet."""
        self.storage_dir.mkdir(parents=True, exist_ok=True)


@functools.lru_cache
def get_settings() -> Settings:
    """Get cached settings instance with directories initialized.

    Settings are loaded from environment variables or .env file and cached
    for the lifetime of the application. The storage root is created on
    first call. Subsequent calls return the same cached instance.

    Returns:
        Settings instance with all configuration values populated and
        the storage directory ensured to exist.

    Example:
        The settings are cached, so multiple calls return the same instance:
            >>> settings1 = get_settings()
            >>> settings2 = get_settings()
            >>> assert settings1 is settings2  # Same instance
    """
    settings = Settings()
    settings.ensure_directories()
    return settings
