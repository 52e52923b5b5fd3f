"""
Configuration for Undangan.

Values come from constructor arguments, then `UNDANGAN_*` environment
variables, then `settings.toml` and `settings.custom.toml` in the working
directory.
"""

from enum import Enum
from functools import lru_cache
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import Field, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    TomlConfigSettingsSource,
)


class DatabaseDriver(str, Enum):
    """Supported database backends. Both are driven through async dialects."""

    SQLITE = "sqlite"
    POSTGRESQL = "postgresql"


class Settings(BaseSettings):
    """Service configuration. Unknown keys in the TOML files are ignored."""

    model_config = SettingsConfigDict(
        toml_file=["settings.toml", "settings.custom.toml"], env_prefix="UNDANGAN_", extra="ignore"
    )

    # HTTP server
    port: int = 8000
    host: str = "127.0.0.1"
    root_url: str = "/"
    debug: bool = False

    # Base directory for logs
    storage_path: str = str(Path.home() / "undangan/data")

    # Database
    database_driver: DatabaseDriver = DatabaseDriver.SQLITE
    database_host: str = "localhost"
    database_port: int = 5432
    database_name: str = "undangan"
    database_username: str = "postgres"
    database_password: str = "postgres"

    # Password hashing cost
    bcrypt_rounds: int = 10

    # Sessions end at midnight, session_expiry_days after the last login
    session_expiry_days: int = 1
    session_timezone: str = "UTC"
    session_token_bytes: int = 32
    session_token_attempts: int = 5

    # Session cleanup (daily, 00:01 by default)
    session_cleanup_enabled: bool = True
    session_cleanup_hour: int = Field(default=0, ge=0, le=23)
    session_cleanup_minute: int = Field(default=1, ge=0, le=59)

    # Logging
    log_level: str = "INFO"
    log_to_file: bool = False
    log_dir: str | None = None  # If None, will use {storage_path}/logs
    log_rotation: str = "20 MB"
    log_retention: str = "1 week"
    log_format: str | None = None  # Use default if None

    @field_validator("session_expiry_days")
    @classmethod
    def check_expiry_days(cls, value: int) -> int:
        """Sessions must outlive the current day."""
        if value < 1:
            raise ValueError("session_expiry_days must be at least 1")
        return value

    @field_validator("session_timezone")
    @classmethod
    def check_timezone(cls, value: str) -> str:
        """Reject unknown IANA zone names early."""
        try:
            ZoneInfo(value)
        except ZoneInfoNotFoundError as e:
            raise ValueError(f"Unknown timezone: {value}") from e
        return value

    @classmethod
    def settings_customize_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,  # noqa: ARG003
        file_secret_settings: PydanticBaseSettingsSource,  # noqa: ARG003
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Init arguments win over the environment, which wins over TOML files."""
        return init_settings, env_settings, TomlConfigSettingsSource(settings_cls)

    @property
    def session_tz(self) -> ZoneInfo:
        """Timezone in which session midnights and cleanup runs are computed."""
        return ZoneInfo(self.session_timezone)

    @property
    def database_url(self) -> str:
        """Async SQLAlchemy URL (aiosqlite or asyncpg) of the configured database."""
        if self.database_driver == DatabaseDriver.SQLITE:
            return f"sqlite+aiosqlite:///{self.database_name}.db"
        return (
            f"postgresql+asyncpg://{self.database_username}:{self.database_password}"
            f"@{self.database_host}:{self.database_port}/{self.database_name}"
        )

    def get_log_dir(self) -> Path:
        """`log_dir` when set, otherwise `logs/` under `storage_path`."""
        if self.log_dir:
            return Path(self.log_dir)
        return Path(self.storage_path) / "logs"


@lru_cache
def get_settings() -> Settings:
    """Settings are read once per process."""
    return Settings()


# Module-level instance imported across the package
settings = get_settings()
