"""Configuration for the demo generator, loaded from the environment."""
from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

# Load .env file from project root
env_path = Path(__file__).parent.parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

_FALSY = {"0", "false", "False", "no", ""}


@dataclass(slots=True)
class DatabaseSettings:
    """Connection details for the CRM database."""

    driver: str
    host: str
    port: int
    user: str
    password: str
    name: str
    url_override: Optional[str] = None

    @property
    def sqlalchemy_url(self) -> str:
        """Build a SQLAlchemy compatible URL."""

        if self.url_override:
            return self.url_override
        if self.password:
            credentials = f"{self.user}:{self.password}"
        else:
            credentials = self.user
        return f"{self.driver}://{credentials}@{self.host}:{self.port}/{self.name}"

    @property
    def masked_url(self) -> str:
        if self.url_override:
            return self.url_override.split("@")[-1]
        pwd = "***" if self.password else ""
        return f"{self.driver}://{self.user}:{pwd}@{self.host}:{self.port}/{self.name}"


@dataclass(slots=True)
class GeneratorSettings:
    """Execution budget and sizing knobs for chunked generation."""

    batch_size: int = 200
    max_execution_seconds: float = 50.0
    max_rows_per_invocation: Optional[int] = None
    default_team_size: int = 8
    max_months: int = 24


@dataclass(slots=True)
class LoggingSettings:
    level: str = "INFO"
    log_dir: Optional[Path] = Path("logs")

    @classmethod
    def from_env(cls) -> "LoggingSettings":
        log_dir = os.getenv("LOG_DIR", "logs")
        return cls(level=os.getenv("LOG_LEVEL", "INFO"), log_dir=Path(log_dir) if log_dir else None)


@dataclass(slots=True)
class Settings:
    """Top-level application configuration container."""

    database: DatabaseSettings
    generator: GeneratorSettings
    logging: LoggingSettings
    sqlalchemy_echo: bool = False

    @classmethod
    def from_env(cls) -> "Settings":
        """Load configuration values from environment variables."""

        def _get_env(name: str, default: str) -> str:
            return os.getenv(name, default)

        def _optional_int(name: str) -> Optional[int]:
            raw = os.getenv(name, "").strip()
            if not raw:
                return None
            value = int(raw)
            if value <= 0:
                raise ValueError(f"{name} must be a positive integer.")
            return value

        db = DatabaseSettings(
            driver=_get_env("DB_DRIVER", "mysql+pymysql"),
            host=_get_env("DB_HOST", "127.0.0.1"),
            port=int(_get_env("DB_PORT", "3306")),
            user=_get_env("DB_USER", "crm"),
            password=_get_env("DB_PASSWORD", "crm"),
            name=_get_env("DB_NAME", "crm"),
            url_override=os.getenv("DATABASE_URL") or None,
        )
        generator = GeneratorSettings(
            batch_size=int(_get_env("DEMO_BATCH_SIZE", "200")),
            max_execution_seconds=float(_get_env("DEMO_MAX_EXECUTION_SECONDS", "50")),
            max_rows_per_invocation=_optional_int("DEMO_MAX_ROWS_PER_INVOCATION"),
            default_team_size=int(_get_env("DEMO_DEFAULT_TEAM_SIZE", "8")),
        )
        if generator.batch_size <= 0:
            raise ValueError("DEMO_BATCH_SIZE must be a positive integer.")
        echo_flag = _get_env("SQLALCHEMY_ECHO", "0")
        return cls(
            database=db,
            generator=generator,
            logging=LoggingSettings.from_env(),
            sqlalchemy_echo=echo_flag not in _FALSY,
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached ``Settings`` instance."""

    settings = Settings.from_env()

    # Import locally to avoid circular dependencies during module import time.
    from .log import get_logger

    logger = get_logger(__name__)
    logger.debug(
        "Settings initialised",
        extra={
            "sqlalchemy_echo": settings.sqlalchemy_echo,
            "database": settings.database.masked_url,
            "generator": {
                "batch_size": settings.generator.batch_size,
                "max_execution_seconds": settings.generator.max_execution_seconds,
                "max_rows_per_invocation": settings.generator.max_rows_per_invocation,
            },
        },
    )
    return settings
