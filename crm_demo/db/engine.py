"""Database engine factories."""
from __future__ import annotations

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine

from crm_demo.core.config import get_settings
from crm_demo.core.log import get_logger

LOGGER = get_logger(__name__)


def get_sqlalchemy_url() -> str:
    """Return the configured SQLAlchemy URL."""

    return get_settings().database.sqlalchemy_url


def create_sync_engine(url: str | None = None, **kwargs) -> Engine:
    """Create a synchronous SQLAlchemy engine using configured defaults."""

    settings = get_settings()
    resolved_url = url or settings.database.sqlalchemy_url

    options = dict(kwargs)
    options.setdefault("echo", settings.sqlalchemy_echo)
    if not resolved_url.startswith("sqlite"):
        options.setdefault("pool_pre_ping", True)

    LOGGER.debug(
        "Creating SQLAlchemy engine",
        extra={"url": url or settings.database.masked_url, "options": options},
    )
    return create_engine(resolved_url, future=True, **options)


def create_schema(engine: Engine) -> None:
    """Create every table known to the ORM metadata (idempotent)."""

    from crm_demo.models import Base

    Base.metadata.create_all(engine)
    LOGGER.info("Schema ensured on %s", engine.url.render_as_string(hide_password=True))
