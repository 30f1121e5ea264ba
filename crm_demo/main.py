"""ASGI entrypoint: ``uvicorn crm_demo.main:app``."""
from __future__ import annotations

from fastapi import FastAPI

from crm_demo.core.config import get_settings
from crm_demo.core.log import get_logger, init_logging
from crm_demo.db.engine import create_schema
from crm_demo.web.app import create_app
from crm_demo.web.dependencies import session_factory

LOGGER = get_logger(__name__)


def build_app() -> FastAPI:
    settings = get_settings()
    init_logging(settings.logging, app_name="demo-api")
    app = create_app()

    @app.on_event("startup")
    def ensure_schema() -> None:
        LOGGER.info("Ensuring demo generator schema on %s", settings.database.masked_url)
        create_schema(session_factory().kw["bind"])

    return app


app = build_app()
