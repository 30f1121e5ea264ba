"""FastAPI application factory for the demo generator API."""
from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from crm_demo.core.errors import (
    JobNotFoundError,
    PatchBlockedError,
    PlanValidationError,
    TenantNotDemoError,
    TenantNotFoundError,
)

from .routers import demo_generator, reports


def _validation_failed(request: Request, exc: PlanValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=422,
        content={"detail": str(exc), "errors": [issue.to_wire() for issue in exc.issues]},
    )


def _patch_blocked(request: Request, exc: PatchBlockedError) -> JSONResponse:
    return JSONResponse(status_code=400, content={"detail": str(exc), "blockers": exc.blockers})


def _bad_request(request: Request, exc: Exception) -> JSONResponse:
    return JSONResponse(status_code=400, content={"detail": str(exc)})


def _not_found(request: Request, exc: Exception) -> JSONResponse:
    return JSONResponse(status_code=404, content={"detail": str(exc)})


def create_app() -> FastAPI:
    """Instantiate and configure the FastAPI application."""

    application = FastAPI(title="CRM Demo Generator")
    application.include_router(demo_generator.router)
    application.include_router(reports.router)

    application.add_exception_handler(PlanValidationError, _validation_failed)
    application.add_exception_handler(PatchBlockedError, _patch_blocked)
    application.add_exception_handler(TenantNotDemoError, _bad_request)
    application.add_exception_handler(JobNotFoundError, _not_found)
    application.add_exception_handler(TenantNotFoundError, _not_found)

    return application


app = create_app()
