"""Router package for the FastAPI application."""

from . import demo_generator, reports

__all__ = ["demo_generator", "reports"]
