"""Data access for the demo generator."""

from .base import BaseRepository
from .demo_repository import DemoRepository
from .kpi_repository import KpiRepository

__all__ = ["BaseRepository", "DemoRepository", "KpiRepository"]
