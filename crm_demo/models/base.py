"""Base declarative class and shared column helpers for SQLAlchemy models."""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import BigInteger, Boolean, DateTime, Integer, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.sql import func

ID_TYPE = BigInteger().with_variant(Integer, "sqlite")


class Base(DeclarativeBase):
    """Declarative base shared by all ORM models."""

    pass


class TimestampMixin:
    """``created_at``/``deleted_at`` pair used by soft-deletable CRM rows."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.current_timestamp(), nullable=False, index=True
    )
    deleted_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)


class DemoProvenanceMixin:
    """Columns that identify rows produced by the demo generator."""

    demo_generated: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    demo_job_id: Mapped[Optional[int]] = mapped_column(ID_TYPE, nullable=True, index=True)
    demo_patch_job_id: Mapped[Optional[int]] = mapped_column(ID_TYPE, nullable=True, index=True)
    demo_source_month: Mapped[Optional[str]] = mapped_column(String(7), nullable=True)
