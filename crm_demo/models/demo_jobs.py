"""ORM models tracking generation jobs, patch jobs and metric overrides."""
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from crm_demo.domain.enums import GenerationPhase, JobStatus

from .base import ID_TYPE, Base

# Storage encoding for "field not overridden".
OVERRIDE_UNSET = -1


class DemoGenerationJob(Base):
    """A resumable generation run; ``generation_state`` is persisted between invocations."""

    __tablename__ = "demo_generation_job"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    status: Mapped[str] = mapped_column(
        String(16), nullable=False, default=JobStatus.PENDING.value, index=True
    )
    mode: Mapped[str] = mapped_column(String(16), nullable=False)
    config: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    seed: Mapped[str] = mapped_column(String(64), nullable=False)
    monthly_plan: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON, nullable=True)
    plan_version: Mapped[Optional[str]] = mapped_column(String(8), nullable=True)
    tolerance_config: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON, nullable=True)
    created_tenant_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("tenant.id", ondelete="SET NULL"), nullable=True
    )
    created_by_id: Mapped[Optional[int]] = mapped_column(ID_TYPE, nullable=True)
    progress: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    current_step: Mapped[Optional[str]] = mapped_column(String(160), nullable=True)
    generation_phase: Mapped[str] = mapped_column(
        String(16), nullable=False, default=GenerationPhase.INIT.value
    )
    generation_state: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON, nullable=True)
    revision: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    logs: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)
    metrics: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON, nullable=True)
    verification_report: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON, nullable=True)
    verification_passed: Mapped[Optional[bool]] = mapped_column(Boolean, nullable=True)
    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    error_stack: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.current_timestamp(), nullable=False
    )
    started_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    # every flush checks and bumps ``revision``; a stale writer gets StaleDataError
    __mapper_args__ = {"version_id_col": revision}


class DemoPatchJob(Base):
    """An incremental adjustment of an existing demo tenant; kept as an audit trail."""

    __tablename__ = "demo_patch_job"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    tenant_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("tenant.id", ondelete="SET NULL"), nullable=True, index=True
    )
    original_job_id: Mapped[Optional[int]] = mapped_column(ID_TYPE, nullable=True)
    created_by_id: Mapped[Optional[int]] = mapped_column(ID_TYPE, nullable=True)
    mode: Mapped[str] = mapped_column(String(16), nullable=False)
    plan_type: Mapped[str] = mapped_column(String(16), nullable=False)
    patch_plan: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    seed: Mapped[str] = mapped_column(String(64), nullable=False)
    range_start_month: Mapped[str] = mapped_column(String(7), nullable=False)
    range_end_month: Mapped[str] = mapped_column(String(7), nullable=False)
    tolerance_config: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON, nullable=True)
    before_kpis: Mapped[Optional[list[dict[str, Any]]]] = mapped_column(JSON, nullable=True)
    after_kpis: Mapped[Optional[list[dict[str, Any]]]] = mapped_column(JSON, nullable=True)
    diff_report: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON, nullable=True)
    status: Mapped[str] = mapped_column(
        String(16), nullable=False, default=JobStatus.PENDING.value
    )
    progress: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    current_step: Mapped[Optional[str]] = mapped_column(String(160), nullable=True)
    logs: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)
    metrics: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON, nullable=True)
    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    error_stack: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.current_timestamp(), nullable=False
    )
    started_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)


class DemoMetricOverride(Base):
    """Per-tenant, per-month deltas added to reported metrics.

    Every ``*_override`` column uses ``OVERRIDE_UNSET`` (-1) for "not set".
    """

    __tablename__ = "demo_metric_override"
    __table_args__ = (
        UniqueConstraint("tenant_id", "month", name="uq_metric_override_tenant_month"),
    )

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    tenant_id: Mapped[int] = mapped_column(
        ForeignKey("tenant.id", ondelete="CASCADE"), nullable=False, index=True
    )
    month: Mapped[str] = mapped_column(String(7), nullable=False)
    contacts_created_override: Mapped[int] = mapped_column(
        Integer, nullable=False, default=OVERRIDE_UNSET
    )
    companies_created_override: Mapped[int] = mapped_column(
        Integer, nullable=False, default=OVERRIDE_UNSET
    )
    deals_created_override: Mapped[int] = mapped_column(
        Integer, nullable=False, default=OVERRIDE_UNSET
    )
    closed_won_count_override: Mapped[int] = mapped_column(
        Integer, nullable=False, default=OVERRIDE_UNSET
    )
    closed_won_value_override: Mapped[Decimal] = mapped_column(
        Numeric(15, 2), nullable=False, default=Decimal(OVERRIDE_UNSET)
    )
    activities_created_override: Mapped[int] = mapped_column(
        Integer, nullable=False, default=OVERRIDE_UNSET
    )
    patch_job_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("demo_patch_job.id", ondelete="SET NULL"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.current_timestamp(), nullable=False
    )
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
