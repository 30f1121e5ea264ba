"""Bodies for patching demo tenants and for override-aware reporting."""
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, List, Optional

from pydantic import Field, field_serializer, field_validator

from crm_demo.domain.enums import PatchMode, PlanType
from crm_demo.domain.types import METRICS_BY_WIRE, PatchPlan, metric_key

from .demo import CamelModel, TolerancesPayload, ValidationIssuePayload


class PatchMonthPayload(CamelModel):
    month: str
    metrics: dict[str, Decimal] = Field(default_factory=dict)

    @field_validator("metrics")
    @classmethod
    def _known_metrics(cls, value: dict[str, Decimal]) -> dict[str, Decimal]:
        unknown = []
        for name in value:
            try:
                metric_key(name)
            except KeyError:
                unknown.append(name)
        if unknown:
            raise ValueError(
                f"Unknown metrics: {', '.join(sorted(unknown))}; expected one of {', '.join(METRICS_BY_WIRE)}"
            )
        return value


class PatchPlanRequest(CamelModel):
    mode: PatchMode
    plan_type: PlanType = PlanType.TARGETS
    months: List[PatchMonthPayload] = Field(default_factory=list)
    tolerances: TolerancesPayload = Field(default_factory=TolerancesPayload)
    seed: Optional[str] = None

    def to_domain(self) -> PatchPlan:
        return PatchPlan.from_wire(self.model_dump(by_alias=True, exclude_none=True, mode="json"))


class PatchValidationResponse(CamelModel):
    valid: bool
    errors: List[ValidationIssuePayload] = Field(default_factory=list)
    warnings: List[ValidationIssuePayload] = Field(default_factory=list)
    preview: Optional[dict[str, Any]] = None


class PatchJobResponse(CamelModel):
    id: int
    tenant_id: Optional[int] = None
    status: str
    mode: str
    plan_type: str
    range_start_month: str
    range_end_month: str
    progress: int = 0
    current_step: Optional[str] = None
    metrics: Optional[dict[str, Any]] = None
    diff_report: Optional[dict[str, Any]] = None
    before_kpis: Optional[List[dict[str, Any]]] = None
    after_kpis: Optional[List[dict[str, Any]]] = None
    error_message: Optional[str] = None
    created_at: datetime
    completed_at: Optional[datetime] = None


class PeriodMonthMetrics(CamelModel):
    """Reported metrics of one month, overrides included."""

    month: str
    leads_created: int = 0
    contacts_created: int = 0
    companies_created: int = 0
    deals_created: int = 0
    closed_won_count: int = 0
    closed_won_value: Decimal = Decimal("0")
    pipeline_added_value: Decimal = Decimal("0")
    activities_created: int = 0

    @field_serializer("closed_won_value", "pipeline_added_value")
    def _serialize_decimal(self, value: Decimal) -> str:
        return str(value)


class PeriodMetricsResponse(CamelModel):
    tenant_id: int
    start_month: str
    end_month: str
    months: List[PeriodMonthMetrics]
    totals: PeriodMonthMetrics
