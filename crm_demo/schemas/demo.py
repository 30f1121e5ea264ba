"""Request and response bodies of the demo generator API."""
from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator
from pydantic.alias_generators import to_camel

from crm_demo.domain.enums import GenerationMode, GrowthCurve, Industry
from crm_demo.domain.types import DemoConfig, MonthlyMetricTargets, MonthlyPlan, ValidationIssue


class CamelModel(BaseModel):
    """Accepts and emits camelCase keys while keeping snake_case attributes."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class TolerancesPayload(CamelModel):
    count_tolerance: int = 0
    value_tolerance: float = 0.005


class VolumeTargetsPayload(CamelModel):
    leads: int = 300
    contacts: int = 500
    companies: int = 200
    pipeline_value: Decimal = Decimal("500000")
    closed_won_value: Decimal = Decimal("150000")
    closed_won_count: int = 100


class GrowthPayload(CamelModel):
    curve: GrowthCurve = GrowthCurve.EXPONENTIAL
    monthly_rate: float = 15.0
    seasonality: bool = False


class ChannelMixPayload(CamelModel):
    seo: float = 25
    meta: float = 20
    google: float = 25
    affiliates: float = 15
    referrals: float = 10
    direct: float = 5


class RealismPayload(CamelModel):
    drop_off_rate: float = 20
    whale_ratio: float = 5
    response_sla_hours: int = 4


class MonthTargetsPayload(CamelModel):
    leads_created: int = 0
    contacts_created: int = 0
    companies_created: int = 0
    deals_created: int = 0
    closed_won_count: int = 0
    closed_won_value: Decimal = Decimal("0")
    pipeline_added_value: Decimal = Decimal("0")

    @field_serializer("closed_won_value", "pipeline_added_value")
    def _serialize_decimal(self, value: Decimal) -> str:
        return str(value)

    @classmethod
    def from_domain(cls, targets: MonthlyMetricTargets) -> "MonthTargetsPayload":
        return cls(**targets.as_dict())


class MonthOverridesPayload(CamelModel):
    avg_deal_size: Optional[Decimal] = None
    win_rate: Optional[float] = None
    conversion_rate: Optional[float] = None


class MonthlyTargetPayload(CamelModel):
    month: str
    targets: MonthTargetsPayload
    overrides: Optional[MonthOverridesPayload] = None


class MonthlyPlanPayload(CamelModel):
    version: str = "1.0"
    months: List[MonthlyTargetPayload] = Field(default_factory=list)
    tolerances: TolerancesPayload = Field(default_factory=TolerancesPayload)

    def to_domain(self) -> MonthlyPlan:
        return MonthlyPlan.from_wire(self.model_dump(by_alias=True, exclude_none=True, mode="json"))


class DemoConfigRequest(CamelModel):
    """Body of ``POST /jobs`` and ``POST /preview``."""

    mode: GenerationMode = GenerationMode.GROWTH_CURVE
    country: str
    industry: Industry
    start_date: date
    tenant_name: Optional[str] = None
    timezone: Optional[str] = None
    currency: Optional[str] = None
    team_size: int = 8
    months: Optional[int] = None
    targets: VolumeTargetsPayload = Field(default_factory=VolumeTargetsPayload)
    growth: GrowthPayload = Field(default_factory=GrowthPayload)
    channel_mix: ChannelMixPayload = Field(default_factory=ChannelMixPayload)
    realism: RealismPayload = Field(default_factory=RealismPayload)
    monthly_plan: Optional[MonthlyPlanPayload] = None
    tolerances: TolerancesPayload = Field(default_factory=TolerancesPayload)
    seed: Optional[str] = None

    @field_validator("country")
    @classmethod
    def _upper_country(cls, value: str) -> str:
        return value.strip().upper()

    @field_validator("tenant_name")
    @classmethod
    def _strip_name(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        return value.strip() or None

    def to_domain(self) -> DemoConfig:
        payload = self.model_dump(by_alias=True, exclude_none=True, exclude={"seed"}, mode="json")
        return DemoConfig.from_wire(payload)


class ValidationIssuePayload(BaseModel):
    path: str
    message: str
    suggestion: Optional[str] = None

    @classmethod
    def from_domain(cls, issue: ValidationIssue) -> "ValidationIssuePayload":
        return cls(path=issue.path, message=issue.message, suggestion=issue.suggestion)


class PlanValidationResponse(CamelModel):
    valid: bool
    errors: List[ValidationIssuePayload] = Field(default_factory=list)
    warnings: List[ValidationIssuePayload] = Field(default_factory=list)
    derived: Optional[dict[str, Any]] = None
    estimated_generation_seconds: int = 0


class MonthPreviewPayload(CamelModel):
    month: str
    targets: MonthTargetsPayload


class PreviewResponse(CamelModel):
    mode: GenerationMode
    months: List[MonthPreviewPayload]
    totals: MonthTargetsPayload
    estimated_seconds: int
    warnings: List[ValidationIssuePayload] = Field(default_factory=list)


class JobProgressResponse(CamelModel):
    job_id: int
    status: str
    phase: str
    progress: int
    current_step: Optional[str] = None
    tenant_id: Optional[int] = None
    revision: int = 0
    verification_passed: Optional[bool] = None
    error_message: Optional[str] = None


class JobDetailResponse(JobProgressResponse):
    mode: str
    seed: str
    config: dict[str, Any]
    created_at: datetime
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    metrics: Optional[dict[str, Any]] = None
    verification_report: Optional[dict[str, Any]] = None
    logs: List[dict[str, Any]] = Field(default_factory=list)


class KpiSnapshotPayload(CamelModel):
    month: str
    metrics: dict[str, Any]


class TenantKpisResponse(CamelModel):
    tenant_id: int
    from_month: str
    to_month: str
    include_overrides: bool
    months: List[KpiSnapshotPayload]
