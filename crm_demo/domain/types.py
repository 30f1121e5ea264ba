"""Value types shared by the planner, validators, generator and patch engine.

Money is carried as :class:`~decimal.Decimal` and converted to integer cents
wherever sums must come out exact. JSON payloads (job config, plans, reports)
use camelCase keys; :func:`metric_wire_name` maps between the two spellings.
"""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Iterable, Mapping, Optional, Sequence, Union

from .enums import GenerationMode, GrowthCurve, Industry, PatchMode, PlanType

Number = Union[int, Decimal]

CENT = Decimal("0.01")
PLAN_VERSION = "1.0"


def to_decimal(value: Any) -> Decimal:
    if isinstance(value, Decimal):
        return value
    if value is None:
        return Decimal(0)
    return Decimal(str(value))


def to_cents(value: Any) -> int:
    return int((to_decimal(value) * 100).quantize(Decimal(1), rounding=ROUND_HALF_UP))


def from_cents(cents: int) -> Decimal:
    return (Decimal(cents) / 100).quantize(CENT)


# ---------------------------------------------------------------------------
# Metrics


@dataclass(frozen=True, slots=True)
class MetricSpec:
    key: str
    wire: str
    is_value: bool = False


LEADS = MetricSpec("leads_created", "leadsCreated")
CONTACTS = MetricSpec("contacts_created", "contactsCreated")
COMPANIES = MetricSpec("companies_created", "companiesCreated")
DEALS = MetricSpec("deals_created", "dealsCreated")
WON_COUNT = MetricSpec("closed_won_count", "closedWonCount")
WON_VALUE = MetricSpec("closed_won_value", "closedWonValue", is_value=True)
PIPELINE = MetricSpec("pipeline_added_value", "pipelineAddedValue", is_value=True)
ACTIVITIES = MetricSpec("activities_created", "activitiesCreated")

TARGET_METRICS: tuple[MetricSpec, ...] = (
    LEADS,
    CONTACTS,
    COMPANIES,
    DEALS,
    WON_COUNT,
    WON_VALUE,
    PIPELINE,
)
KPI_METRICS: tuple[MetricSpec, ...] = TARGET_METRICS + (ACTIVITIES,)
METRICS_BY_KEY = {spec.key: spec for spec in KPI_METRICS}
METRICS_BY_WIRE = {spec.wire: spec for spec in KPI_METRICS}


def metric_wire_name(key: str) -> str:
    return METRICS_BY_KEY[key].wire


def metric_key(name: str) -> str:
    """Accept either spelling and return the snake_case key."""

    if name in METRICS_BY_KEY:
        return name
    if name in METRICS_BY_WIRE:
        return METRICS_BY_WIRE[name].key
    raise KeyError(f"Unknown metric: {name}")


def coerce_metric(key: str, value: Any) -> Number:
    if METRICS_BY_KEY[key].is_value:
        return to_decimal(value).quantize(CENT)
    return int(value)


def metrics_to_wire(metrics: Mapping[str, Any]) -> dict[str, Any]:
    payload: dict[str, Any] = {}
    for key, value in metrics.items():
        spec = METRICS_BY_KEY[key]
        payload[spec.wire] = float(value) if spec.is_value else int(value)
    return payload


def metrics_from_wire(payload: Mapping[str, Any]) -> dict[str, Number]:
    return {
        metric_key(name): coerce_metric(metric_key(name), value)
        for name, value in payload.items()
        if value is not None
    }


@dataclass(frozen=True, slots=True)
class MonthlyMetricTargets:
    leads_created: int = 0
    contacts_created: int = 0
    companies_created: int = 0
    deals_created: int = 0
    closed_won_count: int = 0
    closed_won_value: Decimal = Decimal("0")
    pipeline_added_value: Decimal = Decimal("0")

    def get(self, key: str) -> Number:
        return getattr(self, key)

    @property
    def total_records(self) -> int:
        return self.contacts_created + self.companies_created + self.deals_created

    def as_dict(self) -> dict[str, Number]:
        return {spec.key: self.get(spec.key) for spec in TARGET_METRICS}

    def to_wire(self) -> dict[str, Any]:
        return metrics_to_wire(self.as_dict())

    @classmethod
    def from_mapping(cls, values: Mapping[str, Any]) -> "MonthlyMetricTargets":
        data = {metric_key(name): value for name, value in values.items() if value is not None}
        return cls(
            **{
                spec.key: coerce_metric(spec.key, data.get(spec.key, 0))
                for spec in TARGET_METRICS
            }
        )


@dataclass(frozen=True, slots=True)
class MonthOverrides:
    avg_deal_size: Optional[Decimal] = None
    win_rate: Optional[float] = None
    conversion_rate: Optional[float] = None

    def is_empty(self) -> bool:
        return self.avg_deal_size is None and self.win_rate is None and self.conversion_rate is None

    def to_wire(self) -> dict[str, Any]:
        payload: dict[str, Any] = {}
        if self.avg_deal_size is not None:
            payload["avgDealSize"] = float(self.avg_deal_size)
        if self.win_rate is not None:
            payload["winRate"] = self.win_rate
        if self.conversion_rate is not None:
            payload["conversionRate"] = self.conversion_rate
        return payload

    @classmethod
    def from_wire(cls, payload: Mapping[str, Any] | None) -> Optional["MonthOverrides"]:
        if not payload:
            return None
        avg = payload.get("avgDealSize", payload.get("avg_deal_size"))
        return cls(
            avg_deal_size=to_decimal(avg) if avg is not None else None,
            win_rate=payload.get("winRate", payload.get("win_rate")),
            conversion_rate=payload.get("conversionRate", payload.get("conversion_rate")),
        )


@dataclass(frozen=True, slots=True)
class MonthlyTarget:
    month: str
    targets: MonthlyMetricTargets
    overrides: Optional[MonthOverrides] = None

    def to_wire(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"month": self.month, "targets": self.targets.to_wire()}
        if self.overrides is not None and not self.overrides.is_empty():
            payload["overrides"] = self.overrides.to_wire()
        return payload

    @classmethod
    def from_wire(cls, payload: Mapping[str, Any]) -> "MonthlyTarget":
        return cls(
            month=str(payload["month"]),
            targets=MonthlyMetricTargets.from_mapping(payload.get("targets") or {}),
            overrides=MonthOverrides.from_wire(payload.get("overrides")),
        )


@dataclass(frozen=True, slots=True)
class ToleranceConfig:
    count_tolerance: int = 0
    value_tolerance: float = 0.005

    def to_wire(self) -> dict[str, Any]:
        return {"countTolerance": self.count_tolerance, "valueTolerance": self.value_tolerance}

    @classmethod
    def from_wire(cls, payload: Mapping[str, Any] | None) -> "ToleranceConfig":
        if not payload:
            return cls()
        return cls(
            count_tolerance=int(payload.get("countTolerance", payload.get("count_tolerance", 0))),
            value_tolerance=float(
                payload.get("valueTolerance", payload.get("value_tolerance", 0.005))
            ),
        )


@dataclass(frozen=True, slots=True)
class MonthlyPlan:
    """A caller-supplied month-by-month target plan."""

    months: tuple[MonthlyTarget, ...]
    tolerances: ToleranceConfig = field(default_factory=ToleranceConfig)
    version: str = PLAN_VERSION

    def to_wire(self) -> dict[str, Any]:
        return {
            "version": self.version,
            "months": [month.to_wire() for month in self.months],
            "tolerances": self.tolerances.to_wire(),
        }

    @classmethod
    def from_wire(cls, payload: Mapping[str, Any]) -> "MonthlyPlan":
        version = str(payload.get("version") or PLAN_VERSION)
        if version != PLAN_VERSION:
            raise ValueError(f"Unsupported monthly plan version: {version}")
        return cls(
            months=tuple(MonthlyTarget.from_wire(item) for item in payload.get("months") or ()),
            tolerances=ToleranceConfig.from_wire(payload.get("tolerances")),
            version=version,
        )


@dataclass(frozen=True, slots=True)
class ValidationIssue:
    path: str
    message: str
    suggestion: Optional[str] = None

    def to_wire(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"path": self.path, "message": self.message}
        if self.suggestion:
            payload["suggestion"] = self.suggestion
        return payload


# ---------------------------------------------------------------------------
# Growth-curve configuration


@dataclass(frozen=True, slots=True)
class VolumeTargets:
    leads: int = 300
    contacts: int = 500
    companies: int = 200
    pipeline_value: Decimal = Decimal("500000")
    closed_won_value: Decimal = Decimal("150000")
    closed_won_count: int = 100


@dataclass(frozen=True, slots=True)
class GrowthConfig:
    curve: GrowthCurve = GrowthCurve.EXPONENTIAL
    monthly_rate: float = 15.0
    seasonality: bool = False


@dataclass(frozen=True, slots=True)
class ChannelMix:
    seo: float = 25
    meta: float = 20
    google: float = 25
    affiliates: float = 15
    referrals: float = 10
    direct: float = 5

    @property
    def total(self) -> float:
        return self.seo + self.meta + self.google + self.affiliates + self.referrals + self.direct


@dataclass(frozen=True, slots=True)
class RealismConfig:
    drop_off_rate: float = 20
    whale_ratio: float = 5
    response_sla_hours: int = 4


COUNTRY_DEFAULTS: dict[str, tuple[str, str]] = {
    "US": ("America/New_York", "USD"),
    "GB": ("Europe/London", "GBP"),
    "UK": ("Europe/London", "GBP"),
    "DE": ("Europe/Berlin", "EUR"),
    "FR": ("Europe/Paris", "EUR"),
    "JP": ("Asia/Tokyo", "JPY"),
    "BR": ("America/Sao_Paulo", "BRL"),
    "AE": ("Asia/Dubai", "AED"),
    "AU": ("Australia/Sydney", "AUD"),
    "CA": ("America/Toronto", "CAD"),
    "SG": ("Asia/Singapore", "SGD"),
    "HK": ("Asia/Hong_Kong", "HKD"),
    "CH": ("Europe/Zurich", "CHF"),
    "NL": ("Europe/Amsterdam", "EUR"),
    "ES": ("Europe/Madrid", "EUR"),
    "IT": ("Europe/Rome", "EUR"),
    "IN": ("Asia/Kolkata", "INR"),
    "MX": ("America/Mexico_City", "MXN"),
}


def country_defaults(country: str) -> tuple[str, str]:
    return COUNTRY_DEFAULTS.get(country.upper(), ("UTC", "USD"))


@dataclass(frozen=True, slots=True)
class DemoConfig:
    """Full input configuration of a generation job, tagged by ``mode``."""

    country: str
    industry: Industry
    start_date: date
    mode: GenerationMode = GenerationMode.GROWTH_CURVE
    tenant_name: Optional[str] = None
    timezone: Optional[str] = None
    currency: Optional[str] = None
    team_size: int = 8
    months: Optional[int] = None
    targets: VolumeTargets = field(default_factory=VolumeTargets)
    growth: GrowthConfig = field(default_factory=GrowthConfig)
    channel_mix: ChannelMix = field(default_factory=ChannelMix)
    realism: RealismConfig = field(default_factory=RealismConfig)
    monthly_plan: Optional[MonthlyPlan] = None
    tolerances: ToleranceConfig = field(default_factory=ToleranceConfig)

    def resolved(self) -> "DemoConfig":
        """Fill locale-derived defaults (timezone, currency, tenant name)."""

        timezone, currency = country_defaults(self.country)
        return replace(
            self,
            country=self.country.upper(),
            timezone=self.timezone or timezone,
            currency=self.currency or currency,
            tenant_name=self.tenant_name
            or f"Demo - {self.industry.value} ({self.country.upper()})",
        )

    def to_wire(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "mode": self.mode.value,
            "country": self.country,
            "industry": self.industry.value,
            "startDate": self.start_date.isoformat(),
            "tenantName": self.tenant_name,
            "timezone": self.timezone,
            "currency": self.currency,
            "teamSize": self.team_size,
            "months": self.months,
            "targets": {
                "leads": self.targets.leads,
                "contacts": self.targets.contacts,
                "companies": self.targets.companies,
                "pipelineValue": float(self.targets.pipeline_value),
                "closedWonValue": float(self.targets.closed_won_value),
                "closedWonCount": self.targets.closed_won_count,
            },
            "growth": {
                "curve": self.growth.curve.value,
                "monthlyRate": self.growth.monthly_rate,
                "seasonality": self.growth.seasonality,
            },
            "channelMix": {
                "seo": self.channel_mix.seo,
                "meta": self.channel_mix.meta,
                "google": self.channel_mix.google,
                "affiliates": self.channel_mix.affiliates,
                "referrals": self.channel_mix.referrals,
                "direct": self.channel_mix.direct,
            },
            "realism": {
                "dropOffRate": self.realism.drop_off_rate,
                "whaleRatio": self.realism.whale_ratio,
                "responseSlaHours": self.realism.response_sla_hours,
            },
            "tolerances": self.tolerances.to_wire(),
        }
        if self.monthly_plan is not None:
            payload["monthlyPlan"] = self.monthly_plan.to_wire()
        return payload

    @classmethod
    def from_wire(cls, payload: Mapping[str, Any]) -> "DemoConfig":
        mode = GenerationMode(payload.get("mode", GenerationMode.GROWTH_CURVE.value))
        targets = payload.get("targets") or {}
        growth = payload.get("growth") or {}
        mix = payload.get("channelMix") or {}
        realism = payload.get("realism") or {}
        defaults_targets = VolumeTargets()
        defaults_growth = GrowthConfig()
        defaults_mix = ChannelMix()
        defaults_realism = RealismConfig()
        plan_payload = payload.get("monthlyPlan")
        return cls(
            mode=mode,
            country=str(payload["country"]),
            industry=Industry(payload["industry"]),
            start_date=date.fromisoformat(str(payload["startDate"])[:10]),
            tenant_name=payload.get("tenantName"),
            timezone=payload.get("timezone"),
            currency=payload.get("currency"),
            team_size=int(payload.get("teamSize") or 8),
            months=payload.get("months"),
            targets=VolumeTargets(
                leads=int(targets.get("leads", defaults_targets.leads)),
                contacts=int(targets.get("contacts", defaults_targets.contacts)),
                companies=int(targets.get("companies", defaults_targets.companies)),
                pipeline_value=to_decimal(
                    targets.get("pipelineValue", defaults_targets.pipeline_value)
                ),
                closed_won_value=to_decimal(
                    targets.get("closedWonValue", defaults_targets.closed_won_value)
                ),
                closed_won_count=int(
                    targets.get("closedWonCount", defaults_targets.closed_won_count)
                ),
            ),
            growth=GrowthConfig(
                curve=GrowthCurve(growth.get("curve", defaults_growth.curve.value)),
                monthly_rate=float(growth.get("monthlyRate", defaults_growth.monthly_rate)),
                seasonality=bool(growth.get("seasonality", defaults_growth.seasonality)),
            ),
            channel_mix=ChannelMix(
                **{name: float(mix.get(name, getattr(defaults_mix, name))) for name in (
                    "seo", "meta", "google", "affiliates", "referrals", "direct"
                )}
            ),
            realism=RealismConfig(
                drop_off_rate=float(realism.get("dropOffRate", defaults_realism.drop_off_rate)),
                whale_ratio=float(realism.get("whaleRatio", defaults_realism.whale_ratio)),
                response_sla_hours=int(
                    realism.get("responseSlaHours", defaults_realism.response_sla_hours)
                ),
            ),
            monthly_plan=MonthlyPlan.from_wire(plan_payload) if plan_payload else None,
            tolerances=ToleranceConfig.from_wire(payload.get("tolerances")),
        )


# ---------------------------------------------------------------------------
# Patch plans and KPI snapshots


@dataclass(frozen=True, slots=True)
class PatchMonth:
    """Per-month patch metrics; absent keys mean "leave unchanged"."""

    month: str
    metrics: Mapping[str, Number]

    def get(self, key: str) -> Optional[Number]:
        return self.metrics.get(key)

    def to_wire(self) -> dict[str, Any]:
        return {"month": self.month, "metrics": metrics_to_wire(self.metrics)}

    @classmethod
    def from_wire(cls, payload: Mapping[str, Any]) -> "PatchMonth":
        return cls(month=str(payload["month"]), metrics=metrics_from_wire(payload.get("metrics") or {}))


@dataclass(frozen=True, slots=True)
class PatchPlan:
    mode: PatchMode
    plan_type: PlanType
    months: tuple[PatchMonth, ...]
    tolerances: ToleranceConfig = field(default_factory=ToleranceConfig)
    seed: Optional[str] = None

    @property
    def month_keys(self) -> list[str]:
        return sorted(month.month for month in self.months)

    def to_wire(self) -> dict[str, Any]:
        return {
            "mode": self.mode.value,
            "planType": self.plan_type.value,
            "months": [month.to_wire() for month in self.months],
            "tolerances": self.tolerances.to_wire(),
            "seed": self.seed,
        }

    @classmethod
    def from_wire(cls, payload: Mapping[str, Any]) -> "PatchPlan":
        return cls(
            mode=PatchMode(payload["mode"]),
            plan_type=PlanType(payload.get("planType", PlanType.TARGETS.value)),
            months=tuple(PatchMonth.from_wire(item) for item in payload.get("months") or ()),
            tolerances=ToleranceConfig.from_wire(payload.get("tolerances")),
            seed=payload.get("seed"),
        )


@dataclass(frozen=True, slots=True)
class MonthlyKpiSnapshot:
    month: str
    metrics: Mapping[str, Number]

    def get(self, key: str) -> Number:
        value = self.metrics.get(key)
        if value is None:
            return Decimal("0") if METRICS_BY_KEY[key].is_value else 0
        return value

    def to_wire(self) -> dict[str, Any]:
        return {"month": self.month, "metrics": metrics_to_wire(self.metrics)}

    @classmethod
    def from_wire(cls, payload: Mapping[str, Any]) -> "MonthlyKpiSnapshot":
        return cls(month=str(payload["month"]), metrics=metrics_from_wire(payload.get("metrics") or {}))


def snapshot_index(snapshots: Iterable[MonthlyKpiSnapshot]) -> dict[str, MonthlyKpiSnapshot]:
    return {snapshot.month: snapshot for snapshot in snapshots}


def sum_targets(months: Sequence[MonthlyTarget]) -> MonthlyMetricTargets:
    totals: dict[str, Number] = {}
    for spec in TARGET_METRICS:
        if spec.is_value:
            totals[spec.key] = sum((month.targets.get(spec.key) for month in months), Decimal("0"))
        else:
            totals[spec.key] = sum(int(month.targets.get(spec.key)) for month in months)
    return MonthlyMetricTargets(**totals)
