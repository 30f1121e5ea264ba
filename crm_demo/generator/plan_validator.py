"""Validation of caller-supplied monthly plans and generation configs.

Validation never stops at the first problem: every violation becomes a
:class:`ValidationIssue` whose ``path`` points at the offending field
(``months[2].targets.leadsCreated``), and callers surface them all at once.
"""
from __future__ import annotations

import math
import re
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any, Optional, Sequence

from crm_demo.domain.enums import GenerationMode
from crm_demo.domain.months import current_month_key, is_month_key, month_key, months_between
from crm_demo.domain.types import (
    TARGET_METRICS,
    DemoConfig,
    MonthlyPlan,
    MonthlyTarget,
    ValidationIssue,
    sum_targets,
)

MAX_PLAN_MONTHS = 24
GROWTH_WARNING_PERCENT = 200
DECLINE_WARNING_PERCENT = -50
COUNTRY_PATTERN = re.compile(r"^[A-Z]{2}$")


@dataclass(frozen=True, slots=True)
class DerivedMetrics:
    total_leads: int
    total_contacts: int
    total_companies: int
    total_deals: int
    total_closed_won_count: int
    total_closed_won_value: Decimal
    total_pipeline_value: Decimal
    avg_deal_size: Decimal
    overall_win_rate: float
    avg_monthly_growth: float

    def to_wire(self) -> dict[str, Any]:
        return {
            "totalLeads": self.total_leads,
            "totalContacts": self.total_contacts,
            "totalCompanies": self.total_companies,
            "totalDeals": self.total_deals,
            "totalClosedWonCount": self.total_closed_won_count,
            "totalClosedWonValue": float(self.total_closed_won_value),
            "totalPipelineValue": float(self.total_pipeline_value),
            "avgDealSize": float(self.avg_deal_size),
            "overallWinRate": self.overall_win_rate,
            "avgMonthlyGrowth": self.avg_monthly_growth,
        }


@dataclass(frozen=True, slots=True)
class PlanValidationResult:
    valid: bool
    errors: list[ValidationIssue] = field(default_factory=list)
    warnings: list[ValidationIssue] = field(default_factory=list)
    derived: Optional[DerivedMetrics] = None
    estimated_generation_seconds: int = 0


def _month_issues(
    target: MonthlyTarget,
    index: int,
    current_month: str,
    previous: Optional[str],
    seen: set[str],
    errors: list[ValidationIssue],
    warnings: list[ValidationIssue],
) -> None:
    base = f"months[{index}]"
    targets = target.targets

    if not is_month_key(target.month):
        errors.append(
            ValidationIssue(
                f"{base}.month",
                f"Invalid month format: {target.month}",
                "Use YYYY-MM format (e.g., 2025-01)",
            )
        )
    elif target.month > current_month:
        errors.append(
            ValidationIssue(
                f"{base}.month",
                f"Month {target.month} is in the future",
                "Use a month that is not in the future",
            )
        )
    if target.month in seen:
        errors.append(
            ValidationIssue(f"{base}.month", f"Duplicate month {target.month}", "Each month may appear once")
        )
    elif previous is not None and target.month <= previous:
        errors.append(
            ValidationIssue(
                f"{base}.month",
                "Months must be in chronological order",
                f"{target.month} should come after {previous}",
            )
        )

    for metric in TARGET_METRICS:
        if targets.get(metric.key) < 0:
            errors.append(
                ValidationIssue(
                    f"{base}.targets.{metric.wire}",
                    f"{metric.wire} cannot be negative",
                    "Use 0 or a positive number",
                )
            )

    if targets.leads_created > targets.contacts_created:
        errors.append(
            ValidationIssue(
                f"{base}.targets.leadsCreated",
                f"Leads ({targets.leads_created}) cannot exceed contacts ({targets.contacts_created})",
                "Leads are a subset of contacts. Increase contacts or decrease leads.",
            )
        )
    if targets.closed_won_count > targets.deals_created:
        errors.append(
            ValidationIssue(
                f"{base}.targets.closedWonCount",
                f"Closed won count ({targets.closed_won_count}) cannot exceed deals created "
                f"({targets.deals_created})",
                "Increase deals created or decrease closed won count.",
            )
        )
    if targets.closed_won_value > 0 and targets.closed_won_count == 0:
        errors.append(
            ValidationIssue(
                f"{base}.targets.closedWonValue",
                "Cannot have closed won value without closed won deals",
                "Set closedWonCount > 0 or closedWonValue = 0",
            )
        )
    if 0 < targets.pipeline_added_value < targets.closed_won_value:
        errors.append(
            ValidationIssue(
                f"{base}.targets.pipelineAddedValue",
                f"Pipeline added value ({targets.pipeline_added_value}) is less than closed won "
                f"value ({targets.closed_won_value})",
                "Pipeline value includes won deals; raise it to at least the closed won value.",
            )
        )
    elif (
        targets.pipeline_added_value > targets.closed_won_value
        and targets.deals_created <= targets.closed_won_count
    ):
        open_value = targets.pipeline_added_value - targets.closed_won_value
        errors.append(
            ValidationIssue(
                f"{base}.targets.pipelineAddedValue",
                f"Open pipeline of {open_value} needs at least one deal that is not closed won "
                f"({targets.deals_created} deals, {targets.closed_won_count} won)",
                "Increase deals created above closed won count or lower pipeline added value.",
            )
        )
    if targets.pipeline_added_value == 0 and targets.closed_won_value > 0:
        warnings.append(
            ValidationIssue(
                f"{base}.targets.pipelineAddedValue",
                "Pipeline added value is 0 while closed won value is set; "
                "the closed won value will be used as pipeline value.",
            )
        )
    if targets.contacts_created + targets.deals_created == 0:
        warnings.append(
            ValidationIssue(
                base,
                f"Month {target.month} has no contacts or deals. "
                "Consider removing this month or adding some activity.",
            )
        )

    overrides = target.overrides
    if overrides is not None and not overrides.is_empty():
        if overrides.avg_deal_size is not None and targets.closed_won_count > 0 and targets.closed_won_value > 0:
            implied = overrides.avg_deal_size * targets.closed_won_count
            if abs(implied - targets.closed_won_value) / targets.closed_won_value > Decimal("0.1"):
                warnings.append(
                    ValidationIssue(
                        f"{base}.overrides.avgDealSize",
                        f"avgDealSize override implies {implied:.2f} total, but closedWonValue is "
                        f"{targets.closed_won_value}. Consider adjusting.",
                    )
                )
        if overrides.win_rate is not None and targets.deals_created > 0:
            implied_won = round(targets.deals_created * overrides.win_rate / 100)
            if abs(implied_won - targets.closed_won_count) > 2:
                warnings.append(
                    ValidationIssue(
                        f"{base}.overrides.winRate",
                        f"winRate override of {overrides.win_rate}% implies ~{implied_won} won deals, "
                        f"but closedWonCount is {targets.closed_won_count}.",
                    )
                )
        warnings.append(
            ValidationIssue(
                f"{base}.overrides",
                "Overrides are informational; generation follows the month's targets.",
            )
        )


def _growth_warnings(months: Sequence[MonthlyTarget], warnings: list[ValidationIssue]) -> None:
    for index in range(1, len(months)):
        previous = months[index - 1]
        current = months[index]
        for key, wire in (
            ("contacts_created", "contactsCreated"),
            ("deals_created", "dealsCreated"),
            ("closed_won_value", "closedWonValue"),
        ):
            before = previous.targets.get(key)
            after = current.targets.get(key)
            if before <= 0:
                continue
            growth = float((after - before) / before * 100)
            if growth > GROWTH_WARNING_PERCENT:
                warnings.append(
                    ValidationIssue(
                        f"months[{index}].targets.{wire}",
                        f"{wire} shows {growth:.0f}% growth from {previous.month} to "
                        f"{current.month}. This is unusually high.",
                    )
                )
            elif growth < DECLINE_WARNING_PERCENT:
                warnings.append(
                    ValidationIssue(
                        f"months[{index}].targets.{wire}",
                        f"{wire} shows {abs(growth):.0f}% decline from {previous.month} to "
                        f"{current.month}. Ensure this is intentional.",
                    )
                )


def derive_metrics(months: Sequence[MonthlyTarget]) -> DerivedMetrics:
    totals = sum_targets(months)
    avg_deal_size = (
        (totals.closed_won_value / totals.closed_won_count).quantize(Decimal("0.01"))
        if totals.closed_won_count
        else Decimal("0")
    )
    win_rate = totals.closed_won_count / totals.deals_created * 100 if totals.deals_created else 0.0
    rates: list[float] = []
    for index in range(1, len(months)):
        before = months[index - 1].targets.contacts_created
        after = months[index].targets.contacts_created
        if before > 0:
            rates.append((after - before) / before * 100)
    return DerivedMetrics(
        total_leads=totals.leads_created,
        total_contacts=totals.contacts_created,
        total_companies=totals.companies_created,
        total_deals=totals.deals_created,
        total_closed_won_count=totals.closed_won_count,
        total_closed_won_value=totals.closed_won_value,
        total_pipeline_value=totals.pipeline_added_value,
        avg_deal_size=avg_deal_size,
        overall_win_rate=win_rate,
        avg_monthly_growth=sum(rates) / len(rates) if rates else 0.0,
    )


def validate_monthly_plan(plan: MonthlyPlan, today: Optional[date] = None) -> PlanValidationResult:
    """Collect every structural and logical issue in ``plan``."""

    errors: list[ValidationIssue] = []
    warnings: list[ValidationIssue] = []
    months = list(plan.months)
    if not months:
        errors.append(
            ValidationIssue("months", "At least one month is required", "Add at least one month to the plan")
        )
        return PlanValidationResult(valid=False, errors=errors, warnings=warnings)
    if len(months) > MAX_PLAN_MONTHS:
        errors.append(
            ValidationIssue(
                "months",
                f"Plan has {len(months)} months, maximum is {MAX_PLAN_MONTHS}",
                f"Reduce the plan to {MAX_PLAN_MONTHS} months or less",
            )
        )
    errors.extend(validate_tolerances(plan.tolerances.count_tolerance, plan.tolerances.value_tolerance))

    current_month = current_month_key(today)
    previous: Optional[str] = None
    seen: set[str] = set()
    for index, target in enumerate(months):
        _month_issues(target, index, current_month, previous, seen, errors, warnings)
        seen.add(target.month)
        previous = target.month

    _growth_warnings(months, warnings)
    derived = derive_metrics(months)
    total_records = derived.total_contacts + derived.total_companies + derived.total_deals
    return PlanValidationResult(
        valid=not errors,
        errors=errors,
        warnings=warnings,
        derived=derived,
        estimated_generation_seconds=math.ceil(total_records / 100),
    )


def validate_tolerances(
    count_tolerance: int,
    value_tolerance: float,
    *,
    max_count: int = 1,
    max_value: float = 0.1,
    prefix: str = "tolerances",
) -> list[ValidationIssue]:
    issues: list[ValidationIssue] = []
    if not 0 <= count_tolerance <= max_count:
        issues.append(
            ValidationIssue(f"{prefix}.countTolerance", f"countTolerance must be between 0 and {max_count}")
        )
    if not 0 <= value_tolerance <= max_value:
        issues.append(
            ValidationIssue(f"{prefix}.valueTolerance", f"valueTolerance must be between 0 and {max_value}")
        )
    return issues


def _range_issue(path: str, value: Any, minimum: Any, maximum: Any) -> Optional[ValidationIssue]:
    if minimum <= value <= maximum:
        return None
    return ValidationIssue(path, f"{path.split('.')[-1]} must be between {minimum} and {maximum}")


def validate_config(config: DemoConfig, today: Optional[date] = None) -> list[ValidationIssue]:
    """Shape checks shared by both generation modes (ranges, country, start date)."""

    today = today or date.today()
    issues: list[ValidationIssue] = []
    if not COUNTRY_PATTERN.match(config.country or ""):
        issues.append(ValidationIssue("country", "Country must be a two-letter ISO code"))
    checks = [
        _range_issue("teamSize", config.team_size, 2, 50),
        _range_issue("realism.dropOffRate", config.realism.drop_off_rate, 0, 50),
        _range_issue("realism.whaleRatio", config.realism.whale_ratio, 0, 20),
        _range_issue("realism.responseSlaHours", config.realism.response_sla_hours, 1, 72),
        _range_issue("growth.monthlyRate", config.growth.monthly_rate, 0, 50),
    ]
    issues.extend(issue for issue in checks if issue is not None)

    if config.start_date > today:
        issues.append(ValidationIssue("startDate", "Start date cannot be in the future"))
    elif months_between(config.start_date, today) > MAX_PLAN_MONTHS:
        issues.append(
            ValidationIssue("startDate", f"Start date must be within the last {MAX_PLAN_MONTHS} months")
        )

    if config.mode is GenerationMode.MONTHLY_PLAN:
        if config.monthly_plan is None:
            issues.append(ValidationIssue("monthlyPlan", "Monthly plan is required in monthly-plan mode"))
        else:
            result = validate_monthly_plan(config.monthly_plan, today=today)
            issues.extend(
                ValidationIssue(f"monthlyPlan.{issue.path}", issue.message, issue.suggestion)
                for issue in result.errors
            )
            first = config.monthly_plan.months[0].month if config.monthly_plan.months else None
            if first and is_month_key(first) and first < month_key(config.start_date):
                issues.append(
                    ValidationIssue("monthlyPlan.months[0].month", "Plan starts before the start date")
                )
    else:
        targets = config.targets
        checks = [
            _range_issue("targets.leads", targets.leads, 100, 50000),
            _range_issue("targets.contacts", targets.contacts, 50, 20000),
            _range_issue("targets.companies", targets.companies, 20, 5000),
            _range_issue("targets.pipelineValue", targets.pipeline_value, 10000, 100000000),
            _range_issue("targets.closedWonValue", targets.closed_won_value, 5000, 50000000),
            _range_issue("targets.closedWonCount", targets.closed_won_count, 10, 5000),
        ]
        issues.extend(issue for issue in checks if issue is not None)
    issues.extend(
        validate_tolerances(config.tolerances.count_tolerance, config.tolerances.value_tolerance)
    )
    return issues
