"""Spread aggregate volume targets over a month sequence following a growth curve."""
from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Optional, Sequence

from crm_demo.domain.enums import GrowthCurve
from crm_demo.domain.months import month_end, month_key, month_sequence, months_between
from crm_demo.domain.types import (
    DemoConfig,
    MonthlyMetricTargets,
    MonthlyTarget,
    ValidationIssue,
    from_cents,
    to_cents,
)
from crm_demo.generator.templates import get_template

MAX_MONTHS = 24

SEASONALITY = (0.90, 0.95, 1.05, 1.00, 1.00, 1.10, 0.85, 0.85, 1.10, 1.05, 1.00, 0.90)


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def apportion(total: int, weights: Sequence[float]) -> list[int]:
    """Split ``total`` over ``weights`` so that the parts sum to ``total`` exactly.

    Each slot is rounded independently and the last weighted slot absorbs the
    drift. Zero-weight slots always receive zero. If earlier slots over-round,
    the largest of them give units back.
    """

    parts = [0] * len(weights)
    active = [index for index, weight in enumerate(weights) if weight > 0]
    if total == 0 or not active:
        return parts
    weight_sum = float(sum(weights[index] for index in active))
    for index in active[:-1]:
        parts[index] = round_half_up(total * weights[index] / weight_sum)
    last = active[-1]
    parts[last] = total - sum(parts)
    while parts[last] < 0:
        index = max(active[:-1], key=lambda i: parts[i])
        parts[index] -= 1
        parts[last] += 1
    return parts


def curve_weights(count: int, curve: GrowthCurve, rate: float) -> list[float]:
    """Relative weight of each month; ``rate`` is the monthly growth in percent."""

    if curve is GrowthCurve.LINEAR:
        return [1.0] * count
    if curve is GrowthCurve.RAMP:
        return [1 + index * rate / 100 for index in range(count)]
    if curve is GrowthCurve.EXPONENTIAL:
        return [(1 + rate / 100) ** index for index in range(count)]
    if curve is GrowthCurve.LOGISTIC:
        midpoint = count / 2
        steepness = count / 6 or 1
        return [1 / (1 + math.exp(-(index - midpoint) / steepness)) for index in range(count)]
    if curve is GrowthCurve.STEP:
        return [float(index // 3 + 1) for index in range(count)]
    return [1.0] * count


@dataclass(frozen=True, slots=True)
class MonthAllocation:
    """Targets for one calendar month of a growth-curve plan."""

    month: str
    start: date
    end: date
    targets: MonthlyMetricTargets

    def as_target(self) -> MonthlyTarget:
        return MonthlyTarget(month=self.month, targets=self.targets)


@dataclass(frozen=True, slots=True)
class PlanPreview:
    months: list[MonthAllocation]
    totals: MonthlyMetricTargets
    estimated_seconds: int


class GrowthPlanner:
    """Turns a growth-curve :class:`DemoConfig` into per-month targets."""

    def __init__(self, config: DemoConfig, *, today: Optional[date] = None) -> None:
        self.config = config
        self.today = today or date.today()
        self.start = date(config.start_date.year, config.start_date.month, 1)
        if config.months is not None:
            self.span = int(config.months)
        else:
            self.span = months_between(self.start, self.today)
        self.win_rate = get_template(config.industry).deals.win_rate

    @property
    def month_starts(self) -> list[date]:
        if self.span <= 0:
            return []
        return list(month_sequence(self.start, self.span))

    def weights(self) -> list[float]:
        starts = self.month_starts
        growth = self.config.growth
        weights = curve_weights(len(starts), growth.curve, growth.monthly_rate)
        if growth.seasonality:
            weights = [weight * SEASONALITY[day.month - 1] for weight, day in zip(weights, starts)]
        return weights

    def plan(self) -> list[MonthAllocation]:
        starts = self.month_starts
        if not starts:
            return []
        weights = self.weights()
        targets = self.config.targets

        contacts = apportion(targets.contacts, weights)
        leads = self._cap_leads(apportion(min(targets.leads, targets.contacts), weights), contacts)
        companies = apportion(targets.companies, weights)
        won_counts = apportion(targets.closed_won_count, weights)
        won_cents = apportion(to_cents(targets.closed_won_value), won_counts)
        deal_counts = [self._deals_for(won) for won in won_counts]
        open_cents = max(0, to_cents(targets.pipeline_value) - to_cents(targets.closed_won_value))
        extra_cents = self._spread_open_pipeline(open_cents, weights, won_counts, deal_counts)

        allocations: list[MonthAllocation] = []
        for index, first in enumerate(starts):
            won = won_counts[index]
            deals = deal_counts[index]
            allocations.append(
                MonthAllocation(
                    month=month_key(first),
                    start=first,
                    end=month_end(first),
                    targets=MonthlyMetricTargets(
                        leads_created=leads[index],
                        contacts_created=contacts[index],
                        companies_created=companies[index],
                        deals_created=deals,
                        closed_won_count=won,
                        closed_won_value=from_cents(won_cents[index]),
                        pipeline_added_value=from_cents(won_cents[index] + extra_cents[index]),
                    ),
                )
            )
        return allocations

    def _deals_for(self, won: int) -> int:
        if self.win_rate <= 0:
            return won
        return max(won, round_half_up(won / self.win_rate))

    @staticmethod
    def _spread_open_pipeline(
        open_cents: int, weights: Sequence[float], won_counts: list[int], deal_counts: list[int]
    ) -> list[int]:
        """Apportion the not-yet-won pipeline over months that have an open deal to carry it.

        ``deal_counts`` is updated in place when no month has one: the heaviest
        month then gets an extra deal.
        """

        if open_cents <= 0:
            return [0] * len(weights)
        carriers = [deals > won for deals, won in zip(deal_counts, won_counts)]
        if not any(carriers):
            heaviest = max(range(len(weights)), key=lambda i: weights[i])
            deal_counts[heaviest] += 1
            carriers[heaviest] = True
        return apportion(open_cents, [weight if carry else 0.0 for weight, carry in zip(weights, carriers)])

    @staticmethod
    def _cap_leads(leads: list[int], contacts: list[int]) -> list[int]:
        """Move leads out of months where they would exceed contacts."""

        capped = list(leads)
        overflow = 0
        for index, (lead, contact) in enumerate(zip(leads, contacts)):
            if lead > contact:
                overflow += lead - contact
                capped[index] = contact
        for index in range(len(capped)):
            if overflow <= 0:
                break
            room = contacts[index] - capped[index]
            moved = min(room, overflow)
            capped[index] += moved
            overflow -= moved
        return capped

    def validate(self) -> list[ValidationIssue]:
        issues: list[ValidationIssue] = []
        targets = self.config.targets
        if self.span <= 0:
            issues.append(
                ValidationIssue("startDate", "No months in the plan range", "Use a start date in the past")
            )
        if self.span > MAX_MONTHS:
            issues.append(
                ValidationIssue(
                    "startDate",
                    f"Plan spans {self.span} months, maximum is {MAX_MONTHS}",
                    "Use a more recent start date",
                )
            )
        for name, value in (
            ("leads", targets.leads),
            ("contacts", targets.contacts),
            ("companies", targets.companies),
            ("pipelineValue", targets.pipeline_value),
            ("closedWonValue", targets.closed_won_value),
            ("closedWonCount", targets.closed_won_count),
        ):
            if value < 0:
                issues.append(ValidationIssue(f"targets.{name}", f"{name} cannot be negative"))
        if self.config.channel_mix.total > 100:
            issues.append(
                ValidationIssue(
                    "channelMix",
                    f"Channel mix totals {self.config.channel_mix.total:g}%, maximum is 100%",
                    "Lower one or more channel percentages",
                )
            )
        if self.span > 0 and targets.leads < self.span:
            issues.append(
                ValidationIssue("targets.leads", "Leads count too low for number of months")
            )
        if targets.leads > targets.contacts:
            issues.append(
                ValidationIssue(
                    "targets.leads",
                    "Leads cannot exceed contacts - leads are a subset of contacts",
                    "Increase contacts or decrease leads",
                )
            )
        if targets.closed_won_value > targets.pipeline_value:
            issues.append(
                ValidationIssue(
                    "targets.closedWonValue", "Closed won value cannot exceed pipeline value"
                )
            )
        if targets.closed_won_value > 0 and targets.closed_won_count == 0:
            issues.append(
                ValidationIssue(
                    "targets.closedWonValue",
                    "Cannot have closed won value without closed won deals",
                    "Set closedWonCount > 0 or closedWonValue = 0",
                )
            )
        return issues

    def estimated_seconds(self) -> int:
        targets = self.config.targets
        total_records = (
            targets.leads
            + targets.contacts
            + targets.companies
            + targets.closed_won_count
            + targets.leads * 2
            + self.config.team_size
        )
        return max(5, math.ceil(total_records / 10000 * 1.5))

    def preview(self) -> PlanPreview:
        months = self.plan()
        totals = MonthlyMetricTargets(
            leads_created=sum(m.targets.leads_created for m in months),
            contacts_created=sum(m.targets.contacts_created for m in months),
            companies_created=sum(m.targets.companies_created for m in months),
            deals_created=sum(m.targets.deals_created for m in months),
            closed_won_count=sum(m.targets.closed_won_count for m in months),
            closed_won_value=sum((m.targets.closed_won_value for m in months), Decimal("0")),
            pipeline_added_value=sum((m.targets.pipeline_added_value for m in months), Decimal("0")),
        )
        return PlanPreview(months=months, totals=totals, estimated_seconds=self.estimated_seconds())
