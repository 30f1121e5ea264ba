"""Day-level count allocation and deal-value allocation with exact totals."""
from __future__ import annotations

import calendar
import math
from dataclasses import dataclass, field
from datetime import date, datetime, time
from decimal import Decimal
from typing import Optional

from crm_demo.domain.months import parse_month
from crm_demo.domain.types import MonthlyMetricTargets, from_cents, to_cents
from crm_demo.generator.rng import SeededRNG

# Monday..Sunday
WEEKDAY_WEIGHTS = (0.8, 1.2, 1.2, 1.2, 0.6, 0.0, 0.0)

COUNT_KEYS = (
    "contacts_created",
    "leads_created",
    "companies_created",
    "deals_created",
    "closed_won_count",
)


@dataclass(slots=True)
class DayAllocation:
    day: date
    counts: dict[str, int] = field(default_factory=dict)

    @property
    def is_business_day(self) -> bool:
        return self.day.weekday() < 5

    def count(self, key: str) -> int:
        return self.counts.get(key, 0)


@dataclass(slots=True)
class MonthSchedule:
    month: str
    targets: MonthlyMetricTargets
    days: list[DayAllocation]

    @property
    def business_days(self) -> list[DayAllocation]:
        return [day for day in self.days if day.is_business_day]


class MonthlyAllocator:
    """Split a month's count targets over its business days."""

    def __init__(
        self,
        rng: SeededRNG,
        *,
        count_variance: float = 0.15,
        until: Optional[datetime] = None,
    ) -> None:
        self.rng = rng
        self.count_variance = count_variance
        self.until = until

    def allocate_month(self, month: str, targets: MonthlyMetricTargets) -> MonthSchedule:
        first = parse_month(month)
        last_day = calendar.monthrange(first.year, first.month)[1]
        days = [DayAllocation(date(first.year, first.month, number)) for number in range(1, last_day + 1)]
        business = [day for day in days if day.is_business_day]
        for key in COUNT_KEYS:
            allocations = self.distribute(int(targets.get(key)), [day.day for day in business])
            for day, amount in zip(business, allocations):
                day.counts[key] = amount
        return MonthSchedule(month=month, targets=targets, days=days)

    def distribute(self, total: int, days: list[date]) -> list[int]:
        """Weighted split of ``total`` over ``days`` with variance and exact sum."""

        if not days or total <= 0:
            return [0] * len(days)
        weights = [WEEKDAY_WEIGHTS[day.weekday()] or 1.0 for day in days]
        weight_sum = sum(weights)
        allocations: list[int] = []
        for weight in weights:
            ideal = weight / weight_sum * total
            jitter = self.rng.float(-self.count_variance, self.count_variance) * ideal
            allocations.append(max(0, round(ideal + jitter)))
        remaining = total - sum(allocations)
        while remaining != 0:
            index = self.rng.int(0, len(days) - 1)
            if remaining > 0:
                allocations[index] += 1
                remaining -= 1
            elif allocations[index] > 0:
                allocations[index] -= 1
                remaining += 1
        return allocations

    def business_hour(self) -> int:
        if self.rng.bool(0.8):
            return self.rng.int(10, 16)
        return 9 if self.rng.bool(0.5) else 17

    def generate_timestamp(self, day: date) -> datetime:
        """Business-hours timestamp on ``day``; 80% fall between 10 and 16 h."""

        moment = datetime.combine(
            day, time(self.business_hour(), self.rng.int(0, 59), self.rng.int(0, 59))
        )
        if self.until is not None and moment > self.until:
            moment = max(datetime.combine(day, time()), self.until)
        return moment

    def working_days(self, month: str) -> list[date]:
        """Business days of ``month`` that are not after ``until``.

        A current month whose elapsed part has no weekday falls back to the
        elapsed calendar days, and finally to the first of the month.
        """

        first = parse_month(month)
        last_day = calendar.monthrange(first.year, first.month)[1]
        days = [date(first.year, first.month, number) for number in range(1, last_day + 1)]
        if self.until is not None:
            elapsed = [day for day in days if day <= self.until.date()]
            days = elapsed or [first]
        business = [day for day in days if day.weekday() < 5]
        return business or days

    def slots(self, month: str, total: int) -> list[date]:
        """One date per record to create in ``month``, ordered by day."""

        days = self.working_days(month)
        result: list[date] = []
        for day, amount in zip(days, self.distribute(total, days)):
            result.extend([day] * amount)
        return result


@dataclass(frozen=True, slots=True)
class ValueConstraints:
    min_value: Decimal
    max_value: Decimal
    avg_value: Decimal
    whale_ratio: float = 0.05


@dataclass(frozen=True, slots=True)
class ValueMixture:
    """Tuning of the three-tier deal value mixture."""

    bulk_threshold: float = 0.70
    mid_threshold: float = 0.95
    bulk_mean_factor: float = 0.6
    mid_mean_factor: float = 1.8
    bulk_sigma: float = 0.4
    mid_sigma: float = 0.35
    tail_alpha: float = 1.6
    tail_scale_factor: float = 3.0
    value_variance: float = 0.10
    open_share: float = 0.6


@dataclass(frozen=True, slots=True)
class PipelineValues:
    won: list[Decimal]
    open: list[Decimal]
    lost: list[Decimal]


class ValueAllocator:
    """Draw realistic deal values and force them to an exact total."""

    def __init__(self, rng: SeededRNG, mixture: Optional[ValueMixture] = None) -> None:
        self.rng = rng
        self.mixture = mixture or ValueMixture()

    def draw(self, mean: float, constraints: ValueConstraints) -> float:
        mixture = self.mixture
        roll = self.rng.next()
        if roll <= mixture.bulk_threshold:
            value = self.rng.lognormal(mean * mixture.bulk_mean_factor, mixture.bulk_sigma)
        elif roll <= mixture.mid_threshold:
            value = self.rng.lognormal(mean * mixture.mid_mean_factor, mixture.mid_sigma)
        else:
            value = self.rng.pareto(mixture.tail_alpha, mean * mixture.tail_scale_factor)
        return min(float(constraints.max_value), max(float(constraints.min_value), value))

    def allocate_values(
        self, count: int, total: Decimal, constraints: ValueConstraints
    ) -> list[Decimal]:
        """``count`` values whose sum is exactly ``total``."""

        total_cents = to_cents(total)
        if count <= 0:
            return []
        if total_cents <= 0:
            return [Decimal("0.00")] * count
        mean = total_cents / 100 / count
        raw = [self.draw(mean, constraints) for _ in range(count)]
        return [from_cents(cents) for cents in self._fit_to_total(raw, total_cents, constraints)]

    def _fit_to_total(
        self, raw: list[float], total_cents: int, constraints: ValueConstraints
    ) -> list[int]:
        scale = total_cents / (sum(raw) * 100) if sum(raw) > 0 else 0.0
        low = to_cents(constraints.min_value)
        high = to_cents(constraints.max_value)
        cents = [max(1, int(value * 100 * scale)) for value in raw]
        drift = total_cents - sum(cents)
        order = sorted(range(len(cents)), key=lambda i: cents[i], reverse=True)

        # Spread drift without leaving the band where possible, then force exactness.
        if drift:
            step = 1 if drift > 0 else -1
            per_value = max(1, abs(drift) // len(cents))
            for index in order:
                if drift == 0:
                    break
                current = cents[index]
                target = current + step * min(per_value, abs(drift))
                if step > 0:
                    target = min(target, max(high, current))
                else:
                    target = max(target, min(low, current), 1)
                moved = target - current
                cents[index] = target
                drift -= moved
            if drift:
                index = order[0] if drift > 0 else max(range(len(cents)), key=lambda i: cents[i])
                cents[index] += drift
                if cents[index] < 0:
                    overflow = -cents[index]
                    cents[index] = 0
                    for other in order:
                        if overflow == 0:
                            break
                        take = min(overflow, cents[other])
                        cents[other] -= take
                        overflow -= take
        return cents

    def allocate_pipeline_values(
        self,
        deals: int,
        won: int,
        pipeline_value: Decimal,
        won_value: Decimal,
        constraints: ValueConstraints,
    ) -> PipelineValues:
        """Values for won, open and lost deals of one month.

        Won values sum to ``won_value``; open values sum to the pipeline that is
        not yet won. Lost deals do not count toward the pipeline and get a
        plausible value between the band minimum and average.
        """

        won = min(won, deals)
        won_values = self.allocate_values(won, won_value, constraints)
        remaining = deals - won
        open_count = math.ceil(remaining * self.mixture.open_share)
        lost_count = remaining - open_count
        open_total = max(Decimal("0"), pipeline_value - won_value)
        open_values = self.allocate_values(open_count, open_total, constraints)
        lost_values = [
            from_cents(
                to_cents(
                    Decimal(str(self.rng.float(float(constraints.min_value), float(constraints.avg_value))))
                )
            )
            for _ in range(lost_count)
        ]
        return PipelineValues(won=won_values, open=open_values, lost=lost_values)

    def single_value(self, constraints: ValueConstraints) -> Decimal:
        if self.rng.bool(constraints.whale_ratio):
            value = self.rng.float(float(constraints.avg_value) * 2, float(constraints.max_value))
        else:
            value = self.rng.lognormal(float(constraints.avg_value), 0.4)
            value = min(float(constraints.max_value), max(float(constraints.min_value), value))
        return from_cents(round(value * 100))
