from datetime import date, datetime
from decimal import Decimal

from crm_demo.domain.types import MonthlyMetricTargets
from crm_demo.generator.allocators import (
    MonthlyAllocator,
    ValueAllocator,
    ValueConstraints,
    ValueMixture,
)
from crm_demo.generator.rng import SeededRNG

CONSTRAINTS = ValueConstraints(
    min_value=Decimal("500"), max_value=Decimal("50000"), avg_value=Decimal("5000")
)


def test_distribute_sums_exactly() -> None:
    allocator = MonthlyAllocator(SeededRNG(11))
    days = allocator.working_days("2024-02")

    for total in (0, 1, 7, 133, 2500):
        parts = allocator.distribute(total, days)
        assert sum(parts) == total
        assert all(part >= 0 for part in parts)


def test_working_days_are_weekdays() -> None:
    days = MonthlyAllocator(SeededRNG(1)).working_days("2024-03")

    assert len(days) == 21
    assert all(day.weekday() < 5 for day in days)


def test_working_days_stop_at_until() -> None:
    """The current month only offers days up to the reference time."""

    allocator = MonthlyAllocator(SeededRNG(1), until=datetime(2024, 6, 5, 10, 0))

    days = allocator.working_days("2024-06")

    assert days == [date(2024, 6, 3), date(2024, 6, 4), date(2024, 6, 5)]


def test_working_days_fall_back_when_only_weekend_elapsed() -> None:
    allocator = MonthlyAllocator(SeededRNG(1), until=datetime(2024, 6, 1, 8, 0))

    assert allocator.working_days("2024-06") == [date(2024, 6, 1)]


def test_timestamps_never_pass_until() -> None:
    until = datetime(2024, 6, 5, 10, 0)
    allocator = MonthlyAllocator(SeededRNG(4), until=until)

    stamps = [allocator.generate_timestamp(day) for day in allocator.slots("2024-06", 40)]

    assert len(stamps) == 40
    assert all(stamp <= until for stamp in stamps)
    assert all(stamp.month == 6 for stamp in stamps)


def test_allocate_month_spreads_counts_over_business_days() -> None:
    allocator = MonthlyAllocator(SeededRNG(8))
    targets = MonthlyMetricTargets(contacts_created=120, leads_created=40, deals_created=30)

    schedule = allocator.allocate_month("2024-04", targets)

    assert sum(day.count("contacts_created") for day in schedule.days) == 120
    assert sum(day.count("leads_created") for day in schedule.days) == 40
    assert all(day.count("deals_created") == 0 for day in schedule.days if not day.is_business_day)


def test_allocate_values_hits_total_to_the_cent() -> None:
    allocator = ValueAllocator(SeededRNG(1234))

    for count, total in ((1, "999.99"), (7, "12345.67"), (40, "200000"), (3, "0.05")):
        values = allocator.allocate_values(count, Decimal(total), CONSTRAINTS)
        assert len(values) == count
        assert sum(values) == Decimal(total)
        assert all(value >= 0 for value in values)


def test_allocate_values_edge_cases() -> None:
    allocator = ValueAllocator(SeededRNG(2))

    assert allocator.allocate_values(0, Decimal("100"), CONSTRAINTS) == []
    assert allocator.allocate_values(3, Decimal("0"), CONSTRAINTS) == [Decimal("0.00")] * 3


def test_pipeline_values_split_won_open_and_lost() -> None:
    allocator = ValueAllocator(SeededRNG(77))

    values = allocator.allocate_pipeline_values(
        deals=10, won=3, pipeline_value=Decimal("25000"), won_value=Decimal("9000"), constraints=CONSTRAINTS
    )

    assert len(values.won) == 3
    assert len(values.open) == 5
    assert len(values.lost) == 2
    assert sum(values.won) == Decimal("9000")
    assert sum(values.won) + sum(values.open) == Decimal("25000")
    assert all(CONSTRAINTS.min_value <= value <= CONSTRAINTS.avg_value for value in values.lost)


def test_pipeline_values_without_open_share_are_all_lost() -> None:
    allocator = ValueAllocator(SeededRNG(77), ValueMixture(open_share=0.0))

    values = allocator.allocate_pipeline_values(4, 1, Decimal("3000"), Decimal("3000"), CONSTRAINTS)

    assert values.open == []
    assert len(values.lost) == 3
    assert values.won == [Decimal("3000.00")]
