from datetime import date
from decimal import Decimal

from crm_demo.domain.enums import GrowthCurve, Industry
from crm_demo.domain.types import DemoConfig, GrowthConfig, VolumeTargets
from crm_demo.generator.growth_planner import GrowthPlanner, apportion, curve_weights

TODAY = date(2024, 6, 15)


def _config(**overrides) -> DemoConfig:
    values = dict(
        country="US",
        industry=Industry.SAAS,
        start_date=date(2024, 1, 1),
        months=6,
        targets=VolumeTargets(
            leads=300,
            contacts=500,
            companies=200,
            pipeline_value=Decimal("500000"),
            closed_won_value=Decimal("150000"),
            closed_won_count=100,
        ),
    )
    values.update(overrides)
    return DemoConfig(**values)


def test_apportion_sums_exactly() -> None:
    for total, weights in ((100, [1, 1, 1]), (7, [0.2, 0.5, 0.3]), (1, [1, 2, 3, 4]), (0, [1, 1])):
        parts = apportion(total, weights)
        assert sum(parts) == total
        assert all(part >= 0 for part in parts)


def test_apportion_skips_zero_weights() -> None:
    parts = apportion(10, [0, 1, 0, 1])

    assert parts[0] == 0
    assert parts[2] == 0
    assert sum(parts) == 10


def test_exponential_curve_grows() -> None:
    weights = curve_weights(4, GrowthCurve.EXPONENTIAL, 10)

    assert weights == sorted(weights)
    assert weights[0] == 1


def test_plan_totals_match_targets() -> None:
    """Per-month targets always add back up to the configured totals."""

    preview = GrowthPlanner(_config(), today=TODAY).preview()

    assert [month.month for month in preview.months] == [
        "2024-01", "2024-02", "2024-03", "2024-04", "2024-05", "2024-06",
    ]
    totals = preview.totals
    assert totals.contacts_created == 500
    assert totals.leads_created == 300
    assert totals.companies_created == 200
    assert totals.closed_won_count == 100
    assert totals.closed_won_value == Decimal("150000")
    assert totals.pipeline_added_value == Decimal("500000")


def test_plan_months_are_consistent() -> None:
    for curve in GrowthCurve:
        config = _config(growth=GrowthConfig(curve=curve, monthly_rate=20, seasonality=True))
        for allocation in GrowthPlanner(config, today=TODAY).plan():
            targets = allocation.targets
            assert targets.leads_created <= targets.contacts_created
            assert targets.closed_won_count <= targets.deals_created
            assert targets.closed_won_value <= targets.pipeline_added_value
            assert allocation.start.day == 1
            assert allocation.end.month == allocation.start.month


def test_deals_derive_from_win_rate() -> None:
    """Trading wins a quarter of its deals, so deals are four times the wins."""

    config = _config(
        industry=Industry.TRADING,
        growth=GrowthConfig(curve=GrowthCurve.LINEAR, monthly_rate=0, seasonality=False),
    )

    months = GrowthPlanner(config, today=TODAY).plan()

    assert all(month.targets.deals_created == month.targets.closed_won_count * 4 for month in months)


def test_span_defaults_to_start_through_today() -> None:
    planner = GrowthPlanner(_config(months=None, start_date=date(2023, 10, 20)), today=TODAY)

    assert planner.span == 9
    assert planner.plan()[-1].month == "2024-06"


def test_validate_reports_inconsistent_targets() -> None:
    config = _config(
        targets=VolumeTargets(
            leads=600,
            contacts=500,
            companies=200,
            pipeline_value=Decimal("1000"),
            closed_won_value=Decimal("5000"),
            closed_won_count=0,
        )
    )

    paths = {issue.path for issue in GrowthPlanner(config, today=TODAY).validate()}

    assert "targets.leads" in paths
    assert "targets.closedWonValue" in paths


def test_validate_rejects_long_spans() -> None:
    issues = GrowthPlanner(_config(months=30), today=TODAY).validate()

    assert any(issue.path == "startDate" for issue in issues)


def test_estimated_seconds_has_floor() -> None:
    assert GrowthPlanner(_config(), today=TODAY).estimated_seconds() == 5


def test_linear_curve_is_flat() -> None:
    assert curve_weights(3, GrowthCurve.LINEAR, 15) == [1.0, 1.0, 1.0]
    assert curve_weights(3, GrowthCurve.RAMP, 10) == [1.0, 1.1, 1.2]


def test_linear_plan_splits_evenly() -> None:
    config = _config(months=3, targets=VolumeTargets(contacts=300), growth=GrowthConfig(curve=GrowthCurve.LINEAR))

    months = GrowthPlanner(config, today=TODAY).plan()

    assert [month.targets.contacts_created for month in months] == [100, 100, 100]
    assert GrowthConfig().seasonality is False


def test_open_pipeline_only_in_months_with_open_deals() -> None:
    """Months without a won deal have no deal to hold open pipeline."""

    config = _config(
        start_date=date(2023, 7, 1),
        months=12,
        targets=VolumeTargets(
            leads=24,
            contacts=60,
            companies=12,
            pipeline_value=Decimal("500000"),
            closed_won_value=Decimal("50000"),
            closed_won_count=10,
        ),
        growth=GrowthConfig(curve=GrowthCurve.LINEAR, monthly_rate=0),
    )

    months = [allocation.targets for allocation in GrowthPlanner(config, today=TODAY).plan()]

    assert any(month.closed_won_count == 0 for month in months)
    for month in months:
        if month.pipeline_added_value > month.closed_won_value:
            assert month.deals_created > month.closed_won_count
    assert sum(month.pipeline_added_value for month in months) == Decimal("500000")
    assert sum(month.closed_won_count for month in months) == 10


def test_open_pipeline_without_wins_gets_a_deal() -> None:
    config = _config(
        months=3,
        targets=VolumeTargets(
            leads=3,
            contacts=3,
            companies=3,
            pipeline_value=Decimal("1000"),
            closed_won_value=Decimal("0"),
            closed_won_count=0,
        ),
        growth=GrowthConfig(curve=GrowthCurve.LINEAR),
    )

    months = [allocation.targets for allocation in GrowthPlanner(config, today=TODAY).plan()]

    assert [month.deals_created for month in months] == [1, 0, 0]
    assert [month.pipeline_added_value for month in months] == [Decimal("1000"), 0, 0]
