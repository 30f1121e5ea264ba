from dataclasses import replace
from datetime import date
from decimal import Decimal

from crm_demo.domain.enums import GenerationMode
from crm_demo.domain.types import MonthlyPlan, ToleranceConfig, VolumeTargets
from crm_demo.generator.plan_validator import validate_config, validate_monthly_plan

from factories import TODAY, month_target, plan_config, small_plan


def _paths(issues) -> set[str]:
    return {issue.path for issue in issues}


def test_valid_plan_derives_totals() -> None:
    result = validate_monthly_plan(small_plan(), today=TODAY)

    assert result.valid
    assert result.errors == []
    assert result.derived is not None
    assert result.derived.total_contacts == 72
    assert result.derived.total_closed_won_count == 12
    assert result.derived.total_closed_won_value == Decimal("36750.50")
    assert result.derived.avg_deal_size == Decimal("3062.54")
    assert result.estimated_generation_seconds == 2


def test_empty_plan_is_invalid() -> None:
    result = validate_monthly_plan(MonthlyPlan(months=()), today=TODAY)

    assert not result.valid
    assert _paths(result.errors) == {"months"}


def test_month_level_errors() -> None:
    plan = MonthlyPlan(
        months=(
            month_target("2024-02", leads=10, contacts=5, deals=2, won=3),
            month_target("2024-01", contacts=5, won_value="100"),
            month_target("2024-13", contacts=1),
            month_target("2024-09", contacts=1),
        )
    )

    result = validate_monthly_plan(plan, today=TODAY)

    paths = _paths(result.errors)
    assert not result.valid
    assert "months[0].targets.leadsCreated" in paths
    assert "months[0].targets.closedWonCount" in paths
    assert "months[1].month" in paths
    assert "months[1].targets.closedWonValue" in paths
    assert "months[2].month" in paths
    assert "months[3].month" in paths


def test_duplicate_month_reported_once() -> None:
    plan = MonthlyPlan(months=(month_target("2024-01", contacts=3), month_target("2024-01", contacts=3)))

    result = validate_monthly_plan(plan, today=TODAY)

    messages = [issue.message for issue in result.errors]
    assert messages == ["Duplicate month 2024-01"]


def test_pipeline_below_won_value_is_an_error() -> None:
    plan = MonthlyPlan(
        months=(month_target("2024-01", contacts=3, deals=2, won=1, won_value="900", pipeline="500"),)
    )

    result = validate_monthly_plan(plan, today=TODAY)

    assert _paths(result.errors) == {"months[0].targets.pipelineAddedValue"}


def test_warnings_do_not_invalidate() -> None:
    plan = MonthlyPlan(
        months=(
            month_target("2024-01", contacts=10, deals=2, won=1, won_value="500"),
            month_target("2024-02", contacts=100),
            month_target("2024-03"),
        )
    )

    result = validate_monthly_plan(plan, today=TODAY)

    assert result.valid
    paths = _paths(result.warnings)
    assert "months[0].targets.pipelineAddedValue" in paths
    assert "months[1].targets.contactsCreated" in paths
    assert "months[2]" in paths


def test_tolerance_bounds() -> None:
    plan = replace(small_plan(), tolerances=ToleranceConfig(count_tolerance=5, value_tolerance=0.5))

    result = validate_monthly_plan(plan, today=TODAY)

    assert _paths(result.errors) == {"tolerances.countTolerance", "tolerances.valueTolerance"}


def test_config_checks_shape_and_start_date() -> None:
    config = plan_config(country="USA", team_size=1, start_date=date(2024, 7, 1))

    paths = _paths(validate_config(config, today=TODAY))

    assert {"country", "teamSize", "startDate"} <= paths


def test_config_plan_must_not_start_before_start_date() -> None:
    config = plan_config(start_date=date(2024, 2, 1))

    paths = _paths(validate_config(config, today=TODAY))

    assert "monthlyPlan.months[0].month" in paths


def test_config_prefixes_plan_errors() -> None:
    plan = MonthlyPlan(months=(month_target("2024-01", leads=5, contacts=1),))

    paths = _paths(validate_config(plan_config(plan), today=TODAY))

    assert paths == {"monthlyPlan.months[0].targets.leadsCreated"}


def test_growth_config_target_ranges() -> None:
    config = plan_config(
        mode=GenerationMode.GROWTH_CURVE,
        monthly_plan=None,
        targets=VolumeTargets(leads=10, contacts=500, companies=200, closed_won_count=1),
    )

    paths = _paths(validate_config(config, today=TODAY))

    assert paths == {"targets.leads", "targets.closedWonCount"}


def test_open_pipeline_needs_an_open_deal() -> None:
    """Every deal of the month is won, so nothing can carry the extra pipeline."""

    plan = MonthlyPlan(
        months=(month_target("2024-01", contacts=5, deals=3, won=3, won_value="3000", pipeline="5000"),)
    )

    result = validate_monthly_plan(plan, today=TODAY)

    assert _paths(result.errors) == {"months[0].targets.pipelineAddedValue"}
    assert "needs at least one deal that is not closed won" in result.errors[0].message

    plan = MonthlyPlan(
        months=(month_target("2024-01", contacts=5, deals=4, won=3, won_value="3000", pipeline="5000"),)
    )
    assert validate_monthly_plan(plan, today=TODAY).valid
