"""Target strategies feeding per-month targets to the chunked generator."""
from __future__ import annotations

from datetime import date
from typing import Optional

from crm_demo.domain.enums import GenerationMode
from crm_demo.domain.types import (
    DemoConfig,
    MonthlyPlan,
    MonthlyTarget,
    ToleranceConfig,
    ValidationIssue,
)
from crm_demo.generator.growth_planner import GrowthPlanner
from crm_demo.generator.plan_validator import validate_monthly_plan


class TargetStrategy:
    """Source of the month-by-month targets a job must hit."""

    mode: GenerationMode

    def monthly_targets(self) -> list[MonthlyTarget]:
        raise NotImplementedError

    def validate(self) -> list[ValidationIssue]:
        raise NotImplementedError

    @property
    def tolerances(self) -> ToleranceConfig:
        raise NotImplementedError

    def month_keys(self) -> list[str]:
        return [target.month for target in self.monthly_targets()]


class GrowthCurveStrategy(TargetStrategy):
    mode = GenerationMode.GROWTH_CURVE

    def __init__(self, config: DemoConfig, *, today: Optional[date] = None) -> None:
        self.config = config
        self.planner = GrowthPlanner(config, today=today)

    def monthly_targets(self) -> list[MonthlyTarget]:
        return [allocation.as_target() for allocation in self.planner.plan()]

    def validate(self) -> list[ValidationIssue]:
        return self.planner.validate()

    @property
    def tolerances(self) -> ToleranceConfig:
        return self.config.tolerances


class MonthlyPlanStrategy(TargetStrategy):
    mode = GenerationMode.MONTHLY_PLAN

    def __init__(self, plan: MonthlyPlan, *, today: Optional[date] = None) -> None:
        self.plan = plan
        self.today = today

    def monthly_targets(self) -> list[MonthlyTarget]:
        return list(self.plan.months)

    def validate(self) -> list[ValidationIssue]:
        return list(validate_monthly_plan(self.plan, today=self.today).errors)

    @property
    def tolerances(self) -> ToleranceConfig:
        return self.plan.tolerances


def strategy_for(config: DemoConfig, *, today: Optional[date] = None) -> TargetStrategy:
    """Pick the strategy matching ``config.mode``."""

    if config.mode is GenerationMode.GROWTH_CURVE:
        return GrowthCurveStrategy(config, today=today)
    if config.mode is GenerationMode.MONTHLY_PLAN:
        if config.monthly_plan is None:
            raise ValueError("monthly-plan mode requires a monthly plan")
        return MonthlyPlanStrategy(config.monthly_plan, today=today)
    raise ValueError(f"Unsupported generation mode: {config.mode}")
