from decimal import Decimal

from sqlalchemy.orm import Session

from crm_demo.domain.enums import PatchMode, PlanType
from crm_demo.domain.months import is_month_key
from crm_demo.domain.types import MonthlyKpiSnapshot, PatchMonth, PatchPlan
from crm_demo.generator.chunked import JobProgress
from crm_demo.generator.kpi import KpiAggregator
from crm_demo.generator.patch_validator import compute_deltas, generate_preview, validate_patch_plan

from factories import TODAY

JANUARY = MonthlyKpiSnapshot(
    "2024-01",
    {
        "leads_created": 8,
        "contacts_created": 20,
        "companies_created": 6,
        "deals_created": 10,
        "closed_won_count": 3,
        "closed_won_value": Decimal("9000.00"),
        "pipeline_added_value": Decimal("25000.00"),
        "activities_created": 40,
    },
)


def _plan(mode: PatchMode, *months: PatchMonth, plan_type: PlanType = PlanType.TARGETS) -> PatchPlan:
    return PatchPlan(mode=mode, plan_type=plan_type, months=tuple(months))


def _validate(session: Session, tenant_id: int, plan: PatchPlan):
    current = KpiAggregator(session, tenant_id).snapshots_for(
        [month.month for month in plan.months if is_month_key(month.month)]
    )
    return validate_patch_plan(session, tenant_id, plan, current, today=TODAY)


def test_valid_additive_plan(session: Session, generated_tenant: JobProgress) -> None:
    plan = _plan(PatchMode.ADDITIVE, PatchMonth("2024-02", {"contacts_created": 30, "leads_created": 12}))

    result = _validate(session, generated_tenant.tenant_id, plan)

    assert result.valid
    assert result.errors == []


def test_month_range_errors(session: Session, generated_tenant: JobProgress) -> None:
    plan = _plan(
        PatchMode.ADDITIVE,
        PatchMonth("2023-12", {"contacts_created": 5}),
        PatchMonth("2024-07", {"contacts_created": 5}),
        PatchMonth("2024-13", {"contacts_created": 5}),
        PatchMonth("2023-12", {"contacts_created": 5}),
    )

    result = _validate(session, generated_tenant.tenant_id, plan)
    messages = [issue.message for issue in result.errors]

    assert not result.valid
    assert any("before tenant creation date" in message for message in messages)
    assert any("in the future" in message for message in messages)
    assert any("Invalid month format: 2024-13" in message for message in messages)
    assert "Duplicate month in plan: 2023-12" in messages


def test_target_consistency_errors(session: Session, generated_tenant: JobProgress) -> None:
    plan = _plan(
        PatchMode.RECONCILE,
        PatchMonth(
            "2024-01",
            {
                "deals_created": 3,
                "closed_won_count": 5,
                "leads_created": 30,
                "contacts_created": 25,
                "closed_won_value": Decimal("9000"),
                "pipeline_added_value": Decimal("8000"),
            },
        ),
    )

    result = _validate(session, generated_tenant.tenant_id, plan)

    assert {issue.path for issue in result.errors} == {
        "months[0].metrics.closedWonCount",
        "months[0].metrics.leadsCreated",
        "months[0].metrics.pipelineAddedValue",
    }


def test_won_value_needs_won_deals(session: Session, generated_tenant: JobProgress) -> None:
    plan = _plan(
        PatchMode.RECONCILE,
        PatchMonth("2024-01", {"closed_won_count": 0, "closed_won_value": Decimal("100")}),
    )

    result = _validate(session, generated_tenant.tenant_id, plan)

    assert [issue.path for issue in result.errors] == ["months[0].metrics.closedWonValue"]


def test_non_demo_tenant_is_rejected(session: Session) -> None:
    plan = _plan(PatchMode.ADDITIVE, PatchMonth("2024-01", {"contacts_created": 5}))

    result = validate_patch_plan(session, 999, plan, [], today=TODAY)

    assert not result.valid
    assert [issue.path for issue in result.errors] == ["tenantId"]


def test_empty_plan_and_growth_warning(session: Session, generated_tenant: JobProgress) -> None:
    empty = _validate(session, generated_tenant.tenant_id, _plan(PatchMode.ADDITIVE))
    assert not empty.valid

    plan = _plan(
        PatchMode.ADDITIVE,
        PatchMonth("2024-02", {"contacts_created": 30}),
        PatchMonth("2024-03", {"contacts_created": 200}),
        plan_type=PlanType.DELTAS,
    )
    result = _validate(session, generated_tenant.tenant_id, plan)

    assert result.valid
    assert any("growth rate" in issue.message for issue in result.warnings)


def test_compute_deltas_for_targets() -> None:
    plan = _plan(
        PatchMode.ADDITIVE,
        PatchMonth("2024-01", {"contacts_created": 26, "closed_won_value": Decimal("9500.50")}),
    )

    months, blockers = compute_deltas(plan, [JANUARY])

    assert blockers == []
    assert months[0].metrics == {"contacts_created": 6, "closed_won_value": Decimal("500.50")}


def test_compute_deltas_blocks_negative_additive_deltas() -> None:
    plan = _plan(
        PatchMode.ADDITIVE, PatchMonth("2024-01", {"deals_created": -2}), plan_type=PlanType.DELTAS
    )

    months, blockers = compute_deltas(plan, [JANUARY])

    assert months[0].metrics == {"deals_created": 0}
    assert blockers == ["2024-01: Negative delta (-2) for dealsCreated not allowed in additive mode."]


def test_compute_deltas_reconcile_allows_reductions() -> None:
    plan = _plan(PatchMode.RECONCILE, PatchMonth("2024-01", {"contacts_created": 15}))

    months, blockers = compute_deltas(plan, [JANUARY])

    assert blockers == []
    assert months[0].metrics == {"contacts_created": -5}


def test_compute_deltas_metrics_only_blocks_pipeline() -> None:
    plan = _plan(
        PatchMode.METRICS_ONLY, PatchMonth("2024-01", {"pipeline_added_value": Decimal("30000")})
    )

    _, blockers = compute_deltas(plan, [JANUARY])

    assert blockers == ["2024-01: pipelineAddedValue cannot be overridden in metrics-only mode."]


def test_preview_counts_records() -> None:
    plan = _plan(
        PatchMode.RECONCILE,
        PatchMonth(
            "2024-01",
            {"contacts_created": 22, "leads_created": 12, "deals_created": 8, "companies_created": 9},
        ),
    )

    preview = generate_preview(plan, [JANUARY])

    assert preview.feasible
    assert preview.records_to_create == {"companies": 3, "contacts": 4, "deals": 0, "activities": 0}
    assert preview.records_to_delete["deals"] == 2
    assert any("2 demo-generated records will be deleted" in warning for warning in preview.warnings)


def test_preview_metrics_only_counts_overrides() -> None:
    plan = _plan(PatchMode.METRICS_ONLY, PatchMonth("2024-01", {"contacts_created": 30}))

    wire = generate_preview(plan, [JANUARY]).to_wire()

    assert wire["overridesToWrite"] == 1
    assert wire["estimatedRecords"]["contacts"] == 0
    assert wire["feasible"] is True
