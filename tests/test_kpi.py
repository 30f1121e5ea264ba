from decimal import Decimal

from crm_demo.domain.types import MonthlyKpiSnapshot, PatchMonth, PatchPlan, ToleranceConfig
from crm_demo.domain.enums import PatchMode, PlanType
from crm_demo.generator.kpi import build_verification_report, compute_diff, within_tolerance

from factories import month_target


def test_count_tolerance() -> None:
    exact = ToleranceConfig(count_tolerance=0)
    loose = ToleranceConfig(count_tolerance=2)

    assert not within_tolerance("contacts_created", 100, 98, exact)
    assert within_tolerance("contacts_created", 100, 98, loose)
    assert within_tolerance("contacts_created", 100, 100, exact)


def test_value_tolerance_is_relative() -> None:
    assert within_tolerance("closed_won_value", Decimal("100000"), Decimal("99600"), ToleranceConfig(value_tolerance=0.005))
    assert not within_tolerance(
        "closed_won_value", Decimal("100000"), Decimal("99600"), ToleranceConfig(value_tolerance=0.001)
    )
    assert within_tolerance("pipeline_added_value", Decimal("0"), Decimal("0"), ToleranceConfig())


def test_verification_report_counts_failures() -> None:
    targets = [
        month_target("2024-01", leads=5, contacts=10, companies=2, deals=4, won=1, won_value="1000", pipeline="3000")
    ]
    actuals = {
        "2024-01": MonthlyKpiSnapshot(
            "2024-01",
            {
                "leads_created": 5,
                "contacts_created": 9,
                "companies_created": 2,
                "deals_created": 4,
                "closed_won_count": 1,
                "closed_won_value": Decimal("1000.00"),
                "pipeline_added_value": Decimal("3000.00"),
            },
        )
    }

    report = build_verification_report(targets, actuals, ToleranceConfig(), tenant_id=7, job_id=3)

    assert not report.overall_passed
    assert report.total_metrics == 7
    assert report.failed_metrics == 1
    wire = report.to_wire()
    assert wire["jobId"] == 3
    assert wire["tenantId"] == 7
    failed = [metric for metric in wire["months"][0]["metrics"] if not metric["passed"]]
    assert failed[0]["metric"] == "contactsCreated"
    assert failed[0]["diff"] == -1


def test_missing_month_counts_as_zero() -> None:
    targets = [month_target("2024-02", contacts=3)]

    report = build_verification_report(targets, {}, ToleranceConfig(), tenant_id=1)

    assert report.failed_metrics == 1
    assert report.passed_metrics == 6


def test_patch_diff_checks_only_plan_metrics() -> None:
    plan = PatchPlan(
        mode=PatchMode.ADDITIVE,
        plan_type=PlanType.TARGETS,
        months=(PatchMonth("2024-01", {"contacts_created": 30}),),
    )
    before = [MonthlyKpiSnapshot("2024-01", {"contacts_created": 20, "deals_created": 4})]
    after = [MonthlyKpiSnapshot("2024-01", {"contacts_created": 30, "deals_created": 4})]

    report = compute_diff(before, after, plan)

    assert report.overall_passed
    wire = report.to_wire()
    assert wire["overallPassed"] is True
