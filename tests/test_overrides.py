from decimal import Decimal

import pytest
from sqlalchemy.orm import Session

from crm_demo.domain.types import MonthlyKpiSnapshot
from crm_demo.generator.overrides import MetricOverride, MetricOverrideStore, fold_all, fold_overrides
from crm_demo.models import DemoMetricOverride, Tenant

from factories import NOW


def _snapshot(month: str = "2024-01") -> MonthlyKpiSnapshot:
    return MonthlyKpiSnapshot(
        month=month,
        metrics={
            "leads_created": 40,
            "contacts_created": 120,
            "deals_created": 30,
            "closed_won_count": 6,
            "closed_won_value": Decimal("18000.00"),
        },
    )


def test_fold_adds_set_fields() -> None:
    override = MetricOverride(tenant_id=1, month="2024-01", contacts_created=30, closed_won_value=Decimal("500.50"))

    folded = fold_overrides(_snapshot(), override)

    assert folded.get("contacts_created") == 150
    assert folded.get("closed_won_value") == Decimal("18500.50")
    assert folded.get("deals_created") == 30
    assert folded.get("leads_created") == 40


def test_fold_without_override_is_identity() -> None:
    base = _snapshot()

    assert fold_overrides(base, None) is base
    assert fold_overrides(base, MetricOverride(tenant_id=1, month="2024-01")) == base


def test_fold_all_matches_by_month() -> None:
    overrides = {"2024-02": MetricOverride(tenant_id=1, month="2024-02", deals_created=5)}

    folded = fold_all([_snapshot("2024-01"), _snapshot("2024-02")], overrides)

    assert [snapshot.get("deals_created") for snapshot in folded] == [30, 35]


def test_store_upsert_accumulates(session: Session) -> None:
    """A second upsert adds to stored fields and sets fields that were unset."""

    tenant = Tenant(name="Demo", is_demo=True)
    session.add(tenant)
    session.flush()
    store = MetricOverrideStore(session)

    store.upsert(tenant.id, "2024-01", {"contacts_created": 30}, now=NOW)
    store.upsert(
        tenant.id, "2024-01", {"contacts_created": 5, "closed_won_value": Decimal("250.25")}, now=NOW
    )
    session.commit()

    overrides = store.read(tenant.id, ["2024-01", "2024-02"])

    assert set(overrides) == {"2024-01"}
    override = overrides["2024-01"]
    assert override.contacts_created == 35
    assert override.closed_won_value == Decimal("250.25")
    assert override.deals_created is None
    assert session.query(DemoMetricOverride).count() == 1


def test_store_rejects_unsupported_metric(session: Session) -> None:
    with pytest.raises(ValueError):
        MetricOverrideStore(session).upsert(1, "2024-01", {"leads_created": 3}, now=NOW)


def test_unset_override_is_none() -> None:
    row = DemoMetricOverride(
        tenant_id=1,
        month="2024-01",
        contacts_created_override=-1,
        companies_created_override=-1,
        deals_created_override=7,
        closed_won_count_override=-1,
        closed_won_value_override=Decimal("-1"),
        activities_created_override=-1,
    )

    override = MetricOverride.from_row(row)

    assert override.deltas() == {"deals_created": 7}
