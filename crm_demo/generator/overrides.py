"""Per-month metric overrides and the reporting fold.

Storage keeps ``-1`` for "not overridden" in every column; everything above the
storage layer sees ``None`` instead.
"""
from __future__ import annotations

from dataclasses import dataclass, fields, replace
from datetime import datetime
from decimal import Decimal
from typing import Iterable, Mapping, Optional

from sqlalchemy import case, select
from sqlalchemy.dialects import mysql, sqlite
from sqlalchemy.orm import Session

from crm_demo.core.log import get_logger
from crm_demo.domain.types import (
    ACTIVITIES,
    COMPANIES,
    CONTACTS,
    DEALS,
    WON_COUNT,
    WON_VALUE,
    MonthlyKpiSnapshot,
    Number,
    coerce_metric,
    to_decimal,
)
from crm_demo.models import OVERRIDE_UNSET, DemoMetricOverride

LOGGER = get_logger(__name__)

OVERRIDABLE_METRICS: tuple[str, ...] = (
    CONTACTS.key,
    COMPANIES.key,
    DEALS.key,
    WON_COUNT.key,
    WON_VALUE.key,
    ACTIVITIES.key,
)


def column_for(metric: str) -> str:
    return f"{metric}_override"


def decode(value: object) -> Optional[Number]:
    """Translate a stored override to ``None`` when it holds the sentinel."""

    if value is None or to_decimal(value) == OVERRIDE_UNSET:
        return None
    return to_decimal(value)


def encode(value: Optional[Number]) -> Number:
    return OVERRIDE_UNSET if value is None else value


@dataclass(frozen=True, slots=True)
class MetricOverride:
    tenant_id: int
    month: str
    contacts_created: Optional[int] = None
    companies_created: Optional[int] = None
    deals_created: Optional[int] = None
    closed_won_count: Optional[int] = None
    closed_won_value: Optional[Decimal] = None
    activities_created: Optional[int] = None
    patch_job_id: Optional[int] = None

    def get(self, metric: str) -> Optional[Number]:
        if metric not in OVERRIDABLE_METRICS:
            return None
        return getattr(self, metric)

    def deltas(self) -> dict[str, Number]:
        return {metric: self.get(metric) for metric in OVERRIDABLE_METRICS if self.get(metric) is not None}

    def is_empty(self) -> bool:
        return not self.deltas()

    @classmethod
    def from_row(cls, row: DemoMetricOverride) -> "MetricOverride":
        values: dict[str, Optional[Number]] = {}
        for metric in OVERRIDABLE_METRICS:
            raw = getattr(row, column_for(metric))
            stored = decode(raw)
            values[metric] = None if stored is None else coerce_metric(metric, stored)
        return cls(tenant_id=row.tenant_id, month=row.month, patch_job_id=row.patch_job_id, **values)

    def to_wire(self) -> dict[str, object]:
        payload: dict[str, object] = {"tenantId": self.tenant_id, "month": self.month}
        for field_info in fields(self):
            if field_info.name in OVERRIDABLE_METRICS:
                value = getattr(self, field_info.name)
                payload[field_info.name] = None if value is None else float(value)
        return payload


def fold_overrides(
    base: MonthlyKpiSnapshot, override: Optional[MetricOverride]
) -> MonthlyKpiSnapshot:
    """Add every set override field to the computed base metric."""

    if override is None:
        return base
    metrics = dict(base.metrics)
    for metric, delta in override.deltas().items():
        metrics[metric] = coerce_metric(metric, to_decimal(base.get(metric)) + to_decimal(delta))
    return replace(base, metrics=metrics)


def fold_all(
    snapshots: Iterable[MonthlyKpiSnapshot], overrides: Mapping[str, MetricOverride]
) -> list[MonthlyKpiSnapshot]:
    return [fold_overrides(snapshot, overrides.get(snapshot.month)) for snapshot in snapshots]


class MetricOverrideStore:
    """Reads and atomically upserts ``demo_metric_override`` rows."""

    def __init__(self, session: Session) -> None:
        self._session = session

    def read(self, tenant_id: int, months: Iterable[str]) -> dict[str, MetricOverride]:
        month_list = list(months)
        if not month_list:
            return {}
        rows = self._session.scalars(
            select(DemoMetricOverride).where(
                DemoMetricOverride.tenant_id == tenant_id,
                DemoMetricOverride.month.in_(month_list),
            )
            .execution_options(populate_existing=True)
        )
        return {row.month: MetricOverride.from_row(row) for row in rows}

    def upsert(
        self,
        tenant_id: int,
        month: str,
        deltas: Mapping[str, Number],
        *,
        patch_job_id: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> None:
        """Add ``deltas`` to the stored overrides of (tenant, month).

        Fields without a delta keep their stored value; unset fields become the
        delta itself. The statement is a single insert-or-update keyed by the
        (tenant_id, month) unique constraint.
        """

        unknown = set(deltas) - set(OVERRIDABLE_METRICS)
        if unknown:
            raise ValueError(f"Metrics cannot be overridden: {', '.join(sorted(unknown))}")
        now = now or datetime.now()
        insert_values = {
            "tenant_id": tenant_id,
            "month": month,
            "patch_job_id": patch_job_id,
            "created_at": now,
            "updated_at": now,
        }
        for metric in OVERRIDABLE_METRICS:
            insert_values[column_for(metric)] = encode(deltas.get(metric))

        table = DemoMetricOverride.__table__
        merged = {"patch_job_id": patch_job_id, "updated_at": now}
        for metric, delta in deltas.items():
            column = table.c[column_for(metric)]
            merged[column_for(metric)] = case(
                (column == OVERRIDE_UNSET, delta), else_=column + delta
            )

        dialect = self._session.get_bind().dialect.name
        if dialect == "mysql":
            statement = mysql.insert(table).values(**insert_values).on_duplicate_key_update(**merged)
        elif dialect == "sqlite":
            statement = (
                sqlite.insert(table)
                .values(**insert_values)
                .on_conflict_do_update(index_elements=["tenant_id", "month"], set_=merged)
            )
        else:
            self._locked_upsert(tenant_id, month, deltas, insert_values, patch_job_id, now)
            return
        self._session.execute(statement)
        LOGGER.debug("Upserted metric override for tenant %s month %s", tenant_id, month)

    def _locked_upsert(
        self,
        tenant_id: int,
        month: str,
        deltas: Mapping[str, Number],
        insert_values: dict[str, object],
        patch_job_id: Optional[int],
        now: datetime,
    ) -> None:
        row = self._session.scalars(
            select(DemoMetricOverride)
            .where(DemoMetricOverride.tenant_id == tenant_id, DemoMetricOverride.month == month)
            .with_for_update()
        ).first()
        if row is None:
            self._session.add(DemoMetricOverride(**insert_values))
            self._session.flush()
            return
        for metric, delta in deltas.items():
            current = decode(getattr(row, column_for(metric)))
            merged = to_decimal(delta) + (to_decimal(current) if current is not None else 0)
            setattr(row, column_for(metric), coerce_metric(metric, merged))
        row.patch_job_id = patch_job_id
        row.updated_at = now
        self._session.flush()
