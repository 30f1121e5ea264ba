"""Monthly KPI queries over a tenant's CRM rows."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from sqlalchemy import DateTime, bindparam, text
from sqlalchemy.sql.elements import TextClause

from .base import BaseRepository

_WINDOW = """
    {alias}tenant_id = :tenant_id
    AND {alias}deleted_at IS NULL
    AND {alias}created_at >= :start
    AND {alias}created_at < :end
"""

_COUNTED_TABLES = ("company", "contact", "deal", "activity")


def _windowed(sql: str) -> TextClause:
    return text(sql).bindparams(
        bindparam("start", type_=DateTime()),
        bindparam("end", type_=DateTime()),
    )


@dataclass(frozen=True)
class MonthCountsRow:
    leads: int
    contacts: int
    companies: int
    deals: int
    closed_won_count: int
    closed_won_value: Decimal
    pipeline_value: Decimal
    activities: int


class KpiRepository(BaseRepository):
    """Counts and sums of rows created inside a ``[start, end)`` window."""

    def count_created(self, table: str, tenant_id: int, start: datetime, end: datetime) -> int:
        if table not in _COUNTED_TABLES:
            raise ValueError(f"Unsupported table: {table}")
        statement = _windowed(
            f"SELECT COUNT(*) FROM {table} WHERE {_WINDOW.format(alias='')}"
        )
        return self._scalar(statement, {"tenant_id": tenant_id, "start": start, "end": end})

    def count_leads(self, tenant_id: int, start: datetime, end: datetime) -> int:
        statement = _windowed(
            f"""
            SELECT COUNT(*)
            FROM contact
            WHERE {_WINDOW.format(alias='')}
              AND status = 'lead'
            """
        )
        return self._scalar(statement, {"tenant_id": tenant_id, "start": start, "end": end})

    def closed_won(self, tenant_id: int, start: datetime, end: datetime) -> tuple[int, Decimal]:
        statement = _windowed(
            f"""
            SELECT COUNT(*) AS won_count, COALESCE(SUM(d.value), 0) AS won_value
            FROM deal d
            JOIN pipeline_stage s ON s.id = d.stage_id
            WHERE {_WINDOW.format(alias='d.')}
              AND s.is_won = 1
            """
        )
        row = self._session.execute(
            statement, {"tenant_id": tenant_id, "start": start, "end": end}
        ).one()
        return int(row.won_count or 0), self._to_decimal(row.won_value).quantize(Decimal("0.01"))

    def pipeline_value(self, tenant_id: int, start: datetime, end: datetime) -> Decimal:
        """Value of won and open deals; lost deals are not pipeline."""

        statement = _windowed(
            f"""
            SELECT COALESCE(SUM(d.value), 0)
            FROM deal d
            JOIN pipeline_stage s ON s.id = d.stage_id
            WHERE {_WINDOW.format(alias='d.')}
              AND s.is_lost = 0
            """
        )
        return self._scalar_money(statement, {"tenant_id": tenant_id, "start": start, "end": end})

    def month_counts(self, tenant_id: int, start: datetime, end: datetime) -> MonthCountsRow:
        won_count, won_value = self.closed_won(tenant_id, start, end)
        return MonthCountsRow(
            leads=self.count_leads(tenant_id, start, end),
            contacts=self.count_created("contact", tenant_id, start, end),
            companies=self.count_created("company", tenant_id, start, end),
            deals=self.count_created("deal", tenant_id, start, end),
            closed_won_count=won_count,
            closed_won_value=won_value,
            pipeline_value=self.pipeline_value(tenant_id, start, end),
            activities=self.count_created("activity", tenant_id, start, end),
        )
