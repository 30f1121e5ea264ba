"""Reporting routes; figures include stored metric overrides."""
from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from crm_demo.domain.types import MonthlyKpiSnapshot
from crm_demo.schemas.patch import PeriodMetricsResponse, PeriodMonthMetrics
from crm_demo.services import ReportingService
from crm_demo.web.dependencies import get_db_session

router = APIRouter(prefix="/reports", tags=["reports"])

_MONTH_PATTERN = r"^\d{4}-(0[1-9]|1[0-2])$"


def _month_metrics(snapshot: MonthlyKpiSnapshot) -> PeriodMonthMetrics:
    return PeriodMonthMetrics(month=snapshot.month, **dict(snapshot.metrics))


@router.get("/tenants/{tenant_id}/metrics", response_model=PeriodMetricsResponse)
def period_metrics(
    tenant_id: int,
    start: str = Query(..., pattern=_MONTH_PATTERN),
    end: str = Query(..., pattern=_MONTH_PATTERN),
    session: Session = Depends(get_db_session),
) -> PeriodMetricsResponse:
    """Monthly metrics of ``tenant_id`` between ``start`` and ``end`` (YYYY-MM, inclusive)."""

    metrics = ReportingService(session).period_metrics(tenant_id, start, end)
    return PeriodMetricsResponse(
        tenant_id=metrics.tenant_id,
        start_month=metrics.start_month,
        end_month=metrics.end_month,
        months=[_month_metrics(snapshot) for snapshot in metrics.months],
        totals=_month_metrics(metrics.totals),
    )
