"""Shared helpers for repositories."""
from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any

from sqlalchemy.engine import Result
from sqlalchemy.orm import Session
from sqlalchemy.sql.elements import TextClause

from crm_demo.domain.types import CENT


class BaseRepository:
    """Base repository providing convenience helpers."""

    def __init__(self, session: Session) -> None:
        self._session = session

    def _scalar(self, statement: TextClause, params: dict[str, Any] | None = None) -> int:
        """Execute ``statement`` and return the scalar integer result."""

        result: Result[Any] = self._session.execute(statement, params or {})
        value = result.scalar() or 0
        return int(value)

    def _scalar_money(self, statement: TextClause, params: dict[str, Any] | None = None) -> Decimal:
        result: Result[Any] = self._session.execute(statement, params or {})
        return self._to_decimal(result.scalar()).quantize(CENT)

    @staticmethod
    def _to_decimal(value: Any) -> Decimal:
        if isinstance(value, Decimal):
            return value
        if value is None:
            return Decimal(0)
        return Decimal(str(value))

    @staticmethod
    def _coerce_datetime(value: Any) -> datetime:
        if isinstance(value, datetime):
            return value
        if isinstance(value, date):
            return datetime(value.year, value.month, value.day)
        if value is None:
            raise ValueError("Cannot convert None to datetime")
        text_value = str(value)
        try:
            return datetime.fromisoformat(text_value)
        except ValueError:
            if len(text_value) >= 19:
                return datetime.fromisoformat(text_value[:19])
            raise
