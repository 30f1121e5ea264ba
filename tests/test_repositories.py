from datetime import date, datetime
from decimal import Decimal

import pytest

from crm_demo.repositories.base import BaseRepository


def test_coerce_datetime_accepts_sqlite_text() -> None:
    assert BaseRepository._coerce_datetime("2024-02-03 10:15:00.000000") == datetime(2024, 2, 3, 10, 15)
    assert BaseRepository._coerce_datetime("2024-02-03 10:15:00 extra") == datetime(2024, 2, 3, 10, 15)
    assert BaseRepository._coerce_datetime(date(2024, 2, 3)) == datetime(2024, 2, 3)


def test_coerce_datetime_rejects_missing_values() -> None:
    with pytest.raises(ValueError):
        BaseRepository._coerce_datetime(None)


def test_to_decimal() -> None:
    assert BaseRepository._to_decimal(None) == Decimal(0)
    assert BaseRepository._to_decimal(12.5) == Decimal("12.5")
