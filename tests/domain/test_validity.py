from __future__ import annotations

from datetime import datetime

import pytest

from conftest import NOW, make_summary
from tenderwatch.domain.models import TenderRecord
from tenderwatch.domain.validity import is_valid, select_eligible


def _record(code: str = "1-1-LE24", **kwargs) -> TenderRecord:
    return TenderRecord.model_validate(make_summary(code, **kwargs))


@pytest.mark.parametrize("status", [None, 1, 4, 6, 7, 8, 15, 18, 19])
def test_non_published_status_is_never_valid(status) -> None:
    assert not is_valid(_record(status=status, close="2099-01-01T00:00:00"), NOW)


@pytest.mark.parametrize(
    "close",
    ["2024-05-02T12:00:00", "2024-05-02T11:59:59", "2020-01-01T00:00:00"],
)
def test_close_date_not_after_now_is_invalid(close: str) -> None:
    assert not is_valid(_record(close=close), NOW)


def test_missing_or_unparsable_close_date_is_invalid() -> None:
    assert not is_valid(_record(close=None), NOW)
    assert not is_valid(_record(close="mañana"), NOW)


def test_published_with_future_close_date_is_valid() -> None:
    assert is_valid(_record(), NOW)
    assert is_valid(_record(nested=False), NOW)


def test_fractional_close_date_one_second_ahead() -> None:
    assert is_valid(_record(close="2024-05-02T12:00:01.50"), NOW)


def test_validity_is_deterministic_for_fixed_now() -> None:
    record = _record(close="2024-05-02T13:00:00")
    later = datetime(2024, 5, 2, 14, 0, 0)

    assert [is_valid(record, NOW) for _ in range(3)] == [True, True, True]
    assert not is_valid(record, later)


def test_select_eligible_keeps_input_order() -> None:
    summaries = [
        _record("C"),
        _record("X", status=6),
        _record("A"),
        _record("Y", close="2020-01-01T00:00:00"),
        _record("B"),
    ]

    eligible = select_eligible(summaries, NOW)

    assert [record.external_code for record in eligible] == ["C", "A", "B"]
