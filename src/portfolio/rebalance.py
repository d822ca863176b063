"""Rebalance schedule.

리밸런싱 주기 코드를 평가일에 적용해 리밸런싱 여부를 판단합니다.

Codes:
    - 0: 매일
    - -1: 주의 마지막 영업일
    - 1..31: 월의 N번째 영업일
    - 32: 월말 영업일
    - 33: 분기말 (3/6/9/12월) 영업일
    - 34: 연말 영업일
    - None / 그 외: 스케줄 없음

미체결 주문이 하나라도 있으면 코드와 무관하게 리밸런싱합니다.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from src.models.types import RebalanceFrequency

if TYPE_CHECKING:
    import pandas as pd

    from src.host.ports import CalendarPort

# ── Constants ─────────────────────────────────────────────────────

_MAX_BUSINESS_DAY_OF_MONTH = 31
_QUARTER_END_MONTHS = frozenset({3, 6, 9, 12})
_YEAR_END_MONTH = 12


def _is_month_end(calendar: CalendarPort, when: pd.Timestamp) -> bool:
    following = calendar.next_business_day(when)
    return calendar.business_day_of_month(when) > calendar.business_day_of_month(following)


def is_rebalance_day(code: int | None, when: pd.Timestamp, calendar: CalendarPort) -> bool:
    """주기 코드 기준 리밸런싱 예정일 여부.

    Args:
        code: 리밸런싱 주기 코드
        when: 평가일
        calendar: 영업일 달력

    Returns:
        리밸런싱 예정일이면 True
    """
    if code is None:
        return False
    if code == RebalanceFrequency.DAILY:
        return True
    if code == RebalanceFrequency.WEEK_END:
        return when.weekday() > calendar.next_business_day(when).weekday()
    if 0 < code <= _MAX_BUSINESS_DAY_OF_MONTH:
        return calendar.business_day_of_month(when) == code
    if code == RebalanceFrequency.MONTH_END:
        return _is_month_end(calendar, when)
    if code == RebalanceFrequency.QUARTER_END:
        return when.month in _QUARTER_END_MONTHS and _is_month_end(calendar, when)
    if code == RebalanceFrequency.YEAR_END:
        return when.month == _YEAR_END_MONTH and _is_month_end(calendar, when)
    return False


def rebalance_due(
    code: int | None,
    when: pd.Timestamp,
    calendar: CalendarPort,
    *,
    has_open_orders: bool,
) -> bool:
    """미체결 주문이 있으면 강제 리밸런싱, 아니면 스케줄 판단."""
    return has_open_orders or is_rebalance_day(code, when, calendar)
