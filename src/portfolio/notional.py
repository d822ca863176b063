"""Notional / Leverage Adjustment.

부모 전략의 AUM 기준으로 계산된 가중치를 중첩 전략 자체 AUM 기준으로 변환하는 비율입니다.
예: 부모 100M 기준 100% 노출은 AUM 50M 하위 전략 안에서 200% 노출이 됩니다.

개별 레버리지 cap과 리밸런싱 임계값 비교에서 사용됩니다.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from src.market.timeseries import observation_count
from src.models.types import natural_series_kind

if TYPE_CHECKING:
    import pandas as pd

    from src.host.ports import InstrumentPort

# ── Constants ─────────────────────────────────────────────────────

_NEUTRAL_ADJUSTMENT = 1.0
_MIN_COUNTABLE_OBSERVATIONS = 3


def countable_positions(instrument: InstrumentPort, when: pd.Timestamp) -> int:
    """중첩 전략 portfolio 내 집계 대상 포지션 수.

    non-reserve, units != 0, 관측치 3개 이상인 가상 포지션만 셉니다.
    """
    strategy = instrument.strategy
    portfolio = None if strategy is None else strategy.portfolio
    if portfolio is None:
        return 0
    count = 0
    for position in portfolio.aggregated_position_orders(when):
        child = position.instrument
        if portfolio.is_reserve(child) or position.units == 0:
            continue
        series = child.get_series(natural_series_kind(child.category))
        if observation_count(series, when) >= _MIN_COUNTABLE_OBSERVATIONS:
            count += 1
    return count


def notional_adjustment(instrument: InstrumentPort, when: pd.Timestamp, reference_aum: float) -> float:
    """``strategy_aum / reference_aum`` (중첩 전략), 그 외 1.0.

    Args:
        instrument: 대상 instrument
        when: 평가일
        reference_aum: 부모 전략 기준 AUM

    Returns:
        notional 변환 비율 (집계 대상 포지션이 없거나 AUM이 0이면 1.0)
    """
    strategy = instrument.strategy
    if strategy is None or strategy.portfolio is None or reference_aum == 0:
        return _NEUTRAL_ADJUSTMENT
    strategy_aum = strategy.next_aum(when)
    if strategy_aum == 0 or countable_positions(instrument, when) == 0:
        return _NEUTRAL_ADJUSTMENT
    return strategy_aum / reference_aum
