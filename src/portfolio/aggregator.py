"""Synthetic Time-Series Aggregator.

전략 universe의 각 instrument에 대해 평가일 기준 AUM 스케일 현금 차분 시계열을 만듭니다.

- leaf instrument: lookback 구간을 ``reference_aum * fx / last`` 로 정규화한 뒤 차분
- 중첩 전략: 하위 instrument별 현금 차분 × 보유 units 합산 (aggregated P&L proxy)
- 마지막으로 가장 긴 시리즈의 날짜 그리드로 재정렬 (forward fill, NaN → 0)

적격 instrument가 없으면 빈 dict를 반환하며, 호출자는 bootstrap 로직으로 처리합니다.

Rules Applied:
    - #10 Python Standards: Modern typing, named constants
    - #12 Data Engineering: Vectorized pandas operations
"""

from __future__ import annotations

import math
from typing import TYPE_CHECKING

from loguru import logger

from src.market.timeseries import (
    MIN_OBSERVATIONS,
    align_to_longest,
    difference,
    lookback_window,
    observation_count,
    value_at,
)
from src.models.types import natural_series_kind

if TYPE_CHECKING:
    import pandas as pd

    from src.host.ports import FxPort, InstrumentPort, PortfolioPort, StrategyPort

# ── Constants ─────────────────────────────────────────────────────

_MIN_CHILD_OBSERVATIONS = 2  # 차분에 필요한 최소 관측치


# ── Helpers ───────────────────────────────────────────────────────


def natural_series(instrument: InstrumentPort) -> pd.Series | None:
    """카테고리에 해당하는 자연 시계열."""
    return instrument.get_series(natural_series_kind(instrument.category))


def fx_rate(fx: FxPort, when: pd.Timestamp, portfolio_currency: str, instrument_currency: str) -> float:
    """instrument 통화 1단위의 포트폴리오 통화 환산값 (NaN이면 1.0)."""
    rate = fx.convert(1.0, when, portfolio_currency, instrument_currency)
    return 1.0 if rate is None or math.isnan(rate) else rate


def nested_portfolio(instrument: InstrumentPort) -> PortfolioPort | None:
    """자체 portfolio를 가진 중첩 전략이면 그 portfolio, 아니면 None."""
    strategy = instrument.strategy
    return None if strategy is None else strategy.portfolio


def _is_reserve(portfolio: PortfolioPort | None, instrument: InstrumentPort) -> bool:
    return portfolio is not None and portfolio.is_reserve(instrument)


def has_eligible_descendant(
    strategy: StrategyPort,
    when: pd.Timestamp,
    path: frozenset[str],
) -> bool:
    """하위 트리에 관측치가 충분한 non-reserve instrument가 있는지 (재귀, 순환 방지).

    Args:
        strategy: 중첩 전략
        when: 평가일
        path: 현재 재귀 경로상의 instrument id 집합

    Returns:
        적격 하위 instrument 존재 여부
    """
    path = path | {strategy.instrument.id}
    portfolio = strategy.portfolio
    for child in strategy.instruments(when):
        if child.id in path:
            logger.warning(
                "Cycle detected in nested strategy tree | {parent} -> {child}",
                parent=strategy.instrument.id,
                child=child.id,
            )
            continue
        if _is_reserve(portfolio, child):
            continue
        child_strategy = child.strategy
        if child_strategy is not None and child_strategy.portfolio is not None:
            if has_eligible_descendant(child_strategy, when, path):
                return True
        elif observation_count(natural_series(child), when) >= MIN_OBSERVATIONS:
            return True
    return False


# ── Series Builders ───────────────────────────────────────────────


def leaf_series(
    instrument: InstrumentPort,
    when: pd.Timestamp,
    reference_aum: float,
    lookback_days: int | None,
    fx: FxPort,
    portfolio_currency: str,
) -> pd.Series | None:
    """Leaf instrument의 AUM 스케일 현금 차분 시계열."""
    series = natural_series(instrument)
    if series is None:
        return None
    window = lookback_window(series, when, lookback_days)
    last = float(window.iloc[-1])
    rate = fx_rate(fx, when, portfolio_currency, instrument.currency)
    return difference(window * (reference_aum * rate / last))


def nested_series(
    strategy: StrategyPort,
    when: pd.Timestamp,
    lookback_days: int | None,
    fx: FxPort,
    path: frozenset[str],
) -> pd.Series | None:
    """중첩 전략의 aggregated P&L proxy 시계열.

    하위 instrument별 lookback 구간을 마지막 값으로 정규화하고
    ``last price × fx × point size`` 로 현금 환산한 뒤 차분하여 보유 units를 곱합니다.
    길이가 첫 하위 시리즈와 같은 시리즈만 합산합니다.
    """
    portfolio = strategy.portfolio
    if portfolio is None:
        return None
    path = path | {strategy.instrument.id}
    units = {vp.instrument.id: vp.units for vp in portfolio.aggregated_position_orders(when)}

    total: pd.Series | None = None
    for child in strategy.instruments(when):
        if child.id in path:
            logger.warning(
                "Skipping child already on aggregation path | {parent} -> {child}",
                parent=strategy.instrument.id,
                child=child.id,
            )
            continue
        series = natural_series(child)
        if (
            series is None
            or portfolio.is_reserve(child)
            or observation_count(series, when) < _MIN_CHILD_OBSERVATIONS
        ):
            continue

        window = lookback_window(series, when, lookback_days)
        last_price = value_at(series, when)
        if last_price is None:
            continue
        rate = fx_rate(fx, when, portfolio.currency, child.currency)
        cash = window / float(window.iloc[-1]) * last_price * rate * child.point_size
        pnl = difference(cash) * units.get(child.id, 0.0)

        if total is None:
            total = pnl
        elif len(total) == len(pnl):
            total = total + pnl.to_numpy()
    return total


def build_series_map(
    strategy: StrategyPort,
    when: pd.Timestamp,
    reference_aum: float,
    lookback_days: int | None,
    fx: FxPort,
) -> dict[str, pd.Series]:
    """전략 universe의 평가일 기준 synthetic 시계열 맵.

    Args:
        strategy: 평가 대상 전략
        when: 평가일
        reference_aum: 기준 AUM
        lookback_days: lookback 관측치 수 (None이면 전체 이력)
        fx: 환율 포트

    Returns:
        {instrument_id: 공통 그리드 현금 차분 시계열} (적격 instrument만)
    """
    portfolio = strategy.portfolio
    currency = portfolio.currency if portfolio is not None else strategy.instrument.currency
    root = frozenset({strategy.instrument.id})

    raw: dict[str, pd.Series] = {}
    for instrument in strategy.instruments(when):
        if _is_reserve(portfolio, instrument) or instrument.id in root:
            continue

        nested = instrument.strategy
        if nested is not None and nested.portfolio is not None:
            if not has_eligible_descendant(nested, when, root):
                continue
            series = nested_series(nested, when, lookback_days, fx, root)
        else:
            if observation_count(natural_series(instrument), when) < MIN_OBSERVATIONS:
                continue
            series = leaf_series(instrument, when, reference_aum, lookback_days, fx, currency)

        if series is not None:
            raw[instrument.id] = series

    logger.debug(
        "Series map built | strategy={sid} eligible={n}/{total}",
        sid=strategy.instrument.id,
        n=len(raw),
        total=len(strategy.instruments(when)),
    )
    return align_to_longest(raw)
