"""Risk-budget weight stages.

7단계 가중치 변환을 순수 함수로 정의합니다.
각 단계는 이전 단계의 읽기 전용 가중치 맵을 받아 새 맵을 반환하며, 입력을 변경하지 않습니다.
가중치 맵의 key 집합은 평가 중 변하지 않습니다 (시계열 적격 universe).

Stages:
    1. seed_equal_weights: 1/N 동일가중 seed
    2. individual_volatility: 자산별 변동성 타겟팅 (+ exposure / 중첩 전략 notional 배분)
    3. concentration_tilt: 상관관계·information ratio 기반 집중도 tilt
    4. portfolio_volatility: 포트폴리오 변동성 타겟팅
    5. individual_leverage_cap: 자산별 최대 레버리지
    6. global_leverage_cap: 포트폴리오 최대 레버리지
    7. var_cap: 252개 rolling 20일 P&L 기반 VaR 조정

Rules Applied:
    - Functional Pipeline: immutable MappingProxyType 전달
    - #10 Python Standards: Modern typing, named constants
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from types import MappingProxyType
from typing import TYPE_CHECKING

import numpy as np
from loguru import logger

from src.market.timeseries import MIN_OBSERVATIONS, closest_prior_index, value_at
from src.portfolio.aggregator import fx_rate, natural_series, nested_portfolio
from src.portfolio.notional import notional_adjustment
from src.portfolio.optimization import optimize

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping

    import numpy.typing as npt
    import pandas as pd

    from src.host.ports import FxPort, InstrumentPort, PortfolioPort, StrategyPort
    from src.portfolio.config import StrategyParameters
    from src.portfolio.risk_model import RiskModel

    WeightMap = Mapping[str, float]

# ── Constants ─────────────────────────────────────────────────────

EPSILON = 1e-5
ROUNDING_DIGITS = 5
VAR_OBSERVATIONS = 252
VAR_HORIZON_DAYS = 20
VAR_QUANTILE = 0.01


@dataclass(frozen=True)
class StageContext:
    """단계 공통 입력 (평가 중 불변).

    Attributes:
        when: 평가일
        reference_aum: 기준 AUM
        params: 전략 설정 snapshot
        series_map: {id: 공통 그리드 현금 차분 시계열}
        instruments: {id: instrument} (series_map의 key와 동일)
        risk_model: risk / exposure / information ratio capability
        fx: 환율 포트
        portfolio_currency: 부모 포트폴리오 통화
    """

    when: pd.Timestamp
    reference_aum: float
    params: StrategyParameters
    series_map: Mapping[str, pd.Series]
    instruments: Mapping[str, InstrumentPort]
    risk_model: RiskModel
    fx: FxPort
    portfolio_currency: str

    @property
    def target_volatility(self) -> float:
        return self.params.target_volatility or 0.0


def _freeze(weights: dict[str, float]) -> WeightMap:
    return MappingProxyType(weights)


def _scale(weights: WeightMap, factor: float) -> WeightMap:
    return _freeze({iid: w * factor for iid, w in weights.items()})


# ── Stage 1 ───────────────────────────────────────────────────────


def seed_equal_weights(ctx: StageContext) -> WeightMap:
    """적격 instrument별 1/N."""
    n = len(ctx.series_map)
    return _freeze({iid: 1.0 / n for iid in ctx.series_map})


# ── Stage 2 ───────────────────────────────────────────────────────


def _nested_volatility_weight(
    ctx: StageContext,
    instrument: InstrumentPort,
    strategy: StrategyPort,
    n: int,
) -> float:
    ts = ctx.series_map.get(instrument.id)
    target = ctx.target_volatility
    strategy_aum = strategy.next_aum(ctx.when)

    if strategy_aum == 0 or ts is None:
        vol = 0.0
    elif len(ts) < MIN_OBSERVATIONS:
        vol = target
    else:
        vol = ctx.risk_model.risk(ts, strategy_aum)

    if ts is None:
        allocation = 1.0
    elif strategy_aum == 0:
        allocation = 0.0
    else:
        allocation = ctx.reference_aum / strategy_aum

    dp = 1.0 if vol < EPSILON or not ctx.params.individual_target_volatility else target / vol
    if dp < EPSILON:
        dp = 0.0
    return dp * (1.0 / n if allocation == 0 else allocation)


def _leaf_volatility_weight(ctx: StageContext, instrument: InstrumentPort) -> float:
    ts = ctx.series_map.get(instrument.id)
    target = ctx.target_volatility
    if ts is None or len(ts) < MIN_OBSERVATIONS:
        vol = target
    else:
        vol = ctx.risk_model.risk(ts, ctx.reference_aum)

    exposure = (
        ctx.risk_model.exposure(instrument, ctx.when, ctx.params) if ctx.params.exposure else 1.0
    )
    dp = 1.0 if vol < EPSILON or not ctx.params.individual_target_volatility else target / vol
    return dp * exposure


def individual_volatility(weights: WeightMap, ctx: StageContext) -> WeightMap:
    """자산별 ``target_vol / own_vol`` 가중치.

    leaf는 exposure 관리가 켜져 있으면 exposure 값을 곱하고,
    중첩 전략은 자체 AUM 기준 risk와 ``reference_aum / strategy_aum`` notional 배분을 사용합니다.
    """
    n = len(weights)
    result: dict[str, float] = {}
    for iid in weights:
        instrument = ctx.instruments[iid]
        strategy = instrument.strategy
        if strategy is not None and strategy.portfolio is not None:
            result[iid] = _nested_volatility_weight(ctx, instrument, strategy, n)
        else:
            result[iid] = _leaf_volatility_weight(ctx, instrument)
    return _freeze(result)


# ── Stage 3 ───────────────────────────────────────────────────────


def concentration_tilt(weights: WeightMap, ctx: StageContext) -> WeightMap:
    """가중 시계열의 집중도 최적화 결과를 가중치에 곱합니다.

    집중도 관리가 꺼져 있으면 동일가중 벡터를 곱합니다.
    """
    if not weights:
        return weights
    ids = list(weights)
    if ctx.params.concentration:
        weighted = [ctx.series_map[iid] * weights[iid] for iid in ids]
        ratios = [
            ctx.risk_model.information_ratio(ctx.instruments[iid], ctx.when, ctx.params)
            for iid in ids
        ]
        optimal: npt.NDArray[np.float64] = optimize(weighted, ratios)
    else:
        optimal = np.full(len(ids), 1.0 / len(ids))
    return _freeze({iid: weights[iid] * float(optimal[i]) for i, iid in enumerate(ids)})


# ── Stage 4 ───────────────────────────────────────────────────────


def portfolio_volatility(weights: WeightMap, ctx: StageContext) -> WeightMap:
    """합산 가중 시계열의 risk로 ``target_vol / portfolio_vol`` 스케일."""
    if not weights:
        return weights
    aggregate: pd.Series | None = None
    for iid, w in weights.items():
        term = ctx.series_map[iid] * w
        aggregate = term if aggregate is None else aggregate + term

    target = ctx.target_volatility
    if aggregate is None:
        portfolio_vol = target
    else:
        portfolio_vol = ctx.risk_model.risk(aggregate, ctx.reference_aum)
    if portfolio_vol < EPSILON or not ctx.params.global_target_volatility:
        dpp = 1.0
    else:
        dpp = target / portfolio_vol
    logger.debug("Portfolio volatility scale | vol={:.6f} dpp={:.6f}", portfolio_vol, dpp)
    return _scale(weights, dpp)


# ── Stage 5 ───────────────────────────────────────────────────────


def individual_leverage_cap(weights: WeightMap, ctx: StageContext) -> WeightMap:
    """``sign(w) × min(max_leverage, |w × adj|) / adj`` (adj = notional adjustment)."""
    cap = ctx.params.individual_maximum_leverage
    if cap is None:
        return weights
    result: dict[str, float] = {}
    for iid, w in weights.items():
        adj = notional_adjustment(ctx.instruments[iid], ctx.when, ctx.reference_aum)
        result[iid] = math.copysign(min(cap, abs(w * adj)), w) / adj
    return _freeze(result)


# ── Stage 6 ───────────────────────────────────────────────────────


def _nested_notional(ctx: StageContext, portfolio: PortfolioPort, weight: float) -> float:
    """중첩 전략 가상 포지션의 포트폴리오 통화 notional × weight."""
    total = 0.0
    for position in portfolio.aggregated_position_orders(ctx.when):
        child = position.instrument
        if portfolio.is_reserve(child):
            continue
        price = value_at(natural_series(child), ctx.when)
        if price is None:
            continue
        value = ctx.fx.convert(
            price * position.units * child.point_size,
            ctx.when,
            ctx.portfolio_currency,
            child.currency,
        )
        if np.isfinite(value):
            total += abs(weight) * value
    return total


def aggregate_notional(weights: WeightMap, ctx: StageContext) -> float:
    """가중치가 의미하는 총 notional (중첩 전략은 하위 포지션까지 재귀 환산)."""
    total = 0.0
    for iid, w in weights.items():
        portfolio = nested_portfolio(ctx.instruments[iid])
        if portfolio is not None:
            total += _nested_notional(ctx, portfolio, w)
        else:
            total += abs(w) * ctx.reference_aum
    return total


def global_leverage_cap(weights: WeightMap, ctx: StageContext) -> WeightMap:
    """총 notional이 ``max_leverage × reference_aum`` 을 넘으면 비례 축소 (5자리 반올림 비교)."""
    cap = ctx.params.global_maximum_leverage
    if not weights or cap is None:
        return weights
    total = aggregate_notional(weights, ctx)
    limit = cap * ctx.reference_aum
    if round(total, ROUNDING_DIGITS) > round(limit, ROUNDING_DIGITS):
        scale = limit / total
        logger.debug(
            "Global leverage cap | notional={:.2f} limit={:.2f} scale={:.6f}", total, limit, scale
        )
        return _scale(weights, scale)
    return weights


# ── Stage 7 ───────────────────────────────────────────────────────


def _window_bounds(idx: int) -> tuple[npt.NDArray[np.int64], npt.NDArray[np.int64]]:
    """252개 rolling 20일 구간의 (first, last) 위치 인덱스."""
    i = np.arange(1, VAR_OBSERVATIONS + 1)
    last = np.maximum(0, idx - VAR_OBSERVATIONS + i)
    first = np.maximum(0, last - VAR_HORIZON_DAYS)
    return first, last


def _rolling_changes(
    ctx: StageContext,
    series: pd.Series | None,
    currency: str,
) -> tuple[npt.NDArray[np.float64], npt.NDArray[np.float64], npt.NDArray[np.float64]] | None:
    """(포트폴리오 통화 가격 변화, 구간 끝 fx, 구간 끝 가격). 이력이 없으면 None."""
    if series is None:
        return None
    idx = closest_prior_index(series, ctx.when)
    if idx is None:
        return None
    first, last = _window_bounds(idx)
    values = series.to_numpy(dtype=float)
    dates = series.index
    fx_cache: dict[int, float] = {}

    def rate(pos: int) -> float:
        if pos not in fx_cache:
            fx_cache[pos] = fx_rate(ctx.fx, dates[pos], ctx.portfolio_currency, currency)
        return fx_cache[pos]

    fx_last = np.array([rate(int(p)) for p in last])
    fx_first = np.array([rate(int(p)) for p in first])
    change = values[last] * fx_last - values[first] * fx_first
    return change, fx_last, values[last]


def portfolio_pnl(weights: WeightMap, ctx: StageContext) -> npt.NDArray[np.float64]:
    """현재 가중치 기준 252개 rolling 20일 포트폴리오 P&L (포트폴리오 통화)."""
    pnl = np.zeros(VAR_OBSERVATIONS)
    for iid, w in weights.items():
        instrument = ctx.instruments[iid]
        portfolio = nested_portfolio(instrument)
        if portfolio is not None:
            for position in portfolio.aggregated_position_orders(ctx.when):
                child = position.instrument
                if portfolio.is_reserve(child):
                    continue
                changes = _rolling_changes(ctx, natural_series(child), child.currency)
                if changes is None:
                    continue
                change, _, _ = changes
                pnl += np.nan_to_num(change * position.units * child.point_size * w)
            continue

        changes = _rolling_changes(ctx, natural_series(instrument), instrument.currency)
        if changes is None:
            continue
        change, fx_last, price_last = changes
        denom = fx_last * price_last
        with np.errstate(divide="ignore", invalid="ignore"):
            contribution = np.where(denom != 0, change * w * ctx.reference_aum / denom, 0.0)
        pnl += np.nan_to_num(contribution)
    return pnl


def _lower_tail_quantile(pnl: npt.NDArray[np.float64]) -> float:
    """정렬된 P&L의 ``q × (n - 1) + 1`` 위치 선형 보간 (q = 0.01, n = 252 → 3.51)."""
    ordered = np.sort(pnl)
    position = VAR_QUANTILE * (len(ordered) - 1) + 1.0
    lower = int(position)
    fraction = position - lower
    return float(ordered[lower] + fraction * (ordered[lower + 1] - ordered[lower]))


def value_at_risk(weights: WeightMap, ctx: StageContext) -> float:
    """1% 하위 꼬리 rolling 20일 P&L / reference AUM (부호 있는 비율, 손실은 음수)."""
    pnl = portfolio_pnl(weights, ctx)
    return _lower_tail_quantile(pnl) / ctx.reference_aum


def var_cap(weights: WeightMap, ctx: StageContext) -> WeightMap:
    """VaR 조정.

    실현 VaR이 목표 이내(부호 비교로 ``realized >= target``, 손실이 목표보다 작음)이고
    ``target / VaR`` 이 양수일 때만 그 비율로 스케일합니다 (확대 허용).
    목표를 이미 넘어선 손실(breach)은 강제 축소 없이 가중치를 그대로 둡니다.
    """
    target = ctx.params.target_var
    if not weights or not ctx.params.var_enabled or target is None:
        return weights
    realized = value_at_risk(weights, ctx)
    if realized == 0 or realized < target:
        logger.debug("VaR unchanged | realized={:.6f} target={:.6f}", realized, target)
        return weights
    scale = target / realized
    if scale <= 0:
        logger.debug(
            "VaR unchanged (sign mismatch) | realized={:.6f} target={:.6f}", realized, target
        )
        return weights
    logger.debug("VaR scale | realized={:.6f} target={:.6f} scale={:.6f}", realized, target, scale)
    return _scale(weights, scale)


# ── Sequence ──────────────────────────────────────────────────────

WEIGHT_STAGES: tuple[tuple[str, Callable[[WeightMap, StageContext], WeightMap]], ...] = (
    ("individual_volatility", individual_volatility),
    ("concentration", concentration_tilt),
    ("portfolio_volatility", portfolio_volatility),
    ("individual_leverage", individual_leverage_cap),
    ("global_leverage", global_leverage_cap),
    ("value_at_risk", var_cap),
)
