"""Exposure / Risk Model.

파이프라인에서 전략별로 교체 가능한 유일한 동작입니다.
``RiskModel`` Protocol의 capability slot을 구현한 객체를 한 번 생성해 파이프라인에 전달하며,
``DefaultRiskModel`` 을 상속해 원하는 slot만 override할 수 있습니다.

Capability slots:
    - high_low_mark: 고점 / 고점 이후 저점 / 현재 / 직전 값 추적
    - risk: 현금 차분 시계열의 연환산 변동성 비율
    - exposure: 변동성 적응형 stop-loss (0.0 또는 1.0)
    - information_ratio: drawdown 기반 기대수익 proxy

Rules Applied:
    - Strategy Pattern: Protocol + 기본 구현, 부분 override
    - #10 Python Standards: Modern typing, named constants
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, runtime_checkable

import numpy as np

from src.market.timeseries import (
    TRADING_DAYS_PER_YEAR,
    annualized_volatility,
    history_until,
    quadratic_variation,
)
from src.models.types import InstrumentCategory, natural_series_kind

if TYPE_CHECKING:
    import pandas as pd

    from src.host.ports import InstrumentPort
    from src.portfolio.config import StrategyParameters

# ── Constants ─────────────────────────────────────────────────────

_FULL_EXPOSURE = 1.0
_NO_EXPOSURE = 0.0
_NEUTRAL_INFORMATION_RATIO = 1.0
_MIN_PRICES = 2


@dataclass(frozen=True)
class HighLowMark:
    """고점/저점 추적 결과.

    Attributes:
        high: 평가일까지의 최고값 (HWM)
        low: 마지막 최고값 이후 최저값 (LWM)
        current: 평가일 값
        prior: 평가일 직전 값
        history: 평가일까지의 가격 이력
    """

    high: float
    low: float
    current: float
    prior: float
    history: pd.Series


@runtime_checkable
class RiskModel(Protocol):
    """전략별 risk / exposure / information-ratio capability."""

    def high_low_mark(self, instrument: InstrumentPort, when: pd.Timestamp) -> HighLowMark | None: ...

    def risk(self, series: pd.Series, reference_aum: float) -> float: ...

    def exposure(
        self,
        instrument: InstrumentPort,
        when: pd.Timestamp,
        params: StrategyParameters,
    ) -> float: ...

    def information_ratio(
        self,
        instrument: InstrumentPort,
        when: pd.Timestamp,
        params: StrategyParameters,
    ) -> float: ...


class DefaultRiskModel:
    """기본 risk model.

    Example:
        >>> class AlwaysInvested(DefaultRiskModel):
        ...     def exposure(self, instrument, when, params):
        ...         return 1.0
    """

    def _price_source(self, instrument: InstrumentPort, when: pd.Timestamp) -> InstrumentPort:
        """단일 leaf 자산만 보유한 중첩 전략은 그 자산의 시계열을 사용 (look-through)."""
        strategy = instrument.strategy
        if strategy is None or strategy.portfolio is None:
            return instrument
        children = strategy.instruments(when)
        if len(children) == 1 and children[0].category != InstrumentCategory.STRATEGY:
            return children[0]
        return instrument

    def high_low_mark(self, instrument: InstrumentPort, when: pd.Timestamp) -> HighLowMark | None:
        """평가일까지 전체 이력의 HWM / LWM / 현재 / 직전 값.

        Returns:
            HighLowMark, 이력이 없으면 None
        """
        source = self._price_source(instrument, when)
        series = source.get_series(natural_series_kind(source.category))
        if series is None:
            return None
        history = history_until(series, when).dropna()
        if history.empty:
            return None

        values = history.to_numpy(dtype=float)
        high = float(values.max())
        last_high_pos = len(values) - 1 - int(np.argmax(values[::-1] == high))
        low = float(values[last_high_pos:].min())
        current = float(values[-1])
        prior = float(values[-2]) if len(values) >= _MIN_PRICES else current
        return HighLowMark(high=high, low=low, current=current, prior=prior, history=history)

    def risk(self, series: pd.Series, reference_aum: float) -> float:
        """Quadratic variation × √252 / reference AUM.

        reference AUM이 0이거나 시계열이 비어 있으면 0.0 (중립 처리는 호출자 몫).
        """
        qv = quadratic_variation(series)
        if reference_aum == 0 or np.isnan(qv):
            return 0.0
        return qv * float(np.sqrt(TRADING_DAYS_PER_YEAR)) / reference_aum

    def exposure(
        self,
        instrument: InstrumentPort,
        when: pd.Timestamp,
        params: StrategyParameters,
    ) -> float:
        """변동성 적응형 stop-loss.

        현재가가 ``HWM × (1 − threshold × vol)`` 아래로 떨어지면 stop 상태입니다.
        stop 상태에서는 현재가가 ``(1 + vol) × LWM`` 아래일 때만 1.0 (역추세 재진입),
        그 외에는 0.0을 반환합니다. stop 상태가 아니면 1.0입니다.
        """
        threshold = params.exposure_threshold
        if threshold is None:
            return _FULL_EXPOSURE
        mark = self.high_low_mark(instrument, when)
        if mark is None or len(mark.history) < _MIN_PRICES:
            return _FULL_EXPOSURE

        vol = annualized_volatility(mark.history, params.days_back)
        stopped = mark.current < mark.high * (1.0 - threshold * vol)
        if not stopped:
            return _FULL_EXPOSURE
        return _FULL_EXPOSURE if mark.current < (1.0 + vol) * mark.low else _NO_EXPOSURE

    def information_ratio(
        self,
        instrument: InstrumentPort,
        when: pd.Timestamp,
        params: StrategyParameters,
    ) -> float:
        """``1 + min(cur/HWM − 1, 0) + (cur/LWM − 1)``. 고점/저점이 양수가 아니면 1.0."""
        mark = self.high_low_mark(instrument, when)
        if mark is None or mark.high <= 0 or mark.low <= 0:
            return _NEUTRAL_INFORMATION_RATIO
        return 1.0 + min(mark.current / mark.high - 1.0, 0.0) + (mark.current / mark.low - 1.0)
