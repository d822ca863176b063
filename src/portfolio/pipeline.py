"""Risk-Budget Pipeline.

평가일마다 한 번 호출되는 가중치 계산 상태 머신입니다.

Flow:
    1. host AUM이 정확히 0이면 SKIPPED (계산/주문 없음)
    2. reference AUM = fixed notional (설정되어 있고 양수) 또는 host AUM
    3. lookback 또는 목표 변동성이 없으면 BOOTSTRAP (초기 포지션만 생성)
    4. 리밸런싱 예정일이 아니고 미체결 주문도 없으면 HOLD
    5. REBALANCE: synthetic 시계열 → 7단계 가중치 변환 → 주문 diff

각 단계의 가중치 맵은 결과에 snapshot으로 남아 재현/검증에 사용됩니다.

Rules Applied:
    - Functional Pipeline: 단계별 immutable 가중치 맵
    - #15 Logging Standards: strategy / evaluation date context binding
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import StrEnum
from types import MappingProxyType
from typing import TYPE_CHECKING

import pandas as pd

from src.core.exceptions import ConfigurationError, add_context_note
from src.logging.context import clear_context, get_current_context, get_strategy_logger
from src.portfolio.aggregator import build_series_map
from src.portfolio.config import StrategyParameters
from src.portfolio.orders import bootstrap_orders, emit_orders
from src.portfolio.rebalance import rebalance_due
from src.portfolio.risk_model import DefaultRiskModel
from src.portfolio.stages import WEIGHT_STAGES, StageContext, seed_equal_weights

if TYPE_CHECKING:
    from collections.abc import Mapping
    from datetime import datetime

    from loguru import Logger

    from src.host.ports import CalendarPort, FxPort, MemoryPort, StrategyPort
    from src.models.portfolio import OrderRequest
    from src.portfolio.risk_model import RiskModel


class PipelineMode(StrEnum):
    """평가 결과 모드."""

    SKIPPED = "skipped"
    BOOTSTRAP = "bootstrap"
    HOLD = "hold"
    REBALANCE = "rebalance"


_EMPTY_WEIGHTS: Mapping[str, float] = MappingProxyType({})


@dataclass(frozen=True)
class PipelineResult:
    """한 평가일의 파이프라인 결과.

    Attributes:
        when: 평가일
        mode: 결과 모드
        reference_aum: 사용한 기준 AUM (SKIPPED이면 0.0)
        stages: {단계 이름: 가중치 맵} (실행 순서)
        orders: 제출된 주문 요청
        run_id: 이 평가의 로그 레코드에 바인딩된 run id
    """

    when: pd.Timestamp
    mode: PipelineMode
    reference_aum: float = 0.0
    stages: Mapping[str, Mapping[str, float]] = field(default_factory=dict)
    orders: tuple[OrderRequest, ...] = ()
    run_id: str | None = None

    @property
    def weights(self) -> Mapping[str, float]:
        """최종 가중치 (단계가 실행되지 않았으면 빈 맵)."""
        if not self.stages:
            return _EMPTY_WEIGHTS
        return list(self.stages.values())[-1]


class RiskBudgetPipeline:
    """Risk-budget 가중치 파이프라인.

    Args:
        strategy: 평가 대상 전략 (자체 portfolio 필요)
        memory: 전략 메모리 (설정값)
        fx: 환율 포트
        calendar: 영업일 달력
        risk_model: risk / exposure / information ratio capability (기본: DefaultRiskModel)
    """

    def __init__(
        self,
        strategy: StrategyPort,
        memory: MemoryPort,
        fx: FxPort,
        calendar: CalendarPort,
        risk_model: RiskModel | None = None,
    ) -> None:
        self._strategy = strategy
        self._memory = memory
        self._fx = fx
        self._calendar = calendar
        self._risk_model: RiskModel = risk_model or DefaultRiskModel()

    @property
    def risk_model(self) -> RiskModel:
        return self._risk_model

    @staticmethod
    def reference_aum(host_aum: float, params: StrategyParameters) -> float:
        """fixed notional이 설정되어 있고 양수면 그 값, 아니면 host AUM."""
        fixed = params.fixed_notional
        if fixed is not None and fixed > 0:
            return fixed
        return host_aum

    def run(self, when: datetime | pd.Timestamp, host_aum: float | None = None) -> PipelineResult:
        """평가일 파이프라인 실행.

        Args:
            when: 평가일
            host_aum: host가 제공하는 AUM (None이면 전략 AUM 조회)

        Returns:
            PipelineResult

        Raises:
            ConfigurationError: 전략에 portfolio가 없을 때
        """
        ts = pd.Timestamp(when)
        log = get_strategy_logger(self._strategy.instrument.id, ts.date())
        run_id = get_current_context()["run_id"]
        try:
            result = self._evaluate(ts, host_aum, log)
        finally:
            clear_context()
        return replace(result, run_id=run_id)

    def _evaluate(self, ts: pd.Timestamp, host_aum: float | None, log: Logger) -> PipelineResult:
        strategy_id = self._strategy.instrument.id
        aum = self._strategy.aum(ts) if host_aum is None else host_aum
        if aum == 0:
            log.info("Host AUM is zero, skipping evaluation")
            return PipelineResult(when=ts, mode=PipelineMode.SKIPPED)

        portfolio = self._strategy.portfolio
        if portfolio is None:
            msg = "Strategy has no portfolio"
            raise ConfigurationError(msg, context={"strategy": strategy_id})

        params = StrategyParameters.from_memory(self._memory, ts)
        reference_aum = self.reference_aum(aum, params)
        instruments = self._strategy.instruments(ts)

        if params.bootstrap:
            series_map = build_series_map(self._strategy, ts, reference_aum, params.days_back, self._fx)
            orders = bootstrap_orders(
                series_map, instruments, ts, reference_aum, params, portfolio, self._risk_model
            )
            log.info(
                "Bootstrap mode | eligible={n} orders={o} reference_aum={aum:.2f}",
                n=len(series_map),
                o=len(orders),
                aum=reference_aum,
            )
            return PipelineResult(
                when=ts,
                mode=PipelineMode.BOOTSTRAP,
                reference_aum=reference_aum,
                orders=tuple(orders),
            )

        due = rebalance_due(
            params.rebalancing_frequency,
            ts,
            self._calendar,
            has_open_orders=portfolio.has_open_orders(ts),
        )
        if not due:
            log.info("Rebalance not due | frequency={f}", f=params.rebalancing_frequency)
            return PipelineResult(when=ts, mode=PipelineMode.HOLD, reference_aum=reference_aum)

        series_map = build_series_map(self._strategy, ts, reference_aum, params.days_back, self._fx)
        ctx = StageContext(
            when=ts,
            reference_aum=reference_aum,
            params=params,
            series_map=MappingProxyType(series_map),
            instruments=MappingProxyType({i.id: i for i in instruments if i.id in series_map}),
            risk_model=self._risk_model,
            fx=self._fx,
            portfolio_currency=portfolio.currency,
        )

        weights = seed_equal_weights(ctx)
        stages: dict[str, Mapping[str, float]] = {"equal_weight": weights}
        for name, stage in WEIGHT_STAGES:
            try:
                weights = stage(weights, ctx)
            except Exception as e:
                add_context_note(e, f"Stage '{name}' failed for {strategy_id} on {ts.date()}")
                raise
            stages[name] = weights
            log.debug("Stage {name} | {weights}", name=name, weights=dict(weights))

        orders = emit_orders(weights, instruments, ts, reference_aum, params, portfolio)
        log.info(
            "Rebalance complete | eligible={n} orders={o} reference_aum={aum:.2f}",
            n=len(series_map),
            o=len(orders),
            aum=reference_aum,
        )
        return PipelineResult(
            when=ts,
            mode=PipelineMode.REBALANCE,
            reference_aum=reference_aum,
            stages=MappingProxyType(stages),
            orders=tuple(orders),
        )
