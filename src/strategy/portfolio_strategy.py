"""Risk-Budget Portfolio Strategy.

포트폴리오를 보유한 전략 위에서 risk-budget 파이프라인을 실행합니다.

Logic:
    1. 자산별 변동성 타겟팅 (중첩 전략은 자체 AUM 기준)
    2. 상관관계·information ratio 기반 집중도 관리
    3. 포트폴리오 변동성 타겟팅
    4. 자산별 최대 레버리지
    5. 포트폴리오 최대 레버리지
    6. VaR 조정
    7. notional 변화가 임계값을 넘을 때만 리밸런싱

``risk_model`` 로 risk / exposure / information ratio 동작을 교체할 수 있습니다.

Rules Applied:
    - #23 Exception Handling: 잘못된 카테고리는 즉시 ConfigurationError
    - Strategy Pattern: RiskModel capability 주입
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import pandas as pd
from loguru import logger

from src.core.exceptions import ConfigurationError
from src.models.types import ConfigParameter, InstrumentCategory
from src.portfolio.pipeline import RiskBudgetPipeline

if TYPE_CHECKING:
    from collections.abc import Mapping
    from datetime import datetime

    from src.host.ports import CalendarPort, FxPort, InstrumentPort, MemoryPort, StrategyPort
    from src.portfolio.pipeline import PipelineResult
    from src.portfolio.risk_model import RiskModel


class PortfolioStrategy:
    """Risk-budget 포트폴리오 전략.

    Args:
        strategy: host 전략 (portfolio 보유)
        memory: 전략 메모리
        fx: 환율 포트
        calendar: 영업일 달력
        risk_model: capability 구현 (None이면 DefaultRiskModel)
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
        self._pipeline = RiskBudgetPipeline(strategy, memory, fx, calendar, risk_model)

    @property
    def strategy(self) -> StrategyPort:
        return self._strategy

    @property
    def memory(self) -> MemoryPort:
        return self._memory

    @classmethod
    def create(
        cls,
        instrument: InstrumentPort,
        memory: MemoryPort,
        fx: FxPort,
        calendar: CalendarPort,
        *,
        initial_date: datetime | pd.Timestamp,
        fraction_contract: bool = True,
        parameters: Mapping[ConfigParameter, float | str] | None = None,
        risk_model: RiskModel | None = None,
    ) -> PortfolioStrategy:
        """전략 생성.

        Args:
            instrument: 전략 instrument (STRATEGY 카테고리, portfolio 보유)
            memory: 전략 메모리
            fx: 환율 포트
            calendar: 영업일 달력
            initial_date: 시작일 (설정값 기록 시점)
            fraction_contract: 소수 계약 허용 여부
            parameters: 초기 설정값
            risk_model: capability 구현

        Returns:
            PortfolioStrategy

        Raises:
            ConfigurationError: STRATEGY 카테고리가 아니거나 portfolio가 없을 때
        """
        if instrument.category != InstrumentCategory.STRATEGY:
            msg = "Instrument not a Strategy"
            raise ConfigurationError(
                msg, context={"instrument": instrument.id, "category": instrument.category.value}
            )
        strategy = instrument.strategy
        if strategy is None or strategy.portfolio is None:
            msg = "Strategy instrument has no portfolio"
            raise ConfigurationError(msg, context={"instrument": instrument.id})

        start = pd.Timestamp(initial_date)
        memory.set_value(start, ConfigParameter.FRACTION_CONTRACT, 1.0 if fraction_contract else 0.0)
        for parameter, value in (parameters or {}).items():
            memory.set_value(start, parameter, value)

        logger.info(
            "PortfolioStrategy created | {sid} parameters={n}",
            sid=instrument.id,
            n=len(parameters or {}),
        )
        return cls(strategy, memory, fx, calendar, risk_model)

    def set_parameter(
        self,
        when: datetime | pd.Timestamp,
        parameter: ConfigParameter,
        value: float | str,
    ) -> None:
        self._memory.set_value(pd.Timestamp(when), parameter, value)

    def execute(self, when: datetime | pd.Timestamp, host_aum: float | None = None) -> PipelineResult:
        """평가일 로직 실행 (가중치 계산 + 주문 제출)."""
        return self._pipeline.run(when, host_aum)
