"""Cash-accrual Deposit Strategy.

spread와 funding rate로 현금처럼 성장하는 전략입니다.
spread 0, funding instrument 없음이면 NAV가 일정한 전략이 됩니다.

NAV = prev_nav × (1 + (spread + funding_rate / 100) × actual_days / 360)  (Act/360)

funding rate는 funding instrument의 평가일 LAST 값이며 (카테고리와 무관) 5.0은 연 5%를 의미합니다.

Rules Applied:
    - #23 Exception Handling: 잘못된 카테고리는 즉시 ConfigurationError
    - #15 Logging Standards: Loguru structured logging
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import pandas as pd
from loguru import logger

from src.core.exceptions import ConfigurationError, DataValidationError
from src.market.timeseries import value_at
from src.models.types import ConfigParameter, InstrumentCategory, SeriesKind, natural_series_kind

if TYPE_CHECKING:
    from datetime import datetime

    from src.host.ports import InstrumentPort, InstrumentRegistryPort, MemoryPort

# ── Constants ─────────────────────────────────────────────────────

DAY_COUNT_BASIS = 360.0
_PERCENT = 100.0


class DepositStrategy:
    """Act/360 현금 적립 전략.

    Args:
        instrument: 전략 instrument (STRATEGY 카테고리)
        memory: 전략 메모리 (spread, funding id)
        registry: instrument 조회 / NAV 기록
    """

    def __init__(
        self,
        instrument: InstrumentPort,
        memory: MemoryPort,
        registry: InstrumentRegistryPort,
    ) -> None:
        self._instrument = instrument
        self._memory = memory
        self._registry = registry

    @property
    def instrument(self) -> InstrumentPort:
        return self._instrument

    @classmethod
    def create(
        cls,
        instrument: InstrumentPort,
        memory: MemoryPort,
        registry: InstrumentRegistryPort,
        *,
        initial_date: datetime | pd.Timestamp,
        initial_value: float,
        spread: float = 0.0,
        funding: InstrumentPort | None = None,
    ) -> DepositStrategy:
        """Deposit 전략 생성 및 초기 NAV 기록.

        Args:
            instrument: 전략 instrument
            memory: 전략 메모리
            registry: instrument registry
            initial_date: 시작일
            initial_value: 시작 NAV
            spread: 연 spread (0.01 = 1%)
            funding: funding rate를 제공하는 instrument

        Returns:
            DepositStrategy

        Raises:
            ConfigurationError: instrument가 STRATEGY 카테고리가 아닐 때
        """
        if instrument.category != InstrumentCategory.STRATEGY:
            msg = "Instrument not a Strategy"
            raise ConfigurationError(
                msg, context={"instrument": instrument.id, "category": instrument.category.value}
            )
        start = pd.Timestamp(initial_date)
        memory.set_value(start, ConfigParameter.SPREAD, spread)
        if funding is not None:
            memory.set_value(start, ConfigParameter.FUNDING_ID, funding.id)
        registry.commit_value(instrument.id, start, initial_value)
        return cls(instrument, memory, registry)

    def _previous_nav(self, when: pd.Timestamp) -> tuple[pd.Timestamp, float]:
        series = self._instrument.get_series(natural_series_kind(self._instrument.category))
        if series is not None:
            earlier = series[series.index < when].dropna()
            if not earlier.empty:
                return earlier.index[-1], float(earlier.iloc[-1])
        current = value_at(series, when)
        if current is None:
            msg = "No NAV history to accrue from"
            raise DataValidationError(msg, context={"instrument": self._instrument.id, "date": when})
        return when, current

    def funding_rate(self, when: pd.Timestamp) -> float:
        """funding instrument의 평가일 LAST 값 (미설정/값 없음이면 0.0)."""
        funding_id = self._memory.get_reference(when, ConfigParameter.FUNDING_ID)
        if funding_id is None:
            return 0.0
        funding = self._registry.find(funding_id)
        if funding is None:
            logger.warning("Funding instrument not found | {fid}", fid=funding_id)
            return 0.0
        rate = value_at(funding.get_series(SeriesKind.LAST), when)
        return 0.0 if rate is None else rate

    def nav_calculation(self, when: datetime | pd.Timestamp) -> float:
        """평가일 NAV 계산 후 기록.

        Args:
            when: 평가일

        Returns:
            새 NAV
        """
        ts = pd.Timestamp(when)
        previous_date, previous = self._previous_nav(ts)
        spread = self._memory.get_value(ts, ConfigParameter.SPREAD) or 0.0
        rate = self.funding_rate(ts)
        days = (ts - previous_date).days

        nav = previous * (1.0 + (spread + rate / _PERCENT) * days / DAY_COUNT_BASIS)
        self._registry.commit_value(self._instrument.id, ts, nav)
        logger.debug(
            "Deposit NAV | {sid} {date} prev={prev:.8f} nav={nav:.8f} days={days} rate={rate}",
            sid=self._instrument.id,
            date=ts.date(),
            prev=previous,
            nav=nav,
            days=days,
            rate=rate,
        )
        return nav
