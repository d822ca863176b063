"""Shared fixtures for tests.

이 모듈은 테스트에서 공통으로 사용되는 in-memory host 픽스처를 제공합니다.

Rules Applied:
    - #17 Testing Standards: Pytest fixtures
    - #12 Data Engineering: Sample data generation
"""

from __future__ import annotations

from collections.abc import Callable, Sequence

import numpy as np
import pandas as pd
import pytest

from src.host.memory import (
    InMemoryInstrument,
    InMemoryPortfolio,
    InMemoryStrategy,
    StaticFxTable,
    StrategyMemory,
    WeekdayCalendar,
)
from src.models.types import ConfigParameter, InstrumentCategory, natural_series_kind

# ---------------------------------------------------------------------------
# 디렉토리 경로 → pytest 마커 자동 매핑
# ---------------------------------------------------------------------------
_DIR_MARKER_MAP: dict[str, str] = {
    "/strategy/": "strategy",
    "/cli/": "integration",
    "/core/": "unit",
    "/models/": "unit",
    "/config/": "unit",
    "/host/": "unit",
    "/market/": "unit",
    "/portfolio/": "unit",
    "/logging/": "unit",
}


def pytest_collection_modifyitems(items: list[pytest.Item]) -> None:
    """디렉토리 경로 기반 자동 마커 부여."""
    for item in items:
        fspath = str(item.fspath)
        for dir_pattern, marker_name in _DIR_MARKER_MAP.items():
            if dir_pattern in fspath:
                item.add_marker(getattr(pytest.mark, marker_name))
                break


# Opt-in to future pandas behavior: fillna/ffill/bfill won't auto-downcast
pd.set_option("future.no_silent_downcasting", True)

# 2024-03-29: 금요일, 월말·분기말 영업일 (WeekdayCalendar 기준)
EVALUATION_DATE = pd.Timestamp("2024-03-29")
PARAMETER_START = pd.Timestamp("2000-01-03")

# 20/√252 간격 교대 가격 → 현금 차분 QV × √252 / AUM = 0.2
ALTERNATING_STEP = 20.0 / np.sqrt(252)


@pytest.fixture
def evaluation_date() -> pd.Timestamp:
    return EVALUATION_DATE


@pytest.fixture
def rng() -> np.random.Generator:
    return np.random.default_rng(42)


@pytest.fixture
def price_series() -> Callable[..., pd.Series]:
    """영업일 그리드에서 ``end`` 로 끝나는 가격 시리즈 factory."""

    def _make(values: Sequence[float], end: pd.Timestamp = EVALUATION_DATE) -> pd.Series:
        index = pd.bdate_range(end=end, periods=len(values))
        return pd.Series(np.asarray(values, dtype=float), index=index)

    return _make


@pytest.fixture
def alternating_prices() -> Callable[..., list[float]]:
    """``base`` 와 ``base + step`` 이 교대하며 ``base`` 로 끝나는 가격."""

    def _make(n: int, step: float = ALTERNATING_STEP, base: float = 100.0) -> list[float]:
        return [base + step * ((n - 1 - i) % 2) for i in range(n)]

    return _make


@pytest.fixture
def make_leaf(price_series: Callable[..., pd.Series]) -> Callable[..., InMemoryInstrument]:
    """가격 이력을 가진 leaf instrument factory."""

    def _make(
        instrument_id: str,
        values: Sequence[float],
        *,
        category: InstrumentCategory = InstrumentCategory.ETF,
        currency: str = "USD",
        point_size: float = 1.0,
        end: pd.Timestamp = EVALUATION_DATE,
    ) -> InMemoryInstrument:
        series = {natural_series_kind(category): price_series(values, end)}
        return InMemoryInstrument(instrument_id, category, currency, point_size, series)

    return _make


@pytest.fixture
def make_strategy() -> Callable[..., InMemoryStrategy]:
    """portfolio를 가진 in-memory 전략 factory."""

    def _make(
        instrument_id: str,
        members: Sequence[InMemoryInstrument] = (),
        *,
        aum: float | pd.Series = 1_000_000.0,
        next_aum: float | pd.Series | None = None,
        currency: str = "USD",
        reserves: Sequence[InMemoryInstrument] = (),
    ) -> InMemoryStrategy:
        instrument = InMemoryInstrument(instrument_id, InstrumentCategory.STRATEGY, currency)
        strategy = InMemoryStrategy(instrument, InMemoryPortfolio(currency), aum=aum, next_aum=next_aum)
        for member in members:
            strategy.add_instrument(member)
        for reserve in reserves:
            strategy.add_instrument(reserve, reserve=True)
        return strategy

    return _make


@pytest.fixture
def fx() -> StaticFxTable:
    return StaticFxTable({"USD": 1.0, "EUR": 1.1})


@pytest.fixture
def calendar() -> WeekdayCalendar:
    return WeekdayCalendar()


@pytest.fixture
def memory() -> StrategyMemory:
    return StrategyMemory()


@pytest.fixture
def configure(memory: StrategyMemory) -> Callable[..., StrategyMemory]:
    """``configure(days_back=20, target_volatility=0.1)`` 형태로 메모리에 설정 기록."""

    def _configure(**values: float | str) -> StrategyMemory:
        for name, value in values.items():
            memory.set_value(PARAMETER_START, ConfigParameter(name), value)
        return memory

    return _configure
