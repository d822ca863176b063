"""DepositStrategy 테스트."""

from __future__ import annotations

import pandas as pd
import pytest

from src.core.exceptions import ConfigurationError, DataValidationError
from src.host.memory import InMemoryInstrument, InstrumentRegistry
from src.models.types import ConfigParameter, InstrumentCategory, SeriesKind
from src.strategy.deposit import DAY_COUNT_BASIS, DepositStrategy

THURSDAY = pd.Timestamp("2024-03-28")
FRIDAY = pd.Timestamp("2024-03-29")
MONDAY = pd.Timestamp("2024-04-01")


@pytest.fixture
def cash() -> InMemoryInstrument:
    return InMemoryInstrument("CASH", InstrumentCategory.STRATEGY)


@pytest.fixture
def funding(price_series) -> InMemoryInstrument:
    return InMemoryInstrument(
        "FEDFUNDS", InstrumentCategory.OTHER, series={SeriesKind.LAST: price_series([5.0] * 5)}
    )


@pytest.fixture
def registry(cash, funding) -> InstrumentRegistry:
    return InstrumentRegistry([cash, funding])


def _nav(instrument: InMemoryInstrument, when: pd.Timestamp) -> float:
    return float(instrument.get_series(SeriesKind.LAST)[when])


class TestCreate:
    def test_records_initial_nav(self, cash, memory, registry) -> None:
        DepositStrategy.create(cash, memory, registry, initial_date=THURSDAY, initial_value=100.0)
        assert _nav(cash, THURSDAY) == 100.0
        assert memory.get_value(THURSDAY, ConfigParameter.SPREAD) == 0.0
        assert memory.get_reference(THURSDAY, ConfigParameter.FUNDING_ID) is None

    def test_records_funding(self, cash, funding, memory, registry) -> None:
        DepositStrategy.create(
            cash, memory, registry, initial_date=THURSDAY, initial_value=100.0, funding=funding
        )
        assert memory.get_reference(FRIDAY, ConfigParameter.FUNDING_ID) == "FEDFUNDS"

    def test_rejects_non_strategy(self, funding, memory, registry) -> None:
        with pytest.raises(ConfigurationError, match="Instrument not a Strategy"):
            DepositStrategy.create(funding, memory, registry, initial_date=THURSDAY, initial_value=1.0)


class TestNavCalculation:
    def test_constant_without_spread_or_funding(self, cash, memory, registry) -> None:
        deposit = DepositStrategy.create(cash, memory, registry, initial_date=THURSDAY, initial_value=100.0)
        assert deposit.nav_calculation(FRIDAY) == 100.0
        assert _nav(cash, FRIDAY) == 100.0

    def test_funding_rate_accrues(self, cash, funding, memory, registry) -> None:
        deposit = DepositStrategy.create(
            cash, memory, registry, initial_date=THURSDAY, initial_value=100.0, funding=funding
        )
        assert deposit.nav_calculation(FRIDAY) == pytest.approx(100.0 * (1.0 + 0.05 / DAY_COUNT_BASIS))

    def test_spread_over_weekend(self, cash, memory, registry) -> None:
        deposit = DepositStrategy.create(
            cash, memory, registry, initial_date=FRIDAY, initial_value=100.0, spread=0.01
        )
        assert deposit.nav_calculation(MONDAY) == pytest.approx(100.0 * (1.0 + 0.01 * 3 / 360.0))

    def test_spread_and_funding_add(self, cash, funding, memory, registry) -> None:
        deposit = DepositStrategy.create(
            cash,
            memory,
            registry,
            initial_date=THURSDAY,
            initial_value=100.0,
            spread=0.01,
            funding=funding,
        )
        assert deposit.nav_calculation(FRIDAY) == pytest.approx(100.0 * (1.0 + 0.06 / 360.0))

    def test_compounds_from_last_nav(self, cash, funding, memory, registry) -> None:
        deposit = DepositStrategy.create(
            cash, memory, registry, initial_date=THURSDAY, initial_value=100.0, funding=funding
        )
        friday = deposit.nav_calculation(FRIDAY)
        monday = deposit.nav_calculation(MONDAY)
        assert monday == pytest.approx(friday * (1.0 + 0.05 * 3 / 360.0))

    def test_recalculation_is_stable(self, cash, funding, memory, registry) -> None:
        deposit = DepositStrategy.create(
            cash, memory, registry, initial_date=THURSDAY, initial_value=100.0, funding=funding
        )
        first = deposit.nav_calculation(FRIDAY)
        assert deposit.nav_calculation(FRIDAY) == first

    def test_funding_reads_last_series(self, cash, memory, price_series) -> None:
        etf = InMemoryInstrument(
            "RATEETF",
            InstrumentCategory.ETF,
            series={
                SeriesKind.ADJ_CLOSE: price_series([99.0] * 5),
                SeriesKind.LAST: price_series([5.0] * 5),
            },
        )
        registry = InstrumentRegistry([cash, etf])
        deposit = DepositStrategy.create(
            cash, memory, registry, initial_date=THURSDAY, initial_value=100.0, funding=etf
        )
        assert deposit.funding_rate(FRIDAY) == 5.0
        assert deposit.nav_calculation(FRIDAY) == pytest.approx(100.0 * (1.0 + 0.05 / 360.0))

    def test_missing_funding_instrument(self, cash, memory, registry) -> None:
        deposit = DepositStrategy.create(cash, memory, registry, initial_date=THURSDAY, initial_value=100.0)
        memory.set_value(THURSDAY, ConfigParameter.FUNDING_ID, "UNKNOWN")
        assert deposit.funding_rate(FRIDAY) == 0.0
        assert deposit.nav_calculation(FRIDAY) == 100.0

    def test_funding_without_price(self, cash, funding, memory, registry) -> None:
        deposit = DepositStrategy.create(
            cash, memory, registry, initial_date=pd.Timestamp("2020-01-02"), initial_value=1.0, funding=funding
        )
        assert deposit.funding_rate(pd.Timestamp("2020-01-03")) == 0.0

    def test_no_history(self, cash, memory, registry) -> None:
        deposit = DepositStrategy(cash, memory, registry)
        with pytest.raises(DataValidationError, match="No NAV history"):
            deposit.nav_calculation(FRIDAY)
