"""Notional adjustment 테스트."""

from __future__ import annotations

import pytest

from src.portfolio.notional import countable_positions, notional_adjustment

PRICES = [100.0, 101.0, 102.0, 103.0]


@pytest.fixture
def child(make_leaf, make_strategy):
    es = make_leaf("ES", PRICES)
    strategy = make_strategy("CHILD", [es], aum=500_000.0)
    strategy.portfolio.set_position(es, 10.0)
    return strategy


class TestNotionalAdjustment:
    def test_leaf_is_neutral(self, make_leaf, evaluation_date) -> None:
        assert notional_adjustment(make_leaf("SPY", PRICES), evaluation_date, 1_000_000.0) == 1.0

    def test_nested_ratio(self, child, evaluation_date) -> None:
        assert notional_adjustment(child.instrument, evaluation_date, 1_000_000.0) == 0.5

    def test_uses_next_aum(self, make_leaf, make_strategy, evaluation_date) -> None:
        es = make_leaf("ES", PRICES)
        strategy = make_strategy("CHILD", [es], aum=500_000.0, next_aum=2_000_000.0)
        strategy.portfolio.set_position(es, 1.0)
        assert notional_adjustment(strategy.instrument, evaluation_date, 1_000_000.0) == 2.0

    def test_zero_reference_aum(self, child, evaluation_date) -> None:
        assert notional_adjustment(child.instrument, evaluation_date, 0.0) == 1.0

    def test_zero_strategy_aum(self, make_leaf, make_strategy, evaluation_date) -> None:
        es = make_leaf("ES", PRICES)
        strategy = make_strategy("CHILD", [es], aum=0.0)
        strategy.portfolio.set_position(es, 1.0)
        assert notional_adjustment(strategy.instrument, evaluation_date, 1_000_000.0) == 1.0

    def test_no_countable_positions(self, make_leaf, make_strategy, evaluation_date) -> None:
        strategy = make_strategy("CHILD", [make_leaf("ES", PRICES)], aum=500_000.0)
        assert notional_adjustment(strategy.instrument, evaluation_date, 1_000_000.0) == 1.0


class TestCountablePositions:
    def test_filters(self, make_leaf, make_strategy, evaluation_date) -> None:
        held = make_leaf("HELD", PRICES)
        flat = make_leaf("FLAT", PRICES)
        young = make_leaf("YOUNG", [100.0, 101.0])
        cash = make_leaf("CASH", PRICES)
        strategy = make_strategy("CHILD", [held, flat, young], reserves=[cash])
        strategy.portfolio.set_position(held, 5.0)
        strategy.portfolio.set_position(flat, 0.0)
        strategy.portfolio.set_position(young, 5.0)
        strategy.portfolio.set_position(cash, 5.0)

        assert countable_positions(strategy.instrument, evaluation_date) == 1

    def test_open_order_counts(self, make_leaf, make_strategy, evaluation_date) -> None:
        es = make_leaf("ES", PRICES)
        strategy = make_strategy("CHILD", [es])
        strategy.portfolio.set_open_order(es, 3.0)
        assert countable_positions(strategy.instrument, evaluation_date) == 1

    def test_leaf(self, make_leaf, evaluation_date) -> None:
        assert countable_positions(make_leaf("SPY", PRICES), evaluation_date) == 0
