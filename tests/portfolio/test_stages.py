"""Risk-budget weight stage 테스트.

교대 가격(100 ↔ 100 + 20/√252, 100으로 끝남)의 현금 차분 시계열은
reference AUM과 무관하게 연환산 risk 0.2를 가집니다.
"""

from __future__ import annotations

from types import MappingProxyType

import numpy as np
import pytest

from src.portfolio.aggregator import build_series_map
from src.portfolio.config import StrategyParameters
from src.portfolio.risk_model import DefaultRiskModel
from src.portfolio.stages import (
    StageContext,
    _lower_tail_quantile,
    aggregate_notional,
    concentration_tilt,
    global_leverage_cap,
    individual_leverage_cap,
    individual_volatility,
    portfolio_volatility,
    seed_equal_weights,
    value_at_risk,
    var_cap,
)

REFERENCE_AUM = 1_000_000.0
LOOKBACK = 20


@pytest.fixture
def stage_context(fx, evaluation_date):
    def _make(strategy, params: StrategyParameters, risk_model=None, reference_aum=REFERENCE_AUM):
        series_map = build_series_map(strategy, evaluation_date, reference_aum, params.days_back, fx)
        instruments = {
            i.id: i for i in strategy.instruments(evaluation_date) if i.id in series_map
        }
        return StageContext(
            when=evaluation_date,
            reference_aum=reference_aum,
            params=params,
            series_map=MappingProxyType(series_map),
            instruments=MappingProxyType(instruments),
            risk_model=risk_model or DefaultRiskModel(),
            fx=fx,
            portfolio_currency="USD",
        )

    return _make


@pytest.fixture
def params() -> StrategyParameters:
    return StrategyParameters(days_back=LOOKBACK, target_volatility=0.1)


@pytest.fixture
def single_leaf(make_leaf, make_strategy, alternating_prices):
    return make_strategy("CORE", [make_leaf("A", alternating_prices(41))])


@pytest.fixture
def two_leaves(make_leaf, make_strategy, alternating_prices):
    return make_strategy(
        "CORE",
        [make_leaf("A", alternating_prices(41)), make_leaf("B", alternating_prices(41))],
    )


@pytest.fixture
def nested(make_leaf, make_strategy, alternating_prices):
    """500k 하위 전략이 교대 가격 leaf 5,000 units 보유 (현금 risk 0.2)."""
    leaf = make_leaf("L", alternating_prices(41))
    child = make_strategy("CHILD", [leaf], aum=500_000.0)
    child.portfolio.set_position(leaf, 5_000.0)
    return child


# ── Stage 1 ───────────────────────────────────────────────────────


class TestSeed:
    def test_equal_weights(self, two_leaves, params, stage_context) -> None:
        weights = seed_equal_weights(stage_context(two_leaves, params))
        assert dict(weights) == {"A": 0.5, "B": 0.5}

    def test_read_only(self, two_leaves, params, stage_context) -> None:
        weights = seed_equal_weights(stage_context(two_leaves, params))
        with pytest.raises(TypeError):
            weights["A"] = 1.0  # type: ignore[index]


# ── Stage 2 ───────────────────────────────────────────────────────


class TestIndividualVolatility:
    def test_leaf_target_over_risk(self, single_leaf, params, stage_context) -> None:
        ctx = stage_context(single_leaf, params)
        weights = individual_volatility(seed_equal_weights(ctx), ctx)
        assert weights["A"] == pytest.approx(0.5)

    def test_flag_off_keeps_unit_weight(self, single_leaf, stage_context) -> None:
        params = StrategyParameters(
            days_back=LOOKBACK, target_volatility=0.1, individual_target_volatility=False
        )
        ctx = stage_context(single_leaf, params)
        assert individual_volatility(seed_equal_weights(ctx), ctx)["A"] == 1.0

    def test_zero_volatility_is_unit_weight(self, make_leaf, make_strategy, params, stage_context) -> None:
        flat = make_strategy("CORE", [make_leaf("FLAT", [100.0] * 30)])
        ctx = stage_context(flat, params)
        assert individual_volatility(seed_equal_weights(ctx), ctx)["FLAT"] == 1.0

    def test_exposure_multiplies(self, single_leaf, stage_context) -> None:
        class Stopped(DefaultRiskModel):
            def exposure(self, instrument, when, params) -> float:  # type: ignore[no-untyped-def]
                return 0.0

        params = StrategyParameters(days_back=LOOKBACK, target_volatility=0.1, exposure=True)
        ctx = stage_context(single_leaf, params, risk_model=Stopped())
        assert individual_volatility(seed_equal_weights(ctx), ctx)["A"] == 0.0

    def test_exposure_ignored_when_flag_off(self, single_leaf, params, stage_context) -> None:
        class Stopped(DefaultRiskModel):
            def exposure(self, instrument, when, params) -> float:  # type: ignore[no-untyped-def]
                return 0.0

        ctx = stage_context(single_leaf, params, risk_model=Stopped())
        assert individual_volatility(seed_equal_weights(ctx), ctx)["A"] == pytest.approx(0.5)

    def test_nested_uses_own_aum(self, nested, make_strategy, params, stage_context) -> None:
        parent = make_strategy("PARENT", [nested.instrument])
        ctx = stage_context(parent, params)
        # dp = 0.1 / 0.2, allocation = 1M / 500k
        assert individual_volatility(seed_equal_weights(ctx), ctx)["CHILD"] == pytest.approx(1.0)

    def test_nested_zero_aum_gets_equal_share(
        self, make_leaf, make_strategy, alternating_prices, params, stage_context
    ) -> None:
        leaf = make_leaf("L", alternating_prices(41))
        child = make_strategy("CHILD", [leaf], aum=0.0)
        child.portfolio.set_position(leaf, 10.0)
        parent = make_strategy("PARENT", [child.instrument, make_leaf("A", alternating_prices(41))])
        ctx = stage_context(parent, params)

        weights = individual_volatility(seed_equal_weights(ctx), ctx)

        assert weights["CHILD"] == pytest.approx(0.5)
        assert weights["A"] == pytest.approx(0.5)


# ── Stage 3 ───────────────────────────────────────────────────────


class TestConcentration:
    def test_off_multiplies_equal_vector(self, two_leaves, params, stage_context) -> None:
        ctx = stage_context(two_leaves, params)
        weights = concentration_tilt(MappingProxyType({"A": 0.5, "B": 0.8}), ctx)
        assert weights["A"] == pytest.approx(0.25)
        assert weights["B"] == pytest.approx(0.4)

    def test_on_tilt_sums_to_one(
        self, make_leaf, make_strategy, rng: np.random.Generator, stage_context
    ) -> None:
        members = [
            make_leaf(name, 100 * np.exp(np.cumsum(rng.normal(0, 0.01, 80)))) for name in "ABC"
        ]
        strategy = make_strategy("CORE", members)
        params = StrategyParameters(days_back=60, target_volatility=0.1, concentration=True)
        ctx = stage_context(strategy, params)
        before = MappingProxyType({"A": 0.5, "B": 1.0, "C": 2.0})

        after = concentration_tilt(before, ctx)

        tilt = np.array([after[i] / before[i] for i in "ABC"])
        assert tilt.sum() == pytest.approx(1.0)
        assert np.all(tilt > 0.0)

    def test_on_with_two_assets_is_equal(self, two_leaves, stage_context) -> None:
        params = StrategyParameters(days_back=LOOKBACK, target_volatility=0.1, concentration=True)
        ctx = stage_context(two_leaves, params)
        weights = concentration_tilt(MappingProxyType({"A": 1.0, "B": 1.0}), ctx)
        assert dict(weights) == pytest.approx({"A": 0.5, "B": 0.5})


# ── Stage 4 ───────────────────────────────────────────────────────


class TestPortfolioVolatility:
    def test_scales_to_target(self, single_leaf, params, stage_context) -> None:
        ctx = stage_context(single_leaf, params)
        assert portfolio_volatility(MappingProxyType({"A": 1.0}), ctx)["A"] == pytest.approx(0.5)

    def test_on_target_unchanged(self, single_leaf, params, stage_context) -> None:
        ctx = stage_context(single_leaf, params)
        assert portfolio_volatility(MappingProxyType({"A": 0.5}), ctx)["A"] == pytest.approx(0.5)

    def test_flag_off(self, single_leaf, stage_context) -> None:
        params = StrategyParameters(
            days_back=LOOKBACK, target_volatility=0.1, global_target_volatility=False
        )
        ctx = stage_context(single_leaf, params)
        assert portfolio_volatility(MappingProxyType({"A": 1.0}), ctx)["A"] == 1.0


# ── Stage 5 ───────────────────────────────────────────────────────


class TestIndividualLeverage:
    def test_no_cap(self, single_leaf, params, stage_context) -> None:
        ctx = stage_context(single_leaf, params)
        assert individual_leverage_cap(MappingProxyType({"A": 3.0}), ctx)["A"] == 3.0

    def test_leaf_capped(self, two_leaves, stage_context) -> None:
        params = StrategyParameters(
            days_back=LOOKBACK, target_volatility=0.1, individual_maximum_leverage=0.3
        )
        ctx = stage_context(two_leaves, params)
        weights = individual_leverage_cap(MappingProxyType({"A": 0.5, "B": 0.2}), ctx)
        assert weights["A"] == pytest.approx(0.3)
        assert weights["B"] == pytest.approx(0.2)

    def test_short_capped_by_magnitude(self, single_leaf, stage_context) -> None:
        class Short(DefaultRiskModel):
            def exposure(self, instrument, when, params) -> float:  # type: ignore[no-untyped-def]
                return -1.0

        params = StrategyParameters(
            days_back=LOOKBACK,
            target_volatility=1.0,
            exposure=True,
            individual_maximum_leverage=2.0,
        )
        ctx = stage_context(single_leaf, params, risk_model=Short())
        targeted = individual_volatility(seed_equal_weights(ctx), ctx)
        assert targeted["A"] == pytest.approx(-5.0)

        capped = individual_leverage_cap(targeted, ctx)

        assert capped["A"] == pytest.approx(-2.0)
        assert abs(capped["A"]) * REFERENCE_AUM <= 2.0 * REFERENCE_AUM + 1e-6

    def test_mixed_signs(self, two_leaves, stage_context) -> None:
        params = StrategyParameters(
            days_back=LOOKBACK, target_volatility=0.1, individual_maximum_leverage=0.3
        )
        ctx = stage_context(two_leaves, params)
        weights = individual_leverage_cap(MappingProxyType({"A": -0.5, "B": -0.2}), ctx)
        assert weights["A"] == pytest.approx(-0.3)
        assert weights["B"] == pytest.approx(-0.2)

    def test_nested_capped_in_own_notional(self, nested, make_strategy, stage_context) -> None:
        params = StrategyParameters(
            days_back=LOOKBACK, target_volatility=0.1, individual_maximum_leverage=0.3
        )
        ctx = stage_context(make_strategy("PARENT", [nested.instrument]), params)
        # adj = 500k / 1M → min(0.3, 1.0 × 0.5) / 0.5
        weights = individual_leverage_cap(MappingProxyType({"CHILD": 1.0}), ctx)
        assert weights["CHILD"] == pytest.approx(0.6)


# ── Stage 6 ───────────────────────────────────────────────────────


class TestGlobalLeverage:
    def test_scaled_down(self, two_leaves, stage_context) -> None:
        params = StrategyParameters(
            days_back=LOOKBACK, target_volatility=0.1, global_maximum_leverage=2.0
        )
        ctx = stage_context(two_leaves, params)
        weights = global_leverage_cap(MappingProxyType({"A": 1.5, "B": -1.0}), ctx)
        assert weights["A"] == pytest.approx(1.2)
        assert weights["B"] == pytest.approx(-0.8)
        assert aggregate_notional(weights, ctx) == pytest.approx(2.0 * REFERENCE_AUM)

    def test_under_cap_unchanged(self, two_leaves, stage_context) -> None:
        params = StrategyParameters(
            days_back=LOOKBACK, target_volatility=0.1, global_maximum_leverage=2.0
        )
        ctx = stage_context(two_leaves, params)
        before = MappingProxyType({"A": 1.0, "B": 1.0})
        assert global_leverage_cap(before, ctx) is before

    def test_nested_notional_from_positions(
        self, nested, make_leaf, make_strategy, alternating_prices, stage_context
    ) -> None:
        parent = make_strategy("PARENT", [nested.instrument, make_leaf("A", alternating_prices(41))])
        params = StrategyParameters(
            days_back=LOOKBACK, target_volatility=0.1, global_maximum_leverage=1.0
        )
        ctx = stage_context(parent, params)
        before = MappingProxyType({"CHILD": 1.0, "A": 1.0})

        # CHILD: 5,000 units × 100 = 500k, A: 1M
        assert aggregate_notional(before, ctx) == pytest.approx(1_500_000.0)
        after = global_leverage_cap(before, ctx)
        assert after["A"] == pytest.approx(2.0 / 3.0)


# ── Stage 7 ───────────────────────────────────────────────────────


@pytest.fixture
def declining(make_leaf, make_strategy):
    """0.1%씩 하락하는 300일 가격 (모든 20일 구간 손실 동일)."""
    prices = 100.0 * 0.999 ** np.arange(300)
    return make_strategy("CORE", [make_leaf("A", prices)])


def _var_params(target: float) -> StrategyParameters:
    return StrategyParameters(
        days_back=LOOKBACK, target_volatility=0.1, target_var=target, global_target_var=True
    )


class TestValueAtRisk:
    def test_leaf_rolling_loss(self, declining, stage_context) -> None:
        ctx = stage_context(declining, _var_params(-0.01))
        assert value_at_risk(MappingProxyType({"A": 1.0}), ctx) == pytest.approx(1.0 - 0.999**-20)

    def test_nested_rolling_loss(self, make_leaf, make_strategy, stage_context) -> None:
        leaf = make_leaf("L", 200.0 - 0.1 * np.arange(300))
        child = make_strategy("CHILD", [leaf], aum=500_000.0)
        child.portfolio.set_position(leaf, 1_000.0)
        ctx = stage_context(make_strategy("PARENT", [child.instrument]), _var_params(-0.01))
        # 20일 × -0.1 × 1,000 units / 1M
        assert value_at_risk(MappingProxyType({"CHILD": 1.0}), ctx) == pytest.approx(-0.002)

    def test_breach_unchanged(self, declining, stage_context) -> None:
        ctx = stage_context(declining, _var_params(-0.01))
        realized = value_at_risk(MappingProxyType({"A": 1.0}), ctx)
        # 손실(≈ -1.98%)이 목표(≈ -0.99%)보다 큼
        ctx = stage_context(declining, _var_params(realized / 2))
        before = MappingProxyType({"A": 1.0})

        assert var_cap(before, ctx) is before

    def test_within_target_scales_to_target(self, declining, stage_context) -> None:
        ctx = stage_context(declining, _var_params(-0.01))
        realized = value_at_risk(MappingProxyType({"A": 1.0}), ctx)
        ctx = stage_context(declining, _var_params(realized * 2))

        weights = var_cap(MappingProxyType({"A": 1.0}), ctx)

        assert weights["A"] == pytest.approx(2.0)
        assert value_at_risk(weights, ctx) == pytest.approx(realized * 2)

    def test_quantile_position(self) -> None:
        # 0.01 × 251 + 1 = 3.51 (정렬 순서 무관)
        pnl = np.arange(252, dtype=float)
        assert _lower_tail_quantile(pnl) == pytest.approx(3.51)
        assert _lower_tail_quantile(pnl[::-1].copy()) == pytest.approx(3.51)

    def test_positive_target_unchanged(self, declining, stage_context) -> None:
        ctx = stage_context(declining, _var_params(0.05))
        before = MappingProxyType({"A": 1.0})
        assert var_cap(before, ctx) is before

    def test_disabled(self, declining, stage_context) -> None:
        params = StrategyParameters(days_back=LOOKBACK, target_volatility=0.1, target_var=-0.0001)
        ctx = stage_context(declining, params)
        before = MappingProxyType({"A": 1.0})
        assert var_cap(before, ctx) is before
