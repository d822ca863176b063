"""StrategyParameters 단위 테스트."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from src.portfolio.config import StrategyParameters


class TestDefaults:
    def test_unset_memory(self, memory, evaluation_date) -> None:
        params = StrategyParameters.from_memory(memory, evaluation_date)
        assert params.days_back is None
        assert params.target_volatility is None
        assert params.individual_target_volatility is True
        assert params.global_target_volatility is True
        assert params.concentration is False
        assert params.exposure is False
        assert params.global_target_var is False
        assert params.fraction_contract is True
        assert params.rebalancing_threshold == 0.0
        assert params.individual_maximum_leverage is None
        assert params.bootstrap is True

    def test_frozen(self) -> None:
        params = StrategyParameters()
        with pytest.raises(ValidationError):
            params.days_back = 10  # type: ignore[misc]


class TestFromMemory:
    def test_values(self, configure, evaluation_date) -> None:
        memory = configure(
            days_back=60,
            target_volatility=0.1,
            concentration_flag=1,
            individual_maximum_leverage=2.0,
            rebalancing_frequency=32,
            rebalancing_threshold=0.05,
        )
        params = StrategyParameters.from_memory(memory, evaluation_date)
        assert params.days_back == 60
        assert params.target_volatility == 0.1
        assert params.concentration is True
        assert params.individual_maximum_leverage == 2.0
        assert params.rebalancing_frequency == 32
        assert params.rebalancing_threshold == 0.05
        assert params.bootstrap is False

    @pytest.mark.parametrize(("raw", "expected"), [(0.4, False), (0.6, True), (0.0, False), (-1.0, True)])
    def test_flag_rounding(self, configure, evaluation_date, raw: float, expected: bool) -> None:
        memory = configure(exposure_flag=raw)
        assert StrategyParameters.from_memory(memory, evaluation_date).exposure is expected

    def test_volatility_flag_can_be_disabled(self, configure, evaluation_date) -> None:
        memory = configure(individual_target_volatility_flag=0, global_target_volatility_flag=0)
        params = StrategyParameters.from_memory(memory, evaluation_date)
        assert params.individual_target_volatility is False
        assert params.global_target_volatility is False

    def test_fraction_contract_off(self, configure, evaluation_date) -> None:
        memory = configure(fraction_contract=0)
        assert StrategyParameters.from_memory(memory, evaluation_date).fraction_contract is False


class TestDerived:
    def test_zero_target_volatility_is_bootstrap(self) -> None:
        assert StrategyParameters(days_back=20, target_volatility=0.0).bootstrap is True

    def test_var_enabled_requires_flag_and_target(self) -> None:
        assert StrategyParameters(target_var=-0.05).var_enabled is False
        assert StrategyParameters(global_target_var=True).var_enabled is False
        assert StrategyParameters(global_target_var=True, target_var=-0.05).var_enabled is True

    def test_days_back_must_be_positive(self) -> None:
        with pytest.raises(ValidationError):
            StrategyParameters(days_back=0)
