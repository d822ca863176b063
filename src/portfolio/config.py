"""Risk-Budget Strategy Parameters.

이 모듈은 평가일 기준으로 전략 메모리에서 읽은 설정 snapshot을 정의합니다.
설정되지 않은 값은 NaN이 아니라 None으로 표현하며,
flag 값은 "설정되어 있고 반올림 값이 0이 아님"일 때 활성화됩니다.

Flag 기본값 (미설정 시):
    - individual / global target volatility: 활성
    - concentration, exposure, global VaR: 비활성

Rules Applied:
    - #11 Pydantic Modeling: frozen=True, field validators
    - #10 Python Standards: Modern typing (Self)
    - #23 Exception Handling: 검증 실패 시 명확한 에러
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Self

from pydantic import BaseModel, ConfigDict, Field

from src.models.types import ConfigParameter

if TYPE_CHECKING:
    import pandas as pd

    from src.host.ports import MemoryPort


def _flag(value: float | None, *, default: bool) -> bool:
    if value is None:
        return default
    return round(value) != 0


def _as_int(value: float | None) -> int | None:
    return None if value is None else round(value)


class StrategyParameters(BaseModel):
    """평가일 기준 risk-budget 전략 설정.

    Attributes:
        days_back: 변동성·상관관계 lookback (관측치 수, None이면 bootstrap)
        target_volatility: 목표 연환산 변동성 (None/0이면 bootstrap)
        individual_target_volatility: 개별 자산 변동성 타겟팅
        global_target_volatility: 포트폴리오 변동성 타겟팅
        concentration: 상관관계 기반 집중도 관리 (최적화)
        exposure: 변동성 적응형 stop-loss 노출 관리
        exposure_threshold: stop-loss 변동성 배수
        target_var: 목표 VaR (부호 있는 수익률 비율)
        global_target_var: VaR 단계 활성화
        individual_maximum_leverage: 자산별 최대 레버리지 (None이면 무제한)
        global_maximum_leverage: 포트폴리오 최대 레버리지 (None이면 무제한)
        fraction_contract: 소수 계약 허용 여부
        rebalancing_frequency: 리밸런싱 주기 코드 (None이면 스케줄 없음)
        fixed_notional: 고정 reference AUM
        rebalancing_threshold: 최소 notional 비율 변화 (주문 발행 임계값)

    Example:
        >>> params = StrategyParameters(days_back=60, target_volatility=0.1)
        >>> params.bootstrap
        False
    """

    model_config = ConfigDict(frozen=True)

    # ==========================================================================
    # Volatility Targeting
    # ==========================================================================
    days_back: int | None = Field(default=None, ge=1)
    target_volatility: float | None = Field(default=None, ge=0.0)
    individual_target_volatility: bool = True
    global_target_volatility: bool = True

    # ==========================================================================
    # Concentration / Exposure
    # ==========================================================================
    concentration: bool = False
    exposure: bool = False
    exposure_threshold: float | None = Field(default=None, ge=0.0)

    # ==========================================================================
    # Risk Caps
    # ==========================================================================
    target_var: float | None = None
    global_target_var: bool = False
    individual_maximum_leverage: float | None = Field(default=None, ge=0.0)
    global_maximum_leverage: float | None = Field(default=None, ge=0.0)

    # ==========================================================================
    # Execution
    # ==========================================================================
    fraction_contract: bool = True
    rebalancing_frequency: int | None = None
    fixed_notional: float | None = None
    rebalancing_threshold: float = Field(default=0.0, ge=0.0)

    # ==========================================================================
    # Derived
    # ==========================================================================
    @property
    def bootstrap(self) -> bool:
        """최적화 없이 초기 포지션만 생성하는 모드 여부."""
        return self.days_back is None or not self.target_volatility

    @property
    def var_enabled(self) -> bool:
        return self.global_target_var and self.target_var is not None and self.target_var != 0.0

    # ==========================================================================
    # Factory
    # ==========================================================================
    @classmethod
    def from_memory(cls, memory: MemoryPort, when: pd.Timestamp) -> Self:
        """전략 메모리에서 평가일 기준 snapshot 생성.

        Args:
            memory: 전략 메모리
            when: 평가일

        Returns:
            StrategyParameters
        """

        def get(parameter: ConfigParameter) -> float | None:
            return memory.get_value(when, parameter)

        return cls(
            days_back=_as_int(get(ConfigParameter.DAYS_BACK)),
            target_volatility=get(ConfigParameter.TARGET_VOLATILITY),
            individual_target_volatility=_flag(
                get(ConfigParameter.INDIVIDUAL_TARGET_VOLATILITY_FLAG), default=True
            ),
            global_target_volatility=_flag(
                get(ConfigParameter.GLOBAL_TARGET_VOLATILITY_FLAG), default=True
            ),
            concentration=_flag(get(ConfigParameter.CONCENTRATION_FLAG), default=False),
            exposure=_flag(get(ConfigParameter.EXPOSURE_FLAG), default=False),
            exposure_threshold=get(ConfigParameter.EXPOSURE_THRESHOLD),
            target_var=get(ConfigParameter.TARGET_VAR),
            global_target_var=_flag(get(ConfigParameter.GLOBAL_TARGET_VAR_FLAG), default=False),
            individual_maximum_leverage=get(ConfigParameter.INDIVIDUAL_MAXIMUM_LEVERAGE),
            global_maximum_leverage=get(ConfigParameter.GLOBAL_MAXIMUM_LEVERAGE),
            fraction_contract=_flag(get(ConfigParameter.FRACTION_CONTRACT), default=True),
            rebalancing_frequency=_as_int(get(ConfigParameter.REBALANCING_FREQUENCY)),
            fixed_notional=get(ConfigParameter.FIXED_NOTIONAL),
            rebalancing_threshold=get(ConfigParameter.REBALANCING_THRESHOLD) or 0.0,
        )
