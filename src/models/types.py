"""공용 타입 정의.

이 모듈은 여러 레이어에서 공통으로 사용되는 타입(Enum, 매핑 테이블)을 정의합니다.
Host, Portfolio, Strategy 등 다양한 모듈에서 순환 참조 없이 사용할 수 있습니다.

Rules Applied:
    - #10 Python Standards: Modern typing (StrEnum, X | None)
    - #01 Project Structure: Dependency flow (Models can be imported by all layers)
"""

from enum import IntEnum, StrEnum
from types import MappingProxyType


class InstrumentCategory(StrEnum):
    """Instrument 카테고리 (닫힌 태그 집합).

    카테고리는 instrument가 사용하는 자연 시계열 종류를 결정합니다.
    """

    EQUITY = "equity"
    ETF = "etf"
    FUTURE = "future"
    CURRENCY = "currency"
    STRATEGY = "strategy"
    OTHER = "other"


class SeriesKind(StrEnum):
    """시계열 종류.

    - ADJ_CLOSE: 배당/분할 조정 종가 (주식, ETF)
    - LAST: 최종 값 (전략 NAV)
    - CLOSE: 원시 종가 (그 외)
    """

    ADJ_CLOSE = "adj_close"
    LAST = "last"
    CLOSE = "close"


SERIES_KIND_BY_CATEGORY: MappingProxyType[InstrumentCategory, SeriesKind] = MappingProxyType(
    {
        InstrumentCategory.EQUITY: SeriesKind.ADJ_CLOSE,
        InstrumentCategory.ETF: SeriesKind.ADJ_CLOSE,
        InstrumentCategory.STRATEGY: SeriesKind.LAST,
        InstrumentCategory.FUTURE: SeriesKind.CLOSE,
        InstrumentCategory.CURRENCY: SeriesKind.CLOSE,
        InstrumentCategory.OTHER: SeriesKind.CLOSE,
    }
)


def natural_series_kind(category: InstrumentCategory) -> SeriesKind:
    """카테고리에 해당하는 자연 시계열 종류를 반환합니다."""
    return SERIES_KIND_BY_CATEGORY[category]


class ConfigParameter(StrEnum):
    """전략 메모리에 저장되는 설정 파라미터 (고정 열거형).

    값은 (date, parameter) 조회로 읽으며, 설정되지 않은 값은 None 입니다.
    """

    # Risk-budget strategy
    DAYS_BACK = "days_back"
    INDIVIDUAL_TARGET_VOLATILITY_FLAG = "individual_target_volatility_flag"
    GLOBAL_TARGET_VOLATILITY_FLAG = "global_target_volatility_flag"
    CONCENTRATION_FLAG = "concentration_flag"
    EXPOSURE_FLAG = "exposure_flag"
    TARGET_VAR = "target_var"
    GLOBAL_TARGET_VAR_FLAG = "global_target_var_flag"
    INDIVIDUAL_MAXIMUM_LEVERAGE = "individual_maximum_leverage"
    GLOBAL_MAXIMUM_LEVERAGE = "global_maximum_leverage"
    FRACTION_CONTRACT = "fraction_contract"
    TARGET_VOLATILITY = "target_volatility"
    REBALANCING_FREQUENCY = "rebalancing_frequency"
    FIXED_NOTIONAL = "fixed_notional"
    REBALANCING_THRESHOLD = "rebalancing_threshold"
    EXPOSURE_THRESHOLD = "exposure_threshold"
    # Cash-accrual deposit strategy
    SPREAD = "spread"
    FUNDING_ID = "funding_id"


class RebalanceFrequency(IntEnum):
    """리밸런싱 주기 코드.

    1..31 사이의 값은 "해당 월의 N번째 영업일"을 의미하며 열거형 멤버가 아닙니다.
    """

    DAILY = 0
    WEEK_END = -1
    MONTH_END = 32
    QUARTER_END = 33
    YEAR_END = 34


class Direction(IntEnum):
    """중첩 전략의 포지션 방향."""

    SHORT = -1
    LONG = 1
