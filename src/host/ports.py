"""Host Port Protocol 정의.

엔진이 소비하는 host 협력자(instrument, strategy, portfolio, 환율, 달력,
전략 메모리, instrument registry)의 명시적 인터페이스를 정의합니다.
structural subtyping으로 in-memory 구현체와 외부 host 구현체가 모두 만족합니다.

Ports:
    - InstrumentPort: instrument 메타데이터 + 시계열 접근
    - StrategyPort: 중첩 전략 (자체 portfolio 보유)
    - PortfolioPort: 포지션 / 미체결 주문 조회, target order 제출
    - FxPort: 통화 환산
    - CalendarPort: 영업일 연산
    - MemoryPort: (date, parameter) 설정값 조회
    - InstrumentRegistryPort: id 기반 instrument 조회, NAV 기록
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    import pandas as pd

    from src.models.portfolio import OrderRequest, OrderView, PositionView, VirtualPosition
    from src.models.types import ConfigParameter, Direction, InstrumentCategory, SeriesKind


@runtime_checkable
class InstrumentPort(Protocol):
    """Instrument 인터페이스.

    leaf 자산은 ``strategy`` 가 None, 중첩 전략은 자신의 StrategyPort를 반환합니다.
    """

    @property
    def id(self) -> str: ...

    @property
    def category(self) -> InstrumentCategory: ...

    @property
    def currency(self) -> str: ...

    @property
    def point_size(self) -> float:
        """선물 계약 승수 (그 외 1.0)."""
        ...

    @property
    def strategy(self) -> StrategyPort | None:
        """중첩 전략이면 StrategyPort, leaf면 None."""
        ...

    def get_series(self, kind: SeriesKind) -> pd.Series | None:
        """시계열 조회 (없으면 None)."""
        ...


@runtime_checkable
class PortfolioPort(Protocol):
    """포트폴리오 인터페이스.

    조회는 평가일 기준 snapshot이며, 쓰기는 ``submit`` 으로만 이루어집니다.
    """

    @property
    def currency(self) -> str: ...

    def is_reserve(self, instrument: InstrumentPort) -> bool:
        """현금성 reserve instrument 여부."""
        ...

    def find_position(self, instrument: InstrumentPort, when: pd.Timestamp) -> PositionView | None: ...

    def find_open_order(self, instrument: InstrumentPort, when: pd.Timestamp) -> OrderView | None: ...

    def has_open_orders(self, when: pd.Timestamp) -> bool: ...

    def aggregated_position_orders(self, when: pd.Timestamp) -> list[VirtualPosition]:
        """포지션 + 미체결 주문 합산 (units 0 포함)."""
        ...

    def position_value(self, instrument: InstrumentPort, when: pd.Timestamp) -> float:
        """보유 포지션의 시장 가치 (포지션이 없으면 0.0)."""
        ...

    def submit(self, request: OrderRequest) -> None:
        """Target order 요청 제출."""
        ...


@runtime_checkable
class StrategyPort(Protocol):
    """자체 portfolio를 보유한 전략 인터페이스."""

    @property
    def instrument(self) -> InstrumentPort: ...

    @property
    def portfolio(self) -> PortfolioPort | None: ...

    def instruments(self, when: pd.Timestamp) -> list[InstrumentPort]:
        """전략 universe (id 순 정렬)."""
        ...

    def aum(self, when: pd.Timestamp) -> float:
        """평가일 AUM."""
        ...

    def next_aum(self, when: pd.Timestamp) -> float:
        """다음 주문 체결 후 예상 AUM."""
        ...

    def set_direction(self, when: pd.Timestamp, direction: Direction) -> None:
        """Long / Short 방향 기록."""
        ...


@runtime_checkable
class FxPort(Protocol):
    """통화 환산 인터페이스."""

    def convert(
        self,
        amount: float,
        when: pd.Timestamp,
        to_currency: str,
        from_currency: str,
    ) -> float:
        """``from_currency`` 금액을 ``to_currency`` 로 환산 (환율 없으면 NaN)."""
        ...


@runtime_checkable
class CalendarPort(Protocol):
    """영업일 달력 인터페이스."""

    def next_business_day(self, when: pd.Timestamp) -> pd.Timestamp: ...

    def business_day_of_month(self, when: pd.Timestamp) -> int:
        """해당 월의 몇 번째 영업일인지 (1부터)."""
        ...


@runtime_checkable
class MemoryPort(Protocol):
    """전략 메모리 인터페이스 (closest prior 조회)."""

    def get_value(self, when: pd.Timestamp, parameter: ConfigParameter) -> float | None: ...

    def get_reference(self, when: pd.Timestamp, parameter: ConfigParameter) -> str | None: ...

    def set_value(self, when: pd.Timestamp, parameter: ConfigParameter, value: float | str) -> None: ...


@runtime_checkable
class InstrumentRegistryPort(Protocol):
    """Instrument 조회 / NAV 기록 인터페이스."""

    def find(self, instrument_id: str) -> InstrumentPort | None: ...

    def commit_value(self, instrument_id: str, when: pd.Timestamp, value: float) -> None:
        """instrument의 자연 시계열에 값 기록."""
        ...
