"""In-memory host 구현체.

Host port를 프로세스 메모리만으로 구현합니다.
시나리오 파일 로더, CLI, 테스트가 엔진을 end-to-end로 구동할 때 사용합니다.

Rules Applied:
    - #10 Python Standards: Modern typing, named constants
    - Ports & Adapters: src.host.ports Protocol을 structural subtyping으로 만족
"""

from __future__ import annotations

import bisect
import math
from typing import TYPE_CHECKING

import pandas as pd
from loguru import logger
from pandas.tseries.offsets import BDay

from src.core.exceptions import DataValidationError
from src.market.timeseries import value_at
from src.models.portfolio import (
    OrderMode,
    OrderRequest,
    OrderView,
    PositionView,
    VirtualPosition,
)
from src.models.types import InstrumentCategory, natural_series_kind

if TYPE_CHECKING:
    from collections.abc import Iterator, Mapping

    from src.host.ports import InstrumentPort
    from src.models.types import ConfigParameter, Direction, SeriesKind

# ── Constants ─────────────────────────────────────────────────────

_DEFAULT_CURRENCY = "USD"


def _as_series(values: pd.Series) -> pd.Series:
    """DatetimeIndex 정렬 float 시리즈로 정규화."""
    series = values.astype(float).copy()
    series.index = pd.DatetimeIndex(series.index)
    return series.sort_index()


# ── Instrument ────────────────────────────────────────────────────


class InMemoryInstrument:
    """메모리 기반 instrument.

    Args:
        instrument_id: 고유 id
        category: instrument 카테고리
        currency: 표시 통화
        point_size: 선물 계약 승수
        series: {SeriesKind: pd.Series}
    """

    def __init__(
        self,
        instrument_id: str,
        category: InstrumentCategory,
        currency: str = _DEFAULT_CURRENCY,
        point_size: float = 1.0,
        series: Mapping[SeriesKind, pd.Series] | None = None,
    ) -> None:
        self._id = instrument_id
        self._category = category
        self._currency = currency
        self._point_size = point_size
        self._series: dict[SeriesKind, pd.Series] = {
            kind: _as_series(values) for kind, values in (series or {}).items()
        }
        self._strategy: InMemoryStrategy | None = None

    @property
    def id(self) -> str:
        return self._id

    @property
    def category(self) -> InstrumentCategory:
        return self._category

    @property
    def currency(self) -> str:
        return self._currency

    @property
    def point_size(self) -> float:
        return self._point_size

    @property
    def strategy(self) -> InMemoryStrategy | None:
        return self._strategy

    def attach_strategy(self, strategy: InMemoryStrategy) -> None:
        """중첩 전략 연결 (STRATEGY 카테고리 전용)."""
        if self._category != InstrumentCategory.STRATEGY:
            msg = f"Instrument {self._id} is not a strategy"
            raise DataValidationError(msg, context={"category": self._category.value})
        self._strategy = strategy

    def get_series(self, kind: SeriesKind) -> pd.Series | None:
        return self._series.get(kind)

    def set_series(self, kind: SeriesKind, values: pd.Series) -> None:
        self._series[kind] = _as_series(values)

    def commit(self, kind: SeriesKind, when: pd.Timestamp, value: float) -> None:
        """``when`` 시점 값을 기록 (같은 시점이 있으면 덮어쓰기)."""
        current = self._series.get(kind, pd.Series(dtype=float))
        current = current.copy()
        current.loc[pd.Timestamp(when)] = float(value)
        self._series[kind] = _as_series(current)

    def __repr__(self) -> str:
        return f"InMemoryInstrument(id={self._id!r}, category={self._category.value!r})"


# ── Portfolio ─────────────────────────────────────────────────────


class InMemoryPortfolio:
    """메모리 기반 포트폴리오.

    포지션과 미체결 주문을 instrument id 기준으로 보관합니다.
    미체결 주문의 units는 포지션 대비 증분입니다.
    중첩 전략 포지션은 notional 단위로 보관합니다 (unit 가치 1.0).

    Args:
        currency: 포트폴리오 통화
    """

    def __init__(self, currency: str = _DEFAULT_CURRENCY) -> None:
        self._currency = currency
        self._instruments: dict[str, InstrumentPort] = {}
        self._reserves: set[str] = set()
        self._positions: dict[str, float] = {}
        self._orders: dict[str, float] = {}
        self.submitted: list[OrderRequest] = []

    @property
    def currency(self) -> str:
        return self._currency

    # ── Setup ──

    def register(self, instrument: InstrumentPort, *, reserve: bool = False) -> None:
        self._instruments[instrument.id] = instrument
        if reserve:
            self._reserves.add(instrument.id)

    def set_position(self, instrument: InstrumentPort, units: float) -> None:
        self.register(instrument)
        self._positions[instrument.id] = units

    def set_open_order(self, instrument: InstrumentPort, units: float) -> None:
        self.register(instrument)
        self._orders[instrument.id] = units

    # ── Queries ──

    def is_reserve(self, instrument: InstrumentPort) -> bool:
        return instrument.id in self._reserves

    def find_position(self, instrument: InstrumentPort, when: pd.Timestamp) -> PositionView | None:
        units = self._positions.get(instrument.id)
        return None if units is None else PositionView(instrument.id, units)

    def find_open_order(self, instrument: InstrumentPort, when: pd.Timestamp) -> OrderView | None:
        units = self._orders.get(instrument.id)
        return None if units is None else OrderView(instrument.id, units)

    def has_open_orders(self, when: pd.Timestamp) -> bool:
        return bool(self._orders)

    def aggregated_position_orders(self, when: pd.Timestamp) -> list[VirtualPosition]:
        ids = sorted(set(self._positions) | set(self._orders))
        return [
            VirtualPosition(
                self._instruments[iid],
                self._positions.get(iid, 0.0) + self._orders.get(iid, 0.0),
            )
            for iid in ids
        ]

    def unit_value(self, instrument: InstrumentPort, when: pd.Timestamp) -> float:
        """1 unit의 가치 (instrument 통화, 가격 없으면 NaN)."""
        if instrument.strategy is not None:
            return 1.0
        price = value_at(instrument.get_series(natural_series_kind(instrument.category)), when)
        return math.nan if price is None else price * instrument.point_size

    def position_value(self, instrument: InstrumentPort, when: pd.Timestamp) -> float:
        units = self._positions.get(instrument.id)
        if units is None:
            return 0.0
        return units * self.unit_value(instrument, when)

    # ── Writes ──

    def submit(self, request: OrderRequest) -> None:
        """요청을 미체결 주문으로 반영.

        CREATE_UNITS는 목표 units, OVERRIDE_NOTIONAL은 목표 notional을 units로 환산합니다.
        """
        instrument = self._instruments[request.instrument_id]
        if request.mode == OrderMode.CREATE_UNITS:
            target_units = request.size
        else:
            unit_value = self.unit_value(instrument, pd.Timestamp(request.order_date))
            target_units = 0.0 if not unit_value or math.isnan(unit_value) else request.size / unit_value

        self._orders[instrument.id] = target_units - self._positions.get(instrument.id, 0.0)
        self.submitted.append(request)
        logger.debug(
            "Order submitted | {id} mode={mode} size={size:.6f}",
            id=request.instrument_id,
            mode=request.mode.value,
            size=request.size,
        )

    def fill_open_orders(self) -> int:
        """미체결 주문을 모두 포지션으로 체결. 체결 건수 반환."""
        filled = len(self._orders)
        for iid, units in self._orders.items():
            self._positions[iid] = self._positions.get(iid, 0.0) + units
        self._orders.clear()
        return filled


# ── Strategy ──────────────────────────────────────────────────────


class InMemoryStrategy:
    """메모리 기반 전략.

    Args:
        instrument: 전략 instrument (STRATEGY 카테고리)
        portfolio: 전략 portfolio
        aum: 고정 AUM 또는 날짜별 AUM 시리즈
        next_aum: 다음 예상 AUM (None이면 aum과 동일)
    """

    def __init__(
        self,
        instrument: InMemoryInstrument,
        portfolio: InMemoryPortfolio | None,
        aum: float | pd.Series = 0.0,
        next_aum: float | pd.Series | None = None,
    ) -> None:
        self._instrument = instrument
        self._portfolio = portfolio
        self._aum = aum
        self._next_aum = next_aum
        self._instruments: dict[str, InstrumentPort] = {}
        self.directions: dict[pd.Timestamp, Direction] = {}
        instrument.attach_strategy(self)

    @property
    def instrument(self) -> InMemoryInstrument:
        return self._instrument

    @property
    def portfolio(self) -> InMemoryPortfolio | None:
        return self._portfolio

    def add_instrument(self, instrument: InstrumentPort, *, reserve: bool = False) -> None:
        self._instruments[instrument.id] = instrument
        if self._portfolio is not None:
            self._portfolio.register(instrument, reserve=reserve)

    def instruments(self, when: pd.Timestamp) -> list[InstrumentPort]:
        return [self._instruments[iid] for iid in sorted(self._instruments)]

    def aum(self, when: pd.Timestamp) -> float:
        return _resolve_amount(self._aum, when)

    def next_aum(self, when: pd.Timestamp) -> float:
        if self._next_aum is None:
            return self.aum(when)
        return _resolve_amount(self._next_aum, when)

    def set_direction(self, when: pd.Timestamp, direction: Direction) -> None:
        self.directions[pd.Timestamp(when)] = direction


def _resolve_amount(amount: float | pd.Series, when: pd.Timestamp) -> float:
    if isinstance(amount, pd.Series):
        value = value_at(_as_series(amount), when)
        return 0.0 if value is None else value
    return float(amount)


# ── FX / Calendar ─────────────────────────────────────────────────


class StaticFxTable:
    """통화별 기준통화 환산가 테이블.

    ``rates[ccy]`` 는 1 ccy의 기준통화 가치 (상수 또는 날짜별 시리즈)입니다.

    Args:
        rates: {currency: float | pd.Series}
    """

    def __init__(self, rates: Mapping[str, float | pd.Series] | None = None) -> None:
        self._rates = dict(rates or {})

    def _rate(self, currency: str, when: pd.Timestamp) -> float:
        rate = self._rates.get(currency)
        if rate is None:
            return math.nan
        if isinstance(rate, pd.Series):
            value = value_at(_as_series(rate), when)
            return math.nan if value is None else value
        return float(rate)

    def convert(
        self,
        amount: float,
        when: pd.Timestamp,
        to_currency: str,
        from_currency: str,
    ) -> float:
        if to_currency == from_currency:
            return amount
        target = self._rate(to_currency, when)
        if math.isnan(target) or target == 0.0:
            return math.nan
        return amount * self._rate(from_currency, when) / target


class WeekdayCalendar:
    """월~금 영업일 달력 (공휴일 없음)."""

    def next_business_day(self, when: pd.Timestamp) -> pd.Timestamp:
        return pd.Timestamp(when) + BDay(1)

    def business_day_of_month(self, when: pd.Timestamp) -> int:
        ts = pd.Timestamp(when).normalize()
        return len(pd.bdate_range(ts.replace(day=1), ts))


# ── Memory / Registry ─────────────────────────────────────────────


class StrategyMemory:
    """파라미터별 시점 기록 (closest prior 조회)."""

    def __init__(self) -> None:
        self._points: dict[ConfigParameter, list[tuple[pd.Timestamp, float | str]]] = {}

    def set_value(self, when: pd.Timestamp, parameter: ConfigParameter, value: float | str) -> None:
        points = self._points.setdefault(parameter, [])
        ts = pd.Timestamp(when)
        dates = [d for d, _ in points]
        pos = bisect.bisect_left(dates, ts)
        if pos < len(points) and points[pos][0] == ts:
            points[pos] = (ts, value)
        else:
            points.insert(pos, (ts, value))

    def _lookup(self, when: pd.Timestamp, parameter: ConfigParameter) -> float | str | None:
        points = self._points.get(parameter)
        if not points:
            return None
        pos = bisect.bisect_right([d for d, _ in points], pd.Timestamp(when)) - 1
        return None if pos < 0 else points[pos][1]

    def get_value(self, when: pd.Timestamp, parameter: ConfigParameter) -> float | None:
        value = self._lookup(when, parameter)
        if value is None:
            return None
        if isinstance(value, str):
            msg = f"Parameter {parameter.value} holds a reference, not a number"
            raise DataValidationError(msg, context={"value": value})
        number = float(value)
        return None if math.isnan(number) else number

    def get_reference(self, when: pd.Timestamp, parameter: ConfigParameter) -> str | None:
        value = self._lookup(when, parameter)
        if value is None or isinstance(value, str):
            return value
        number = float(value)
        if math.isnan(number):
            return None
        return str(int(number)) if number.is_integer() else str(number)

    def __contains__(self, parameter: object) -> bool:
        return parameter in self._points


class InstrumentRegistry:
    """id → instrument 레지스트리."""

    def __init__(self, instruments: list[InMemoryInstrument] | None = None) -> None:
        self._instruments: dict[str, InMemoryInstrument] = {}
        for instrument in instruments or []:
            self.add(instrument)

    def add(self, instrument: InMemoryInstrument) -> None:
        if instrument.id in self._instruments:
            msg = f"Duplicate instrument id: {instrument.id}"
            raise DataValidationError(msg)
        self._instruments[instrument.id] = instrument

    def find(self, instrument_id: str) -> InMemoryInstrument | None:
        return self._instruments.get(instrument_id)

    def commit_value(self, instrument_id: str, when: pd.Timestamp, value: float) -> None:
        instrument = self._instruments[instrument_id]
        instrument.commit(natural_series_kind(instrument.category), when, value)

    def __iter__(self) -> Iterator[InMemoryInstrument]:
        return iter(self._instruments.values())

    def __len__(self) -> int:
        return len(self._instruments)
