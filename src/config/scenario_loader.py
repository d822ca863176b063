"""YAML 시나리오 로더.

YAML 파일에서 ScenarioConfig를 로드하고 in-memory host를 구성합니다.

Example YAML:
    base_currency: USD
    fx:
      EUR: 1.1
    instruments:
      - id: SPY
        category: etf
        series: {csv: prices/spy.csv}
    strategies:
      - id: CORE
        aum: 1000000
        members: [{id: SPY}]
        parameters: {target_volatility: 0.1, days_back: 60}

Rules Applied:
    - #11 Pydantic Modeling: frozen=True, model validators
    - #10 Python Standards: Modern typing, Path
    - #23 Exception Handling: 잘못된 참조는 ScenarioError
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from enum import StrEnum
from pathlib import Path
from typing import Self

import pandas as pd
import yaml
from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, model_validator

from src.core.exceptions import ScenarioError
from src.host.memory import (
    InMemoryInstrument,
    InMemoryPortfolio,
    InMemoryStrategy,
    InstrumentRegistry,
    StaticFxTable,
    StrategyMemory,
    WeekdayCalendar,
)
from src.models.types import ConfigParameter, InstrumentCategory, SeriesKind, natural_series_kind
from src.strategy.deposit import DepositStrategy
from src.strategy.portfolio_strategy import PortfolioStrategy

_DEFAULT_CURRENCY = "USD"
_DEFAULT_CSV_COLUMN = "value"


# ── Models ────────────────────────────────────────────────────────


class SeriesSource(BaseModel):
    """시계열 소스 (inline 값 또는 CSV 파일 중 하나)."""

    model_config = ConfigDict(frozen=True)

    values: dict[date, float] | None = None
    csv: str | None = None
    column: str = _DEFAULT_CSV_COLUMN

    @model_validator(mode="after")
    def _exactly_one_source(self) -> Self:
        if (self.values is None) == (self.csv is None):
            msg = "series needs exactly one of 'values' or 'csv'"
            raise ValueError(msg)
        return self

    def load(self, base_dir: Path) -> pd.Series:
        """pd.Series (DatetimeIndex, float) 로 변환.

        Raises:
            FileNotFoundError: CSV 파일이 없을 때
            ScenarioError: CSV에 column이 없을 때
        """
        if self.values is not None:
            series = pd.Series(self.values, dtype=float)
            series.index = pd.DatetimeIndex(series.index)
            return series.sort_index()

        path = Path(self.csv or "")
        if not path.is_absolute():
            path = base_dir / path
        if not path.exists():
            msg = f"Series file not found: {path}"
            raise FileNotFoundError(msg)
        frame = pd.read_csv(path, index_col=0, parse_dates=True)
        if self.column not in frame.columns:
            msg = f"Column '{self.column}' not in {path.name}"
            raise ScenarioError(msg, context={"columns": list(frame.columns)})
        return frame[self.column].astype(float).sort_index()


class InstrumentSpec(BaseModel):
    """시장 instrument 정의."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1)
    category: InstrumentCategory
    currency: str = _DEFAULT_CURRENCY
    point_size: float = Field(default=1.0, gt=0)
    series: SeriesSource | None = None
    kind: SeriesKind | None = None


class StrategyKind(StrEnum):
    """시나리오 전략 종류."""

    PORTFOLIO = "portfolio"
    DEPOSIT = "deposit"


class MemberSpec(BaseModel):
    """전략 구성 instrument."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1)
    reserve: bool = False


class StrategySpec(BaseModel):
    """전략 정의 (portfolio 또는 deposit)."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1)
    kind: StrategyKind = StrategyKind.PORTFOLIO
    currency: str = _DEFAULT_CURRENCY
    initial_date: date | None = None
    nav: SeriesSource | None = None

    # portfolio
    aum: float | SeriesSource = 0.0
    next_aum: float | SeriesSource | None = None
    fraction_contract: bool = True
    parameters: dict[ConfigParameter, float | str] = Field(default_factory=dict)
    members: list[MemberSpec] = Field(default_factory=list)
    positions: dict[str, float] = Field(default_factory=dict)
    open_orders: dict[str, float] = Field(default_factory=dict)

    # deposit
    initial_value: float = Field(default=100.0, gt=0)
    spread: float = 0.0
    funding: str | None = None

    @model_validator(mode="after")
    def _holdings_are_members(self) -> Self:
        member_ids = {m.id for m in self.members}
        stray = sorted((set(self.positions) | set(self.open_orders)) - member_ids)
        if stray:
            msg = f"strategy {self.id}: holdings outside members: {stray}"
            raise ValueError(msg)
        return self


class ScenarioConfig(BaseModel):
    """YAML 최상위 모델."""

    model_config = ConfigDict(frozen=True)

    base_currency: str = _DEFAULT_CURRENCY
    start: date = date(2000, 1, 1)
    fx: dict[str, float | SeriesSource] = Field(default_factory=dict)
    instruments: list[InstrumentSpec] = Field(default_factory=list)
    strategies: list[StrategySpec] = Field(default_factory=list)

    @model_validator(mode="after")
    def _unique_ids(self) -> Self:
        ids = [i.id for i in self.instruments] + [s.id for s in self.strategies]
        duplicates = sorted({i for i in ids if ids.count(i) > 1})
        if duplicates:
            msg = f"duplicate ids: {duplicates}"
            raise ValueError(msg)
        return self


# ── Built host ────────────────────────────────────────────────────


@dataclass
class Scenario:
    """시나리오에서 구성된 in-memory host."""

    registry: InstrumentRegistry
    fx: StaticFxTable
    calendar: WeekdayCalendar
    memories: dict[str, StrategyMemory] = field(default_factory=dict)
    portfolios: dict[str, PortfolioStrategy] = field(default_factory=dict)
    deposits: dict[str, DepositStrategy] = field(default_factory=dict)

    def portfolio(self, strategy_id: str) -> PortfolioStrategy:
        if strategy_id not in self.portfolios:
            msg = f"Unknown portfolio strategy: {strategy_id}"
            raise ScenarioError(msg, context={"known": sorted(self.portfolios)})
        return self.portfolios[strategy_id]

    def deposit(self, strategy_id: str) -> DepositStrategy:
        if strategy_id not in self.deposits:
            msg = f"Unknown deposit strategy: {strategy_id}"
            raise ScenarioError(msg, context={"known": sorted(self.deposits)})
        return self.deposits[strategy_id]


def _amount(value: float | SeriesSource, base_dir: Path) -> float | pd.Series:
    return value.load(base_dir) if isinstance(value, SeriesSource) else value


def _require(registry: InstrumentRegistry, instrument_id: str, owner: str) -> InMemoryInstrument:
    instrument = registry.find(instrument_id)
    if instrument is None:
        msg = f"Unknown instrument '{instrument_id}'"
        raise ScenarioError(msg, context={"strategy": owner})
    return instrument


def build_scenario(cfg: ScenarioConfig, base_dir: Path | None = None) -> Scenario:
    """ScenarioConfig → in-memory host.

    전략 instrument를 먼저 모두 등록하므로 중첩 전략은 선언 순서와 무관하게 참조할 수 있습니다.

    Args:
        cfg: 검증된 ScenarioConfig
        base_dir: CSV 상대 경로 기준 디렉터리

    Returns:
        Scenario

    Raises:
        ScenarioError: 알 수 없는 member / funding 참조
    """
    root = base_dir or Path.cwd()
    rates: dict[str, float | pd.Series] = {cfg.base_currency: 1.0}
    rates.update({ccy: _amount(rate, root) for ccy, rate in cfg.fx.items()})

    registry = InstrumentRegistry()
    for spec in cfg.instruments:
        series = {}
        if spec.series is not None:
            series[spec.kind or natural_series_kind(spec.category)] = spec.series.load(root)
        registry.add(
            InMemoryInstrument(spec.id, spec.category, spec.currency, spec.point_size, series)
        )
    for spec in cfg.strategies:
        nav = {SeriesKind.LAST: spec.nav.load(root)} if spec.nav is not None else None
        registry.add(InMemoryInstrument(spec.id, InstrumentCategory.STRATEGY, spec.currency, series=nav))

    scenario = Scenario(registry=registry, fx=StaticFxTable(rates), calendar=WeekdayCalendar())

    for spec in cfg.strategies:
        instrument = _require(registry, spec.id, spec.id)
        memory = StrategyMemory()
        scenario.memories[spec.id] = memory
        initial_date = pd.Timestamp(spec.initial_date or cfg.start)

        if spec.kind == StrategyKind.DEPOSIT:
            funding = _require(registry, spec.funding, spec.id) if spec.funding else None
            scenario.deposits[spec.id] = DepositStrategy.create(
                instrument,
                memory,
                registry,
                initial_date=initial_date,
                initial_value=spec.initial_value,
                spread=spec.spread,
                funding=funding,
            )
            continue

        portfolio = InMemoryPortfolio(spec.currency)
        host = InMemoryStrategy(
            instrument,
            portfolio,
            aum=_amount(spec.aum, root),
            next_aum=None if spec.next_aum is None else _amount(spec.next_aum, root),
        )
        for member in spec.members:
            host.add_instrument(_require(registry, member.id, spec.id), reserve=member.reserve)
        for iid, units in spec.positions.items():
            portfolio.set_position(_require(registry, iid, spec.id), units)
        for iid, units in spec.open_orders.items():
            portfolio.set_open_order(_require(registry, iid, spec.id), units)

        scenario.portfolios[spec.id] = PortfolioStrategy.create(
            instrument,
            memory,
            scenario.fx,
            scenario.calendar,
            initial_date=initial_date,
            fraction_contract=spec.fraction_contract,
            parameters=spec.parameters,
        )

    logger.info(
        "Scenario built | instruments={n} portfolios={p} deposits={d}",
        n=len(registry),
        p=len(scenario.portfolios),
        d=len(scenario.deposits),
    )
    return scenario


def load_scenario(path: str | Path) -> Scenario:
    """YAML → Scenario (Pydantic 검증 포함).

    Args:
        path: YAML 시나리오 파일 경로 (CSV 상대 경로의 기준)

    Returns:
        구성된 Scenario

    Raises:
        FileNotFoundError: 파일이 존재하지 않을 경우
        yaml.YAMLError: YAML 파싱 실패
        pydantic.ValidationError: 검증 실패
        ScenarioError: 잘못된 참조
    """
    file_path = Path(path)
    if not file_path.exists():
        msg = f"Scenario file not found: {file_path}"
        raise FileNotFoundError(msg)

    raw = yaml.safe_load(file_path.read_text(encoding="utf-8"))
    cfg = ScenarioConfig.model_validate(raw or {})
    return build_scenario(cfg, file_path.parent)
