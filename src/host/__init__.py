"""Host collaborator ports and the in-memory host."""

from src.host.memory import (
    InMemoryInstrument,
    InMemoryPortfolio,
    InMemoryStrategy,
    InstrumentRegistry,
    StaticFxTable,
    StrategyMemory,
    WeekdayCalendar,
)
from src.host.ports import (
    CalendarPort,
    FxPort,
    InstrumentPort,
    InstrumentRegistryPort,
    MemoryPort,
    PortfolioPort,
    StrategyPort,
)

__all__ = [
    "CalendarPort",
    "FxPort",
    "InMemoryInstrument",
    "InMemoryPortfolio",
    "InMemoryStrategy",
    "InstrumentPort",
    "InstrumentRegistry",
    "InstrumentRegistryPort",
    "MemoryPort",
    "PortfolioPort",
    "StaticFxTable",
    "StrategyMemory",
    "StrategyPort",
    "WeekdayCalendar",
]
