"""Scenario configuration (YAML + Pydantic)."""

from src.config.scenario_loader import (
    InstrumentSpec,
    Scenario,
    ScenarioConfig,
    SeriesSource,
    StrategyKind,
    StrategySpec,
    build_scenario,
    load_scenario,
)

__all__ = [
    "InstrumentSpec",
    "Scenario",
    "ScenarioConfig",
    "SeriesSource",
    "StrategyKind",
    "StrategySpec",
    "build_scenario",
    "load_scenario",
]
