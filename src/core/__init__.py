"""Core module - Single Source of Truth for shared components."""

from src.core.exceptions import (
    ConfigurationError,
    DataValidationError,
    EngineError,
    OptimizationError,
    ScenarioError,
    add_context_note,
)

__all__ = [
    "ConfigurationError",
    "DataValidationError",
    "EngineError",
    "OptimizationError",
    "ScenarioError",
    "add_context_note",
]
