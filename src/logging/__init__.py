"""Logging service module for the portfolio-construction engine.

This module provides:
- Pydantic-settings based logging configuration (LOG_ prefix)
- Context binding utilities (strategy, evaluation date, run id)

Rules Applied:
    - #15 Logging Standards: Loguru, dual sinks
"""

from src.logging.config import LoggingConfig, get_logging_config
from src.logging.context import (
    clear_context,
    generate_run_id,
    get_current_context,
    get_engine_logger,
    get_strategy_logger,
)

__all__ = [
    "LoggingConfig",
    "clear_context",
    "generate_run_id",
    "get_current_context",
    "get_engine_logger",
    "get_logging_config",
    "get_strategy_logger",
]
