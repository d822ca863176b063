"""Loguru logging configuration.

This module provides a centralized logging setup following the project's
logging standards (Rules #15). All logging in the engine uses the
configured loguru logger.

Features:
    - Console sink: human-readable, evaluation context prefix
      (``[strategy@evaluation_date]``) when a record carries one
    - File sink: JSON serialized records or rotated plain text
    - Context binding via src.logging.context (strategy / evaluation date / run id)

Rules Applied:
    - #15 Logging Standards: Loguru, dual sinks
"""

from __future__ import annotations

import sys
from pathlib import Path
from typing import TYPE_CHECKING

from loguru import logger

from src.logging.config import LoggingConfig, get_logging_config
from src.logging.context import get_engine_logger, get_strategy_logger

if TYPE_CHECKING:
    from loguru import Record

# =============================================================================
# Console Format Templates
# =============================================================================

_CONSOLE_PREFIX = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
)

CONSOLE_FORMAT_DEFAULT = _CONSOLE_PREFIX + "<level>{message}</level>"

_FILE_STEM = "engine_{time:YYYY-MM-DD}"


def evaluation_format(record: Record) -> str:
    """Console format with the bound evaluation context.

    ``get_strategy_logger`` 로 바인딩된 레코드는 ``[CORE@2024-03-29]`` 형태의
    prefix를 갖고, 그 외 레코드는 기본 포맷과 같습니다.
    """
    extra = record["extra"]
    context = ""
    if "strategy" in extra:
        context = "<dim>[{extra[strategy]}"
        if "evaluation_date" in extra:
            context += "@{extra[evaluation_date]}"
        context += "]</dim> "
    return _CONSOLE_PREFIX + context + "<level>{message}</level>\n{exception}"


# =============================================================================
# Setup Functions
# =============================================================================


def setup_logger_from_config(config: LoggingConfig | None = None) -> None:
    """Initialize logger from Pydantic config model.

    Args:
        config: LoggingConfig instance (loads from env if None)

    Example:
        >>> from src.core.logger import setup_logger_from_config
        >>> setup_logger_from_config()  # Loads from LOG_* env vars
    """
    if config is None:
        config = get_logging_config()

    _setup_logger_internal(config)


def setup_logger(
    log_dir: Path | str = Path("logs"),
    console_level: str = "INFO",
    file_level: str = "DEBUG",
    *,
    enable_file: bool = True,
) -> None:
    """Initialize the logger for one engine process (CLI run, notebook, test).

    Args:
        log_dir: Directory for log files (default: "logs")
        console_level: Console output level (default: "INFO")
        file_level: File output level (default: "DEBUG")
        enable_file: Write a file sink as well (default: True)

    Example:
        >>> from src.core.logger import setup_logger, logger
        >>> setup_logger(console_level="DEBUG", enable_file=False)
        >>> logger.info("Evaluating scenario")
    """
    config = LoggingConfig(
        log_dir=Path(log_dir),
        console_level=console_level,  # type: ignore[arg-type]
        file_level=file_level,  # type: ignore[arg-type]
        enable_file=enable_file,
    )
    _setup_logger_internal(config)


def _setup_logger_internal(config: LoggingConfig) -> None:
    logger.remove()

    # 1. Console Handler (Human-readable)
    logger.add(
        sys.stderr,
        format=evaluation_format if config.show_context else CONSOLE_FORMAT_DEFAULT,
        level=config.console_level,
        colorize=True,
        backtrace=config.backtrace,
        diagnose=config.diagnose,
    )

    # 2. File Handler
    if config.enable_file:
        log_path = Path(config.log_dir)
        log_path.mkdir(parents=True, exist_ok=True)
        _setup_file_sink(log_path, config)

    logger.debug(
        "Logger initialized",
        log_dir=str(config.log_dir),
        console_level=config.console_level,
        file_level=config.file_level,
        file_enabled=config.enable_file,
    )


def _setup_file_sink(log_path: Path, config: LoggingConfig) -> None:
    """JSON mode serializes every record (bound evaluation context included) one per line."""
    if config.json_logs:
        logger.add(
            log_path / f"{_FILE_STEM}.json",
            level=config.file_level,
            serialize=True,
            rotation=config.rotation,
            retention=config.retention,
            backtrace=config.backtrace,
            diagnose=False,
        )
        return

    logger.add(
        log_path / f"{_FILE_STEM}.log",
        format=evaluation_format,
        level=config.file_level,
        rotation=config.rotation,
        retention=config.retention,
        compression=config.compression,
        backtrace=config.backtrace,
        diagnose=False,
    )


# =============================================================================
# Module Exports
# =============================================================================

__all__ = [
    "CONSOLE_FORMAT_DEFAULT",
    "evaluation_format",
    "get_engine_logger",
    "get_strategy_logger",
    "logger",
    "setup_logger",
    "setup_logger_from_config",
]
