"""Typer CLI for scenario evaluation.

Commands:
    - evaluate: risk-budget 전략 평가 (단계별 가중치 + 주문)
    - accrue: deposit 전략 NAV 한 단계 계산
"""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, Annotated

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from src.config.scenario_loader import load_scenario
from src.core.exceptions import EngineError
from src.core.logger import setup_logger, setup_logger_from_config
from src.logging.config import LoggingConfig

if TYPE_CHECKING:
    from src.portfolio.pipeline import PipelineResult

app = typer.Typer(no_args_is_help=True)
console = Console()

_MODE_COLORS = {
    "skipped": "dim",
    "bootstrap": "cyan",
    "hold": "yellow",
    "rebalance": "green",
}


def _configure_logging(verbose: bool, log_dir: Path | None) -> None:
    """Console 전용 logger, ``--log-dir`` 지정 시 LOG_* 설정을 따르는 file sink 추가."""
    level = "DEBUG" if verbose else "WARNING"
    if log_dir is None:
        setup_logger(console_level=level, enable_file=False)
        return
    setup_logger_from_config(LoggingConfig(log_dir=log_dir, console_level=level))


def _stage_table(result: PipelineResult) -> Table:
    """단계별 가중치 표 (행: instrument, 열: stage)."""
    table = Table(show_header=True, header_style="bold")
    table.add_column("Instrument", style="bold")
    for name in result.stages:
        table.add_column(name, justify="right")

    ids = sorted(result.weights)
    for iid in ids:
        row = [f"{weights.get(iid, 0.0):.6f}" for weights in result.stages.values()]
        table.add_row(iid, *row)
    return table


def _order_table(result: PipelineResult) -> Table:
    table = Table(show_header=True, header_style="bold")
    table.add_column("Instrument", style="bold")
    table.add_column("Mode")
    table.add_column("Size", justify="right")
    for order in result.orders:
        table.add_row(order.instrument_id, order.mode.value, f"{order.size:,.4f}")
    return table


def _render(strategy_id: str, result: PipelineResult) -> None:
    color = _MODE_COLORS.get(result.mode.value, "white")
    console.print(
        f"\n[bold]{strategy_id}[/bold] {result.when.date()} "
        f"[{color}]{result.mode.value.upper()}[/{color}] "
        f"reference AUM {result.reference_aum:,.2f} [dim]{result.run_id or ''}[/dim]"
    )
    if result.stages:
        console.print(_stage_table(result))
    if result.orders:
        console.print(_order_table(result))
    else:
        console.print("[dim]No orders.[/dim]")


# ─── Commands ────────────────────────────────────────────────────────


@app.command()
def evaluate(
    scenario: Annotated[Path, typer.Argument(help="YAML scenario file")],
    when: Annotated[datetime, typer.Option("--date", "-d", help="Evaluation date")],
    strategy: Annotated[
        str | None, typer.Option("--strategy", "-s", help="Portfolio strategy id (default: all)")
    ] = None,
    verbose: Annotated[bool, typer.Option("--verbose", "-V", help="Debug logging")] = False,
    log_dir: Annotated[
        Path | None, typer.Option("--log-dir", help="Also write log files to this directory")
    ] = None,
) -> None:
    """Risk-budget 전략 평가 (가중치 + 주문)."""
    _configure_logging(verbose, log_dir)
    try:
        loaded = load_scenario(scenario)
        targets = [strategy] if strategy else list(loaded.portfolios)
        if not targets:
            console.print("[yellow]No portfolio strategies in scenario.[/yellow]")
            return
        for sid in targets:
            _render(sid, loaded.portfolio(sid).execute(when))
    except (EngineError, FileNotFoundError) as e:
        console.print(f"[red]Error:[/red] {escape(str(e))}")
        raise typer.Exit(code=1) from e


@app.command()
def accrue(
    scenario: Annotated[Path, typer.Argument(help="YAML scenario file")],
    strategy: Annotated[str, typer.Option("--strategy", "-s", help="Deposit strategy id")],
    when: Annotated[datetime, typer.Option("--date", "-d", help="Accrual date")],
    verbose: Annotated[bool, typer.Option("--verbose", "-V", help="Debug logging")] = False,
    log_dir: Annotated[
        Path | None, typer.Option("--log-dir", help="Also write log files to this directory")
    ] = None,
) -> None:
    """Deposit 전략 NAV 계산."""
    _configure_logging(verbose, log_dir)
    try:
        loaded = load_scenario(scenario)
        nav = loaded.deposit(strategy).nav_calculation(when)
    except (EngineError, FileNotFoundError) as e:
        console.print(f"[red]Error:[/red] {escape(str(e))}")
        raise typer.Exit(code=1) from e

    console.print(f"[bold]{strategy}[/bold] {when.date()} NAV [green]{nav:,.8f}[/green]")
