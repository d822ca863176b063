"""CLI interface using Typer.

Available commands:
    - evaluate: Risk-budget strategy evaluation on a YAML scenario
    - accrue: Deposit strategy NAV accrual

Usage:
    uv run riskbudget evaluate scenario.yaml --date 2024-03-29
    uv run riskbudget accrue scenario.yaml --strategy CASH --date 2024-03-29
"""

import typer


def create_app() -> typer.Typer:
    """Create the main CLI application.

    Lazy import를 사용하여 엔진 모듈을 필요할 때만 로드합니다.
    """
    from src.cli.engine import app as engine_app

    engine_app.info.name = "riskbudget"
    engine_app.info.help = "Risk-budget portfolio construction engine"
    return engine_app


def main() -> None:
    """Entry point for the ``riskbudget`` console script."""
    app = create_app()
    app()
