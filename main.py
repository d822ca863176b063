"""Risk-Budget Engine - Entry Point.

Usage:
    python main.py evaluate scenario.yaml --date 2024-03-29
    python main.py accrue scenario.yaml --strategy CASH --date 2024-03-29
"""

from src.cli import create_app

app = create_app()


if __name__ == "__main__":
    app()
