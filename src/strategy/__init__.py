"""Strategies built on the host object model.

- PortfolioStrategy: risk-budget portfolio construction over a basket of instruments
- DepositStrategy: Act/360 cash accrual

Example:
    >>> from src.strategy import PortfolioStrategy
    >>> strategy = PortfolioStrategy.create(instrument, memory, fx, calendar, initial_date=start)
    >>> result = strategy.execute(evaluation_date)
"""

from src.strategy.deposit import DepositStrategy
from src.strategy.portfolio_strategy import PortfolioStrategy

__all__ = ["DepositStrategy", "PortfolioStrategy"]
