"""Risk-budget portfolio construction.

Components:
    - aggregator: synthetic cash-difference series per instrument
    - optimization: correlation matrix and concentration optimizer
    - risk_model: pluggable risk / exposure / information-ratio capability
    - notional: parent-to-nested notional adjustment
    - rebalance: rebalance schedule codes
    - stages: the seven weight stages
    - orders: target order emission
    - pipeline: per-date state machine
"""

from src.portfolio.aggregator import build_series_map
from src.portfolio.config import StrategyParameters
from src.portfolio.notional import notional_adjustment
from src.portfolio.optimization import correlation, optimize
from src.portfolio.pipeline import PipelineMode, PipelineResult, RiskBudgetPipeline
from src.portfolio.rebalance import is_rebalance_day, rebalance_due
from src.portfolio.risk_model import DefaultRiskModel, HighLowMark, RiskModel
from src.portfolio.stages import StageContext

__all__ = [
    "DefaultRiskModel",
    "HighLowMark",
    "PipelineMode",
    "PipelineResult",
    "RiskBudgetPipeline",
    "RiskModel",
    "StageContext",
    "StrategyParameters",
    "build_series_map",
    "correlation",
    "is_rebalance_day",
    "notional_adjustment",
    "optimize",
    "rebalance_due",
]
