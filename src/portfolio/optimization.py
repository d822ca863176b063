"""Correlation / Concentration Optimization.

변동성 정규화된 가중 시계열에 대해 상관관계 행렬을 만들고,
information ratio를 기대수익 proxy로 사용하는 제약 mean-variance 최적화로
집중도 tilt 가중치를 계산합니다.

Information ratio가 모두 1.0이면 결과는 risk-parity에 가까운 가중치입니다.
모든 함수는 순수 함수이며, 최적화 실패는 로그만 남기고 동일가중을 반환합니다.

Rules Applied:
    - #10 Python Standards: Modern typing, named constants
    - #23 Exception Handling: 경계 밖으로 예외를 전파하지 않는 fallback
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np
import numpy.typing as npt
from loguru import logger
from scipy.optimize import minimize

from src.core.exceptions import OptimizationError

if TYPE_CHECKING:
    from collections.abc import Sequence

    import pandas as pd

# ── Constants ─────────────────────────────────────────────────────

_MIN_OPTIMIZED_ASSETS = 3
_LOWER_BOUND_NUMERATOR = 0.1  # 하한 = 0.1 / n
_OPTIMIZER_FTOL = 1e-5
_OPTIMIZER_MAXITER = 5
_NEUTRAL_INFORMATION_RATIO = 1.0


# ── Correlation ───────────────────────────────────────────────────


def correlation(series_list: Sequence[pd.Series]) -> npt.NDArray[np.float64]:
    """상관관계 행렬.

    pairwise 공분산을 각 시리즈의 표준편차 곱으로 나눕니다.
    대각은 1.0으로 고정되며, 분산이 0인 쌍은 0.0입니다.

    Args:
        series_list: 동일 길이 시계열 리스트

    Returns:
        (n, n) 대칭 행렬
    """
    n = len(series_list)
    corr = np.eye(n)
    if n < 2:  # noqa: PLR2004
        return corr

    data = np.vstack([np.asarray(s, dtype=float) for s in series_list])
    cov = np.atleast_2d(np.cov(data, ddof=1))
    std = np.sqrt(np.diag(cov))
    for i in range(n):
        for j in range(i + 1, n):
            denom = std[i] * std[j]
            value = cov[i, j] / denom if denom > 0 and np.isfinite(denom) else 0.0
            corr[i, j] = corr[j, i] = value if np.isfinite(value) else 0.0
    return corr


# ── Optimization ──────────────────────────────────────────────────


def _negative_sharpe(
    w: npt.NDArray[np.float64],
    rets: npt.NDArray[np.float64],
    corr: npt.NDArray[np.float64],
) -> float:
    """-(w·r) / sqrt(w·C·w)."""
    variance = float(w @ corr @ w)
    if variance <= 0:
        msg = "Non-positive portfolio variance"
        raise OptimizationError(msg, context={"variance": variance})
    return -float(w @ rets) / float(np.sqrt(variance))


def _solve(
    series_list: Sequence[pd.Series],
    rets: npt.NDArray[np.float64],
) -> npt.NDArray[np.float64]:
    n = len(series_list)
    corr = correlation(series_list)
    lower = _LOWER_BOUND_NUMERATOR / n
    w0 = np.full(n, 1.0 / n)

    result = minimize(
        _negative_sharpe,
        w0,
        args=(rets, corr),
        method="SLSQP",
        bounds=[(lower, 1.0)] * n,
        constraints=[{"type": "eq", "fun": lambda w: float(np.sum(w)) - 1.0}],
        options={"ftol": _OPTIMIZER_FTOL, "maxiter": _OPTIMIZER_MAXITER},
    )

    w: npt.NDArray[np.float64] = np.clip(np.asarray(result.x, dtype=float), lower, 1.0)
    total = float(w.sum())
    if not np.all(np.isfinite(w)) or total <= 0:
        msg = "Optimizer produced non-finite weights"
        raise OptimizationError(msg, context={"message": result.message})
    return w / total


def optimize(
    series_list: Sequence[pd.Series],
    information_ratios: Sequence[float],
) -> npt.NDArray[np.float64]:
    """제약 mean-variance 집중도 최적화.

    ``sum(w) = 1``, ``0.1/n <= w <= 1`` 제약에서 ``-(w·r)/sqrt(w·C·w)`` 를 최소화합니다.
    자산이 2개 이하이면 최적화 없이 동일가중을 반환합니다.

    Args:
        series_list: 가중 synthetic 시계열 리스트
        information_ratios: 자산별 기대수익 proxy (비유한 값은 1.0)

    Returns:
        합이 1인 가중치 벡터 (실패 시 동일가중)
    """
    n = len(series_list)
    equal = np.full(n, 1.0 / n) if n > 0 else np.zeros(0)
    if n < _MIN_OPTIMIZED_ASSETS:
        return equal

    rets = np.asarray(information_ratios, dtype=float)
    rets = np.where(np.isfinite(rets), rets, _NEUTRAL_INFORMATION_RATIO)

    try:
        return _solve(series_list, rets)
    except Exception:
        logger.opt(exception=True).warning(
            "Concentration optimizer failed, falling back to equal weights"
        )
        return equal
