"""TimeSeries primitives.

엔진의 모든 시계열은 정렬된 DatetimeIndex를 갖는 float ``pd.Series`` 입니다.
이 모듈은 host 시계열 계약(closest-prior 검색, 구간 슬라이스, 차분,
로그수익률, NaN 치환, 표준편차, quadratic variation)을 순수 함수로 제공합니다.

입력 시리즈는 변경하지 않으며 항상 새 시리즈를 반환합니다.

Rules Applied:
    - #10 Python Standards: Modern typing, named constants
    - #12 Data Engineering: Vectorized pandas operations
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np
import pandas as pd

if TYPE_CHECKING:
    from collections.abc import Mapping

# ── Constants ─────────────────────────────────────────────────────

TRADING_DAYS_PER_YEAR = 252
MIN_OBSERVATIONS = 5


# ── Index Search ──────────────────────────────────────────────────


def closest_prior_index(series: pd.Series, when: pd.Timestamp) -> int | None:
    """``when`` 이하인 마지막 관측치의 위치 인덱스.

    Args:
        series: 정렬된 시계열
        when: 기준 시각

    Returns:
        위치 인덱스, 해당 관측치가 없으면 None
    """
    if series.empty:
        return None
    pos = int(series.index.searchsorted(when, side="right")) - 1
    return pos if pos >= 0 else None


def observation_count(series: pd.Series | None, when: pd.Timestamp) -> int:
    """``when`` 까지의 관측치 수 (series가 None이면 0)."""
    if series is None:
        return 0
    idx = closest_prior_index(series, when)
    return 0 if idx is None else idx + 1


def history_until(series: pd.Series, when: pd.Timestamp) -> pd.Series:
    """``when`` 까지의 전체 이력 (포함)."""
    idx = closest_prior_index(series, when)
    if idx is None:
        return series.iloc[0:0]
    return series.iloc[: idx + 1]


def value_at(series: pd.Series | None, when: pd.Timestamp) -> float | None:
    """``when`` 시점의 값 (closest prior). 없으면 None."""
    if series is None:
        return None
    idx = closest_prior_index(series, when)
    if idx is None:
        return None
    value = float(series.iloc[idx])
    return None if np.isnan(value) else value


def lookback_window(
    series: pd.Series,
    when: pd.Timestamp,
    days_back: int | None,
) -> pd.Series:
    """``when`` 에서 끝나는 lookback 구간.

    차분 후 ``days_back`` 개의 증분이 남도록 ``days_back + 1`` 개 관측치를 반환합니다.
    ``days_back`` 이 None이면 전체 이력을 반환합니다.
    """
    history = history_until(series, when)
    if days_back is None:
        return history
    return history.iloc[max(0, len(history) - 1 - days_back) :]


# ── Transforms ────────────────────────────────────────────────────


def replace_nan(series: pd.Series, value: float = 0.0) -> pd.Series:
    """NaN / ±inf를 ``value`` 로 치환."""
    return series.replace([np.inf, -np.inf], np.nan).fillna(value)


def difference(series: pd.Series) -> pd.Series:
    """1차 차분 (첫 관측치 제거, NaN → 0)."""
    return replace_nan(series.diff().iloc[1:])


def log_returns(series: pd.Series) -> pd.Series:
    """로그 수익률 (첫 관측치 제거, NaN → 0)."""
    with np.errstate(divide="ignore", invalid="ignore"):
        logged = np.log(series.astype(float))
    return replace_nan(logged.diff().iloc[1:])


# ── Statistics ────────────────────────────────────────────────────


def quadratic_variation(series: pd.Series) -> float:
    """Quadratic variation per observation: sqrt(mean(x²)).

    차분 시계열에 적용하면 (평균 제거 없는) 1기간 실현 변동성이 됩니다.
    빈 시리즈는 NaN.
    """
    values = series.to_numpy(dtype=float)
    if values.size == 0:
        return float("nan")
    return float(np.sqrt(np.mean(np.square(values))))


def standard_deviation(series: pd.Series) -> float:
    """표본 표준편차 (ddof=1). 관측치 2개 미만이면 NaN."""
    if len(series) < 2:  # noqa: PLR2004
        return float("nan")
    return float(series.std(ddof=1))


def annualized_volatility(prices: pd.Series, days_back: int | None) -> float:
    """최근 ``days_back`` 개 로그수익률의 연환산 변동성.

    Args:
        prices: 기준일까지 잘린 가격 이력
        days_back: 로그수익률 개수 (None이면 전체)

    Returns:
        std(log returns) * sqrt(252), 계산 불가 시 0.0
    """
    window = prices if days_back is None else prices.iloc[max(0, len(prices) - 1 - days_back) :]
    vol = standard_deviation(log_returns(window)) * np.sqrt(TRADING_DAYS_PER_YEAR)
    return 0.0 if np.isnan(vol) else float(vol)


# ── Alignment ─────────────────────────────────────────────────────


def align_to_longest(series_map: Mapping[str, pd.Series]) -> dict[str, pd.Series]:
    """모든 시리즈를 가장 긴 시리즈의 날짜 그리드로 재정렬.

    누락 구간은 직전 값으로 채우고(forward fill), 남은 NaN은 0으로 치환합니다.
    길이가 같으면 id 정렬 순서상 먼저 오는 시리즈의 그리드를 사용합니다.

    Args:
        series_map: {instrument_id: series}

    Returns:
        공통 길이·공통 그리드의 {instrument_id: series}
    """
    if not series_map:
        return {}
    ordered_ids = sorted(series_map)
    grid_id = max(ordered_ids, key=lambda k: len(series_map[k]))
    grid = series_map[grid_id].index

    aligned: dict[str, pd.Series] = {}
    for instrument_id in ordered_ids:
        series = series_map[instrument_id]
        reindexed = series.reindex(grid, method="ffill") if not series.empty else pd.Series(
            np.nan, index=grid
        )
        aligned[instrument_id] = replace_nan(reindexed.astype(float))
    return aligned
