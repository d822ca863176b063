"""Target order emission.

최종 가중치를 현재 미체결 주문 / 포지션과 비교해 target order 요청을 만듭니다.
notional 비율 차이가 리밸런싱 임계값을 초과(strict ``>``)할 때만 주문을 갱신하며,
이것이 churn을 막는 마지막 관문입니다.

Bootstrap 모드(lookback 또는 목표 변동성 미설정)에서는 최적화 없이
포지션이 없는 instrument에만 초기 주문을 생성합니다.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from loguru import logger

from src.market.timeseries import MIN_OBSERVATIONS, value_at
from src.models.portfolio import OrderMode, OrderRequest, OrderTarget
from src.models.types import Direction
from src.portfolio.aggregator import natural_series
from src.portfolio.notional import notional_adjustment

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    import pandas as pd

    from src.host.ports import InstrumentPort, PortfolioPort, StrategyPort
    from src.portfolio.config import StrategyParameters
    from src.portfolio.risk_model import RiskModel


def _nested_strategy(instrument: InstrumentPort) -> StrategyPort | None:
    strategy = instrument.strategy
    if strategy is None or strategy.portfolio is None:
        return None
    return strategy


def _unit_value(instrument: InstrumentPort, when: pd.Timestamp) -> float | None:
    """1 계약의 가치 (가격 × point size). 가격이 없거나 0이면 None."""
    price = value_at(natural_series(instrument), when)
    return None if price is None or price == 0 else price * instrument.point_size


def _create_units(
    instrument: InstrumentPort,
    when: pd.Timestamp,
    notional: float,
    params: StrategyParameters,
) -> float | None:
    """신규 주문 units (중첩 전략은 notional 그대로). 가격이 없으면 None."""
    if _nested_strategy(instrument) is not None:
        return notional
    unit_value = _unit_value(instrument, when)
    if unit_value is None:
        logger.warning("No price for order sizing | {id} at {when}", id=instrument.id, when=when)
        return None
    units = notional / unit_value
    return units if params.fraction_contract else float(round(units))


def _submit(portfolio: PortfolioPort, request: OrderRequest, emitted: list[OrderRequest]) -> None:
    portfolio.submit(request)
    emitted.append(request)


# ── Full mode ─────────────────────────────────────────────────────


def _current_value(
    instrument: InstrumentPort,
    when: pd.Timestamp,
    portfolio: PortfolioPort,
    order_units: float | None,
) -> float:
    """미체결 주문이 있으면 주문 포함 가치, 없으면 포지션 가치."""
    if order_units is None:
        return portfolio.position_value(instrument, when)
    nested = _nested_strategy(instrument)
    if nested is not None:
        return nested.next_aum(when)
    position = portfolio.find_position(instrument, when)
    held = position.units if position is not None else 0.0
    price = value_at(natural_series(instrument), when) or 0.0
    return (order_units + held) * price * instrument.point_size


def emit_orders(
    weights: Mapping[str, float],
    instruments: Sequence[InstrumentPort],
    when: pd.Timestamp,
    reference_aum: float,
    params: StrategyParameters,
    portfolio: PortfolioPort,
) -> list[OrderRequest]:
    """최종 가중치로 target order를 생성/갱신합니다.

    Args:
        weights: 최종 가중치 맵
        instruments: 전략 universe (순서 유지)
        when: 평가일
        reference_aum: 기준 AUM
        params: 전략 설정
        portfolio: 부모 포트폴리오

    Returns:
        제출된 주문 요청 리스트
    """
    emitted: list[OrderRequest] = []
    threshold = params.rebalancing_threshold

    for instrument in instruments:
        if instrument.id not in weights:
            continue
        signed = weights[instrument.id]
        weight = abs(signed)
        adjustment = notional_adjustment(instrument, when, reference_aum)
        size = weight * reference_aum * adjustment

        direction: Direction | None = None
        nested = _nested_strategy(instrument)
        if nested is not None:
            direction = Direction.LONG if signed > 0 else Direction.SHORT
            nested.set_direction(when, direction)

        order = portfolio.find_open_order(instrument, when)
        position = portfolio.find_position(instrument, when)

        if order is not None or position is not None:
            value = _current_value(instrument, when, portfolio, None if order is None else order.units)
            notional_diff = abs(weight * adjustment - value / reference_aum)
            if notional_diff <= threshold:
                continue
            target = OrderTarget.OPEN_ORDER if order is not None else OrderTarget.POSITION
            request = OrderRequest(
                instrument_id=instrument.id,
                order_date=when,
                size=size,
                mode=OrderMode.OVERRIDE_NOTIONAL,
                target=target,
                direction=direction,
            )
        else:
            units = _create_units(instrument, when, size, params)
            if units is None:
                continue
            request = OrderRequest(
                instrument_id=instrument.id,
                order_date=when,
                size=units,
                mode=OrderMode.CREATE_UNITS,
                direction=direction,
            )
        _submit(portfolio, request, emitted)

    return emitted


# ── Bootstrap mode ────────────────────────────────────────────────


def bootstrap_orders(
    series_map: Mapping[str, pd.Series],
    instruments: Sequence[InstrumentPort],
    when: pd.Timestamp,
    reference_aum: float,
    params: StrategyParameters,
    portfolio: PortfolioPort,
    risk_model: RiskModel,
) -> list[OrderRequest]:
    """포지션이 없는 적격 instrument에 ``reference_aum / price`` units 주문 생성.

    exposure 관리가 켜져 있고 universe가 단일 instrument이면
    보유 포지션의 exposure가 0일 때 0 units 주문을, 신규 포지션은 ``|size| × exposure`` 로 생성합니다.
    """
    emitted: list[OrderRequest] = []
    single_instrument = len(instruments) == 1

    for instrument in instruments:
        series = series_map.get(instrument.id)
        if series is None:
            continue
        if _nested_strategy(instrument) is not None:
            size: float = reference_aum
        else:
            unit_value = _unit_value(instrument, when)
            if unit_value is None:
                continue
            size = reference_aum / unit_value

        position = portfolio.find_position(instrument, when)
        if params.exposure and single_instrument:
            if len(series) < MIN_OBSERVATIONS:
                continue
            exposure = risk_model.exposure(instrument, when, params)
            if position is not None and exposure == 0.0:
                units = 0.0
            elif position is None:
                units = abs(size) * exposure
            else:
                continue
        elif position is None:
            units = size
        else:
            continue

        if _nested_strategy(instrument) is None and not params.fraction_contract:
            units = float(round(units))
        request = OrderRequest(
            instrument_id=instrument.id,
            order_date=when,
            size=units,
            mode=OrderMode.CREATE_UNITS,
        )
        _submit(portfolio, request, emitted)

    return emitted
