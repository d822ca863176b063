"""Position / Order value objects.

Host 포트폴리오에서 읽어오는 포지션·주문 뷰와,
파이프라인이 host로 내보내는 target order 요청을 정의합니다.

Rules Applied:
    - #11 Pydantic Modeling: frozen=True
    - #10 Python Standards: dataclass for runtime containers
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, Field

from src.models.types import Direction

if TYPE_CHECKING:
    from src.host.ports import InstrumentPort


class OrderMode(StrEnum):
    """Target order 요청 방식.

    Attributes:
        CREATE_UNITS: 새 target market order (size = units)
        OVERRIDE_NOTIONAL: 기존 주문/포지션의 목표 notional 덮어쓰기 (size = notional)
    """

    CREATE_UNITS = "create_units"
    OVERRIDE_NOTIONAL = "override_notional"


class OrderTarget(StrEnum):
    """요청이 갱신하는 대상."""

    NEW = "new"
    OPEN_ORDER = "open_order"
    POSITION = "position"


class OrderRequest(BaseModel):
    """Host 포트폴리오로 전달되는 target order 요청.

    Attributes:
        instrument_id: 대상 instrument id
        order_date: 평가일
        size: CREATE_UNITS면 units, OVERRIDE_NOTIONAL이면 notional (부호 포함)
        mode: 요청 방식
        target: 신규 생성 / 기존 주문 갱신 / 포지션 갱신
        direction: 중첩 전략에 설정된 방향 (leaf는 None)
    """

    model_config = ConfigDict(frozen=True)

    instrument_id: str
    order_date: datetime
    size: float
    mode: OrderMode
    target: OrderTarget = OrderTarget.NEW
    direction: Direction | None = Field(default=None)


@dataclass(frozen=True)
class PositionView:
    """보유 포지션 (부호 있는 units)."""

    instrument_id: str
    units: float


@dataclass(frozen=True)
class OrderView:
    """미체결 target market order (units는 포지션 대비 증분)."""

    instrument_id: str
    units: float


@dataclass(frozen=True)
class VirtualPosition:
    """포지션 + 미체결 주문을 합산한 가상 포지션."""

    instrument: InstrumentPort
    units: float
