"""Domain enums and value objects."""

from src.models.portfolio import (
    OrderMode,
    OrderRequest,
    OrderTarget,
    OrderView,
    PositionView,
    VirtualPosition,
)
from src.models.types import (
    SERIES_KIND_BY_CATEGORY,
    ConfigParameter,
    Direction,
    InstrumentCategory,
    RebalanceFrequency,
    SeriesKind,
    natural_series_kind,
)

__all__ = [
    "SERIES_KIND_BY_CATEGORY",
    "ConfigParameter",
    "Direction",
    "InstrumentCategory",
    "OrderMode",
    "OrderRequest",
    "OrderTarget",
    "OrderView",
    "PositionView",
    "RebalanceFrequency",
    "SeriesKind",
    "VirtualPosition",
    "natural_series_kind",
]
