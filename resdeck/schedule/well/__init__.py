"""Wells, connections and segment topology."""
from .connection import (
    CTFKind,
    Connection,
    ConnectionState,
    Direction,
    FilterCake,
    FilterCakeGeometry,
    InjMult,
    Order,
    RstConnection,
)
from .connections import WellConnections
from .well import Segment, Well, WellSegments

__all__ = [
    "CTFKind",
    "Connection",
    "ConnectionState",
    "Direction",
    "FilterCake",
    "FilterCakeGeometry",
    "InjMult",
    "Order",
    "RstConnection",
    "Segment",
    "Well",
    "WellConnections",
    "WellSegments",
]
