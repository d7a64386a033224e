"""Well definitions and multi-segment topology."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Optional

from ...serialization import serializable
from .connections import WellConnections


@serializable
@dataclass
class Segment:
    number: int
    branch: int
    outlet: int
    length: float
    depth: float


@serializable
@dataclass
class WellSegments:
    """Segment table entered with WELSEGS; lengths and depths are absolute."""

    top_depth: float = 0.0
    top_length: float = 0.0
    segments: Dict[int, Segment] = field(default_factory=dict)

    def closest_segment(self, branch: int, distance: float) -> Optional[Segment]:
        """Segment on ``branch`` whose length is closest to ``distance``."""

        candidates = [seg for seg in self.segments.values() if seg.branch == branch]
        if not candidates:
            return None
        return min(candidates, key=lambda seg: (abs(seg.length - distance), seg.number))


@serializable
@dataclass
class Well:
    name: str
    group: str
    head_i: int
    head_j: int
    ref_depth: Optional[float] = None
    connections: WellConnections = field(default_factory=WellConnections)
    segments: Optional[WellSegments] = None

    def is_multi_segment(self) -> bool:
        return self.segments is not None
