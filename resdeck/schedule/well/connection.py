"""Well connections (completions) and their ordering value.

A connection's ``sort_value`` has to serve three orderings at once:

input
    the order the connections appeared in the deck;
simulation
    the order used while stepping (COMPORD for normal wells, COMPSEGS for
    multi-segment wells);
restart
    the order connections are written to, and read back from, restart files.

For normal wells the restart order is the input order, so ``sort_value`` is
the insertion index and the simulation order is derived separately.  For
multi-segment wells COMPSEGS fixes the order for the rest of the run, so
``sort_value`` holds the COMPSEGS insertion index and simulation order equals
restart order.  After a restart the ordering keywords are not replayed; the
connections come back sorted by their persisted index, which then also
serves as the reconstructed input order.
"""
from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Optional, Tuple

from ...errors import LogicError
from ...grid import CartesianGrid
from ...serialization import serializable


class ConnectionState(enum.IntEnum):
    OPEN = 1
    SHUT = 2
    AUTO = 3

    @classmethod
    def from_string(cls, text: str) -> "ConnectionState":
        key = str(text).strip().upper()
        if key == "STOP":
            return cls.SHUT
        try:
            return cls[key]
        except KeyError:
            raise ValueError(f"Unknown connection state string: {text}") from None


class Direction(enum.IntEnum):
    X = 1
    Y = 2
    Z = 3

    @classmethod
    def from_string(cls, text: str) -> "Direction":
        key = str(text).strip().upper()
        try:
            return cls[key]
        except KeyError:
            raise ValueError(f"Unsupported completion direction {text}") from None


class Order(enum.IntEnum):
    DEPTH = 1
    INPUT = 2
    TRACK = 3

    @classmethod
    def from_string(cls, text: str) -> "Order":
        key = str(text).strip().upper()
        try:
            return cls[key]
        except KeyError:
            raise ValueError(f"Unknown connection order string: {text}") from None


class CTFKind(enum.IntEnum):
    DECK_VALUE = 1
    DEFAULTED = 2


class FilterCakeGeometry(enum.IntEnum):
    LINEAR = 0
    RADIAL = 1
    NONE = 2


@serializable
@dataclass
class InjMult:
    """Injectivity multiplier parameters (WINJMULT)."""

    active: bool = False
    fracture_pressure: float = 1.0e20
    multiplier_gradient: float = 0.0


@serializable
@dataclass
class FilterCake:
    """Filter cake parameters (WINJDAM)."""

    geometry: FilterCakeGeometry = FilterCakeGeometry.NONE
    perm: float = 0.0
    poro: float = 0.0
    radius: Optional[float] = None
    flow_area: Optional[float] = None
    sf_multiplier: float = 1.0


@dataclass(frozen=True)
class RstConnection:
    """Connection data as persisted in a restart file."""

    ijk: Tuple[int, int, int]
    state: ConnectionState
    drain_sat_table: int
    completion: int
    cf: float
    kh: float
    diameter: float
    r0: float
    skin_factor: float
    cf_kind: CTFKind
    dir: Direction
    depth: float
    rst_index: int
    segment: int = 0
    segdist_start: float = 0.0
    segdist_end: float = 0.0
    global_index: Optional[int] = None


@serializable
@dataclass
class Connection:
    """A single well/cell connection.

    Field order below is the persisted layout; equality and checksums cover
    every field and compare floating point values bit for bit.
    """

    direction: Direction = Direction.Z
    center_depth: float = 0.0
    open_state: ConnectionState = ConnectionState.SHUT
    sat_table_id: int = -1
    complnum: int = -1
    cf: float = 0.0
    kh: float = 0.0
    rw: float = 0.0
    r0: float = 0.0
    re: float = 0.0
    connection_length: float = 0.0
    skin_factor: float = 0.0
    d_factor: float = 0.0
    ke: float = 0.0
    ijk: Tuple[int, int, int] = (0, 0, 0)
    global_index: int = 0
    ctf_kind: CTFKind = CTFKind.DECK_VALUE
    injmult: Optional[InjMult] = None
    sort_value: int = 0
    perf_range: Optional[Tuple[float, float]] = None
    default_sat_tab_id: bool = True
    segment_number: int = 0
    subject_to_welpi: bool = False
    wpimult: float = 1.0
    filter_cake: Optional[FilterCake] = None

    @classmethod
    def from_restart(cls, rst: RstConnection, grid: Optional[CartesianGrid] = None) -> "Connection":
        """Rebuild a connection from restart data without replaying keywords.

        ``sort_value`` is taken directly from the persisted restart index.
        """
        i, j, k = rst.ijk
        if grid is not None:
            global_index = grid.global_index(i, j, k)
        elif rst.global_index is not None:
            global_index = int(rst.global_index)
        else:
            raise LogicError("Restart connection needs either a grid or a stored global index")
        conn = cls(
            direction=rst.dir,
            center_depth=rst.depth,
            open_state=rst.state,
            sat_table_id=rst.drain_sat_table,
            complnum=rst.completion,
            cf=rst.cf,
            kh=rst.kh,
            rw=rst.diameter / 2,
            r0=rst.r0,
            skin_factor=rst.skin_factor,
            ijk=(i, j, k),
            global_index=global_index,
            ctf_kind=rst.cf_kind,
            sort_value=rst.rst_index,
            segment_number=rst.segment,
        )
        if conn.segment_number > 0:
            conn.perf_range = (rst.segdist_start, rst.segdist_end)
        return conn

    @classmethod
    def serialization_test_object(cls) -> "Connection":
        return cls(
            direction=Direction.Y,
            center_depth=1.0,
            open_state=ConnectionState.OPEN,
            sat_table_id=2,
            complnum=3,
            cf=4.0,
            kh=5.0,
            rw=6.0,
            r0=7.0,
            re=7.1,
            connection_length=7.2,
            skin_factor=8.0,
            d_factor=8.5,
            ke=8.9,
            ijk=(9, 10, 11),
            global_index=12,
            ctf_kind=CTFKind.DEFAULTED,
            injmult=InjMult(active=True, fracture_pressure=13.0, multiplier_gradient=13.5),
            sort_value=14,
            perf_range=(14.0, 15.0),
            default_sat_tab_id=True,
            segment_number=16,
            subject_to_welpi=True,
            wpimult=1.25,
            filter_cake=FilterCake(FilterCakeGeometry.RADIAL, 17.0, 0.18, radius=0.19, flow_area=None),
        )

    @property
    def i(self) -> int:
        return self.ijk[0]

    @property
    def j(self) -> int:
        return self.ijk[1]

    @property
    def k(self) -> int:
        return self.ijk[2]

    def same_coordinate(self, i: int, j: int, k: int) -> bool:
        return self.ijk == (i, j, k)

    def attached_to_segment(self) -> bool:
        return self.segment_number > 0

    def attach_to_segment(
        self,
        segment_number: int,
        center_depth: float,
        insertion_index: int,
        perf_range: Tuple[float, float],
    ) -> None:
        """Bind the connection to a segment; the order is fixed from here on."""

        if segment_number <= 0:
            raise LogicError(f"Segment numbers start at 1, got {segment_number}")
        self.segment_number = segment_number
        self.center_depth = center_depth
        self.sort_value = insertion_index
        self.perf_range = (float(perf_range[0]), float(perf_range[1]))

    def scale_well_pi(self, factor: float) -> None:
        self.wpimult *= factor
        self.cf *= factor
