"""Ordered collection of a well's connections."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Iterator, List, Optional

from ...grid import CartesianGrid
from ...serialization import serializable
from .connection import Connection, Order, RstConnection


@serializable
@dataclass
class WellConnections:
    """Connections of one well, stored in simulation order.

    ``ordering`` is the COMPORD setting; it is ignored once any connection is
    attached to a segment.
    """

    ordering: Order = Order.TRACK
    head_i: int = 0
    head_j: int = 0
    connections: List[Connection] = field(default_factory=list)

    @classmethod
    def from_restart(
        cls,
        rst_connections: Iterable[RstConnection],
        head_i: int,
        head_j: int,
        grid: Optional[CartesianGrid] = None,
    ) -> "WellConnections":
        conns = sorted(
            (Connection.from_restart(rst, grid) for rst in rst_connections),
            key=lambda c: c.sort_value,
        )
        return cls(ordering=Order.INPUT, head_i=head_i, head_j=head_j, connections=conns)

    def __len__(self) -> int:
        return len(self.connections)

    def __iter__(self) -> Iterator[Connection]:
        return iter(self.connections)

    def __getitem__(self, index: int) -> Connection:
        return self.connections[index]

    def find(self, i: int, j: int, k: int) -> Optional[Connection]:
        for conn in self.connections:
            if conn.same_coordinate(i, j, k):
                return conn
        return None

    def add(self, conn: Connection) -> Connection:
        """Append a new connection; its insertion index becomes ``sort_value``."""

        conn.sort_value = len(self.connections)
        self.connections.append(conn)
        return conn

    def is_segmented(self) -> bool:
        return any(conn.attached_to_segment() for conn in self.connections)

    def restart_order(self) -> List[Connection]:
        return sorted(self.connections, key=lambda c: c.sort_value)

    def input_order(self) -> List[Connection]:
        """Input order as recoverable from the connections themselves.

        For segmented wells, and after a restart, this coincides with the
        restart order because the insertion index is no longer known.
        """
        return self.restart_order()

    def simulation_order(self) -> List[Connection]:
        if self.is_segmented() or self.ordering is Order.INPUT:
            return self.restart_order()
        if self.ordering is Order.DEPTH:
            return sorted(self.connections, key=lambda c: (c.center_depth, c.sort_value))
        return self._track_order()

    def order(self) -> None:
        """Rearrange the stored connections into simulation order."""

        self.connections = self.simulation_order()

    def _track_order(self) -> List[Connection]:
        remaining = self.restart_order()
        if not remaining:
            return []

        def head_distance(c: Connection) -> tuple:
            return ((c.i - self.head_i) ** 2 + (c.j - self.head_j) ** 2, c.k, c.sort_value)

        current = min(remaining, key=head_distance)
        ordered = [current]
        remaining = [c for c in remaining if c is not current]
        while remaining:
            ci, cj, ck = current.ijk

            def step_distance(c: Connection) -> tuple:
                return ((c.i - ci) ** 2 + (c.j - cj) ** 2 + (c.k - ck) ** 2, c.sort_value)

            current = min(remaining, key=step_distance)
            ordered.append(current)
            remaining = [c for c in remaining if c is not current]
        return ordered
