"""Cartesian grid utilities for cell indexing.

Full grid geometry is provided by the host simulator.  The schedule engine
only needs to map ``(i, j, k)`` triplets to a global cell index and a cell
centre depth, which is what :class:`CartesianGrid` offers for a regular
corner-point-free box.  Indices are zero based.
"""
from __future__ import annotations

from dataclasses import dataclass

import numpy as np


@dataclass(frozen=True)
class Cell:
    i: int
    j: int
    k: int
    global_index: int
    depth: float


@dataclass(frozen=True)
class CartesianGrid:
    """Regular box grid.

    Parameters
    ----------
    nx, ny, nz:
        Number of cells in each direction.
    top:
        Depth of the top face of layer ``k=0`` [m].
    dz:
        Uniform layer thickness [m].
    """

    nx: int
    ny: int
    nz: int
    top: float = 0.0
    dz: float = 1.0

    def __post_init__(self) -> None:
        if min(self.nx, self.ny, self.nz) <= 0:
            raise ValueError("grid dimensions must be positive")
        if not np.isfinite(self.dz) or self.dz <= 0.0:
            raise ValueError("dz must be finite and positive")

    @property
    def size(self) -> int:
        return self.nx * self.ny * self.nz

    def global_index(self, i: int, j: int, k: int) -> int:
        if not self.contains(i, j, k):
            raise IndexError(f"cell ({i}, {j}, {k}) outside grid {self.nx}x{self.ny}x{self.nz}")
        return int(np.ravel_multi_index((k, j, i), (self.nz, self.ny, self.nx)))

    def depth(self, k: int) -> float:
        return float(self.top + (k + 0.5) * self.dz)

    def get_cell(self, i: int, j: int, k: int) -> Cell:
        return Cell(i=i, j=j, k=k, global_index=self.global_index(i, j, k), depth=self.depth(k))

    def contains(self, i: int, j: int, k: int) -> bool:
        return 0 <= i < self.nx and 0 <= j < self.ny and 0 <= k < self.nz
