"""User defined tables (UDT): one dimensional lookup with three boundary policies."""
from __future__ import annotations

import enum
import math
from dataclasses import dataclass
from typing import Iterable, Tuple

import numpy as np

from ...errors import TableError
from ...serialization import serializable


class InterpolationType(enum.IntEnum):
    NEAREST_NEIGHBOUR = 1
    LINEAR_CLAMP = 2
    LINEAR_EXTRAPOLATE = 3

    @classmethod
    def from_string(cls, text: str) -> "InterpolationType":
        key = str(text).strip().upper()
        try:
            return _INTERP_CODES[key]
        except KeyError:
            raise ValueError(f"Unknown UDT interpolation type {text!r}; expected NV, LC or LL") from None


_INTERP_CODES = {
    "NV": InterpolationType.NEAREST_NEIGHBOUR,
    "LC": InterpolationType.LINEAR_CLAMP,
    "LL": InterpolationType.LINEAR_EXTRAPOLATE,
}


@serializable
@dataclass(frozen=True)
class UDT:
    """Immutable lookup table ``y = f(x)``.

    Parameters
    ----------
    xs:
        Strictly ascending independent values (at least two).
    ys:
        Dependent values, same length as ``xs``.
    interp_type:
        Boundary/interior policy:

        * nearest neighbour returns the y of the closer bracketing point
          (the upper one on an exact tie) and the end values outside the
          range;
        * linear clamp interpolates inside the range and returns the end
          values outside it;
        * linear extrapolate continues the first/last segment outside the
          range.
    """

    xs: Tuple[float, ...]
    ys: Tuple[float, ...]
    interp_type: InterpolationType = InterpolationType.LINEAR_CLAMP

    def __post_init__(self) -> None:
        xs = tuple(float(x) for x in self.xs)
        ys = tuple(float(y) for y in self.ys)
        if len(xs) != len(ys):
            raise TableError(f"UDT needs equally many x and y values, got {len(xs)} and {len(ys)}")
        if len(xs) < 2:
            raise TableError("UDT needs at least two points")
        if not np.all(np.isfinite(xs)) or not np.all(np.isfinite(ys)):
            raise TableError("UDT contains non-finite values")
        if np.any(np.diff(xs) <= 0.0):
            raise TableError("UDT requires strictly ascending x values")
        object.__setattr__(self, "xs", xs)
        object.__setattr__(self, "ys", ys)
        object.__setattr__(self, "interp_type", InterpolationType(self.interp_type))

    def __len__(self) -> int:
        return len(self.xs)

    def __call__(self, x: float) -> float:
        xs, ys = self.xs, self.ys
        x = float(x)
        kind = self.interp_type
        if math.isnan(x):
            return math.nan

        if x <= xs[0] or x >= xs[-1]:
            if kind is InterpolationType.LINEAR_EXTRAPOLATE and x != xs[0] and x != xs[-1]:
                lo = 0 if x < xs[0] else len(xs) - 2
                return _linear(xs, ys, lo, x)
            return ys[0] if x <= xs[0] else ys[-1]

        hi = int(np.searchsorted(xs, x, side="right"))
        lo = hi - 1
        if kind is InterpolationType.NEAREST_NEIGHBOUR:
            return ys[lo] if (x - xs[lo]) < (xs[hi] - x) else ys[hi]
        return _linear(xs, ys, lo, x)

    def evaluate(self, values: Iterable[float]) -> np.ndarray:
        return np.array([self(v) for v in values], dtype=float)


def _linear(xs: Tuple[float, ...], ys: Tuple[float, ...], lo: int, x: float) -> float:
    return ys[lo] + (ys[lo + 1] - ys[lo]) * (x - xs[lo]) / (xs[lo + 1] - xs[lo])
