"""Structured warning classes for the :mod:`resdeck` package."""
from __future__ import annotations


class ResdeckWarning(UserWarning):
    """Base warning class for resdeck."""


class UnsupportedKeywordWarning(ResdeckWarning):
    """Keyword recognised but not acted upon in the SCHEDULE section."""


class UnrecognizedKeywordWarning(ResdeckWarning):
    """No handler claimed the keyword."""


__all__ = [
    "ResdeckWarning",
    "UnsupportedKeywordWarning",
    "UnrecognizedKeywordWarning",
]
