"""Custom exceptions for the :mod:`resdeck` package."""
from __future__ import annotations

from typing import Optional, TYPE_CHECKING

if TYPE_CHECKING:  # pragma: no cover - typing only
    from .deck.record import Location


class ResdeckError(Exception):
    """Base exception for schedule interpretation errors."""


class ConfigurationError(ResdeckError, ValueError):
    """Invalid configuration file or engine parameter."""


class LogicError(ResdeckError, RuntimeError):
    """A violated engine invariant; indicates a bug rather than bad input."""


class StepOutOfRangeError(LogicError, IndexError):
    """Report step index outside the populated timeline."""


class TableError(ResdeckError, ValueError):
    """Lookup table constructed from inconsistent data."""


class SerializationError(ResdeckError, TypeError):
    """A type reached the checksum/serialization framework without a rule."""


class InputError(ResdeckError):
    """Malformed or unsupported keyword usage in the input deck.

    The message is formatted with the keyword name and the source location so
    that every error surfacing from the dispatcher reads the same way.
    """

    def __init__(
        self,
        message: str,
        location: Optional["Location"] = None,
        keyword: Optional[str] = None,
    ) -> None:
        self.reason = message
        self.location = location
        self.keyword = keyword if keyword is not None else getattr(location, "keyword", None)
        super().__init__(self.format(message, location, self.keyword))

    @staticmethod
    def format(message: str, location: Optional["Location"], keyword: Optional[str] = None) -> str:
        if location is None:
            return message
        name = keyword if keyword is not None else location.keyword
        return (
            f"Problem with keyword {name}\n"
            f"In {location.filename} line {location.lineno}\n"
            f"{message}"
        )


__all__ = [
    "ResdeckError",
    "ConfigurationError",
    "LogicError",
    "StepOutOfRangeError",
    "TableError",
    "SerializationError",
    "InputError",
]
