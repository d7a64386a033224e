"""Core package for interpreting reservoir deck SCHEDULE sections."""
from . import grid, serialization
from .errors import InputError, ResdeckError

__all__ = ["grid", "serialization", "InputError", "ResdeckError"]
