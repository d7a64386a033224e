"""User defined quantities and tables."""
from .udt import UDT, InterpolationType

__all__ = ["UDT", "InterpolationType"]
