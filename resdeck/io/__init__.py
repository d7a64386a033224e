"""Output helpers: report step tables and per step state files."""
from . import restart, writer

__all__ = ["restart", "writer"]
