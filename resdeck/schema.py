"""Configuration schema for the schedule engine.

These Pydantic models mirror the YAML configuration accepted by
:mod:`resdeck.run`.  The run specification carries the handful of RUNSPEC
values the SCHEDULE handlers depend on; everything else describes how the
engine reacts to problems and where it writes its output.
"""
from __future__ import annotations

import logging
from datetime import date, datetime
from pathlib import Path
from typing import Any, Literal, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from .errors import ConfigurationError
from .grid import CartesianGrid

ErrorAction = Literal["throw", "warn", "ignore"]

ERROR_CATEGORIES = (
    "unrecognized_keyword",
    "unsupported_schedule_modifier",
    "unsupported_tuning_item",
)


class GridSpec(BaseModel):
    """Regular box grid used to resolve connection cells."""

    nx: int = Field(..., gt=0, description="Cells in the x direction")
    ny: int = Field(..., gt=0, description="Cells in the y direction")
    nz: int = Field(..., gt=0, description="Cells in the z direction")
    top: float = Field(0.0, description="Depth of the top of layer 1 [m]")
    dz: float = Field(1.0, gt=0, description="Layer thickness [m]")

    def build(self) -> CartesianGrid:
        return CartesianGrid(self.nx, self.ny, self.nz, top=self.top, dz=self.dz)


class Runspec(BaseModel):
    """RUNSPEC values consulted while interpreting the SCHEDULE section."""

    num_pvt_regions: int = Field(1, ge=1, description="Number of PVT regions (TABDIMS item 2)")
    udt_max_dimensions: int = Field(1, ge=1, description="UDTDIMS maximum number of dimensions")
    gaslift_active: bool = Field(False, description="Gas lift optimisation enabled (LIFTOPT in RUNSPEC)")
    unit_system: Literal["METRIC", "FIELD", "LAB"] = Field("METRIC", description="Deck unit system")
    grid: Optional[GridSpec] = Field(None, description="Optional box grid for connection cells")

    @field_validator("unit_system", mode="before")
    def _upper_units(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().upper()
        return value

    @model_validator(mode="after")
    def _check_udt_dimensions(self) -> "Runspec":
        if self.udt_max_dimensions != 1:
            raise ConfigurationError("Only 1D UDTs are supported")
        return self


class ErrorPolicy(BaseModel):
    """Reaction per problem category: raise, warn and continue, or ignore."""

    unrecognized_keyword: ErrorAction = Field("warn", description="Keyword no handler claims")
    unsupported_schedule_modifier: ErrorAction = Field(
        "warn", description="Grid property modifier not supported in SCHEDULE (MULTPV, MULTR, ...)"
    )
    unsupported_tuning_item: ErrorAction = Field("warn", description="Unknown item name in TUNING")

    def action(self, category: str) -> str:
        if category not in ERROR_CATEGORIES:
            raise ConfigurationError(f"Unknown error category {category!r}")
        return getattr(self, category)


class LoggingConfig(BaseModel):
    level: str = Field("INFO", description="Root logging level name")
    quiet: bool = Field(False, description="Silence Python warnings")

    @field_validator("level")
    def _check_level(cls, value: str) -> str:
        name = str(value).strip().upper()
        if not isinstance(logging.getLevelName(name), int):
            raise ConfigurationError(f"Unknown logging level {value!r}")
        return name

    def level_number(self) -> int:
        return int(logging.getLevelName(self.level))


class OutputConfig(BaseModel):
    summary: Optional[Path] = Field(None, description="Parquet file with one row per report step")
    checkpoint_dir: Optional[Path] = Field(None, description="Directory for per step state files")
    checkpoint_format: Literal["pickle", "json"] = Field("pickle", description="Step state file format")


class EngineConfig(BaseModel):
    """Top level configuration."""

    start_date: datetime = Field(datetime(2000, 1, 1), description="Start of report step 0")
    runspec: Runspec = Field(default_factory=Runspec)
    errors: ErrorPolicy = Field(default_factory=ErrorPolicy)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)

    @field_validator("start_date", mode="before")
    def _parse_start(cls, value: Any) -> Any:
        if isinstance(value, date) and not isinstance(value, datetime):
            return datetime(value.year, value.month, value.day)
        if isinstance(value, str):
            try:
                return datetime.fromisoformat(value.strip())
            except ValueError as exc:
                raise ConfigurationError(f"start_date must be an ISO date, got {value!r}") from exc
        return value
