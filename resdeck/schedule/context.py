"""Per keyword mutation context handed to every handler."""
from __future__ import annotations

import logging
import warnings
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional, Set, Tuple, Type

from ..deck.record import DeckKeyword, Location
from ..errors import InputError
from ..grid import CartesianGrid
from ..schema import ErrorPolicy, Runspec
from ..warnings import ResdeckWarning, UnrecognizedKeywordWarning, UnsupportedKeywordWarning
from .events import ScheduleEvents
from .state import StepState
from .timeline import Timeline

logger = logging.getLogger(__name__)

_CATEGORY_WARNINGS = {
    "unrecognized_keyword": UnrecognizedKeywordWarning,
    "unsupported_schedule_modifier": UnsupportedKeywordWarning,
    "unsupported_tuning_item": UnsupportedKeywordWarning,
}


@dataclass
class SimulatorUpdate:
    """Hints for the host simulator about what a step's keywords changed."""

    tran_update: bool = False
    well_structure_changed: bool = False
    affected_wells: Set[str] = field(default_factory=set)

    def append(self, other: "SimulatorUpdate") -> None:
        self.tran_update = self.tran_update or other.tran_update
        self.well_structure_changed = self.well_structure_changed or other.well_structure_changed
        self.affected_wells |= other.affected_wells

    def __bool__(self) -> bool:
        return self.tran_update or self.well_structure_changed or bool(self.affected_wells)


class ErrorGuard:
    """Apply the configured error policy and remember what was reported.

    Each category maps to ``throw``, ``warn`` or ``ignore``.  ``warn`` logs
    the message and emits a :class:`~resdeck.warnings.ResdeckWarning`
    subclass; ``throw`` raises :class:`InputError` with the keyword location.
    """

    def __init__(self, policy: Optional[ErrorPolicy] = None) -> None:
        self.policy = policy if policy is not None else ErrorPolicy()
        self.reported: List[Tuple[str, str]] = []

    def __len__(self) -> int:
        return len(self.reported)

    def handle(self, category: str, message: str, location: Optional[Location] = None) -> None:
        action = self.policy.action(category)
        text = InputError.format(message, location)
        if action == "ignore":
            logger.debug("Ignored %s: %s", category, text)
            return
        self.reported.append((category, text))
        if action == "throw":
            raise InputError(message, location)
        logger.warning(text)
        category_cls: Type[ResdeckWarning] = _CATEGORY_WARNINGS.get(category, ResdeckWarning)
        warnings.warn(text, category_cls, stacklevel=2)


@dataclass
class HandlerContext:
    """Scope of a single keyword.

    Created by the engine for one keyword and dropped once its handler
    returns; handlers must not keep a reference to it.
    """

    keyword: DeckKeyword
    timeline: Timeline
    runspec: Runspec
    guard: ErrorGuard
    sim_update: SimulatorUpdate
    grid: Optional[CartesianGrid] = None
    actionx_mode: bool = False
    on_exit: Optional[Callable[[int], None]] = None

    @property
    def location(self) -> Location:
        return self.keyword.location

    @property
    def current_step(self) -> int:
        return len(self.timeline) - 1

    @property
    def unit_system(self) -> str:
        return self.runspec.unit_system

    @property
    def num_pvt_regions(self) -> int:
        return self.runspec.num_pvt_regions

    def state(self, report_step: Optional[int] = None) -> StepState:
        """Current step, or an earlier one for read-only inspection."""

        if report_step is None:
            return self.timeline.current()
        return self.timeline.at(report_step)

    def add_event(self, event: ScheduleEvents) -> None:
        self.state().add_event(event)

    def require_grid(self) -> CartesianGrid:
        if self.grid is None:
            raise ValueError(f"{self.keyword.name} needs cell geometry but no grid is configured")
        return self.grid

    def set_exit_code(self, status: int) -> None:
        if self.on_exit is None:
            logger.debug("Exit status %d requested without an exit handler", status)
            return
        self.on_exit(int(status))

    def affected_well(self, name: str) -> None:
        self.sim_update.affected_wells.add(name)

    def error(self, category: str, message: str) -> Any:
        return self.guard.handle(category, message, self.location)
