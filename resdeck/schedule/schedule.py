"""SCHEDULE section interpreter.

:class:`Schedule` walks the keyword stream in order.  DATES and TSTEP start
new report steps; every other keyword is routed through the
:class:`~resdeck.schedule.dispatch.KeywordDispatcher` against the newest
step.  Processing stops at the first error that the configured policy does
not downgrade to a warning.
"""
from __future__ import annotations

import copy
import logging
from datetime import datetime, timedelta
from typing import Iterable, List, Optional

from ..deck.record import DeckKeyword, DeckRecord
from ..errors import InputError
from ..faults import FaultCollection
from ..schema import EngineConfig
from ..serialization import checksum_hex
from .context import ErrorGuard, HandlerContext, SimulatorUpdate
from .dispatch import DispatchResult, KeywordDispatcher, Outcome
from .state import StepState
from .timeline import Timeline

logger = logging.getLogger(__name__)

MONTHS = {
    "JAN": 1, "FEB": 2, "MAR": 3, "APR": 4, "MAY": 5, "JUN": 6,
    "JUL": 7, "JLY": 7, "AUG": 8, "SEP": 9, "OCT": 10, "NOV": 11, "DEC": 12,
}
SECONDS_PER_TIME_UNIT = {"METRIC": 86400.0, "FIELD": 86400.0, "LAB": 3600.0}
SECTION_MARKERS = ("SCHEDULE",)


def date_from_record(record: DeckRecord) -> datetime:
    """Start time given by one DATES record (DAY, MONTH, YEAR, TIME)."""

    day = int(record.item("DAY").get())
    month_text = str(record.item("MONTH").get()).strip().upper()
    year = int(record.item("YEAR").get())
    if month_text.isdigit():
        month = int(month_text)
    else:
        try:
            month = MONTHS[month_text[:3]]
        except KeyError:
            raise ValueError(f"Invalid month {month_text!r} in DATES") from None
    hour = minute = second = 0
    time_item = record.item("TIME")
    if time_item.has_value(0):
        parts = [int(float(p)) for p in str(time_item.get()).split(":")]
        parts += [0] * (3 - len(parts))
        hour, minute, second = parts[:3]
    return datetime(year, month, day, hour, minute, second)


class Schedule:
    """Interpret a SCHEDULE keyword stream into a :class:`Timeline`.

    Parameters
    ----------
    config:
        Engine configuration; defaults are used when omitted.
    faults:
        Fault multipliers established by the GRID and EDIT sections.  The
        collection is copied into report step 0.
    dispatcher:
        Alternative dispatcher, mainly for tests.
    """

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        *,
        faults: Optional[FaultCollection] = None,
        dispatcher: Optional[KeywordDispatcher] = None,
    ) -> None:
        self.config = config if config is not None else EngineConfig()
        runspec = self.config.runspec
        self.grid = runspec.grid.build() if runspec.grid is not None else None
        self.guard = ErrorGuard(self.config.errors)
        self.dispatcher = dispatcher if dispatcher is not None else KeywordDispatcher()
        baseline = StepState(0, self.config.start_date, runspec.num_pvt_regions)
        if faults is not None:
            baseline.update("faults", copy.deepcopy(faults))
        self.timeline = Timeline(runspec.num_pvt_regions, baseline)
        self.sim_updates: List[SimulatorUpdate] = []
        self.exit_status: Optional[int] = None
        self._finished = False
        self._start_step(self.config.start_date)

    @classmethod
    def from_keywords(
        cls,
        keywords: Iterable[DeckKeyword],
        config: Optional[EngineConfig] = None,
        **kwargs,
    ) -> "Schedule":
        schedule = cls(config, **kwargs)
        schedule.iterate(keywords)
        return schedule

    def __len__(self) -> int:
        return len(self.timeline)

    def __getitem__(self, report_step: int) -> StepState:
        return self.timeline.at(report_step)

    @property
    def current_step(self) -> int:
        return len(self.timeline) - 1

    def _start_step(self, start_time: datetime) -> StepState:
        step = self.timeline.append_step(start_time)
        self.sim_updates.append(SimulatorUpdate())
        return step

    def _set_exit(self, status: int) -> None:
        self.exit_status = status

    def iterate(self, keywords: Iterable[DeckKeyword]) -> int:
        """Process ``keywords`` in order; returns the number processed."""

        count = 0
        for keyword in keywords:
            if keyword.name == "END":
                self._finished = True
                logger.info("END reached after %d keywords", count)
                break
            self.apply(keyword)
            count += 1
        return count

    def apply(self, keyword: DeckKeyword, *, actionx_mode: bool = False) -> Optional[DispatchResult]:
        """Process one keyword against the newest report step.

        Raises :class:`InputError` for input problems and for internal
        errors; an unrecognized keyword is handled by the error policy.
        """
        if self._finished:
            raise InputError("Keyword after END", keyword.location)
        if keyword.name in SECTION_MARKERS:
            return None
        if keyword.name in ("DATES", "TSTEP"):
            if actionx_mode:
                raise InputError(f"{keyword.name} is not allowed in ACTIONX", keyword.location)
            self._advance(keyword)
            return None

        ctx = HandlerContext(
            keyword=keyword,
            timeline=self.timeline,
            runspec=self.config.runspec,
            guard=self.guard,
            sim_update=self.sim_updates[-1],
            grid=self.grid,
            actionx_mode=actionx_mode,
            on_exit=self._set_exit,
        )
        result = self.dispatcher.dispatch(ctx)
        if result.outcome is Outcome.UNRECOGNIZED:
            self.guard.handle(
                "unrecognized_keyword",
                f"Keyword {keyword.name} is not recognized in the SCHEDULE section",
                keyword.location,
            )
        result.raise_for_error()
        return result

    def apply_action(self, keywords: Iterable[DeckKeyword]) -> SimulatorUpdate:
        """Run the keywords of a triggered ACTIONX block at the current step."""

        update = SimulatorUpdate()
        before = self.sim_updates[-1]
        self.sim_updates[-1] = update
        try:
            for keyword in keywords:
                self.apply(keyword, actionx_mode=True)
        finally:
            before.append(update)
            self.sim_updates[-1] = before
        return update

    def _advance(self, keyword: DeckKeyword) -> None:
        try:
            if keyword.name == "DATES":
                times = [date_from_record(record) for record in keyword]
            else:
                scale = SECONDS_PER_TIME_UNIT[self.config.runspec.unit_system]
                times = []
                start = self.timeline.current().start_time
                for record in keyword:
                    for value in record.item(0).get_all():
                        if float(value) <= 0.0:
                            raise ValueError(f"TSTEP lengths must be positive, got {value}")
                        start = start + timedelta(seconds=float(value) * scale)
                        times.append(start)
            for start_time in times:
                self._start_step(start_time)
        except ValueError as exc:
            raise InputError(str(exc), keyword.location) from exc

    def checksum(self, report_step: int) -> str:
        """SHA-256 of the canonical octets of one report step."""

        return checksum_hex(self.timeline.at(report_step))

    def simulator_update(self, report_step: int) -> SimulatorUpdate:
        return self.sim_updates[report_step]
