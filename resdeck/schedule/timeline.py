"""Ordered, gap free sequence of report step states."""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Iterator, List, Optional

from ..errors import StepOutOfRangeError
from .events import Events
from .state import StepState

logger = logging.getLogger(__name__)


class Timeline:
    """Append-only list of :class:`StepState` objects.

    Only the newest step is writable; appending a step freezes its
    predecessor.

    Parameters
    ----------
    num_pvt_regions:
        Number of PVT regions used to size per region properties.
    baseline:
        Optional pre-populated state used as step 0 instead of a default
        constructed one.
    """

    def __init__(self, num_pvt_regions: int = 1, baseline: Optional[StepState] = None) -> None:
        self.num_pvt_regions = int(num_pvt_regions)
        self._baseline = baseline
        self._steps: List[StepState] = []

    def __len__(self) -> int:
        return len(self._steps)

    def __iter__(self) -> Iterator[StepState]:
        return iter(self._steps)

    def append_step(self, start_time: datetime) -> StepState:
        if not self._steps:
            if self._baseline is not None:
                step = self._baseline
                step.start_time = start_time
            else:
                step = StepState(0, start_time, self.num_pvt_regions)
        else:
            previous = self._steps[-1]
            if start_time < previous.start_time:
                raise ValueError(
                    f"Report step {len(self._steps)} starts at {start_time.isoformat()}, "
                    f"before step {previous.report_step} ({previous.start_time.isoformat()})"
                )
            step = previous.next_step(start_time)
            previous.freeze()
        self._steps.append(step)
        logger.debug("Report step %d starts %s", step.report_step, start_time.isoformat())
        return step

    def current(self) -> StepState:
        if not self._steps:
            raise StepOutOfRangeError("Timeline has no report steps yet")
        return self._steps[-1]

    def at(self, n: int) -> StepState:
        if not 0 <= n < len(self._steps):
            raise StepOutOfRangeError(
                f"Report step {n} out of range; timeline holds {len(self._steps)} steps"
            )
        return self._steps[n]

    def events(self, n: int) -> Events:
        return self.at(n).events

    def start_times(self) -> List[datetime]:
        return [step.start_time for step in self._steps]
