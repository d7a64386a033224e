"""Change events raised while a report step is being built."""
from __future__ import annotations

import enum
from dataclasses import dataclass

from ..serialization import serializable


class ScheduleEvents(enum.IntFlag):
    NONE = 0
    NEW_WELL = 1 << 0
    WELL_STATUS_CHANGE = 1 << 1
    COMPLETION_CHANGE = 1 << 2
    PRODUCTION_UPDATE = 1 << 3
    INJECTION_UPDATE = 1 << 4
    WELL_WELSPECS_UPDATE = 1 << 5
    GEO_MODIFIER = 1 << 6
    TUNING_CHANGE = 1 << 7
    VFPINJ_UPDATE = 1 << 8
    VFPPROD_UPDATE = 1 << 9
    NEW_GROUP = 1 << 10
    GROUP_CHANGE = 1 << 11
    NETWORK_UPDATE = 1 << 12
    WELL_PRODUCTIVITY_INDEX = 1 << 13
    UDQ_UPDATE = 1 << 14
    WELLGROUP_EFFICIENCY_UPDATE = 1 << 15
    AQUIFER_UPDATE = 1 << 16
    BOUNDARY_UPDATE = 1 << 17


@serializable
@dataclass
class Events:
    """Flags accumulated during one report step.

    Flags are only ever added; a fresh ``Events`` is created for every new
    step.
    """

    flags: ScheduleEvents = ScheduleEvents.NONE

    def add_event(self, event: ScheduleEvents) -> None:
        self.flags |= event

    def has_event(self, event: ScheduleEvents) -> bool:
        return (self.flags & event) == event

    def __int__(self) -> int:
        return int(self.flags)

    def names(self) -> list:
        return [member.name for member in ScheduleEvents if member.value and self.flags & member]
