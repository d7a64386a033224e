"""SCHEDULE section interpretation."""
from .context import ErrorGuard, HandlerContext, SimulatorUpdate
from .dispatch import DispatchResult, KeywordDispatcher, Outcome
from .events import Events, ScheduleEvents
from .schedule import Schedule
from .state import StepState
from .timeline import Timeline

__all__ = [
    "DispatchResult",
    "ErrorGuard",
    "Events",
    "HandlerContext",
    "KeywordDispatcher",
    "Outcome",
    "Schedule",
    "ScheduleEvents",
    "SimulatorUpdate",
    "StepState",
    "Timeline",
]
