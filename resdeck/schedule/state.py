"""Per report step schedule state with copy-on-write members.

Every schedule controlled property lives in a :class:`Member` slot.  When a
new report step is started, the slots of forward filled properties are
*shared* with the previous step: both steps point at the same object until
one of them asks for a mutable reference, at which point that member alone is
cloned.  Per step members (events, geo-modifier keywords, the SAVE flag) are
rebuilt from their factory instead.

``STEP_MEMBERS`` is the single declaration of the members: their name, static
type (which drives checksums and serialization), baseline factory and carry
rule.
"""
from __future__ import annotations

import copy
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple

from ..deck.record import DeckKeyword
from ..errors import LogicError
from ..faults import FaultCollection
from ..serialization import register_rule
from ..serialization.checksum import Reader, encode, plan_for
from .events import Events
from .properties import (
    AquiferFlux,
    BCFace,
    GasLiftOpt,
    Group,
    MessageLimits,
    NetworkNode,
    NextStep,
    OilVaporizationProperties,
    RptConfig,
    RstConfig,
    Tuning,
    VFPTable,
)
from .udq.udt import UDT
from .well.well import Well

logger = logging.getLogger(__name__)

DEFAULT_NUPCOL = 12


class Member:
    """Copy-on-write holder for one property of a step."""

    __slots__ = ("_value", "_owned")

    def __init__(self, value: Any, owned: bool = True) -> None:
        self._value = value
        self._owned = owned

    def get(self) -> Any:
        return self._value

    def update(self, value: Any) -> None:
        self._value = value
        self._owned = True

    def mutable(self) -> Any:
        if not self._owned:
            self._value = copy.deepcopy(self._value)
            self._owned = True
        return self._value

    def share(self) -> "Member":
        return Member(self._value, owned=False)

    @property
    def owned(self) -> bool:
        return self._owned


def _always(value: Any) -> bool:
    return True


def _never(value: Any) -> bool:
    return False


def _every_report(value: Optional[NextStep]) -> bool:
    return value is not None and value.every_report


@dataclass(frozen=True)
class MemberSpec:
    name: str
    hint: Any
    factory: Callable[[int], Any]
    carry: Callable[[Any], bool] = _always


def _groups_baseline(_n: int) -> Dict[str, Group]:
    return {"FIELD": Group("FIELD")}


STEP_MEMBERS: Tuple[MemberSpec, ...] = (
    MemberSpec("tuning", Tuning, lambda _n: Tuning()),
    MemberSpec("glo", GasLiftOpt, lambda _n: GasLiftOpt()),
    MemberSpec("oilvap", OilVaporizationProperties, OilVaporizationProperties.for_regions),
    MemberSpec("message_limits", MessageLimits, lambda _n: MessageLimits()),
    MemberSpec("vfpprod", Dict[int, VFPTable], lambda _n: {}),
    MemberSpec("vfpinj", Dict[int, VFPTable], lambda _n: {}),
    MemberSpec("aquflux", Dict[int, AquiferFlux], lambda _n: {}),
    MemberSpec("bcprop", Dict[int, BCFace], lambda _n: {}),
    MemberSpec("rst_config", RstConfig, lambda _n: RstConfig()),
    MemberSpec("rpt_config", RptConfig, lambda _n: RptConfig()),
    MemberSpec("wells", Dict[str, Well], lambda _n: {}),
    MemberSpec("groups", Dict[str, Group], _groups_baseline),
    MemberSpec("network", Dict[str, NetworkNode], lambda _n: {}),
    MemberSpec("udts", Dict[str, UDT], lambda _n: {}),
    MemberSpec("faults", FaultCollection, lambda _n: FaultCollection()),
    MemberSpec("nupcol", int, lambda _n: DEFAULT_NUPCOL),
    MemberSpec("sumthin", Optional[float], lambda _n: None),
    MemberSpec("rptonly", bool, lambda _n: False),
    MemberSpec("next_tstep", Optional[NextStep], lambda _n: None, _every_report),
    MemberSpec("events", Events, lambda _n: Events(), _never),
    MemberSpec("geo_keywords", List[DeckKeyword], lambda _n: [], _never),
    MemberSpec("save", bool, lambda _n: False, _never),
)
_SPECS: Dict[str, MemberSpec] = {spec.name: spec for spec in STEP_MEMBERS}


class StepState:
    """Schedule state of one report step.

    Members are read as attributes (``state.tuning``).  Writes go through
    :meth:`update` (replace the whole member) or :meth:`mutable` (in-place
    edits on a private copy).  A frozen step rejects both.
    """

    def __init__(
        self,
        report_step: int,
        start_time: datetime,
        num_pvt_regions: int = 1,
        members: Optional[Dict[str, Member]] = None,
    ) -> None:
        self.report_step = int(report_step)
        self.start_time = start_time
        self.num_pvt_regions = int(num_pvt_regions)
        if members is None:
            members = {spec.name: Member(spec.factory(self.num_pvt_regions)) for spec in STEP_MEMBERS}
        missing = set(_SPECS) - set(members)
        if missing:
            raise LogicError(f"StepState is missing members: {sorted(missing)}")
        self._members = members
        self._frozen = False

    def __getattr__(self, name: str) -> Any:
        members = self.__dict__.get("_members")
        if members is not None and name in members:
            return members[name].get()
        raise AttributeError(f"{type(self).__name__} has no attribute {name!r}")

    def __repr__(self) -> str:
        return f"StepState(report_step={self.report_step}, start_time={self.start_time.isoformat()})"

    @property
    def frozen(self) -> bool:
        return self._frozen

    def freeze(self) -> None:
        self._frozen = True

    def _member(self, name: str) -> Member:
        try:
            return self._members[name]
        except KeyError:
            raise LogicError(f"Unknown step member {name!r}") from None

    def _check_writable(self, name: str) -> None:
        if self._frozen:
            raise LogicError(
                f"Report step {self.report_step} is complete; cannot modify {name!r}"
            )

    def get(self, name: str) -> Any:
        return self._member(name).get()

    def update(self, name: str, value: Any) -> None:
        self._check_writable(name)
        self._member(name).update(value)

    def mutable(self, name: str) -> Any:
        self._check_writable(name)
        return self._member(name).mutable()

    def shares(self, name: str, other: "StepState") -> bool:
        """True when ``name`` is the very same object in both steps."""

        return self._member(name).get() is other._member(name).get()

    def items(self) -> Iterator[Tuple[str, Any]]:
        for spec in STEP_MEMBERS:
            yield spec.name, self._members[spec.name].get()

    def next_step(self, start_time: datetime) -> "StepState":
        """Start the following report step.

        Forward filled members are shared; per step members start from their
        baseline; a NEXTSTEP override only survives when it applies to every
        report step.
        """
        members: Dict[str, Member] = {}
        for spec in STEP_MEMBERS:
            current = self._members[spec.name]
            if spec.carry(current.get()):
                members[spec.name] = current.share()
            else:
                members[spec.name] = Member(spec.factory(self.num_pvt_regions))
        return StepState(self.report_step + 1, start_time, self.num_pvt_regions, members)

    # convenience accessors used by handlers
    def add_event(self, event) -> None:
        self.mutable("events").add_event(event)

    def has_event(self, event) -> bool:
        return self.events.has_event(event)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, StepState):
            return NotImplemented
        return encode(self, framed=True) == encode(other, framed=True)

    __hash__ = None  # type: ignore[assignment]


_MEMBER_NODES = [(spec.name, plan_for(spec.hint)) for spec in STEP_MEMBERS]
_INT_NODE = plan_for(int)
_TIME_NODE = plan_for(datetime)


def _encode_state(state: StepState, out: List[bytes], framed: bool) -> None:
    _INT_NODE.encode(state.report_step, out, framed)
    _TIME_NODE.encode(state.start_time, out, framed)
    _INT_NODE.encode(state.num_pvt_regions, out, framed)
    for name, node in _MEMBER_NODES:
        node.encode_member(state.get(name), out, framed)


def _decode_state(reader: Reader) -> StepState:
    report_step = _INT_NODE.decode(reader)
    start_time = _TIME_NODE.decode(reader)
    num_pvt_regions = _INT_NODE.decode(reader)
    members = {name: Member(node.decode(reader)) for name, node in _MEMBER_NODES}
    return StepState(report_step, start_time, num_pvt_regions, members)


register_rule(StepState, _encode_state, _decode_state)
