"""Domain dispatchers: groups of keywords that share one subsystem.

A :class:`DomainDispatcher` claims a keyword when the name is in its table
and runs the handler; otherwise it declines and the next domain is asked.
"""
from __future__ import annotations

import fnmatch
import logging
from types import MappingProxyType
from typing import Callable, Dict, List, Mapping, Tuple

from ..deck.record import DeckItem, DeckRecord
from .context import HandlerContext
from .events import ScheduleEvents
from .properties import Group, NetworkNode
from .udq.udt import UDT, InterpolationType
from .well.connection import Connection, ConnectionState, CTFKind, Direction, Order
from .well.connections import WellConnections
from .well.well import Segment, Well, WellSegments

logger = logging.getLogger(__name__)

Handler = Callable[[HandlerContext], None]


class DomainDispatcher:
    """Named, read-only keyword table for one domain."""

    def __init__(self, name: str, handlers: Mapping[str, Handler]) -> None:
        self.name = name
        self.handlers: Mapping[str, Handler] = MappingProxyType(dict(handlers))

    def __contains__(self, keyword_name: object) -> bool:
        return keyword_name in self.handlers

    def __repr__(self) -> str:
        return f"DomainDispatcher({self.name!r}, {sorted(self.handlers)})"

    def handle(self, ctx: HandlerContext) -> bool:
        handler = self.handlers.get(ctx.keyword.name)
        if handler is None:
            return False
        handler(ctx)
        return True


def _opt(item: DeckItem, fallback=None):
    return item.get(0) if item.has_value(0) else fallback


def _index(item: DeckItem, fallback: int) -> int:
    """Deck indices are one based; defaulted or zero means ``fallback``."""

    if not item.has_value(0) or int(item.get(0)) == 0:
        return fallback
    return int(item.get(0)) - 1


def _lookup_well(ctx: HandlerContext, name: str) -> Well:
    wells = ctx.state().mutable("wells")
    try:
        return wells[name]
    except KeyError:
        raise ValueError(f"Well {name} is not defined; use WELSPECS first") from None


def _matching_wells(ctx: HandlerContext, pattern: str) -> List[str]:
    names = [name for name in ctx.state().wells if fnmatch.fnmatchcase(name, pattern)]
    if not names:
        raise ValueError(f"No wells match the name pattern {pattern!r}")
    return names


# ---------------------------------------------------------------------------
# Groups
# ---------------------------------------------------------------------------


def _ensure_group(ctx: HandlerContext, groups: Dict[str, Group], name: str, parent: str = "FIELD") -> Group:
    if name not in groups:
        groups[name] = Group(name, parent="" if name == "FIELD" else parent)
        if name != "FIELD":
            _ensure_group(ctx, groups, parent)
            if name not in groups[parent].children:
                groups[parent].children.append(name)
        ctx.add_event(ScheduleEvents.NEW_GROUP)
    return groups[name]


def handle_gruptree(ctx: HandlerContext) -> None:
    groups = ctx.state().mutable("groups")
    for record in ctx.keyword:
        child = str(record.item("CHILD_GROUP").get())
        parent = str(_opt(record.item("PARENT_GROUP"), "FIELD"))
        if child == "FIELD":
            raise ValueError("FIELD cannot be placed below another group")
        if child == parent:
            raise ValueError(f"Group {child} cannot be its own parent")
        group = _ensure_group(ctx, groups, child, parent)
        _ensure_group(ctx, groups, parent)
        if group.parent != parent:
            old = groups.get(group.parent)
            if old is not None and child in old.children:
                old.children.remove(child)
            group.parent = parent
            groups[parent].children.append(child)
        ctx.add_event(ScheduleEvents.GROUP_CHANGE)


GROUP_DOMAIN = DomainDispatcher("group", {"GRUPTREE": handle_gruptree})


# ---------------------------------------------------------------------------
# Multi-segment wells
# ---------------------------------------------------------------------------


def handle_welsegs(ctx: HandlerContext) -> None:
    """WELSEGS: header record, then segment ranges.

    With INFO_TYPE ``INC`` lengths and depths are increments from the outlet
    segment; with ``ABS`` they are the values of the last segment in the
    range and intermediate segments are spaced evenly.
    """
    header = ctx.keyword.record(0)
    well = _lookup_well(ctx, str(header.item("WELL").get()))
    top_depth = header.item("DEPTH").get_si()
    top_length = header.item("LENGTH").get_si()
    info_type = str(_opt(header.item("INFO_TYPE"), "INC")).upper()
    if info_type not in ("INC", "ABS"):
        raise ValueError(f"WELSEGS INFO_TYPE must be INC or ABS, got {info_type}")

    segments = {1: Segment(1, 1, 0, top_length, top_depth)}
    for record in ctx.keyword.records[1:]:
        first = int(record.item("SEGMENT1").get())
        last = int(_opt(record.item("SEGMENT2"), first))
        branch = int(record.item("BRANCH").get())
        outlet = int(record.item("JOIN_SEGMENT").get())
        length = record.item("SEGMENT_LENGTH").get_si()
        depth = record.item("DEPTH_CHANGE").get_si()
        if first < 2 or last < first:
            raise ValueError(f"WELSEGS segment range {first}-{last} is invalid")
        if outlet not in segments:
            raise ValueError(f"WELSEGS segment {first} joins unknown segment {outlet}")
        count = last - first + 1
        for offset, number in enumerate(range(first, last + 1), start=1):
            joined = segments[outlet if number == first else number - 1]
            if info_type == "INC":
                seg_length = joined.length + length
                seg_depth = joined.depth + depth
            else:
                base = segments[outlet]
                seg_length = base.length + (length - base.length) * offset / count
                seg_depth = base.depth + (depth - base.depth) * offset / count
            segments[number] = Segment(
                number, branch, outlet if number == first else number - 1, seg_length, seg_depth
            )

    well.segments = WellSegments(top_depth=top_depth, top_length=top_length, segments=segments)
    ctx.add_event(ScheduleEvents.WELL_WELSPECS_UPDATE)
    ctx.sim_update.well_structure_changed = True
    ctx.affected_well(well.name)


def handle_compsegs(ctx: HandlerContext) -> None:
    """COMPSEGS: attach connections to segments.

    The record order fixes the connection order for the rest of the run;
    connections not listed keep their relative order after the listed ones.
    """
    well = _lookup_well(ctx, str(ctx.keyword.record(0).item("WELL").get()))
    if well.segments is None:
        raise ValueError(f"Well {well.name} needs WELSEGS before COMPSEGS")

    attached: List[Connection] = []
    for record in ctx.keyword.records[1:]:
        i = int(record.item("I").get()) - 1
        j = int(record.item("J").get()) - 1
        k = int(record.item("K").get()) - 1
        conn = well.connections.find(i, j, k)
        if conn is None:
            raise ValueError(f"Well {well.name} has no connection in cell ({i + 1}, {j + 1}, {k + 1})")
        branch = int(record.item("BRANCH").get())
        start = record.item("DISTANCE_START").get_si()
        end_item = record.item("DISTANCE_END")
        end = end_item.get_si() if end_item.has_value(0) else start
        segment = well.segments.closest_segment(branch, 0.5 * (start + end))
        if segment is None:
            raise ValueError(f"Well {well.name} has no segments on branch {branch}")
        center = record.item("CENTER_DEPTH")
        depth = center.get_si() if center.has_value(0) and not center.defaulted(0) else segment.depth
        conn.attach_to_segment(segment.number, depth, len(attached), (start, end))
        attached.append(conn)

    rest = [c for c in well.connections.restart_order() if not any(c is a for a in attached)]
    for offset, conn in enumerate(rest, start=len(attached)):
        conn.sort_value = offset
    well.connections.order()
    ctx.add_event(ScheduleEvents.COMPLETION_CHANGE)
    ctx.affected_well(well.name)


MSW_DOMAIN = DomainDispatcher("msw", {"WELSEGS": handle_welsegs, "COMPSEGS": handle_compsegs})


# ---------------------------------------------------------------------------
# Network
# ---------------------------------------------------------------------------


def handle_nodeprop(ctx: HandlerContext) -> None:
    network = ctx.state().mutable("network")
    for record in ctx.keyword:
        name = str(record.item("NAME").get())
        pressure = record.item("PRESSURE")
        as_choke = DeckItem.to_bool(_opt(record.item("AS_CHOKE"), "NO"))
        add_gas = DeckItem.to_bool(_opt(record.item("ADD_GAS_LIFT_GAS"), "NO"))
        choke_group = _opt(record.item("CHOKE_GROUP"))
        if as_choke and choke_group is None:
            choke_group = name
        if add_gas and not ctx.runspec.gaslift_active:
            logger.warning("NODEPROP %s adds gas lift gas but gas lift optimisation is not active", name)
        network[name] = NetworkNode(
            name=name,
            terminal_pressure=pressure.get_si() if pressure.has_value(0) else None,
            as_choke=as_choke,
            add_gas_lift_gas=add_gas,
            choke_group=str(choke_group) if choke_group is not None else None,
        )
    ctx.add_event(ScheduleEvents.NETWORK_UPDATE)


NETWORK_DOMAIN = DomainDispatcher("network", {"NODEPROP": handle_nodeprop})


# ---------------------------------------------------------------------------
# User defined quantities
# ---------------------------------------------------------------------------


def handle_udt(ctx: HandlerContext) -> None:
    """UDT: name and dimension, interpolation type with x points, y values."""

    if len(ctx.keyword) < 3:
        raise ValueError("UDT needs a header, an interpolation record and a values record")
    header, interp, values = ctx.keyword.records[:3]
    name = str(header.item("TABLE_NAME").get())
    dimensions = int(_opt(header.item("DIMENSIONS"), 1))
    if dimensions != 1 or ctx.runspec.udt_max_dimensions != 1:
        raise ValueError("Only 1D UDTs are supported")
    kind = InterpolationType.from_string(interp.item("INTERPOLATION_TYPE").get())
    xs = [float(v) for v in interp.item("INTERPOLATION_POINTS").get_all()]
    ys = [float(v) for v in values.item("TABLE_VALUES").get_all()]
    ctx.state().mutable("udts")[name] = UDT(tuple(xs), tuple(ys), kind)
    ctx.add_event(ScheduleEvents.UDQ_UPDATE)


UDQ_DOMAIN = DomainDispatcher("udq", {"UDT": handle_udt})


# ---------------------------------------------------------------------------
# Wells
# ---------------------------------------------------------------------------


def handle_welspecs(ctx: HandlerContext) -> None:
    wells = ctx.state().mutable("wells")
    groups = ctx.state().mutable("groups")
    for record in ctx.keyword:
        name = str(record.item("WELL").get())
        group = str(_opt(record.item("GROUP"), "FIELD"))
        head_i = int(record.item("HEAD_I").get()) - 1
        head_j = int(record.item("HEAD_J").get()) - 1
        ref = record.item("REF_DEPTH")
        ref_depth = ref.get_si() if ref.has_value(0) else None
        _ensure_group(ctx, groups, group)
        if name not in wells:
            wells[name] = Well(
                name=name,
                group=group,
                head_i=head_i,
                head_j=head_j,
                ref_depth=ref_depth,
                connections=WellConnections(head_i=head_i, head_j=head_j),
            )
            ctx.add_event(ScheduleEvents.NEW_WELL)
            ctx.sim_update.well_structure_changed = True
        else:
            well = wells[name]
            well.group = group
            well.head_i, well.head_j = head_i, head_j
            well.connections.head_i, well.connections.head_j = head_i, head_j
            if ref_depth is not None:
                well.ref_depth = ref_depth
            ctx.add_event(ScheduleEvents.WELL_WELSPECS_UPDATE)
        ctx.affected_well(name)


def _compdat_connection(
    record: DeckRecord,
    conn: Connection,
    ijk: Tuple[int, int, int],
    global_index: int,
    depth: float,
) -> None:
    state = record.item("STATE")
    sat = record.item("SAT_TABLE")
    cf = record.item("CONNECTION_TRANSMISSIBILITY_FACTOR")
    diameter = record.item("DIAMETER")
    kh = record.item("Kh")
    r0 = record.item("PR")
    direction = record.item("DIR")

    conn.ijk = ijk
    conn.global_index = global_index
    conn.center_depth = depth
    conn.open_state = ConnectionState.from_string(_opt(state, "OPEN"))
    if sat.has_value(0) and not sat.defaulted(0):
        conn.sat_table_id = int(sat.get())
        conn.default_sat_tab_id = False
    if cf.has_value(0) and not cf.defaulted(0):
        conn.cf = cf.get_si()
        conn.ctf_kind = CTFKind.DECK_VALUE
    else:
        conn.ctf_kind = CTFKind.DEFAULTED
    if diameter.has_value(0):
        conn.rw = 0.5 * diameter.get_si()
    if kh.has_value(0) and not kh.defaulted(0):
        conn.kh = kh.get_si()
    if r0.has_value(0) and not r0.defaulted(0):
        conn.r0 = r0.get_si()
    conn.skin_factor = float(_opt(record.item("SKIN"), conn.skin_factor))
    conn.d_factor = float(_opt(record.item("D_FACTOR"), conn.d_factor))
    conn.direction = Direction.from_string(_opt(direction, "Z"))


def handle_compdat(ctx: HandlerContext) -> None:
    """COMPDAT: create or update connections over a K1-K2 range.

    New connections get their insertion index as ``sort_value``; updated
    connections keep theirs.
    """
    grid = ctx.require_grid()
    touched = set()
    for record in ctx.keyword:
        well = _lookup_well(ctx, str(record.item("WELL").get()))
        i = _index(record.item("I"), well.head_i)
        j = _index(record.item("J"), well.head_j)
        k1 = int(record.item("K1").get()) - 1
        k2 = int(_opt(record.item("K2"), k1 + 1)) - 1
        if k2 < k1:
            raise ValueError(f"COMPDAT K2 ({k2 + 1}) is above K1 ({k1 + 1})")
        for k in range(k1, k2 + 1):
            if not grid.contains(i, j, k):
                raise ValueError(
                    f"Connection ({i + 1}, {j + 1}, {k + 1}) of well {well.name} is outside the grid"
                )
            conn = well.connections.find(i, j, k)
            if conn is None:
                conn = well.connections.add(Connection(complnum=len(well.connections) + 1))
            _compdat_connection(record, conn, (i, j, k), grid.global_index(i, j, k), grid.depth(k))
        touched.add(well.name)

    for name in sorted(touched):
        well = ctx.state().wells[name]
        well.connections.order()
        ctx.affected_well(name)
    ctx.add_event(ScheduleEvents.COMPLETION_CHANGE)


def handle_compord(ctx: HandlerContext) -> None:
    for record in ctx.keyword:
        order = Order.from_string(_opt(record.item("ORDER_TYPE"), "TRACK"))
        for name in _matching_wells(ctx, str(record.item("WELL").get())):
            connections = _lookup_well(ctx, name).connections
            connections.ordering = order
            connections.order()


def handle_wpimult(ctx: HandlerContext) -> None:
    """WPIMULT: scale connection factors; zero or defaulted I, J, K match all."""

    for record in ctx.keyword:
        factor = float(record.item("WELLPI").get())
        i = _index(record.item("I"), -1)
        j = _index(record.item("J"), -1)
        k = _index(record.item("K"), -1)
        first = int(_opt(record.item("FIRST"), 0))
        last = int(_opt(record.item("LAST"), 0))
        for name in _matching_wells(ctx, str(record.item("WELL").get())):
            for conn in _lookup_well(ctx, name).connections:
                if i >= 0 and conn.i != i or j >= 0 and conn.j != j or k >= 0 and conn.k != k:
                    continue
                if first > 0 and conn.complnum < first or last > 0 and conn.complnum > last:
                    continue
                conn.scale_well_pi(factor)
            ctx.affected_well(name)
    ctx.add_event(ScheduleEvents.COMPLETION_CHANGE)


WELL_DOMAIN = DomainDispatcher(
    "well",
    {
        "WELSPECS": handle_welspecs,
        "COMPDAT": handle_compdat,
        "COMPORD": handle_compord,
        "WPIMULT": handle_wpimult,
    },
)

DEFAULT_DOMAINS: Tuple[DomainDispatcher, ...] = (
    GROUP_DOMAIN,
    MSW_DOMAIN,
    NETWORK_DOMAIN,
    UDQ_DOMAIN,
    WELL_DOMAIN,
)
