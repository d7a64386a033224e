import logging

import pytest

from resdeck.deck.record import DEFAULT
from resdeck.errors import InputError
from resdeck.schedule import ScheduleEvents
from resdeck.schedule.well import ConnectionState, CTFKind, Order


@pytest.fixture
def well_schedule(grid_schedule, kw):
    grid_schedule.apply(kw("WELSPECS", {"WELL": "P1", "GROUP": "G1", "HEAD_I": 3, "HEAD_J": 4, "REF_DEPTH": DEFAULT}))
    grid_schedule.apply(
        kw(
            "COMPDAT",
            {
                "WELL": "P1",
                "I": DEFAULT,
                "J": DEFAULT,
                "K1": 1,
                "K2": 3,
                "STATE": "OPEN",
                "CONNECTION_TRANSMISSIBILITY_FACTOR": 100.0,
            },
        )
    )
    return grid_schedule


def test_welspecs_creates_well_and_group(grid_schedule, kw):
    grid_schedule.apply(kw("WELSPECS", {"WELL": "P1", "GROUP": "G1", "HEAD_I": 3, "HEAD_J": 4}))
    step = grid_schedule[0]
    well = step.wells["P1"]
    assert (well.group, well.head_i, well.head_j) == ("G1", 2, 3)
    assert step.groups["G1"].parent == "FIELD"
    assert "G1" in step.groups["FIELD"].children
    assert step.has_event(ScheduleEvents.NEW_WELL | ScheduleEvents.NEW_GROUP)
    update = grid_schedule.simulator_update(0)
    assert update.well_structure_changed
    assert update.affected_wells == {"P1"}


def test_welspecs_update_existing_well(well_schedule, kw, dates):
    well_schedule.apply(dates((1, "FEB", 2020)))
    well_schedule.apply(kw("WELSPECS", {"WELL": "P1", "GROUP": "G2", "HEAD_I": 3, "HEAD_J": 4}))
    assert well_schedule[1].wells["P1"].group == "G2"
    assert well_schedule[0].wells["P1"].group == "G1"
    assert well_schedule[1].has_event(ScheduleEvents.WELL_WELSPECS_UPDATE)
    assert not well_schedule[1].has_event(ScheduleEvents.NEW_WELL)


def test_compdat_connections(well_schedule):
    conns = well_schedule[0].wells["P1"].connections
    assert [c.ijk for c in conns] == [(2, 3, 0), (2, 3, 1), (2, 3, 2)]
    assert [c.complnum for c in conns] == [1, 2, 3]
    assert [c.center_depth for c in conns] == [2005.0, 2015.0, 2025.0]
    assert [c.global_index for c in conns] == [32, 132, 232]
    assert all(c.open_state is ConnectionState.OPEN for c in conns)
    assert all(c.ctf_kind is CTFKind.DECK_VALUE and c.cf == 100.0 for c in conns)
    assert well_schedule[0].has_event(ScheduleEvents.COMPLETION_CHANGE)


def test_compdat_update_keeps_existing_connection(well_schedule, kw):
    well_schedule.apply(
        kw("COMPDAT", {"WELL": "P1", "I": 3, "J": 4, "K1": 2, "K2": 2, "STATE": "SHUT", "CONNECTION_TRANSMISSIBILITY_FACTOR": DEFAULT})
    )
    conns = well_schedule[0].wells["P1"].connections
    assert len(conns) == 3
    conn = conns.find(2, 3, 1)
    assert conn.complnum == 2
    assert conn.open_state is ConnectionState.SHUT
    assert conn.ctf_kind is CTFKind.DEFAULTED
    assert conn.cf == 100.0


def test_compdat_outside_grid(well_schedule, kw):
    with pytest.raises(InputError, match="outside the grid"):
        well_schedule.apply(kw("COMPDAT", {"WELL": "P1", "K1": 5, "K2": 6}))


def test_compdat_needs_grid(make_schedule, kw):
    schedule = make_schedule()
    schedule.apply(kw("WELSPECS", {"WELL": "P1", "HEAD_I": 1, "HEAD_J": 1}))
    with pytest.raises(InputError, match="no grid is configured"):
        schedule.apply(kw("COMPDAT", {"WELL": "P1", "K1": 1}))


def test_compdat_unknown_well(grid_schedule, kw):
    with pytest.raises(InputError, match="Well X1 is not defined"):
        grid_schedule.apply(kw("COMPDAT", {"WELL": "X1", "K1": 1}))


def test_compord_depth_and_pattern(well_schedule, kw):
    well_schedule.apply(kw("COMPDAT", {"WELL": "P1", "I": 4, "J": 4, "K1": 1, "K2": 1}))
    well_schedule.apply(kw("COMPORD", {"WELL": "P*", "ORDER_TYPE": "DEPTH"}))
    conns = well_schedule[0].wells["P1"].connections
    assert conns.ordering is Order.DEPTH
    assert [c.ijk for c in conns] == [(2, 3, 0), (3, 3, 0), (2, 3, 1), (2, 3, 2)]


def test_compord_no_matching_well(well_schedule, kw):
    with pytest.raises(InputError, match="No wells match"):
        well_schedule.apply(kw("COMPORD", {"WELL": "Q*", "ORDER_TYPE": "INPUT"}))


def test_wpimult_is_copy_on_write(well_schedule, kw, dates):
    well_schedule.apply(dates((1, "FEB", 2020)))
    well_schedule.apply(kw("WPIMULT", {"WELL": "P1", "WELLPI": 2.0, "I": 0, "J": DEFAULT, "K": 2}))
    new = well_schedule[1].wells["P1"].connections
    old = well_schedule[0].wells["P1"].connections
    assert [c.cf for c in new] == [100.0, 200.0, 100.0]
    assert new.find(2, 3, 1).wpimult == 2.0
    assert [c.cf for c in old] == [100.0, 100.0, 100.0]
    assert not well_schedule[1].shares("wells", well_schedule[0])
    assert well_schedule[1].shares("groups", well_schedule[0])


def test_welsegs_incremental(well_schedule, kw):
    well_schedule.apply(
        kw(
            "WELSEGS",
            {"WELL": "P1", "DEPTH": 2000.0, "LENGTH": 0.0, "INFO_TYPE": "INC"},
            {"SEGMENT1": 2, "SEGMENT2": 4, "BRANCH": 1, "JOIN_SEGMENT": 1, "SEGMENT_LENGTH": 10.0, "DEPTH_CHANGE": 10.0},
        )
    )
    segments = well_schedule[0].wells["P1"].segments.segments
    assert [(s.number, s.outlet, s.length, s.depth) for s in segments.values()] == [
        (1, 0, 0.0, 2000.0),
        (2, 1, 10.0, 2010.0),
        (3, 2, 20.0, 2020.0),
        (4, 3, 30.0, 2030.0),
    ]


def test_welsegs_absolute(well_schedule, kw):
    well_schedule.apply(
        kw(
            "WELSEGS",
            {"WELL": "P1", "DEPTH": 2000.0, "LENGTH": 0.0, "INFO_TYPE": "ABS"},
            {"SEGMENT1": 2, "SEGMENT2": 3, "BRANCH": 1, "JOIN_SEGMENT": 1, "SEGMENT_LENGTH": 20.0, "DEPTH_CHANGE": 2020.0},
        )
    )
    segments = well_schedule[0].wells["P1"].segments.segments
    assert segments[2].length == pytest.approx(10.0)
    assert segments[2].depth == pytest.approx(2010.0)
    assert segments[3].length == pytest.approx(20.0)
    assert segments[3].depth == pytest.approx(2020.0)


def test_welsegs_unknown_join_segment(well_schedule, kw):
    with pytest.raises(InputError, match="joins unknown segment 7"):
        well_schedule.apply(
            kw(
                "WELSEGS",
                {"WELL": "P1", "DEPTH": 2000.0, "LENGTH": 0.0},
                {"SEGMENT1": 2, "BRANCH": 1, "JOIN_SEGMENT": 7, "SEGMENT_LENGTH": 1.0, "DEPTH_CHANGE": 1.0},
            )
        )


def test_compsegs_fixes_order(well_schedule, kw):
    well_schedule.apply(
        kw(
            "WELSEGS",
            {"WELL": "P1", "DEPTH": 2000.0, "LENGTH": 0.0, "INFO_TYPE": "INC"},
            {"SEGMENT1": 2, "SEGMENT2": 4, "BRANCH": 1, "JOIN_SEGMENT": 1, "SEGMENT_LENGTH": 10.0, "DEPTH_CHANGE": 10.0},
        )
    )
    well_schedule.apply(
        kw(
            "COMPSEGS",
            {"WELL": "P1"},
            {"I": 3, "J": 4, "K": 3, "BRANCH": 1, "DISTANCE_START": 25.0, "DISTANCE_END": 30.0},
            {"I": 3, "J": 4, "K": 1, "BRANCH": 1, "DISTANCE_START": 5.0, "DISTANCE_END": 10.0},
        )
    )
    conns = well_schedule[0].wells["P1"].connections
    assert [c.k for c in conns] == [2, 0, 1]
    assert [c.segment_number for c in conns] == [4, 2, 0]
    assert [c.sort_value for c in conns] == [0, 1, 2]
    assert conns[0].center_depth == 2030.0
    assert conns[0].perf_range == (25.0, 30.0)
    assert conns.simulation_order() == conns.restart_order()


def test_compsegs_needs_welsegs(well_schedule, kw):
    with pytest.raises(InputError, match="needs WELSEGS before COMPSEGS"):
        well_schedule.apply(kw("COMPSEGS", {"WELL": "P1"}))


def test_gruptree_moves_group(make_schedule, kw):
    schedule = make_schedule()
    schedule.apply(kw("GRUPTREE", {"CHILD_GROUP": "G1", "PARENT_GROUP": "PLAT"}))
    groups = schedule[0].groups
    assert groups["G1"].parent == "PLAT"
    assert groups["PLAT"].parent == "FIELD"
    schedule.apply(kw("GRUPTREE", {"CHILD_GROUP": "G1", "PARENT_GROUP": "FIELD"}))
    groups = schedule[0].groups
    assert groups["PLAT"].children == []
    assert groups["FIELD"].children == ["PLAT", "G1"]
    assert schedule[0].has_event(ScheduleEvents.GROUP_CHANGE)


def test_gruptree_field_cannot_be_child(make_schedule, kw):
    schedule = make_schedule()
    with pytest.raises(InputError, match="FIELD cannot be placed"):
        schedule.apply(kw("GRUPTREE", {"CHILD_GROUP": "FIELD", "PARENT_GROUP": "G1"}))


def test_nodeprop(make_schedule, kw, caplog):
    schedule = make_schedule()
    with caplog.at_level(logging.WARNING):
        schedule.apply(kw("NODEPROP", {"NAME": "N1", "PRESSURE": 50.0, "AS_CHOKE": "YES", "ADD_GAS_LIFT_GAS": "YES"}))
    node = schedule[0].network["N1"]
    assert node.terminal_pressure == 50.0
    assert node.as_choke and node.choke_group == "N1"
    assert "gas lift optimisation is not active" in caplog.text
    assert schedule[0].has_event(ScheduleEvents.NETWORK_UPDATE)


def test_udt_keyword(make_schedule, kw):
    schedule = make_schedule()
    schedule.apply(
        kw(
            "UDT",
            {"TABLE_NAME": "TU_FBHP", "DIMENSIONS": 1},
            {"INTERPOLATION_TYPE": "LC", "INTERPOLATION_POINTS": [1.0, 4.0, 5.0]},
            {"TABLE_VALUES": [5.0, 10.0, 11.0]},
        )
    )
    table = schedule[0].udts["TU_FBHP"]
    assert table(4.7) == pytest.approx(10.7)
    assert schedule[0].has_event(ScheduleEvents.UDQ_UPDATE)


def test_udt_only_one_dimension(make_schedule, kw):
    schedule = make_schedule()
    with pytest.raises(InputError, match="Only 1D UDTs are supported"):
        schedule.apply(
            kw(
                "UDT",
                {"TABLE_NAME": "T2", "DIMENSIONS": 2},
                {"INTERPOLATION_TYPE": "NV", "INTERPOLATION_POINTS": [1.0, 2.0]},
                {"TABLE_VALUES": [1.0, 2.0]},
            )
        )
