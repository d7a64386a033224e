import pytest

from resdeck.deck.record import DeckKeyword
from resdeck.errors import InputError
from resdeck.faults import FaultCollection, name_matches
from resdeck.schedule import Schedule, ScheduleEvents
from resdeck.schema import EngineConfig


def _faults(*names):
    return DeckKeyword.build("FAULTS", [{"NAME": name} for name in names])


def _multflt(*pairs):
    return DeckKeyword.build("MULTFLT", [{"FAULT": name, "FACTOR": value} for name, value in pairs])


def _collection(sections):
    faults = FaultCollection()
    faults.process_sections(sections)
    return faults


def test_name_matching_truncates_at_wildcard():
    assert name_matches("FLT*", "FLT22")
    assert name_matches("FLT*1", "FLT22")
    assert not name_matches("FLT1", "FLT11")
    assert name_matches("FLT1", "FLT1")


def test_later_value_wins_within_section():
    faults = _collection(
        [("GRID", [_faults("FLT1", "FLT2"), _multflt(("FLT1", 0.0001), ("FLT2", 0.0005)), _multflt(("FLT1", 0.001))])]
    )
    assert faults.get_fault("FLT1").trans_mult == 0.001
    assert faults.get_fault("FLT2").trans_mult == 0.0005


def test_wildcard_applies_to_all_matches():
    faults = _collection([("GRID", [_faults("FLT1", "FLT2"), _multflt(("FLT*", 0.0001))])])
    assert [f.trans_mult for f in faults] == [0.0001, 0.0001]


def test_truncated_pattern():
    faults = _collection(
        [("GRID", [_faults("FLT11", "FLT12", "FLT22"), _multflt(("FLT*1", 0.0001), ("FLT2*", 0.0005))])]
    )
    assert faults.get_fault("FLT11").trans_mult == 0.0001
    assert faults.get_fault("FLT12").trans_mult == 0.0001
    assert faults.get_fault("FLT22").trans_mult == 0.0005


def test_sections_multiply():
    faults = _collection(
        [
            ("GRID", [_faults("FLT1", "FLT2"), _multflt(("FLT1", 0.0001))]),
            ("EDIT", [_multflt(("FLT1", 20.0), ("FLT2", 0.0005))]),
        ]
    )
    assert faults.get_fault("FLT1").trans_mult == pytest.approx(0.002)
    assert faults.get_fault("FLT2").trans_mult == 0.0005


def test_sections_multiply_last_value_per_section():
    faults = _collection(
        [
            ("GRID", [_faults("FLT1"), _multflt(("FLT1", 5.0), ("FLT1", 0.0001))]),
            ("EDIT", [_multflt(("FLT1", 0.0005), ("FLT1", 20.0))]),
        ]
    )
    assert faults.get_fault("FLT1").trans_mult == pytest.approx(0.002)


def test_sections_multiply_with_patterns():
    faults = _collection(
        [
            ("GRID", [_faults("FLT11", "FLT12", "FLT22"), _multflt(("FLT*1", 0.0001))]),
            ("EDIT", [_multflt(("FLT1*", 20.0), ("FLT2*", 0.0005))]),
        ]
    )
    assert faults.get_fault("FLT11").trans_mult == pytest.approx(0.0001 * 20)
    assert faults.get_fault("FLT12").trans_mult == pytest.approx(0.0001 * 20)
    assert faults.get_fault("FLT22").trans_mult == pytest.approx(0.0001 * 0.0005)


def test_unknown_fault():
    faults = _collection([("GRID", [_faults("FLT1")])])
    with pytest.raises(ValueError, match="No such fault: FLT9"):
        faults.get_fault("FLT9")
    with pytest.raises(ValueError, match="no fault matches"):
        faults.set_multiplier("XYZ", 2.0, "GRID")


def test_multflt_in_schedule_is_geo_keyword(dates):
    faults = _collection([("GRID", [_faults("FLT1", "FLT2"), _multflt(("FLT1", 0.0001))])])
    schedule = Schedule(EngineConfig(start_date="2020-01-01"), faults=faults)
    schedule.apply(dates((1, "FEB", 2020)))
    schedule.apply(_multflt(("FLT1", 20.0)))

    assert schedule[1].faults.get_fault("FLT1").trans_mult == pytest.approx(0.002)
    assert schedule[0].faults.get_fault("FLT1").trans_mult == 0.0001
    assert schedule[1].has_event(ScheduleEvents.GEO_MODIFIER)
    assert [k.name for k in schedule[1].geo_keywords] == ["MULTFLT"]
    assert schedule.simulator_update(1).tran_update
    assert not schedule.simulator_update(0).tran_update
    # the collection handed to the engine is not modified
    assert faults.get_fault("FLT1").trans_mult == 0.0001


def test_multflt_unknown_fault_in_schedule(dates):
    schedule = Schedule(EngineConfig(), faults=_collection([("GRID", [_faults("FLT1")])]))
    with pytest.raises(InputError, match="no fault matches 'NOPE'"):
        schedule.apply(_multflt(("NOPE", 2.0)))


def test_repeated_multflt_in_one_report_step(dates):
    schedule = Schedule(EngineConfig(), faults=_collection([("GRID", [_faults("FLT1"), _multflt(("FLT1", 0.5))])]))
    schedule.apply(dates((1, "FEB", 2000)))
    schedule.apply(_multflt(("FLT1", 4.0)))
    schedule.apply(_multflt(("FLT1", 2.0)))
    assert schedule[1].faults.get_fault("FLT1").trans_mult == pytest.approx(1.0)
    assert len(schedule[1].geo_keywords) == 2
