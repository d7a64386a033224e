import dataclasses

import pytest

from resdeck.deck.record import DEFAULT, DeckItem
from resdeck.errors import InputError
from resdeck.schedule import ScheduleEvents
from resdeck.schedule.properties import DAY, Tuning
from resdeck.warnings import UnsupportedKeywordWarning


def _days(name: str, value: float) -> DeckItem:
    return DeckItem.explicit(name, value, si_factor=DAY)


def _changed_fields(before: Tuning, after: Tuning):
    old, new = dataclasses.asdict(before), dataclasses.asdict(after)
    return {name for name in old if old[name] != new[name]}


def test_defaults_match_baseline(make_schedule):
    tuning = make_schedule()[0].tuning
    assert tuning.TSMAXZ == pytest.approx(365.0 * DAY)
    assert tuning.NEWTMX == 12
    assert tuning.TSINIT is None
    assert not tuning.TMAXWC_has_value


def test_tuning_sets_given_items(make_schedule, kw):
    schedule = make_schedule()
    schedule.apply(
        kw("TUNING", {"TSINIT": _days("TSINIT", 1.0), "TSMAXZ": _days("TSMAXZ", 30.0)}, {}, {"NEWTMX": 20})
    )
    tuning = schedule[0].tuning
    assert tuning.TSINIT == pytest.approx(DAY)
    assert tuning.TSMAXZ == pytest.approx(30.0 * DAY)
    assert tuning.NEWTMX == 20
    assert tuning.TRGTTE == 0.1
    assert schedule[0].has_event(ScheduleEvents.TUNING_CHANGE)


def test_defaulted_records_keep_previous_values(make_schedule, kw, dates):
    schedule = make_schedule()
    schedule.apply(kw("TUNING", {"TSMAXZ": _days("TSMAXZ", 30.0)}, {"TRGCNV": 0.5}, {"NEWTMX": 20}))
    schedule.apply(dates((1, "FEB", 2020)))
    before = schedule[1].tuning
    assert before == schedule[0].tuning

    schedule.apply(kw("TUNING", {"TSMAXZ": DEFAULT}, {}, {}))
    after = schedule[1].tuning
    assert after.TSMAXZ == pytest.approx(30.0 * DAY)
    assert after.TRGCNV == 0.5
    assert after.NEWTMX == 20
    assert _changed_fields(before, after) == set()


def test_explicit_value_updates_exactly_that_field(make_schedule, kw):
    schedule = make_schedule()
    schedule.apply(kw("TUNING", {}, {}, {}))
    before = schedule[0].tuning
    schedule.apply(kw("TUNING", {}, {"XXXCNV": 0.05}, {}))
    after = schedule[0].tuning
    assert _changed_fields(before, after) == {"XXXCNV"}


def test_tsinit_cleared_by_next_tuning(make_schedule, kw, dates):
    schedule = make_schedule()
    schedule.apply(kw("TUNING", {"TSINIT": _days("TSINIT", 0.5)}))
    schedule.apply(dates((1, "FEB", 2020)))
    assert schedule[1].tuning.TSINIT == pytest.approx(0.5 * DAY)
    schedule.apply(kw("TUNING", {"TSMINZ": _days("TSMINZ", 0.01)}))
    assert schedule[1].tuning.TSINIT is None
    assert schedule[0].tuning.TSINIT == pytest.approx(0.5 * DAY)


def test_flagged_items_record_presence(make_schedule, kw):
    schedule = make_schedule()
    schedule.apply(kw("TUNING", {"TMAXWC": DEFAULT}, {"TRGSFT": 2.0}, {"XXXDPR": DeckItem.explicit("XXXDPR", 3.0, si_factor=1.0e5)}))
    tuning = schedule[0].tuning
    assert not tuning.TMAXWC_has_value
    assert tuning.TRGSFT_has_value and tuning.TRGSFT == 2.0
    assert tuning.XXXDPR_has_value and tuning.XXXDPR == pytest.approx(3.0e5)


def test_defaulted_flagged_item_with_language_default(make_schedule, kw):
    schedule = make_schedule()
    schedule.apply(kw("TUNING", {"TMAXWC": DeckItem.default("TMAXWC", 0.0)}))
    tuning = schedule[0].tuning
    assert tuning.TMAXWC_has_value
    assert tuning.TMAXWC == 0.0


def test_too_many_records(make_schedule, kw):
    schedule = make_schedule()
    with pytest.raises(InputError, match="at most 3 records"):
        schedule.apply(kw("TUNING", {}, {}, {}, {}))


def test_unknown_item_warns(make_schedule, kw):
    schedule = make_schedule()
    with pytest.warns(UnsupportedKeywordWarning, match="TUNING record 2 has no item BOGUS"):
        schedule.apply(kw("TUNING", {}, {"BOGUS": 1.0}))


def test_unknown_item_can_throw(make_schedule, kw):
    schedule = make_schedule(errors={"unsupported_tuning_item": "throw"})
    with pytest.raises(InputError, match="BOGUS"):
        schedule.apply(kw("TUNING", {"BOGUS": 1.0}))
    assert schedule[0].tuning == Tuning()
