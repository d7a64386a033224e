import json
from pathlib import Path

import numpy as np
import pandas as pd
import pytest

from resdeck.errors import SerializationError
from resdeck.io import restart, writer
from resdeck.schedule import ScheduleEvents
from resdeck.serialization import checksum_hex


@pytest.fixture
def populated(grid_schedule, kw, dates):
    grid_schedule.apply(kw("WELSPECS", {"WELL": "P1", "HEAD_I": 1, "HEAD_J": 1}))
    grid_schedule.apply(kw("COMPDAT", {"WELL": "P1", "K1": 1, "K2": 2, "CONNECTION_TRANSMISSIBILITY_FACTOR": 5.0}))
    grid_schedule.apply(kw("TUNING", {"TSINIT": 3600.0}))
    grid_schedule.apply(kw("SAVE"))
    grid_schedule.apply(dates((1, "FEB", 2020)))
    grid_schedule.apply(kw("MULTX", {"factor": 2.0}))
    return grid_schedule


@pytest.mark.parametrize("fmt, suffix", [("pickle", ".pkl"), ("json", ".json")])
def test_step_round_trip(populated, tmp_path: Path, fmt, suffix):
    state = populated[1]
    path = restart.checkpoint_path(tmp_path, state.report_step, fmt)
    assert path.name == f"step_000001{suffix}"
    restart.save_step(path, state, fmt=fmt)
    loaded = restart.load_step(path)
    assert loaded == state
    assert checksum_hex(loaded) == checksum_hex(state)
    assert loaded.wells["P1"].connections[1].cf == 5.0
    assert loaded.geo_keywords[0].name == "MULTX"


def test_json_header_is_readable(populated, tmp_path: Path):
    path = restart.save_step(tmp_path / "step.json", populated[0], fmt="json")
    payload = json.loads(path.read_text(encoding="utf-8"))
    assert payload["report_step"] == 0
    assert payload["start_time"] == "2020-01-01T00:00:00"
    assert payload["checksum"] == checksum_hex(populated[0])


def test_tampered_checksum_is_rejected(populated, tmp_path: Path):
    path = restart.save_step(tmp_path / "step.json", populated[0], fmt="json")
    payload = json.loads(path.read_text(encoding="utf-8"))
    payload["checksum"] = "0" * 64
    path.write_text(json.dumps(payload), encoding="utf-8")
    with pytest.raises(SerializationError, match="Checksum mismatch"):
        restart.load_step(path)


def test_unsupported_format(populated, tmp_path: Path):
    with pytest.raises(ValueError, match="Unsupported checkpoint format"):
        restart.save_step(tmp_path / "step.bin", populated[0], fmt="hdf5")


def test_latest_and_prune(populated, tmp_path: Path):
    assert restart.find_latest_checkpoint(tmp_path / "missing") is None
    paths = restart.write_steps(tmp_path, populated.timeline)
    assert len(paths) == 2
    assert restart.find_latest_checkpoint(tmp_path).name == "step_000001.pkl"
    restart.prune_checkpoints(tmp_path, keep_last_n=1)
    assert sorted(p.name for p in tmp_path.iterdir()) == ["step_000001.pkl"]


def test_timeline_frame(populated):
    df = writer.timeline_frame(populated.timeline)
    assert list(df["report_step"]) == [0, 1]
    assert list(df["elapsed"]) == [0.0, 31 * 86400.0]
    assert df.loc[0, "TSINIT"] == 3600.0
    assert list(df["save"]) == [True, False]
    assert list(df["n_connections"]) == [2, 2]
    assert list(df["n_geo_keywords"]) == [0, 1]
    assert "GEO_MODIFIER" in df.loc[1, "event_names"].split("|")
    assert df.loc[1, "events"] & int(ScheduleEvents.GEO_MODIFIER)
    assert df.loc[0, "checksum"] == populated.checksum(0)


def test_timeline_frame_missing_values_are_nan(make_schedule):
    df = writer.timeline_frame(make_schedule().timeline)
    assert np.isnan(df.loc[0, "TSINIT"])
    assert np.isnan(df.loc[0, "sumthin"])


def test_write_parquet_with_units(populated, tmp_path: Path):
    path = tmp_path / "out" / "steps.parquet"
    writer.write_parquet(writer.timeline_frame(populated.timeline), path)
    table = pd.read_parquet(path)
    assert len(table) == 2
    assert writer.read_units(path)["TSINIT"] == "s"


def test_write_summary(tmp_path: Path):
    path = tmp_path / "nested" / "summary.json"
    writer.write_summary({"steps": 2, "exit_status": None}, path)
    assert json.loads(path.read_text(encoding="utf-8")) == {"exit_status": None, "steps": 2}
