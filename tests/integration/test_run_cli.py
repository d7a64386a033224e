from pathlib import Path

import pandas as pd
import pytest

from resdeck import run
from resdeck.deck import load_deck
from resdeck.io import restart
from resdeck.schema import EngineConfig
from resdeck.serialization import checksum_hex

DECK = """\
- GRID
- keyword: FAULTS
  line: 10
  records:
    - {NAME: FLT1}
    - {NAME: FLT2}
- keyword: MULTFLT
  line: 14
  records:
    - {FAULT: FLT1, FACTOR: 0.5}
- SCHEDULE
- keyword: NUPCOL
  line: 20
  records:
    - {NUM_ITER: 4}
- keyword: TUNING
  line: 23
  records:
    - {TSINIT: {value: 1.0, si_factor: 86400.0}}
    - {}
    - {NEWTMX: 20}
- keyword: DATES
  line: 28
  records:
    - {DAY: 1, MONTH: FEB, YEAR: 2020}
    - {DAY: 1, MONTH: MAR, YEAR: 2020}
- keyword: MULTFLT
  line: 32
  records:
    - {FAULT: "FLT*", FACTOR: 0.1}
- keyword: WCONHIST
  line: 35
  records:
    - {WELL: P1}
- END
- keyword: NUPCOL
  line: 40
  records:
    - {NUM_ITER: 8}
"""

CONFIG = """\
start_date: 2020-01-01
runspec:
  unit_system: METRIC
errors:
  unrecognized_keyword: throw
"""


@pytest.fixture
def case(tmp_path: Path):
    deck = tmp_path / "CASE.yml"
    deck.write_text(DECK, encoding="utf-8")
    config = tmp_path / "config.yml"
    config.write_text(CONFIG, encoding="utf-8")
    return deck, config


def test_cli_writes_summary_and_step_files(case, tmp_path: Path):
    deck, config = case
    summary = tmp_path / "out" / "steps.parquet"
    steps_dir = tmp_path / "out" / "steps"
    status = run.main(
        [
            "--deck", str(deck),
            "--config", str(config),
            "--summary", str(summary),
            "--checkpoint-dir", str(steps_dir),
            "--checkpoint-format", "json",
            "--override", "errors.unrecognized_keyword=ignore",
        ]
    )
    assert status == 0

    df = pd.read_parquet(summary)
    assert list(df["report_step"]) == [0, 1, 2]
    assert list(df["nupcol"]) == [4, 4, 4]
    assert df.loc[0, "TSINIT"] == pytest.approx(86400.0)
    assert df.loc[0, "NEWTMX"] == 20
    assert list(df["n_geo_keywords"]) == [0, 0, 1]

    files = sorted(steps_dir.glob("step_*.json"))
    assert [p.name for p in files] == ["step_000000.json", "step_000001.json", "step_000002.json"]
    last = restart.load_step(files[-1])
    assert last.report_step == 2
    assert last.faults.get_fault("FLT1").trans_mult == pytest.approx(0.05)
    assert last.faults.get_fault("FLT2").trans_mult == pytest.approx(0.1)
    first = restart.load_step(files[0])
    assert first.faults.get_fault("FLT1").trans_mult == pytest.approx(0.5)
    assert list(df["checksum"]) == [checksum_hex(restart.load_step(p)) for p in files]


def test_keywords_after_end_are_not_read(case):
    deck, _ = case
    keywords = load_deck(deck)
    assert keywords[-1].name == "NUPCOL"
    schedule = run.run_schedule(EngineConfig(start_date="2020-01-01"), keywords)
    assert len(schedule) == 3
    assert schedule[2].nupcol == 4


def test_unrecognized_keyword_with_throw_policy_fails(case, caplog):
    deck, config = case
    assert run.main(["--deck", str(deck), "--config", str(config)]) == 1
    assert "WCONHIST" in caplog.text


def test_input_error_returns_failure(tmp_path: Path):
    deck = tmp_path / "BAD.yml"
    deck.write_text(
        "- keyword: DATES\n"
        "  line: 7\n"
        "  records:\n"
        "    - {DAY: 1, MONTH: XYZ, YEAR: 2020}\n",
        encoding="utf-8",
    )
    assert run.main(["--deck", str(deck)]) == 1


def test_exit_outside_actionx_keeps_success_status(tmp_path: Path):
    deck = tmp_path / "EXIT.yml"
    deck.write_text("- keyword: EXIT\n  records:\n    - {STATUS_CODE: 3}\n", encoding="utf-8")
    assert run.main(["--deck", str(deck)]) == 0
