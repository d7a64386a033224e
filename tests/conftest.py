from __future__ import annotations

import sys
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Mapping

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from resdeck.deck.record import DeckKeyword  # noqa: E402
from resdeck.schedule.schedule import Schedule  # noqa: E402
from resdeck.schema import EngineConfig  # noqa: E402

START = datetime(2020, 1, 1)


@pytest.fixture
def kw() -> Callable[..., DeckKeyword]:
    """Build a keyword from record mappings: ``kw("NUPCOL", {"NUM_ITER": 4})``."""

    def _build(name: str, *records: Mapping[str, Any], lineno: int = 1) -> DeckKeyword:
        return DeckKeyword.build(name, records, filename="TEST.DATA", lineno=lineno)

    return _build


@pytest.fixture
def make_schedule() -> Callable[..., Schedule]:
    """Schedule factory; keyword arguments are merged into the configuration."""

    def _make(**overrides: Any) -> Schedule:
        payload = {"start_date": START}
        payload.update(overrides)
        return Schedule(EngineConfig(**payload))

    return _make


@pytest.fixture
def grid_schedule(make_schedule) -> Schedule:
    return make_schedule(runspec={"grid": {"nx": 10, "ny": 10, "nz": 5, "top": 2000.0, "dz": 10.0}})


@pytest.fixture
def dates() -> Callable[..., DeckKeyword]:
    """DATES keyword with one record per ``(day, month, year)`` triple."""

    def _build(*triples) -> DeckKeyword:
        records = [{"DAY": d, "MONTH": m, "YEAR": y} for d, m, y in triples]
        return DeckKeyword.build("DATES", records, filename="TEST.DATA")

    return _build
