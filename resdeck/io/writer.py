"""Output helper utilities.

The report step table is written to Parquet with ``pyarrow``; run summaries
go to JSON.  Destination directories are created when necessary.
"""
from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping

import numpy as np
import pandas as pd
import pyarrow as pa
import pyarrow.parquet as pq

from ..schedule.state import StepState
from ..serialization import checksum_hex

logger = logging.getLogger(__name__)

UNITS = {
    "start_time": "datetime",
    "elapsed": "s",
    "TSINIT": "s",
    "TSMAXZ": "s",
    "TSMINZ": "s",
    "next_tstep": "s",
    "sumthin": "s",
}

DEFINITIONS = {
    "report_step": "Report step index; step 0 starts at the configured start date.",
    "events": "Bit mask of schedule events raised during the step.",
    "event_names": "Names of the events in the mask joined with '|'.",
    "nupcol": "Newton iterations using updated well and group controls.",
    "rptonly": "Summary output restricted to report steps.",
    "save": "A restart file is requested for this step.",
    "write_restart": "Restart output requested by SAVE or RPTRST.",
    "n_wells": "Wells defined at this step.",
    "n_connections": "Connections summed over all wells.",
    "n_geo_keywords": "Grid property keywords recorded for the simulator.",
    "checksum": "SHA-256 of the canonical octets of the step state.",
}


def _ensure_parent(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)


def step_record(state: StepState, origin=None) -> Dict[str, Any]:
    """Flatten one report step into a table row."""

    tuning = state.tuning
    next_tstep = state.next_tstep
    origin = origin if origin is not None else state.start_time
    return {
        "report_step": state.report_step,
        "start_time": pd.Timestamp(state.start_time),
        "elapsed": (state.start_time - origin).total_seconds(),
        "events": int(state.events),
        "event_names": "|".join(state.events.names()),
        "TSINIT": np.nan if tuning.TSINIT is None else tuning.TSINIT,
        "TSMAXZ": tuning.TSMAXZ,
        "TSMINZ": tuning.TSMINZ,
        "NEWTMX": tuning.NEWTMX,
        "next_tstep": np.nan if next_tstep is None else next_tstep.value,
        "nupcol": state.nupcol,
        "sumthin": np.nan if state.sumthin is None else state.sumthin,
        "rptonly": bool(state.rptonly),
        "save": bool(state.save),
        "write_restart": bool(state.save) or state.rst_config.write_restart(state.report_step),
        "n_wells": len(state.wells),
        "n_connections": sum(len(well.connections) for well in state.wells.values()),
        "n_geo_keywords": len(state.geo_keywords),
        "checksum": checksum_hex(state),
    }


def timeline_frame(states: Iterable[StepState]) -> pd.DataFrame:
    """Build a DataFrame with one row per report step."""

    records: List[Dict[str, Any]] = []
    origin = None
    for state in states:
        if origin is None:
            origin = state.start_time
        records.append(step_record(state, origin))
    return pd.DataFrame(records)


def write_parquet(df: pd.DataFrame, path: Path, *, compression: str = "snappy") -> None:
    """Write a DataFrame to a Parquet file using ``pyarrow``.

    Units and column definitions are stored in the schema metadata.
    """
    _ensure_parent(path)
    table = pa.Table.from_pandas(df, preserve_index=False)
    metadata = dict(table.schema.metadata or {})
    metadata.update(
        {
            b"units": json.dumps(UNITS, sort_keys=True).encode("utf-8"),
            b"definitions": json.dumps(DEFINITIONS, sort_keys=True).encode("utf-8"),
        }
    )
    table = table.replace_schema_metadata(metadata)
    compression_arg = None if compression == "none" else compression
    pq.write_table(table, path, compression=compression_arg)
    logger.info("Wrote %d report steps to %s", table.num_rows, path)


def read_units(path: Path) -> Dict[str, str]:
    """Units metadata of a Parquet file written by :func:`write_parquet`."""

    metadata = pq.read_schema(path).metadata or {}
    raw = metadata.get(b"units")
    return json.loads(raw.decode("utf-8")) if raw else {}


def write_summary(summary: Mapping[str, Any], path: Path) -> None:
    """Write a summary dictionary to JSON.

    The JSON file is formatted with a small indentation for human
    readability.
    """
    _ensure_parent(path)
    with path.open("w", encoding="utf-8") as fh:
        json.dump(summary, fh, indent=2, sort_keys=True)
