"""Per report step state files.

A step file holds the packed :class:`~resdeck.schedule.state.StepState` of
one report step together with its checksum.  Pickle files store the
:class:`StepCheckpoint` object directly; JSON files carry the packed state
base64 encoded next to a readable header.
"""
from __future__ import annotations

import base64
import json
import logging
import pickle
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import List, Optional, Union

from ..errors import SerializationError
from ..schedule.state import StepState
from ..serialization import checksum_hex, pack, unpack

logger = logging.getLogger(__name__)

CheckpointFormat = Union[str, None]
CHECKPOINT_VERSION = 1
_SUFFIXES = {"pickle": ".pkl", "json": ".json"}


def _b64_pack(payload: bytes) -> str:
    return base64.b64encode(payload).decode("ascii")


def _b64_unpack(payload: str) -> bytes:
    return base64.b64decode(payload.encode("ascii"))


@dataclass
class StepCheckpoint:
    """Packed state of one report step."""

    version: int
    report_step: int
    start_time: str
    checksum: str
    state: bytes

    @classmethod
    def from_state(cls, state: StepState) -> "StepCheckpoint":
        return cls(
            version=CHECKPOINT_VERSION,
            report_step=state.report_step,
            start_time=state.start_time.isoformat(),
            checksum=checksum_hex(state),
            state=pack(state),
        )

    def restore(self) -> StepState:
        if self.version != CHECKPOINT_VERSION:
            raise SerializationError(f"Unsupported step file version {self.version}")
        state = unpack(self.state, StepState)
        digest = checksum_hex(state)
        if digest != self.checksum:
            raise SerializationError(
                f"Checksum mismatch for report step {self.report_step}: "
                f"stored {self.checksum}, computed {digest}"
            )
        return state


def _ensure_parent(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)


def _normalize_format(fmt: CheckpointFormat) -> str:
    fmt_normalized = "pickle" if fmt in (None, "") else str(fmt).lower()
    if fmt_normalized not in _SUFFIXES:
        raise ValueError(f"Unsupported checkpoint format: {fmt}")
    return fmt_normalized


def checkpoint_path(dir_path: Path, report_step: int, fmt: CheckpointFormat = "pickle") -> Path:
    """File name used for ``report_step`` inside ``dir_path``."""

    return Path(dir_path) / f"step_{report_step:06d}{_SUFFIXES[_normalize_format(fmt)]}"


def save_step(path: Path, state: StepState, fmt: CheckpointFormat = "pickle") -> Path:
    """Serialise one report step to disk."""

    fmt_normalized = _normalize_format(fmt)
    record = StepCheckpoint.from_state(state)
    _ensure_parent(path)
    if fmt_normalized == "pickle":
        with path.open("wb") as fh:
            pickle.dump(record, fh)
        return path

    payload = asdict(record)
    payload["state"] = _b64_pack(record.state)
    with path.open("w", encoding="utf-8") as fh:
        json.dump(payload, fh, indent=2)
    return path


def load_step(path: Path, fmt: CheckpointFormat = None) -> StepState:
    """Load a report step written by :func:`save_step`.

    The format is taken from the file suffix when ``fmt`` is omitted.
    """
    fmt_normalized = fmt
    if fmt_normalized is None:
        suffix = path.suffix.lower()
        fmt_normalized = "json" if suffix == ".json" else "pickle"
    fmt_normalized = _normalize_format(fmt_normalized)

    if fmt_normalized == "pickle":
        with path.open("rb") as fh:
            record = pickle.load(fh)
        if not isinstance(record, StepCheckpoint):
            raise SerializationError(f"{path} does not contain a step checkpoint")
        return record.restore()

    with path.open("r", encoding="utf-8") as fh:
        payload = json.load(fh)
    payload["state"] = _b64_unpack(payload["state"])
    return StepCheckpoint(**payload).restore()


def write_steps(dir_path: Path, states, fmt: CheckpointFormat = "pickle") -> List[Path]:
    """Write every state of ``states`` into ``dir_path``."""

    paths = []
    for state in states:
        paths.append(save_step(checkpoint_path(dir_path, state.report_step, fmt), state, fmt))
    logger.info("Wrote %d step files to %s", len(paths), dir_path)
    return paths


def find_latest_checkpoint(dir_path: Path) -> Optional[Path]:
    """Return the step file with the highest report step, if any."""

    if not dir_path.exists() or not dir_path.is_dir():
        return None
    candidates = sorted(dir_path.glob("step_*"))
    if not candidates:
        return None
    return candidates[-1]


def prune_checkpoints(dir_path: Path, keep_last_n: int) -> None:
    """Remove older step files, keeping only the most recent N."""

    if keep_last_n <= 0:
        return
    if not dir_path.exists() or not dir_path.is_dir():
        return
    candidates = sorted(dir_path.glob("step_*"))
    if len(candidates) <= keep_last_n:
        return
    for old_path in candidates[:-keep_last_n]:
        try:
            old_path.unlink()
        except OSError as exc:
            logger.warning("Could not remove %s: %s", old_path, exc)
