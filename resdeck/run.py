"""Command line driver for the SCHEDULE interpreter.

Loads a YAML deck, applies any GRID/EDIT fault multipliers, interprets the
SCHEDULE section and writes the per step outputs requested in the
configuration.
"""
from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import Iterable, List, Optional

from .config_utils import configure_logging, load_config
from .deck import DeckKeyword, load_deck, split_sections
from .errors import InputError
from .faults import FaultCollection
from .io import restart, writer
from .schedule import Schedule
from .schema import EngineConfig

logger = logging.getLogger(__name__)


def run_schedule(cfg: EngineConfig, keywords: Iterable[DeckKeyword]) -> Schedule:
    """Interpret a full deck and write the configured outputs."""

    sections, schedule_keywords = split_sections(list(keywords))
    faults = FaultCollection()
    faults.process_sections(sections)
    if len(faults):
        logger.info("Loaded %d faults from %d sections", len(faults), len(sections))
    schedule = Schedule.from_keywords(schedule_keywords, cfg, faults=faults)
    logger.info("Interpreted %d report steps", len(schedule))

    output = cfg.output
    if output.summary is not None:
        writer.write_parquet(writer.timeline_frame(schedule.timeline), Path(output.summary))
    if output.checkpoint_dir is not None:
        restart.write_steps(Path(output.checkpoint_dir), schedule.timeline, output.checkpoint_format)
    if schedule.guard.reported:
        logger.warning("%d problems were reported while reading the schedule", len(schedule.guard.reported))
    return schedule


def main(argv: Optional[List[str]] = None) -> int:
    """Command line entry point."""

    parser = argparse.ArgumentParser(description="Interpret the SCHEDULE section of a deck")
    parser.add_argument("--deck", type=Path, required=True, help="Path to the YAML deck")
    parser.add_argument("--config", type=Path, help="Path to YAML configuration")
    parser.add_argument(
        "--summary",
        type=Path,
        help="Write one Parquet row per report step to this file",
    )
    parser.add_argument(
        "--checkpoint-dir",
        type=Path,
        help="Write the state of every report step into this directory",
    )
    parser.add_argument(
        "--checkpoint-format",
        choices=["pickle", "json"],
        help="Format of the step files (defaults to configuration file)",
    )
    parser.add_argument(
        "--quiet",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Suppress INFO logs and Python warnings (use --no-quiet to show logs).",
    )
    parser.add_argument(
        "--override",
        action="append",
        nargs="+",
        metavar="PATH=VALUE",
        help=(
            "Apply configuration overrides using dotted paths; e.g. "
            "--override errors.unrecognized_keyword=throw"
        ),
    )
    args = parser.parse_args(argv)

    override_list: List[str] = []
    if args.override:
        for group in args.override:
            override_list.extend(group)
    cfg = load_config(args.config, overrides=override_list)
    if args.quiet is not None:
        cfg.logging.quiet = bool(args.quiet)
    if args.summary is not None:
        cfg.output.summary = args.summary
    if args.checkpoint_dir is not None:
        cfg.output.checkpoint_dir = args.checkpoint_dir
    if args.checkpoint_format is not None:
        cfg.output.checkpoint_format = args.checkpoint_format
    quiet = cfg.logging.quiet
    configure_logging(
        logging.WARNING if quiet else cfg.logging.level_number(),
        suppress_warnings=quiet,
    )

    try:
        schedule = run_schedule(cfg, load_deck(args.deck))
    except InputError as exc:
        logger.error("Failed to interpret %s: %s", args.deck, exc)
        return 1
    if schedule.exit_status is not None:
        logger.info("EXIT requested with status %d", schedule.exit_status)
        return schedule.exit_status
    return 0


__all__ = ["run_schedule", "main"]

if __name__ == "__main__":  # pragma: no cover - standard CLI entrypoint
    raise SystemExit(main())
