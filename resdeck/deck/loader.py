"""Read pre-tokenized decks stored as YAML.

The real tokenizer is an external collaborator.  For command line use and
tests the engine accepts the already-structured form written as YAML::

    - keyword: TUNING
      line: 12
      records:
        - {TSINIT: 1.0, TSMAXZ: 30.0, TSMINZ: "1*"}
        - {}
        - {NEWTMX: 20}

A value of ``"1*"`` marks an item as defaulted, mirroring deck syntax.
Values given as ``{"value": x, "default": true}`` carry the language default
that the tokenizer filled in.
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, List, Mapping, Tuple

from ..errors import ConfigurationError
from .record import DeckItem, DeckKeyword, DeckRecord, Location

logger = logging.getLogger(__name__)

DEFAULT_TOKEN = "1*"
SECTIONS = ("RUNSPEC", "GRID", "EDIT", "PROPS", "REGIONS", "SOLUTION", "SUMMARY", "SCHEDULE")


def _item_from_yaml(name: str, raw: Any) -> DeckItem:
    if isinstance(raw, Mapping) and "value" in raw:
        value = raw.get("value")
        if bool(raw.get("default", False)):
            return DeckItem.default(name, value, si_factor=float(raw.get("si_factor", 1.0)))
        return DeckItem.explicit(name, value, si_factor=float(raw.get("si_factor", 1.0)))
    if isinstance(raw, str) and raw.strip() == DEFAULT_TOKEN:
        return DeckItem.default(name)
    if isinstance(raw, list):
        values = []
        flags = []
        for entry in raw:
            if isinstance(entry, str) and entry.strip() == DEFAULT_TOKEN:
                values.append(None)
                flags.append(True)
            else:
                values.append(entry)
                flags.append(False)
        return DeckItem(name, tuple(values), tuple(flags))
    return DeckItem.explicit(name, raw)


def keywords_from_data(data: Any, filename: str = "<memory>") -> List[DeckKeyword]:
    """Convert the parsed YAML document into :class:`DeckKeyword` objects."""

    if data is None:
        return []
    if not isinstance(data, list):
        raise ConfigurationError("Deck YAML root must be a list of keywords")
    keywords: List[DeckKeyword] = []
    for idx, entry in enumerate(data):
        if isinstance(entry, str):
            entry = {"keyword": entry}
        if not isinstance(entry, Mapping) or "keyword" not in entry:
            raise ConfigurationError(f"Deck entry #{idx} must be a mapping with a 'keyword' key")
        name = str(entry["keyword"]).strip().upper()
        records = []
        for rec in entry.get("records") or []:
            if not isinstance(rec, Mapping):
                raise ConfigurationError(f"Record of keyword {name} (entry #{idx}) must be a mapping")
            records.append(DeckRecord(tuple(_item_from_yaml(str(k), v) for k, v in rec.items())))
        location = Location(
            keyword=name,
            filename=str(entry.get("file", filename)),
            lineno=int(entry.get("line", 0)),
        )
        keywords.append(DeckKeyword(name=name, records=tuple(records), location=location))
    return keywords


def load_deck(path: Path) -> List[DeckKeyword]:
    """Load a YAML deck file into a list of keywords."""

    from ruamel.yaml import YAML

    yaml = YAML(typ="safe")
    source_path = Path(path).resolve()
    with source_path.open("r", encoding="utf-8") as fh:
        data = yaml.load(fh)
    keywords = keywords_from_data(data, filename=source_path.name)
    logger.info("Loaded %d keywords from %s", len(keywords), source_path)
    return keywords


def split_sections(
    keywords: List[DeckKeyword],
) -> Tuple[List[Tuple[str, List[DeckKeyword]]], List[DeckKeyword]]:
    """Group keywords by section marker.

    Returns the sections preceding SCHEDULE as ``(name, keywords)`` pairs and
    the SCHEDULE keywords.  A deck without any section marker is taken to be
    a bare SCHEDULE section.
    """
    if not any(kw.name in SECTIONS for kw in keywords):
        return [], list(keywords)
    sections: List[Tuple[str, List[DeckKeyword]]] = []
    schedule: List[DeckKeyword] = []
    current: List[DeckKeyword] = []
    name = None
    for keyword in keywords:
        if keyword.name in SECTIONS:
            name = keyword.name
            current = schedule if name == "SCHEDULE" else []
            if name != "SCHEDULE":
                sections.append((name, current))
            continue
        if name is None:
            raise ConfigurationError(f"Keyword {keyword.name} appears before the first section marker")
        current.append(keyword)
    return sections, schedule
