"""Named faults and their transmissibility multipliers.

MULTFLT assigns multipliers by fault name.  A name may end in a wildcard; the
pattern is truncated at the first ``*`` so ``'FLT*1'`` behaves like
``'FLT*'``.  Within one deck section a later assignment replaces an earlier
one; assignments in different sections multiply, so ``0.0001`` in GRID
followed by ``20`` in EDIT gives ``0.002``.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, Iterator, List, Sequence, Tuple

from .deck.record import DeckKeyword
from .serialization import serializable

logger = logging.getLogger(__name__)


def name_matches(pattern: str, name: str) -> bool:
    star = pattern.find("*")
    if star < 0:
        return pattern == name
    return name.startswith(pattern[:star])


@serializable
@dataclass
class Fault:
    name: str
    trans_mult: float = 1.0
    section: str = ""
    section_base: float = 1.0

    def assign(self, value: float, section: str) -> None:
        if section != self.section:
            self.section_base = self.trans_mult
            self.section = section
        self.trans_mult = self.section_base * value


@serializable
@dataclass
class FaultCollection:
    faults: List[Fault] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.faults)

    def __iter__(self) -> Iterator[Fault]:
        return iter(self.faults)

    def has_fault(self, name: str) -> bool:
        return any(f.name == name for f in self.faults)

    def add_fault(self, name: str) -> Fault:
        if self.has_fault(name):
            return self.get_fault(name)
        fault = Fault(name)
        self.faults.append(fault)
        return fault

    def get_fault(self, key: "str | int") -> Fault:
        if isinstance(key, int):
            return self.faults[key]
        for fault in self.faults:
            if fault.name == key:
                return fault
        raise ValueError(f"No such fault: {key}")

    def set_multiplier(self, pattern: str, value: float, section: str) -> int:
        """Apply ``value`` to every fault matching ``pattern``; returns the match count."""

        matched = 0
        for fault in self.faults:
            if name_matches(pattern, fault.name):
                fault.assign(float(value), section)
                matched += 1
        if matched == 0:
            raise ValueError(f"MULTFLT: no fault matches {pattern!r}")
        return matched

    def apply_multflt(self, keyword: DeckKeyword, section: str) -> None:
        for record in keyword:
            self.set_multiplier(str(record.item("FAULT").get()), record.item("FACTOR").get(), section)

    def process_sections(self, sections: Sequence[Tuple[str, Iterable[DeckKeyword]]]) -> None:
        """Apply FAULTS and MULTFLT keywords grouped by deck section."""

        for section, keywords in sections:
            for keyword in keywords:
                if keyword.name == "FAULTS":
                    for record in keyword:
                        self.add_fault(str(record.item("NAME").get()))
                elif keyword.name == "MULTFLT":
                    self.apply_multflt(keyword, section)
                else:
                    logger.debug("process_sections: ignoring %s in %s", keyword.name, section)
