"""Keyword record interface consumed by the schedule engine.

The tokenizer that turns deck text into records lives outside this package.
What the engine needs from it is small: a keyword name, an ordered list of
records, named items that know whether each value came from the input or from
a language default, and a source location for error messages.  The classes in
this module are that interface; they are immutable once built.

Items the tokenizer did not supply behave as defaulted items without a value,
which matches how trailing items are treated when a record is terminated
early in the deck.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Mapping, Sequence, Tuple, Union

import numpy as np

from ..errors import SerializationError
from ..serialization import register_rule, serializable
from ..serialization.checksum import Reader, plan_for

_TRUE_STRINGS = {"Y", "YES", "T", "TRUE", "1"}
_FALSE_STRINGS = {"N", "NO", "F", "FALSE", "0"}


@serializable
@dataclass(frozen=True)
class Location:
    """Source location of a keyword in the deck."""

    keyword: str = ""
    filename: str = "<memory>"
    lineno: int = 0


@dataclass(frozen=True)
class Defaulted:
    """Marker used by :meth:`DeckKeyword.build` for a defaulted item.

    ``value`` is the language default the tokenizer filled in, if any.
    """

    value: Any = None


DEFAULT = Defaulted()


@dataclass(frozen=True)
class DeckItem:
    """One named item of a record.

    Parameters
    ----------
    name:
        Item name as given by the keyword grammar.
    values:
        Item values; most items are single valued.
    default_flags:
        ``True`` for every value that was filled in by a language default.
    si_factor:
        Factor converting the raw value to SI, supplied by the tokenizer.
    """

    name: str
    values: Tuple[Any, ...] = ()
    default_flags: Tuple[bool, ...] = ()
    si_factor: float = 1.0

    def __post_init__(self) -> None:
        if len(self.values) != len(self.default_flags):
            raise ValueError(
                f"Item {self.name}: {len(self.values)} values but {len(self.default_flags)} default flags"
            )

    @classmethod
    def explicit(cls, name: str, *values: Any, si_factor: float = 1.0) -> "DeckItem":
        return cls(name, tuple(values), (False,) * len(values), si_factor)

    @classmethod
    def default(cls, name: str, value: Any = None, si_factor: float = 1.0) -> "DeckItem":
        return cls(name, (value,), (True,), si_factor)

    def __len__(self) -> int:
        return len(self.values)

    def defaulted(self, index: int = 0) -> bool:
        if index >= len(self.default_flags):
            return True
        return self.default_flags[index]

    def has_value(self, index: int = 0) -> bool:
        return index < len(self.values) and self.values[index] is not None

    def get(self, index: int = 0) -> Any:
        if not self.has_value(index):
            raise ValueError(f"Item {self.name} has no value at position {index}")
        return self.values[index]

    def get_si(self, index: int = 0) -> float:
        return float(self.get(index)) * self.si_factor

    def get_all(self) -> Tuple[Any, ...]:
        return tuple(v for v in self.values if v is not None)

    @staticmethod
    def to_bool(value: Any) -> bool:
        """Interpret a deck string such as ``'YES'`` or ``'F'`` as a boolean."""

        if isinstance(value, bool):
            return value
        text = str(value).strip().upper()
        if text in _TRUE_STRINGS:
            return True
        if text in _FALSE_STRINGS:
            return False
        raise ValueError(f"Could not convert string {value!r} to bool")


# Item values are dynamically typed, so each value carries a one byte tag.
_TAG_NONE, _TAG_INT, _TAG_FLOAT, _TAG_STR, _TAG_BOOL = range(5)
_STR_NODE = plan_for(str)
_FLAGS_NODE = plan_for(Tuple[bool, ...])


def _encode_item(item: DeckItem, out: List[bytes], framed: bool) -> None:
    _STR_NODE.encode_member(item.name, out, framed)
    out.append(np.asarray(len(item.values), dtype="<u8").tobytes())
    for value in item.values:
        if value is None:
            out.append(bytes([_TAG_NONE]))
        elif isinstance(value, (bool, np.bool_)):
            out.append(bytes([_TAG_BOOL]) + np.asarray(value, dtype="?").tobytes())
        elif isinstance(value, (int, np.integer)):
            out.append(bytes([_TAG_INT]) + np.asarray(value, dtype="<i8").tobytes())
        elif isinstance(value, (float, np.floating)):
            out.append(bytes([_TAG_FLOAT]) + np.asarray(value, dtype="<f8").tobytes())
        elif isinstance(value, str):
            out.append(bytes([_TAG_STR]))
            _STR_NODE.encode_member(value, out, framed)
        else:
            raise SerializationError(f"Item {item.name}: unsupported value type {type(value).__name__}")
    _FLAGS_NODE.encode(item.default_flags, out, framed)
    out.append(np.asarray(item.si_factor, dtype="<f8").tobytes())


def _decode_item(reader: Reader) -> DeckItem:
    name = _STR_NODE.decode(reader)
    values: List[Any] = []
    for _ in range(reader.read_count()):
        tag = reader.read(1)[0]
        if tag == _TAG_NONE:
            values.append(None)
        elif tag == _TAG_BOOL:
            values.append(bool(np.frombuffer(reader.read(1), dtype="?")[0]))
        elif tag == _TAG_INT:
            values.append(int(np.frombuffer(reader.read(8), dtype="<i8")[0]))
        elif tag == _TAG_FLOAT:
            values.append(float(np.frombuffer(reader.read(8), dtype="<f8")[0]))
        elif tag == _TAG_STR:
            values.append(_STR_NODE.decode(reader))
        else:
            raise SerializationError(f"Item {name}: unknown value tag {tag}")
    flags = _FLAGS_NODE.decode(reader)
    si_factor = float(np.frombuffer(reader.read(8), dtype="<f8")[0])
    return DeckItem(name, tuple(values), tuple(flags), si_factor)


register_rule(DeckItem, _encode_item, _decode_item)


@serializable
@dataclass(frozen=True)
class DeckRecord:
    """An ordered collection of named items."""

    items: Tuple[DeckItem, ...] = ()

    def __len__(self) -> int:
        return len(self.items)

    def __iter__(self) -> Iterator[DeckItem]:
        return iter(self.items)

    def __contains__(self, name: object) -> bool:
        return any(item.name == name for item in self.items)

    def item(self, key: Union[str, int]) -> DeckItem:
        if isinstance(key, int):
            return self.items[key]
        for item in self.items:
            if item.name == key:
                return item
        return DeckItem(key)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "DeckRecord":
        items = []
        for name, raw in data.items():
            items.append(_make_item(name, raw))
        return cls(tuple(items))


@serializable
@dataclass(frozen=True)
class DeckKeyword:
    """A named keyword with its records and source location."""

    name: str
    records: Tuple[DeckRecord, ...] = ()
    location: Location = field(default_factory=Location)

    def __len__(self) -> int:
        return len(self.records)

    def __iter__(self) -> Iterator[DeckRecord]:
        return iter(self.records)

    def __getitem__(self, index: int) -> DeckRecord:
        return self.records[index]

    def record(self, index: int) -> DeckRecord:
        return self.records[index]

    @classmethod
    def build(
        cls,
        name: str,
        records: Sequence[Mapping[str, Any]] = (),
        *,
        filename: str = "<memory>",
        lineno: int = 0,
    ) -> "DeckKeyword":
        """Build a keyword from plain mappings.

        Values wrapped in :class:`Defaulted` (or the ``DEFAULT`` marker) are
        flagged as language defaults; lists become multi-valued items.
        """
        return cls(
            name=name,
            records=tuple(DeckRecord.from_mapping(rec) for rec in records),
            location=Location(keyword=name, filename=filename, lineno=lineno),
        )


def _make_item(name: str, raw: Any) -> DeckItem:
    if isinstance(raw, DeckItem):
        return raw
    if isinstance(raw, Defaulted):
        return DeckItem.default(name, raw.value)
    if isinstance(raw, (list, tuple)):
        values = []
        flags = []
        for value in raw:
            if isinstance(value, Defaulted):
                values.append(value.value)
                flags.append(True)
            else:
                values.append(value)
                flags.append(False)
        return DeckItem(name, tuple(values), tuple(flags))
    return DeckItem.explicit(name, raw)


def keyword_summary(keyword: DeckKeyword) -> Dict[str, Any]:
    """Return a small dict describing ``keyword`` for logs and diagnostics."""

    loc = keyword.location
    return {
        "keyword": keyword.name,
        "records": len(keyword),
        "file": loc.filename,
        "line": loc.lineno,
    }


__all__ = [
    "Location",
    "Defaulted",
    "DEFAULT",
    "DeckItem",
    "DeckRecord",
    "DeckKeyword",
    "keyword_summary",
]
