"""Type-driven checksums for schedule state.

Every value that takes part in a checksum is turned into a flat sequence of
octets by walking a *plan* built from its type.  Two layers decide how a value
is encoded:

* plain types (``bool``, ``int``, ``float``, integer valued enums and numpy
  scalars) are emitted as their fixed width little-endian storage, exactly as
  :meth:`numpy.ndarray.tobytes` lays them out;
* everything else needs an explicit rule: ``str`` contributes its UTF-8
  content, ``datetime`` its integral epoch seconds, bit-vectors
  (:class:`enum.IntFlag`) their integer value and entities the concatenation
  of their declared fields.

A string nested in an entity or a container is preceded by its byte length,
so adjacent string fields cannot run together.  The framed stream written by
:mod:`resdeck.serialization.serializer` also keeps datetimes at microsecond
resolution; entity equality compares that stream.

Entities are dataclasses decorated with :func:`serializable`.  The decorator
resolves the plan of every field when the class is defined, so a field whose
type has no rule fails at import time instead of silently hashing ``repr``.
The same plan drives :mod:`resdeck.serialization.serializer`, which is why a
checksum match and a serialize/deserialize/compare round trip always agree.

The checksum sink is any callable that accepts one octet (an ``int`` in
``0..255``) at a time.
"""
from __future__ import annotations

import calendar
import dataclasses
import enum
import hashlib
import types
import typing
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple, Type

import numpy as np

from ..errors import SerializationError

CheckSummer = Callable[[int], None]

_PLAIN_DTYPES: Dict[type, np.dtype] = {
    bool: np.dtype("?"),
    int: np.dtype("<i8"),
    float: np.dtype("<f8"),
}
_COUNT = np.dtype("<u8")


def _count_bytes(n: int) -> bytes:
    return np.asarray(n, dtype=_COUNT).tobytes()


class Reader:
    """Sequential reader over a serialized buffer."""

    def __init__(self, data: bytes) -> None:
        self._data = memoryview(data)
        self._pos = 0

    @property
    def remaining(self) -> int:
        return len(self._data) - self._pos

    def read(self, n: int) -> bytes:
        if n > self.remaining:
            raise SerializationError(
                f"Truncated buffer: need {n} bytes at offset {self._pos}, {self.remaining} left"
            )
        chunk = self._data[self._pos : self._pos + n].tobytes()
        self._pos += n
        return chunk

    def read_count(self) -> int:
        return int(np.frombuffer(self.read(_COUNT.itemsize), dtype=_COUNT)[0])


# ---------------------------------------------------------------------------
# Plan nodes
# ---------------------------------------------------------------------------


class Node:
    """Encoder/decoder for one static type."""

    plain = False

    def encode(self, value: Any, out: List[bytes], framed: bool) -> None:
        raise NotImplementedError

    def decode(self, reader: Reader) -> Any:
        raise NotImplementedError

    def encode_member(self, value: Any, out: List[bytes], framed: bool) -> None:
        """Encode ``value`` as part of an enclosing entity or container."""
        self.encode(value, out, framed)


class PlainNode(Node):
    plain = True

    def __init__(self, pytype: type, dtype: np.dtype) -> None:
        self.pytype = pytype
        self.dtype = dtype

    def encode(self, value: Any, out: List[bytes], framed: bool) -> None:
        out.append(np.asarray(value, dtype=self.dtype).tobytes())

    def encode_array(self, values: Sequence[Any], out: List[bytes]) -> None:
        out.append(np.asarray(list(values), dtype=self.dtype).tobytes())

    def decode(self, reader: Reader) -> Any:
        raw = np.frombuffer(reader.read(self.dtype.itemsize), dtype=self.dtype)[0]
        return self.pytype(raw.item())

    def decode_array(self, reader: Reader, n: int) -> List[Any]:
        raw = np.frombuffer(reader.read(self.dtype.itemsize * n), dtype=self.dtype)
        return [self.pytype(v) for v in raw.tolist()]


class EnumNode(PlainNode):
    """Integer valued enums are plain: their value is stored."""

    def __init__(self, enum_cls: Type[enum.Enum]) -> None:
        super().__init__(int, _PLAIN_DTYPES[int])
        self.enum_cls = enum_cls

    def encode(self, value: Any, out: List[bytes], framed: bool) -> None:
        out.append(np.asarray(self.enum_cls(value).value, dtype=self.dtype).tobytes())

    def encode_array(self, values: Sequence[Any], out: List[bytes]) -> None:
        out.append(np.asarray([self.enum_cls(v).value for v in values], dtype=self.dtype).tobytes())

    def decode(self, reader: Reader) -> Any:
        return self.enum_cls(super().decode(reader))

    def decode_array(self, reader: Reader, n: int) -> List[Any]:
        return [self.enum_cls(v) for v in super().decode_array(reader, n)]


class RuleNode(Node):
    """Explicit rule for a non-plain type."""

    def __init__(
        self,
        encode: Callable[[Any, List[bytes], bool], None],
        decode: Callable[[Reader], Any],
    ) -> None:
        self._encode = encode
        self._decode = decode

    def encode(self, value: Any, out: List[bytes], framed: bool) -> None:
        self._encode(value, out, framed)

    def decode(self, reader: Reader) -> Any:
        return self._decode(reader)


class OptionalNode(Node):
    def __init__(self, inner: Node) -> None:
        self.inner = inner

    def encode(self, value: Any, out: List[bytes], framed: bool) -> None:
        out.append(b"\x01" if value is not None else b"\x00")
        if value is not None:
            self.inner.encode(value, out, framed)

    def encode_member(self, value: Any, out: List[bytes], framed: bool) -> None:
        out.append(b"\x01" if value is not None else b"\x00")
        if value is not None:
            self.inner.encode_member(value, out, framed)

    def decode(self, reader: Reader) -> Any:
        if reader.read(1) == b"\x00":
            return None
        return self.inner.decode(reader)


class FixedTupleNode(Node):
    def __init__(self, members: Sequence[Node]) -> None:
        self.members = tuple(members)

    def encode(self, value: Any, out: List[bytes], framed: bool) -> None:
        if len(value) != len(self.members):
            raise SerializationError(f"Expected a {len(self.members)}-tuple, got {len(value)} entries")
        for node, item in zip(self.members, value):
            node.encode_member(item, out, framed)

    def decode(self, reader: Reader) -> Any:
        return tuple(node.decode(reader) for node in self.members)


class SequenceNode(Node):
    """Variable length list or tuple; plain element types go out as one array."""

    def __init__(self, inner: Node, container: type) -> None:
        self.inner = inner
        self.container = container

    def encode(self, value: Any, out: List[bytes], framed: bool) -> None:
        out.append(_count_bytes(len(value)))
        if isinstance(self.inner, PlainNode):
            self.inner.encode_array(value, out)
            return
        for item in value:
            self.inner.encode_member(item, out, framed)

    def decode(self, reader: Reader) -> Any:
        n = reader.read_count()
        if isinstance(self.inner, PlainNode):
            items = self.inner.decode_array(reader, n)
        else:
            items = [self.inner.decode(reader) for _ in range(n)]
        return self.container(items)


class MappingNode(Node):
    """Mappings are traversed in sorted key order."""

    def __init__(self, key: Node, value: Node) -> None:
        self.key = key
        self.value = value

    def encode(self, value: Any, out: List[bytes], framed: bool) -> None:
        out.append(_count_bytes(len(value)))
        for key in sorted(value):
            self.key.encode_member(key, out, framed)
            self.value.encode_member(value[key], out, framed)

    def decode(self, reader: Reader) -> Any:
        n = reader.read_count()
        result = {}
        for _ in range(n):
            key = self.key.decode(reader)
            result[key] = self.value.decode(reader)
        return result


class EntityNode(Node):
    """Composite entity: its fields in declaration order."""

    def __init__(self, cls: type, fields: Sequence[Tuple[str, Node]]) -> None:
        self.cls = cls
        self.fields = tuple(fields)

    def encode(self, value: Any, out: List[bytes], framed: bool) -> None:
        if not isinstance(value, self.cls):
            raise SerializationError(f"Expected {self.cls.__name__}, got {type(value).__name__}")
        for name, node in self.fields:
            node.encode_member(getattr(value, name), out, framed)

    def decode(self, reader: Reader) -> Any:
        obj = self.cls.__new__(self.cls)
        for name, node in self.fields:
            object.__setattr__(obj, name, node.decode(reader))
        return obj


# ---------------------------------------------------------------------------
# Rules for non-plain types
# ---------------------------------------------------------------------------


class StrNode(Node):
    """UTF-8 content; length prefixed when framed or nested."""

    def encode(self, value: Any, out: List[bytes], framed: bool) -> None:
        data = str(value).encode("utf-8")
        if framed:
            out.append(_count_bytes(len(data)))
        out.append(data)

    def encode_member(self, value: Any, out: List[bytes], framed: bool) -> None:
        data = str(value).encode("utf-8")
        out.append(_count_bytes(len(data)))
        out.append(data)

    def decode(self, reader: Reader) -> Any:
        return reader.read(reader.read_count()).decode("utf-8")


_EPOCH = datetime(1970, 1, 1)


def _encode_datetime(value: datetime, out: List[bytes], framed: bool) -> None:
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    if framed:
        delta = value - _EPOCH
        micros = (delta.days * 86400 + delta.seconds) * 1_000_000 + delta.microseconds
        out.append(np.asarray(micros, dtype="<i8").tobytes())
        return
    out.append(np.asarray(calendar.timegm(value.timetuple()), dtype="<i8").tobytes())


def _decode_datetime(reader: Reader) -> datetime:
    micros = int(np.frombuffer(reader.read(8), dtype="<i8")[0])
    return _EPOCH + timedelta(microseconds=micros)


_RULES: Dict[type, Node] = {
    str: StrNode(),
    datetime: RuleNode(_encode_datetime, _decode_datetime),
}


def _flag_node(flag_cls: Type[enum.IntFlag]) -> Node:
    dtype = np.dtype("<u8")

    def encode(value: Any, out: List[bytes], framed: bool) -> None:
        out.append(np.asarray(int(value), dtype=dtype).tobytes())

    def decode(reader: Reader) -> Any:
        return flag_cls(int(np.frombuffer(reader.read(8), dtype=dtype)[0]))

    return RuleNode(encode, decode)


def register_rule(
    pytype: type,
    encode: Callable[[Any, List[bytes], bool], None],
    decode: Callable[[Reader], Any],
) -> None:
    """Register an explicit encoding rule for a non-plain type."""

    if pytype in _PLAIN_DTYPES:
        raise SerializationError(f"{pytype.__name__} is a plain type and cannot take a rule")
    _RULES[pytype] = RuleNode(encode, decode)


_NONE_TYPE = type(None)
_UNION_ORIGINS = tuple(
    origin for origin in (typing.Union, getattr(types, "UnionType", None)) if origin is not None
)


def plan_for(hint: Any) -> Node:
    """Return the plan node for a type hint.

    Raises :class:`SerializationError` when the hint has no plain encoding
    and no registered rule.
    """
    if hint in _RULES:
        return _RULES[hint]
    if hint in _PLAIN_DTYPES:
        return PlainNode(hint, _PLAIN_DTYPES[hint])
    origin = typing.get_origin(hint)
    args = typing.get_args(hint)
    if origin is not None and origin in _UNION_ORIGINS:
        members = [a for a in args if a is not _NONE_TYPE]
        if len(members) == 1 and len(args) == 2:
            return OptionalNode(plan_for(members[0]))
        raise SerializationError(f"Unions other than Optional[...] are not supported: {hint!r}")
    if origin is tuple:
        if len(args) == 2 and args[1] is Ellipsis:
            return SequenceNode(plan_for(args[0]), tuple)
        if not args:
            raise SerializationError("Bare tuple annotations need element types")
        return FixedTupleNode([plan_for(a) for a in args])
    if origin is list:
        if not args:
            raise SerializationError("Bare list annotations need an element type")
        return SequenceNode(plan_for(args[0]), list)
    if origin is dict:
        if len(args) != 2:
            raise SerializationError("Bare dict annotations need key and value types")
        return MappingNode(plan_for(args[0]), plan_for(args[1]))
    if isinstance(hint, type):
        if issubclass(hint, enum.IntFlag):
            return _flag_node(hint)
        if issubclass(hint, enum.Enum):
            if not all(isinstance(member.value, int) for member in hint):
                raise SerializationError(f"Enum {hint.__name__} needs integer values to be plain")
            return EnumNode(hint)
        if issubclass(hint, np.generic):
            return PlainNode(hint, np.dtype(hint).newbyteorder("<"))
        for base in hint.__mro__[1:]:
            if base in _RULES:
                return _RULES[base]
    raise SerializationError(f"Check-summing not supported for type {hint!r}")


def infer_plan(value: Any) -> Node:
    """Plan for a bare value whose static type was not given."""

    if isinstance(value, (list, tuple, dict, set)):
        raise SerializationError(
            f"A {type(value).__name__} needs an explicit type hint to be check-summed"
        )
    return plan_for(type(value))


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------


def serializable(cls: Optional[type] = None, *, eq: bool = True) -> Any:
    """Declare a dataclass as a checksum/serialization entity.

    The dataclass fields, in declaration order, are the entity's persisted
    layout.  With ``eq=True`` (the default) equality compares the framed
    encoding, so floating point fields compare bit for bit.
    """

    def wrap(klass: type) -> type:
        if not dataclasses.is_dataclass(klass):
            raise SerializationError(f"{klass.__name__} must be a dataclass to be serializable")
        hints = typing.get_type_hints(klass)
        fields = []
        for f in dataclasses.fields(klass):
            try:
                fields.append((f.name, plan_for(hints[f.name])))
            except SerializationError as exc:
                raise SerializationError(f"{klass.__name__}.{f.name}: {exc}") from exc
        node = EntityNode(klass, fields)
        _RULES[klass] = node
        if eq:
            klass.__eq__ = _entity_eq  # type: ignore[assignment]
        return klass

    if cls is None:
        return wrap
    return wrap(cls)


def _entity_eq(self: Any, other: Any) -> bool:
    if type(other) is not type(self):
        return NotImplemented
    return encode(self, framed=True) == encode(other, framed=True)


def entity_fields(cls: type) -> Tuple[str, ...]:
    """Names of the declared fields of a registered entity."""

    node = _RULES.get(cls)
    if not isinstance(node, EntityNode):
        raise SerializationError(f"{cls.__name__} is not a registered entity")
    return tuple(name for name, _ in node.fields)


def encode(value: Any, hint: Any = None, *, framed: bool = False) -> bytes:
    node = plan_for(hint) if hint is not None else infer_plan(value)
    out: List[bytes] = []
    node.encode(value, out, framed)
    return b"".join(out)


# ---------------------------------------------------------------------------
# Check-summers
# ---------------------------------------------------------------------------


class CheckSum:
    """Feed the canonical octets of values to a check-summer.

    Parameters
    ----------
    summer:
        Callable accepting one octet at a time.
    """

    def __init__(self, summer: CheckSummer) -> None:
        self.summer = summer

    def _feed(self, chunks: Iterable[bytes]) -> None:
        for chunk in chunks:
            for octet in chunk:
                self.summer(octet)

    def checksum(self, value: Any, hint: Any = None) -> None:
        node = plan_for(hint) if hint is not None else infer_plan(value)
        out: List[bytes] = []
        node.encode(value, out, False)
        self._feed(out)

    def checksum_array(self, values: Sequence[Any], hint: Any) -> None:
        node = plan_for(hint)
        if not isinstance(node, PlainNode):
            raise SerializationError("Checksumming an array not supported for non-plain data")
        out: List[bytes] = []
        node.encode_array(values, out)
        self._feed(out)


class OctetBuffer:
    """Check-summer that keeps every octet; handy for comparisons."""

    def __init__(self) -> None:
        self.data = bytearray()

    def __call__(self, octet: int) -> None:
        self.data.append(octet)


class Sha256Summer:
    """Check-summer producing a SHA-256 digest."""

    def __init__(self) -> None:
        self._hash = hashlib.sha256()
        self._pending = bytearray()

    def __call__(self, octet: int) -> None:
        self._pending.append(octet)
        if len(self._pending) >= 4096:
            self._flush()

    def _flush(self) -> None:
        self._hash.update(bytes(self._pending))
        self._pending.clear()

    def hexdigest(self) -> str:
        self._flush()
        return self._hash.hexdigest()


def checksum_hex(value: Any, hint: Any = None) -> str:
    """Return the SHA-256 hex digest of ``value``'s canonical octets."""

    summer = Sha256Summer()
    CheckSum(summer).checksum(value, hint)
    return summer.hexdigest()


__all__ = [
    "CheckSummer",
    "CheckSum",
    "OctetBuffer",
    "Sha256Summer",
    "Reader",
    "checksum_hex",
    "encode",
    "entity_fields",
    "plan_for",
    "register_rule",
    "serializable",
]
