"""Binary packing built on the checksum plans.

:func:`pack` walks exactly the same plan as
:class:`~resdeck.serialization.checksum.CheckSum`, adding length framing to
strings so the stream can be read back.  Anything that can be check-summed
can therefore be packed, and ``unpack(pack(x)) == x`` holds for every entity
whose equality is the bit-exact comparison installed by
:func:`~resdeck.serialization.checksum.serializable`.
"""
from __future__ import annotations

from typing import Any, List, TypeVar

from ..errors import SerializationError
from .checksum import Reader, infer_plan, plan_for

T = TypeVar("T")


def pack(value: Any, hint: Any = None) -> bytes:
    """Serialise ``value`` into bytes."""

    node = plan_for(hint) if hint is not None else infer_plan(value)
    out: List[bytes] = []
    node.encode(value, out, True)
    return b"".join(out)


def unpack(data: bytes, hint: Any) -> Any:
    """Rebuild a value of type ``hint`` from :func:`pack` output.

    Raises :class:`SerializationError` when the buffer is truncated or has
    trailing bytes.
    """
    reader = Reader(data)
    value = plan_for(hint).decode(reader)
    if reader.remaining:
        raise SerializationError(f"{reader.remaining} trailing bytes after unpacking {hint!r}")
    return value


def round_trip(value: T) -> T:
    """Pack and unpack ``value``; used to verify restart consistency."""

    return unpack(pack(value), type(value))
