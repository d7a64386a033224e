"""Checksum and serialization framework."""
from .checksum import (
    CheckSum,
    OctetBuffer,
    Sha256Summer,
    checksum_hex,
    encode,
    entity_fields,
    register_rule,
    serializable,
)
from .serializer import pack, round_trip, unpack

__all__ = [
    "CheckSum",
    "OctetBuffer",
    "Sha256Summer",
    "checksum_hex",
    "encode",
    "entity_fields",
    "register_rule",
    "serializable",
    "pack",
    "round_trip",
    "unpack",
]
