from __future__ import annotations

import struct
from dataclasses import dataclass
from typing import Optional, Tuple

from .constants import HEADER_SIZE, INDEX_MAGIC, MAX_KNOWN_VERSION, MIN_VERSION
from .errors import BadMagic, UnknownVersion, UnsupportedVersion


_HEADER_STRUCT = struct.Struct(">4sII")
assert _HEADER_STRUCT.size == HEADER_SIZE


@dataclass(frozen=True)
class IndexHeader:
    signature: bytes
    version: int
    entry_count: int

    @property
    def shape_version(self) -> int:
        """Version whose entry layout applies; later versions decode as 4."""
        return min(self.version, MAX_KNOWN_VERSION)


def read_header(cursor) -> Tuple[IndexHeader, Optional[UnknownVersion]]:
    """Decode the 12-byte header.

    Returns the header and, for versions newer than the ones this reader
    knows, an :class:`UnknownVersion` anomaly for the caller to report.
    """
    raw = cursor.read(_HEADER_STRUCT.size)
    signature, version, entry_count = _HEADER_STRUCT.unpack(raw)
    if signature != INDEX_MAGIC:
        raise BadMagic(f"not an index file (signature {signature!r})")
    if version < MIN_VERSION:
        raise UnsupportedVersion(f"index version {version} is not supported")
    anomaly = None
    if version > MAX_KNOWN_VERSION:
        anomaly = UnknownVersion(
            f"unknown index version {version}; decoding as version {MAX_KNOWN_VERSION}", 4
        )
    return IndexHeader(signature=signature, version=version, entry_count=entry_count), anomaly
