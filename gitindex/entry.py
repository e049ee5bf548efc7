from __future__ import annotations

import struct
from dataclasses import dataclass, field
from functools import lru_cache
from typing import List, Optional

from .constants import (
    ENTRY_ALIGNMENT,
    EXT_FLAG_INTENT_TO_ADD,
    EXT_FLAG_SKIP_WORKTREE,
    FLAG_EXTENDED,
    FLAG_NAMEMASK,
    FLAG_STAGEMASK,
    FLAG_STAGESHIFT,
    FLAG_VALID,
    MODE_TYPE_MASK,
    MODE_TYPE_SHIFT,
    NSEC_PER_SEC,
)
from .errors import IndexAnomaly, InvalidTimestamp, NameLengthMismatch
from .varint import read_offset_varint


_EXT_FLAGS_STRUCT = struct.Struct(">H")


@lru_cache(maxsize=None)
def _entry_struct(oid_size: int) -> struct.Struct:
    # ctime(2) mtime(2) dev ino mode uid gid size, object id, flags
    return struct.Struct(f">iiiiIIIIII{oid_size}sH")


@dataclass
class IndexEntry:
    ctime_sec: int
    ctime_nsec: int
    mtime_sec: int
    mtime_nsec: int
    dev: int
    ino: int
    mode: int
    uid: int
    gid: int
    size: int
    oid: bytes
    flags: int
    extended_flags: int = 0
    prefix_strip: Optional[int] = None  # version 4 only
    name: bytes = b""  # as stored; a suffix in version 4
    path: bytes = b""  # full path
    padding: int = 0
    offset: int = 0  # stream offset of the entry's first byte

    @property
    def name_length(self) -> int:
        """Name length declared in the flags word (saturates at 0xFFF)."""
        return self.flags & FLAG_NAMEMASK

    @property
    def stage(self) -> int:
        return (self.flags & FLAG_STAGEMASK) >> FLAG_STAGESHIFT

    @property
    def assume_valid(self) -> bool:
        return bool(self.flags & FLAG_VALID)

    @property
    def extended(self) -> bool:
        return bool(self.flags & FLAG_EXTENDED)

    @property
    def skip_worktree(self) -> bool:
        return bool(self.extended_flags & EXT_FLAG_SKIP_WORKTREE)

    @property
    def intent_to_add(self) -> bool:
        return bool(self.extended_flags & EXT_FLAG_INTENT_TO_ADD)

    @property
    def object_type(self) -> int:
        return (self.mode >> MODE_TYPE_SHIFT) & MODE_TYPE_MASK

    @property
    def permissions(self) -> int:
        return self.mode & 0o777


@dataclass
class DecodedEntry:
    entry: IndexEntry
    anomalies: List[IndexAnomaly] = field(default_factory=list)


def padding_for(position: int) -> int:
    """Number of NUL bytes that follow a version 2/3 name ending at ``position``.

    Entries start at offsets congruent to 4 modulo 8 (the header is 12 bytes
    and every entry is a multiple of 8 long), so the entry is complete once the
    cursor is back at 4 modulo 8.
    """
    rem = (position - 4) % ENTRY_ALIGNMENT
    return ENTRY_ALIGNMENT - rem if rem else 0


def read_entry(cursor, version: int, oid_size: int = 20) -> DecodedEntry:
    """Decode one entry at the cursor.

    ``version`` selects the variable tail: extended flags from 3 on, a
    prefix-strip varint and no padding from 4 on. Version 4 entries come back
    with ``path`` equal to the stored suffix; the caller rebuilds full paths.
    """
    st = _entry_struct(oid_size)
    offset = cursor.position
    (
        ctime_sec,
        ctime_nsec,
        mtime_sec,
        mtime_nsec,
        dev,
        ino,
        mode,
        uid,
        gid,
        size,
        oid,
        flags,
    ) = st.unpack(cursor.read(st.size))

    extended_flags = 0
    if version >= 3 and flags & FLAG_EXTENDED:
        (extended_flags,) = _EXT_FLAGS_STRUCT.unpack(cursor.read(_EXT_FLAGS_STRUCT.size))

    prefix_strip = None
    if version >= 4:
        prefix_strip = read_offset_varint(cursor)

    name = cursor.read_until(b"\x00")

    padding = 0
    if version < 4:
        padding = padding_for(cursor.position)
        # Pad bytes should be NUL; only their count matters here.
        cursor.skip(padding)

    entry = IndexEntry(
        ctime_sec=ctime_sec,
        ctime_nsec=ctime_nsec,
        mtime_sec=mtime_sec,
        mtime_nsec=mtime_nsec,
        dev=dev,
        ino=ino,
        mode=mode,
        uid=uid,
        gid=gid,
        size=size,
        oid=oid,
        flags=flags,
        extended_flags=extended_flags,
        prefix_strip=prefix_strip,
        name=name,
        path=name,
        padding=padding,
        offset=offset,
    )
    return DecodedEntry(entry, check_entry(entry))


def check_entry(entry: IndexEntry) -> List[IndexAnomaly]:
    out: List[IndexAnomaly] = []
    for label, nsec in (("ctime", entry.ctime_nsec), ("mtime", entry.mtime_nsec)):
        if not 0 <= nsec < NSEC_PER_SEC:
            out.append(InvalidTimestamp(f"{label} nanoseconds out of range: {nsec}", entry.offset))
    return out


def check_name_length(entry: IndexEntry) -> Optional[NameLengthMismatch]:
    """Compare the declared name length with the full path length.

    Paths of 0xFFF bytes or more declare 0xFFF, so a mismatch there is
    expected and only informational.
    """
    actual = len(entry.path)
    declared = entry.name_length
    if declared == actual:
        return None
    return NameLengthMismatch(
        f"declared name length {declared} differs from actual {actual}",
        entry.offset,
        declared=declared,
        actual=actual,
    )
