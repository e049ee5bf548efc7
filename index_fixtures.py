"""
Builders for synthetic index streams used by the test modules.

Encoding is done here independently of the gitindex package (the trailer is
computed with hashlib) so the decoder is checked against a second opinion.
"""

from __future__ import annotations

import hashlib
import io
import struct
from typing import Iterable, List, Optional, Sequence, Tuple


OID_A = bytes(range(1, 21))
OID_B = bytes(range(21, 41))
OID_C = bytes(range(41, 61))


def encode_offset_varint(value: int) -> bytes:
    out = [value & 0x7F]
    value >>= 7
    while value:
        value -= 1
        out.insert(0, 0x80 | (value & 0x7F))
        value >>= 7
    return bytes(out)


def _common_prefix_len(a: bytes, b: bytes) -> int:
    n = 0
    for x, y in zip(a, b):
        if x != y:
            break
        n += 1
    return n


def make_entry(
    path: bytes,
    *,
    version: int = 2,
    oid: bytes = OID_A,
    mode: int = 0o100644,
    size: int = 0,
    ctime: Tuple[int, int] = (1_700_000_000, 5),
    mtime: Tuple[int, int] = (1_700_000_100, 7),
    dev: int = 2049,
    ino: int = 1234,
    uid: int = 1000,
    gid: int = 1000,
    stage: int = 0,
    assume_valid: bool = False,
    extended_flags: Optional[int] = None,
    prev_path: Optional[bytes] = None,
    strip: Optional[int] = None,
    name_length: Optional[int] = None,
) -> bytes:
    flags = min(len(path), 0xFFF) if name_length is None else name_length
    flags |= (stage & 3) << 12
    if extended_flags is not None:
        flags |= 0x4000
    if assume_valid:
        flags |= 0x8000
    body = struct.pack(">iiiiIIIIII", ctime[0], ctime[1], mtime[0], mtime[1], dev, ino, mode, uid, gid, size)
    body += oid + struct.pack(">H", flags)
    if version >= 3 and extended_flags is not None:
        body += struct.pack(">H", extended_flags)
    if version >= 4:
        if strip is None:
            if prev_path is None:
                strip, suffix = 0, path
            else:
                n = _common_prefix_len(prev_path, path)
                strip, suffix = len(prev_path) - n, path[n:]
        else:
            suffix = path
        return body + encode_offset_varint(strip) + suffix + b"\x00"
    body += path + b"\x00"
    return body + b"\x00" * (-len(body) % 8)


def make_entries(paths: Sequence[bytes], *, version: int = 2, **kwargs) -> List[bytes]:
    out = []
    prev = None
    for p in paths:
        out.append(make_entry(p, version=version, prev_path=prev, **kwargs))
        prev = p
    return out


def tree_payload(nodes: Iterable[Tuple[bytes, int, int, Optional[bytes]]]) -> bytes:
    out = bytearray()
    for path, entry_count, subtree_count, oid in nodes:
        out += path + b"\x00" + str(entry_count).encode() + b" " + str(subtree_count).encode() + b"\n"
        if entry_count >= 0:
            out += oid
    return bytes(out)


def chain_tree(levels: int, oid: bytes = OID_A) -> bytes:
    """A cache tree that is one directory nested ``levels`` deep."""
    nodes = [(b"", 1, 1, oid)]
    nodes += [(f"d{i}".encode(), 1, 1, oid) for i in range(levels - 1)]
    nodes.append((b"leaf", 1, 0, oid))
    return tree_payload(nodes)


def extension(signature: bytes, payload: bytes, *, length: Optional[int] = None) -> bytes:
    return signature + struct.pack(">I", len(payload) if length is None else length) + payload


def build_index(
    entries: Sequence[bytes] = (),
    *,
    version: int = 2,
    count: Optional[int] = None,
    extensions: Sequence[bytes] = (),
    hash_name: str = "sha1",
    signature: bytes = b"DIRC",
    trailer: Optional[bytes] = None,
) -> bytes:
    body = signature + struct.pack(">II", version, len(entries) if count is None else count)
    body += b"".join(entries) + b"".join(extensions)
    if trailer is None:
        trailer = hashlib.new(hash_name, body).digest()
    return body + trailer


class TrickleStream(io.RawIOBase):
    """Non-seekable stream handing out at most ``step`` bytes per read."""

    def __init__(self, data: bytes, step: int = 3):
        self._data = data
        self._pos = 0
        self._step = step

    def readable(self) -> bool:
        return True

    def seekable(self) -> bool:
        return False

    def seek(self, *args, **kwargs):
        raise io.UnsupportedOperation("seek")

    def tell(self):
        raise io.UnsupportedOperation("tell")

    def readinto(self, b) -> int:
        n = min(len(b), self._step, len(self._data) - self._pos)
        b[:n] = self._data[self._pos : self._pos + n]
        self._pos += n
        return n
