from __future__ import annotations

from dataclasses import dataclass

from .errors import TruncatedInput
from .hashutil import is_null_digest


@dataclass(frozen=True)
class ChecksumResult:
    stored: bytes
    computed: bytes

    @property
    def skipped(self) -> bool:
        """The writer left the trailer zeroed instead of hashing the file."""
        return is_null_digest(self.stored)

    @property
    def mismatch(self) -> bool:
        return not self.skipped and self.stored != self.computed

    @property
    def ok(self) -> bool:
        return not self.mismatch


def verify_trailer(cursor) -> ChecksumResult:
    """Consume the trailer and compare it with the running digest.

    Must be called once the extension loop has stopped, i.e. when fewer than a
    header plus a trailer remain. Whatever is left has to be exactly one digest.
    """
    size = cursor.digest_size
    computed = cursor.digest()
    left = cursor.peek(size + 1)
    if len(left) < size:
        raise TruncatedInput(f"checksum trailer truncated: {len(left)} of {size} bytes at offset {cursor.position}")
    if len(left) > size:
        raise TruncatedInput(f"incomplete extension header at offset {cursor.position}")
    stored = cursor.read_raw(size)
    return ChecksumResult(stored=stored, computed=computed)
