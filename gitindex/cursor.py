from __future__ import annotations

from typing import BinaryIO, Optional

from .constants import READ_CHUNK_SIZE
from .errors import TruncatedInput


class ByteCursor:
    """Forward-only reader over a byte source with a running digest.

    Every byte handed out by :meth:`read`, :meth:`read_byte`, :meth:`read_until`
    and :meth:`skip` is folded into ``hasher`` and advances :attr:`position`.
    The source is never seeked, so pipes and regular files behave the same.
    Bytes fetched from the source but not yet consumed sit in a look-ahead
    buffer; :meth:`peek` exposes them without hashing so the caller can decide
    whether they belong to the trailer.
    """

    def __init__(self, source: BinaryIO, hasher, *, chunk_size: int = READ_CHUNK_SIZE):
        if chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        self._source = source
        self._hasher = hasher
        self._chunk_size = chunk_size
        self._buf = bytearray()
        self._eof = False
        self.position = 0

    # internals
    def _fill(self, n: int) -> int:
        while len(self._buf) < n and not self._eof:
            data = self._source.read(max(n - len(self._buf), self._chunk_size))
            if not data:
                self._eof = True
            else:
                self._buf += data
        return len(self._buf)

    def _consume(self, n: int, *, fold: bool = True) -> bytes:
        data = bytes(self._buf[:n])
        del self._buf[:n]
        if fold:
            self._hasher.update(data)
        self.position += len(data)
        return data

    # reads
    def read(self, n: int) -> bytes:
        if n < 0:
            raise ValueError("negative read size")
        avail = self._fill(n)
        if avail < n:
            self._consume(avail)
            raise TruncatedInput(f"expected {n} bytes at offset {self.position - avail}, got {avail}")
        return self._consume(n)

    def read_byte(self) -> int:
        if self._fill(1) < 1:
            raise TruncatedInput(f"unexpected end of input at offset {self.position}")
        return self._consume(1)[0]

    def read_until(self, terminator: bytes, limit: Optional[int] = None) -> Optional[bytes]:
        """Consume up to and including ``terminator``; return the bytes before it.

        With ``limit``, the token and its terminator must fit in the next
        ``limit`` bytes; otherwise nothing is consumed and None is returned.
        Reaching end of input first raises :class:`TruncatedInput`.
        """
        scanned = 0
        while True:
            end = len(self._buf) if limit is None else min(len(self._buf), limit)
            idx = self._buf.find(terminator, scanned, end)
            if idx >= 0:
                return self._consume(idx + 1)[:-1]
            if limit is not None and len(self._buf) >= limit:
                return None
            if self._eof:
                start = self.position
                self._consume(len(self._buf))
                raise TruncatedInput(f"unterminated string starting at offset {start}")
            scanned = end
            self._fill(len(self._buf) + 1)

    def skip(self, n: int) -> int:
        """Consume and discard ``n`` bytes in bounded reads; returns ``n``."""
        if n < 0:
            raise ValueError("cannot skip backwards")
        remain = n
        while remain:
            want = min(remain, self._chunk_size)
            got = min(self._fill(want), want)
            if got == 0:
                raise TruncatedInput(f"skipped {n - remain} of {n} bytes before end of input")
            self._consume(got)
            remain -= got
        return n

    # look-ahead and trailer
    def peek(self, n: int) -> bytes:
        self._fill(n)
        return bytes(self._buf[:n])

    def read_raw(self, n: int) -> bytes:
        """Consume ``n`` bytes without folding them into the digest."""
        avail = self._fill(n)
        if avail < n:
            raise TruncatedInput(f"expected {n} trailing bytes at offset {self.position}, got {avail}")
        return self._consume(n, fold=False)

    def digest(self) -> bytes:
        return self._hasher.digest()

    @property
    def digest_size(self) -> int:
        return self._hasher.digest_size
