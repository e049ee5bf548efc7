from __future__ import annotations

from typing import Optional

from .errors import InvalidPrefix


class PathReconstructor:
    """Rebuild full paths of version 4 entries.

    Each version 4 entry stores how many bytes to drop from the end of the
    previous entry's path and the suffix to append after that. Only the last
    full path is kept.
    """

    def __init__(self):
        self.previous: Optional[bytes] = None

    def apply(self, strip: int, suffix: bytes) -> bytes:
        if strip < 0:
            raise InvalidPrefix(f"negative prefix strip {strip}")
        if self.previous is None:
            if strip != 0:
                raise InvalidPrefix(f"first entry strips {strip} bytes from a nonexistent previous path")
            path = suffix
        else:
            if strip > len(self.previous):
                raise InvalidPrefix(
                    f"prefix strip {strip} exceeds previous path length {len(self.previous)}"
                )
            path = self.previous[: len(self.previous) - strip] + suffix
        self.previous = path
        return path


def display_path(path: bytes) -> str:
    """Decode an index path for display; undecodable bytes are kept escaped."""
    return path.decode("utf-8", errors="backslashreplace")
