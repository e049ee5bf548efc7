from __future__ import annotations

import struct
from dataclasses import dataclass
from typing import Callable, Iterator, Optional, Union

from .constants import DEFAULT_MAX_TREE_DEPTH, EXT_HEADER_SIZE, EXT_TREE, EXTENSION_NAMES
from .errors import IndexAnomaly, UnknownRequiredExtension
from .tree import TreeDecoder, TreeNode


_EXT_HEADER_STRUCT = struct.Struct(">4sI")
assert _EXT_HEADER_STRUCT.size == EXT_HEADER_SIZE


@dataclass(frozen=True)
class ExtensionRecord:
    signature: bytes
    length: int
    offset: int  # first payload byte

    @property
    def end(self) -> int:
        return self.offset + self.length

    @property
    def known(self) -> bool:
        return self.signature in EXTENSION_NAMES

    @property
    def optional(self) -> bool:
        # Writers mark extensions that readers may ignore with an uppercase first letter.
        return 0x41 <= self.signature[0] <= 0x5A

    @property
    def name(self) -> str:
        return EXTENSION_NAMES.get(self.signature, "Unknown extension")

    @property
    def label(self) -> str:
        return self.signature.decode("ascii", errors="backslashreplace")


class ExtensionDispatcher:
    """Read extension blocks until only the checksum trailer is left.

    The cache tree is decoded structurally; every other block, known or not,
    is skipped by its declared length.
    """

    def __init__(
        self,
        cursor,
        report: Callable[[IndexAnomaly], None],
        *,
        oid_size: int = 20,
        max_tree_depth: int = DEFAULT_MAX_TREE_DEPTH,
    ):
        self.cursor = cursor
        self.report = report
        self.oid_size = oid_size
        self.max_tree_depth = max_tree_depth

    def next_header(self) -> Optional[ExtensionRecord]:
        # A header is only there if a full header plus the trailer still follow.
        need = EXT_HEADER_SIZE + self.cursor.digest_size
        if len(self.cursor.peek(need)) < need:
            return None
        signature, length = _EXT_HEADER_STRUCT.unpack(self.cursor.read(EXT_HEADER_SIZE))
        return ExtensionRecord(signature=signature, length=length, offset=self.cursor.position)

    def records(self) -> Iterator[Union[ExtensionRecord, TreeNode]]:
        while True:
            ext = self.next_header()
            if ext is None:
                return
            yield ext
            if ext.signature == EXT_TREE:
                decoder = TreeDecoder(self.cursor, ext.end, self.oid_size, max_depth=self.max_tree_depth)
                yield from decoder.nodes()
                if decoder.anomaly is not None:
                    self.report(decoder.anomaly)
                continue
            if not ext.known and not ext.optional:
                self.report(
                    UnknownRequiredExtension(
                        f"required extension {ext.label!r} is not understood; skipped", ext.offset
                    )
                )
            self.cursor.skip(ext.length)
