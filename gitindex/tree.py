"""
Cache tree (``TREE``) extension decoder.

Payload: a pre-order sequence of nodes, each encoded as

- path, NUL-terminated (empty for the root; otherwise one path component)
- entry count, ASCII decimal, space-terminated; negative means invalidated
- subtree count, ASCII decimal, LF-terminated
- object id, only when the entry count is not negative

A node with N subtrees is followed by its N children, depth first. Decoding is
bounded by the extension's end offset: no token is read past it, so a broken
payload never eats into the next extension or the trailer.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterator, List, Optional

from .constants import DEFAULT_MAX_TREE_DEPTH
from .errors import IncompleteTree, IndexAnomaly, MalformedTree, OverrunTree, TreeDepthExceeded


_SIGNED_RE = re.compile(rb"-?[0-9]+")
_UNSIGNED_RE = re.compile(rb"[0-9]+")


@dataclass(frozen=True)
class TreeNode:
    path: bytes
    entry_count: int
    subtree_count: int
    oid: Optional[bytes]
    depth: int = 0
    is_last: bool = True  # last child of its parent
    offset: int = 0

    @property
    def valid(self) -> bool:
        return self.entry_count >= 0


class TreeDecoder:
    def __init__(self, cursor, end_position: int, oid_size: int = 20, *, max_depth: int = DEFAULT_MAX_TREE_DEPTH):
        if max_depth < 0:
            raise ValueError("max_depth must not be negative")
        self.cursor = cursor
        self.end = end_position
        self.oid_size = oid_size
        self.max_depth = max_depth
        self.anomaly: Optional[IndexAnomaly] = None
        self.node_count = 0

    def nodes(self) -> Iterator[TreeNode]:
        """Yield nodes in stream order, then leave the cursor at the end offset.

        If the payload turns out to be inconsistent, decoding stops, the
        problem is stored in :attr:`anomaly` and the rest of the payload is
        skipped.
        """
        try:
            while self.cursor.position < self.end:
                yield from self._walk()
        except (IncompleteTree, OverrunTree, MalformedTree, TreeDepthExceeded) as exc:
            self.anomaly = exc
        remain = self.end - self.cursor.position
        if remain > 0:
            self.cursor.skip(remain)

    def _walk(self) -> Iterator[TreeNode]:
        """Decode one top-level node and all of its descendants."""
        # Children still to be read for each open ancestor; its length is the depth.
        pending: List[int] = []
        while True:
            depth = len(pending)
            is_last = True
            if depth:
                if self.cursor.position >= self.end:
                    raise IncompleteTree(
                        "cache tree declares more subtrees than fit in the extension", self.cursor.position
                    )
                if depth > self.max_depth:
                    raise TreeDepthExceeded(
                        f"cache tree nesting exceeds {self.max_depth} levels", self.cursor.position
                    )
                pending[-1] -= 1
                is_last = pending[-1] == 0
            node = self._read_node(depth, is_last)
            self.node_count += 1
            yield node
            if node.subtree_count:
                pending.append(node.subtree_count)
                continue
            while pending and not pending[-1]:
                pending.pop()
            if not pending:
                return

    def _read_node(self, depth: int, is_last: bool) -> TreeNode:
        offset = self.cursor.position
        path = self._token(b"\x00", offset)
        count_tok = self._token(b" ", offset)
        sub_tok = self._token(b"\n", offset)
        if not _SIGNED_RE.fullmatch(count_tok):
            raise MalformedTree(f"bad entry count {count_tok!r} in cache tree node", offset)
        if not _UNSIGNED_RE.fullmatch(sub_tok):
            raise MalformedTree(f"bad subtree count {sub_tok!r} in cache tree node", offset)
        entry_count = int(count_tok)
        subtree_count = int(sub_tok)
        oid = None
        if entry_count >= 0:
            if self.cursor.position + self.oid_size > self.end:
                raise OverrunTree(f"cache tree node at offset {offset} runs past the extension", offset)
            oid = self.cursor.read(self.oid_size)
        return TreeNode(
            path=path,
            entry_count=entry_count,
            subtree_count=subtree_count,
            oid=oid,
            depth=depth,
            is_last=is_last,
            offset=offset,
        )

    def _token(self, terminator: bytes, offset: int) -> bytes:
        tok = self.cursor.read_until(terminator, self.end - self.cursor.position)
        if tok is None:
            raise OverrunTree(f"cache tree node at offset {offset} runs past the extension", offset)
        return tok
