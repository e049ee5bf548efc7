from __future__ import annotations

import sys
from dataclasses import dataclass, field
from typing import BinaryIO, Callable, Iterator, List, Optional, Union

from .checksum import ChecksumResult, verify_trailer
from .constants import DEFAULT_HASH, DEFAULT_MAX_TREE_DEPTH, READ_CHUNK_SIZE
from .cursor import ByteCursor
from .entry import IndexEntry, check_name_length, read_entry
from .errors import ChecksumMismatch, IndexAnomaly
from .extensions import ExtensionDispatcher, ExtensionRecord
from .hashutil import digest_size, new_hasher
from .header import IndexHeader, read_header
from .pathutil import PathReconstructor
from .tree import TreeNode


Record = Union[IndexHeader, IndexEntry, ExtensionRecord, TreeNode, ChecksumResult]


@dataclass
class IndexContents:
    header: IndexHeader
    entries: List[IndexEntry] = field(default_factory=list)
    extensions: List[ExtensionRecord] = field(default_factory=list)
    tree: List[TreeNode] = field(default_factory=list)
    checksum: Optional[ChecksumResult] = None
    anomalies: List[IndexAnomaly] = field(default_factory=list)


class IndexReader:
    """Single forward pass over an index file or stream.

    ``path`` of ``"-"`` reads standard input. Either ``path`` or ``stream`` is
    required; a stream passed in is left open on :meth:`close`.
    """

    def __init__(
        self,
        path: Optional[str] = None,
        *,
        stream: Optional[BinaryIO] = None,
        hash_name: str = DEFAULT_HASH,
        strict: bool = False,
        max_tree_depth: int = DEFAULT_MAX_TREE_DEPTH,
        on_anomaly: Optional[Callable[[IndexAnomaly], None]] = None,
        chunk_size: int = READ_CHUNK_SIZE,
    ):
        if (path is None) == (stream is None):
            raise ValueError("exactly one of path or stream is required")
        self.path = path
        self.f: Optional[BinaryIO] = stream
        self._owns_file = False
        self.hash_name = hash_name
        self.oid_size = digest_size(hash_name)
        self.strict = strict
        self.max_tree_depth = max_tree_depth
        self.on_anomaly = on_anomaly
        self.chunk_size = chunk_size
        self.header: Optional[IndexHeader] = None
        self.checksum: Optional[ChecksumResult] = None
        self.anomalies: List[IndexAnomaly] = []
        self._started = False

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def open(self):
        if self.f is not None:
            return
        if self.path == "-":
            self.f = sys.stdin.buffer
        else:
            self.f = open(self.path, "rb")
            self._owns_file = True

    def close(self):
        if self.f is not None and self._owns_file:
            self.f.close()
            self.f = None
            self._owns_file = False

    def report(self, anomaly: IndexAnomaly) -> None:
        if self.strict:
            raise anomaly
        self.anomalies.append(anomaly)
        if self.on_anomaly is not None:
            self.on_anomaly(anomaly)

    def records(self) -> Iterator[Record]:
        """Decode the stream, yielding records in the order they are stored.

        Header, entries (with full paths), extension headers interleaved with
        the cache tree nodes they contain, and finally the checksum result.
        Fatal errors propagate out of the generator; anything already yielded
        stays with the consumer.
        """
        if self._started:
            raise RuntimeError("index stream already consumed")
        self._started = True
        self.open()
        cursor = ByteCursor(self.f, new_hasher(self.hash_name), chunk_size=self.chunk_size)

        header, version_anomaly = read_header(cursor)
        self.header = header
        if version_anomaly is not None:
            self.report(version_anomaly)
        yield header

        version = header.shape_version
        paths = PathReconstructor() if version >= 4 else None
        for _ in range(header.entry_count):
            decoded = read_entry(cursor, version, self.oid_size)
            entry = decoded.entry
            if paths is not None:
                entry.path = paths.apply(entry.prefix_strip, entry.name)
            for anomaly in decoded.anomalies:
                self.report(anomaly)
            mismatch = check_name_length(entry)
            if mismatch is not None:
                self.report(mismatch)
            yield entry

        dispatcher = ExtensionDispatcher(
            cursor, self.report, oid_size=self.oid_size, max_tree_depth=self.max_tree_depth
        )
        yield from dispatcher.records()

        result = verify_trailer(cursor)
        self.checksum = result
        if result.mismatch:
            self.report(
                ChecksumMismatch(
                    f"checksum mismatch: stored {result.stored.hex()}, computed {result.computed.hex()}",
                    cursor.position - len(result.stored),
                )
            )
        yield result

    def read(self) -> IndexContents:
        contents: Optional[IndexContents] = None
        for rec in self.records():
            if isinstance(rec, IndexHeader):
                contents = IndexContents(header=rec)
            elif isinstance(rec, IndexEntry):
                contents.entries.append(rec)
            elif isinstance(rec, ExtensionRecord):
                contents.extensions.append(rec)
            elif isinstance(rec, TreeNode):
                contents.tree.append(rec)
            elif isinstance(rec, ChecksumResult):
                contents.checksum = rec
        contents.anomalies = list(self.anomalies)
        return contents


def read_index(source: Union[str, BinaryIO], **kwargs) -> IndexContents:
    """Decode a whole index from a path (``"-"`` for stdin) or binary stream."""
    if isinstance(source, str):
        with IndexReader(source, **kwargs) as r:
            return r.read()
    with IndexReader(stream=source, **kwargs) as r:
        return r.read()
