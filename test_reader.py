from __future__ import annotations

import hashlib
import io
import os
import tempfile
import unittest
from pathlib import Path

from gitindex.checksum import ChecksumResult
from gitindex.entry import IndexEntry
from gitindex.errors import (
    BadMagic,
    ChecksumMismatch,
    IncompleteTree,
    InvalidPrefix,
    NameLengthMismatch,
    OverrunTree,
    TruncatedInput,
    UnknownRequiredExtension,
    UnknownVersion,
)
from gitindex.extensions import ExtensionRecord
from gitindex.header import IndexHeader
from gitindex.reader import IndexReader, read_index
from gitindex.tree import TreeNode

from index_fixtures import (
    OID_A,
    OID_B,
    OID_C,
    TrickleStream,
    build_index,
    chain_tree,
    extension,
    make_entries,
    make_entry,
    tree_payload,
)


PATHS = [b"Makefile", b"docs/guide.md", b"src/lib/a.c", b"src/lib/b.c", b"src/main.c"]
TREE = tree_payload(
    [
        (b"", 5, 2, OID_A),
        (b"docs", 1, 0, OID_B),
        (b"src", 3, 1, OID_C),
        (b"lib", 2, 0, OID_A),
    ]
)


def _read(data: bytes, **kwargs):
    return read_index(io.BytesIO(data), **kwargs)


def _flip(data: bytes, offset: int) -> bytes:
    return data[:offset] + bytes([data[offset] ^ 0xFF]) + data[offset + 1 :]


class EndToEndTests(unittest.TestCase):
    def test_empty_index(self):
        data = build_index()
        self.assertEqual(len(data), 12 + 20)
        contents = _read(data)
        self.assertEqual(contents.header.version, 2)
        self.assertEqual(contents.entries, [])
        self.assertEqual(contents.extensions, [])
        self.assertFalse(contents.checksum.mismatch)
        self.assertEqual(contents.checksum.stored, hashlib.sha1(data[:12]).digest())
        self.assertEqual(contents.anomalies, [])

    def test_versions_decode_same_paths(self):
        for version in (2, 3, 4):
            with self.subTest(version=version):
                data = build_index(make_entries(PATHS, version=version), version=version)
                contents = _read(data)
                self.assertEqual(contents.header.entry_count, len(contents.entries))
                self.assertEqual([e.path for e in contents.entries], PATHS)
                self.assertTrue(contents.checksum.ok)
                self.assertEqual(contents.anomalies, [])

    def test_version4_stores_suffixes(self):
        data = build_index(make_entries(PATHS, version=4), version=4)
        entries = _read(data).entries
        self.assertEqual([e.prefix_strip for e in entries], [0, 8, 13, 3, 7])
        self.assertEqual(entries[3].name, b"b.c")
        self.assertEqual(entries[4].name, b"main.c")

    def test_version3_mixed_extended_entries(self):
        entries = [
            make_entry(b"a", version=3),
            make_entry(b"b", version=3, extended_flags=0x4000),
            make_entry(b"c", version=3, extended_flags=0x2000),
        ]
        contents = _read(build_index(entries, version=3))
        self.assertEqual([e.skip_worktree for e in contents.entries], [False, True, False])
        self.assertEqual([e.intent_to_add for e in contents.entries], [False, False, True])
        self.assertTrue(contents.checksum.ok)

    def test_records_come_in_stream_order(self):
        data = build_index(
            make_entries(PATHS[:2]),
            extensions=[extension(b"TREE", TREE), extension(b"REUC", b"\x00" * 13)],
        )
        with IndexReader(stream=io.BytesIO(data)) as r:
            kinds = [type(rec) for rec in r.records()]
        self.assertEqual(
            kinds,
            [IndexHeader, IndexEntry, IndexEntry, ExtensionRecord, TreeNode, TreeNode, TreeNode, TreeNode, ExtensionRecord, ChecksumResult],
        )

    def test_tree_extension(self):
        data = build_index(make_entries(PATHS), extensions=[extension(b"TREE", TREE)])
        contents = _read(data)
        self.assertEqual(len(contents.extensions), 1)
        ext = contents.extensions[0]
        self.assertEqual(ext.signature, b"TREE")
        self.assertEqual(ext.length, len(TREE))
        self.assertEqual(ext.offset, len(data) - 20 - len(TREE))
        self.assertEqual([(n.path, n.depth) for n in contents.tree], [(b"", 0), (b"docs", 1), (b"src", 1), (b"lib", 2)])
        self.assertTrue(contents.checksum.ok)

    def test_other_extensions_are_skipped(self):
        exts = [
            extension(b"REUC", b"a\x00100644 0 0\x00" + OID_A),
            extension(b"link", OID_B),
            extension(b"UNTR", b"\x01" * 50),
            extension(b"Zzzz", b"future optional data"),
        ]
        contents = _read(build_index(make_entries(PATHS), extensions=exts))
        self.assertEqual([e.signature for e in contents.extensions], [b"REUC", b"link", b"UNTR", b"Zzzz"])
        self.assertEqual([e.known for e in contents.extensions], [True, True, True, False])
        self.assertEqual(contents.anomalies, [])
        self.assertTrue(contents.checksum.ok)

    def test_unknown_required_extension_is_reported(self):
        contents = _read(build_index(extensions=[extension(b"zzzz", b"1234")]))
        self.assertEqual(len(contents.anomalies), 1)
        self.assertIsInstance(contents.anomalies[0], UnknownRequiredExtension)
        self.assertTrue(contents.checksum.ok)

    def test_broken_tree_resynchronises(self):
        incomplete = tree_payload([(b"", 5, 3, OID_A), (b"docs", 1, 0, OID_B)])
        overrun = TREE[:-5]
        for payload, kind in ((incomplete, IncompleteTree), (overrun, OverrunTree)):
            with self.subTest(kind=kind.__name__):
                data = build_index(
                    make_entries(PATHS),
                    extensions=[extension(b"TREE", payload), extension(b"REUC", b"x" * 9)],
                )
                contents = _read(data)
                self.assertEqual(len(contents.anomalies), 1)
                self.assertIsInstance(contents.anomalies[0], kind)
                self.assertEqual([e.signature for e in contents.extensions], [b"TREE", b"REUC"])
                self.assertTrue(contents.checksum.ok)

    def test_deep_tree_with_raised_depth_limit(self):
        data = build_index(make_entries(PATHS), extensions=[extension(b"TREE", chain_tree(3000))])
        contents = _read(data, max_tree_depth=5000)
        self.assertEqual(len(contents.tree), 3001)
        self.assertEqual(contents.tree[-1].path, b"leaf")
        self.assertEqual(contents.anomalies, [])
        self.assertTrue(contents.checksum.ok)

    def test_non_seekable_stream(self):
        data = build_index(make_entries(PATHS, version=4), version=4, extensions=[extension(b"TREE", TREE)])
        expected = _read(data)
        trickled = read_index(TrickleStream(data, 5))
        self.assertEqual([e.path for e in trickled.entries], [e.path for e in expected.entries])
        self.assertEqual(trickled.tree, expected.tree)
        self.assertEqual(trickled.checksum, expected.checksum)
        self.assertTrue(trickled.checksum.ok)

    def test_sha256_index(self):
        oid = bytes(range(32))
        entries = [make_entry(p, oid=oid) for p in PATHS]
        tree = tree_payload([(b"", 5, 0, oid)])
        data = build_index(entries, extensions=[extension(b"TREE", tree)], hash_name="sha256")
        contents = _read(data, hash_name="sha256")
        self.assertEqual([e.path for e in contents.entries], PATHS)
        self.assertEqual(contents.entries[0].oid, oid)
        self.assertEqual(contents.tree[0].oid, oid)
        self.assertEqual(len(contents.checksum.stored), 32)
        self.assertTrue(contents.checksum.ok)

    def test_unknown_version_uses_version4_layout(self):
        data = build_index(make_entries(PATHS, version=4), version=5)
        contents = _read(data)
        self.assertEqual([e.path for e in contents.entries], PATHS)
        self.assertEqual(len(contents.anomalies), 1)
        self.assertIsInstance(contents.anomalies[0], UnknownVersion)

    def test_name_length_mismatch_is_informational(self):
        data = build_index([make_entry(b"README", name_length=2)])
        contents = _read(data)
        self.assertEqual([e.path for e in contents.entries], [b"README"])
        self.assertIsInstance(contents.anomalies[0], NameLengthMismatch)
        self.assertTrue(contents.checksum.ok)

    def test_reads_from_path(self):
        data = build_index(make_entries(PATHS))
        with tempfile.TemporaryDirectory() as tmp:
            p = Path(tmp) / "index"
            p.write_bytes(data)
            contents = read_index(str(p))
        self.assertEqual(len(contents.entries), len(PATHS))

    def test_single_pass_only(self):
        r = IndexReader(stream=io.BytesIO(build_index()))
        r.read()
        with self.assertRaises(RuntimeError):
            r.read()

    def test_requires_one_source(self):
        with self.assertRaises(ValueError):
            IndexReader()
        with self.assertRaises(ValueError):
            IndexReader("index", stream=io.BytesIO())
        with self.assertRaises(ValueError):
            IndexReader(stream=io.BytesIO(), hash_name="md5")


class ChecksumTests(unittest.TestCase):
    def test_any_flipped_payload_byte_is_detected(self):
        opaque = bytes(range(64))
        data = build_index(make_entries(PATHS[:1]), extensions=[extension(b"ABCD", opaque)])
        start = len(data) - 20 - len(opaque)
        for off in range(start, len(data) - 20):
            contents = _read(_flip(data, off))
            self.assertTrue(contents.checksum.mismatch, off)
            self.assertIsInstance(contents.anomalies[-1], ChecksumMismatch)

    def test_flipped_entry_bytes_are_detected(self):
        data = build_index(make_entries(PATHS))
        for off in (12, 12 + 40, 12 + 59):  # ctime, object id
            contents = _read(_flip(data, off))
            self.assertTrue(contents.checksum.mismatch)
            self.assertEqual([e.path for e in contents.entries], PATHS)

    def test_strict_mode_raises(self):
        data = _flip(build_index(make_entries(PATHS)), 60)
        with self.assertRaises(ChecksumMismatch):
            _read(data, strict=True)

    def test_on_anomaly_callback(self):
        seen = []
        data = _flip(build_index(make_entries(PATHS)), 60)
        contents = _read(data, on_anomaly=seen.append)
        self.assertEqual(seen, contents.anomalies)
        self.assertEqual(len(seen), 1)

    def test_zeroed_trailer_means_not_recorded(self):
        data = build_index(make_entries(PATHS), trailer=b"\x00" * 20)
        contents = _read(data)
        self.assertTrue(contents.checksum.skipped)
        self.assertFalse(contents.checksum.mismatch)
        self.assertEqual(contents.anomalies, [])


class FatalErrorTests(unittest.TestCase):
    def test_bad_magic(self):
        with self.assertRaises(BadMagic):
            _read(build_index(signature=b"PACK"))

    def test_truncated_trailer(self):
        with self.assertRaises(TruncatedInput):
            _read(build_index()[:-5])

    def test_stray_bytes_before_trailer(self):
        body = build_index(make_entries(PATHS))[:-20] + b"xyz"
        data = body + hashlib.sha1(body).digest()
        with self.assertRaises(TruncatedInput):
            _read(data)

    def test_missing_entries(self):
        data = build_index(make_entries(PATHS[:1]), count=2)
        with self.assertRaises(TruncatedInput):
            _read(data)

    def test_extension_longer_than_stream(self):
        data = build_index(extensions=[extension(b"REUC", b"abc", length=4000)])
        with self.assertRaises(TruncatedInput):
            _read(data)

    def test_partial_results_are_kept(self):
        entries = make_entries(PATHS[:2], version=4)
        entries.append(make_entry(b"x", version=4, strip=50))
        data = build_index(entries, version=4)
        seen = []
        with IndexReader(stream=io.BytesIO(data)) as r:
            with self.assertRaises(InvalidPrefix):
                for rec in r.records():
                    seen.append(rec)
        self.assertIsInstance(seen[0], IndexHeader)
        self.assertEqual([rec.path for rec in seen[1:]], PATHS[:2])

    def test_first_version4_entry_cannot_strip(self):
        data = build_index([make_entry(b"abc", version=4, strip=1)], version=4)
        with self.assertRaises(InvalidPrefix):
            _read(data)

    def test_file_not_found(self):
        with tempfile.TemporaryDirectory() as tmp:
            with self.assertRaises(FileNotFoundError):
                read_index(os.path.join(tmp, "missing"))


if __name__ == "__main__":
    unittest.main()
