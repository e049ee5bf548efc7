from __future__ import annotations

import argparse
import sys
from typing import List, Optional

from gitindex.checksum import ChecksumResult
from gitindex.constants import DEFAULT_HASH, DEFAULT_MAX_TREE_DEPTH, HASH_DIGEST_SIZES
from gitindex.entry import IndexEntry
from gitindex.errors import (
    BadMagic,
    GitIndexError,
    IndexAnomaly,
    InvalidPrefix,
    TruncatedInput,
    UnsupportedVersion,
)
from gitindex.extensions import ExtensionRecord
from gitindex.header import IndexHeader
from gitindex.reader import IndexReader
from gitindex.render import (
    TreeRenderer,
    checksum_line,
    extension_line,
    ls_lines,
    plain_tree_block,
    stat_block,
)
from gitindex.tree import TreeNode


def _warn(anomaly: IndexAnomaly) -> None:
    print(f"Warning: {anomaly} (offset {anomaly.position})", file=sys.stderr)


def _reader(index: Optional[str], *, hash_name: str, strict: bool, max_tree_depth: int) -> IndexReader:
    return IndexReader(
        index or "-",
        hash_name=hash_name,
        strict=strict,
        max_tree_depth=max_tree_depth,
        on_anomaly=_warn,
    )


def cmd_stat(index: Optional[str], *, hash_name: str = DEFAULT_HASH, strict: bool = False, max_tree_depth: int = DEFAULT_MAX_TREE_DEPTH) -> bool:
    """Describe every entry, then the extensions and the checksum.

    Args:
        index: Path to the index file; None or "-" reads standard input.
        hash_name: Hash algorithm of the repository.
        strict: Treat anomalies as errors.
        max_tree_depth: Nesting limit for the cache tree.
    """
    number = 0
    tree = TreeRenderer(HASH_DIGEST_SIZES[hash_name])
    with _reader(index, hash_name=hash_name, strict=strict, max_tree_depth=max_tree_depth) as r:
        for rec in r.records():
            if isinstance(rec, IndexHeader):
                print(f"git index version {rec.version}\n\nEntry count: {rec.entry_count}\n")
            elif isinstance(rec, IndexEntry):
                number += 1
                print(stat_block(number, rec))
            elif isinstance(rec, ExtensionRecord):
                print(extension_line(rec))
            elif isinstance(rec, TreeNode):
                print(tree.render(rec))
            elif isinstance(rec, ChecksumResult):
                print(checksum_line(rec))
    return True


def cmd_ls(index: Optional[str], *, hash_name: str = DEFAULT_HASH, strict: bool = False, max_tree_depth: int = DEFAULT_MAX_TREE_DEPTH) -> bool:
    """List entries one per line with aligned columns."""
    with _reader(index, hash_name=hash_name, strict=strict, max_tree_depth=max_tree_depth) as r:
        contents = r.read()
    for line in ls_lines(contents.entries, contents.header.version):
        print(line)
    return True


def cmd_tree(index: Optional[str], *, plain: bool = False, hash_name: str = DEFAULT_HASH, strict: bool = False, max_tree_depth: int = DEFAULT_MAX_TREE_DEPTH) -> bool:
    """Print the cache tree extension, drawn as a tree or as plain blocks."""
    tree = TreeRenderer(HASH_DIGEST_SIZES[hash_name])
    with _reader(index, hash_name=hash_name, strict=strict, max_tree_depth=max_tree_depth) as r:
        for rec in r.records():
            if isinstance(rec, TreeNode):
                print(plain_tree_block(rec) if plain else tree.render(rec))
    return True


def cmd_verify(index: Optional[str], *, hash_name: str = DEFAULT_HASH, strict: bool = False, max_tree_depth: int = DEFAULT_MAX_TREE_DEPTH) -> bool:
    """Decode the whole index and check its trailing checksum.

    Prints:
        "OK" when the checksum matches (or was not recorded), "FAIL" otherwise.
    """
    with _reader(index, hash_name=hash_name, strict=False, max_tree_depth=max_tree_depth) as r:
        contents = r.read()
    ok = contents.checksum.ok and not (strict and contents.anomalies)
    if contents.checksum.skipped:
        print("OK (checksum not recorded)" if ok else "FAIL")
    else:
        print("OK" if ok else "FAIL")
    return ok


def cmd_info(index: Optional[str], *, hash_name: str = DEFAULT_HASH, strict: bool = False, max_tree_depth: int = DEFAULT_MAX_TREE_DEPTH) -> bool:
    """Summarise header, entries, extensions and checksum."""
    with _reader(index, hash_name=hash_name, strict=strict, max_tree_depth=max_tree_depth) as r:
        contents = r.read()
    print(f"Index: {index or '<stdin>'}")
    print(f"  Version: {contents.header.version}")
    print(f"  Entries: {len(contents.entries)}")
    conflicted = len([e for e in contents.entries if e.stage])
    if conflicted:
        print(f"    Unmerged: {conflicted}")
    skipped = len([e for e in contents.entries if e.skip_worktree])
    if skipped:
        print(f"    Skip-worktree: {skipped}")
    print(f"  Extensions: {len(contents.extensions)}")
    for ext in contents.extensions:
        print(f"    {ext.label}\t{ext.length}\t{ext.name}")
    if contents.tree:
        print(f"  Cache tree nodes: {len(contents.tree)}")
    print(f"  {checksum_line(contents.checksum)}")
    if contents.anomalies:
        print(f"  Anomalies: {len(contents.anomalies)}")
    return True


def main(argv: List[str] | None = None):
    ap = argparse.ArgumentParser(
        prog="gitindex",
        description="Decode and verify git index files",
        epilog="Reads standard input when no index path (or '-') is given.",
    )
    ap.add_argument("--hash", dest="hash_name", choices=sorted(HASH_DIGEST_SIZES), default=DEFAULT_HASH, help="Repository hash algorithm (default sha1)")
    ap.add_argument("--strict", action="store_true", help="Treat anomalies (tree damage, checksum mismatch, ...) as errors")
    ap.add_argument("--max-tree-depth", type=int, default=DEFAULT_MAX_TREE_DEPTH, help=f"Cache tree nesting limit (default {DEFAULT_MAX_TREE_DEPTH})")
    sub = ap.add_subparsers(dest="cmd", required=True)

    ap_stat = sub.add_parser("stat", help="Describe each entry, extension and the checksum")
    ap_stat.add_argument("index", nargs="?", help="Index path (default: stdin)")

    ap_ls = sub.add_parser("ls", help="List entries in columns")
    ap_ls.add_argument("index", nargs="?", help="Index path (default: stdin)")

    ap_tree = sub.add_parser("tree", help="Show the cache tree extension")
    ap_tree.add_argument("index", nargs="?", help="Index path (default: stdin)")
    ap_tree.add_argument("--plain", action="store_true", help="One block per node instead of a drawn tree")

    ap_verify = sub.add_parser("verify", help="Verify the trailing checksum")
    ap_verify.add_argument("index", nargs="?", help="Index path (default: stdin)")

    ap_info = sub.add_parser("info", help="Show index summary")
    ap_info.add_argument("index", nargs="?", help="Index path (default: stdin)")

    args = ap.parse_args(argv)
    if args.max_tree_depth < 0:
        ap.error("--max-tree-depth must not be negative")
    opts = dict(hash_name=args.hash_name, strict=args.strict, max_tree_depth=args.max_tree_depth)
    try:
        if args.cmd == "stat":
            cmd_stat(args.index, **opts)
        elif args.cmd == "ls":
            cmd_ls(args.index, **opts)
        elif args.cmd == "tree":
            cmd_tree(args.index, plain=args.plain, **opts)
        elif args.cmd == "verify":
            ok = cmd_verify(args.index, **opts)
            sys.exit(0 if ok else 1)
        elif args.cmd == "info":
            cmd_info(args.index, **opts)
        else:
            raise RuntimeError("Unknown command")
    except FileNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(2)
    except BadMagic as e:
        print(f"Error: {e}. Is this a git index file?", file=sys.stderr)
        sys.exit(2)
    except (UnsupportedVersion, TruncatedInput, InvalidPrefix) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(2)
    except GitIndexError as e:
        # Anomalies raised in --strict mode
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(2)
    except OSError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(2)


if __name__ == "__main__":
    main()
