from __future__ import annotations

from datetime import datetime, timezone, tzinfo
from typing import List, Optional, Sequence

from .checksum import ChecksumResult
from .constants import (
    EXT_FLAG_INTENT_TO_ADD,
    EXT_FLAG_RESERVED,
    EXT_FLAG_SKIP_WORKTREE,
    FLAG_EXTENDED,
    FLAG_VALID,
    MODE_TYPE_GITLINK,
    MODE_TYPE_REGULAR,
    MODE_TYPE_SYMLINK,
)
from .entry import IndexEntry
from .extensions import ExtensionRecord
from .pathutil import display_path
from .tree import TreeNode

try:  # POSIX only
    import grp
    import pwd
except ImportError:  # pragma: no cover - Windows
    grp = None  # type: ignore
    pwd = None  # type: ignore


_TYPE_CHARS = {MODE_TYPE_REGULAR: "-", MODE_TYPE_SYMLINK: "l", MODE_TYPE_GITLINK: "g"}
_TYPE_NAMES = {MODE_TYPE_REGULAR: "regular file", MODE_TYPE_SYMLINK: "symbolic link", MODE_TYPE_GITLINK: "gitlink"}
_STAGE_CHARS = "-cot"
_STAGE_NAMES = {1: "merge_common_ancestor", 2: "merge_ours", 3: "merge_theirs"}


def object_type_char(mode: int) -> str:
    return _TYPE_CHARS.get((mode >> 12) & 0x0F, "?")


def object_type_name(mode: int) -> str:
    return _TYPE_NAMES.get((mode >> 12) & 0x0F, "unknown")


def perm_string(mode: int) -> str:
    out = []
    for shift in (6, 3, 0):
        bits = (mode >> shift) & 7
        out.append(("r" if bits & 4 else "-") + ("w" if bits & 2 else "-") + ("x" if bits & 1 else "-"))
    return "".join(out)


def flags_short(flags: int) -> str:
    stage = (flags >> 12) & 3
    return ("v" if flags & FLAG_VALID else "-") + ("x" if flags & FLAG_EXTENDED else "-") + _STAGE_CHARS[stage]


def flags_long(flags: int) -> str:
    words = []
    if flags & FLAG_VALID:
        words.append("assume-valid")
    if flags & FLAG_EXTENDED:
        words.append("extended")
    stage = (flags >> 12) & 3
    if stage:
        words.append(_STAGE_NAMES[stage])
    return ", ".join(words)


def ext_flags_short(ext_flags: int) -> str:
    return (
        ("r" if ext_flags & EXT_FLAG_RESERVED else "-")
        + ("s" if ext_flags & EXT_FLAG_SKIP_WORKTREE else "-")
        + ("i" if ext_flags & EXT_FLAG_INTENT_TO_ADD else "-")
    )


def ext_flags_long(ext_flags: int) -> str:
    words = []
    if ext_flags & EXT_FLAG_RESERVED:
        words.append("reserved")
    if ext_flags & EXT_FLAG_SKIP_WORKTREE:
        words.append("skip-worktree")
    if ext_flags & EXT_FLAG_INTENT_TO_ADD:
        words.append("intent-to-add")
    return ", ".join(words)


def format_time(sec: int, nsec: int, tz: Optional[tzinfo] = None) -> str:
    """``YYYY-mm-dd HH:MM:SS.nnnnnnnnn +zzzz`` in ``tz`` (local time by default)."""
    try:
        dt = datetime.fromtimestamp(sec, tz=timezone.utc).astimezone(tz)
    except (OverflowError, OSError, ValueError):
        return f"{sec}.{nsec:09d}"
    return f"{dt:%Y-%m-%d %H:%M:%S}.{nsec:09d} {dt:%z}"


def user_name(uid: int) -> Optional[str]:
    if pwd is None:
        return None
    try:
        return pwd.getpwuid(uid).pw_name
    except KeyError:
        return None


def group_name(gid: int) -> Optional[str]:
    if grp is None:
        return None
    try:
        return grp.getgrgid(gid).gr_name
    except KeyError:
        return None


def ls_lines(entries: Sequence[IndexEntry], version: int, *, tz: Optional[tzinfo] = None) -> List[str]:
    """One aligned line per entry, ``ls -l`` style."""
    users = [user_name(e.uid) or str(e.uid) for e in entries]
    groups = [group_name(e.gid) or str(e.gid) for e in entries]
    dev_w = max((len(str(e.dev)) for e in entries), default=0)
    ino_w = max((len(str(e.ino)) for e in entries), default=0)
    size_w = max((len(str(e.size)) for e in entries), default=0)
    user_w = max((len(u) for u in users), default=0)
    group_w = max((len(g) for g in groups), default=0)

    lines = []
    for e, user, group in zip(entries, users, groups):
        parts = [
            f"{e.dev:>{dev_w}}/{e.ino:>{ino_w}}",
            object_type_char(e.mode) + perm_string(e.mode),
            flags_short(e.flags),
        ]
        if version >= 3:
            parts.append(ext_flags_short(e.extended_flags))
        parts += [
            f"{user:>{user_w}}",
            f"{group:<{group_w}}",
            f"{e.size:>{size_w}}",
            format_time(e.ctime_sec, e.ctime_nsec, tz),
            format_time(e.mtime_sec, e.mtime_nsec, tz),
            e.oid.hex(),
            display_path(e.path),
        ]
        lines.append(" ".join(parts))
    return lines


def stat_block(number: int, e: IndexEntry, *, tz: Optional[tzinfo] = None) -> str:
    """Multi-line description of one entry, ``stat`` style."""
    user = user_name(e.uid) or ""
    group = group_name(e.gid) or ""
    dev_str = f"{e.dev:X}h/{e.dev}d"
    user_str = f"({e.uid}/{user})"
    type_name = object_type_name(e.mode)
    w0 = max(17, len(dev_str))
    w1 = max(len(type_name) - 7, len(str(e.ino)), len(user_str))
    lines = [
        f"Entry {number}:",
        f"\t  File: {display_path(e.path)}",
        f"\t    ID: {e.oid.hex()}",
        f"\t  Size: {e.size:<{w0}} {type_name:<{w1 + 7}} {flags_long(e.flags)}".rstrip(),
        f"\tDevice: {dev_str:<{w0}} Inode: {e.ino:<{w1}} {ext_flags_long(e.extended_flags)}".rstrip(),
        f"\tAccess: ({e.mode & 0o7777:04o}/{object_type_char(e.mode)}{perm_string(e.mode)})"
        f"   Uid: {user_str:<{w1}} Gid: ({e.gid}/{group})",
        f"\tModify: {format_time(e.mtime_sec, e.mtime_nsec, tz)}",
        f"\tChange: {format_time(e.ctime_sec, e.ctime_nsec, tz)}",
    ]
    if e.mode & 0xFFFF0000:
        lines.append(f"\tMode: 0x{e.mode:08X}")
    return "\n".join(lines) + "\n"


class TreeRenderer:
    """Draws cache tree nodes, fed in stream order, as a box-drawing tree."""

    def __init__(self, oid_size: int = 20):
        self.blank = " " * (2 * oid_size)
        self._prefixes: List[str] = [""]

    def render(self, node: TreeNode) -> str:
        del self._prefixes[node.depth + 1 :]
        prefix = self._prefixes[node.depth] if node.depth < len(self._prefixes) else ""
        if node.depth > 0:
            branch = "└─ " if node.is_last else "├─ "
            child_prefix = prefix + ("   " if node.is_last else "│  ")
        else:
            branch = ""
            child_prefix = prefix
        self._prefixes.append(child_prefix)
        oid = node.oid.hex() if node.oid is not None else self.blank
        return f"{oid}  {prefix}{branch}'{display_path(node.path)}', {node.entry_count} entries"


def plain_tree_block(node: TreeNode) -> str:
    lines = [
        f"Path: '{display_path(node.path)}'",
        f"Entry count: {node.entry_count}, subtrees: {node.subtree_count}",
    ]
    if node.oid is not None:
        lines.append(f"Object name: {node.oid.hex()}")
    return "\n".join(lines) + "\n"


def extension_line(ext: ExtensionRecord) -> str:
    return (
        f"Extension {ext.label}, length {ext.length}, content starting at offset "
        f"{ext.offset} (0x{ext.offset:X}): {ext.name}"
    )


def checksum_line(result: ChecksumResult) -> str:
    if result.skipped:
        return "Hash checksum: not recorded"
    if result.mismatch:
        return f"Hash checksum: {result.stored.hex()} (computed {result.computed.hex()})"
    return f"Hash checksum: {result.stored.hex()} ✓"
