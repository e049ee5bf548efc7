from __future__ import annotations

import argparse
import os
import random
import sys
from typing import Optional

from gitindex.errors import GitIndexError
from gitindex.reader import IndexReader


def _flip_byte(path: str, offset: int, xor_val: int = 0xFF) -> None:
    if offset < 0:
        raise ValueError("Offset must be non-negative")
    with open(path, "r+b") as f:
        f.seek(offset)
        b = f.read(1)
        if not b:
            raise ValueError("Offset beyond end of file")
        f.seek(offset)
        f.write(bytes([b[0] ^ (xor_val & 0xFF)]))
        f.flush()
        os.fsync(f.fileno())


def cmd_by_offset(args: argparse.Namespace) -> None:
    _flip_byte(args.index, args.offset, xor_val=args.xor)
    print(f"Flipped 1 byte at offset {args.offset}")


def cmd_entry(args: argparse.Namespace) -> None:
    with IndexReader(args.index, hash_name=args.hash) as r:
        entries = r.read().entries
    if args.number < 0 or args.number >= len(entries):
        raise ValueError(f"Entry number out of range (0..{len(entries) - 1})")
    off = entries[args.number].offset + args.within
    _flip_byte(args.index, off, xor_val=args.xor)
    print(f"Flipped 1 byte in entry {args.number} at offset {off}")


def cmd_random(args: argparse.Namespace) -> None:
    rng = random.Random(args.seed)
    flips = 0
    size = os.path.getsize(args.index)
    with open(args.index, "r+b") as f:
        for _ in range(args.count):
            pos = rng.randrange(0, size)
            f.seek(pos)
            b = f.read(1)
            if not b:
                continue
            f.seek(pos)
            f.write(bytes([b[0] ^ (args.xor & 0xFF)]))
            flips += 1
        f.flush()
        os.fsync(f.fileno())
    print(f"Flipped {flips} byte(s) at random offsets")


def main(argv: Optional[list[str]] = None) -> None:
    ap = argparse.ArgumentParser(prog="gitindex.corrupt", description="Corrupt git index files for testing")
    sub = ap.add_subparsers(dest="cmd", required=True)

    p_off = sub.add_parser("by-offset", help="Flip one byte at an absolute file offset")
    p_off.add_argument("index", help="Path to index file")
    p_off.add_argument("--offset", type=int, required=True, help="Absolute byte offset in the file")
    p_off.add_argument("--xor", type=lambda x: int(x, 0), default=0xFF, help="XOR mask to apply (default 0xFF)")
    p_off.set_defaults(func=cmd_by_offset)

    p_entry = sub.add_parser("entry", help="Flip a byte inside one entry")
    p_entry.add_argument("index", help="Path to index file")
    p_entry.add_argument("--number", type=int, default=0, help="Entry number (0-based)")
    p_entry.add_argument("--within", type=int, default=0, help="Byte offset within the entry (default 0)")
    p_entry.add_argument("--xor", type=lambda x: int(x, 0), default=0xFF, help="XOR mask to apply (default 0xFF)")
    p_entry.add_argument("--hash", default="sha1", help="Repository hash algorithm (default sha1)")
    p_entry.set_defaults(func=cmd_entry)

    p_rand = sub.add_parser("random", help="Flip N random bytes anywhere in the file")
    p_rand.add_argument("index", help="Path to index file")
    p_rand.add_argument("--count", type=int, default=1, help="Number of random byte flips (default 1)")
    p_rand.add_argument("--seed", type=int, default=None, help="PRNG seed for reproducibility")
    p_rand.add_argument("--xor", type=lambda x: int(x, 0), default=0xFF, help="XOR mask to apply (default 0xFF)")
    p_rand.set_defaults(func=cmd_random)

    args = ap.parse_args(argv)
    try:
        args.func(args)
    except (GitIndexError, OSError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(2)


if __name__ == "__main__":
    main()
