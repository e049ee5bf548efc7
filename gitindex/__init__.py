"""
gitindex: streaming reader for git index (``.git/index``) files.

Features:

- Index format versions 2, 3 and 4 (extended flags, prefix-compressed paths).
- Forward-only decoding: works on regular files and pipes alike.
- Running checksum over the whole stream, checked against the trailer.
- Cache tree (TREE) extension decoded node by node; every other extension
  is skipped by its declared length.
- SHA-1 and SHA-256 repositories.
- Damage that can be stepped over (broken cache tree, checksum mismatch,
  odd name lengths) is reported as anomalies instead of aborting the pass.
"""

__version__ = "0.1"

__all__ = [
    "constants",
    "errors",
    "reader",
    "render",
    "cli",
]

# Programmatic API: gitindex.reader.IndexReader / read_index; the CLI
# functions in gitindex.cli (cmd_ls, cmd_stat, ...) take normal parameters.
