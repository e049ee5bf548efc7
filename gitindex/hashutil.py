from __future__ import annotations

from Cryptodome.Hash import SHA1, SHA256

from .constants import HASH_DIGEST_SIZES, HASH_SHA1, HASH_SHA256


_HASH_MODULES = {
    HASH_SHA1: SHA1,
    HASH_SHA256: SHA256,
}


def new_hasher(hash_name: str):
    """Return a fresh incremental hash object for ``hash_name``.

    The object exposes ``update(data)``, ``digest()`` and ``digest_size``.
    """
    try:
        mod = _HASH_MODULES[hash_name]
    except KeyError:
        raise ValueError(f"unsupported hash algorithm: {hash_name!r}") from None
    return mod.new()


def digest_size(hash_name: str) -> int:
    try:
        return HASH_DIGEST_SIZES[hash_name]
    except KeyError:
        raise ValueError(f"unsupported hash algorithm: {hash_name!r}") from None


def is_null_digest(digest: bytes) -> bool:
    return not any(digest)
