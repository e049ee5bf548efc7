from __future__ import annotations


def read_offset_varint(cursor) -> int:
    """Decode an offset-style varint from ``cursor``.

    Groups of 7 bits arrive most significant first; the high bit marks a
    continuation. Each continuation also adds one before shifting, so every
    byte length covers its own value range (the OFS_DELTA encoding of pack
    files): ``80 00`` is 128 and ``81 7f`` is 383.
    """
    b = cursor.read_byte()
    value = b & 0x7F
    while b & 0x80:
        b = cursor.read_byte()
        value = ((value + 1) << 7) | (b & 0x7F)
    return value

