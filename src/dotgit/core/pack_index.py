"""Decode git pack index (``.idx``) files into object hashes.

Two layouts are understood:

Packed layout::

    4 bytes   signature  b"\\xfftOc"
    4 bytes   version    (ignored)
    4 bytes   entry count, big-endian
    N x 28    20-byte hash, 4-byte offset, 4-byte CRC32

Version-2 layout as written by ``git index-pack``: the header is followed
by a 256-word fan-out table whose last word is the object count, then the
hash table, the CRC32 table, the 4-byte offset table, an optional 8-byte
large-offset table and a 40-byte trailer. A file is decoded this way only
when its size and fan-out table are consistent with it; anything else is
read with the packed layout.
"""

from __future__ import annotations

import logging
import struct
from dataclasses import dataclass
from pathlib import Path

from .errors import MalformedPackIndex

logger = logging.getLogger(__name__)

IDX_SIGNATURE = b"\xfftOc"

_HEADER = struct.Struct(">4sII")
_ENTRY = struct.Struct(">20sII")
_FANOUT = struct.Struct(">256I")
_WORD = struct.Struct(">I")
_LARGE_OFFSET = struct.Struct(">Q")

_HASH_SIZE = 20
_TRAILER_SIZE = 2 * _HASH_SIZE
_V2_TABLES_START = 8 + _FANOUT.size
_LARGE_OFFSET_FLAG = 0x80000000


@dataclass(frozen=True)
class PackIndexEntry:
    """One object listed in a pack index."""

    sha1: bytes
    offset: int
    crc32: int

    @property
    def hexsha(self) -> str:
        return self.sha1.hex()


def parse_pack_index(data: bytes) -> list[PackIndexEntry]:
    """Decode every entry in *data*.

    Raises ``MalformedPackIndex`` on a bad signature or a truncated file.
    """
    if len(data) < _HEADER.size:
        raise MalformedPackIndex(f"index is {len(data)} bytes, shorter than its header")

    signature, version, count = _HEADER.unpack_from(data, 0)
    if signature != IDX_SIGNATURE:
        raise MalformedPackIndex(f"invalid pack index signature {signature!r}")

    if _is_v2_layout(data, version):
        return _parse_v2(data)

    end = _HEADER.size + count * _ENTRY.size
    if len(data) < end:
        available = (len(data) - _HEADER.size) // _ENTRY.size
        raise MalformedPackIndex(
            f"index declares {count} entries but ends after {available}"
        )
    return [
        PackIndexEntry(*_ENTRY.unpack_from(data, _HEADER.size + i * _ENTRY.size))
        for i in range(count)
    ]


def read_pack_index(path: Path | str) -> list[str]:
    """Hex hashes of every object listed in the ``.idx`` file at *path*."""
    entries = parse_pack_index(Path(path).read_bytes())
    logger.debug("%s lists %d object(s)", path, len(entries))
    return [entry.hexsha for entry in entries]


# ---------------------------------------------------------------------------
# Version-2 fan-out layout
# ---------------------------------------------------------------------------

def _is_v2_layout(data: bytes, version: int) -> bool:
    if version != 2 or len(data) < _V2_TABLES_START + _TRAILER_SIZE:
        return False
    fanout = _FANOUT.unpack_from(data, 8)
    if any(a > b for a, b in zip(fanout, fanout[1:])):
        return False
    count = fanout[-1]
    extra = len(data) - (_V2_TABLES_START + count * _ENTRY.size + _TRAILER_SIZE)
    return extra >= 0 and extra % _LARGE_OFFSET.size == 0 and extra // _LARGE_OFFSET.size <= count


def _parse_v2(data: bytes) -> list[PackIndexEntry]:
    count = _FANOUT.unpack_from(data, 8)[-1]
    hashes_at = _V2_TABLES_START
    crcs_at = hashes_at + count * _HASH_SIZE
    offsets_at = crcs_at + count * _WORD.size
    large_at = offsets_at + count * _WORD.size

    entries: list[PackIndexEntry] = []
    for i in range(count):
        start = hashes_at + i * _HASH_SIZE
        (crc32,) = _WORD.unpack_from(data, crcs_at + i * _WORD.size)
        (offset,) = _WORD.unpack_from(data, offsets_at + i * _WORD.size)
        if offset & _LARGE_OFFSET_FLAG:
            slot = large_at + (offset & (_LARGE_OFFSET_FLAG - 1)) * _LARGE_OFFSET.size
            if slot + _LARGE_OFFSET.size > len(data) - _TRAILER_SIZE:
                raise MalformedPackIndex(f"large offset slot for entry {i} is out of range")
            (offset,) = _LARGE_OFFSET.unpack_from(data, slot)
        entries.append(PackIndexEntry(bytes(data[start:start + _HASH_SIZE]), offset, crc32))
    return entries
