"""
Large-file fragmentation.

GitHub rejects blobs over 100 MiB, so files above MAX_BLOB_SIZE are written
to the target as ordered ``<path>.partNNN`` blobs instead of one blob.

This is a one-way transformation: nothing in this system reassembles the
parts. Once synced, the parts are what the target repository contains;
consumers that need the original file must concatenate part001..partNNN.
"""

import re
from typing import List, Optional, Tuple

MAX_BLOB_SIZE = 90 * 1024 * 1024  # 90 MiB, under GitHub's 100 MiB ceiling

_PART_RE = re.compile(r"^(?P<path>.+)\.part(?P<index>\d{3,})$")


def should_fragment(size: int, threshold: int = MAX_BLOB_SIZE) -> bool:
    return size > threshold


def fragment(data: bytes, chunk_size: int = MAX_BLOB_SIZE) -> List[bytes]:
    """Split ``data`` into ordered chunks of at most ``chunk_size`` bytes."""
    if chunk_size <= 0:
        raise ValueError("chunk_size must be positive")
    if not data:
        return [b""]
    return [data[start:start + chunk_size] for start in range(0, len(data), chunk_size)]


def part_path(original_path: str, part_index: int, total_parts: int) -> str:
    """
    Name of part ``part_index`` (1-based) of ``original_path``.

    Examples:
        part_path("data/big.bin", 1, 3) -> "data/big.bin.part001"
    """
    if not 1 <= part_index <= total_parts:
        raise ValueError(f"part_index {part_index} outside 1..{total_parts}")
    return f"{original_path}.part{part_index:03d}"


def parse_part_path(path: str) -> Optional[Tuple[str, int]]:
    """Inverse of part_path: ``(original_path, index)`` or None."""
    match = _PART_RE.match(path)
    if not match:
        return None
    index = int(match.group("index"))
    if index < 1:
        return None
    return match.group("path"), index
