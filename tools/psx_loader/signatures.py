"""
Masked byte-pattern scanning.

A signature is a byte pattern plus an equal-length mask: a mask byte of
0xFF requires an exact match, 0x00 accepts any value, and anything else
is applied bitwise. New signatures are added as table entries in
config.ENTRY_SIGNATURES.
"""

from dataclasses import dataclass
from typing import List, Optional, Tuple

from . import config


@dataclass(frozen=True)
class MaskedPattern:
    """A byte pattern with a parallel don't-care mask."""
    name: str
    pattern: bytes
    mask: bytes
    skip: int = 0    # bytes between the match and the interesting instruction

    def __post_init__(self):
        if len(self.pattern) != len(self.mask):
            raise ValueError(f"Signature {self.name}: pattern and mask lengths differ "
                             f"({len(self.pattern)} != {len(self.mask)})")

    def __len__(self) -> int:
        return len(self.pattern)

    def matches_at(self, data: bytes, offset: int) -> bool:
        return _matches_at(data, offset, self.pattern, self.mask)


def _matches_at(data: bytes, offset: int, pattern: bytes, mask: bytes) -> bool:
    if offset < 0 or offset + len(pattern) > len(data):
        return False
    for i, m in enumerate(mask):
        if (data[offset + i] & m) != (pattern[i] & m):
            return False
    return True


def _anchor(pattern: bytes, mask: bytes) -> Optional[Tuple[int, bytes]]:
    """Longest run of exact-match bytes, used to jump between candidates."""
    best_off, best_len = 0, 0
    run_off, run_len = 0, 0
    for i, m in enumerate(mask):
        if m == 0xFF:
            if run_len == 0:
                run_off = i
            run_len += 1
            if run_len > best_len:
                best_off, best_len = run_off, run_len
        else:
            run_len = 0
    if best_len == 0:
        return None
    return best_off, bytes(pattern[best_off:best_off + best_len])


def find_masked(view, pattern: bytes, mask: bytes, start: int = 0,
                forward: bool = True) -> int:
    """
    Find the first occurrence of a masked pattern in a byte view.

    Args:
        view: Any bytes-like object (bytes, bytearray, memoryview).
        pattern: Bytes to look for.
        mask: Parallel mask, same length as pattern.
        start: Offset where the scan starts. Forward scans return matches
               at or after it, backward scans matches at or before it.
        forward: Scan direction.

    Returns:
        Offset of the match, or -1 if there is none.
    """
    if len(pattern) != len(mask):
        raise ValueError(f"Pattern and mask lengths differ "
                         f"({len(pattern)} != {len(mask)})")
    data = bytes(view)
    size = len(pattern)
    if size == 0 or size > len(data):
        return -1

    last = len(data) - size
    if forward:
        start = max(start, 0)
        if start > last:
            return -1
    else:
        start = min(start, last)
        if start < 0:
            return -1

    anchor = _anchor(pattern, mask)
    if anchor is None:
        step = 1 if forward else -1
        stop = last + 1 if forward else -1
        for offset in range(start, stop, step):
            if _matches_at(data, offset, pattern, mask):
                return offset
        return -1

    anchor_off, anchor_bytes = anchor
    if forward:
        pos = start + anchor_off
        while True:
            idx = data.find(anchor_bytes, pos)
            if idx == -1:
                return -1
            candidate = idx - anchor_off
            if candidate > last:
                return -1
            if _matches_at(data, candidate, pattern, mask):
                return candidate
            pos = idx + 1
    else:
        end = start + anchor_off + len(anchor_bytes)
        while True:
            idx = data.rfind(anchor_bytes, 0, end)
            if idx == -1:
                return -1
            candidate = idx - anchor_off
            if candidate < 0:
                return -1
            if _matches_at(data, candidate, pattern, mask):
                return candidate
            end = idx + len(anchor_bytes) - 1


def entry_signatures() -> List[MaskedPattern]:
    """Build the entry signature table from config."""
    return [MaskedPattern(name, pattern, mask, skip)
            for name, pattern, mask, skip in config.ENTRY_SIGNATURES]
