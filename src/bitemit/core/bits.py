# src/bitemit/core/bits.py
from __future__ import annotations
from typing import Iterator


def mask(*positions: int) -> int:
    """Build a code with the given bit positions set: mask(0, 2) == 0b101."""
    code = 0
    for p in positions:
        if p < 0:
            raise ValueError(f"bit position must be >= 0, got {p}")
        code |= 1 << p
    return code


def iter_bits(code: int, limit: int) -> Iterator[int]:
    """Yield set bit positions of code in [0, limit), ascending."""
    for i in range(max(0, limit)):
        if (code >> i) & 1:
            yield i
