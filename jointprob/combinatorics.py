"""
Combination enumeration for inclusion-exclusion.

In this module, the ordered table of all nonempty on/off indicator vectors is
provided. Rows are grouped by ascending population count and, within a group,
follow lexicographic combination order (the order of `itertools.combinations`).
Every engine relies on this order for its level bookkeeping.

Rows are represented as integer bitmasks (bit i set means event i occurs).
"""

from __future__ import annotations

from dataclasses import dataclass
from itertools import combinations
from math import comb
from typing import Iterator, Sequence, Tuple

import numpy as np

MAX_BITSET_EVENTS = 62


def _check_n(n: int) -> int:
    n = int(n)
    if n < 1:
        raise ValueError(f"Number of events must be at least 1 (got {n})")
    if n > MAX_BITSET_EVENTS:
        raise ValueError(
            f"Number of events too large for bitset indicators (n={n}, max={MAX_BITSET_EVENTS})"
        )
    return n


def popcount(mask: int) -> int:
    return bin(int(mask)).count("1")


def indicator_to_mask(indicator: Sequence[int]) -> int:
    mask = 0
    for i, v in enumerate(indicator):
        if int(v) == 1:
            mask |= 1 << i
        elif int(v) != 0:
            raise ValueError(f"Indicator entries must be 0 or 1 (got {v!r} at position {i})")
    return mask


def mask_to_indicator(mask: int, n: int) -> np.ndarray:
    bits = (int(mask) >> np.arange(int(n), dtype=np.int64)) & 1
    return bits.astype(np.int8)


def find_combinations(k: int, n: int) -> Iterator[Tuple[int, ...]]:
    """
    Yield the size-k combinations of range(n) in table order.
    """
    k = int(k)
    n = int(n)
    if k < 0 or k > n:
        raise ValueError(f"k must be in [0, n] (got k={k}, n={n})")
    return combinations(range(n), k)


def binomial_counts(n: int) -> np.ndarray:
    """
    Return [C(n,1), ..., C(n,n)].
    """
    n = _check_n(n)
    return np.asarray([comb(n, k) for k in range(1, n + 1)], dtype=np.int64)


@dataclass(frozen=True)
class IndicatorTable:
    """
    All 2^n - 1 nonempty indicator rows, grouped by population count.

    `offsets[k - 1]` is the first row of size k and `offsets[k]` one past its
    last row, so `offsets[-1] == len(table)`.
    """

    n: int
    masks: np.ndarray  # shape (2**n - 1,), int64
    counts: np.ndarray  # shape (n,), C(n, k) for k = 1..n
    offsets: np.ndarray  # shape (n + 1,)

    def __post_init__(self) -> None:
        if self.masks.ndim != 1:
            raise ValueError("masks must be 1D")
        if int(self.masks.shape[0]) != int(self.offsets[-1]):
            raise ValueError("masks has wrong length")

    def __len__(self) -> int:
        return int(self.masks.shape[0])

    def level_slice(self, k: int) -> slice:
        """
        Row range holding the combinations with exactly k events on.
        """
        k = int(k)
        if k < 1 or k > self.n:
            raise ValueError(f"Level must be in [1, {self.n}] (got {k})")
        return slice(int(self.offsets[k - 1]), int(self.offsets[k]))

    def level_of(self, row: int) -> int:
        row = int(row)
        if row < 0 or row >= len(self):
            raise IndexError(f"Row {row} out of range for table of size {len(self)}")
        return int(np.searchsorted(self.offsets, row, side="right"))

    def row(self, i: int) -> np.ndarray:
        return mask_to_indicator(int(self.masks[int(i)]), self.n)

    def indicators(self, rows: slice = slice(None)) -> np.ndarray:
        m = self.masks[rows]
        bits = (m[:, None] >> np.arange(self.n, dtype=np.int64)[None, :]) & 1
        return bits.astype(np.int8)


def indicator_table(n: int) -> IndicatorTable:
    """
    Build the indicator table for n events.
    """
    n = _check_n(n)
    counts = binomial_counts(n)
    offsets = np.zeros(n + 1, dtype=np.int64)
    offsets[1:] = np.cumsum(counts)

    masks = np.empty(int(offsets[-1]), dtype=np.int64)
    t = 0
    for k in range(1, n + 1):
        for combo in combinations(range(n), k):
            m = 0
            for i in combo:
                m |= 1 << i
            masks[t] = m
            t += 1
    return IndicatorTable(n=n, masks=masks, counts=counts, offsets=offsets)


def all_indicators(n: int) -> np.ndarray:
    """
    Return the indicator table as an int8 array of 0/1 rows, shape (2^n - 1, n).
    """
    return indicator_table(n).indicators()
