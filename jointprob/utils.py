"""
Elementwise reductions over probability lists.

Each reduction optionally takes an on/off indicator; only entries flagged 1
take part.
"""

from __future__ import annotations

from typing import Optional, Sequence

import numpy as np


def _masked(values: Sequence[float], indicator: Optional[Sequence[int]]) -> np.ndarray:
    v = np.asarray(values, dtype=float)
    if indicator is None:
        return v
    ind = np.asarray(indicator)
    if ind.shape != v.shape:
        raise ValueError(f"indicator shape {ind.shape} does not match values shape {v.shape}")
    return v[ind == 1]


def masked_min(values: Sequence[float], indicator: Optional[Sequence[int]] = None, *, empty: float = 1.0) -> float:
    v = _masked(values, indicator)
    return float(np.min(v)) if v.size else float(empty)


def masked_max(values: Sequence[float], indicator: Optional[Sequence[int]] = None, *, empty: float = 0.0) -> float:
    v = _masked(values, indicator)
    return float(np.max(v)) if v.size else float(empty)


def masked_sum(values: Sequence[float], indicator: Optional[Sequence[int]] = None) -> float:
    return float(np.sum(_masked(values, indicator)))


def masked_product(values: Sequence[float], indicator: Optional[Sequence[int]] = None) -> float:
    return float(np.prod(_masked(values, indicator)))
