"""
Input validation for marginal probabilities, on/off indicators and
correlation matrices, plus the pairwise Fréchet bounds.

Every check raises ValueError naming the offending position or shape.
"""

from __future__ import annotations

import warnings
from typing import Optional, Sequence, Tuple

import numpy as np

from jointprob.combinatorics import indicator_to_mask


def validate_probabilities(probabilities: Sequence[float], *, max_events: Optional[int] = None) -> np.ndarray:
    """
    Validate a vector of marginal probabilities and return it as float64.
    """
    p = np.asarray(probabilities, dtype=float)
    if p.ndim != 1:
        raise ValueError(f"probabilities must be 1D (got shape {p.shape})")
    n = int(p.shape[0])
    if n < 1:
        raise ValueError("probabilities cannot be empty")
    if max_events is not None and n > int(max_events):
        raise ValueError(
            f"Too many events for combination enumeration (n={n}, max_events={int(max_events)})."
        )
    if np.any(np.isnan(p)):
        raise ValueError("probabilities cannot contain NaN")
    bad = np.flatnonzero((p < 0.0) | (p > 1.0))
    if bad.size:
        i = int(bad[0])
        raise ValueError(f"Probability at position {i} must be in [0, 1] (got {float(p[i])!r})")
    return p


def validate_indicator(indicator: Sequence[int], n: int) -> Tuple[np.ndarray, int]:
    """
    Validate an on/off indicator of length n; return (array, bitmask).
    """
    ind = np.asarray(indicator)
    if ind.ndim != 1 or int(ind.shape[0]) != int(n):
        raise ValueError(f"indicator must have length {int(n)} (got shape {ind.shape})")
    bad = np.flatnonzero((ind != 0) & (ind != 1))
    if bad.size:
        i = int(bad[0])
        raise ValueError(f"Indicator entries must be 0 or 1 (got {ind[i]!r} at position {i})")
    mask = indicator_to_mask([int(v) for v in ind])
    return ind.astype(np.int8), mask


def validate_correlation_matrix(
    correlation: Sequence[Sequence[float]],
    n: int,
    *,
    tol: float = 1e-8,
    require_psd: bool = False,
) -> np.ndarray:
    """
    Validate an n x n correlation matrix: symmetric, unit diagonal, entries in [-1, 1].

    A matrix that is not positive semi-definite is rejected when `require_psd`
    is set, otherwise a UserWarning is emitted.
    """
    R = np.asarray(correlation, dtype=float)
    n = int(n)
    if R.shape != (n, n):
        raise ValueError(f"Correlation matrix must have shape ({n}, {n}) (got {R.shape})")
    if not np.all(np.isfinite(R)):
        raise ValueError("Correlation matrix must be finite")
    tol = float(tol)
    if np.max(np.abs(R - R.T)) > tol:
        raise ValueError("Correlation matrix must be symmetric")
    if np.max(np.abs(np.diag(R) - 1.0)) > tol:
        raise ValueError("Correlation matrix must have a unit diagonal")
    if np.any(np.abs(R) > 1.0 + tol):
        raise ValueError("Correlation matrix entries must be in [-1, 1]")

    if n > 1:
        min_eig = float(np.min(np.linalg.eigvalsh(R)))
        if min_eig < -1e-10:
            if require_psd:
                raise ValueError(
                    f"Correlation matrix must be positive semi-definite (min eigenvalue {min_eig})"
                )
            warnings.warn(
                "Correlation matrix is not positive semi-definite "
                f"(min eigenvalue {min_eig}); conditional-marginal approximations "
                "may be unreliable.",
                UserWarning,
                stacklevel=3,
            )
    return np.clip(R, -1.0, 1.0)


def frechet_bounds(pi: float, pj: float) -> Tuple[float, float]:
    """
    Fréchet bounds for P(A and B) given marginals pi, pj.
    """
    pi = float(pi)
    pj = float(pj)
    lo = max(0.0, pi + pj - 1.0)
    hi = min(pi, pj)
    return float(lo), float(hi)
