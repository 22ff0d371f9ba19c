"""
Joint-probability evaluators.

An evaluator maps (marginal probabilities, on/off indicator, correlation matrix)
to the probability that exactly the flagged events occur jointly under a
normal copula. Events flagged 0 are left unconstrained.

The following implementations are provided:
  - `PCMEvaluator`: Product of Conditional Marginals, a sequential Gaussian
    conditioning approximation that needs no multivariate integral
  - `HybridPCMEvaluator`: the same recursion with conditional thresholds taken
    from the exact bivariate normal CDF
  - `OracleEvaluator`: the multivariate normal CDF itself (exact bivariate for
    two events, SciPy quasi-Monte Carlo integration above that)

Evaluators are immutable. The conditioning recursion works on a matrix that is
allocated inside each call, so one evaluator can be shared by any number of
threads or worker processes.
"""

from __future__ import annotations

import math
import multiprocessing as mp
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Callable, Iterator, List, Optional, Protocol, Sequence, Tuple, runtime_checkable

import numpy as np
from scipy import special
from scipy.stats import multivariate_normal

from jointprob.combinatorics import IndicatorTable, mask_to_indicator
from jointprob.normal import (
    Z_UPPER,
    bivariate_normal_cdf,
    standard_cdf,
    standard_z,
)

_LOG_SQRT_2PI = 0.5 * math.log(2.0 * math.pi)


@runtime_checkable
class JointProbabilityEvaluator(Protocol):
    """
    Capability shared by every joint-probability backend.
    """

    requires_psd: bool

    def joint_probability(
        self,
        probabilities: np.ndarray,
        indicator: np.ndarray,
        correlation: np.ndarray,
    ) -> float: ...


def _thresholds(probabilities: np.ndarray, indicator: np.ndarray) -> np.ndarray:
    z = np.empty(int(probabilities.shape[0]), dtype=np.float64)
    for i, (p, on) in enumerate(zip(probabilities, indicator)):
        z[i] = standard_z(float(p)) if int(on) == 1 else Z_UPPER
    return z


def _mills_terms(z: float) -> Tuple[float, float]:
    """
    Inverse Mills ratio A = phi(z) / Phi(z) and B = A (z + A).

    B is the variance reduction of a standard normal truncated above at z.
    """
    a = math.exp(-0.5 * z * z - _LOG_SQRT_2PI - float(special.log_ndtr(z)))
    return a, a * (z + a)


StepRule = Callable[[float, np.ndarray, np.ndarray, float, float], np.ndarray]


def _pcm_step(z1: float, prev: np.ndarray, r: np.ndarray, a: float, b: float) -> np.ndarray:
    return (prev + r * a) / np.sqrt(1.0 - r * r * b)


def _bivariate_step(z1: float, prev: np.ndarray, r: np.ndarray, a: float, b: float) -> np.ndarray:
    cdf = standard_cdf(z1)
    out = np.empty_like(prev)
    for idx, (z2, r12) in enumerate(zip(prev, r)):
        r12 = 0.0 if abs(float(r12)) < 1e-3 else float(r12)
        if cdf <= 0.0 or not np.isfinite(z2) or not np.isfinite(r12):
            out[idx] = np.nan
            continue
        p21 = bivariate_normal_cdf(z1, float(z2), r12) / cdf
        out[idx] = standard_z(min(1.0, max(0.0, p21)))
    return out


def _conditional_thresholds(z: np.ndarray, correlation: np.ndarray, step: StepRule) -> np.ndarray:
    """
    Run the sequential conditioning recursion and return the conditional
    threshold of every event given all earlier events.

    Layout of the private working matrix R:
      - diagonal: unconditional thresholds
      - strict lower triangle, R[k, j]: threshold of event k given events 0..j
      - strict upper triangle, R[j, k]: correlation of j and k given events 0..j-1
    """
    n = int(z.shape[0])
    R = np.array(correlation, dtype=np.float64, copy=True)
    R[np.diag_indices(n)] = z

    with np.errstate(divide="ignore", invalid="ignore", over="ignore"):
        for j in range(n - 1):
            if j == 0:
                z1 = float(R[0, 0])
                prev = np.diag(R)[1:].copy()
            else:
                z1 = float(R[j, j - 1])
                prev = R[j + 1 :, j - 1].copy()
            if not np.isfinite(z1):
                R[j + 1 :, j] = np.nan
                continue
            r = R[j, j + 1 :].copy()
            a, b = _mills_terms(z1)
            R[j + 1 :, j] = step(z1, prev, r, a, b)

            m = n - j - 1
            if m > 1:
                d = np.sqrt(1.0 - r * r * b)
                sub = R[j + 1 :, j + 1 :]
                upd = (sub - np.outer(r, r) * b) / np.outer(d, d)
                iu = np.triu_indices(m, k=1)
                sub[iu] = upd[iu]

    out = np.empty(n, dtype=np.float64)
    out[0] = R[0, 0]
    if n > 1:
        out[1:] = R[np.arange(1, n), np.arange(0, n - 1)]
    return out


def _product_of_marginals(thresholds: np.ndarray) -> float:
    with np.errstate(invalid="ignore", over="ignore"):
        log_jp = float(np.sum(special.log_ndtr(thresholds)))
        jp = math.exp(log_jp) if not math.isnan(log_jp) else math.nan
    if math.isnan(jp):
        return 0.0
    return min(1.0, max(0.0, jp))


@dataclass(frozen=True)
class PCMEvaluator:
    """
    Product of Conditional Marginals approximation.

    Events are conditioned in index order. At each step the truncated normal
    of the conditioning event is replaced by a normal with matching mean and
    variance, which updates the remaining thresholds and correlations in
    closed form. Zero correlation reduces exactly to the independent product.
    """

    requires_psd: bool = False

    def conditional_marginals(
        self,
        probabilities: np.ndarray,
        indicator: np.ndarray,
        correlation: np.ndarray,
    ) -> np.ndarray:
        """
        Return P(event i | events 0..i-1) for every i, as used in the product.
        """
        z = _thresholds(np.asarray(probabilities, dtype=float), np.asarray(indicator))
        c = _conditional_thresholds(z, np.asarray(correlation, dtype=float), self._step())
        with np.errstate(invalid="ignore"):
            return special.ndtr(c)

    def joint_probability(
        self,
        probabilities: np.ndarray,
        indicator: np.ndarray,
        correlation: np.ndarray,
    ) -> float:
        z = _thresholds(np.asarray(probabilities, dtype=float), np.asarray(indicator))
        c = _conditional_thresholds(z, np.asarray(correlation, dtype=float), self._step())
        return _product_of_marginals(c)

    def _step(self) -> StepRule:
        return _pcm_step


@dataclass(frozen=True)
class HybridPCMEvaluator(PCMEvaluator):
    """
    PCM with each conditional threshold taken from the exact bivariate CDF,
    P(k | j) = Phi2(z_j, z_k; r_jk) / Phi(z_j). Correlations below 1e-3 in
    magnitude are treated as zero. Exact for two events.
    """

    def _step(self) -> StepRule:
        return _bivariate_step


@dataclass(frozen=True)
class OracleEvaluator:
    """
    Multivariate normal CDF at the quantiles of the events flagged on.

    Unconstrained events have an upper bound of +inf and are integrated out
    exactly by restricting the correlation matrix to the flagged events.
    """

    abseps: float = 1e-6
    releps: float = 1e-6
    maxpts: Optional[int] = None
    seed: Optional[int] = 12345
    requires_psd: bool = True

    def joint_probability(
        self,
        probabilities: np.ndarray,
        indicator: np.ndarray,
        correlation: np.ndarray,
    ) -> float:
        p = np.asarray(probabilities, dtype=float)
        on = np.flatnonzero(np.asarray(indicator) == 1)
        k = int(on.size)
        if k == 0:
            return 1.0
        z = np.asarray([standard_z(float(p[i])) for i in on], dtype=np.float64)
        if k == 1:
            return standard_cdf(float(z[0]))

        R = np.asarray(correlation, dtype=float)[np.ix_(on, on)]
        if k == 2:
            return bivariate_normal_cdf(float(z[0]), float(z[1]), float(R[0, 1]))

        kwds = {"abseps": float(self.abseps), "releps": float(self.releps)}
        if self.maxpts is not None:
            kwds["maxpts"] = int(self.maxpts)
        mvn = multivariate_normal(
            mean=np.zeros(k), cov=R, allow_singular=True, seed=self.seed, **kwds
        )
        result = float(mvn.cdf(z))
        if math.isnan(result):
            return 0.0
        return max(0.0, min(1.0, result))


def _evaluate_masks(
    evaluator: JointProbabilityEvaluator,
    probabilities: np.ndarray,
    correlation: Optional[np.ndarray],
    masks: np.ndarray,
    n: int,
) -> np.ndarray:
    out = np.empty(int(masks.shape[0]), dtype=np.float64)
    for idx, m in enumerate(masks):
        m = int(m)
        if m & (m - 1) == 0:
            # Single event on: the joint is the marginal.
            out[idx] = float(probabilities[m.bit_length() - 1])
        else:
            out[idx] = float(
                evaluator.joint_probability(probabilities, mask_to_indicator(m, n), correlation)
            )
    return out


def _evaluate_masks_worker(
    args: Tuple[JointProbabilityEvaluator, np.ndarray, Optional[np.ndarray], np.ndarray, int]
) -> np.ndarray:
    evaluator, probabilities, correlation, masks, n = args
    return _evaluate_masks(evaluator, probabilities, correlation, masks, n)


def _chunk_positions(n_items: int, *, n_chunks: int) -> Tuple[np.ndarray, ...]:
    if int(n_chunks) <= 0:
        raise ValueError("n_chunks must be positive")
    chunks: List[List[int]] = [[] for _ in range(int(n_chunks))]
    for i in range(int(n_items)):
        chunks[i % int(n_chunks)].append(i)
    return tuple(np.asarray(c, dtype=np.int64) for c in chunks if c)


@contextmanager
def worker_pool(n_jobs: int) -> Iterator[Optional[mp.pool.Pool]]:
    """
    Yield a spawn-context process pool for n_jobs > 1, otherwise None.
    """
    n_jobs = int(n_jobs)
    if n_jobs <= 0:
        raise ValueError("n_jobs must be positive")
    if n_jobs == 1:
        yield None
        return
    ctx = mp.get_context("spawn")
    with ctx.Pool(processes=n_jobs) as pool:
        yield pool


def joint_probabilities(
    probabilities: Sequence[float],
    table: IndicatorTable,
    correlation: Optional[np.ndarray],
    evaluator: JointProbabilityEvaluator,
    *,
    rows: slice = slice(None),
    pool: Optional[mp.pool.Pool] = None,
    n_jobs: int = 1,
) -> np.ndarray:
    """
    Evaluate the joint probability of every table row in `rows`, in row order.

    Rows with a single event on reuse the marginal directly. With a pool, rows
    are dealt round-robin into `n_jobs` chunks and reassembled in order.
    """
    p = np.asarray(probabilities, dtype=float)
    masks = table.masks[rows]
    n = int(table.n)
    if pool is None or int(n_jobs) <= 1 or int(masks.shape[0]) < 2:
        return _evaluate_masks(evaluator, p, correlation, masks, n)

    positions = _chunk_positions(int(masks.shape[0]), n_chunks=int(n_jobs))
    results = pool.map(
        _evaluate_masks_worker,
        [(evaluator, p, correlation, masks[pos], n) for pos in positions],
    )
    out = np.empty(int(masks.shape[0]), dtype=np.float64)
    for pos, vals in zip(positions, results):
        out[pos] = vals
    return out
