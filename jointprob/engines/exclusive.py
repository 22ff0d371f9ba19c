"""
Mutually exclusive partition of the union.

For every nonempty on/off combination the probability that exactly those
events occur is computed, in indicator table order. The entries are
non-negative and sum to the union probability.

Under independence and perfect positive dependence each entry has a closed
form. For a correlation matrix, the entry of a combination with on-set S of
size s is obtained by nested inclusion-exclusion over the cached joint
probabilities of its supersets:

    P(exactly S) = P(S) + sum_{t=s+1..N} (-1)^(t-s) * sum_{T superset of S, |T|=t} P(T)

Perfect negative dependence determines a unique partition only when the
marginals sum to at most 1, where the events are disjoint.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterator, Optional

import numpy as np

from jointprob.combinatorics import IndicatorTable, indicator_table
from jointprob.engines.config import ConvergenceConfig
from jointprob.engines.union import InclusionExclusionResult, union_inclusion_exclusion
from jointprob.evaluators import JointProbabilityEvaluator, worker_pool
from jointprob.policies import (
    INDEPENDENT,
    NEGATIVE,
    POSITIVE,
    ClosedFormEvaluator,
    Dependency,
    closed_form_union,
    independent_exclusive_probability,
    negative_exclusive_probability,
    positive_exclusive_probability,
    require_disjoint,
)

_CLOSED_FORM_EXCLUSIVE = {
    INDEPENDENT: independent_exclusive_probability,
    POSITIVE: positive_exclusive_probability,
    NEGATIVE: negative_exclusive_probability,
}


@dataclass(frozen=True)
class ExclusiveResult:
    """
    Exclusive combination probabilities with their indicator rows.

    When enumeration stopped early, only the evaluated combinations are
    listed, followed by one remainder row labelled with the all-ones
    indicator that carries the unevaluated mass. Unpacks as
    `(probabilities, indicators)`.
    """

    probabilities: np.ndarray
    indicators: np.ndarray
    masks: np.ndarray
    union: float
    is_complete: bool
    n_evaluated: int
    remainder: float = 0.0

    def __len__(self) -> int:
        return int(self.probabilities.shape[0])

    def __iter__(self) -> Iterator[np.ndarray]:
        yield self.probabilities
        yield self.indicators

    @property
    def total(self) -> float:
        return float(np.sum(self.probabilities))


def sum_search(cache: np.ndarray, masks: np.ndarray, on_mask: int, start: int, stop: int) -> float:
    """
    Sum of cache[start:stop] over rows whose on-set contains `on_mask`.
    """
    seg = masks[int(start) : int(stop)]
    on = np.int64(on_mask)
    hit = (seg & on) == on
    return float(np.sum(cache[int(start) : int(stop)][hit]))


def exclusive_from_joint(table: IndicatorTable, joint: np.ndarray, levels: int) -> np.ndarray:
    """
    Exclusive probabilities of every row in levels 1..`levels`, truncating the
    nested inclusion-exclusion at `levels`.

    With levels == N the entries are exact; with fewer levels they sum to the
    partial inclusion-exclusion sum of those levels.
    """
    levels = int(levels)
    stop = int(table.offsets[levels])
    out = np.empty(stop, dtype=np.float64)
    slices = [table.level_slice(t) for t in range(1, levels + 1)]
    for s in range(1, levels + 1):
        for row in range(slices[s - 1].start, slices[s - 1].stop):
            on = int(table.masks[row])
            v = float(joint[row])
            sign = -1.0
            for t in range(s + 1, levels + 1):
                sl = slices[t - 1]
                v += sign * sum_search(joint, table.masks, on, sl.start, sl.stop)
                sign = -sign
            # Cancellation can leave tiny negatives.
            out[row] = 0.0 if (math.isnan(v) or v < 0.0) else v
    return out


def _truncated(table: IndicatorTable, values: np.ndarray, union: float, n_evaluated: int) -> ExclusiveResult:
    n = int(table.n)
    remainder = max(0.0, float(union) - float(np.sum(values)))
    all_on = (1 << n) - 1
    stop = int(values.shape[0])
    return ExclusiveResult(
        probabilities=np.append(values, remainder),
        indicators=np.vstack([table.indicators(slice(0, stop)), np.ones((1, n), dtype=np.int8)]),
        masks=np.append(table.masks[:stop], np.int64(all_on)),
        union=float(union),
        is_complete=False,
        n_evaluated=int(n_evaluated),
        remainder=remainder,
    )


def _complete(table: IndicatorTable, values: np.ndarray, union: float) -> ExclusiveResult:
    return ExclusiveResult(
        probabilities=values,
        indicators=table.indicators(),
        masks=table.masks.copy(),
        union=float(union),
        is_complete=True,
        n_evaluated=len(table),
    )


def closed_form_exclusive(
    probabilities: np.ndarray,
    dependency: Dependency,
    *,
    convergence: Optional[ConvergenceConfig] = None,
) -> ExclusiveResult:
    """
    Exclusive partition under a named dependence. Perfect negative dependence
    is only accepted when sum(p) <= 1, where the events are disjoint.

    With `convergence`, the early-exit rule is driven by the closed-form joint
    probabilities and the remainder is taken against the exact union.
    """
    p = np.asarray(probabilities, dtype=float)
    row_value = _CLOSED_FORM_EXCLUSIVE[dependency.kind]
    if dependency.kind == NEGATIVE:
        require_disjoint(p)
    table = indicator_table(int(p.shape[0]))
    union = closed_form_union(dependency.kind, p)

    levels = table.n
    n_evaluated = len(table)
    if convergence is not None:
        ie = union_inclusion_exclusion(
            p, None, ClosedFormEvaluator(dependency.kind), convergence=convergence, table=table
        )
        levels = ie.levels_completed
        n_evaluated = ie.n_evaluated

    stop = int(table.offsets[levels])
    values = np.asarray([row_value(p, table.row(i)) for i in range(stop)], dtype=np.float64)
    if levels == table.n:
        return _complete(table, values, union)
    return _truncated(table, values, union, n_evaluated)


def correlated_exclusive(
    probabilities: np.ndarray,
    correlation: np.ndarray,
    evaluator: JointProbabilityEvaluator,
    *,
    convergence: Optional[ConvergenceConfig] = None,
    n_jobs: int = 1,
) -> ExclusiveResult:
    """
    Exclusive partition for a correlation matrix, from one joint-probability cache.
    """
    p = np.asarray(probabilities, dtype=float)
    with worker_pool(n_jobs) as pool:
        ie = union_inclusion_exclusion(
            p, correlation, evaluator, convergence=convergence, pool=pool, n_jobs=n_jobs
        )
    return exclusive_from_result(ie)


def exclusive_from_result(ie: InclusionExclusionResult) -> ExclusiveResult:
    values = exclusive_from_joint(ie.table, ie.joint, ie.levels_completed)
    if ie.is_complete:
        return _complete(ie.table, values, ie.value)
    return _truncated(ie.table, values, ie.value, ie.n_evaluated)


def exclusive_partition(
    probabilities: np.ndarray,
    dependency: Dependency,
    evaluator: JointProbabilityEvaluator,
    *,
    convergence: Optional[ConvergenceConfig] = None,
    n_jobs: int = 1,
) -> ExclusiveResult:
    if dependency.is_closed_form:
        return closed_form_exclusive(probabilities, dependency, convergence=convergence)
    return correlated_exclusive(
        probabilities,
        dependency.correlation,
        evaluator,
        convergence=convergence,
        n_jobs=n_jobs,
    )
