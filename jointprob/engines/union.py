"""
Union by level-by-level inclusion-exclusion.

P(A_1 or ... or A_N) = S_1 - S_2 + S_3 - ..., where S_k sums the joint
probabilities of every size-k combination. Levels are evaluated in indicator
table order, and the joint probabilities are kept as a cache aligned with the
table for reuse by the exclusive partition.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import List, Optional, Tuple

import numpy as np

from jointprob.combinatorics import IndicatorTable, indicator_table
from jointprob.engines.config import ConvergenceConfig
from jointprob.evaluators import JointProbabilityEvaluator, joint_probabilities, worker_pool
from jointprob.policies import Dependency, closed_form_union


@dataclass(frozen=True)
class InclusionExclusionResult:
    """
    Outcome of one inclusion-exclusion run.

    `joint` is aligned with `table`; rows beyond the last completed level were
    never evaluated and hold NaN.
    """

    value: float
    table: IndicatorTable
    joint: np.ndarray
    n_evaluated: int
    levels_completed: int
    converged: bool
    partial_sums: Tuple[float, ...]

    @property
    def is_complete(self) -> bool:
        return self.levels_completed == self.table.n


def union_inclusion_exclusion(
    probabilities: np.ndarray,
    correlation: Optional[np.ndarray],
    evaluator: JointProbabilityEvaluator,
    *,
    convergence: Optional[ConvergenceConfig] = None,
    table: Optional[IndicatorTable] = None,
    pool=None,
    n_jobs: int = 1,
) -> InclusionExclusionResult:
    """
    Inputs are expected to be validated by the caller.

    With `convergence`, enumeration stops after a completed level k < N once
    the latest odd and even partial sums (k >= 2) agree within tolerance, and
    their midpoint is returned.
    """
    p = np.asarray(probabilities, dtype=float)
    n = int(p.shape[0])
    if table is None:
        table = indicator_table(n)
    elif int(table.n) != n:
        raise ValueError(f"Indicator table is for {table.n} events (got {n} probabilities)")

    joint = np.full(len(table), np.nan, dtype=np.float64)
    partial: List[float] = []
    odd = math.nan
    even = math.nan
    total = 0.0

    for k in range(1, n + 1):
        rows = table.level_slice(k)
        joint[rows] = joint_probabilities(
            p, table, correlation, evaluator, rows=rows, pool=pool, n_jobs=n_jobs
        )
        sign = 1.0 if k % 2 == 1 else -1.0
        total += sign * float(np.sum(joint[rows]))
        partial.append(total)

        if convergence is None or k == n or k < 2:
            continue
        if k % 2 == 1:
            odd = total
        else:
            even = total
        if not (math.isnan(odd) or math.isnan(even)) and convergence.is_converged(odd, even):
            return InclusionExclusionResult(
                value=_clamp(0.5 * (odd + even)),
                table=table,
                joint=joint,
                n_evaluated=int(rows.stop),
                levels_completed=k,
                converged=True,
                partial_sums=tuple(partial),
            )

    return InclusionExclusionResult(
        value=_clamp(total),
        table=table,
        joint=joint,
        n_evaluated=len(table),
        levels_completed=n,
        converged=False,
        partial_sums=tuple(partial),
    )


def union_probability(
    probabilities: np.ndarray,
    dependency: Dependency,
    evaluator: JointProbabilityEvaluator,
    *,
    convergence: Optional[ConvergenceConfig] = None,
    n_jobs: int = 1,
) -> float:
    """
    Closed form for named dependence, inclusion-exclusion for a correlation matrix.
    """
    if dependency.is_closed_form:
        return closed_form_union(dependency.kind, probabilities)
    if int(np.asarray(probabilities).shape[0]) == 1:
        return float(probabilities[0])
    with worker_pool(n_jobs) as pool:
        result = union_inclusion_exclusion(
            probabilities,
            dependency.correlation,
            evaluator,
            convergence=convergence,
            pool=pool,
            n_jobs=n_jobs,
        )
    return result.value


def _clamp(x: float) -> float:
    if math.isnan(x):
        return 0.0
    return min(1.0, max(0.0, float(x)))
