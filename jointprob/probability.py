"""
Public entry points.

`dependency` is either a name ("independent", "positive", "negative", with
aliases such as "perfectly_positive") or an N x N correlation matrix. A
correlation matrix is evaluated through a normal copula by `evaluator`, which
defaults to `HybridPCMEvaluator`. `union` applies the inclusion-exclusion early
exit with the default `ConvergenceConfig` unless `tolerance=None` is passed.
"""

from __future__ import annotations

from typing import Any, Optional, Sequence, Tuple, Union

import numpy as np

from jointprob.constraints import (
    validate_correlation_matrix,
    validate_indicator,
    validate_probabilities,
)
from jointprob.engines.config import ConvergenceConfig, EnumerationConfig
from jointprob.engines.exclusive import ExclusiveResult, exclusive_partition
from jointprob.engines.union import union_probability
from jointprob.evaluators import HybridPCMEvaluator, JointProbabilityEvaluator
from jointprob.policies import (
    CORRELATED,
    INDEPENDENT,
    Dependency,
    closed_form_joint_probability,
    closed_form_union,
    common_cause_adjustment_ratio,
    complement_union,
    mutually_exclusive_adjustment_ratio,
    resolve_dependency,
)

Tolerance = Union[None, float, ConvergenceConfig]


def _resolve_evaluator(evaluator: Optional[JointProbabilityEvaluator]) -> JointProbabilityEvaluator:
    if evaluator is None:
        return HybridPCMEvaluator()
    if not isinstance(evaluator, JointProbabilityEvaluator):
        raise TypeError(
            f"evaluator must provide joint_probability(probabilities, indicator, correlation) (got {evaluator!r})"
        )
    return evaluator


def _prepare(
    probabilities: Sequence[float],
    dependency: Any,
    evaluator: Optional[JointProbabilityEvaluator],
    *,
    max_events: Optional[int] = None,
) -> Tuple[np.ndarray, Dependency, JointProbabilityEvaluator]:
    dep = resolve_dependency(dependency)
    ev = _resolve_evaluator(evaluator)
    p = validate_probabilities(probabilities, max_events=max_events)
    if dep.kind == CORRELATED:
        R = validate_correlation_matrix(
            dep.correlation, int(p.shape[0]), require_psd=bool(getattr(ev, "requires_psd", False))
        )
        dep = Dependency(kind=CORRELATED, correlation=R)
    return p, dep, ev


def _enumeration(config: Optional[EnumerationConfig]) -> EnumerationConfig:
    cfg = config if config is not None else EnumerationConfig()
    if not isinstance(cfg, EnumerationConfig):
        raise TypeError(f"config must be an EnumerationConfig (got {cfg!r})")
    cfg.validate()
    return cfg


def joint_probability(
    probabilities: Sequence[float],
    indicator: Optional[Sequence[int]] = None,
    dependency: Any = INDEPENDENT,
    *,
    evaluator: Optional[JointProbabilityEvaluator] = None,
) -> float:
    """
    Probability that every event flagged 1 in `indicator` occurs (all events
    when no indicator is given). Events flagged 0 are unconstrained.
    """
    p, dep, ev = _prepare(probabilities, dependency, evaluator)
    n = int(p.shape[0])
    if indicator is None:
        ind = np.ones(n, dtype=np.int8)
    else:
        ind, _ = validate_indicator(indicator, n)
    if dep.is_closed_form:
        return closed_form_joint_probability(dep.kind, p, ind)
    return float(ev.joint_probability(p, ind, dep.correlation))


def union(
    probabilities: Sequence[float],
    dependency: Any = INDEPENDENT,
    tolerance: Tolerance = ConvergenceConfig(),
    *,
    evaluator: Optional[JointProbabilityEvaluator] = None,
    config: Optional[EnumerationConfig] = None,
) -> float:
    """
    Probability that at least one event occurs.

    `tolerance` controls the inclusion-exclusion early exit for a correlation
    matrix. The default `ConvergenceConfig()` uses absolute 1e-8 and relative
    1e-4; a float is an absolute tolerance; None enumerates every combination.
    """
    cfg = _enumeration(config)
    convergence = ConvergenceConfig.from_tolerance(tolerance)
    dep = resolve_dependency(dependency)
    p, dep, ev = _prepare(
        probabilities,
        dep,
        evaluator,
        max_events=None if dep.is_closed_form else cfg.max_events,
    )
    return union_probability(p, dep, ev, convergence=convergence, n_jobs=cfg.n_jobs)


def exclusive(
    probabilities: Sequence[float],
    dependency: Any = INDEPENDENT,
    tolerance: Tolerance = None,
    *,
    evaluator: Optional[JointProbabilityEvaluator] = None,
    config: Optional[EnumerationConfig] = None,
) -> ExclusiveResult:
    """
    Probabilities of all 2^N - 1 mutually exclusive on/off combinations, in
    indicator table order, together with their indicator rows.

    With a tolerance, enumeration may stop early; the result then lists the
    evaluated combinations plus one all-ones remainder row.
    """
    cfg = _enumeration(config)
    convergence = ConvergenceConfig.from_tolerance(tolerance)
    p, dep, ev = _prepare(probabilities, dependency, evaluator, max_events=cfg.max_events)
    return exclusive_partition(p, dep, ev, convergence=convergence, n_jobs=cfg.n_jobs)


def common_cause_adjustment(
    probabilities: Sequence[float],
    correlation: Optional[Any] = None,
    *,
    dependency: Any = None,
    evaluator: Optional[JointProbabilityEvaluator] = None,
) -> float:
    """
    Ratio P(union) / sum(p). 1 for a single event or when sum(p) == 0.

    Independence is assumed when neither `correlation` nor `dependency` is given.
    """
    if correlation is not None and dependency is not None:
        raise ValueError("Pass either correlation or dependency, not both")
    if correlation is not None:
        dependency = correlation
    elif dependency is None:
        dependency = INDEPENDENT
    p, dep, ev = _prepare(probabilities, dependency, evaluator)
    if int(p.shape[0]) <= 1:
        return 1.0
    if dep.is_closed_form:
        u = closed_form_union(dep.kind, p)
    else:
        u = complement_union(p, dep.correlation, ev)
    return common_cause_adjustment_ratio(p, u)


def mutually_exclusive_adjustment(probabilities: Sequence[float]) -> float:
    """
    1 / sum(p) when sum(p) > 1, else 1.
    """
    p = validate_probabilities(probabilities)
    return mutually_exclusive_adjustment_ratio(p)
