"""
Dependency policies: closed forms for independent and perfectly dependent
events, the two-event rules, and the adjustment ratios.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterator, Optional, Sequence, Tuple

import numpy as np

from jointprob.combinatorics import find_combinations
from jointprob.constraints import frechet_bounds, validate_probabilities
from jointprob.evaluators import JointProbabilityEvaluator, OracleEvaluator
from jointprob.utils import masked_max, masked_min, masked_product, masked_sum

INDEPENDENT = "independent"
POSITIVE = "positive"
NEGATIVE = "negative"
CORRELATED = "correlated"

_DEPENDENCY_ALIASES = {
    "independent": INDEPENDENT,
    "independence": INDEPENDENT,
    "positive": POSITIVE,
    "perfectly_positive": POSITIVE,
    "perfectly positive": POSITIVE,
    "perfectlypositive": POSITIVE,
    "negative": NEGATIVE,
    "perfectly_negative": NEGATIVE,
    "perfectly negative": NEGATIVE,
    "perfectlynegative": NEGATIVE,
}


@dataclass(frozen=True)
class Dependency:
    """
    A resolved dependence assumption.

    `kind` is one of "independent", "positive", "negative" or "correlated";
    only the latter carries a correlation matrix.
    """

    kind: str
    correlation: Optional[np.ndarray] = None

    @property
    def is_closed_form(self) -> bool:
        return self.kind != CORRELATED


def resolve_dependency(dependency: Any) -> Dependency:
    """
    Map a dependency name (or alias), a correlation matrix, or a `Dependency`
    to a `Dependency`.
    """
    if isinstance(dependency, Dependency):
        return dependency
    if isinstance(dependency, str):
        key = str(dependency).strip().lower()
        if key not in _DEPENDENCY_ALIASES:
            raise ValueError(
                f"Unknown dependency {dependency!r}; expected one of "
                "'independent', 'positive', 'negative' or a correlation matrix"
            )
        return Dependency(kind=_DEPENDENCY_ALIASES[key])
    if dependency is None:
        raise TypeError("dependency must be a name or a correlation matrix (got None)")
    try:
        R = np.array(dependency, dtype=float)
    except (TypeError, ValueError) as e:
        raise TypeError(f"dependency must be a name or a correlation matrix (got {dependency!r})") from e
    if R.ndim != 2:
        raise ValueError(f"Correlation matrix must be 2D (got shape {R.shape})")
    return Dependency(kind=CORRELATED, correlation=R)


# ---------------------------------------------------------------------------
# Two events
# ---------------------------------------------------------------------------


def _check_pair(a: float, b: float, rho: float) -> Tuple[float, float, float]:
    a = float(a)
    b = float(b)
    rho = float(rho)
    for name, v in (("A", a), ("B", b)):
        if not (0.0 <= v <= 1.0):
            raise ValueError(f"Probability {name} must be in [0, 1] (got {v!r})")
    if not (-1.0 <= rho <= 1.0):
        raise ValueError(f"rho must be in [-1, 1] (got {rho!r})")
    return a, b, rho


def a_and_b(
    a: float,
    b: float,
    rho: float = 0.0,
    *,
    evaluator: Optional[JointProbabilityEvaluator] = None,
) -> float:
    """
    P(A and B) for events with normal-copula correlation rho.
    """
    a, b, rho = _check_pair(a, b, rho)
    if rho == 0.0:
        return a * b
    if rho == 1.0:
        return min(a, b)
    if rho == -1.0:
        return max(0.0, a + b - 1.0)
    ev = evaluator if evaluator is not None else OracleEvaluator()
    R = np.array([[1.0, rho], [rho, 1.0]])
    jp = float(ev.joint_probability(np.array([a, b]), np.array([1, 1], dtype=np.int8), R))
    lo, hi = frechet_bounds(a, b)
    return min(hi, max(lo, jp))


def a_or_b(a: float, b: float, rho: float = 0.0, *, evaluator: Optional[JointProbabilityEvaluator] = None) -> float:
    return float(a) + float(b) - a_and_b(a, b, rho, evaluator=evaluator)


def a_not_b(a: float, b: float, rho: float = 0.0, *, evaluator: Optional[JointProbabilityEvaluator] = None) -> float:
    return max(0.0, float(a) - a_and_b(a, b, rho, evaluator=evaluator))


def b_not_a(a: float, b: float, rho: float = 0.0, *, evaluator: Optional[JointProbabilityEvaluator] = None) -> float:
    return max(0.0, float(b) - a_and_b(a, b, rho, evaluator=evaluator))


def a_given_b(a: float, b: float, rho: float = 0.0, *, evaluator: Optional[JointProbabilityEvaluator] = None) -> float:
    """
    P(A | B); 0 when P(B) = 0.
    """
    if float(b) == 0.0:
        _check_pair(a, b, rho)
        return 0.0
    return a_and_b(a, b, rho, evaluator=evaluator) / float(b)


def b_given_a(a: float, b: float, rho: float = 0.0, *, evaluator: Optional[JointProbabilityEvaluator] = None) -> float:
    """
    P(B | A); 0 when P(A) = 0.
    """
    if float(a) == 0.0:
        _check_pair(a, b, rho)
        return 0.0
    return a_and_b(a, b, rho, evaluator=evaluator) / float(a)


# ---------------------------------------------------------------------------
# N events, closed forms
# ---------------------------------------------------------------------------


def independent_joint_probability(probabilities: Sequence[float], indicator: Optional[Sequence[int]] = None) -> float:
    return masked_product(probabilities, indicator)


def positive_joint_probability(probabilities: Sequence[float], indicator: Optional[Sequence[int]] = None) -> float:
    return masked_min(probabilities, indicator)


def negative_joint_probability(probabilities: Sequence[float], indicator: Optional[Sequence[int]] = None) -> float:
    """
    Lower Frechet bound max(0, sum(p) - (k - 1)) over the k flagged events;
    max(0, A + B - 1) for a pair.
    """
    p = np.asarray(probabilities, dtype=float)
    k = int(p.shape[0]) if indicator is None else int(np.sum(np.asarray(indicator) == 1))
    if k == 0:
        return 1.0
    return max(0.0, masked_sum(p, indicator) - float(k - 1))


def independent_union(probabilities: Sequence[float]) -> float:
    p = np.asarray(probabilities, dtype=float)
    if p.shape[0] == 1:
        return float(p[0])
    return float(1.0 - np.prod(1.0 - p))


def positive_union(probabilities: Sequence[float]) -> float:
    return masked_max(probabilities)


def negative_union(probabilities: Sequence[float]) -> float:
    return min(1.0, masked_sum(probabilities))


def independent_exclusive_probability(probabilities: Sequence[float], indicator: Sequence[int]) -> float:
    """
    P(exactly the flagged events occur) under independence.
    """
    p = np.asarray(probabilities, dtype=float)
    on = np.asarray(indicator) == 1
    return float(np.prod(np.where(on, p, 1.0 - p)))


def positive_exclusive_probability(probabilities: Sequence[float], indicator: Sequence[int]) -> float:
    """
    P(exactly the flagged events occur) under perfect positive dependence:
    the gap between the smallest "on" and the largest "off" marginal.
    """
    ind = np.asarray(indicator)
    lo = masked_min(probabilities, ind)
    hi = masked_max(probabilities, 1 - ind)
    return max(lo - hi, 0.0)


def require_disjoint(probabilities: Sequence[float]) -> None:
    """
    Raise ValueError unless perfectly negative events with these marginals can
    be disjoint, i.e. sum(p) <= 1.
    """
    p = np.asarray(probabilities, dtype=float)
    total = float(np.sum(p))
    if total > 1.0 + 1e-12:
        raise ValueError(
            "Perfectly negative dependence does not define a unique exclusive partition "
            f"when sum(p) > 1 (got {total!r})"
        )


def negative_exclusive_probability(probabilities: Sequence[float], indicator: Sequence[int]) -> float:
    """
    P(exactly the flagged events occur) under perfect negative dependence with
    sum(p) <= 1: the events are disjoint, so only single-event rows carry mass.
    """
    p = np.asarray(probabilities, dtype=float)
    require_disjoint(p)
    on = np.flatnonzero(np.asarray(indicator) == 1)
    if on.size != 1:
        return 0.0
    return float(p[int(on[0])])


def _iter_indicators(n: int) -> Iterator[np.ndarray]:
    for k in range(1, n + 1):
        for combo in find_combinations(k, n):
            ind = np.zeros(n, dtype=np.int8)
            ind[list(combo)] = 1
            yield ind


def independent_exclusive(probabilities: Sequence[float]) -> np.ndarray:
    """
    All 2^N - 1 exclusive probabilities under independence, in table order.
    """
    p = validate_probabilities(probabilities)
    return np.asarray([independent_exclusive_probability(p, ind) for ind in _iter_indicators(int(p.shape[0]))])


def positive_exclusive(probabilities: Sequence[float]) -> np.ndarray:
    """
    All 2^N - 1 exclusive probabilities under perfect positive dependence, in table order.
    """
    p = validate_probabilities(probabilities)
    return np.asarray([positive_exclusive_probability(p, ind) for ind in _iter_indicators(int(p.shape[0]))])


def negative_exclusive(probabilities: Sequence[float]) -> np.ndarray:
    """
    All 2^N - 1 exclusive probabilities under perfect negative dependence, in
    table order. Raises ValueError when sum(p) > 1.
    """
    p = validate_probabilities(probabilities)
    require_disjoint(p)
    return np.asarray([negative_exclusive_probability(p, ind) for ind in _iter_indicators(int(p.shape[0]))])


_CLOSED_FORM_JOINT = {
    INDEPENDENT: independent_joint_probability,
    POSITIVE: positive_joint_probability,
    NEGATIVE: negative_joint_probability,
}

_CLOSED_FORM_UNION = {
    INDEPENDENT: independent_union,
    POSITIVE: positive_union,
    NEGATIVE: negative_union,
}


def closed_form_joint_probability(kind: str, probabilities: Sequence[float], indicator: Optional[Sequence[int]] = None) -> float:
    return _CLOSED_FORM_JOINT[resolve_dependency(kind).kind](probabilities, indicator)


def closed_form_union(kind: str, probabilities: Sequence[float]) -> float:
    return _CLOSED_FORM_UNION[resolve_dependency(kind).kind](probabilities)


@dataclass(frozen=True)
class ClosedFormEvaluator:
    """
    Evaluator backed by a closed-form dependence assumption; the correlation
    argument is ignored. Lets the inclusion-exclusion engines run over the
    independent and perfectly dependent cases.
    """

    dependency: str = INDEPENDENT
    requires_psd: bool = False

    def __post_init__(self) -> None:
        kind = resolve_dependency(self.dependency).kind
        if kind == CORRELATED:
            raise ValueError("ClosedFormEvaluator needs a named dependency, not a correlation matrix")
        object.__setattr__(self, "dependency", kind)

    def joint_probability(
        self,
        probabilities: np.ndarray,
        indicator: np.ndarray,
        correlation: Optional[np.ndarray] = None,
    ) -> float:
        return _CLOSED_FORM_JOINT[self.dependency](probabilities, indicator)


# ---------------------------------------------------------------------------
# Adjustments
# ---------------------------------------------------------------------------


def complement_union(
    probabilities: Sequence[float],
    correlation: np.ndarray,
    evaluator: JointProbabilityEvaluator,
) -> float:
    """
    P(at least one event) as 1 - P(no event occurs).

    The complements 1 - p_i keep the same normal-copula correlation, so a
    single joint evaluation of the all-ones indicator is enough.
    """
    p = np.asarray(probabilities, dtype=float)
    ones = np.ones(int(p.shape[0]), dtype=np.int8)
    none = float(evaluator.joint_probability(1.0 - p, ones, correlation))
    return min(1.0, max(0.0, 1.0 - none))


def common_cause_adjustment_ratio(probabilities: Sequence[float], union_probability: float) -> float:
    p = np.asarray(probabilities, dtype=float)
    if p.shape[0] <= 1:
        return 1.0
    total = float(np.sum(p))
    if total == 0.0:
        return 1.0
    return float(union_probability) / total


def mutually_exclusive_adjustment_ratio(probabilities: Sequence[float]) -> float:
    p = np.asarray(probabilities, dtype=float)
    if p.shape[0] <= 1:
        return 1.0
    total = float(np.sum(p))
    if total <= 1.0:
        return 1.0
    return 1.0 / total
