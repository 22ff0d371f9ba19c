"""
Unit tests for union probabilities and inclusion-exclusion early exit.
"""

from __future__ import annotations

import numpy as np
import pytest

from jointprob import (
    ConvergenceConfig,
    HybridPCMEvaluator,
    OracleEvaluator,
    PCMEvaluator,
    union,
    union_inclusion_exclusion,
)
from jointprob.policies import ClosedFormEvaluator

P4 = [0.25, 0.35, 0.5, 0.5]


def _equicorrelated(n: int, r: float) -> np.ndarray:
    R = np.full((n, n), float(r))
    np.fill_diagonal(R, 1.0)
    return R


def test_closed_form_unions() -> None:
    assert abs(union(P4) - 0.878125) < 1e-12
    assert union(P4, "positive") == 0.5
    assert union(P4, "negative") == 1.0
    assert abs(union([0.1, 0.2], "negative") - 0.3) < 1e-12
    assert union([0.3]) == 0.3


@pytest.mark.parametrize("n", [1, 2, 3, 5, 8])
def test_independent_union_matches_de_morgan(n: int) -> None:
    rng = np.random.default_rng(n)
    p = rng.uniform(0.0, 0.6, size=n)
    expected = 1.0 - float(np.prod(1.0 - p))
    assert abs(union(p) - expected) < 1e-9
    assert abs(union(p, np.eye(n), tolerance=None) - expected) < 1e-9


def test_scenario_two_events_zero_correlation() -> None:
    assert abs(union([0.25, 0.35], np.eye(2)) - 0.5125) < 1e-9


def test_union_with_zero_correlation_oracle() -> None:
    assert abs(union(P4, np.eye(4), evaluator=OracleEvaluator()) - 0.878125) < 1e-5


def test_union_with_negative_correlation() -> None:
    R = _equicorrelated(4, -0.33)
    assert abs(union(P4, R, evaluator=OracleEvaluator()) - 0.985016583) < 1e-4
    assert abs(union(P4, R) - 0.985016583) < 1e-3
    assert union(P4, R) == union(P4, R, evaluator=HybridPCMEvaluator())
    assert abs(union(P4, R, evaluator=PCMEvaluator()) - 0.985016583) < 2e-3


def test_union_with_near_unit_correlation_approaches_max() -> None:
    R = _equicorrelated(4, 0.999)
    assert abs(union(P4, R, evaluator=OracleEvaluator()) - 0.5) < 1e-2


def test_inclusion_exclusion_over_closed_forms() -> None:
    p = np.asarray(P4)
    ind = union_inclusion_exclusion(p, None, ClosedFormEvaluator("independent"))
    assert abs(ind.value - 0.878125) < 1e-12
    assert ind.is_complete
    assert not ind.converged
    assert ind.n_evaluated == 15
    assert len(ind.partial_sums) == 4
    assert abs(ind.partial_sums[0] - 1.6) < 1e-12

    pos = union_inclusion_exclusion(p, None, ClosedFormEvaluator("positive"))
    assert abs(pos.value - 0.5) < 1e-12


def test_early_exit_evaluates_fewer_rows() -> None:
    n = 10
    p = np.full(n, 0.01)
    exact = 1.0 - 0.99**n

    res = union_inclusion_exclusion(p, np.eye(n), PCMEvaluator(), convergence=ConvergenceConfig())
    assert res.converged
    assert not res.is_complete
    assert res.levels_completed == 4
    assert res.n_evaluated == 10 + 45 + 120 + 210
    assert res.n_evaluated < 2**n - 1
    assert np.all(np.isnan(res.joint[res.n_evaluated :]))
    assert abs(res.value - exact) < 1e-5

    full = union(p, np.eye(n), tolerance=None)
    assert abs(full - exact) < 1e-9
    assert abs(union(p, np.eye(n), tolerance=ConvergenceConfig()) - full) < 1e-5


def test_float_tolerance_is_absolute_only() -> None:
    n = 10
    p = np.full(n, 0.01)
    cfg = ConvergenceConfig.from_tolerance(1e-8)
    assert cfg.absolute_tol == 1e-8
    assert cfg.relative_tol == 0.0

    res = union_inclusion_exclusion(p, np.eye(n), PCMEvaluator(), convergence=cfg)
    assert res.converged
    assert res.levels_completed == 6
    assert abs(res.value - (1.0 - 0.99**n)) < 1e-7
    assert abs(union(p, np.eye(n), tolerance=1e-8, evaluator=PCMEvaluator()) - res.value) < 1e-15


def test_unconverged_tolerance_completes_enumeration() -> None:
    res = union_inclusion_exclusion(
        np.asarray(P4), _equicorrelated(4, 0.3), PCMEvaluator(), convergence=ConvergenceConfig(0.0, 0.0)
    )
    assert res.is_complete
    assert not res.converged
    assert res.n_evaluated == 15
    assert not np.any(np.isnan(res.joint))


def test_convergence_config_validation() -> None:
    assert ConvergenceConfig.from_tolerance(None) is None
    with pytest.raises(ValueError):
        ConvergenceConfig.from_tolerance(-1.0)
    with pytest.raises(TypeError):
        ConvergenceConfig.from_tolerance("tight")


class _CountingEvaluator:
    requires_psd = False

    def __init__(self) -> None:
        self.calls = 0

    def joint_probability(self, probabilities: np.ndarray, indicator: np.ndarray, correlation: np.ndarray) -> float:
        self.calls += 1
        return PCMEvaluator().joint_probability(probabilities, indicator, correlation)


def test_default_union_exits_early() -> None:
    n = 10
    p = np.full(n, 0.01)
    exact = 1.0 - 0.99**n

    ev = _CountingEvaluator()
    value = union(p, np.eye(n), evaluator=ev)
    # Singletons reuse the marginal and never reach the evaluator.
    assert ev.calls == 45 + 120 + 210
    assert n + ev.calls < 2**n - 1
    assert abs(value - exact) < 1e-5

    ev = _CountingEvaluator()
    value = union(p, np.eye(n), tolerance=None, evaluator=ev)
    assert n + ev.calls == 2**n - 1
    assert abs(value - exact) < 1e-9
