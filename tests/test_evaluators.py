"""
Unit tests for the joint-probability evaluators.
"""

from __future__ import annotations

import numpy as np
import pytest

from jointprob.combinatorics import indicator_table
from jointprob.evaluators import (
    HybridPCMEvaluator,
    JointProbabilityEvaluator,
    OracleEvaluator,
    PCMEvaluator,
    joint_probabilities,
)
from jointprob.normal import bivariate_normal_cdf, standard_z

P4 = np.array([0.25, 0.35, 0.5, 0.5])


def _equicorrelated(n: int, r: float) -> np.ndarray:
    R = np.full((n, n), float(r))
    np.fill_diagonal(R, 1.0)
    return R


def test_evaluators_satisfy_protocol() -> None:
    for ev in (PCMEvaluator(), HybridPCMEvaluator(), OracleEvaluator()):
        assert isinstance(ev, JointProbabilityEvaluator)
    assert OracleEvaluator().requires_psd
    assert not PCMEvaluator().requires_psd


def test_pcm_zero_correlation_is_independent_product() -> None:
    ev = PCMEvaluator()
    R = np.eye(4)
    assert abs(ev.joint_probability(P4, np.ones(4, dtype=np.int8), R) - 0.021875) < 1e-9
    on_ac = np.array([1, 0, 1, 0], dtype=np.int8)
    assert abs(ev.joint_probability(P4, on_ac, R) - 0.125) < 1e-9
    on_d = np.array([0, 0, 0, 1], dtype=np.int8)
    assert abs(ev.joint_probability(P4, on_d, R) - 0.5) < 1e-9


def test_pcm_near_unit_correlation_approaches_minimum() -> None:
    jp = PCMEvaluator().joint_probability(P4, np.ones(4, dtype=np.int8), _equicorrelated(4, 0.999))
    assert abs(jp - 0.25) < 2.5e-2
    assert 0.0 <= jp <= 1.0


def test_pcm_does_not_mutate_correlation() -> None:
    R = _equicorrelated(4, 0.4)
    before = R.copy()
    PCMEvaluator().joint_probability(P4, np.array([1, 1, 0, 1], dtype=np.int8), R)
    HybridPCMEvaluator().joint_probability(P4, np.array([1, 1, 0, 1], dtype=np.int8), R)
    assert np.array_equal(R, before)


def test_pcm_conditional_marginals_multiply_to_joint() -> None:
    ev = PCMEvaluator()
    R = _equicorrelated(4, 0.3)
    ind = np.ones(4, dtype=np.int8)
    cond = ev.conditional_marginals(P4, ind, R)
    assert cond.shape == (4,)
    assert abs(cond[0] - 0.25) < 1e-12
    assert abs(float(np.prod(cond)) - ev.joint_probability(P4, ind, R)) < 1e-12


def test_pcm_two_events_positive_correlation_increases_joint() -> None:
    R = _equicorrelated(2, 0.5)
    p = np.array([0.3, 0.4])
    jp = PCMEvaluator().joint_probability(p, np.ones(2, dtype=np.int8), R)
    assert 0.12 < jp <= 0.3


def test_hybrid_pcm_is_exact_for_two_events() -> None:
    p = np.array([0.15, 0.62])
    R = _equicorrelated(2, 0.75)
    jp = HybridPCMEvaluator().joint_probability(p, np.ones(2, dtype=np.int8), R)
    exact = bivariate_normal_cdf(standard_z(0.15), standard_z(0.62), 0.75)
    assert abs(jp - exact) < 1e-8
    assert abs(jp - 0.146934) < 1e-6


def test_hybrid_pcm_four_events() -> None:
    ev = HybridPCMEvaluator()
    ones = np.ones(4, dtype=np.int8)
    assert abs(ev.joint_probability(P4, ones, np.eye(4)) - 0.021875) < 1e-6
    assert abs(ev.joint_probability(P4, ones, _equicorrelated(4, 0.999)) - 0.25) < 1e-4
    assert abs(ev.joint_probability(P4, ones, _equicorrelated(4, -0.33)) - 6.27974351606123e-14) < 1e-5


def test_oracle_joint_probabilities() -> None:
    ev = OracleEvaluator()
    ones = np.ones(4, dtype=np.int8)
    assert abs(ev.joint_probability(P4, ones, np.eye(4)) - 0.021875) < 1e-5
    assert abs(ev.joint_probability(P4, ones, _equicorrelated(4, 0.999)) - 0.25) < 1e-3
    assert abs(ev.joint_probability(P4, ones, _equicorrelated(4, -0.33))) < 1e-5
    assert ev.joint_probability(P4, np.zeros(4, dtype=np.int8), np.eye(4)) == 1.0
    assert abs(ev.joint_probability(P4, np.array([0, 1, 0, 0]), np.eye(4)) - 0.35) < 1e-12


def test_oracle_is_deterministic_for_a_seed() -> None:
    ev = OracleEvaluator(seed=2024)
    R = _equicorrelated(4, 0.2)
    ones = np.ones(4, dtype=np.int8)
    assert ev.joint_probability(P4, ones, R) == ev.joint_probability(P4, ones, R)


def test_joint_probabilities_covers_table_in_row_order() -> None:
    t = indicator_table(4)
    R = _equicorrelated(4, 0.2)
    ev = PCMEvaluator()
    out = joint_probabilities(P4, t, R, ev)
    assert out.shape == (15,)
    assert np.allclose(out[:4], P4)
    for i in (4, 9, 12, 14):
        assert out[i] == ev.joint_probability(P4, t.row(i), R)

    level2 = joint_probabilities(P4, t, R, ev, rows=t.level_slice(2))
    assert np.array_equal(level2, out[4:10])


def test_joint_probabilities_bounded_by_smallest_marginal() -> None:
    t = indicator_table(4)
    out = joint_probabilities(P4, t, _equicorrelated(4, 0.6), PCMEvaluator())
    for row, jp in enumerate(out):
        on = t.row(row) == 1
        assert jp <= float(np.min(P4[on])) + 1e-9
