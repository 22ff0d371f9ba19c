"""
Unit tests for dependency policies and adjustment ratios.
"""

from __future__ import annotations

import numpy as np
import pytest

from jointprob import (
    OracleEvaluator,
    PCMEvaluator,
    common_cause_adjustment,
    joint_probability,
    mutually_exclusive_adjustment,
)
from jointprob.policies import (
    ClosedFormEvaluator,
    a_and_b,
    a_given_b,
    a_not_b,
    a_or_b,
    b_given_a,
    b_not_a,
    independent_joint_probability,
    negative_joint_probability,
    positive_exclusive_probability,
    positive_joint_probability,
    resolve_dependency,
)

P4 = [0.25, 0.35, 0.5, 0.5]


def test_two_event_rules_with_correlation() -> None:
    A, B, r = 0.15, 0.62, 0.75
    assert abs(a_and_b(A, B, r) - 0.146934) < 1e-6
    assert abs(a_or_b(A, B, r) - 0.623066) < 1e-6
    assert abs(a_not_b(A, B, r) - 0.003066) < 1e-6
    assert abs(b_not_a(A, B, r) - 0.473066) < 1e-6
    assert abs(a_given_b(A, B, r) - 0.236991) < 1e-6
    assert abs(b_given_a(A, B, r) - 0.979562) < 1e-6


def test_two_event_rules_shortcuts() -> None:
    assert a_and_b(0.3, 0.4) == pytest.approx(0.12)
    assert a_and_b(0.3, 0.4, 1.0) == 0.3
    assert a_and_b(0.3, 0.4, -1.0) == 0.0
    assert a_and_b(0.7, 0.6, -1.0) == pytest.approx(0.3)
    assert a_or_b(0.3, 0.4, 1.0) == pytest.approx(0.4)
    assert a_given_b(0.3, 0.0, 0.5) == 0.0
    assert b_given_a(0.0, 0.4, 0.5) == 0.0


def test_two_event_rules_accept_an_evaluator() -> None:
    exact = a_and_b(0.2, 0.5, 0.4)
    approx = a_and_b(0.2, 0.5, 0.4, evaluator=PCMEvaluator())
    assert abs(exact - approx) < 5e-3
    lo, hi = max(0.0, 0.2 + 0.5 - 1.0), min(0.2, 0.5)
    assert lo <= approx <= hi


def test_two_event_rules_reject_bad_inputs() -> None:
    with pytest.raises(ValueError):
        a_and_b(1.2, 0.5, 0.1)
    with pytest.raises(ValueError):
        a_and_b(0.2, 0.5, 1.5)


def test_closed_form_joint_probabilities() -> None:
    assert abs(independent_joint_probability(P4) - 0.021875) < 1e-12
    assert abs(positive_joint_probability(P4) - 0.25) < 1e-12
    assert negative_joint_probability(P4) == 0.0

    assert abs(independent_joint_probability(P4, [1, 0, 1, 0]) - 0.125) < 1e-12
    assert positive_joint_probability(P4, [0, 1, 1, 0]) == 0.35
    assert abs(negative_joint_probability(P4, [0, 0, 1, 1])) < 1e-12
    assert abs(negative_joint_probability([0.7, 0.6], [1, 1]) - 0.3) < 1e-12

    assert abs(joint_probability(P4) - 0.021875) < 1e-12
    assert joint_probability(P4, dependency="perfectly_positive") == 0.25
    assert joint_probability(P4, [1, 1, 0, 0], "negative") == 0.0


def test_joint_probability_with_correlation_matrix() -> None:
    R = np.eye(4)
    assert abs(joint_probability(P4, [1, 1, 1, 1], R) - 0.021875) < 1e-9
    jp = joint_probability(P4, [1, 0, 0, 1], R, evaluator=OracleEvaluator())
    assert abs(jp - 0.125) < 1e-9


def test_positive_exclusive_probability() -> None:
    assert abs(positive_exclusive_probability(P4, [0, 0, 1, 1]) - 0.15) < 1e-12
    assert positive_exclusive_probability(P4, [1, 0, 0, 0]) == 0.0
    assert positive_exclusive_probability(P4, [1, 1, 1, 1]) == 0.25


def test_resolve_dependency_names_and_matrices() -> None:
    assert resolve_dependency("Independent").kind == "independent"
    assert resolve_dependency(" perfectly_positive ").kind == "positive"
    assert resolve_dependency("PerfectlyNegative").kind == "negative"
    dep = resolve_dependency(np.eye(3))
    assert dep.kind == "correlated"
    assert dep.correlation.shape == (3, 3)
    with pytest.raises(ValueError):
        resolve_dependency("sideways")
    with pytest.raises(TypeError):
        resolve_dependency(None)
    with pytest.raises(ValueError):
        ClosedFormEvaluator(np.eye(2))


def test_common_cause_adjustment() -> None:
    assert abs(common_cause_adjustment(P4) - 0.878125 / 1.6) < 1e-12
    assert abs(common_cause_adjustment(P4, dependency="positive") - 0.5 / 1.6) < 1e-12
    assert abs(common_cause_adjustment(P4, np.eye(4)) - 0.878125 / 1.6) < 1e-9
    assert common_cause_adjustment([0.3]) == 1.0
    assert common_cause_adjustment([0.0, 0.0]) == 1.0

    R = np.full((4, 4), -0.33)
    np.fill_diagonal(R, 1.0)
    ratio = common_cause_adjustment(P4, R, evaluator=OracleEvaluator())
    assert abs(ratio - 0.985016583 / 1.6) < 1e-4

    with pytest.raises(ValueError):
        common_cause_adjustment(P4, np.eye(4), dependency="independent")


def test_mutually_exclusive_adjustment() -> None:
    assert abs(mutually_exclusive_adjustment(P4) - 1.0 / 1.6) < 1e-12
    assert mutually_exclusive_adjustment([0.1, 0.2]) == 1.0
    assert mutually_exclusive_adjustment([0.9]) == 1.0
    with pytest.raises(ValueError):
        mutually_exclusive_adjustment([0.5, 1.5])
