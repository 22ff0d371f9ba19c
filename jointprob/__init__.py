"""
Probabilities of combinations of correlated binary events.

This package computes, for N events with marginal probabilities and a
dependence assumption (independent, perfectly positive, perfectly negative,
or a pairwise correlation matrix read through a normal copula), the joint
probability of a subset of events, the probability of their union, and the
mutually exclusive partition into all 2^N - 1 on/off combinations.
"""

from jointprob.combinatorics import (
    IndicatorTable,
    all_indicators,
    binomial_counts,
    find_combinations,
    indicator_table,
)
from jointprob.engines import (
    ConvergenceConfig,
    EnumerationConfig,
    ExclusiveResult,
    InclusionExclusionResult,
    sum_search,
    union_inclusion_exclusion,
)
from jointprob.evaluators import (
    HybridPCMEvaluator,
    JointProbabilityEvaluator,
    OracleEvaluator,
    PCMEvaluator,
    joint_probabilities,
)
from jointprob.normal import bivariate_normal_cdf, standard_z
from jointprob.policies import (
    ClosedFormEvaluator,
    Dependency,
    a_and_b,
    a_given_b,
    a_not_b,
    a_or_b,
    b_given_a,
    b_not_a,
    independent_exclusive,
    independent_joint_probability,
    independent_union,
    negative_exclusive,
    negative_joint_probability,
    negative_union,
    positive_exclusive,
    positive_joint_probability,
    positive_union,
    resolve_dependency,
)
from jointprob.probability import (
    common_cause_adjustment,
    exclusive,
    joint_probability,
    mutually_exclusive_adjustment,
    union,
)

__version__ = "0.1.0"

__all__ = [
    "IndicatorTable",
    "all_indicators",
    "binomial_counts",
    "find_combinations",
    "indicator_table",
    "ConvergenceConfig",
    "EnumerationConfig",
    "ExclusiveResult",
    "InclusionExclusionResult",
    "sum_search",
    "union_inclusion_exclusion",
    "HybridPCMEvaluator",
    "JointProbabilityEvaluator",
    "OracleEvaluator",
    "PCMEvaluator",
    "joint_probabilities",
    "bivariate_normal_cdf",
    "standard_z",
    "ClosedFormEvaluator",
    "Dependency",
    "a_and_b",
    "a_given_b",
    "a_not_b",
    "a_or_b",
    "b_given_a",
    "b_not_a",
    "independent_exclusive",
    "independent_joint_probability",
    "independent_union",
    "negative_exclusive",
    "negative_joint_probability",
    "negative_union",
    "positive_exclusive",
    "positive_joint_probability",
    "positive_union",
    "resolve_dependency",
    "common_cause_adjustment",
    "exclusive",
    "joint_probability",
    "mutually_exclusive_adjustment",
    "union",
]
