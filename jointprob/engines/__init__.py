"""
Inclusion-exclusion engines for unions and exclusive partitions.
"""

from jointprob.engines.config import ConvergenceConfig, EnumerationConfig
from jointprob.engines.exclusive import ExclusiveResult, exclusive_partition, sum_search
from jointprob.engines.union import (
    InclusionExclusionResult,
    union_inclusion_exclusion,
    union_probability,
)

__all__ = [
    "ConvergenceConfig",
    "EnumerationConfig",
    "ExclusiveResult",
    "InclusionExclusionResult",
    "exclusive_partition",
    "sum_search",
    "union_inclusion_exclusion",
    "union_probability",
]
