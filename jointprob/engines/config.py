"""
Configuration objects for the inclusion-exclusion engines.

In this module, configuration dataclasses are provided as a stable, typed
surface for convergence control and enumeration limits.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Union


@dataclass(frozen=True)
class ConvergenceConfig:
    """
    Early-exit tolerances for level-by-level inclusion-exclusion.

    Enumeration stops after a completed level once the latest odd-level and
    even-level partial sums satisfy
    |odd - even| <= absolute_tol + relative_tol * min(odd, even).
    """

    absolute_tol: float = 1e-8
    relative_tol: float = 1e-4

    def validate(self) -> None:
        """
        Configuration validation is performed.
        """
        if float(self.absolute_tol) < 0.0 or float(self.relative_tol) < 0.0:
            raise ValueError("absolute_tol and relative_tol must be non-negative")

    def threshold(self, odd: float, even: float) -> float:
        return float(self.absolute_tol) + float(self.relative_tol) * min(float(odd), float(even))

    def is_converged(self, odd: float, even: float) -> bool:
        return abs(float(odd) - float(even)) <= self.threshold(odd, even)

    @classmethod
    def from_tolerance(
        cls, tolerance: Union[None, float, "ConvergenceConfig"]
    ) -> Optional["ConvergenceConfig"]:
        """
        None disables early exit, a float is a purely absolute tolerance and a
        config is validated and returned as is.
        """
        if tolerance is None:
            return None
        if isinstance(tolerance, ConvergenceConfig):
            cfg = tolerance
        elif isinstance(tolerance, bool):
            raise TypeError("tolerance must be None, a float or a ConvergenceConfig")
        elif isinstance(tolerance, (int, float)):
            cfg = cls(absolute_tol=float(tolerance), relative_tol=0.0)
        else:
            raise TypeError(
                f"tolerance must be None, a float or a ConvergenceConfig (got {tolerance!r})"
            )
        cfg.validate()
        return cfg


@dataclass(frozen=True)
class EnumerationConfig:
    """
    Limits and parallelism for indicator-table enumeration.
    """

    n_jobs: int = 1
    max_events: int = 20

    def validate(self) -> None:
        """
        Configuration validation is performed.
        """
        if int(self.n_jobs) <= 0:
            raise ValueError("n_jobs must be positive")
        if int(self.max_events) <= 0:
            raise ValueError("max_events must be positive")
