"""
Standard normal primitives.

Thin wrappers over SciPy. The quantile is clamped at the extreme tails so that
probabilities of exactly 0 or 1 map to large finite thresholds instead of
infinities; the conditioning recursion relies on this.
"""

from __future__ import annotations

import math

from scipy import special

Z_LOWER = -8.2220822161304348
Z_UPPER = 8.2095361516013856
TAIL_LIMIT = 1e-16


def standard_z(probability: float) -> float:
    """
    Quantile of the standard normal, clamped at 1e-16 from either tail.
    """
    p = float(probability)
    if not (0.0 <= p <= 1.0):
        raise ValueError(f"Probability must be between 0 and 1 (got {p!r})")
    if p <= TAIL_LIMIT:
        return Z_LOWER
    if p >= 1.0 - TAIL_LIMIT:
        return Z_UPPER
    return float(special.ndtri(p))


def standard_cdf(z: float) -> float:
    return float(special.ndtr(z))


def _owens_t(h: float, a: float) -> float:
    if h == 0.0:
        return math.atan(a) / (2.0 * math.pi)
    if math.isinf(a):
        # T(h, +-inf) = +-(1 - Phi(|h|)) / 2
        return math.copysign(0.5 * standard_cdf(-abs(h)), a)
    return float(special.owens_t(h, a))


def bivariate_normal_cdf(h: float, k: float, rho: float) -> float:
    """
    P(X <= h, Y <= k) for a standard bivariate normal with correlation rho.

    Owen's T-function representation is used:
      Phi2 = (Phi(h) + Phi(k)) / 2 - T(h, a_h) - T(k, a_k) - beta
    with a_h = (k - rho h) / (h sqrt(1 - rho^2)), symmetrically for a_k, and
    beta = 1/2 when hk < 0 or (hk = 0 and h + k < 0), else 0.
    """
    h = float(h)
    k = float(k)
    rho = float(rho)
    if rho >= 1.0:
        return standard_cdf(min(h, k))
    if rho <= -1.0:
        return max(0.0, standard_cdf(h) - standard_cdf(-k))
    if rho == 0.0:
        return standard_cdf(h) * standard_cdf(k)
    if h == 0.0 and k == 0.0:
        return 0.25 + math.asin(rho) / (2.0 * math.pi)

    s = math.sqrt((1.0 - rho) * (1.0 + rho))
    if h == 0.0:
        a_h = math.copysign(math.inf, k - rho * h)
    else:
        a_h = (k - rho * h) / (h * s)
    if k == 0.0:
        a_k = math.copysign(math.inf, h - rho * k)
    else:
        a_k = (h - rho * k) / (k * s)

    hk = h * k
    beta = 0.5 if (hk < 0.0 or (hk == 0.0 and h + k < 0.0)) else 0.0
    p = 0.5 * (standard_cdf(h) + standard_cdf(k)) - _owens_t(h, a_h) - _owens_t(k, a_k) - beta
    return float(min(1.0, max(0.0, p)))
