"""
Special Functions
=================
Log-gamma, incomplete beta and inverse beta CDF used by the evidence
fusion model.

    ln Gamma(z)   Lanczos approximation (g = 7, 9 coefficients),
                  reflection formula for z < 0.5
    I_x(a, b)     regularized incomplete beta via modified Lentz
                  continued fraction
    I^-1_q(a, b)  60-step bisection on [0, 1]

The inverse is memoized in a BetaInverseCache. Keys are (q, a, b) formatted
to 4 decimals, so two calls that agree to 4 decimals share one result.
"""

import logging
import math
from typing import Dict, Optional, Tuple

from .config import DEFAULT_CONFIG

logger = logging.getLogger(__name__)

LANCZOS_G = 7
LANCZOS_COEFFICIENTS = (
    0.99999999999980993,
    676.5203681218851,
    -1259.1392167224028,
    771.32342877765313,
    -176.61502916214059,
    12.507343278686905,
    -0.13857109526572012,
    9.984369578019572e-6,
    1.5056327351493116e-7,
)

FPMIN = 1e-30


def log_gamma(z: float) -> float:
    """Natural log of the Gamma function."""
    if z < 0.5:
        # Reflection: Gamma(z) Gamma(1-z) = pi / sin(pi z)
        return math.log(math.pi) - math.log(math.sin(math.pi * z)) - log_gamma(1.0 - z)
    z_minus = z - 1.0
    x = LANCZOS_COEFFICIENTS[0]
    for i in range(1, len(LANCZOS_COEFFICIENTS)):
        x += LANCZOS_COEFFICIENTS[i] / (z_minus + i)
    t = z_minus + LANCZOS_G + 0.5
    return 0.5 * math.log(2.0 * math.pi) + (z_minus + 0.5) * math.log(t) - t + math.log(x)


def continued_fraction_beta(
    a: float,
    b: float,
    x: float,
    max_terms: int = DEFAULT_CONFIG.solver.continued_fraction_terms,
    eps: float = DEFAULT_CONFIG.solver.continued_fraction_eps,
) -> float:
    """Continued fraction for the incomplete beta function (modified Lentz).

    Stops after max_terms or when a convergent changes by less than eps.
    Denominators are clamped to FPMIN.
    """
    qab = a + b
    qap = a + 1.0
    qam = a - 1.0
    c = 1.0
    d = 1.0 - qab * x / qap
    if abs(d) < FPMIN:
        d = FPMIN
    d = 1.0 / d
    h = d
    for m in range(1, max_terms + 1):
        m2 = 2 * m
        # Even step
        aa = m * (b - m) * x / ((qam + m2) * (a + m2))
        d = 1.0 + aa * d
        if abs(d) < FPMIN:
            d = FPMIN
        c = 1.0 + aa / c
        if abs(c) < FPMIN:
            c = FPMIN
        d = 1.0 / d
        h *= d * c
        # Odd step
        aa = -(a + m) * (qab + m) * x / ((a + m2) * (qap + m2))
        d = 1.0 + aa * d
        if abs(d) < FPMIN:
            d = FPMIN
        c = 1.0 + aa / c
        if abs(c) < FPMIN:
            c = FPMIN
        d = 1.0 / d
        delta = d * c
        h *= delta
        if abs(delta - 1.0) < eps:
            break
    return h


def regularized_incomplete_beta(x: float, a: float, b: float) -> float:
    """Regularized incomplete beta I_x(a, b), the Beta(a, b) CDF at x."""
    if x <= 0.0:
        return 0.0
    if x >= 1.0:
        return 1.0
    ln_beta = log_gamma(a + b) - log_gamma(a) - log_gamma(b)
    bt = math.exp(ln_beta + a * math.log(x) + b * math.log(1.0 - x))
    if x < (a + 1.0) / (a + b + 2.0):
        return bt * continued_fraction_beta(a, b, x) / a
    return 1.0 - bt * continued_fraction_beta(b, a, 1.0 - x) / b


class BetaInverseCache:
    """Append-only memo for beta_inverse_cdf.

    One instance is owned by each PlanningEngine; it lives as long as the
    engine and is only emptied by an explicit clear().
    """

    def __init__(self):
        self._values: Dict[Tuple[str, str, str], float] = {}

    @staticmethod
    def key(q: float, a: float, b: float) -> Tuple[str, str, str]:
        return (f"{q:.4f}", f"{a:.4f}", f"{b:.4f}")

    def get(self, q: float, a: float, b: float) -> Optional[float]:
        return self._values.get(self.key(q, a, b))

    def put(self, q: float, a: float, b: float, value: float) -> None:
        self._values[self.key(q, a, b)] = value

    def clear(self) -> None:
        self._values.clear()

    def __len__(self) -> int:
        return len(self._values)


_default_cache = BetaInverseCache()


def default_beta_cache() -> BetaInverseCache:
    return _default_cache


def beta_inverse_cdf(
    q: float,
    a: float,
    b: float,
    cache: Optional[BetaInverseCache] = None,
    steps: int = DEFAULT_CONFIG.solver.bisection_steps,
) -> float:
    """Quantile of Beta(a, b) at probability q, by bisection."""
    if q <= 0.0:
        return 0.0
    if q >= 1.0:
        return 1.0
    if cache is None:
        cache = _default_cache
    cached = cache.get(q, a, b)
    if cached is not None:
        return cached

    low, high = 0.0, 1.0
    for _ in range(steps):
        mid = (low + high) / 2.0
        if regularized_incomplete_beta(mid, a, b) < q:
            low = mid
        else:
            high = mid
    result = (low + high) / 2.0
    cache.put(q, a, b, result)
    logger.debug(f"beta_inverse_cdf(q={q}, a={a:.4f}, b={b:.4f}) = {result:.6g}")
    return result
