"""
Sample-Size Solver
==================
Minimum sample size that demonstrates reliability R at confidence C with
at most c allowed failures.

    weibull-basic:  n = ceil( ln(1 - C) / ln(R) ),  n >= 1

    binomial:       smallest n >= max(1, c) such that a population whose
                    reliability is only R passes with probability at most 1 - C:
                    P(accept) = SUM_{i=0..c} C(n,i) (1-R)^i R^(n-i)  <=  1 - C

The binomial terms are evaluated in log space with a cumulative
log-factorial table and a max-shifted log-sum-exp. The search is capped at
MAX_SAMPLE_SIZE, which is returned when the criterion is never met.

For R = 0.9, C = 0.9, c = 0 the solver returns 22
(ln 0.1 / ln 0.9 = 21.85).
"""

import logging
import math
from typing import Dict, Optional, Tuple

import numpy as np

from .config import DEFAULT_CONFIG
from .planning_state import ReliabilityMethod

logger = logging.getLogger(__name__)

MAX_SAMPLE_SIZE = DEFAULT_CONFIG.solver.max_sample_size
RELIABILITY_FLOOR = 1e-6
RELIABILITY_CEILING = 0.999999


class LogFactorialTable:
    """Append-only table of ln(k!) for k = 0..len-1."""

    def __init__(self):
        self._table = np.zeros(1)

    def __len__(self) -> int:
        return len(self._table)

    def _grow(self, n: int) -> None:
        start = len(self._table)
        increments = np.log(np.arange(start, n + 1, dtype=float))
        extension = self._table[-1] + np.cumsum(increments)
        self._table = np.concatenate([self._table, extension])

    def log_factorial(self, n: int) -> float:
        if n >= len(self._table):
            self._grow(n)
        return float(self._table[n])

    def log_choose(self, n: int, k: int) -> float:
        if k < 0 or k > n:
            return -math.inf
        return self.log_factorial(n) - self.log_factorial(k) - self.log_factorial(n - k)

    def clear(self) -> None:
        self._table = np.zeros(1)


def log_sum_exp(values) -> float:
    """ln(SUM exp(v)), shifted by the maximum for stability."""
    arr = np.asarray(values, dtype=float)
    if arr.size == 0:
        return -math.inf
    peak = arr.max()
    if not np.isfinite(peak):
        return -math.inf
    return float(peak + np.log(np.exp(arr - peak).sum()))


def _coerce_method(method) -> ReliabilityMethod:
    if isinstance(method, ReliabilityMethod):
        return method
    return ReliabilityMethod(method)


class SampleSizeSolver:
    """Memoized sample-size search.

    The log-factorial table and the result memo grow for the lifetime of
    the solver and are only emptied by clear().
    """

    def __init__(self, max_sample_size: int = MAX_SAMPLE_SIZE):
        self.max_sample_size = max_sample_size
        self.log_factorials = LogFactorialTable()
        self._results: Dict[Tuple[float, float, int, str], int] = {}

    def clear(self) -> None:
        self.log_factorials.clear()
        self._results.clear()

    def __len__(self) -> int:
        return len(self._results)

    def acceptance_log_probability(self, n: int, reliability: float, allowed_failures: int) -> float:
        """ln P(at most c failures in n trials | per-unit reliability R)."""
        p_pass = min(RELIABILITY_CEILING, max(RELIABILITY_FLOOR, reliability))
        log_pass = math.log(p_pass)
        log_fail = math.log(1.0 - p_pass)
        terms = [
            self.log_factorials.log_choose(n, i) + i * log_fail + (n - i) * log_pass
            for i in range(allowed_failures + 1)
        ]
        return log_sum_exp(terms)

    def required_sample_size(
        self,
        target_reliability: float,
        confidence: float,
        allowed_failures: int = 0,
        method=ReliabilityMethod.BINOMIAL,
    ) -> int:
        """Smallest n meeting the acceptance criterion (capped)."""
        method = _coerce_method(method)
        allowed_failures = max(0, int(allowed_failures))
        key = (target_reliability, confidence, allowed_failures, method.value)
        cached = self._results.get(key)
        if cached is not None:
            return cached

        p_pass = min(RELIABILITY_CEILING, max(RELIABILITY_FLOOR, target_reliability))
        if method == ReliabilityMethod.WEIBULL_BASIC:
            n = self._weibull_basic(p_pass, confidence)
        else:
            n = self._binomial(p_pass, confidence, allowed_failures)
        self._results[key] = n
        return n

    def _weibull_basic(self, p_pass: float, confidence: float) -> int:
        if confidence <= 0:
            return 1
        if confidence >= 1:
            logger.warning("Confidence >= 1 cannot be demonstrated; using search cap")
            return self.max_sample_size
        return max(1, math.ceil(math.log(1.0 - confidence) / math.log(p_pass)))

    def _binomial(self, p_pass: float, confidence: float, allowed_failures: int) -> int:
        for n in range(max(1, allowed_failures), self.max_sample_size + 1):
            accept = math.exp(self.acceptance_log_probability(n, p_pass, allowed_failures))
            if accept <= 1.0 - confidence:
                return n
        logger.warning(
            f"No sample size up to {self.max_sample_size} demonstrates R={p_pass} "
            f"at C={confidence} with c={allowed_failures}; using search cap"
        )
        return self.max_sample_size


_default_solver: Optional[SampleSizeSolver] = None


def default_solver() -> SampleSizeSolver:
    global _default_solver
    if _default_solver is None:
        _default_solver = SampleSizeSolver()
    return _default_solver


def compute_required_sample_size(
    target_reliability: float,
    confidence: float,
    allowed_failures: int = 0,
    method=ReliabilityMethod.BINOMIAL,
    solver: Optional[SampleSizeSolver] = None,
) -> int:
    """Module-level convenience wrapper around SampleSizeSolver."""
    if solver is None:
        solver = default_solver()
    return solver.required_sample_size(target_reliability, confidence, allowed_failures, method)
