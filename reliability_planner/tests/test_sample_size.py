"""
Test Suite for the Sample-Size Solver

Tests:
- Zero-failure and one-failure binomial demonstration sizes
- Weibull-basic closed form
- Search cap and memoization
- Log-factorial table and log-sum-exp helpers

Run with: pytest reliability_planner/tests/test_sample_size.py -v
"""

import math
import os
import sys

import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__)))))

from reliability_planner.planning_state import ReliabilityMethod
from reliability_planner.sample_size import (
    LogFactorialTable,
    SampleSizeSolver,
    compute_required_sample_size,
    log_sum_exp,
)


class TestBinomial:
    """Smallest n with P(accept | R) <= 1 - C."""

    def test_zero_failure_classic(self):
        """R = 0.9, C = 0.9, c = 0 -> 22"""
        assert SampleSizeSolver().required_sample_size(0.9, 0.9, 0) == 22

    def test_one_allowed_failure(self):
        assert SampleSizeSolver().required_sample_size(0.9, 0.9, 1) == 38

    def test_high_reliability(self):
        """R = 0.99, C = 0.95, c = 0 -> ceil(ln 0.05 / ln 0.99) = 299"""
        assert SampleSizeSolver().required_sample_size(0.99, 0.95, 0) == 299

    def test_more_failures_need_more_units(self):
        solver = SampleSizeSolver()
        sizes = [solver.required_sample_size(0.9, 0.9, c) for c in range(4)]
        assert sizes == sorted(sizes)
        assert len(set(sizes)) == 4

    def test_accepts_method_string(self):
        assert compute_required_sample_size(0.9, 0.9, 0, "binomial", solver=SampleSizeSolver()) == 22

    def test_unknown_method_rejected(self):
        with pytest.raises(ValueError):
            SampleSizeSolver().required_sample_size(0.9, 0.9, 0, "bayesian")


class TestWeibullBasic:
    """n = ceil(ln(1 - C) / ln R)."""

    def test_classic(self):
        solver = SampleSizeSolver()
        assert solver.required_sample_size(0.9, 0.9, 0, ReliabilityMethod.WEIBULL_BASIC) == 22

    def test_matches_binomial_for_zero_failures(self):
        solver = SampleSizeSolver()
        for r, c in [(0.95, 0.9), (0.8, 0.5), (0.99, 0.6)]:
            weibull = solver.required_sample_size(r, c, 0, ReliabilityMethod.WEIBULL_BASIC)
            binomial = solver.required_sample_size(r, c, 0, ReliabilityMethod.BINOMIAL)
            assert weibull == binomial

    def test_minimum_one(self):
        solver = SampleSizeSolver()
        assert solver.required_sample_size(0.5, 0.1, 0, ReliabilityMethod.WEIBULL_BASIC) == 1


class TestSolverLimits:
    """Cap and memo behavior."""

    def test_cap_returned_when_unreachable(self):
        solver = SampleSizeSolver(max_sample_size=100)
        assert solver.required_sample_size(0.999, 0.9, 0) == 100

    def test_memoized(self):
        solver = SampleSizeSolver()
        solver.required_sample_size(0.9, 0.9, 0)
        solver.required_sample_size(0.9, 0.9, 0)
        assert len(solver) == 1
        solver.required_sample_size(0.9, 0.9, 0, ReliabilityMethod.WEIBULL_BASIC)
        assert len(solver) == 2

    def test_clear(self):
        solver = SampleSizeSolver()
        solver.required_sample_size(0.9, 0.9, 2)
        solver.clear()
        assert len(solver) == 0
        assert len(solver.log_factorials) == 1


class TestLogHelpers:
    """Log-space building blocks."""

    def test_log_factorial(self):
        table = LogFactorialTable()
        for n in (0, 1, 5, 20, 100):
            assert abs(table.log_factorial(n) - math.lgamma(n + 1)) < 1e-9

    def test_log_choose(self):
        table = LogFactorialTable()
        assert abs(math.exp(table.log_choose(10, 3)) - 120) < 1e-6
        assert table.log_choose(3, 5) == -math.inf

    def test_log_sum_exp(self):
        values = [math.log(1), math.log(2), math.log(3)]
        assert abs(log_sum_exp(values) - math.log(6)) < 1e-12

    def test_log_sum_exp_stable(self):
        assert abs(log_sum_exp([-1000.0, -1000.0]) - (-1000.0 + math.log(2))) < 1e-9

    def test_log_sum_exp_empty(self):
        assert log_sum_exp([]) == -math.inf
