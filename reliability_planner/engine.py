"""
Planning Engine
===============
Orchestrates one full recomputation of the planning state:

    1. mechanisms      suggest -> sync with user choices -> force from failure modes
    2. tests           catalog candidates, merged with prior user decisions
    3. acceleration    model selection, AF and equivalent years per test
    4. prioritization  severity x likelihood x detectability, tiers
    5. residual risk   per-mechanism coverage and leftover risk
    6. sample size     required n for the reliability plan
    7. verification    one DVPR row per kept test
    8. schedule        lanes, dependencies and forward-pass timing
    9. summary         coverage breakdown, schedule stats, warnings, confidence

The input state is never mutated; recompute() returns a new state inside a
PlanResult. Recomputing a returned state yields the same result.

Memo caches (inverse beta CDF, sample-size solver) belong to the engine
instance and are only emptied through EngineCaches.reset().
"""

import copy
import logging
from dataclasses import dataclass, field, replace
from typing import Dict, List, Optional, Any

from .acceleration import apply_acceleration
from .candidates import (
    apply_failure_modes_to_mechanisms,
    build_candidate_tests,
    merge_selected_tests,
    suggest_mechanisms,
    sync_mechanisms,
)
from .catalog import ReferenceCatalog, default_catalog
from .config import DEFAULT_CONFIG, EngineConfig
from .coverage import (
    CoverageBreakdown,
    compute_confidence_score,
    compute_coverage_breakdown,
    compute_warnings,
    is_mission_complete,
)
from .dvpr import build_dvpr_rows
from .planning_state import PlanningState
from .prioritization import merge_test_scores
from .residual_risk import compute_residual_risk
from .sample_size import SampleSizeSolver
from .scheduler import ScheduleStats, build_schedule, compute_schedule_stats
from .special_functions import BetaInverseCache

logger = logging.getLogger(__name__)


class EngineCaches:
    """Numerical memo tables shared by every recompute of one engine."""

    def __init__(self, config: EngineConfig = DEFAULT_CONFIG):
        self.beta_inverse = BetaInverseCache()
        self.sample_size = SampleSizeSolver(max_sample_size=config.solver.max_sample_size)

    def reset(self) -> None:
        self.beta_inverse.clear()
        self.sample_size.clear()


@dataclass
class PlanResult:
    state: PlanningState
    coverage: CoverageBreakdown
    schedule_stats: ScheduleStats
    warnings: List[str] = field(default_factory=list)
    confidence_score: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "state": self.state.to_dict(),
            "coverage": self.coverage.to_dict(),
            "scheduleStats": self.schedule_stats.to_dict(),
            "warnings": list(self.warnings),
            "confidenceScore": self.confidence_score,
        }


def default_planning_state(catalog: Optional[ReferenceCatalog] = None) -> PlanningState:
    """Empty planning state with failure modes seeded from the catalog."""
    if catalog is None:
        catalog = default_catalog()
    return PlanningState(failure_modes=catalog.default_failure_modes())


class PlanningEngine:
    """Pure recomputation of a planning state against a reference catalog."""

    def __init__(self, catalog: Optional[ReferenceCatalog] = None,
                 config: Optional[EngineConfig] = None):
        self.catalog = catalog if catalog is not None else default_catalog()
        self.config = config if config is not None else DEFAULT_CONFIG
        self.caches = EngineCaches(self.config)

    def hydrate(self, data: Dict[str, Any]) -> PlanningState:
        """PlanningState from its dict form, defaults filled from the catalog."""
        return PlanningState.from_dict(data, default_failure_modes=self.catalog.default_failure_modes())

    def recompute(self, state: PlanningState) -> PlanResult:
        catalog, config = self.catalog, self.config
        state = copy.deepcopy(state)

        suggested = suggest_mechanisms(state.product, state.mission, catalog)
        mechanisms = sync_mechanisms(state.mechanisms, suggested, catalog)
        mechanisms = apply_failure_modes_to_mechanisms(mechanisms, state.failure_modes)
        state.mechanisms = mechanisms

        candidates = build_candidate_tests(
            mechanisms, state.changes, state.mission, state.materials, catalog, config)
        tests = merge_selected_tests(state.selected_tests, candidates)
        tests = apply_acceleration(
            tests, state.mission, state.product, state.materials, catalog, config)
        state.selected_tests = tests

        state.test_scores = merge_test_scores(
            tests,
            mechanisms,
            state.product.safety_critical,
            state.failure_modes,
            state.test_scores,
            prior_evidence=state.prior_evidence,
            cache=self.caches.beta_inverse,
        )
        state.residual_risk = compute_residual_risk(mechanisms, tests, state.residual_risk)

        plan = state.reliability_plan
        required = self.caches.sample_size.required_sample_size(
            plan.target_reliability, plan.confidence, plan.allowed_failures, plan.method)
        state.reliability_plan = replace(plan, required_sample_size=required)

        state.dvpr_rows = build_dvpr_rows(state, catalog, cache=self.caches.beta_inverse)
        tasks = build_schedule(state, catalog, state.dvpr_rows)
        state.schedule = replace(state.schedule, tasks=tasks)

        coverage = compute_coverage_breakdown(state, tests, config)
        stats = compute_schedule_stats(tasks)
        warnings = compute_warnings(state.mission, tests)
        confidence = compute_confidence_score(
            is_mission_complete(state.mission), mechanisms, state.residual_risk)

        kept = len(state.kept_tests())
        logger.info(
            f"Plan recomputed: {kept}/{len(tests)} tests kept, n={required}, "
            f"coverage {coverage.total_score}/100, {stats.current_days} days"
        )
        for warning in warnings:
            logger.debug(warning)

        return PlanResult(
            state=state,
            coverage=coverage,
            schedule_stats=stats,
            warnings=warnings,
            confidence_score=confidence,
        )
