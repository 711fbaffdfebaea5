"""
Coverage Scorer
===============
Aggregates plan readiness into a 0-100 score over six weighted dimensions
and produces a ranked list of the highest-value fixes.

    Dimension                            Max   Fixed in step
    Mission Profile Completeness          20         2
    Mechanism Coverage                    25         3
    Failure Mode Coverage                 15         3
    Test-to-Mechanism Mapping             20         5
    Acceleration Validity & Assumptions   10         7
    Residual Risk Declared                10         9

Weights and thresholds live in config.CoverageWeights. The module also
derives the plan-level warning list and the overall confidence score.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Any

from .catalog import is_humidity_based_test_id
from .config import DEFAULT_CONFIG, EngineConfig
from .planning_state import (
    MechanismConfidence,
    MechanismSelection,
    MissionProfile,
    PlanningState,
    ResidualLevel,
    ResidualRiskEntry,
    SelectedTest,
    round_half_up,
)

logger = logging.getLogger(__name__)

STATUS_GOOD = "Good"
STATUS_PARTIAL = "Partial"
STATUS_MISSING = "Missing"

STEP_MISSION = 2
STEP_MECHANISMS = 3
STEP_TESTS = 5
STEP_PRIOR_EVIDENCE = 6
STEP_ACCELERATION = 7
STEP_RESIDUAL = 9

BLOCK_WARNING = re.compile(r"block", re.IGNORECASE)


@dataclass
class CoverageRow:
    area: str
    points_earned: int
    points_max: int
    missing: List[str] = field(default_factory=list)
    step_index_to_fix: int = 0

    @property
    def status(self) -> str:
        if self.points_earned == self.points_max:
            return STATUS_GOOD
        if self.points_earned > 0:
            return STATUS_PARTIAL
        return STATUS_MISSING

    @property
    def gap(self) -> int:
        return self.points_max - self.points_earned

    def to_dict(self) -> Dict[str, Any]:
        return {
            "area": self.area,
            "pointsEarned": self.points_earned,
            "pointsMax": self.points_max,
            "status": self.status,
            "missing": list(self.missing),
            "stepIndexToFix": self.step_index_to_fix,
        }


@dataclass
class FixItem:
    title: str
    points_gain_estimate: int
    step_index_to_fix: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "pointsGainEstimate": self.points_gain_estimate,
            "stepIndexToFix": self.step_index_to_fix,
        }


@dataclass
class CoverageBreakdown:
    total_score: int
    rows: List[CoverageRow] = field(default_factory=list)
    fix_list: List[FixItem] = field(default_factory=list)

    def row(self, area: str) -> Optional[CoverageRow]:
        for r in self.rows:
            if r.area == area:
                return r
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totalScore": self.total_score,
            "rows": [r.to_dict() for r in self.rows],
            "fixList": [f.to_dict() for f in self.fix_list],
        }


# =========================================================================
# Individual dimensions
# =========================================================================

def mission_fields(mission: MissionProfile) -> List[tuple]:
    """(label, populated) for the six required mission fields."""
    return [
        ("Temperature min", mission.temp_min_c is not None),
        ("Temperature max", mission.temp_max_c is not None),
        ("Humidity %RH", mission.humidity_pct is not None or bool(mission.humidity)),
        ("Vibration", bool(mission.vibration)),
        ("Shock", bool(mission.shock)),
        ("Active duty", mission.active_duty_pct is not None),
    ]


def is_mission_complete(mission: MissionProfile) -> bool:
    return all(ready for _, ready in mission_fields(mission))


def _score_mission(mission: MissionProfile, w) -> CoverageRow:
    fields_ = mission_fields(mission)
    missing = [label for label, ready in fields_ if not ready]
    if not missing:
        earned = w.mission_max
    else:
        earned = round_half_up(w.mission_max * (len(fields_) - len(missing)) / len(fields_))
    return CoverageRow("Mission Profile Completeness", earned, w.mission_max,
                       missing, STEP_MISSION)


def _score_mechanisms(selected: List[MechanismSelection], w) -> CoverageRow:
    count = len(selected)
    if count >= w.mechanism_full_count:
        earned = w.mechanism_max
    elif count >= w.mechanism_partial_count:
        earned = w.mechanism_partial_points
    elif count > 0:
        earned = w.mechanism_min_points
    else:
        earned = 0
    missing = [] if count >= w.mechanism_full_count else [
        f"Select at least {w.mechanism_full_count} mechanisms"]
    return CoverageRow("Mechanism Coverage", earned, w.mechanism_max, missing, STEP_MECHANISMS)


def _score_failure_modes(state: PlanningState, w) -> CoverageRow:
    entries = list(state.failure_modes.values())
    count = sum(1 for mode in entries if mode.selected)
    if not entries:
        earned, missing = 0, ["Not configured"]
    else:
        if count >= w.failure_mode_full_count:
            earned = w.failure_mode_max
        elif count >= w.failure_mode_partial_count:
            earned = w.failure_mode_partial_points
        elif count > 0:
            earned = w.failure_mode_min_points
        else:
            earned = 0
        missing = [] if count >= w.failure_mode_full_count else [
            f"Select {w.failure_mode_full_count}+ failure modes"]
    return CoverageRow("Failure Mode Coverage", earned, w.failure_mode_max, missing, STEP_MECHANISMS)


def _score_mapping(state: PlanningState, selected: List[MechanismSelection],
                   kept: List[SelectedTest], w) -> CoverageRow:
    missing = [
        m.name for m in selected
        if not any(m.id in t.mechanism_ids for t in kept)
    ]
    if not missing:
        earned = w.mapping_max
    elif len(missing) <= w.mapping_max_missing_for_partial:
        earned = w.mapping_partial_points
    else:
        earned = 0
    humidity_required = (state.mission.humidity_pct or 0) >= w.humidity_required_pct
    if humidity_required and not any(is_humidity_based_test_id(t.id) for t in kept):
        earned = max(0, earned - w.humidity_penalty)
        missing.append("Humidity test coverage")
    return CoverageRow("Test-to-Mechanism Mapping", earned, w.mapping_max, missing, STEP_TESTS)


def _score_acceleration(kept: List[SelectedTest], w) -> CoverageRow:
    warned = [t for t in kept if t.acceleration.warnings]
    has_block = any(BLOCK_WARNING.search(msg) for t in warned for msg in t.acceleration.warnings)
    if has_block:
        earned = 0
    elif warned:
        earned = w.acceleration_warning_points
    else:
        earned = w.acceleration_max
    return CoverageRow("Acceleration Validity & Assumptions", earned, w.acceleration_max,
                       [t.name for t in warned], STEP_ACCELERATION)


def _residual_complete(entry: Optional[ResidualRiskEntry]) -> bool:
    if entry is None:
        return False
    needs_mitigation = entry.residual in (ResidualLevel.MEDIUM, ResidualLevel.HIGH)
    return not needs_mitigation or bool(entry.mitigations)


def _score_residual(state: PlanningState, selected: List[MechanismSelection], w) -> CoverageRow:
    incomplete = [m.name for m in selected if not _residual_complete(state.residual_risk.get(m.id))]
    if not selected:
        earned = 0
    else:
        complete = len(selected) - len(incomplete)
        earned = round_half_up(w.residual_max * complete / len(selected))
    return CoverageRow("Residual Risk Declared", earned, w.residual_max, incomplete, STEP_RESIDUAL)


# =========================================================================
# Aggregation
# =========================================================================

def compute_coverage_breakdown(
    state: PlanningState,
    tests: Optional[List[SelectedTest]] = None,
    config: EngineConfig = DEFAULT_CONFIG,
) -> CoverageBreakdown:
    """Score plan coverage and rank the fixes with the largest point gain.

    Args:
        state:  Planning state (mission, mechanisms, failure modes, residual
                risk, prioritization scores and prior evidence are read)
        tests:  Test list to evaluate; defaults to state.selected_tests
        config: Engine configuration (coverage weights)

    Returns:
        CoverageBreakdown with total score, per-dimension rows and fix list
    """
    w = config.coverage
    if tests is None:
        tests = state.selected_tests
    selected = [m for m in state.mechanisms if m.selected]
    kept = [t for t in tests if t.is_kept]

    rows = [
        _score_mission(state.mission, w),
        _score_mechanisms(selected, w),
        _score_failure_modes(state, w),
        _score_mapping(state, selected, kept, w),
        _score_acceleration(kept, w),
        _score_residual(state, selected, w),
    ]
    total = sum(r.points_earned for r in rows)

    fixes = [
        FixItem(
            title=f"{r.area}: {r.missing[0]}" if r.missing else f"{r.area}: Improve coverage",
            points_gain_estimate=r.gap,
            step_index_to_fix=r.step_index_to_fix,
        )
        for r in rows if r.gap > 0
    ]
    fixes.sort(key=lambda f: f.points_gain_estimate, reverse=True)
    fixes = fixes[:w.fix_list_size]

    tier_one = [
        t for t in kept
        if state.test_scores.get(t.id) is not None and state.test_scores[t.id].tier == 1
    ]
    tier_one_with_evidence = any(
        (state.prior_evidence.get(t.id) and (state.prior_evidence[t.id].n_prev or 0) > 0)
        for t in tier_one
    )
    if tier_one and not tier_one_with_evidence:
        fixes.insert(0, FixItem(
            title=f"No prior evidence entered for Tier-1 tests (+{w.tier1_evidence_gain} coverage if added)",
            points_gain_estimate=w.tier1_evidence_gain,
            step_index_to_fix=STEP_PRIOR_EVIDENCE,
        ))

    logger.debug(f"Coverage score {total}/100 with {len(fixes)} suggested fixes")
    return CoverageBreakdown(total_score=total, rows=rows, fix_list=fixes[:w.fix_list_size])


def compute_warnings(mission: MissionProfile, tests: List[SelectedTest]) -> List[str]:
    """Plan-level warnings: every test's acceleration warnings plus
    mission-consistency checks."""
    warnings = [f"{t.name}: {msg}" for t in tests for msg in t.acceleration.warnings]
    if mission.thermal_cycle_freq == "rare":
        for t in tests:
            name = t.name.lower()
            if "thermal cycling" in name or "power cycling" in name:
                warnings.append(f"{t.name}: Mission profile shows rare cycling; confirm necessity.")
    return warnings


def compute_confidence_score(
    mission_complete: bool,
    mechanisms: List[MechanismSelection],
    residual: Dict[str, ResidualRiskEntry],
) -> int:
    """Heuristic 0-100 confidence in the plan's assumptions."""
    score = 50
    if mission_complete:
        score += 10
    if sum(1 for m in mechanisms if m.selected) >= 4:
        score += 10
    if residual:
        low = sum(1 for e in residual.values() if e.residual == ResidualLevel.LOW)
        if low / len(residual) >= 0.6:
            score += 10
    score -= 10 * sum(1 for m in mechanisms if m.confidence == MechanismConfidence.ASSUMED)
    return max(0, min(100, score))
