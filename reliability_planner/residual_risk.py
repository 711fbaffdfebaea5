"""
Residual-Risk Engine
====================
Leftover risk per mechanism given the tests still in the plan.

    no linked test (status != remove)           -> covered "no",      residual "high"
    some linked test with high/medium coverage  -> covered "yes",     residual "low"
    only screening-level linked tests           -> covered "partial", residual "medium"

User-entered mitigations are carried over on every recompute.
"""

from typing import Dict, List

from .planning_state import (
    CoverageLevel,
    CoveredStatus,
    MechanismSelection,
    ResidualLevel,
    ResidualRiskEntry,
    SelectedTest,
    TestStatus,
)

SUBSTANTIVE_COVERAGE = (CoverageLevel.HIGH, CoverageLevel.MEDIUM)

RESIDUAL_FOR_COVERED = {
    CoveredStatus.NO: ResidualLevel.HIGH,
    CoveredStatus.PARTIAL: ResidualLevel.MEDIUM,
    CoveredStatus.YES: ResidualLevel.LOW,
}


def mechanism_coverage(mechanism_id: str, tests: List[SelectedTest]) -> CoveredStatus:
    linked = [
        t for t in tests
        if t.status != TestStatus.REMOVE and mechanism_id in t.mechanism_ids
    ]
    if not linked:
        return CoveredStatus.NO
    if any(t.coverage in SUBSTANTIVE_COVERAGE for t in linked):
        return CoveredStatus.YES
    return CoveredStatus.PARTIAL


def compute_residual_risk(
    mechanisms: List[MechanismSelection],
    tests: List[SelectedTest],
    existing: Dict[str, ResidualRiskEntry],
) -> Dict[str, ResidualRiskEntry]:
    """Residual-risk entry for every mechanism, keyed by mechanism id."""
    result: Dict[str, ResidualRiskEntry] = {}
    for mechanism in mechanisms:
        covered = mechanism_coverage(mechanism.id, tests)
        previous = existing.get(mechanism.id)
        result[mechanism.id] = ResidualRiskEntry(
            covered=covered,
            residual=RESIDUAL_FOR_COVERED[covered],
            mitigations=list(previous.mitigations) if previous else [],
        )
    return result
