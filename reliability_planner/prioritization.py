"""
Prioritization Engine
=====================
Per-test risk score = severity x likelihood x detectability (each 1-5).

    score >= 60  -> Tier 1 (highest priority)
    score >= 30  -> Tier 2
    otherwise    -> Tier 3

Defaults come from the worst confidence among a test's linked mechanisms
("assumed" > "medium" > "high"), raised by one severity step for
safety-critical products. Selected failure modes sharing a mechanism with
the test replace the defaults with their maximum severity / occurrence /
detection. The prior-evidence badge nudges likelihood (+1 for High, -1 for
Low backed by >= 30 trials and 0 failures).

Scores marked user_entered are kept as entered (only score and tier are
refreshed from their ratings). Every other score is re-derived from the
current state, so earlier passes never leak into later ones.
"""

from dataclasses import replace
from typing import Dict, Iterable, List, Optional, Tuple

from .evidence_fusion import compute_prior_evidence_map
from .planning_state import (
    EvidenceBadge,
    FailureModeSelection,
    MechanismConfidence,
    MechanismSelection,
    PriorEvidenceEntry,
    SelectedTest,
    TestScore,
)
from .special_functions import BetaInverseCache

TIER1_MIN_SCORE = 60
TIER2_MIN_SCORE = 30

# (severity, likelihood, detectability) per mechanism confidence
CONFIDENCE_DEFAULTS = {
    MechanismConfidence.HIGH: (4, 3, 3),
    MechanismConfidence.MEDIUM: (3, 3, 4),
    MechanismConfidence.ASSUMED: (3, 4, 4),
}

LOW_BADGE_MIN_TRIALS = 30


def _clamp_rating(value: int) -> int:
    return max(1, min(5, value))


def score_tier(score: int) -> int:
    if score >= TIER1_MIN_SCORE:
        return 1
    if score >= TIER2_MIN_SCORE:
        return 2
    return 3


def worst_confidence(confidences: Iterable[MechanismConfidence]) -> MechanismConfidence:
    """"assumed" dominates "medium", which dominates "high"."""
    confidences = list(confidences)
    if MechanismConfidence.ASSUMED in confidences:
        return MechanismConfidence.ASSUMED
    if MechanismConfidence.MEDIUM in confidences:
        return MechanismConfidence.MEDIUM
    return MechanismConfidence.HIGH


def confidence_to_defaults(
    confidence: MechanismConfidence,
    safety_critical: bool,
) -> Tuple[int, int, int]:
    severity, likelihood, detectability = CONFIDENCE_DEFAULTS[confidence]
    if safety_critical:
        severity = _clamp_rating(severity + 1)
    return severity, likelihood, detectability


def merge_test_scores(
    tests: List[SelectedTest],
    mechanisms: List[MechanismSelection],
    safety_critical: bool,
    failure_modes: Dict[str, FailureModeSelection],
    existing: Dict[str, TestScore],
    prior_evidence: Optional[Dict[str, PriorEvidenceEntry]] = None,
    cache: Optional[BetaInverseCache] = None,
) -> Dict[str, TestScore]:
    """Score every test, keeping user-entered ratings.

    Args:
        tests:           Tests to score
        mechanisms:      Current mechanism selections (confidence source)
        safety_critical: Product flag raising default severity
        failure_modes:   Failure-mode selections keyed by id
        existing:        Scores from the current plan keyed by test id; only
                         the user_entered ones are kept
        prior_evidence:  Prior-evidence entries keyed by test id
        cache:           Inverse-beta memo for the evidence fusion

    Returns:
        {test_id: TestScore}
    """
    mech_confidence = {m.id: m.confidence for m in mechanisms}
    selected_modes = [mode for mode in failure_modes.values() if mode.selected]
    prior_map = compute_prior_evidence_map(tests, prior_evidence or {}, cache=cache)

    scores: Dict[str, TestScore] = {}
    for test in tests:
        prior = existing.get(test.id)
        if prior is not None and prior.user_entered:
            score = prior.severity * prior.likelihood * prior.detectability
            scores[test.id] = replace(prior, score=score, tier=score_tier(score))
            continue

        confidence = worst_confidence(
            mech_confidence.get(mid, MechanismConfidence.ASSUMED) for mid in test.mechanism_ids
        )
        d_sev, d_lik, d_det = confidence_to_defaults(confidence, safety_critical)

        linked_modes = [
            mode for mode in selected_modes
            if any(mid in test.mechanism_ids for mid in mode.mechanism_ids)
        ]
        fm_sev = max((mode.severity for mode in linked_modes), default=0)
        fm_occ = max((mode.occurrence for mode in linked_modes), default=0)
        fm_det = max((mode.detection for mode in linked_modes), default=0)

        severity = fm_sev or d_sev
        detectability = fm_det or d_det
        likelihood = fm_occ or d_lik
        evidence = prior_map[test.id]
        if evidence.badge == EvidenceBadge.HIGH:
            likelihood = _clamp_rating(likelihood + 1)
        elif (evidence.badge == EvidenceBadge.LOW
              and (evidence.n_prev or 0) >= LOW_BADGE_MIN_TRIALS
              and (evidence.f_prev or 0) == 0):
            likelihood = _clamp_rating(likelihood - 1)

        score = severity * likelihood * detectability
        scores[test.id] = TestScore(
            severity=severity,
            likelihood=likelihood,
            detectability=detectability,
            score=score,
            tier=score_tier(score),
        )
    return scores
