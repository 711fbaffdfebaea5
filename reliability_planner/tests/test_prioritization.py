"""
Test Suite for Prioritization and Residual Risk

Tests:
- Confidence-driven default ratings and safety-critical severity bump
- Failure-mode overrides and evidence-badge likelihood nudges
- Preservation of previously recorded scores
- Residual risk per mechanism and mitigation carry-over

Run with: pytest reliability_planner/tests/test_prioritization.py -v
"""

import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__)))))

from reliability_planner.planning_state import (
    CoverageLevel,
    CoveredStatus,
    FailureModeSelection,
    MechanismConfidence,
    MechanismSelection,
    PriorEvidenceEntry,
    ResidualLevel,
    ResidualRiskEntry,
    SelectedTest,
    TestScore,
    TestStatus,
)
from reliability_planner.prioritization import (
    confidence_to_defaults,
    merge_test_scores,
    score_tier,
    worst_confidence,
)
from reliability_planner.residual_risk import compute_residual_risk, mechanism_coverage
from reliability_planner.special_functions import BetaInverseCache


def mech(mid, confidence=MechanismConfidence.HIGH, selected=True):
    return MechanismSelection(id=mid, name=mid, selected=selected, confidence=confidence)


def score_one(test, mechanisms, safety_critical=False, failure_modes=None,
              existing=None, prior_evidence=None):
    scores = merge_test_scores(
        [test], mechanisms, safety_critical, failure_modes or {}, existing or {},
        prior_evidence=prior_evidence, cache=BetaInverseCache(),
    )
    return scores[test.id]


class TestTiers:
    """Score buckets."""

    def test_boundaries(self):
        assert score_tier(60) == 1
        assert score_tier(59) == 2
        assert score_tier(30) == 2
        assert score_tier(29) == 3

    def test_worst_confidence(self):
        assert worst_confidence([MechanismConfidence.HIGH, MechanismConfidence.ASSUMED]) == \
            MechanismConfidence.ASSUMED
        assert worst_confidence([MechanismConfidence.HIGH, MechanismConfidence.MEDIUM]) == \
            MechanismConfidence.MEDIUM
        assert worst_confidence([]) == MechanismConfidence.HIGH

    def test_safety_critical_capped(self):
        severity, _, _ = confidence_to_defaults(MechanismConfidence.HIGH, True)
        assert severity == 5


class TestMergeTestScores:
    """Per-test scoring."""

    def test_high_confidence_defaults(self):
        test = SelectedTest(id="tc", name="TC", mechanism_ids=["thermal-fatigue"])
        score = score_one(test, [mech("thermal-fatigue")])
        assert (score.severity, score.likelihood, score.detectability) == (4, 3, 3)
        assert score.score == 36
        assert score.tier == 2

    def test_safety_critical_raises_severity(self):
        test = SelectedTest(id="tc", name="TC", mechanism_ids=["thermal-fatigue"])
        score = score_one(test, [mech("thermal-fatigue")], safety_critical=True)
        assert score.severity == 5
        assert score.score == 45

    def test_unknown_mechanism_is_assumed(self):
        test = SelectedTest(id="x", name="X", mechanism_ids=["not-in-list"])
        score = score_one(test, [])
        assert (score.severity, score.likelihood, score.detectability) == (3, 4, 4)

    def test_failure_mode_overrides(self):
        test = SelectedTest(id="tc", name="TC", mechanism_ids=["thermal-fatigue"])
        modes = {
            "solder-crack": FailureModeSelection(selected=True, severity=5, occurrence=4,
                                                 detection=4, mechanism_ids=["thermal-fatigue"]),
            "unselected": FailureModeSelection(selected=False, severity=1, occurrence=1,
                                               detection=1, mechanism_ids=["thermal-fatigue"]),
        }
        score = score_one(test, [mech("thermal-fatigue")], failure_modes=modes)
        assert (score.severity, score.likelihood, score.detectability) == (5, 4, 4)
        assert score.tier == 1

    def test_high_badge_raises_likelihood(self):
        """Poor field history (High badge) adds one likelihood step"""
        test = SelectedTest(id="tc", name="TC", mechanism_ids=["thermal-fatigue"])
        evidence = {"tc": PriorEvidenceEntry(n_prev=10, f_prev=5)}
        score = score_one(test, [mech("thermal-fatigue")], prior_evidence=evidence)
        assert score.likelihood == 4

    def test_low_badge_lowers_likelihood(self):
        test = SelectedTest(id="tc", name="TC", mechanism_ids=["thermal-fatigue"])
        evidence = {"tc": PriorEvidenceEntry(n_prev=500, f_prev=0)}
        score = score_one(test, [mech("thermal-fatigue")], prior_evidence=evidence)
        assert score.likelihood == 2

    def test_user_entered_scores_kept(self):
        test = SelectedTest(id="tc", name="TC", mechanism_ids=["thermal-fatigue"])
        existing = {"tc": TestScore(severity=1, likelihood=2, detectability=3, score=6, tier=3,
                                    user_entered=True)}
        evidence = {"tc": PriorEvidenceEntry(n_prev=10, f_prev=5)}
        score = score_one(test, [mech("thermal-fatigue")], safety_critical=True,
                          existing=existing, prior_evidence=evidence)
        assert (score.severity, score.likelihood, score.detectability) == (1, 2, 3)
        assert score.score == 6
        assert score.tier == 3
        assert score.user_entered

    def test_user_entered_score_and_tier_refreshed(self):
        test = SelectedTest(id="tc", name="TC", mechanism_ids=["thermal-fatigue"])
        existing = {"tc": TestScore(severity=5, likelihood=4, detectability=3, score=1, tier=3,
                                    user_entered=True)}
        score = score_one(test, [mech("thermal-fatigue")], existing=existing)
        assert score.score == 60
        assert score.tier == 1

    def test_derived_scores_recomputed(self):
        """A stored score from an earlier pass follows the current inputs"""
        test = SelectedTest(id="tc", name="TC", mechanism_ids=["thermal-fatigue"])
        earlier = score_one(test, [mech("thermal-fatigue")])
        assert earlier.score == 36
        assert not earlier.user_entered

        modes = {"solder-crack": FailureModeSelection(selected=True, severity=5, occurrence=4,
                                                      detection=4, mechanism_ids=["thermal-fatigue"])}
        later = score_one(test, [mech("thermal-fatigue")], safety_critical=True,
                          failure_modes=modes, existing={"tc": earlier})
        assert (later.severity, later.likelihood, later.detectability) == (5, 4, 4)
        assert later.tier == 1

    def test_badge_nudge_applies_after_earlier_pass(self):
        test = SelectedTest(id="tc", name="TC", mechanism_ids=["thermal-fatigue"])
        earlier = score_one(test, [mech("thermal-fatigue")])
        evidence = {"tc": PriorEvidenceEntry(n_prev=10, f_prev=5)}
        later = score_one(test, [mech("thermal-fatigue")], existing={"tc": earlier},
                          prior_evidence=evidence)
        assert later.likelihood == 4

    def test_every_test_scored(self):
        tests = [SelectedTest(id=f"t{i}", name=f"T{i}", mechanism_ids=["thermal-aging"])
                 for i in range(3)]
        scores = merge_test_scores(tests, [mech("thermal-aging")], False, {}, {})
        assert list(scores) == ["t0", "t1", "t2"]


class TestResidualRisk:
    """Mechanism coverage by the remaining tests."""

    def test_uncovered(self):
        assert mechanism_coverage("thermal-fatigue", []) == CoveredStatus.NO

    def test_substantive_coverage(self):
        tests = [SelectedTest(id="tc", name="TC", mechanism_ids=["thermal-fatigue"],
                              coverage=CoverageLevel.HIGH)]
        result = compute_residual_risk([mech("thermal-fatigue")], tests, {})
        assert result["thermal-fatigue"].covered == CoveredStatus.YES
        assert result["thermal-fatigue"].residual == ResidualLevel.LOW

    def test_screening_only_is_partial(self):
        tests = [SelectedTest(id="bi", name="BI", mechanism_ids=["thermal-aging"],
                              coverage=CoverageLevel.SCREENING)]
        result = compute_residual_risk([mech("thermal-aging")], tests, {})
        assert result["thermal-aging"].covered == CoveredStatus.PARTIAL
        assert result["thermal-aging"].residual == ResidualLevel.MEDIUM

    def test_removed_tests_ignored(self):
        tests = [SelectedTest(id="tc", name="TC", mechanism_ids=["thermal-fatigue"],
                              coverage=CoverageLevel.HIGH, status=TestStatus.REMOVE)]
        result = compute_residual_risk([mech("thermal-fatigue")], tests, {})
        assert result["thermal-fatigue"].residual == ResidualLevel.HIGH

    def test_downgraded_tests_still_cover(self):
        tests = [SelectedTest(id="tc", name="TC", mechanism_ids=["thermal-fatigue"],
                              coverage=CoverageLevel.MEDIUM, status=TestStatus.DOWNGRADE)]
        assert mechanism_coverage("thermal-fatigue", tests) == CoveredStatus.YES

    def test_mitigations_preserved(self):
        existing = {"thermal-fatigue": ResidualRiskEntry(mitigations=["Underfill added"])}
        result = compute_residual_risk([mech("thermal-fatigue")], [], existing)
        assert result["thermal-fatigue"].mitigations == ["Underfill added"]
        assert result["thermal-fatigue"].residual == ResidualLevel.HIGH

    def test_every_mechanism_has_entry(self):
        mechanisms = [mech("a", selected=False), mech("b")]
        result = compute_residual_risk(mechanisms, [], {})
        assert set(result) == {"a", "b"}
