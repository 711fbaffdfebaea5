"""
Evidence Fusion Model
=====================
Beta-Binomial fusion of historical test evidence into a posterior failure
probability per test.

    n_eff = n_prev * s,   f_eff = f_prev * s,   s = similarity / 100
    alpha = alpha0 + f_eff
    beta  = beta0 + (n_eff - f_eff)

with (alpha0, beta0) = (0.5, 0.5) for the Jeffreys prior and (1, 1) for the
uniform prior. The posterior mean and the 90 % / 95 % upper bounds on the
failure probability are reported, and the 95 % bound is bucketed into a
risk badge:

    upper95 <= 0.01  -> Low
    upper95 <= 0.05  -> Med
    otherwise        -> High

A missing entry, or one with n_prev <= 0, carries no evidence (badge None).
"""

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, Optional, Any

from .planning_state import EvidenceBadge, PriorEvidenceEntry, PriorType, SelectedTest, round_half_up
from .special_functions import BetaInverseCache, beta_inverse_cdf

logger = logging.getLogger(__name__)

PRIOR_PSEUDO_COUNTS = {
    PriorType.JEFFREYS: (0.5, 0.5),
    PriorType.UNIFORM: (1.0, 1.0),
}

BADGE_LOW_MAX = 0.01
BADGE_MED_MAX = 0.05


@dataclass
class PriorEvidenceResult:
    """Posterior summary for one test's prior evidence."""
    n_prev: Optional[float]
    f_prev: Optional[float]
    similarity_pct: float
    prior_type: PriorType
    badge: EvidenceBadge
    alpha: Optional[float] = None
    beta: Optional[float] = None
    mean_fail_prob: Optional[float] = None
    upper_fail_prob_95: Optional[float] = None
    upper_fail_prob_90: Optional[float] = None

    @property
    def has_evidence(self) -> bool:
        return self.badge != EvidenceBadge.NONE

    def to_dict(self) -> Dict[str, Any]:
        return {
            "nPrev": self.n_prev,
            "fPrev": self.f_prev,
            "similarityPct": self.similarity_pct,
            "priorType": self.prior_type.value,
            "badge": self.badge.value,
            "alpha": self.alpha,
            "beta": self.beta,
            "meanFailProb": self.mean_fail_prob,
            "upperFailProb95": self.upper_fail_prob_95,
            "upperFailProb90": self.upper_fail_prob_90,
        }


def badge_for_upper_bound(upper95: float) -> EvidenceBadge:
    if upper95 <= BADGE_LOW_MAX:
        return EvidenceBadge.LOW
    if upper95 <= BADGE_MED_MAX:
        return EvidenceBadge.MED
    return EvidenceBadge.HIGH


def compute_prior_evidence(
    entry: Optional[PriorEvidenceEntry],
    cache: Optional[BetaInverseCache] = None,
) -> PriorEvidenceResult:
    """Fuse one prior-evidence entry into a Beta posterior.

    Args:
        entry: Historical record for the test, or None
        cache: Memo for the inverse beta CDF (module default if None)

    Returns:
        PriorEvidenceResult; badge NONE when there is no usable evidence.
    """
    if entry is None or entry.n_prev is None or entry.n_prev <= 0:
        return PriorEvidenceResult(
            n_prev=entry.n_prev if entry else None,
            f_prev=entry.f_prev if entry else None,
            similarity_pct=entry.similarity_pct if entry else 100.0,
            prior_type=entry.prior_type if entry else PriorType.JEFFREYS,
            badge=EvidenceBadge.NONE,
        )

    similarity = max(0.0, min(100.0, entry.similarity_pct))
    n_prev = max(0, round_half_up(entry.n_prev))
    f_prev = min(max(0, round_half_up(entry.f_prev or 0)), n_prev)
    n_eff = n_prev * (similarity / 100.0)
    f_eff = f_prev * (similarity / 100.0)

    alpha0, beta0 = PRIOR_PSEUDO_COUNTS[entry.prior_type]
    alpha = alpha0 + f_eff
    beta = beta0 + (n_eff - f_eff)
    mean_fail_prob = alpha / (alpha + beta)
    upper95 = beta_inverse_cdf(0.95, alpha, beta, cache=cache)
    upper90 = beta_inverse_cdf(0.90, alpha, beta, cache=cache)
    logger.debug(
        f"Prior evidence n={n_prev} f={f_prev} s={similarity:.0f}% -> "
        f"Beta({alpha:.2f}, {beta:.2f}), upper95={upper95:.4g}"
    )

    return PriorEvidenceResult(
        n_prev=n_prev,
        f_prev=f_prev,
        similarity_pct=similarity,
        prior_type=entry.prior_type,
        badge=badge_for_upper_bound(upper95),
        alpha=alpha,
        beta=beta,
        mean_fail_prob=mean_fail_prob,
        upper_fail_prob_95=upper95,
        upper_fail_prob_90=upper90,
    )


def compute_prior_evidence_map(
    tests: Iterable[SelectedTest],
    prior_evidence: Dict[str, PriorEvidenceEntry],
    cache: Optional[BetaInverseCache] = None,
) -> Dict[str, PriorEvidenceResult]:
    """Posterior summary for every test, keyed by test id."""
    return {
        test.id: compute_prior_evidence(prior_evidence.get(test.id), cache=cache)
        for test in tests
    }
