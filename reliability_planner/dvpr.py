"""
Verification Rows
=================
Builds one design-verification row per kept test: requirement text,
standard references, stress conditions, sample size, duration and a
prior-evidence risk summary. Rows are plain data; rendering and export
belong to the presentation layer.
"""

from typing import List, Optional

from .catalog import ReferenceCatalog, default_catalog
from .evidence_fusion import compute_prior_evidence_map
from .planning_state import DvprRow, PlanningState, StressProfile, round_half_up
from .special_functions import BetaInverseCache

ACCEPTANCE_CRITERIA = "No functional failures; parameters within specification."
DEFAULT_OWNER = "Reliability / Lab"
DEFAULT_PHASE = "DV"


def _fmt(value) -> str:
    """Number without a trailing .0 for whole values."""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def format_conditions(profile: StressProfile) -> str:
    parts = []
    if profile.temp_low_c is not None and profile.temp_high_c is not None:
        parts.append(f"Temp {_fmt(profile.temp_low_c)}-{_fmt(profile.temp_high_c)}C")
    if profile.humidity_pct is not None:
        parts.append(f"RH {_fmt(profile.humidity_pct)}%")
    if profile.vib_level and profile.vib_level != "none":
        parts.append(f"Vibration {profile.vib_level}")
    if profile.shock_level and profile.shock_level != "none":
        parts.append(f"Shock {profile.shock_level}")
    return "; ".join(parts) or "Per test definition"


def build_dvpr_rows(
    state: PlanningState,
    catalog: Optional[ReferenceCatalog] = None,
    cache: Optional[BetaInverseCache] = None,
) -> List[DvprRow]:
    """One verification row per kept test, in test order."""
    if catalog is None:
        catalog = default_catalog()
    prior_map = compute_prior_evidence_map(state.selected_tests, state.prior_evidence, cache=cache)

    rows = []
    for test in state.kept_tests():
        definition = catalog.test(test.id)
        first_mechanism = catalog.mechanism(test.mechanism_ids[0]) if test.mechanism_ids else None
        mechanism_name = first_mechanism.name if first_mechanism else "reliability risk"
        prior = prior_map[test.id]

        spec_refs = []
        if definition:
            for standard, clause in definition.references:
                ref = {"standard": standard}
                if clause:
                    ref["clause"] = clause
                spec_refs.append(ref)

        if test.sample_size_override is not None:
            sample_size = test.sample_size_override
        else:
            sample_size = state.reliability_plan.required_sample_size

        rows.append(DvprRow(
            id=f"dvpr-{test.id}",
            requirement=f"Demonstrate robustness against {mechanism_name}",
            validation_method="Test",
            test_id=test.id,
            spec_refs=spec_refs,
            conditions=format_conditions(test.stress_profile),
            sample_size=sample_size,
            duration_value=max(1, round_half_up(test.duration_weeks)),
            duration_unit="weeks",
            risk={
                "priorMean": prior.mean_fail_prob,
                "priorUpper95": prior.upper_fail_prob_95,
                "priorN": prior.n_prev,
                "priorF": prior.f_prev,
                "similarityPct": prior.similarity_pct,
                "badge": prior.badge.value,
            },
            acceptance_criteria=ACCEPTANCE_CRITERIA,
            owner=DEFAULT_OWNER,
            phase=DEFAULT_PHASE,
        ))
    return rows
