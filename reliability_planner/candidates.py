"""
Candidate Tests
===============
Derives the working mechanism list and the candidate test list from the
product, mission and change context, and merges user decisions from the
previous plan back onto the fresh candidates.

Merging is an upsert keyed by id: entities that already exist keep their
user-entered fields, new ones get catalog defaults, and the output order
always follows the catalog. Mission- and material-derived values are
rebuilt on every pass and never read back from the previous plan.
"""

from dataclasses import replace
from typing import Dict, List, Optional

from .catalog import ReferenceCatalog, TestDefinition, default_catalog
from .config import DEFAULT_CONFIG, EngineConfig
from .planning_state import (
    AccelerationInfo,
    AccelerationModel,
    ChangeTriggers,
    FailureModeSelection,
    MaterialsSelection,
    MechanismConfidence,
    MechanismSelection,
    MissionProfile,
    ProductContext,
    SelectedTest,
    StressProfile,
    TestStatus,
    UserOverrides,
)

# Extra tests pulled in by each design-change trigger
CHANGE_TRIGGER_TESTS = {
    "newMaterial": ("chemical-resistance", "high-temp-storage"),
    "newSupplier": ("burn-in-screen",),
    "geometryChange": ("random-vibration", "retention-force"),
    "mountingRelocation": ("random-vibration", "mechanical-shock"),
    "processChange": ("burn-in-screen",),
    "deratingChange": ("eos-transient",),
    "costDownVariant": ("burn-in-screen",),
}

HUMIDITY_TEST_THRESHOLD_PCT = 60.0
CYCLING_HUMIDITY_SCENARIOS = ("coastal", "condensing")

# Models whose Ea follows the housing material
MATERIAL_EA_MODELS = (AccelerationModel.ARRHENIUS, AccelerationModel.PECK, AccelerationModel.EYRING)


# =========================================================================
# Mechanisms
# =========================================================================

def suggest_mechanisms(
    product: ProductContext,
    mission: MissionProfile,
    catalog: Optional[ReferenceCatalog] = None,
) -> List[str]:
    """Mechanism ids suggested by the product type and mission environment."""
    if catalog is None:
        catalog = default_catalog()
    suggestions: List[str] = []

    def add(mechanism_id: str) -> None:
        if mechanism_id not in suggestions:
            suggestions.append(mechanism_id)

    product_type = catalog.product_type(product.product_type)
    if product_type:
        for mechanism_id in product_type.default_mechanism_ids:
            add(mechanism_id)

    if (mission.humidity == "high" or mission.chemical_exposure != "none"
            or (mission.humidity_pct or 0) >= HUMIDITY_TEST_THRESHOLD_PCT):
        add("humidity-corrosion")
    if mission.chemical_exposure != "none":
        add("chemical-attack")
    if mission.vibration == "high" or mission.shock == "frequent":
        add("vibration-fatigue")
    if mission.thermal_cycle_freq != "rare":
        add("thermal-fatigue")
    if mission.temp_max_c is not None and mission.temp_max_c > 100:
        add("thermal-aging")
    return suggestions


def apply_failure_modes_to_mechanisms(
    mechanisms: List[MechanismSelection],
    failure_modes: Dict[str, FailureModeSelection],
) -> List[MechanismSelection]:
    """Force-select every mechanism linked to a selected failure mode."""
    forced = {
        mechanism_id
        for mode in failure_modes.values() if mode.selected
        for mechanism_id in mode.mechanism_ids
    }
    return [replace(m, selected=True) if m.id in forced else m for m in mechanisms]


def sync_mechanisms(
    existing: List[MechanismSelection],
    suggested_ids: List[str],
    catalog: Optional[ReferenceCatalog] = None,
) -> List[MechanismSelection]:
    """One selection per catalog mechanism, keeping prior user choices."""
    if catalog is None:
        catalog = default_catalog()
    by_id = {m.id: m for m in existing}
    result = []
    for definition in catalog.mechanisms:
        current = by_id.get(definition.id)
        if current is not None:
            result.append(replace(current, name=definition.name))
        else:
            result.append(MechanismSelection(
                id=definition.id,
                name=definition.name,
                selected=definition.id in suggested_ids,
                confidence=MechanismConfidence(definition.default_confidence),
                exclusion_justification=None,
            ))
    return result


# =========================================================================
# Tests
# =========================================================================

def default_stress_profile(mission: MissionProfile) -> StressProfile:
    return StressProfile(
        temp_low_c=mission.temp_min_c,
        temp_high_c=mission.temp_max_c,
        humidity_pct=mission.rh_use,
        vib_level=mission.vibration,
        shock_level=mission.shock,
    )


def default_acceleration_params(
    definition: TestDefinition,
    mission: MissionProfile,
    materials: MaterialsSelection,
    catalog: ReferenceCatalog,
    config: EngineConfig = DEFAULT_CONFIG,
) -> Dict[str, float]:
    """Catalog parameter defaults completed with mission and material values."""
    cfg = config.acceleration
    defaults = definition.parameter_defaults
    ea = defaults.get("Ea", cfg.ea_ev)
    if definition.model in MATERIAL_EA_MODELS:
        midpoint = catalog.material_ea_midpoint(materials.housing_material_id)
        if midpoint is not None:
            ea = midpoint
    params = dict(defaults)
    params.update({
        "RHuse": mission.rh_use,
        "RHstress": cfg.rh_stress_pct,
        "Ea": ea,
        "n": defaults.get("n", cfg.coffin_manson_n),
        "m": defaults.get("m", cfg.peck_m),
    })
    return params


def preferred_humidity_test(mission: MissionProfile) -> Optional[str]:
    """Humidity test to add for humid missions (>= 60 %RH), else None."""
    if (mission.humidity_pct or 0) < HUMIDITY_TEST_THRESHOLD_PCT:
        return None
    prefer_cycling = (mission.thermal_cycle_freq == "daily"
                      or mission.humidity_scenario in CYCLING_HUMIDITY_SCENARIOS)
    return "temp-humidity-cycling" if prefer_cycling else "temp-humidity-constant"


def build_candidate_tests(
    mechanisms: List[MechanismSelection],
    changes: ChangeTriggers,
    mission: MissionProfile,
    materials: MaterialsSelection,
    catalog: Optional[ReferenceCatalog] = None,
    config: EngineConfig = DEFAULT_CONFIG,
) -> List[SelectedTest]:
    """Fresh candidate tests in catalog order.

    A catalog test is a candidate when it is linked to a selected mechanism,
    pulled in by an active change trigger, or is the preferred humidity test
    for a humid mission.
    """
    if catalog is None:
        catalog = default_catalog()
    selected_ids = {m.id for m in mechanisms if m.selected}
    candidate_ids = {
        t.id for t in catalog.tests
        if any(mid in selected_ids for mid in t.mechanism_ids)
    }
    for trigger in changes.active():
        candidate_ids.update(CHANGE_TRIGGER_TESTS.get(trigger, ()))
    humidity_test = preferred_humidity_test(mission)
    if humidity_test:
        candidate_ids.add(humidity_test)

    return [
        SelectedTest(
            id=definition.id,
            name=definition.name,
            mechanism_ids=list(definition.mechanism_ids),
            coverage=definition.coverage,
            duration_weeks=definition.duration_weeks,
            cost_level=definition.cost_level,
            status=TestStatus.KEEP,
            acceleration=AccelerationInfo(
                model=definition.model,
                params=default_acceleration_params(definition, mission, materials, catalog, config),
                user_overrides=UserOverrides(enabled=False),
            ),
            stress_profile=default_stress_profile(mission),
        )
        for definition in catalog.tests if definition.id in candidate_ids
    ]


def _merge_test(candidate: SelectedTest, prior: SelectedTest) -> SelectedTest:
    """Prior user decisions on top of a freshly derived candidate.

    Acceleration model and params always come from the candidate; explicit
    stress values survive only through UserOverrides. The stress profile is
    re-derived unless the user entered it.
    """
    acceleration = replace(
        candidate.acceleration,
        user_overrides=replace(prior.acceleration.user_overrides),
    )
    if prior.stress_profile.user_entered:
        stress_profile = candidate.stress_profile.merged_with(prior.stress_profile)
    else:
        stress_profile = candidate.stress_profile
    return replace(
        candidate,
        status=prior.status,
        removal_justification=prior.removal_justification,
        coverage=prior.coverage or candidate.coverage,
        duration_weeks=prior.duration_weeks or candidate.duration_weeks,
        cost_level=prior.cost_level or candidate.cost_level,
        acceleration=acceleration,
        stress_profile=stress_profile,
        sample_size_override=(prior.sample_size_override
                              if prior.sample_size_override is not None
                              else candidate.sample_size_override),
    )


def merge_selected_tests(
    existing: List[SelectedTest],
    candidates: List[SelectedTest],
) -> List[SelectedTest]:
    """Candidates in order, carrying over user decisions from existing tests.

    Tests no longer among the candidates are dropped.
    """
    by_id = {t.id: t for t in existing}
    return [
        _merge_test(candidate, by_id[candidate.id]) if candidate.id in by_id else candidate
        for candidate in candidates
    ]
