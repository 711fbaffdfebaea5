"""
Acceleration Engine
===================
Selects a physical acceleration model per test from its linked failure
mechanisms and computes the acceleration factor (AF) and equivalent field
life.

Models (T in Kelvin, k = 8.617e-5 eV/K):

    Arrhenius:      AF = exp((Ea/k) * (1/T_use - 1/T_stress))
    Coffin-Manson:  AF = (dT_stress / max(1, dT_use))^n
    Peck:           AF = (RH_stress / max(1, RH_use))^m * Arrhenius
    Eyring:         AF = (RH_stress / max(1, RH_use))^1.6 * Arrhenius

Model selection, first match wins:
    humidity-corrosion                               -> Peck
    humidity-corrosion or chemical-attack            -> Eyring
    thermal-fatigue                                  -> Coffin-Manson
    thermal-aging, electromigration, creep-relaxation -> Arrhenius
    otherwise the test's declared model, else none
An explicit non-"none" model already on the test is kept.

Stress defaults (when not overridden):
    T_use     = midpoint of the mission range
    T_stress  = T_max + 20 C, clamped to [T_max + 5 C, 200 C]
    dT_use    = max(1, T_max - T_min),  dT_stress = dT_use + 30
    RH_use    = mission %RH (or level lookup),  RH_stress = 85 %
    Ea        = test parameter, else housing material midpoint, else 0.7 eV

Enabled user overrides replace any subset of these and are trusted as-is
(no clamping). Invalid results degrade to AF = 1 with a warning.
"""

import logging
import math
from dataclasses import replace
from typing import List, Optional

from .catalog import ReferenceCatalog, default_catalog
from .config import DEFAULT_CONFIG, EngineConfig, K_BOLTZ
from .planning_state import (
    AccelerationInfo,
    AccelerationModel,
    MaterialsSelection,
    MissionProfile,
    ProductContext,
    SelectedTest,
)

logger = logging.getLogger(__name__)

# (model, mechanism ids that trigger it), in priority order
MODEL_SELECTION_RULES = (
    (AccelerationModel.PECK, frozenset({"humidity-corrosion"})),
    (AccelerationModel.EYRING, frozenset({"humidity-corrosion", "chemical-attack"})),
    (AccelerationModel.COFFIN_MANSON, frozenset({"thermal-fatigue"})),
    (AccelerationModel.ARRHENIUS, frozenset({"thermal-aging", "electromigration", "creep-relaxation"})),
)

POLYMER_PRODUCT_TAGS = frozenset({"polymer", "connector"})

WARN_ASSUMED_STRESS = "Assumed stress temperature = tempMax + 20C (clamped)."
WARN_STRESS_CLAMPED = "Stress temperature clamped for realism; verify over-stress intent."
WARN_SMALL_DELTA_T = "Delta T_use < 10C, Coffin-Manson may be unstable."
WARN_INVALID_AF = "Acceleration factor invalid; set to 1.0."
WARN_HUGE_AF = "Acceleration factor exceeds 1e4; validate assumptions."
WARN_POLYMER_TEMP = "TempMax > 150C on polymer-rich hardware may be non-representative."


def c_to_k(t_c: float) -> float:
    return t_c + 273.15


# =========================================================================
# Closed-form models
# =========================================================================

def arrhenius_af(ea: float, t_use_k: float, t_stress_k: float) -> float:
    """Arrhenius acceleration factor (Ea in eV, temperatures in K)."""
    return math.exp((ea / K_BOLTZ) * (1.0 / t_use_k - 1.0 / t_stress_k))


def coffin_manson_af(delta_t_stress: float, delta_t_use: float, n: float) -> float:
    return (delta_t_stress / max(1.0, delta_t_use)) ** n


def humidity_af(rh_stress: float, rh_use: float, exponent: float,
                ea: float, t_use_k: float, t_stress_k: float) -> float:
    """Peck / Eyring humidity-temperature factor."""
    return (rh_stress / max(1.0, rh_use)) ** exponent * arrhenius_af(ea, t_use_k, t_stress_k)


# =========================================================================
# Model selection and evaluation
# =========================================================================

def select_acceleration_model(test: SelectedTest) -> AccelerationModel:
    """Pick the acceleration model for a test from its linked mechanisms."""
    current = test.acceleration.model
    if current != AccelerationModel.NONE:
        return current
    linked = set(test.mechanism_ids)
    for model, mechanism_ids in MODEL_SELECTION_RULES:
        if linked & mechanism_ids:
            return model
    return current


def compute_acceleration(
    test: SelectedTest,
    mission: MissionProfile,
    product: ProductContext,
    materials: MaterialsSelection,
    catalog: Optional[ReferenceCatalog] = None,
    config: EngineConfig = DEFAULT_CONFIG,
) -> AccelerationInfo:
    """Compute AF, equivalent field-years and validity warnings for a test."""
    if catalog is None:
        catalog = default_catalog()
    cfg = config.acceleration
    warnings: List[str] = []
    model = select_acceleration_model(test)

    temp_min = mission.temp_min_c if mission.temp_min_c is not None else cfg.default_temp_min_c
    temp_max = mission.temp_max_c if mission.temp_max_c is not None else cfg.default_temp_max_c
    base_t_use_k = c_to_k((temp_min + temp_max) / 2.0)
    default_t_stress_k = c_to_k(temp_max + cfg.stress_temp_offset_c)
    default_delta_use = max(1.0, temp_max - temp_min)
    default_delta_stress = default_delta_use + cfg.delta_t_stress_offset_c

    params = dict(test.acceleration.params)
    overrides = test.acceleration.user_overrides
    base_rh_use = params.get("RHuse", mission.rh_use)
    base_rh_stress = params.get("RHstress", cfg.rh_stress_pct)
    base_ea = params.get("Ea")
    if base_ea is None:
        base_ea = catalog.material_ea_midpoint(materials.housing_material_id)
    if base_ea is None:
        base_ea = cfg.ea_ev
    base_n = params.get("n", cfg.coffin_manson_n)
    base_m = params.get("m", cfg.peck_m)

    t_use_k = overrides.value("t_use_k", base_t_use_k)
    raw_t_stress_k = overrides.value("t_stress_k", default_t_stress_k)
    delta_use = overrides.value("delta_t_use", default_delta_use)
    delta_stress = overrides.value("delta_t_stress", default_delta_stress)
    rh_use = overrides.value("rh_use", base_rh_use)
    rh_stress = overrides.value("rh_stress", base_rh_stress)
    ea = overrides.value("ea", base_ea)
    n = overrides.value("n", base_n)
    m = overrides.value("m", base_m)

    if overrides.enabled:
        t_stress_k = raw_t_stress_k
    else:
        low = c_to_k(temp_max + cfg.stress_temp_min_margin_c)
        high = c_to_k(cfg.stress_temp_ceiling_c)
        t_stress_k = min(high, max(low, raw_t_stress_k))
    if model != AccelerationModel.NONE and not overrides.enabled:
        warnings.append(WARN_ASSUMED_STRESS)
        if t_stress_k != raw_t_stress_k:
            warnings.append(WARN_STRESS_CLAMPED)
            logger.debug(f"{test.id}: stress temperature clamped to {t_stress_k - 273.15:.1f} C")

    af = 1.0
    try:
        if model == AccelerationModel.ARRHENIUS:
            af = arrhenius_af(ea, t_use_k, t_stress_k)
        elif model == AccelerationModel.COFFIN_MANSON:
            af = coffin_manson_af(delta_stress, delta_use, n)
            if delta_use < cfg.small_delta_t_c:
                warnings.append(WARN_SMALL_DELTA_T)
        elif model in (AccelerationModel.PECK, AccelerationModel.EYRING):
            exponent = m if model == AccelerationModel.PECK else cfg.eyring_m
            af = humidity_af(rh_stress, rh_use, exponent, ea, t_use_k, t_stress_k)
    except (OverflowError, ZeroDivisionError, ValueError) as e:
        logger.warning(f"{test.id}: {model.value} acceleration failed ({e})")
        af = float("nan")

    if isinstance(af, complex) or not math.isfinite(af) or af <= 0:
        logger.warning(f"{test.id}: invalid acceleration factor {af!r}, using 1.0")
        af = 1.0
        warnings.append(WARN_INVALID_AF)
    if af > cfg.huge_af:
        warnings.append(WARN_HUGE_AF)

    product_type = catalog.product_type(product.product_type)
    if product_type and temp_max > cfg.polymer_temp_limit_c:
        if POLYMER_PRODUCT_TAGS & set(product_type.domain_tags):
            warnings.append(WARN_POLYMER_TEMP)

    life_years = product.service_life_years or 0.0
    if model == AccelerationModel.NONE:
        af = 1.0
    equiv_years = life_years * (test.duration_weeks / 52.0) * af
    if not math.isfinite(equiv_years):
        equiv_years = None

    return AccelerationInfo(
        model=model,
        params=params,
        user_overrides=replace(overrides),
        af=round(af, 2),
        equiv_years=round(equiv_years, 2) if equiv_years is not None else None,
        warnings=warnings,
    )


def apply_acceleration(
    tests: List[SelectedTest],
    mission: MissionProfile,
    product: ProductContext,
    materials: MaterialsSelection,
    catalog: Optional[ReferenceCatalog] = None,
    config: EngineConfig = DEFAULT_CONFIG,
) -> List[SelectedTest]:
    """Return copies of the tests with refreshed acceleration annotations."""
    return [
        replace(test, acceleration=compute_acceleration(
            test, mission, product, materials, catalog=catalog, config=config))
        for test in tests
    ]
