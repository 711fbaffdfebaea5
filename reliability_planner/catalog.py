"""
Reference Catalog
=================
Read-only knowledge base consumed by the engine: failure mechanisms,
verification tests, materials, failure modes and product types, each keyed
by a stable string id.

The engine never mutates the catalog. A different knowledge base can be
supplied with ReferenceCatalog.from_dict(); the starter catalog below keeps
the engine usable on its own.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Any

from .planning_state import (
    AccelerationModel,
    CoverageLevel,
    FailureModeSelection,
)


@dataclass(frozen=True)
class MechanismDef:
    id: str
    name: str
    stressor_ids: tuple = ()
    recommended_models: tuple = ()
    default_confidence: str = "medium"

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "MechanismDef":
        return cls(
            id=d["id"],
            name=d.get("name", d["id"]),
            stressor_ids=tuple(d.get("stressorIds", [])),
            recommended_models=tuple(d.get("recommendedModels", [])),
            default_confidence=d.get("defaultConfidence", "medium"),
        )


@dataclass(frozen=True)
class TestDefinition:
    """Catalog entry for a verification test."""
    __test__ = False  # not a pytest class

    id: str
    name: str
    category: str
    mechanism_ids: tuple
    stressor_ids: tuple
    coverage: CoverageLevel
    duration_weeks: float
    cost_level: int
    model: AccelerationModel = AccelerationModel.NONE
    parameter_defaults: Dict[str, float] = field(default_factory=dict, hash=False)
    references: tuple = ()

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "TestDefinition":
        defaults = d.get("defaults", {})
        accel = d.get("acceleration", {})
        return cls(
            id=d["id"],
            name=d.get("name", d["id"]),
            category=d.get("category", ""),
            mechanism_ids=tuple(d.get("mechanismIds", [])),
            stressor_ids=tuple(d.get("stressorIds", [])),
            coverage=CoverageLevel(defaults.get("coverage", "medium")),
            duration_weeks=float(defaults.get("durationWeeks", 1)),
            cost_level=int(defaults.get("costLevel", 1)),
            model=AccelerationModel(accel.get("model", "none")),
            parameter_defaults={k: float(v) for k, v in accel.get("parameterDefaults", {}).items()},
            references=tuple(
                (ref["standard"], ref.get("clause")) for ref in d.get("references", [])
            ),
        )


@dataclass(frozen=True)
class MaterialEntry:
    id: str
    name: str
    category: str
    ea_min: Optional[float] = None
    ea_max: Optional[float] = None

    @property
    def ea_midpoint(self) -> Optional[float]:
        if self.ea_min is None or self.ea_max is None:
            return None
        return (self.ea_min + self.ea_max) / 2.0

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "MaterialEntry":
        ea_range = d.get("eaRange") or {}
        return cls(
            id=d["id"],
            name=d.get("name", d["id"]),
            category=d.get("category", ""),
            ea_min=ea_range.get("min"),
            ea_max=ea_range.get("max"),
        )


@dataclass(frozen=True)
class FailureModeEntry:
    id: str
    name: str
    default_severity: int
    default_occurrence: int
    default_detection: int
    mechanism_ids: tuple

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "FailureModeEntry":
        return cls(
            id=d["id"],
            name=d.get("name", d["id"]),
            default_severity=int(d.get("defaultSeverity", 3)),
            default_occurrence=int(d.get("defaultOccurrence", 3)),
            default_detection=int(d.get("defaultDetection", 3)),
            mechanism_ids=tuple(d.get("mechanismIds", [])),
        )


@dataclass(frozen=True)
class ProductType:
    id: str
    name: str
    domain_tags: tuple = ()
    default_mechanism_ids: tuple = ()

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "ProductType":
        return cls(
            id=d["id"],
            name=d.get("name", d["id"]),
            domain_tags=tuple(d.get("domainTags", [])),
            default_mechanism_ids=tuple(d.get("defaultMechanismIds", [])),
        )


class ReferenceCatalog:
    """Keyed, read-only view over a knowledge base.

    Iteration order of every collection is the order of the source data;
    candidate tests and synced mechanisms follow it.
    """

    def __init__(
        self,
        mechanisms: List[MechanismDef],
        tests: List[TestDefinition],
        materials: List[MaterialEntry],
        failure_modes: List[FailureModeEntry],
        product_types: List[ProductType],
    ):
        self.mechanisms = tuple(mechanisms)
        self.tests = tuple(tests)
        self.materials = tuple(materials)
        self.failure_modes = tuple(failure_modes)
        self.product_types = tuple(product_types)
        self._mechanisms = {m.id: m for m in self.mechanisms}
        self._tests = {t.id: t for t in self.tests}
        self._materials = {m.id: m for m in self.materials}
        self._product_types = {p.id: p for p in self.product_types}

    def mechanism(self, mechanism_id: str) -> Optional[MechanismDef]:
        return self._mechanisms.get(mechanism_id)

    def test(self, test_id: str) -> Optional[TestDefinition]:
        return self._tests.get(test_id)

    def material(self, material_id: Optional[str]) -> Optional[MaterialEntry]:
        if not material_id:
            return None
        return self._materials.get(material_id)

    def product_type(self, product_type_id: Optional[str]) -> Optional[ProductType]:
        if not product_type_id:
            return None
        return self._product_types.get(product_type_id)

    def material_ea_midpoint(self, material_id: Optional[str]) -> Optional[float]:
        material = self.material(material_id)
        return material.ea_midpoint if material else None

    def default_failure_modes(self) -> Dict[str, FailureModeSelection]:
        """Unselected failure-mode selections seeded from catalog defaults."""
        return {
            fm.id: FailureModeSelection(
                selected=False,
                severity=fm.default_severity,
                occurrence=fm.default_occurrence,
                detection=fm.default_detection,
                mechanism_ids=list(fm.mechanism_ids),
            )
            for fm in self.failure_modes
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "ReferenceCatalog":
        return cls(
            mechanisms=[MechanismDef.from_dict(x) for x in d.get("mechanisms", [])],
            tests=[TestDefinition.from_dict(x) for x in d.get("tests", [])],
            materials=[MaterialEntry.from_dict(x) for x in d.get("materials", [])],
            failure_modes=[FailureModeEntry.from_dict(x) for x in d.get("failureModes", [])],
            product_types=[ProductType.from_dict(x) for x in d.get("productTypes", [])],
        )


# =========================================================================
# Starter knowledge base
# =========================================================================

STARTER_KNOWLEDGE_BASE = {
    "mechanisms": [
        {"id": "thermal-fatigue", "name": "Thermal Fatigue (CTE mismatch)",
         "stressorIds": ["deltaT", "temperature"], "recommendedModels": ["coffin-manson"],
         "defaultConfidence": "high"},
        {"id": "thermal-aging", "name": "Thermal Aging / Diffusion",
         "stressorIds": ["temperature"], "recommendedModels": ["arrhenius"],
         "defaultConfidence": "high"},
        {"id": "creep-relaxation", "name": "Creep / Stress Relaxation",
         "stressorIds": ["temperature"], "recommendedModels": ["arrhenius"],
         "defaultConfidence": "medium"},
        {"id": "fretting-corrosion", "name": "Fretting Corrosion (Micro-motion)",
         "stressorIds": ["vibration", "contact-motion", "humidity"], "recommendedModels": ["none"],
         "defaultConfidence": "medium"},
        {"id": "humidity-corrosion", "name": "Humidity-Driven Corrosion / Leakage",
         "stressorIds": ["humidity", "temperature"], "recommendedModels": ["peck", "eyring"],
         "defaultConfidence": "medium"},
        {"id": "chemical-attack", "name": "Chemical Attack / Swell / Degradation",
         "stressorIds": ["chemical", "temperature"], "recommendedModels": ["eyring"],
         "defaultConfidence": "assumed"},
        {"id": "vibration-fatigue", "name": "Vibration-Induced Fatigue",
         "stressorIds": ["vibration", "shock"], "recommendedModels": ["none"],
         "defaultConfidence": "medium"},
        {"id": "seal-degradation", "name": "Seal Degradation / Water Ingress",
         "stressorIds": ["humidity", "chemical", "particles-dust"], "recommendedModels": ["none"],
         "defaultConfidence": "medium"},
        {"id": "electromigration", "name": "Electromigration (High current density)",
         "stressorIds": ["electrical-load", "temperature"], "recommendedModels": ["arrhenius"],
         "defaultConfidence": "assumed"},
        {"id": "eos-overstress", "name": "Electrical Overstress (EOS) / Transients",
         "stressorIds": ["electrical-load"], "recommendedModels": ["none"],
         "defaultConfidence": "assumed"},
    ],
    "tests": [
        {"id": "temp-cycling", "name": "Temperature Cycling (TC)", "category": "thermal",
         "mechanismIds": ["thermal-fatigue", "seal-degradation"], "stressorIds": ["deltaT", "temperature"],
         "defaults": {"coverage": "high", "durationWeeks": 4, "costLevel": 2},
         "acceleration": {"model": "coffin-manson", "parameterDefaults": {"n": 1.9}},
         "references": [{"standard": "IEC 60068-2-14"}, {"standard": "ISO 16750-4"}]},
        {"id": "power-cycling", "name": "Power Cycling (PC)", "category": "thermal",
         "mechanismIds": ["thermal-fatigue", "electromigration"],
         "stressorIds": ["deltaT", "electrical-load", "temperature"],
         "defaults": {"coverage": "high", "durationWeeks": 6, "costLevel": 3},
         "acceleration": {"model": "coffin-manson", "parameterDefaults": {"n": 1.9}},
         "references": [{"standard": "ISO 16750-4"}]},
        {"id": "high-temp-storage", "name": "High Temperature Storage (HTS)", "category": "thermal",
         "mechanismIds": ["thermal-aging", "creep-relaxation"], "stressorIds": ["temperature"],
         "defaults": {"coverage": "high", "durationWeeks": 6, "costLevel": 2},
         "acceleration": {"model": "arrhenius", "parameterDefaults": {"Ea": 0.7}},
         "references": [{"standard": "IEC 60068-2-2"}]},
        {"id": "low-temp-storage", "name": "Low Temperature Storage (LTS)", "category": "thermal",
         "mechanismIds": ["seal-degradation"], "stressorIds": ["temperature"],
         "defaults": {"coverage": "medium", "durationWeeks": 2, "costLevel": 1},
         "acceleration": {"model": "none"},
         "references": [{"standard": "IEC 60068-2-1"}]},
        {"id": "damp-heat", "name": "Damp Heat / High Humidity (THB-like)", "category": "environmental",
         "mechanismIds": ["humidity-corrosion", "seal-degradation"], "stressorIds": ["humidity", "temperature"],
         "defaults": {"coverage": "high", "durationWeeks": 4, "costLevel": 2},
         "acceleration": {"model": "peck", "parameterDefaults": {"m": 2.7, "Ea": 0.7}},
         "references": [{"standard": "IEC 60068-2-78"}, {"standard": "ISO 16750-4"}]},
        {"id": "temp-humidity-constant", "name": "Temperature/Humidity Constant Exposure",
         "category": "environmental",
         "mechanismIds": ["humidity-corrosion", "seal-degradation"], "stressorIds": ["humidity", "temperature"],
         "defaults": {"coverage": "high", "durationWeeks": 4, "costLevel": 2},
         "acceleration": {"model": "peck", "parameterDefaults": {"m": 2.7, "Ea": 0.7}},
         "references": [{"standard": "IEC 60068-2-78"}]},
        {"id": "temp-humidity-cycling", "name": "Temperature/Humidity Cycling", "category": "environmental",
         "mechanismIds": ["humidity-corrosion", "seal-degradation"], "stressorIds": ["humidity", "temperature"],
         "defaults": {"coverage": "medium", "durationWeeks": 4, "costLevel": 2},
         "acceleration": {"model": "peck", "parameterDefaults": {"m": 2.7, "Ea": 0.7}},
         "references": [{"standard": "IEC 60068-2-30"}]},
        {"id": "mfg", "name": "Mixed Flowing Gas (MFG)", "category": "environmental",
         "mechanismIds": ["humidity-corrosion", "fretting-corrosion"],
         "stressorIds": ["humidity", "chemical", "temperature"],
         "defaults": {"coverage": "medium", "durationWeeks": 3, "costLevel": 3},
         "acceleration": {"model": "eyring", "parameterDefaults": {"Ea": 0.7}},
         "references": [{"standard": "IEC 60068-2-60"}]},
        {"id": "salt-spray", "name": "Salt Spray / Salt Fog", "category": "environmental",
         "mechanismIds": ["humidity-corrosion", "seal-degradation", "chemical-attack"],
         "stressorIds": ["chemical", "humidity"],
         "defaults": {"coverage": "medium", "durationWeeks": 2, "costLevel": 2},
         "acceleration": {"model": "none"},
         "references": [{"standard": "ISO 9227"}]},
        {"id": "water-ingress", "name": "Water Ingress / Splash / IP Check", "category": "environmental",
         "mechanismIds": ["seal-degradation"], "stressorIds": ["humidity", "particles-dust"],
         "defaults": {"coverage": "high", "durationWeeks": 1, "costLevel": 2},
         "acceleration": {"model": "none"},
         "references": [{"standard": "IEC 60529"}]},
        {"id": "chemical-resistance", "name": "Chemical Resistance (Fluids / Cleaners)",
         "category": "environmental",
         "mechanismIds": ["chemical-attack", "seal-degradation"], "stressorIds": ["chemical", "temperature"],
         "defaults": {"coverage": "high", "durationWeeks": 2, "costLevel": 2},
         "acceleration": {"model": "eyring", "parameterDefaults": {"Ea": 0.7}},
         "references": [{"standard": "ISO 16750-5"}]},
        {"id": "random-vibration", "name": "Random Vibration", "category": "mechanical",
         "mechanismIds": ["vibration-fatigue", "fretting-corrosion"], "stressorIds": ["vibration"],
         "defaults": {"coverage": "high", "durationWeeks": 2, "costLevel": 2},
         "acceleration": {"model": "none"},
         "references": [{"standard": "ISO 16750-3"}]},
        {"id": "mechanical-shock", "name": "Mechanical Shock / Drop / Impact", "category": "mechanical",
         "mechanismIds": ["vibration-fatigue"], "stressorIds": ["shock"],
         "defaults": {"coverage": "medium", "durationWeeks": 1, "costLevel": 1},
         "acceleration": {"model": "none"},
         "references": [{"standard": "ISO 16750-3"}]},
        {"id": "mating-cycles", "name": "Mating / Unmating Cycles (Durability)", "category": "mechanical",
         "mechanismIds": ["fretting-corrosion", "seal-degradation"],
         "stressorIds": ["contact-motion", "particles-dust"],
         "defaults": {"coverage": "medium", "durationWeeks": 2, "costLevel": 1},
         "acceleration": {"model": "none"},
         "references": [{"standard": "USCAR-2"}]},
        {"id": "retention-force", "name": "Retention / Pull-out / Clamping Force", "category": "mechanical",
         "mechanismIds": ["creep-relaxation", "seal-degradation"], "stressorIds": ["temperature"],
         "defaults": {"coverage": "medium", "durationWeeks": 1, "costLevel": 1},
         "acceleration": {"model": "none"},
         "references": [{"standard": "USCAR-2"}]},
        {"id": "eos-transient", "name": "EOS / Transient Robustness Check (Surge / Load dump-like)",
         "category": "electrical",
         "mechanismIds": ["eos-overstress"], "stressorIds": ["electrical-load"],
         "defaults": {"coverage": "high", "durationWeeks": 2, "costLevel": 3},
         "acceleration": {"model": "none"},
         "references": [{"standard": "ISO 16750-2"}]},
        {"id": "esd-immunity", "name": "ESD Immunity (System-level)", "category": "electrical",
         "mechanismIds": ["eos-overstress"], "stressorIds": ["electrical-load"],
         "defaults": {"coverage": "medium", "durationWeeks": 1, "costLevel": 2},
         "acceleration": {"model": "none"},
         "references": [{"standard": "ISO 10605"}]},
        {"id": "burn-in-screen", "name": "Burn-in / Screening (Early-life)", "category": "screening",
         "mechanismIds": ["eos-overstress", "thermal-aging"], "stressorIds": ["temperature", "electrical-load"],
         "defaults": {"coverage": "screening", "durationWeeks": 2, "costLevel": 2},
         "acceleration": {"model": "arrhenius", "parameterDefaults": {"Ea": 0.7}},
         "references": [{"standard": "JESD22-A108"}]},
    ],
    "materials": [
        {"id": "pa66-gf30", "name": "PA66-GF30", "category": "housing", "eaRange": {"min": 0.6, "max": 0.9}},
        {"id": "pbt-gf", "name": "PBT-GF", "category": "housing", "eaRange": {"min": 0.5, "max": 0.85}},
        {"id": "pps", "name": "PPS", "category": "housing", "eaRange": {"min": 0.7, "max": 1.0}},
        {"id": "silicone", "name": "Silicone", "category": "seal", "eaRange": {"min": 0.4, "max": 0.7}},
        {"id": "epdm", "name": "EPDM", "category": "seal", "eaRange": {"min": 0.5, "max": 0.8}},
        {"id": "cusn", "name": "CuSn", "category": "contact"},
        {"id": "cunisi", "name": "CuNiSi", "category": "contact"},
        {"id": "tin", "name": "Tin", "category": "plating"},
        {"id": "silver", "name": "Silver", "category": "plating"},
        {"id": "gold", "name": "Gold", "category": "plating"},
        {"id": "fr4", "name": "FR-4", "category": "pcb", "eaRange": {"min": 0.7, "max": 1.0}},
        {"id": "sac305", "name": "SAC305", "category": "solder"},
    ],
    "failureModes": [
        {"id": "intermittent-open", "name": "Intermittent open at contact",
         "defaultSeverity": 4, "defaultOccurrence": 3, "defaultDetection": 3,
         "mechanismIds": ["fretting-corrosion", "vibration-fatigue"]},
        {"id": "contact-resistance-drift", "name": "Contact resistance drift",
         "defaultSeverity": 3, "defaultOccurrence": 3, "defaultDetection": 3,
         "mechanismIds": ["creep-relaxation", "humidity-corrosion"]},
        {"id": "water-ingress", "name": "Water ingress",
         "defaultSeverity": 4, "defaultOccurrence": 2, "defaultDetection": 4,
         "mechanismIds": ["seal-degradation"]},
        {"id": "solder-crack", "name": "Solder joint crack",
         "defaultSeverity": 4, "defaultOccurrence": 3, "defaultDetection": 3,
         "mechanismIds": ["thermal-fatigue"]},
        {"id": "eos-damage", "name": "EOS damage",
         "defaultSeverity": 5, "defaultOccurrence": 2, "defaultDetection": 3,
         "mechanismIds": ["eos-overstress"]},
        {"id": "corrosion-bridging", "name": "Corrosion bridging / leakage",
         "defaultSeverity": 4, "defaultOccurrence": 3, "defaultDetection": 3,
         "mechanismIds": ["humidity-corrosion"]},
        {"id": "seal-crack", "name": "Seal cracking",
         "defaultSeverity": 4, "defaultOccurrence": 2, "defaultDetection": 4,
         "mechanismIds": ["seal-degradation", "chemical-attack", "thermal-aging"]},
        {"id": "fatigue-fracture", "name": "Structural fatigue fracture",
         "defaultSeverity": 4, "defaultOccurrence": 2, "defaultDetection": 3,
         "mechanismIds": ["vibration-fatigue"]},
        {"id": "material-embrittlement", "name": "Material embrittlement",
         "defaultSeverity": 3, "defaultOccurrence": 2, "defaultDetection": 3,
         "mechanismIds": ["thermal-aging"]},
        {"id": "electromigration-open", "name": "Electromigration open",
         "defaultSeverity": 4, "defaultOccurrence": 2, "defaultDetection": 3,
         "mechanismIds": ["electromigration"]},
    ],
    "productTypes": [
        {"id": "connector-lv", "name": "Low-voltage Connector",
         "domainTags": ["connector", "automotive", "electromechanical", "polymer"],
         "defaultMechanismIds": ["fretting-corrosion", "thermal-aging", "creep-relaxation",
                                 "vibration-fatigue", "seal-degradation"]},
        {"id": "ecu-module", "name": "ECU / Electronic Module",
         "domainTags": ["ecu", "electronics", "pcb", "automotive"],
         "defaultMechanismIds": ["thermal-fatigue", "thermal-aging", "vibration-fatigue",
                                 "eos-overstress", "humidity-corrosion"]},
        {"id": "pcb-assembly", "name": "PCB Assembly",
         "domainTags": ["pcb", "electronics", "solder", "components"],
         "defaultMechanismIds": ["thermal-fatigue", "thermal-aging", "humidity-corrosion",
                                 "electromigration", "eos-overstress"]},
        {"id": "sensor", "name": "Sensor (Mechatronic)",
         "domainTags": ["sensor", "mechatronic", "automotive"],
         "defaultMechanismIds": ["thermal-fatigue", "thermal-aging", "vibration-fatigue",
                                 "seal-degradation", "humidity-corrosion"]},
    ],
}

# Tests whose primary stressor is humidity (for the mapping penalty)
HUMIDITY_TEST_IDS = frozenset({"temp-humidity-constant", "temp-humidity-cycling", "damp-heat"})


def is_humidity_based_test_id(test_id: str) -> bool:
    return test_id in HUMIDITY_TEST_IDS


_default_catalog: Optional[ReferenceCatalog] = None


def default_catalog() -> ReferenceCatalog:
    """Starter catalog, built once."""
    global _default_catalog
    if _default_catalog is None:
        _default_catalog = ReferenceCatalog.from_dict(STARTER_KNOWLEDGE_BASE)
    return _default_catalog
