"""
Planning State Data Model
=========================
Dataclasses for the in-memory planning-state object that the engine reads
and writes back: product context, mission profile, mechanism / material /
failure-mode selections, change triggers, prior evidence, the merged test
list with acceleration annotations, prioritization scores, residual risk,
reliability-plan targets, verification rows and the schedule.

Attributes are snake_case; to_dict()/from_dict() use the camelCase shape
consumed by the presentation and export layers.

Derived fields (AccelerationInfo, TestScore, ResidualRiskEntry, schedule
timings) are pure functions of upstream state and are overwritten on every
recompute. User-entered fields survive recomputation.
"""

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Any


# =========================================================================
# Closed variant types
# =========================================================================

class MechanismConfidence(Enum):
    HIGH = "high"
    MEDIUM = "medium"
    ASSUMED = "assumed"


class CoverageLevel(Enum):
    HIGH = "high"
    MEDIUM = "medium"
    SCREENING = "screening"


class TestStatus(Enum):
    __test__ = False  # not a pytest class

    KEEP = "keep"
    DOWNGRADE = "downgrade"
    REMOVE = "remove"


class PriorType(Enum):
    JEFFREYS = "jeffreys"
    UNIFORM = "uniform"


class EvidenceBadge(Enum):
    NONE = "None"
    LOW = "Low"
    MED = "Med"
    HIGH = "High"


class AccelerationModel(Enum):
    ARRHENIUS = "arrhenius"
    COFFIN_MANSON = "coffin-manson"
    PECK = "peck"
    EYRING = "eyring"
    NONE = "none"


class CoveredStatus(Enum):
    YES = "yes"
    PARTIAL = "partial"
    NO = "no"


class ResidualLevel(Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class ReliabilityMethod(Enum):
    BINOMIAL = "binomial"
    WEIBULL_BASIC = "weibull-basic"


class ResourceLane(Enum):
    THERMAL = "Thermal"
    HUMIDITY = "Humidity"
    VIBRATION = "Vibration"
    MECHANICAL = "Mechanical"
    CHEMICAL = "Chemical"


class ScheduleStrategy(Enum):
    SEQUENTIAL = "sequential"
    PARALLEL_BY_STRESSOR = "parallel-by-stressor"
    PARALLEL_MAX = "parallel-max"


# Relative humidity assumed for each qualitative humidity level (%RH)
HUMIDITY_TO_RH = {
    "low": 40.0,
    "medium": 65.0,
    "high": 85.0,
}


# =========================================================================
# Coercion helpers
# =========================================================================

def _safe_float(val, default: float = 0.0) -> float:
    if val is None:
        return default
    try:
        return float(val)
    except (TypeError, ValueError):
        return default


def _safe_int(val, default: int = 0) -> int:
    if val is None:
        return default
    try:
        return int(float(val))
    except (TypeError, ValueError):
        return default


def _opt_float(val) -> Optional[float]:
    if val is None or val == "":
        return None
    try:
        return float(val)
    except (TypeError, ValueError):
        return None


def _clamp_rating(val, default: int = 3) -> int:
    """Five-point rating (1-5)."""
    return max(1, min(5, _safe_int(val, default)))


def round_half_up(x: float) -> int:
    """Nearest integer, halves rounded up (round() would round 2.5 to 2)."""
    return int(math.floor(x + 0.5))


# =========================================================================
# Product and mission context
# =========================================================================

@dataclass
class ProductContext:
    product_type: str = ""
    industry: str = ""
    safety_critical: bool = False
    service_life_years: Optional[float] = None
    warranty_years: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "productType": self.product_type,
            "industry": self.industry,
            "safetyCritical": self.safety_critical,
            "serviceLifeYears": self.service_life_years,
            "warrantyYears": self.warranty_years,
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "ProductContext":
        return cls(
            product_type=d.get("productType", "") or "",
            industry=d.get("industry", "") or "",
            safety_critical=bool(d.get("safetyCritical", False)),
            service_life_years=_opt_float(d.get("serviceLifeYears")),
            warranty_years=_opt_float(d.get("warrantyYears")),
        )


@dataclass
class MissionProfile:
    """Field environment the product must survive.

    Attributes:
        temp_min_c / temp_max_c: Operating temperature range (deg C), None if unknown
        thermal_cycle_freq:      "rare", "daily" or "power-cycling"
        humidity:                Qualitative level "low", "medium", "high"
        humidity_pct:            Explicit %RH; takes precedence over the level
        humidity_scenario:       "controlled", "warehouse", "coastal", "condensing" or ""
        vibration:               "none", "low", "high"
        shock:                   "none", "occasional", "frequent"
        chemical_exposure:       "none", "salt", "oil", "mixed"
        active_duty_pct:         Powered fraction of life (0-100)
    """
    temp_min_c: Optional[float] = None
    temp_max_c: Optional[float] = None
    thermal_cycle_freq: str = "daily"
    humidity: str = "medium"
    humidity_pct: Optional[float] = None
    humidity_scenario: str = ""
    vibration: str = "low"
    shock: str = "occasional"
    chemical_exposure: str = "none"
    active_duty_pct: Optional[float] = 50.0

    @property
    def rh_use(self) -> float:
        """Use-condition relative humidity (%RH)."""
        if self.humidity_pct is not None:
            return self.humidity_pct
        return HUMIDITY_TO_RH.get(self.humidity, HUMIDITY_TO_RH["medium"])

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tempMinC": self.temp_min_c,
            "tempMaxC": self.temp_max_c,
            "thermalCycleFreq": self.thermal_cycle_freq,
            "humidity": self.humidity,
            "humidityPct": self.humidity_pct,
            "humidityScenario": self.humidity_scenario,
            "vibration": self.vibration,
            "shock": self.shock,
            "chemicalExposure": self.chemical_exposure,
            "activeDutyPct": self.active_duty_pct,
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "MissionProfile":
        base = cls()
        return cls(
            temp_min_c=_opt_float(d.get("tempMinC")),
            temp_max_c=_opt_float(d.get("tempMaxC")),
            thermal_cycle_freq=d.get("thermalCycleFreq", base.thermal_cycle_freq),
            humidity=d.get("humidity", base.humidity),
            humidity_pct=_opt_float(d.get("humidityPct")),
            humidity_scenario=d.get("humidityScenario", "") or "",
            vibration=d.get("vibration", base.vibration),
            shock=d.get("shock", base.shock),
            chemical_exposure=d.get("chemicalExposure", base.chemical_exposure),
            active_duty_pct=_opt_float(d.get("activeDutyPct", base.active_duty_pct)),
        )


@dataclass
class MechanismSelection:
    id: str
    name: str
    selected: bool = False
    confidence: MechanismConfidence = MechanismConfidence.MEDIUM
    exclusion_justification: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "selected": self.selected,
            "confidence": self.confidence.value,
            "exclusionJustification": self.exclusion_justification,
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "MechanismSelection":
        return cls(
            id=d["id"],
            name=d.get("name", d["id"]),
            selected=bool(d.get("selected", False)),
            confidence=MechanismConfidence(d.get("confidence") or "medium"),
            exclusion_justification=d.get("exclusionJustification"),
        )


@dataclass
class MaterialsSelection:
    housing_material_id: Optional[str] = None
    seal_material_id: Optional[str] = None
    contact_material_id: Optional[str] = None
    plating_id: Optional[str] = None
    pcb_substrate_id: Optional[str] = None
    solder_alloy_id: Optional[str] = None
    notes: Optional[str] = None

    _KEYS = (
        ("housing_material_id", "housingMaterialId"),
        ("seal_material_id", "sealMaterialId"),
        ("contact_material_id", "contactMaterialId"),
        ("plating_id", "platingId"),
        ("pcb_substrate_id", "pcbSubstrateId"),
        ("solder_alloy_id", "solderAlloyId"),
        ("notes", "notes"),
    )

    def to_dict(self) -> Dict[str, Any]:
        return {wire: getattr(self, attr) for attr, wire in self._KEYS
                if getattr(self, attr) is not None}

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "MaterialsSelection":
        return cls(**{attr: d.get(wire) for attr, wire in cls._KEYS})


@dataclass
class FailureModeSelection:
    selected: bool = False
    severity: int = 3
    occurrence: int = 3
    detection: int = 3
    mechanism_ids: List[str] = field(default_factory=list)
    notes: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        d = {
            "selected": self.selected,
            "severity": self.severity,
            "occurrence": self.occurrence,
            "detection": self.detection,
            "mechanismIds": list(self.mechanism_ids),
        }
        if self.notes is not None:
            d["notes"] = self.notes
        return d

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "FailureModeSelection":
        return cls(
            selected=bool(d.get("selected", False)),
            severity=_clamp_rating(d.get("severity")),
            occurrence=_clamp_rating(d.get("occurrence")),
            detection=_clamp_rating(d.get("detection")),
            mechanism_ids=list(d.get("mechanismIds", [])),
            notes=d.get("notes"),
        )


@dataclass
class ChangeTriggers:
    """Design changes that pull extra verification tests into the plan."""
    new_material: bool = False
    new_supplier: bool = False
    geometry_change: bool = False
    mounting_relocation: bool = False
    process_change: bool = False
    derating_change: bool = False
    cost_down_variant: bool = False

    _KEYS = (
        ("new_material", "newMaterial"),
        ("new_supplier", "newSupplier"),
        ("geometry_change", "geometryChange"),
        ("mounting_relocation", "mountingRelocation"),
        ("process_change", "processChange"),
        ("derating_change", "deratingChange"),
        ("cost_down_variant", "costDownVariant"),
    )

    def active(self) -> List[str]:
        """Wire names of the enabled triggers, in declaration order."""
        return [wire for attr, wire in self._KEYS if getattr(self, attr)]

    def to_dict(self) -> Dict[str, Any]:
        return {wire: getattr(self, attr) for attr, wire in self._KEYS}

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "ChangeTriggers":
        return cls(**{attr: bool(d.get(wire, False)) for attr, wire in cls._KEYS})


@dataclass
class PriorEvidenceEntry:
    """Historical test record for one test (trials, failures, relevance)."""
    n_prev: Optional[float] = None
    f_prev: Optional[float] = None
    similarity_pct: float = 100.0
    prior_type: PriorType = PriorType.JEFFREYS

    def to_dict(self) -> Dict[str, Any]:
        return {
            "nPrev": self.n_prev,
            "fPrev": self.f_prev,
            "similarityPct": self.similarity_pct,
            "priorType": self.prior_type.value,
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "PriorEvidenceEntry":
        return cls(
            n_prev=_opt_float(d.get("nPrev")),
            f_prev=_opt_float(d.get("fPrev")),
            similarity_pct=_safe_float(d.get("similarityPct"), 100.0),
            prior_type=PriorType(d.get("priorType") or "jeffreys"),
        )


# =========================================================================
# Tests and their annotations
# =========================================================================

@dataclass
class UserOverrides:
    """Explicit stress values that replace derived defaults when enabled.

    A value of None (or 0) means "not overridden".
    """
    enabled: bool = False
    t_use_k: Optional[float] = None
    t_stress_k: Optional[float] = None
    delta_t_use: Optional[float] = None
    delta_t_stress: Optional[float] = None
    rh_use: Optional[float] = None
    rh_stress: Optional[float] = None
    ea: Optional[float] = None
    n: Optional[float] = None
    m: Optional[float] = None
    notes: Optional[str] = None

    _KEYS = (
        ("t_use_k", "TuseK"),
        ("t_stress_k", "TstressK"),
        ("delta_t_use", "deltaTuse"),
        ("delta_t_stress", "deltaTstress"),
        ("rh_use", "RHuse"),
        ("rh_stress", "RHstress"),
        ("ea", "Ea"),
        ("n", "n"),
        ("m", "m"),
    )

    def value(self, attr: str, default: float) -> float:
        """Override for attr when enabled and set, else default."""
        if not self.enabled:
            return default
        v = getattr(self, attr)
        return v if v else default

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {"enabled": self.enabled}
        for attr, wire in self._KEYS:
            if getattr(self, attr) is not None:
                d[wire] = getattr(self, attr)
        if self.notes is not None:
            d["notes"] = self.notes
        return d

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "UserOverrides":
        kwargs = {attr: _opt_float(d.get(wire)) for attr, wire in cls._KEYS}
        return cls(enabled=bool(d.get("enabled", False)), notes=d.get("notes"), **kwargs)


@dataclass
class AccelerationInfo:
    model: AccelerationModel = AccelerationModel.NONE
    params: Dict[str, float] = field(default_factory=dict)
    user_overrides: UserOverrides = field(default_factory=UserOverrides)
    af: Optional[float] = None
    equiv_years: Optional[float] = None
    warnings: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "model": self.model.value,
            "params": dict(self.params),
            "userOverrides": self.user_overrides.to_dict(),
            "af": self.af,
            "equivYears": self.equiv_years,
            "warnings": list(self.warnings),
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "AccelerationInfo":
        return cls(
            model=AccelerationModel(d.get("model") or "none"),
            params={k: float(v) for k, v in (d.get("params") or {}).items()},
            user_overrides=UserOverrides.from_dict(d.get("userOverrides") or {}),
            af=_opt_float(d.get("af")),
            equiv_years=_opt_float(d.get("equivYears")),
            warnings=list(d.get("warnings") or []),
        )


@dataclass
class StressProfile:
    """Test conditions shown in the DVPR row.

    Derived from the mission on every recompute unless user_entered is set,
    in which case the entered fields are kept and only unset ones are filled.
    """
    temp_low_c: Optional[float] = None
    temp_high_c: Optional[float] = None
    dwell_min: Optional[float] = None
    ramp_rate_c_per_min: Optional[float] = None
    humidity_pct: Optional[float] = None
    vib_level: Optional[str] = None
    shock_level: Optional[str] = None
    electrical_load_note: Optional[str] = None
    user_entered: bool = False

    _KEYS = (
        ("temp_low_c", "tempLowC"),
        ("temp_high_c", "tempHighC"),
        ("dwell_min", "dwellMin"),
        ("ramp_rate_c_per_min", "rampRateCPerMin"),
        ("humidity_pct", "humidityPct"),
        ("vib_level", "vibLevel"),
        ("shock_level", "shockLevel"),
        ("electrical_load_note", "electricalLoadNote"),
    )

    def merged_with(self, prior: "StressProfile") -> "StressProfile":
        """Fields set on prior win over this profile's fields."""
        merged = StressProfile(**{
            attr: getattr(prior, attr) if getattr(prior, attr) is not None else getattr(self, attr)
            for attr, _ in self._KEYS
        })
        merged.user_entered = self.user_entered or prior.user_entered
        return merged

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {wire: getattr(self, attr) for attr, wire in self._KEYS
                             if getattr(self, attr) is not None}
        if self.user_entered:
            d["userEntered"] = True
        return d

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "StressProfile":
        kwargs: Dict[str, Any] = {"user_entered": bool(d.get("userEntered", False))}
        for attr, wire in cls._KEYS:
            v = d.get(wire)
            if attr in ("vib_level", "shock_level", "electrical_load_note"):
                kwargs[attr] = v
            else:
                kwargs[attr] = _opt_float(v)
        return cls(**kwargs)


@dataclass
class SelectedTest:
    """A candidate verification test with user decisions and annotations."""
    __test__ = False  # not a pytest class

    id: str
    name: str
    mechanism_ids: List[str] = field(default_factory=list)
    coverage: CoverageLevel = CoverageLevel.MEDIUM
    duration_weeks: float = 1.0
    cost_level: int = 1
    status: TestStatus = TestStatus.KEEP
    removal_justification: Optional[str] = None
    acceleration: AccelerationInfo = field(default_factory=AccelerationInfo)
    stress_profile: StressProfile = field(default_factory=StressProfile)
    sample_size_override: Optional[int] = None

    @property
    def is_kept(self) -> bool:
        return self.status == TestStatus.KEEP

    def to_dict(self) -> Dict[str, Any]:
        d = {
            "id": self.id,
            "name": self.name,
            "mechanismIds": list(self.mechanism_ids),
            "coverage": self.coverage.value,
            "durationWeeks": self.duration_weeks,
            "costLevel": self.cost_level,
            "status": self.status.value,
            "removalJustification": self.removal_justification,
            "acceleration": self.acceleration.to_dict(),
            "stressProfile": self.stress_profile.to_dict(),
        }
        if self.sample_size_override is not None:
            d["sampleSizeOverride"] = self.sample_size_override
        return d

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "SelectedTest":
        override = d.get("sampleSizeOverride")
        return cls(
            id=d["id"],
            name=d.get("name", d["id"]),
            mechanism_ids=list(d.get("mechanismIds", [])),
            coverage=CoverageLevel(d.get("coverage") or "medium"),
            duration_weeks=_safe_float(d.get("durationWeeks"), 1.0),
            cost_level=max(1, min(3, _safe_int(d.get("costLevel"), 1))),
            status=TestStatus(d.get("status") or "keep"),
            removal_justification=d.get("removalJustification"),
            acceleration=AccelerationInfo.from_dict(d.get("acceleration") or {}),
            stress_profile=StressProfile.from_dict(d.get("stressProfile") or {}),
            sample_size_override=_safe_int(override) if override is not None else None,
        )


@dataclass
class TestScore:
    """Risk score: severity x likelihood x detectability (1-125).

    Scores with user_entered set were rated by hand and are never
    overwritten; all others are re-derived on every recompute.
    """
    __test__ = False  # not a pytest class

    severity: int
    likelihood: int
    detectability: int
    score: int
    tier: int
    user_entered: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "severity": self.severity,
            "likelihood": self.likelihood,
            "detectability": self.detectability,
            "score": self.score,
            "tier": self.tier,
            "userEntered": self.user_entered,
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "TestScore":
        severity = _clamp_rating(d.get("severity"))
        likelihood = _clamp_rating(d.get("likelihood"))
        detectability = _clamp_rating(d.get("detectability"))
        score = severity * likelihood * detectability
        tier = 1 if score >= 60 else 2 if score >= 30 else 3
        return cls(severity, likelihood, detectability, score, tier,
                   user_entered=bool(d.get("userEntered", False)))


@dataclass
class ResidualRiskEntry:
    covered: CoveredStatus = CoveredStatus.NO
    residual: ResidualLevel = ResidualLevel.HIGH
    mitigations: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "covered": self.covered.value,
            "residual": self.residual.value,
            "mitigations": list(self.mitigations),
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "ResidualRiskEntry":
        return cls(
            covered=CoveredStatus(d.get("covered") or "no"),
            residual=ResidualLevel(d.get("residual") or "high"),
            mitigations=list(d.get("mitigations") or []),
        )


@dataclass
class ReliabilityPlan:
    target_reliability: float = 0.9
    confidence: float = 0.9
    allowed_failures: int = 0
    method: ReliabilityMethod = ReliabilityMethod.BINOMIAL
    mission_time_hours: Optional[float] = None
    required_sample_size: Optional[int] = None
    notes: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        d = {
            "targetReliability": self.target_reliability,
            "confidence": self.confidence,
            "allowedFailures": self.allowed_failures,
            "method": self.method.value,
        }
        if self.mission_time_hours is not None:
            d["missionTimeHours"] = self.mission_time_hours
        if self.required_sample_size is not None:
            d["requiredSampleSize"] = self.required_sample_size
        if self.notes is not None:
            d["notes"] = self.notes
        return d

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "ReliabilityPlan":
        required = d.get("requiredSampleSize")
        return cls(
            target_reliability=_safe_float(d.get("targetReliability"), 0.9),
            confidence=_safe_float(d.get("confidence"), 0.9),
            allowed_failures=max(0, _safe_int(d.get("allowedFailures"), 0)),
            method=ReliabilityMethod(d.get("method") or "binomial"),
            mission_time_hours=_opt_float(d.get("missionTimeHours")),
            required_sample_size=_safe_int(required) if required is not None else None,
            notes=d.get("notes"),
        )


@dataclass
class DvprRow:
    """Generated verification-requirement row (one per kept test)."""
    id: str
    requirement: str
    validation_method: str = "Test"
    test_id: Optional[str] = None
    spec_refs: List[Dict[str, str]] = field(default_factory=list)
    conditions: str = ""
    sample_size: Optional[int] = None
    duration_value: float = 1
    duration_unit: str = "weeks"
    risk: Dict[str, Any] = field(default_factory=dict)
    acceptance_criteria: str = ""
    owner: str = ""
    phase: str = "DV"
    notes: Optional[str] = None

    @property
    def duration_days(self) -> float:
        if self.duration_unit == "weeks":
            return self.duration_value * 7
        return self.duration_value

    def to_dict(self) -> Dict[str, Any]:
        d = {
            "id": self.id,
            "requirement": self.requirement,
            "validationMethod": self.validation_method,
            "testId": self.test_id,
            "specRefs": [dict(ref) for ref in self.spec_refs],
            "conditions": self.conditions,
            "sampleSize": self.sample_size,
            "duration": {"value": self.duration_value, "unit": self.duration_unit},
            "risk": dict(self.risk),
            "acceptanceCriteria": self.acceptance_criteria,
            "owner": self.owner,
            "phase": self.phase,
        }
        if self.notes is not None:
            d["notes"] = self.notes
        return d

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "DvprRow":
        duration = d.get("duration") or {}
        sample_size = d.get("sampleSize")
        return cls(
            id=d["id"],
            requirement=d.get("requirement", ""),
            validation_method=d.get("validationMethod", "Test"),
            test_id=d.get("testId"),
            spec_refs=[dict(ref) for ref in d.get("specRefs", [])],
            conditions=d.get("conditions", ""),
            sample_size=_safe_int(sample_size) if sample_size is not None else None,
            duration_value=_safe_float(duration.get("value"), 1),
            duration_unit=duration.get("unit", "weeks"),
            risk=dict(d.get("risk") or {}),
            acceptance_criteria=d.get("acceptanceCriteria", ""),
            owner=d.get("owner", ""),
            phase=d.get("phase", "DV"),
            notes=d.get("notes"),
        )


@dataclass
class ScheduleTask:
    id: str
    test_id: str
    name: str
    duration_days: int
    resource_lane: ResourceLane
    depends_on_task_ids: List[str] = field(default_factory=list)
    earliest_start_day: Optional[int] = None
    latest_finish_day: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "testId": self.test_id,
            "name": self.name,
            "durationDays": self.duration_days,
            "dependsOnTaskIds": list(self.depends_on_task_ids),
            "resourceLane": self.resource_lane.value,
            "earliestStartDay": self.earliest_start_day,
            "latestFinishDay": self.latest_finish_day,
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "ScheduleTask":
        start = d.get("earliestStartDay")
        finish = d.get("latestFinishDay")
        return cls(
            id=d["id"],
            test_id=d.get("testId", ""),
            name=d.get("name", ""),
            duration_days=max(1, _safe_int(d.get("durationDays"), 1)),
            resource_lane=ResourceLane(d.get("resourceLane") or "Mechanical"),
            depends_on_task_ids=list(d.get("dependsOnTaskIds", [])),
            earliest_start_day=_safe_int(start) if start is not None else None,
            latest_finish_day=_safe_int(finish) if finish is not None else None,
        )


@dataclass
class ScheduleSettings:
    strategy: ScheduleStrategy = ScheduleStrategy.SEQUENTIAL
    start_date_iso: Optional[str] = None
    tasks: List[ScheduleTask] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "strategy": self.strategy.value,
            "startDateISO": self.start_date_iso,
            "tasks": [t.to_dict() for t in self.tasks],
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "ScheduleSettings":
        return cls(
            strategy=ScheduleStrategy(d.get("strategy") or "sequential"),
            start_date_iso=d.get("startDateISO") or None,
            tasks=[ScheduleTask.from_dict(t) for t in d.get("tasks", [])],
        )


# =========================================================================
# Whole planning state
# =========================================================================

@dataclass
class PlanningState:
    product: ProductContext = field(default_factory=ProductContext)
    mission: MissionProfile = field(default_factory=MissionProfile)
    mechanisms: List[MechanismSelection] = field(default_factory=list)
    materials: MaterialsSelection = field(default_factory=MaterialsSelection)
    failure_modes: Dict[str, FailureModeSelection] = field(default_factory=dict)
    prior_evidence: Dict[str, PriorEvidenceEntry] = field(default_factory=dict)
    changes: ChangeTriggers = field(default_factory=ChangeTriggers)
    selected_tests: List[SelectedTest] = field(default_factory=list)
    test_scores: Dict[str, TestScore] = field(default_factory=dict)
    residual_risk: Dict[str, ResidualRiskEntry] = field(default_factory=dict)
    reliability_plan: ReliabilityPlan = field(default_factory=ReliabilityPlan)
    dvpr_rows: List[DvprRow] = field(default_factory=list)
    schedule: ScheduleSettings = field(default_factory=ScheduleSettings)

    def mechanism_by_id(self) -> Dict[str, MechanismSelection]:
        return {m.id: m for m in self.mechanisms}

    def kept_tests(self) -> List[SelectedTest]:
        return [t for t in self.selected_tests if t.is_kept]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "product": self.product.to_dict(),
            "missionProfile": self.mission.to_dict(),
            "mechanisms": [m.to_dict() for m in self.mechanisms],
            "materials": self.materials.to_dict(),
            "failureModes": {k: v.to_dict() for k, v in self.failure_modes.items()},
            "priorEvidence": {k: v.to_dict() for k, v in self.prior_evidence.items()},
            "changes": self.changes.to_dict(),
            "selectedTests": [t.to_dict() for t in self.selected_tests],
            "prioritization": {
                "testScores": {k: v.to_dict() for k, v in self.test_scores.items()},
            },
            "residualRisk": {
                "perMechanism": {k: v.to_dict() for k, v in self.residual_risk.items()},
            },
            "reliabilityPlan": self.reliability_plan.to_dict(),
            "dvpr": {"rows": [r.to_dict() for r in self.dvpr_rows]},
            "schedule": self.schedule.to_dict(),
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any],
                  default_failure_modes: Optional[Dict[str, FailureModeSelection]] = None
                  ) -> "PlanningState":
        """Hydrate a state, filling missing sections with defaults.

        Failure modes present in d are layered over default_failure_modes
        (typically seeded from the reference catalog).
        """
        failure_modes = dict(default_failure_modes or {})
        for key, value in (d.get("failureModes") or {}).items():
            failure_modes[key] = FailureModeSelection.from_dict(value)
        prioritization = d.get("prioritization") or {}
        residual = d.get("residualRisk") or {}
        return cls(
            product=ProductContext.from_dict(d.get("product") or {}),
            mission=MissionProfile.from_dict(d.get("missionProfile") or {}),
            mechanisms=[MechanismSelection.from_dict(m) for m in d.get("mechanisms") or []],
            materials=MaterialsSelection.from_dict(d.get("materials") or {}),
            failure_modes=failure_modes,
            prior_evidence={
                k: PriorEvidenceEntry.from_dict(v)
                for k, v in (d.get("priorEvidence") or {}).items()
            },
            changes=ChangeTriggers.from_dict(d.get("changes") or {}),
            selected_tests=[SelectedTest.from_dict(t) for t in d.get("selectedTests") or []],
            test_scores={
                k: TestScore.from_dict(v)
                for k, v in (prioritization.get("testScores") or {}).items()
            },
            residual_risk={
                k: ResidualRiskEntry.from_dict(v)
                for k, v in (residual.get("perMechanism") or {}).items()
            },
            reliability_plan=ReliabilityPlan.from_dict(d.get("reliabilityPlan") or {}),
            dvpr_rows=[DvprRow.from_dict(r) for r in (d.get("dvpr") or {}).get("rows", [])],
            schedule=ScheduleSettings.from_dict(d.get("schedule") or {}),
        )
