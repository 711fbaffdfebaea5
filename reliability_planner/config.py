"""
Engine Configuration
====================
Named constants for the planning engine: acceleration-model defaults,
solver limits, and the coverage-scoring weights/thresholds.

The coverage weights are heuristic (they do not encode a normative
standard). They are kept together here so a product owner can review and
override them from a JSON file without touching the scoring code.
"""

import json
from dataclasses import dataclass, field, fields, asdict
from pathlib import Path
from typing import Dict, Any, Union


# Boltzmann constant in eV/K
K_BOLTZ = 8.617e-5


@dataclass
class AccelerationDefaults:
    """Defaults used when a test carries no explicit model parameter."""
    ea_ev: float = 0.7                  # activation energy
    coffin_manson_n: float = 1.9
    peck_m: float = 2.7
    eyring_m: float = 1.6               # fixed humidity exponent for Eyring
    rh_stress_pct: float = 85.0
    stress_temp_offset_c: float = 20.0  # stress = mission max + offset
    stress_temp_min_margin_c: float = 5.0
    stress_temp_ceiling_c: float = 200.0
    delta_t_stress_offset_c: float = 30.0
    small_delta_t_c: float = 10.0       # Coffin-Manson instability threshold
    huge_af: float = 1e4
    polymer_temp_limit_c: float = 150.0
    default_temp_min_c: float = 25.0
    default_temp_max_c: float = 85.0


@dataclass
class SolverLimits:
    """Iteration bounds for the numerical routines."""
    bisection_steps: int = 60
    continued_fraction_terms: int = 200
    continued_fraction_eps: float = 3e-7
    max_sample_size: int = 5000


@dataclass
class CoverageWeights:
    """Point weights and thresholds of the six coverage dimensions.

    Pending product-owner confirmation; see DESIGN.md.
    """
    mission_max: int = 20
    mechanism_max: int = 25
    mechanism_full_count: int = 6
    mechanism_partial_count: int = 4
    mechanism_partial_points: int = 15
    mechanism_min_points: int = 5
    failure_mode_max: int = 15
    failure_mode_full_count: int = 5
    failure_mode_partial_count: int = 3
    failure_mode_partial_points: int = 8
    failure_mode_min_points: int = 4
    mapping_max: int = 20
    mapping_partial_points: int = 10
    mapping_max_missing_for_partial: int = 2
    humidity_penalty: int = 5
    humidity_required_pct: float = 60.0
    acceleration_max: int = 10
    acceleration_warning_points: int = 5
    residual_max: int = 10
    fix_list_size: int = 6
    tier1_evidence_gain: int = 5


@dataclass
class EngineConfig:
    """Top-level engine configuration."""
    acceleration: AccelerationDefaults = field(default_factory=AccelerationDefaults)
    solver: SolverLimits = field(default_factory=SolverLimits)
    coverage: CoverageWeights = field(default_factory=CoverageWeights)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "acceleration": asdict(self.acceleration),
            "solver": asdict(self.solver),
            "coverage": asdict(self.coverage),
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "EngineConfig":
        return cls(
            acceleration=_section_from_dict(AccelerationDefaults, d.get("acceleration")),
            solver=_section_from_dict(SolverLimits, d.get("solver")),
            coverage=_section_from_dict(CoverageWeights, d.get("coverage")),
        )


def _section_from_dict(section_cls, data):
    """Build a config section, ignoring unknown keys and keeping field types."""
    if not isinstance(data, dict):
        return section_cls()
    defaults = section_cls()
    kwargs = {}
    for f in fields(section_cls):
        if f.name not in data:
            continue
        default_value = getattr(defaults, f.name)
        kwargs[f.name] = type(default_value)(data[f.name])
    return section_cls(**kwargs)


def load_engine_config(path: Union[str, Path]) -> EngineConfig:
    """Load an EngineConfig from a JSON file."""
    with open(path, "r", encoding="utf-8") as f:
        return EngineConfig.from_dict(json.load(f))


def save_engine_config(config: EngineConfig, path: Union[str, Path]) -> None:
    """Write an EngineConfig as JSON, creating parent folders as needed."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(config.to_dict(), f, indent=2)


DEFAULT_CONFIG = EngineConfig()
