"""
Reliability Test Planner
========================
Decision engine for reliability test planning

Version: 1.0.0

Features:
- Mechanism suggestion from product type and mission environment
- Candidate verification tests with change-trigger and humidity rules
- Acceleration models: Arrhenius, Coffin-Manson, Peck, Eyring
- Beta-Binomial fusion of prior test evidence (Jeffreys / uniform priors)
- Binomial and Weibull-basic sample-size solver with log-space sums
- Severity x likelihood x detectability prioritization with tiers
- Residual-risk declaration per failure mechanism
- Six-dimension coverage score with ranked fix list
- Resource-lane lab schedule (sequential / by stressor / max parallel)
- JSON-backed engine configuration
"""

__version__ = "1.0.0"

from .config import (
    EngineConfig,
    AccelerationDefaults,
    SolverLimits,
    CoverageWeights,
    DEFAULT_CONFIG,
    load_engine_config,
    save_engine_config,
)

from .planning_state import (
    PlanningState,
    ProductContext,
    MissionProfile,
    MechanismSelection,
    MaterialsSelection,
    FailureModeSelection,
    ChangeTriggers,
    PriorEvidenceEntry,
    SelectedTest,
    AccelerationInfo,
    UserOverrides,
    StressProfile,
    ResidualRiskEntry,
    ReliabilityPlan,
    DvprRow,
    ScheduleTask,
    ScheduleSettings,
    AccelerationModel,
    CoverageLevel,
    MechanismConfidence,
    ReliabilityMethod,
    ResourceLane,
    ScheduleStrategy,
)

from .catalog import ReferenceCatalog, default_catalog

from .special_functions import (
    log_gamma,
    regularized_incomplete_beta,
    beta_inverse_cdf,
    BetaInverseCache,
)

from .evidence_fusion import compute_prior_evidence, PriorEvidenceResult

from .acceleration import compute_acceleration, select_acceleration_model

from .sample_size import SampleSizeSolver, compute_required_sample_size

from .prioritization import merge_test_scores

from .residual_risk import compute_residual_risk

from .coverage import (
    compute_coverage_breakdown,
    compute_warnings,
    compute_confidence_score,
    CoverageBreakdown,
)

from .scheduler import build_schedule, compute_schedule_stats, ScheduleStats

from .dvpr import build_dvpr_rows

from .engine import PlanningEngine, PlanResult, EngineCaches, default_planning_state
