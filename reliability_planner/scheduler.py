"""
Scheduler
=========
Turns the kept tests into a lab schedule: one task per test, assigned to a
resource lane (shared test equipment), chained according to the chosen
strategy and timed with a forward pass in whole days.

Strategies:
    sequential            every task waits for the previous one
    parallel-by-stressor  tasks wait only for the previous task in the same lane
    parallel-max          no dependencies

When a calendar start date is set, a task whose start day falls on a
Saturday is pushed two days and one falling on a Sunday one day.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Dict, List, Optional, Any

from .catalog import ReferenceCatalog, TestDefinition, default_catalog
from .planning_state import (
    DvprRow,
    MissionProfile,
    PlanningState,
    ResourceLane,
    ScheduleStrategy,
    ScheduleTask,
    round_half_up,
)

logger = logging.getLogger(__name__)

LANE_BY_TEST_ID = {
    "temp-cycling": ResourceLane.THERMAL,
    "power-cycling": ResourceLane.THERMAL,
    "high-temp-storage": ResourceLane.THERMAL,
    "low-temp-storage": ResourceLane.THERMAL,
    "damp-heat": ResourceLane.HUMIDITY,
    "temp-humidity-constant": ResourceLane.HUMIDITY,
    "temp-humidity-cycling": ResourceLane.HUMIDITY,
    "random-vibration": ResourceLane.VIBRATION,
    "mechanical-shock": ResourceLane.VIBRATION,
    "mating-cycles": ResourceLane.MECHANICAL,
    "retention-force": ResourceLane.MECHANICAL,
    "mfg": ResourceLane.CHEMICAL,
    "chemical-resistance": ResourceLane.CHEMICAL,
    "salt-spray": ResourceLane.CHEMICAL,
}

SALINE_EXPOSURES = ("salt", "mixed")

SATURDAY = 5
SUNDAY = 6


def resource_lane_for_test(
    test_id: str,
    definition: Optional[TestDefinition],
    mission: MissionProfile,
) -> ResourceLane:
    """Lane for a test: explicit table first, then the test's stressors."""
    if test_id == "water-ingress":
        if mission.chemical_exposure in SALINE_EXPOSURES:
            return ResourceLane.CHEMICAL
        return ResourceLane.HUMIDITY
    lane = LANE_BY_TEST_ID.get(test_id)
    if lane is not None:
        return lane

    stressors = set(definition.stressor_ids) if definition else set()
    if "chemical" in stressors:
        return ResourceLane.CHEMICAL
    if "humidity" in stressors and "temperature" in stressors:
        return ResourceLane.HUMIDITY
    if stressors & {"vibration", "shock"}:
        return ResourceLane.VIBRATION
    if stressors & {"contact-motion", "particles-dust"}:
        return ResourceLane.MECHANICAL
    if stressors & {"temperature", "deltaT"}:
        return ResourceLane.THERMAL
    return ResourceLane.MECHANICAL


def parse_start_date(start_date_iso: Optional[str]) -> Optional[date]:
    if not start_date_iso:
        return None
    try:
        return date.fromisoformat(start_date_iso[:10])
    except ValueError:
        logger.warning(f"Ignoring invalid schedule start date '{start_date_iso}'")
        return None


def adjust_start_day(day: int, start_date: Optional[date]) -> int:
    """Shift a start day off the weekend (relative to start_date)."""
    if start_date is None:
        return day
    weekday = (start_date + timedelta(days=day)).weekday()
    if weekday == SATURDAY:
        return day + 2
    if weekday == SUNDAY:
        return day + 1
    return day


def _link_tasks(tasks: List[ScheduleTask], strategy: ScheduleStrategy) -> None:
    if strategy == ScheduleStrategy.SEQUENTIAL:
        for previous, task in zip(tasks, tasks[1:]):
            task.depends_on_task_ids = [previous.id]
    elif strategy == ScheduleStrategy.PARALLEL_BY_STRESSOR:
        last_in_lane: Dict[ResourceLane, str] = {}
        for task in tasks:
            prior = last_in_lane.get(task.resource_lane)
            if prior:
                task.depends_on_task_ids = [prior]
            last_in_lane[task.resource_lane] = task.id


def forward_pass(tasks: List[ScheduleTask], start_date: Optional[date] = None) -> None:
    """Fill earliest start / latest finish in place.

    Tasks must be in dependency order; a dependency that is not (yet)
    timed counts as finishing on day 0.
    """
    by_id = {t.id: t for t in tasks}
    for task in tasks:
        finishes = [
            by_id[dep].latest_finish_day or 0
            for dep in task.depends_on_task_ids if dep in by_id
        ]
        start = adjust_start_day(max(finishes, default=0), start_date)
        task.earliest_start_day = start
        task.latest_finish_day = start + task.duration_days


def build_schedule(
    state: PlanningState,
    catalog: Optional[ReferenceCatalog] = None,
    dvpr_rows: Optional[List[DvprRow]] = None,
) -> List[ScheduleTask]:
    """Build and time one task per kept test.

    Args:
        state:     Planning state (kept tests, mission, schedule settings)
        catalog:   Reference catalog for stressor-based lane fallback
        dvpr_rows: Verification rows supplying durations; defaults to state.dvpr_rows

    Returns:
        Tasks in test order with dependencies and timings filled in
    """
    if catalog is None:
        catalog = default_catalog()
    if dvpr_rows is None:
        dvpr_rows = state.dvpr_rows
    dvpr_by_test = {row.test_id: row for row in dvpr_rows if row.test_id}

    tasks = []
    for test in state.kept_tests():
        row = dvpr_by_test.get(test.id)
        if row is not None:
            days = row.duration_days
        else:
            days = max(1, round_half_up(test.duration_weeks)) * 7
        tasks.append(ScheduleTask(
            id=f"task-{test.id}",
            test_id=test.id,
            name=test.name,
            duration_days=max(1, round_half_up(days)),
            resource_lane=resource_lane_for_test(test.id, catalog.test(test.id), state.mission),
        ))

    _link_tasks(tasks, state.schedule.strategy)
    forward_pass(tasks, parse_start_date(state.schedule.start_date_iso))
    return tasks


@dataclass
class ScheduleStats:
    sequential_days: int = 0
    current_days: int = 0
    savings_pct: int = 0
    critical_lane: str = "--"
    lane_counts: Dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sequentialDays": self.sequential_days,
            "currentDays": self.current_days,
            "savingsPct": self.savings_pct,
            "criticalLane": self.critical_lane,
            "laneCounts": dict(self.lane_counts),
        }


def compute_schedule_stats(tasks: List[ScheduleTask]) -> ScheduleStats:
    """Sequential vs. scheduled duration, savings and the critical lane."""
    sequential_days = 0
    current_days = 0
    lane_counts: Dict[str, int] = {}
    lane_finish: Dict[str, int] = {}

    for task in tasks:
        sequential_days += task.duration_days
        end = (task.earliest_start_day or 0) + task.duration_days
        current_days = max(current_days, end, task.latest_finish_day or 0)
        lane = task.resource_lane.value
        lane_counts[lane] = lane_counts.get(lane, 0) + 1
        lane_finish[lane] = max(lane_finish.get(lane, 0), end)

    critical_lane = max(lane_finish, key=lane_finish.get) if lane_finish else "--"
    if sequential_days > 0:
        savings = round_half_up((sequential_days - current_days) / sequential_days * 100)
        savings_pct = max(0, savings)
    else:
        savings_pct = 0

    return ScheduleStats(
        sequential_days=sequential_days,
        current_days=current_days,
        savings_pct=savings_pct,
        critical_lane=critical_lane,
        lane_counts=lane_counts,
    )
