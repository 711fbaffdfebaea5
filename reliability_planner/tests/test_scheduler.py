"""
Test Suite for the Scheduler

Tests:
- Resource-lane assignment (table, mission context, stressor fallback)
- Sequential / parallel-by-stressor / parallel-max strategies
- Weekend shift relative to the calendar start date
- Utilization statistics

Run with: pytest reliability_planner/tests/test_scheduler.py -v
"""

import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__)))))

from reliability_planner.catalog import default_catalog
from reliability_planner.planning_state import (
    DvprRow,
    MissionProfile,
    PlanningState,
    ResourceLane,
    ScheduleSettings,
    ScheduleStrategy,
    ScheduleTask,
    SelectedTest,
    TestStatus,
)
from reliability_planner.scheduler import (
    adjust_start_day,
    build_schedule,
    compute_schedule_stats,
    parse_start_date,
    resource_lane_for_test,
)

CATALOG = default_catalog()


def three_test_state(strategy, start_date_iso=None):
    """Thermal 7 d, Vibration 14 d, Mechanical 7 d"""
    tests = [
        SelectedTest(id="temp-cycling", name="TC", duration_weeks=1),
        SelectedTest(id="random-vibration", name="RV", duration_weeks=2),
        SelectedTest(id="mating-cycles", name="MC", duration_weeks=1),
    ]
    return PlanningState(
        selected_tests=tests,
        schedule=ScheduleSettings(strategy=strategy, start_date_iso=start_date_iso),
    )


class TestResourceLanes:
    """Lane lookup."""

    def test_table(self):
        mission = MissionProfile()
        assert resource_lane_for_test("temp-cycling", None, mission) == ResourceLane.THERMAL
        assert resource_lane_for_test("damp-heat", None, mission) == ResourceLane.HUMIDITY
        assert resource_lane_for_test("mechanical-shock", None, mission) == ResourceLane.VIBRATION
        assert resource_lane_for_test("retention-force", None, mission) == ResourceLane.MECHANICAL
        assert resource_lane_for_test("salt-spray", None, mission) == ResourceLane.CHEMICAL

    def test_water_ingress_follows_exposure(self):
        definition = CATALOG.test("water-ingress")
        salty = MissionProfile(chemical_exposure="salt")
        mixed = MissionProfile(chemical_exposure="mixed")
        clean = MissionProfile(chemical_exposure="none")
        assert resource_lane_for_test("water-ingress", definition, salty) == ResourceLane.CHEMICAL
        assert resource_lane_for_test("water-ingress", definition, mixed) == ResourceLane.CHEMICAL
        assert resource_lane_for_test("water-ingress", definition, clean) == ResourceLane.HUMIDITY

    def test_stressor_fallback(self):
        mission = MissionProfile()
        burn_in = CATALOG.test("burn-in-screen")
        esd = CATALOG.test("esd-immunity")
        assert resource_lane_for_test("burn-in-screen", burn_in, mission) == ResourceLane.THERMAL
        assert resource_lane_for_test("esd-immunity", esd, mission) == ResourceLane.MECHANICAL

    def test_unknown_test(self):
        assert resource_lane_for_test("custom", None, MissionProfile()) == ResourceLane.MECHANICAL


class TestStrategies:
    """Dependencies and forward pass."""

    def test_sequential(self):
        tasks = build_schedule(three_test_state(ScheduleStrategy.SEQUENTIAL), CATALOG, [])
        assert [t.duration_days for t in tasks] == [7, 14, 7]
        assert [t.earliest_start_day for t in tasks] == [0, 7, 21]
        assert tasks[1].depends_on_task_ids == ["task-temp-cycling"]
        stats = compute_schedule_stats(tasks)
        assert stats.sequential_days == 28
        assert stats.current_days == 28
        assert stats.savings_pct == 0

    def test_parallel_by_stressor_distinct_lanes(self):
        tasks = build_schedule(three_test_state(ScheduleStrategy.PARALLEL_BY_STRESSOR), CATALOG, [])
        assert all(t.depends_on_task_ids == [] for t in tasks)
        stats = compute_schedule_stats(tasks)
        assert stats.sequential_days == 28
        assert stats.current_days == 14
        assert stats.savings_pct == 50
        assert stats.critical_lane == "Vibration"
        assert stats.lane_counts == {"Thermal": 1, "Vibration": 1, "Mechanical": 1}

    def test_parallel_by_stressor_shared_lane(self):
        state = PlanningState(
            selected_tests=[
                SelectedTest(id="temp-cycling", name="TC", duration_weeks=1),
                SelectedTest(id="high-temp-storage", name="HTS", duration_weeks=2),
            ],
            schedule=ScheduleSettings(strategy=ScheduleStrategy.PARALLEL_BY_STRESSOR),
        )
        tasks = build_schedule(state, CATALOG, [])
        assert tasks[1].depends_on_task_ids == ["task-temp-cycling"]
        assert tasks[1].earliest_start_day == 7
        assert tasks[1].latest_finish_day == 21

    def test_parallel_max(self):
        tasks = build_schedule(three_test_state(ScheduleStrategy.PARALLEL_MAX), CATALOG, [])
        assert all(t.earliest_start_day == 0 for t in tasks)
        assert compute_schedule_stats(tasks).current_days == 14

    def test_only_kept_tests(self):
        state = three_test_state(ScheduleStrategy.SEQUENTIAL)
        state.selected_tests[1].status = TestStatus.REMOVE
        state.selected_tests[2].status = TestStatus.DOWNGRADE
        tasks = build_schedule(state, CATALOG, [])
        assert [t.test_id for t in tasks] == ["temp-cycling"]

    def test_dvpr_duration_wins(self):
        state = three_test_state(ScheduleStrategy.SEQUENTIAL)
        rows = [DvprRow(id="dvpr-temp-cycling", requirement="r", test_id="temp-cycling",
                        duration_value=3, duration_unit="days")]
        tasks = build_schedule(state, CATALOG, rows)
        assert tasks[0].duration_days == 3
        assert tasks[1].earliest_start_day == 3

    def test_fractional_weeks_rounded(self):
        state = PlanningState(selected_tests=[SelectedTest(id="a", name="A", duration_weeks=0.2)])
        tasks = build_schedule(state, CATALOG, [])
        assert tasks[0].duration_days == 7


class TestWeekendShift:
    """Start days landing on a weekend move to Monday."""

    def test_saturday(self):
        assert adjust_start_day(0, parse_start_date("2024-01-06")) == 2

    def test_sunday(self):
        assert adjust_start_day(0, parse_start_date("2024-01-07")) == 1

    def test_weekday(self):
        assert adjust_start_day(3, parse_start_date("2024-01-01")) == 3

    def test_no_start_date(self):
        assert adjust_start_day(5, None) == 5

    def test_invalid_start_date(self):
        assert parse_start_date("not-a-date") is None

    def test_schedule_shifted(self):
        """Start on Monday 2024-01-01: TC ends day 7 (Monday), RV ends day 21 (Monday)"""
        state = three_test_state(ScheduleStrategy.SEQUENTIAL, start_date_iso="2024-01-01")
        tasks = build_schedule(state, CATALOG, [])
        assert [t.earliest_start_day for t in tasks] == [0, 7, 21]

    def test_schedule_starting_saturday(self):
        state = three_test_state(ScheduleStrategy.SEQUENTIAL, start_date_iso="2024-01-06")
        tasks = build_schedule(state, CATALOG, [])
        assert [t.earliest_start_day for t in tasks] == [2, 9, 23]


class TestStats:
    """Utilization statistics."""

    def test_empty(self):
        stats = compute_schedule_stats([])
        assert stats.sequential_days == 0
        assert stats.savings_pct == 0
        assert stats.critical_lane == "--"

    def test_untimed_tasks(self):
        tasks = [ScheduleTask(id="a", test_id="a", name="A", duration_days=5,
                              resource_lane=ResourceLane.THERMAL)]
        stats = compute_schedule_stats(tasks)
        assert stats.current_days == 5
        assert stats.to_dict()["criticalLane"] == "Thermal"
