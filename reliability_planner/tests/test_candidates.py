"""
Test Suite for Candidate Tests and Verification Rows

Tests:
- Mechanism suggestion, sync and failure-mode forcing
- Candidate test generation (mechanisms, change triggers, humidity rule)
- Keyed merge of user decisions onto fresh candidates
- DVPR row generation

Run with: pytest reliability_planner/tests/test_candidates.py -v
"""

import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__)))))

from reliability_planner.candidates import (
    apply_failure_modes_to_mechanisms,
    build_candidate_tests,
    merge_selected_tests,
    preferred_humidity_test,
    suggest_mechanisms,
    sync_mechanisms,
)
from reliability_planner.catalog import default_catalog
from reliability_planner.dvpr import build_dvpr_rows, format_conditions
from reliability_planner.planning_state import (
    AccelerationModel,
    ChangeTriggers,
    FailureModeSelection,
    MaterialsSelection,
    MechanismConfidence,
    MechanismSelection,
    MissionProfile,
    PlanningState,
    PriorEvidenceEntry,
    ProductContext,
    ReliabilityPlan,
    StressProfile,
    TestStatus,
    UserOverrides,
)

CATALOG = default_catalog()


def selected(*ids):
    return [
        MechanismSelection(id=m.id, name=m.name, selected=m.id in ids)
        for m in CATALOG.mechanisms
    ]


class TestSuggestMechanisms:
    """Product-type defaults plus environment rules."""

    def test_product_defaults(self):
        product = ProductContext(product_type="ecu-module")
        mission = MissionProfile(thermal_cycle_freq="rare", humidity="low")
        assert suggest_mechanisms(product, mission, CATALOG) == [
            "thermal-fatigue", "thermal-aging", "vibration-fatigue",
            "eos-overstress", "humidity-corrosion",
        ]

    def test_environment_rules(self):
        mission = MissionProfile(temp_max_c=125, humidity="low", chemical_exposure="oil",
                                 vibration="high", thermal_cycle_freq="daily")
        result = suggest_mechanisms(ProductContext(), mission, CATALOG)
        assert result == ["humidity-corrosion", "chemical-attack", "vibration-fatigue",
                          "thermal-fatigue", "thermal-aging"]

    def test_humidity_pct_triggers_corrosion(self):
        mission = MissionProfile(humidity="low", humidity_pct=70, thermal_cycle_freq="rare")
        assert suggest_mechanisms(ProductContext(), mission, CATALOG) == ["humidity-corrosion"]

    def test_frequent_shock(self):
        mission = MissionProfile(humidity="low", shock="frequent", thermal_cycle_freq="rare")
        assert suggest_mechanisms(ProductContext(), mission, CATALOG) == ["vibration-fatigue"]


class TestSyncMechanisms:
    """Upsert by mechanism id in catalog order."""

    def test_new_entries_from_catalog(self):
        result = sync_mechanisms([], ["thermal-fatigue"], CATALOG)
        assert [m.id for m in result] == [m.id for m in CATALOG.mechanisms]
        by_id = {m.id: m for m in result}
        assert by_id["thermal-fatigue"].selected
        assert not by_id["thermal-aging"].selected
        assert by_id["chemical-attack"].confidence == MechanismConfidence.ASSUMED

    def test_existing_choices_kept(self):
        existing = [MechanismSelection(id="thermal-fatigue", name="old name", selected=False,
                                       confidence=MechanismConfidence.ASSUMED,
                                       exclusion_justification="Potted assembly")]
        result = sync_mechanisms(existing, ["thermal-fatigue"], CATALOG)
        tf = result[0]
        assert not tf.selected
        assert tf.name == "Thermal Fatigue (CTE mismatch)"
        assert tf.confidence == MechanismConfidence.ASSUMED
        assert tf.exclusion_justification == "Potted assembly"

    def test_failure_modes_force_selection(self):
        mechanisms = selected()
        modes = {"solder-crack": FailureModeSelection(selected=True, mechanism_ids=["thermal-fatigue"]),
                 "eos-damage": FailureModeSelection(selected=False, mechanism_ids=["eos-overstress"])}
        result = {m.id: m for m in apply_failure_modes_to_mechanisms(mechanisms, modes)}
        assert result["thermal-fatigue"].selected
        assert not result["eos-overstress"].selected
        assert not mechanisms[0].selected


class TestCandidateTests:
    """Catalog tests pulled in by mechanisms, triggers and humidity."""

    def test_linked_tests_in_catalog_order(self):
        tests = build_candidate_tests(selected("vibration-fatigue"), ChangeTriggers(),
                                      MissionProfile(), MaterialsSelection(), CATALOG)
        assert [t.id for t in tests] == ["random-vibration", "mechanical-shock"]
        assert all(t.status == TestStatus.KEEP for t in tests)

    def test_change_triggers(self):
        tests = build_candidate_tests(selected(), ChangeTriggers(derating_change=True, new_supplier=True),
                                      MissionProfile(), MaterialsSelection(), CATALOG)
        assert [t.id for t in tests] == ["eos-transient", "burn-in-screen"]

    def test_humidity_rule(self):
        daily = MissionProfile(humidity_pct=70, thermal_cycle_freq="daily")
        rare = MissionProfile(humidity_pct=70, thermal_cycle_freq="rare")
        coastal = MissionProfile(humidity_pct=70, thermal_cycle_freq="rare", humidity_scenario="coastal")
        assert preferred_humidity_test(daily) == "temp-humidity-cycling"
        assert preferred_humidity_test(rare) == "temp-humidity-constant"
        assert preferred_humidity_test(coastal) == "temp-humidity-cycling"
        assert preferred_humidity_test(MissionProfile(humidity_pct=59)) is None

    def test_default_parameters(self):
        materials = MaterialsSelection(housing_material_id="pa66-gf30")
        mission = MissionProfile(temp_min_c=-40, temp_max_c=85, humidity="high")
        tests = {t.id: t for t in build_candidate_tests(
            selected("thermal-aging", "vibration-fatigue"), ChangeTriggers(), mission, materials, CATALOG)}
        hts = tests["high-temp-storage"]
        assert hts.acceleration.model == AccelerationModel.ARRHENIUS
        assert abs(hts.acceleration.params["Ea"] - 0.75) < 1e-12
        assert hts.acceleration.params["RHuse"] == 85.0
        assert hts.acceleration.params["RHstress"] == 85.0
        assert hts.acceleration.params["n"] == 1.9
        assert hts.acceleration.params["m"] == 2.7
        assert tests["random-vibration"].acceleration.params["Ea"] == 0.7
        assert hts.stress_profile.temp_low_c == -40
        assert hts.stress_profile.vib_level == "low"


class TestMergeSelectedTests:
    """User decisions survive regeneration."""

    def test_user_fields_preserved(self):
        mechanisms = selected("thermal-aging")
        fresh = build_candidate_tests(mechanisms, ChangeTriggers(), MissionProfile(),
                                      MaterialsSelection(), CATALOG)
        edited = fresh[0]
        edited.status = TestStatus.REMOVE
        edited.removal_justification = "Covered by supplier data"
        edited.duration_weeks = 8
        edited.sample_size_override = 12
        edited.acceleration.user_overrides = UserOverrides(enabled=True, t_stress_k=400, ea=0.9)
        edited.stress_profile = StressProfile(temp_high_c=150, user_entered=True)

        again = build_candidate_tests(mechanisms, ChangeTriggers(), MissionProfile(),
                                      MaterialsSelection(), CATALOG)
        merged = merge_selected_tests([edited], again)[0]
        assert merged.status == TestStatus.REMOVE
        assert merged.removal_justification == "Covered by supplier data"
        assert merged.duration_weeks == 8
        assert merged.sample_size_override == 12
        assert merged.acceleration.user_overrides.enabled
        assert merged.acceleration.user_overrides.ea == 0.9
        assert merged.stress_profile.temp_high_c == 150
        assert merged.stress_profile.vib_level == "low"
        assert merged.stress_profile.user_entered

    def test_derived_values_follow_new_mission(self):
        """Params and stress profile from an earlier pass do not stick"""
        mechanisms = selected("thermal-aging", "humidity-corrosion")
        humid = MissionProfile(temp_min_c=-20, temp_max_c=60, humidity_pct=65)
        old = build_candidate_tests(mechanisms, ChangeTriggers(), humid,
                                    MaterialsSelection(), CATALOG)

        wetter = MissionProfile(temp_min_c=-40, temp_max_c=85, humidity_pct=95)
        materials = MaterialsSelection(housing_material_id="pa66-gf30")
        fresh = build_candidate_tests(mechanisms, ChangeTriggers(), wetter, materials, CATALOG)
        merged = merge_selected_tests(old, fresh)

        assert [t.to_dict() for t in merged] == [t.to_dict() for t in fresh]
        hts = next(t for t in merged if t.id == "high-temp-storage")
        assert hts.acceleration.params["RHuse"] == 95.0
        assert abs(hts.acceleration.params["Ea"] - 0.75) < 1e-12
        assert hts.stress_profile.temp_high_c == 85
        assert not hts.stress_profile.user_entered

    def test_follows_candidate_order(self):
        candidates = build_candidate_tests(selected("vibration-fatigue"), ChangeTriggers(),
                                           MissionProfile(), MaterialsSelection(), CATALOG)
        merged = merge_selected_tests(list(reversed(candidates)), candidates)
        assert [t.id for t in merged] == [t.id for t in candidates]

    def test_stale_tests_dropped(self):
        old = build_candidate_tests(selected("eos-overstress"), ChangeTriggers(),
                                    MissionProfile(), MaterialsSelection(), CATALOG)
        new = build_candidate_tests(selected("vibration-fatigue"), ChangeTriggers(),
                                    MissionProfile(), MaterialsSelection(), CATALOG)
        merged = merge_selected_tests(old, new)
        assert [t.id for t in merged] == ["random-vibration", "mechanical-shock"]


class TestDvprRows:
    """One verification row per kept test."""

    def make_state(self):
        mission = MissionProfile(temp_min_c=-40, temp_max_c=85, humidity_pct=70)
        tests = build_candidate_tests(selected("vibration-fatigue"), ChangeTriggers(),
                                      mission, MaterialsSelection(), CATALOG)
        return PlanningState(
            mission=mission,
            selected_tests=tests,
            reliability_plan=ReliabilityPlan(required_sample_size=22),
        )

    def find_test(self, state, test_id):
        return next(t for t in state.selected_tests if t.id == test_id)

    def rows_by_test(self, state):
        return {r.test_id: r for r in build_dvpr_rows(state, CATALOG)}

    def test_row_fields(self):
        state = self.make_state()
        rv = self.rows_by_test(state)["random-vibration"]
        assert rv.id == "dvpr-random-vibration"
        assert rv.test_id == "random-vibration"
        assert rv.requirement == "Demonstrate robustness against Vibration-Induced Fatigue"
        assert rv.spec_refs == [{"standard": "ISO 16750-3"}]
        assert rv.conditions == "Temp -40-85C; RH 70%; Vibration low; Shock occasional"
        assert rv.sample_size == 22
        assert rv.duration_value == 2
        assert rv.duration_unit == "weeks"
        assert rv.risk["badge"] == "None"
        assert rv.owner == "Reliability / Lab"
        assert rv.phase == "DV"

    def test_only_kept(self):
        state = self.make_state()
        self.find_test(state, "random-vibration").status = TestStatus.DOWNGRADE
        rows = build_dvpr_rows(state, CATALOG)
        assert [r.test_id for r in rows] == ["temp-humidity-cycling", "mechanical-shock"]

    def test_override_and_evidence(self):
        state = self.make_state()
        self.find_test(state, "random-vibration").sample_size_override = 5
        state.prior_evidence = {"random-vibration": PriorEvidenceEntry(n_prev=40, f_prev=0)}
        rv = self.rows_by_test(state)["random-vibration"]
        assert rv.sample_size == 5
        assert rv.risk["priorN"] == 40
        assert rv.risk["priorUpper95"] < 0.1

    def test_conditions_fallback(self):
        profile = StressProfile(vib_level="none", shock_level="none")
        assert format_conditions(profile) == "Per test definition"
