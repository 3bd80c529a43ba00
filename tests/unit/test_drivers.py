"""Tests for driver derivation and tag synthesis."""

from __future__ import annotations

from smile_report.engine.drivers import derive


class TestDerive:
    def test_deterministic(self, rules, anxious_pain_intake):
        first = derive(anxious_pain_intake, rules)
        second = derive(anxious_pain_intake, rules)
        assert first == second

    def test_safety_flags(self, rules, anxious_pain_intake):
        state = derive(anxious_pain_intake, rules)
        assert state.safety.active_pain is True
        assert state.safety.active_infection is False
        assert state.safety.pregnant is False

    def test_layered_fields(self, rules, anxious_pain_intake):
        state = derive(anxious_pain_intake, rules)
        assert state.personalization.missing_teeth_pattern == "1_single"
        assert state.personalization.tooth_location == "front"
        assert state.narrative.anxiety_level == "yes_severe"
        assert state.narrative.previous_experience == "yes_negative_experience"

    def test_tags_in_table_order(self, rules, anxious_pain_intake):
        state = derive(anxious_pain_intake, rules)
        assert state.tags == (
            "active_pain",
            "urgent",
            "functional_focus",
            "single_tooth",
            "implant_candidate",
            "flexible_timeline",
            "severe_anxiety",
            "anxiety_support",
            "negative_experience",
        )

    def test_urgent_tag_not_duplicated(self, rules, make_intake):
        state = derive(make_intake({"Q1": "pain_discomfort", "Q5": "yes_pain"}), rules)
        assert state.tags.count("urgent") == 1

    def test_empty_intake_has_defaults_and_no_tags(self, rules, empty_intake):
        state = derive(empty_intake, rules)
        assert state.tags == ()
        assert state.personalization.satisfaction_score == 5
        assert not any(state.safety.model_dump().values())

    def test_sources_record_question_ids(self, rules, anxious_pain_intake):
        state = derive(anxious_pain_intake, rules)
        assert state.sources["active_pain"] == "Q5"
        assert state.sources["anxiety_level"] == "Q18"

    def test_pregnancy_prefix_match(self, rules, pregnant_medical_intake):
        state = derive(pregnant_medical_intake, rules)
        assert state.safety.pregnant is True
        assert state.safety.medical_conditions is True
        assert "consultation_required" in state.tags

    def test_smoker_occasionally(self, rules, make_intake):
        state = derive(make_intake({"Q14": "occasionally"}), rules)
        assert state.safety.smoker is True
        assert "healing_risk" in state.tags


class TestSatisfactionScore:
    def test_numeric(self, rules, make_intake):
        assert derive(make_intake({"Q2": "8"}), rules).personalization.satisfaction_score == 8

    def test_fractional_truncated(self, rules, make_intake):
        assert derive(make_intake({"Q2": "7.9"}), rules).personalization.satisfaction_score == 7

    def test_malformed_defaults(self, rules, make_intake):
        assert derive(make_intake({"Q2": "very"}), rules).personalization.satisfaction_score == 5

    def test_list_answer_uses_first(self, rules, make_intake):
        state = derive(make_intake({"Q6a": ["2_4_adjacent", "1_single"]}), rules)
        assert state.personalization.missing_teeth_pattern == "2_4_adjacent"
        assert "bridge_candidate" in state.tags
