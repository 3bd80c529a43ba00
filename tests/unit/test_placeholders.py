"""Tests for {{NAME}} placeholder resolution."""

from __future__ import annotations

from smile_report.composition.placeholders import (
    PlaceholderResolver,
    calculated_values,
    extract_placeholders,
)
from smile_report.engine.drivers import derive


def _resolver(intake, rules, **kwargs):
    return PlaceholderResolver(
        intake,
        rules.placeholders,
        calculated=calculated_values(derive(intake, rules), rules.placeholders),
        **kwargs,
    )


class TestExtractPlaceholders:
    def test_distinct_in_order(self):
        assert extract_placeholders("{{A}} {{B_2}} {{A}}") == ["A", "B_2"]

    def test_ignores_lowercase_and_single_braces(self):
        assert extract_placeholders("{{name}} {NAME} {{ NAME }}") == []


class TestCalculatedValues:
    def test_from_driver_values(self, rules, anxious_pain_intake):
        values = calculated_values(derive(anxious_pain_intake, rules), rules.placeholders)
        assert values["TREATMENT_COMPLEXITY"] == "straightforward"
        assert values["TOOTH_ZONE"] == "a visible area"
        assert values["TIMELINE_PREFERENCE"] == "when you feel ready"
        assert "BUDGET_APPROACH" not in values

    def test_numeric_looking_codes(self, rules, make_intake):
        values = calculated_values(derive(make_intake({"Q9": "30_49"}), rules), rules.placeholders)
        assert values["AGE_BRACKET"] == "adults in their 30s and 40s"


class TestPlaceholderResolver:
    def test_metadata_alias(self, rules, anxious_pain_intake):
        result = _resolver(anxious_pain_intake, rules).resolve("Hello {{PATIENT_NAME}}.")
        assert result.content == "Hello Anna."
        assert result.resolved == ["PATIENT_NAME"]
        assert result.unresolved == []

    def test_answer_by_question_id(self, rules, anxious_pain_intake):
        result = _resolver(anxious_pain_intake, rules).resolve("Pattern {{Q6A}}")
        assert result.content == "Pattern 1_single"

    def test_metadata_beats_calculated(self, rules, make_intake):
        intake = make_intake({"Q6b": "front"}, tooth_zone="the upper left")
        assert _resolver(intake, rules).lookup("TOOTH_ZONE") == "the upper left"

    def test_custom_values_last(self, rules, anxious_pain_intake):
        resolver = _resolver(anxious_pain_intake, rules, custom={"CLINIC_NAME": "Smile Centre", "TOOTH_ZONE": "x"})
        assert resolver.lookup("CLINIC_NAME") == "Smile Centre"
        assert resolver.lookup("TOOTH_ZONE") == "a visible area"

    def test_unknown_placeholder_left_literal(self, rules, anxious_pain_intake):
        result = _resolver(anxious_pain_intake, rules).resolve("See {{DENTIST_NAME}} and {{DENTIST_NAME}} again.")
        assert result.content == "See {{DENTIST_NAME}} and {{DENTIST_NAME}} again."
        assert result.unresolved == ["DENTIST_NAME"]

    def test_no_default_substitution(self, rules, empty_intake):
        result = _resolver(empty_intake, rules).resolve("{{PATIENT_NAME}}")
        assert result.content == "{{PATIENT_NAME}}"
        assert result.unresolved == ["PATIENT_NAME"]
