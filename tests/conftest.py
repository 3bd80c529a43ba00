"""Shared fixtures for smile-report tests."""

from __future__ import annotations

from typing import Any, Callable

import pytest

from smile_report.content.memory_store import MemoryContentStore
from smile_report.content.models import ContentDocument
from smile_report.hooks.run_tracker import end_run
from smile_report.models import Answer, ContentType, IntakeAnswers, ToneProfileId
from smile_report.rules.loader import default_ruleset
from smile_report.rules.models import RuleSet
from tests.fakes.fake_content import URGENT_SCENARIO_MD, document

TP01 = ToneProfileId.NEUTRAL_INFORMATIVE
TP04 = ToneProfileId.STABILITY_FRAME
TP06 = ToneProfileId.AUTONOMY_RESPECTING


@pytest.fixture
def rules() -> RuleSet:
    return default_ruleset()


@pytest.fixture(autouse=True)
def _no_active_run():
    """Close any run a failed test left open on this context."""
    yield
    end_run("aborted")


@pytest.fixture
def make_intake() -> Callable[..., IntakeAnswers]:
    def _make(answers: dict[str, Any] | None = None, session_id: str = "sess-1", **metadata: str) -> IntakeAnswers:
        return IntakeAnswers(
            session_id=session_id,
            answers=tuple(Answer(question_id=q, answer=a) for q, a in (answers or {}).items()),
            metadata=metadata,
        )

    return _make


@pytest.fixture
def anxious_pain_intake(make_intake) -> IntakeAnswers:
    """Pain, severe anxiety, negative history, single missing front tooth, flexible budget."""
    return make_intake(
        {
            "Q1": "functional_issues",
            "Q4": "yes_negative_experience",
            "Q5": "yes_pain",
            "Q6a": "1_single",
            "Q6b": "front",
            "Q10": "price_quality_flexible",
            "Q12": "flexible",
            "Q18": "yes_severe",
        },
        session_id="sess-anxious",
        patient_name="Anna",
    )


@pytest.fixture
def empty_intake(make_intake) -> IntakeAnswers:
    return make_intake({}, session_id="sess-empty")


@pytest.fixture
def pregnant_medical_intake(make_intake) -> IntakeAnswers:
    return make_intake(
        {"Q6a": "1_single", "Q6b": "back", "Q13": "yes_second_trimester", "Q17": "yes"},
        session_id="sess-pregnant",
        patient_name="Mia",
    )


@pytest.fixture
def content_documents() -> list[ContentDocument]:
    """Everything the anxious pain intake needs, in the tones it asks for."""
    short = "A short overview of this situation and the usual options."
    return [
        document("S16", URGENT_SCENARIO_MD, TP04, TP01, target_sections=[2, 3, 11]),
        *[document(sid, short, TP04) for sid in ("S17", "S01", "S02", "S03", "S13", "S14", "S15")],
        document(
            "A_WARN_ACTIVE_SYMPTOMS",
            "Please contact your dentist soon about the discomfort you mentioned.",
            TP04,
            TP01,
        ),
        document(
            "A_BLOCK_TREATMENT_OPTIONS",
            "Treatment options are not discussed until your physician has been consulted.",
            TP01,
        ),
        document("TM_ANXIETY_SEVERE", "Many people feel uneasy about dental visits; you set the pace.", TP04),
        document("TM_CTX_PREVIOUS_TREATMENT", "Earlier experiences shape how a new visit feels.", TP04),
        document("B_CTX_SINGLE_TOOTH", "One missing tooth is a common situation.", TP01),
        document("B_INTERP_STANDARD", "This is how these findings are usually read.", TP01),
        document("B_OPT_IMPLANT", "An implant replaces the root and the crown.", TP01),
        document("B_OPT_BRIDGE", "A bridge spans the gap using the neighbouring teeth.", TP01),
        document("B_RISKLANG_STANDARD", "Healing differs from person to person.", TP01),
        document(
            "STATIC_NEXT_STEPS",
            "The choice of how to proceed is yours, {{PATIENT_NAME}}.",
            TP06,
            type=ContentType.STATIC,
        ),
    ]


@pytest.fixture
def content_store(rules, content_documents) -> MemoryContentStore:
    return MemoryContentStore(content_documents, fallback_chains=rules.tone_fallback_chains)
