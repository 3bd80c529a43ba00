"""Pydantic data models for smile-report.

Intake, driver, scenario, content-selection and report models shared by every
pipeline stage. Models that cross a stage boundary are frozen: a new intake
yields a fresh derivation and regeneration yields a new report.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

# ── Intake ───────────────────────────────────────────────────────────


class Answer(BaseModel):
    """A single questionnaire answer. Multi-select questions carry a list."""

    model_config = ConfigDict(frozen=True)

    question_id: str
    answer: Optional[str | list[str]] = None

    @field_validator("answer", mode="before")
    @classmethod
    def _coerce_answer(cls, value: Any) -> str | list[str] | None:
        # Malformed values become absent rather than failing the intake
        if value is None or isinstance(value, str):
            return value
        if isinstance(value, bool):
            return "yes" if value else "no"
        if isinstance(value, (int, float)):
            return str(value)
        if isinstance(value, (list, tuple)):
            return [str(v) for v in value if isinstance(v, (str, int, float))]
        return None


class IntakeAnswers(BaseModel):
    """Raw questionnaire submission. Immutable once received."""

    model_config = ConfigDict(frozen=True)

    session_id: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    answers: tuple[Answer, ...] = ()
    metadata: dict[str, str] = Field(default_factory=dict)

    def get(self, question_id: str) -> str | list[str] | None:
        """Return the first answer recorded for ``question_id``."""
        for item in self.answers:
            if item.question_id == question_id:
                return item.answer
        return None

    def answer_string(self, question_id: str) -> str:
        """Return the answer as a string; list answers yield their first element."""
        value = self.get(question_id)
        if isinstance(value, list):
            return value[0] if value else ""
        return value or ""

    def answer_list(self, question_id: str) -> list[str]:
        value = self.get(question_id)
        if value is None:
            return []
        if isinstance(value, list):
            return list(value)
        return [value]


# ── Drivers ──────────────────────────────────────────────────────────


class SafetyDrivers(BaseModel):
    """L1: boolean clinical safety flags."""

    model_config = ConfigDict(frozen=True)

    active_pain: bool = False
    active_infection: bool = False
    loose_teeth: bool = False
    pregnant: bool = False
    smoker: bool = False
    medical_conditions: bool = False
    growth_incomplete: bool = False
    recent_extraction: bool = False


class PersonalizationDrivers(BaseModel):
    """L2: drivers that shape scenario matching and content selection."""

    model_config = ConfigDict(frozen=True)

    main_motivation: str = ""
    satisfaction_score: int = 5
    primary_concern: str = ""
    missing_teeth_pattern: str = ""
    tooth_location: str = ""
    neighboring_teeth_condition: str = ""
    style_preference: str = ""
    budget_level: str = ""
    timeline: str = ""
    age_range: str = ""


class NarrativeDrivers(BaseModel):
    """L3: drivers that shape tone and narrative framing."""

    model_config = ConfigDict(frozen=True)

    natural_importance: str = ""
    willing_to_visit_specialist: str = ""
    hygiene_level: str = ""
    anxiety_level: str = ""
    previous_experience: str = ""


class DriverState(BaseModel):
    """Three-layer driver state plus derived semantic tags."""

    model_config = ConfigDict(frozen=True)

    session_id: str
    safety: SafetyDrivers = SafetyDrivers()
    personalization: PersonalizationDrivers = PersonalizationDrivers()
    narrative: NarrativeDrivers = NarrativeDrivers()
    tags: tuple[str, ...] = ()
    sources: dict[str, str] = Field(default_factory=dict)

    def has_tag(self, tag: str) -> bool:
        return tag in self.tags

    def value(self, field_name: str) -> Any:
        """Look up a driver field by name across all three layers."""
        for layer in (self.safety, self.personalization, self.narrative):
            if field_name in type(layer).model_fields:
                return getattr(layer, field_name)
        raise KeyError(f"Unknown driver field: {field_name}")

    def flat(self) -> dict[str, Any]:
        """All driver fields in one mapping, layer by layer."""
        out: dict[str, Any] = {}
        for layer in (self.safety, self.personalization, self.narrative):
            out.update(layer.model_dump())
        return out


# ── Tone ─────────────────────────────────────────────────────────────


class ToneProfileId(str, Enum):
    """Fixed, ordered enumeration of communication tones."""

    NEUTRAL_INFORMATIVE = "TP-01"
    EMPATHIC_NEUTRAL = "TP-02"
    REFLECTIVE_CONTEXTUAL = "TP-03"
    STABILITY_FRAME = "TP-04"
    EXPECTATION_CALIBRATION = "TP-05"
    AUTONOMY_RESPECTING = "TP-06"


class ToneProfile(BaseModel):
    """Read-only tone reference data."""

    model_config = ConfigDict(frozen=True)

    id: ToneProfileId
    name: str
    description: str = ""
    banned_phrases: tuple[str, ...] = ()


# ── Scenarios ────────────────────────────────────────────────────────


class ConfidenceLevel(str, Enum):
    """Coarse tier describing scenario-match quality."""

    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"
    FALLBACK = "FALLBACK"


class ScenarioDefinition(BaseModel):
    """A predefined clinical narrative template available for matching."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    description: str = ""
    sections: tuple[int, ...] = ()


class ScoredScenario(BaseModel):
    """A scenario candidate scored against the derived tags."""

    model_config = ConfigDict(frozen=True)

    scenario_id: str
    name: str = ""
    score: float = Field(ge=0.0, le=1.0)
    matched_drivers: tuple[str, ...] = ()
    sections: tuple[int, ...] = ()


class ScenarioSelection(BaseModel):
    """Ranked candidates retained for composition; never empty."""

    model_config = ConfigDict(frozen=True)

    candidates: tuple[ScoredScenario, ...]
    confidence: ConfidenceLevel
    all_scores: tuple[ScoredScenario, ...] = ()

    @property
    def primary(self) -> ScoredScenario:
        return self.candidates[0]

    @property
    def scenario_ids(self) -> list[str]:
        return [c.scenario_id for c in self.candidates]

    @property
    def fallback_used(self) -> bool:
        return any("fallback" in c.matched_drivers for c in self.candidates)


# ── Content ──────────────────────────────────────────────────────────


class ContentType(str, Enum):
    """Kinds of content the composer can place in a section."""

    SCENARIO = "scenario"
    ALERT_BLOCK = "a_block"
    BUILDING_BLOCK = "b_block"
    MODULE = "module"
    STATIC = "static"


class ContentSelection(BaseModel):
    """A content item chosen for a report section."""

    model_config = ConfigDict(frozen=True)

    content_id: str
    type: ContentType
    target_section: int = Field(ge=0, le=11)
    tone: ToneProfileId
    priority: int = 1
    suppressed: bool = False
    suppression_reason: Optional[str] = None


class ContentGap(BaseModel):
    """A required content item absent from the store for a tone/language."""

    model_config = ConfigDict(frozen=True)

    content_id: str
    scenario_id: Optional[str] = None
    content_type: ContentType = ContentType.SCENARIO
    name: str = ""
    description: str = ""
    sections: tuple[int, ...] = ()
    language: str
    tone: ToneProfileId


class ContentCheckResult(BaseModel):
    """Availability of required content for one language/tone."""

    total_required: int
    available: list[str] = Field(default_factory=list)
    missing: list[ContentGap] = Field(default_factory=list)


# ── Report ───────────────────────────────────────────────────────────


class ReportSection(BaseModel):
    """One composed section of the narrative report."""

    model_config = ConfigDict(frozen=True)

    number: int
    name: str
    content: str = Field(min_length=1)
    sources: tuple[str, ...] = ()
    word_count: int = 0


class ComposedReport(BaseModel):
    """The assembled report. Written once; regeneration builds a new one."""

    model_config = ConfigDict(frozen=True)

    session_id: str
    sections: tuple[ReportSection, ...] = ()
    tone: ToneProfileId
    scenario_id: str
    scenario_ids: tuple[str, ...] = ()
    confidence: ConfidenceLevel
    fact_check_score: Optional[float] = None
    fact_check_passed: Optional[bool] = None
    issues: tuple[str, ...] = ()
    placeholders_resolved: int = 0
    placeholders_unresolved: tuple[str, ...] = ()
    suppressed_sections: tuple[int, ...] = ()
    total_word_count: int = 0
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def section(self, number: int) -> ReportSection | None:
        for s in self.sections:
            if s.number == number:
                return s
        return None

    @property
    def section_numbers(self) -> list[int]:
        return [s.number for s in self.sections]


# ── Run analytics / progress ─────────────────────────────────────────


class StageMetrics(BaseModel):
    """Timing and counters for one pipeline stage."""

    stage: str
    started_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None
    duration_ms: float = 0.0
    success_count: int = 0
    failure_count: int = 0
    error: Optional[str] = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class TraceEvent(BaseModel):
    """A timestamped decision-trace entry for the audit record."""

    stage: str
    event: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    data: dict[str, Any] = Field(default_factory=dict)


class RunAnalytics(BaseModel):
    """Per-run analytics collected by the run tracker."""

    run_id: str
    session_id: str = ""
    started_at: datetime
    ended_at: Optional[datetime] = None
    total_duration_ms: float = 0.0
    status: str = "running"
    stages: list[StageMetrics] = Field(default_factory=list)
    events: list[TraceEvent] = Field(default_factory=list)

    def finalize(self, status: str = "completed") -> None:
        self.ended_at = datetime.now(timezone.utc)
        self.total_duration_ms = (self.ended_at - self.started_at).total_seconds() * 1000
        if self.status == "running":
            self.status = status


class PhaseStatus(str, Enum):
    STARTED = "started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    ERROR = "error"


class ProgressEvent(BaseModel):
    """Status update emitted while a report is generated."""

    phase: int
    phase_name: str
    status: PhaseStatus
    message: str = ""
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    metrics: dict[str, Any] = Field(default_factory=dict)
    duration_ms: Optional[float] = None
