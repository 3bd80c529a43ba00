"""Per-run analytics tracker using ContextVars.

Each report generation runs inside ``start_run`` / ``end_run``. Stages are
timed with ``track_stage`` and decision-trace entries are appended with
``record_event``; both are no-ops when no run is active.

Usage::

    analytics = start_run(session_id="sess-1")
    with track_stage("derive_drivers") as stage:
        stage.success_count = 1
    record_event("tone", "rule_fired", rule_id="severe_anxiety")
    analytics = end_run()
"""

from __future__ import annotations

import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Generator

import structlog

from smile_report.models import RunAnalytics, StageMetrics, TraceEvent

_current_run: ContextVar[RunAnalytics | None] = ContextVar("smile_current_run", default=None)


def get_current_run() -> RunAnalytics | None:
    """Get the active RunAnalytics, or None if no run is active."""
    return _current_run.get()


def start_run(session_id: str = "", run_id: str | None = None) -> RunAnalytics:
    """Create and activate a new RunAnalytics for the current context."""
    analytics = RunAnalytics(
        run_id=run_id or uuid.uuid4().hex[:12],
        session_id=session_id,
        started_at=datetime.now(timezone.utc),
        status="running",
    )
    _current_run.set(analytics)
    structlog.contextvars.bind_contextvars(run_id=analytics.run_id, session_id=session_id)
    return analytics


def end_run(status: str = "completed") -> RunAnalytics | None:
    """Finalize the current run and return its analytics. Returns None if no run is active."""
    analytics = _current_run.get()
    if analytics is None:
        return None

    analytics.finalize(status)
    _current_run.set(None)
    structlog.contextvars.unbind_contextvars("run_id", "session_id")
    return analytics


def record_event(stage: str, event: str, **data: Any) -> TraceEvent | None:
    """Append a decision-trace entry to the active run."""
    analytics = _current_run.get()
    if analytics is None:
        return None
    entry = TraceEvent(stage=stage, event=event, data=data)
    analytics.events.append(entry)
    return entry


@contextmanager
def track_stage(name: str) -> Generator[StageMetrics, None, None]:
    """Context manager that records a StageMetrics entry on the current run.

    Exceptions propagate; the stage is still recorded with its error.
    """
    analytics = _current_run.get()

    stage = StageMetrics(stage=name, started_at=datetime.now(timezone.utc))
    structlog.contextvars.bind_contextvars(stage=name)

    try:
        yield stage
    except Exception as exc:
        stage.error = f"{type(exc).__name__}: {exc}"
        stage.failure_count += 1
        raise
    finally:
        stage.ended_at = datetime.now(timezone.utc)
        if stage.started_at:
            stage.duration_ms = (stage.ended_at - stage.started_at).total_seconds() * 1000

        if analytics is not None:
            analytics.stages.append(stage)

        structlog.contextvars.unbind_contextvars("stage")
