"""Cross-cutting hooks: logging setup, progress callbacks and per-run tracking."""

from __future__ import annotations

from smile_report.hooks.logging_config import setup_logging
from smile_report.hooks.progress import ProgressCallback, emit_progress
from smile_report.hooks.run_tracker import (
    end_run,
    get_current_run,
    record_event,
    start_run,
    track_stage,
)

__all__ = [
    "ProgressCallback",
    "emit_progress",
    "end_run",
    "get_current_run",
    "record_event",
    "setup_logging",
    "start_run",
    "track_stage",
]
