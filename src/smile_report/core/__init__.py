"""Application settings and startup validation."""

from __future__ import annotations

from smile_report.core.config import AppSettings
from smile_report.core.startup_checks import validate_settings

__all__ = ["AppSettings", "validate_settings"]
