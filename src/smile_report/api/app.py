"""FastAPI application with lifespan management."""

from __future__ import annotations

import importlib.metadata
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, AsyncGenerator

from fastapi import FastAPI

from smile_report.api.middleware.error_handler import register_error_handlers
from smile_report.api.routes import health, reports
from smile_report.core.config import APIConfig, AppSettings
from smile_report.core.startup_checks import validate_settings
from smile_report.factory import build_pipeline, load_rules
from smile_report.hooks import setup_logging

if TYPE_CHECKING:
    from smile_report.pipeline import ReportPipeline


def _get_version() -> str:
    """Read package version from installed metadata, with dev fallback."""
    try:
        return importlib.metadata.version("smile-report")
    except importlib.metadata.PackageNotFoundError:
        return "0.0.0-dev"


def create_app(
    settings: AppSettings | None = None,
    pipeline: ReportPipeline | None = None,
) -> FastAPI:
    """Build the application. A pre-built ``pipeline`` skips wiring from settings."""

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Application startup/shutdown lifecycle."""
        app_settings = settings or AppSettings()
        validate_settings(app_settings)
        setup_logging(app_settings.observability)

        rules = load_rules(app_settings.content.rules_file)
        app.state.settings = app_settings
        app.state.rules = rules
        app.state.pipeline = pipeline or build_pipeline(app_settings, rules=rules)
        yield
        app.state.pipeline.cancel()

    api_config = settings.api if settings is not None else APIConfig()
    application = FastAPI(
        title=api_config.title,
        description=api_config.description,
        version=_get_version(),
        lifespan=lifespan,
    )
    register_error_handlers(application)
    application.include_router(health.router)
    application.include_router(reports.router, prefix="/api")
    return application


app = create_app()
