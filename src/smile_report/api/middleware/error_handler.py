"""Global exception handlers mapping domain exceptions to HTTP responses."""

from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from smile_report.exceptions import (
    ContentStoreError,
    EvaluatorConfigError,
    LLMClientError,
    MissingContentError,
    RulesError,
    SmileReportError,
)


def register_error_handlers(app: FastAPI) -> None:
    """Register exception-to-HTTP-status mappings."""

    @app.exception_handler(MissingContentError)
    async def handle_missing_content(request: Request, exc: MissingContentError) -> JSONResponse:
        return JSONResponse(
            status_code=422,
            content={"error": str(exc), "type": "missing_content", **exc.to_dict()},
        )

    @app.exception_handler(EvaluatorConfigError)
    async def handle_evaluator_config(request: Request, exc: EvaluatorConfigError) -> JSONResponse:
        return JSONResponse(status_code=503, content={"error": str(exc), "type": "evaluator_not_configured"})

    @app.exception_handler(LLMClientError)
    async def handle_llm_error(request: Request, exc: LLMClientError) -> JSONResponse:
        return JSONResponse(status_code=502, content={"error": str(exc), "type": "llm_error"})

    @app.exception_handler(RulesError)
    async def handle_rules_error(request: Request, exc: RulesError) -> JSONResponse:
        return JSONResponse(status_code=500, content={"error": str(exc), "type": "rules_error"})

    @app.exception_handler(ContentStoreError)
    async def handle_store_error(request: Request, exc: ContentStoreError) -> JSONResponse:
        return JSONResponse(status_code=500, content={"error": str(exc), "type": "content_store_error"})

    @app.exception_handler(SmileReportError)
    async def handle_generic_error(request: Request, exc: SmileReportError) -> JSONResponse:
        return JSONResponse(status_code=500, content={"error": str(exc), "type": "smile_report_error"})
