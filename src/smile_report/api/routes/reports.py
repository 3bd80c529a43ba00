"""Report generation endpoints: full run, streamed run and driver preview."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, AsyncIterator

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field

from smile_report.engine.drivers import derive
from smile_report.engine.scenarios import select_scenarios
from smile_report.engine.tone import select_tone
from smile_report.exceptions import SmileReportError
from smile_report.models import IntakeAnswers, ProgressEvent

log = logging.getLogger(__name__)

router = APIRouter(tags=["reports"])


class ReportRequest(BaseModel):
    """Request to generate a report from one questionnaire submission."""

    intake: IntakeAnswers
    language: str | None = None


class DriversResponse(BaseModel):
    session_id: str
    drivers: dict[str, Any] = Field(default_factory=dict)
    tags: list[str] = Field(default_factory=list)
    tone: str
    tone_name: str
    tone_rule_id: str
    scenarios: list[str] = Field(default_factory=list)
    confidence: str


def _language(request: Request, language: str | None) -> str:
    content = request.app.state.settings.content
    chosen = language or content.default_language
    if chosen not in content.supported_languages:
        raise HTTPException(
            status_code=422,
            detail=f"Unsupported language '{chosen}' (supported: {', '.join(content.supported_languages)})",
        )
    return chosen


def _ndjson(kind: str, payload: dict[str, Any]) -> str:
    return json.dumps({"type": kind, **payload}, default=str) + "\n"


@router.post("/reports")
async def create_report(request: ReportRequest, req: Request) -> dict[str, Any]:
    """Run the pipeline and return report, evaluation, QA decision and audit record."""
    language = _language(req, request.language)
    result = await req.app.state.pipeline.run(request.intake, language=language)
    return result.model_dump(mode="json")


@router.post("/reports/stream")
async def stream_report(request: ReportRequest, req: Request) -> StreamingResponse:
    """Run the pipeline, streaming one JSON line per progress event, then the result."""
    language = _language(req, request.language)
    pipeline = req.app.state.pipeline

    async def _events() -> AsyncIterator[str]:
        queue: asyncio.Queue[ProgressEvent | None] = asyncio.Queue()

        async def _run() -> Any:
            try:
                return await pipeline.run(request.intake, language=language, on_progress=queue.put)
            finally:
                await queue.put(None)

        task = asyncio.create_task(_run())
        try:
            while (event := await queue.get()) is not None:
                yield _ndjson("progress", {"event": event.model_dump(mode="json")})
            result = await task
        except SmileReportError as exc:
            log.warning("Streamed report for %s failed: %s", request.intake.session_id, exc)
            yield _ndjson("error", {"error": str(exc), "error_type": type(exc).__name__})
            return
        finally:
            if not task.done():
                task.cancel()
        yield _ndjson("result", {"result": result.model_dump(mode="json")})

    return StreamingResponse(
        _events(),
        media_type="application/x-ndjson",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )


@router.post("/drivers", response_model=DriversResponse)
async def preview_drivers(request: ReportRequest, req: Request) -> DriversResponse:
    """Derive drivers, tone and scenario ranking without composing a report."""
    rules = req.app.state.rules
    state = derive(request.intake, rules)
    tone = select_tone(state, rules)
    scenarios = select_scenarios(state, rules)
    return DriversResponse(
        session_id=state.session_id,
        drivers=state.flat(),
        tags=list(state.tags),
        tone=tone.tone.value,
        tone_name=tone.profile.name,
        tone_rule_id=tone.rule_id,
        scenarios=scenarios.scenario_ids,
        confidence=scenarios.confidence.value,
    )
