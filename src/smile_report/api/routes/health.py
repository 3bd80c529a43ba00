"""Health check endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Request

router = APIRouter(tags=["health"])


@router.get("/health")
async def health() -> dict[str, str]:
    """Liveness probe: 200 whenever the process is up."""
    return {"status": "ok"}


@router.get("/ready")
async def ready(request: Request) -> dict[str, str]:
    """Readiness probe: the rule set and pipeline are loaded."""
    if getattr(request.app.state, "pipeline", None) is None:
        return {"status": "starting"}
    return {"status": "ready", "rules_version": str(request.app.state.rules.version)}
