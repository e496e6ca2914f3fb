"""V1 API router -- aggregates all v1 endpoint routers."""

from __future__ import annotations

from fastapi import APIRouter

from src.orchestrator.api.v1 import health, meetings, sessions

router = APIRouter(prefix="/api/v1")

router.include_router(health.router)
router.include_router(meetings.router)
router.include_router(sessions.router)
