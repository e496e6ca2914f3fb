"""Command-line entry point.

Usage:
    python -m src.orchestrator serve
    python -m src.orchestrator process MEETING_ID [--title TITLE]
    python -m src.orchestrator check-approvals [--session SESSION_ID] [--all]
    python -m src.orchestrator schedule
    python -m src.orchestrator sessions [--latest] [SESSION_ID]

``serve`` runs the webhook server. ``check-approvals`` is the one-shot
approval pass meant for an external cron (every 30 minutes); ``schedule``
runs the same pass in-process on APPROVAL_CHECK_CRON.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from typing import Any

import structlog

from src.orchestrator.api.middleware.logging import configure_structlog
from src.orchestrator.approvals.scheduler import ApprovalScheduler
from src.orchestrator.approvals.sessions import ApprovalSessionManager
from src.orchestrator.config import Settings, get_settings
from src.orchestrator.core.clients import ServiceClients
from src.orchestrator.core.monitoring import init_sentry
from src.orchestrator.errors import OrchestratorError
from src.orchestrator.state.schemas import ProcessingOutcome
from src.orchestrator.wiring import build_store, build_workflow

logger = structlog.get_logger(__name__)

FAILED_OUTCOMES = {ProcessingOutcome.TRANSCRIPT_FAILED, ProcessingOutcome.EXTRACTION_FAILED}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="orchestrator",
        description="Meeting task approval orchestrator",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    serve = commands.add_parser("serve", help="Run the webhook server")
    serve.add_argument("--host", default=None, help="Bind address (default WEBHOOK_HOST)")
    serve.add_argument("--port", type=int, default=None, help="Port (default WEBHOOK_PORT)")

    process = commands.add_parser("process", help="Process one meeting now")
    process.add_argument("meeting_id", help="Transcript / meeting id")
    process.add_argument("--title", default=None, help="Meeting title override")

    check = commands.add_parser("check-approvals", help="Run one approval pass")
    check.add_argument("--session", dest="session_id", default=None, help="Session to check")
    check.add_argument(
        "--all",
        dest="all_open",
        action="store_true",
        help="Check every open session instead of the latest one",
    )

    commands.add_parser("schedule", help="Run approval passes on APPROVAL_CHECK_CRON")

    sessions = commands.add_parser("sessions", help="Show approval sessions as JSON")
    sessions.add_argument("session_id", nargs="?", default=None, help="Session to show")
    sessions.add_argument("--latest", action="store_true", help="Show the latest session")

    return parser


def _dump(data: Any) -> None:
    print(json.dumps(data, indent=2, ensure_ascii=False))


async def run_process(settings: Settings, meeting_id: str, title: str | None) -> int:
    async with ServiceClients(settings) as clients:
        workflow = build_workflow(settings, clients)
        result = await workflow.process_meeting(meeting_id, title=title)
    _dump(result.model_dump(mode="json"))
    return 1 if result.outcome in FAILED_OUTCOMES else 0


async def run_check_approvals(
    settings: Settings,
    session_id: str | None,
    all_open: bool,
) -> int:
    async with ServiceClients(settings) as clients:
        workflow = build_workflow(settings, clients)
        results = await workflow.check_approvals(session_id=session_id, all_open=all_open)
    _dump([r.model_dump(mode="json") for r in results])
    return 0


async def run_schedule(settings: Settings) -> int:
    async with ServiceClients(settings) as clients:
        workflow = build_workflow(settings, clients)
        scheduler = ApprovalScheduler(
            workflow,
            cron=settings.APPROVAL_CHECK_CRON,
            all_open=settings.APPROVAL_POLL_ALL_OPEN_SESSIONS,
        )
        scheduler.start()
        try:
            await asyncio.Event().wait()
        finally:
            scheduler.stop()
    return 0


async def run_sessions(settings: Settings, session_id: str | None, latest: bool) -> int:
    sessions = ApprovalSessionManager(build_store(settings))
    if session_id is not None:
        _dump((await sessions.get_session(session_id)).model_dump(mode="json"))
    elif latest:
        session = await sessions.get_latest_session()
        _dump(session.model_dump(mode="json") if session else None)
    else:
        _dump([s.model_dump(mode="json") for s in await sessions.list_sessions()])
    return 0


def serve(settings: Settings, host: str | None, port: int | None) -> int:
    import uvicorn

    uvicorn.run(
        "src.orchestrator.main:app",
        host=host or settings.WEBHOOK_HOST,
        port=port or settings.WEBHOOK_PORT,
        log_level=settings.LOG_LEVEL.lower(),
    )
    return 0


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    settings = get_settings()

    if args.command == "serve":
        return serve(settings, args.host, args.port)

    configure_structlog()
    if settings.SENTRY_DSN:
        init_sentry(dsn=settings.SENTRY_DSN, environment=settings.ENVIRONMENT.value)

    try:
        if args.command == "process":
            return asyncio.run(run_process(settings, args.meeting_id, args.title))
        if args.command == "check-approvals":
            return asyncio.run(run_check_approvals(settings, args.session_id, args.all_open))
        if args.command == "schedule":
            return asyncio.run(run_schedule(settings))
        if args.command == "sessions":
            return asyncio.run(run_sessions(settings, args.session_id, args.latest))
    except KeyboardInterrupt:
        return 130
    except OrchestratorError as exc:
        logger.error("cli.command_failed", command=args.command, error=str(exc))
        print(f"error: {exc}", file=sys.stderr)
        return 1

    return 2
