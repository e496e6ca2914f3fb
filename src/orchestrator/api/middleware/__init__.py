"""API middleware package."""

from src.orchestrator.api.middleware.logging import AccessLogMiddleware, configure_structlog

__all__ = ["AccessLogMiddleware", "configure_structlog"]
