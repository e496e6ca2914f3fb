"""Application configuration via Pydantic BaseSettings."""

from __future__ import annotations

from enum import Enum
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(str, Enum):
    development = "development"
    staging = "staging"
    production = "production"


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    # Environment
    ENVIRONMENT: Environment = Environment.development

    # Logging
    LOG_LEVEL: str = "INFO"

    # Durable state (processed meetings + approval sessions)
    STATE_DIR: str = "./state"
    STATE_RESET_ON_SCHEMA_MISMATCH: bool = True  # False raises instead of backup + reset

    # Approval polling
    APPROVAL_CHECK_CRON: str = "*/30 * * * *"
    APPROVAL_POLL_ALL_OPEN_SESSIONS: bool = True
    APPROVAL_REACTIONS: str = "👍,like"  # Literal reaction symbols, comma-separated

    # External calls
    EXTERNAL_CALL_TIMEOUT: float = 30.0
    EXTERNAL_CALL_MAX_ATTEMPTS: int = 3

    # Microsoft Graph (Teams approval channel + Planner drafts)
    GRAPH_BASE_URL: str = "https://graph.microsoft.com/v1.0"
    GRAPH_TOKEN: str = ""
    TEAMS_TEAM_ID: str = ""
    TEAMS_CHANNEL_ID: str = ""
    PLANNER_PLAN_ID: str = ""
    PLANNER_BUCKET_ID: str = ""

    # ClickUp (board of record)
    CLICKUP_BASE_URL: str = "https://api.clickup.com/api/v2"
    CLICKUP_TOKEN: str = ""
    CLICKUP_LIST_ID: str = ""

    # Fireflies (transcripts + webhook)
    FIREFLIES_API_URL: str = "https://api.fireflies.ai/graphql"
    FIREFLIES_API_KEY: str = ""
    FIREFLIES_WEBHOOK_SECRET: str = ""  # Optional shared secret, checked when set

    # LLM task extraction
    LLM_MODEL: str = "anthropic/claude-sonnet-4-20250514"
    ANTHROPIC_API_KEY: str = ""
    OPENAI_API_KEY: str = ""

    # Webhook server
    WEBHOOK_HOST: str = "0.0.0.0"
    WEBHOOK_PORT: int = 3000

    # Monitoring
    SENTRY_DSN: str = ""

    def get_approval_reactions(self) -> frozenset[str]:
        """Return the approving reaction symbols as a set.

        Symbols are compared verbatim against what Teams returns, so no
        case folding or alias expansion happens here.
        """
        return frozenset(
            symbol.strip() for symbol in self.APPROVAL_REACTIONS.split(",") if symbol.strip()
        )


@lru_cache
def get_settings() -> Settings:
    """Singleton settings instance."""
    return Settings()
