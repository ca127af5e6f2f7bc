"""
ProSync Suite - Configuration Management
========================================
Centralized configuration with environment variable support.

Usage:
    from prosync.config import settings

    db_path = settings.db_path
    api_key = settings.anthropic_api_key
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

logger = logging.getLogger(__name__)


@dataclass
class Settings:
    """Application settings with environment variable overrides."""

    # Storage
    db_path: Path = field(default_factory=lambda: Path("data/prosync.db"))
    database_url: str | None = None

    # AI assistant
    anthropic_model: str = "claude-3-5-haiku-20241022"
    max_llm_tokens: int = 1024
    llm_timeout_seconds: int = 30
    ai_history_limit: int = 20
    ai_context_items: int = 5

    # Listing caps
    expense_list_limit: int = 100

    # Domain thresholds
    budget_alert_percent: float = 80.0
    capacity_optimal_percent: float = 70.0
    long_session_minutes: int = 240
    high_risk_score: float = 0.7
    medium_risk_score: float = 0.3

    # Notification stream
    stream_heartbeat_seconds: float = 15.0
    stream_poll_seconds: float = 0.05

    # Reverse proxy / client IP extraction
    trust_proxy_headers: bool = False
    trusted_proxy_ips: set[str] = field(default_factory=set)

    # CORS configuration
    # Example: CORS_ALLOW_ORIGINS="https://example.com,https://app.example.com"
    cors_allow_origins: set[str] = field(
        default_factory=lambda: {
            "http://localhost",
            "http://localhost:5173",  # Vite dev server
            "http://127.0.0.1",
            "http://127.0.0.1:5173",
        }
    )
    cors_allow_credentials: bool = False
    cors_max_age: int = 600  # 10 minutes

    # Feature flags
    enable_ai_assistant: bool = True
    debug_mode: bool = False

    def __post_init__(self):
        """Load overrides from environment variables."""
        self._load_env_overrides()

    def _load_env_overrides(self):
        """Load configuration from environment variables."""
        # Storage
        if db_path := os.environ.get("PROSYNC_DB_PATH"):
            self.db_path = Path(db_path)
        if database_url := os.environ.get("PROSYNC_DATABASE_URL", "").strip():
            self.database_url = database_url

        # AI settings
        if model := os.environ.get("ANTHROPIC_MODEL"):
            self.anthropic_model = model
        if max_tokens := os.environ.get("MAX_LLM_TOKENS"):
            self.max_llm_tokens = int(max_tokens)
        if timeout := os.environ.get("LLM_TIMEOUT_SECONDS"):
            self.llm_timeout_seconds = int(timeout)
        if history := os.environ.get("AI_HISTORY_LIMIT"):
            self.ai_history_limit = int(history)

        # Thresholds
        if budget_alert := os.environ.get("BUDGET_ALERT_PERCENT"):
            self.budget_alert_percent = float(budget_alert)
        if long_session := os.environ.get("LONG_SESSION_MINUTES"):
            self.long_session_minutes = int(long_session)
        if heartbeat := os.environ.get("STREAM_HEARTBEAT_SECONDS"):
            self.stream_heartbeat_seconds = float(heartbeat)

        # Reverse proxy / headers
        if os.environ.get("TRUST_PROXY_HEADERS", "").lower() in ("1", "true", "yes"):
            self.trust_proxy_headers = True
        if trusted := os.environ.get("TRUSTED_PROXY_IPS", "").strip():
            self.trusted_proxy_ips = {ip.strip() for ip in trusted.split(",") if ip.strip()}

        # CORS configuration
        if cors_origins := os.environ.get("CORS_ALLOW_ORIGINS", "").strip():
            if cors_origins == "*":
                logger.warning(
                    "CORS_ALLOW_ORIGINS set to '*' - allowing all origins. " "This should only be used in development."
                )
                self.cors_allow_origins = {"*"}
            else:
                self.cors_allow_origins = {origin.strip() for origin in cors_origins.split(",") if origin.strip()}
        if cors_max_age := os.environ.get("CORS_MAX_AGE"):
            self.cors_max_age = int(cors_max_age)

        # Feature flags
        if os.environ.get("DISABLE_AI_ASSISTANT", "").lower() in ("1", "true"):
            self.enable_ai_assistant = False
        if os.environ.get("DEBUG", "").lower() in ("1", "true"):
            self.debug_mode = True

    @property
    def anthropic_api_key(self) -> str | None:
        """Get Anthropic API key from environment (never stored in config)."""
        return os.environ.get("ANTHROPIC_API_KEY")


# Singleton instance
_settings: Settings | None = None


def get_settings() -> Settings:
    """Get the global settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
        if _settings.debug_mode:
            logger.info("Settings loaded with debug mode enabled")
    return _settings


def reload_settings() -> Settings:
    """Force reload settings from environment."""
    global _settings
    _settings = Settings()
    return _settings


# Convenience alias
settings = get_settings()


# Domain vocabularies
TASK_STATUSES = frozenset({"todo", "in_progress", "review", "completed", "blocked"})
TASK_PRIORITIES = frozenset({"low", "medium", "high", "urgent"})
PROJECT_STATUSES = frozenset({"planning", "active", "on_hold", "completed", "cancelled"})
BOARD_TYPES = frozenset({"kanban", "scrum", "timeline", "issue_tracker"})
SPRINT_STATUSES = frozenset({"planned", "active", "completed", "cancelled"})
EXPENSE_STATUSES = frozenset({"pending", "approved", "rejected"})
RISK_STATUSES = frozenset({"open", "monitoring", "mitigated", "closed"})
MITIGATION_STATUSES = frozenset({"planned", "in_progress", "completed"})
NOTIFICATION_TYPES = frozenset({"info", "warning", "success", "error"})

TICKET_TYPES = frozenset({"incident", "request", "problem", "change"})
TICKET_PRIORITIES = frozenset({"low", "medium", "high", "critical"})
TICKET_STATUSES = frozenset({"open", "in_progress", "resolved", "closed"})
CHANGE_STATUSES = frozenset({"draft", "review", "approved", "implementation", "completed", "closed"})
CHANGE_TYPES = frozenset({"standard", "emergency", "normal"})
CHANGE_LEVELS = frozenset({"low", "medium", "high"})
PROBLEM_STATUSES = frozenset({"open", "investigating", "resolved", "closed"})

# Minutes from ticket creation until the SLA is breached.
SLA_RESOLUTION_MINUTES = {
    "critical": 240,
    "high": 480,
    "medium": 1440,
    "low": 4320,
}

THEMES = frozenset({"light", "dark", "system"})
INTERFACE_DENSITIES = frozenset({"compact", "comfortable", "spacious"})
FONT_SIZES = frozenset({"small", "medium", "large"})

AI_PROVIDERS = frozenset({"anthropic"})
