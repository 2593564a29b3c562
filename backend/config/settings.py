"""
Engine configuration loaded from the environment.

Values come from a .env file (via python-dotenv) or the process environment.
Every field has a default so the engine runs locally with no configuration;
credentials for Resend, Ollama and Supabase are only required by the
collaborators that use them.
"""

import os
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError

from shared.errors import ConfigError

load_dotenv()

DEFAULT_ERROR_LOG_DIR = str(Path(__file__).resolve().parent.parent / "notifications" / "logs")


class EngineSettings(BaseModel):
    """Tunable limits and collaborator settings for the dispatch engine."""

    # Bounded history
    log_capacity: int = Field(100, ge=1)

    # Template rendering
    list_render_limit: int = Field(5, ge=1)
    block_on_unresolved: bool = False

    # Timeouts (seconds) for the only operations expected to block
    content_timeout_seconds: float = Field(120.0, gt=0)
    send_timeout_seconds: float = Field(30.0, gt=0)

    # Rate limits checked before each scheduled run
    max_executions_per_hour: int = Field(4, ge=1)
    max_recipients_per_schedule: int = Field(500, ge=1)

    # Workers
    dispatch_workers: int = Field(4, ge=1)
    scheduler_workers: int = Field(4, ge=1)
    poll_interval_seconds: float = Field(60.0, gt=0)
    send_batch_size: int = Field(50, ge=1)

    # Collaborators
    from_email: str = "digest-notifications@example.com"
    from_name: str = "Compliance Digest"
    resend_api_key: str | None = None
    ollama_model: str = "llama3.1:8b"
    ollama_host: str | None = None
    ollama_timeout_seconds: float = Field(240.0, gt=0)
    webhook_url: str | None = None
    supabase_url: str | None = None
    supabase_key: str | None = None
    error_log_dir: str = DEFAULT_ERROR_LOG_DIR


# Environment variable -> settings field
_ENV_MAPPING = {
    "NOTIFICATION_LOG_CAPACITY": "log_capacity",
    "TEMPLATE_LIST_LIMIT": "list_render_limit",
    "TEMPLATE_BLOCK_ON_UNRESOLVED": "block_on_unresolved",
    "CONTENT_TIMEOUT_SECONDS": "content_timeout_seconds",
    "SEND_TIMEOUT_SECONDS": "send_timeout_seconds",
    "MAX_EXECUTIONS_PER_HOUR": "max_executions_per_hour",
    "MAX_RECIPIENTS_PER_SCHEDULE": "max_recipients_per_schedule",
    "DISPATCH_WORKERS": "dispatch_workers",
    "SCHEDULER_WORKERS": "scheduler_workers",
    "POLL_INTERVAL_SECONDS": "poll_interval_seconds",
    "SEND_BATCH_SIZE": "send_batch_size",
    "NOTIFICATION_FROM_EMAIL": "from_email",
    "NOTIFICATION_FROM_NAME": "from_name",
    "RESEND_API_KEY": "resend_api_key",
    "OLLAMA_MODEL": "ollama_model",
    "OLLAMA_HOST": "ollama_host",
    "OLLAMA_TIMEOUT_SECONDS": "ollama_timeout_seconds",
    "NOTIFICATION_WEBHOOK_URL": "webhook_url",
    "SUPABASE_URL": "supabase_url",
    "SUPABASE_SERVICE_KEY": "supabase_key",
    "NOTIFICATION_ERROR_LOG_DIR": "error_log_dir",
}


def load_settings(**overrides) -> EngineSettings:
    """
    Build settings from the environment, applying explicit overrides last.

    Raises:
        ConfigError: If any value fails validation
    """
    values: dict[str, object] = {}
    for env_key, field_name in _ENV_MAPPING.items():
        raw = os.getenv(env_key)
        if raw is None or raw == "":
            continue
        if field_name == "block_on_unresolved":
            values[field_name] = raw.strip().lower() in {"1", "true", "yes", "on"}
        else:
            values[field_name] = raw
    values.update(overrides)

    try:
        return EngineSettings.model_validate(values)
    except ValidationError as e:
        raise ConfigError(f"Invalid engine settings: {e}", {"fields": list(values)}) from e
