import logging
from pathlib import Path
from typing import Any, Literal, Optional

from celery.schedules import crontab
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

DEFAULT_CLEANUP_INTERVAL = "0 2 * * *"


def _fallback(field: str, value: Any, default: Any) -> Any:
    logger.warning(f"Invalid value {value!r} for {field}, using default {default!r}")
    return default


def _coerce_int(field: str, value: Any, default: int, minimum: int) -> int:
    if value is None or value == "":
        return default
    try:
        number = int(value)
    except (TypeError, ValueError):
        return _fallback(field, value, default)
    if number < minimum:
        return _fallback(field, value, default)
    return number


def _coerce_float(field: str, value: Any, default: float, minimum: float) -> float:
    if value is None or value == "":
        return default
    try:
        number = float(value)
    except (TypeError, ValueError):
        return _fallback(field, value, default)
    if number < minimum:
        return _fallback(field, value, default)
    return number


def _coerce_bool(field: str, value: Any, default: bool) -> bool:
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in ("1", "true", "yes", "on"):
        return True
    if text in ("0", "false", "no", "off"):
        return False
    return _fallback(field, value, default)


def parse_cron_expression(expression: str) -> crontab:
    """Turn a five-field cron expression into a Celery crontab."""
    fields = expression.split()
    if len(fields) != 5:
        raise ValueError(f"Expected 5 cron fields, got {len(fields)}: {expression!r}")
    minute, hour, day_of_month, month_of_year, day_of_week = fields
    return crontab(
        minute=minute,
        hour=hour,
        day_of_month=day_of_month,
        month_of_year=month_of_year,
        day_of_week=day_of_week,
    )


# (default, minimum) for every integer knob
_INT_FIELDS = {
    "CELERY_TASK_TIME_LIMIT": (600, 1),
    "WORKER_CONCURRENCY": (2, 1),
    "QUEUE_MAX_ATTEMPTS": (3, 1),
    "QUEUE_KEEP_COMPLETED": (10, 0),
    "QUEUE_KEEP_FAILED": (5, 0),
    "SCAN_TIMEOUT_SECONDS": (30, 1),
    "SCREENSHOT_TIMEOUT_SECONDS": (5, 1),
    "CLEANUP_RETENTION_DAYS": (30, 0),
    "CLEANUP_BATCH_SIZE": (1000, 1),
    "CLEANUP_CONCURRENCY_LIMIT": (10, 1),
}

_FLOAT_FIELDS = {
    "QUEUE_ENQUEUE_DELAY_SECONDS": (1.0, 0.0),
    "QUEUE_BACKOFF_BASE_SECONDS": (2.0, 0.0),
    "CLEANUP_BATCH_PAUSE_SECONDS": (0.05, 0.0),
}

_BOOL_FIELDS = {
    "DEBUG": False,
    "BROWSER_HEADLESS": True,
    "CLEANUP_ENABLED": True,
}


class Settings(BaseSettings):
    # ── App ─────────────────────────────────────
    APP_NAME: str = "A11y Scan API"
    ENVIRONMENT: Literal["local", "staging", "production"] = "local"
    DEBUG: bool = False
    BASE_URL: Optional[str] = None

    # ── Database ────────────────────────────────
    DATABASE_URL: str = "sqlite:///./data/a11y_scans.db"

    # ── Queue ───────────────────────────────────
    CELERY_BROKER_URL: str = "redis://localhost:6379/0"
    CELERY_RESULT_BACKEND: str = "redis://localhost:6379/1"
    REDIS_URL: Optional[str] = None
    CELERY_TASK_TIME_LIMIT: int = 600
    WORKER_CONCURRENCY: int = 2

    QUEUE_NAME: str = "scan-processing"
    QUEUE_ENQUEUE_DELAY_SECONDS: float = 1.0
    QUEUE_MAX_ATTEMPTS: int = 3
    QUEUE_BACKOFF_BASE_SECONDS: float = 2.0
    QUEUE_KEEP_COMPLETED: int = 10
    QUEUE_KEEP_FAILED: int = 5

    # ── Browser / scanning ──────────────────────
    REMOTE_BROWSER_URL: Optional[str] = None
    CHROMEDRIVER_PATH: Optional[str] = None
    BROWSER_HEADLESS: bool = True

    SCAN_TIMEOUT_SECONDS: int = 30
    SCREENSHOT_TIMEOUT_SECONDS: int = 5
    SCREENSHOT_DIR: str = "./screenshots"

    HTMLCS_SCRIPT_URL: str = "https://squizlabs.github.io/HTML_CodeSniffer/build/HTMLCS.js"
    AXE_SCRIPT_URL: str = "https://cdnjs.cloudflare.com/ajax/libs/axe-core/4.10.2/axe.min.js"

    AXE_HELP_BASE_URL: str = "https://dequeuniversity.com/rules/axe/4.6"
    WCAG_TECHNIQUES_BASE_URL: str = "https://www.w3.org/WAI/WCAG21/Techniques"

    # ── Cleanup ─────────────────────────────────
    CLEANUP_ENABLED: bool = True
    CLEANUP_INTERVAL: str = DEFAULT_CLEANUP_INTERVAL
    CLEANUP_RETENTION_DAYS: int = 30
    CLEANUP_BATCH_SIZE: int = 1000
    CLEANUP_CONCURRENCY_LIMIT: int = 10
    CLEANUP_BATCH_PAUSE_SECONDS: float = 0.05

    # ── Logging ─────────────────────────────────
    LOG_DIR: str = "logs"
    LOG_LEVEL: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=str(Path(__file__).parent.parent.parent / ".env"),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator(*_INT_FIELDS.keys(), mode="before")
    @classmethod
    def _validate_int(cls, value, info):
        default, minimum = _INT_FIELDS[info.field_name]
        return _coerce_int(info.field_name, value, default, minimum)

    @field_validator(*_FLOAT_FIELDS.keys(), mode="before")
    @classmethod
    def _validate_float(cls, value, info):
        default, minimum = _FLOAT_FIELDS[info.field_name]
        return _coerce_float(info.field_name, value, default, minimum)

    @field_validator(*_BOOL_FIELDS.keys(), mode="before")
    @classmethod
    def _validate_bool(cls, value, info):
        return _coerce_bool(info.field_name, value, _BOOL_FIELDS[info.field_name])

    @field_validator("CLEANUP_INTERVAL", mode="before")
    @classmethod
    def _validate_cron(cls, value):
        if not value or not str(value).strip():
            return DEFAULT_CLEANUP_INTERVAL
        try:
            parse_cron_expression(str(value))
        except (ValueError, TypeError) as e:
            logger.warning(f"Invalid CLEANUP_INTERVAL {value!r} ({e}), using default")
            return DEFAULT_CLEANUP_INTERVAL
        return str(value).strip()

    @field_validator("REMOTE_BROWSER_URL", "CHROMEDRIVER_PATH", "BASE_URL", "REDIS_URL", mode="before")
    @classmethod
    def _blank_to_none(cls, value):
        if value is None or not str(value).strip():
            return None
        return str(value).strip()

    @property
    def screenshot_path(self) -> Path:
        return Path(self.SCREENSHOT_DIR).resolve()

    @property
    def registry_redis_url(self) -> str:
        return self.REDIS_URL or self.CELERY_BROKER_URL

    @property
    def cleanup_schedule(self) -> crontab:
        return parse_cron_expression(self.CLEANUP_INTERVAL)


settings = Settings()
