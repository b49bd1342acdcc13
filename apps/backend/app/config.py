import os
from dataclasses import dataclass

from app.db_config import DBConfig

OPENROUTER_DEFAULT_BASE_URL = "https://openrouter.ai/api/v1"
OPENROUTER_DEFAULT_MODEL = "meta-llama/llama-3-8b-instruct"


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return float(value)
    except ValueError:
        return default


def _env_int(name: str, default: int) -> int:
    return int(_env_float(name, default))


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class Settings:
    env: str = "production"
    db_url: str | None = None

    ai_api_key: str | None = None
    ai_model: str = OPENROUTER_DEFAULT_MODEL
    ai_base_url: str = OPENROUTER_DEFAULT_BASE_URL
    ai_timeout_seconds: float = 120.0

    disable_scheduler: bool = False
    crawl_interval_seconds: float = 900.0
    enrich_interval_seconds: float = 600.0
    retention_interval_seconds: float = 900.0
    retention_hours: float = 25.0

    page_delay_seconds: float = 3.0
    batch_delay_seconds: float = 3.0
    keyword_delay_seconds: float = 5.0
    enrich_batch_size: int = 10

    browser_headless: bool = True

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            env=os.getenv("JOBMATCH_ENV", "production").lower(),
            db_url=DBConfig().db_url,
            ai_api_key=os.getenv("OPENROUTER_API_KEY") or None,
            ai_model=os.getenv("OPENROUTER_MODEL", OPENROUTER_DEFAULT_MODEL),
            ai_base_url=os.getenv("OPENROUTER_BASE_URL", OPENROUTER_DEFAULT_BASE_URL).rstrip("/"),
            ai_timeout_seconds=_env_float("OPENROUTER_TIMEOUT_SECONDS", 120.0),
            disable_scheduler=_env_bool("JOBMATCH_DISABLE_SCHEDULER"),
            crawl_interval_seconds=_env_float("JOBMATCH_CRAWL_INTERVAL_SECONDS", 900.0),
            enrich_interval_seconds=_env_float("JOBMATCH_ENRICH_INTERVAL_SECONDS", 600.0),
            retention_interval_seconds=_env_float("JOBMATCH_RETENTION_INTERVAL_SECONDS", 900.0),
            retention_hours=_env_float("JOBMATCH_RETENTION_HOURS", 25.0),
            page_delay_seconds=_env_float("JOBMATCH_PAGE_DELAY_SECONDS", 3.0),
            batch_delay_seconds=_env_float("JOBMATCH_BATCH_DELAY_SECONDS", 3.0),
            keyword_delay_seconds=_env_float("JOBMATCH_KEYWORD_DELAY_SECONDS", 5.0),
            enrich_batch_size=_env_int("JOBMATCH_ENRICH_BATCH_SIZE", 10),
            browser_headless=_env_bool("JOBMATCH_BROWSER_HEADLESS", True),
        )

    @property
    def is_dev(self) -> bool:
        return self.env == "dev"


class Capabilities:
    @staticmethod
    def is_db_enabled() -> bool:
        return bool(os.getenv("SUPABASE_DB_URL") or os.getenv("DATABASE_URL"))

    @staticmethod
    def is_ai_enabled() -> bool:
        # A keyless local endpoint (e.g. Ollama's /v1) counts as configured
        if os.getenv("OPENROUTER_API_KEY"):
            return True
        base_url = os.getenv("OPENROUTER_BASE_URL", OPENROUTER_DEFAULT_BASE_URL).rstrip("/")
        return base_url != OPENROUTER_DEFAULT_BASE_URL

    @staticmethod
    def is_scheduler_enabled() -> bool:
        return not _env_bool("JOBMATCH_DISABLE_SCHEDULER")

    @classmethod
    def get_capabilities(cls) -> dict:
        return {
            "db": cls.is_db_enabled(),
            "ai": cls.is_ai_enabled(),
            "scheduler": cls.is_scheduler_enabled(),
        }


def get_env_presence() -> dict:
    required_vars = [
        "JOBMATCH_ENV",
        "SUPABASE_DB_URL",
        "DATABASE_URL",
        "OPENROUTER_API_KEY",
        "OPENROUTER_MODEL",
        "OPENROUTER_BASE_URL",
        "JOBMATCH_DISABLE_SCHEDULER",
    ]

    return {var: bool(os.getenv(var)) for var in required_vars}
