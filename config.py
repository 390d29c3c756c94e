import os
from functools import lru_cache
from pathlib import Path
from typing import Optional


class Settings:
    def __init__(
        self,
        database_url: str,
        timezone: str,
        csrf_secret: str,
        gemini_api_key: Optional[str],
        insight_model: str,
        insight_timeout_secs: float,
        insight_retries: int,
        allow_reset: bool,
        currency_symbol: str,
        scheduler_enabled: bool,
    ) -> None:
        self.database_url = database_url
        self.timezone = timezone
        self.csrf_secret = csrf_secret
        self.gemini_api_key = gemini_api_key
        self.insight_model = insight_model
        self.insight_timeout_secs = insight_timeout_secs
        self.insight_retries = insight_retries
        self.allow_reset = allow_reset
        self.currency_symbol = currency_symbol
        self.scheduler_enabled = scheduler_enabled


def _ensure_data_dir() -> Path:
    root = Path(os.getenv("LEDGER_DATA_DIR", "./data")).resolve()
    root.mkdir(parents=True, exist_ok=True)
    return root


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    database_url = os.getenv("LEDGER_DATABASE_URL")
    if not database_url:
        default_db = _ensure_data_dir() / "ledger.db"
        database_url = f"sqlite:///{default_db}"
    timezone = os.getenv("LEDGER_TIMEZONE", "Asia/Kolkata")
    csrf_secret = os.getenv(
        "LEDGER_CSRF_SECRET",
        "5d0c3f9e8b7a41d2a6f1c0e9b8d7a6c5f4e3d2c1b0a9f8e7d6c5b4a3f2e1d0c9",
    )
    gemini_api_key = os.getenv("GEMINI_API_KEY") or None
    insight_model = os.getenv("LEDGER_INSIGHT_MODEL", "gemini-2.5-flash")
    insight_timeout_secs = float(os.getenv("LEDGER_INSIGHT_TIMEOUT_SECS", "20"))
    insight_retries = max(0, int(os.getenv("LEDGER_INSIGHT_RETRIES", "0")))
    return Settings(
        database_url=database_url,
        timezone=timezone,
        csrf_secret=csrf_secret,
        gemini_api_key=gemini_api_key,
        insight_model=insight_model,
        insight_timeout_secs=insight_timeout_secs,
        insight_retries=insight_retries,
        allow_reset=_env_flag("LEDGER_ALLOW_RESET", "false"),
        currency_symbol=os.getenv("LEDGER_CURRENCY_SYMBOL", "₹"),
        scheduler_enabled=_env_flag("LEDGER_SCHEDULER_ENABLED", "true"),
    )
