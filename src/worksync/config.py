# src/worksync/config.py

"""Centralized settings loaded from environment variables (+ local .env).

Design goals:
- One Settings object for the whole app.
- No secrets required at import time.
- Every timing knob of the sync engine is configurable so tests and demos can shrink it.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional

from dotenv import load_dotenv

ENV_PREFIX = "WORKSYNC"

COMPLETION_POLICIES = ("rehome", "preserve")


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


# Real environment variables win over .env entries.
load_dotenv(override=False)


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _first_env(*names: str, default: str | None = None) -> str | None:
    for n in names:
        v = os.getenv(n)
        if v is not None and v.strip() != "":
            return v
    return default


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_list(name: str, default: List[str]) -> List[str]:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return list(default)
    parts = [p.strip() for p in raw.split(",") if p.strip()]
    return parts


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


def _env_choice(name: str, default: str, choices: tuple[str, ...]) -> str:
    raw = _env(name, default).strip().lower()
    return raw if raw in choices else default


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str

    # ---- Local data paths (ignored by git) ----
    data_dir: Path
    db_path: Path
    session_path: Path

    # ---- Sync engine timing ----
    debounce_seconds: float
    status_display_seconds: float
    gateway_latency_seconds: float
    gateway_failure_rate: float
    auth_latency_seconds: float

    # ---- Workspace policy ----
    completion_policy: str
    default_team: List[str]
    require_verification: bool

    # ---- LLM (OpenAI-compatible) ----
    llm_api_key: Optional[str]
    llm_base_url: str
    llm_models: List[str]
    extra_headers: Dict[str, str]

    @staticmethod
    def from_env() -> "Settings":
        app_name = _env(_k("APP_NAME"), "worksync") or "worksync"
        log_level = _env(_k("LOG_LEVEL"), "INFO")

        data_dir = _env_path(_k("DATA_DIR"), Path(".local/worksync"))
        db_path = _env_path(_k("DB_PATH"), data_dir / "worksync.sqlite3")
        session_path = _env_path(_k("SESSION_PATH"), data_dir / "session.json")

        debounce_seconds = max(0.0, _env_float(_k("DEBOUNCE_SECONDS"), 1.5))
        status_display_seconds = max(0.0, _env_float(_k("STATUS_DISPLAY_SECONDS"), 3.0))
        gateway_latency_seconds = max(0.0, _env_float(_k("GATEWAY_LATENCY_SECONDS"), 0.2))
        gateway_failure_rate = min(1.0, max(0.0, _env_float(_k("GATEWAY_FAILURE_RATE"), 0.0)))
        auth_latency_seconds = max(0.0, _env_float(_k("AUTH_LATENCY_SECONDS"), 0.8))

        completion_policy = _env_choice(_k("COMPLETION_POLICY"), "rehome", COMPLETION_POLICIES)
        default_team = _env_list(_k("DEFAULT_TEAM"), ["Self"])
        if "Self" not in default_team:
            default_team.insert(0, "Self")
        require_verification = _env_bool(_k("REQUIRE_VERIFICATION"), False)

        llm_api_key = _first_env(_k("LLM_API_KEY"), "OPENAI_API_KEY", default=None)
        llm_base_url = _env(_k("LLM_BASE_URL"), "https://openrouter.ai/api/v1")
        llm_models = _env_list(
            _k("LLM_MODELS"),
            [
                "google/gemini-2.0-flash-exp:free",
                "deepseek/deepseek-chat-v3-0324:free",
            ],
        )
        extra_headers = {
            "HTTP-Referer": _env(_k("HTTP_REFERER"), "https://example.com"),
            "X-Title": _env(_k("APP_TITLE"), app_name),
        }

        return Settings(
            app_name=app_name,
            log_level=log_level,
            data_dir=data_dir,
            db_path=db_path,
            session_path=session_path,
            debounce_seconds=debounce_seconds,
            status_display_seconds=status_display_seconds,
            gateway_latency_seconds=gateway_latency_seconds,
            gateway_failure_rate=gateway_failure_rate,
            auth_latency_seconds=auth_latency_seconds,
            completion_policy=completion_policy,
            default_team=default_team,
            require_verification=require_verification,
            llm_api_key=llm_api_key,
            llm_base_url=llm_base_url,
            llm_models=llm_models,
            extra_headers=extra_headers,
        )


SETTINGS = Settings.from_env()


def get_settings() -> Settings:
    return SETTINGS
