# src/flowboard/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app.
- No secrets required at import time.
- Signed-out by default: without FLOWBOARD_USER_ID the app shows the read-only preview.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional

ENV_PREFIX = "FLOWBOARD"


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


def _load_dotenv_if_available() -> None:
    """Load .env locally if python-dotenv is installed. Safe no-op otherwise."""
    try:
        from dotenv import load_dotenv  # type: ignore
    except Exception:
        return
    load_dotenv(override=False)


_load_dotenv_if_available()


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


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_list(name: str, default: List[str]) -> List[str]:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return list(default)
    return [p.strip() for p in raw.replace(",", " ").split() if p.strip()]


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str
    data_dir: Path

    # ---- Session ----
    user_id: Optional[str]

    # ---- Storage (MongoDB) ----
    mongodb_uri: str
    mongodb_database: str
    mongodb_collection: str
    mongodb_timeout_ms: int

    # ---- LLM / OpenRouter ----
    openrouter_api_key: Optional[str]
    openrouter_base_url: str
    llm_models: List[str]
    llm_max_tokens: int
    extra_headers: Dict[str, str]

    # ---- Task limits ----
    task_name_max_len: int
    list_name_max_len: int
    ai_description_max_len: int

    # ---- Sync ----
    refetch_after_write: bool

    @staticmethod
    def from_env() -> "Settings":
        app_name = _first_env(_k("APP_NAME"), default=_env(_k("APP_TITLE"), "flowboard")) or "flowboard"
        log_level = _env(_k("LOG_LEVEL"), "INFO")
        data_dir = _env_path(_k("DATA_DIR"), Path(".local/flowboard"))

        user_id = (_env(_k("USER_ID"), "") or "").strip() or None

        mongodb_uri = (_first_env(_k("MONGODB_URI"), "MONGODB_URI", default="") or "").strip()
        mongodb_database = _env(_k("MONGODB_DATABASE"), "Flowivate")
        mongodb_collection = _env(_k("MONGODB_COLLECTION"), "taskLists")
        mongodb_timeout_ms = _env_int(_k("MONGODB_TIMEOUT_MS"), 5000)

        openrouter_api_key = _first_env(_k("OPENROUTER_API_KEY"), "OPENROUTER_API_KEY", default=None)
        openrouter_base_url = _env(_k("OPENROUTER_BASE_URL"), "https://openrouter.ai/api/v1")

        http_referer = _env(_k("HTTP_REFERER"), "https://example.com")
        title = _env(_k("APP_TITLE"), app_name)
        extra_headers = {
            "HTTP-Referer": http_referer,
            "X-Title": title,
        }

        llm_models = _env_list(
            _k("LLM_MODELS"),
            [
                "anthropic/claude-3-haiku",
                "anthropic/claude-3.5-haiku",
                "qwen/qwen-2.5-72b-instruct:free",
            ],
        )
        llm_max_tokens = _env_int(_k("LLM_MAX_TOKENS"), 1000)

        task_name_max_len = _env_int(_k("TASK_NAME_MAX_LEN"), 200)
        list_name_max_len = _env_int(_k("LIST_NAME_MAX_LEN"), 100)
        ai_description_max_len = _env_int(_k("AI_DESCRIPTION_MAX_LEN"), task_name_max_len)

        refetch_after_write = _env_bool(_k("REFETCH_AFTER_WRITE"), False)

        return Settings(
            app_name=app_name,
            log_level=log_level,
            data_dir=data_dir,
            user_id=user_id,
            mongodb_uri=mongodb_uri,
            mongodb_database=mongodb_database,
            mongodb_collection=mongodb_collection,
            mongodb_timeout_ms=mongodb_timeout_ms,
            openrouter_api_key=openrouter_api_key,
            openrouter_base_url=openrouter_base_url,
            llm_models=llm_models,
            llm_max_tokens=llm_max_tokens,
            extra_headers=extra_headers,
            task_name_max_len=task_name_max_len,
            list_name_max_len=list_name_max_len,
            ai_description_max_len=ai_description_max_len,
            refetch_after_write=refetch_after_write,
        )


SETTINGS = Settings.from_env()


def get_settings() -> Settings:
    return SETTINGS
