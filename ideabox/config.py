"""Configuration helpers for the IdeaBox backend."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from functools import lru_cache
from typing import List, Mapping

from dotenv import load_dotenv

ENV_PREFIX = "IDEABOX_"

DEFAULT_MANAGED_MODEL = "gpt-4o-mini"
DEFAULT_LOCAL_MODEL = "qwen2.5:1.5b"
DEFAULT_TEMPERATURE = 0.3
DEFAULT_FIELD_DELAY_SECONDS = 0.3

DEFAULT_ALLOWED_ORIGINS = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]

load_dotenv(override=False)


@dataclass(frozen=True)
class Settings:
    """Settings container for both generation backends.

    The managed backend (OpenAI) is preferred whenever it is configured; the
    local backend (an Ollama-served model) is the fallback once its weights
    have been pulled.
    """

    openai_api_key: str | None = None
    managed_model: str = DEFAULT_MANAGED_MODEL
    managed_enabled: bool = True
    # Forces the reported managed availability, e.g. "initializing".
    managed_state: str | None = None
    ollama_host: str | None = None
    local_model: str = DEFAULT_LOCAL_MODEL
    temperature: float = DEFAULT_TEMPERATURE
    field_delay_seconds: float = DEFAULT_FIELD_DELAY_SECONDS
    log_level: str = "INFO"
    allowed_origins: List[str] = field(default_factory=lambda: list(DEFAULT_ALLOWED_ORIGINS))

    @property
    def has_managed_credentials(self) -> bool:
        """True when an API key for the managed backend is configured."""

        return bool(self.openai_api_key)


def _read_bool(environ: Mapping[str, str], key: str, default: bool) -> bool:
    raw = environ.get(key)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() not in {"0", "false", "no", "off"}


def _read_float(environ: Mapping[str, str], key: str, default: float) -> float:
    raw = environ.get(key)
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        return default
    return value if value >= 0 else default


def _read_origins(environ: Mapping[str, str]) -> List[str]:
    """Return allowed origins, optionally sourced from an env override."""

    raw = environ.get(f"{ENV_PREFIX}ALLOWED_ORIGINS")
    if raw:
        return [origin.strip() for origin in raw.split(",") if origin.strip()]
    return list(DEFAULT_ALLOWED_ORIGINS)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Read environment variables and return cached settings."""

    environ = os.environ
    managed_state = (environ.get(f"{ENV_PREFIX}MANAGED_STATE") or "").strip().lower() or None
    return Settings(
        openai_api_key=environ.get("OPENAI_API_KEY") or None,
        managed_model=environ.get(f"{ENV_PREFIX}MANAGED_MODEL") or DEFAULT_MANAGED_MODEL,
        managed_enabled=_read_bool(environ, f"{ENV_PREFIX}MANAGED_ENABLED", True),
        managed_state=managed_state,
        ollama_host=environ.get(f"{ENV_PREFIX}OLLAMA_HOST") or None,
        local_model=environ.get(f"{ENV_PREFIX}LOCAL_MODEL") or DEFAULT_LOCAL_MODEL,
        temperature=_read_float(environ, f"{ENV_PREFIX}TEMPERATURE", DEFAULT_TEMPERATURE),
        field_delay_seconds=_read_float(
            environ, f"{ENV_PREFIX}FIELD_DELAY_SECONDS", DEFAULT_FIELD_DELAY_SECONDS
        ),
        log_level=(environ.get(f"{ENV_PREFIX}LOG_LEVEL") or "INFO").upper(),
        allowed_origins=_read_origins(environ),
    )
