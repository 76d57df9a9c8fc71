# backend/histquiz/core/config.py

import os
from dataclasses import dataclass
from typing import Mapping, Optional

DEFAULT_MODEL = "gemini-1.5-flash-latest"
DEFAULT_BASE_URL = "https://generativelanguage.googleapis.com/v1beta/openai/"
DEFAULT_API_URL = "http://127.0.0.1:8000/api/generate-question"

# Checked in order. The second name is what the Vercel deployment used.
API_KEY_ENV_NAMES = ("GEMINI_API_KEY", "VITE_GEMINI_API_KEY")


@dataclass(frozen=True)
class Settings:
    api_key: Optional[str]
    model: str = DEFAULT_MODEL
    base_url: str = DEFAULT_BASE_URL
    api_url: str = DEFAULT_API_URL
    log_level: str = "INFO"


def load_settings(environ: Optional[Mapping[str, str]] = None) -> Settings:
    """Build Settings from a secret/env mapping (os.environ by default)."""
    env = os.environ if environ is None else environ

    api_key = None
    for name in API_KEY_ENV_NAMES:
        value = (env.get(name) or "").strip()
        if value:
            api_key = value
            break

    return Settings(
        api_key=api_key,
        model=env.get("GEMINI_MODEL") or DEFAULT_MODEL,
        base_url=env.get("GEMINI_BASE_URL") or DEFAULT_BASE_URL,
        api_url=env.get("HISTQUIZ_API_URL") or DEFAULT_API_URL,
        log_level=(env.get("LOG_LEVEL") or "INFO").upper(),
    )
