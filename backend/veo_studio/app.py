"""Backend application factory.

Returns a small dependency container (config plus the two API clients) that
the Streamlit page wires into a `StudioSession`.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict

from dotenv import load_dotenv

from .ai.openai_client import OpenAIClient
from .ai.veo_client import DEFAULT_POLL_INTERVAL_SECONDS, VeoClient
from .models import VeoModel

# Ensure local `.env` values are available when running via Streamlit/CLI.
load_dotenv(Path(__file__).resolve().parents[2] / ".env", override=False)

GEMINI_OPENAI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta/openai/"
DEFAULT_SCRIPT_MODEL = "gemini-3-flash-preview"
DEFAULT_OPENAI_FALLBACK_MODEL = "gpt-4.1-mini"
GEMINI_KEY_NAMES = ("GEMINI_API_KEY", "GOOGLE_API_KEY", "API_KEY")


def _read_env(name: str) -> str | None:
    value = os.getenv(name)
    if value is None:
        return None
    value = value.strip()
    return value or None


@dataclass(frozen=True)
class StudioConfig:
    gemini_api_key: str | None
    default_model: VeoModel
    poll_interval_seconds: float
    script_model: str
    gemini_openai_base_url: str


def load_config() -> StudioConfig:
    gemini_key = next((key for key in map(_read_env, GEMINI_KEY_NAMES) if key), None)

    model_name = _read_env("VEO_DEFAULT_MODEL")
    try:
        default_model = VeoModel(model_name) if model_name else VeoModel.VEO_FAST
    except ValueError:
        default_model = VeoModel.VEO_FAST

    try:
        poll_interval = float(_read_env("VEO_POLL_INTERVAL_SECONDS") or DEFAULT_POLL_INTERVAL_SECONDS)
    except ValueError:
        poll_interval = DEFAULT_POLL_INTERVAL_SECONDS
    if poll_interval <= 0:
        poll_interval = DEFAULT_POLL_INTERVAL_SECONDS

    return StudioConfig(
        gemini_api_key=gemini_key,
        default_model=default_model,
        poll_interval_seconds=poll_interval,
        script_model=_read_env("VEO_SCRIPT_MODEL") or DEFAULT_SCRIPT_MODEL,
        gemini_openai_base_url=_read_env("GEMINI_OPENAI_BASE_URL") or GEMINI_OPENAI_BASE_URL,
    )


def _is_openai(api_key: str | None, base_url: str | None) -> bool:
    if base_url:
        return "openai.com" in base_url.lower()
    return bool(api_key and api_key.startswith("sk-"))


def chat_provider_chain(config: StudioConfig) -> list[dict[str, str | None]]:
    """Explicit OPENAI_* providers first, then Gemini's OpenAI-compatible endpoint."""
    providers: list[dict[str, str | None]] = []
    openai_model = _read_env("OPENAI_FALLBACK_OPENAI_MODEL") or DEFAULT_OPENAI_FALLBACK_MODEL
    script_model_lower = config.script_model.lower()

    def _append_provider(
        api_key: str | None,
        base_url: str | None,
        chat_model_override: str | None = None,
        label: str | None = None,
    ) -> None:
        if not api_key:
            return
        resolved_model = chat_model_override
        is_openai = _is_openai(api_key, base_url)
        # OpenAI endpoints cannot serve the Gemini script model.
        if not resolved_model and is_openai and "gemini" in script_model_lower:
            resolved_model = openai_model
        providers.append(
            {
                "api_key": api_key,
                "base_url": base_url,
                "chat_model_override": resolved_model,
                "label": label or ("OpenAI" if is_openai else "Custom"),
            }
        )

    _append_provider(_read_env("OPENAI_API_KEY"), _read_env("OPENAI_BASE_URL"))

    # Ordered fallback chain: OPENAI_API_KEY_FALLBACK_1, _2, ...
    prefix = "OPENAI_API_KEY_FALLBACK_"
    indexed_names = sorted(
        (
            name
            for name in os.environ
            if name.startswith(prefix) and name[len(prefix) :].isdigit()
        ),
        key=lambda name: int(name[len(prefix) :]),
    )
    for name in indexed_names:
        idx = name[len(prefix) :]
        _append_provider(
            _read_env(name),
            _read_env(f"OPENAI_BASE_URL_FALLBACK_{idx}"),
            _read_env(f"OPENAI_MODEL_FALLBACK_{idx}"),
        )

    _append_provider(config.gemini_api_key, config.gemini_openai_base_url, label="Gemini")
    return providers


def create_app() -> Dict[str, Any]:
    """Create the backend dependency container."""
    config = load_config()
    return {
        "config": config,
        "ai_client": OpenAIClient(
            providers=chat_provider_chain(config),
            default_chat_model=config.script_model,
        ),
        "video_client": VeoClient(
            api_key=config.gemini_api_key,
            poll_interval_seconds=config.poll_interval_seconds,
        ),
    }
