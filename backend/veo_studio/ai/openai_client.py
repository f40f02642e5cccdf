"""OpenAI-compatible chat client with an ordered provider fallback chain.

Used for script analysis. Gemini exposes an OpenAI-compatible endpoint, so the
same wrapper covers both OpenAI-style providers and the Gemini key.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Sequence

from openai import OpenAI

from ..errors import StudioError

logger = logging.getLogger(__name__)

DEFAULT_CHAT_MODEL = "gemini-3-flash-preview"


@dataclass(frozen=True)
class _Provider:
    """Provider configuration for a single OpenAI-compatible endpoint."""

    api_key: str
    base_url: str | None = None
    chat_model_override: str | None = None
    label: str = "custom"


def extract_content(resp: Any) -> str:
    """Pull the assistant text out of a dict reply or an SDK object."""

    def _normalize(content: Any) -> str:
        if content is None:
            return ""
        if isinstance(content, str):
            return content
        if isinstance(content, list):
            parts: list[str] = []
            for item in content:
                if isinstance(item, dict):
                    text_value = item.get("text")
                else:
                    text_value = getattr(item, "text", None)
                if isinstance(text_value, str):
                    parts.append(text_value)
            return "\n".join(parts).strip()
        return str(content)

    if isinstance(resp, dict):
        try:
            return _normalize(resp["choices"][0]["message"]["content"])
        except (KeyError, IndexError, TypeError):
            return ""
    try:
        return _normalize(resp.choices[0].message.content)
    except (AttributeError, IndexError, TypeError):
        return ""


class OpenAIClient:
    """Thin wrapper around OpenAI-compatible providers tried in order."""

    def __init__(
        self,
        providers: Sequence[Dict[str, str | None]] | None = None,
        default_chat_model: str | None = None,
    ):
        self._providers = self._build_providers(providers)
        self.default_chat_model = self._clean(default_chat_model) or DEFAULT_CHAT_MODEL
        self._clients: Dict[tuple[str, str | None], OpenAI] = {}

    @staticmethod
    def _clean(value: str | None) -> str | None:
        if value is None:
            return None
        stripped = value.strip()
        return stripped or None

    def _build_providers(
        self,
        configs: Sequence[Dict[str, str | None]] | None,
    ) -> List[_Provider]:
        providers: list[_Provider] = []
        seen: set[tuple[str, str | None, str | None]] = set()

        for cfg in configs or []:
            api_key = self._clean(cfg.get("api_key"))
            if not api_key:
                continue
            provider = _Provider(
                api_key=api_key,
                base_url=self._clean(cfg.get("base_url")),
                chat_model_override=self._clean(cfg.get("chat_model_override")),
                label=self._clean(cfg.get("label")) or "custom",
            )
            marker = (provider.api_key, provider.base_url, provider.chat_model_override)
            if marker in seen:
                continue
            providers.append(provider)
            seen.add(marker)

        return providers

    @property
    def is_live(self) -> bool:
        return bool(self._providers)

    @property
    def provider_labels(self) -> list[str]:
        return [provider.label for provider in self._providers]

    def _get_live_client(self, provider: _Provider) -> OpenAI:
        client_key = (provider.api_key, provider.base_url)
        client = self._clients.get(client_key)
        if not client:
            client = OpenAI(api_key=provider.api_key, base_url=provider.base_url)
            self._clients[client_key] = client
        return client

    def _promote_provider(self, idx: int) -> None:
        if idx <= 0:
            return
        provider = self._providers.pop(idx)
        self._providers.insert(0, provider)

    def _call_with_fallback(self, call: Callable[[Any, _Provider], Any]) -> Any:
        if not self._providers:
            raise StudioError("No chat provider configured. Set GEMINI_API_KEY or OPENAI_API_KEY.")

        last_error: Exception | None = None
        for idx, provider in enumerate(self._providers):
            try:
                client = self._get_live_client(provider)
                response = call(client, provider)
            except Exception as exc:
                logger.warning("Chat provider %s failed: %s", provider.label, exc)
                last_error = exc
                continue
            self._promote_provider(idx)
            return response

        if last_error:
            raise last_error
        raise StudioError("Every chat provider failed.")

    def chat(self, messages: List[Dict[str, str]], model: str | None = None, **kwargs) -> Any:
        """Call provider chat endpoint with ordered API-key fallback."""

        def _chat_call(client: Any, provider: _Provider) -> Any:
            chosen_model = provider.chat_model_override or model or self.default_chat_model
            return client.chat.completions.create(messages=messages, model=chosen_model, **kwargs)

        return self._call_with_fallback(_chat_call)

    def complete_text(self, system_prompt: str, user_prompt: str, **kwargs) -> str:
        resp = self.chat(
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            **kwargs,
        )
        return extract_content(resp)
