from __future__ import annotations

import logging
from typing import Any, Protocol

import requests

from harv.ai.prompt import AiContext, build_prompt, parse_response
from harv.core.config import AiConfig
from harv.core.errors import AiError, ConfigError
from harv.core.models import ProposedEntry

logger = logging.getLogger(__name__)

TIMEOUT_S = 30

OPENAI_URL = "https://api.openai.com/v1/chat/completions"
OPENAI_DEFAULT_MODEL = "gpt-4o"

ANTHROPIC_URL = "https://api.anthropic.com/v1/messages"
ANTHROPIC_DEFAULT_MODEL = "claude-3-5-sonnet-20241022"
ANTHROPIC_VERSION = "2023-06-01"
ANTHROPIC_MAX_TOKENS = 4096


class AiProvider(Protocol):
    def generate(self, summary: str, context: AiContext) -> list[ProposedEntry]: ...

    def name(self) -> str: ...


def _post(
    session: requests.Session,
    label: str,
    url: str,
    headers: dict[str, str],
    payload: dict[str, Any],
) -> Any:
    logger.debug("POST %s", url)
    try:
        resp = session.post(url, headers=headers, json=payload, timeout=TIMEOUT_S)
    except requests.RequestException as e:
        raise AiError(f"{label} API request failed: {e}") from e

    if resp.status_code >= 300:
        raise AiError(f"{label} API error ({resp.status_code}): {resp.text}")
    try:
        return resp.json()
    except ValueError as e:
        raise AiError(f"Failed to parse {label} response: {e}") from e


class OpenAiProvider:
    def __init__(
        self, api_key: str, model: str | None = None, session: requests.Session | None = None
    ) -> None:
        if not api_key:
            raise ConfigError("OpenAI API key is required")
        self.api_key = api_key
        self.model = model or OPENAI_DEFAULT_MODEL
        self.session = session or requests.Session()

    def name(self) -> str:
        return "OpenAI"

    def generate(self, summary: str, context: AiContext) -> list[ProposedEntry]:
        payload = {
            "model": self.model,
            "messages": [{"role": "user", "content": build_prompt(summary, context)}],
            "response_format": {"type": "json_object"},
        }
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        data = _post(self.session, "OpenAI", OPENAI_URL, headers, payload)

        choices = data.get("choices") if isinstance(data, dict) else None
        if not choices:
            raise AiError("OpenAI returned no choices")
        try:
            content = choices[0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            raise AiError(f"Failed to parse OpenAI response: {e}") from e
        if not isinstance(content, str):
            raise AiError("OpenAI returned no message content")

        logger.debug("OpenAI response: %s", content)
        return parse_response(content)


class AnthropicProvider:
    def __init__(
        self, api_key: str, model: str | None = None, session: requests.Session | None = None
    ) -> None:
        if not api_key:
            raise ConfigError("Anthropic API key is required")
        self.api_key = api_key
        self.model = model or ANTHROPIC_DEFAULT_MODEL
        self.session = session or requests.Session()

    def name(self) -> str:
        return "Anthropic Claude"

    def generate(self, summary: str, context: AiContext) -> list[ProposedEntry]:
        payload = {
            "model": self.model,
            "max_tokens": ANTHROPIC_MAX_TOKENS,
            "messages": [{"role": "user", "content": build_prompt(summary, context)}],
        }
        headers = {
            "x-api-key": self.api_key,
            "anthropic-version": ANTHROPIC_VERSION,
            "Content-Type": "application/json",
        }
        data = _post(self.session, "Anthropic", ANTHROPIC_URL, headers, payload)

        blocks = data.get("content") if isinstance(data, dict) else None
        texts = [
            b.get("text")
            for b in blocks or []
            if isinstance(b, dict) and b.get("type") == "text"
        ]
        text = next((t for t in texts if isinstance(t, str)), None)
        if text is None:
            raise AiError("Anthropic returned no text content")

        logger.debug("Anthropic response: %s", text)
        return parse_response(text)


def create_provider(config: AiConfig, session: requests.Session | None = None) -> AiProvider:
    provider = config.provider.lower()
    if provider == "openai":
        return OpenAiProvider(config.api_key, config.model, session)
    if provider in ("anthropic", "claude"):
        return AnthropicProvider(config.api_key, config.model, session)
    raise ConfigError(f"Unsupported AI provider: {config.provider}. Supported: openai, anthropic")
