"""
Completion client: one user message in, one reply string out.

Builds the provider request (fixed system prompt + the user message),
sends it through a backend, and pulls the reply text out of whatever
shape the provider answered with. Reply extraction is an ordered list
of strategies; the first non-empty result wins and FALLBACK_REPLY
covers the rest.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Callable

from chatrelay.backends.base import BaseBackend
from chatrelay.config import BackendConfig

logger = logging.getLogger(__name__)

FALLBACK_REPLY = "Sorry, I couldn't generate a reply."


class CompletionError(Exception):
    """Base class for completion failures surfaced as server errors."""


class MissingAPIKeyError(CompletionError):
    """No provider credential configured. Raised before any network call."""

    def __init__(self):
        super().__init__("Missing API key")


class ProviderError(CompletionError):
    """The provider reported an error, or could not be reached."""

    def __init__(self, message: str, status_code: int = 500):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


# ---------------------------------------------------------------------------
# Reply extraction
# ---------------------------------------------------------------------------

def _first_choice(data: dict) -> dict:
    choices = data.get("choices") if isinstance(data, dict) else None
    if isinstance(choices, list) and choices and isinstance(choices[0], dict):
        return choices[0]
    return {}


def _chat_message_content(data: dict) -> str:
    """OpenAI chat shape: choices[0].message.content"""
    message = _first_choice(data).get("message")
    if isinstance(message, dict):
        content = message.get("content")
        return content if isinstance(content, str) else ""
    return ""


def _legacy_text(data: dict) -> str:
    """Legacy completions shape: choices[0].text"""
    text = _first_choice(data).get("text")
    return text if isinstance(text, str) else ""


REPLY_STRATEGIES: list[Callable[[dict], str]] = [
    _chat_message_content,
    _legacy_text,
]


def extract_reply(data: dict, strategies: list[Callable[[dict], str]] | None = None) -> str:
    """Return the first non-empty trimmed reply, or FALLBACK_REPLY."""
    for strategy in strategies or REPLY_STRATEGIES:
        reply = strategy(data).strip()
        if reply:
            return reply
    return FALLBACK_REPLY


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------

@dataclass
class Completion:
    reply: str
    model: str = ""
    latency_ms: float = 0.0
    raw: dict = field(default_factory=dict)


class CompletionClient:
    """Turns one user message into one provider request."""

    def __init__(self, backend: BaseBackend, cfg: BackendConfig):
        self.backend = backend
        self.model = cfg.model
        self.system_prompt = cfg.system_prompt
        self.temperature = cfg.temperature
        self.api_key = cfg.api_key

    def build_request(self, message: str) -> dict:
        body = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": self.system_prompt},
                {"role": "user", "content": message},
            ],
        }
        if self.temperature is not None:
            body["temperature"] = self.temperature
        return body

    async def complete(self, message: str) -> Completion:
        """
        Send one message to the provider and return the extracted reply.

        Raises:
            MissingAPIKeyError: no credential configured.
            ProviderError: transport failure or an error in the provider body.
        """
        if not self.api_key:
            logger.error("[provider] Missing API key, refusing to call %s", self.backend.url)
            raise MissingAPIKeyError()

        resp = await self.backend.forward(self.build_request(message))
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug("[provider] Raw response: %s", json.dumps(resp.data, indent=2))

        provider_error = resp.provider_error
        if provider_error:
            logger.error("[provider] Error from %s: %s", self.backend.name, provider_error)
            raise ProviderError(provider_error, status_code=resp.status_code)
        if not resp.ok:
            logger.error("[provider] Request to %s failed: %s", self.backend.name, resp.error)
            raise ProviderError(resp.error or "Error from provider", status_code=resp.status_code)

        reply = extract_reply(resp.data)
        if reply == FALLBACK_REPLY:
            logger.warning("[provider] No reply text in response from %s", self.backend.name)

        return Completion(
            reply=reply,
            model=resp.data.get("model") or self.model,
            latency_ms=resp.latency_ms,
            raw=resp.data,
        )
