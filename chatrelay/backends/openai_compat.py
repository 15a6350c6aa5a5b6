"""
Generic OpenAI-compatible backend.

Supports any endpoint that speaks the OpenAI chat-completions format:
- Groq (https://api.groq.com/openai/v1), the default provider
- OpenAI
- OpenRouter
- llama.cpp server, vLLM, LocalAI
"""

from __future__ import annotations

import logging
import time

import httpx

from chatrelay.backends.base import BaseBackend, BackendResponse

logger = logging.getLogger(__name__)


class OpenAICompatibleBackend(BaseBackend):
    """
    Backend for OpenAI-compatible endpoints.

    `url` is the API base including any version segment; requests go to
    {url}/chat/completions.
    """

    def _headers(self) -> dict:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    async def forward(self, body: dict) -> BackendResponse:
        """Forward a non-streaming request."""
        t0 = time.monotonic()
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                resp = await client.post(
                    f"{self.url}/chat/completions",
                    json=body,
                    headers=self._headers(),
                )
                latency = (time.monotonic() - t0) * 1000

                try:
                    data = resp.json()
                except ValueError:
                    data = {}
                if not isinstance(data, dict):
                    data = {}

                if resp.status_code >= 400:
                    return BackendResponse(
                        ok=False,
                        status_code=resp.status_code,
                        data=data,
                        backend_name=self.name,
                        latency_ms=latency,
                        error=f"HTTP {resp.status_code}: {resp.text[:200]}",
                    )

                return BackendResponse(
                    ok=True,
                    status_code=resp.status_code,
                    data=data,
                    backend_name=self.name,
                    latency_ms=latency,
                )
        except httpx.TimeoutException:
            latency = (time.monotonic() - t0) * 1000
            logger.warning(
                "Backend '%s' timed out after %.0fms",
                self.name,
                latency,
            )
            return BackendResponse(
                ok=False,
                status_code=504,
                backend_name=self.name,
                latency_ms=latency,
                error=f"Timeout after {self.timeout}s",
            )
        except httpx.HTTPError as e:
            latency = (time.monotonic() - t0) * 1000
            logger.warning("Backend '%s' failed: %s", self.name, e)
            return BackendResponse(
                ok=False,
                status_code=502,
                backend_name=self.name,
                latency_ms=latency,
                error=str(e),
            )
