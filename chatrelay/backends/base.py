"""
Base backend abstraction.
A backend knows how to put one chat-completion body on the wire and
hand back whatever the provider said, good or bad.
"""

from __future__ import annotations

import abc
import logging
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)


@dataclass
class BackendResponse:
    """Standardized response from any backend."""
    ok: bool
    status_code: int = 200
    data: dict = field(default_factory=dict)
    backend_name: str = ""
    latency_ms: float = 0.0
    error: str = ""

    @property
    def provider_error(self) -> str:
        """
        Error message reported inside the provider's JSON body, if any.
        OpenAI-style providers send {"error": {"message": ...}}; some send
        a bare string.
        """
        err = self.data.get("error") if isinstance(self.data, dict) else None
        if not err:
            return ""
        if isinstance(err, dict):
            return str(err.get("message") or err)
        return str(err)


class BaseBackend(abc.ABC):
    """
    Abstract base for LLM backends.
    """

    def __init__(self, name: str, url: str, timeout: int = 120, api_key: str = ""):
        self.name = name
        self.url = url.rstrip("/")
        self.timeout = timeout
        self.api_key = api_key

    @abc.abstractmethod
    async def forward(self, body: dict) -> BackendResponse:
        """
        Forward a chat completion request.
        Body is OpenAI-compatible format.
        Returns BackendResponse with data or error; never raises for
        transport failures.
        """
        ...

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} name={self.name!r} url={self.url!r}>"
