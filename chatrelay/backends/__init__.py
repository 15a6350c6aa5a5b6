"""
LLM provider backends for chatrelay.
Anything that speaks the OpenAI chat-completions format plugs in here.
"""
from chatrelay.backends.base import BaseBackend, BackendResponse
from chatrelay.backends.openai_compat import OpenAICompatibleBackend

__all__ = [
    "BaseBackend",
    "BackendResponse",
    "OpenAICompatibleBackend",
]
