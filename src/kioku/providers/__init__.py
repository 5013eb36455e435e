"""LLM providers behind a single streaming interface."""

from .base import LLMProvider, Message, OnUpdate, Role, StreamingProvider
from .cloud import AnthropicProvider, GeminiProvider, LocalProvider, OpenAIProvider
from .errors import ConfigurationError, LLMError, TransportError
from .groq_provider import GroqProvider
from .registry import ProviderRegistry, RegistryState

__all__ = [
    "AnthropicProvider",
    "ConfigurationError",
    "GeminiProvider",
    "GroqProvider",
    "LLMError",
    "LLMProvider",
    "LocalProvider",
    "Message",
    "OnUpdate",
    "OpenAIProvider",
    "ProviderRegistry",
    "RegistryState",
    "Role",
    "StreamingProvider",
    "TransportError",
]
