"""Process-wide selection of the active provider."""

from __future__ import annotations

import logging
from collections.abc import Callable
from enum import Enum
from pathlib import Path

import httpx

from ..config import ProviderConfig, Settings, load_settings
from .base import DEFAULT_TIMEOUT, LLMProvider, Message, OnUpdate
from .cloud import AnthropicProvider, GeminiProvider, LocalProvider, OpenAIProvider
from .errors import ConfigurationError
from .groq_provider import GroqProvider

logger = logging.getLogger(__name__)

NOT_CONFIGURED_MESSAGE = (
    "No AI provider configured. Set a provider and its API key "
    "(for example `/provider groq <api-key>`) and try again."
)

ProviderFactory = Callable[[ProviderConfig], LLMProvider]


class RegistryState(Enum):
    """Whether an adapter is available."""

    UNCONFIGURED = "unconfigured"
    CONFIGURED = "configured"


def default_factories(
    http_client: httpx.AsyncClient | None = None,
) -> dict[str, ProviderFactory]:
    """Build the provider-type to adapter mapping."""
    return {
        "groq": lambda c: GroqProvider(
            api_key=c.api_key or "", model=c.model, http_client=http_client
        ),
        "openai": lambda c: OpenAIProvider(
            api_key=c.api_key, model=c.model, http_client=http_client
        ),
        "anthropic": lambda c: AnthropicProvider(
            api_key=c.api_key, model=c.model, http_client=http_client
        ),
        "gemini": lambda c: GeminiProvider(
            api_key=c.api_key, model=c.model, http_client=http_client
        ),
        "local": lambda c: LocalProvider(
            api_key=c.api_key,
            model=c.model,
            base_url=c.base_url,
            http_client=http_client,
        ),
    }


class ProviderRegistry:
    """Holds the single active provider adapter.

    The active adapter changes only on ``reload()``. Callers take a
    ``snapshot()`` when dispatching a request and keep using that instance
    until the request finishes, even if a reload happens meanwhile.
    """

    def __init__(
        self,
        settings_loader: Callable[[], Settings] | None = None,
        factories: dict[str, ProviderFactory] | None = None,
        config_path: Path | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the registry and load the stored selection.

        Args:
            settings_loader: Callable returning current Settings.
            factories: Adapter constructors keyed by provider type.
            config_path: Config file used by the default settings loader.
            http_client: Client shared by every adapter the default factories
                build; one is created (and owned) when omitted.
        """
        self._load_settings = settings_loader or (lambda: load_settings(config_path))
        self._owns_client = http_client is None and factories is None
        if self._owns_client:
            http_client = httpx.AsyncClient(timeout=DEFAULT_TIMEOUT)
        self.http_client = http_client
        self._factories = (
            factories if factories is not None else default_factories(http_client)
        )
        self._active: LLMProvider | None = None
        self._config: ProviderConfig | None = None
        self.reload()

    @property
    def state(self) -> RegistryState:
        if self._active is None:
            return RegistryState.UNCONFIGURED
        return RegistryState.CONFIGURED

    @property
    def active_name(self) -> str | None:
        return self._active.name if self._active else None

    @property
    def config(self) -> ProviderConfig | None:
        return self._config

    def is_ready(self) -> bool:
        return self._active is not None

    def reload(self) -> LLMProvider | None:
        """Re-read settings and rebuild the active adapter.

        Returns:
            The new adapter, or None if the registry is now unconfigured.
        """
        config = self._load_settings().provider_config()
        self._config = config
        self._active = self._build(config)

        if self._active is None:
            logger.info(f"Provider '{config.provider}' is not usable; registry unconfigured")
        else:
            logger.info(f"Active provider: {self._active.name} ({config.model})")
        return self._active

    def _build(self, config: ProviderConfig) -> LLMProvider | None:
        factory = self._factories.get(config.provider)
        if factory is None:
            logger.warning(f"Unknown provider type: {config.provider}")
            return None

        if config.requires_key and not config.api_key:
            return None

        return factory(config)

    def snapshot(self) -> LLMProvider:
        """Return the adapter to use for one request.

        Raises:
            ConfigurationError: If no provider is configured.
        """
        if self._active is None:
            raise ConfigurationError(NOT_CONFIGURED_MESSAGE)
        return self._active

    async def chat_completion(
        self, messages: list[Message], on_update: OnUpdate | None = None
    ) -> str:
        """Send a chat request through the current adapter."""
        provider = self.snapshot()
        return await provider.chat_completion(messages, on_update)

    async def aclose(self) -> None:
        """Close the shared HTTP client if the registry created it."""
        if self._owns_client and self.http_client is not None:
            await self.http_client.aclose()
