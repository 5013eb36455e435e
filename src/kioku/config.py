"""Settings loader.

Settings live in ~/.kioku/config.json and can be overridden from the
environment (or a .env file loaded at start-up).
"""

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)


def kioku_home() -> Path:
    """Root directory for local state (``KIOKU_HOME`` or ~/.kioku)."""
    return Path(os.getenv("KIOKU_HOME") or Path.home() / ".kioku")


DEFAULT_PROVIDER = "groq"

DEFAULT_MODELS: dict[str, str] = {
    "groq": "llama-3.3-70b-versatile",
    "openai": "gpt-4o-mini",
    "anthropic": "claude-3-5-sonnet-20241022",
    "gemini": "gemini-2.5-flash",
    "local": "llama3.2",
}

# Providers that can run without a credential
KEYLESS_PROVIDERS = {"local"}


@dataclass(frozen=True)
class ProviderConfig:
    """The provider selection in effect at reload time."""

    provider: str
    api_key: str | None
    model: str
    base_url: str | None = None

    @property
    def requires_key(self) -> bool:
        return self.provider not in KEYLESS_PROVIDERS


@dataclass
class Settings:
    """Persisted application settings.

    Attributes:
        provider: Active provider type (groq, openai, anthropic, gemini, local).
        api_keys: Credential per provider type.
        models: Model override per provider type.
        local_url: Base URL of a local OpenAI-compatible server.
        date_locales: Locales used when parsing reminder timestamps.
    """

    provider: str = DEFAULT_PROVIDER
    api_keys: dict[str, str] = field(default_factory=dict)
    models: dict[str, str] = field(default_factory=dict)
    local_url: str | None = None
    date_locales: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.provider = (self.provider or DEFAULT_PROVIDER).strip().lower()

    def api_key_for(self, provider: str) -> str | None:
        """Credential for a provider, environment first."""
        env_key = os.getenv(f"{provider.upper()}_API_KEY")
        return env_key or self.api_keys.get(provider) or None

    def model_for(self, provider: str) -> str:
        env_model = os.getenv(f"{provider.upper()}_MODEL")
        return env_model or self.models.get(provider) or DEFAULT_MODELS.get(provider, "")

    def provider_config(self) -> ProviderConfig:
        """Resolve the active provider, honoring ``AI_PROVIDER_TYPE``."""
        provider = (os.getenv("AI_PROVIDER_TYPE") or self.provider).strip().lower()
        return ProviderConfig(
            provider=provider,
            api_key=self.api_key_for(provider),
            model=self.model_for(provider),
            base_url=os.getenv("LOCAL_LLM_URL") or self.local_url,
        )

    def env_overrides(self) -> list[str]:
        """Environment variables that mask the saved provider or its key."""
        names: list[str] = []
        env_provider = os.getenv("AI_PROVIDER_TYPE")
        if env_provider and env_provider.strip().lower() != self.provider:
            names.append("AI_PROVIDER_TYPE")
        if os.getenv(f"{self.provider.upper()}_API_KEY"):
            names.append(f"{self.provider.upper()}_API_KEY")
        return names

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "provider": self.provider,
            "api_keys": dict(self.api_keys),
            "models": dict(self.models),
        }
        if self.local_url:
            data["local_url"] = self.local_url
        if self.date_locales:
            data["date_locales"] = list(self.date_locales)
        return data


def default_config_path() -> Path:
    return kioku_home() / "config.json"


def load_settings(config_path: Path | None = None) -> Settings:
    """Load Settings from a JSON file.

    The config file should look like this:
    ```json
    {
      "provider": "anthropic",
      "api_keys": {"anthropic": "sk-ant-..."},
      "models": {"anthropic": "claude-3-5-haiku-20241022"},
      "local_url": "http://localhost:1234/v1",
      "date_locales": ["en-GB"]
    }
    ```

    Args:
        config_path: Path to config file. Defaults to ~/.kioku/config.json.

    Returns:
        Settings with values from file, or defaults if missing or invalid.
    """
    path = config_path or default_config_path()

    if not path.exists():
        logger.debug(f"Config file not found at {path}, using defaults")
        return Settings()

    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except (json.JSONDecodeError, OSError) as e:
        logger.warning(f"Failed to load config from {path}: {e}")
        return Settings()

    if not isinstance(data, dict):
        logger.warning(f"Invalid config format in {path}: expected object")
        return Settings()

    return _parse_settings(data)


def _parse_settings(data: dict[str, Any]) -> Settings:
    settings = Settings()

    provider = data.get("provider")
    if isinstance(provider, str) and provider.strip():
        settings.provider = provider.strip().lower()

    for attr in ("api_keys", "models"):
        value = data.get(attr)
        if isinstance(value, dict):
            setattr(
                settings,
                attr,
                {str(k).lower(): str(v) for k, v in value.items() if v},
            )

    local_url = data.get("local_url")
    if isinstance(local_url, str) and local_url:
        settings.local_url = local_url

    locales = data.get("date_locales")
    if isinstance(locales, list):
        settings.date_locales = [str(loc) for loc in locales]

    return settings


def save_settings(settings: Settings, config_path: Path | None = None) -> None:
    """Write Settings to the JSON config file, creating its directory."""
    path = config_path or default_config_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(settings.to_dict(), f, indent=2)
