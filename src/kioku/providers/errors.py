"""Errors raised by providers and the registry."""


class LLMError(Exception):
    """Base class for provider failures."""


class ConfigurationError(LLMError):
    """No usable provider is configured."""


class TransportError(LLMError):
    """The provider request failed (non-2xx, unreadable body, network).

    Attributes:
        status_code: HTTP status, or None when no response was received.
        provider: Name of the provider that failed.
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        provider: str | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.provider = provider
