"""Exceptions raised by the third-party provider clients."""


class ProviderError(Exception):
    """Base class for provider failures."""

    def __init__(self, message: str, *, provider: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.provider = provider


class ProviderNotConfigured(ProviderError):
    """A required credential (usually an API key) is missing."""


class ProviderHTTPError(ProviderError):
    """The provider answered with a non-success HTTP status."""

    def __init__(self, status_code: int, message: str, *, provider: str | None = None, body: str | None = None) -> None:
        super().__init__(message, provider=provider)
        self.status_code = status_code
        self.body = body


class ProviderPayloadError(ProviderError):
    """The provider answered successfully but the payload was empty or malformed."""
