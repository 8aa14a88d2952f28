"""
Exception hierarchy for OAuth exchange and federated search.
"""

from __future__ import annotations

from typing import Optional


class FederatedSearchError(Exception):
    """Base class for all application errors."""


class ConfigurationError(FederatedSearchError):
    """OAuth client configuration for a provider is missing or incomplete."""

    def __init__(self, provider: str, missing: list[str]) -> None:
        self.provider = provider
        self.missing = missing
        super().__init__(
            f"{provider} is not configured (missing: {', '.join(missing)})"
        )


class OAuthExchangeFailed(FederatedSearchError):
    """The provider rejected the authorization code or returned no token."""

    def __init__(self, provider: str, reason: str) -> None:
        self.provider = provider
        self.reason = reason
        super().__init__(f"{provider} OAuth exchange failed: {reason}")


class ProviderSearchFailed(FederatedSearchError):
    """A single provider's search call failed (transport, auth or schema)."""

    def __init__(self, provider: str, reason: str, cause: Optional[BaseException] = None) -> None:
        self.provider = provider
        self.reason = reason
        self.cause = cause
        super().__init__(f"{provider} search failed: {reason}")


class Unauthenticated(FederatedSearchError):
    """No authenticated user identity is attached to the request."""

    def __init__(self, detail: str = "Authentication required") -> None:
        self.detail = detail
        super().__init__(detail)
