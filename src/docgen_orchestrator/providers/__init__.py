"""Provider abstractions, transport, rate limiting and the Claude client."""

from __future__ import annotations

from docgen_orchestrator.providers.base import (
    BackoffConfig,
    ChatMessage,
    ProviderAuthenticationError,
    ProviderCapabilities,
    ProviderError,
    ProviderProtocol,
    ProviderRateLimitError,
    ProviderRegistry,
    ProviderRequest,
    compute_backoff_delay,
    is_retryable,
    run_with_retries,
)
from docgen_orchestrator.providers.claude import ClaudeProvider
from docgen_orchestrator.providers.rate_limit import RateLimiter, RateLimitState
from docgen_orchestrator.providers.transport import (
    HttpTransport,
    Transport,
    TransportError,
    TransportResponse,
)

__all__ = [
    "BackoffConfig",
    "ChatMessage",
    "ClaudeProvider",
    "HttpTransport",
    "ProviderAuthenticationError",
    "ProviderCapabilities",
    "ProviderError",
    "ProviderProtocol",
    "ProviderRateLimitError",
    "ProviderRegistry",
    "ProviderRequest",
    "RateLimitState",
    "RateLimiter",
    "Transport",
    "TransportError",
    "TransportResponse",
    "compute_backoff_delay",
    "is_retryable",
    "run_with_retries",
]
