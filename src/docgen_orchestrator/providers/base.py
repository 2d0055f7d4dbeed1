"""
docgen-orchestrator — provider base models and shared utilities

File: src/docgen_orchestrator/providers/base.py
Last updated: 2026-02-13

Purpose
- Provider interface and common request models for text-generation calls.

What should be included in this file
- Request fields: model, messages, system prompt, token and temperature bounds.
- Error taxonomy keyed by ErrorKind and retryability classification.
- Bounded exponential backoff and the shared retry loop.

Functional requirements
- Non-retryable errors must short-circuit without consuming remaining retries.

Non-functional requirements
- Must make it easy to add new providers without touching orchestration logic.
"""

from __future__ import annotations

import asyncio
import random as random_module
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from datetime import datetime
from typing import Final, Protocol, TypeAlias, TypeVar, runtime_checkable

from docgen_orchestrator.constants import (
    DEFAULT_MAX_RETRIES,
    DEFAULT_RETRY_BASE_DELAY_SECONDS,
    DEFAULT_RETRY_MAX_DELAY_SECONDS,
)
from docgen_orchestrator.domain.models import ErrorKind, OperationResult

JSONScalar: TypeAlias = str | int | float | bool | None
JSONValue: TypeAlias = JSONScalar | list["JSONValue"] | dict[str, "JSONValue"]

SleepFn: TypeAlias = Callable[[float], Awaitable[None]]
RandomFn: TypeAlias = Callable[[], float]
NowFn: TypeAlias = Callable[[], datetime]
ProgressCallback: TypeAlias = Callable[[float, str], None]

MESSAGE_ROLES: Final[frozenset[str]] = frozenset({"user", "assistant"})

RETRYABLE_KINDS: Final[frozenset[ErrorKind]] = frozenset(
    {
        ErrorKind.RATE_LIMIT_ERROR,
        ErrorKind.SERVER_ERROR,
        ErrorKind.TIMEOUT,
        ErrorKind.OVERLOADED_ERROR,
    }
)
RETRYABLE_MESSAGE_MARKERS: Final[tuple[str, ...]] = (
    "timeout",
    "server error",
    "rate limit",
    "overloaded",
    "busy",
)


def is_retryable(kind: ErrorKind, message: str = "") -> bool:
    """Classify by kind allowlist first, then by message substring."""

    if kind in RETRYABLE_KINDS:
        return True
    lowered = message.lower()
    return any(marker in lowered for marker in RETRYABLE_MESSAGE_MARKERS)


@dataclass(frozen=True, slots=True)
class ChatMessage:
    role: str
    content: str

    def to_dict(self) -> dict[str, JSONValue]:
        return {"role": self.role, "content": self.content}


@dataclass(frozen=True, slots=True)
class ProviderRequest:
    """Provider-agnostic request payload.

    Construction never raises for bad values; providers validate before sending
    so that problems surface as ``validation_error`` results.
    """

    model: str
    messages: tuple[ChatMessage, ...]
    max_tokens: int
    temperature: float
    system: str = ""
    stop_sequences: tuple[str, ...] = ()
    timeout_seconds: float = 30.0
    max_retries: int = DEFAULT_MAX_RETRIES

    def prompt_characters(self) -> int:
        return len(self.system) + sum(len(message.content) for message in self.messages)

    def to_wire(self) -> dict[str, JSONValue]:
        payload: dict[str, JSONValue] = {
            "model": self.model,
            "max_tokens": self.max_tokens,
            "messages": [message.to_dict() for message in self.messages],
            "temperature": self.temperature,
        }
        if self.system:
            payload["system"] = self.system
        if self.stop_sequences:
            payload["stop_sequences"] = list(self.stop_sequences)
        return payload


@dataclass(frozen=True, slots=True)
class ProviderCapabilities:
    name: str
    models: tuple[str, ...]
    max_output_tokens: int
    context_tokens: int
    supports_system_prompt: bool = True


@runtime_checkable
class ProviderProtocol(Protocol):
    """Capability interface implemented by concrete providers."""

    async def send(
        self, request: ProviderRequest, *, progress: ProgressCallback | None = None
    ) -> OperationResult:
        """Send one request and return a normalized result; never raises for expected failures."""

    def capabilities(self) -> ProviderCapabilities:
        """Describe what this provider supports."""

    async def test_connection(self) -> OperationResult:
        """Send the smallest live request the provider accepts."""


ProviderFactory: TypeAlias = Callable[[], ProviderProtocol]


class ProviderError(RuntimeError):
    """Base normalized provider error with deterministic machine-readable fields."""

    def __init__(
        self,
        *,
        provider: str,
        kind: ErrorKind,
        detail: str,
        retryable: bool,
        http_status: int | None = None,
        retry_after_seconds: float | None = None,
    ) -> None:
        self.provider = provider
        self.kind = kind
        self.detail = _normalize_detail(detail)
        self.retryable = bool(retryable)
        self.http_status = http_status
        self.retry_after_seconds = retry_after_seconds

        parts = [
            f"provider={self.provider}",
            f"kind={self.kind.value}",
            f"retryable={str(self.retryable).lower()}",
        ]
        if self.http_status is not None:
            parts.append(f"http_status={self.http_status}")
        if self.retry_after_seconds is not None:
            parts.append(f"retry_after_seconds={self.retry_after_seconds:g}")
        parts.append(f"detail={self.detail}")
        super().__init__(" ".join(parts))


class ProviderValidationError(ProviderError):
    """Malformed request; never sent."""

    def __init__(self, detail: str, *, provider: str = "provider") -> None:
        super().__init__(
            provider=provider, kind=ErrorKind.VALIDATION_ERROR, detail=detail, retryable=False
        )


class ProviderAuthenticationError(ProviderError):
    """Missing or rejected credential."""

    def __init__(
        self, detail: str, *, provider: str = "provider", http_status: int | None = None
    ) -> None:
        super().__init__(
            provider=provider,
            kind=ErrorKind.AUTHENTICATION_ERROR,
            detail=detail,
            retryable=False,
            http_status=http_status,
        )


class ProviderRateLimitError(ProviderError):
    """Provider or local admission rate limit (retryable)."""

    def __init__(
        self,
        detail: str,
        *,
        provider: str = "provider",
        http_status: int | None = 429,
        retry_after_seconds: float | None = None,
    ) -> None:
        super().__init__(
            provider=provider,
            kind=ErrorKind.RATE_LIMIT_ERROR,
            detail=detail,
            retryable=True,
            http_status=http_status,
            retry_after_seconds=retry_after_seconds,
        )


class ProviderHTTPError(ProviderError):
    """Generic HTTP or connection failure; retryable only when classified so."""

    def __init__(
        self,
        detail: str,
        *,
        provider: str = "provider",
        http_status: int | None = None,
        retryable: bool | None = None,
    ) -> None:
        resolved = is_retryable(ErrorKind.HTTP_ERROR, detail) if retryable is None else retryable
        super().__init__(
            provider=provider,
            kind=ErrorKind.HTTP_ERROR,
            detail=detail,
            retryable=resolved,
            http_status=http_status,
        )


class ProviderServerError(ProviderError):
    """Upstream 5xx failure (retryable)."""

    def __init__(
        self, detail: str, *, provider: str = "provider", http_status: int | None = None
    ) -> None:
        super().__init__(
            provider=provider,
            kind=ErrorKind.SERVER_ERROR,
            detail=detail,
            retryable=True,
            http_status=http_status,
        )


class ProviderTimeoutError(ProviderError):
    """Timed-out send (retryable)."""

    def __init__(
        self, detail: str, *, provider: str = "provider", http_status: int | None = None
    ) -> None:
        super().__init__(
            provider=provider,
            kind=ErrorKind.TIMEOUT,
            detail=detail,
            retryable=True,
            http_status=http_status,
        )


class ProviderOverloadedError(ProviderError):
    """Upstream capacity exhausted (retryable)."""

    def __init__(
        self, detail: str, *, provider: str = "provider", http_status: int | None = 529
    ) -> None:
        super().__init__(
            provider=provider,
            kind=ErrorKind.OVERLOADED_ERROR,
            detail=detail,
            retryable=True,
            http_status=http_status,
        )


class ProviderResponseError(ProviderError):
    """Successful status with a body that cannot be normalized."""

    def __init__(self, detail: str, *, provider: str = "provider") -> None:
        super().__init__(
            provider=provider, kind=ErrorKind.PARSE_ERROR, detail=detail, retryable=False
        )


class ProviderClientError(ProviderError):
    """Unexpected local exception converted at the provider boundary."""

    def __init__(self, detail: str, *, provider: str = "provider") -> None:
        super().__init__(
            provider=provider, kind=ErrorKind.CLIENT_ERROR, detail=detail, retryable=False
        )


@dataclass(frozen=True, slots=True)
class BackoffConfig:
    """Bounded exponential backoff policy."""

    max_retries: int = DEFAULT_MAX_RETRIES
    initial_delay_seconds: float = DEFAULT_RETRY_BASE_DELAY_SECONDS
    multiplier: float = 2.0
    max_delay_seconds: float = DEFAULT_RETRY_MAX_DELAY_SECONDS
    jitter_ratio: float = 0.0

    def __post_init__(self) -> None:
        if self.max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        if self.initial_delay_seconds < 0:
            raise ValueError("initial_delay_seconds must be >= 0")
        if self.multiplier < 1.0:
            raise ValueError("multiplier must be >= 1.0")
        if self.max_delay_seconds < 0:
            raise ValueError("max_delay_seconds must be >= 0")
        if self.initial_delay_seconds > self.max_delay_seconds:
            raise ValueError("initial_delay_seconds must be <= max_delay_seconds")
        if not (0.0 <= self.jitter_ratio <= 1.0):
            raise ValueError("jitter_ratio must be between 0.0 and 1.0")


def compute_backoff_delay(
    *,
    retry_number: int,
    config: BackoffConfig,
    random_fn: RandomFn = random_module.random,
) -> float:
    """Return bounded exponential backoff delay for retry attempt N (1-based)."""

    if retry_number <= 0:
        raise ValueError("retry_number must be > 0")

    base_delay = config.initial_delay_seconds * (config.multiplier ** (retry_number - 1))
    bounded_delay = min(base_delay, config.max_delay_seconds)

    if config.jitter_ratio == 0.0:
        return bounded_delay

    random_value = random_fn()
    if not (0.0 <= random_value <= 1.0):
        raise ValueError("random_fn must return values in [0.0, 1.0]")

    max_jitter = bounded_delay * config.jitter_ratio
    jitter = ((random_value * 2.0) - 1.0) * max_jitter
    return max(0.0, min(config.max_delay_seconds, bounded_delay + jitter))


_ResultT = TypeVar("_ResultT")
RetryCallback: TypeAlias = Callable[[int, ProviderError, float], None]


async def run_with_retries(
    operation: Callable[[], Awaitable[_ResultT]],
    *,
    map_exception: Callable[[Exception], ProviderError],
    backoff: BackoffConfig,
    sleep: SleepFn = asyncio.sleep,
    random_fn: RandomFn = random_module.random,
    on_retry: RetryCallback | None = None,
) -> _ResultT:
    """Run an async operation with bounded retries based on ProviderError retryability."""

    retry_count = 0
    while True:
        try:
            return await operation()
        except Exception as exc:  # noqa: BLE001
            mapped = exc if isinstance(exc, ProviderError) else map_exception(exc)
            if not isinstance(mapped, ProviderError):
                raise TypeError("map_exception must return ProviderError") from exc

            if not mapped.retryable or retry_count >= backoff.max_retries:
                if mapped is exc:
                    raise
                raise mapped from exc

            retry_count += 1
            delay_seconds = compute_backoff_delay(
                retry_number=retry_count,
                config=backoff,
                random_fn=random_fn,
            )
            if on_retry is not None:
                on_retry(retry_count, mapped, delay_seconds)
            await sleep(delay_seconds)


class ProviderRegistry:
    """Registry for provider factories; a provider is selected once at construction."""

    def __init__(self) -> None:
        self._factories: dict[str, ProviderFactory] = {}

    def register(self, name: str, factory: ProviderFactory, *, overwrite: bool = False) -> None:
        normalized = name.strip().lower()
        if not normalized:
            raise ValueError("name cannot be empty")
        if normalized in self._factories and not overwrite:
            raise ValueError(f"provider already registered: {normalized}")
        self._factories[normalized] = factory

    def is_registered(self, name: str) -> bool:
        return name.strip().lower() in self._factories

    def names(self) -> tuple[str, ...]:
        return tuple(sorted(self._factories))

    def create(self, name: str) -> ProviderProtocol:
        normalized = name.strip().lower()
        factory = self._factories.get(normalized)
        if factory is None:
            raise KeyError(f"provider is not registered: {normalized}")
        provider = factory()
        if not isinstance(provider, ProviderProtocol):
            raise TypeError(f"provider factory returned invalid provider for {normalized}")
        return provider


def error_metadata(error: ProviderError) -> Mapping[str, object]:
    """Metadata fields describing ``error`` on a failure result."""

    metadata: dict[str, object] = {"error_kind": error.kind.value, "retryable": error.retryable}
    if error.http_status is not None:
        metadata["http_status"] = error.http_status
    if error.retry_after_seconds is not None:
        metadata["retry_after_seconds"] = error.retry_after_seconds
    return metadata


def _normalize_detail(value: object) -> str:
    text = str(value).strip()
    if not text:
        return "unknown error"
    return " ".join(text.split())


__all__ = [
    "MESSAGE_ROLES",
    "RETRYABLE_KINDS",
    "RETRYABLE_MESSAGE_MARKERS",
    "BackoffConfig",
    "ChatMessage",
    "JSONValue",
    "NowFn",
    "ProgressCallback",
    "ProviderAuthenticationError",
    "ProviderCapabilities",
    "ProviderClientError",
    "ProviderError",
    "ProviderFactory",
    "ProviderHTTPError",
    "ProviderOverloadedError",
    "ProviderProtocol",
    "ProviderRateLimitError",
    "ProviderRegistry",
    "ProviderRequest",
    "ProviderResponseError",
    "ProviderServerError",
    "ProviderTimeoutError",
    "ProviderValidationError",
    "RandomFn",
    "RetryCallback",
    "SleepFn",
    "compute_backoff_delay",
    "error_metadata",
    "is_retryable",
    "run_with_retries",
]
