"""
docgen-orchestrator — Claude messages provider

File: src/docgen_orchestrator/providers/claude.py
Last updated: 2026-02-13

Purpose
- Rate-limited, retrying client for the messages API over the raw HTTP wire contract.

What should be included in this file
- Pre-send request validation and credential lookup.
- Admission against the shared RateLimiter and per-attempt reservation.
- Error classification from structured error bodies and status codes.
- Envelope parsing and heuristic confidence scoring.

Functional requirements
- Every expected failure must come back as a failed OperationResult with an ErrorKind.
- Validation and credential failures must not reach the network.

Non-functional requirements
- Must be configurable and safe; no secrets in logs.
"""

from __future__ import annotations

import asyncio
import json
import math
import random as random_module
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any, Final

import structlog

from docgen_orchestrator.constants import (
    CHARS_PER_TOKEN,
    DEFAULT_API_URL,
    DEFAULT_API_VERSION,
    DEFAULT_MODEL,
    DEFAULT_RETRY_BASE_DELAY_SECONDS,
    DEFAULT_RETRY_MAX_DELAY_SECONDS,
    MAX_OUTPUT_TOKENS,
    MODEL_CONTEXT_TOKENS,
    SUPPORTED_MODELS,
)
from docgen_orchestrator.domain.models import OperationResult, ProviderName, ResultSource
from docgen_orchestrator.providers.base import (
    MESSAGE_ROLES,
    BackoffConfig,
    ChatMessage,
    ProgressCallback,
    ProviderAuthenticationError,
    ProviderCapabilities,
    ProviderClientError,
    ProviderError,
    ProviderHTTPError,
    ProviderOverloadedError,
    ProviderRateLimitError,
    ProviderRequest,
    ProviderResponseError,
    ProviderServerError,
    ProviderTimeoutError,
    ProviderValidationError,
    RandomFn,
    SleepFn,
    error_metadata,
    run_with_retries,
)
from docgen_orchestrator.providers.rate_limit import RateLimiter, parse_retry_after
from docgen_orchestrator.providers.transport import (
    HttpTransport,
    Transport,
    TransportError,
    TransportResponse,
)
from docgen_orchestrator.security.credentials import CredentialStore

_PROVIDER: Final[str] = ProviderName.CLAUDE.value
_BODY_EXCERPT_CHARS: Final[int] = 200

_ERROR_TYPE_FACTORIES: Final[dict[str, Callable[..., ProviderError]]] = {
    "authentication_error": ProviderAuthenticationError,
    "permission_error": ProviderAuthenticationError,
    "rate_limit_error": ProviderRateLimitError,
    "overloaded_error": ProviderOverloadedError,
    "api_error": ProviderServerError,
    "timeout_error": ProviderTimeoutError,
}


@dataclass(frozen=True, slots=True)
class MessageEnvelope:
    """Normalized successful response body."""

    response_id: str
    text: str
    input_tokens: int
    output_tokens: int
    stop_reason: str | None
    model: str | None


@dataclass(slots=True)
class _AttemptTracker:
    attempts: int = 0
    backoff_seconds: float = 0.0


def validate_request(request: ProviderRequest) -> tuple[str, ...]:
    """Return structural problems with ``request``; empty when it may be sent."""

    problems: list[str] = []
    if not request.model.strip():
        problems.append("model is required")
    if not request.messages:
        problems.append("at least one message is required")
    if not (1 <= request.max_tokens <= MAX_OUTPUT_TOKENS):
        problems.append(f"max_tokens must be between 1 and {MAX_OUTPUT_TOKENS}")
    if not (0.0 <= request.temperature <= 1.0):
        problems.append("temperature must be between 0 and 1")
    if request.timeout_seconds <= 0:
        problems.append("timeout_seconds must be > 0")
    if request.max_retries < 0:
        problems.append("max_retries must be >= 0")
    for index, message in enumerate(request.messages):
        if message.role not in MESSAGE_ROLES:
            problems.append(f"messages[{index}].role must be 'user' or 'assistant'")
        if not message.content.strip():
            problems.append(f"messages[{index}].content must not be empty")
    return tuple(problems)


def estimate_request_tokens(request: ProviderRequest) -> int:
    return math.ceil(request.prompt_characters() / CHARS_PER_TOKEN) + request.max_tokens


def score_confidence(text: str, input_tokens: int, output_tokens: int) -> float:
    """Heuristic trust estimate for a successful response."""

    if not text:
        return 0.0
    confidence = 0.8
    if len(text) < 100:
        confidence *= 0.7
    elif len(text) > 5000:
        confidence *= 0.9
    if input_tokens > 0:
        ratio = output_tokens / input_tokens
        if 0.1 < ratio < 2.0:
            confidence *= 1.1
    return max(0.0, min(1.0, confidence))


def parse_envelope(body: str) -> MessageEnvelope:
    try:
        payload = json.loads(body)
    except json.JSONDecodeError as exc:
        raise ProviderResponseError(
            f"response is not valid JSON: {exc.msg}", provider=_PROVIDER
        ) from exc
    if not isinstance(payload, Mapping):
        raise ProviderResponseError("response must be a JSON object", provider=_PROVIDER)

    if isinstance(payload.get("error"), Mapping):
        error = payload["error"]
        raise ProviderHTTPError(
            f"provider error: {error.get('message') or error.get('type') or 'unknown'}",
            provider=_PROVIDER,
        )

    response_id = payload.get("id")
    if not isinstance(response_id, str) or not response_id.strip():
        raise ProviderResponseError("response is missing an id", provider=_PROVIDER)

    blocks = payload.get("content", [])
    if not isinstance(blocks, list):
        raise ProviderResponseError("response content must be a list", provider=_PROVIDER)
    texts = [
        block["text"]
        for block in blocks
        if isinstance(block, Mapping)
        and block.get("type") == "text"
        and isinstance(block.get("text"), str)
    ]

    usage = payload.get("usage")
    usage_map: Mapping[str, Any] = usage if isinstance(usage, Mapping) else {}
    stop_reason = payload.get("stop_reason")
    model = payload.get("model")
    return MessageEnvelope(
        response_id=response_id,
        text="\n".join(texts),
        input_tokens=_non_negative_int(usage_map.get("input_tokens")),
        output_tokens=_non_negative_int(usage_map.get("output_tokens")),
        stop_reason=stop_reason if isinstance(stop_reason, str) else None,
        model=model if isinstance(model, str) else None,
    )


def classify_error_response(response: TransportResponse) -> ProviderError:
    """Map a non-2xx response to the error taxonomy."""

    error_type, message = _decode_error_body(response.body)
    status = response.status_code
    excerpt = message or _excerpt(response.body) or "no response body"
    detail = f"HTTP {status}: {excerpt}"

    factory = _ERROR_TYPE_FACTORIES.get(error_type or "")
    if factory is ProviderRateLimitError or (factory is None and status == 429):
        return ProviderRateLimitError(
            detail,
            provider=_PROVIDER,
            http_status=status,
            retry_after_seconds=parse_retry_after(response.headers),
        )
    if factory is not None:
        return factory(detail, provider=_PROVIDER, http_status=status)
    if status in {401, 403}:
        return ProviderAuthenticationError(detail, provider=_PROVIDER, http_status=status)
    if status == 529:
        return ProviderOverloadedError(detail, provider=_PROVIDER, http_status=status)
    if status == 408:
        return ProviderTimeoutError(detail, provider=_PROVIDER, http_status=status)
    if status >= 500:
        return ProviderServerError(detail, provider=_PROVIDER, http_status=status)
    return ProviderHTTPError(detail, provider=_PROVIDER, http_status=status)


class ClaudeProvider:
    """Messages API client with validation, admission, retries and normalization."""

    provider_name = _PROVIDER

    def __init__(
        self,
        *,
        credentials: CredentialStore,
        transport: Transport | None = None,
        rate_limiter: RateLimiter | None = None,
        api_url: str = DEFAULT_API_URL,
        api_version: str = DEFAULT_API_VERSION,
        default_model: str = DEFAULT_MODEL,
        retry_base_delay_seconds: float = DEFAULT_RETRY_BASE_DELAY_SECONDS,
        retry_max_delay_seconds: float = DEFAULT_RETRY_MAX_DELAY_SECONDS,
        sleep: SleepFn = asyncio.sleep,
        random_fn: RandomFn = random_module.random,
        monotonic: Callable[[], float] = time.monotonic,
        logger: Any | None = None,
    ) -> None:
        if retry_base_delay_seconds < 0:
            raise ValueError("retry_base_delay_seconds must be >= 0")
        self._credentials = credentials
        self._transport: Transport = transport if transport is not None else HttpTransport()
        self._rate_limiter = (
            rate_limiter if rate_limiter is not None else RateLimiter(sleep=sleep)
        )
        self._api_url = api_url
        self._api_version = api_version
        self._default_model = default_model
        self._retry_base_delay_seconds = retry_base_delay_seconds
        self._retry_max_delay_seconds = max(retry_base_delay_seconds, retry_max_delay_seconds)
        self._sleep = sleep
        self._random_fn = random_fn
        self._monotonic = monotonic
        self._logger = logger if logger is not None else structlog.get_logger(__name__)

    @property
    def rate_limiter(self) -> RateLimiter:
        return self._rate_limiter

    @property
    def default_model(self) -> str:
        return self._default_model

    def capabilities(self) -> ProviderCapabilities:
        return ProviderCapabilities(
            name=self.provider_name,
            models=SUPPORTED_MODELS,
            max_output_tokens=MAX_OUTPUT_TOKENS,
            context_tokens=MODEL_CONTEXT_TOKENS,
        )

    async def send(
        self, request: ProviderRequest, *, progress: ProgressCallback | None = None
    ) -> OperationResult:
        started = self._monotonic()
        tracker = _AttemptTracker()
        _notify(progress, 0.1, "validating")

        problems = validate_request(request)
        if problems:
            return self._failure(
                ProviderValidationError("; ".join(problems), provider=_PROVIDER),
                request=request,
                tracker=tracker,
                started=started,
            )

        api_key = self._credentials.get_credential()
        if not api_key:
            return self._failure(
                ProviderAuthenticationError("API key not configured", provider=_PROVIDER),
                request=request,
                tracker=tracker,
                started=started,
            )

        estimate = estimate_request_tokens(request)
        _notify(progress, 0.2, "checking rate limits")
        try:
            await self._rate_limiter.admit(estimate)
        except ProviderRateLimitError as exc:
            return self._failure(exc, request=request, tracker=tracker, started=started)

        _notify(progress, 0.3, "sending")
        headers = self._headers(api_key)
        payload = request.to_wire()
        self._logger.info(
            "provider_request_started",
            provider=_PROVIDER,
            model=request.model,
            prompt_chars=request.prompt_characters(),
            max_tokens=request.max_tokens,
            estimated_tokens=estimate,
        )

        async def operation() -> MessageEnvelope:
            tracker.attempts += 1
            self._rate_limiter.reserve(estimate)
            response = await self._transport.post(
                self._api_url, payload, headers, request.timeout_seconds
            )
            self._rate_limiter.update_from_headers(response.headers)
            if not response.success:
                raise classify_error_response(response)
            return parse_envelope(response.body)

        def on_retry(retry_number: int, error: ProviderError, delay_seconds: float) -> None:
            tracker.backoff_seconds += delay_seconds
            self._logger.info(
                "provider_retry_scheduled",
                provider=_PROVIDER,
                retry_number=retry_number,
                error_kind=error.kind.value,
                http_status=error.http_status,
                delay_seconds=delay_seconds,
            )

        try:
            envelope = await run_with_retries(
                operation,
                map_exception=self._map_exception,
                backoff=BackoffConfig(
                    max_retries=request.max_retries,
                    initial_delay_seconds=self._retry_base_delay_seconds,
                    max_delay_seconds=self._retry_max_delay_seconds,
                ),
                sleep=self._sleep,
                random_fn=self._random_fn,
                on_retry=on_retry,
            )
        except ProviderError as exc:
            return self._failure(exc, request=request, tracker=tracker, started=started)

        _notify(progress, 1.0, "done")
        tokens_used = envelope.input_tokens + envelope.output_tokens
        self._logger.info(
            "provider_request_succeeded",
            provider=_PROVIDER,
            attempts=tracker.attempts,
            tokens_used=tokens_used,
            response_chars=len(envelope.text),
        )
        return OperationResult(
            success=True,
            content=envelope.text,
            provider=ProviderName.CLAUDE,
            processing_time_seconds=max(0.0, self._monotonic() - started),
            tokens_used=tokens_used,
            confidence=score_confidence(
                envelope.text, envelope.input_tokens, envelope.output_tokens
            ),
            metadata={
                "source": ResultSource.LIVE.value,
                "model": envelope.model or request.model,
                "temperature": request.temperature,
                "max_tokens": request.max_tokens,
                "attempts": tracker.attempts,
                "backoff_seconds": tracker.backoff_seconds,
                "request_id": envelope.response_id,
                "stop_reason": envelope.stop_reason,
                "input_tokens": envelope.input_tokens,
                "output_tokens": envelope.output_tokens,
            },
        )

    async def test_connection(self) -> OperationResult:
        return await self.send(
            ProviderRequest(
                model=self._default_model,
                messages=(ChatMessage(role="user", content="Hello"),),
                max_tokens=10,
                temperature=0.0,
                max_retries=1,
            )
        )

    async def quick_response(
        self, prompt: str, *, max_tokens: int = 1000, model: str | None = None
    ) -> OperationResult:
        return await self.send(
            ProviderRequest(
                model=model or self._default_model,
                messages=(ChatMessage(role="user", content=prompt),),
                max_tokens=max_tokens,
                temperature=0.7,
            )
        )

    def status(self) -> dict[str, object]:
        return {
            "provider": self.provider_name,
            "api_url": self._api_url,
            "default_model": self._default_model,
            "has_credential": self._credentials.has_credential(),
            "rate_limit": self._rate_limiter.snapshot(),
        }

    async def aclose(self) -> None:
        await self._transport.aclose()

    def _headers(self, api_key: str) -> dict[str, str]:
        return {
            "content-type": "application/json",
            "x-api-key": api_key,
            "anthropic-version": self._api_version,
        }

    def _map_exception(self, exc: Exception) -> ProviderError:
        if isinstance(exc, TransportError):
            if exc.timed_out:
                return ProviderTimeoutError(exc.detail, provider=_PROVIDER)
            return ProviderHTTPError(exc.detail, provider=_PROVIDER, retryable=True)
        self._logger.exception(
            "provider_unexpected_exception", provider=_PROVIDER, exc_type=type(exc).__name__
        )
        return ProviderClientError(f"{type(exc).__name__}: {exc}", provider=_PROVIDER)

    def _failure(
        self,
        error: ProviderError,
        *,
        request: ProviderRequest,
        tracker: _AttemptTracker,
        started: float,
    ) -> OperationResult:
        self._logger.warning(
            "provider_request_failed",
            provider=_PROVIDER,
            error_kind=error.kind.value,
            http_status=error.http_status,
            attempts=tracker.attempts,
        )
        metadata: dict[str, object] = {
            "model": request.model,
            "attempts": tracker.attempts,
            "backoff_seconds": tracker.backoff_seconds,
        }
        metadata.update(error_metadata(error))
        return OperationResult.failure(
            error.kind,
            error.detail,
            provider=ProviderName.CLAUDE,
            processing_time_seconds=max(0.0, self._monotonic() - started),
            metadata=metadata,
        )


def _notify(progress: ProgressCallback | None, fraction: float, stage: str) -> None:
    if progress is not None:
        progress(fraction, stage)


def _decode_error_body(body: str) -> tuple[str | None, str | None]:
    try:
        payload = json.loads(body)
    except json.JSONDecodeError:
        return None, None
    if not isinstance(payload, Mapping):
        return None, None
    error = payload.get("error")
    if not isinstance(error, Mapping):
        return None, None
    error_type = error.get("type")
    message = error.get("message")
    return (
        error_type if isinstance(error_type, str) else None,
        message if isinstance(message, str) and message.strip() else None,
    )


def _excerpt(body: str) -> str:
    collapsed = " ".join(body.split())
    if len(collapsed) <= _BODY_EXCERPT_CHARS:
        return collapsed
    return collapsed[:_BODY_EXCERPT_CHARS] + "..."


def _non_negative_int(value: object) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        return 0
    return max(0, value)


__all__ = [
    "ClaudeProvider",
    "MessageEnvelope",
    "classify_error_response",
    "estimate_request_tokens",
    "parse_envelope",
    "score_confidence",
    "validate_request",
]
