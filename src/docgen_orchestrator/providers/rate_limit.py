"""
docgen-orchestrator — provider rate-limit window

File: src/docgen_orchestrator/providers/rate_limit.py
Last updated: 2026-02-13

Purpose
- Own the per-window request/token quota and decide admission before sends.

What should be included in this file
- Mutable RateLimitState with reset-on-expiry semantics.
- Admission check that fails fast when the reset is far away and waits briefly
  when it is imminent.
- Per-attempt reservation and opportunistic updates from response headers.

Functional requirements
- Absent or malformed rate-limit headers must never cause errors.
- A reservation must correspond to exactly one transport send.

Non-functional requirements
- Deterministic under injected clock and sleep.
"""

from __future__ import annotations

import asyncio
import math
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any, Final

import structlog

from docgen_orchestrator.constants import (
    DEFAULT_RATE_LIMIT_MAX_WAIT_SECONDS,
    DEFAULT_REQUESTS_PER_MINUTE,
    DEFAULT_TOKENS_PER_MINUTE,
    RATE_LIMIT_WINDOW_SECONDS,
)
from docgen_orchestrator.providers.base import NowFn, ProviderRateLimitError, SleepFn

_REMAINING_REQUESTS_HEADERS: Final[tuple[str, ...]] = (
    "x-ratelimit-requests-remaining",
    "anthropic-ratelimit-requests-remaining",
)
_REMAINING_TOKENS_HEADERS: Final[tuple[str, ...]] = (
    "x-ratelimit-tokens-remaining",
    "anthropic-ratelimit-tokens-remaining",
)
_REQUEST_LIMIT_HEADERS: Final[tuple[str, ...]] = (
    "x-ratelimit-requests-limit",
    "anthropic-ratelimit-requests-limit",
)
_TOKEN_LIMIT_HEADERS: Final[tuple[str, ...]] = (
    "x-ratelimit-tokens-limit",
    "anthropic-ratelimit-tokens-limit",
)
_RESET_HEADERS: Final[tuple[str, ...]] = (
    "x-ratelimit-requests-reset",
    "anthropic-ratelimit-requests-reset",
)


def _utc_now() -> datetime:
    return datetime.now(tz=UTC)


@dataclass(slots=True)
class RateLimitState:
    requests_per_window: int
    tokens_per_window: int
    remaining_requests: int
    remaining_tokens: int
    window_reset_at: datetime

    def can_admit(self, estimated_tokens: int) -> bool:
        return self.remaining_requests > 0 and self.remaining_tokens >= estimated_tokens

    def to_dict(self) -> dict[str, object]:
        return {
            "requests_per_window": self.requests_per_window,
            "tokens_per_window": self.tokens_per_window,
            "remaining_requests": self.remaining_requests,
            "remaining_tokens": self.remaining_tokens,
            "window_reset_at": self.window_reset_at.isoformat(),
        }


class RateLimiter:
    """Fixed-window admission control shared by all sends of one provider."""

    def __init__(
        self,
        *,
        requests_per_window: int = DEFAULT_REQUESTS_PER_MINUTE,
        tokens_per_window: int = DEFAULT_TOKENS_PER_MINUTE,
        window_seconds: float = RATE_LIMIT_WINDOW_SECONDS,
        max_wait_seconds: float = DEFAULT_RATE_LIMIT_MAX_WAIT_SECONDS,
        now_fn: NowFn = _utc_now,
        sleep: SleepFn = asyncio.sleep,
        provider: str = "claude",
        logger: Any | None = None,
    ) -> None:
        if requests_per_window <= 0:
            raise ValueError("requests_per_window must be > 0")
        if tokens_per_window <= 0:
            raise ValueError("tokens_per_window must be > 0")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be > 0")
        if max_wait_seconds < 0:
            raise ValueError("max_wait_seconds must be >= 0")
        self._window = timedelta(seconds=window_seconds)
        self._max_wait_seconds = max_wait_seconds
        self._now_fn = now_fn
        self._sleep = sleep
        self._provider = provider
        self._lock = asyncio.Lock()
        self._logger = logger if logger is not None else structlog.get_logger(__name__)
        self._state = RateLimitState(
            requests_per_window=requests_per_window,
            tokens_per_window=tokens_per_window,
            remaining_requests=requests_per_window,
            remaining_tokens=tokens_per_window,
            window_reset_at=now_fn() + self._window,
        )

    @property
    def state(self) -> RateLimitState:
        return self._state

    def snapshot(self) -> dict[str, object]:
        return self._state.to_dict()

    async def admit(self, estimated_tokens: int) -> None:
        """Wait for quota or raise ``ProviderRateLimitError``.

        Waits at most once, and only when the window resets within
        ``max_wait_seconds``.
        """

        if estimated_tokens > self._state.tokens_per_window:
            raise ProviderRateLimitError(
                f"Request needs about {estimated_tokens} tokens but the window allows "
                f"{self._state.tokens_per_window}",
                provider=self._provider,
                http_status=None,
            )

        waited = False
        while True:
            async with self._lock:
                now = self._now_fn()
                self._reset_if_due(now)
                if self._state.can_admit(estimated_tokens):
                    return
                wait_seconds = max(0.0, (self._state.window_reset_at - now).total_seconds())

            if waited or wait_seconds > self._max_wait_seconds:
                self._logger.info(
                    "rate_limit_rejected",
                    provider=self._provider,
                    estimated_tokens=estimated_tokens,
                    retry_after_seconds=round(wait_seconds, 3),
                )
                raise ProviderRateLimitError(
                    f"Rate limit exceeded; window resets in {math.ceil(wait_seconds)}s",
                    provider=self._provider,
                    http_status=None,
                    retry_after_seconds=wait_seconds,
                )

            self._logger.info(
                "rate_limit_wait",
                provider=self._provider,
                wait_seconds=round(wait_seconds, 3),
            )
            await self._sleep(wait_seconds)
            waited = True

    def reserve(self, estimated_tokens: int) -> None:
        """Charge one request and the token estimate to the current window.

        Synchronous so no suspension point separates the reservation from the
        transport call that follows it.
        """

        self._reset_if_due(self._now_fn())
        self._state.remaining_requests = max(0, self._state.remaining_requests - 1)
        self._state.remaining_tokens = max(0, self._state.remaining_tokens - estimated_tokens)

    def update_from_headers(self, headers: Mapping[str, str]) -> None:
        """Apply provider-reported limits; missing or malformed values are ignored."""

        lowered = {key.lower(): value for key, value in headers.items()}
        request_limit = _first_int(lowered, _REQUEST_LIMIT_HEADERS)
        if request_limit is not None and request_limit > 0:
            self._state.requests_per_window = request_limit
        token_limit = _first_int(lowered, _TOKEN_LIMIT_HEADERS)
        if token_limit is not None and token_limit > 0:
            self._state.tokens_per_window = token_limit

        remaining_requests = _first_int(lowered, _REMAINING_REQUESTS_HEADERS)
        if remaining_requests is not None:
            self._state.remaining_requests = max(0, remaining_requests)
        remaining_tokens = _first_int(lowered, _REMAINING_TOKENS_HEADERS)
        if remaining_tokens is not None:
            self._state.remaining_tokens = max(0, remaining_tokens)

        reset_at = _first_datetime(lowered, _RESET_HEADERS)
        if reset_at is None:
            retry_after = parse_retry_after(lowered)
            if retry_after is not None:
                reset_at = self._now_fn() + timedelta(seconds=retry_after)
        if reset_at is not None:
            self._state.window_reset_at = reset_at

    def _reset_if_due(self, now: datetime) -> None:
        if now < self._state.window_reset_at:
            return
        self._state.remaining_requests = self._state.requests_per_window
        self._state.remaining_tokens = self._state.tokens_per_window
        self._state.window_reset_at = now + self._window


def parse_retry_after(headers: Mapping[str, str]) -> float | None:
    """Return ``retry-after`` seconds when present and numeric."""

    raw = headers.get("retry-after")
    if raw is None:
        return None
    try:
        value = float(raw.strip())
    except ValueError:
        return None
    if not math.isfinite(value) or value < 0:
        return None
    return value


def _first_int(headers: Mapping[str, str], names: tuple[str, ...]) -> int | None:
    for name in names:
        raw = headers.get(name)
        if raw is None:
            continue
        try:
            return int(raw.strip())
        except ValueError:
            continue
    return None


def _first_datetime(headers: Mapping[str, str], names: tuple[str, ...]) -> datetime | None:
    for name in names:
        raw = headers.get(name)
        if raw is None:
            continue
        try:
            parsed = datetime.fromisoformat(raw.strip().replace("Z", "+00:00"))
        except ValueError:
            continue
        return parsed if parsed.tzinfo is not None else parsed.replace(tzinfo=UTC)
    return None


__all__ = ["RateLimitState", "RateLimiter", "parse_retry_after"]
