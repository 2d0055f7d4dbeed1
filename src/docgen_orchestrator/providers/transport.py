"""HTTP transport: one JSON POST in, one normalized response out."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from types import TracebackType
from typing import Protocol, runtime_checkable

import httpx

from docgen_orchestrator.providers.base import JSONValue


@dataclass(frozen=True, slots=True)
class TransportResponse:
    status_code: int
    body: str
    headers: Mapping[str, str] = field(default_factory=dict)

    @property
    def success(self) -> bool:
        return 200 <= self.status_code < 300


class TransportError(RuntimeError):
    """Raised when no HTTP response was received."""

    def __init__(self, detail: str, *, timed_out: bool = False) -> None:
        super().__init__(detail)
        self.detail = detail
        self.timed_out = timed_out


@runtime_checkable
class Transport(Protocol):
    async def post(
        self,
        url: str,
        body: Mapping[str, JSONValue],
        headers: Mapping[str, str],
        timeout_seconds: float,
    ) -> TransportResponse: ...

    async def aclose(self) -> None: ...


class HttpTransport:
    """``httpx.AsyncClient`` backed transport with a lazily created client."""

    def __init__(self, *, client: httpx.AsyncClient | None = None) -> None:
        self._client = client
        self._owns_client = client is None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient()
            self._owns_client = True
        return self._client

    async def post(
        self,
        url: str,
        body: Mapping[str, JSONValue],
        headers: Mapping[str, str],
        timeout_seconds: float,
    ) -> TransportResponse:
        client = self._get_client()
        try:
            response = await client.post(
                url,
                json=dict(body),
                headers=dict(headers),
                timeout=httpx.Timeout(timeout_seconds),
            )
        except httpx.TimeoutException as exc:
            raise TransportError(
                f"request timeout after {timeout_seconds:g}s", timed_out=True
            ) from exc
        except httpx.HTTPError as exc:
            raise TransportError(f"connection failed: {type(exc).__name__}: {exc}") from exc

        return TransportResponse(
            status_code=response.status_code,
            body=response.text,
            headers={key.lower(): value for key, value in response.headers.items()},
        )

    async def aclose(self) -> None:
        if self._client is None or not self._owns_client:
            return
        if not self._client.is_closed:
            await self._client.aclose()
        self._client = None

    async def __aenter__(self) -> HttpTransport:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()


__all__ = ["HttpTransport", "Transport", "TransportError", "TransportResponse"]
