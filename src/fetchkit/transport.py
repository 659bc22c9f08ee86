"""Network transports used by fetch engines."""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

import httpx

from .errors import DeserializationFailure, FetchCancelled, NetworkFailure, describe

logger = logging.getLogger("fetchkit.transport")


class CancellationToken:
    """Out-of-band abort signal owned by a single fetch attempt."""

    def __init__(self) -> None:
        self._event = asyncio.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    async def wait(self) -> None:
        await self._event.wait()


@dataclass
class TransportResponse:
    status_code: int
    content: bytes = b""
    headers: Dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300

    def json(self) -> Any:
        try:
            return json.loads(self.content)
        except ValueError as exc:
            raise DeserializationFailure(describe(exc)) from exc


class Transport:
    async def send(
        self,
        url: str,
        method: str,
        headers: Mapping[str, str],
        body: Any,
        token: CancellationToken,
    ) -> TransportResponse:  # pragma: no cover - interface
        raise NotImplementedError

    async def close(self) -> None:  # pragma: no cover - optional override
        return None


class HttpxTransport(Transport):
    def __init__(
        self,
        *,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._client = httpx.AsyncClient(timeout=timeout, transport=transport, follow_redirects=True)

    @property
    def closed(self) -> bool:
        return self._client.is_closed

    async def send(
        self,
        url: str,
        method: str,
        headers: Mapping[str, str],
        body: Any,
        token: CancellationToken,
    ) -> TransportResponse:
        if token.cancelled:
            raise FetchCancelled(f"{method} {url} cancelled before dispatch")

        content = json.dumps(body) if body is not None else None
        request_task = asyncio.ensure_future(
            self._client.request(method, url, headers=dict(headers), content=content)
        )
        cancel_task = asyncio.ensure_future(token.wait())
        try:
            done, _ = await asyncio.wait({request_task, cancel_task}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            request_task.cancel()
            raise
        finally:
            cancel_task.cancel()

        if request_task not in done:
            request_task.cancel()
            logger.debug("Aborted %s %s", method, url)
            raise FetchCancelled(f"{method} {url} cancelled")

        try:
            response = request_task.result()
        except httpx.HTTPError as exc:
            raise NetworkFailure(describe(exc)) from exc
        return TransportResponse(
            status_code=response.status_code,
            content=response.content,
            headers=dict(response.headers),
        )

    async def close(self) -> None:
        await self._client.aclose()


__all__ = ["CancellationToken", "HttpxTransport", "Transport", "TransportResponse"]
