from __future__ import annotations

import asyncio

import httpx
import pytest

from helpers import URL, mock_transport, settle
from fetchkit.errors import DeserializationFailure, FetchCancelled, NetworkFailure
from fetchkit.transport import CancellationToken, TransportResponse


def test_response_ok_range() -> None:
    assert TransportResponse(status_code=200).ok
    assert TransportResponse(status_code=299).ok
    assert not TransportResponse(status_code=199).ok
    assert not TransportResponse(status_code=300).ok


def test_response_json_failure_is_deserialization_failure() -> None:
    with pytest.raises(DeserializationFailure):
        TransportResponse(status_code=200, content=b"").json()


@pytest.mark.asyncio
async def test_send_maps_httpx_response() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.headers["X-Trace"] == "abc"
        assert request.content == b'{"q": 1}'
        return httpx.Response(418, json={"teapot": True}, headers={"X-Reply": "yes"})

    transport = mock_transport(handler)
    response = await transport.send(URL, "PUT", {"X-Trace": "abc"}, {"q": 1}, CancellationToken())

    assert response.status_code == 418
    assert not response.ok
    assert response.json() == {"teapot": True}
    assert response.headers["x-reply"] == "yes"
    await transport.close()


@pytest.mark.asyncio
async def test_send_without_body_has_empty_content() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.content == b""
        return httpx.Response(200, json=[])

    transport = mock_transport(handler)
    response = await transport.send(URL, "GET", {}, None, CancellationToken())

    assert response.json() == []


@pytest.mark.asyncio
async def test_transport_errors_become_network_failures() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("read timed out", request=request)

    transport = mock_transport(handler)
    with pytest.raises(NetworkFailure, match="read timed out"):
        await transport.send(URL, "GET", {}, None, CancellationToken())


@pytest.mark.asyncio
async def test_cancelled_token_short_circuits() -> None:
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(200, json={})

    token = CancellationToken()
    token.cancel()

    with pytest.raises(FetchCancelled):
        await mock_transport(handler).send(URL, "GET", {}, None, token)
    assert calls == []


@pytest.mark.asyncio
async def test_cancel_aborts_in_flight_request() -> None:
    async def handler(request: httpx.Request) -> httpx.Response:
        await asyncio.sleep(10)
        return httpx.Response(200, json={})

    token = CancellationToken()
    send = asyncio.ensure_future(mock_transport(handler).send(URL, "GET", {}, None, token))
    await settle()
    token.cancel()

    with pytest.raises(FetchCancelled):
        await asyncio.wait_for(send, timeout=1)
    assert token.cancelled


@pytest.mark.asyncio
async def test_redirects_are_followed_to_final_response() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/items":
            return httpx.Response(301, headers={"Location": "/new"})
        return httpx.Response(200, json={"moved": True})

    response = await mock_transport(handler).send(URL, "GET", {}, None, CancellationToken())

    assert response.status_code == 200
    assert response.json() == {"moved": True}


@pytest.mark.asyncio
async def test_falsy_body_is_still_sent() -> None:
    bodies = []

    def handler(request: httpx.Request) -> httpx.Response:
        bodies.append(request.content)
        return httpx.Response(200, json={})

    transport = mock_transport(handler)
    await transport.send(URL, "POST", {}, 0, CancellationToken())
    await transport.send(URL, "POST", {}, "", CancellationToken())
    await transport.send(URL, "POST", {}, None, CancellationToken())

    assert bodies == [b"0", b'""', b""]


@pytest.mark.asyncio
async def test_close_marks_transport_closed() -> None:
    transport = mock_transport(lambda request: httpx.Response(200, json={}))
    assert not transport.closed

    await transport.close()

    assert transport.closed
