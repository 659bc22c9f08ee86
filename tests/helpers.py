from __future__ import annotations

import asyncio
import json
from typing import Any, Dict, List, Mapping, Optional, Tuple

import httpx

from fetchkit.errors import FetchCancelled
from fetchkit.transport import CancellationToken, HttpxTransport, Transport, TransportResponse

URL = "https://api.example.com/items"
FIXED_NOW = 1_700_000_000_000


def json_response(payload: Any, status: int = 200) -> TransportResponse:
    return TransportResponse(status_code=status, content=json.dumps(payload).encode("utf-8"))


async def settle(rounds: int = 5) -> None:
    for _ in range(rounds):
        await asyncio.sleep(0)


class ScriptedTransport(Transport):
    """Replays queued outcomes; gated outcomes wait until released or cancelled."""

    def __init__(self) -> None:
        self.calls: List[Dict[str, Any]] = []
        self._steps: List[Tuple[Optional[asyncio.Event], Any]] = []

    def add(self, outcome: Any, *, gated: bool = False) -> Optional[asyncio.Event]:
        gate = asyncio.Event() if gated else None
        self._steps.append((gate, outcome))
        return gate

    async def send(
        self,
        url: str,
        method: str,
        headers: Mapping[str, str],
        body: Any,
        token: CancellationToken,
    ) -> TransportResponse:
        index = len(self.calls)
        self.calls.append({"url": url, "method": method, "headers": dict(headers), "body": body})
        if index < len(self._steps):
            gate, outcome = self._steps[index]
        else:
            gate, outcome = None, json_response({"ok": True})

        if gate is not None:
            gate_task = asyncio.ensure_future(gate.wait())
            cancel_task = asyncio.ensure_future(token.wait())
            done, pending = await asyncio.wait({gate_task, cancel_task}, return_when=asyncio.FIRST_COMPLETED)
            for task in pending:
                task.cancel()
            if gate_task not in done:
                raise FetchCancelled(f"{method} {url} cancelled")

        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


def mock_transport(handler) -> HttpxTransport:
    return HttpxTransport(transport=httpx.MockTransport(handler))
