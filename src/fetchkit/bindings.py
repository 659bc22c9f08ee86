"""Consumer bindings over a single ``FetchEngine``.

``use_fetch`` returns a handle whose attributes mirror the engine state, for
callers that poll values directly. ``FetchView`` pushes render props to a
callback on every change, for callers that redraw on notification.
"""

from __future__ import annotations

import asyncio
from typing import Any, Callable, Dict, Optional

from .config import RequestConfig
from .engine import FetchEngine
from .models import LifecycleState

RenderProps = Dict[str, Any]


class FetchHandle:
    def __init__(self, engine: FetchEngine) -> None:
        self._engine = engine

    async def __aenter__(self) -> "FetchHandle":
        self._engine.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self._engine.aclose()

    @property
    def engine(self) -> FetchEngine:
        return self._engine

    @property
    def state(self) -> LifecycleState:
        return self._engine.state

    @property
    def data(self) -> Any:
        return self._engine.state.data

    @property
    def loading(self) -> bool:
        return self._engine.state.loading

    @property
    def error(self) -> Optional[str]:
        return self._engine.state.error

    def start(self) -> Optional[asyncio.Task]:
        return self._engine.start()

    def retry(self) -> Optional[asyncio.Task]:
        return self._engine.retry()

    def dispose(self) -> None:
        self._engine.dispose()


def use_fetch(config: RequestConfig, **engine_kwargs: Any) -> FetchHandle:
    return FetchHandle(FetchEngine(config, **engine_kwargs))


class FetchView:
    def __init__(
        self,
        config: RequestConfig,
        render: Callable[[RenderProps], Any],
        **engine_kwargs: Any,
    ) -> None:
        self._engine = FetchEngine(config, **engine_kwargs)
        self._render = render
        self._unsubscribe: Optional[Callable[[], None]] = None
        self.rendered: Any = None

    @property
    def engine(self) -> FetchEngine:
        return self._engine

    def props(self) -> RenderProps:
        state = self._engine.state
        return {
            "data": state.data,
            "loading": state.loading,
            "error": state.error,
            "retry": self._engine.retry,
        }

    def mount(self) -> Any:
        if self._unsubscribe is None:
            self._unsubscribe = self._engine.subscribe(self._on_change)
        self._engine.start()
        return self.rendered

    def unmount(self) -> None:
        self._engine.dispose()
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def _on_change(self, state: LifecycleState) -> None:
        self.rendered = self._render(self.props())


__all__ = ["FetchHandle", "FetchView", "RenderProps", "use_fetch"]
