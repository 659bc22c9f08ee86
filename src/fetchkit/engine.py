"""Lifecycle engine: cache lookup, network fetch, polling and retry."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from typing import Any, Callable, Dict, List, Optional

from .cache import ResponseCache, now_ms
from .config import EngineSettings, RequestConfig
from .errors import (
    CacheReadFailure,
    CacheWriteFailure,
    FetchCancelled,
    FetchError,
    HttpStatusFailure,
    NetworkFailure,
    describe,
)
from .metrics import (
    ATTEMPT_COUNTER,
    CACHE_COUNTER,
    CACHE_WRITE_FAILURES,
    IN_FLIGHT_GAUGE,
    NETWORK_LATENCY,
    OUTCOME_COUNTER,
)
from .models import CacheEntry, LifecycleState
from .store import KeyValueStore, build_store, get_default_store
from .transport import CancellationToken, HttpxTransport, Transport, TransportResponse

logger = logging.getLogger("fetchkit.engine")

Listener = Callable[[LifecycleState], None]


class FetchEngine:
    """Drives the fetch lifecycle for one ``RequestConfig``.

    Every trigger (``start``, ``retry`` or a polling tick) runs one attempt as
    its own task. Attempts may overlap; by default the last one to finish wins.
    Passing ``supersede_in_flight=True`` makes each new attempt cancel the ones
    still pending so only the newest result can land.

    State changes are delivered to subscribers only while the engine is alive.
    ``dispose`` flips that flag and stops polling but lets running requests
    finish; their results still reach the cache, never the subscribers.
    """

    def __init__(
        self,
        config: RequestConfig,
        *,
        transport: Optional[Transport] = None,
        store: Optional[KeyValueStore] = None,
        clock: Optional[Callable[[], int]] = None,
        supersede_in_flight: bool = False,
        timeout: Optional[float] = None,
    ) -> None:
        self._config = config
        self._owns_transport = transport is None
        self._transport = transport if transport is not None else HttpxTransport(timeout=timeout)
        self._cache = ResponseCache(store if store is not None else get_default_store())
        self._owns_store = False
        self._clock = clock or now_ms
        self._supersede = supersede_in_flight

        self._state = LifecycleState()
        self._listeners: List[Listener] = []
        self._alive = True
        self._started = False
        self._attempt_count = 0
        self._attempts: Dict[asyncio.Task, CancellationToken] = {}
        self._poll_task: Optional[asyncio.Task] = None
        self._release_task: Optional[asyncio.Task] = None

    @classmethod
    def from_settings(
        cls,
        config: RequestConfig,
        settings: EngineSettings,
        *,
        transport: Optional[Transport] = None,
    ) -> "FetchEngine":
        engine = cls(
            config,
            transport=transport,
            store=build_store(settings),
            supersede_in_flight=settings.supersede_in_flight,
            timeout=settings.timeout_seconds,
        )
        engine._owns_store = settings.store_backend != "memory"
        return engine

    async def __aenter__(self) -> "FetchEngine":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    @property
    def config(self) -> RequestConfig:
        return self._config

    @property
    def state(self) -> LifecycleState:
        return self._state

    @property
    def alive(self) -> bool:
        return self._alive

    @property
    def started(self) -> bool:
        return self._started

    @property
    def polling(self) -> bool:
        return self._poll_task is not None

    @property
    def attempt_count(self) -> int:
        return self._attempt_count

    @property
    def in_flight(self) -> int:
        return len(self._attempts)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def start(self) -> Optional[asyncio.Task]:
        if not self._alive:
            logger.debug("start() ignored; engine for %s is disposed", self._config.url)
            return None
        if self._started:
            return None
        task = self._trigger("start")
        self._started = True
        self._arm_polling()
        return task

    def retry(self) -> Optional[asyncio.Task]:
        if not self._alive:
            logger.debug("retry() ignored; engine for %s is disposed", self._config.url)
            return None
        self._started = False
        return self._trigger("retry")

    def dispose(self) -> None:
        if not self._alive:
            return
        self._alive = False
        self._disarm_polling()
        logger.debug("Disposed engine for %s with %s attempt(s) in flight", self._config.url, len(self._attempts))
        self._release_transport()

    def reconfigure(self, config: RequestConfig) -> None:
        """Swap in a new request config; polling is re-armed on the new interval."""
        self._config = config
        if not self._alive:
            return
        was_polling = self._disarm_polling() is not None
        if was_polling or self._started:
            self._arm_polling()

    async def drain(self) -> None:
        """Wait for the attempts running right now to finish.

        On a disposed engine this also waits for an owned transport to close.
        """
        pending = list(self._attempts)
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        if self._release_task is not None:
            await self._release_task

    async def aclose(self) -> None:
        poll_task = self._poll_task
        self.dispose()
        if poll_task is not None:
            with contextlib.suppress(asyncio.CancelledError):
                await poll_task
        for token in self._attempts.values():
            token.cancel()
        self._release_transport()
        await self.drain()
        if self._owns_store:
            await self._cache.store.close()

    def _set_state(self, state: LifecycleState) -> bool:
        if not self._alive:
            return False
        self._state = state
        for listener in list(self._listeners):
            try:
                listener(state)
            except Exception:
                logger.exception("State listener %r raised", listener)
        return True

    def _trigger(self, trigger: str) -> asyncio.Task:
        loop = asyncio.get_running_loop()
        self._set_state(self._state.to_loading())

        if self._supersede:
            for token in self._attempts.values():
                token.cancel()
        token = CancellationToken()
        self._attempt_count += 1
        attempt_id = self._attempt_count

        task = loop.create_task(
            self._run_attempt(attempt_id, self._config, token),
            name=f"fetchkit-attempt-{attempt_id}",
        )
        self._attempts[task] = token
        task.add_done_callback(self._attempt_done)
        IN_FLIGHT_GAUGE.inc()
        ATTEMPT_COUNTER.labels(trigger=trigger).inc()
        logger.debug("Attempt %s (%s) for %s %s", attempt_id, trigger, self._config.method.value, self._config.url)
        return task

    def _attempt_done(self, task: asyncio.Task) -> None:
        self._attempts.pop(task, None)
        IN_FLIGHT_GAUGE.dec()
        if not self._alive:
            self._release_transport()
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Attempt task %s crashed", task.get_name(), exc_info=exc)

    def _release_transport(self) -> None:
        # Runs once the engine is disposed and its last attempt has finished.
        if not self._owns_transport or self._release_task is not None or self._attempts:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running loop; transport for %s stays open until aclose()", self._config.url)
            return
        self._release_task = loop.create_task(self._transport.close(), name="fetchkit-release")

    def _arm_polling(self) -> None:
        interval_ms = self._config.polling_interval_ms
        if interval_ms is None or self._poll_task is not None:
            return
        self._poll_task = asyncio.get_running_loop().create_task(
            self._poll(interval_ms / 1000.0),
            name="fetchkit-poll",
        )
        logger.debug("Polling %s every %sms", self._config.url, interval_ms)

    def _disarm_polling(self) -> Optional[asyncio.Task]:
        task, self._poll_task = self._poll_task, None
        if task is not None:
            task.cancel()
        return task

    async def _poll(self, interval_s: float) -> None:
        while self._alive:
            await asyncio.sleep(interval_s)
            if not self._alive:
                break
            self._trigger("poll")

    async def _run_attempt(self, attempt_id: int, config: RequestConfig, token: CancellationToken) -> None:
        if config.caching_enabled:
            entry = await self._read_cache(config)
            if entry is not None:
                if token.cancelled:
                    self._record(attempt_id, "cancelled")
                    return
                delivered = self._set_state(self._state.to_success(entry.value))
                self._record(attempt_id, "cache_hit" if delivered else "discarded")
                return

        failure: Optional[FetchError] = None
        result: Any = None
        started = time.perf_counter()
        try:
            response = await self._send(config, token)
            if not response.ok:
                raise HttpStatusFailure(response.status_code)
            result = response.json()
        except FetchCancelled as exc:
            if token.cancelled:
                self._record(attempt_id, "cancelled")
                return
            failure = NetworkFailure(describe(exc))
        except FetchError as exc:
            failure = exc
        finally:
            NETWORK_LATENCY.labels(method=config.method.value).observe(time.perf_counter() - started)

        if token.cancelled:
            self._record(attempt_id, "cancelled")
            return

        if failure is not None:
            if self._set_state(self._state.to_error(failure.message)):
                logger.warning("Attempt %s for %s failed: %s", attempt_id, config.url, failure.message)
                self._record(attempt_id, "error")
            else:
                self._record(attempt_id, "discarded")
            return

        delivered = self._set_state(self._state.to_success(result))
        self._record(attempt_id, "success" if delivered else "discarded")
        if config.caching_enabled:
            await self._write_cache(config, result)

    async def _send(self, config: RequestConfig, token: CancellationToken) -> TransportResponse:
        try:
            return await self._transport.send(config.url, config.method.value, config.headers, config.body, token)
        except (FetchError, FetchCancelled):
            raise
        except Exception as exc:
            raise NetworkFailure(describe(exc)) from exc

    async def _read_cache(self, config: RequestConfig) -> Optional[CacheEntry]:
        key = config.cache_key
        try:
            entry = await self._cache.lookup(key, config.cache_expiration_ms, self._clock())  # type: ignore[arg-type]
        except CacheReadFailure as exc:
            logger.warning("Cache read failed for %s: %s", key, exc.message)
            CACHE_COUNTER.labels(result="error").inc()
            return None
        CACHE_COUNTER.labels(result="hit" if entry is not None else "miss").inc()
        return entry

    async def _write_cache(self, config: RequestConfig, value: Any) -> None:
        key = config.cache_key
        try:
            await self._cache.write(key, value, self._clock())  # type: ignore[arg-type]
        except CacheWriteFailure as exc:
            logger.warning("Cache write failed for %s: %s", key, exc.message)
            CACHE_WRITE_FAILURES.inc()

    def _record(self, attempt_id: int, outcome: str) -> None:
        OUTCOME_COUNTER.labels(outcome=outcome).inc()
        logger.debug("Attempt %s finished: %s", attempt_id, outcome)


__all__ = ["FetchEngine", "Listener"]
