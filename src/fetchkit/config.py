"""Configuration objects for fetch engines."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping, Optional


class HttpMethod(str, Enum):
    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    PATCH = "PATCH"
    DELETE = "DELETE"
    HEAD = "HEAD"
    OPTIONS = "OPTIONS"


def _default_headers() -> Mapping[str, str]:
    return {"Content-Type": "application/json"}


@dataclass(frozen=True)
class RequestConfig:
    """Describes one remote resource and how an engine should fetch it.

    Instances are immutable; an engine is reconfigured by handing it a new one.
    Leaving ``cache_key`` unset disables caching, leaving
    ``polling_interval_ms`` unset disables periodic re-fetching.
    """

    url: str
    method: HttpMethod = HttpMethod.GET
    body: Any = None
    headers: Mapping[str, str] = field(default_factory=_default_headers)
    cache_key: Optional[str] = None
    cache_expiration_ms: int = 60000
    polling_interval_ms: Optional[int] = None

    def __post_init__(self) -> None:
        if not self.url:
            raise ValueError("url must be a non-empty string")
        try:
            method = HttpMethod(str(getattr(self.method, "value", self.method)).upper())
        except ValueError as exc:
            raise ValueError(f"Unsupported HTTP method: {self.method!r}") from exc
        object.__setattr__(self, "method", method)
        object.__setattr__(self, "headers", dict(self.headers))
        if self.cache_expiration_ms < 0:
            raise ValueError("cache_expiration_ms must be >= 0")
        if self.polling_interval_ms is not None and self.polling_interval_ms <= 0:
            raise ValueError("polling_interval_ms must be > 0 when set")

    @property
    def caching_enabled(self) -> bool:
        return bool(self.cache_key)

    @property
    def polling_enabled(self) -> bool:
        return self.polling_interval_ms is not None


STORE_BACKENDS = ("memory", "file", "postgres")


def postgres_dsn_from_env() -> str:
    dsn = os.environ.get("DATABASE_URL")
    if dsn:
        return dsn
    host = os.environ.get("POSTGRES_HOST", "localhost")
    port = os.environ.get("POSTGRES_PORT", "5432")
    user = os.environ.get("POSTGRES_USER", "postgres")
    password = os.environ.get("POSTGRES_PASSWORD", "postgres")
    db = os.environ.get("POSTGRES_DB", "postgres")
    sslmode = os.environ.get("POSTGRES_SSLMODE")

    dsn = f"postgresql://{user}:{password}@{host}:{port}/{db}"
    if sslmode:
        dsn += f"?sslmode={sslmode}"
    return dsn


@dataclass(frozen=True)
class EngineSettings:
    store_backend: str = "memory"
    store_path: Optional[str] = None
    postgres_dsn: Optional[str] = None
    timeout_seconds: Optional[float] = None
    supersede_in_flight: bool = False
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        if self.store_backend not in STORE_BACKENDS:
            raise ValueError(
                f"Unknown store backend {self.store_backend!r}; expected one of {', '.join(STORE_BACKENDS)}"
            )
        if self.store_backend == "file" and not self.store_path:
            raise ValueError("FETCHKIT_STORE_PATH must be configured for the file store")
        if self.store_backend == "postgres" and not self.postgres_dsn:
            raise ValueError("A Postgres DSN must be configured for the postgres store")

    @classmethod
    def from_env(cls) -> "EngineSettings":
        backend = os.environ.get("FETCHKIT_STORE", "memory").strip().lower() or "memory"
        timeout = os.environ.get("FETCHKIT_TIMEOUT")
        return cls(
            store_backend=backend,
            store_path=os.environ.get("FETCHKIT_STORE_PATH") or None,
            postgres_dsn=postgres_dsn_from_env() if backend == "postgres" else None,
            timeout_seconds=float(timeout) if timeout else None,
            supersede_in_flight=os.environ.get("FETCHKIT_SUPERSEDE", "false").lower() == "true",
            log_level=os.environ.get("FETCHKIT_LOG_LEVEL", "INFO").upper(),
        )


__all__ = ["EngineSettings", "HttpMethod", "RequestConfig", "STORE_BACKENDS", "postgres_dsn_from_env"]
