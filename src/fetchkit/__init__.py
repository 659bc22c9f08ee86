"""Data-fetching lifecycle engine with caching, polling and retry."""

from .bindings import FetchHandle, FetchView, use_fetch
from .config import EngineSettings, HttpMethod, RequestConfig
from .engine import FetchEngine
from .models import LifecycleState, Phase

__all__ = [
    "EngineSettings",
    "FetchEngine",
    "FetchHandle",
    "FetchView",
    "HttpMethod",
    "LifecycleState",
    "Phase",
    "RequestConfig",
    "use_fetch",
]
