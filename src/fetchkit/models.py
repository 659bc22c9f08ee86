"""Pydantic models for engine state and cache entries."""

from __future__ import annotations

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class Phase(str, Enum):
    LOADING = "loading"
    SUCCESS = "success"
    ERROR = "error"


class LifecycleState(BaseModel):
    """Snapshot of an engine's lifecycle.

    ``data`` carries the last successful payload and survives later loading and
    error phases. ``error_message`` is set exactly when the phase is error.
    """

    model_config = ConfigDict(frozen=True)

    phase: Phase = Phase.LOADING
    data: Any = None
    error_message: Optional[str] = None

    @model_validator(mode="after")
    def _check_error_message(self) -> "LifecycleState":
        if self.phase is Phase.ERROR and not self.error_message:
            raise ValueError("error phase requires an error_message")
        if self.phase is not Phase.ERROR and self.error_message is not None:
            raise ValueError(f"{self.phase.value} phase cannot carry an error_message")
        return self

    @property
    def loading(self) -> bool:
        return self.phase is Phase.LOADING

    @property
    def error(self) -> Optional[str]:
        return self.error_message

    def to_loading(self) -> "LifecycleState":
        return LifecycleState(phase=Phase.LOADING, data=self.data)

    def to_success(self, data: Any) -> "LifecycleState":
        return LifecycleState(phase=Phase.SUCCESS, data=data)

    def to_error(self, message: str) -> "LifecycleState":
        return LifecycleState(phase=Phase.ERROR, data=self.data, error_message=message)


class CacheEntry(BaseModel):
    value: Any
    stored_at_ms: int = Field(..., ge=0)

    def age_ms(self, now_ms: int) -> int:
        return now_ms - self.stored_at_ms

    def is_fresh(self, now_ms: int, expiration_ms: int) -> bool:
        return self.age_ms(now_ms) < expiration_ms


__all__ = ["CacheEntry", "LifecycleState", "Phase"]
