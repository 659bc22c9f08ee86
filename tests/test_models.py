from __future__ import annotations

import pytest
from pydantic import ValidationError

from fetchkit.models import CacheEntry, LifecycleState, Phase


def test_initial_state_is_loading() -> None:
    state = LifecycleState()

    assert state.phase is Phase.LOADING
    assert state.loading
    assert state.data is None
    assert state.error is None


def test_error_phase_requires_message() -> None:
    with pytest.raises(ValidationError):
        LifecycleState(phase=Phase.ERROR)


def test_non_error_phase_rejects_message() -> None:
    with pytest.raises(ValidationError):
        LifecycleState(phase=Phase.SUCCESS, data=1, error_message="nope")


def test_transitions_carry_data_forward() -> None:
    success = LifecycleState().to_success({"a": 1})
    loading = success.to_loading()
    failed = loading.to_error("HTTP error! Status: 500")

    assert loading.data == {"a": 1}
    assert loading.error is None
    assert failed.data == {"a": 1}
    assert failed.error == "HTTP error! Status: 500"
    assert failed.to_loading().error_message is None


def test_state_is_immutable() -> None:
    state = LifecycleState()
    with pytest.raises(ValidationError):
        state.phase = Phase.SUCCESS


def test_cache_entry_freshness() -> None:
    entry = CacheEntry(value=[1], stored_at_ms=1000)

    assert entry.age_ms(1250) == 250
    assert entry.is_fresh(1250, 251)
    assert not entry.is_fresh(1250, 250)
