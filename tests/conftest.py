from __future__ import annotations

import pytest

from fetchkit.store import MemoryStore
from helpers import FIXED_NOW, ScriptedTransport


@pytest.fixture()
def scripted() -> ScriptedTransport:
    return ScriptedTransport()


@pytest.fixture()
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture()
def clock():
    return lambda: FIXED_NOW
