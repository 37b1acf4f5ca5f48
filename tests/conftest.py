"""
Shared fixtures.
"""

import pytest

from shiftplanner.adapters.memory_store import MemoryScheduleStore
from shiftplanner.config import AppConfig

from factories import TZ, populate


@pytest.fixture
def config() -> AppConfig:
    return AppConfig(timezone=TZ, database_url="sqlite://")


@pytest.fixture
def store() -> MemoryScheduleStore:
    store = MemoryScheduleStore()
    populate(store)
    return store
