"""Shared pytest fixtures for keepwarm tests."""

from __future__ import annotations

from collections.abc import Iterator

import pytest

from keepwarm.storage import PING_ENABLED_KEY, InMemoryStorage, get_default_storage


@pytest.fixture
def default_storage() -> Iterator[InMemoryStorage]:
    """The process-wide default storage, with the sentinel cleared around the test."""
    storage = get_default_storage()
    storage.remove_item(PING_ENABLED_KEY)
    yield storage
    storage.remove_item(PING_ENABLED_KEY)
