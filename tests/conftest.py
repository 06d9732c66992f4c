"""Shared fixtures."""

import pytest

from monosync.cache import TTLCache
from monosync.relationships import Relationships

RELATIONSHIPS = "acme/mono > packages/widget:acme/widget, acme/mono > libs/core:acme/core"


@pytest.fixture
def relationships() -> Relationships:
    return Relationships.parse(RELATIONSHIPS)


@pytest.fixture
def cache() -> TTLCache:
    return TTLCache(max_size=64, ttl=60)
