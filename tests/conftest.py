"""
Shared fixtures: caches backed by an in-process fakeredis server.
"""

import re

import fakeredis
import pytest

from kvcache import Cache, Notifications

TEST_URL = "redis://localhost:6379/0"


@pytest.fixture
def server():
    """Fresh fakeredis server shared by every client of one test."""
    return fakeredis.FakeServer()


@pytest.fixture
def store(server):
    """Direct client for inspecting what the cache wrote."""
    return fakeredis.FakeRedis(server=server)


@pytest.fixture
def fake_connections(server):
    """Connection options pointing a cache's redis-py pool at the fake server."""
    return {"connection_class": fakeredis.FakeRedisConnection, "server": server}


@pytest.fixture
def events():
    """Notifications hub recording every event as (name, payload)."""
    hub = Notifications()
    hub.recorded = []
    hub.subscribe(
        re.compile(".*"),
        lambda name, started, finished, payload: hub.recorded.append((name, payload)),
    )
    return hub


@pytest.fixture
def make_cache(fake_connections):
    """Factory building caches whose pooled connections talk to the fake server."""
    caches = []

    def factory(**options):
        options.setdefault("connection_options", fake_connections)
        cache = Cache(TEST_URL, **options)
        caches.append(cache)
        return cache

    yield factory

    for cache in caches:
        cache.close()


@pytest.fixture
def cache(make_cache):
    return make_cache()
