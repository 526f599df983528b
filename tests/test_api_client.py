"""
Tests for CachedAPIClient.

Tests fetch-through caching of current revisions, specific revisions,
histories and point-in-time lookups, plus upstream error wrapping.
"""

from datetime import datetime, timedelta
from unittest.mock import MagicMock

import pytest

from geohistory.data.api.base import RemoteSource
from geohistory.data.api.client import CachedAPIClient
from geohistory.data.cache.storage import SQLiteBackend
from geohistory.data.items import Identifier, ItemType, Version
from geohistory.errors import APIError, NotFoundError, UpstreamError

from conftest import BASE_TIME, make_path, make_point, make_relation


@pytest.fixture
def client(remote, registry, clock):
    return CachedAPIClient(remote, registry=registry, clock=clock)


class TestFetchCurrent:
    """Tests for fetch without a point in time."""

    def test_fetch_through(self, client, remote):
        remote.add(make_point(1, version=1), make_point(1, version=2))

        first = client.fetch(ItemType.POINT, 1)
        second = client.fetch(ItemType.POINT, Identifier(1))

        assert first.version == Version(2)
        assert second is first
        assert remote.calls["fetch_current"] == 1

    def test_namespaces_are_separate(self, client, remote):
        remote.add(make_point(1), make_path(1, [1]))

        assert client.fetch(ItemType.POINT, 1).kind == ItemType.POINT
        assert client.fetch(ItemType.PATH, 1).kind == ItemType.PATH

    def test_not_found_propagates(self, client):
        with pytest.raises(NotFoundError, match="relation 9 not found"):
            client.fetch(ItemType.RELATION, 9)

    def test_upstream_failure_wrapped(self, client, remote):
        remote.fail_with = ConnectionError("connection reset")

        with pytest.raises(UpstreamError) as exc_info:
            client.fetch(ItemType.POINT, 1)

        assert isinstance(exc_info.value, APIError)
        assert isinstance(exc_info.value.cause, ConnectionError)

    def test_failed_fetch_not_cached(self, client, remote):
        remote.fail_with = TimeoutError()
        with pytest.raises(UpstreamError):
            client.fetch(ItemType.POINT, 1)

        remote.fail_with = None
        remote.add(make_point(1))
        assert client.fetch(ItemType.POINT, 1) == make_point(1)


class TestFetchVersion:
    """Tests for fetch_version."""

    def test_fetch_through(self, client, remote):
        remote.add(make_point(1, version=1), make_point(1, version=2))

        assert client.fetch_version(ItemType.POINT, 1, 1).version == Version(1)
        assert client.fetch_version(ItemType.POINT, 1, Version(1)).version == Version(1)
        assert remote.calls["fetch_version"] == 1

    def test_current_revision_served_from_history(self, client, remote):
        remote.add(make_point(1, version=1))
        client.fetch(ItemType.POINT, 1)

        client.fetch_version(ItemType.POINT, 1, 1)

        assert remote.calls["fetch_version"] == 0

    def test_missing_version(self, client, remote):
        remote.add(make_point(1, version=1))

        with pytest.raises(NotFoundError) as exc_info:
            client.fetch_version(ItemType.POINT, 1, 5)
        assert exc_info.value.details["version"] == 5


class TestFetchHistory:
    """Tests for fetch_history."""

    def test_fetch_through(self, client, remote):
        remote.add(*(make_point(1, version=n) for n in (2, 3, 1)))

        history = client.fetch_history(ItemType.POINT, 1)
        again = client.fetch_history(ItemType.POINT, 1)

        assert list(history) == [Version(1), Version(2), Version(3)]
        assert again == history
        assert remote.calls["fetch_history"] == 1
        assert client.fetch(ItemType.POINT, 1).version == Version(3)
        assert remote.calls["fetch_current"] == 0

    def test_incomplete_cache_refetches(self, client, remote):
        remote.add(make_point(1, version=1), make_point(1, version=2))
        client.fetch(ItemType.POINT, 1)

        history = client.fetch_history(ItemType.POINT, 1)

        assert len(history) == 2
        assert remote.calls["fetch_history"] == 1

    def test_no_versioned_revisions(self, client, remote):
        remote.add(make_point(1, version=None))

        with pytest.raises(NotFoundError):
            client.fetch_history(ItemType.POINT, 1)


class TestFetchAsOf:
    """Tests for point-in-time fetches."""

    @pytest.fixture
    def populated(self, client, remote):
        remote.add(
            make_point(1, version=1, day=0),
            make_point(1, version=2, day=10),
            make_point(1, version=3, day=20),
        )
        return client

    def test_picks_latest_before(self, populated):
        item = populated.fetch(ItemType.POINT, 1, as_of=BASE_TIME + timedelta(days=15))
        assert item.version == Version(2)

    def test_exact_timestamp_included(self, populated):
        item = populated.fetch(ItemType.POINT, 1, as_of=BASE_TIME + timedelta(days=20))
        assert item.version == Version(3)

    def test_naive_datetime_is_utc(self, populated):
        item = populated.fetch(ItemType.POINT, 1, as_of=datetime(2024, 1, 5))
        assert item.version == Version(1)

    def test_before_first_revision(self, populated):
        with pytest.raises(NotFoundError) as exc_info:
            populated.fetch(ItemType.POINT, 1, as_of=BASE_TIME - timedelta(days=1))
        assert exc_info.value.as_of is not None

    def test_history_fetched_once(self, populated, remote):
        for day in (1, 11, 21):
            populated.fetch(ItemType.POINT, 1, as_of=BASE_TIME + timedelta(days=day))
        assert remote.calls["fetch_history"] == 1


class TestFetchFull:
    """Tests for fetch_full and cache management."""

    def test_prefetch_fills_caches(self, client, remote):
        remote.add(
            make_point(1),
            make_point(2),
            make_path(10, [1, 2]),
            make_relation(100, [(ItemType.PATH, 10), (ItemType.POINT, 1)]),
        )

        client.fetch_full(100)

        for kind, item_id in (
            (ItemType.RELATION, 100),
            (ItemType.PATH, 10),
            (ItemType.POINT, 1),
            (ItemType.POINT, 2),
        ):
            client.fetch(kind, item_id)
        assert remote.calls["fetch_full"] == 1
        assert remote.calls["fetch_current"] == 0

    def test_cache_names(self, remote, registry):
        client = CachedAPIClient(remote, registry=registry, name_prefix="osm.")
        assert client.cache_for(ItemType.PATH).name == "osm.path"
        assert len(registry) == 3

    def test_shared_backend(self, remote, registry):
        backend = SQLiteBackend()
        client = CachedAPIClient(remote, backend=backend, registry=registry)
        assert {client.cache_for(k).backend for k in ItemType} == {backend}

    def test_clean_up(self, client, remote):
        remote.add(make_point(1))
        client.fetch(ItemType.POINT, 1)

        results = client.clean_up()

        assert set(results) == {"point", "path", "relation"}
        assert results["point"] == {"memory": 0, "durable": 0, "histories": 0}


class TestRemoteContract:
    """Tests for the calls made against a mocked RemoteSource."""

    def test_arguments_are_wrapped(self, registry):
        remote = MagicMock(spec=RemoteSource)
        remote.fetch_current.return_value = make_point(3, version=2)
        remote.fetch_version.return_value = make_point(3, version=1)
        client = CachedAPIClient(remote, registry=registry)

        client.fetch(ItemType.POINT, 3)
        client.fetch_version(ItemType.POINT, 3, 1)
        # The current revision is already part of the history
        client.fetch_version(ItemType.POINT, 3, 2)

        remote.fetch_current.assert_called_once_with(ItemType.POINT, Identifier(3))
        remote.fetch_version.assert_called_once_with(ItemType.POINT, Identifier(3), Version(1))

    def test_parse_failure_wrapped(self, registry):
        remote = MagicMock(spec=RemoteSource)
        remote.fetch_history.side_effect = ValueError("malformed document")
        client = CachedAPIClient(remote, registry=registry)

        with pytest.raises(UpstreamError) as exc_info:
            client.fetch_history(ItemType.PATH, 4)

        assert isinstance(exc_info.value.cause, ValueError)
        assert exc_info.value.__cause__ is exc_info.value.cause
