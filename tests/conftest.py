"""
Pytest configuration and fixtures for geohistory tests.

Markers:
    @pytest.mark.slow - Tests that take longer to run
    @pytest.mark.concurrency - Tests running several threads

Usage:
    pytest -m "not slow"         # Skip slow tests
"""

import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import pytest

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from geohistory.data.api.base import RemoteSource  # noqa: E402
from geohistory.data.cache.manager import CacheRegistry  # noqa: E402
from geohistory.data.cache.storage import BackendResult, DurableBackend  # noqa: E402
from geohistory.data.items import (  # noqa: E402
    Identifier,
    ItemType,
    Path as GeoPath,
    Point,
    Relation,
    RelationMember,
    Version,
)
from geohistory.errors import BackendError, NotFoundError  # noqa: E402

BASE_TIME = datetime(2024, 1, 1, tzinfo=timezone.utc)


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "slow: Slow-running tests")
    config.addinivalue_line("markers", "concurrency: Multi-threaded tests")


# ==============================================================================
# Item builders
# ==============================================================================


def make_point(
    item_id: int,
    version: Optional[int] = 1,
    lat: float = 0.0,
    lon: float = 0.0,
    day: int = 0,
) -> Point:
    """Build a point whose revision timestamp is BASE_TIME + day days."""
    return Point(
        id=Identifier(item_id),
        version=Version(version) if version is not None else None,
        lat=lat,
        lon=lon,
        timestamp=BASE_TIME + timedelta(days=day),
    )


def make_path(item_id: int, point_ids: List[int], version: int = 1, day: int = 0) -> GeoPath:
    return GeoPath(
        id=Identifier(item_id),
        version=Version(version),
        point_ids=tuple(Identifier(p) for p in point_ids),
        timestamp=BASE_TIME + timedelta(days=day),
    )


def make_relation(
    item_id: int,
    members: List[Tuple[ItemType, int]],
    version: int = 1,
    day: int = 0,
) -> Relation:
    return Relation(
        id=Identifier(item_id),
        version=Version(version),
        members=tuple(
            RelationMember(Identifier(item_id), kind, Identifier(ref)) for kind, ref in members
        ),
        timestamp=BASE_TIME + timedelta(days=day),
    )


# ==============================================================================
# Test doubles
# ==============================================================================


class FakeClock:
    """Manually advanced time source."""

    def __init__(self, start: float = 1_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeRemote(RemoteSource):
    """
    In-memory upstream API.

    Holds every revision per (kind, id); the highest version is current.
    Counts calls per method so tests can assert on cache hits.
    """

    def __init__(self):
        self.revisions: Dict[Tuple[ItemType, Identifier], Dict[Version, object]] = {}
        self.calls: Dict[str, int] = {
            "fetch_current": 0,
            "fetch_version": 0,
            "fetch_history": 0,
            "fetch_full": 0,
        }
        self.fail_with: Optional[Exception] = None

    def add(self, *items) -> None:
        for item in items:
            key = (item.kind, item.id)
            self.revisions.setdefault(key, {})[item.version] = item

    def _check(self, name: str) -> None:
        self.calls[name] += 1
        if self.fail_with is not None:
            raise self.fail_with

    def _revisions(self, kind: ItemType, item_id: Identifier) -> Dict[Version, object]:
        revisions = self.revisions.get((kind, item_id))
        if not revisions:
            raise NotFoundError(kind, item_id)
        return revisions

    def fetch_current(self, kind, item_id):
        self._check("fetch_current")
        revisions = self._revisions(kind, item_id)
        return revisions[max(revisions)]

    def fetch_version(self, kind, item_id, version):
        self._check("fetch_version")
        revisions = self._revisions(kind, item_id)
        if version not in revisions:
            raise NotFoundError(kind, item_id, version=version)
        return revisions[version]

    def fetch_history(self, kind, item_id):
        self._check("fetch_history")
        return list(self._revisions(kind, item_id).values())

    def fetch_full(self, relation_id):
        self._check("fetch_full")
        found = []
        pending = [relation_id]
        seen = set()
        while pending:
            rel_id = pending.pop()
            if rel_id in seen:
                continue
            seen.add(rel_id)
            relation = self.fetch_current_quiet(ItemType.RELATION, rel_id)
            found.append(relation)
            for member in relation.members:
                if member.type == ItemType.RELATION:
                    pending.append(member.ref)
                else:
                    found.append(self.fetch_current_quiet(member.type, member.ref))
                    if member.type == ItemType.PATH:
                        for point_id in found[-1].point_ids:
                            found.append(self.fetch_current_quiet(ItemType.POINT, point_id))
        return found

    def fetch_current_quiet(self, kind, item_id):
        revisions = self._revisions(kind, item_id)
        return revisions[max(revisions)]


class FailingBackend(DurableBackend):
    """Durable backend whose every operation fails."""

    def __init__(self):
        self.calls: List[str] = []

    def _fail(self, operation: str) -> BackendResult:
        self.calls.append(operation)
        return BackendResult.failure(BackendError(operation, RuntimeError("disk gone")))

    def lookup(self, cache_name, item_id):
        return self._fail("lookup")

    def list_ids(self, cache_name):
        return self._fail("list_ids")

    def upsert(self, cache_name, item_id, data, written_at):
        return self._fail("upsert")

    def delete_older_than(self, cache_name, cutoff):
        return self._fail("delete_older_than")

    def delete_beyond_newest(self, cache_name, keep):
        return self._fail("delete_beyond_newest")

    def summary(self):
        return self._fail("summary")


# ==============================================================================
# Fixtures
# ==============================================================================


@pytest.fixture
def clock():
    """Manually advanced clock."""
    return FakeClock()


@pytest.fixture
def registry():
    """Registry private to one test."""
    return CacheRegistry()


@pytest.fixture
def remote():
    """Empty fake upstream API."""
    return FakeRemote()
