"""
Tests for the item model.

Tests identifier/version validation, revision identity of items and the
unordered equality of segments.
"""

import pytest

from geohistory.data.items import (
    Identifier,
    ItemType,
    Point,
    RelationMember,
    Segment,
    Version,
)
from geohistory.errors import BackendError, NotFoundError, UpstreamError

from conftest import make_path, make_point, make_relation


class TestIdentifier:
    """Tests for Identifier."""

    def test_valid_range(self):
        """Test boundaries of the identifier range."""
        assert int(Identifier(0)) == 0
        assert int(Identifier(2**63 - 1)) == 2**63 - 1

    def test_negative_rejected(self):
        with pytest.raises(ValueError, match="Identifier must be in"):
            Identifier(-1)

    def test_too_large_rejected(self):
        with pytest.raises(ValueError):
            Identifier(2**63)

    def test_non_int_rejected(self):
        with pytest.raises(TypeError):
            Identifier("12")
        with pytest.raises(TypeError):
            Identifier(True)

    def test_of_passes_through(self):
        ident = Identifier(5)
        assert Identifier.of(ident) is ident
        assert Identifier.of(5) == ident

    def test_ordering_and_hash(self):
        assert Identifier(1) < Identifier(2)
        assert len({Identifier(3), Identifier(3)}) == 1
        assert str(Identifier(42)) == "42"


class TestVersion:
    """Tests for Version."""

    def test_first_and_next(self):
        assert Version.first() == Version(1)
        assert Version(3).next() == Version(4)

    def test_zero_rejected(self):
        with pytest.raises(ValueError, match="Version must be >= 1"):
            Version(0)

    def test_sorting(self):
        versions = sorted([Version(3), Version(1), Version(2)])
        assert [int(v) for v in versions] == [1, 2, 3]


class TestItems:
    """Tests for Point, Path and Relation."""

    def test_kind_tags(self):
        assert make_point(1).kind == ItemType.POINT
        assert make_path(1, [1, 2]).kind == ItemType.PATH
        assert make_relation(1, []).kind == ItemType.RELATION

    def test_revision_identity(self):
        """Items are equal when kind, id and version match."""
        a = make_point(1, version=2, lat=1.0)
        b = make_point(1, version=2, lat=5.0)
        c = make_point(1, version=3)

        assert a == b
        assert hash(a) == hash(b)
        assert a != c
        assert a.same_object(c)
        assert not a.same_revision(c)

    def test_different_kinds_never_equal(self):
        """A point and a path with the same id are different objects."""
        point = make_point(7)
        path = make_path(7, [])
        assert point != path
        assert not point.same_object(path)

    def test_coordinates(self):
        point = make_point(1, lat=52.5, lon=13.4)
        assert point.coordinates == (13.4, 52.5)

    def test_items_are_immutable(self):
        point = make_point(1)
        with pytest.raises(AttributeError):
            point.lat = 3.0

    def test_relation_members_keep_duplicates(self):
        relation = make_relation(1, [(ItemType.POINT, 2), (ItemType.POINT, 2)])
        assert len(relation.members) == 2
        assert relation.members[0] == RelationMember(
            Identifier(1), ItemType.POINT, Identifier(2)
        )


class TestSegment:
    """Tests for Segment."""

    def test_unordered_equality(self):
        p1 = make_point(1)
        p2 = make_point(2)
        assert Segment(p1, p2) == Segment(p2, p1)
        assert len({Segment(p1, p2), Segment(p2, p1)}) == 1

    def test_degenerate(self):
        p1 = make_point(1)
        assert Segment(p1, p1).is_degenerate
        assert not Segment(p1, make_point(2)).is_degenerate

    def test_endpoints(self):
        p1 = make_point(1)
        p2 = make_point(2)
        assert Segment(p1, p2).endpoints == (p1, p2)


class TestErrors:
    """Tests for the error types."""

    def test_not_found_message(self):
        error = NotFoundError(ItemType.PATH, Identifier(12), version=Version(3))
        assert error.message == "path 12 not found"
        assert "version=3" in str(error)

    def test_upstream_error_keeps_cause(self):
        cause = ConnectionError("reset")
        error = UpstreamError("Remote fetch_current failed", cause=cause)
        assert error.cause is cause
        assert "ConnectionError" in str(error)

    def test_backend_error(self):
        error = BackendError("upsert", RuntimeError("locked"))
        assert error.operation == "upsert"
        assert "locked" in str(error)
