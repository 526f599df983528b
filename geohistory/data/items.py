"""
Item Model for Versioned Geographic Data.

Value types shared by the caches and the relation resolver:
- Identifier and Version value objects
- The three geographical item variants (Point, Path, Relation)
- Relation members and resolved line segments

Items are produced by the upstream protocol layer and are treated as
immutable; the caches only ever replace them wholesale.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, ClassVar, Dict, Optional, Tuple, Union

MAX_IDENTIFIER = 2**63 - 1


@dataclass(frozen=True, order=True)
class Identifier:
    """
    Numeric identifier of an item within one item-type namespace.

    Attributes:
        value: Non-negative 64-bit integer
    """

    value: int

    def __post_init__(self):
        """Validate range."""
        if isinstance(self.value, bool) or not isinstance(self.value, int):
            raise TypeError(f"Identifier value must be an int, got {type(self.value).__name__}")
        if self.value < 0 or self.value > MAX_IDENTIFIER:
            raise ValueError(f"Identifier must be in [0, 2**63), got {self.value}")

    @classmethod
    def of(cls, value: Union["Identifier", int]) -> "Identifier":
        """Wrap an int, pass an Identifier through."""
        if isinstance(value, Identifier):
            return value
        return cls(value)

    def __int__(self) -> int:
        return self.value

    def __str__(self) -> str:
        return str(self.value)


@dataclass(frozen=True, order=True)
class Version:
    """
    Revision number of an item. Version 1 is always the first revision.

    Attributes:
        value: Strictly positive integer
    """

    value: int

    def __post_init__(self):
        """Validate range."""
        if isinstance(self.value, bool) or not isinstance(self.value, int):
            raise TypeError(f"Version value must be an int, got {type(self.value).__name__}")
        if self.value < 1:
            raise ValueError(f"Version must be >= 1, got {self.value}")

    @classmethod
    def of(cls, value: Union["Version", int]) -> "Version":
        """Wrap an int, pass a Version through."""
        if isinstance(value, Version):
            return value
        return cls(value)

    @classmethod
    def first(cls) -> "Version":
        return cls(1)

    def next(self) -> "Version":
        return Version(self.value + 1)

    def __int__(self) -> int:
        return self.value

    def __str__(self) -> str:
        return str(self.value)


class ItemType(Enum):
    """Type tag of geographical items and relation members."""

    POINT = "point"
    PATH = "path"
    RELATION = "relation"


class VersionedObject:
    """
    Mixin for items that carry an identifier and an optional revision.

    Two objects are the same object when kind and identifier match, and the
    same revision when the version matches as well. Equality and hashing use
    the revision identity so that sets of resolved items collapse duplicates.
    """

    kind: ClassVar[ItemType]
    id: Identifier
    version: Optional[Version]
    timestamp: Optional[datetime]

    def same_object(self, other: "VersionedObject") -> bool:
        return self.kind == other.kind and self.id == other.id

    def same_revision(self, other: "VersionedObject") -> bool:
        return self.same_object(other) and self.version == other.version

    def _identity(self) -> Tuple[ItemType, Identifier, Optional[Version]]:
        return (self.kind, self.id, self.version)

    def __eq__(self, other: Any) -> bool:
        if not isinstance(other, VersionedObject):
            return NotImplemented
        return self._identity() == other._identity()

    def __hash__(self) -> int:
        return hash(self._identity())


@dataclass(frozen=True, eq=False)
class Point(VersionedObject):
    """
    A single geographic position.

    Attributes:
        id: Point identifier
        version: Revision number (None when unknown)
        lat: Latitude in degrees
        lon: Longitude in degrees
        timestamp: When this revision was created upstream
        tags: Free-form key/value tags
    """

    kind: ClassVar[ItemType] = ItemType.POINT

    id: Identifier
    version: Optional[Version]
    lat: float
    lon: float
    timestamp: Optional[datetime] = None
    tags: Dict[str, str] = field(default_factory=dict)

    @property
    def coordinates(self) -> Tuple[float, float]:
        """Get (lon, lat) tuple."""
        return (self.lon, self.lat)


@dataclass(frozen=True, eq=False)
class Path(VersionedObject):
    """
    An ordered sequence of points.

    Attributes:
        id: Path identifier
        version: Revision number (None when unknown)
        point_ids: Member point identifiers in path order
        timestamp: When this revision was created upstream
        tags: Free-form key/value tags
    """

    kind: ClassVar[ItemType] = ItemType.PATH

    id: Identifier
    version: Optional[Version]
    point_ids: Tuple[Identifier, ...] = ()
    timestamp: Optional[datetime] = None
    tags: Dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class RelationMember:
    """
    Reference from a relation to another item.

    The same item may appear several times in one relation, even with the
    same role; members are kept in relation order and never deduplicated.

    Attributes:
        relation_id: Identifier of the owning relation
        type: Type tag of the referenced item
        ref: Identifier of the referenced item
        role: Free-form role text (may be empty)
    """

    relation_id: Identifier
    type: ItemType
    ref: Identifier
    role: str = ""


@dataclass(frozen=True, eq=False)
class Relation(VersionedObject):
    """
    A composite item referencing points, paths and other relations.

    Attributes:
        id: Relation identifier
        version: Revision number (None when unknown)
        members: Members in relation order
        timestamp: When this revision was created upstream
        tags: Free-form key/value tags
    """

    kind: ClassVar[ItemType] = ItemType.RELATION

    id: Identifier
    version: Optional[Version]
    members: Tuple[RelationMember, ...] = ()
    timestamp: Optional[datetime] = None
    tags: Dict[str, str] = field(default_factory=dict)


GeographicalItem = Union[Point, Path, Relation]

ITEM_CLASSES: Dict[ItemType, type] = {
    ItemType.POINT: Point,
    ItemType.PATH: Path,
    ItemType.RELATION: Relation,
}


@dataclass(frozen=True, eq=False)
class Segment:
    """
    Unordered pair of points forming one edge of resolved geometry.

    Segment(a, b) and Segment(b, a) compare and hash equal. A standalone
    point is represented as the degenerate segment Segment(p, p).

    Attributes:
        a: First endpoint
        b: Second endpoint
    """

    a: Point
    b: Point

    @property
    def endpoints(self) -> Tuple[Point, Point]:
        return (self.a, self.b)

    @property
    def is_degenerate(self) -> bool:
        return self.a == self.b

    def __eq__(self, other: Any) -> bool:
        if not isinstance(other, Segment):
            return NotImplemented
        return frozenset((self.a, self.b)) == frozenset((other.a, other.b))

    def __hash__(self) -> int:
        return hash(frozenset((self.a, self.b)))
