"""
PropertyPath -- position of a nested entity inside an aggregate.

A path is the ordered sequence of property traversals from the aggregate
root down to a nested entity: ``customer.orders.line_items`` is the path
``("orders", "line_items")`` with depth 2.  The root itself has no path.

Paths are used as grouping keys and compared by depth; they carry no
mapping knowledge.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class PropertyPath:
    """
    Ordered property traversals from the aggregate root.

    Guarantees:
        - At least one segment; every segment is a non-empty string.
        - Equal (and hashed) by the segment tuple alone.
    """

    segments: tuple[str, ...]

    def __post_init__(self) -> None:
        if not isinstance(self.segments, tuple):
            object.__setattr__(self, "segments", tuple(self.segments))
        if not self.segments:
            raise ValueError("PropertyPath requires at least one segment")
        for segment in self.segments:
            if not isinstance(segment, str) or not segment:
                raise ValueError(f"Invalid path segment: {segment!r}")

    @classmethod
    def of(cls, *segments: str) -> PropertyPath:
        return cls(tuple(segments))

    @classmethod
    def parse(cls, dotted: str) -> PropertyPath:
        """Parse a dot-separated path such as ``"orders.line_items"``."""
        return cls(tuple(dotted.split(".")))

    @property
    def depth(self) -> int:
        """Number of traversals from the root."""
        return len(self.segments)

    @property
    def length(self) -> int:
        return len(self.segments)

    @property
    def leaf(self) -> str:
        return self.segments[-1]

    @property
    def parent(self) -> PropertyPath | None:
        """Path of the enclosing nested entity, None when directly under the root."""
        if len(self.segments) == 1:
            return None
        return PropertyPath(self.segments[:-1])

    def child(self, segment: str) -> PropertyPath:
        return PropertyPath(self.segments + (segment,))

    def is_ancestor_of(self, other: PropertyPath) -> bool:
        """True if ``other`` lies strictly below this path."""
        return (
            other.depth > self.depth
            and other.segments[: self.depth] == self.segments
        )

    def __str__(self) -> str:
        return ".".join(self.segments)
