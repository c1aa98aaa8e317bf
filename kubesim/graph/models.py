"""Data structures for the object relationship graph."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum


class EdgeType(StrEnum):
    """Types of relationships between simulated objects."""

    OWNER_REFERENCE = "owner_reference"
    SERVICE_SELECTOR = "service_selector"
    NODE_ASSIGNMENT = "node_assignment"
    VOLUME_CLAIM = "volume_claim"
    CONFIG_REFERENCE = "config_reference"


@dataclass(frozen=True)
class GraphNode:
    """A node in the graph representing one simulated object."""

    kind: str
    name: str
    uid: str | None = None

    @property
    def key(self) -> tuple[str, str]:
        """Return the unique key for this node."""
        return (self.kind, self.name)


@dataclass(frozen=True)
class GraphEdge:
    """A typed edge from a dependent object to the object it points at."""

    source: GraphNode
    target: GraphNode
    edge_type: EdgeType
    source_field: str  # dotted path of the field that creates this relationship


@dataclass
class DependencyResult:
    """Result of a graph traversal query."""

    resources: list[GraphNode] = field(default_factory=list)
    edges: list[GraphEdge] = field(default_factory=list)
    depth_reached: int = 0
    truncated: bool = False  # True if max_depth hit before exhausting graph
