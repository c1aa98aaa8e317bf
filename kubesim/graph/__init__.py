"""Object relationship graph for cascade inspection and invariant checks.

Provides an in-memory graph built from a ClusterState snapshot
(owner references, Service selectors, Pod->Node assignments,
Pod->PersistentVolumeClaim mounts).
"""

from kubesim.graph.dependency_graph import DependencyGraph
from kubesim.graph.models import DependencyResult, EdgeType, GraphEdge, GraphNode

__all__ = [
    "DependencyGraph",
    "DependencyResult",
    "EdgeType",
    "GraphEdge",
    "GraphNode",
]
