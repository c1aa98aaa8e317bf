"""In-memory relationship graph built from a ClusterState snapshot."""

from __future__ import annotations

from collections import deque

from kubesim.graph.models import DependencyResult, EdgeType, GraphEdge, GraphNode
from kubesim.models.objects import KubeObject, OwnerReference
from kubesim.models.state import ClusterState
from kubesim.selectors import labels_match


def _node(obj: KubeObject) -> GraphNode:
    return GraphNode(kind=obj.kind, name=obj.metadata.name, uid=obj.metadata.uid)


class DependencyGraph:
    """Typed edges between the objects of one snapshot.

    Edges point from the dependent object to the object it refers to:
    a pod points at its ReplicaSet (owner reference), at its node, at its
    volume claims and at the ConfigMaps and Secrets it imports. A Service
    points at every pod its selector matches.
    """

    def __init__(self) -> None:
        self._nodes: dict[tuple[str, str], GraphNode] = {}
        self._by_uid: dict[str, GraphNode] = {}
        self._edges: list[GraphEdge] = []
        self._dangling: list[tuple[GraphNode, OwnerReference]] = []

    @classmethod
    def from_state(cls, state: ClusterState) -> DependencyGraph:
        graph = cls()
        for obj in state.all_objects():
            node = _node(obj)
            graph._nodes[node.key] = node
            graph._by_uid[obj.metadata.uid] = node

        for obj in state.all_objects():
            ref = obj.metadata.owner_reference
            if ref is None:
                continue
            owner = graph._by_uid.get(ref.uid)
            if owner is None or owner.kind != ref.kind:
                graph._dangling.append((_node(obj), ref))
                continue
            graph._add(_node(obj), owner, EdgeType.OWNER_REFERENCE, "metadata.owner_reference")

        for pod in state.pods:
            source = _node(pod)
            if pod.spec.node_name:
                target = graph._nodes.get(("Node", pod.spec.node_name))
                if target is not None:
                    graph._add(source, target, EdgeType.NODE_ASSIGNMENT, "spec.node_name")
            for claim in pod.spec.volume_claims:
                target = graph._nodes.get(("PersistentVolumeClaim", claim))
                if target is not None:
                    graph._add(source, target, EdgeType.VOLUME_CLAIM, "spec.volume_claims")
            for source_ref in pod.spec.env_from:
                target = graph._nodes.get((source_ref.kind, source_ref.name))
                if target is not None:
                    graph._add(source, target, EdgeType.CONFIG_REFERENCE, "spec.env_from")

        for svc in state.services:
            for pod in state.pods:
                if labels_match(pod.metadata.labels, svc.spec.selector):
                    graph._add(_node(svc), _node(pod), EdgeType.SERVICE_SELECTOR, "spec.selector")
        return graph

    def _add(self, source: GraphNode, target: GraphNode, edge_type: EdgeType, source_field: str) -> None:
        self._edges.append(GraphEdge(source=source, target=target, edge_type=edge_type, source_field=source_field))

    @property
    def edges(self) -> list[GraphEdge]:
        return list(self._edges)

    def node(self, kind: str, name: str) -> GraphNode | None:
        return self._nodes.get((kind, name))

    def dangling_owner_references(self) -> list[tuple[GraphNode, OwnerReference]]:
        """Objects whose owner reference names no live object of that kind and uid."""
        return list(self._dangling)

    def dependents(self, kind: str, name: str, max_depth: int = 5) -> DependencyResult:
        """Breadth-first walk of everything transitively owned by (kind, name).

        This is the set a cascading delete of the object eventually removes.
        """
        result = DependencyResult()
        root = self._nodes.get((kind, name))
        if root is None:
            return result

        children: dict[tuple[str, str], list[GraphEdge]] = {}
        for edge in self._edges:
            if edge.edge_type == EdgeType.OWNER_REFERENCE:
                children.setdefault(edge.target.key, []).append(edge)

        seen = {root.key}
        queue: deque[tuple[GraphNode, int]] = deque([(root, 0)])
        while queue:
            current, depth = queue.popleft()
            result.depth_reached = max(result.depth_reached, depth)
            for edge in children.get(current.key, []):
                if edge.source.key in seen:
                    continue
                if depth + 1 > max_depth:
                    result.truncated = True
                    continue
                seen.add(edge.source.key)
                result.resources.append(edge.source)
                result.edges.append(edge)
                queue.append((edge.source, depth + 1))
        return result
