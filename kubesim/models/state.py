"""ClusterState: the aggregate root snapshot of the simulated cluster."""

from __future__ import annotations

import copy
from collections.abc import Iterator
from dataclasses import dataclass, field

from kubesim.models.events import EventType, SimEvent
from kubesim.models.objects import (
    ConfigMap,
    DaemonSet,
    Deployment,
    Job,
    KubeObject,
    Node,
    PersistentVolumeClaim,
    Pod,
    ReplicaSet,
    Secret,
    Service,
    StatefulSet,
)

# Canonical kind name -> ClusterState attribute holding that collection.
KIND_COLLECTIONS: dict[str, str] = {
    "Pod": "pods",
    "ReplicaSet": "replica_sets",
    "Deployment": "deployments",
    "StatefulSet": "stateful_sets",
    "DaemonSet": "daemon_sets",
    "Job": "jobs",
    "Service": "services",
    "Node": "nodes",
    "ConfigMap": "config_maps",
    "Secret": "secrets",
    "PersistentVolumeClaim": "persistent_volume_claims",
}

# Short and plural spellings accepted wherever a kind is named.
KIND_ALIASES: dict[str, str] = {
    "po": "Pod",
    "pod": "Pod",
    "pods": "Pod",
    "rs": "ReplicaSet",
    "replicaset": "ReplicaSet",
    "replicasets": "ReplicaSet",
    "deploy": "Deployment",
    "deployment": "Deployment",
    "deployments": "Deployment",
    "sts": "StatefulSet",
    "statefulset": "StatefulSet",
    "statefulsets": "StatefulSet",
    "ds": "DaemonSet",
    "daemonset": "DaemonSet",
    "daemonsets": "DaemonSet",
    "job": "Job",
    "jobs": "Job",
    "svc": "Service",
    "service": "Service",
    "services": "Service",
    "no": "Node",
    "node": "Node",
    "nodes": "Node",
    "cm": "ConfigMap",
    "configmap": "ConfigMap",
    "configmaps": "ConfigMap",
    "secret": "Secret",
    "secrets": "Secret",
    "pvc": "PersistentVolumeClaim",
    "persistentvolumeclaim": "PersistentVolumeClaim",
    "persistentvolumeclaims": "PersistentVolumeClaim",
}


def resolve_kind(kind: str) -> str | None:
    """Return the canonical kind for *kind* (alias or exact name), else None."""
    if kind in KIND_COLLECTIONS:
        return kind
    return KIND_ALIASES.get(kind.lower())


@dataclass
class ClusterState:
    """Snapshot of every collection in the simulated cluster.

    ``tick`` counts completed reconcile passes. ``clock`` is a logical
    clock advanced by :meth:`stamp`; it supplies uids, creation
    timestamps and event timestamps so that two runs over the same inputs
    produce byte-identical snapshots.
    """

    tick: int = 0
    clock: int = 0
    pods: list[Pod] = field(default_factory=list)
    replica_sets: list[ReplicaSet] = field(default_factory=list)
    deployments: list[Deployment] = field(default_factory=list)
    stateful_sets: list[StatefulSet] = field(default_factory=list)
    daemon_sets: list[DaemonSet] = field(default_factory=list)
    jobs: list[Job] = field(default_factory=list)
    services: list[Service] = field(default_factory=list)
    nodes: list[Node] = field(default_factory=list)
    config_maps: list[ConfigMap] = field(default_factory=list)
    secrets: list[Secret] = field(default_factory=list)
    persistent_volume_claims: list[PersistentVolumeClaim] = field(default_factory=list)
    events: list[SimEvent] = field(default_factory=list)

    def clone(self) -> ClusterState:
        """Deep-copy every object collection.

        Events are immutable, so the event list is copied shallowly.
        """
        collections = {attr: copy.deepcopy(getattr(self, attr)) for attr in KIND_COLLECTIONS.values()}
        return ClusterState(tick=self.tick, clock=self.clock, events=list(self.events), **collections)

    def stamp(self) -> int:
        """Advance the logical clock and return the new value."""
        self.clock += 1
        return self.clock

    def new_uid(self) -> tuple[str, int]:
        """Return a fresh ``(uid, creation_timestamp)`` pair."""
        ts = self.stamp()
        return f"{ts:08x}", ts

    def collection(self, kind: str) -> list[KubeObject]:
        attr = KIND_COLLECTIONS.get(kind)
        if attr is None:
            raise KeyError(f"Unknown kind: {kind}")
        return getattr(self, attr)  # type: ignore[no-any-return]

    def find(self, kind: str, name: str, include_terminating: bool = True) -> KubeObject | None:
        for obj in self.collection(kind):
            if obj.metadata.name != name:
                continue
            if obj.metadata.terminating and not include_terminating:
                continue
            return obj
        return None

    def find_by_uid(self, kind: str, uid: str) -> KubeObject | None:
        for obj in self.collection(kind):
            if obj.metadata.uid == uid:
                return obj
        return None

    def remove(self, obj: KubeObject) -> None:
        """Physically drop *obj* from its collection."""
        items = self.collection(obj.kind)
        items[:] = [o for o in items if o.metadata.uid != obj.metadata.uid]

    def all_objects(self) -> Iterator[KubeObject]:
        for kind in KIND_COLLECTIONS:
            yield from self.collection(kind)

    def record_event(
        self,
        tick: int,
        event_type: EventType,
        reason: str,
        obj: KubeObject,
        message: str,
    ) -> SimEvent:
        """Append a new event about *obj* to the feed and return it."""
        event = SimEvent(
            timestamp=self.stamp(),
            tick=tick,
            type=event_type,
            reason=reason,
            object_kind=obj.kind,
            object_name=obj.metadata.name,
            message=message,
        )
        self.events.append(event)
        return event

    def trim_events(self, limit: int) -> None:
        """Keep only the newest *limit* events."""
        if len(self.events) > limit:
            self.events = self.events[-limit:]
