"""ReplicaSet controller: keeps the count of owned pods equal to spec.replicas."""

from __future__ import annotations

from kubesim.controllers.base import Controller, ReconcileContext
from kubesim.models.events import EventType
from kubesim.models.objects import Pod, ReplicaSet
from kubesim.models.state import ClusterState
from kubesim.selectors import labels_match, owned_by, owner_ref, pod_ready, pod_suffix


def unique_pod_name(state: ClusterState, prefix: str, uid: str) -> str:
    """``<prefix>-<5 hex>`` derived from *uid*, re-salted on the rare collision."""
    salt = uid
    while True:
        name = f"{prefix}-{pod_suffix(salt)}"
        if state.find("Pod", name) is None:
            return name
        salt += "'"


class ReplicaSetController(Controller):
    """Diff owned pods against ``spec.replicas``.

    Owned pods are those whose owner reference carries this ReplicaSet's
    uid and whose labels still match its selector. A shortfall is filled
    with new Pending pods; an excess is marked for deletion newest first.
    """

    controller_id = "replicaset-controller"

    def reconcile(self, state: ClusterState, ctx: ReconcileContext) -> None:
        for rs in list(state.replica_sets):
            if rs.metadata.terminating:
                self._finalize(state, ctx, rs)
                continue
            self._release_mismatched(state, ctx, rs)
            self._adopt_orphans(state, ctx, rs)
            self._sync(state, ctx, rs)

    def update_status(self, state: ClusterState, ctx: ReconcileContext) -> None:
        for rs in state.replica_sets:
            pods = self.owned_pods(state, rs)
            rs.status.replicas = len(pods)
            rs.status.ready_replicas = sum(1 for p in pods if pod_ready(p))

    @staticmethod
    def owned_pods(state: ClusterState, rs: ReplicaSet) -> list[Pod]:
        return [
            p
            for p in state.pods
            if owned_by(p, rs.metadata.uid)
            and labels_match(p.metadata.labels, rs.spec.selector)
            and not p.metadata.terminating
        ]

    def _release_mismatched(self, state: ClusterState, ctx: ReconcileContext, rs: ReplicaSet) -> None:
        for pod in state.pods:
            if owned_by(pod, rs.metadata.uid) and not labels_match(pod.metadata.labels, rs.spec.selector):
                if pod.metadata.terminating:
                    continue
                pod.metadata.owner_reference = None
                self.record(ctx, "release", f"{rs.metadata.name} released pod {pod.metadata.name}")
                self.emit(state, ctx, EventType.NORMAL, "Released", pod, f"Released from ReplicaSet {rs.metadata.name}")

    def _adopt_orphans(self, state: ClusterState, ctx: ReconcileContext, rs: ReplicaSet) -> None:
        for pod in state.pods:
            if pod.metadata.owner_reference is not None or pod.metadata.terminating:
                continue
            if not labels_match(pod.metadata.labels, rs.spec.selector):
                continue
            pod.metadata.owner_reference = owner_ref(rs)
            self.record(ctx, "adopt", f"{rs.metadata.name} adopted orphan pod {pod.metadata.name}")
            self.emit(state, ctx, EventType.NORMAL, "Adopted", pod, f"Adopted by ReplicaSet {rs.metadata.name}")

    def _sync(self, state: ClusterState, ctx: ReconcileContext, rs: ReplicaSet) -> None:
        matching = self.owned_pods(state, rs)
        diff = rs.spec.replicas - len(matching)
        if diff > 0:
            for _ in range(diff):
                uid, ts = state.new_uid()
                name = unique_pod_name(state, rs.metadata.name, uid)
                self.new_pod(state, ctx, name, rs.spec.template, rs, uid=uid, creation_timestamp=ts)
                self.record(ctx, "create", f"{rs.metadata.name} created pod {name}")
                self.emit(state, ctx, EventType.NORMAL, "SuccessfulCreate", rs, f"Created pod: {name}")
        elif diff < 0:
            # sorted() is stable, so equal timestamps keep insertion order
            newest_first = sorted(matching, key=lambda p: p.metadata.creation_timestamp, reverse=True)
            for pod in newest_first[:-diff]:
                self.mark_deleted(pod, ctx)
                self.record(ctx, "delete", f"{rs.metadata.name} deleting pod {pod.metadata.name}")
                self.emit(state, ctx, EventType.NORMAL, "SuccessfulDelete", rs, f"Deleted pod: {pod.metadata.name}")

    def _finalize(self, state: ClusterState, ctx: ReconcileContext, rs: ReplicaSet) -> None:
        present = [p for p in state.pods if owned_by(p, rs.metadata.uid)]
        for pod in present:
            if not pod.metadata.terminating:
                self.mark_deleted(pod, ctx)
                self.record(ctx, "delete", f"{rs.metadata.name} deleting pod {pod.metadata.name} (cascade)")
                self.emit(state, ctx, EventType.NORMAL, "SuccessfulDelete", rs, f"Deleted pod: {pod.metadata.name}")
        if not present:
            state.remove(rs)
            self.record(ctx, "remove", f"ReplicaSet {rs.metadata.name} removed")
