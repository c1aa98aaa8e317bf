"""DaemonSet controller: one pod per Ready node.

Pods are named ``<set>-<node>`` and are created already bound to their
node, so they bypass the scheduler (cordoned nodes included). Pods on a
node that is gone or no longer Ready are deleted. When the pod template
changes, out-of-date pods are replaced one at a time, and only while
every other pod of the set is ready.
"""

from __future__ import annotations

from kubesim.controllers.base import Controller, ReconcileContext
from kubesim.models.events import EventType
from kubesim.models.objects import DaemonSet, Pod
from kubesim.models.state import ClusterState
from kubesim.selectors import owned_by, pod_ready, template_hash

REVISION_HASH_LABEL = "controller-revision-hash"


class DaemonSetController(Controller):
    controller_id = "daemonset-controller"

    def reconcile(self, state: ClusterState, ctx: ReconcileContext) -> None:
        ready_nodes = [node.metadata.name for node in state.nodes if node.status.ready]
        for ds in list(state.daemon_sets):
            if ds.metadata.terminating:
                self._finalize(state, ctx, ds)
                continue
            self._drop_unready(state, ctx, ds, set(ready_nodes))
            self._fill(state, ctx, ds, ready_nodes)
            self._roll(state, ctx, ds)

    def update_status(self, state: ClusterState, ctx: ReconcileContext) -> None:
        ready_nodes = sum(1 for node in state.nodes if node.status.ready)
        for ds in state.daemon_sets:
            live = self.owned_pods(state, ds)
            ds.status.desired_number_scheduled = ready_nodes
            ds.status.current_number_scheduled = len(live)
            ds.status.number_ready = sum(1 for p in live if pod_ready(p))

    @staticmethod
    def owned_pods(state: ClusterState, ds: DaemonSet) -> list[Pod]:
        return [p for p in state.pods if owned_by(p, ds.metadata.uid) and not p.metadata.terminating]

    def _drop_unready(self, state: ClusterState, ctx: ReconcileContext, ds: DaemonSet, ready_nodes: set[str]) -> None:
        for pod in self.owned_pods(state, ds):
            node_name = pod.spec.node_name
            if node_name is None or node_name in ready_nodes:
                continue
            self.mark_deleted(pod, ctx)
            self.record(ctx, "delete", f"{ds.metadata.name} deleting {pod.metadata.name} (node {node_name} not ready)")
            self.emit(
                state,
                ctx,
                EventType.WARNING,
                "NodeNotReady",
                pod,
                f"Deleting pod {pod.metadata.name} from unready node {node_name}",
            )

    def _fill(self, state: ClusterState, ctx: ReconcileContext, ds: DaemonSet, ready_nodes: list[str]) -> None:
        covered = {p.spec.node_name for p in self.owned_pods(state, ds)}
        revision = template_hash(ds.spec.template)
        for node_name in ready_nodes:
            if node_name in covered:
                continue
            name = f"{ds.metadata.name}-{node_name}"
            existing = state.find("Pod", name)
            if existing is not None:
                # Our own pod still terminating holds the name until it is reaped.
                if not owned_by(existing, ds.metadata.uid):
                    self.record(ctx, "create-failed", f"{ds.metadata.name} cannot create {name}: name taken")
                    self.emit(
                        state,
                        ctx,
                        EventType.WARNING,
                        "FailedCreate",
                        ds,
                        f"create Pod {name} in DaemonSet {ds.metadata.name} failed: pod {name} already exists",
                    )
                continue
            pod = self.new_pod(state, ctx, name, ds.spec.template, ds, node_name=node_name)
            pod.metadata.labels[REVISION_HASH_LABEL] = revision
            self.record(ctx, "create", f"{ds.metadata.name} created {name} on {node_name}")
            self.emit(state, ctx, EventType.NORMAL, "SuccessfulCreate", ds, f"Created pod: {name} on node {node_name}")

    def _roll(self, state: ClusterState, ctx: ReconcileContext, ds: DaemonSet) -> None:
        revision = template_hash(ds.spec.template)
        pods = self.owned_pods(state, ds)
        stale = [p for p in pods if p.metadata.labels.get(REVISION_HASH_LABEL) != revision]
        if not stale:
            return
        if any(p.metadata.terminating for p in state.pods if owned_by(p, ds.metadata.uid)):
            return
        if not all(pod_ready(p) for p in pods if p not in stale):
            return
        pod = min(stale, key=lambda p: p.metadata.name)
        self.mark_deleted(pod, ctx)
        self.record(ctx, "delete", f"{ds.metadata.name} replacing {pod.metadata.name} (template changed)")
        self.emit(state, ctx, EventType.NORMAL, "SuccessfulDelete", ds, f"Deleted pod: {pod.metadata.name}")

    def _finalize(self, state: ClusterState, ctx: ReconcileContext, ds: DaemonSet) -> None:
        present = [p for p in state.pods if owned_by(p, ds.metadata.uid)]
        for pod in present:
            if not pod.metadata.terminating:
                self.mark_deleted(pod, ctx)
                self.record(ctx, "delete", f"{ds.metadata.name} deleting {pod.metadata.name} (cascade)")
                self.emit(state, ctx, EventType.NORMAL, "SuccessfulDelete", ds, f"Deleted pod: {pod.metadata.name}")
        if not present:
            state.remove(ds)
            self.record(ctx, "remove", f"DaemonSet {ds.metadata.name} removed")
