"""Pod lifecycle controller: placement, phase transitions and failure injection.

Per pod, per tick:

* terminating pods enter ``Terminating`` and are removed once the grace
  period has elapsed (StatefulSet pods excepted, see statefulset.py);
* pods bound to a missing or NotReady node fail with ``NodeNotReady``;
  owned ones are marked for deletion so their controller replaces them;
* Pending pods wait for every ConfigMap and Secret they import and for
  every volume claim they mount to be Bound;
* Pending pods are bound to the least-allocated schedulable node, then
  start Running on the tick after creation unless a failure mode keeps
  them Pending (``ImagePullError``) or makes them crash after starting
  (``CrashLoopBackOff``, ``OOMKilled``);
* pods with ``completion_ticks`` (Job pods) finish as Succeeded that many
  ticks after creation, and pods that never restart fail on their first
  crash instead of looping.
"""

from __future__ import annotations

from collections import Counter

from kubesim.controllers.base import Controller, ReconcileContext
from kubesim.models.events import EventType, FailureMode, PodPhase
from kubesim.models.objects import Node, PersistentVolumeClaim, Pod, RestartPolicy
from kubesim.models.state import ClusterState

_TERMINAL = {PodPhase.FAILED, PodPhase.SUCCEEDED}
_NEVER_READY = {FailureMode.CRASH_LOOP_BACK_OFF, FailureMode.OOM_KILLED}
CONFIG_ERROR = "CreateContainerConfigError"
UNBOUND_CLAIM = "UnboundPersistentVolumeClaim"


def _allocations(state: ClusterState) -> Counter[str]:
    """Pods holding a slot on each node: bound, not terminating, not finished."""
    counts: Counter[str] = Counter()
    for pod in state.pods:
        if pod.spec.node_name and not pod.metadata.terminating and pod.status.phase not in _TERMINAL:
            counts[pod.spec.node_name] += 1
    return counts


class PodPhaseController(Controller):
    controller_id = "pod-lifecycle"

    def reconcile(self, state: ClusterState, ctx: ReconcileContext) -> None:
        nodes = {node.metadata.name: node for node in state.nodes}
        allocated = _allocations(state)
        for pod in list(state.pods):
            if pod.metadata.terminating:
                self._terminate(state, ctx, pod)
                continue
            node_name = pod.spec.node_name
            if node_name and pod.status.phase not in _TERMINAL:
                node = nodes.get(node_name)
                if node is None or not node.status.ready:
                    self._evict(state, ctx, pod, node_name)
                    continue
            mode = self.failure_mode(pod, ctx)
            if pod.status.phase == PodPhase.PENDING:
                self._advance_pending(state, ctx, pod, mode, allocated)
            elif pod.status.phase in (PodPhase.RUNNING, PodPhase.CRASH_LOOP_BACK_OFF):
                self._cycle(state, ctx, pod, mode)

    def update_status(self, state: ClusterState, ctx: ReconcileContext) -> None:
        allocated = _allocations(state)
        for node in state.nodes:
            node.status.allocated_pods = allocated[node.metadata.name]

    @staticmethod
    def failure_mode(pod: Pod, ctx: ReconcileContext) -> FailureMode | None:
        """Failure from the pod spec, else from the image rules, else None."""
        return pod.spec.failure_mode or ctx.failure_rules.get(pod.spec.image)

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def _terminate(self, state: ClusterState, ctx: ReconcileContext, pod: Pod) -> None:
        if pod.status.phase != PodPhase.TERMINATING:
            pod.status.phase = PodPhase.TERMINATING
            self.record(ctx, "terminate", f"pod {pod.metadata.name} terminating")
            self.emit(state, ctx, EventType.NORMAL, "Killing", pod, f"Stopping container {pod.spec.image}")

        ref = pod.metadata.owner_reference
        if ref is not None and ref.kind == "StatefulSet" and state.find_by_uid("StatefulSet", ref.uid) is not None:
            return
        deleted_at = pod.metadata.deletion_timestamp
        if deleted_at is not None and ctx.tick - deleted_at >= ctx.config.grace_period_ticks:
            state.remove(pod)
            self.record(ctx, "remove", f"pod {pod.metadata.name} removed")

    def _evict(self, state: ClusterState, ctx: ReconcileContext, pod: Pod, node_name: str) -> None:
        pod.status.phase = PodPhase.FAILED
        pod.status.reason = "NodeNotReady"
        pod.status.message = f"Node {node_name} is not ready"
        pod.status.ready = False
        pod.spec.node_name = None
        self.record(ctx, "evict", f"pod {pod.metadata.name} evicted from {node_name}")
        self.emit(state, ctx, EventType.WARNING, "NodeNotReady", pod, f"Node {node_name} is not ready; pod evicted")
        if pod.metadata.owner_reference is not None:
            self.mark_deleted(pod, ctx)

    def _advance_pending(
        self,
        state: ClusterState,
        ctx: ReconcileContext,
        pod: Pod,
        mode: FailureMode | None,
        allocated: Counter[str],
    ) -> None:
        if mode == FailureMode.IMAGE_PULL_ERROR:
            if pod.status.reason != FailureMode.IMAGE_PULL_ERROR.value:
                pod.status.reason = FailureMode.IMAGE_PULL_ERROR.value
                pod.status.message = f'Failed to pull image "{pod.spec.image}"'
                self.record(ctx, "image-pull-error", f"pod {pod.metadata.name} cannot pull {pod.spec.image}")
                self.emit(state, ctx, EventType.WARNING, "ImagePullError", pod, pod.status.message)
            return

        if not self._dependencies_ready(state, ctx, pod):
            return

        if pod.spec.node_name is None and state.nodes and not self._schedule(state, ctx, pod, allocated):
            return

        created = pod.status.tick_created
        if created is not None and ctx.tick <= created:
            return
        pod.status.phase = PodPhase.RUNNING
        if mode in _NEVER_READY:
            pod.status.ready = False
        elif pod.status.ready is None:
            pod.status.ready = True
        self.record(ctx, "start", f"pod {pod.metadata.name} running")
        self.emit(state, ctx, EventType.NORMAL, "Started", pod, f"Started container {pod.spec.image}")

    def _dependencies_ready(self, state: ClusterState, ctx: ReconcileContext, pod: Pod) -> bool:
        """Hold *pod* while an imported ConfigMap or Secret is missing or a claim is unbound."""
        for ref in pod.spec.env_from:
            if state.find(ref.kind, ref.name, include_terminating=False) is None:
                message = f'{ref.kind.lower()} "{ref.name}" not found'
                self._hold(state, ctx, pod, CONFIG_ERROR, message, "Failed", f"{CONFIG_ERROR}: {message}")
                return False
        for claim_name in pod.spec.volume_claims:
            claim = state.find("PersistentVolumeClaim", claim_name, include_terminating=False)
            if claim is None:
                message = f'persistentvolumeclaim "{claim_name}" not found'
            elif isinstance(claim, PersistentVolumeClaim) and claim.status.phase != "Bound":
                message = f'persistentvolumeclaim "{claim_name}" not bound'
            else:
                continue
            self._hold(state, ctx, pod, UNBOUND_CLAIM, message, "FailedScheduling", message)
            return False
        if pod.status.reason in (CONFIG_ERROR, UNBOUND_CLAIM):
            pod.status.reason = None
            pod.status.message = None
        return True

    def _hold(
        self,
        state: ClusterState,
        ctx: ReconcileContext,
        pod: Pod,
        reason: str,
        message: str,
        event_reason: str,
        event_message: str,
    ) -> None:
        if pod.status.reason == reason and pod.status.message == message:
            return
        pod.status.reason = reason
        pod.status.message = message
        self.record(ctx, "blocked", f"pod {pod.metadata.name}: {message}")
        self.emit(state, ctx, EventType.WARNING, event_reason, pod, event_message)

    def _schedule(self, state: ClusterState, ctx: ReconcileContext, pod: Pod, allocated: Counter[str]) -> bool:
        candidates: list[Node] = []
        unschedulable = not_ready = full = 0
        for node in state.nodes:
            if not node.status.ready:
                not_ready += 1
            elif node.spec.unschedulable:
                unschedulable += 1
            elif allocated[node.metadata.name] >= node.spec.capacity_pods:
                full += 1
            else:
                candidates.append(node)

        if not candidates:
            parts = []
            if not_ready:
                parts.append(f"{not_ready} node(s) had NotReady condition")
            if unschedulable:
                parts.append(f"{unschedulable} node(s) were unschedulable")
            if full:
                parts.append(f"{full} node(s) had too many pods")
            message = f"0/{len(state.nodes)} nodes are available: {', '.join(parts)}."
            if pod.status.reason != "Unschedulable" or pod.status.message != message:
                pod.status.reason = "Unschedulable"
                pod.status.message = message
                self.record(ctx, "unschedulable", f"pod {pod.metadata.name}: {message}")
                self.emit(state, ctx, EventType.WARNING, "FailedScheduling", pod, message)
            return False

        # min() keeps the first of equally loaded nodes, so ties go to list order
        node = min(candidates, key=lambda n: allocated[n.metadata.name])
        pod.spec.node_name = node.metadata.name
        allocated[node.metadata.name] += 1
        if pod.status.reason == "Unschedulable":
            pod.status.reason = None
            pod.status.message = None
        self.record(ctx, "bind", f"pod {pod.metadata.name} -> {node.metadata.name}")
        self.emit(state, ctx, EventType.NORMAL, "Scheduled", pod, f"Successfully assigned {pod.metadata.name} to {node.metadata.name}")
        return True

    def _cycle(self, state: ClusterState, ctx: ReconcileContext, pod: Pod, mode: FailureMode | None) -> None:
        if mode not in _NEVER_READY:
            self._complete(state, ctx, pod)
            return
        if pod.spec.restart_policy == RestartPolicy.NEVER and pod.status.phase == PodPhase.RUNNING:
            self._fail(state, ctx, pod, mode)
            return
        if pod.status.phase == PodPhase.CRASH_LOOP_BACK_OFF:
            pod.status.phase = PodPhase.RUNNING
            self.record(ctx, "restart", f"pod {pod.metadata.name} restarted ({pod.status.restart_count})")
            self.emit(state, ctx, EventType.NORMAL, "Started", pod, f"Restarted container {pod.spec.image}")
            return

        pod.status.restart_count += 1
        if mode == FailureMode.OOM_KILLED:
            pod.status.reason = FailureMode.OOM_KILLED.value
            pod.status.message = "Container exceeded its memory limit"
            if pod.metadata.owner_reference is None:
                pod.status.phase = PodPhase.FAILED
                self.record(ctx, "oom-killed", f"pod {pod.metadata.name} failed (OOMKilled)")
            else:
                pod.status.phase = PodPhase.CRASH_LOOP_BACK_OFF
                self.record(ctx, "oom-killed", f"pod {pod.metadata.name} OOMKilled, restart {pod.status.restart_count}")
            self.emit(state, ctx, EventType.WARNING, "OOMKilled", pod, "Container exceeded its memory limit and was killed")
            return

        pod.status.phase = PodPhase.CRASH_LOOP_BACK_OFF
        pod.status.reason = FailureMode.CRASH_LOOP_BACK_OFF.value
        pod.status.message = "Back-off restarting failed container"
        self.record(ctx, "crash", f"pod {pod.metadata.name} crashed, restart {pod.status.restart_count}")
        self.emit(state, ctx, EventType.WARNING, "BackOff", pod, "Back-off restarting failed container")

    def _complete(self, state: ClusterState, ctx: ReconcileContext, pod: Pod) -> None:
        ticks = pod.spec.completion_ticks
        if ticks is None or pod.status.phase != PodPhase.RUNNING:
            return
        if ctx.tick - (pod.status.tick_created or 0) < ticks:
            return
        pod.status.phase = PodPhase.SUCCEEDED
        pod.status.reason = "Completed"
        pod.status.ready = False
        self.record(ctx, "complete", f"pod {pod.metadata.name} succeeded")
        self.emit(state, ctx, EventType.NORMAL, "Completed", pod, "Pod completed successfully")

    def _fail(self, state: ClusterState, ctx: ReconcileContext, pod: Pod, mode: FailureMode | None) -> None:
        pod.status.phase = PodPhase.FAILED
        pod.status.ready = False
        if mode == FailureMode.OOM_KILLED:
            pod.status.reason = FailureMode.OOM_KILLED.value
            pod.status.message = "Container exceeded its memory limit"
        else:
            pod.status.reason = "Error"
            pod.status.message = "Container exited with a non-zero status"
        self.record(ctx, "fail", f"pod {pod.metadata.name} failed ({pod.status.reason})")
        self.emit(state, ctx, EventType.WARNING, "Failed", pod, pod.status.message)
