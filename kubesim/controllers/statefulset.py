"""StatefulSet controller: ordered, one-at-a-time pod management.

Pods are named ``<set>-<ordinal>`` and the ordinals present (terminating
pods included) always form the contiguous prefix ``[0, k)``:

* scale up creates ordinal ``k`` only when every lower ordinal is Running
  and ready and none is terminating;
* scale down marks the highest ordinal, and the next one is touched only
  after that pod has been removed;
* a pod deleted out from under the set keeps its slot while terminating
  and is recreated under the same name (with a new uid) once its grace
  period is over and its predecessors are ready. The highest ordinal is
  reaped as soon as its grace period is over either way.

Terminating pods of a StatefulSet are reaped here rather than by the pod
phase controller, so removal order stays highest-ordinal first.
"""

from __future__ import annotations

from kubesim.controllers.base import Controller, ReconcileContext
from kubesim.invariants import InvariantViolation, statefulset_ordinals
from kubesim.models.events import EventType
from kubesim.models.objects import ObjectMeta, PersistentVolumeClaim, Pod, StatefulSet
from kubesim.models.state import ClusterState
from kubesim.selectors import owned_by, pod_ready


class StatefulSetController(Controller):
    controller_id = "statefulset-controller"

    def reconcile(self, state: ClusterState, ctx: ReconcileContext) -> None:
        for sts in list(state.stateful_sets):
            pods = self._pods_by_ordinal(state, sts)
            if sts.metadata.terminating:
                self._finalize(state, ctx, sts, pods)
            else:
                self._sync(state, ctx, sts, pods)

    def update_status(self, state: ClusterState, ctx: ReconcileContext) -> None:
        for sts in state.stateful_sets:
            live = [p for p in state.pods if owned_by(p, sts.metadata.uid) and not p.metadata.terminating]
            sts.status.replicas = len(live)
            sts.status.ready_replicas = sum(1 for p in live if pod_ready(p))

    def _pods_by_ordinal(self, state: ClusterState, sts: StatefulSet) -> list[Pod]:
        ordinals = statefulset_ordinals(state, sts.metadata.name, sts.metadata.uid)
        if ordinals != list(range(len(ordinals))):
            raise InvariantViolation("statefulset-contiguity", f"StatefulSet/{sts.metadata.name} has ordinals {ordinals}")
        by_name = {p.metadata.name: p for p in state.pods if owned_by(p, sts.metadata.uid)}
        return [by_name[f"{sts.metadata.name}-{i}"] for i in range(len(ordinals))]

    @staticmethod
    def _expired(pod: Pod, ctx: ReconcileContext) -> bool:
        ts = pod.metadata.deletion_timestamp
        return ts is not None and ctx.tick - ts >= ctx.config.grace_period_ticks

    def _sync(self, state: ClusterState, ctx: ReconcileContext, sts: StatefulSet, pods: list[Pod]) -> None:
        name = sts.metadata.name
        if len(pods) > sts.spec.replicas:
            top = pods[-1]
            if not top.metadata.terminating:
                self.mark_deleted(top, ctx)
                self.record(ctx, "delete", f"{name} deleting {top.metadata.name} (scale down)")
                self.emit(
                    state,
                    ctx,
                    EventType.NORMAL,
                    "SuccessfulDelete",
                    sts,
                    f"delete Pod {top.metadata.name} in StatefulSet {name} successful",
                )
            elif self._expired(top, ctx):
                self._reap(state, ctx, top)
            return

        for ordinal, pod in enumerate(pods):
            if not pod.metadata.terminating:
                continue
            if not self._expired(pod, ctx):
                return
            if all(pod_ready(p) for p in pods[:ordinal]):
                self._reap(state, ctx, pod)
                self._create(state, ctx, sts, ordinal)
            elif ordinal == len(pods) - 1:
                # Dropping the top ordinal keeps the prefix contiguous; the
                # scale-up path recreates it once predecessors are ready.
                self._reap(state, ctx, pod)
            return

        if len(pods) < sts.spec.replicas and all(pod_ready(p) for p in pods):
            self._create(state, ctx, sts, len(pods))

    def _create(self, state: ClusterState, ctx: ReconcileContext, sts: StatefulSet, ordinal: int) -> None:
        name = sts.metadata.name
        pod_name = f"{name}-{ordinal}"
        if state.find("Pod", pod_name) is not None:
            self.record(ctx, "create-failed", f"{name} cannot create {pod_name}: name taken")
            self.emit(
                state,
                ctx,
                EventType.WARNING,
                "FailedCreate",
                sts,
                f"create Pod {pod_name} in StatefulSet {name} failed: pod {pod_name} already exists",
            )
            return
        claims = [self._ensure_claim(state, ctx, sts, template, ordinal) for template in sts.spec.volume_claim_templates]
        self.new_pod(state, ctx, pod_name, sts.spec.template, sts, volume_claims=claims or None)
        self.record(ctx, "create", f"{name} created {pod_name}")
        self.emit(state, ctx, EventType.NORMAL, "SuccessfulCreate", sts, f"create Pod {pod_name} in StatefulSet {name} successful")

    def _ensure_claim(self, state: ClusterState, ctx: ReconcileContext, sts: StatefulSet, template: str, ordinal: int) -> str:
        claim_name = f"{template}-{sts.metadata.name}-{ordinal}"
        if state.find("PersistentVolumeClaim", claim_name) is None:
            uid, ts = state.new_uid()
            claim = PersistentVolumeClaim(
                metadata=ObjectMeta(name=claim_name, uid=uid, creation_timestamp=ts, labels=dict(sts.spec.selector)),
            )
            state.persistent_volume_claims.append(claim)
            self.record(ctx, "create", f"{sts.metadata.name} created claim {claim_name}")
            self.emit(
                state,
                ctx,
                EventType.NORMAL,
                "SuccessfulCreate",
                sts,
                f"create Claim {claim_name} Pod {sts.metadata.name}-{ordinal} in StatefulSet {sts.metadata.name} success",
            )
        return claim_name

    def _reap(self, state: ClusterState, ctx: ReconcileContext, pod: Pod) -> None:
        state.remove(pod)
        self.record(ctx, "remove", f"pod {pod.metadata.name} removed")

    def _finalize(self, state: ClusterState, ctx: ReconcileContext, sts: StatefulSet, pods: list[Pod]) -> None:
        for pod in pods:
            if not pod.metadata.terminating:
                self.mark_deleted(pod, ctx)
                self.record(ctx, "delete", f"{sts.metadata.name} deleting {pod.metadata.name} (cascade)")
        # Reap from the top so the remaining ordinals stay contiguous.
        while pods and self._expired(pods[-1], ctx):
            self._reap(state, ctx, pods.pop())
        if not pods:
            state.remove(sts)
            self.record(ctx, "remove", f"StatefulSet {sts.metadata.name} removed")
