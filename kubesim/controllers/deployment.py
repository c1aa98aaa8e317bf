"""Deployment controller: owns ReplicaSets and orchestrates rollouts.

A Deployment keeps exactly one "active" ReplicaSet, the one whose
``pod-template-hash`` label equals the hash of the Deployment's current
template. Every other owned ReplicaSet is "old" and is scaled toward zero.

RollingUpdate
    The active ReplicaSet grows while the sum of desired replicas stays
    within ``replicas + maxSurge``. Old ReplicaSets shrink, oldest first,
    only while ``ready(old) + ready(new) >= replicas - maxUnavailable``
    holds; unready old replicas can always be dropped.
Recreate
    Old ReplicaSets go to zero and every old pod must be gone before the
    active ReplicaSet is scaled up.

When the rollout completes, old ReplicaSets beyond the revision history
limit are deleted and their pods follow by cascade.
"""

from __future__ import annotations

import copy

from kubesim.controllers.base import Controller, ReconcileContext
from kubesim.controllers.replicaset import ReplicaSetController
from kubesim.models.events import EventType
from kubesim.models.objects import (
    REVISION_ANNOTATION,
    TEMPLATE_HASH_LABEL,
    Deployment,
    DeploymentCondition,
    ObjectMeta,
    Pod,
    PodTemplate,
    ReplicaSet,
    ReplicaSetSpec,
    StrategyType,
)
from kubesim.models.state import ClusterState
from kubesim.selectors import owned_by, owner_ref, pod_ready, template_hash


def revision_of(obj: ReplicaSet | Deployment) -> int:
    return int(obj.metadata.annotations.get(REVISION_ANNOTATION, "0"))


def kept_pods(state: ClusterState, rs: ReplicaSet) -> list[Pod]:
    """Pods of *rs* that survive its own next sync, newest first.

    When the ReplicaSet holds more pods than ``spec.replicas`` the newest
    extras are about to be deleted by the ReplicaSet controller, so they
    are excluded here.
    """
    pods = sorted(ReplicaSetController.owned_pods(state, rs), key=lambda p: p.metadata.creation_timestamp, reverse=True)
    excess = len(pods) - rs.spec.replicas
    return pods[excess:] if excess > 0 else pods


class DeploymentController(Controller):
    """Reconciles Deployments into ReplicaSets."""

    controller_id = "deployment-controller"

    def reconcile(self, state: ClusterState, ctx: ReconcileContext) -> None:
        for dep in list(state.deployments):
            if dep.metadata.terminating:
                self._finalize(state, ctx, dep)
            else:
                self._sync(state, ctx, dep)

    # ------------------------------------------------------------------
    # Sync
    # ------------------------------------------------------------------

    def _sync(self, state: ClusterState, ctx: ReconcileContext, dep: Deployment) -> None:
        owned = self._owned(state, dep)
        live = [rs for rs in owned if not rs.metadata.terminating]
        current_hash = template_hash(dep.spec.template)
        active = next((rs for rs in live if rs.metadata.labels.get(TEMPLATE_HASH_LABEL) == current_hash), None)

        if active is None:
            active = self._create_replica_set(state, ctx, dep, current_hash, owned)
        else:
            self._maybe_rollback(state, ctx, dep, active, owned)

        old = sorted((rs for rs in live if rs is not active), key=lambda rs: rs.metadata.creation_timestamp)
        if dep.spec.strategy.type == StrategyType.RECREATE:
            self._recreate(state, ctx, dep, active, old, owned)
        else:
            self._rolling_update(state, ctx, dep, active, old)

        complete, _ = self._rollout_progress(state, dep, active, owned)
        if complete:
            self._cleanup(state, ctx, dep, old)

    def _owned(self, state: ClusterState, dep: Deployment) -> list[ReplicaSet]:
        return [rs for rs in state.replica_sets if owned_by(rs, dep.metadata.uid)]

    def _create_replica_set(
        self,
        state: ClusterState,
        ctx: ReconcileContext,
        dep: Deployment,
        pod_hash: str,
        owned: list[ReplicaSet],
    ) -> ReplicaSet:
        name = f"{dep.metadata.name}-{pod_hash}"
        suffix = 1
        while state.find("ReplicaSet", name) is not None:
            name = f"{dep.metadata.name}-{pod_hash}-{suffix}"
            suffix += 1

        revision = max([revision_of(dep)] + [revision_of(rs) for rs in owned]) + 1
        labels = {**dep.spec.template.labels, TEMPLATE_HASH_LABEL: pod_hash}
        uid, ts = state.new_uid()
        rs = ReplicaSet(
            metadata=ObjectMeta(
                name=name,
                uid=uid,
                creation_timestamp=ts,
                labels=dict(labels),
                annotations={REVISION_ANNOTATION: str(revision)},
                owner_reference=owner_ref(dep),
            ),
            spec=ReplicaSetSpec(
                replicas=0,
                selector={**dep.spec.selector, TEMPLATE_HASH_LABEL: pod_hash},
                template=PodTemplate(labels=labels, spec=copy.deepcopy(dep.spec.template.spec)),
            ),
        )
        state.replica_sets.append(rs)
        dep.metadata.annotations[REVISION_ANNOTATION] = str(revision)
        self.record(ctx, "create", f"{dep.metadata.name} created ReplicaSet {name} (revision {revision})")
        self.emit(state, ctx, EventType.NORMAL, "ScalingReplicaSet", dep, f"Created new replica set {name}")
        return rs

    def _maybe_rollback(
        self,
        state: ClusterState,
        ctx: ReconcileContext,
        dep: Deployment,
        active: ReplicaSet,
        owned: list[ReplicaSet],
    ) -> None:
        latest = max(revision_of(rs) for rs in owned)
        if revision_of(active) >= latest:
            return
        revision = latest + 1
        previous = revision_of(active)
        active.metadata.annotations[REVISION_ANNOTATION] = str(revision)
        dep.metadata.annotations[REVISION_ANNOTATION] = str(revision)
        self.record(ctx, "rollback", f"{dep.metadata.name} reactivated ReplicaSet {active.metadata.name}")
        self.emit(
            state,
            ctx,
            EventType.NORMAL,
            "DeploymentRollback",
            dep,
            f"Rolled back to replica set {active.metadata.name} (revision {previous} is now {revision})",
        )

    def _scale(
        self,
        state: ClusterState,
        ctx: ReconcileContext,
        dep: Deployment,
        rs: ReplicaSet,
        replicas: int,
    ) -> None:
        previous = rs.spec.replicas
        if previous == replicas:
            return
        rs.spec.replicas = replicas
        direction = "up" if replicas > previous else "down"
        self.record(ctx, f"scale-{direction}", f"{rs.metadata.name} {previous} -> {replicas}")
        self.emit(
            state,
            ctx,
            EventType.NORMAL,
            "ScalingReplicaSet",
            dep,
            f"Scaled {direction} replica set {rs.metadata.name} to {replicas} from {previous}",
        )

    def _rolling_update(
        self,
        state: ClusterState,
        ctx: ReconcileContext,
        dep: Deployment,
        active: ReplicaSet,
        old: list[ReplicaSet],
    ) -> None:
        desired = dep.spec.replicas
        if not old:
            self._scale(state, ctx, dep, active, desired)
            return

        strategy = dep.spec.strategy
        total = active.spec.replicas + sum(rs.spec.replicas for rs in old)
        if active.spec.replicas > desired:
            target = desired
        else:
            target = min(desired, active.spec.replicas + max(0, desired + strategy.max_surge - total))
        self._scale(state, ctx, dep, active, target)

        ready = sum(1 for p in kept_pods(state, active) if pod_ready(p))
        ready += sum(1 for rs in old for p in kept_pods(state, rs) if pod_ready(p))
        budget = ready - (desired - strategy.max_unavailable)
        for rs in old:
            if rs.spec.replicas == 0:
                continue
            removable, budget = self._removable(state, rs, budget)
            if removable:
                self._scale(state, ctx, dep, rs, rs.spec.replicas - removable)

    @staticmethod
    def _removable(state: ClusterState, rs: ReplicaSet, budget: int) -> tuple[int, int]:
        """How far *rs* can shrink without spending more than *budget* ready pods.

        Walks pods in the order the ReplicaSet controller deletes them
        (newest first). Replicas that do not exist yet and unready pods are
        free; each ready pod costs one unit of budget.
        """
        pods = kept_pods(state, rs)
        count = max(0, rs.spec.replicas - len(pods))
        for pod in pods:
            if pod_ready(pod):
                if budget <= 0:
                    break
                budget -= 1
            count += 1
        return count, budget

    def _recreate(
        self,
        state: ClusterState,
        ctx: ReconcileContext,
        dep: Deployment,
        active: ReplicaSet,
        old: list[ReplicaSet],
        owned: list[ReplicaSet],
    ) -> None:
        for rs in old:
            self._scale(state, ctx, dep, rs, 0)
        old_uids = {rs.metadata.uid for rs in owned if rs is not active}
        waiting = any(p.metadata.owner_reference and p.metadata.owner_reference.uid in old_uids for p in state.pods)
        if not waiting:
            self._scale(state, ctx, dep, active, dep.spec.replicas)

    def _cleanup(self, state: ClusterState, ctx: ReconcileContext, dep: Deployment, old: list[ReplicaSet]) -> None:
        limit = ctx.config.revision_history_limit
        retired = sorted((rs for rs in old if rs.spec.replicas == 0), key=revision_of, reverse=True)
        for rs in retired[limit:]:
            self.mark_deleted(rs, ctx)
            self.record(ctx, "delete", f"{dep.metadata.name} deleting old ReplicaSet {rs.metadata.name}")
            self.emit(state, ctx, EventType.NORMAL, "DeletingReplicaSet", dep, f"Deleted old replica set {rs.metadata.name}")

    def _finalize(self, state: ClusterState, ctx: ReconcileContext, dep: Deployment) -> None:
        owned = self._owned(state, dep)
        for rs in owned:
            if not rs.metadata.terminating:
                self.mark_deleted(rs, ctx)
                self.record(ctx, "delete", f"{dep.metadata.name} deleting ReplicaSet {rs.metadata.name} (cascade)")
        if not owned:
            state.remove(dep)
            self.record(ctx, "remove", f"Deployment {dep.metadata.name} removed")

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    def _rollout_progress(
        self,
        state: ClusterState,
        dep: Deployment,
        active: ReplicaSet,
        owned: list[ReplicaSet],
    ) -> tuple[bool, str | None]:
        """Return ``(complete, stall_reason)`` for the rollout toward *active*."""
        desired = dep.spec.replicas
        old = [rs for rs in owned if rs is not active]
        old_uids = {rs.metadata.uid for rs in old}
        old_pods = [p for p in state.pods if p.metadata.owner_reference and p.metadata.owner_reference.uid in old_uids]
        new_pods = [p for p in state.pods if owned_by(p, active.metadata.uid) and not p.metadata.terminating]
        new_ready = sum(1 for p in new_pods if pod_ready(p))

        complete = (
            active.spec.replicas == desired
            and new_ready >= desired
            and all(rs.spec.replicas == 0 for rs in old if not rs.metadata.terminating)
            and not old_pods
        )
        if complete:
            return True, None
        for pod in new_pods:
            if not pod_ready(pod) and pod.status.reason:
                return False, f"pod {pod.metadata.name}: {pod.status.reason}"
        return False, None

    def update_status(self, state: ClusterState, ctx: ReconcileContext) -> None:
        for dep in state.deployments:
            if dep.metadata.terminating:
                continue
            owned = self._owned(state, dep)
            current_hash = template_hash(dep.spec.template)
            active = next(
                (
                    rs
                    for rs in owned
                    if not rs.metadata.terminating and rs.metadata.labels.get(TEMPLATE_HASH_LABEL) == current_hash
                ),
                None,
            )
            pods = [p for rs in owned for p in ReplicaSetController.owned_pods(state, rs)]
            ready = sum(1 for p in pods if pod_ready(p))
            dep.status.replicas = len(pods)
            dep.status.ready_replicas = ready
            dep.status.available_replicas = ready
            dep.status.updated_replicas = len(ReplicaSetController.owned_pods(state, active)) if active else 0
            if active is None:
                continue
            self._update_conditions(state, ctx, dep, active, owned, ready)

    def _update_conditions(
        self,
        state: ClusterState,
        ctx: ReconcileContext,
        dep: Deployment,
        active: ReplicaSet,
        owned: list[ReplicaSet],
        ready: int,
    ) -> None:
        floor = max(0, dep.spec.replicas - dep.spec.strategy.max_unavailable)
        if ready >= floor:
            available = DeploymentCondition("Available", "True", "MinimumReplicasAvailable", "Deployment has minimum availability.")
        else:
            available = DeploymentCondition(
                "Available", "False", "MinimumReplicasUnavailable", "Deployment does not have minimum availability."
            )

        complete, stall_reason = self._rollout_progress(state, dep, active, owned)
        previous = dep.status.condition("Progressing")
        name = active.metadata.name
        if complete:
            progressing = DeploymentCondition(
                "Progressing", "True", "NewReplicaSetAvailable", f'ReplicaSet "{name}" has successfully progressed.'
            )
            if previous is None or previous.reason != "NewReplicaSetAvailable":
                self.record(ctx, "rollout-complete", f"{dep.metadata.name} rolled out {name}")
                self.emit(state, ctx, EventType.NORMAL, "RolloutComplete", dep, f"Deployment {dep.metadata.name} rolled out {name}")
        elif stall_reason is not None:
            progressing = DeploymentCondition(
                "Progressing", "False", "RolloutStalled", f'ReplicaSet "{name}" cannot progress: {stall_reason}'
            )
            if previous is None or previous.reason != "RolloutStalled":
                self.record(ctx, "rollout-stalled", f"{dep.metadata.name} stalled on {name}: {stall_reason}")
                self.emit(state, ctx, EventType.WARNING, "RolloutStalled", dep, f"Rollout of {name} stalled: {stall_reason}")
        else:
            progressing = DeploymentCondition(
                "Progressing", "True", "ReplicaSetUpdated", f'ReplicaSet "{name}" is progressing.'
            )
        dep.status.conditions = [available, progressing]
