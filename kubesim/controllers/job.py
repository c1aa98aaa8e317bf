"""Job controller: run pods to a fixed number of successful completions."""

from __future__ import annotations

from kubesim.controllers.base import Controller, ReconcileContext
from kubesim.controllers.replicaset import unique_pod_name
from kubesim.models.events import EventType, PodPhase
from kubesim.models.objects import Job, JobCondition, Pod
from kubesim.models.state import ClusterState
from kubesim.selectors import owned_by

_FINISHED = {PodPhase.SUCCEEDED, PodPhase.FAILED}


class JobController(Controller):
    """Keep ``min(parallelism, completions - succeeded)`` pods active.

    Job pods never restart: a crash leaves the pod Failed and the Job
    starts a fresh one. Once more than ``backoff_limit`` pods have
    failed, active pods are deleted and the Job is marked Failed. Once
    ``completions`` pods have succeeded the Job is marked Complete.
    Finished pods are kept until the Job itself is deleted.
    """

    controller_id = "job-controller"

    def reconcile(self, state: ClusterState, ctx: ReconcileContext) -> None:
        for job in list(state.jobs):
            if job.metadata.terminating:
                self._finalize(state, ctx, job)
            elif not job.status.finished:
                self._sync(state, ctx, job)

    def update_status(self, state: ClusterState, ctx: ReconcileContext) -> None:
        for job in state.jobs:
            pods = self.owned_pods(state, job)
            job.status.active = sum(1 for p in pods if p.status.phase not in _FINISHED)
            job.status.succeeded = sum(1 for p in pods if p.status.phase == PodPhase.SUCCEEDED)
            job.status.failed = sum(1 for p in pods if p.status.phase == PodPhase.FAILED)

    @staticmethod
    def owned_pods(state: ClusterState, job: Job) -> list[Pod]:
        return [p for p in state.pods if owned_by(p, job.metadata.uid) and not p.metadata.terminating]

    def _sync(self, state: ClusterState, ctx: ReconcileContext, job: Job) -> None:
        name = job.metadata.name
        if job.status.start_tick is None:
            job.status.start_tick = ctx.tick

        pods = self.owned_pods(state, job)
        active = [p for p in pods if p.status.phase not in _FINISHED]
        succeeded = sum(1 for p in pods if p.status.phase == PodPhase.SUCCEEDED)
        failed = sum(1 for p in pods if p.status.phase == PodPhase.FAILED)

        if failed > job.spec.backoff_limit:
            for pod in active:
                self.mark_deleted(pod, ctx)
                self.record(ctx, "delete", f"{name} deleting {pod.metadata.name} (backoff limit exceeded)")
            message = f"Job has reached the specified backoff limit ({job.spec.backoff_limit})"
            job.status.conditions.append(JobCondition(type="Failed", reason="BackoffLimitExceeded", message=message))
            self.record(ctx, "failed", f"{name} exceeded its backoff limit ({failed} failures)")
            self.emit(state, ctx, EventType.WARNING, "BackoffLimitExceeded", job, message)
            return

        if succeeded >= job.spec.completions:
            job.status.completion_tick = ctx.tick
            message = f"Job completed: {succeeded}/{job.spec.completions} succeeded"
            job.status.conditions.append(JobCondition(type="Complete", reason="Completed", message=message))
            self.record(ctx, "complete", f"{name} completed ({succeeded}/{job.spec.completions})")
            self.emit(state, ctx, EventType.NORMAL, "Completed", job, message)
            return

        wanted = min(job.spec.parallelism, job.spec.completions - succeeded)
        for _ in range(wanted - len(active)):
            uid, ts = state.new_uid()
            pod_name = unique_pod_name(state, name, uid)
            self.new_pod(state, ctx, pod_name, job.spec.template, job, uid=uid, creation_timestamp=ts)
            self.record(ctx, "create", f"{name} created pod {pod_name}")
            self.emit(state, ctx, EventType.NORMAL, "SuccessfulCreate", job, f"Created pod: {pod_name}")

    def _finalize(self, state: ClusterState, ctx: ReconcileContext, job: Job) -> None:
        present = [p for p in state.pods if owned_by(p, job.metadata.uid)]
        for pod in present:
            if not pod.metadata.terminating:
                self.mark_deleted(pod, ctx)
                self.record(ctx, "delete", f"{job.metadata.name} deleting {pod.metadata.name} (cascade)")
        if not present:
            state.remove(job)
            self.record(ctx, "remove", f"Job {job.metadata.name} removed")
