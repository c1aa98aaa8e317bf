"""Tests for the Job controller: parallel runs, completion and backoff."""

from __future__ import annotations

from typing import Any

from kubesim.commands import Command, CommandErrorCode, Verb
from kubesim.models import ClusterState, Job, PodPhase, RestartPolicy
from kubesim.session import SimulationSession


def _run(session: SimulationSession, verb: str, kind: str, name: str, **fields: Any) -> None:
    result = session.apply(Command(Verb(verb), kind, name, fields))
    assert result.ok, result.message


def _make_job(**fields: Any) -> SimulationSession:
    session = SimulationSession()
    _run(session, "create", "job", "migrate", image="migrate:1", **fields)
    return session


def _job(state: ClusterState, name: str = "migrate") -> Job:
    job = state.find("Job", name)
    assert isinstance(job, Job)
    return job


def _phases(state: ClusterState) -> list[PodPhase]:
    return sorted(p.status.phase for p in state.pods)


def _conditions(job: Job) -> list[str]:
    return [c.type for c in job.status.conditions]


# ---------------------------------------------------------------------------
# Completion
# ---------------------------------------------------------------------------


class TestJobCompletion:
    def test_single_pod_runs_to_completion(self) -> None:
        session = _make_job()
        session.reconcile()
        job = _job(session.state)
        assert job.status.active == 1
        assert job.status.start_tick == 0
        (pod,) = session.state.pods
        assert pod.spec.restart_policy == RestartPolicy.NEVER
        assert pod.spec.completion_ticks == 2
        assert pod.metadata.labels == {"job-name": "migrate"}

        session.reconcile(2)
        assert _phases(session.state) == [PodPhase.SUCCEEDED]
        assert _job(session.state).status.succeeded == 1
        assert _conditions(_job(session.state)) == []

        session.reconcile()
        job = _job(session.state)
        assert _conditions(job) == ["Complete"]
        assert job.status.completion_tick == 3
        assert job.status.active == 0
        assert ("Completed", "Job") in [(e.reason, e.object_kind) for e in session.state.events]

    def test_parallelism_caps_active_pods(self) -> None:
        session = _make_job(completions=3, parallelism=2)
        session.reconcile()
        assert _job(session.state).status.active == 2

        session.reconcile(3)
        assert len(session.state.pods) == 3
        assert _job(session.state).status.active == 1

        session.reconcile(3)
        job = _job(session.state)
        assert _conditions(job) == ["Complete"]
        assert job.status.succeeded == 3

    def test_finished_job_creates_nothing_more(self) -> None:
        session = _make_job()
        session.reconcile(4)
        session.reconcile(4)
        assert len(session.state.pods) == 1
        assert _conditions(_job(session.state)) == ["Complete"]

    def test_completion_ticks_override(self) -> None:
        session = _make_job(completion_ticks=4)
        session.reconcile(3)
        assert _phases(session.state) == [PodPhase.RUNNING]
        session.reconcile(2)
        assert _phases(session.state) == [PodPhase.SUCCEEDED]


# ---------------------------------------------------------------------------
# Failure
# ---------------------------------------------------------------------------


class TestJobBackoff:
    def test_failed_pod_replaced_then_backoff_limit(self) -> None:
        session = _make_job(failure_mode="CrashLoopBackOff", backoff_limit=1)
        session.reconcile(3)
        assert _phases(session.state) == [PodPhase.FAILED]
        assert _job(session.state).status.failed == 1

        session.reconcile()
        assert _phases(session.state) == [PodPhase.FAILED, PodPhase.PENDING]

        session.reconcile(3)
        job = _job(session.state)
        assert _conditions(job) == ["Failed"]
        assert job.status.conditions[0].reason == "BackoffLimitExceeded"
        assert job.status.failed == 2

        session.reconcile(3)
        assert len(session.state.pods) == 2
        warnings = [e for e in session.state.events if e.reason == "BackoffLimitExceeded"]
        assert len(warnings) == 1

    def test_backoff_deletes_active_pods(self) -> None:
        session = _make_job(failure_mode="CrashLoopBackOff", backoff_limit=0, completions=2)
        session.reconcile()
        _run(session, "patch", "job", "migrate", parallelism=2)
        session.reconcile(2)
        assert _phases(session.state) == [PodPhase.FAILED, PodPhase.RUNNING]

        session.reconcile()
        assert _conditions(_job(session.state)) == ["Failed"]
        terminating = [p for p in session.state.pods if p.metadata.terminating]
        assert len(terminating) == 1
        assert terminating[0].status.phase == PodPhase.TERMINATING


# ---------------------------------------------------------------------------
# Commands and deletion
# ---------------------------------------------------------------------------


class TestJobCommands:
    def test_set_image_rejected(self) -> None:
        session = _make_job()
        result = session.apply(Command(Verb.SET_IMAGE, "job", "migrate", {"image": "migrate:2"}))
        assert result.error is not None and result.error.code == CommandErrorCode.UNSUPPORTED

    def test_patch_parallelism(self) -> None:
        session = _make_job(completions=4)
        session.reconcile()
        assert len(session.state.pods) == 1
        _run(session, "patch", "job", "migrate", parallelism=3)
        session.reconcile()
        assert len(session.state.pods) == 3

    def test_zero_completions_rejected(self) -> None:
        session = SimulationSession()
        result = session.apply(Command(Verb.CREATE, "job", "migrate", {"image": "migrate:1", "completions": 0}))
        assert result.error is not None and result.error.code == CommandErrorCode.INVALID

    def test_delete_cascades_to_finished_pods(self) -> None:
        session = _make_job()
        session.reconcile(4)
        _run(session, "delete", "job", "migrate")
        session.reconcile(3)
        assert session.state.pods == []
        assert session.state.find("Job", "migrate") is None
