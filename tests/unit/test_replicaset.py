"""Tests for the ReplicaSet controller: count diffing, adoption and finalization."""

from __future__ import annotations

from typing import Any

from kubesim.commands import Command, Verb, execute
from kubesim.controllers import ReconcileContext, ReplicaSetController
from kubesim.models import ClusterState, PodPhase, ReplicaSet
from kubesim.models.config import EngineConfig

# ---------------------------------------------------------------------------
# Helper factories
# ---------------------------------------------------------------------------


def _apply(state: ClusterState, verb: str, kind: str, name: str, **fields: Any) -> ClusterState:
    result = execute(state, Command(Verb(verb), kind, name, fields))
    assert result.ok, result.message
    return result.state


def _ctx(tick: int = 0) -> ReconcileContext:
    return ReconcileContext(tick=tick, config=EngineConfig())


def _make_rs_state(replicas: int = 2, name: str = "frontend") -> ClusterState:
    return _apply(ClusterState(), "create", "rs", name, image="nginx:1.0", replicas=replicas)


def _rs(state: ClusterState, name: str = "frontend") -> ReplicaSet:
    rs = state.find("ReplicaSet", name)
    assert isinstance(rs, ReplicaSet)
    return rs


def _live_pods(state: ClusterState) -> list[str]:
    return sorted(p.metadata.name for p in state.pods if not p.metadata.terminating)


# ---------------------------------------------------------------------------
# Scaling
# ---------------------------------------------------------------------------


class TestReplicaSetSync:
    """Owned pod count converges on spec.replicas in one pass."""

    def test_creates_missing_pods(self) -> None:
        state = _make_rs_state(replicas=2)
        ctx = _ctx()
        ReplicaSetController().reconcile(state, ctx)

        rs = _rs(state)
        assert len(state.pods) == 2
        for pod in state.pods:
            assert pod.metadata.name.startswith("frontend-")
            assert pod.metadata.owner_reference is not None
            assert pod.metadata.owner_reference.uid == rs.metadata.uid
            assert pod.metadata.labels == {"app": "frontend"}
            assert pod.status.phase == PodPhase.PENDING
            assert pod.status.tick_created == 0
        assert [e.reason for e in ctx.events] == ["SuccessfulCreate", "SuccessfulCreate"]
        assert [a.action for a in ctx.actions] == ["create", "create"]

    def test_scale_up_creates_exact_difference(self) -> None:
        state = _make_rs_state(replicas=2)
        controller = ReplicaSetController()
        controller.reconcile(state, _ctx())

        _rs(state).spec.replicas = 5
        ctx = _ctx(1)
        controller.reconcile(state, ctx)

        assert len(_live_pods(state)) == 5
        assert sum(1 for a in ctx.actions if a.action == "create") == 3

    def test_scale_down_deletes_newest(self) -> None:
        state = _make_rs_state(replicas=5)
        controller = ReplicaSetController()
        controller.reconcile(state, _ctx())
        newest = sorted(state.pods, key=lambda p: p.metadata.creation_timestamp)[-3:]

        _rs(state).spec.replicas = 2
        ctx = _ctx(1)
        controller.reconcile(state, ctx)

        terminating = {p.metadata.name for p in state.pods if p.metadata.terminating}
        assert terminating == {p.metadata.name for p in newest}
        assert all(p.metadata.deletion_timestamp == 1 for p in newest)
        assert sum(1 for e in ctx.events if e.reason == "SuccessfulDelete") == 3

    def test_no_op_when_converged(self) -> None:
        state = _make_rs_state(replicas=2)
        controller = ReplicaSetController()
        controller.reconcile(state, _ctx())
        ctx = _ctx(1)
        controller.reconcile(state, ctx)
        assert ctx.actions == []
        assert ctx.events == []

    def test_terminating_pods_are_replaced(self) -> None:
        state = _make_rs_state(replicas=2)
        controller = ReplicaSetController()
        controller.reconcile(state, _ctx())
        victim = state.pods[0].metadata.name
        state = _apply(state, "delete", "pod", victim)

        controller.reconcile(state, _ctx(1))
        assert len(_live_pods(state)) == 2
        assert victim not in _live_pods(state)


# ---------------------------------------------------------------------------
# Ownership
# ---------------------------------------------------------------------------


class TestReplicaSetOwnership:
    def test_adopts_matching_orphan(self) -> None:
        state = _apply(ClusterState(), "create", "pod", "stray", image="redis:7", labels={"app": "cache"})
        state = _apply(state, "create", "rs", "cache", image="redis:7", replicas=1)
        ctx = _ctx()
        ReplicaSetController().reconcile(state, ctx)

        assert _live_pods(state) == ["stray"]
        ref = state.pods[0].metadata.owner_reference
        assert ref is not None and ref.kind == "ReplicaSet" and ref.name == "cache"
        assert [e.reason for e in ctx.events] == ["Adopted"]

    def test_does_not_adopt_non_matching_orphan(self) -> None:
        state = _apply(ClusterState(), "create", "pod", "stray", image="redis:7", labels={"app": "Cache"})
        state = _apply(state, "create", "rs", "cache", image="redis:7", replicas=1)
        ReplicaSetController().reconcile(state, _ctx())
        stray = state.find("Pod", "stray")
        assert stray is not None and stray.metadata.owner_reference is None
        assert len(state.pods) == 2

    def test_releases_relabelled_pod_and_replaces_it(self) -> None:
        state = _make_rs_state(replicas=1)
        controller = ReplicaSetController()
        controller.reconcile(state, _ctx())
        name = state.pods[0].metadata.name
        state = _apply(state, "patch", "pod", name, labels={"app": "debug"})

        ctx = _ctx(1)
        controller.reconcile(state, ctx)
        released = state.find("Pod", name)
        assert released is not None and released.metadata.owner_reference is None
        assert len(_live_pods(state)) == 2
        assert "Released" in [e.reason for e in ctx.events]


# ---------------------------------------------------------------------------
# Deletion and status
# ---------------------------------------------------------------------------


class TestReplicaSetFinalize:
    def test_cascade_then_remove(self) -> None:
        state = _make_rs_state(replicas=2)
        controller = ReplicaSetController()
        controller.reconcile(state, _ctx())
        state = _apply(state, "delete", "rs", "frontend")

        controller.reconcile(state, _ctx(1))
        assert all(p.metadata.terminating for p in state.pods)
        assert state.find("ReplicaSet", "frontend") is not None

        state.pods.clear()
        controller.reconcile(state, _ctx(2))
        assert state.find("ReplicaSet", "frontend") is None


class TestReplicaSetStatus:
    def test_counts_ready_pods(self) -> None:
        state = _make_rs_state(replicas=3)
        controller = ReplicaSetController()
        controller.reconcile(state, _ctx())
        state.pods[0].status.phase = PodPhase.RUNNING
        state.pods[1].status.phase = PodPhase.RUNNING
        state.pods[1].status.ready = False

        controller.update_status(state, _ctx())
        rs = _rs(state)
        assert rs.status.replicas == 3
        assert rs.status.ready_replicas == 1
