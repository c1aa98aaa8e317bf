"""Goal predicates and the latched, sequential goal tracker.

A goal is a pure predicate over a ClusterState. The tracker evaluates
goals in order after every command or reconcile: goal *i* is only
checked once goals ``0..i-1`` have been achieved, and an achieved goal
stays achieved even if the cluster later drifts away from it.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

from kubesim.models.events import PodPhase
from kubesim.models.state import ClusterState, resolve_kind
from kubesim.observability.logging import get_logger
from kubesim.selectors import labels_match

_log = get_logger("goals")

Predicate = Callable[[ClusterState], bool]


@dataclass(frozen=True)
class Goal:
    id: str
    description: str
    check: Predicate


@dataclass
class GoalStatus:
    id: str
    description: str
    achieved: bool
    achieved_at_tick: int | None = None


@dataclass
class GoalTracker:
    """Tracks progress through an ordered list of goals."""

    goals: list[Goal] = field(default_factory=list)
    _achieved: dict[str, int] = field(default_factory=dict, init=False, repr=False)

    def evaluate(self, state: ClusterState) -> list[Goal]:
        """Latch every goal that now holds, in order; return the newly achieved ones."""
        newly: list[Goal] = []
        for goal in self.goals:
            if goal.id in self._achieved:
                continue
            if not goal.check(state):
                break
            self._achieved[goal.id] = state.tick
            newly.append(goal)
            _log.info("goal_achieved", goal_id=goal.id, tick=state.tick)
        return newly

    @property
    def completed(self) -> bool:
        return len(self._achieved) == len(self.goals)

    def status(self) -> list[GoalStatus]:
        return [
            GoalStatus(
                id=goal.id,
                description=goal.description,
                achieved=goal.id in self._achieved,
                achieved_at_tick=self._achieved.get(goal.id),
            )
            for goal in self.goals
        ]

    def reset(self) -> None:
        self._achieved.clear()


# ---------------------------------------------------------------------------
# Predicate builders
# ---------------------------------------------------------------------------


def object_exists(kind: str, name: str) -> Predicate:
    canonical = resolve_kind(kind) or kind

    def check(state: ClusterState) -> bool:
        return state.find(canonical, name, include_terminating=False) is not None

    return check


def object_absent(kind: str, name: str) -> Predicate:
    canonical = resolve_kind(kind) or kind

    def check(state: ClusterState) -> bool:
        return state.find(canonical, name) is None

    return check


def deployment_ready(name: str, replicas: int | None = None, image: str | None = None) -> Predicate:
    """Deployment rolled out: all desired replicas ready and up to date."""

    def check(state: ClusterState) -> bool:
        dep = state.find("Deployment", name, include_terminating=False)
        if dep is None:
            return False
        desired = dep.spec.replicas  # type: ignore[union-attr]
        if replicas is not None and desired != replicas:
            return False
        if image is not None and dep.spec.template.spec.image != image:  # type: ignore[union-attr]
            return False
        status = dep.status  # type: ignore[union-attr]
        progressing = status.condition("Progressing")
        return (
            status.ready_replicas == desired
            and status.updated_replicas == desired
            and status.replicas == desired
            and progressing is not None
            and progressing.reason == "NewReplicaSetAvailable"
        )

    return check


def pods_running(count: int, selector: Mapping[str, str] | None = None) -> Predicate:
    """At least *count* live Running pods, optionally restricted by *selector*."""

    def check(state: ClusterState) -> bool:
        running = [
            p
            for p in state.pods
            if p.status.phase == PodPhase.RUNNING
            and not p.metadata.terminating
            and (selector is None or labels_match(p.metadata.labels, selector))
        ]
        return len(running) >= count

    return check


def service_has_endpoints(name: str, minimum: int = 1) -> Predicate:
    def check(state: ClusterState) -> bool:
        svc = state.find("Service", name, include_terminating=False)
        return svc is not None and len(svc.status.endpoints) >= minimum  # type: ignore[union-attr]

    return check


def statefulset_ready(name: str, replicas: int | None = None) -> Predicate:
    def check(state: ClusterState) -> bool:
        sts = state.find("StatefulSet", name, include_terminating=False)
        if sts is None:
            return False
        desired = sts.spec.replicas if replicas is None else replicas  # type: ignore[union-attr]
        return sts.status.ready_replicas == desired == sts.status.replicas  # type: ignore[union-attr]

    return check


def daemonset_ready(name: str) -> Predicate:
    """Every Ready node runs a ready pod of the DaemonSet."""

    def check(state: ClusterState) -> bool:
        ds = state.find("DaemonSet", name, include_terminating=False)
        if ds is None:
            return False
        status = ds.status  # type: ignore[union-attr]
        desired = status.desired_number_scheduled
        return desired > 0 and status.number_ready == desired == status.current_number_scheduled

    return check


def job_complete(name: str) -> Predicate:
    def check(state: ClusterState) -> bool:
        job = state.find("Job", name, include_terminating=False)
        if job is None:
            return False
        return any(c.type == "Complete" for c in job.status.conditions)  # type: ignore[union-attr]

    return check


def all_of(*predicates: Predicate) -> Predicate:
    def check(state: ClusterState) -> bool:
        return all(p(state) for p in predicates)

    return check


PREDICATE_BUILDERS: dict[str, Callable[..., Predicate]] = {
    "object_exists": object_exists,
    "object_absent": object_absent,
    "deployment_ready": deployment_ready,
    "pods_running": pods_running,
    "service_has_endpoints": service_has_endpoints,
    "statefulset_ready": statefulset_ready,
    "daemonset_ready": daemonset_ready,
    "job_complete": job_complete,
}


def goal_from_dict(data: Mapping[str, Any]) -> Goal:
    """Build a Goal from ``{"id", "description", "check": {"type": ..., **args}}``.

    Raises ValueError for an unknown predicate type or bad arguments.
    """
    spec = dict(data.get("check") or {})
    kind = spec.pop("type", None)
    builder = PREDICATE_BUILDERS.get(kind or "")
    if builder is None:
        raise ValueError(f"Unknown goal predicate: {kind!r}. Must be one of {sorted(PREDICATE_BUILDERS)}")
    try:
        predicate = builder(**spec)
    except TypeError as exc:
        raise ValueError(f"Invalid arguments for goal predicate {kind}: {exc}") from exc
    goal_id = str(data.get("id") or kind)
    return Goal(id=goal_id, description=str(data.get("description", goal_id)), check=predicate)
