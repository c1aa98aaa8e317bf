"""Shared fixtures for kubesim integration tests.

Provides sessions pre-loaded with converged workloads so integration
tests can drive whole scenarios (rollouts, cascades, failure recovery)
through the command layer and the full reconcile pipeline.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import pytest

from kubesim.commands import Command, CommandResult, Verb
from kubesim.goals import deployment_ready, statefulset_ready
from kubesim.models import ClusterState
from kubesim.models.config import EngineConfig, KubeSimConfig
from kubesim.selectors import pod_ready
from kubesim.session import SimulationSession

# ---------------------------------------------------------------------------
# Session helpers
# ---------------------------------------------------------------------------


def make_session(failure_rules: dict[str, str] | None = None, **engine: Any) -> SimulationSession:
    """SimulationSession with strict invariant checking on every tick."""
    config = KubeSimConfig(engine=EngineConfig(strict_invariants=True, **engine))
    return SimulationSession(config, failure_rules=failure_rules)


def apply(session: SimulationSession, verb: str, kind: str, name: str, **fields: Any) -> CommandResult:
    """Apply a command that is expected to succeed."""
    result = session.apply(Command(Verb(verb), kind, name, fields))
    assert result.ok, result.message
    return result


def reconcile_until(
    session: SimulationSession,
    predicate: Callable[[ClusterState], bool],
    limit: int = 20,
    each: Callable[[ClusterState], None] | None = None,
) -> int:
    """Reconcile one tick at a time until *predicate* holds; return the tick count.

    *each* runs after every tick, so callers can assert per-tick properties.
    """
    for ticks in range(1, limit + 1):
        session.reconcile()
        if each is not None:
            each(session.state)
        if predicate(session.state):
            return ticks
    raise AssertionError(f"not converged after {limit} ticks")


# ---------------------------------------------------------------------------
# State queries
# ---------------------------------------------------------------------------


def ready_pods(state: ClusterState, image: str | None = None) -> int:
    return sum(1 for p in state.pods if pod_ready(p) and (image is None or p.spec.image == image))


def live_pods(state: ClusterState) -> int:
    return sum(1 for p in state.pods if not p.metadata.terminating)


def pod_names(state: ClusterState) -> set[str]:
    return {p.metadata.name for p in state.pods}


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def session() -> SimulationSession:
    return make_session()


@pytest.fixture
def web_session() -> SimulationSession:
    """Deployment ``web`` (nginx:1.0, 3 replicas) rolled out, fronted by Service ``web``."""
    s = make_session()
    apply(s, "create", "deploy", "web", image="nginx:1.0", replicas=3)
    apply(s, "create", "svc", "web", selector={"app": "web"})
    reconcile_until(s, deployment_ready("web"))
    return s


@pytest.fixture
def db_session() -> SimulationSession:
    """StatefulSet ``db`` with 3 ready replicas and one ``data`` claim per ordinal."""
    s = make_session()
    apply(s, "create", "svc", "db", selector={"app": "db"}, headless=True)
    apply(s, "create", "sts", "db", image="postgres:16", replicas=3, volume_claim_templates=["data"])
    reconcile_until(s, statefulset_ready("db"))
    return s
