"""Structural invariants checked after every reconcile tick.

A violation means a controller produced an impossible cluster; it is a
programming error and is raised, never returned.
"""

from __future__ import annotations

import re
from collections import Counter

from kubesim.graph.dependency_graph import DependencyGraph
from kubesim.models.state import KIND_COLLECTIONS, ClusterState
from kubesim.observability.logging import get_logger
from kubesim.selectors import owned_by

_log = get_logger("invariants")

_ORDINAL_RE = re.compile(r"^(?P<base>.+)-(?P<ordinal>\d+)$")


class InvariantViolation(Exception):  # noqa: N818
    """Raised when a snapshot breaks a structural invariant of the model."""

    def __init__(self, invariant: str, detail: str) -> None:
        super().__init__(f"Invariant '{invariant}' violated: {detail}")
        self.invariant = invariant
        self.detail = detail


def statefulset_ordinals(state: ClusterState, sts_name: str, sts_uid: str) -> list[int]:
    """Sorted ordinals of every pod present for a StatefulSet, terminating ones included."""
    ordinals: list[int] = []
    for pod in state.pods:
        if not owned_by(pod, sts_uid):
            continue
        match = _ORDINAL_RE.match(pod.metadata.name)
        if match is None or match.group("base") != sts_name:
            raise InvariantViolation(
                "statefulset-pod-name", f"pod {pod.metadata.name} is not named {sts_name}-<ordinal>"
            )
        ordinals.append(int(match.group("ordinal")))
    return sorted(ordinals)


def find_violations(state: ClusterState) -> list[InvariantViolation]:
    violations: list[InvariantViolation] = []

    for kind in KIND_COLLECTIONS:
        counts = Counter(obj.metadata.name for obj in state.collection(kind))
        for name, count in sorted(counts.items()):
            if count > 1:
                violations.append(InvariantViolation("unique-name", f"{count} objects of kind {kind} named {name}"))

    graph = DependencyGraph.from_state(state)
    for child, ref in graph.dangling_owner_references():
        violations.append(
            InvariantViolation(
                "owner-reference",
                f"{child.kind}/{child.name} references missing {ref.kind}/{ref.name} (uid {ref.uid})",
            )
        )

    for sts in state.stateful_sets:
        try:
            ordinals = statefulset_ordinals(state, sts.metadata.name, sts.metadata.uid)
        except InvariantViolation as exc:
            violations.append(exc)
            continue
        if ordinals != list(range(len(ordinals))):
            violations.append(
                InvariantViolation(
                    "statefulset-contiguity", f"StatefulSet/{sts.metadata.name} has ordinals {ordinals}"
                )
            )
    return violations


def check_invariants(state: ClusterState) -> None:
    """Raise the first InvariantViolation found in *state*, if any."""
    violations = find_violations(state)
    if not violations:
        return
    for violation in violations:
        _log.critical("invariant_violated", invariant=violation.invariant, detail=violation.detail)
    raise violations[0]
