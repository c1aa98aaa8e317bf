"""Controller ABC and the per-tick reconcile context shared by all controllers."""

from __future__ import annotations

import copy
from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass, field

from kubesim.models.config import EngineConfig
from kubesim.models.events import EventType, FailureMode, SimEvent
from kubesim.models.objects import KubeObject, ObjectMeta, Pod, PodSpec, PodStatus, PodTemplate
from kubesim.models.state import ClusterState
from kubesim.observability.logging import get_logger
from kubesim.selectors import owner_ref

_log = get_logger("controllers")


@dataclass
class ControllerAction:
    """One line of the per-tick controller activity feed."""

    controller: str
    action: str
    details: str


@dataclass
class ReconcileContext:
    """Inputs and accumulated outputs of a single reconcile tick."""

    tick: int
    config: EngineConfig
    failure_rules: Mapping[str, FailureMode] = field(default_factory=dict)
    actions: list[ControllerAction] = field(default_factory=list)
    events: list[SimEvent] = field(default_factory=list)


class Controller(ABC):
    """Base class for every reconcile stage.

    ``reconcile`` receives a private copy of the snapshot produced by the
    previous stage and mutates it in place; the engine owns copying.
    ``update_status`` runs in the final status pass, after every stage.
    """

    controller_id: str = ""

    @abstractmethod
    def reconcile(self, state: ClusterState, ctx: ReconcileContext) -> None:
        """Drive observed state toward desired state for this controller's kind."""

    def update_status(self, state: ClusterState, ctx: ReconcileContext) -> None:  # noqa: B027
        """Recompute status fields from the final snapshot. Default: nothing."""

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def emit(
        self,
        state: ClusterState,
        ctx: ReconcileContext,
        event_type: EventType,
        reason: str,
        obj: KubeObject,
        message: str,
    ) -> None:
        ctx.events.append(state.record_event(ctx.tick, event_type, reason, obj, message))

    def record(self, ctx: ReconcileContext, action: str, details: str) -> None:
        ctx.actions.append(ControllerAction(controller=self.controller_id, action=action, details=details))
        _log.debug("controller_action", controller=self.controller_id, action=action, details=details)

    def mark_deleted(self, obj: KubeObject, ctx: ReconcileContext) -> None:
        if obj.metadata.deletion_timestamp is None:
            obj.metadata.deletion_timestamp = ctx.tick

    def new_pod(
        self,
        state: ClusterState,
        ctx: ReconcileContext,
        name: str,
        template: PodTemplate,
        owner: KubeObject,
        volume_claims: list[str] | None = None,
        uid: str | None = None,
        creation_timestamp: int | None = None,
        node_name: str | None = None,
    ) -> Pod:
        """Stamp out a Pending pod from *template*, owned by *owner*, and add it."""
        if uid is None or creation_timestamp is None:
            uid, creation_timestamp = state.new_uid()
        spec: PodSpec = copy.deepcopy(template.spec)
        spec.node_name = node_name
        if volume_claims is not None:
            spec.volume_claims = list(volume_claims)
        pod = Pod(
            metadata=ObjectMeta(
                name=name,
                uid=uid,
                creation_timestamp=creation_timestamp,
                labels=dict(template.labels),
                owner_reference=owner_ref(owner),
            ),
            spec=spec,
            status=PodStatus(tick_created=ctx.tick),
        )
        state.pods.append(pod)
        return pod
