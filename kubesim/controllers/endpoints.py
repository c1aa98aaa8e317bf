"""Service/Endpoints controller."""

from __future__ import annotations

from kubesim.controllers.base import Controller, ReconcileContext
from kubesim.models.events import EventType
from kubesim.models.objects import Pod, Service
from kubesim.models.state import ClusterState
from kubesim.selectors import labels_match, pod_ready


def compute_endpoints(service: Service, pods: list[Pod]) -> list[str]:
    """Recompute a Service's endpoints from scratch.

    Running pods matching the selector that are neither terminating nor
    explicitly marked not-ready. Headless services publish the per-pod
    DNS identity ``<pod>.<service>`` instead of the bare pod name.
    """
    names = []
    for pod in pods:
        if not labels_match(pod.metadata.labels, service.spec.selector) or not pod_ready(pod):
            continue
        if service.spec.headless:
            names.append(f"{pod.metadata.name}.{service.metadata.name}")
        else:
            names.append(pod.metadata.name)
    return sorted(names)


class EndpointsController(Controller):
    controller_id = "endpoints-controller"

    def reconcile(self, state: ClusterState, ctx: ReconcileContext) -> None:
        for svc in state.services:
            endpoints = compute_endpoints(svc, state.pods)
            previous = svc.status.endpoints
            if endpoints == previous:
                continue
            svc.status.endpoints = endpoints
            added = sorted(set(endpoints) - set(previous))
            removed = sorted(set(previous) - set(endpoints))
            if added:
                self.record(ctx, "endpoints-added", f"{svc.metadata.name}: +{', '.join(added)}")
                self.emit(state, ctx, EventType.NORMAL, "EndpointsAdded", svc, f"Added endpoints: {', '.join(added)}")
            if removed:
                self.record(ctx, "endpoints-removed", f"{svc.metadata.name}: -{', '.join(removed)}")
                self.emit(state, ctx, EventType.WARNING, "EndpointsRemoved", svc, f"Removed endpoints: {', '.join(removed)}")
