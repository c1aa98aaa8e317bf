"""Reconcile controllers, in the order the engine runs them."""

from kubesim.controllers.base import Controller, ControllerAction, ReconcileContext
from kubesim.controllers.daemonset import DaemonSetController
from kubesim.controllers.deployment import DeploymentController
from kubesim.controllers.endpoints import EndpointsController, compute_endpoints
from kubesim.controllers.job import JobController
from kubesim.controllers.podphase import PodPhaseController
from kubesim.controllers.replicaset import ReplicaSetController
from kubesim.controllers.statefulset import StatefulSetController


def default_controllers() -> list[Controller]:
    """Deployment -> ReplicaSet -> StatefulSet -> DaemonSet -> Job -> Pod phase -> Endpoints."""
    return [
        DeploymentController(),
        ReplicaSetController(),
        StatefulSetController(),
        DaemonSetController(),
        JobController(),
        PodPhaseController(),
        EndpointsController(),
    ]


__all__ = [
    "Controller",
    "ControllerAction",
    "DaemonSetController",
    "DeploymentController",
    "EndpointsController",
    "JobController",
    "PodPhaseController",
    "ReconcileContext",
    "ReplicaSetController",
    "StatefulSetController",
    "compute_endpoints",
    "default_controllers",
]
