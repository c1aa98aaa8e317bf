"""Core data structures for kubesim."""

from kubesim.models.config import KubeSimConfig
from kubesim.models.events import EventType, FailureMode, PodPhase, SimEvent
from kubesim.models.objects import (
    ConfigMap,
    DaemonSet,
    DaemonSetSpec,
    DaemonSetStatus,
    Deployment,
    DeploymentCondition,
    DeploymentSpec,
    DeploymentStatus,
    DeploymentStrategy,
    EnvFromSource,
    Job,
    JobCondition,
    JobSpec,
    JobStatus,
    KubeObject,
    Node,
    NodeCondition,
    NodeSpec,
    NodeStatus,
    ObjectMeta,
    OwnerReference,
    PersistentVolumeClaim,
    Pod,
    PodSpec,
    PodStatus,
    PodTemplate,
    ReplicaSet,
    ReplicaSetSpec,
    ReplicaSetStatus,
    RestartPolicy,
    Secret,
    Service,
    ServiceSpec,
    ServiceStatus,
    StatefulSet,
    StatefulSetSpec,
    StatefulSetStatus,
    StrategyType,
)
from kubesim.models.state import KIND_ALIASES, KIND_COLLECTIONS, ClusterState, resolve_kind

__all__ = [
    "KIND_ALIASES",
    "KIND_COLLECTIONS",
    "ClusterState",
    "ConfigMap",
    "DaemonSet",
    "DaemonSetSpec",
    "DaemonSetStatus",
    "Deployment",
    "DeploymentCondition",
    "DeploymentSpec",
    "DeploymentStatus",
    "DeploymentStrategy",
    "EnvFromSource",
    "EventType",
    "FailureMode",
    "Job",
    "JobCondition",
    "JobSpec",
    "JobStatus",
    "KubeObject",
    "KubeSimConfig",
    "Node",
    "NodeCondition",
    "NodeSpec",
    "NodeStatus",
    "ObjectMeta",
    "OwnerReference",
    "PersistentVolumeClaim",
    "Pod",
    "PodPhase",
    "PodSpec",
    "PodStatus",
    "PodTemplate",
    "ReplicaSet",
    "ReplicaSetSpec",
    "ReplicaSetStatus",
    "RestartPolicy",
    "Secret",
    "Service",
    "ServiceSpec",
    "ServiceStatus",
    "SimEvent",
    "StatefulSet",
    "StatefulSetSpec",
    "StatefulSetStatus",
    "StrategyType",
    "resolve_kind",
]
