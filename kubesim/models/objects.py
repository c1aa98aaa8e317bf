"""Typed records for every simulated Kubernetes object kind.

Each object carries ``metadata`` (identity, labels, ownership, deletion
marker), a ``spec`` (desired state) and, where the kind is reconciled, a
``status`` (observed state).  Objects are plain mutable dataclasses; the
engine and command layer only ever mutate private copies of a snapshot.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import ClassVar

from kubesim.models.events import FailureMode, PodPhase

TEMPLATE_HASH_LABEL = "pod-template-hash"
REVISION_ANNOTATION = "deployment.kubernetes.io/revision"


class StrategyType(StrEnum):
    """Deployment update strategy."""

    ROLLING_UPDATE = "RollingUpdate"
    RECREATE = "Recreate"


class RestartPolicy(StrEnum):
    """What the kubelet does when a pod's container exits."""

    ALWAYS = "Always"
    NEVER = "Never"


@dataclass(frozen=True)
class OwnerReference:
    """Pointer from a child object back to the controller that created it."""

    kind: str
    name: str
    uid: str


@dataclass
class ObjectMeta:
    """Metadata shared by all kinds."""

    name: str
    uid: str
    creation_timestamp: int
    labels: dict[str, str] = field(default_factory=dict)
    annotations: dict[str, str] = field(default_factory=dict)
    owner_reference: OwnerReference | None = None
    # Tick at which deletion was requested; None while the object is live.
    deletion_timestamp: int | None = None

    @property
    def terminating(self) -> bool:
        return self.deletion_timestamp is not None


# ---------------------------------------------------------------------------
# Pods
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class EnvFromSource:
    """A ConfigMap or Secret whose keys a pod imports as environment."""

    kind: str  # "ConfigMap" | "Secret"
    name: str


@dataclass
class PodSpec:
    image: str
    node_name: str | None = None
    failure_mode: FailureMode | None = None
    volume_claims: list[str] = field(default_factory=list)
    env_from: list[EnvFromSource] = field(default_factory=list)
    restart_policy: RestartPolicy = RestartPolicy.ALWAYS
    # Ticks a Running pod takes to finish its work; None runs forever.
    completion_ticks: int | None = None


@dataclass
class PodStatus:
    phase: PodPhase = PodPhase.PENDING
    tick_created: int | None = None
    reason: str | None = None
    message: str | None = None
    restart_count: int = 0
    ready: bool | None = None  # False is an explicit not-ready marker


@dataclass
class Pod:
    kind: ClassVar[str] = "Pod"

    metadata: ObjectMeta
    spec: PodSpec
    status: PodStatus = field(default_factory=PodStatus)


@dataclass
class PodTemplate:
    """Labels and spec stamped onto every pod a workload creates."""

    labels: dict[str, str]
    spec: PodSpec


# ---------------------------------------------------------------------------
# Workloads
# ---------------------------------------------------------------------------


@dataclass
class ReplicaSetSpec:
    replicas: int
    selector: dict[str, str]
    template: PodTemplate


@dataclass
class ReplicaSetStatus:
    replicas: int = 0
    ready_replicas: int = 0


@dataclass
class ReplicaSet:
    kind: ClassVar[str] = "ReplicaSet"

    metadata: ObjectMeta
    spec: ReplicaSetSpec
    status: ReplicaSetStatus = field(default_factory=ReplicaSetStatus)


@dataclass
class DeploymentStrategy:
    type: StrategyType = StrategyType.ROLLING_UPDATE
    max_surge: int = 1
    max_unavailable: int = 1


@dataclass
class DeploymentSpec:
    replicas: int
    selector: dict[str, str]
    template: PodTemplate
    strategy: DeploymentStrategy = field(default_factory=DeploymentStrategy)


@dataclass
class DeploymentCondition:
    type: str  # "Available" | "Progressing"
    status: str  # "True" | "False"
    reason: str = ""
    message: str = ""


@dataclass
class DeploymentStatus:
    replicas: int = 0
    updated_replicas: int = 0
    ready_replicas: int = 0
    available_replicas: int = 0
    conditions: list[DeploymentCondition] = field(default_factory=list)

    def condition(self, condition_type: str) -> DeploymentCondition | None:
        for cond in self.conditions:
            if cond.type == condition_type:
                return cond
        return None


@dataclass
class Deployment:
    kind: ClassVar[str] = "Deployment"

    metadata: ObjectMeta
    spec: DeploymentSpec
    status: DeploymentStatus = field(default_factory=DeploymentStatus)


@dataclass
class StatefulSetSpec:
    replicas: int
    selector: dict[str, str]
    template: PodTemplate
    service_name: str
    volume_claim_templates: list[str] = field(default_factory=list)


@dataclass
class StatefulSetStatus:
    replicas: int = 0
    ready_replicas: int = 0


@dataclass
class StatefulSet:
    kind: ClassVar[str] = "StatefulSet"

    metadata: ObjectMeta
    spec: StatefulSetSpec
    status: StatefulSetStatus = field(default_factory=StatefulSetStatus)


@dataclass
class DaemonSetSpec:
    selector: dict[str, str]
    template: PodTemplate


@dataclass
class DaemonSetStatus:
    desired_number_scheduled: int = 0
    current_number_scheduled: int = 0
    number_ready: int = 0


@dataclass
class DaemonSet:
    kind: ClassVar[str] = "DaemonSet"

    metadata: ObjectMeta
    spec: DaemonSetSpec
    status: DaemonSetStatus = field(default_factory=DaemonSetStatus)


@dataclass
class JobSpec:
    template: PodTemplate
    completions: int = 1
    parallelism: int = 1
    backoff_limit: int = 6


@dataclass
class JobCondition:
    type: str  # "Complete" | "Failed"
    status: str = "True"
    reason: str = ""
    message: str = ""


@dataclass
class JobStatus:
    active: int = 0
    succeeded: int = 0
    failed: int = 0
    start_tick: int | None = None
    completion_tick: int | None = None
    conditions: list[JobCondition] = field(default_factory=list)

    @property
    def finished(self) -> bool:
        return any(c.type in ("Complete", "Failed") and c.status == "True" for c in self.conditions)


@dataclass
class Job:
    kind: ClassVar[str] = "Job"

    metadata: ObjectMeta
    spec: JobSpec
    status: JobStatus = field(default_factory=JobStatus)


# ---------------------------------------------------------------------------
# Networking, infrastructure, configuration
# ---------------------------------------------------------------------------


@dataclass
class ServiceSpec:
    selector: dict[str, str]
    port: int = 80
    headless: bool = False


@dataclass
class ServiceStatus:
    endpoints: list[str] = field(default_factory=list)


@dataclass
class Service:
    kind: ClassVar[str] = "Service"

    metadata: ObjectMeta
    spec: ServiceSpec
    status: ServiceStatus = field(default_factory=ServiceStatus)


@dataclass
class NodeCondition:
    type: str
    status: str


@dataclass
class NodeSpec:
    capacity_pods: int = 110
    unschedulable: bool = False


@dataclass
class NodeStatus:
    conditions: list[NodeCondition] = field(default_factory=lambda: [NodeCondition(type="Ready", status="True")])
    allocated_pods: int = 0

    @property
    def ready(self) -> bool:
        return any(c.type == "Ready" and c.status == "True" for c in self.conditions)


@dataclass
class Node:
    kind: ClassVar[str] = "Node"

    metadata: ObjectMeta
    spec: NodeSpec = field(default_factory=NodeSpec)
    status: NodeStatus = field(default_factory=NodeStatus)


@dataclass
class ConfigMap:
    kind: ClassVar[str] = "ConfigMap"

    metadata: ObjectMeta
    data: dict[str, str] = field(default_factory=dict)


@dataclass
class Secret:
    kind: ClassVar[str] = "Secret"

    metadata: ObjectMeta
    data: dict[str, str] = field(default_factory=dict)
    type: str = "Opaque"


@dataclass
class PersistentVolumeClaimSpec:
    storage: str = "1Gi"


@dataclass
class PersistentVolumeClaimStatus:
    phase: str = "Bound"


@dataclass
class PersistentVolumeClaim:
    kind: ClassVar[str] = "PersistentVolumeClaim"

    metadata: ObjectMeta
    spec: PersistentVolumeClaimSpec = field(default_factory=PersistentVolumeClaimSpec)
    status: PersistentVolumeClaimStatus = field(default_factory=PersistentVolumeClaimStatus)


KubeObject = (
    Pod
    | ReplicaSet
    | Deployment
    | StatefulSet
    | DaemonSet
    | Job
    | Service
    | Node
    | ConfigMap
    | Secret
    | PersistentVolumeClaim
)
