"""One function per verb: ``(ClusterState, ...) -> CommandResult``.

Every handler works on a clone of the snapshot it is given. User errors
(duplicate names, missing objects, bad fields, unsupported verb/kind
pairs) come back as a failed :class:`CommandResult` carrying the caller's
original snapshot; they are never raised to the caller.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Mapping
from typing import Any

from kubesim.commands.results import Command, CommandError, CommandErrorCode, CommandResult, Verb
from kubesim.models.config import DefaultsConfig
from kubesim.models.events import EventType, FailureMode
from kubesim.models.objects import (
    TEMPLATE_HASH_LABEL,
    ConfigMap,
    DaemonSet,
    DaemonSetSpec,
    Deployment,
    DeploymentSpec,
    DeploymentStrategy,
    EnvFromSource,
    Job,
    JobSpec,
    KubeObject,
    Node,
    NodeCondition,
    NodeSpec,
    ObjectMeta,
    PersistentVolumeClaim,
    PersistentVolumeClaimSpec,
    PersistentVolumeClaimStatus,
    Pod,
    PodSpec,
    PodStatus,
    PodTemplate,
    ReplicaSet,
    ReplicaSetSpec,
    RestartPolicy,
    Secret,
    Service,
    ServiceSpec,
    StatefulSet,
    StatefulSetSpec,
    StrategyType,
)
from kubesim.models.state import ClusterState, resolve_kind
from kubesim.observability.logging import get_logger
from kubesim.observability.metrics import commands_total, events_total
from kubesim.selectors import labels_match

_log = get_logger("commands")

_NAME_RE = re.compile(r"^[a-z0-9]([-a-z0-9.]{0,251}[a-z0-9])?$")

# Kinds whose deletion is two-phase; every other kind is removed at once.
_GRACEFUL_KINDS = {"Pod", "ReplicaSet", "Deployment", "StatefulSet", "DaemonSet", "Job"}
_SCALABLE_KINDS = {"Deployment", "ReplicaSet", "StatefulSet"}
_TEMPLATE_KINDS = _SCALABLE_KINDS | {"DaemonSet"}
_ENV_SOURCE_KINDS = {"ConfigMap", "Secret"}

_CREATE_FIELDS: dict[str, set[str]] = {
    "Pod": {"image", "labels", "node_name", "failure_mode", "volume_claims", "env_from"},
    "ReplicaSet": {"image", "replicas", "labels", "selector", "failure_mode", "env_from"},
    "Deployment": {
        "image",
        "replicas",
        "labels",
        "selector",
        "failure_mode",
        "env_from",
        "strategy",
        "max_surge",
        "max_unavailable",
    },
    "StatefulSet": {
        "image",
        "replicas",
        "labels",
        "selector",
        "failure_mode",
        "env_from",
        "service_name",
        "volume_claim_templates",
    },
    "DaemonSet": {"image", "labels", "selector", "failure_mode", "env_from"},
    "Job": {"image", "labels", "failure_mode", "env_from", "completions", "parallelism", "backoff_limit", "completion_ticks"},
    "Service": {"selector", "port", "headless"},
    "Node": {"capacity_pods", "unschedulable", "ready"},
    "ConfigMap": {"data"},
    "Secret": {"data", "type"},
    "PersistentVolumeClaim": {"storage", "bound"},
}

_PATCH_FIELDS: dict[str, set[str]] = {
    "Pod": {"labels", "ready"},
    "ReplicaSet": {"replicas"},
    "Deployment": {"replicas", "image", "labels", "failure_mode", "env_from", "strategy", "max_surge", "max_unavailable"},
    "StatefulSet": {"replicas", "image", "failure_mode", "env_from"},
    "DaemonSet": {"image", "failure_mode", "env_from"},
    "Job": {"parallelism", "backoff_limit"},
    "Service": {"selector", "port", "headless"},
    "Node": {"capacity_pods", "unschedulable", "ready"},
    "ConfigMap": {"data"},
    "Secret": {"data"},
    "PersistentVolumeClaim": {"storage", "bound"},
}


class _Rejected(Exception):  # noqa: N818
    """Internal signal that a command must fail with *code*."""

    def __init__(self, code: CommandErrorCode, message: str) -> None:
        super().__init__(message)
        self.code = code
        self.message = message


# ---------------------------------------------------------------------------
# Field parsing
# ---------------------------------------------------------------------------


def _invalid(message: str) -> _Rejected:
    return _Rejected(CommandErrorCode.INVALID, message)


def _check_fields(fields: Mapping[str, Any], allowed: set[str], verb: Verb, kind: str) -> None:
    unknown = sorted(set(fields) - allowed)
    if unknown:
        raise _invalid(f"unknown field(s) for {verb} {kind}: {', '.join(unknown)}; allowed: {', '.join(sorted(allowed))}")


def _str(fields: Mapping[str, Any], key: str, default: str | None = None) -> str | None:
    value = fields.get(key, default)
    if value is not None and (not isinstance(value, str) or not value):
        raise _invalid(f"{key} must be a non-empty string")
    return value


def _required_str(fields: Mapping[str, Any], key: str) -> str:
    value = _str(fields, key)
    if value is None:
        raise _invalid(f"{key} is required")
    return value


def _int(fields: Mapping[str, Any], key: str, default: int, minimum: int = 0, maximum: int | None = None) -> int:
    value = fields.get(key, default)
    if isinstance(value, bool) or not isinstance(value, int):
        raise _invalid(f"{key} must be an integer")
    if value < minimum or (maximum is not None and value > maximum):
        bound = f"between {minimum} and {maximum}" if maximum is not None else f">= {minimum}"
        raise _invalid(f"{key} must be {bound}, got {value}")
    return value


def _bool(fields: Mapping[str, Any], key: str, default: bool) -> bool:
    value = fields.get(key, default)
    if not isinstance(value, bool):
        raise _invalid(f"{key} must be a boolean")
    return value


def _mapping(fields: Mapping[str, Any], key: str, default: dict[str, str] | None = None) -> dict[str, str] | None:
    value = fields.get(key, default)
    if value is None:
        return None
    if not isinstance(value, Mapping) or not all(isinstance(k, str) and isinstance(v, str) for k, v in value.items()):
        raise _invalid(f"{key} must be a mapping of strings to strings")
    return dict(value)


def _str_list(fields: Mapping[str, Any], key: str) -> list[str]:
    value = fields.get(key, [])
    if not isinstance(value, list) or not all(isinstance(v, str) and v for v in value):
        raise _invalid(f"{key} must be a list of non-empty strings")
    return list(value)


def _failure_mode(fields: Mapping[str, Any]) -> FailureMode | None:
    value = fields.get("failure_mode")
    if value is None:
        return None
    try:
        return FailureMode(value)
    except ValueError:
        valid = ", ".join(m.value for m in FailureMode)
        raise _invalid(f"failure_mode must be one of {valid}, got {value!r}") from None


def _env_from(fields: Mapping[str, Any]) -> list[EnvFromSource]:
    value = fields.get("env_from", [])
    if not isinstance(value, list):
        raise _invalid("env_from must be a list of {kind, name} references")
    refs: list[EnvFromSource] = []
    for item in value:
        if not isinstance(item, Mapping) or not isinstance(item.get("kind"), str):
            raise _invalid("env_from entries must be mappings with kind and name")
        kind = resolve_kind(item["kind"])
        if kind is None or kind not in _ENV_SOURCE_KINDS:
            raise _invalid(f"env_from kind must be ConfigMap or Secret, got {item['kind']!r}")
        refs.append(EnvFromSource(kind=kind, name=_required_str(item, "name")))
    return refs


def _strategy(fields: Mapping[str, Any], current: DeploymentStrategy) -> DeploymentStrategy:
    raw = fields.get("strategy", current.type.value)
    try:
        strategy_type = StrategyType(raw)
    except ValueError:
        raise _invalid(f"strategy must be RollingUpdate or Recreate, got {raw!r}") from None
    surge = _int(fields, "max_surge", current.max_surge)
    unavailable = _int(fields, "max_unavailable", current.max_unavailable)
    if strategy_type == StrategyType.ROLLING_UPDATE and surge == 0 and unavailable == 0:
        raise _invalid("max_surge and max_unavailable cannot both be 0")
    return DeploymentStrategy(type=strategy_type, max_surge=surge, max_unavailable=unavailable)


def _workload_labels(fields: Mapping[str, Any], name: str) -> tuple[dict[str, str], dict[str, str]]:
    labels = _mapping(fields, "labels") or {"app": name}
    selector = _mapping(fields, "selector") or dict(labels)
    if TEMPLATE_HASH_LABEL in labels:
        raise _invalid(f"label {TEMPLATE_HASH_LABEL} is reserved")
    if not labels_match(labels, selector):
        raise _invalid(f"selector {selector} does not match template labels {labels}")
    return labels, selector


# ---------------------------------------------------------------------------
# Builders (create)
# ---------------------------------------------------------------------------


def _meta(state: ClusterState, name: str, labels: dict[str, str] | None = None) -> ObjectMeta:
    uid, ts = state.new_uid()
    return ObjectMeta(name=name, uid=uid, creation_timestamp=ts, labels=labels or {})


def _template(fields: Mapping[str, Any], labels: dict[str, str]) -> PodTemplate:
    return PodTemplate(
        labels=dict(labels),
        spec=PodSpec(
            image=_required_str(fields, "image"),
            failure_mode=_failure_mode(fields),
            env_from=_env_from(fields),
        ),
    )


def _build_pod(state: ClusterState, name: str, fields: Mapping[str, Any], defaults: DefaultsConfig) -> Pod:
    spec = PodSpec(
        image=_required_str(fields, "image"),
        node_name=_str(fields, "node_name"),
        failure_mode=_failure_mode(fields),
        volume_claims=_str_list(fields, "volume_claims"),
        env_from=_env_from(fields),
    )
    labels = _mapping(fields, "labels") or {}
    return Pod(metadata=_meta(state, name, labels), spec=spec, status=PodStatus(tick_created=state.tick))


def _build_replica_set(state: ClusterState, name: str, fields: Mapping[str, Any], defaults: DefaultsConfig) -> ReplicaSet:
    labels, selector = _workload_labels(fields, name)
    spec = ReplicaSetSpec(replicas=_int(fields, "replicas", 1), selector=selector, template=_template(fields, labels))
    return ReplicaSet(metadata=_meta(state, name, dict(labels)), spec=spec)


def _build_deployment(state: ClusterState, name: str, fields: Mapping[str, Any], defaults: DefaultsConfig) -> Deployment:
    labels, selector = _workload_labels(fields, name)
    base = DeploymentStrategy(type=defaults.strategy, max_surge=defaults.max_surge, max_unavailable=defaults.max_unavailable)
    spec = DeploymentSpec(
        replicas=_int(fields, "replicas", 1),
        selector=selector,
        template=_template(fields, labels),
        strategy=_strategy(fields, base),
    )
    return Deployment(metadata=_meta(state, name, dict(labels)), spec=spec)


def _build_stateful_set(state: ClusterState, name: str, fields: Mapping[str, Any], defaults: DefaultsConfig) -> StatefulSet:
    labels, selector = _workload_labels(fields, name)
    spec = StatefulSetSpec(
        replicas=_int(fields, "replicas", 1),
        selector=selector,
        template=_template(fields, labels),
        service_name=_str(fields, "service_name", name) or name,
        volume_claim_templates=_str_list(fields, "volume_claim_templates"),
    )
    return StatefulSet(metadata=_meta(state, name, dict(labels)), spec=spec)


def _build_daemon_set(state: ClusterState, name: str, fields: Mapping[str, Any], defaults: DefaultsConfig) -> DaemonSet:
    labels, selector = _workload_labels(fields, name)
    spec = DaemonSetSpec(selector=selector, template=_template(fields, labels))
    return DaemonSet(metadata=_meta(state, name, dict(labels)), spec=spec)


def _build_job(state: ClusterState, name: str, fields: Mapping[str, Any], defaults: DefaultsConfig) -> Job:
    labels = _mapping(fields, "labels") or {"job-name": name}
    template = _template(fields, labels)
    template.spec.restart_policy = RestartPolicy.NEVER
    template.spec.completion_ticks = _int(fields, "completion_ticks", 2, minimum=1)
    spec = JobSpec(
        template=template,
        completions=_int(fields, "completions", 1, minimum=1),
        parallelism=_int(fields, "parallelism", 1, minimum=1),
        backoff_limit=_int(fields, "backoff_limit", 6),
    )
    return Job(metadata=_meta(state, name, dict(labels)), spec=spec)


def _build_service(state: ClusterState, name: str, fields: Mapping[str, Any], defaults: DefaultsConfig) -> Service:
    selector = _mapping(fields, "selector")
    if not selector:
        raise _invalid("selector is required and must not be empty")
    spec = ServiceSpec(
        selector=selector,
        port=_int(fields, "port", 80, minimum=1, maximum=65535),
        headless=_bool(fields, "headless", False),
    )
    return Service(metadata=_meta(state, name), spec=spec)


def _build_node(state: ClusterState, name: str, fields: Mapping[str, Any], defaults: DefaultsConfig) -> Node:
    node = Node(
        metadata=_meta(state, name),
        spec=NodeSpec(
            capacity_pods=_int(fields, "capacity_pods", defaults.node_capacity),
            unschedulable=_bool(fields, "unschedulable", False),
        ),
    )
    _set_node_ready(node, _bool(fields, "ready", True))
    return node


def _build_config_map(state: ClusterState, name: str, fields: Mapping[str, Any], defaults: DefaultsConfig) -> ConfigMap:
    return ConfigMap(metadata=_meta(state, name), data=_mapping(fields, "data", {}) or {})


def _build_secret(state: ClusterState, name: str, fields: Mapping[str, Any], defaults: DefaultsConfig) -> Secret:
    return Secret(
        metadata=_meta(state, name),
        data=_mapping(fields, "data", {}) or {},
        type=_str(fields, "type", "Opaque") or "Opaque",
    )


def _build_claim(state: ClusterState, name: str, fields: Mapping[str, Any], defaults: DefaultsConfig) -> PersistentVolumeClaim:
    storage = _str(fields, "storage", "1Gi") or "1Gi"
    return PersistentVolumeClaim(
        metadata=_meta(state, name),
        spec=PersistentVolumeClaimSpec(storage=storage),
        status=PersistentVolumeClaimStatus(phase=_claim_phase(_bool(fields, "bound", True))),
    )


def _claim_phase(bound: bool) -> str:
    return "Bound" if bound else "Pending"


_BUILDERS: dict[str, Callable[[ClusterState, str, Mapping[str, Any], DefaultsConfig], KubeObject]] = {
    "Pod": _build_pod,
    "ReplicaSet": _build_replica_set,
    "Deployment": _build_deployment,
    "StatefulSet": _build_stateful_set,
    "DaemonSet": _build_daemon_set,
    "Job": _build_job,
    "Service": _build_service,
    "Node": _build_node,
    "ConfigMap": _build_config_map,
    "Secret": _build_secret,
    "PersistentVolumeClaim": _build_claim,
}


def _set_node_ready(node: Node, ready: bool) -> None:
    status = "True" if ready else "False"
    others = [c for c in node.status.conditions if c.type != "Ready"]
    node.status.conditions = [NodeCondition(type="Ready", status=status), *others]


# ---------------------------------------------------------------------------
# Dispatch
# ---------------------------------------------------------------------------


def _emit(state: ClusterState, reason: str, obj: KubeObject, message: str) -> None:
    event = state.record_event(state.tick, EventType.NORMAL, reason, obj, message)
    events_total.labels(type=event.type.value, reason=event.reason).inc()


def _existing(state: ClusterState, kind: str, name: str) -> KubeObject:
    obj = state.find(kind, name, include_terminating=False)
    if obj is None:
        raise _Rejected(CommandErrorCode.NOT_FOUND, f"{kind} {name!r} not found")
    return obj


def _apply(
    verb: Verb,
    state: ClusterState,
    kind: str,
    name: str,
    mutate: Callable[[ClusterState, str], str],
) -> CommandResult:
    canonical = resolve_kind(kind)
    try:
        if canonical is None:
            raise _Rejected(CommandErrorCode.UNSUPPORTED, f"unsupported kind: {kind!r}")
        if not name or not _NAME_RE.match(name):
            raise _invalid(f"invalid name {name!r}: must be lowercase alphanumerics, '-' or '.'")
        working = state.clone()
        message = mutate(working, canonical)
    except _Rejected as exc:
        commands_total.labels(verb=verb.value, outcome="rejected").inc()
        _log.warning("command_rejected", verb=verb.value, kind=kind, name=name, code=exc.code.value, reason=exc.message)
        return CommandResult(state=state, error=CommandError(code=exc.code, message=exc.message), message=exc.message)

    commands_total.labels(verb=verb.value, outcome="applied").inc()
    _log.info("command_applied", verb=verb.value, kind=canonical, name=name, tick=state.tick)
    return CommandResult(state=working, message=message)


def create(
    state: ClusterState,
    kind: str,
    name: str,
    fields: Mapping[str, Any] | None = None,
    *,
    config: DefaultsConfig | None = None,
) -> CommandResult:
    """Create a standalone or top-level object. Terminating objects still hold their name."""
    fields = fields or {}
    defaults = config or DefaultsConfig()

    def mutate(working: ClusterState, canonical: str) -> str:
        _check_fields(fields, _CREATE_FIELDS[canonical], Verb.CREATE, canonical)
        if working.find(canonical, name) is not None:
            raise _Rejected(CommandErrorCode.ALREADY_EXISTS, f"{canonical} {name!r} already exists")
        obj = _BUILDERS[canonical](working, name, fields, defaults)
        working.collection(canonical).append(obj)
        message = f"{canonical.lower()}/{name} created"
        _emit(working, "Created", obj, message)
        return message

    return _apply(Verb.CREATE, state, kind, name, mutate)


def scale(state: ClusterState, kind: str, name: str, replicas: Any) -> CommandResult:
    """Set ``spec.replicas`` of a Deployment, ReplicaSet or StatefulSet."""

    def mutate(working: ClusterState, canonical: str) -> str:
        if canonical not in _SCALABLE_KINDS:
            raise _Rejected(CommandErrorCode.UNSUPPORTED, f"{canonical} cannot be scaled")
        count = _int({"replicas": replicas}, "replicas", 0)
        obj = _existing(working, canonical, name)
        previous = obj.spec.replicas  # type: ignore[union-attr]
        obj.spec.replicas = count  # type: ignore[union-attr]
        message = f"{canonical.lower()}/{name} scaled from {previous} to {count}"
        _emit(working, "Scaled", obj, message)
        return message

    return _apply(Verb.SCALE, state, kind, name, mutate)


def set_image(state: ClusterState, kind: str, name: str, image: Any) -> CommandResult:
    """Change the pod template image of a workload, starting a rollout for Deployments."""

    def mutate(working: ClusterState, canonical: str) -> str:
        if canonical == "Pod":
            raise _Rejected(CommandErrorCode.UNSUPPORTED, "pod images are immutable; update the owning workload instead")
        if canonical == "Job":
            raise _Rejected(CommandErrorCode.UNSUPPORTED, "job pod templates are immutable; create a new Job instead")
        if canonical not in _TEMPLATE_KINDS:
            raise _Rejected(CommandErrorCode.UNSUPPORTED, f"{canonical} has no pod template")
        new_image = _required_str({"image": image}, "image")
        obj = _existing(working, canonical, name)
        ref = obj.metadata.owner_reference
        if canonical == "ReplicaSet" and ref is not None and ref.kind == "Deployment":
            raise _invalid(f"ReplicaSet {name!r} is managed by Deployment {ref.name!r}; set the image there")
        template = obj.spec.template  # type: ignore[union-attr]
        previous = template.spec.image
        template.spec.image = new_image
        message = f"{canonical.lower()}/{name} image updated from {previous} to {new_image}"
        _emit(working, "Updated", obj, message)
        return message

    return _apply(Verb.SET_IMAGE, state, kind, name, mutate)


def patch(state: ClusterState, kind: str, name: str, fields: Mapping[str, Any] | None = None) -> CommandResult:
    """Merge whitelisted *fields* into an existing object."""
    fields = fields or {}

    def mutate(working: ClusterState, canonical: str) -> str:
        if not fields:
            raise _invalid("patch requires at least one field")
        _check_fields(fields, _PATCH_FIELDS[canonical], Verb.PATCH, canonical)
        obj = _existing(working, canonical, name)
        _PATCHERS[canonical](obj, fields)
        message = f"{canonical.lower()}/{name} patched ({', '.join(sorted(fields))})"
        _emit(working, "Updated", obj, message)
        return message

    return _apply(Verb.PATCH, state, kind, name, mutate)


def delete(state: ClusterState, kind: str, name: str) -> CommandResult:
    """Delete an object: two-phase for pods and workloads, immediate otherwise."""

    def mutate(working: ClusterState, canonical: str) -> str:
        obj = _existing(working, canonical, name)
        if canonical in _GRACEFUL_KINDS:
            obj.metadata.deletion_timestamp = working.tick
            message = f"{canonical.lower()}/{name} marked for deletion"
            _emit(working, "Deleting", obj, message)
        else:
            working.remove(obj)
            message = f"{canonical.lower()}/{name} deleted"
            _emit(working, "Deleted", obj, message)
        return message

    return _apply(Verb.DELETE, state, kind, name, mutate)


def execute(state: ClusterState, command: Command, *, config: DefaultsConfig | None = None) -> CommandResult:
    """Dispatch a structured :class:`Command` to its verb handler."""
    fields = dict(command.fields)
    try:
        verb = Verb(command.verb)
    except ValueError:
        commands_total.labels(verb="unknown", outcome="rejected").inc()
        message = f"unsupported verb: {command.verb!r}"
        _log.warning("command_rejected", verb=str(command.verb), kind=command.kind, name=command.name, code="UNSUPPORTED")
        return CommandResult(state=state, error=CommandError(CommandErrorCode.UNSUPPORTED, message), message=message)

    if verb == Verb.CREATE:
        return create(state, command.kind, command.name, fields, config=config)
    if verb == Verb.PATCH:
        return patch(state, command.kind, command.name, fields)
    if verb == Verb.DELETE:
        return delete(state, command.kind, command.name)
    if verb == Verb.SCALE:
        return scale(state, command.kind, command.name, fields.get("replicas"))
    return set_image(state, command.kind, command.name, fields.get("image"))


# ---------------------------------------------------------------------------
# Patchers
# ---------------------------------------------------------------------------


def _patch_pod(obj: KubeObject, fields: Mapping[str, Any]) -> None:
    assert isinstance(obj, Pod)
    if "labels" in fields:
        obj.metadata.labels.update(_mapping(fields, "labels") or {})
    if "ready" in fields:
        obj.status.ready = _bool(fields, "ready", True)


def _patch_replica_set(obj: KubeObject, fields: Mapping[str, Any]) -> None:
    assert isinstance(obj, ReplicaSet)
    obj.spec.replicas = _int(fields, "replicas", obj.spec.replicas)


def _patch_deployment(obj: KubeObject, fields: Mapping[str, Any]) -> None:
    assert isinstance(obj, Deployment)
    spec = obj.spec
    if "replicas" in fields:
        spec.replicas = _int(fields, "replicas", spec.replicas)
    if "image" in fields:
        spec.template.spec.image = _required_str(fields, "image")
    if "failure_mode" in fields:
        spec.template.spec.failure_mode = _failure_mode(fields)
    if "env_from" in fields:
        spec.template.spec.env_from = _env_from(fields)
    if "labels" in fields:
        labels = {**spec.template.labels, **(_mapping(fields, "labels") or {})}
        if TEMPLATE_HASH_LABEL in labels:
            raise _invalid(f"label {TEMPLATE_HASH_LABEL} is reserved")
        if not labels_match(labels, spec.selector):
            raise _invalid(f"template labels {labels} no longer match selector {spec.selector}")
        spec.template.labels = labels
    if fields.keys() & {"strategy", "max_surge", "max_unavailable"}:
        spec.strategy = _strategy(fields, spec.strategy)


def _patch_stateful_set(obj: KubeObject, fields: Mapping[str, Any]) -> None:
    assert isinstance(obj, StatefulSet)
    if "replicas" in fields:
        obj.spec.replicas = _int(fields, "replicas", obj.spec.replicas)
    _patch_template(obj.spec.template, fields)


def _patch_template(template: PodTemplate, fields: Mapping[str, Any]) -> None:
    if "image" in fields:
        template.spec.image = _required_str(fields, "image")
    if "failure_mode" in fields:
        template.spec.failure_mode = _failure_mode(fields)
    if "env_from" in fields:
        template.spec.env_from = _env_from(fields)


def _patch_daemon_set(obj: KubeObject, fields: Mapping[str, Any]) -> None:
    assert isinstance(obj, DaemonSet)
    _patch_template(obj.spec.template, fields)


def _patch_job(obj: KubeObject, fields: Mapping[str, Any]) -> None:
    assert isinstance(obj, Job)
    if "parallelism" in fields:
        obj.spec.parallelism = _int(fields, "parallelism", obj.spec.parallelism, minimum=1)
    if "backoff_limit" in fields:
        obj.spec.backoff_limit = _int(fields, "backoff_limit", obj.spec.backoff_limit)


def _patch_service(obj: KubeObject, fields: Mapping[str, Any]) -> None:
    assert isinstance(obj, Service)
    if "selector" in fields:
        selector = _mapping(fields, "selector")
        if not selector:
            raise _invalid("selector must not be empty")
        obj.spec.selector = selector
    if "port" in fields:
        obj.spec.port = _int(fields, "port", obj.spec.port, minimum=1, maximum=65535)
    if "headless" in fields:
        obj.spec.headless = _bool(fields, "headless", obj.spec.headless)


def _patch_node(obj: KubeObject, fields: Mapping[str, Any]) -> None:
    assert isinstance(obj, Node)
    if "capacity_pods" in fields:
        obj.spec.capacity_pods = _int(fields, "capacity_pods", obj.spec.capacity_pods)
    if "unschedulable" in fields:
        obj.spec.unschedulable = _bool(fields, "unschedulable", obj.spec.unschedulable)
    if "ready" in fields:
        _set_node_ready(obj, _bool(fields, "ready", True))


def _patch_data(obj: KubeObject, fields: Mapping[str, Any]) -> None:
    assert isinstance(obj, (ConfigMap, Secret))
    obj.data.update(_mapping(fields, "data") or {})


def _patch_claim(obj: KubeObject, fields: Mapping[str, Any]) -> None:
    assert isinstance(obj, PersistentVolumeClaim)
    if "storage" in fields:
        obj.spec.storage = _required_str(fields, "storage")
    if "bound" in fields:
        obj.status.phase = _claim_phase(_bool(fields, "bound", True))


_PATCHERS: dict[str, Callable[[KubeObject, Mapping[str, Any]], None]] = {
    "Pod": _patch_pod,
    "ReplicaSet": _patch_replica_set,
    "Deployment": _patch_deployment,
    "StatefulSet": _patch_stateful_set,
    "DaemonSet": _patch_daemon_set,
    "Job": _patch_job,
    "Service": _patch_service,
    "Node": _patch_node,
    "ConfigMap": _patch_data,
    "Secret": _patch_data,
    "PersistentVolumeClaim": _patch_claim,
}
