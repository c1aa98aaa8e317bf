"""Label selector matching, template hashing and pod readiness helpers."""

from __future__ import annotations

import hashlib
import json
from collections.abc import Mapping

from kubesim.models.events import PodPhase
from kubesim.models.objects import KubeObject, OwnerReference, Pod, PodTemplate


def labels_match(labels: Mapping[str, str], selector: Mapping[str, str]) -> bool:
    """Return True when every selector pair is present in *labels*.

    Matching is exact and case-sensitive. An empty selector matches
    nothing, so a selector-less Service never captures every pod.
    """
    if not selector:
        return False
    return all(labels.get(key) == value for key, value in selector.items())


def template_hash(template: PodTemplate) -> str:
    """Stable 10-hex-digit digest of a pod template's labels and spec."""
    spec = template.spec
    payload = {
        "labels": dict(sorted(template.labels.items())),
        "image": spec.image,
        "failure_mode": spec.failure_mode.value if spec.failure_mode else None,
        "volume_claims": list(spec.volume_claims),
        "env_from": [[ref.kind, ref.name] for ref in spec.env_from],
    }
    digest = hashlib.sha256(json.dumps(payload, sort_keys=True).encode()).hexdigest()
    return digest[:10]


def pod_suffix(uid: str) -> str:
    """Five-character name suffix derived from a pod uid."""
    return hashlib.sha256(uid.encode()).hexdigest()[:5]


def pod_ready(pod: Pod) -> bool:
    """A pod is ready when Running, not terminating, and not marked not-ready."""
    return (
        pod.status.phase == PodPhase.RUNNING
        and pod.status.ready is not False
        and not pod.metadata.terminating
    )


def owned_by(obj: KubeObject, owner_uid: str) -> bool:
    ref = obj.metadata.owner_reference
    return ref is not None and ref.uid == owner_uid


def owner_ref(obj: KubeObject) -> OwnerReference:
    """Build an owner reference pointing at *obj*."""
    return OwnerReference(kind=obj.kind, name=obj.metadata.name, uid=obj.metadata.uid)
