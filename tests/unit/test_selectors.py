"""Tests for label selector matching, template hashing and readiness helpers."""

from __future__ import annotations

from kubesim.models import (
    EnvFromSource,
    FailureMode,
    ObjectMeta,
    OwnerReference,
    Pod,
    PodPhase,
    PodSpec,
    PodStatus,
    PodTemplate,
)
from kubesim.selectors import labels_match, owned_by, owner_ref, pod_ready, pod_suffix, template_hash


def _make_pod(
    phase: PodPhase = PodPhase.RUNNING,
    ready: bool | None = None,
    deletion_timestamp: int | None = None,
    owner: OwnerReference | None = None,
) -> Pod:
    return Pod(
        metadata=ObjectMeta(
            name="web-abcde",
            uid="00000007",
            creation_timestamp=7,
            labels={"app": "web"},
            owner_reference=owner,
            deletion_timestamp=deletion_timestamp,
        ),
        spec=PodSpec(image="nginx:1.0"),
        status=PodStatus(phase=phase, ready=ready),
    )


def _make_template(image: str = "nginx:1.0", **labels: str) -> PodTemplate:
    return PodTemplate(labels=labels or {"app": "web"}, spec=PodSpec(image=image))


# ---------------------------------------------------------------------------
# labels_match
# ---------------------------------------------------------------------------


class TestLabelsMatch:
    """Exact, case-sensitive subset matching."""

    def test_subset_matches(self) -> None:
        assert labels_match({"app": "web", "tier": "frontend"}, {"app": "web"})

    def test_all_pairs_required(self) -> None:
        assert not labels_match({"app": "web"}, {"app": "web", "tier": "frontend"})

    def test_case_sensitive_value(self) -> None:
        assert not labels_match({"app": "Web"}, {"app": "web"})

    def test_case_sensitive_key(self) -> None:
        assert not labels_match({"App": "web"}, {"app": "web"})

    def test_empty_selector_matches_nothing(self) -> None:
        assert not labels_match({"app": "web"}, {})

    def test_no_prefix_matching(self) -> None:
        assert not labels_match({"app": "web-canary"}, {"app": "web"})


# ---------------------------------------------------------------------------
# template_hash / pod_suffix
# ---------------------------------------------------------------------------


class TestTemplateHash:
    def test_stable_for_equal_templates(self) -> None:
        assert template_hash(_make_template()) == template_hash(_make_template())

    def test_ten_hex_digits(self) -> None:
        digest = template_hash(_make_template())
        assert len(digest) == 10
        int(digest, 16)

    def test_image_change_changes_hash(self) -> None:
        assert template_hash(_make_template("nginx:1.0")) != template_hash(_make_template("nginx:2.0"))

    def test_label_change_changes_hash(self) -> None:
        assert template_hash(_make_template(app="web")) != template_hash(_make_template(app="web", track="canary"))

    def test_failure_mode_is_part_of_hash(self) -> None:
        broken = _make_template()
        broken.spec.failure_mode = FailureMode.CRASH_LOOP_BACK_OFF
        assert template_hash(broken) != template_hash(_make_template())

    def test_env_from_is_part_of_hash(self) -> None:
        configured = _make_template()
        configured.spec.env_from = [EnvFromSource(kind="ConfigMap", name="settings")]
        assert template_hash(configured) != template_hash(_make_template())

    def test_label_order_irrelevant(self) -> None:
        a = PodTemplate(labels={"app": "web", "tier": "fe"}, spec=PodSpec(image="nginx:1.0"))
        b = PodTemplate(labels={"tier": "fe", "app": "web"}, spec=PodSpec(image="nginx:1.0"))
        assert template_hash(a) == template_hash(b)


class TestPodSuffix:
    def test_five_chars_and_deterministic(self) -> None:
        assert len(pod_suffix("00000001")) == 5
        assert pod_suffix("00000001") == pod_suffix("00000001")
        assert pod_suffix("00000001") != pod_suffix("00000002")


# ---------------------------------------------------------------------------
# pod_ready / ownership
# ---------------------------------------------------------------------------


class TestPodReady:
    def test_running_pod_is_ready(self) -> None:
        assert pod_ready(_make_pod())

    def test_explicit_not_ready(self) -> None:
        assert not pod_ready(_make_pod(ready=False))

    def test_pending_is_not_ready(self) -> None:
        assert not pod_ready(_make_pod(phase=PodPhase.PENDING, ready=True))

    def test_terminating_is_not_ready(self) -> None:
        assert not pod_ready(_make_pod(ready=True, deletion_timestamp=3))

    def test_crash_loop_is_not_ready(self) -> None:
        assert not pod_ready(_make_pod(phase=PodPhase.CRASH_LOOP_BACK_OFF))


class TestOwnership:
    def test_owner_ref_round_trip(self) -> None:
        owner = _make_pod()
        ref = owner_ref(owner)
        assert ref == OwnerReference(kind="Pod", name="web-abcde", uid="00000007")
        assert owned_by(_make_pod(owner=ref), "00000007")

    def test_orphan_is_not_owned(self) -> None:
        assert not owned_by(_make_pod(), "00000007")
