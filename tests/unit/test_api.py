"""Tests for the kubesim REST API, including hypothesis fuzzing of POST /commands.

Validates that:
 1. Every route returns JSON with the documented status codes
 2. Command errors map onto 400 / 404 / 409 with the error envelope
 3. No input, however malformed, produces a 500
"""

from __future__ import annotations

from typing import Any

from fastapi.testclient import TestClient
from hypothesis import given, settings
from hypothesis import strategies as st

from kubesim import __version__
from kubesim.api import create_app
from kubesim.goals import goal_from_dict
from kubesim.session import SimulationSession

# ---------------------------------------------------------------------------
# Shared helpers
# ---------------------------------------------------------------------------


def _make_app(session: SimulationSession | None = None) -> TestClient:
    app = create_app(session=session or SimulationSession())
    return TestClient(app, raise_server_exceptions=False)


def _command(client: TestClient, verb: str, kind: str, name: str, **fields: Any) -> Any:
    return client.post("/api/v1/commands", json={"verb": verb, "kind": kind, "name": name, "fields": fields})


def _assert_valid_json_response(resp: Any, allowed_status_codes: set[int] | None = None) -> None:
    """Assert universal invariants on every API response."""
    assert resp.headers.get("content-type", "").startswith("application/json")
    body = resp.json()
    if allowed_status_codes is not None:
        assert resp.status_code in allowed_status_codes, f"Unexpected status {resp.status_code}, body={body}"
    if resp.status_code >= 400:
        assert "error" in body, f"Error response missing 'error': {body}"
        assert "detail" in body, f"Error response missing 'detail': {body}"


# ---------------------------------------------------------------------------
# Read endpoints
# ---------------------------------------------------------------------------


class TestHealth:
    def test_health(self) -> None:
        resp = _make_app().get("/api/v1/health")
        assert resp.status_code == 200
        assert resp.json() == {"status": "ok", "version": __version__, "tick": 0}


class TestState:
    def test_lists_every_kind(self) -> None:
        client = _make_app()
        _command(client, "create", "deploy", "web", image="nginx:1.0")
        body = client.get("/api/v1/state").json()
        assert body["tick"] == 0
        assert body["clock"] > 0
        assert set(body["objects"]) >= {"Pod", "Deployment", "StatefulSet", "PersistentVolumeClaim"}
        (dep,) = body["objects"]["Deployment"]
        assert dep["kind"] == "Deployment"
        assert dep["metadata"]["name"] == "web"
        assert dep["spec"]["template"]["spec"]["image"] == "nginx:1.0"


class TestEvents:
    def test_limit(self) -> None:
        client = _make_app()
        _command(client, "create", "deploy", "web", image="nginx:1.0", replicas=3)
        client.post("/api/v1/reconcile")
        events = client.get("/api/v1/events", params={"limit": 2}).json()
        assert len(events) == 2
        assert events[-1]["reason"] == "SuccessfulCreate"

    def test_limit_out_of_range(self) -> None:
        resp = _make_app().get("/api/v1/events", params={"limit": 0})
        assert resp.status_code == 400
        assert resp.json()["error"] == "INVALID_REQUEST"


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


class TestCommands:
    def test_create_ok(self) -> None:
        resp = _command(_make_app(), "create", "deploy", "web", image="nginx:1.0")
        assert resp.status_code == 200
        assert resp.json() == {"ok": True, "message": "deployment/web created", "tick": 0}

    def test_duplicate_is_409(self) -> None:
        client = _make_app()
        _command(client, "create", "cm", "settings")
        resp = _command(client, "create", "cm", "settings")
        assert resp.status_code == 409
        assert resp.json()["error"] == "ALREADY_EXISTS"

    def test_missing_is_404(self) -> None:
        resp = _command(_make_app(), "scale", "deploy", "web", replicas=2)
        assert resp.status_code == 404
        assert resp.json()["error"] == "NOT_FOUND"

    def test_invalid_is_400(self) -> None:
        resp = _command(_make_app(), "create", "deploy", "web", replicas=2)
        assert resp.status_code == 400
        assert resp.json()["error"] == "INVALID"

    def test_unsupported_kind_is_400(self) -> None:
        resp = _command(_make_app(), "create", "widget", "web")
        assert resp.status_code == 400
        assert resp.json()["error"] == "UNSUPPORTED"

    def test_unknown_verb_is_validation_error(self) -> None:
        resp = _command(_make_app(), "explode", "deploy", "web")
        assert resp.status_code == 400
        body = resp.json()
        assert body["error"] == "INVALID_REQUEST"
        assert body["detail"].startswith("verb:")


# ---------------------------------------------------------------------------
# Reconcile, goals, graph, metrics
# ---------------------------------------------------------------------------


class TestReconcile:
    def test_default_one_tick(self) -> None:
        client = _make_app()
        _command(client, "create", "deploy", "web", image="nginx:1.0", replicas=2)
        body = client.post("/api/v1/reconcile").json()
        assert body["tick"] == 1
        controllers = {a["controller"] for a in body["actions"]}
        assert controllers == {"deployment-controller", "replicaset-controller"}
        assert any(e["reason"] == "SuccessfulCreate" for e in body["events"])

    def test_many_ticks(self) -> None:
        client = _make_app()
        _command(client, "create", "deploy", "web", image="nginx:1.0", replicas=2)
        body = client.post("/api/v1/reconcile", json={"ticks": 3}).json()
        assert body["tick"] == 3
        assert client.get("/api/v1/health").json()["tick"] == 3

    def test_ticks_bounds(self) -> None:
        resp = _make_app().post("/api/v1/reconcile", json={"ticks": 101})
        _assert_valid_json_response(resp, allowed_status_codes={400})


class TestGoals:
    def test_goal_progress(self) -> None:
        goal = goal_from_dict({"id": "web-up", "check": {"type": "deployment_ready", "name": "web"}})
        client = _make_app(SimulationSession(goals=[goal]))
        assert client.get("/api/v1/goals").json()["completed"] is False

        _command(client, "create", "deploy", "web", image="nginx:1.0")
        client.post("/api/v1/reconcile", json={"ticks": 2})
        body = client.get("/api/v1/goals").json()
        assert body["completed"] is True
        assert body["goals"] == [
            {"id": "web-up", "description": "web-up", "achieved": True, "achieved_at_tick": 2},
        ]


class TestGraph:
    def test_dependents_of_deployment(self) -> None:
        client = _make_app()
        _command(client, "create", "deploy", "web", image="nginx:1.0", replicas=2)
        client.post("/api/v1/reconcile")
        body = client.get("/api/v1/graph/deploy/web").json()
        assert body["root"]["kind"] == "Deployment"
        assert sorted(n["kind"] for n in body["dependents"]) == ["Pod", "Pod", "ReplicaSet"]
        assert {e["edge_type"] for e in body["edges"]} == {"owner_reference"}

    def test_unknown_kind(self) -> None:
        resp = _make_app().get("/api/v1/graph/widget/web")
        assert resp.status_code == 400
        assert resp.json()["error"] == "UNSUPPORTED"

    def test_missing_object(self) -> None:
        resp = _make_app().get("/api/v1/graph/deploy/web")
        assert resp.status_code == 404
        assert resp.json()["error"] == "NOT_FOUND"


class TestMetrics:
    def test_prometheus_exposition(self) -> None:
        client = _make_app()
        _command(client, "create", "cm", "settings")
        resp = client.get("/metrics")
        assert resp.status_code == 200
        assert "kubesim_commands_total" in resp.text


# ===========================================================================
# Fuzzing
# ===========================================================================

_json_safe_text = st.text(
    alphabet=st.characters(codec="utf-8", exclude_categories=("Cs",)),
    min_size=0,
    max_size=40,
)

_json_values = st.recursive(
    st.none() | st.booleans() | st.integers(min_value=-3, max_value=8) | _json_safe_text,
    lambda children: st.lists(children, max_size=3) | st.dictionaries(_json_safe_text, children, max_size=3),
    max_leaves=8,
)

_field_names = st.sampled_from(
    [
        "image",
        "replicas",
        "labels",
        "selector",
        "failure_mode",
        "strategy",
        "max_surge",
        "max_unavailable",
        "service_name",
        "volume_claim_templates",
        "port",
        "headless",
        "capacity_pods",
        "unschedulable",
        "ready",
        "data",
        "storage",
        "node_name",
    ]
) | _json_safe_text

_kinds = st.sampled_from(["deploy", "rs", "sts", "svc", "po", "no", "cm", "secret", "pvc", "Pod"]) | _json_safe_text
_names = st.sampled_from(["web", "db", "db-0", "n1", "settings"]) | _json_safe_text
_verbs = st.sampled_from(["create", "scale", "patch", "delete", "set-image"])


class TestCommandFuzz:
    """Random commands never crash the server or the reconcile loop."""

    @given(
        verb=_verbs,
        kind=_kinds,
        name=_names,
        fields=st.dictionaries(_field_names, _json_values, max_size=4),
    )
    @settings(max_examples=100, deadline=None)
    def test_single_command_never_500(self, verb: str, kind: str, name: str, fields: dict[str, Any]) -> None:
        client = _make_app()
        resp = client.post("/api/v1/commands", json={"verb": verb, "kind": kind, "name": name, "fields": fields})
        _assert_valid_json_response(resp, allowed_status_codes={200, 400, 404, 409})

    @given(
        commands=st.lists(
            st.tuples(_verbs, _kinds, _names, st.dictionaries(_field_names, _json_values, max_size=3)),
            min_size=1,
            max_size=8,
        )
    )
    @settings(max_examples=50, deadline=None)
    def test_command_sequence_then_reconcile_never_500(
        self,
        commands: list[tuple[str, str, str, dict[str, Any]]],
    ) -> None:
        client = _make_app()
        for verb, kind, name, fields in commands:
            resp = client.post("/api/v1/commands", json={"verb": verb, "kind": kind, "name": name, "fields": fields})
            _assert_valid_json_response(resp, allowed_status_codes={200, 400, 404, 409})
        resp = client.post("/api/v1/reconcile", json={"ticks": 3})
        _assert_valid_json_response(resp, allowed_status_codes={200})

    @given(body=_json_values)
    @settings(max_examples=50, deadline=None)
    def test_arbitrary_body_never_500(self, body: Any) -> None:
        resp = _make_app().post("/api/v1/commands", json=body)
        _assert_valid_json_response(resp, allowed_status_codes={400})
