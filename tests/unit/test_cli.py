"""Tests for the kubesim command-line interface (kubesim.cli.main)."""

from __future__ import annotations

import json
from collections.abc import Iterator
from pathlib import Path
from typing import Any

import pytest
import structlog
from click.testing import CliRunner

import kubesim.app
from kubesim.cli import cli


@pytest.fixture(autouse=True)
def _quiet_logging(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Keep structlog output out of the captured CLI streams."""
    monkeypatch.setattr("kubesim.cli.main.setup_logging", lambda level="info": None)
    structlog.configure(logger_factory=structlog.ReturnLoggerFactory())
    yield
    structlog.reset_defaults()


def _write_scenario(tmp_path: Path, data: Any) -> Path:
    path = tmp_path / "scenario.json"
    path.write_text(data if isinstance(data, str) else json.dumps(data))
    return path


def _rollout_scenario() -> dict[str, Any]:
    return {
        "goals": [{"id": "web-up", "check": {"type": "deployment_ready", "name": "web"}}],
        "steps": [
            {"command": {"verb": "create", "kind": "deploy", "name": "web", "fields": {"replicas": 2, "image": "nginx:1.0"}}},
            {"reconcile": 2},
        ],
    }


# ---------------------------------------------------------------------------
# run
# ---------------------------------------------------------------------------


class TestRun:
    def test_text_output(self, tmp_path: Path) -> None:
        result = CliRunner().invoke(cli, ["run", str(_write_scenario(tmp_path, _rollout_scenario()))])
        assert result.exit_code == 0, result.output
        lines = result.output.splitlines()
        assert lines[0] == "$ create deploy/web [ok] deployment/web created"
        assert any(line.startswith("--- tick 1 (") for line in lines)
        assert any(line.startswith("--- tick 2 (") for line in lines)
        assert "  [replicaset-controller] create web-" in result.output
        assert "--- goals" in lines
        assert "  [x] web-up: web-up (tick 2)" in lines

    def test_json_output(self, tmp_path: Path) -> None:
        path = _write_scenario(tmp_path, _rollout_scenario())
        result = CliRunner().invoke(cli, ["run", str(path), "--json"])
        assert result.exit_code == 0, result.output
        payload = json.loads(result.stdout)
        assert payload["tick"] == 2
        assert payload["completed"] is True
        assert payload["commands"] == [
            {"step": 0, "command": "create deploy/web", "ok": True, "message": "deployment/web created"},
        ]
        assert [t["tick"] for t in payload["ticks"]] == [1, 2]
        assert payload["goals"] == [{"id": "web-up", "achieved": True, "achieved_at_tick": 2}]

    def test_rejected_command_does_not_abort(self, tmp_path: Path) -> None:
        scenario = {
            "steps": [
                {"command": {"verb": "scale", "kind": "deploy", "name": "ghost", "fields": {"replicas": 2}}},
                {"reconcile": 1},
            ]
        }
        result = CliRunner().invoke(cli, ["run", str(_write_scenario(tmp_path, scenario)), "--json"])
        assert result.exit_code == 0, result.output
        payload = json.loads(result.stdout)
        (entry,) = payload["commands"]
        assert entry["ok"] is False
        assert entry["message"].startswith("NOT_FOUND")
        assert payload["tick"] == 1
        assert payload["completed"] is True

    def test_unfinished_goal_is_unchecked(self, tmp_path: Path) -> None:
        scenario = _rollout_scenario()
        scenario["steps"] = scenario["steps"][:1]
        result = CliRunner().invoke(cli, ["run", str(_write_scenario(tmp_path, scenario))])
        assert result.exit_code == 0, result.output
        assert "  [ ] web-up: web-up" in result.output.splitlines()

    def test_failure_rules_applied(self, tmp_path: Path) -> None:
        scenario = {
            "failure_rules": {"broken:1": "ImagePullError"},
            "steps": [
                {"command": {"verb": "create", "kind": "po", "name": "p", "fields": {"image": "broken:1"}}},
                {"reconcile": 1},
            ],
        }
        result = CliRunner().invoke(cli, ["run", str(_write_scenario(tmp_path, scenario))])
        assert result.exit_code == 0, result.output
        assert "[pod-lifecycle] image-pull-error pod p cannot pull broken:1" in result.output


class TestRunErrors:
    @pytest.mark.parametrize(
        ("data", "message"),
        [
            ("{not json", "invalid JSON"),
            ([], "top level must be an object"),
            ({"steps": {}}, "'steps' must be a list"),
            ({"steps": [{"sleep": 1}]}, "expected 'command' or 'reconcile'"),
            ({"steps": [{"reconcile": 0}]}, "'reconcile' must be a positive integer"),
            ({"steps": [{"command": {"verb": "explode", "kind": "deploy", "name": "web"}}]}, "unknown verb 'explode'"),
            ({"steps": [{"command": {"verb": "create", "kind": "deploy"}}]}, "'kind' and 'name' are required"),
            ({"goals": [{"check": {"type": "nope"}}]}, "bad goal"),
            ({"failure_rules": {"img": "Exploded"}}, "bad failure_rules"),
        ],
    )
    def test_bad_scenario_exits_non_zero(self, tmp_path: Path, data: Any, message: str) -> None:
        result = CliRunner().invoke(cli, ["run", str(_write_scenario(tmp_path, data))])
        assert result.exit_code == 1
        assert message in result.output

    def test_missing_file(self, tmp_path: Path) -> None:
        result = CliRunner().invoke(cli, ["run", str(tmp_path / "absent.json")])
        assert result.exit_code == 2

    def test_bad_config_env(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("KUBESIM_LOG_LEVEL", "loud")
        result = CliRunner().invoke(cli, ["run", str(_write_scenario(tmp_path, _rollout_scenario()))])
        assert result.exit_code == 1
        assert "Invalid log level: loud" in result.output


# ---------------------------------------------------------------------------
# serve
# ---------------------------------------------------------------------------


class TestServe:
    def test_passes_scenario_to_app(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        seen: dict[str, Any] = {}

        async def fake_main(port: int | None = None, failure_rules: Any = None, goals: Any = None) -> None:
            seen.update(port=port, failure_rules=failure_rules, goals=goals)

        monkeypatch.setattr(kubesim.app, "main", fake_main)
        scenario = _rollout_scenario()
        scenario["failure_rules"] = {"bad:1": "CrashLoopBackOff"}
        path = _write_scenario(tmp_path, scenario)

        result = CliRunner().invoke(cli, ["serve", "--port", "9090", "--scenario", str(path)])
        assert result.exit_code == 0, result.output
        assert seen["port"] == 9090
        assert seen["failure_rules"] == {"bad:1": "CrashLoopBackOff"}
        assert [g.id for g in seen["goals"]] == ["web-up"]

    def test_port_range(self) -> None:
        result = CliRunner().invoke(cli, ["serve", "--port", "80"])
        assert result.exit_code == 2
