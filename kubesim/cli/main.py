"""Click commands: ``kubesim serve`` and ``kubesim run``.

A scenario file is JSON::

    {
      "failure_rules": {"bad:1.0": "ImagePullError"},
      "goals": [{"id": "web-up", "check": {"type": "deployment_ready", "name": "web"}}],
      "steps": [
        {"command": {"verb": "create", "kind": "deploy", "name": "web",
                     "fields": {"replicas": 3, "image": "nginx:1.0"}}},
        {"reconcile": 3}
      ]
    }
"""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Any

import click

from kubesim.commands import Command, Verb
from kubesim.config import load_config
from kubesim.goals import Goal, goal_from_dict
from kubesim.observability.logging import setup_logging
from kubesim.session import SimulationSession


class ScenarioError(click.ClickException):
    """Malformed scenario file."""


def load_scenario(path: Path) -> dict[str, Any]:
    try:
        data = json.loads(path.read_text())
    except json.JSONDecodeError as exc:
        raise ScenarioError(f"{path}: invalid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise ScenarioError(f"{path}: top level must be an object")
    if not isinstance(data.get("steps", []), list):
        raise ScenarioError(f"{path}: 'steps' must be a list")
    return data


def _parse_goals(raw: Any) -> list[Goal]:
    if not isinstance(raw, list):
        raise ScenarioError("'goals' must be a list")
    try:
        return [goal_from_dict(item) for item in raw]
    except (ValueError, AttributeError) as exc:
        raise ScenarioError(f"bad goal: {exc}") from exc


def _parse_command(raw: Any, index: int) -> Command:
    if not isinstance(raw, dict):
        raise ScenarioError(f"step {index}: 'command' must be an object")
    try:
        verb = Verb(raw.get("verb"))
    except ValueError:
        raise ScenarioError(f"step {index}: unknown verb {raw.get('verb')!r}") from None
    kind, name = raw.get("kind"), raw.get("name")
    if not isinstance(kind, str) or not isinstance(name, str):
        raise ScenarioError(f"step {index}: 'kind' and 'name' are required strings")
    fields = raw.get("fields") or {}
    if not isinstance(fields, dict):
        raise ScenarioError(f"step {index}: 'fields' must be an object")
    return Command(verb=verb, kind=kind, name=name, fields=fields)


@click.group()
@click.version_option(package_name="kubesim")
def cli() -> None:
    """In-memory Kubernetes reconciliation simulator."""


@cli.command()
@click.option("--port", type=click.IntRange(1024, 65535), default=None, help="REST API port (overrides KUBESIM_API_PORT).")
@click.option(
    "--scenario",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="Load failure rules and goals from a scenario file.",
)
def serve(port: int | None, scenario: Path | None) -> None:
    """Serve the simulator over HTTP."""
    from kubesim.app import main

    failure_rules: dict[str, str] = {}
    goals: list[Goal] = []
    if scenario is not None:
        data = load_scenario(scenario)
        failure_rules = dict(data.get("failure_rules") or {})
        goals = _parse_goals(data.get("goals") or [])
    asyncio.run(main(port=port, failure_rules=failure_rules, goals=goals))


@cli.command()
@click.argument("scenario", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--json", "as_json", is_flag=True, help="Emit one JSON document instead of text.")
def run(scenario: Path, as_json: bool) -> None:
    """Replay SCENARIO and print what the controllers did each tick."""
    try:
        config = load_config()
    except ValueError as exc:
        raise click.ClickException(str(exc)) from exc
    setup_logging(config.log.level)

    data = load_scenario(scenario)
    goals = _parse_goals(data.get("goals") or [])
    try:
        session = SimulationSession(config, data.get("failure_rules") or {}, goals)
    except (ValueError, AttributeError) as exc:
        raise ScenarioError(f"bad failure_rules: {exc}") from exc

    ticks: list[dict[str, Any]] = []
    commands: list[dict[str, Any]] = []
    for index, step in enumerate(data.get("steps", [])):
        if not isinstance(step, dict):
            raise ScenarioError(f"step {index}: must be an object")
        if "command" in step:
            command = _parse_command(step["command"], index)
            result = session.apply(command)
            entry = {
                "step": index,
                "command": f"{command.verb} {command.kind}/{command.name}",
                "ok": result.ok,
                "message": result.message if result.ok else f"{result.error.code}: {result.error.message}",  # type: ignore[union-attr]
            }
            commands.append(entry)
            if not as_json:
                mark = "ok" if result.ok else "rejected"
                click.echo(f"$ {entry['command']} [{mark}] {entry['message']}")
        elif "reconcile" in step:
            count = step["reconcile"]
            if not isinstance(count, int) or isinstance(count, bool) or count < 1:
                raise ScenarioError(f"step {index}: 'reconcile' must be a positive integer")
            for report in session.reconcile(count):
                tick = report.state.tick
                actions = [
                    {"controller": a.controller, "action": a.action, "details": a.details} for a in report.actions
                ]
                ticks.append({"tick": tick, "actions": actions, "events": len(report.events)})
                if not as_json:
                    click.echo(f"--- tick {tick} ({len(actions)} actions, {len(report.events)} events)")
                    for a in actions:
                        click.echo(f"  [{a['controller']}] {a['action']} {a['details']}")
        else:
            raise ScenarioError(f"step {index}: expected 'command' or 'reconcile'")

    statuses = session.goals.status()
    if as_json:
        payload = {
            "tick": session.state.tick,
            "commands": commands,
            "ticks": ticks,
            "goals": [
                {"id": s.id, "achieved": s.achieved, "achieved_at_tick": s.achieved_at_tick} for s in statuses
            ],
            "completed": session.goals.completed,
        }
        click.echo(json.dumps(payload, indent=2))
        return

    if statuses:
        click.echo("--- goals")
        for s in statuses:
            where = f" (tick {s.achieved_at_tick})" if s.achieved else ""
            click.echo(f"  [{'x' if s.achieved else ' '}] {s.id}: {s.description}{where}")
