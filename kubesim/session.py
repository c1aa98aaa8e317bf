"""SimulationSession: the per-simulation context object.

Constructed once per simulation. It holds the configuration, the
failure-injection rules, the engine, the current snapshot and the goal
tracker. Nothing else in the package keeps module-level simulation
state; the uid counter travels inside the snapshot itself.
"""

from __future__ import annotations

from collections.abc import Mapping

from kubesim.commands import Command, CommandResult, execute
from kubesim.controllers import ControllerAction
from kubesim.engine import Engine, ReconcileReport, build_engine
from kubesim.goals import Goal, GoalTracker
from kubesim.models.config import KubeSimConfig
from kubesim.models.events import FailureMode, SimEvent
from kubesim.models.state import ClusterState
from kubesim.observability.logging import get_logger

_log = get_logger("session")


def parse_failure_rules(raw: Mapping[str, str | FailureMode]) -> dict[str, FailureMode]:
    """Validate an ``image -> failure mode`` mapping. Raises ValueError on unknown modes."""
    rules: dict[str, FailureMode] = {}
    for image, mode in raw.items():
        try:
            rules[image] = FailureMode(mode)
        except ValueError:
            valid = {m.value for m in FailureMode}
            raise ValueError(f"Invalid failure mode for image {image}: {mode}. Must be one of {valid}") from None
    return rules


class SimulationSession:
    """Applies commands and reconcile ticks to one evolving ClusterState."""

    def __init__(
        self,
        config: KubeSimConfig | None = None,
        failure_rules: Mapping[str, str | FailureMode] | None = None,
        goals: list[Goal] | None = None,
        initial_state: ClusterState | None = None,
    ) -> None:
        self.config = config or KubeSimConfig()
        self.failure_rules = parse_failure_rules(failure_rules or {})
        self.engine: Engine = build_engine(self.config.engine, self.failure_rules)
        self.goals = GoalTracker(list(goals or []))
        self._state = initial_state if initial_state is not None else ClusterState()
        self._last_actions: list[ControllerAction] = []
        _log.info(
            "session_started",
            failure_rules=len(self.failure_rules),
            goals=len(self.goals.goals),
            tick=self._state.tick,
        )

    @property
    def state(self) -> ClusterState:
        return self._state

    @property
    def last_actions(self) -> list[ControllerAction]:
        """Controller actions from the most recent reconcile call."""
        return list(self._last_actions)

    def apply(self, command: Command) -> CommandResult:
        """Execute *command*; on success the result's snapshot becomes current."""
        result = execute(self._state, command, config=self.config.defaults)
        if result.ok:
            result.state.trim_events(self.config.engine.event_history_limit)
            self._state = result.state
            self.goals.evaluate(self._state)
        return result

    def reconcile(self, ticks: int = 1) -> list[ReconcileReport]:
        """Run *ticks* reconcile passes, evaluating goals after each one."""
        if ticks < 1:
            raise ValueError(f"ticks must be >= 1, got {ticks}")
        reports: list[ReconcileReport] = []
        for _ in range(ticks):
            report = self.engine.run(self._state)
            self._state = report.state
            self.goals.evaluate(self._state)
            reports.append(report)
        self._last_actions = [action for report in reports for action in report.actions]
        return reports

    def events(self, limit: int | None = None) -> list[SimEvent]:
        """Most recent events, oldest first."""
        events = self._state.events
        if limit is not None:
            return list(events[-limit:]) if limit > 0 else []
        return list(events)
