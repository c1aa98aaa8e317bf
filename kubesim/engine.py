"""Reconciliation engine.

One call to :meth:`Engine.run` is one reconcile tick:

1. every controller stage, in fixed order, receives a private copy of the
   snapshot produced by the stage before it and mutates only that copy;
2. a status pass lets each controller recompute status fields from the
   final snapshot;
3. the tick counter advances, the event feed is capped, and (when
   enabled) structural invariants are checked.

The input snapshot is never mutated, so callers can keep it for
comparison or undo.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass

from kubesim.controllers import Controller, ControllerAction, ReconcileContext, default_controllers
from kubesim.invariants import check_invariants
from kubesim.models.config import EngineConfig
from kubesim.models.events import FailureMode, SimEvent
from kubesim.models.state import ClusterState
from kubesim.observability.logging import bind_tick, clear_tick, get_logger
from kubesim.observability.metrics import controller_actions_total, events_total, reconcile_ticks_total

_log = get_logger("engine")


@dataclass
class ReconcileReport:
    """Outcome of a single tick: the new snapshot plus what happened."""

    state: ClusterState
    actions: list[ControllerAction]
    events: list[SimEvent]


class Engine:
    """Runs a fixed pipeline of controllers over a ClusterState."""

    def __init__(
        self,
        controllers: list[Controller] | None = None,
        config: EngineConfig | None = None,
        failure_rules: Mapping[str, FailureMode] | None = None,
    ) -> None:
        self._controllers = controllers if controllers is not None else default_controllers()
        self._config = config or EngineConfig()
        self._failure_rules = dict(failure_rules or {})

    @property
    def controllers(self) -> list[Controller]:
        return list(self._controllers)

    @property
    def config(self) -> EngineConfig:
        return self._config

    def run(self, state: ClusterState) -> ReconcileReport:
        ctx = ReconcileContext(tick=state.tick, config=self._config, failure_rules=self._failure_rules)
        bind_tick(ctx.tick)
        try:
            current = state
            for controller in self._controllers:
                staged = current.clone()
                controller.reconcile(staged, ctx)
                current = staged

            final = current.clone()
            for controller in self._controllers:
                controller.update_status(final, ctx)

            final.tick = state.tick + 1
            final.trim_events(self._config.event_history_limit)

            if self._config.strict_invariants:
                check_invariants(final)
        finally:
            clear_tick()

        reconcile_ticks_total.inc()
        for action in ctx.actions:
            controller_actions_total.labels(controller=action.controller, action=action.action).inc()
        for event in ctx.events:
            events_total.labels(type=event.type.value, reason=event.reason).inc()

        _log.info(
            "reconcile_tick",
            tick=ctx.tick,
            actions=len(ctx.actions),
            events=len(ctx.events),
            pods=len(final.pods),
        )
        return ReconcileReport(state=final, actions=ctx.actions, events=ctx.events)

    def reconcile(self, state: ClusterState) -> ClusterState:
        """Advance *state* by one tick and return the new snapshot."""
        return self.run(state).state


def build_engine(
    config: EngineConfig | None = None,
    failure_rules: Mapping[str, FailureMode] | None = None,
) -> Engine:
    """Engine with the default controller pipeline."""
    return Engine(default_controllers(), config=config, failure_rules=failure_rules)


def reconcile(
    state: ClusterState,
    *,
    config: EngineConfig | None = None,
    failure_rules: Mapping[str, FailureMode] | None = None,
) -> ClusterState:
    """Pure single-tick reconcile with the default controllers."""
    return build_engine(config, failure_rules).reconcile(state)
