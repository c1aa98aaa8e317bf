"""Prometheus counters for the simulator.

All metrics live in the default ``prometheus_client`` registry and are
exported by the REST API at ``GET /metrics``.
"""

from __future__ import annotations

from prometheus_client import Counter

reconcile_ticks_total = Counter(
    "kubesim_reconcile_ticks_total",
    "Reconcile ticks completed by the engine",
)

controller_actions_total = Counter(
    "kubesim_controller_actions_total",
    "Controller actions recorded during reconcile",
    ["controller", "action"],
)

events_total = Counter(
    "kubesim_events_total",
    "Simulated cluster events emitted",
    ["type", "reason"],
)

commands_total = Counter(
    "kubesim_commands_total",
    "Structured commands applied or rejected",
    ["verb", "outcome"],
)
