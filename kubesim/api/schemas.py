"""Pydantic request/response models for the REST API."""

from __future__ import annotations

import dataclasses
from typing import Any

from pydantic import BaseModel, Field

from kubesim.commands.results import Verb
from kubesim.models.events import SimEvent
from kubesim.models.objects import KubeObject


class ErrorResponse(BaseModel):
    """Error envelope returned by every non-2xx response."""

    error: str
    detail: str


class HealthResponse(BaseModel):
    status: str = "ok"
    version: str
    tick: int


class CommandRequest(BaseModel):
    """Structured command, e.g. ``{"verb": "scale", "kind": "deploy", "name": "web", "fields": {"replicas": 3}}``."""

    verb: Verb
    kind: str = Field(min_length=1, max_length=64)
    name: str = Field(min_length=1, max_length=253)
    fields: dict[str, Any] = Field(default_factory=dict)


class CommandResponse(BaseModel):
    ok: bool = True
    message: str
    tick: int


class ReconcileRequest(BaseModel):
    ticks: int = Field(default=1, ge=1, le=100)


class ActionModel(BaseModel):
    controller: str
    action: str
    details: str


class EventModel(BaseModel):
    timestamp: int
    tick: int
    type: str
    reason: str
    object_kind: str
    object_name: str
    message: str

    @classmethod
    def from_event(cls, event: SimEvent) -> EventModel:
        return cls(**dataclasses.asdict(event))


class ReconcileResponse(BaseModel):
    tick: int
    actions: list[ActionModel]
    events: list[EventModel]


class StateResponse(BaseModel):
    tick: int
    clock: int
    objects: dict[str, list[dict[str, Any]]]


class GoalModel(BaseModel):
    id: str
    description: str
    achieved: bool
    achieved_at_tick: int | None = None


class GoalsResponse(BaseModel):
    completed: bool
    goals: list[GoalModel]


class GraphNodeModel(BaseModel):
    kind: str
    name: str
    uid: str | None = None


class GraphEdgeModel(BaseModel):
    source: GraphNodeModel
    target: GraphNodeModel
    edge_type: str
    source_field: str


class GraphResponse(BaseModel):
    root: GraphNodeModel
    dependents: list[GraphNodeModel]
    edges: list[GraphEdgeModel]
    depth_reached: int
    truncated: bool


def serialize_object(obj: KubeObject) -> dict[str, Any]:
    """Plain-dict view of a simulated object, with its kind."""
    return {"kind": obj.kind, **dataclasses.asdict(obj)}
