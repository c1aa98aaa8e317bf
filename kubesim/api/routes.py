"""REST routes mounted under ``/api/v1``.

Handlers are ``async`` so that every request runs on the event loop
thread; the session is single-actor and is never touched concurrently.
"""

from __future__ import annotations

from fastapi import APIRouter, Query, Request
from fastapi.responses import JSONResponse

from kubesim import __version__
from kubesim.api.schemas import (
    ActionModel,
    CommandRequest,
    CommandResponse,
    ErrorResponse,
    EventModel,
    GoalModel,
    GoalsResponse,
    GraphEdgeModel,
    GraphNodeModel,
    GraphResponse,
    HealthResponse,
    ReconcileRequest,
    ReconcileResponse,
    StateResponse,
    serialize_object,
)
from kubesim.commands import Command, CommandErrorCode
from kubesim.graph import DependencyGraph, GraphNode
from kubesim.models.state import KIND_COLLECTIONS, resolve_kind
from kubesim.session import SimulationSession

router = APIRouter()

_STATUS_BY_CODE = {
    CommandErrorCode.INVALID: 400,
    CommandErrorCode.UNSUPPORTED: 400,
    CommandErrorCode.NOT_FOUND: 404,
    CommandErrorCode.ALREADY_EXISTS: 409,
}


def _session(request: Request) -> SimulationSession:
    return request.app.state.session  # type: ignore[no-any-return]


def _error(status: int, error: str, detail: str) -> JSONResponse:
    return JSONResponse(status_code=status, content=ErrorResponse(error=error, detail=detail).model_dump())


def _node_model(node: GraphNode) -> GraphNodeModel:
    return GraphNodeModel(kind=node.kind, name=node.name, uid=node.uid)


@router.get("/health", response_model=HealthResponse)
async def health(request: Request) -> HealthResponse:
    return HealthResponse(version=__version__, tick=_session(request).state.tick)


@router.get("/state", response_model=StateResponse)
async def get_state(request: Request) -> StateResponse:
    state = _session(request).state
    objects = {kind: [serialize_object(obj) for obj in state.collection(kind)] for kind in KIND_COLLECTIONS}
    return StateResponse(tick=state.tick, clock=state.clock, objects=objects)


@router.get("/events", response_model=list[EventModel])
async def get_events(request: Request, limit: int = Query(default=50, ge=1, le=10000)) -> list[EventModel]:
    return [EventModel.from_event(e) for e in _session(request).events(limit)]


@router.post("/commands", response_model=CommandResponse)
async def post_command(request: Request, body: CommandRequest) -> CommandResponse | JSONResponse:
    session = _session(request)
    result = session.apply(Command(verb=body.verb, kind=body.kind, name=body.name, fields=body.fields))
    if result.error is not None:
        return _error(_STATUS_BY_CODE[result.error.code], result.error.code.value, result.error.message)
    return CommandResponse(message=result.message, tick=session.state.tick)


@router.post("/reconcile", response_model=ReconcileResponse)
async def post_reconcile(request: Request, body: ReconcileRequest | None = None) -> ReconcileResponse:
    session = _session(request)
    reports = session.reconcile((body or ReconcileRequest()).ticks)
    return ReconcileResponse(
        tick=session.state.tick,
        actions=[ActionModel(controller=a.controller, action=a.action, details=a.details) for r in reports for a in r.actions],
        events=[EventModel.from_event(e) for r in reports for e in r.events],
    )


@router.get("/goals", response_model=GoalsResponse)
async def get_goals(request: Request) -> GoalsResponse:
    tracker = _session(request).goals
    return GoalsResponse(
        completed=tracker.completed,
        goals=[
            GoalModel(id=s.id, description=s.description, achieved=s.achieved, achieved_at_tick=s.achieved_at_tick)
            for s in tracker.status()
        ],
    )


@router.get("/graph/{kind}/{name}", response_model=GraphResponse)
async def get_graph(request: Request, kind: str, name: str) -> GraphResponse | JSONResponse:
    canonical = resolve_kind(kind)
    if canonical is None:
        return _error(400, CommandErrorCode.UNSUPPORTED.value, f"unsupported kind: {kind!r}")
    graph = DependencyGraph.from_state(_session(request).state)
    root = graph.node(canonical, name)
    if root is None:
        return _error(404, CommandErrorCode.NOT_FOUND.value, f"{canonical} {name!r} not found")
    result = graph.dependents(canonical, name)
    return GraphResponse(
        root=_node_model(root),
        dependents=[_node_model(n) for n in result.resources],
        edges=[
            GraphEdgeModel(
                source=_node_model(e.source),
                target=_node_model(e.target),
                edge_type=e.edge_type.value,
                source_field=e.source_field,
            )
            for e in result.edges
        ],
        depth_reached=result.depth_reached,
        truncated=result.truncated,
    )
