"""Structured command objects and their results."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from kubesim.models.state import ClusterState


class Verb(StrEnum):
    """Imperative verbs accepted by the command layer."""

    CREATE = "create"
    SCALE = "scale"
    PATCH = "patch"
    DELETE = "delete"
    SET_IMAGE = "set-image"


class CommandErrorCode(StrEnum):
    """Why a command was rejected."""

    ALREADY_EXISTS = "ALREADY_EXISTS"
    NOT_FOUND = "NOT_FOUND"
    INVALID = "INVALID"
    UNSUPPORTED = "UNSUPPORTED"


@dataclass(frozen=True)
class Command:
    """A parsed user command, e.g. ``Command(Verb.SCALE, "deploy", "web", {"replicas": 5})``."""

    verb: Verb
    kind: str
    name: str
    fields: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class CommandError:
    code: CommandErrorCode
    message: str


@dataclass
class CommandResult:
    """Outcome of one command.

    On success ``state`` is a new snapshot; on failure it is the caller's
    snapshot, untouched, and ``error`` says why.
    """

    state: ClusterState
    error: CommandError | None = None
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.error is None
