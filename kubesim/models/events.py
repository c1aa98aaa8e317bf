"""Core event data structures and enumerations."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum


class EventType(StrEnum):
    """Type of a simulated cluster event."""

    NORMAL = "Normal"
    WARNING = "Warning"


class PodPhase(StrEnum):
    """Lifecycle phase of a simulated pod."""

    PENDING = "Pending"
    RUNNING = "Running"
    SUCCEEDED = "Succeeded"
    FAILED = "Failed"
    CRASH_LOOP_BACK_OFF = "CrashLoopBackOff"
    TERMINATING = "Terminating"


class FailureMode(StrEnum):
    """Failure injected into a pod, either by its spec or by image rule."""

    IMAGE_PULL_ERROR = "ImagePullError"
    CRASH_LOOP_BACK_OFF = "CrashLoopBackOff"
    OOM_KILLED = "OOMKilled"


@dataclass(frozen=True)
class SimEvent:
    """Canonical event representation.

    Emitted by controllers and the command layer, read by the UI feed and
    the goal evaluator. Immutable: no component may mutate a SimEvent after
    it has been appended to the cluster's event feed.
    """

    timestamp: int  # logical clock value at emission
    tick: int
    type: EventType
    reason: str
    object_kind: str
    object_name: str
    message: str
