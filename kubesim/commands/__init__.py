"""Command layer: structured user commands applied to a ClusterState snapshot."""

from kubesim.commands.handlers import create, delete, execute, patch, scale, set_image
from kubesim.commands.results import Command, CommandError, CommandErrorCode, CommandResult, Verb

__all__ = [
    "Command",
    "CommandError",
    "CommandErrorCode",
    "CommandResult",
    "Verb",
    "create",
    "delete",
    "execute",
    "patch",
    "scale",
    "set_image",
]
