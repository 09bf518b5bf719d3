"""Generic command-line subject module."""

from diag_snapshot.subjects.command.config import CommandConfig
from diag_snapshot.subjects.command.manifest import command_manifest
from diag_snapshot.subjects.command.subject import CommandSubject

__all__ = ["CommandConfig", "CommandSubject", "command_manifest"]
