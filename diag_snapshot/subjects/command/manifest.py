"""Generic command subject manifest."""

from diag_snapshot.subjects.command.config import CommandConfig
from diag_snapshot.subjects.command.subject import CommandSubject
from diag_snapshot.subjects.manifest import SubjectManifest

command_manifest = SubjectManifest(
    config_cls=CommandConfig,
    subject_factory=CommandSubject.from_config,
)
