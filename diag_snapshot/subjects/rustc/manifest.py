"""rustc subject manifest."""

from diag_snapshot.subjects.manifest import SubjectManifest
from diag_snapshot.subjects.rustc.config import RustcConfig
from diag_snapshot.subjects.rustc.subject import RustcSubject

rustc_manifest = SubjectManifest(
    config_cls=RustcConfig,
    subject_factory=RustcSubject.from_config,
)
