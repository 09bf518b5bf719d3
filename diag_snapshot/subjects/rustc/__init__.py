"""rustc subject module."""

from diag_snapshot.subjects.rustc.config import RustcConfig
from diag_snapshot.subjects.rustc.manifest import rustc_manifest
from diag_snapshot.subjects.rustc.subject import RustcSubject

__all__ = ["RustcConfig", "RustcSubject", "rustc_manifest"]
