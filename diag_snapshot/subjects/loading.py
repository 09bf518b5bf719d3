"""Resolve the subject tool named by the ``subject`` config key."""

import logging
from importlib.metadata import entry_points
from typing import Any

from diag_snapshot.subjects.manifest import SubjectManifest

log = logging.getLogger(__name__)

ENTRY_POINT_GROUP = "diag_snapshot.subjects"


class SubjectNotFoundError(Exception):
    """Raised when the configured subject tool cannot be resolved."""


def load_subject_manifest(key: str) -> SubjectManifest[Any]:
    """Load the manifest of the subject tool registered under ``key``.

    Subjects are registered in the ``diag_snapshot.subjects`` entry point
    group, so a third-party package can add its own compiler driver.

    Args:
        key: Value of the ``subject`` config key (e.g., "command", "rustc")

    Returns:
        The subject manifest instance

    Raises:
        SubjectNotFoundError: If no subject is registered under ``key``, or
            its entry point does not export a SubjectManifest

    """
    registered = entry_points(group=ENTRY_POINT_GROUP)
    matches = registered.select(name=key)

    if not matches:
        available = ", ".join(sorted(registered.names)) or "none"
        raise SubjectNotFoundError(
            f"Unknown subject '{key}' in the 'subject' config key. "
            f"Registered subjects: {available}"
        )

    entry = next(iter(matches))
    manifest = entry.load()
    if not isinstance(manifest, SubjectManifest):
        raise SubjectNotFoundError(
            f"Entry point '{entry.value}' for subject '{key}' "
            f"does not export a SubjectManifest"
        )

    log.debug("Subject '%s' resolved to %s", key, entry.value)
    return manifest
