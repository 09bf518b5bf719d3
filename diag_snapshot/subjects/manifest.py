"""Subject manifest definition for the plugin system."""

from collections.abc import Callable
from dataclasses import dataclass

from pydantic import BaseModel

from diag_snapshot.subjects.base import SubjectTool


@dataclass(frozen=True, kw_only=True)
class SubjectManifest[ConfigT: BaseModel]:
    """Manifest describing a subject tool plugin.

    The manifest holds the configuration class and the factory building the
    tool from a validated configuration, so tools are resolved by key.
    """

    config_cls: type[ConfigT]
    subject_factory: Callable[[ConfigT], SubjectTool]
