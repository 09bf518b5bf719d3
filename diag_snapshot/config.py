"""Run configuration of the harness."""

import os
import sys
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Any

from pydantic import Field

from diag_snapshot.models.base import Model


def _default_workers() -> int:
    return os.cpu_count() or 1


class HarnessConfig(Model):
    """Configuration loaded from the harness YAML file."""

    corpus_root: Path = Field(..., description="Directory holding the test sources")
    expectations_root: Path | None = Field(
        default=None,
        description="Mirror directory for golden files, None keeps them beside sources",
    )
    subject: str = Field(default="command", description="Subject tool key")
    subject_config: Mapping[str, Any] = Field(
        default_factory=dict, description="Configuration of the subject tool"
    )
    extensions: Sequence[str] = Field(
        default=(".rs",), min_length=1, description="Suffixes of test sources"
    )
    directive_prefix: str = Field(default="//@", min_length=1)
    external_roots: Sequence[str] = Field(
        default_factory=list,
        description="Vendored source roots whose coordinates are erased",
    )
    normalize_addresses: bool = True
    platform: str = Field(default_factory=lambda: sys.platform)
    workers: int = Field(default_factory=_default_workers, ge=1)
    timeout: float = Field(default=60.0, gt=0, description="Seconds per execution")
    bless: bool = False
    name_filter: str | None = Field(
        default=None, description="Substring or glob selecting tests by name"
    )
