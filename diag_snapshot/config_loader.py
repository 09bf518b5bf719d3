"""Loading of the harness configuration from YAML."""

import asyncio
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from diag_snapshot.config import HarnessConfig

PATH_FIELDS = ("corpus_root", "expectations_root")


def _resolve_paths(data: Mapping[str, Any], base: Path) -> dict[str, Any]:
    resolved = dict(data)
    for key in PATH_FIELDS:
        if isinstance(value := resolved.get(key), str):
            resolved[key] = (base / value).resolve()
    return resolved


async def load_harness_config(path: Path) -> HarnessConfig:
    """Load and validate a harness configuration file.

    Relative corpus and expectation paths are resolved against the directory
    of the configuration file.

    Raises:
        FileNotFoundError: If the file does not exist
        ValueError: If the file is empty, not YAML, or fails validation

    """
    if not path.is_file():
        raise FileNotFoundError(f"Config file not found: {path}")

    content = await asyncio.to_thread(path.read_text, encoding="utf-8")

    try:
        data = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        raise ValueError(f"Empty config file: {path}")
    if not isinstance(data, Mapping):
        raise ValueError(f"Invalid harness config schema in {path}: expected a mapping")

    try:
        return HarnessConfig.model_validate(_resolve_paths(data, path.parent))
    except ValidationError as e:
        raise ValueError(f"Invalid harness config schema in {path}: {e}") from e
