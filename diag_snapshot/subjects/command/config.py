"""Configuration for the generic command subject."""

from collections.abc import Mapping, Sequence

from pydantic import BaseModel, Field


class CommandConfig(BaseModel):
    """Configuration for the generic command subject."""

    program: Sequence[str] = Field(..., min_length=1)
    args: Sequence[str] = ()
    # Each item is formatted with the active revision; skipped for default runs.
    revision_args: Sequence[str] = ("--cfg", "{revision}")
    env: Mapping[str, str] = Field(default_factory=dict)
