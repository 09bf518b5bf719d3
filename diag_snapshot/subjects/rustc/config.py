"""Configuration for the rustc subject."""

from collections.abc import Sequence
from pathlib import Path

from pydantic import BaseModel


class RustcConfig(BaseModel):
    """Configuration for the rustc subject."""

    rustc: str = "rustc"
    edition: str = "2021"
    args: Sequence[str] = ()
    build_root: Path = Path("build/diag-snapshot")
    # -Zui-testing renders every gutter line number as LL; needs RUSTC_BOOTSTRAP.
    ui_testing: bool = True
