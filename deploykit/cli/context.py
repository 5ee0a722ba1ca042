from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

import typer

from deploykit.core.config import ReleaseConfig, load_release_config
from deploykit.core.errors import ErrorCode
from deploykit.core.result import Err
from deploykit.output.console import ConsoleProtocol, RichConsole
from deploykit.output.trace import ProgressTrace


@dataclass(frozen=True, slots=True)
class CLIContext:
    config: ReleaseConfig
    console: ConsoleProtocol
    cwd: Path

    def trace(self) -> ProgressTrace:
        return ProgressTrace(self.console)


def build_context() -> CLIContext:
    """Load and validate the configuration once, before any pipeline step."""
    config_result = load_release_config(None, os.environ)
    if isinstance(config_result, Err):
        error = config_result.error
        typer.echo(f"error: {error.message}", err=True)
        if error.hint:
            typer.echo(f"hint: {error.hint}", err=True)
        raise typer.Exit(code=int(ErrorCode.USER_ERROR))

    return CLIContext(
        config=config_result.value,
        console=RichConsole(),
        cwd=Path.cwd(),
    )
