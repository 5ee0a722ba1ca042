from __future__ import annotations

import os
from pathlib import Path

import typer

from deploykit import __version__
from deploykit.cli.commands.release_cmd import (
    build_local_cmd,
    ensure_repo,
    publish,
    retag_latest_cmd,
    rollout_cmd,
)
from deploykit.core.errors import ErrorCode


app = typer.Typer(
    add_completion=False,
    no_args_is_help=True,
    rich_markup_mode="rich",
)


# Build time
app.command("ensure-repo")(ensure_repo)
app.command()(publish)
app.command("build-local")(build_local_cmd)
app.command("retag-latest")(retag_latest_cmd)

# Host time
app.command("rollout")(rollout_cmd)


def _show_version(value: bool) -> None:
    if value:
        typer.echo(__version__)
        raise typer.Exit(code=0)


@app.callback()
def _main(  # pyright: ignore[reportUnusedFunction]
    version: bool = typer.Option(
        False,
        "--version",
        help="Show version and exit.",
        callback=_show_version,
        is_eager=True,
    ),
    config: Path | None = typer.Option(
        None,
        "--config",
        help="Config file (overrides DEPLOYKIT_CONFIG and ./deploykit.toml)",
    ),
) -> None:
    del version
    if config is not None:
        path = config.expanduser()
        if not path.is_file():
            typer.echo(f"error: --config '{path}' is not a file", err=True)
            raise typer.Exit(code=int(ErrorCode.USER_ERROR))

        os.environ["DEPLOYKIT_CONFIG"] = str(path.resolve())


def main() -> None:
    app()
