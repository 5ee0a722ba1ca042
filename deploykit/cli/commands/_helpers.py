"""Shared helpers for CLI commands."""

from __future__ import annotations

from typing import TYPE_CHECKING, NoReturn, TypeVar

import typer

from deploykit.core.result import Err, Ok, Result
from deploykit.output.errors import print_release_error, release_error_exit_code
from deploykit.services.errors import ReleaseError

if TYPE_CHECKING:
    from deploykit.cli.context import CLIContext


T = TypeVar("T")


def unwrap_or_exit[T](result: Result[T, ReleaseError], ctx: CLIContext) -> T:
    """Return the value of ``result`` or print its error and exit.

    Replaces the common pattern:
        match result:
            case Err(e):
                print_release_error(e, ctx.console)
                raise typer.Exit(code=release_error_exit_code(e))
            case Ok(value):
                ...
    """
    match result:
        case Ok(value):
            return value
        case Err(error):
            print_release_error(error, ctx.console)
            exit_with_code(release_error_exit_code(error))


def exit_with_code(code: int) -> NoReturn:
    """Exit with given code. Explicit helper for clarity."""
    raise typer.Exit(code=code)
