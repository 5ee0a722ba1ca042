"""Release commands - provision, publish, retag and roll out images."""

from __future__ import annotations

import typer

from deploykit.cli.commands._helpers import exit_with_code, unwrap_or_exit
from deploykit.cli.context import build_context
from deploykit.core.errors import ErrorCode
from deploykit.core.result import Err
from deploykit.output.console import Style
from deploykit.output.errors import print_release_error, release_error_exit_code
from deploykit.services.release import (
    build_local,
    provision,
    release_build,
    retag_latest,
    rollout_host,
)


def ensure_repo() -> None:
    """Ensure the image repository exists in every configured region."""
    ctx = build_context()
    refs = unwrap_or_exit(provision(ctx.config, trace=ctx.trace(), cwd=ctx.cwd), ctx)
    for ref in refs:
        ctx.console.print(ref.uri)


def publish(
    tag: str | None = typer.Argument(
        None,
        help="Tag to publish in addition to 'latest' (default: IMAGE_TAG or 'latest')",
        show_default=False,
    ),
) -> None:
    """Build the image and publish it under TAG and 'latest'."""
    ctx = build_context()
    result = unwrap_or_exit(
        release_build(ctx.config, requested_tag=tag, trace=ctx.trace(), cwd=ctx.cwd),
        ctx,
    )
    ctx.console.success(f"published {result.requested_tag_uri}")
    if result.latest_tag_uri != result.requested_tag_uri:
        ctx.console.success(f"published {result.latest_tag_uri}")
    ctx.console.print(
        f"image {result.artifact.image_id} (revision {result.artifact.revision})",
        Style.DIM,
    )


def build_local_cmd() -> None:
    """Build the image under a local-only tag, without touching the registry."""
    ctx = build_context()
    artifact = unwrap_or_exit(build_local(ctx.config, trace=ctx.trace(), cwd=ctx.cwd), ctx)
    ctx.console.success(f"built {artifact.local_ref}")
    ctx.console.print(f"run: docker run --rm -p 8080:8080 --env-file .env {artifact.local_ref}", Style.DIM)
    ctx.console.print("or: docker-compose -f docker-compose.local.yml up", Style.DIM)


def retag_latest_cmd(
    tag: str = typer.Argument(..., help="Existing tag that 'latest' should point at"),
) -> None:
    """Point 'latest' at an existing TAG (stale-latest recovery, manual rollback)."""
    ctx = build_context()
    uri = unwrap_or_exit(retag_latest(ctx.config, tag, trace=ctx.trace(), cwd=ctx.cwd), ctx)
    ctx.console.success(f"{uri} -> {tag}")


def rollout_cmd() -> None:
    """Pull 'latest' on this host, restart the service and verify it runs."""
    ctx = build_context()
    result = rollout_host(ctx.config, trace=ctx.trace(), cwd=ctx.cwd)
    if isinstance(result, Err):
        # Host files are provisioned outside this tool.
        print_release_error(result.error, ctx.console)
        exit_with_code(int(ErrorCode.IO_ERROR))

    report = result.value
    if report.healthy:
        return

    if report.error is None:
        ctx.console.error(f"rollout ended in state {report.state}")
        exit_with_code(int(ErrorCode.ROLLOUT_ERROR))
    print_release_error(report.error, ctx.console)
    exit_with_code(release_error_exit_code(report.error))
