"""Artifact builder: one full ``docker build`` of the source tree.

The source revision and build time are written into the image itself as
OCI labels (and passed as build args), so a running container and its logs
can always be traced back to a commit and a build.
"""

from __future__ import annotations

from datetime import UTC, datetime
from pathlib import Path

from deploykit.core.config import BuildConfig
from deploykit.core.result import Err, Ok, Result
from deploykit.platform.process import run as run_process
from deploykit.platform.process import run_silent
from deploykit.services.errors import BuildError
from deploykit.services.model import Artifact
from deploykit.services.timeouts import (
    BUILD_TIMEOUT_SECONDS,
    DOCKER_TIMEOUT_SECONDS,
    GIT_TIMEOUT_SECONDS,
)

UNKNOWN_REVISION = "unknown"

LABEL_REVISION = "org.opencontainers.image.revision"
LABEL_CREATED = "org.opencontainers.image.created"


def resolve_revision(source_root: Path) -> str:
    """Return the commit sha of ``source_root``, or ``unknown`` outside git."""
    result = run_process(["git", "rev-parse", "HEAD"], cwd=source_root, timeout=GIT_TIMEOUT_SECONDS)
    if isinstance(result, Err):
        return UNKNOWN_REVISION
    return result.value.strip() or UNKNOWN_REVISION


def build_timestamp(now: datetime | None = None) -> str:
    """UTC ISO-8601 timestamp with second precision (``...T12:00:00+00:00``)."""
    moment = now or datetime.now(UTC)
    return moment.astimezone(UTC).replace(microsecond=0).isoformat()


def check_build_context(source_root: Path, config: BuildConfig) -> Result[None, BuildError]:
    """Refuse to build from a context that would produce an incomplete image."""
    if not source_root.is_dir():
        return Err(BuildError(message=f"source root not found: {source_root}"))

    dockerfile = source_root / config.dockerfile
    if not dockerfile.is_file():
        return Err(BuildError(message=f"Dockerfile not found: {dockerfile}"))

    if config.static_subpath:
        static_dir = source_root / config.static_subpath
        if not static_dir.is_dir():
            return Err(
                BuildError(
                    message=f"static assets directory not found: {static_dir}",
                    hint="set build.static_subpath = \"\" if the service serves no static files",
                )
            )
    return Ok(None)


def build_command(
    config: BuildConfig,
    *,
    local_ref: str,
    revision: str,
    created: str,
) -> list[str]:
    cmd = ["docker", "build"]
    if config.compress:
        cmd.append("--compress")
    if config.no_cache:
        cmd.append("--no-cache")
    cmd.extend(
        [
            "--file",
            config.dockerfile,
            "--label",
            f"{LABEL_REVISION}={revision}",
            "--label",
            f"{LABEL_CREATED}={created}",
            "--build-arg",
            f"GIT_REVISION={revision}",
            "--build-arg",
            f"BUILD_TIMESTAMP={created}",
            "--tag",
            local_ref,
            ".",
        ]
    )
    return cmd


def inspect_image_id(ref: str, *, cwd: Path) -> Result[str, BuildError]:
    result = run_process(
        ["docker", "image", "inspect", "--format", "{{.Id}}", ref],
        cwd=cwd,
        timeout=DOCKER_TIMEOUT_SECONDS,
    )
    if isinstance(result, Err):
        return Err(
            BuildError(
                message=f"built image not found: {ref}",
                hint=result.error.detail,
            )
        )
    image_id = result.value.strip()
    if not image_id:
        return Err(BuildError(message=f"docker returned an empty image id for {ref}"))
    return Ok(image_id)


def build_artifact(
    source_root: Path,
    *,
    config: BuildConfig,
    image_name: str,
    now: datetime | None = None,
) -> Result[Artifact, BuildError]:
    """Build the image for ``source_root`` and return it as an Artifact.

    The image is tagged locally as ``{image_name}:{local_tag}``; registry
    tags are the publisher's job.
    """
    ok = check_build_context(source_root, config)
    if isinstance(ok, Err):
        return ok

    revision = resolve_revision(source_root)
    created = build_timestamp(now)
    local_ref = f"{image_name}:{config.local_tag}"

    cmd = build_command(config, local_ref=local_ref, revision=revision, created=created)
    built = run_silent(cmd, cwd=source_root, timeout=BUILD_TIMEOUT_SECONDS)
    if isinstance(built, Err):
        return Err(
            BuildError(
                message=f"docker build failed (exit {built.error.returncode})",
                hint=built.error.stderr.strip() or "see the docker build output above",
            )
        )

    image_id = inspect_image_id(local_ref, cwd=source_root)
    if isinstance(image_id, Err):
        return image_id

    return Ok(
        Artifact(
            image_id=image_id.value,
            revision=revision,
            created=created,
            local_ref=local_ref,
        )
    )
