"""Tag publisher: bind tags to an artifact and push them.

Every publish binds two tags to the same image id: the requested tag and
``latest``. The requested tag is pushed first; if only the ``latest`` push
fails the result is a ``LatestTagStaleError``, and ``rebind_latest`` is the
narrow fix.
"""

from __future__ import annotations

from pathlib import Path

from deploykit.core.config import LATEST_TAG, is_valid_tag
from deploykit.core.result import Err, Ok, Result
from deploykit.platform.process import ProcessError
from deploykit.platform.process import run as run_process
from deploykit.services.errors import LatestTagStaleError, PublishError
from deploykit.services.model import Artifact, PublishResult, RepositoryRef
from deploykit.services.registry import RegistrySession
from deploykit.services.timeouts import (
    DOCKER_TIMEOUT_SECONDS,
    PULL_TIMEOUT_SECONDS,
    PUSH_TIMEOUT_SECONDS,
)


def tag_image(source: str, target: str, *, cwd: Path) -> Result[str, ProcessError]:
    return run_process(["docker", "tag", source, target], cwd=cwd, timeout=DOCKER_TIMEOUT_SECONDS)


def push_image(ref: str, *, session: RegistrySession, cwd: Path) -> Result[str, ProcessError]:
    return run_process(
        ["docker", "push", ref],
        cwd=cwd,
        env=session.env,
        timeout=PUSH_TIMEOUT_SECONDS,
    )


def _bind_and_push(
    image: str, target: str, *, session: RegistrySession, cwd: Path
) -> Result[str, ProcessError]:
    tagged = tag_image(image, target, cwd=cwd)
    if isinstance(tagged, Err):
        return tagged
    return push_image(target, session=session, cwd=cwd)


def publish(
    artifact: Artifact,
    repository: RepositoryRef,
    requested_tag: str | None,
    *,
    session: RegistrySession,
    cwd: Path,
) -> Result[PublishResult, PublishError | LatestTagStaleError]:
    """Publish ``artifact`` under ``requested_tag`` and ``latest``.

    When ``requested_tag`` is None or ``latest`` the two bindings are the
    same reference and a single push is made.
    """
    tag = requested_tag or LATEST_TAG
    requested_uri = repository.tag_uri(tag)
    latest_uri = repository.latest_uri

    if not is_valid_tag(tag):
        return Err(PublishError(uri=requested_uri, message=f"invalid tag: {tag!r}"))

    pushed = _bind_and_push(artifact.image_id, requested_uri, session=session, cwd=cwd)
    if isinstance(pushed, Err):
        return Err(
            PublishError(
                uri=requested_uri,
                message=f"failed to publish {requested_uri}",
                hint=pushed.error.detail,
            )
        )

    if requested_uri != latest_uri:
        rebound = _bind_and_push(artifact.image_id, latest_uri, session=session, cwd=cwd)
        if isinstance(rebound, Err):
            return Err(
                LatestTagStaleError(
                    requested_uri=requested_uri,
                    latest_uri=latest_uri,
                    message=f"{requested_uri} published but {latest_uri} was not updated",
                    hint=f"retry only the rebind: deploykit retag-latest {tag} ({rebound.error.detail})",
                )
            )

    return Ok(
        PublishResult(
            requested_tag_uri=requested_uri,
            latest_tag_uri=latest_uri,
            artifact=artifact,
        )
    )


def rebind_latest(
    repository: RepositoryRef,
    source_tag: str,
    *,
    session: RegistrySession,
    cwd: Path,
) -> Result[str, PublishError]:
    """Point ``latest`` at the image currently tagged ``source_tag``.

    Uses the local image when present and pulls it otherwise. This is both
    the recovery path for a stale ``latest`` and the manual rollback path.
    """
    source_uri = repository.tag_uri(source_tag)
    latest_uri = repository.latest_uri
    if not is_valid_tag(source_tag):
        return Err(PublishError(uri=source_uri, message=f"invalid tag: {source_tag!r}"))

    present = run_process(
        ["docker", "image", "inspect", "--format", "{{.Id}}", source_uri],
        cwd=cwd,
        timeout=DOCKER_TIMEOUT_SECONDS,
    )
    if isinstance(present, Err):
        pulled = run_process(
            ["docker", "pull", source_uri],
            cwd=cwd,
            env=session.env,
            timeout=PULL_TIMEOUT_SECONDS,
        )
        if isinstance(pulled, Err):
            return Err(
                PublishError(
                    uri=source_uri,
                    message=f"{source_uri} is neither local nor pullable",
                    hint=pulled.error.detail,
                )
            )

    if source_uri == latest_uri:
        return Ok(latest_uri)

    pushed = _bind_and_push(source_uri, latest_uri, session=session, cwd=cwd)
    if isinstance(pushed, Err):
        return Err(
            PublishError(
                uri=latest_uri,
                message=f"failed to rebind {latest_uri} to {source_tag}",
                hint=pushed.error.detail,
            )
        )
    return Ok(latest_uri)
