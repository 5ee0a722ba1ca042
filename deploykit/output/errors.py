"""Error presentation utilities.

Centralized error formatting and exit code mapping for consistent UX.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from deploykit.core.config import ConfigError
from deploykit.core.errors import ErrorCode
from deploykit.output.console import Style
from deploykit.services.errors import (
    AuthenticationError,
    BuildError,
    InstanceStartError,
    InstanceStopError,
    LatestTagStaleError,
    PublishError,
    PullError,
    ReleaseError,
    RepositoryProvisionError,
    StartupVerificationError,
)

if TYPE_CHECKING:
    from deploykit.output.console import ConsoleProtocol

__all__ = ["print_release_error", "release_error_exit_code"]


def print_release_error(error: ReleaseError, console: ConsoleProtocol) -> None:
    """Print a pipeline error to console with appropriate formatting."""
    match error:
        case ConfigError(message=message, path=path):
            console.error(f"config: {message}")
            if path is not None:
                console.print(f"file: {path}", Style.DIM)
        case RepositoryProvisionError(repository=repo, region=region, message=message):
            console.error(f"provision failed: {message}")
            console.print(f"repository: {repo} ({region})", Style.DIM)
        case AuthenticationError(region=region, message=message):
            console.error(f"authentication failed ({region}): {message}")
        case BuildError(message=message):
            console.error(f"build failed: {message}")
        case PublishError(uri=uri, message=message):
            console.error(f"publish failed: {message}")
            console.print(f"nothing was published to {uri}", Style.DIM)
        case LatestTagStaleError(requested_uri=requested, latest_uri=latest):
            console.warning(f"published: {requested}")
            console.error(f"stale: {latest} still points at the previous image")
        case PullError(message=message, detail=detail):
            console.error(f"pull failed: {message}")
            if detail:
                console.print(detail, Style.DIM)
            console.print("the running instance was not touched", Style.DIM)
        case InstanceStopError(message=message, detail=detail):
            console.error(f"stop failed: {message}")
            if detail:
                console.print(detail, Style.DIM)
        case InstanceStartError(message=message, detail=detail):
            console.error(f"start failed: {message}")
            if detail:
                console.print(detail, Style.DIM)
        case StartupVerificationError(message=message):
            console.error(f"verify failed: {message}")

    if error.hint:
        console.print(f"hint: {error.hint}", Style.DIM)


def release_error_exit_code(error: ReleaseError) -> int:
    """Get exit code for a pipeline error."""
    match error:
        case ConfigError():
            return int(ErrorCode.USER_ERROR)
        case AuthenticationError():
            return int(ErrorCode.ENV_ERROR)
        case RepositoryProvisionError():
            return int(ErrorCode.PROVISION_ERROR)
        case BuildError():
            return int(ErrorCode.BUILD_ERROR)
        case PublishError() | PullError():
            return int(ErrorCode.NETWORK_ERROR)
        case LatestTagStaleError():
            return int(ErrorCode.STALE_TAG)
        case InstanceStopError() | InstanceStartError() | StartupVerificationError():
            return int(ErrorCode.ROLLOUT_ERROR)
