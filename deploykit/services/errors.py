"""Error taxonomy for the release pipelines.

Every pipeline step fails with exactly one of these values. They are plain
frozen dataclasses carried inside ``Err`` so the CLI can render them and
pick an exit code with a single ``match``.
"""

from __future__ import annotations

from dataclasses import dataclass

from deploykit.core.config import ConfigError

__all__ = [
    "RepositoryProvisionError",
    "AuthenticationError",
    "BuildError",
    "PublishError",
    "LatestTagStaleError",
    "PullError",
    "InstanceStopError",
    "InstanceStartError",
    "StartupVerificationError",
    "RolloutError",
    "ReleaseError",
]


@dataclass(frozen=True, slots=True)
class RepositoryProvisionError:
    """The registry repository could not be listed or created.

    Not retried: this nearly always means missing permissions or an invalid
    repository name.
    """

    repository: str
    region: str
    message: str
    hint: str | None = None


@dataclass(frozen=True, slots=True)
class AuthenticationError:
    """Identity lookup or registry login failed.

    Credentials are never reused after this; the next attempt fetches a new
    token.
    """

    region: str
    message: str
    hint: str | None = None


@dataclass(frozen=True, slots=True)
class BuildError:
    message: str
    hint: str | None = None


@dataclass(frozen=True, slots=True)
class PublishError:
    """Nothing was published: the requested tag upload failed."""

    uri: str
    message: str
    hint: str | None = None


@dataclass(frozen=True, slots=True)
class LatestTagStaleError:
    """The requested tag is published but ``latest`` still points elsewhere.

    Only the ``latest`` rebind needs to be retried; no rebuild is required.
    """

    requested_uri: str
    latest_uri: str
    message: str
    hint: str | None = None


@dataclass(frozen=True, slots=True)
class PullError:
    uri: str
    message: str
    detail: str = ""
    hint: str | None = None


@dataclass(frozen=True, slots=True)
class InstanceStopError:
    message: str
    detail: str = ""
    hint: str | None = None


@dataclass(frozen=True, slots=True)
class InstanceStartError:
    message: str
    detail: str = ""
    hint: str | None = None


@dataclass(frozen=True, slots=True)
class StartupVerificationError:
    """The container was not running after start. Logs are attached."""

    container: str
    message: str
    logs: str = ""
    hint: str | None = None


RolloutError = (
    AuthenticationError
    | PullError
    | InstanceStopError
    | InstanceStartError
    | StartupVerificationError
)

ReleaseError = (
    ConfigError
    | RepositoryProvisionError
    | AuthenticationError
    | BuildError
    | PublishError
    | LatestTagStaleError
    | PullError
    | InstanceStopError
    | InstanceStartError
    | StartupVerificationError
)
