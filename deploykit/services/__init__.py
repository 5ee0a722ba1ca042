"""Release services for deploykit.

Services implement the pipelines (registry, build, publish, rollout) on top
of the domain layer (core/) and the process wrapper (platform/).
"""

from deploykit.services.errors import ReleaseError, RolloutError
from deploykit.services.model import Artifact, Credentials, PublishResult, RepositoryRef
from deploykit.services.release import (
    build_local,
    check_host_state,
    provision,
    release_build,
    retag_latest,
    rollout_host,
)
from deploykit.services.rollout import RolloutReport

__all__ = [
    # Errors
    "ReleaseError",
    "RolloutError",
    # Model
    "Artifact",
    "Credentials",
    "PublishResult",
    "RepositoryRef",
    "RolloutReport",
    # Pipelines
    "build_local",
    "check_host_state",
    "provision",
    "release_build",
    "retag_latest",
    "rollout_host",
]
