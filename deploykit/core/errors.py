"""Error codes for CLI exit status.

Every pipeline ends in exactly one of these codes. Zero means the
release step (or the rollout) completed and was verified; each non-zero
value names the stage that failed so an operator or a CI job can tell
provisioning, build, publish and rollout failures apart without parsing
output.
"""

from enum import IntEnum

__all__ = ["ErrorCode"]


class ErrorCode(IntEnum):
    """Exit codes for CLI commands.

    These values are used as process exit codes and should remain stable:
    - 0: Success (rollout verified healthy, publish complete)
    - 1: User error (bad arguments, invalid configuration)
    - 2: Environment error (authentication failed, missing tools)
    - 3: Build error (image build failed or produced no artifact)
    - 4: Network error (push or pull failed)
    - 5: I/O error (host-side files missing or unreadable)
    - 6: Provision error (registry repository could not be listed or created)
    - 7: Stale tag (version tag published, ``latest`` rebind failed)
    - 8: Rollout error (stop, start or liveness verification failed)
    """

    OK = 0
    USER_ERROR = 1
    ENV_ERROR = 2
    BUILD_ERROR = 3
    NETWORK_ERROR = 4
    IO_ERROR = 5
    PROVISION_ERROR = 6
    STALE_TAG = 7
    ROLLOUT_ERROR = 8

    def __str__(self) -> str:
        return self.name.lower().replace("_", " ")

    @property
    def is_success(self) -> bool:
        return self == ErrorCode.OK

    @property
    def is_error(self) -> bool:
        return self != ErrorCode.OK
