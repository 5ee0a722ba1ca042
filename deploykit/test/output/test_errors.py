"""Tests for deploykit.output.errors module."""

from __future__ import annotations

from pathlib import Path

import pytest

from deploykit.core.config import ConfigError
from deploykit.core.errors import ErrorCode
from deploykit.output.console import MockConsole, RichConsole
from deploykit.output.errors import print_release_error, release_error_exit_code
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

URI = "123456789012.dkr.ecr.us-east-2.amazonaws.com/ns/svc"


@pytest.mark.parametrize(
    ("error", "code"),
    [
        (ConfigError("bad"), ErrorCode.USER_ERROR),
        (AuthenticationError(region="us-east-2", message="denied"), ErrorCode.ENV_ERROR),
        (
            RepositoryProvisionError(repository="ns/svc", region="us-east-2", message="denied"),
            ErrorCode.PROVISION_ERROR,
        ),
        (BuildError(message="exit 1"), ErrorCode.BUILD_ERROR),
        (PublishError(uri=URI, message="push failed"), ErrorCode.NETWORK_ERROR),
        (PullError(uri=URI, message="pull failed"), ErrorCode.NETWORK_ERROR),
        (
            LatestTagStaleError(
                requested_uri=f"{URI}:v1", latest_uri=f"{URI}:latest", message="stale"
            ),
            ErrorCode.STALE_TAG,
        ),
        (InstanceStopError(message="down failed"), ErrorCode.ROLLOUT_ERROR),
        (InstanceStartError(message="up failed"), ErrorCode.ROLLOUT_ERROR),
        (StartupVerificationError(container="svc", message="absent"), ErrorCode.ROLLOUT_ERROR),
    ],
)
def test_exit_codes(error: ReleaseError, code: ErrorCode) -> None:
    assert release_error_exit_code(error) == int(code)


def test_stale_latest_is_reported_distinctly() -> None:
    console = MockConsole()
    error = LatestTagStaleError(
        requested_uri=f"{URI}:v1.0.0",
        latest_uri=f"{URI}:latest",
        message="stale",
        hint="retry only the rebind: deploykit retag-latest v1.0.0",
    )

    print_release_error(error, console)

    assert console.find(f"published: {URI}:v1.0.0")
    assert console.find("stale:")
    assert console.find("hint: retry only the rebind: deploykit retag-latest v1.0.0")


def test_pull_error_states_instance_untouched() -> None:
    console = MockConsole()
    print_release_error(PullError(uri=URI, message="failed", detail="no such host"), console)

    assert console.has_error()
    assert console.find("no such host")
    assert console.find("not touched")


def test_config_error_shows_path() -> None:
    console = MockConsole()
    print_release_error(ConfigError("missing host file", path=Path("/srv/.env")), console)

    assert "config: missing host file" in console.stderr_text
    assert console.find("/srv/.env")


def test_no_hint_line_without_hint() -> None:
    console = MockConsole()
    print_release_error(BuildError(message="exit 2"), console)

    assert console.messages == ["error: build failed: exit 2"]


def test_process_output_with_brackets_prints_verbatim(capsys: pytest.CaptureFixture[str]) -> None:
    error = PullError(
        uri=f"{URI}:latest",
        message="failed to pull",
        detail="open [/var/lib/docker]: permission denied",
        hint="check [/etc/docker/daemon.json]",
    )

    print_release_error(error, RichConsole())

    captured = capsys.readouterr()
    assert "open [/var/lib/docker]: permission denied" in captured.out
    assert "hint: check [/etc/docker/daemon.json]" in captured.out
    assert "pull failed" in captured.err
