from __future__ import annotations

from pathlib import Path

import pytest
import typer

from deploykit.cli.context import CLIContext
from deploykit.core.config import ConfigError, ReleaseConfig
from deploykit.core.errors import ErrorCode
from deploykit.core.result import Err, Ok
from deploykit.output.console import MockConsole
from deploykit.services.errors import LatestTagStaleError, PullError, StartupVerificationError
from deploykit.services.model import Artifact, PublishResult, RepositoryRef
from deploykit.services.rollout import RolloutReport

REPO = RepositoryRef(account_id="123456789012", region="us-east-2", name="ns/svc")
ARTIFACT = Artifact(
    image_id="sha256:abc",
    revision="abc123",
    created="2026-03-01T12:00:00+00:00",
    local_ref="svc:local",
)


def _ctx(tmp_path: Path) -> CLIContext:
    return CLIContext(config=ReleaseConfig(), console=MockConsole(), cwd=tmp_path)


def _patch_context(monkeypatch: pytest.MonkeyPatch, ctx: CLIContext) -> None:
    import deploykit.cli.commands.release_cmd as release_cmd

    monkeypatch.setattr(release_cmd, "build_context", lambda: ctx)


def _console(ctx: CLIContext) -> MockConsole:
    assert isinstance(ctx.console, MockConsole)
    return ctx.console


def test_publish_success(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    import deploykit.cli.commands.release_cmd as release_cmd

    ctx = _ctx(tmp_path)
    _patch_context(monkeypatch, ctx)
    seen: dict[str, object] = {}

    def fake_release_build(config: ReleaseConfig, **kwargs: object):
        seen.update(kwargs)
        return Ok(
            PublishResult(
                requested_tag_uri=REPO.tag_uri("v1.0.0"),
                latest_tag_uri=REPO.latest_uri,
                artifact=ARTIFACT,
            )
        )

    monkeypatch.setattr(release_cmd, "release_build", fake_release_build)

    release_cmd.publish(tag="v1.0.0")

    assert seen["requested_tag"] == "v1.0.0"
    console = _console(ctx)
    assert console.find(f"published {REPO.tag_uri('v1.0.0')}")
    assert console.find(f"published {REPO.latest_uri}")


def test_publish_stale_latest_exits_with_distinct_code(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    import deploykit.cli.commands.release_cmd as release_cmd

    ctx = _ctx(tmp_path)
    _patch_context(monkeypatch, ctx)
    error = LatestTagStaleError(
        requested_uri=REPO.tag_uri("v1.0.0"),
        latest_uri=REPO.latest_uri,
        message="stale",
        hint="retry only the rebind: deploykit retag-latest v1.0.0",
    )
    monkeypatch.setattr(release_cmd, "release_build", lambda config, **_: Err(error))

    with pytest.raises(typer.Exit) as exc:
        release_cmd.publish(tag="v1.0.0")

    assert exc.value.exit_code == int(ErrorCode.STALE_TAG)
    assert _console(ctx).find("deploykit retag-latest v1.0.0")


def test_rollout_healthy_exits_zero(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    import deploykit.cli.commands.release_cmd as release_cmd

    ctx = _ctx(tmp_path)
    _patch_context(monkeypatch, ctx)
    report = RolloutReport(
        state="healthy",
        history=("idle", "authenticating", "pulling", "stopping", "starting", "verifying", "healthy"),
        image_uri=REPO.latest_uri,
    )
    monkeypatch.setattr(release_cmd, "rollout_host", lambda config, **_: Ok(report))

    release_cmd.rollout_cmd()

    assert not _console(ctx).has_error()


def test_rollout_verification_failure_exits_non_zero(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    import deploykit.cli.commands.release_cmd as release_cmd

    ctx = _ctx(tmp_path)
    _patch_context(monkeypatch, ctx)
    report = RolloutReport(
        state="failed",
        history=("idle", "authenticating", "pulling", "stopping", "starting", "verifying", "failed"),
        image_uri=REPO.latest_uri,
        error=StartupVerificationError(container="svc", message="svc is not running after start"),
    )
    monkeypatch.setattr(release_cmd, "rollout_host", lambda config, **_: Ok(report))

    with pytest.raises(typer.Exit) as exc:
        release_cmd.rollout_cmd()

    assert exc.value.exit_code == int(ErrorCode.ROLLOUT_ERROR)
    assert "not running" in _console(ctx).stderr_text


def test_rollout_pull_failure_exit_code(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    import deploykit.cli.commands.release_cmd as release_cmd

    ctx = _ctx(tmp_path)
    _patch_context(monkeypatch, ctx)
    report = RolloutReport(
        state="failed",
        history=("idle", "authenticating", "pulling", "failed"),
        image_uri=REPO.latest_uri,
        error=PullError(uri=REPO.latest_uri, message="failed to pull"),
    )
    monkeypatch.setattr(release_cmd, "rollout_host", lambda config, **_: Ok(report))

    with pytest.raises(typer.Exit) as exc:
        release_cmd.rollout_cmd()

    assert exc.value.exit_code == int(ErrorCode.NETWORK_ERROR)


def test_rollout_missing_host_files(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    import deploykit.cli.commands.release_cmd as release_cmd

    ctx = _ctx(tmp_path)
    _patch_context(monkeypatch, ctx)
    error = ConfigError("missing host file: /opt/x402-facilitator/.env")
    monkeypatch.setattr(release_cmd, "rollout_host", lambda config, **_: Err(error))

    with pytest.raises(typer.Exit) as exc:
        release_cmd.rollout_cmd()

    assert exc.value.exit_code == int(ErrorCode.IO_ERROR)


def test_retag_latest_cmd(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    import deploykit.cli.commands.release_cmd as release_cmd

    ctx = _ctx(tmp_path)
    _patch_context(monkeypatch, ctx)
    calls: list[str] = []

    def fake_retag(config: ReleaseConfig, tag: str, **_: object):
        calls.append(tag)
        return Ok(REPO.latest_uri)

    monkeypatch.setattr(release_cmd, "retag_latest", fake_retag)

    release_cmd.retag_latest_cmd(tag="v0.9.0")

    assert calls == ["v0.9.0"]
    assert _console(ctx).has_success()


def test_ensure_repo_prints_uris(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    import deploykit.cli.commands.release_cmd as release_cmd

    ctx = _ctx(tmp_path)
    _patch_context(monkeypatch, ctx)
    monkeypatch.setattr(release_cmd, "provision", lambda config, **_: Ok((REPO,)))

    release_cmd.ensure_repo()

    assert _console(ctx).messages == [REPO.uri]


def test_build_local_cmd(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    import deploykit.cli.commands.release_cmd as release_cmd

    ctx = _ctx(tmp_path)
    _patch_context(monkeypatch, ctx)
    monkeypatch.setattr(release_cmd, "build_local", lambda config, **_: Ok(ARTIFACT))

    release_cmd.build_local_cmd()

    assert _console(ctx).find("docker run --rm -p 8080:8080 --env-file .env svc:local")
