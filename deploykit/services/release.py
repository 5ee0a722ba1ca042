"""Release driver: the build-time and host-time pipelines.

Build time (wherever source changes are made):
    identity -> provision -> authenticate -> build -> publish

Host time (on the production host, triggered separately):
    host check -> rollout (see ``rollout.DeploymentController``)

Each pipeline is strictly sequential and stops at the first failure; the
progress trace names every step as it starts and ends.
"""

from __future__ import annotations

from pathlib import Path

from deploykit.core.config import ConfigError, DeployConfig, ReleaseConfig, is_valid_tag
from deploykit.core.result import Err, Ok, Result
from deploykit.output.trace import ProgressTrace
from deploykit.services.artifact import build_artifact
from deploykit.services.errors import BuildError, ReleaseError
from deploykit.services.model import Artifact, EnsuredRepository, PublishResult, RepositoryRef
from deploykit.services.publish import publish, rebind_latest
from deploykit.services.registry import (
    RegistrySession,
    authenticate,
    ensure_repositories,
    repository_ref,
    resolve_account_id,
)
from deploykit.services.rollout import RolloutReport, run_rollout


def source_root(config: ReleaseConfig, cwd: Path) -> Path:
    return (cwd / config.build.source_root).resolve()


def check_host_state(deploy: DeployConfig) -> Result[None, ConfigError]:
    """The host directory must already hold the env file and compose file.

    Both are populated outside this tool; a rollout only reads them.
    """
    if not deploy.home.is_dir():
        return Err(
            ConfigError(
                f"deploy home not found: {deploy.home}",
                path=deploy.home,
                hint="set deploy.home or DEPLOYKIT_HOME",
            )
        )
    for path in (deploy.env_path, deploy.compose_path):
        if not path.is_file():
            return Err(
                ConfigError(
                    f"missing host file: {path}",
                    path=path,
                    hint="host configuration is provisioned separately; it is never generated here",
                )
            )
    return Ok(None)


def provision(
    config: ReleaseConfig,
    *,
    trace: ProgressTrace,
    cwd: Path,
) -> Result[tuple[RepositoryRef, ...], ReleaseError]:
    """Resolve the caller's account and ensure the repository in every region."""
    region = config.registry.region
    trace.start("identity")
    account = resolve_account_id(cwd=cwd, region=region)
    if isinstance(account, Err):
        trace.fail("identity", account.error.message)
        return account
    trace.ok("identity", account.value)

    def on_ensured(ensured: EnsuredRepository) -> None:
        action = "created" if ensured.created else "exists"
        trace.ok("provision", f"{ensured.ref.uri} ({action})")

    trace.start("provision", ", ".join(config.registry.regions))
    refs = ensure_repositories(
        config.registry,
        account_id=account.value,
        cwd=cwd,
        on_ensured=on_ensured,
    )
    if isinstance(refs, Err):
        trace.fail("provision", refs.error.message)
        return refs
    return refs


def _login(
    config: ReleaseConfig,
    account_id: str,
    *,
    session: RegistrySession,
    trace: ProgressTrace,
    cwd: Path,
) -> Result[RepositoryRef, ReleaseError]:
    region = config.registry.region
    trace.start("authenticate", region)
    creds = authenticate(account_id, region, cwd=cwd, host_template=config.registry.host_template)
    if isinstance(creds, Err):
        trace.fail("authenticate", creds.error.message)
        return creds
    logged_in = session.login(creds.value, cwd=cwd)
    if isinstance(logged_in, Err):
        trace.fail("authenticate", logged_in.error.message)
        return logged_in
    trace.ok("authenticate", creds.value.registry_host)
    return Ok(repository_ref(config.registry, account_id=account_id, region=region))


def release_build(
    config: ReleaseConfig,
    *,
    requested_tag: str | None,
    trace: ProgressTrace,
    cwd: Path,
    session: RegistrySession | None = None,
) -> Result[PublishResult, ReleaseError]:
    """Build-time pipeline: provision, authenticate, build, then publish.

    Authentication happens before the build so that a bad identity never
    costs a full image build.
    """
    tag = requested_tag or config.build.default_tag
    if not is_valid_tag(tag):
        trace.fail("validate", f"invalid tag {tag!r}")
        return Err(ConfigError(f"invalid tag: {tag!r}"))

    provisioned = provision(config, trace=trace, cwd=cwd)
    if isinstance(provisioned, Err):
        return provisioned
    account_id = provisioned.value[0].account_id

    if session is None:
        with RegistrySession() as owned:
            return _build_and_publish(config, account_id, tag, session=owned, trace=trace, cwd=cwd)
    return _build_and_publish(config, account_id, tag, session=session, trace=trace, cwd=cwd)


def _build_and_publish(
    config: ReleaseConfig,
    account_id: str,
    tag: str,
    *,
    session: RegistrySession,
    trace: ProgressTrace,
    cwd: Path,
) -> Result[PublishResult, ReleaseError]:
    repo = _login(config, account_id, session=session, trace=trace, cwd=cwd)
    if isinstance(repo, Err):
        return repo

    artifact = _build(config, trace=trace, cwd=cwd)
    if isinstance(artifact, Err):
        return artifact

    trace.start("publish", f"{tag} + latest")
    published = publish(artifact.value, repo.value, tag, session=session, cwd=cwd)
    if isinstance(published, Err):
        trace.fail("publish", published.error.message)
        return published
    trace.ok("publish", published.value.requested_tag_uri)
    return published


def _build(config: ReleaseConfig, *, trace: ProgressTrace, cwd: Path) -> Result[Artifact, BuildError]:
    root = source_root(config, cwd)
    trace.start("build", str(root))
    artifact = build_artifact(root, config=config.build, image_name=config.registry.image)
    if isinstance(artifact, Err):
        trace.fail("build", artifact.error.message)
        return artifact
    trace.ok("build", f"{artifact.value.image_id[:19]} @ {artifact.value.short_revision}")
    return artifact


def build_local(
    config: ReleaseConfig,
    *,
    trace: ProgressTrace,
    cwd: Path,
) -> Result[Artifact, BuildError]:
    """Build the image under a local-only tag. No registry is contacted."""
    return _build(config, trace=trace, cwd=cwd)


def retag_latest(
    config: ReleaseConfig,
    source_tag: str,
    *,
    trace: ProgressTrace,
    cwd: Path,
) -> Result[str, ReleaseError]:
    """Point ``latest`` at ``source_tag`` in the primary region.

    Recovers from ``LatestTagStaleError`` and is the manual rollback path.
    """
    if not is_valid_tag(source_tag):
        trace.fail("validate", f"invalid tag {source_tag!r}")
        return Err(ConfigError(f"invalid tag: {source_tag!r}"))

    trace.start("identity")
    account = resolve_account_id(cwd=cwd, region=config.registry.region)
    if isinstance(account, Err):
        trace.fail("identity", account.error.message)
        return account
    trace.ok("identity", account.value)

    with RegistrySession() as session:
        repo = _login(config, account.value, session=session, trace=trace, cwd=cwd)
        if isinstance(repo, Err):
            return repo

        trace.start("retag", f"{source_tag} -> latest")
        rebound = rebind_latest(repo.value, source_tag, session=session, cwd=cwd)
        if isinstance(rebound, Err):
            trace.fail("retag", rebound.error.message)
            return rebound
        trace.ok("retag", rebound.value)
        return rebound


def rollout_host(
    config: ReleaseConfig,
    *,
    trace: ProgressTrace,
    cwd: Path,
    session: RegistrySession | None = None,
) -> Result[RolloutReport, ConfigError]:
    """Host-time pipeline. A failed rollout is still ``Ok``; see ``report.healthy``."""
    trace.start("host", str(config.deploy.home))
    checked = check_host_state(config.deploy)
    if isinstance(checked, Err):
        trace.fail("host", checked.error.message)
        return checked
    trace.ok("host")
    return Ok(run_rollout(config, trace=trace, cwd=cwd, session=session))
