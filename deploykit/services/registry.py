"""Registry gateway: identity, repository provisioning, authentication.

All registry access goes through the aws CLI and the docker CLI. Login
tokens are handed to a ``RegistrySession``: a private Docker client
configuration directory that exists only for the lifetime of one pipeline.
"""

from __future__ import annotations

import json
import os
import shutil
import tempfile
from collections.abc import Callable
from datetime import UTC, datetime
from pathlib import Path
from types import TracebackType

from deploykit.core.config import DEFAULT_HOST_TEMPLATE, RegistryConfig
from deploykit.core.result import Err, Ok, Result
from deploykit.core.structured import as_obj_list, as_str_dict, get_str
from deploykit.platform.process import run as run_process
from deploykit.services.errors import AuthenticationError, RepositoryProvisionError
from deploykit.services.model import Credentials, EnsuredRepository, RepositoryRef
from deploykit.services.timeouts import DOCKER_TIMEOUT_SECONDS, REGISTRY_TIMEOUT_SECONDS

ECR_USERNAME = "AWS"


def resolve_account_id(*, cwd: Path, region: str) -> Result[str, AuthenticationError]:
    """Return the account id of the caller's current AWS identity."""
    result = run_process(
        ["aws", "sts", "get-caller-identity", "--output", "json"],
        cwd=cwd,
        timeout=REGISTRY_TIMEOUT_SECONDS,
    )
    if isinstance(result, Err):
        return Err(
            AuthenticationError(
                region=region,
                message="failed to resolve AWS account identity",
                hint=result.error.detail,
            )
        )

    try:
        payload = as_str_dict(json.loads(result.value))
    except json.JSONDecodeError:
        payload = None
    account = get_str(payload, "Account") if payload is not None else None
    if account is None:
        return Err(
            AuthenticationError(
                region=region,
                message="unexpected sts get-caller-identity output (no Account)",
            )
        )
    return Ok(account)


def repository_ref(config: RegistryConfig, *, account_id: str, region: str) -> RepositoryRef:
    return RepositoryRef(
        account_id=account_id,
        region=region,
        name=config.repository_name,
        host_template=config.host_template,
    )


def list_repository_uris(
    *, region: str, name: str, cwd: Path
) -> Result[frozenset[str], RepositoryProvisionError]:
    """List the URIs of every repository visible in ``region``."""
    result = run_process(
        ["aws", "ecr", "describe-repositories", "--region", region, "--output", "json"],
        cwd=cwd,
        timeout=REGISTRY_TIMEOUT_SECONDS,
    )
    if isinstance(result, Err):
        return Err(
            RepositoryProvisionError(
                repository=name,
                region=region,
                message=f"failed to list ECR repositories in {region}",
                hint=result.error.detail,
            )
        )

    try:
        payload = as_str_dict(json.loads(result.value))
    except json.JSONDecodeError:
        payload = None
    repos = as_obj_list(payload.get("repositories")) if payload is not None else None
    if repos is None:
        return Err(
            RepositoryProvisionError(
                repository=name,
                region=region,
                message="unexpected describe-repositories output",
            )
        )

    uris: set[str] = set()
    for item in repos:
        entry = as_str_dict(item)
        if entry is None:
            continue
        uri = get_str(entry, "repositoryUri")
        if uri:
            uris.add(uri)
    return Ok(frozenset(uris))


def ensure_repository(
    account_id: str,
    region: str,
    name: str,
    *,
    cwd: Path,
    host_template: str = DEFAULT_HOST_TEMPLATE,
) -> Result[EnsuredRepository, RepositoryProvisionError]:
    """Create the repository unless a repository with the same URI exists.

    Idempotent: a second call with the same arguments lists, finds the
    repository, and returns the same reference without a create call.
    """
    ref = RepositoryRef(account_id=account_id, region=region, name=name, host_template=host_template)

    existing = list_repository_uris(region=region, name=name, cwd=cwd)
    if isinstance(existing, Err):
        return existing
    if ref.uri in existing.value:
        return Ok(EnsuredRepository(ref=ref, created=False))

    created = run_process(
        ["aws", "ecr", "create-repository", "--repository-name", name, "--region", region],
        cwd=cwd,
        timeout=REGISTRY_TIMEOUT_SECONDS,
    )
    if isinstance(created, Err):
        return Err(
            RepositoryProvisionError(
                repository=name,
                region=region,
                message=f"failed to create ECR repository {name} in {region}",
                hint=created.error.detail,
            )
        )
    return Ok(EnsuredRepository(ref=ref, created=True))


def ensure_repositories(
    config: RegistryConfig,
    *,
    account_id: str,
    cwd: Path,
    on_ensured: Callable[[EnsuredRepository], None] | None = None,
) -> Result[tuple[RepositoryRef, ...], RepositoryProvisionError]:
    """Ensure the repository exists in every configured region, primary first.

    Stops at the first failure.
    """
    refs: list[RepositoryRef] = []
    for region in config.regions:
        ensured = ensure_repository(
            account_id,
            region,
            config.repository_name,
            cwd=cwd,
            host_template=config.host_template,
        )
        if isinstance(ensured, Err):
            return ensured
        if on_ensured is not None:
            on_ensured(ensured.value)
        refs.append(ensured.value.ref)
    return Ok(tuple(refs))


def authenticate(
    account_id: str,
    region: str,
    *,
    cwd: Path,
    host_template: str = DEFAULT_HOST_TEMPLATE,
    now: datetime | None = None,
) -> Result[Credentials, AuthenticationError]:
    """Fetch a fresh registry login token for ``account_id`` in ``region``."""
    result = run_process(
        ["aws", "ecr", "get-login-password", "--region", region],
        cwd=cwd,
        timeout=REGISTRY_TIMEOUT_SECONDS,
    )
    if isinstance(result, Err):
        return Err(
            AuthenticationError(
                region=region,
                message=f"failed to get ECR login password for {region}",
                hint=result.error.detail,
            )
        )

    password = result.value.strip()
    if not password:
        return Err(AuthenticationError(region=region, message="empty ECR login password"))

    host = f"{account_id}.{host_template.format(region=region)}"
    return Ok(
        Credentials(
            registry_host=host,
            region=region,
            username=ECR_USERNAME,
            password=password,
            issued_at=now or datetime.now(UTC),
        )
    )


class RegistrySession:
    """Docker client configuration holding fresh credentials for one pipeline.

    ``docker login`` writes its auth entry into a private directory passed
    as ``DOCKER_CONFIG``; the directory is removed on ``close``. Commands
    that talk to the registry must run with ``session.env``.
    """

    def __init__(self, *, base_dir: Path | None = None) -> None:
        self._config_dir = Path(tempfile.mkdtemp(prefix="deploykit-docker-", dir=base_dir))

    @property
    def config_dir(self) -> Path:
        return self._config_dir

    @property
    def env(self) -> dict[str, str]:
        return {**os.environ, "DOCKER_CONFIG": str(self._config_dir)}

    def login(
        self,
        credentials: Credentials,
        *,
        cwd: Path,
        now: datetime | None = None,
    ) -> Result[None, AuthenticationError]:
        """Log the session's Docker client in. Expired credentials are refused."""
        if credentials.is_expired(now or datetime.now(UTC)):
            return Err(
                AuthenticationError(
                    region=credentials.region,
                    message=f"credentials for {credentials.registry_host} expired at "
                    f"{credentials.expires_at.isoformat()}",
                    hint="fetch a new token; expired credentials are never reused",
                )
            )

        result = run_process(
            [
                "docker",
                "login",
                "--username",
                credentials.username,
                "--password-stdin",
                credentials.registry_host,
            ],
            cwd=cwd,
            env=self.env,
            timeout=DOCKER_TIMEOUT_SECONDS,
            input=credentials.password,
        )
        if isinstance(result, Err):
            return Err(
                AuthenticationError(
                    region=credentials.region,
                    message=f"docker login failed for {credentials.registry_host}",
                    hint=result.error.detail,
                )
            )
        return Ok(None)

    def close(self) -> None:
        shutil.rmtree(self._config_dir, ignore_errors=True)

    def __enter__(self) -> RegistrySession:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

