"""Deployment controller: replace the host's running instance with ``latest``.

The rollout is a small named-state machine:

    idle -> authenticating -> pulling -> stopping -> starting -> verifying
         -> healthy | failed

Every transition is attempted exactly once. Any failure moves straight to
``failed`` with the error attached; nothing destructive (stop) happens before
the new image has been pulled. There is no automatic rollback.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from pathlib import Path
from time import sleep
from typing import Literal

from deploykit.core.config import ReleaseConfig
from deploykit.core.result import Err, Ok, Result
from deploykit.output.trace import ProgressTrace
from deploykit.platform.process import run as run_process
from deploykit.services.errors import (
    InstanceStartError,
    InstanceStopError,
    PullError,
    RolloutError,
    StartupVerificationError,
)
from deploykit.services.fsm import FINISH, StepOutcome, advance, run_state_machine
from deploykit.services.model import RepositoryRef
from deploykit.services.registry import (
    RegistrySession,
    authenticate,
    repository_ref,
    resolve_account_id,
)
from deploykit.services.timeouts import (
    COMPOSE_TIMEOUT_SECONDS,
    DOCKER_TIMEOUT_SECONDS,
    PULL_TIMEOUT_SECONDS,
)

RolloutStep = Literal[
    "idle",
    "authenticating",
    "pulling",
    "stopping",
    "starting",
    "verifying",
    "healthy",
    "failed",
]


@dataclass(frozen=True, slots=True)
class RolloutSession:
    step: RolloutStep = "idle"
    history: tuple[RolloutStep, ...] = ("idle",)
    repository: RepositoryRef | None = None
    error: RolloutError | None = None
    logs: str = ""

    def to(self, step: RolloutStep, **changes: object) -> RolloutSession:
        return replace(self, step=step, history=(*self.history, step), **changes)  # type: ignore[arg-type]

    def fail(self, error: RolloutError, *, logs: str = "") -> RolloutSession:
        return self.to("failed", error=error, logs=logs)


@dataclass(frozen=True, slots=True)
class RolloutReport:
    state: RolloutStep
    history: tuple[RolloutStep, ...]
    image_uri: str | None
    error: RolloutError | None = None
    logs: str = ""

    @property
    def healthy(self) -> bool:
        return self.state == "healthy"


type RolloutResult = Result[StepOutcome[RolloutSession], RolloutError]


def _unknown_step(step: str) -> RolloutError:
    raise RuntimeError(f"no handler for rollout step {step!r}")


class DeploymentController:
    """Runs one rollout against the host directory in ``config.deploy``."""

    def __init__(
        self,
        config: ReleaseConfig,
        *,
        trace: ProgressTrace,
        session: RegistrySession,
        cwd: Path,
    ) -> None:
        self._config = config
        self._trace = trace
        self._session = session
        self._cwd = cwd

    @property
    def _compose(self) -> list[str]:
        deploy = self._config.deploy
        return [*deploy.compose_command, "-f", deploy.compose_file]

    def run(self) -> RolloutReport:
        handlers = {
            "idle": self._idle,
            "authenticating": self._authenticating,
            "pulling": self._pulling,
            "stopping": self._stopping,
            "starting": self._starting,
            "verifying": self._verifying,
            "healthy": self._healthy,
            "failed": self._failed,
        }
        result = run_state_machine(
            initial_state=RolloutSession(),
            get_step=lambda s: s.step,
            handlers=handlers,
            unknown_step=_unknown_step,
        )
        # Handlers report failures as transitions to "failed", never as Err.
        final = result.unwrap()
        return RolloutReport(
            state=final.step,
            history=final.history,
            image_uri=final.repository.latest_uri if final.repository else None,
            error=final.error,
            logs=final.logs,
        )

    def _idle(self, s: RolloutSession) -> RolloutResult:
        return Ok(advance(s.to("authenticating")))

    def _authenticating(self, s: RolloutSession) -> RolloutResult:
        registry = self._config.registry
        self._trace.start("authenticating", registry.region)

        account = self._config.deploy.registry_account_id
        if account is None:
            resolved = resolve_account_id(cwd=self._cwd, region=registry.region)
            if isinstance(resolved, Err):
                return self._fail(s, "authenticating", resolved.error)
            account = resolved.value

        creds = authenticate(
            account,
            registry.region,
            cwd=self._cwd,
            host_template=registry.host_template,
        )
        if isinstance(creds, Err):
            return self._fail(s, "authenticating", creds.error)

        logged_in = self._session.login(creds.value, cwd=self._cwd)
        if isinstance(logged_in, Err):
            return self._fail(s, "authenticating", logged_in.error)

        ref = repository_ref(registry, account_id=account, region=registry.region)
        self._trace.ok("authenticating", ref.registry_host)
        return Ok(advance(s.to("pulling", repository=ref)))

    def _pulling(self, s: RolloutSession) -> RolloutResult:
        assert s.repository is not None
        uri = s.repository.latest_uri
        self._trace.start("pulling", uri)
        pulled = run_process(
            ["docker", "pull", uri],
            cwd=self._cwd,
            env=self._session.env,
            timeout=PULL_TIMEOUT_SECONDS,
        )
        if isinstance(pulled, Err):
            error = PullError(
                uri=uri,
                message=f"failed to pull {uri}",
                detail=pulled.error.detail,
            )
            return self._fail(s, "pulling", error)
        self._trace.ok("pulling", uri)
        return Ok(advance(s.to("stopping")))

    def _stopping(self, s: RolloutSession) -> RolloutResult:
        deploy = self._config.deploy
        self._trace.start("stopping", str(deploy.home))
        stopped = run_process(
            [*self._compose, "down"],
            cwd=deploy.home,
            timeout=COMPOSE_TIMEOUT_SECONDS,
        )
        if isinstance(stopped, Err):
            error = InstanceStopError(
                message="failed to stop the running instance",
                detail=stopped.error.detail,
                hint=f"inspect with: cd {deploy.home} && {' '.join(self._compose)} ps",
            )
            return self._fail(s, "stopping", error)
        self._trace.ok("stopping")
        return Ok(advance(s.to("starting")))

    def _starting(self, s: RolloutSession) -> RolloutResult:
        deploy = self._config.deploy
        self._trace.start("starting", deploy.service)
        started = run_process(
            [*self._compose, "up", "-d"],
            cwd=deploy.home,
            env=self._session.env,
            timeout=COMPOSE_TIMEOUT_SECONDS,
        )
        if isinstance(started, Err):
            error = InstanceStartError(
                message="failed to start the new instance",
                detail=started.error.detail,
                hint="no instance is running; fix the cause and re-run the rollout",
            )
            return self._fail(s, "starting", error, logs=self._logs(tail=None))
        self._trace.ok("starting")
        return Ok(advance(s.to("verifying")))

    def _verifying(self, s: RolloutSession) -> RolloutResult:
        deploy = self._config.deploy
        self._trace.start("verifying", f"waiting {deploy.settle_seconds:g}s")
        sleep(deploy.settle_seconds)

        if self._is_running(deploy.container):
            self._trace.ok("verifying", f"{deploy.container} is running")
            return Ok(advance(s.to("healthy", logs=self._logs(tail=deploy.log_tail))))

        error = StartupVerificationError(
            container=deploy.container,
            message=f"{deploy.container} is not running after start",
            hint="rollback is manual: deploykit retag-latest <previous-tag>, then re-run the rollout",
        )
        return self._fail(s, "verifying", error, logs=self._logs(tail=None))

    def _healthy(self, s: RolloutSession) -> RolloutResult:
        console = self._trace.console
        console.success("rollout healthy")
        if s.logs:
            console.header(f"last {self._config.deploy.log_tail} log lines")
            console.log(s.logs)
        return Ok(FINISH)

    def _failed(self, s: RolloutSession) -> RolloutResult:
        if s.logs:
            console = self._trace.console
            console.log(s.logs, err=True)
        return Ok(FINISH)

    def _fail(
        self,
        s: RolloutSession,
        step: RolloutStep,
        error: RolloutError,
        *,
        logs: str = "",
    ) -> RolloutResult:
        self._trace.fail(step, error.message)
        if isinstance(error, StartupVerificationError):
            error = replace(error, logs=logs)
        return Ok(advance(s.fail(error, logs=logs)))

    def _is_running(self, container: str) -> bool:
        # The name filter is an unanchored regex and names may carry a leading "/".
        # Container names only allow [A-Za-z0-9_.-], so "." is the one metacharacter.
        pattern = "^/?" + container.replace(".", r"\.") + "$"
        listed = run_process(
            ["docker", "ps", "--filter", f"name={pattern}", "--format", "{{.Names}}"],
            cwd=self._cwd,
            timeout=DOCKER_TIMEOUT_SECONDS,
        )
        if isinstance(listed, Err):
            self._trace.console.warning(f"docker ps failed: {listed.error.detail}")
            return False
        return any(line.strip().lstrip("/") == container for line in listed.value.splitlines())

    def _logs(self, *, tail: int | None) -> str:
        deploy = self._config.deploy
        cmd = [*self._compose, "logs", "--no-color"]
        if tail is not None:
            cmd.extend(["--tail", str(tail)])
        cmd.append(deploy.service)
        result = run_process(cmd, cwd=deploy.home, timeout=COMPOSE_TIMEOUT_SECONDS)
        if isinstance(result, Err):
            return f"(logs unavailable: {result.error.detail})"
        return result.value.rstrip()


def run_rollout(
    config: ReleaseConfig,
    *,
    trace: ProgressTrace,
    cwd: Path,
    session: RegistrySession | None = None,
) -> RolloutReport:
    """Run one rollout. A session created here is closed before returning."""
    if session is not None:
        return DeploymentController(config, trace=trace, session=session, cwd=cwd).run()
    with RegistrySession() as owned:
        return DeploymentController(config, trace=trace, session=owned, cwd=cwd).run()


__all__ = [
    "DeploymentController",
    "RolloutReport",
    "RolloutSession",
    "RolloutStep",
    "run_rollout",
]
