"""Typed release configuration.

All behavior that the shell tooling used to read ad hoc from environment
variables is collected here once, validated once at pipeline start, and
then passed by value to every component.

Precedence (lowest to highest): built-in defaults, the TOML config file,
environment variables.

Example ``deploykit.toml``::

    [registry]
    namespace = "stakecapital"
    image = "x402-facilitator"
    region = "us-east-2"
    regions = ["us-east-2", "eu-west-1"]

    [build]
    static_subpath = "static"

    [deploy]
    home = "/opt/x402-facilitator"
    registry_account_id = "123456789012"
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from pathlib import Path

from .result import Err, Ok, Result
from .structured import (
    StrDict,
    as_str_dict,
    get_bool,
    get_float,
    get_int,
    get_str,
    get_str_list,
    get_table,
)

__all__ = [
    "BuildConfig",
    "ConfigError",
    "DeployConfig",
    "RegistryConfig",
    "ReleaseConfig",
    "load_release_config",
    "is_valid_tag",
    "DEFAULT_REGION",
    "DEFAULT_TAG",
    "LATEST_TAG",
]

# -----------------------------------------------------------------------------
# Defaults
# -----------------------------------------------------------------------------

DEFAULT_REGION = "us-east-2"
DEFAULT_NAMESPACE = "stakecapital"
DEFAULT_IMAGE = "x402-facilitator"
DEFAULT_HOST_TEMPLATE = "dkr.ecr.{region}.amazonaws.com"

LATEST_TAG = "latest"
DEFAULT_TAG = LATEST_TAG
DEFAULT_LOCAL_TAG = "local"

DEFAULT_HOME = "/opt/x402-facilitator"
DEFAULT_SETTLE_SECONDS = 5.0
DEFAULT_LOG_TAIL = 50

CONFIG_FILE_NAME = "deploykit.toml"

# Docker reference grammar for tags.
_TAG_RE = re.compile(r"^[A-Za-z0-9_][A-Za-z0-9_.-]{0,127}$")
_REGION_RE = re.compile(r"^[a-z]{2}(-gov)?-[a-z]+-[0-9]+$")
_ACCOUNT_RE = re.compile(r"^[0-9]{12}$")
_NAME_RE = re.compile(r"^[a-z0-9]+(?:[._-][a-z0-9]+)*$")


def is_valid_tag(tag: str) -> bool:
    return bool(_TAG_RE.match(tag))


@dataclass(frozen=True, slots=True)
class ConfigError:
    """Error when config cannot be loaded or fails validation."""

    message: str
    path: Path | None = None
    hint: str | None = None


@dataclass(frozen=True, slots=True)
class RegistryConfig:
    """Where artifacts live.

    ``region`` is pushed to and pulled from; ``replicas`` only get the
    repository created so other regions can be served later.
    """

    namespace: str = DEFAULT_NAMESPACE
    image: str = DEFAULT_IMAGE
    region: str = DEFAULT_REGION
    replicas: tuple[str, ...] = ()
    host_template: str = DEFAULT_HOST_TEMPLATE

    @property
    def repository_name(self) -> str:
        return f"{self.namespace}/{self.image}"

    @property
    def regions(self) -> tuple[str, ...]:
        """All regions the repository must exist in, primary first."""
        return _with_primary(self.region, list(self.replicas))


@dataclass(frozen=True, slots=True)
class BuildConfig:
    """How the artifact is built from the source tree."""

    source_root: Path = Path(".")
    dockerfile: str = "Dockerfile"
    # Runtime-served assets that must be part of the build context.
    static_subpath: str | None = "static"
    compress: bool = True
    no_cache: bool = False
    local_tag: str = DEFAULT_LOCAL_TAG
    default_tag: str = DEFAULT_TAG


@dataclass(frozen=True, slots=True)
class DeployConfig:
    """Host-side rollout settings.

    ``registry_account_id`` is the cross-account override: when the registry
    lives in a different account than the host, rollouts authenticate against
    this account instead of the caller's own identity.
    """

    home: Path = Path(DEFAULT_HOME)
    service: str = DEFAULT_IMAGE
    container: str = DEFAULT_IMAGE
    compose_command: tuple[str, ...] = ("docker-compose",)
    env_file: str = ".env"
    compose_file: str = "docker-compose.yml"
    settle_seconds: float = DEFAULT_SETTLE_SECONDS
    log_tail: int = DEFAULT_LOG_TAIL
    registry_account_id: str | None = None

    @property
    def env_path(self) -> Path:
        return self.home / self.env_file

    @property
    def compose_path(self) -> Path:
        return self.home / self.compose_file


@dataclass(frozen=True, slots=True)
class ReleaseConfig:
    """Main configuration container."""

    registry: RegistryConfig = field(default_factory=RegistryConfig)
    build: BuildConfig = field(default_factory=BuildConfig)
    deploy: DeployConfig = field(default_factory=DeployConfig)

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> ReleaseConfig:
        """Create ReleaseConfig from a mapping (parsed TOML)."""
        registry: StrDict = get_table(data, "registry") or {}
        build: StrDict = get_table(data, "build") or {}
        deploy: StrDict = get_table(data, "deploy") or {}

        region = get_str(registry, "region") or DEFAULT_REGION
        regions = get_str_list(registry, "regions") or []

        # An explicit empty string disables the static asset check.
        static_subpath = build.get("static_subpath", "static")
        if not isinstance(static_subpath, str) or not static_subpath.strip():
            static_subpath = None

        compose = get_str(deploy, "compose_command") or "docker-compose"
        settle = get_float(deploy, "settle_seconds")
        log_tail = get_int(deploy, "log_tail")

        return cls(
            registry=RegistryConfig(
                namespace=get_str(registry, "namespace") or DEFAULT_NAMESPACE,
                image=get_str(registry, "image") or DEFAULT_IMAGE,
                region=region,
                replicas=tuple(r for r in regions if r != region),
                host_template=get_str(registry, "host_template") or DEFAULT_HOST_TEMPLATE,
            ),
            build=BuildConfig(
                source_root=Path(get_str(build, "source") or "."),
                dockerfile=get_str(build, "dockerfile") or "Dockerfile",
                static_subpath=static_subpath,
                compress=_bool_or(get_bool(build, "compress"), True),
                no_cache=_bool_or(get_bool(build, "no_cache"), False),
                local_tag=get_str(build, "local_tag") or DEFAULT_LOCAL_TAG,
                default_tag=get_str(build, "default_tag") or DEFAULT_TAG,
            ),
            deploy=DeployConfig(
                home=Path(get_str(deploy, "home") or DEFAULT_HOME),
                service=get_str(deploy, "service") or DEFAULT_IMAGE,
                container=get_str(deploy, "container") or DEFAULT_IMAGE,
                compose_command=tuple(compose.split()),
                env_file=get_str(deploy, "env_file") or ".env",
                compose_file=get_str(deploy, "compose_file") or "docker-compose.yml",
                settle_seconds=DEFAULT_SETTLE_SECONDS if settle is None else settle,
                log_tail=DEFAULT_LOG_TAIL if log_tail is None else log_tail,
                registry_account_id=get_str(deploy, "registry_account_id"),
            ),
        )

    def with_env(self, env: Mapping[str, str]) -> ReleaseConfig:
        """Apply environment variable overrides on top of this config."""
        registry = self.registry
        build = self.build
        deploy = self.deploy

        region = env.get("AWS_REGION", "").strip()
        if region:
            registry = replace(registry, region=region)

        supported = env.get("SUPPORTED_AWS_REGIONS", "").strip()
        if supported:
            extra = tuple(r.strip() for r in supported.split(",") if r.strip())
            registry = replace(registry, replicas=extra)

        image = env.get("IMAGE", "").strip()
        if image:
            registry = replace(registry, image=image)
        namespace = env.get("IMAGE_NAMESPACE", "").strip()
        if namespace:
            registry = replace(registry, namespace=namespace)

        tag = env.get("IMAGE_TAG", "").strip()
        if tag:
            build = replace(build, default_tag=tag)

        account = env.get("DEPLOYKIT_REGISTRY_ACCOUNT_ID", "").strip()
        if account:
            deploy = replace(deploy, registry_account_id=account)
        home = env.get("DEPLOYKIT_HOME", "").strip()
        if home:
            deploy = replace(deploy, home=Path(home))

        return ReleaseConfig(registry=registry, build=build, deploy=deploy)

    def validate(self) -> Result[ReleaseConfig, ConfigError]:
        """Check invariants once, before any pipeline step runs."""
        reg = self.registry
        if not _NAME_RE.match(reg.image):
            return Err(ConfigError(f"invalid image name: {reg.image!r}"))
        for part in reg.namespace.split("/"):
            if not _NAME_RE.match(part):
                return Err(ConfigError(f"invalid image namespace: {reg.namespace!r}"))
        for region in reg.regions:
            if not _REGION_RE.match(region):
                return Err(ConfigError(f"invalid region: {region!r}"))
        if "{region}" not in reg.host_template:
            return Err(
                ConfigError(
                    f"registry host template must contain {{region}}: {reg.host_template!r}"
                )
            )

        if not is_valid_tag(self.build.default_tag):
            return Err(ConfigError(f"invalid default tag: {self.build.default_tag!r}"))
        if not is_valid_tag(self.build.local_tag):
            return Err(ConfigError(f"invalid local tag: {self.build.local_tag!r}"))

        dep = self.deploy
        if dep.registry_account_id is not None and not _ACCOUNT_RE.match(
            dep.registry_account_id
        ):
            return Err(
                ConfigError(
                    f"invalid registry account id: {dep.registry_account_id!r}",
                    hint="expected a 12-digit AWS account id",
                )
            )
        if dep.settle_seconds < 0:
            return Err(ConfigError("deploy.settle_seconds must be >= 0"))
        if dep.log_tail <= 0:
            return Err(ConfigError("deploy.log_tail must be > 0"))
        if not dep.compose_command:
            return Err(ConfigError("deploy.compose_command must not be empty"))

        return Ok(self)


def _with_primary(primary: str, regions: list[str]) -> tuple[str, ...]:
    out = [primary]
    for region in regions:
        if region not in out:
            out.append(region)
    return tuple(out)


def _bool_or(value: bool | None, default: bool) -> bool:
    return default if value is None else value


def _parse_toml(path: Path) -> Result[StrDict, ConfigError]:
    """Parse a TOML file, handling read and parse errors."""
    import tomllib

    try:
        content = path.read_bytes()
        data_obj: object = tomllib.loads(content.decode("utf-8"))
        data = as_str_dict(data_obj)
        if data is None:
            return Err(ConfigError("Config root must be a TOML table", path=path))
        return Ok(data)
    except FileNotFoundError:
        return Err(ConfigError(f"Config file not found: {path}", path=path))
    except PermissionError:
        return Err(ConfigError(f"Permission denied reading: {path}", path=path))
    except tomllib.TOMLDecodeError as e:
        return Err(ConfigError(f"Invalid TOML syntax: {e}", path=path))
    except UnicodeDecodeError as e:
        return Err(ConfigError(f"Error reading config: {e}", path=path))


def load_release_config(
    path: Path | None,
    env: Mapping[str, str],
) -> Result[ReleaseConfig, ConfigError]:
    """Load, override and validate the release configuration.

    Args:
        path: Explicit config file. When None, ``DEPLOYKIT_CONFIG`` is used,
            then ``./deploykit.toml`` if it exists; otherwise defaults apply.
        env: Environment variables (usually ``os.environ``).

    Returns:
        Ok(ReleaseConfig) on success, Err(ConfigError) on failure.
    """
    if path is None:
        env_path = env.get("DEPLOYKIT_CONFIG", "").strip()
        if env_path:
            path = Path(env_path)
        elif Path(CONFIG_FILE_NAME).is_file():
            path = Path(CONFIG_FILE_NAME)

    config = ReleaseConfig()
    if path is not None:
        parsed = _parse_toml(path)
        if isinstance(parsed, Err):
            return parsed
        try:
            config = ReleaseConfig.from_dict(parsed.value)
        except (KeyError, TypeError, ValueError) as e:
            return Err(ConfigError(f"Invalid config structure: {e}", path=path))

    return config.with_env(env).validate()
