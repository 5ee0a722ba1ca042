from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta

from deploykit.core.config import DEFAULT_HOST_TEMPLATE, LATEST_TAG

# ECR authorization tokens are valid for 12 hours.
CREDENTIALS_TTL = timedelta(hours=12)


@dataclass(frozen=True, slots=True)
class RepositoryRef:
    """A registry repository, identified by (account, region, name)."""

    account_id: str
    region: str
    name: str  # namespace/image
    host_template: str = DEFAULT_HOST_TEMPLATE

    @property
    def registry_host(self) -> str:
        return f"{self.account_id}.{self.host_template.format(region=self.region)}"

    @property
    def uri(self) -> str:
        return f"{self.registry_host}/{self.name}"

    def tag_uri(self, tag: str) -> str:
        return f"{self.uri}:{tag}"

    @property
    def latest_uri(self) -> str:
        return self.tag_uri(LATEST_TAG)


@dataclass(frozen=True, slots=True)
class EnsuredRepository:
    ref: RepositoryRef
    created: bool


@dataclass(frozen=True, slots=True)
class Credentials:
    """Short-lived registry login material. Never printed, never persisted."""

    registry_host: str
    region: str
    username: str
    password: str = field(repr=False)
    issued_at: datetime

    @property
    def expires_at(self) -> datetime:
        return self.issued_at + CREDENTIALS_TTL

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at


@dataclass(frozen=True, slots=True)
class Artifact:
    """An immutable built image.

    ``image_id`` is the content address (``sha256:...``); revision and
    creation time are embedded in the image as OCI labels.
    """

    image_id: str
    revision: str
    created: str
    local_ref: str

    @property
    def short_revision(self) -> str:
        return self.revision[:12]


@dataclass(frozen=True, slots=True)
class PublishResult:
    requested_tag_uri: str
    latest_tag_uri: str
    artifact: Artifact
