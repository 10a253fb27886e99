"""Remote registry settings, read from the environment once per invocation."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass

from csctl.core.result import Err, Ok, Result
from csctl.services.release.errors import ReleaseError

OCI_REGISTRY_ENV = "OCI_REGISTRY"
OCI_REPOSITORY_ENV = "OCI_REPOSITORY"
OCI_USERNAME_ENV = "OCI_USERNAME"
OCI_PASSWORD_ENV = "OCI_PASSWORD"
OCI_ACCESS_TOKEN_ENV = "OCI_ACCESS_TOKEN"

GIT_PROVIDER_ENV = "GIT_PROVIDER"
GIT_ORG_NAME_ENV = "GIT_ORG_NAME"
GIT_REPOSITORY_NAME_ENV = "GIT_REPOSITORY_NAME"
GIT_ACCESS_TOKEN_ENV = "GIT_ACCESS_TOKEN"


@dataclass(frozen=True, slots=True)
class OciSettings:
    registry: str
    repository: str
    username: str | None = None
    password: str | None = None
    access_token: str | None = None

    @property
    def repository_ref(self) -> str:
        """Repository under the registry host; a repository that already names it is kept."""
        if self.repository.startswith(f"{self.registry}/"):
            return self.repository
        return f"{self.registry}/{self.repository.lstrip('/')}"

    def reference(self, tag: str) -> str:
        return f"{self.repository_ref}:{tag}"

    def auth_args(self) -> list[str]:
        if self.access_token:
            return ["--registry-token", self.access_token]
        if self.username and self.password:
            return ["--username", self.username, "--password", self.password]
        return []


@dataclass(frozen=True, slots=True)
class GitHubSettings:
    org: str
    repository: str
    access_token: str | None = None

    @property
    def slug(self) -> str:
        return f"{self.org}/{self.repository}"


def _get(env: Mapping[str, str], key: str) -> str | None:
    value = env.get(key, "").strip()
    return value or None


def _missing(keys: list[str]) -> ReleaseError:
    return ReleaseError(
        kind="remote_config",
        message="missing environment variables: " + ", ".join(keys),
        hint="export them before running csctl",
    )


def load_oci_settings(env: Mapping[str, str] | None = None) -> Result[OciSettings, ReleaseError]:
    env = os.environ if env is None else env
    registry = _get(env, OCI_REGISTRY_ENV)
    repository = _get(env, OCI_REPOSITORY_ENV)
    missing = [k for k, v in ((OCI_REGISTRY_ENV, registry), (OCI_REPOSITORY_ENV, repository)) if v is None]
    if missing:
        return Err(_missing(missing))
    assert registry is not None and repository is not None
    return Ok(
        OciSettings(
            registry=registry,
            repository=repository,
            username=_get(env, OCI_USERNAME_ENV),
            password=_get(env, OCI_PASSWORD_ENV),
            access_token=_get(env, OCI_ACCESS_TOKEN_ENV),
        )
    )


def load_github_settings(env: Mapping[str, str] | None = None) -> Result[GitHubSettings, ReleaseError]:
    env = os.environ if env is None else env
    provider = _get(env, GIT_PROVIDER_ENV)
    org = _get(env, GIT_ORG_NAME_ENV)
    repository = _get(env, GIT_REPOSITORY_NAME_ENV)
    missing = [
        k
        for k, v in (
            (GIT_PROVIDER_ENV, provider),
            (GIT_ORG_NAME_ENV, org),
            (GIT_REPOSITORY_NAME_ENV, repository),
        )
        if v is None
    ]
    if missing:
        return Err(_missing(missing))
    if provider != "github":
        return Err(
            ReleaseError(
                kind="remote_config",
                message=f"unsupported git provider: {provider!r}",
                hint=f"set {GIT_PROVIDER_ENV}=github",
            )
        )
    assert org is not None and repository is not None
    return Ok(GitHubSettings(org=org, repository=repository, access_token=_get(env, GIT_ACCESS_TOKEN_ENV)))
