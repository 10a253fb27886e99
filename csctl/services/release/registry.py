"""Remote release registries.

The pipeline only talks to ``RegistryClient``; concrete clients wrap the
``oras`` (OCI) and ``gh`` (GitHub releases) command line tools.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from csctl.core.result import Err, Ok, Result
from csctl.services.release.config import (
    CLUSTER_ADDON_CONFIG_FILE,
    CLUSTER_ADDON_CONFIG_MEDIA_TYPE,
    CLUSTER_ADDON_MEDIA_TYPE,
    CLUSTER_CLASS_MEDIA_TYPE,
    HASHES_FILE,
    HASHES_MEDIA_TYPE,
    METADATA_FILE,
    METADATA_MEDIA_TYPE,
    NODE_IMAGE_CONFIG_MEDIA_TYPE,
    NODE_IMAGE_MEDIA_TYPE,
    NODE_IMAGES_FILE,
)
from csctl.services.release.errors import ReleaseError
from csctl.services.release.model import RemoteKind

_EXACT_MEDIA_TYPES = {
    CLUSTER_ADDON_CONFIG_FILE: CLUSTER_ADDON_CONFIG_MEDIA_TYPE,
    METADATA_FILE: METADATA_MEDIA_TYPE,
    NODE_IMAGES_FILE: NODE_IMAGE_CONFIG_MEDIA_TYPE,
    HASHES_FILE: HASHES_MEDIA_TYPE,
}

_ARCHIVE_MEDIA_TYPES = (
    ("cluster-addon", CLUSTER_ADDON_MEDIA_TYPE),
    ("cluster-class", CLUSTER_CLASS_MEDIA_TYPE),
    ("node-image", NODE_IMAGE_MEDIA_TYPE),
)


@dataclass(frozen=True, slots=True)
class ReleaseAsset:
    file_name: str
    media_type: str


def media_type_for(file_name: str) -> str | None:
    exact = _EXACT_MEDIA_TYPES.get(file_name)
    if exact is not None:
        return exact
    if file_name.endswith(".tgz"):
        for marker, media_type in _ARCHIVE_MEDIA_TYPES:
            if marker in file_name:
                return media_type
    return None


def collect_release_assets(release_dir: Path) -> list[ReleaseAsset]:
    """Files of a release directory that have a known media type, sorted."""
    assets: list[ReleaseAsset] = []
    for path in sorted(release_dir.iterdir()):
        if not path.is_file():
            continue
        media_type = media_type_for(path.name)
        if media_type is not None:
            assets.append(ReleaseAsset(file_name=path.name, media_type=media_type))
    return assets


class RegistryClient(Protocol):
    def list_releases(self) -> Result[list[str], ReleaseError]: ...

    def download(self, tag: str, dest: Path) -> Result[None, ReleaseError]:
        """Fetch the release ``tag`` into ``dest`` (created if missing)."""
        ...

    def push(
        self,
        *,
        release_dir: Path,
        assets: Sequence[ReleaseAsset],
        tag: str,
        annotations: Mapping[str, str],
    ) -> Result[None, ReleaseError]: ...

    def exists(self, tag: str) -> Result[bool, ReleaseError]: ...


def build_registry_client(
    kind: RemoteKind, *, cwd: Path, env: Mapping[str, str] | None = None
) -> Result[RegistryClient, ReleaseError]:
    """Client for ``kind`` with settings from ``env``; the CLI tool must be on PATH."""
    match kind:
        case "oci":
            from csctl.services.release.oci import OrasClient, ensure_oras_available
            from csctl.services.release.settings import load_oci_settings

            oci = load_oci_settings(env)
            if isinstance(oci, Err):
                return oci
            available = ensure_oras_available()
            if isinstance(available, Err):
                return available
            return Ok(OrasClient(settings=oci.value, cwd=cwd))
        case "github":
            from csctl.services.release.github import GhReleaseClient, ensure_gh_available
            from csctl.services.release.settings import load_github_settings

            gh = load_github_settings(env)
            if isinstance(gh, Err):
                return gh
            available = ensure_gh_available()
            if isinstance(available, Err):
                return available
            return Ok(GhReleaseClient(settings=gh.value, cwd=cwd))
