from __future__ import annotations

import json
import os
import shutil
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path

from csctl.core.result import Err, Ok, Result
from csctl.core.structured import as_obj_list, as_str_dict, get_str
from csctl.platform.process import run as run_process
from csctl.services.release.config import HASHES_FILE, METADATA_FILE
from csctl.services.release.errors import ReleaseError
from csctl.services.release.registry import ReleaseAsset
from csctl.services.release.settings import GitHubSettings
from csctl.services.release.timeouts import (
    REGISTRY_TIMEOUT_SECONDS,
    REGISTRY_TRANSFER_TIMEOUT_SECONDS,
)

# Only what the next stable release needs to compare against.
_DOWNLOAD_PATTERNS = (METADATA_FILE, HASHES_FILE)
_LIST_LIMIT = "1000"


def ensure_gh_available() -> Result[None, ReleaseError]:
    if shutil.which("gh") is None:
        return Err(
            ReleaseError(
                kind="tool_missing",
                message="gh: missing",
                hint="Install GitHub CLI: https://cli.github.com/",
            )
        )
    return Ok(None)


@dataclass(frozen=True, slots=True)
class GhReleaseClient:
    """GitHub releases through the ``gh`` CLI. Read-only."""

    settings: GitHubSettings
    cwd: Path

    def _env(self) -> dict[str, str] | None:
        if not self.settings.access_token:
            return None
        return {**os.environ, "GH_TOKEN": self.settings.access_token}

    def list_releases(self) -> Result[list[str], ReleaseError]:
        cmd = [
            "gh", "release", "list",
            "--repo", self.settings.slug,
            "--limit", _LIST_LIMIT,
            "--json", "tagName",
        ]  # fmt: skip
        result = run_process(cmd, cwd=self.cwd, env=self._env(), timeout=REGISTRY_TIMEOUT_SECONDS)
        if isinstance(result, Err):
            return Err(
                ReleaseError(
                    kind="remote_fetch",
                    message=f"failed to list releases of {self.settings.slug}",
                    hint=result.error.detail(),
                )
            )

        try:
            obj: object = json.loads(result.value or "[]")
        except json.JSONDecodeError as e:
            return Err(ReleaseError(kind="remote_fetch", message=f"gh returned invalid JSON: {e}"))

        items = as_obj_list(obj)
        if items is None:
            return Err(ReleaseError(kind="remote_fetch", message="unexpected gh release list payload"))

        tags: list[str] = []
        for item in items:
            data = as_str_dict(item)
            tag = get_str(data, "tagName") if data is not None else None
            if tag is not None:
                tags.append(tag)
        return Ok(tags)

    def exists(self, tag: str) -> Result[bool, ReleaseError]:
        cmd = ["gh", "release", "view", tag, "--repo", self.settings.slug, "--json", "tagName"]
        result = run_process(cmd, cwd=self.cwd, env=self._env(), timeout=REGISTRY_TIMEOUT_SECONDS)
        if isinstance(result, Ok):
            return Ok(True)
        if "not found" in result.error.stderr.lower():
            return Ok(False)
        return Err(
            ReleaseError(
                kind="remote_fetch",
                message=f"failed to look up release {tag}",
                hint=result.error.detail(),
            )
        )

    def download(self, tag: str, dest: Path) -> Result[None, ReleaseError]:
        dest.mkdir(parents=True, exist_ok=True)
        cmd = ["gh", "release", "download", tag, "--repo", self.settings.slug, "--dir", str(dest)]
        for pattern in _DOWNLOAD_PATTERNS:
            cmd += ["--pattern", pattern]
        result = run_process(cmd, cwd=self.cwd, env=self._env(), timeout=REGISTRY_TRANSFER_TIMEOUT_SECONDS)
        if isinstance(result, Err):
            return Err(
                ReleaseError(
                    kind="remote_fetch",
                    message=f"failed to download release {tag}",
                    hint=result.error.detail(),
                )
            )
        return Ok(None)

    def push(
        self,
        *,
        release_dir: Path,
        assets: Sequence[ReleaseAsset],
        tag: str,
        annotations: Mapping[str, str],
    ) -> Result[None, ReleaseError]:
        return Err(
            ReleaseError(
                kind="publish",
                message="publishing is only implemented for the OCI remote",
                hint="use --remote oci",
            )
        )
