from __future__ import annotations

import shutil
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path

from csctl.core.result import Err, Ok, Result
from csctl.platform.process import ProcessError
from csctl.platform.process import run as run_process
from csctl.services.release.config import CLUSTER_STACK_ARTIFACT_TYPE
from csctl.services.release.errors import ReleaseError, ReleaseErrorKind
from csctl.services.release.registry import ReleaseAsset
from csctl.services.release.settings import OciSettings
from csctl.services.release.timeouts import (
    REGISTRY_TIMEOUT_SECONDS,
    REGISTRY_TRANSFER_TIMEOUT_SECONDS,
)

_NOT_FOUND_MARKERS = ("not found", "manifest unknown", "name unknown")


def _is_not_found(error: ProcessError) -> bool:
    text = f"{error.stderr}\n{error.stdout}".lower()
    return any(marker in text for marker in _NOT_FOUND_MARKERS)


def ensure_oras_available() -> Result[None, ReleaseError]:
    if shutil.which("oras") is None:
        return Err(
            ReleaseError(
                kind="tool_missing",
                message="oras: missing",
                hint="Install the ORAS CLI: https://oras.land/docs/installation",
            )
        )
    return Ok(None)


@dataclass(frozen=True, slots=True)
class OrasClient:
    """OCI registry access through the ``oras`` CLI."""

    settings: OciSettings
    cwd: Path

    def _run(
        self,
        args: list[str],
        *,
        kind: ReleaseErrorKind,
        message: str,
        cwd: Path | None = None,
        timeout: float = REGISTRY_TIMEOUT_SECONDS,
    ) -> Result[str, ReleaseError]:
        cmd = ["oras", *args, *self.settings.auth_args()]
        result = run_process(cmd, cwd=cwd or self.cwd, timeout=timeout)
        if isinstance(result, Err):
            return Err(ReleaseError(kind=kind, message=message, hint=result.error.detail()))
        return result

    def list_releases(self) -> Result[list[str], ReleaseError]:
        out = self._run(
            ["repo", "tags", self.settings.repository_ref],
            kind="remote_fetch",
            message=f"failed to list tags of {self.settings.repository_ref}",
        )
        if isinstance(out, Err):
            return out
        return Ok([line.strip() for line in out.value.splitlines() if line.strip()])

    def exists(self, tag: str) -> Result[bool, ReleaseError]:
        ref = self.settings.reference(tag)
        cmd = ["oras", "manifest", "fetch", "--descriptor", ref, *self.settings.auth_args()]
        result = run_process(cmd, cwd=self.cwd, timeout=REGISTRY_TIMEOUT_SECONDS)
        if isinstance(result, Ok):
            return Ok(True)
        if _is_not_found(result.error):
            return Ok(False)
        return Err(
            ReleaseError(
                kind="remote_fetch",
                message=f"failed to resolve {ref}",
                hint=result.error.detail(),
            )
        )

    def download(self, tag: str, dest: Path) -> Result[None, ReleaseError]:
        dest.mkdir(parents=True, exist_ok=True)
        ref = self.settings.reference(tag)
        out = self._run(
            ["pull", ref, "--output", str(dest)],
            kind="remote_fetch",
            message=f"failed to pull {ref}",
            timeout=REGISTRY_TRANSFER_TIMEOUT_SECONDS,
        )
        if isinstance(out, Err):
            return out
        return Ok(None)

    def push(
        self,
        *,
        release_dir: Path,
        assets: Sequence[ReleaseAsset],
        tag: str,
        annotations: Mapping[str, str],
    ) -> Result[None, ReleaseError]:
        ref = self.settings.reference(tag)
        args = ["push", ref, "--artifact-type", CLUSTER_STACK_ARTIFACT_TYPE]
        for key, value in annotations.items():
            args += ["--annotation", f"{key}={value}"]
        args += [f"{asset.file_name}:{asset.media_type}" for asset in assets]
        out = self._run(
            args,
            kind="publish",
            message=f"failed to push {ref}",
            cwd=release_dir,
            timeout=REGISTRY_TRANSFER_TIMEOUT_SECONDS,
        )
        if isinstance(out, Err):
            return out
        return Ok(None)
