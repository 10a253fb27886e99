from __future__ import annotations

import shutil
import tarfile
from pathlib import Path

from csctl.core.config import AddonConvention, DeclarativeAddon, LegacyAddon
from csctl.core.result import Err, Ok, Result
from csctl.platform.process import run as run_process
from csctl.services.release.config import (
    CLUSTER_ADDON_CONFIG_FILE,
    CLUSTER_ADDON_DIR,
    CLUSTER_ADDON_VALUES_FILE,
    CLUSTER_CLASS_DIR,
)
from csctl.services.release.errors import ReleaseError
from csctl.services.release.timeouts import PACKAGE_TIMEOUT_SECONDS


def ensure_helm_available() -> Result[None, ReleaseError]:
    if shutil.which("helm") is None:
        return Err(
            ReleaseError(
                kind="tool_missing",
                message="helm: missing",
                hint="Install helm: https://helm.sh/docs/intro/install/",
            )
        )
    return Ok(None)


def helm_package(chart_dir: Path, dest: Path) -> Result[None, ReleaseError]:
    cmd = ["helm", "package", str(chart_dir), "--destination", str(dest)]
    result = run_process(cmd, cwd=chart_dir.parent, timeout=PACKAGE_TIMEOUT_SECONDS)
    if isinstance(result, Err):
        return Err(
            ReleaseError(
                kind="package",
                message=f"helm package failed for {chart_dir.name}",
                hint=result.error.detail(),
            )
        )
    return Ok(None)


def tar_package(src: Path, archive: Path) -> Result[None, ReleaseError]:
    """Gzip tarball of the contents of ``src`` (entries relative to it)."""
    try:
        with tarfile.open(archive, "w:gz") as tar:
            for path in sorted(src.rglob("*")):
                tar.add(path, arcname=path.relative_to(src).as_posix(), recursive=False)
    except (OSError, tarfile.TarError) as e:
        return Err(ReleaseError(kind="package", message=f"failed to create {archive.name}: {e}"))
    return Ok(None)


def package_release(
    *,
    rendered: Path,
    release_dir: Path,
    addon: AddonConvention,
    addon_archive_name: str,
) -> Result[list[str], ReleaseError]:
    """Package a rendered stack into ``release_dir``. Returns written file names."""
    before = set(p.name for p in release_dir.iterdir()) if release_dir.is_dir() else set()

    r = helm_package(rendered / CLUSTER_CLASS_DIR, release_dir)
    if isinstance(r, Err):
        return r

    addon_src = rendered / CLUSTER_ADDON_DIR
    match addon:
        case DeclarativeAddon(config_file=config_file):
            if not addon_src.is_dir():
                return Err(
                    ReleaseError(
                        kind="package",
                        message=f"missing {CLUSTER_ADDON_DIR}/ for the {CLUSTER_ADDON_CONFIG_FILE} convention",
                    )
                )
            r = tar_package(addon_src, release_dir / addon_archive_name)
            if isinstance(r, Err):
                return r
            try:
                shutil.copyfile(config_file, release_dir / CLUSTER_ADDON_CONFIG_FILE)
            except OSError as e:
                return Err(ReleaseError(kind="io", message=f"failed to copy {config_file.name}: {e}"))
        case LegacyAddon(values_file=values_file):
            if addon_src.is_dir():
                r = helm_package(addon_src, release_dir)
                if isinstance(r, Err):
                    return r
            if values_file is not None:
                # The rendered copy carries substituted versions.
                try:
                    shutil.copyfile(rendered / CLUSTER_ADDON_VALUES_FILE, release_dir / CLUSTER_ADDON_VALUES_FILE)
                except OSError as e:
                    return Err(ReleaseError(kind="io", message=f"failed to copy {CLUSTER_ADDON_VALUES_FILE}: {e}"))

    return Ok(sorted(p.name for p in release_dir.iterdir() if p.name not in before))
