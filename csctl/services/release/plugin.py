"""Provider plugins (``csctl-<provider type>``) that build node images."""

from __future__ import annotations

import shutil
from dataclasses import dataclass
from pathlib import Path

from csctl.core.config import StackConfiguration
from csctl.core.result import Err, Ok, Result
from csctl.platform.process import run as run_process
from csctl.services.release.config import PLUGIN_COMMAND, PLUGIN_PREFIX
from csctl.services.release.errors import ReleaseError
from csctl.services.release.timeouts import PLUGIN_TIMEOUT_SECONDS


@dataclass(frozen=True, slots=True)
class ProviderPlugin:
    name: str
    path: Path


def plugin_name(provider_type: str) -> str:
    return f"{PLUGIN_PREFIX}{provider_type}"


def find_plugin(config: StackConfiguration, *, cwd: Path) -> Result[ProviderPlugin | None, ReleaseError]:
    """Locate the plugin for the stack's provider, current directory first.

    Returns None when the provider has no configuration, i.e. no plugin is needed.
    """
    if not config.provider.needs_plugin:
        return Ok(None)

    name = plugin_name(config.provider_type)
    local = cwd / name
    if local.is_file():
        return Ok(ProviderPlugin(name=name, path=local.resolve()))

    found = shutil.which(name)
    if found is None:
        return Err(
            ReleaseError(
                kind="tool_missing",
                message=f"could not find plugin {name} in $PATH or the current directory",
                hint=f"install {name} or remove config.provider.config from csctl.yaml",
            )
        )
    return Ok(ProviderPlugin(name=name, path=Path(found)))


def create_node_images(
    plugin: ProviderPlugin,
    *,
    stack_path: Path,
    release_dir: Path,
    node_image_registry: str | None,
    cwd: Path,
) -> Result[str, ReleaseError]:
    cmd = [str(plugin.path), PLUGIN_COMMAND, str(stack_path), str(release_dir)]
    if node_image_registry:
        cmd.append(node_image_registry)
    result = run_process(cmd, cwd=cwd, timeout=PLUGIN_TIMEOUT_SECONDS)
    if isinstance(result, Err):
        return Err(
            ReleaseError(
                kind="plugin",
                message=f"{plugin.name} {PLUGIN_COMMAND} failed (exit {result.error.returncode})",
                hint=result.error.detail(),
            )
        )
    return result
