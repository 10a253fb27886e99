"""Typed loading of a cluster stack's ``csctl.yaml``.

The file is parsed once per invocation into an immutable
``StackConfiguration``; the addon convention (declarative vs legacy) is
resolved at the same time so later stages never probe the filesystem for it.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path

from .result import Err, Ok, Result
from .structured import StrDict, as_str_dict, get_str, get_table

__all__ = [
    "AddonConvention",
    "ConfigError",
    "DeclarativeAddon",
    "KubernetesVersion",
    "LegacyAddon",
    "ProviderConfig",
    "StackConfiguration",
    "load_stack_config",
    "parse_kubernetes_version",
]

CONFIG_FILE_NAME = "csctl.yaml"
ADDON_CONFIG_FILE_NAME = "clusteraddon.yaml"
ADDON_VALUES_FILE_NAME = "cluster-addon-values.yaml"

_PROVIDER_TYPE_RE = re.compile(r"^[a-z0-9]([-a-z0-9]*[a-z0-9])?$")
_PROVIDER_TYPE_MAX_LEN = 253
_KUBERNETES_VERSION_RE = re.compile(r"^v(\d+)\.(\d+)\.(\d+)$")


@dataclass(frozen=True, slots=True)
class ConfigError:
    """Error when csctl.yaml cannot be loaded or is invalid."""

    message: str
    path: Path | None = None


@dataclass(frozen=True, slots=True)
class KubernetesVersion:
    major: int
    minor: int

    def __str__(self) -> str:
        return f"{self.major}-{self.minor}"


@dataclass(frozen=True, slots=True)
class ProviderConfig:
    type: str
    api_version: str | None = None
    # Free-form, provider specific. Non-empty means the provider plugin runs.
    config: StrDict = field(default_factory=dict)

    @property
    def needs_plugin(self) -> bool:
        return bool(self.config)


@dataclass(frozen=True, slots=True)
class DeclarativeAddon:
    """``clusteraddon.yaml`` at the stack root; addon shipped as a plain tarball."""

    config_file: Path


@dataclass(frozen=True, slots=True)
class LegacyAddon:
    """Addon is a helm chart; values file copied into the release when present."""

    values_file: Path | None


type AddonConvention = DeclarativeAddon | LegacyAddon


@dataclass(frozen=True, slots=True)
class StackConfiguration:
    path: Path
    api_version: str | None
    kubernetes_version: str
    stack_name: str
    provider: ProviderConfig
    addon: AddonConvention

    @property
    def provider_type(self) -> str:
        return self.provider.type

    @property
    def kubernetes(self) -> KubernetesVersion:
        parsed = parse_kubernetes_version(self.kubernetes_version)
        # Validated on load.
        assert parsed is not None
        return parsed


def parse_kubernetes_version(value: str) -> KubernetesVersion | None:
    m = _KUBERNETES_VERSION_RE.match(value)
    if m is None:
        return None
    return KubernetesVersion(major=int(m.group(1)), minor=int(m.group(2)))


def resolve_addon_convention(stack_path: Path) -> AddonConvention:
    config_file = stack_path / ADDON_CONFIG_FILE_NAME
    if config_file.is_file():
        return DeclarativeAddon(config_file=config_file)
    values_file = stack_path / ADDON_VALUES_FILE_NAME
    return LegacyAddon(values_file=values_file if values_file.is_file() else None)


def _read_yaml(path: Path) -> Result[StrDict, ConfigError]:
    import yaml

    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return Err(ConfigError(f"config file not found: {path}", path=path))
    except PermissionError:
        return Err(ConfigError(f"permission denied reading: {path}", path=path))
    except (OSError, UnicodeDecodeError) as e:
        return Err(ConfigError(f"error reading config: {e}", path=path))

    try:
        data_obj: object = yaml.safe_load(text)
    except yaml.YAMLError as e:
        return Err(ConfigError(f"invalid YAML: {e}", path=path))

    data = as_str_dict(data_obj)
    if data is None:
        return Err(ConfigError("config root must be a mapping", path=path))
    return Ok(data)


def _validate_provider_type(provider_type: str | None) -> str | None:
    if not provider_type:
        return "provider type must not be empty"
    if len(provider_type) > _PROVIDER_TYPE_MAX_LEN:
        return f"provider type must not be longer than {_PROVIDER_TYPE_MAX_LEN} characters"
    if _PROVIDER_TYPE_RE.match(provider_type) is None:
        return f"invalid provider type: {provider_type!r}"
    return None


def load_stack_config(stack_path: Path) -> Result[StackConfiguration, ConfigError]:
    """Load and validate ``<stack_path>/csctl.yaml``."""
    path = stack_path / CONFIG_FILE_NAME
    raw = _read_yaml(path)
    if isinstance(raw, Err):
        return raw
    data = raw.value

    config = get_table(data, "config") or {}
    provider = get_table(config, "provider") or {}

    provider_type = get_str(provider, "type")
    problem = _validate_provider_type(provider_type)
    if problem is not None:
        return Err(ConfigError(problem, path=path))
    assert provider_type is not None

    stack_name = get_str(config, "clusterStackName")
    if stack_name is None:
        return Err(ConfigError("cluster stack name must not be empty", path=path))

    kubernetes_version = get_str(config, "kubernetesVersion") or ""
    if parse_kubernetes_version(kubernetes_version) is None:
        return Err(ConfigError(f"invalid kubernetes version: {kubernetes_version!r}", path=path))

    provider_config = provider.get("config")
    if provider_config is not None and as_str_dict(provider_config) is None:
        return Err(ConfigError("config.provider.config must be a mapping", path=path))

    return Ok(
        StackConfiguration(
            path=stack_path,
            api_version=get_str(data, "apiVersion"),
            kubernetes_version=kubernetes_version,
            stack_name=stack_name,
            provider=ProviderConfig(
                type=provider_type,
                api_version=get_str(provider, "apiVersion"),
                config=as_str_dict(provider_config) or {},
            ),
            addon=resolve_addon_convention(stack_path),
        )
    )
