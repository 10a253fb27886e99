from __future__ import annotations

from pathlib import Path

import pytest

from csctl.core.config import (
    DeclarativeAddon,
    KubernetesVersion,
    LegacyAddon,
    load_stack_config,
    parse_kubernetes_version,
)
from csctl.core.result import Err, Ok
from csctl.test.services._stack import make_stack, write


def test_load_valid_config(tmp_path: Path) -> None:
    make_stack(tmp_path)

    result = load_stack_config(tmp_path)

    assert isinstance(result, Ok)
    config = result.value
    assert config.provider_type == "docker"
    assert config.stack_name == "ferrol"
    assert config.kubernetes_version == "v1.27.7"
    assert config.kubernetes == KubernetesVersion(major=1, minor=27)
    assert config.provider.needs_plugin is False
    assert config.addon == LegacyAddon(values_file=None)


def test_values_file_selects_legacy_convention_with_file(tmp_path: Path) -> None:
    make_stack(tmp_path, values=True)

    result = load_stack_config(tmp_path)

    assert isinstance(result, Ok)
    assert result.value.addon == LegacyAddon(values_file=tmp_path / "cluster-addon-values.yaml")


def test_clusteraddon_yaml_selects_declarative_convention(tmp_path: Path) -> None:
    make_stack(tmp_path, declarative=True, values=True)

    result = load_stack_config(tmp_path)

    assert isinstance(result, Ok)
    assert result.value.addon == DeclarativeAddon(config_file=tmp_path / "clusteraddon.yaml")


def test_provider_config_means_plugin_needed(tmp_path: Path) -> None:
    make_stack(tmp_path, provider="openstack", provider_config="region: RegionOne")

    result = load_stack_config(tmp_path)

    assert isinstance(result, Ok)
    assert result.value.provider.needs_plugin is True
    assert result.value.provider.config == {"region": "RegionOne"}


@pytest.mark.parametrize(
    ("provider", "fragment"),
    [
        ("", "provider type must not be empty"),
        ("Docker", "invalid provider type"),
        ("docker-", "invalid provider type"),
        ("a" * 254, "longer than 253"),
    ],
)
def test_invalid_provider_type(tmp_path: Path, provider: str, fragment: str) -> None:
    make_stack(tmp_path, provider=provider or '""')

    result = load_stack_config(tmp_path)

    assert isinstance(result, Err)
    assert fragment in result.error.message


def test_empty_stack_name_rejected(tmp_path: Path) -> None:
    make_stack(tmp_path, name='""')

    result = load_stack_config(tmp_path)

    assert isinstance(result, Err)
    assert result.error.message == "cluster stack name must not be empty"


@pytest.mark.parametrize("version", ["1.27.3", "v1.27", "v1.27.3-rc.1"])
def test_invalid_kubernetes_version(tmp_path: Path, version: str) -> None:
    make_stack(tmp_path, kubernetes=version)

    result = load_stack_config(tmp_path)

    assert isinstance(result, Err)
    assert "invalid kubernetes version" in result.error.message


def test_missing_config_file(tmp_path: Path) -> None:
    result = load_stack_config(tmp_path)

    assert isinstance(result, Err)
    assert "not found" in result.error.message
    assert result.error.path == tmp_path / "csctl.yaml"


def test_invalid_yaml(tmp_path: Path) -> None:
    write(tmp_path / "csctl.yaml", "config: [unclosed\n")

    result = load_stack_config(tmp_path)

    assert isinstance(result, Err)
    assert "invalid YAML" in result.error.message


def test_non_mapping_root(tmp_path: Path) -> None:
    write(tmp_path / "csctl.yaml", "- a\n- b\n")

    result = load_stack_config(tmp_path)

    assert isinstance(result, Err)
    assert result.error.message == "config root must be a mapping"


def test_parse_kubernetes_version() -> None:
    assert parse_kubernetes_version("v1.30.2") == KubernetesVersion(1, 30)
    assert str(KubernetesVersion(1, 30)) == "1-30"
    assert parse_kubernetes_version("v1.30") is None
