from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path

import pytest

from csctl.core.result import Err, Ok, Result
from csctl.output.console import MockConsole
from csctl.platform.process import ProcessError
from csctl.services.release import package as package_mod
from csctl.services.release import pipeline as pipeline_mod
from csctl.services.release import plugin as plugin_mod
from csctl.services.release.errors import ReleaseError
from csctl.services.release.fingerprint import ContentFingerprint, compute_fingerprint, write_hashes
from csctl.services.release.metadata import ReleaseMetadata, read_metadata, write_metadata
from csctl.services.release.model import (
    STRICT_GATE_FIELDS,
    CreateOptions,
    CustomVersions,
    GatePolicy,
    RemoteKind,
)
from csctl.services.release.pipeline import CreatedRelease, create_release
from csctl.services.release.registry import RegistryClient, ReleaseAsset
from csctl.test.services._stack import make_stack, write


@dataclass
class PushCall:
    tag: str
    assets: list[ReleaseAsset]
    annotations: dict[str, str]


@dataclass
class FakeRegistry:
    """In-memory registry; ``releases`` maps tags to their metadata and hashes."""

    releases: dict[str, tuple[ReleaseMetadata, ContentFingerprint]] = field(default_factory=dict)
    fail_download: bool = False
    downloads: list[Path] = field(default_factory=list)
    pushes: list[PushCall] = field(default_factory=list)

    def list_releases(self) -> Result[list[str], ReleaseError]:
        return Ok([*self.releases, "docker-ferrol-1-27-v0-sha.abcdef1", "openstack-ferrol-1-27-v9"])

    def download(self, tag: str, dest: Path) -> Result[None, ReleaseError]:
        dest.mkdir(parents=True, exist_ok=True)
        self.downloads.append(dest)
        if self.fail_download:
            (dest / "partial").write_text("x")
            return Err(ReleaseError(kind="remote_fetch", message=f"failed to pull {tag}"))
        metadata, hashes = self.releases[tag]
        assert isinstance(write_metadata(dest, metadata), Ok)
        assert isinstance(write_hashes(dest, hashes), Ok)
        return Ok(None)

    def push(
        self,
        *,
        release_dir: Path,
        assets: Sequence[ReleaseAsset],
        tag: str,
        annotations: Mapping[str, str],
    ) -> Result[None, ReleaseError]:
        del release_dir
        self.pushes.append(PushCall(tag=tag, assets=list(assets), annotations=dict(annotations)))
        self.releases[tag] = (ReleaseMetadata("", "", ""), ContentFingerprint())
        return Ok(None)

    def exists(self, tag: str) -> Result[bool, ReleaseError]:
        return Ok(tag in self.releases)


def _factory(registry: FakeRegistry):
    def factory(kind: RemoteKind) -> Result[RegistryClient, ReleaseError]:
        del kind
        return Ok(registry)

    return factory


@pytest.fixture
def helm_calls(monkeypatch: pytest.MonkeyPatch) -> list[list[str]]:
    calls: list[list[str]] = []

    def fake_run(cmd: list[str], *, cwd: Path, timeout: float | None = None) -> Result[str, ProcessError]:
        del cwd, timeout
        calls.append(cmd)
        chart_dir = Path(cmd[2])
        dest = Path(cmd[4])
        (dest / f"{chart_dir.name}-v1.tgz").write_bytes(b"chart")
        return Ok("")

    monkeypatch.setattr(pipeline_mod, "ensure_helm_available", lambda: Ok(None))
    monkeypatch.setattr(package_mod, "run_process", fake_run)
    return calls


def _run(
    tmp_path: Path,
    stack: Path,
    *,
    registry: FakeRegistry | None = None,
    console: MockConsole | None = None,
    **options: object,
) -> Result[CreatedRelease, ReleaseError]:
    return create_release(
        options=CreateOptions(stack_path=stack, output_dir=tmp_path / "out", **options),  # type: ignore[arg-type]
        console=console or MockConsole(),
        cwd=tmp_path,
        registry_factory=_factory(registry or FakeRegistry()),
    )


class TestHashMode:
    def test_creates_release(self, tmp_path: Path, helm_calls: list[list[str]]) -> None:
        stack = make_stack(tmp_path / "stack", values=True)
        fingerprint = compute_fingerprint(stack)
        assert isinstance(fingerprint, Ok)
        short = fingerprint.value.short_hash()

        result = _run(tmp_path, stack, mode="hash")

        assert isinstance(result, Ok)
        release = result.value
        assert release.name == f"docker-ferrol-1-27-v0-sha.{short}"
        assert release.release_dir == tmp_path / "out" / release.name
        assert release.files == (
            "cluster-addon-v1.tgz",
            "cluster-addon-values.yaml",
            "cluster-class-v1.tgz",
            "hashes.json",
            "metadata.yaml",
        )
        assert release.pushed is False
        assert len(helm_calls) == 2

        metadata = read_metadata(release.release_dir / "metadata.yaml")
        assert isinstance(metadata, Ok)
        assert metadata.value.node_image_version == f"v0-sha.{short}"
        values = (release.release_dir / "cluster-addon-values.yaml").read_text()
        assert f"image: v0-sha.{short}" in values

    def test_rerun_is_no_change(self, tmp_path: Path, helm_calls: list[list[str]]) -> None:
        stack = make_stack(tmp_path / "stack")
        first = _run(tmp_path, stack, mode="hash")
        assert isinstance(first, Ok)

        second = _run(tmp_path, stack, mode="hash")

        assert isinstance(second, Err)
        assert second.error.kind == "no_change"
        assert second.error.stage == "gate"
        assert [p.name for p in (tmp_path / "out").iterdir()] == [first.value.name]

    def test_output_inside_stack_is_idempotent(self, tmp_path: Path, helm_calls: list[list[str]]) -> None:
        stack = make_stack(tmp_path / "stack")
        options = CreateOptions(stack_path=stack, mode="hash", output_dir=stack / ".release")

        first = create_release(options=options, console=MockConsole(), cwd=tmp_path)
        second = create_release(options=options, console=MockConsole(), cwd=tmp_path)

        assert isinstance(first, Ok)
        assert first.value.release_dir.parent == stack / ".release"
        assert isinstance(second, Err)
        assert second.error.kind == "no_change"
        assert [p.name for p in (stack / ".release").iterdir()] == [first.value.name]

    def test_no_registry_access(self, tmp_path: Path, helm_calls: list[list[str]]) -> None:
        stack = make_stack(tmp_path / "stack")

        def factory(kind: RemoteKind) -> Result[RegistryClient, ReleaseError]:
            raise AssertionError("hash mode must not contact a registry")

        result = create_release(
            options=CreateOptions(stack_path=stack, mode="hash", output_dir=tmp_path / "out"),
            console=MockConsole(),
            cwd=tmp_path,
            registry_factory=factory,
        )

        assert isinstance(result, Ok)


class TestStableMode:
    def test_first_release(self, tmp_path: Path, helm_calls: list[list[str]]) -> None:
        stack = make_stack(tmp_path / "stack")
        console = MockConsole()

        result = _run(tmp_path, stack, console=console)

        assert isinstance(result, Ok)
        assert result.value.name == "docker-ferrol-1-27-v1"
        assert result.value.metadata == ReleaseMetadata(
            kubernetes_version="v1.27.7",
            cluster_stack_version="v1",
            addon_version="v1",
            node_image_version="v1",
        )
        assert console.find("no previous release found")
        # The rendered class chart carries the new cluster stack version.
        assert "cluster-class-v1.tgz" in result.value.files

    def test_bumps_only_changed_components(self, tmp_path: Path, helm_calls: list[list[str]]) -> None:
        stack = make_stack(tmp_path / "stack", node_image=True)
        before = compute_fingerprint(stack)
        assert isinstance(before, Ok)
        write(stack / "node-image" / "image.pkr.hcl", 'source "qemu" "ubuntu-2204" {}\n')
        registry = FakeRegistry(
            releases={
                "docker-ferrol-1-27-v2": (
                    ReleaseMetadata("v1.27.3", cluster_stack_version="v2", addon_version="v3", node_image_version="v1"),
                    before.value,
                ),
                "docker-ferrol-1-27-v10": (
                    ReleaseMetadata("v1.27.3", cluster_stack_version="v10", addon_version="v3", node_image_version="v1"),
                    before.value,
                ),
            }
        )
        console = MockConsole()

        result = _run(tmp_path, stack, registry=registry, console=console)

        assert isinstance(result, Ok)
        assert result.value.name == "docker-ferrol-1-27-v11"
        assert result.value.metadata == ReleaseMetadata(
            kubernetes_version="v1.27.7",
            cluster_stack_version="v11",
            addon_version="v3",
            node_image_version="v2",
        )
        assert console.find("latest release found: docker-ferrol-1-27-v10")
        assert console.find("cluster addon version unchanged: v3")
        assert console.find("bumped node image version: v2")

    def test_unchanged_stack_is_rejected(self, tmp_path: Path, helm_calls: list[list[str]]) -> None:
        stack = make_stack(tmp_path / "stack")
        current = compute_fingerprint(stack)
        assert isinstance(current, Ok)
        registry = FakeRegistry(
            releases={"docker-ferrol-1-27-v1": (ReleaseMetadata("v1.27.7", "v1", "v1", "v1"), current.value)}
        )

        result = _run(tmp_path, stack, registry=registry)

        assert isinstance(result, Err)
        assert result.error.kind == "no_change"
        assert result.error.stage == "gate"
        assert not (tmp_path / "out").exists()
        assert helm_calls == []

    def test_class_only_change_needs_whole_tree_gate(self, tmp_path: Path, helm_calls: list[list[str]]) -> None:
        stack = make_stack(tmp_path / "stack")
        before = compute_fingerprint(stack)
        assert isinstance(before, Ok)
        write(stack / "cluster-class" / "templates" / "extra.yaml", "kind: ConfigMap\n")
        releases = {"docker-ferrol-1-27-v1": (ReleaseMetadata("v1.27.7", "v1", "v1", "v1"), before.value)}

        default = _run(tmp_path, stack, registry=FakeRegistry(releases=dict(releases)))
        strict = _run(
            tmp_path,
            stack,
            registry=FakeRegistry(releases=dict(releases)),
            gate=GatePolicy(STRICT_GATE_FIELDS),
        )

        assert isinstance(default, Err)
        assert default.error.kind == "no_change"
        assert isinstance(strict, Ok)
        assert strict.value.metadata.cluster_stack_version == "v2"
        assert strict.value.metadata.addon_version == "v1"

    def test_download_failure(self, tmp_path: Path, helm_calls: list[list[str]]) -> None:
        stack = make_stack(tmp_path / "stack")
        registry = FakeRegistry(
            releases={"docker-ferrol-1-27-v1": (ReleaseMetadata("v1.27.7", "v1", "v1", "v1"), ContentFingerprint())},
            fail_download=True,
        )

        result = _run(tmp_path, stack, registry=registry)

        assert isinstance(result, Err)
        assert result.error.kind == "remote_fetch"
        assert result.error.stage == "resolve"
        assert registry.downloads
        assert not registry.downloads[0].exists()
        assert not (tmp_path / "out").exists()

    def test_corrupted_previous_version(self, tmp_path: Path, helm_calls: list[list[str]]) -> None:
        stack = make_stack(tmp_path / "stack")
        registry = FakeRegistry(
            releases={
                "docker-ferrol-1-27-v1": (ReleaseMetadata("v1.27.7", "v1", "beta", "v1"), ContentFingerprint())
            }
        )

        result = _run(tmp_path, stack, registry=registry)

        assert isinstance(result, Err)
        assert result.error.kind == "version_bump"
        assert result.error.stage == "resolve"

    def test_invalid_bumped_version_writes_nothing(self, tmp_path: Path, helm_calls: list[list[str]]) -> None:
        stack = make_stack(tmp_path / "stack")
        registry = FakeRegistry(
            releases={
                "docker-ferrol-1-27-v1": (
                    ReleaseMetadata("v1.27.7", "release-7", "v1", "v1"),
                    ContentFingerprint(),
                )
            }
        )

        result = _run(tmp_path, stack, registry=registry)

        assert isinstance(result, Err)
        assert result.error.kind == "version_bump"
        assert result.error.stage == "resolve"
        assert "release-8" in result.error.message
        assert not (tmp_path / "out").exists()
        assert helm_calls == []


class TestCustomMode:
    def test_uses_given_versions(self, tmp_path: Path, helm_calls: list[list[str]]) -> None:
        stack = make_stack(tmp_path / "stack")
        versions = CustomVersions(cluster_stack="v1-beta.0", cluster_addon="v2", node_image="v3")

        result = _run(tmp_path, stack, mode="custom", custom=versions)

        assert isinstance(result, Ok)
        assert result.value.name == "docker-ferrol-1-27-v1-beta.0"
        assert result.value.metadata.addon_version == "v2"

    def test_missing_version(self, tmp_path: Path, helm_calls: list[list[str]]) -> None:
        stack = make_stack(tmp_path / "stack")

        result = _run(tmp_path, stack, mode="custom", custom=CustomVersions(cluster_stack="v1"))

        assert isinstance(result, Err)
        assert result.error.kind == "invalid_custom_version"
        assert result.error.stage == "resolve"


class TestFailures:
    def test_missing_config(self, tmp_path: Path, helm_calls: list[list[str]]) -> None:
        (tmp_path / "stack").mkdir()

        result = _run(tmp_path, tmp_path / "stack", mode="hash")

        assert isinstance(result, Err)
        assert result.error.kind == "input_config"
        assert result.error.stage == "config"

    def test_missing_helm(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        monkeypatch.setattr(package_mod.shutil, "which", lambda name: None)
        stack = make_stack(tmp_path / "stack")

        result = _run(tmp_path, stack, mode="hash")

        assert isinstance(result, Err)
        assert result.error.kind == "tool_missing"
        assert result.error.stage == "config"

    def test_package_failure_removes_release_dir(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        def failing_helm(cmd: list[str], *, cwd: Path, timeout: float | None = None) -> Result[str, ProcessError]:
            return Err(ProcessError(tuple(cmd), 1, "", "Error: Chart.yaml file is missing"))

        monkeypatch.setattr(pipeline_mod, "ensure_helm_available", lambda: Ok(None))
        monkeypatch.setattr(package_mod, "run_process", failing_helm)
        stack = make_stack(tmp_path / "stack")

        result = _run(tmp_path, stack, mode="hash")

        assert isinstance(result, Err)
        assert result.error.kind == "package"
        assert result.error.stage == "generate"
        assert list((tmp_path / "out").iterdir()) == []


class TestPlugin:
    def test_plugin_creates_node_images(
        self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path, helm_calls: list[list[str]]
    ) -> None:
        stack = make_stack(tmp_path / "stack", provider_config="region: RegionOne")
        (tmp_path / "csctl-docker").write_text("#!/bin/sh\n")
        plugin_calls: list[list[str]] = []

        def fake_plugin(cmd: list[str], *, cwd: Path, timeout: float | None = None) -> Result[str, ProcessError]:
            del cwd, timeout
            plugin_calls.append(cmd)
            (Path(cmd[3]) / "node-images.yaml").write_text("images: []\n")
            return Ok("built 0 images\n")

        monkeypatch.setattr(plugin_mod, "run_process", fake_plugin)

        result = _run(tmp_path, stack, mode="hash", node_image_registry="registry.example/images")

        assert isinstance(result, Ok)
        assert "node-images.yaml" in result.value.files
        assert plugin_calls == [
            [
                str((tmp_path / "csctl-docker").resolve()),
                "create-node-images",
                str(stack),
                str(result.value.release_dir),
                "registry.example/images",
            ]
        ]

    def test_missing_plugin(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path, helm_calls: list[list[str]]) -> None:
        monkeypatch.setattr(plugin_mod.shutil, "which", lambda name: None)
        stack = make_stack(tmp_path / "stack", provider_config="region: RegionOne")

        result = _run(tmp_path, stack, mode="hash")

        assert isinstance(result, Err)
        assert result.error.kind == "tool_missing"
        assert "csctl-docker" in result.error.message


class TestPublish:
    def test_pushes_release(self, tmp_path: Path, helm_calls: list[list[str]]) -> None:
        stack = make_stack(tmp_path / "stack")
        registry = FakeRegistry()

        result = _run(tmp_path, stack, registry=registry, remote="oci", publish=True)

        assert isinstance(result, Ok)
        assert result.value.pushed is True
        assert len(registry.pushes) == 1
        push = registry.pushes[0]
        assert push.tag == "docker-ferrol-1-27-v1"
        assert push.annotations == {
            "kubernetesVersion": "v1.27.7",
            "hash": result.value.fingerprint.short_hash(),
        }
        assert [a.file_name for a in push.assets] == [
            "cluster-addon-v1.tgz",
            "cluster-class-v1.tgz",
            "hashes.json",
            "metadata.yaml",
        ]

    def test_existing_tag_is_not_pushed(self, tmp_path: Path, helm_calls: list[list[str]]) -> None:
        stack = make_stack(tmp_path / "stack")
        registry = FakeRegistry()
        console = MockConsole()
        hashed = _run(tmp_path, stack, mode="hash")
        assert isinstance(hashed, Ok)
        registry.releases[hashed.value.name] = (hashed.value.metadata, hashed.value.fingerprint)
        (tmp_path / "out" / hashed.value.name / "hashes.json").unlink()

        result = _run(tmp_path, stack, registry=registry, console=console, mode="hash", remote="oci", publish=True)

        assert isinstance(result, Ok)
        assert result.value.pushed is False
        assert registry.pushes == []
        assert console.find("already exists")

    def test_publish_requires_oci(self, tmp_path: Path, helm_calls: list[list[str]]) -> None:
        stack = make_stack(tmp_path / "stack")

        result = _run(tmp_path, stack, remote="github", publish=True)

        assert isinstance(result, Err)
        assert result.error.kind == "publish"
        assert result.error.stage == "config"
        assert helm_calls == []
