"""The ``create`` pipeline.

Stages run strictly in order and any failure aborts the invocation with the
error tagged by its stage:

    config -> fingerprint -> resolve -> gate -> generate -> publish

All scratch state (the fetched previous release, the rendered stack) lives in
a private temporary directory that is removed on every exit path. The release
directory under the output directory is only created after the gate passed.
"""

from __future__ import annotations

import shutil
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

from csctl.core.config import StackConfiguration, load_stack_config
from csctl.core.result import Err, Ok, Result
from csctl.output.console import ConsoleProtocol
from csctl.platform.files import scratch_dir
from csctl.services.release.config import HASHES_FILE, METADATA_FILE
from csctl.services.release.errors import ReleaseError
from csctl.services.release.fingerprint import (
    EMPTY_FINGERPRINT,
    ContentFingerprint,
    compute_fingerprint,
    read_hashes,
    write_hashes,
)
from csctl.services.release.gate import assert_changed, changed_fields
from csctl.services.release.history import latest_stable_release
from csctl.services.release.metadata import ReleaseMetadata, read_metadata, write_metadata
from csctl.services.release.model import CreateOptions, RemoteKind
from csctl.services.release.modes import (
    addon_changed,
    node_image_changed,
    resolve_custom,
    resolve_hash,
    resolve_stable,
)
from csctl.services.release.naming import addon_archive_name, release_name
from csctl.services.release.package import ensure_helm_available, package_release
from csctl.services.release.plugin import ProviderPlugin, create_node_images, find_plugin
from csctl.services.release.registry import (
    RegistryClient,
    build_registry_client,
    collect_release_assets,
)
from csctl.services.release.template import render_tree, stamp_chart_versions

RegistryFactory = Callable[[RemoteKind], Result[RegistryClient, ReleaseError]]


@dataclass(frozen=True, slots=True)
class Resolved:
    metadata: ReleaseMetadata
    latest: ContentFingerprint
    latest_tag: str | None


@dataclass(frozen=True, slots=True)
class CreatedRelease:
    name: str
    release_dir: Path
    metadata: ReleaseMetadata
    fingerprint: ContentFingerprint
    files: tuple[str, ...]
    pushed: bool


def _staged[T](result: Result[T, ReleaseError], stage: str) -> Result[T, ReleaseError]:
    return result.map_err(lambda e: e.in_stage(stage))


def _default_registry_factory(cwd: Path) -> RegistryFactory:
    def factory(kind: RemoteKind) -> Result[RegistryClient, ReleaseError]:
        return build_registry_client(kind, cwd=cwd)

    return factory


class CreatePipeline:
    """One ``csctl create`` invocation."""

    def __init__(
        self,
        *,
        options: CreateOptions,
        console: ConsoleProtocol,
        cwd: Path,
        registry_factory: RegistryFactory | None = None,
    ) -> None:
        self._options = options
        self._console = console
        self._cwd = cwd
        self._registry_factory = registry_factory or _default_registry_factory(cwd)
        self._registry: RegistryClient | None = None

    def _client(self) -> Result[RegistryClient, ReleaseError]:
        if self._registry is None:
            client = self._registry_factory(self._options.remote)
            if isinstance(client, Err):
                return client
            self._registry = client.value
        return Ok(self._registry)

    # -- config ------------------------------------------------------------

    def _load(self) -> Result[tuple[StackConfiguration, ProviderPlugin | None], ReleaseError]:
        opts = self._options
        if opts.publish and opts.remote != "oci":
            return Err(
                ReleaseError(
                    kind="publish",
                    message="--publish is only implemented for the OCI remote",
                    hint="use --remote oci",
                )
            )

        loaded = load_stack_config(opts.stack_path)
        if isinstance(loaded, Err):
            return Err(ReleaseError(kind="input_config", message=loaded.error.message))
        config = loaded.value
        self._console.detail(
            f"stack {config.provider_type}/{config.stack_name} kubernetes {config.kubernetes_version}"
        )

        plugin = find_plugin(config, cwd=self._cwd)
        if isinstance(plugin, Err):
            return plugin

        helm = ensure_helm_available()
        if isinstance(helm, Err):
            return helm
        return Ok((config, plugin.value))

    # -- resolve -----------------------------------------------------------

    def _fetch_latest(
        self, config: StackConfiguration, scratch: Path
    ) -> Result[tuple[str, ReleaseMetadata, ContentFingerprint] | None, ReleaseError]:
        client = self._client()
        if isinstance(client, Err):
            return client

        tags = client.value.list_releases()
        if isinstance(tags, Err):
            return tags
        tag = latest_stable_release(tags.value, config)
        if tag is None:
            self._console.info("no previous release found")
            return Ok(None)
        self._console.info(f"latest release found: {tag}")

        dest = scratch / "latest"
        downloaded = client.value.download(tag, dest)
        if isinstance(downloaded, Err):
            shutil.rmtree(dest, ignore_errors=True)
            return downloaded

        hashes = read_hashes(dest / HASHES_FILE)
        if isinstance(hashes, Err):
            return hashes
        metadata = read_metadata(dest / METADATA_FILE)
        if isinstance(metadata, Err):
            return metadata
        return Ok((tag, metadata.value, hashes.value))

    def _local_previous(self, metadata: ReleaseMetadata, config: StackConfiguration) -> ContentFingerprint:
        hashes_file = self._options.output_dir / release_name(metadata, config) / HASHES_FILE
        if not hashes_file.is_file():
            return EMPTY_FINGERPRINT
        previous = read_hashes(hashes_file)
        if isinstance(previous, Err):
            self._console.warning(f"ignoring unreadable {hashes_file}: {previous.error.message}")
            return EMPTY_FINGERPRINT
        self._console.detail(f"comparing against existing {hashes_file}")
        return previous.value

    def _resolve(
        self, config: StackConfiguration, current: ContentFingerprint, scratch: Path
    ) -> Result[Resolved, ReleaseError]:
        opts = self._options
        match opts.mode:
            case "hash":
                metadata = resolve_hash(current=current, kubernetes_version=config.kubernetes_version)
                if isinstance(metadata, Err):
                    return metadata
                return Ok(Resolved(metadata.value, self._local_previous(metadata.value, config), None))
            case "custom":
                metadata = resolve_custom(kubernetes_version=config.kubernetes_version, versions=opts.custom)
                if isinstance(metadata, Err):
                    return metadata
                return Ok(Resolved(metadata.value, self._local_previous(metadata.value, config), None))
            case "stable":
                latest = self._fetch_latest(config, scratch)
                if isinstance(latest, Err):
                    return latest
                if latest.value is None:
                    metadata = resolve_stable(
                        latest_metadata=None,
                        current=current,
                        latest=EMPTY_FINGERPRINT,
                        kubernetes_version=config.kubernetes_version,
                    )
                    if isinstance(metadata, Err):
                        return metadata
                    return Ok(Resolved(metadata.value, EMPTY_FINGERPRINT, None))

                tag, latest_metadata, latest_fingerprint = latest.value
                metadata = resolve_stable(
                    latest_metadata=latest_metadata,
                    current=current,
                    latest=latest_fingerprint,
                    kubernetes_version=config.kubernetes_version,
                )
                if isinstance(metadata, Err):
                    return metadata
                self._report_stable(latest_metadata, metadata.value, current, latest_fingerprint)
                return Ok(Resolved(metadata.value, latest_fingerprint, tag))

    def _report_stable(
        self,
        previous: ReleaseMetadata,
        new: ReleaseMetadata,
        current: ContentFingerprint,
        latest: ContentFingerprint,
    ) -> None:
        c = self._console
        c.info(f"cluster stack version: {previous.cluster_stack_version} -> {new.cluster_stack_version}")
        if addon_changed(current, latest):
            c.info(f"bumped cluster addon version: {new.addon_version}")
        else:
            c.info(f"cluster addon version unchanged: {new.addon_version}")
        if node_image_changed(current, latest):
            c.info(f"bumped node image version: {new.node_image_version}")
        elif new.node_image_version:
            c.info(f"node image version unchanged: {new.node_image_version}")
        else:
            c.info("no node image version")

    # -- generate ----------------------------------------------------------

    def _generate(
        self,
        *,
        config: StackConfiguration,
        plugin: ProviderPlugin | None,
        metadata: ReleaseMetadata,
        current: ContentFingerprint,
        release_dir: Path,
        scratch: Path,
    ) -> Result[tuple[str, ...], ReleaseError]:
        c = self._console
        c.info(f"creating output in {release_dir}")
        try:
            release_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            return Err(ReleaseError(kind="io", message=f"failed to create {release_dir}: {e}"))

        r = write_hashes(release_dir, current)
        if isinstance(r, Err):
            return r

        rendered = scratch / "rendered"
        count = render_tree(config.path, rendered, metadata)
        if isinstance(count, Err):
            return count
        c.detail(f"rendered {count.value} files")

        stamped = stamp_chart_versions(rendered, metadata)
        if isinstance(stamped, Err):
            return stamped
        for line in stamped.value:
            c.detail(line)

        packaged = package_release(
            rendered=rendered,
            release_dir=release_dir,
            addon=config.addon,
            addon_archive_name=addon_archive_name(metadata, config),
        )
        if isinstance(packaged, Err):
            return packaged

        r = write_metadata(release_dir, metadata)
        if isinstance(r, Err):
            return r

        if plugin is None:
            c.detail(f"no provider configuration, skipping plugin for {config.provider_type!r}")
        else:
            c.info(f"calling provider plugin: {plugin.path}")
            out = create_node_images(
                plugin,
                stack_path=config.path,
                release_dir=release_dir,
                node_image_registry=self._options.node_image_registry,
                cwd=self._cwd,
            )
            if isinstance(out, Err):
                return out
            for line in out.value.splitlines():
                c.detail(line)

        return Ok(tuple(sorted(p.name for p in release_dir.iterdir())))

    # -- publish -----------------------------------------------------------

    def _publish(
        self, *, name: str, release_dir: Path, metadata: ReleaseMetadata, current: ContentFingerprint
    ) -> Result[bool, ReleaseError]:
        client = self._client()
        if isinstance(client, Err):
            return client

        exists = client.value.exists(name)
        if isinstance(exists, Err):
            return exists
        if exists.value:
            self._console.warning(f"release {name} already exists in the registry, not pushing")
            return Ok(False)

        annotations = {
            "kubernetesVersion": metadata.kubernetes_version,
            "hash": current.short_hash() or "",
        }
        pushed = client.value.push(
            release_dir=release_dir,
            assets=collect_release_assets(release_dir),
            tag=name,
            annotations=annotations,
        )
        if isinstance(pushed, Err):
            return pushed
        self._console.success(f"pushed {name}")
        return Ok(True)

    # -- run ---------------------------------------------------------------

    def run(self) -> Result[CreatedRelease, ReleaseError]:
        loaded = _staged(self._load(), "config")
        if isinstance(loaded, Err):
            return loaded
        config, plugin = loaded.value

        current = _staged(compute_fingerprint(config.path, exclude=self._options.output_dir), "fingerprint")
        if isinstance(current, Err):
            return current
        self._console.detail(f"cluster stack hash: {current.value.whole_tree}")

        with scratch_dir() as scratch:
            resolved = _staged(self._resolve(config, current.value, scratch), "resolve")
            if isinstance(resolved, Err):
                return resolved
            metadata = resolved.value.metadata

            gate = _staged(
                assert_changed(current=current.value, latest=resolved.value.latest, policy=self._options.gate),
                "gate",
            )
            if isinstance(gate, Err):
                return gate
            self._console.detail(
                "changed: " + ", ".join(changed_fields(current.value, resolved.value.latest, self._options.gate))
            )

            name = release_name(metadata, config)
            release_dir = self._options.output_dir / name
            created_dir = not release_dir.exists()

            files = _staged(
                self._generate(
                    config=config,
                    plugin=plugin,
                    metadata=metadata,
                    current=current.value,
                    release_dir=release_dir,
                    scratch=scratch,
                ),
                "generate",
            )
            if isinstance(files, Err):
                if created_dir:
                    shutil.rmtree(release_dir, ignore_errors=True)
                return files
            self._console.success(f"created {release_dir}")

        pushed = False
        if self._options.publish:
            published = _staged(
                self._publish(name=name, release_dir=release_dir, metadata=metadata, current=current.value),
                "publish",
            )
            if isinstance(published, Err):
                return published
            pushed = published.value

        return Ok(
            CreatedRelease(
                name=name,
                release_dir=release_dir,
                metadata=metadata,
                fingerprint=current.value,
                files=files.value,
                pushed=pushed,
            )
        )


def create_release(
    *,
    options: CreateOptions,
    console: ConsoleProtocol,
    cwd: Path,
    registry_factory: RegistryFactory | None = None,
) -> Result[CreatedRelease, ReleaseError]:
    return CreatePipeline(
        options=options, console=console, cwd=cwd, registry_factory=registry_factory
    ).run()
