"""Resolution of release metadata for each versioning mode.

* hash: every version is ``v0-sha.<short whole-tree digest>``.
* stable: bump relative to the latest published release, per component.
* custom: caller supplied versions, validated and echoed.
"""

from __future__ import annotations

from csctl.core.result import Err, Ok, Result
from csctl.services.release.errors import ReleaseError
from csctl.services.release.fingerprint import ContentFingerprint
from csctl.services.release.metadata import ReleaseMetadata
from csctl.services.release.model import MODES, CustomVersions, Mode
from csctl.services.release.version import (
    INITIAL_STABLE_VERSION,
    bump_version,
    hash_version,
    is_valid_version,
)


def parse_mode(value: str) -> Result[Mode, ReleaseError]:
    for mode in MODES:
        if value == mode:
            return Ok(mode)
    return Err(
        ReleaseError(
            kind="invalid_mode",
            message=f"mode {value!r} is not supported",
            hint="choose one of: " + ", ".join(MODES),
        )
    )


def resolve_hash(
    *, current: ContentFingerprint, kubernetes_version: str
) -> Result[ReleaseMetadata, ReleaseError]:
    short = current.short_hash()
    if short is None:
        return Err(
            ReleaseError(
                kind="fingerprint",
                message=f"whole-tree digest too short for a hash version: {current.whole_tree!r}",
            )
        )
    version = hash_version(short)
    return Ok(
        ReleaseMetadata(
            kubernetes_version=kubernetes_version,
            cluster_stack_version=version,
            addon_version=version,
            node_image_version=version,
        )
    )


def _bump(component: str, version: str) -> Result[str, ReleaseError]:
    bumped = bump_version(version)
    if isinstance(bumped, Err):
        return Err(
            ReleaseError(
                kind="version_bump",
                message=f"failed to bump {component} version: {bumped.error.message}",
                hint="the previous release metadata looks corrupted",
            )
        )
    return bumped


def addon_changed(current: ContentFingerprint, latest: ContentFingerprint) -> bool:
    return (
        current.addon_subtree != latest.addon_subtree
        or current.addon_values_file != latest.addon_values_file
    )


def node_image_changed(current: ContentFingerprint, latest: ContentFingerprint) -> bool:
    return current.node_image_subtree != latest.node_image_subtree


def _check_stable_versions(metadata: ReleaseMetadata) -> Result[None, ReleaseError]:
    """Versions derived from previous metadata must still be valid release versions."""
    components = [
        ("cluster stack", metadata.cluster_stack_version),
        ("cluster addon", metadata.addon_version),
    ]
    if metadata.node_image_version:
        components.append(("node image", metadata.node_image_version))
    for label, value in components:
        if not is_valid_version(value):
            return Err(
                ReleaseError(
                    kind="version_bump",
                    message=f"invalid {label} version after bump: {value!r}",
                    hint="the previous release metadata looks corrupted",
                )
            )
    return Ok(None)


def resolve_stable(
    *,
    latest_metadata: ReleaseMetadata | None,
    current: ContentFingerprint,
    latest: ContentFingerprint,
    kubernetes_version: str,
) -> Result[ReleaseMetadata, ReleaseError]:
    """Next stable metadata.

    With no previous release every component starts at ``v1``. Otherwise the
    cluster stack version always bumps, the addon and node image versions
    bump only when their content changed, and the kubernetes version is
    re-stamped from the current configuration.
    """
    if latest_metadata is None:
        return Ok(
            ReleaseMetadata(
                kubernetes_version=kubernetes_version,
                cluster_stack_version=INITIAL_STABLE_VERSION,
                addon_version=INITIAL_STABLE_VERSION,
                node_image_version=INITIAL_STABLE_VERSION,
            )
        )

    cluster_stack = _bump("cluster stack", latest_metadata.cluster_stack_version)
    if isinstance(cluster_stack, Err):
        return cluster_stack

    addon_version = latest_metadata.addon_version
    if addon_changed(current, latest):
        bumped = _bump("cluster addon", addon_version)
        if isinstance(bumped, Err):
            return bumped
        addon_version = bumped.value

    node_image_version = latest_metadata.node_image_version
    if node_image_changed(current, latest):
        bumped = _bump("node image", node_image_version)
        if isinstance(bumped, Err):
            return bumped
        node_image_version = bumped.value

    metadata = ReleaseMetadata(
        api_version=latest_metadata.api_version,
        kubernetes_version=kubernetes_version,
        cluster_stack_version=cluster_stack.value,
        addon_version=addon_version,
        node_image_version=node_image_version,
    )
    checked = _check_stable_versions(metadata)
    if isinstance(checked, Err):
        return checked
    return Ok(metadata)


def resolve_custom(
    *, kubernetes_version: str, versions: CustomVersions
) -> Result[ReleaseMetadata, ReleaseError]:
    fields = (
        ("cluster stack", "--cluster-stack-version", versions.cluster_stack),
        ("cluster addon", "--cluster-addon-version", versions.cluster_addon),
        ("node image", "--node-image-version", versions.node_image),
    )
    for label, flag, value in fields:
        if not value:
            return Err(
                ReleaseError(
                    kind="invalid_custom_version",
                    message=f"custom mode requires a {label} version",
                    hint=f"pass {flag}",
                )
            )
        if not is_valid_version(value):
            return Err(
                ReleaseError(
                    kind="invalid_custom_version",
                    message=f"invalid custom version for {label}: {value!r}",
                    hint="expected v<N>[-suffix], e.g. v2 or v1-beta.0",
                )
            )

    assert versions.cluster_stack and versions.cluster_addon and versions.node_image
    return Ok(
        ReleaseMetadata(
            kubernetes_version=kubernetes_version,
            cluster_stack_version=versions.cluster_stack,
            addon_version=versions.cluster_addon,
            node_image_version=versions.node_image,
        )
    )
