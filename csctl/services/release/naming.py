from __future__ import annotations

from csctl.core.config import StackConfiguration
from csctl.services.release.metadata import ReleaseMetadata


def release_prefix(config: StackConfiguration) -> str:
    """``<provider>-<stack>-<major>-<minor>-``, shared by every release of a stack."""
    return f"{config.provider_type}-{config.stack_name}-{config.kubernetes}-"


def release_name(metadata: ReleaseMetadata, config: StackConfiguration) -> str:
    """Directory name and registry tag, e.g. ``docker-ferrol-1-27-v3``."""
    return release_prefix(config) + metadata.cluster_stack_version


def addon_archive_name(metadata: ReleaseMetadata, config: StackConfiguration) -> str:
    return f"{release_prefix(config)}cluster-addon-{metadata.addon_version}.tgz"
