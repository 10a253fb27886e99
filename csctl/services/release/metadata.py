from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from csctl.core.result import Err, Ok, Result
from csctl.core.structured import StrDict, as_str_dict, get_str, get_table
from csctl.platform.files import atomic_write_text
from csctl.services.release.config import METADATA_API_VERSION, METADATA_FILE
from csctl.services.release.errors import ReleaseError


@dataclass(frozen=True, slots=True)
class ReleaseMetadata:
    """Versions embedded in a release (``metadata.yaml``).

    ``node_image_version`` is empty for stacks that never shipped node images.
    """

    kubernetes_version: str
    cluster_stack_version: str
    addon_version: str
    node_image_version: str = ""
    api_version: str = METADATA_API_VERSION

    def to_dict(self) -> StrDict:
        components: StrDict = {"clusterAddon": self.addon_version}
        if self.node_image_version:
            components["nodeImage"] = self.node_image_version
        return {
            "apiVersion": self.api_version,
            "versions": {
                "clusterStack": self.cluster_stack_version,
                "kubernetes": self.kubernetes_version,
                "components": components,
            },
        }

    def to_yaml(self) -> str:
        import yaml

        return yaml.safe_dump(self.to_dict(), sort_keys=False, default_flow_style=False)

    @classmethod
    def from_dict(cls, data: StrDict) -> ReleaseMetadata:
        versions = get_table(data, "versions") or {}
        components = get_table(versions, "components") or {}
        return cls(
            api_version=get_str(data, "apiVersion") or METADATA_API_VERSION,
            kubernetes_version=get_str(versions, "kubernetes") or "",
            cluster_stack_version=get_str(versions, "clusterStack") or "",
            addon_version=get_str(components, "clusterAddon") or "",
            node_image_version=get_str(components, "nodeImage") or "",
        )


def write_metadata(release_dir: Path, metadata: ReleaseMetadata) -> Result[Path, ReleaseError]:
    path = release_dir / METADATA_FILE
    try:
        atomic_write_text(path, metadata.to_yaml())
    except OSError as e:
        return Err(ReleaseError(kind="io", message=f"failed to write {path}: {e}"))
    return Ok(path)


def read_metadata(path: Path) -> Result[ReleaseMetadata, ReleaseError]:
    import yaml

    try:
        data_obj: object = yaml.safe_load(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        return Err(ReleaseError(kind="remote_fetch", message=f"release has no {METADATA_FILE}: {path}"))
    except (OSError, UnicodeDecodeError, yaml.YAMLError) as e:
        return Err(ReleaseError(kind="remote_fetch", message=f"failed to read {path}: {e}"))

    data = as_str_dict(data_obj)
    if data is None:
        return Err(ReleaseError(kind="remote_fetch", message=f"{path} must contain a mapping"))
    return Ok(ReleaseMetadata.from_dict(data))
