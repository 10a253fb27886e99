from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Literal

from csctl.services.release.config import DEFAULT_OUTPUT_DIR
from csctl.services.release.fingerprint import FingerprintField


Mode = Literal["hash", "stable", "custom"]
RemoteKind = Literal["github", "oci"]

MODES: tuple[Mode, ...] = ("hash", "stable", "custom")
REMOTE_KINDS: tuple[RemoteKind, ...] = ("github", "oci")

DEFAULT_GATE_FIELDS: tuple[FingerprintField, ...] = (
    "addon_subtree",
    "addon_values_file",
    "node_image_subtree",
)
STRICT_GATE_FIELDS: tuple[FingerprintField, ...] = ("whole_tree", *DEFAULT_GATE_FIELDS)


@dataclass(frozen=True, slots=True)
class CustomVersions:
    cluster_stack: str | None = None
    cluster_addon: str | None = None
    node_image: str | None = None

    def any_set(self) -> bool:
        return any((self.cluster_stack, self.cluster_addon, self.node_image))


@dataclass(frozen=True, slots=True)
class GatePolicy:
    """Fingerprint fields whose equality means "nothing to release"."""

    fields: tuple[FingerprintField, ...] = DEFAULT_GATE_FIELDS


@dataclass(frozen=True, slots=True)
class CreateOptions:
    """Everything one ``csctl create`` invocation needs, built once by the CLI."""

    stack_path: Path
    mode: Mode = "stable"
    custom: CustomVersions = CustomVersions()
    output_dir: Path = Path(DEFAULT_OUTPUT_DIR)
    node_image_registry: str | None = None
    remote: RemoteKind = "github"
    publish: bool = False
    gate: GatePolicy = GatePolicy()
