"""Content fingerprints over a cluster stack directory.

Directory digests follow the ``h1:`` scheme: every file below the directory
contributes ``<sha256 hex>  <slash relative path>\\n`` (paths sorted) to an
outer sha256, which is base64 encoded. Every digest is then normalized into a
lowercase alphanumeric token that is safe inside file names and YAML values.
"""

from __future__ import annotations

import base64
import hashlib
import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Literal

from csctl.core.result import Err, Ok, Result
from csctl.core.structured import as_str_dict, get_str
from csctl.platform.files import atomic_write_text
from csctl.services.release.config import (
    CLUSTER_ADDON_DIR,
    CLUSTER_ADDON_VALUES_FILE,
    HASHES_FILE,
    NODE_IMAGE_DIR,
)
from csctl.services.release.errors import ReleaseError

SHORT_HASH_LENGTH = 7

FingerprintField = Literal["whole_tree", "addon_subtree", "addon_values_file", "node_image_subtree"]

# hashes.json key for each field, in file order.
_JSON_KEYS: dict[FingerprintField, str] = {
    "whole_tree": "clusterStack",
    "addon_subtree": "clusterAddonDir",
    "addon_values_file": "clusterAddonValues",
    "node_image_subtree": "nodeImageDir",
}


@dataclass(frozen=True, slots=True)
class ContentFingerprint:
    whole_tree: str = ""
    addon_subtree: str = ""
    addon_values_file: str = ""
    node_image_subtree: str = ""

    def field(self, name: FingerprintField) -> str:
        match name:
            case "whole_tree":
                return self.whole_tree
            case "addon_subtree":
                return self.addon_subtree
            case "addon_values_file":
                return self.addon_values_file
            case "node_image_subtree":
                return self.node_image_subtree

    def short_hash(self) -> str | None:
        """First characters of the whole-tree digest, used for hash versions."""
        if len(self.whole_tree) < SHORT_HASH_LENGTH:
            return None
        return self.whole_tree[:SHORT_HASH_LENGTH]

    def to_json(self) -> str:
        data: dict[str, str] = {}
        for name, key in _JSON_KEYS.items():
            value = self.field(name)
            if name == "node_image_subtree" and not value:
                continue
            data[key] = value
        return json.dumps(data, indent=2)


EMPTY_FINGERPRINT = ContentFingerprint()


def clean_digest(digest: str) -> str:
    """Normalize a digest to ``[0-9a-z]`` only."""
    digest = digest.removeprefix("h1:")
    for ch in ("/", "=", "+"):
        digest = digest.replace(ch, "")
    return digest.lower()


def _file_sha256(path: Path) -> bytes:
    h = hashlib.sha256()
    with path.open("rb") as handle:
        for chunk in iter(lambda: handle.read(1024 * 64), b""):
            h.update(chunk)
    return h.digest()


def _list_files(root: Path, exclude: Path | None = None) -> list[tuple[str, Path]]:
    files: list[tuple[str, Path]] = []
    skip = exclude.resolve() if exclude is not None else None

    def _raise(err: OSError) -> None:
        raise err

    for dirpath, dirnames, filenames in os.walk(root, onerror=_raise):
        if skip is not None:
            dirnames[:] = [d for d in dirnames if (Path(dirpath) / d).resolve() != skip]
        dirnames.sort()
        for name in filenames:
            full = Path(dirpath) / name
            rel = full.relative_to(root).as_posix()
            files.append((rel, full))
    files.sort(key=lambda item: item[0])
    return files


def hash_dir(root: Path, *, exclude: Path | None = None) -> str:
    """``h1:`` digest of every file below ``root``, skipping the ``exclude`` directory.

    Raises OSError when the tree cannot be read and ValueError for file
    names that cannot be represented in the summary.
    """
    summary = hashlib.sha256()
    for rel, full in _list_files(root, exclude):
        if "\n" in rel:
            raise ValueError(f"file name contains newline: {rel!r}")
        summary.update(f"{_file_sha256(full).hex()}  {rel}\n".encode())
    return "h1:" + base64.b64encode(summary.digest()).decode("ascii")


def hash_file(path: Path) -> str:
    return base64.b64encode(_file_sha256(path)).decode("ascii")


def compute_fingerprint(root: Path, *, exclude: Path | None = None) -> Result[ContentFingerprint, ReleaseError]:
    """Fingerprint a stack directory. Missing optional parts yield empty fields.

    ``exclude`` is left out of the whole-tree digest, so a release output
    directory inside the stack does not change the fingerprint.
    """
    if not root.is_dir():
        return Err(ReleaseError(kind="fingerprint", message=f"stack path is not a directory: {root}"))

    addon_dir = root / CLUSTER_ADDON_DIR
    node_image_dir = root / NODE_IMAGE_DIR
    values_file = root / CLUSTER_ADDON_VALUES_FILE
    try:
        return Ok(
            ContentFingerprint(
                whole_tree=clean_digest(hash_dir(root, exclude=exclude)),
                addon_subtree=clean_digest(hash_dir(addon_dir)) if addon_dir.is_dir() else "",
                addon_values_file=clean_digest(hash_file(values_file)) if values_file.is_file() else "",
                node_image_subtree=clean_digest(hash_dir(node_image_dir)) if node_image_dir.is_dir() else "",
            )
        )
    except (OSError, ValueError) as e:
        return Err(ReleaseError(kind="fingerprint", message=f"failed to hash {root}: {e}"))


def write_hashes(release_dir: Path, fingerprint: ContentFingerprint) -> Result[Path, ReleaseError]:
    path = release_dir / HASHES_FILE
    try:
        atomic_write_text(path, fingerprint.to_json())
    except OSError as e:
        return Err(ReleaseError(kind="io", message=f"failed to write {path}: {e}"))
    return Ok(path)


def read_hashes(path: Path) -> Result[ContentFingerprint, ReleaseError]:
    """Parse a ``hashes.json`` written by ``write_hashes``."""
    try:
        data_obj: object = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        return Err(ReleaseError(kind="remote_fetch", message=f"release has no {HASHES_FILE}: {path}"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        return Err(ReleaseError(kind="remote_fetch", message=f"failed to read {path}: {e}"))

    data = as_str_dict(data_obj)
    if data is None:
        return Err(ReleaseError(kind="remote_fetch", message=f"{path} must contain a JSON object"))

    values = {name: get_str(data, key) or "" for name, key in _JSON_KEYS.items()}
    return Ok(ContentFingerprint(**values))
