"""Rendering of a stack directory into a versioned scratch copy.

Placeholders have the form ``<< .Name >>``. Known names are replaced by the
resolved versions; unknown ones render as the empty string. Files that are not
valid UTF-8 are copied byte for byte.
"""

from __future__ import annotations

import re
import shutil
from pathlib import Path

from csctl.core.result import Err, Ok, Result
from csctl.core.structured import as_str_dict
from csctl.services.release.config import CHART_FILE, CLUSTER_ADDON_DIR, CLUSTER_CLASS_DIR
from csctl.services.release.errors import ReleaseError
from csctl.services.release.metadata import ReleaseMetadata

_PLACEHOLDER_RE = re.compile(r"<< (.*?) >>", re.DOTALL)


def template_values(metadata: ReleaseMetadata) -> dict[str, str]:
    return {
        ".ClusterClassVersion": metadata.cluster_stack_version,
        ".ClusterAddonVersion": metadata.addon_version,
        ".NodeImageVersion": metadata.node_image_version,
    }


def render_text(text: str, values: dict[str, str]) -> str:
    return _PLACEHOLDER_RE.sub(lambda m: values.get(m.group(1), ""), text)


def render_tree(src: Path, dst: Path, metadata: ReleaseMetadata) -> Result[int, ReleaseError]:
    """Render every file below ``src`` into ``dst``. Returns the file count."""
    values = template_values(metadata)
    count = 0
    try:
        for path in sorted(src.rglob("*")):
            target = dst / path.relative_to(src)
            if path.is_dir():
                target.mkdir(parents=True, exist_ok=True)
                continue
            target.parent.mkdir(parents=True, exist_ok=True)
            data = path.read_bytes()
            try:
                text = data.decode("utf-8")
            except UnicodeDecodeError:
                shutil.copyfile(path, target)
            else:
                target.write_text(render_text(text, values), encoding="utf-8")
            count += 1
    except OSError as e:
        return Err(ReleaseError(kind="template", message=f"failed to render {src}: {e}"))
    return Ok(count)


def set_chart_version(chart_file: Path, version: str) -> Result[str, ReleaseError]:
    """Overwrite the ``version`` key of a Chart.yaml. Returns the old version."""
    import yaml

    try:
        data_obj: object = yaml.safe_load(chart_file.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, yaml.YAMLError) as e:
        return Err(ReleaseError(kind="template", message=f"failed to read {chart_file}: {e}"))

    data = as_str_dict(data_obj)
    old = data.get("version") if data is not None else None
    if data is None or not isinstance(old, str):
        return Err(ReleaseError(kind="template", message=f"{chart_file} has no string 'version' key"))

    data["version"] = version
    try:
        chart_file.write_text(yaml.safe_dump(data, sort_keys=False), encoding="utf-8")
    except OSError as e:
        return Err(ReleaseError(kind="template", message=f"failed to write {chart_file}: {e}"))
    return Ok(old)


def stamp_chart_versions(rendered: Path, metadata: ReleaseMetadata) -> Result[list[str], ReleaseError]:
    """Set chart versions in a rendered tree.

    ``cluster-class/Chart.yaml`` is required; ``cluster-addon/Chart.yaml`` is
    only stamped when it exists.
    """
    changes: list[str] = []

    addon_chart = rendered / CLUSTER_ADDON_DIR / CHART_FILE
    if addon_chart.is_file():
        old = set_chart_version(addon_chart, metadata.addon_version)
        if isinstance(old, Err):
            return old
        changes.append(f"{CLUSTER_ADDON_DIR}/{CHART_FILE}: {old.value} -> {metadata.addon_version}")

    class_chart = rendered / CLUSTER_CLASS_DIR / CHART_FILE
    if not class_chart.is_file():
        return Err(
            ReleaseError(
                kind="template",
                message=f"missing {CLUSTER_CLASS_DIR}/{CHART_FILE}",
                hint="every cluster stack needs a cluster-class helm chart",
            )
        )
    old = set_chart_version(class_chart, metadata.cluster_stack_version)
    if isinstance(old, Err):
        return old
    changes.append(f"{CLUSTER_CLASS_DIR}/{CHART_FILE}: {old.value} -> {metadata.cluster_stack_version}")
    return Ok(changes)
