from __future__ import annotations

from collections.abc import Iterable

from csctl.core.config import StackConfiguration
from csctl.services.release.naming import release_prefix
from csctl.services.release.version import parse_stable_version


def latest_stable_release(tags: Iterable[str], config: StackConfiguration) -> str | None:
    """Highest ``<prefix>v<N>`` tag of this stack, ignoring anything else."""
    prefix = release_prefix(config)
    best: tuple[int, str] | None = None
    for tag in tags:
        if not tag.startswith(prefix):
            continue
        n = parse_stable_version(tag.removeprefix(prefix))
        if n is None:
            continue
        if best is None or n > best[0]:
            best = (n, tag)
    return best[1] if best is not None else None
