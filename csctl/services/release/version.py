"""Version strings of cluster stack components.

Accepted grammar: ``v<N>`` optionally followed by further ``.<N>`` groups and
a ``-<suffix>`` made of alphanumerics, dots and hyphens, e.g. ``v3``,
``v0-sha.abc1234``, ``v1-beta.0``, ``v2.1.0-custom-pr123``.

Bumping increments the *first* run of digits only, so ``v0-sha.abc123``
becomes ``v1-sha.abc123`` and ``v1.2.3`` becomes ``v2.2.3``.
"""

from __future__ import annotations

import re

from csctl.core.result import Err, Ok, Result
from csctl.services.release.errors import ReleaseError

HASH_VERSION_PREFIX = "v0-sha."
INITIAL_STABLE_VERSION = "v1"

_VERSION_RE = re.compile(r"^v\d+(\.\d+)*(-[0-9A-Za-z][0-9A-Za-z.\-]*)?$")
_STABLE_RE = re.compile(r"^v(0|[1-9]\d*)$")
_DIGITS_RE = re.compile(r"\d+")


def is_valid_version(version: str) -> bool:
    return _VERSION_RE.match(version) is not None


def parse_stable_version(version: str) -> int | None:
    """``v<N>`` -> N; anything else (channels, hash versions) -> None."""
    m = _STABLE_RE.match(version)
    if m is None:
        return None
    return int(m.group(1))


def hash_version(short_hash: str) -> str:
    return f"{HASH_VERSION_PREFIX}{short_hash}"


def bump_version(version: str) -> Result[str, ReleaseError]:
    m = _DIGITS_RE.search(version)
    if m is None:
        return Err(
            ReleaseError(
                kind="invalid_version_format",
                message=f"version {version!r} contains no number to bump",
            )
        )
    bumped = str(int(m.group()) + 1)
    return Ok(version[: m.start()] + bumped + version[m.end() :])
