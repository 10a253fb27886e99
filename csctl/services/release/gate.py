from __future__ import annotations

from csctl.core.result import Err, Ok, Result
from csctl.services.release.errors import ReleaseError
from csctl.services.release.fingerprint import ContentFingerprint
from csctl.services.release.model import GatePolicy


def changed_fields(
    current: ContentFingerprint, latest: ContentFingerprint, policy: GatePolicy
) -> list[str]:
    return [name for name in policy.fields if current.field(name) != latest.field(name)]


def assert_changed(
    *, current: ContentFingerprint, latest: ContentFingerprint, policy: GatePolicy = GatePolicy()
) -> Result[None, ReleaseError]:
    """Refuse to release when every field of ``policy`` is unchanged."""
    if changed_fields(current, latest, policy):
        return Ok(None)
    return Err(
        ReleaseError(
            kind="no_change",
            message="no change in the cluster stack",
            hint="compared: " + ", ".join(policy.fields),
        )
    )
