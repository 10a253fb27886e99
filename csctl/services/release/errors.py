from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Literal

ReleaseErrorKind = Literal[
    "input_config",
    "fingerprint",
    "no_change",
    "invalid_version_format",
    "version_bump",
    "invalid_custom_version",
    "invalid_mode",
    "remote_config",
    "remote_fetch",
    "publish",
    "plugin",
    "template",
    "package",
    "io",
    "tool_missing",
]


@dataclass(frozen=True, slots=True)
class ReleaseError:
    """Canonical error payload for every stage of release creation.

    ``stage`` is filled in by the pipeline so the final message names where
    the invocation stopped.
    """

    kind: ReleaseErrorKind
    message: str
    hint: str | None = None
    stage: str | None = None

    def in_stage(self, stage: str) -> ReleaseError:
        if self.stage is not None:
            return self
        return replace(self, stage=stage)

    def pretty(self) -> str:
        text = f"{self.stage}: {self.message}" if self.stage else self.message
        if self.hint:
            return f"{text} (hint: {self.hint})"
        return text
