"""Result type for explicit error handling.

Every stage of the release pipeline returns a ``Result`` instead of raising,
so the CLI can decide how a failure is reported and which exit code it maps to.

Usage:
    def load(path: Path) -> Result[StackConfiguration, ReleaseError]:
        if not path.exists():
            return Err(ReleaseError(kind="input_config", message="csctl.yaml not found"))
        return Ok(parse(path))

    match load(path):
        case Ok(config):
            print(config.stack_name)
        case Err(error):
            print(error.message)
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import TypeVar

E = TypeVar("E")
F = TypeVar("F")


@dataclass(frozen=True, slots=True)
class Ok[T]:
    """A successful result carrying ``value``."""

    value: T

    def map_err(self, f: Callable[[E], F]) -> Ok[T]:
        """Return self unchanged; there is no error to transform."""
        return self

    def __repr__(self) -> str:
        return f"Ok({self.value!r})"


@dataclass(frozen=True, slots=True)
class Err[E]:
    """A failed result carrying ``error``."""

    error: E

    def map_err(self, f: Callable[[E], F]) -> Err[F]:
        """Transform the contained error, e.g. to add stage context."""
        return Err(f(self.error))

    def __repr__(self) -> str:
        return f"Err({self.error!r})"


type Result[T, E] = Ok[T] | Err[E]
