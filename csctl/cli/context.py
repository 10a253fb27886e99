from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from csctl.output.console import ConsoleProtocol, RichConsole


@dataclass(frozen=True, slots=True)
class CLIContext:
    cwd: Path
    console: ConsoleProtocol


def build_context(*, verbose: bool = False) -> CLIContext:
    return CLIContext(cwd=Path.cwd(), console=RichConsole(verbose=verbose))
