"""Shared helpers for CLI commands."""

from __future__ import annotations

from typing import TYPE_CHECKING, NoReturn

import typer

from csctl.core.errors import ErrorCode
from csctl.output.console import Style
from csctl.services.release.errors import ReleaseError, ReleaseErrorKind

if TYPE_CHECKING:
    from csctl.cli.context import CLIContext


_EXIT_CODES: dict[ReleaseErrorKind, ErrorCode] = {
    "input_config": ErrorCode.USER_ERROR,
    "invalid_custom_version": ErrorCode.USER_ERROR,
    "invalid_mode": ErrorCode.USER_ERROR,
    "invalid_version_format": ErrorCode.BUILD_ERROR,
    "version_bump": ErrorCode.BUILD_ERROR,
    "fingerprint": ErrorCode.IO_ERROR,
    "io": ErrorCode.IO_ERROR,
    "no_change": ErrorCode.NO_CHANGE,
    "remote_config": ErrorCode.ENV_ERROR,
    "remote_fetch": ErrorCode.NETWORK_ERROR,
    "publish": ErrorCode.NETWORK_ERROR,
    "plugin": ErrorCode.BUILD_ERROR,
    "template": ErrorCode.BUILD_ERROR,
    "package": ErrorCode.BUILD_ERROR,
    "tool_missing": ErrorCode.ENV_ERROR,
}


def error_code_for(error: ReleaseError) -> ErrorCode:
    return _EXIT_CODES[error.kind]


def exit_with_release_error(error: ReleaseError, ctx: CLIContext) -> NoReturn:
    """Report a release error and exit with its mapped code.

    ``no_change`` is a clean stop, so it is reported as a warning, but the
    exit code is still non-zero for automation.
    """
    if error.kind == "no_change":
        ctx.console.warning(error.pretty())
    else:
        ctx.console.error(error.pretty())
    raise typer.Exit(code=int(error_code_for(error)))


def usage_error(ctx: CLIContext, message: str, hint: str | None = None) -> NoReturn:
    ctx.console.error(message)
    if hint:
        ctx.console.print(f"hint: {hint}", Style.DETAIL)
    raise typer.Exit(code=int(ErrorCode.USER_ERROR))
