from __future__ import annotations

from pathlib import Path

import typer

from csctl.cli.commands._helpers import exit_with_release_error, usage_error
from csctl.cli.context import build_context
from csctl.core.result import Err
from csctl.services.release.config import DEFAULT_OUTPUT_DIR
from csctl.services.release.model import (
    DEFAULT_GATE_FIELDS,
    REMOTE_KINDS,
    STRICT_GATE_FIELDS,
    CreateOptions,
    CustomVersions,
    GatePolicy,
)
from csctl.services.release.modes import parse_mode
from csctl.services.release.pipeline import create_release


def create(
    stack_path: Path = typer.Argument(..., help="Path to the cluster stack directory (contains csctl.yaml)"),
    mode: str = typer.Option("stable", "--mode", "-m", help="Versioning mode: hash, stable or custom"),
    output: Path = typer.Option(Path(DEFAULT_OUTPUT_DIR), "--output", "-o", help="Output directory for releases"),
    node_image_registry: str | None = typer.Option(
        None, "--node-image-registry", "-r", help="Registry the provider plugin uploads node images to"
    ),
    cluster_stack_version: str | None = typer.Option(
        None, "--cluster-stack-version", help="Cluster stack version (custom mode)"
    ),
    cluster_addon_version: str | None = typer.Option(
        None, "--cluster-addon-version", help="Cluster addon version (custom mode)"
    ),
    node_image_version: str | None = typer.Option(
        None, "--node-image-version", help="Node image version (custom mode)"
    ),
    remote: str = typer.Option("github", "--remote", help="Remote registry for releases: github or oci"),
    publish: bool = typer.Option(False, "--publish", help="Push the release after creation (OCI only)"),
    gate_whole_tree: bool = typer.Option(
        False, "--gate-whole-tree", help="Also treat changes outside addon/node-image as a change"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show digests and tool invocations"),
) -> None:
    """Create a cluster stack release."""
    ctx = build_context(verbose=verbose)

    parsed_mode = parse_mode(mode)
    if isinstance(parsed_mode, Err):
        exit_with_release_error(parsed_mode.error, ctx)

    if remote not in REMOTE_KINDS:
        usage_error(ctx, f"remote {remote!r} is not supported", hint="choose one of: " + ", ".join(REMOTE_KINDS))
    remote_kind = "oci" if remote == "oci" else "github"
    if publish and remote_kind != "oci":
        usage_error(ctx, "--publish is only implemented for the OCI remote", hint="use --remote oci")

    custom = CustomVersions(
        cluster_stack=cluster_stack_version,
        cluster_addon=cluster_addon_version,
        node_image=node_image_version,
    )
    if custom.any_set() and parsed_mode.value != "custom":
        usage_error(ctx, "custom versions can only be used with --mode custom")

    options = CreateOptions(
        stack_path=stack_path,
        mode=parsed_mode.value,
        custom=custom,
        output_dir=output,
        node_image_registry=node_image_registry,
        remote=remote_kind,
        publish=publish,
        gate=GatePolicy(fields=STRICT_GATE_FIELDS if gate_whole_tree else DEFAULT_GATE_FIELDS),
    )

    result = create_release(options=options, console=ctx.console, cwd=ctx.cwd)
    if isinstance(result, Err):
        exit_with_release_error(result.error, ctx)

    created = result.value
    ctx.console.print(created.name)
