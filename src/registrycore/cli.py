"""
registrycore CLI: resolve and check semantic convention registries.

Usage::

    registrycore resolve model/                     # Resolved JSON on stdout
    registrycore resolve model/ -f yaml -o out.yaml # Write YAML to a file
    registrycore check model/ --diagnostic-format json
    registrycore stats model/
    registrycore json-schema                        # Schema of registry files
"""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path
from typing import Optional, Tuple

import click

from registrycore.config import get_config
from registrycore.logger import configure_events
from registrycore.registry.errors import (
    DuplicateAttributeError,
    LoadError,
    RegistryError,
    RegistryValidationError,
    UnresolvedReferenceError,
)
from registrycore.registry.models import ResolvedRegistry
from registrycore.registry.pipeline import RegistryPipeline
from registrycore.registry.schema import RegistryFile
from registrycore.registry.stats import compute_stats

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Diagnostics
# ---------------------------------------------------------------------------


def _error_lines(error: RegistryError) -> list[str]:
    """One line per aggregated problem, with file/group/attribute context."""
    if isinstance(error, LoadError):
        return [f"[{error.file}] {error.detail}"]
    if isinstance(error, DuplicateAttributeError):
        return [
            f"[{c.provenance_b}] {c.group_b}: attribute '{c.name}' already "
            f"defined by '{c.group_a}' ({c.provenance_a})"
            for c in error.conflicts
        ]
    if isinstance(error, UnresolvedReferenceError):
        return [
            f"[{r.provenance}] {r.group_id}: unresolved {r.kind.value} '{r.target}'"
            for r in error.references
        ]
    if isinstance(error, RegistryValidationError):
        return [str(v) for v in error.violations]
    return [str(error)]


def _report_error(error: RegistryError, diagnostic_format: str = "text") -> None:
    if diagnostic_format == "json":
        click.echo(json.dumps(error.to_dict(), indent=2))
        return
    lines = _error_lines(error)
    click.echo(f"✗ {type(error).__name__}: {len(lines)} problem(s)", err=True)
    for line in lines:
        click.echo(f"  {line}", err=True)


def _run(
    pipeline: RegistryPipeline,
    paths: Tuple[str, ...],
    registry_url: Optional[str],
    diagnostic_format: str = "text",
) -> ResolvedRegistry:
    try:
        return pipeline.resolve_paths(paths, registry_url=registry_url)
    except RegistryError as exc:
        logger.debug("Resolution failed: %s", type(exc).__name__)
        _report_error(exc, diagnostic_format)
        sys.exit(1)


# ---------------------------------------------------------------------------
# CLI commands
# ---------------------------------------------------------------------------


@click.group()
@click.option(
    "--log-level",
    type=click.Choice(["debug", "info", "warning", "error"]),
    default=None,
    help="Override REGISTRYCORE_LOG_LEVEL",
)
@click.version_option(package_name="registrycore")
def main(log_level: Optional[str]):
    """Semantic convention registry resolution."""
    config = get_config(log_level=log_level) if log_level else get_config()
    logging.basicConfig(
        level=config.python_log_level(),
        format="%(levelname)s %(name)s: %(message)s",
    )
    configure_events(config.python_log_level())


_paths_argument = click.argument(
    "paths", nargs=-1, required=True, type=click.Path(exists=True)
)
_registry_url_option = click.option(
    "--registry-url",
    default=None,
    help="Registry URL recorded in the output (default: REGISTRYCORE_REGISTRY_URL)",
)


@main.command("resolve")
@_paths_argument
@_registry_url_option
@click.option(
    "--format",
    "-f",
    "output_format",
    type=click.Choice(["json", "yaml"]),
    default=None,
    help="Output format (default: REGISTRYCORE_OUTPUT_FORMAT)",
)
@click.option(
    "--include-catalog",
    is_flag=True,
    default=False,
    help="Embed the attribute and signal catalogs",
)
@click.option(
    "--output",
    "-o",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Write to a file instead of stdout",
)
def resolve_cmd(
    paths: Tuple[str, ...],
    registry_url: Optional[str],
    output_format: Optional[str],
    include_catalog: bool,
    output: Optional[Path],
):
    """Resolve a registry into a single self-contained document.

    Nothing is written when resolution fails.

    Examples:
        registrycore resolve model/
        registrycore resolve model/ extra.yaml --format yaml -o resolved.yaml
    """
    overrides = {}
    if include_catalog:
        overrides["include_catalog"] = True
    config = get_config(**overrides) if overrides else get_config()
    pipeline = RegistryPipeline(config)
    registry = _run(pipeline, paths, registry_url)

    fmt = output_format or config.output_format
    if output is not None:
        pipeline.emitter.write(registry, output, fmt)
        pipeline.events.log_emitted(len(registry.groups), destination=str(output))
        click.echo(f"✓ Resolved {len(registry.groups)} groups to {output}", err=True)
    else:
        click.echo(pipeline.emitter.render(registry, fmt), nl=False)
        pipeline.events.log_emitted(len(registry.groups), destination="stdout")


@main.command("check")
@_paths_argument
@_registry_url_option
@click.option(
    "--diagnostic-format",
    type=click.Choice(["text", "json"]),
    default="text",
)
def check_cmd(paths: Tuple[str, ...], registry_url: Optional[str], diagnostic_format: str):
    """Load, resolve and validate a registry without emitting it.

    Examples:
        registrycore check model/
        registrycore check model/ --diagnostic-format json
    """
    pipeline = RegistryPipeline(get_config())
    registry = _run(pipeline, paths, registry_url, diagnostic_format)
    checked = pipeline.last_validation.total_checked if pipeline.last_validation else 0

    if diagnostic_format == "json":
        click.echo(
            json.dumps(
                {"passed": True, "groups": len(registry.groups), "checked": checked},
                indent=2,
            )
        )
    else:
        click.echo(f"✓ Registry is valid ({len(registry.groups)} groups).")


@main.command("stats")
@_paths_argument
@click.option(
    "--format",
    "-f",
    "output_format",
    type=click.Choice(["text", "json"]),
    default="text",
)
def stats_cmd(paths: Tuple[str, ...], output_format: str):
    """Show statistics of a resolved registry."""
    config = get_config()
    registry = _run(RegistryPipeline(config), paths, None)
    stats = compute_stats(registry, registry_prefix=config.registry_prefix)
    if output_format == "json":
        click.echo(stats.model_dump_json(indent=2))
    else:
        click.echo(stats.render())


@main.command("json-schema")
@click.option(
    "--resolved",
    is_flag=True,
    help="Print the schema of the resolved registry instead",
)
def json_schema_cmd(resolved: bool):
    """Print the JSON Schema of registry files."""
    model = ResolvedRegistry if resolved else RegistryFile
    click.echo(json.dumps(model.model_json_schema(), indent=2))


if __name__ == "__main__":
    main()
