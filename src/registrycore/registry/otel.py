"""
OTel span event emission for the registry resolution stages.

Each function logs the outcome and adds a span event to the current span
through ``add_span_event()``, which is a no-op without OpenTelemetry or a
recording span.

Usage::

    from registrycore.registry.otel import (
        emit_load_complete,
        emit_resolution_result,
    )

    emit_load_complete(file_count=3, group_count=42)
    emit_resolution_result(len(groups), resolver.counters)
"""

from __future__ import annotations

import logging

from registrycore.registry._otel_helpers import add_span_event
from registrycore.registry.catalog import Catalog
from registrycore.registry.errors import UnresolvedReferenceError
from registrycore.registry.resolver import ResolutionCounters
from registrycore.registry.validator import RegistryValidationResult

logger = logging.getLogger(__name__)


def emit_load_complete(file_count: int, group_count: int) -> None:
    """Emit a span event for a finished load stage.

    Event name: ``registry.load.complete``
    """
    logger.debug("Registry loaded: files=%d groups=%d", file_count, group_count)
    add_span_event(
        "registry.load.complete",
        {"registry.files": file_count, "registry.groups": group_count},
    )


def emit_catalog_built(catalog: Catalog) -> None:
    """Emit a span event describing the run's catalog.

    Event name: ``registry.catalog.built``
    """
    logger.debug(
        "Catalog built: attributes=%d signals=%d",
        len(catalog.attributes),
        len(catalog.signals),
    )
    add_span_event(
        "registry.catalog.built",
        {
            "registry.catalog.attributes": len(catalog.attributes),
            "registry.catalog.signals": len(catalog.signals),
        },
    )


def emit_resolution_result(group_count: int, counters: ResolutionCounters) -> None:
    """Emit a span event summarising a successful resolution.

    Event name: ``registry.resolution.complete``
    """
    attrs: dict[str, str | int | float | bool] = {
        "registry.groups": group_count,
        "registry.resolution.passes": counters.passes,
        "registry.resolution.refs": counters.refs,
        "registry.resolution.extends": counters.extends,
        "registry.resolution.includes": counters.includes,
    }
    logger.debug(
        "Resolution complete: groups=%d passes=%d refs=%d extends=%d includes=%d",
        group_count,
        counters.passes,
        counters.refs,
        counters.extends,
        counters.includes,
    )
    add_span_event("registry.resolution.complete", attrs)


def emit_unresolved_references(error: UnresolvedReferenceError) -> None:
    """Emit a span event listing the dangling references of a failed run.

    Event name: ``registry.resolution.unresolved``
    """
    logger.warning(
        "Resolution FAILED: %d unresolved reference(s) in %d group(s)",
        len(error.references),
        len(error.group_ids),
    )
    add_span_event(
        "registry.resolution.unresolved",
        {
            "registry.unresolved.count": len(error.references),
            "registry.unresolved.groups": ",".join(sorted(error.group_ids)),
            "registry.unresolved.targets": ",".join(
                sorted({r.target for r in error.references})
            ),
        },
    )


def emit_validation_result(result: RegistryValidationResult) -> None:
    """Emit a span event summarising registry validation.

    Event name: ``registry.validation.complete``
    """
    attrs: dict[str, str | int | float | bool] = {
        "registry.validation.passed": result.passed,
        "registry.validation.total_checked": result.total_checked,
        "registry.validation.violations": len(result.violations),
    }
    if result.passed:
        logger.debug("Registry validation passed: checked=%d", result.total_checked)
    else:
        logger.warning(
            "Registry validation FAILED: checked=%d violations=%d",
            result.total_checked,
            len(result.violations),
        )
    add_span_event("registry.validation.complete", attrs)
