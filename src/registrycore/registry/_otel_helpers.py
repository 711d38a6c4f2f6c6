"""
OpenTelemetry plumbing shared by the registry pipeline stages.

Holds the single OTel import guard of the package and the two things the
stages need from it: a span wrapping one resolution run, and span events
added to whatever span is current.  Both degrade to no-ops when
OpenTelemetry is missing or nothing is recording.

Usage::

    from registrycore.registry._otel_helpers import add_span_event, resolution_span

    with resolution_span("paths", registry_url):
        add_span_event("registry.catalog.built", {"registry.catalog.attributes": 42})
"""

from __future__ import annotations

import contextlib
from typing import Any, Iterator, Optional

try:
    from opentelemetry import trace as otel_trace

    HAS_OTEL = True
except ImportError:  # pragma: no cover
    HAS_OTEL = False

TRACER_NAME = "registrycore"
RESOLVE_SPAN = "registry.resolve"


def get_tracer() -> Optional[Any]:
    """Return the package tracer, or ``None`` without OpenTelemetry."""
    if not HAS_OTEL:
        return None
    return otel_trace.get_tracer(TRACER_NAME)


@contextlib.contextmanager
def resolution_span(source: str, registry_url: Optional[str] = None) -> Iterator[None]:
    """Run the body inside a ``registry.resolve`` span.

    Args:
        source: Kind of input being resolved (``paths``, ``sources``,
            ``groups`` or ``resolved``).
        registry_url: Recorded as ``registry.url`` when set.
    """
    tracer = get_tracer()
    if tracer is None:
        yield
        return
    with tracer.start_as_current_span(RESOLVE_SPAN) as span:
        span.set_attribute("registry.source", source)
        if registry_url:
            span.set_attribute("registry.url", registry_url)
        yield


def add_span_event(
    name: str, attributes: dict[str, str | int | float | bool]
) -> None:
    """Attach ``name`` with flat ``attributes`` to the current span.

    Skipped unless a recording span is current.
    """
    if not HAS_OTEL:
        return
    span = otel_trace.get_current_span()
    if span and span.is_recording():
        span.add_event(name=name, attributes=attributes)
