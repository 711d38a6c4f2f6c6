"""
Resolved schema emitter.

Serializes resolved groups (plus, on request, the run's catalog) into the
canonical resolved-registry document.  Group order is input order and each
group's attributes keep the order the resolver produced; nothing is sorted
by name.  Null fields are omitted and set-valued lineage fields are sorted,
so emitting a re-resolved registry is byte-identical to the first emission.

Usage::

    from registrycore.registry.emitter import ResolvedSchemaEmitter

    emitter = ResolvedSchemaEmitter(include_catalog=True)
    registry = emitter.build(groups, catalog, registry_url="https://...")
    print(emitter.to_json(registry))
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Optional, Sequence, Union

import yaml

from registrycore.registry.catalog import Catalog
from registrycore.registry.models import ResolvedGroup, ResolvedRegistry
from registrycore.registry.types import OutputFormat

logger = logging.getLogger(__name__)

_SUFFIX_FORMATS = {
    ".json": OutputFormat.JSON,
    ".yaml": OutputFormat.YAML,
    ".yml": OutputFormat.YAML,
}


class ResolvedSchemaEmitter:
    """Builds and serializes ``ResolvedRegistry`` documents."""

    def __init__(self, include_catalog: bool = False) -> None:
        self.include_catalog = include_catalog

    def build(
        self,
        groups: Sequence[ResolvedGroup],
        catalog: Optional[Catalog] = None,
        registry_url: str = "",
    ) -> ResolvedRegistry:
        snapshot = None
        if self.include_catalog and catalog is not None:
            snapshot = catalog.snapshot()
        return ResolvedRegistry(
            registry_url=registry_url,
            groups=[g.model_copy(deep=True) for g in groups],
            catalog=snapshot,
        )

    def to_dict(self, registry: ResolvedRegistry) -> dict[str, Any]:
        data = registry.model_dump(mode="json", exclude_none=True)
        if not self.include_catalog:
            data.pop("catalog", None)
        return data

    def to_json(self, registry: ResolvedRegistry) -> str:
        return json.dumps(self.to_dict(registry), indent=2, ensure_ascii=False) + "\n"

    def to_yaml(self, registry: ResolvedRegistry) -> str:
        return yaml.safe_dump(
            self.to_dict(registry),
            sort_keys=False,
            allow_unicode=True,
            default_flow_style=False,
        )

    def render(
        self, registry: ResolvedRegistry, fmt: Union[OutputFormat, str] = OutputFormat.JSON
    ) -> str:
        if OutputFormat(fmt) == OutputFormat.YAML:
            return self.to_yaml(registry)
        return self.to_json(registry)

    def write(
        self,
        registry: ResolvedRegistry,
        path: Path,
        fmt: Optional[Union[OutputFormat, str]] = None,
    ) -> Path:
        """Write the registry to ``path``.

        The format defaults to the one implied by the file suffix, then JSON.
        """
        path = Path(path)
        if fmt is None:
            fmt = _SUFFIX_FORMATS.get(path.suffix, OutputFormat.JSON)
        text = self.render(registry, fmt)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")
        logger.info("Wrote resolved registry (%d groups) to %s", len(registry.groups), path)
        return path
