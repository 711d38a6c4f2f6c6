"""
End-to-end resolution pipeline.

Runs loader, catalog builder, reference resolver (with the constraint
applier), validator and emitter in order inside a ``registry.resolve`` span.
Any stage failure propagates unchanged; no resolved registry is produced
for a failed run.

Usage::

    from registrycore.registry.pipeline import RegistryPipeline

    pipeline = RegistryPipeline()
    registry = pipeline.resolve_paths(["model/"], registry_url="https://...")
    print(pipeline.emitter.to_yaml(registry))
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, Mapping, Optional, Sequence, Union

from registrycore.config import RegistryCoreConfig, get_config
from registrycore.logger import ResolutionLogger
from registrycore.registry._otel_helpers import resolution_span
from registrycore.registry.catalog import Catalog, CatalogBuilder
from registrycore.registry.constraints import ConstraintApplier
from registrycore.registry.emitter import ResolvedSchemaEmitter
from registrycore.registry.errors import (
    RegistryError,
    RegistryValidationError,
    UnresolvedReferenceError,
)
from registrycore.registry.loader import RegistryLoader, ResolvedRegistryLoader
from registrycore.registry.models import ResolvedGroup, ResolvedRegistry
from registrycore.registry.otel import (
    emit_catalog_built,
    emit_load_complete,
    emit_resolution_result,
    emit_unresolved_references,
    emit_validation_result,
)
from registrycore.registry.resolver import ReferenceResolver
from registrycore.registry.schema import GroupWithProvenance
from registrycore.registry.validator import RegistryValidationResult, RegistryValidator

logger = logging.getLogger(__name__)


class RegistryPipeline:
    """Resolves a registry from files, buffers, raw groups or resolved output.

    Args:
        config: Settings to use; defaults to ``get_config()``.
    """

    def __init__(self, config: Optional[RegistryCoreConfig] = None) -> None:
        self.config = config or get_config()
        self.loader = RegistryLoader()
        self.constraints = ConstraintApplier()
        self.validator = RegistryValidator(self.constraints)
        self.emitter = ResolvedSchemaEmitter(include_catalog=self.config.include_catalog)
        self.events = ResolutionLogger(
            registry_url=self.config.registry_url,
            service_name=self.config.service_name,
            log_format=self.config.log_format,
        )
        self.last_validation: Optional[RegistryValidationResult] = None

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def resolve_paths(
        self,
        paths: Iterable[Union[str, Path]],
        registry_url: Optional[str] = None,
    ) -> ResolvedRegistry:
        """Load every registry file under ``paths`` and resolve them."""
        paths = list(paths)
        with resolution_span("paths", registry_url):
            try:
                groups = self.loader.load_paths(paths)
            except RegistryError as exc:
                self.events.log_resolution_failed(exc)
                raise
            sources = {g.provenance for g in groups}
            self._loaded(len(sources), len(groups))
            return self._resolve(groups, registry_url)

    def resolve_sources(
        self,
        sources: Mapping[str, bytes],
        registry_url: Optional[str] = None,
    ) -> ResolvedRegistry:
        """Resolve in-memory documents keyed by provenance name."""
        with resolution_span("sources", registry_url):
            try:
                groups = self.loader.load_sources(sources)
            except RegistryError as exc:
                self.events.log_resolution_failed(exc)
                raise
            self._loaded(len(sources), len(groups))
            return self._resolve(groups, registry_url)

    def resolve_groups(
        self,
        groups: Sequence[GroupWithProvenance],
        registry_url: Optional[str] = None,
    ) -> ResolvedRegistry:
        """Resolve groups that were already loaded."""
        with resolution_span("groups", registry_url):
            return self._resolve(groups, registry_url)

    def resolve_resolved(
        self,
        registry: Union[ResolvedRegistry, Path, str],
        registry_url: Optional[str] = None,
    ) -> ResolvedRegistry:
        """Re-resolve a resolved registry (object or file); a no-op when clean."""
        if not isinstance(registry, ResolvedRegistry):
            registry = ResolvedRegistryLoader().load(Path(registry))
        url = registry.registry_url if registry_url is None else registry_url
        with resolution_span("resolved", url):
            try:
                catalog = self._builder().build_from_resolved(registry.groups)
                emit_catalog_built(catalog)
                resolver = ReferenceResolver(catalog, self.constraints)
                resolved = resolver.resolve_resolved(registry.groups)
            except UnresolvedReferenceError as exc:
                emit_unresolved_references(exc)
                self.events.log_resolution_failed(exc)
                raise
            except RegistryError as exc:
                self.events.log_resolution_failed(exc)
                raise
            return self._finish(resolved, resolver, catalog, url)

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    def _builder(self) -> CatalogBuilder:
        return CatalogBuilder(registry_prefix=self.config.registry_prefix)

    def _loaded(self, file_count: int, group_count: int) -> None:
        emit_load_complete(file_count, group_count)
        self.events.log_loaded(file_count=file_count, group_count=group_count)

    def _resolve(
        self,
        groups: Sequence[GroupWithProvenance],
        registry_url: Optional[str],
    ) -> ResolvedRegistry:
        url = self.config.registry_url if registry_url is None else registry_url
        try:
            catalog = self._builder().build(groups)
            emit_catalog_built(catalog)
            self.events.log_catalog_built(len(catalog.attributes), len(catalog.signals))
            resolver = ReferenceResolver(catalog, self.constraints)
            resolved = resolver.resolve(groups)
        except UnresolvedReferenceError as exc:
            emit_unresolved_references(exc)
            self.events.log_resolution_failed(exc)
            raise
        except RegistryError as exc:
            self.events.log_resolution_failed(exc)
            raise
        return self._finish(resolved, resolver, catalog, url)

    def _finish(
        self,
        resolved: list[ResolvedGroup],
        resolver: ReferenceResolver,
        catalog: Catalog,
        registry_url: str,
    ) -> ResolvedRegistry:
        emit_resolution_result(len(resolved), resolver.counters)
        self.events.log_resolution_completed(
            group_count=len(resolved),
            passes=resolver.counters.passes,
            refs=resolver.counters.refs,
            extends=resolver.counters.extends,
            includes=resolver.counters.includes,
        )

        result = self.validator.validate(resolved)
        self.last_validation = result
        emit_validation_result(result)
        if not result.passed:
            error = RegistryValidationError(result.violations)
            self.events.log_validation_failed(len(result.violations), error)
            raise error

        return self.emitter.build(resolved, catalog, registry_url=registry_url)
