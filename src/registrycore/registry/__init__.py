"""
Semantic convention registry resolution.

Loads a registry spread over many YAML/JSON files, catalogs its attribute
definitions, resolves every ``ref``, ``extends`` and ``include`` to a fixed
point with per-field lineage, validates the result and emits one
self-contained resolved registry.

Public API::

    from registrycore.registry import (
        # Schema models
        RegistryFile,
        GroupSpec,
        GroupWithProvenance,
        # Resolved models
        ResolvedRegistry,
        ResolvedGroup,
        ResolvedAttribute,
        AttributeLineage,
        GroupLineage,
        # Stages
        RegistryLoader,
        CatalogBuilder,
        ReferenceResolver,
        ConstraintApplier,
        RegistryValidator,
        ResolvedSchemaEmitter,
        RegistryPipeline,
        # Errors
        RegistryError,
        LoadError,
        DuplicateAttributeError,
        UnresolvedReferenceError,
        RegistryValidationError,
    )
"""

from registrycore.registry.catalog import Catalog, CatalogBuilder, CatalogEntry
from registrycore.registry.constraints import ConstraintApplier
from registrycore.registry.emitter import ResolvedSchemaEmitter
from registrycore.registry.errors import (
    AttributeConflict,
    DanglingReference,
    DuplicateAttributeError,
    LoadError,
    RegistryError,
    RegistryValidationError,
    UnresolvedReferenceError,
    Violation,
)
from registrycore.registry.lineage import AttributeLineage, GroupLineage
from registrycore.registry.loader import RegistryLoader, ResolvedRegistryLoader
from registrycore.registry.models import (
    ResolvedAttribute,
    ResolvedGroup,
    ResolvedRegistry,
)
from registrycore.registry.pipeline import RegistryPipeline
from registrycore.registry.resolver import ReferenceResolver
from registrycore.registry.schema import (
    AttributeDefinition,
    AttributeInclude,
    AttributeReference,
    GroupSpec,
    GroupWithProvenance,
    RegistryFile,
)
from registrycore.registry.stats import RegistryStats, compute_stats
from registrycore.registry.validator import RegistryValidationResult, RegistryValidator

__all__ = [
    # Schema
    "RegistryFile",
    "GroupSpec",
    "GroupWithProvenance",
    "AttributeDefinition",
    "AttributeReference",
    "AttributeInclude",
    # Resolved
    "ResolvedRegistry",
    "ResolvedGroup",
    "ResolvedAttribute",
    "AttributeLineage",
    "GroupLineage",
    # Stages
    "RegistryLoader",
    "ResolvedRegistryLoader",
    "Catalog",
    "CatalogEntry",
    "CatalogBuilder",
    "ReferenceResolver",
    "ConstraintApplier",
    "RegistryValidator",
    "RegistryValidationResult",
    "ResolvedSchemaEmitter",
    "RegistryPipeline",
    # Stats
    "RegistryStats",
    "compute_stats",
    # Errors
    "RegistryError",
    "LoadError",
    "DuplicateAttributeError",
    "UnresolvedReferenceError",
    "RegistryValidationError",
    "AttributeConflict",
    "DanglingReference",
    "Violation",
]
