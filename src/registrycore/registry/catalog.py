"""
Run-scoped attribute and signal catalogs.

The catalog is the lookup table for ``ref`` resolution: every attribute
defined in a registry group (id starting with the registry prefix) is stored
once under its fully qualified name with a numeric index in insertion order.
Span, event, metric and entity groups are cataloged separately by group id.

A catalog is built once per resolution run and never shared between runs.

Usage::

    from registrycore.registry.catalog import CatalogBuilder

    catalog = CatalogBuilder().build(groups)
    entry = catalog.get("db.cassandra.consistency_level")
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterator, Optional, Sequence

from registrycore.registry.errors import AttributeConflict, DuplicateAttributeError
from registrycore.registry.models import (
    CatalogSnapshot,
    ResolvedAttribute,
    ResolvedGroup,
    SignalEntry,
)
from registrycore.registry.schema import GroupWithProvenance
from registrycore.registry.types import SIGNAL_GROUP_TYPES

logger = logging.getLogger(__name__)

DEFAULT_REGISTRY_PREFIX = "registry."


@dataclass(frozen=True)
class CatalogEntry:
    """One cataloged attribute definition.

    Attributes:
        index: Position in insertion order
        definition: The attribute as defined, under its qualified name
        group_id: Registry group that defines it
        provenance: File the defining group was loaded from
    """

    index: int
    definition: ResolvedAttribute
    group_id: str
    provenance: str


class AttributeCatalog:
    """Attribute definitions keyed by fully qualified name."""

    def __init__(self) -> None:
        self._entries: dict[str, CatalogEntry] = {}
        self._order: list[CatalogEntry] = []

    def add(
        self, attribute: ResolvedAttribute, group_id: str, provenance: str
    ) -> CatalogEntry:
        if attribute.name in self._entries:
            raise KeyError(f"attribute '{attribute.name}' is already cataloged")
        entry = CatalogEntry(len(self._order), attribute, group_id, provenance)
        self._entries[attribute.name] = entry
        self._order.append(entry)
        return entry

    def get(self, name: str) -> Optional[CatalogEntry]:
        return self._entries.get(name)

    def index_of(self, name: str) -> Optional[int]:
        entry = self._entries.get(name)
        return entry.index if entry else None

    def by_index(self, index: int) -> CatalogEntry:
        return self._order[index]

    def names(self) -> list[str]:
        return [e.definition.name for e in self._order]

    def __contains__(self, name: object) -> bool:
        return name in self._entries

    def __len__(self) -> int:
        return len(self._order)

    def __iter__(self) -> Iterator[CatalogEntry]:
        return iter(self._order)


class SignalCatalog:
    """Span, event, metric and entity groups keyed by group id.

    The first group with a given id wins; duplicates are reported by the
    validator.
    """

    def __init__(self) -> None:
        self._entries: dict[str, SignalEntry] = {}

    def add(self, entry: SignalEntry) -> None:
        self._entries.setdefault(entry.id, entry)

    def get(self, group_id: str) -> Optional[SignalEntry]:
        return self._entries.get(group_id)

    def __contains__(self, group_id: object) -> bool:
        return group_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[SignalEntry]:
        return iter(self._entries.values())


@dataclass
class Catalog:
    """The catalogs of one resolution run."""

    attributes: AttributeCatalog = field(default_factory=AttributeCatalog)
    signals: SignalCatalog = field(default_factory=SignalCatalog)

    def get(self, name: str) -> Optional[CatalogEntry]:
        return self.attributes.get(name)

    def index_of(self, name: str) -> Optional[int]:
        return self.attributes.index_of(name)

    def by_index(self, index: int) -> CatalogEntry:
        return self.attributes.by_index(index)

    def names(self) -> list[str]:
        return self.attributes.names()

    def __contains__(self, name: object) -> bool:
        return name in self.attributes

    def __len__(self) -> int:
        return len(self.attributes)

    def snapshot(self) -> CatalogSnapshot:
        """Serializable copy of both catalogs, in insertion order."""
        return CatalogSnapshot(
            attributes=[e.definition.model_copy(deep=True) for e in self.attributes],
            signals=[s.model_copy() for s in self.signals],
        )


class CatalogBuilder:
    """Builds a ``Catalog`` from raw or already-resolved groups.

    Every local attribute name must be unique across the whole registry;
    all conflicts are collected and raised together as a
    ``DuplicateAttributeError``.
    """

    def __init__(self, registry_prefix: str = DEFAULT_REGISTRY_PREFIX) -> None:
        self.registry_prefix = registry_prefix

    def is_registry_group(self, group_id: str) -> bool:
        return group_id.startswith(self.registry_prefix)

    def build(self, groups: Sequence[GroupWithProvenance]) -> Catalog:
        catalog = Catalog()
        owners: dict[str, tuple[str, str]] = {}
        conflicts: list[AttributeConflict] = []

        for item in groups:
            spec = item.spec
            in_registry = self.is_registry_group(spec.id)
            for attr in spec.local_definitions():
                name = spec.attribute_name(attr)
                if self._claim(owners, conflicts, name, spec.id, item.provenance):
                    if in_registry:
                        catalog.attributes.add(
                            ResolvedAttribute.from_definition(name, attr),
                            spec.id,
                            item.provenance,
                        )
            if spec.type in SIGNAL_GROUP_TYPES:
                catalog.signals.add(
                    SignalEntry(
                        id=spec.id,
                        type=spec.type,
                        metric_name=spec.metric_name,
                        name=spec.name,
                        provenance=item.provenance,
                    )
                )

        return self._finish(catalog, conflicts)

    def build_from_resolved(self, groups: Sequence[ResolvedGroup]) -> Catalog:
        """Rebuild the catalog of a resolved registry.

        Local definitions are the attributes without a lineage entry.
        """
        catalog = Catalog()
        owners: dict[str, tuple[str, str]] = {}
        conflicts: list[AttributeConflict] = []

        for group in groups:
            provenance = group.lineage.source_file
            in_registry = self.is_registry_group(group.id)
            for attr in group.attributes:
                if group.lineage.has_attribute(attr.name):
                    continue
                if self._claim(owners, conflicts, attr.name, group.id, provenance):
                    if in_registry:
                        catalog.attributes.add(
                            attr.model_copy(deep=True), group.id, provenance
                        )
            if group.type in SIGNAL_GROUP_TYPES:
                catalog.signals.add(
                    SignalEntry(
                        id=group.id,
                        type=group.type,
                        metric_name=group.metric_name,
                        name=group.name,
                        provenance=provenance,
                    )
                )

        return self._finish(catalog, conflicts)

    @staticmethod
    def _claim(
        owners: dict[str, tuple[str, str]],
        conflicts: list[AttributeConflict],
        name: str,
        group_id: str,
        provenance: str,
    ) -> bool:
        """Record ``group_id`` as the owner of ``name``; False on conflict."""
        owner = owners.get(name)
        if owner is None:
            owners[name] = (group_id, provenance)
            return True
        conflicts.append(
            AttributeConflict(
                name=name,
                group_a=owner[0],
                group_b=group_id,
                provenance_a=owner[1],
                provenance_b=provenance,
            )
        )
        return False

    def _finish(self, catalog: Catalog, conflicts: list[AttributeConflict]) -> Catalog:
        if conflicts:
            logger.warning("Catalog build failed: %d duplicate attribute(s)", len(conflicts))
            raise DuplicateAttributeError(conflicts)
        logger.info(
            "Catalog built: %d attributes, %d signals",
            len(catalog.attributes),
            len(catalog.signals),
        )
        return catalog
