"""
Statistics over a resolved registry.

Usage::

    from registrycore.registry.stats import compute_stats

    stats = compute_stats(resolved_registry)
    print(stats.render())
"""

from __future__ import annotations

from collections import Counter

from pydantic import BaseModel, ConfigDict, Field

from registrycore.registry.catalog import DEFAULT_REGISTRY_PREFIX, CatalogBuilder
from registrycore.registry.models import ResolvedAttribute, ResolvedRegistry
from registrycore.registry.types import GroupType


def attribute_type_key(attr: ResolvedAttribute) -> str:
    """Histogram key of an attribute type; every enum counts as ``enum``."""
    return attr.type if isinstance(attr.type, str) else "enum"


class RegistryStats(BaseModel):
    """Counts and breakdowns of a resolved registry."""

    model_config = ConfigDict(extra="forbid")

    group_count: int = 0
    group_type_breakdown: dict[str, int] = Field(default_factory=dict)
    attribute_count: int = Field(0, description="Attributes across all groups")
    catalog_attribute_count: int = Field(
        0, description="Attributes in the catalog (defined in registry groups)"
    )
    catalog_signal_count: int = 0
    deprecated_count: int = 0
    attribute_type_breakdown: dict[str, int] = Field(default_factory=dict)
    requirement_level_breakdown: dict[str, int] = Field(default_factory=dict)
    stability_breakdown: dict[str, int] = Field(default_factory=dict)
    lineage_mode_breakdown: dict[str, int] = Field(default_factory=dict)

    def render(self) -> str:
        lines = [
            "Resolved Registry Stats:",
            f"- Groups: {self.group_count}",
        ]
        lines.extend(_breakdown(self.group_type_breakdown))
        lines.append(f"- Attributes: {self.attribute_count}")
        lines.append(f"  - in catalog: {self.catalog_attribute_count}")
        lines.append(f"  - deprecated: {self.deprecated_count}")
        for title, data in (
            ("type breakdown", self.attribute_type_breakdown),
            ("requirement level breakdown", self.requirement_level_breakdown),
            ("stability breakdown", self.stability_breakdown),
            ("lineage breakdown", self.lineage_mode_breakdown),
        ):
            lines.append(f"  - {title}:")
            lines.extend(f"  {line}" for line in _breakdown(data))
        lines.append(f"- Cataloged signals: {self.catalog_signal_count}")
        return "\n".join(lines)


def _breakdown(data: dict[str, int]) -> list[str]:
    return [f"  - {key}: {count}" for key, count in sorted(data.items())]


def compute_stats(
    registry: ResolvedRegistry, registry_prefix: str = DEFAULT_REGISTRY_PREFIX
) -> RegistryStats:
    """Count groups and attributes of ``registry``.

    The catalog is rebuilt from the resolved groups, so only attributes
    defined in groups whose id starts with ``registry_prefix`` count as
    cataloged.
    """
    catalog = CatalogBuilder(registry_prefix).build_from_resolved(registry.groups)
    groups: Counter[str] = Counter()
    types: Counter[str] = Counter()
    levels: Counter[str] = Counter()
    stabilities: Counter[str] = Counter()
    modes: Counter[str] = Counter()
    attribute_count = 0
    deprecated = 0

    for group in registry.groups:
        groups[GroupType(group.type).value] += 1
        for attr in group.attributes:
            attribute_count += 1
            types[attribute_type_key(attr)] += 1
            levels[attr.requirement_level.level.value] += 1
            stabilities[attr.stability.value if attr.stability else "unspecified"] += 1
            if attr.deprecated is not None:
                deprecated += 1
            lineage = group.lineage.attributes.get(attr.name)
            if lineage is not None:
                modes[lineage.resolution_mode.value] += 1

    return RegistryStats(
        group_count=len(registry.groups),
        group_type_breakdown=dict(groups),
        attribute_count=attribute_count,
        catalog_attribute_count=len(catalog.attributes),
        catalog_signal_count=len(catalog.signals),
        deprecated_count=deprecated,
        attribute_type_breakdown=dict(types),
        requirement_level_breakdown=dict(levels),
        stability_breakdown=dict(stabilities),
        lineage_mode_breakdown=dict(modes),
    )
