"""
Lineage records for resolved attributes and groups.

An attribute resolved from a ``ref``, an ``extends`` parent or an
``include`` carries an ``AttributeLineage`` naming the group its values came
from and partitioning its present fields into *inherited* and *locally
overridden*.  Attributes defined locally carry no lineage entry at all.

Set-valued fields serialize as sorted lists so that emitted output is
byte-stable across runs.

Usage::

    from registrycore.registry.lineage import AttributeLineage
    from registrycore.registry.types import ResolutionMode

    lineage = AttributeLineage.partition(
        "registry.client",
        ResolutionMode.REFERENCE,
        present={"type", "brief", "requirement_level"},
        overridden={"requirement_level"},
    )
    assert lineage.inherited_fields == {"type", "brief"}
"""

from __future__ import annotations

from typing import Iterable, Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer

from registrycore.registry.types import ResolutionMode


class AttributeLineage(BaseModel):
    """Where the field values of one resolved attribute originated."""

    model_config = ConfigDict(extra="forbid")

    source_group: str = Field(
        ..., min_length=1, description="Group the inherited values came from"
    )
    resolution_mode: ResolutionMode = Field(
        ResolutionMode.REFERENCE,
        description="Mechanism that brought the values in",
    )
    inherited_fields: set[str] = Field(
        default_factory=set,
        description="Fields whose value was taken from the source group",
    )
    locally_overridden_fields: set[str] = Field(
        default_factory=set,
        description="Fields whose local value replaced the inherited one",
    )

    @field_serializer("inherited_fields", "locally_overridden_fields")
    def _sorted(self, value: set[str]) -> list[str]:
        return sorted(value)

    @classmethod
    def partition(
        cls,
        source_group: str,
        mode: ResolutionMode,
        present: Iterable[str],
        overridden: Iterable[str] = (),
    ) -> "AttributeLineage":
        """Build a lineage whose sets partition ``present`` exactly.

        Overridden fields that are not present on the resolved attribute
        are dropped.
        """
        present_set = set(present)
        overridden_set = set(overridden) & present_set
        return cls(
            source_group=source_group,
            resolution_mode=mode,
            inherited_fields=present_set - overridden_set,
            locally_overridden_fields=overridden_set,
        )

    def is_consistent(self, present: Optional[Iterable[str]] = None) -> bool:
        """Check disjointness and, when given, exact coverage of ``present``."""
        if self.inherited_fields & self.locally_overridden_fields:
            return False
        if present is None:
            return True
        return self.inherited_fields | self.locally_overridden_fields == set(present)


class GroupLineage(BaseModel):
    """Provenance of a resolved group and of each of its attributes."""

    model_config = ConfigDict(extra="forbid")

    source_file: str = Field(..., description="Path or URL the group was loaded from")
    extends: Optional[str] = Field(
        None, description="Parent group applied by the extends clause"
    )
    includes: list[str] = Field(
        default_factory=list, description="Groups bulk-included, in application order"
    )
    attributes: dict[str, AttributeLineage] = Field(
        default_factory=dict,
        description="Lineage per attribute name (absent for local definitions)",
    )

    def has_attribute(self, name: str) -> bool:
        return name in self.attributes
