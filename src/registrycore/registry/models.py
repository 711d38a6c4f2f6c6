"""
Resolved data model: the self-contained output of a resolution run.

A ``ResolvedRegistry`` holds fully-resolved groups whose attributes are
complete copies (never links) of their definitions, each group carrying a
``GroupLineage``.  It is the structure consumed by template rendering,
policy checking and search, and it can be fed back into the pipeline: a
registry with no remaining pointers resolves to itself.
"""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from registrycore.registry.lineage import GroupLineage
from registrycore.registry.schema import (
    AttributeDefinition,
    AttributeType,
    BodyField,
    ConstraintSpec,
    Deprecated,
    GroupSpec,
    RequirementLevel,
    StabilityField,
)
from registrycore.registry.types import (
    LINEAGE_FIELDS,
    GroupType,
    Instrument,
    SpanKind,
)


class ResolvedAttribute(BaseModel):
    """A fully-resolved attribute: no ``ref`` or ``include`` pointers."""

    model_config = ConfigDict(extra="forbid")

    name: str = Field(..., min_length=1, description="Fully qualified attribute name")
    type: AttributeType
    brief: Optional[str] = None
    examples: Optional[Any] = None
    tag: Optional[str] = None
    requirement_level: RequirementLevel = Field(
        default_factory=RequirementLevel.recommended
    )
    sampling_relevant: Optional[bool] = None
    note: Optional[str] = None
    stability: Optional[StabilityField] = None
    deprecated: Optional[Deprecated] = None
    annotations: Optional[dict[str, Any]] = None

    @classmethod
    def from_definition(cls, name: str, spec: AttributeDefinition) -> "ResolvedAttribute":
        """Copy a local definition under its fully qualified name."""
        values = {f: getattr(spec, f) for f in LINEAGE_FIELDS}
        return cls(name=name, **values).model_copy(deep=True)

    def present_fields(self) -> set[str]:
        """Lineage-tracked fields that carry a value on this attribute."""
        return {f for f in LINEAGE_FIELDS if getattr(self, f) is not None}

    def with_overrides(self, overrides: dict[str, Any]) -> "ResolvedAttribute":
        """Return a copy with ``overrides`` applied; local values always win."""
        return self.model_copy(update=overrides, deep=True)


class SignalEntry(BaseModel):
    """A cataloged span, event, metric or entity group."""

    model_config = ConfigDict(extra="forbid")

    id: str
    type: GroupType
    metric_name: Optional[str] = None
    name: Optional[str] = None
    provenance: str


class CatalogSnapshot(BaseModel):
    """Serialized form of the run's attribute and signal catalogs."""

    model_config = ConfigDict(extra="forbid")

    attributes: list[ResolvedAttribute] = Field(default_factory=list)
    signals: list[SignalEntry] = Field(default_factory=list)


class ResolvedGroup(BaseModel):
    """A group after reference, inheritance and include resolution."""

    model_config = ConfigDict(extra="forbid")

    id: str = Field(..., min_length=1)
    type: GroupType
    brief: str = ""
    note: Optional[str] = None
    prefix: Optional[str] = None
    extends: Optional[str] = Field(
        None, description="Only set while an extends clause is still pending"
    )
    stability: Optional[StabilityField] = None
    deprecated: Optional[Deprecated] = None
    constraints: Optional[list[ConstraintSpec]] = None
    span_kind: Optional[SpanKind] = None
    events: Optional[list[str]] = None
    metric_name: Optional[str] = None
    instrument: Optional[Instrument] = None
    unit: Optional[str] = None
    name: Optional[str] = None
    display_name: Optional[str] = None
    body: Optional[BodyField] = None
    annotations: Optional[dict[str, Any]] = None
    attributes: list[ResolvedAttribute] = Field(default_factory=list)
    lineage: GroupLineage

    @classmethod
    def header_from_spec(cls, spec: GroupSpec, provenance: str) -> "ResolvedGroup":
        """Copy the non-attribute fields of a raw group.

        ``include`` constraints are consumed by resolution and recorded in
        the lineage instead; only ``any_of`` constraints are kept.
        """
        any_of = [
            ConstraintSpec(any_of=c.any_of) for c in spec.constraints if c.any_of
        ]
        return cls(
            id=spec.id,
            type=spec.type,
            brief=spec.brief,
            note=spec.note or None,
            prefix=spec.prefix or None,
            extends=spec.extends,
            stability=spec.stability,
            deprecated=spec.deprecated,
            constraints=any_of or None,
            span_kind=spec.span_kind,
            events=list(spec.events) or None,
            metric_name=spec.metric_name,
            instrument=spec.instrument,
            unit=spec.unit,
            name=spec.name,
            display_name=spec.display_name,
            body=spec.body,
            annotations=spec.annotations,
            lineage=GroupLineage(source_file=provenance),
        )

    def attribute_names(self) -> list[str]:
        return [a.name for a in self.attributes]

    def attribute(self, name: str) -> Optional[ResolvedAttribute]:
        for attr in self.attributes:
            if attr.name == name:
                return attr
        return None


class ResolvedRegistry(BaseModel):
    """Root of the resolved schema."""

    model_config = ConfigDict(extra="forbid")

    registry_url: str = ""
    groups: list[ResolvedGroup] = Field(default_factory=list)
    catalog: Optional[CatalogSnapshot] = None

    def group(self, group_id: str) -> Optional[ResolvedGroup]:
        for group in self.groups:
            if group.id == group_id:
                return group
        return None
