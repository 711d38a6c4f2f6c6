"""
Pydantic v2 models for the semantic convention registry YAML format.

A registry file is a mapping with a ``groups`` list.  Each group declares
attributes either locally (``id``), by reference to a registry attribute
(``ref``), or by bulk inclusion of another group (``include``).

All models use ``extra="forbid"`` to reject unknown keys at parse time, so a
typo in hand-written YAML is a load error rather than a silently ignored key.

Usage::

    from registrycore.registry.schema import RegistryFile
    import yaml

    with open("registry/http.yaml") as fh:
        raw = yaml.safe_load(fh)
    registry_file = RegistryFile.model_validate(raw)
"""

from __future__ import annotations

import re
from typing import Annotated, Any, Optional, Union

from pydantic import (
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Discriminator,
    Field,
    Tag,
    field_validator,
    model_serializer,
    model_validator,
)

from registrycore.registry.types import (
    BasicRequirementLevel,
    DeprecationAction,
    GroupType,
    Instrument,
    SpanKind,
    Stability,
)


def _normalize_stability(value: Any) -> Any:
    if value == "experimental":
        return Stability.DEVELOPMENT.value
    return value


StabilityField = Annotated[Stability, BeforeValidator(_normalize_stability)]


# ---------------------------------------------------------------------------
# Requirement level / deprecation
# ---------------------------------------------------------------------------


class RequirementLevel(BaseModel):
    """Requirement level of an attribute.

    Accepts a bare level (``required``) or a single-key mapping carrying a
    text (``{conditionally_required: "If available."}``) and serializes back
    to the same shape.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    level: BasicRequirementLevel
    text: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def _from_yaml(cls, data: Any) -> Any:
        if isinstance(data, (str, BasicRequirementLevel)):
            return {"level": data}
        if isinstance(data, dict) and len(data) == 1:
            (key, text), = data.items()
            if key not in ("level", "text"):
                return {"level": key, "text": text}
        return data

    @model_validator(mode="after")
    def _check_text(self) -> "RequirementLevel":
        if self.level == BasicRequirementLevel.CONDITIONALLY_REQUIRED and not self.text:
            raise ValueError("conditionally_required requires a condition text")
        if self.text is not None and self.level in (
            BasicRequirementLevel.REQUIRED,
            BasicRequirementLevel.OPTIONAL,
        ):
            raise ValueError(f"requirement level '{self.level.value}' takes no text")
        return self

    @model_serializer
    def _to_yaml(self) -> Union[str, dict[str, str]]:
        if self.text is None:
            return self.level.value
        return {self.level.value: self.text}

    @classmethod
    def recommended(cls) -> "RequirementLevel":
        return cls(level=BasicRequirementLevel.RECOMMENDED)

    def __str__(self) -> str:
        if self.text is None:
            return self.level.value
        return f"{self.level.value}: {self.text}"


_RENAMED_RE = re.compile(r"[Rr]eplaced by `([^`]+)`")


class Deprecated(BaseModel):
    """Deprecation status of an attribute, member or group.

    Legacy string values are normalized: ``"Replaced by `x`."`` becomes a
    ``renamed`` action, anything else ``uncategorized``.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    action: DeprecationAction
    renamed_to: Optional[str] = None
    note: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def _from_legacy(cls, data: Any) -> Any:
        if isinstance(data, str):
            match = _RENAMED_RE.search(data)
            if match:
                return {
                    "action": DeprecationAction.RENAMED.value,
                    "renamed_to": match.group(1),
                    "note": data,
                }
            return {"action": DeprecationAction.UNCATEGORIZED.value, "note": data}
        return data

    @model_validator(mode="after")
    def _check_renamed(self) -> "Deprecated":
        if self.action == DeprecationAction.RENAMED and not self.renamed_to:
            raise ValueError("a 'renamed' deprecation requires 'renamed_to'")
        return self


# ---------------------------------------------------------------------------
# Attribute types
# ---------------------------------------------------------------------------

PRIMITIVE_TYPES = frozenset(
    {
        "string",
        "int",
        "double",
        "boolean",
        "any",
        "string[]",
        "int[]",
        "double[]",
        "boolean[]",
    }
)
TEMPLATE_TYPES = frozenset(f"template[{t}]" for t in PRIMITIVE_TYPES)


class EnumMember(BaseModel):
    """A single member of an enum attribute type."""

    model_config = ConfigDict(extra="forbid")

    id: str = Field(..., min_length=1, description="Member identifier")
    value: Union[bool, int, float, str] = Field(..., description="Wire value")
    brief: Optional[str] = None
    note: Optional[str] = None
    stability: Optional[StabilityField] = None
    deprecated: Optional[Deprecated] = None


class EnumType(BaseModel):
    """An enum attribute type: a closed (or open) set of members."""

    model_config = ConfigDict(extra="forbid")

    members: list[EnumMember] = Field(..., min_length=1)
    allow_custom_values: Optional[bool] = Field(
        None, description="Legacy flag, accepted but no longer meaningful"
    )


def _check_attribute_type(value: Any) -> Any:
    if isinstance(value, str) and value not in PRIMITIVE_TYPES | TEMPLATE_TYPES:
        raise ValueError(f"unknown attribute type '{value}'")
    return value


AttributeType = Annotated[
    Union[str, EnumType], BeforeValidator(_check_attribute_type)
]


# ---------------------------------------------------------------------------
# Attribute specs
# ---------------------------------------------------------------------------


class AttributeDefinition(BaseModel):
    """A locally-defined attribute with its full field set."""

    model_config = ConfigDict(extra="forbid")

    id: str = Field(..., min_length=1, description="Attribute id (without group prefix)")
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


class AttributeReference(BaseModel):
    """A pointer to a registry attribute, optionally with local overrides."""

    model_config = ConfigDict(extra="forbid")

    ref: str = Field(..., min_length=1, description="Name of the referenced attribute")
    brief: Optional[str] = None
    examples: Optional[Any] = None
    tag: Optional[str] = None
    requirement_level: Optional[RequirementLevel] = None
    sampling_relevant: Optional[bool] = None
    note: Optional[str] = None
    stability: Optional[StabilityField] = None
    deprecated: Optional[Deprecated] = None
    annotations: Optional[dict[str, Any]] = None

    def overrides(self) -> dict[str, Any]:
        """Return the locally specified (non-null) override fields."""
        return {
            name: getattr(self, name)
            for name in self.model_fields_set
            if name != "ref" and getattr(self, name) is not None
        }


class AttributeInclude(BaseModel):
    """Bulk inclusion of another group's resolved attributes at this position."""

    model_config = ConfigDict(extra="forbid")

    include: str = Field(..., min_length=1, description="Id of the included group")


def _attribute_kind(value: Any) -> Optional[str]:
    if isinstance(value, dict):
        for key in ("ref", "include", "id"):
            if key in value:
                return key
        return None
    if isinstance(value, AttributeReference):
        return "ref"
    if isinstance(value, AttributeInclude):
        return "include"
    if isinstance(value, AttributeDefinition):
        return "id"
    return None


AttributeSpec = Annotated[
    Union[
        Annotated[AttributeDefinition, Tag("id")],
        Annotated[AttributeReference, Tag("ref")],
        Annotated[AttributeInclude, Tag("include")],
    ],
    Discriminator(
        _attribute_kind,
        custom_error_type="invalid_attribute",
        custom_error_message="attribute must declare one of 'id', 'ref' or 'include'",
    ),
]


# ---------------------------------------------------------------------------
# Event body
# ---------------------------------------------------------------------------


class BodyField(BaseModel):
    """A node of an event body field tree."""

    model_config = ConfigDict(extra="forbid")

    id: str = Field(..., min_length=1)
    type: str = Field(..., min_length=1, description="map, string, int, enum, ...")
    brief: Optional[str] = None
    note: Optional[str] = None
    stability: Optional[StabilityField] = None
    deprecated: Optional[Deprecated] = None
    requirement_level: Optional[RequirementLevel] = None
    examples: Optional[Any] = None
    fields: Optional[list[BodyField]] = None
    members: Optional[list[EnumMember]] = None


# ---------------------------------------------------------------------------
# Groups
# ---------------------------------------------------------------------------


class ConstraintSpec(BaseModel):
    """A group-level constraint: ``any_of`` or ``include``."""

    model_config = ConfigDict(extra="forbid")

    any_of: list[Union[str, list[str]]] = Field(default_factory=list)
    include: Optional[str] = None

    @model_validator(mode="after")
    def _check_not_empty(self) -> "ConstraintSpec":
        if not self.any_of and self.include is None:
            raise ValueError("constraint must declare 'any_of' or 'include'")
        return self


class GroupSpec(BaseModel):
    """A raw semantic convention group as written in a registry file."""

    model_config = ConfigDict(extra="forbid")

    id: str = Field(..., min_length=1, description="Unique group id")
    type: GroupType
    brief: str = ""
    note: str = ""
    prefix: str = ""
    extends: Optional[str] = None
    stability: Optional[StabilityField] = None
    deprecated: Optional[Deprecated] = None
    attributes: list[AttributeSpec] = Field(default_factory=list)
    constraints: list[ConstraintSpec] = Field(default_factory=list)
    span_kind: Optional[SpanKind] = None
    events: list[str] = Field(default_factory=list)
    metric_name: Optional[str] = None
    instrument: Optional[Instrument] = None
    unit: Optional[str] = None
    name: Optional[str] = None
    display_name: Optional[str] = None
    body: Optional[BodyField] = None
    annotations: Optional[dict[str, Any]] = None

    @field_validator("extends")
    @classmethod
    def _extends_not_empty(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not v.strip():
            raise ValueError("extends must name a group")
        return v

    def attribute_name(self, attr: AttributeDefinition) -> str:
        """Fully qualified name of a local definition in this group."""
        return f"{self.prefix}.{attr.id}" if self.prefix else attr.id

    def local_definitions(self) -> list[AttributeDefinition]:
        return [a for a in self.attributes if isinstance(a, AttributeDefinition)]

    def references(self) -> list[AttributeReference]:
        return [a for a in self.attributes if isinstance(a, AttributeReference)]


class RegistryFile(BaseModel):
    """Root model of a registry YAML/JSON document."""

    model_config = ConfigDict(extra="forbid")

    groups: list[GroupSpec] = Field(default_factory=list)


class GroupWithProvenance(BaseModel):
    """A raw group tagged with the file (or URL) it was loaded from."""

    model_config = ConfigDict(extra="forbid")

    spec: GroupSpec
    provenance: str = Field(..., description="Path or URL of the source document")


BodyField.model_rebuild()
