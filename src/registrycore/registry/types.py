"""
Shared enums for the semantic convention registry.

Every enum is a ``str`` subclass so that values round-trip through YAML,
JSON and pydantic without custom serializers.
"""

from __future__ import annotations

from enum import Enum


class GroupType(str, Enum):
    """Kind of semantic convention group."""

    ATTRIBUTE_GROUP = "attribute_group"
    SPAN = "span"
    EVENT = "event"
    METRIC = "metric"
    METRIC_GROUP = "metric_group"
    RESOURCE = "resource"
    SCOPE = "scope"
    ENTITY = "entity"


# Group types cataloged as signals rather than attribute containers.
SIGNAL_GROUP_TYPES = frozenset(
    {GroupType.SPAN, GroupType.EVENT, GroupType.METRIC, GroupType.ENTITY}
)


class Stability(str, Enum):
    """Stability level of a group, attribute or enum member."""

    STABLE = "stable"
    DEVELOPMENT = "development"
    ALPHA = "alpha"
    BETA = "beta"
    RELEASE_CANDIDATE = "release_candidate"
    DEPRECATED = "deprecated"

    @classmethod
    def _missing_(cls, value: object) -> "Stability | None":
        # "experimental" is the legacy spelling of "development".
        if value == "experimental":
            return cls.DEVELOPMENT
        return None


class SpanKind(str, Enum):
    """Span kind of a span group."""

    INTERNAL = "internal"
    CLIENT = "client"
    SERVER = "server"
    PRODUCER = "producer"
    CONSUMER = "consumer"


class Instrument(str, Enum):
    """Metric instrument."""

    COUNTER = "counter"
    UPDOWNCOUNTER = "updowncounter"
    GAUGE = "gauge"
    HISTOGRAM = "histogram"


class BasicRequirementLevel(str, Enum):
    """Requirement level kinds.

    ``conditionally_required`` always carries a condition text;
    ``recommended`` and ``opt_in`` may carry one.
    """

    REQUIRED = "required"
    CONDITIONALLY_REQUIRED = "conditionally_required"
    RECOMMENDED = "recommended"
    OPTIONAL = "optional"
    OPT_IN = "opt_in"


class DeprecationAction(str, Enum):
    """What happened to a deprecated attribute or group."""

    RENAMED = "renamed"
    OBSOLETED = "obsoleted"
    UNCATEGORIZED = "uncategorized"


class ResolutionMode(str, Enum):
    """How a resolved attribute obtained its inherited fields."""

    REFERENCE = "reference"
    EXTENDS = "extends"
    INCLUDE = "include"


class ResolutionState(str, Enum):
    """Per-group state inside the resolver's fixed-point loop."""

    UNRESOLVED = "unresolved"
    PARTIALLY_RESOLVED = "partially_resolved"
    RESOLVED = "resolved"


class ReferenceKind(str, Enum):
    """Kind of a pointer that can be left dangling after resolution."""

    REF = "ref"
    EXTENDS = "extends"
    INCLUDE = "include"


class ViolationKind(str, Enum):
    """Consistency violations reported by the registry validator."""

    UNRESOLVED_EXTENDS = "unresolved_extends"
    UNSATISFIED_ANY_OF = "unsatisfied_any_of"
    DUPLICATE_ATTRIBUTE = "duplicate_attribute"
    DUPLICATE_GROUP_ID = "duplicate_group_id"
    DUPLICATE_METRIC_NAME = "duplicate_metric_name"
    INVALID_LINEAGE = "invalid_lineage"


# Attribute fields that a ``ref`` may override and that lineage tracks.
# ``type`` is inherited but never overridable.
OVERRIDABLE_FIELDS: tuple[str, ...] = (
    "brief",
    "examples",
    "tag",
    "requirement_level",
    "sampling_relevant",
    "note",
    "stability",
    "deprecated",
    "annotations",
)

LINEAGE_FIELDS: tuple[str, ...] = ("type",) + OVERRIDABLE_FIELDS


class OutputFormat(str, Enum):
    """Serialization format of the resolved registry."""

    JSON = "json"
    YAML = "yaml"
