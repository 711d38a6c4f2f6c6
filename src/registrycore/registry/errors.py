"""
Structured errors raised while loading, cataloging, resolving and
validating a semantic convention registry.

Every error is fatal: nothing is emitted once one is raised.  Resolution and
validation errors aggregate every problem found in the run so that a user
sees the whole list at once; each item is a pydantic model so callers can
inspect or serialize it.

Taxonomy::

    RegistryError
    ├── LoadError                    # one file, structural
    ├── DuplicateAttributeError      # catalog build, both sources named
    ├── UnresolvedReferenceError     # resolver, every dangling pointer
    └── RegistryValidationError      # validator, every violation
"""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from registrycore.registry.types import ReferenceKind, ViolationKind


# ---------------------------------------------------------------------------
# Detail models
# ---------------------------------------------------------------------------


class DanglingReference(BaseModel):
    """A ``ref``, ``extends`` or ``include`` left unresolved at the fixed point."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    kind: ReferenceKind
    group_id: str = Field(..., description="Group holding the pointer")
    target: str = Field(..., description="Attribute name or group id pointed at")
    provenance: str = Field("", description="File the group was loaded from")

    def __str__(self) -> str:
        return (
            f"group '{self.group_id}' ({self.provenance}): "
            f"unresolved {self.kind.value} '{self.target}'"
        )


class Violation(BaseModel):
    """A single consistency violation found by the validator."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    kind: ViolationKind
    group_id: str
    message: str
    attribute: Optional[str] = None
    provenance: Optional[str] = None

    def __str__(self) -> str:
        location = self.group_id
        if self.attribute:
            location = f"{location}/{self.attribute}"
        if self.provenance:
            location = f"{location} ({self.provenance})"
        return f"[{self.kind.value}] {location}: {self.message}"


class AttributeConflict(BaseModel):
    """Two groups locally defining the same attribute name."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    name: str
    group_a: str
    group_b: str
    provenance_a: str = ""
    provenance_b: str = ""


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class RegistryError(Exception):
    """Base class of every registry resolution error."""

    def to_dict(self) -> dict[str, Any]:
        return {"error": type(self).__name__, "message": str(self)}


class LoadError(RegistryError):
    """Raised when a registry document cannot be parsed or is malformed."""

    def __init__(self, file: str, detail: str) -> None:
        self.file = file
        self.detail = detail
        super().__init__(f"Failed to load '{file}': {detail}")

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": type(self).__name__,
            "file": self.file,
            "detail": self.detail,
        }


class DuplicateAttributeError(RegistryError):
    """Raised when an attribute name is defined by more than one group.

    ``name``, ``group_a`` and ``group_b`` describe the first conflict;
    ``conflicts`` lists every conflict found in the registry.
    """

    def __init__(self, conflicts: list[AttributeConflict]) -> None:
        if not conflicts:
            raise ValueError("DuplicateAttributeError requires at least one conflict")
        self.conflicts = list(conflicts)
        first = self.conflicts[0]
        self.name = first.name
        self.group_a = first.group_a
        self.group_b = first.group_b
        lines = [
            f"  '{c.name}' defined in '{c.group_a}' ({c.provenance_a}) "
            f"and '{c.group_b}' ({c.provenance_b})"
            for c in self.conflicts
        ]
        super().__init__(
            f"{len(self.conflicts)} duplicate attribute definition(s):\n"
            + "\n".join(lines)
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": type(self).__name__,
            "name": self.name,
            "group_a": self.group_a,
            "group_b": self.group_b,
            "conflicts": [c.model_dump(mode="json") for c in self.conflicts],
        }


class UnresolvedReferenceError(RegistryError):
    """Raised when the fixed point is reached with pointers still dangling.

    Covers references to unknown attributes, ``extends`` or ``include`` of
    unknown groups, and inheritance cycles.
    """

    def __init__(self, references: list[DanglingReference]) -> None:
        self.references = list(references)
        lines = [f"  {r}" for r in self.references]
        super().__init__(
            f"{len(self.references)} unresolved reference(s):\n" + "\n".join(lines)
        )

    @property
    def group_ids(self) -> set[str]:
        return {r.group_id for r in self.references}

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": type(self).__name__,
            "references": [r.model_dump(mode="json") for r in self.references],
        }


class RegistryValidationError(RegistryError):
    """Raised when the resolved groups fail consistency validation."""

    def __init__(self, violations: list[Violation]) -> None:
        self.violations = list(violations)
        lines = [f"  {v}" for v in self.violations]
        super().__init__(
            f"{len(self.violations)} validation violation(s):\n" + "\n".join(lines)
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": type(self).__name__,
            "violations": [v.model_dump(mode="json") for v in self.violations],
        }
