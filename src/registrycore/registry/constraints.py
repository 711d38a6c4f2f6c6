"""
Group constraints: ``include`` expansion and ``any_of`` checking.

``include`` (as an attribute entry or as a constraint) copies another
group's resolved attributes into the including group.  Expansion is driven
by the resolver's outer loop: an include whose target is not resolved yet
is left in place for the next pass.

``any_of`` is never expanded.  Each entry is an attribute name or a list of
names, and the constraint holds when every name of at least one entry is
among the group's final attributes.

Usage::

    from registrycore.registry.constraints import ConstraintApplier

    violations = ConstraintApplier().check_any_of(resolved_group)
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Mapping, Union

from registrycore.registry.errors import Violation
from registrycore.registry.models import ResolvedGroup
from registrycore.registry.types import ResolutionMode, ViolationKind

if TYPE_CHECKING:
    from registrycore.registry.resolver import WorkingGroup

logger = logging.getLogger(__name__)


def _names(entry: Union[str, list[str]]) -> list[str]:
    return [entry] if isinstance(entry, str) else list(entry)


def format_any_of(any_of: list[Union[str, list[str]]]) -> str:
    """Render an ``any_of`` list as ``a | (b, c)``."""
    parts = []
    for entry in any_of:
        names = _names(entry)
        parts.append(names[0] if len(names) == 1 else f"({', '.join(names)})")
    return " | ".join(parts)


class ConstraintApplier:
    """Applies and checks group-level constraints."""

    def apply_includes(
        self, group: "WorkingGroup", index: Mapping[str, "WorkingGroup"]
    ) -> bool:
        """Expand every pending include of ``group`` whose target is resolved.

        Each include is replaced, at its position, by copies of the target's
        attributes with ``include`` lineage.  References in ``group`` yield to
        the included attribute of the same name and keep their local fields.

        Returns:
            True if at least one include was expanded.
        """
        expanded = False
        for marker in [s for s in group.slots if s.is_include]:
            target = index.get(marker.include or "")
            if target is None or target is group or not target.is_resolved:
                continue
            position = group.slots.index(marker)
            del group.slots[position]
            group.merge(
                target.resolved_attributes(),
                target.id,
                ResolutionMode.INCLUDE,
                position=position,
            )
            group.header.lineage.includes.append(target.id)
            logger.debug("Group '%s' includes '%s'", group.id, target.id)
            expanded = True
        return expanded

    def check_any_of(self, group: ResolvedGroup) -> list[Violation]:
        """Return one violation per unsatisfied ``any_of`` constraint."""
        present = set(group.attribute_names())
        violations: list[Violation] = []
        for constraint in group.constraints or []:
            if not constraint.any_of:
                continue
            if any(set(_names(entry)) <= present for entry in constraint.any_of):
                continue
            violations.append(
                Violation(
                    kind=ViolationKind.UNSATISFIED_ANY_OF,
                    group_id=group.id,
                    message=(
                        "none of the attribute sets is present: "
                        f"{format_any_of(constraint.any_of)}"
                    ),
                    provenance=group.lineage.source_file,
                )
            )
        return violations
