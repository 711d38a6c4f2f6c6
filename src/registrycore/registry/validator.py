"""
Consistency validator for resolved groups.

A pure read over the resolver's output that collects every violation
instead of stopping at the first:

- a group still carrying an ``extends`` clause
- an unsatisfied ``any_of`` constraint
- an attribute name appearing twice in one group
- two groups sharing an id
- two metric groups sharing a ``metric_name``
- a lineage record whose field sets overlap, do not cover the attribute's
  present fields, or name an attribute the group does not have

Usage::

    from registrycore.registry.validator import RegistryValidator

    result = RegistryValidator().validate(resolved_groups)
    if not result.passed:
        for violation in result.violations:
            logger.warning("Registry: %s", violation)
"""

from __future__ import annotations

import logging
from collections import Counter
from typing import Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field

from registrycore.registry.constraints import ConstraintApplier
from registrycore.registry.errors import RegistryValidationError, Violation
from registrycore.registry.models import ResolvedGroup
from registrycore.registry.types import GroupType, ViolationKind

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Result model
# ---------------------------------------------------------------------------


class RegistryValidationResult(BaseModel):
    """Aggregated result of validating a set of resolved groups."""

    model_config = ConfigDict(extra="forbid")

    passed: bool = Field(..., description="True if no violations were found")
    total_checked: int = Field(0, description="Number of groups checked")
    violations: list[Violation] = Field(
        default_factory=list, description="Every violation found, in group order"
    )

    def by_kind(self, kind: ViolationKind) -> list[Violation]:
        return [v for v in self.violations if v.kind == kind]


# ---------------------------------------------------------------------------
# Validator
# ---------------------------------------------------------------------------


class RegistryValidator:
    """Validates resolved groups for internal consistency."""

    def __init__(self, constraints: Optional[ConstraintApplier] = None) -> None:
        self._constraints = constraints or ConstraintApplier()

    def validate(self, groups: Sequence[ResolvedGroup]) -> RegistryValidationResult:
        violations: list[Violation] = []
        for group in groups:
            violations.extend(self._check_group(group))
        violations.extend(self._check_duplicate_ids(groups))
        violations.extend(self._check_duplicate_metrics(groups))

        result = RegistryValidationResult(
            passed=not violations,
            total_checked=len(groups),
            violations=violations,
        )
        if result.passed:
            logger.debug("Registry validation passed: %d groups", len(groups))
        else:
            logger.warning(
                "Registry validation FAILED: %d groups, %d violations",
                len(groups),
                len(violations),
            )
        return result

    def check(self, groups: Sequence[ResolvedGroup]) -> RegistryValidationResult:
        """Validate and raise ``RegistryValidationError`` on any violation."""
        result = self.validate(groups)
        if not result.passed:
            raise RegistryValidationError(result.violations)
        return result

    def _check_group(self, group: ResolvedGroup) -> list[Violation]:
        provenance = group.lineage.source_file
        violations: list[Violation] = []

        if group.extends is not None:
            violations.append(
                Violation(
                    kind=ViolationKind.UNRESOLVED_EXTENDS,
                    group_id=group.id,
                    message=f"extends '{group.extends}' was never applied",
                    provenance=provenance,
                )
            )

        violations.extend(self._constraints.check_any_of(group))

        counts = Counter(group.attribute_names())
        for name, count in counts.items():
            if count > 1:
                violations.append(
                    Violation(
                        kind=ViolationKind.DUPLICATE_ATTRIBUTE,
                        group_id=group.id,
                        attribute=name,
                        message=f"attribute appears {count} times",
                        provenance=provenance,
                    )
                )

        for name, lineage in group.lineage.attributes.items():
            attr = group.attribute(name)
            if attr is None:
                problem = "lineage recorded for an attribute the group does not have"
            elif lineage.inherited_fields & lineage.locally_overridden_fields:
                overlap = sorted(lineage.inherited_fields & lineage.locally_overridden_fields)
                problem = f"fields both inherited and overridden: {', '.join(overlap)}"
            elif not lineage.is_consistent(attr.present_fields()):
                problem = "lineage fields do not match the attribute's present fields"
            else:
                continue
            violations.append(
                Violation(
                    kind=ViolationKind.INVALID_LINEAGE,
                    group_id=group.id,
                    attribute=name,
                    message=problem,
                    provenance=provenance,
                )
            )
        return violations

    @staticmethod
    def _check_duplicate_ids(groups: Sequence[ResolvedGroup]) -> list[Violation]:
        first: dict[str, str] = {}
        violations: list[Violation] = []
        for group in groups:
            source = group.lineage.source_file
            if group.id not in first:
                first[group.id] = source
                continue
            violations.append(
                Violation(
                    kind=ViolationKind.DUPLICATE_GROUP_ID,
                    group_id=group.id,
                    message=f"group id already defined in {first[group.id]}",
                    provenance=source,
                )
            )
        return violations

    @staticmethod
    def _check_duplicate_metrics(groups: Sequence[ResolvedGroup]) -> list[Violation]:
        first: dict[str, str] = {}
        violations: list[Violation] = []
        for group in groups:
            if group.type != GroupType.METRIC or not group.metric_name:
                continue
            owner = first.setdefault(group.metric_name, group.id)
            if owner == group.id:
                continue
            violations.append(
                Violation(
                    kind=ViolationKind.DUPLICATE_METRIC_NAME,
                    group_id=group.id,
                    message=f"metric '{group.metric_name}' already defined by '{owner}'",
                    provenance=group.lineage.source_file,
                )
            )
        return violations
