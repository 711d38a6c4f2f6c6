"""
Fixed-point reference resolver.

Turns raw groups into fully-resolved groups by repeatedly applying three
kinds of pointer until nothing changes:

- ``ref``: replaced by a copy of the cataloged definition, with the locally
  specified fields laid over it.
- ``extends``: the parent's resolved attribute list is copied in front of
  the child's own once the parent is resolved.
- ``include``: another group's resolved attribute list is copied at the
  include position (see ``constraints.ConstraintApplier``).

Every copy records an ``AttributeLineage``.  Local values always win: a
field set on the child (or on the ``ref``) is never replaced by an inherited
value.

The loop is iterative and bounded.  A pass over every group either resolves
at least one pointer or ends the run; when it ends with pointers left, every
one of them is reported in a single ``UnresolvedReferenceError``.  Forward
references, across files and in any order, simply resolve on a later pass;
cycles never resolve and are reported the same way.

Usage::

    from registrycore.registry.catalog import CatalogBuilder
    from registrycore.registry.resolver import ReferenceResolver

    catalog = CatalogBuilder().build(groups)
    resolved = ReferenceResolver(catalog).resolve(groups)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Optional, Sequence

from registrycore.registry.catalog import Catalog
from registrycore.registry.constraints import ConstraintApplier
from registrycore.registry.errors import DanglingReference, UnresolvedReferenceError
from registrycore.registry.lineage import AttributeLineage
from registrycore.registry.models import ResolvedAttribute, ResolvedGroup
from registrycore.registry.schema import (
    AttributeDefinition,
    AttributeInclude,
    AttributeReference,
    GroupWithProvenance,
)
from registrycore.registry.types import ReferenceKind, ResolutionMode, ResolutionState

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Working state
# ---------------------------------------------------------------------------


@dataclass(eq=False)
class AttributeSlot:
    """One position of a working group's attribute list.

    A slot is a resolved attribute (``attribute`` set), a pending reference
    (``overrides`` set, ``attribute`` unset) or an include marker
    (``include`` set).  ``overrides`` is kept after a reference resolves so
    that a later ``extends`` or ``include`` can lay it over the incoming
    attribute.
    """

    name: Optional[str] = None
    attribute: Optional[ResolvedAttribute] = None
    lineage: Optional[AttributeLineage] = None
    overrides: Optional[dict[str, Any]] = None
    include: Optional[str] = None

    @property
    def is_pending_ref(self) -> bool:
        return self.overrides is not None and self.attribute is None

    @property
    def is_include(self) -> bool:
        return self.include is not None

    @property
    def is_pending(self) -> bool:
        return self.is_pending_ref or self.is_include

    @property
    def yields_to_inherited(self) -> bool:
        """True when an inherited attribute of the same name replaces this slot.

        Only references yield; local definitions and attributes already
        brought in by ``extends`` or ``include`` stay.
        """
        if self.overrides is None:
            return False
        return self.lineage is None or self.lineage.resolution_mode == ResolutionMode.REFERENCE


@dataclass(eq=False)
class WorkingGroup:
    """A group being resolved, owned by a single resolution run."""

    header: ResolvedGroup
    provenance: str
    slots: list[AttributeSlot] = field(default_factory=list)
    extends: Optional[str] = None
    progressed: bool = False

    @property
    def id(self) -> str:
        return self.header.id

    @property
    def state(self) -> ResolutionState:
        if self.extends is None and not any(s.is_pending for s in self.slots):
            return ResolutionState.RESOLVED
        if self.progressed:
            return ResolutionState.PARTIALLY_RESOLVED
        return ResolutionState.UNRESOLVED

    @property
    def is_resolved(self) -> bool:
        return self.state == ResolutionState.RESOLVED

    def resolved_attributes(self) -> list[ResolvedAttribute]:
        return [s.attribute for s in self.slots if s.attribute is not None]

    def merge(
        self,
        incoming: Sequence[ResolvedAttribute],
        source_group: str,
        mode: ResolutionMode,
        position: int,
    ) -> None:
        """Copy ``incoming`` into the slot list at ``position``.

        For each incoming attribute whose name is already used by a
        reference slot, the reference's local fields are laid over the
        incoming attribute and the reference slot moves to the incoming
        position.  A local definition, or an attribute already inherited,
        keeps its place and the incoming attribute is dropped.
        """
        by_name: dict[str, int] = {}
        for idx, slot in enumerate(self.slots):
            if slot.name is not None:
                by_name.setdefault(slot.name, idx)

        inserted: list[AttributeSlot] = []
        consumed: set[int] = set()
        for attr in incoming:
            idx = by_name.get(attr.name)
            if idx is None:
                copy = attr.model_copy(deep=True)
                inserted.append(
                    AttributeSlot(
                        name=attr.name,
                        attribute=copy,
                        lineage=AttributeLineage.partition(
                            source_group, mode, copy.present_fields()
                        ),
                    )
                )
                by_name[attr.name] = -1
                continue
            if idx < 0 or idx in consumed:
                continue
            existing = self.slots[idx]
            if not existing.yields_to_inherited:
                continue
            overrides = existing.overrides or {}
            merged = attr.with_overrides(overrides)
            inserted.append(
                AttributeSlot(
                    name=attr.name,
                    attribute=merged,
                    lineage=AttributeLineage.partition(
                        source_group, mode, merged.present_fields(), overrides
                    ),
                    overrides=overrides,
                )
            )
            consumed.add(idx)

        before = [s for i, s in enumerate(self.slots[:position]) if i not in consumed]
        after = [
            s
            for i, s in enumerate(self.slots[position:], start=position)
            if i not in consumed
        ]
        self.slots = before + inserted + after
        self.progressed = True

    def dangling(self) -> list[DanglingReference]:
        refs: list[DanglingReference] = []
        if self.extends is not None:
            refs.append(self._dangling(ReferenceKind.EXTENDS, self.extends))
        for slot in self.slots:
            if slot.is_pending_ref:
                refs.append(self._dangling(ReferenceKind.REF, slot.name or ""))
            elif slot.is_include:
                refs.append(self._dangling(ReferenceKind.INCLUDE, slot.include or ""))
        return refs

    def _dangling(self, kind: ReferenceKind, target: str) -> DanglingReference:
        return DanglingReference(
            kind=kind, group_id=self.id, target=target, provenance=self.provenance
        )

    def finish(self) -> ResolvedGroup:
        """Freeze the working state into a ``ResolvedGroup``."""
        lineage = self.header.lineage.model_copy(deep=True)
        lineage.attributes = {}
        for slot in self.slots:
            if slot.lineage is not None and slot.name is not None:
                lineage.attributes.setdefault(slot.name, slot.lineage)
        return self.header.model_copy(
            update={
                "extends": None,
                "attributes": self.resolved_attributes(),
                "lineage": lineage,
            },
            deep=True,
        )

    @classmethod
    def from_spec(cls, item: GroupWithProvenance) -> "WorkingGroup":
        spec = item.spec
        slots: list[AttributeSlot] = []
        for attr in spec.attributes:
            if isinstance(attr, AttributeDefinition):
                name = spec.attribute_name(attr)
                slots.append(
                    AttributeSlot(
                        name=name,
                        attribute=ResolvedAttribute.from_definition(name, attr),
                    )
                )
            elif isinstance(attr, AttributeReference):
                slots.append(AttributeSlot(name=attr.ref, overrides=attr.overrides()))
            elif isinstance(attr, AttributeInclude):
                slots.append(AttributeSlot(include=attr.include))
        # Constraint includes expand after the declared attributes.
        for constraint in spec.constraints:
            if constraint.include is not None:
                slots.append(AttributeSlot(include=constraint.include))
        return cls(
            header=ResolvedGroup.header_from_spec(spec, item.provenance),
            provenance=item.provenance,
            slots=slots,
            extends=spec.extends,
        )

    @classmethod
    def from_resolved(cls, group: ResolvedGroup) -> "WorkingGroup":
        slots = [
            AttributeSlot(
                name=attr.name,
                attribute=attr.model_copy(deep=True),
                lineage=group.lineage.attributes.get(attr.name),
            )
            for attr in group.attributes
        ]
        return cls(
            header=group.model_copy(deep=True),
            provenance=group.lineage.source_file,
            slots=slots,
            extends=group.extends,
        )


@dataclass
class ResolutionCounters:
    """What one resolution run did."""

    passes: int = 0
    refs: int = 0
    extends: int = 0
    includes: int = 0

    @property
    def total(self) -> int:
        return self.refs + self.extends + self.includes


# ---------------------------------------------------------------------------
# Resolver
# ---------------------------------------------------------------------------


class ReferenceResolver:
    """Resolves ``ref``, ``extends`` and ``include`` to a fixed point.

    One resolver serves one run: it holds the run's catalog and the counters
    of the last ``resolve`` call.
    """

    def __init__(
        self, catalog: Catalog, constraints: Optional[ConstraintApplier] = None
    ) -> None:
        self.catalog = catalog
        self.constraints = constraints or ConstraintApplier()
        self.counters = ResolutionCounters()

    def resolve(self, groups: Sequence[GroupWithProvenance]) -> list[ResolvedGroup]:
        """Resolve raw groups, preserving input order.

        Raises:
            UnresolvedReferenceError: If any pointer is left at the fixed point.
        """
        return self._run([WorkingGroup.from_spec(g) for g in groups])

    def resolve_resolved(self, groups: Sequence[ResolvedGroup]) -> list[ResolvedGroup]:
        """Re-run resolution over already-resolved groups (a no-op when clean)."""
        return self._run([WorkingGroup.from_resolved(g) for g in groups])

    def _run(self, working: list[WorkingGroup]) -> list[ResolvedGroup]:
        self.counters = ResolutionCounters()
        index: dict[str, WorkingGroup] = {}
        for group in working:
            index.setdefault(group.id, group)

        while True:
            progress = self._resolve_refs(working)
            for group in working:
                if group.is_resolved:
                    continue
                if self._apply_extends(group, index):
                    progress += 1
                    self.counters.extends += 1
                applied = self.constraints.apply_includes(group, index)
                progress += applied
                self.counters.includes += applied
            self.counters.passes += 1

            pending = [g for g in working if not g.is_resolved]
            if not pending:
                break
            if progress == 0:
                dangling = [ref for g in pending for ref in g.dangling()]
                logger.warning(
                    "Resolution stopped after %d passes: %d group(s) unresolved, "
                    "%d dangling reference(s)",
                    self.counters.passes,
                    len(pending),
                    len(dangling),
                )
                raise UnresolvedReferenceError(dangling)

        logger.info(
            "Resolved %d groups in %d passes (refs=%d extends=%d includes=%d)",
            len(working),
            self.counters.passes,
            self.counters.refs,
            self.counters.extends,
            self.counters.includes,
        )
        return [g.finish() for g in working]

    def _resolve_refs(self, working: Sequence[WorkingGroup]) -> int:
        """Inner loop: resolve catalog refs until a pass resolves none."""
        total = 0
        while True:
            resolved = 0
            for group in working:
                if group.is_resolved:
                    continue
                for slot in group.slots:
                    if slot.is_pending_ref and self._resolve_ref(group, slot):
                        resolved += 1
            if resolved == 0:
                return total
            total += resolved
            self.counters.refs += resolved

    def _resolve_ref(self, group: WorkingGroup, slot: AttributeSlot) -> bool:
        entry = self.catalog.get(slot.name or "")
        if entry is None:
            return False
        overrides = slot.overrides or {}
        attribute = entry.definition.with_overrides(overrides)
        slot.attribute = attribute
        slot.lineage = AttributeLineage.partition(
            entry.group_id,
            ResolutionMode.REFERENCE,
            attribute.present_fields(),
            overrides,
        )
        group.progressed = True
        logger.debug(
            "Resolved ref '%s' in group '%s' from '%s'",
            slot.name,
            group.id,
            entry.group_id,
        )
        return True

    def _apply_extends(self, group: WorkingGroup, index: dict[str, WorkingGroup]) -> bool:
        if group.extends is None:
            return False
        parent = index.get(group.extends)
        if parent is None or parent is group or not parent.is_resolved:
            return False
        group.merge(
            parent.resolved_attributes(),
            parent.id,
            ResolutionMode.EXTENDS,
            position=0,
        )
        if group.header.prefix is None and parent.header.prefix is not None:
            group.header.prefix = parent.header.prefix
        group.header.lineage.extends = parent.id
        group.header.extends = None
        group.extends = None
        logger.debug("Group '%s' extends '%s'", group.id, parent.id)
        return True
