"""Tests for the fixed-point reference resolver."""

from __future__ import annotations

import pytest

from registrycore.registry.catalog import CatalogBuilder
from registrycore.registry.emitter import ResolvedSchemaEmitter
from registrycore.registry.errors import UnresolvedReferenceError
from registrycore.registry.lineage import AttributeLineage
from registrycore.registry.loader import ResolvedRegistryLoader
from registrycore.registry.models import ResolvedAttribute, ResolvedGroup
from registrycore.registry.resolver import AttributeSlot, ReferenceResolver, WorkingGroup
from registrycore.registry.types import (
    BasicRequirementLevel,
    ReferenceKind,
    ResolutionMode,
    ResolutionState,
    Stability,
)

NET_REGISTRY = """\
    groups:
      - id: registry.net
        type: attribute_group
        brief: Network attributes.
        attributes:
          - id: net.a
            type: int
            brief: A.
          - id: net.b
            type: int
            brief: B.
          - id: net.c
            type: int
            brief: C.
"""


def _resolve(groups) -> dict[str, ResolvedGroup]:
    resolved = ReferenceResolver(CatalogBuilder().build(groups)).resolve(groups)
    return {g.id: g for g in resolved}


def _lineage(group: ResolvedGroup, name: str) -> AttributeLineage:
    return group.lineage.attributes[name]


# ---------------------------------------------------------------------------
# References
# ---------------------------------------------------------------------------


class TestReferences:
    def test_ref_copies_full_definition(self, sample_groups):
        cassandra = _resolve(sample_groups)["db.cassandra"]
        attr = cassandra.attribute("client.address")
        assert attr is not None
        assert attr.type == "string"
        assert attr.brief == "Client address."
        assert attr.stability == Stability.STABLE
        assert attr.examples == ["client.example.com", "10.1.2.80"]

        lineage = _lineage(cassandra, "client.address")
        assert lineage.source_group == "registry.client"
        assert lineage.resolution_mode == ResolutionMode.REFERENCE
        assert lineage.inherited_fields == {
            "type",
            "brief",
            "examples",
            "requirement_level",
            "stability",
        }
        assert lineage.locally_overridden_fields == set()

    def test_local_override_wins(self, sample_groups):
        cassandra = _resolve(sample_groups)["db.cassandra"]
        attr = cassandra.attribute("db.system")
        assert attr.requirement_level.level == BasicRequirementLevel.REQUIRED

        lineage = _lineage(cassandra, "db.system")
        assert lineage.source_group == "registry.db"
        assert lineage.locally_overridden_fields == {"requirement_level"}
        assert "requirement_level" not in lineage.inherited_fields

    def test_declaration_order_kept(self, sample_groups):
        cassandra = _resolve(sample_groups)["db.cassandra"]
        assert cassandra.attribute_names() == [
            "client.address",
            "db.system",
            "db.cassandra.consistency_level",
        ]

    def test_copies_not_links(self, sample_groups):
        catalog = CatalogBuilder().build(sample_groups)
        resolved = ReferenceResolver(catalog).resolve(sample_groups)
        cassandra = next(g for g in resolved if g.id == "db.cassandra")
        cassandra.attribute("client.address").examples.append("mutated")
        assert catalog.get("client.address").definition.examples == [
            "client.example.com",
            "10.1.2.80",
        ]

    def test_local_definitions_have_no_lineage(self, sample_groups):
        client = _resolve(sample_groups)["registry.client"]
        assert client.lineage.attributes == {}
        assert client.lineage.source_file == "registry.yaml"

    def test_null_override_is_not_an_override(self, load_groups):
        groups = load_groups(
            net=NET_REGISTRY,
            use="""\
                groups:
                  - id: attributes.use
                    type: attribute_group
                    attributes:
                      - ref: net.a
                        note: null
                        brief: Local A.
            """,
        )
        group = _resolve(groups)["attributes.use"]
        assert group.attribute("net.a").brief == "Local A."
        assert _lineage(group, "net.a").locally_overridden_fields == {"brief"}


# ---------------------------------------------------------------------------
# Inheritance
# ---------------------------------------------------------------------------


class TestExtends:
    def test_child_inherits_parent_attributes(self, sample_groups):
        server = _resolve(sample_groups)["attributes.http.server"]
        assert server.attribute_names() == ["server.address", "server.port", "client.address"]
        assert server.extends is None
        assert server.lineage.extends == "attributes.http.common"

        lineage = _lineage(server, "server.address")
        assert lineage.source_group == "attributes.http.common"
        assert lineage.resolution_mode == ResolutionMode.EXTENDS

    def test_child_override_beats_parent(self, sample_groups):
        resolved = _resolve(sample_groups)
        common_port = resolved["attributes.http.common"].attribute("server.port")
        server_port = resolved["attributes.http.server"].attribute("server.port")

        assert common_port.requirement_level.level == BasicRequirementLevel.RECOMMENDED
        assert server_port.requirement_level.level == BasicRequirementLevel.CONDITIONALLY_REQUIRED
        assert server_port.requirement_level.text == "If not the default port."
        assert server_port.brief == "Server port number."

        lineage = _lineage(resolved["attributes.http.server"], "server.port")
        assert lineage.source_group == "attributes.http.common"
        assert lineage.resolution_mode == ResolutionMode.EXTENDS
        assert lineage.locally_overridden_fields == {"requirement_level"}
        assert lineage.inherited_fields == {"type", "brief", "examples", "stability"}

    def test_transitive_chain(self, sample_groups):
        metric = _resolve(sample_groups)["metric.http.server.request.duration"]
        assert metric.attribute_names() == ["server.address", "server.port", "client.address"]
        port = metric.attribute("server.port")
        assert port.requirement_level.level == BasicRequirementLevel.CONDITIONALLY_REQUIRED
        lineage = _lineage(metric, "server.port")
        assert lineage.source_group == "attributes.http.server"
        assert lineage.locally_overridden_fields == set()

    def test_forward_extends_takes_extra_pass(self, load_groups):
        groups = load_groups(
            net=NET_REGISTRY,
            chain="""\
                groups:
                  - id: c
                    type: attribute_group
                    extends: b
                  - id: b
                    type: attribute_group
                    extends: a
                    attributes:
                      - ref: net.b
                  - id: a
                    type: attribute_group
                    attributes:
                      - ref: net.a
            """,
        )
        catalog = CatalogBuilder().build(groups)
        resolver = ReferenceResolver(catalog)
        resolved = {g.id: g for g in resolver.resolve(groups)}
        assert resolved["c"].attribute_names() == ["net.a", "net.b"]
        assert resolver.counters.passes == 2
        assert resolver.counters.extends == 2

    def test_prefix_inherited(self, load_groups):
        groups = load_groups(
            net=NET_REGISTRY,
            chain="""\
                groups:
                  - id: parent
                    type: attribute_group
                    prefix: net
                    attributes:
                      - ref: net.a
                  - id: child
                    type: attribute_group
                    extends: parent
            """,
        )
        assert _resolve(groups)["child"].prefix == "net"

    def test_ref_satisfied_only_by_parent(self, load_groups):
        groups = load_groups(
            spans="""\
                groups:
                  - id: span.base
                    type: span
                    span_kind: server
                    attributes:
                      - id: base.flag
                        type: boolean
                        brief: A flag.
                  - id: span.child
                    type: span
                    span_kind: server
                    extends: span.base
                    attributes:
                      - ref: base.flag
                        note: Child note.
            """
        )
        child = _resolve(groups)["span.child"]
        flag = child.attribute("base.flag")
        assert flag.note == "Child note."
        assert flag.brief == "A flag."
        lineage = _lineage(child, "base.flag")
        assert lineage.source_group == "span.base"
        assert lineage.locally_overridden_fields == {"note"}


# ---------------------------------------------------------------------------
# Includes
# ---------------------------------------------------------------------------


class TestIncludes:
    GROUPS = """\
        groups:
          - id: attributes.net
            type: attribute_group
            attributes:
              - ref: net.a
              - ref: net.b
          - id: attributes.other
            type: attribute_group
            attributes:
              - ref: net.c
          - id: span.x
            type: span
            span_kind: client
            attributes:
              - id: x.local
                type: int
                brief: Local.
              - include: attributes.net
              - ref: net.b
                brief: Local b.
            constraints:
              - include: attributes.other
    """

    def test_include_expands_at_position_and_constraint_at_end(self, load_groups):
        span = _resolve(load_groups(net=NET_REGISTRY, x=self.GROUPS))["span.x"]
        assert span.attribute_names() == ["x.local", "net.a", "net.b", "net.c"]
        assert span.lineage.includes == ["attributes.net", "attributes.other"]

    def test_included_lineage(self, load_groups):
        span = _resolve(load_groups(net=NET_REGISTRY, x=self.GROUPS))["span.x"]
        lineage = _lineage(span, "net.a")
        assert lineage.source_group == "attributes.net"
        assert lineage.resolution_mode == ResolutionMode.INCLUDE

    def test_local_ref_fields_win_over_include(self, load_groups):
        span = _resolve(load_groups(net=NET_REGISTRY, x=self.GROUPS))["span.x"]
        assert span.attribute("net.b").brief == "Local b."
        lineage = _lineage(span, "net.b")
        assert lineage.source_group == "attributes.net"
        assert lineage.locally_overridden_fields == {"brief"}

    def test_include_constraint_not_kept_in_output(self, load_groups):
        span = _resolve(load_groups(net=NET_REGISTRY, x=self.GROUPS))["span.x"]
        assert span.constraints is None


# ---------------------------------------------------------------------------
# Failure modes
# ---------------------------------------------------------------------------


class TestUnresolved:
    def test_cycle_reports_both_groups(self, load_groups):
        groups = load_groups(
            net=NET_REGISTRY,
            cycle="""\
                groups:
                  - id: A
                    type: attribute_group
                    extends: B
                    attributes:
                      - ref: net.a
                  - id: B
                    type: attribute_group
                    extends: A
                    attributes:
                      - ref: net.b
            """,
        )
        with pytest.raises(UnresolvedReferenceError) as exc_info:
            _resolve(groups)
        err = exc_info.value
        assert err.group_ids == {"A", "B"}
        assert {(r.group_id, r.kind, r.target) for r in err.references} == {
            ("A", ReferenceKind.EXTENDS, "B"),
            ("B", ReferenceKind.EXTENDS, "A"),
        }

    def test_self_extends(self, load_groups):
        groups = load_groups(
            net=NET_REGISTRY,
            loop="""\
                groups:
                  - id: self
                    type: attribute_group
                    extends: self
            """,
        )
        with pytest.raises(UnresolvedReferenceError, match="unresolved extends 'self'"):
            _resolve(groups)

    def test_every_dangling_pointer_reported(self, load_groups):
        groups = load_groups(
            net=NET_REGISTRY,
            broken="""\
                groups:
                  - id: g.ref
                    type: attribute_group
                    attributes:
                      - ref: net.a
                      - ref: missing.attr
                  - id: g.extends
                    type: attribute_group
                    extends: missing.group
                  - id: g.include
                    type: attribute_group
                    attributes:
                      - include: missing.include
            """,
        )
        with pytest.raises(UnresolvedReferenceError) as exc_info:
            _resolve(groups)
        refs = exc_info.value.references
        assert [(r.group_id, r.kind, r.target, r.provenance) for r in refs] == [
            ("g.ref", ReferenceKind.REF, "missing.attr", "broken.yaml"),
            ("g.extends", ReferenceKind.EXTENDS, "missing.group", "broken.yaml"),
            ("g.include", ReferenceKind.INCLUDE, "missing.include", "broken.yaml"),
        ]

    def test_ref_to_non_registry_attribute_dangles(self, load_groups):
        groups = load_groups(
            spans="""\
                groups:
                  - id: span.a
                    type: span
                    span_kind: client
                    attributes:
                      - id: a.local
                        type: int
                        brief: Local.
                  - id: span.b
                    type: span
                    span_kind: client
                    attributes:
                      - ref: a.local
            """
        )
        with pytest.raises(UnresolvedReferenceError) as exc_info:
            _resolve(groups)
        assert exc_info.value.group_ids == {"span.b"}

    def test_to_dict(self, load_groups):
        groups = load_groups(
            x="""\
                groups:
                  - id: g
                    type: attribute_group
                    attributes:
                      - ref: nope
            """
        )
        with pytest.raises(UnresolvedReferenceError) as exc_info:
            _resolve(groups)
        assert exc_info.value.to_dict() == {
            "error": "UnresolvedReferenceError",
            "references": [
                {"kind": "ref", "group_id": "g", "target": "nope", "provenance": "x.yaml"}
            ],
        }


# ---------------------------------------------------------------------------
# Properties
# ---------------------------------------------------------------------------


class TestProperties:
    def test_lineage_partitions_present_fields(self, sample_groups):
        for group in _resolve(sample_groups).values():
            for name, lineage in group.lineage.attributes.items():
                attr = group.attribute(name)
                assert lineage.is_consistent(attr.present_fields()), (group.id, name)

    def test_no_pointer_fields_in_output(self, sample_groups):
        for group in _resolve(sample_groups).values():
            for attr in group.attributes:
                dumped = attr.model_dump()
                assert "ref" not in dumped
                assert "include" not in dumped

    def test_resolving_resolved_output_is_a_no_op(self, sample_groups):
        emitter = ResolvedSchemaEmitter()
        first = ReferenceResolver(CatalogBuilder().build(sample_groups)).resolve(sample_groups)
        first_text = emitter.to_json(emitter.build(first, registry_url="https://example.com"))

        reloaded = ResolvedRegistryLoader().load_from_string(first_text, source="resolved.json")
        resolver = ReferenceResolver(CatalogBuilder().build_from_resolved(reloaded.groups))
        second = resolver.resolve_resolved(reloaded.groups)
        second_text = emitter.to_json(emitter.build(second, registry_url="https://example.com"))

        assert second_text == first_text
        assert resolver.counters.total == 0
        assert resolver.counters.passes == 1


# ---------------------------------------------------------------------------
# Working state
# ---------------------------------------------------------------------------


def _attr(name: str, **kwargs) -> ResolvedAttribute:
    return ResolvedAttribute(name=name, type="string", brief=f"{name} brief", **kwargs)


def _working(slots: list[AttributeSlot]) -> WorkingGroup:
    header = ResolvedGroup.model_validate(
        {"id": "child", "type": "attribute_group", "lineage": {"source_file": "c.yaml"}}
    )
    return WorkingGroup(header=header, provenance="c.yaml", slots=slots)


class TestWorkingGroup:
    def test_states(self):
        group = _working([AttributeSlot(name="a", overrides={})])
        assert group.state == ResolutionState.UNRESOLVED
        group.progressed = True
        assert group.state == ResolutionState.PARTIALLY_RESOLVED
        group.slots[0].attribute = _attr("a")
        assert group.state == ResolutionState.RESOLVED

    def test_local_definition_beats_parent_attribute(self):
        local = _attr("a", note="local")
        group = _working([AttributeSlot(name="a", attribute=local)])
        group.merge([_attr("p"), _attr("a", note="parent")], "parent", ResolutionMode.EXTENDS, 0)
        assert [s.name for s in group.slots] == ["p", "a"]
        assert group.slots[1].attribute.note == "local"
        assert group.slots[1].lineage is None

    def test_pending_ref_takes_parent_position(self):
        group = _working(
            [
                AttributeSlot(name="own", attribute=_attr("own")),
                AttributeSlot(name="a", overrides={"note": "mine"}),
            ]
        )
        group.merge([_attr("a"), _attr("b")], "parent", ResolutionMode.EXTENDS, 0)
        assert [s.name for s in group.slots] == ["a", "b", "own"]
        merged = group.slots[0]
        assert merged.attribute.note == "mine"
        assert merged.lineage.locally_overridden_fields == {"note"}
        assert merged.lineage.inherited_fields == {"type", "brief", "requirement_level"}

    def test_first_inherited_attribute_wins(self):
        group = _working([])
        group.merge([_attr("a", note="first")], "one", ResolutionMode.INCLUDE, 0)
        group.merge([_attr("a", note="second")], "two", ResolutionMode.INCLUDE, 1)
        assert len(group.slots) == 1
        assert group.slots[0].attribute.note == "first"
        assert group.slots[0].lineage.source_group == "one"

    def test_finish_clears_extends(self):
        group = _working([AttributeSlot(name="a", attribute=_attr("a"))])
        group.header.extends = "parent"
        resolved = group.finish()
        assert resolved.extends is None
        assert resolved.attribute_names() == ["a"]
