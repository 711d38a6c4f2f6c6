"""Tests for the resolved schema emitter."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
import yaml

from registrycore.registry.catalog import CatalogBuilder
from registrycore.registry.emitter import ResolvedSchemaEmitter
from registrycore.registry.loader import ResolvedRegistryLoader
from registrycore.registry.resolver import ReferenceResolver
from registrycore.registry.types import OutputFormat


@pytest.fixture
def resolved(sample_groups):
    catalog = CatalogBuilder().build(sample_groups)
    return catalog, ReferenceResolver(catalog).resolve(sample_groups)


class TestResolvedSchemaEmitter:
    def test_group_and_attribute_order_kept(self, resolved):
        catalog, groups = resolved
        emitter = ResolvedSchemaEmitter()
        data = json.loads(emitter.to_json(emitter.build(groups, catalog)))
        assert [g["id"] for g in data["groups"]] == [
            "db.cassandra",
            "attributes.http.common",
            "attributes.http.server",
            "metric.http.server.request.duration",
            "registry.client",
            "registry.server",
            "registry.db",
        ]
        server = data["groups"][2]
        assert [a["name"] for a in server["attributes"]] == [
            "server.address",
            "server.port",
            "client.address",
        ]

    def test_nulls_omitted_and_lineage_sorted(self, resolved):
        catalog, groups = resolved
        emitter = ResolvedSchemaEmitter()
        data = emitter.to_dict(emitter.build(groups, catalog, registry_url="https://x"))
        assert data["registry_url"] == "https://x"
        assert "catalog" not in data

        server = data["groups"][2]
        assert "extends" not in server
        assert "note" not in server["attributes"][0]
        assert server["lineage"]["extends"] == "attributes.http.common"
        port = server["lineage"]["attributes"]["server.port"]
        assert port == {
            "source_group": "attributes.http.common",
            "resolution_mode": "extends",
            "inherited_fields": ["brief", "examples", "stability", "type"],
            "locally_overridden_fields": ["requirement_level"],
        }
        assert server["attributes"][1]["requirement_level"] == {
            "conditionally_required": "If not the default port."
        }

    def test_include_catalog(self, resolved):
        catalog, groups = resolved
        emitter = ResolvedSchemaEmitter(include_catalog=True)
        data = emitter.to_dict(emitter.build(groups, catalog))
        assert [a["name"] for a in data["catalog"]["attributes"]][-1] == (
            "db.cassandra.consistency_level"
        )
        assert [s["id"] for s in data["catalog"]["signals"]] == [
            "db.cassandra",
            "metric.http.server.request.duration",
        ]

    def test_yaml_keeps_field_order(self, resolved):
        catalog, groups = resolved
        emitter = ResolvedSchemaEmitter()
        text = emitter.render(emitter.build(groups, catalog), OutputFormat.YAML)
        data = yaml.safe_load(text)
        assert list(data) == ["registry_url", "groups"]
        assert list(data["groups"][0])[:3] == ["id", "type", "brief"]

    def test_build_copies_groups(self, resolved):
        catalog, groups = resolved
        registry = ResolvedSchemaEmitter().build(groups, catalog)
        registry.groups[0].attributes.clear()
        assert groups[0].attributes

    def test_emission_is_deterministic(self, sample_groups):
        emitter = ResolvedSchemaEmitter(include_catalog=True)
        texts = []
        for _ in range(2):
            catalog = CatalogBuilder().build(sample_groups)
            groups = ReferenceResolver(catalog).resolve(sample_groups)
            texts.append(emitter.to_json(emitter.build(groups, catalog)))
        assert texts[0] == texts[1]


class TestWrite:
    def test_format_from_suffix(self, tmp_path: Path, resolved):
        catalog, groups = resolved
        emitter = ResolvedSchemaEmitter()
        registry = emitter.build(groups, catalog)
        out = emitter.write(registry, tmp_path / "out" / "resolved.yaml")
        assert out.exists()
        assert yaml.safe_load(out.read_text())["groups"][0]["id"] == "db.cassandra"

    def test_explicit_format_wins(self, tmp_path: Path, resolved):
        catalog, groups = resolved
        emitter = ResolvedSchemaEmitter()
        out = emitter.write(emitter.build(groups, catalog), tmp_path / "resolved.txt", "json")
        assert json.loads(out.read_text())["groups"]

    def test_written_file_loads_back(self, tmp_path: Path, resolved):
        catalog, groups = resolved
        emitter = ResolvedSchemaEmitter(include_catalog=True)
        registry = emitter.build(groups, catalog, registry_url="https://x")
        out = emitter.write(registry, tmp_path / "resolved.json")
        loaded = ResolvedRegistryLoader().load(out)
        assert loaded == registry
