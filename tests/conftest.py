"""
Pytest configuration and fixtures for registrycore tests.
"""

from __future__ import annotations

import logging
import os
import textwrap
from io import StringIO
from typing import Callable, Dict, Generator, List

import pytest

from registrycore.config import reset_config
from registrycore.registry.loader import RegistryLoader, ResolvedRegistryLoader
from registrycore.registry.schema import GroupWithProvenance


# ============================================================================
# Environment Fixtures
# ============================================================================


@pytest.fixture(autouse=True)
def clean_state(monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    """Isolate each test from REGISTRYCORE_* settings and loader caches."""
    for key in list(os.environ):
        if key.startswith("REGISTRYCORE_"):
            monkeypatch.delenv(key, raising=False)
    reset_config()
    RegistryLoader.clear_cache()
    ResolvedRegistryLoader.clear_cache()

    yield

    reset_config()
    RegistryLoader.clear_cache()
    ResolvedRegistryLoader.clear_cache()


@pytest.fixture(autouse=True)
def restore_event_output() -> Generator[None, None, None]:
    """Undo CLI changes to the lifecycle event level and stream."""
    events_logger = logging.getLogger("registrycore.events")
    level = events_logger.level
    streams = [
        (h, h.stream) for h in events_logger.handlers if isinstance(h, logging.StreamHandler)
    ]

    yield

    events_logger.setLevel(level)
    for handler, stream in streams:
        handler.setStream(stream)


@pytest.fixture
def captured_logs() -> Generator[StringIO, None, None]:
    """Capture lifecycle event lines written on ``registrycore.events``."""
    output = StringIO()
    events_logger = logging.getLogger("registrycore.events")
    saved = list(events_logger.handlers)

    # Replace the default stderr handler with our test handler
    events_logger.handlers.clear()
    handler = logging.StreamHandler(output)
    handler.setFormatter(logging.Formatter("%(message)s"))
    events_logger.addHandler(handler)

    yield output

    events_logger.handlers[:] = saved


# ============================================================================
# Registry Fixtures
# ============================================================================

REGISTRY_YAML = textwrap.dedent("""\
    groups:
      - id: registry.client
        type: attribute_group
        brief: Client attributes.
        attributes:
          - id: client.address
            type: string
            stability: stable
            brief: Client address.
            examples: ["client.example.com", "10.1.2.80"]
          - id: client.port
            type: int
            stability: stable
            brief: Client port number.
            examples: [65123]
      - id: registry.server
        type: attribute_group
        brief: Server attributes.
        attributes:
          - id: server.address
            type: string
            stability: stable
            brief: Server address.
            examples: ["example.com"]
          - id: server.port
            type: int
            stability: stable
            brief: Server port number.
            examples: [80, 8080]
      - id: registry.db
        type: attribute_group
        brief: Database attributes.
        prefix: db
        attributes:
          - id: system
            type:
              members:
                - id: cassandra
                  value: cassandra
                  brief: Apache Cassandra.
                  stability: stable
                - id: postgresql
                  value: postgresql
                  brief: PostgreSQL.
                  stability: stable
            stability: stable
            brief: The database management system.
          - id: cassandra.consistency_level
            type: string
            stability: development
            brief: The consistency level of the query.
            examples: ["all", "quorum"]
""")

HTTP_YAML = textwrap.dedent("""\
    groups:
      - id: attributes.http.common
        type: attribute_group
        brief: Common HTTP attributes.
        attributes:
          - ref: server.address
          - ref: server.port
      - id: attributes.http.server
        type: attribute_group
        brief: HTTP server attributes.
        extends: attributes.http.common
        attributes:
          - ref: server.port
            requirement_level:
              conditionally_required: If not the default port.
          - ref: client.address
      - id: metric.http.server.request.duration
        type: metric
        metric_name: http.server.request.duration
        instrument: histogram
        unit: s
        stability: stable
        brief: Duration of HTTP server requests.
        extends: attributes.http.server
""")

DB_YAML = textwrap.dedent("""\
    groups:
      - id: db.cassandra
        type: span
        span_kind: client
        stability: development
        brief: Cassandra client span.
        attributes:
          - ref: client.address
          - ref: db.system
            requirement_level: required
          - ref: db.cassandra.consistency_level
        constraints:
          - any_of:
              - db.cassandra.consistency_level
              - [server.address, server.port]
""")


@pytest.fixture
def sample_sources() -> Dict[str, bytes]:
    """A small registry split over three files, referencing forward."""
    return {
        "db.yaml": DB_YAML.encode(),
        "http.yaml": HTTP_YAML.encode(),
        "registry.yaml": REGISTRY_YAML.encode(),
    }


@pytest.fixture
def sample_groups(sample_sources: Dict[str, bytes]) -> List[GroupWithProvenance]:
    return RegistryLoader().load_sources(sample_sources)


@pytest.fixture
def load_groups() -> Callable[..., List[GroupWithProvenance]]:
    """Load inline YAML documents given as ``name=text`` keyword arguments.

    Each document gets ``<name>.yaml`` as provenance; order is kept.
    """

    def _load(**documents: str) -> List[GroupWithProvenance]:
        return RegistryLoader().load_sources(
            {f"{name}.yaml": textwrap.dedent(text).encode() for name, text in documents.items()}
        )

    return _load
