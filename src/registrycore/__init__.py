"""
registrycore - Semantic convention registry resolution.

Resolves a distributed, reference-heavy registry of telemetry conventions
(attributes, spans, events, metrics, entities) into a single
self-contained document with full lineage, ready for code generation,
documentation and policy checks.

Example usage:
    from registrycore.registry import RegistryPipeline

    registry = RegistryPipeline().resolve_paths(["model/"])
    for group in registry.groups:
        print(group.id, len(group.attributes))
"""

__version__ = "0.1.0"
