"""
Registry document loaders.

``RegistryLoader`` turns YAML/JSON registry files (or in-memory buffers) into
raw groups tagged with their provenance.  Loading is strict: a document that
fails the schema or the group structural rules aborts the run with a
``LoadError`` naming the file.  Quality findings that do not prevent
resolution are logged as warnings.

``ResolvedRegistryLoader`` reads back a previously emitted resolved registry.

Usage::

    from pathlib import Path
    from registrycore.registry.loader import RegistryLoader

    groups = RegistryLoader().load_paths([Path("model/")])
"""

from __future__ import annotations

import logging
from collections import Counter
from pathlib import Path
from typing import Iterable, Mapping, Union

from registrycore.registry._loader_base import BaseDocumentLoader
from registrycore.registry.errors import LoadError
from registrycore.registry.models import ResolvedRegistry
from registrycore.registry.schema import (
    GroupSpec,
    GroupWithProvenance,
    RegistryFile,
)
from registrycore.registry.types import GroupType

logger = logging.getLogger(__name__)

REGISTRY_SUFFIXES = (".yaml", ".yml", ".json")

_STRING_TYPES = ("string", "string[]")


# ---------------------------------------------------------------------------
# Group structural rules
# ---------------------------------------------------------------------------


def check_group_structure(group: GroupSpec) -> tuple[list[str], list[str]]:
    """Check one group against the rules the schema cannot express.

    Returns:
        ``(errors, warnings)``.  Any error rejects the enclosing document.
    """
    errors: list[str] = []
    warnings: list[str] = []

    if group.type == GroupType.SPAN:
        if group.span_kind is None:
            errors.append("span group requires 'span_kind'")
    else:
        if group.span_kind is not None:
            errors.append("'span_kind' is only allowed on span groups")
        if group.events:
            errors.append("'events' is only allowed on span groups")

    if group.type == GroupType.METRIC:
        for field in ("metric_name", "instrument", "unit"):
            if getattr(group, field) is None:
                errors.append(f"metric group requires '{field}'")

    if group.body is not None:
        if group.type != GroupType.EVENT:
            errors.append("'body' is only allowed on event groups")
        elif not group.name:
            errors.append("event group with a 'body' requires 'name'")

    if group.type not in (GroupType.METRIC, GroupType.EVENT):
        has_include = any(c.include is not None for c in group.constraints)
        if group.extends is None and not group.attributes and not has_include:
            errors.append("group must declare 'extends', 'attributes' or an include")

    ref_counts = Counter(r.ref for r in group.references())
    for ref, count in sorted(ref_counts.items()):
        if count > 1:
            errors.append(f"attribute '{ref}' is referenced {count} times")

    for attr in group.local_definitions():
        name = group.attribute_name(attr)
        if not attr.brief and attr.deprecated is None:
            errors.append(f"attribute '{name}' requires a 'brief' unless deprecated")
        if attr.stability is None:
            warnings.append(f"attribute '{name}' has no stability")
        if (
            isinstance(attr.type, str)
            and attr.type in _STRING_TYPES
            and attr.examples is None
            and attr.deprecated is None
        ):
            warnings.append(f"string attribute '{name}' has no examples")

    if group.type != GroupType.ATTRIBUTE_GROUP and group.stability is None:
        warnings.append(f"{group.type.value} group has no stability")

    return errors, warnings


def discover(paths: Iterable[Union[str, Path]]) -> list[Path]:
    """Expand paths into registry files.

    Directories are walked recursively in sorted order; files given
    explicitly are kept regardless of suffix.
    """
    found: list[Path] = []
    for raw in paths:
        path = Path(raw)
        if path.is_dir():
            found.extend(
                p
                for p in sorted(path.rglob("*"))
                if p.is_file() and p.suffix in REGISTRY_SUFFIXES
            )
        else:
            found.append(path)
    return found


# ---------------------------------------------------------------------------
# Loaders
# ---------------------------------------------------------------------------


class RegistryLoader(BaseDocumentLoader[RegistryFile]):
    """Loads and caches registry source documents."""

    _model_class = RegistryFile

    def _check(self, document: RegistryFile, source: str) -> None:
        problems: list[str] = []
        for group in document.groups:
            errors, warnings = check_group_structure(group)
            problems.extend(f"group '{group.id}': {e}" for e in errors)
            for warning in warnings:
                logger.warning("%s: group '%s': %s", source, group.id, warning)
        if problems:
            raise LoadError(source, "; ".join(problems))

    def _log_loaded(self, document: RegistryFile, key: str) -> None:
        logger.debug("Loaded registry file: %s (%d groups)", key, len(document.groups))

    def load_groups(self, path: Union[str, Path]) -> list[GroupWithProvenance]:
        """Load one file and tag its groups with the path as provenance."""
        document = self.load(Path(path))
        return _with_provenance(document, str(path))

    def load_paths(
        self, paths: Iterable[Union[str, Path]]
    ) -> list[GroupWithProvenance]:
        """Load every registry file under ``paths``, in discovery order.

        Raises:
            LoadError: At the first file that fails to load.
        """
        groups: list[GroupWithProvenance] = []
        files = discover(paths)
        for path in files:
            groups.extend(self.load_groups(path))
        logger.info("Loaded %d groups from %d files", len(groups), len(files))
        return groups

    def load_sources(self, sources: Mapping[str, bytes]) -> list[GroupWithProvenance]:
        """Load in-memory documents keyed by their provenance name."""
        groups: list[GroupWithProvenance] = []
        for source, data in sources.items():
            groups.extend(_with_provenance(self.load_bytes(data, source), source))
        logger.info("Loaded %d groups from %d buffers", len(groups), len(sources))
        return groups


class ResolvedRegistryLoader(BaseDocumentLoader[ResolvedRegistry]):
    """Loads a previously emitted resolved registry (JSON or YAML)."""

    _model_class = ResolvedRegistry

    def _log_loaded(self, document: ResolvedRegistry, key: str) -> None:
        logger.debug(
            "Loaded resolved registry: %s (%d groups)", key, len(document.groups)
        )


def _with_provenance(document: RegistryFile, source: str) -> list[GroupWithProvenance]:
    return [GroupWithProvenance(spec=g, provenance=source) for g in document.groups]

