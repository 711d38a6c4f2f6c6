"""
Generic base document loader with per-path caching and strict validation.

Provides ``BaseDocumentLoader[T]``, the base class of the registry source
loader and the resolved-registry loader.  Centralises:

- Per-path caching via class-level dict (each subclass gets its own)
- File existence checks
- YAML or JSON parsing with mapping-root validation
- Pydantic ``model_validate`` dispatch
- Conversion of every failure into a ``LoadError`` naming the file

Subclasses set ``_model_class`` and optionally override ``_check()`` for
document-level rules and ``_log_loaded()`` for domain-specific debug logging.

Usage::

    from registrycore.registry._loader_base import BaseDocumentLoader
    from registrycore.registry.schema import RegistryFile

    class RegistryLoader(BaseDocumentLoader[RegistryFile]):
        _model_class = RegistryFile
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, ClassVar, Generic, TypeVar

import yaml
from pydantic import BaseModel, ValidationError

from registrycore.registry.errors import LoadError

T = TypeVar("T", bound=BaseModel)


def format_validation_error(exc: ValidationError) -> str:
    """Flatten a pydantic error into ``loc: message`` items."""
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err["loc"]) or "<root>"
        parts.append(f"{loc}: {err['msg']}")
    return "; ".join(parts)


class BaseDocumentLoader(Generic[T]):
    """Generic base for YAML/JSON document loaders with per-path caching.

    Subclasses must set ``_model_class`` to the Pydantic model used
    for validation.
    """

    _model_class: type[T]  # Set by each subclass
    _cache: ClassVar[dict[str, BaseModel]] = {}
    _logger: ClassVar[logging.Logger]

    def __init_subclass__(cls, **kwargs: object) -> None:
        super().__init_subclass__(**kwargs)
        # Each subclass gets its own cache to avoid cross-model collisions.
        cls._cache = {}
        cls._logger = logging.getLogger(cls.__module__)

    @classmethod
    def clear_cache(cls) -> None:
        """Clear the document cache (useful in tests)."""
        cls._cache.clear()

    def load(self, path: Path) -> T:
        """Load a document from a YAML or JSON file.

        Args:
            path: Path to the document. ``.json`` files are parsed as JSON,
                anything else as YAML.

        Returns:
            Validated document model instance.

        Raises:
            LoadError: If the file is missing or unreadable, is not valid
                YAML/JSON, has a non-mapping root, or fails validation.
        """
        path = Path(path)
        key = str(path.resolve())
        cached = self._cache.get(key)
        if cached is not None:
            self._logger.debug("%s cache hit: %s", type(self).__name__, key)
            return cached  # type: ignore[return-value]

        if not path.is_file():
            raise LoadError(str(path), "file not found")

        try:
            text = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise LoadError(str(path), f"cannot read file: {exc}") from exc

        document = self._parse(text, str(path))
        self._cache[key] = document
        self._log_loaded(document, key)
        return document

    def load_bytes(self, data: bytes, source: str) -> T:
        """Load a document from an in-memory buffer (never cached).

        Args:
            data: UTF-8 encoded document.
            source: Name used as provenance; a ``.json`` suffix selects
                the JSON parser.
        """
        try:
            text = data.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise LoadError(source, f"not valid UTF-8: {exc}") from exc
        return self._parse(text, source)

    def load_from_string(self, text: str, source: str = "<string>") -> T:
        """Load a document from a string (convenience for testing)."""
        return self._parse(text, source)

    def _parse(self, text: str, source: str) -> T:
        raw: Any
        try:
            if source.endswith(".json"):
                raw = json.loads(text)
            else:
                raw = yaml.safe_load(text)
        except (yaml.YAMLError, json.JSONDecodeError) as exc:
            raise LoadError(source, f"syntax error: {exc}") from exc

        if not isinstance(raw, dict):
            raise LoadError(
                source,
                f"expected a mapping at the document root, got {type(raw).__name__}",
            )

        try:
            document = self._model_class.model_validate(raw)
        except ValidationError as exc:
            raise LoadError(source, format_validation_error(exc)) from exc

        self._check(document, source)
        return document

    def _check(self, document: T, source: str) -> None:
        """Hook for document-level rules beyond the schema.

        Raise ``LoadError`` to reject the document.
        """

    def _log_loaded(self, document: T, key: str) -> None:
        """Hook for subclass-specific debug logging after a load."""
        self._logger.debug("Loaded %s from %s", type(self).__name__, key)
