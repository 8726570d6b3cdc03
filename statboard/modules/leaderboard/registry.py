"""
Metric registry: the catalog of rankable fields per entity type.

Purpose
-------
Hold every `MetricDefinition`, keyed by `(entity_type, field_key)`, and
answer the two questions the engine asks: "what is this metric?" and
"which fields of this type are ranked?".

Responsibilities
----------------
- Register definitions and reject duplicates
- Resolve leaderboard definitions (raising UnknownMetric for display-only or
  missing fields) and display definitions (any registered field)
- Build a registry from a YAML-shaped catalog mapping
- Check that every `additional_fields` entry resolves to a definition

Catalog Shape
-------------
    leaderboards:
      Player:
        tntgames.wins:
          name: TNT Games Wins
          field_name: Wins
          formatter: integer
          additional_fields: [tntgames.coins]

Design Notes
------------
- Populated at startup, read-only afterwards; concurrent reads need no lock
- Registration order is kept; it is the default field order for writes
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Tuple, Type

from statboard.core.config import ConfigManager
from statboard.core.config.errors import ConfigValidationError
from statboard.core.logging.logger import get_logger
from statboard.core.redis.sorted_set import SortOrder
from statboard.modules.leaderboard.exceptions import UnknownMetric
from statboard.modules.leaderboard.formatters import get_formatter
from statboard.modules.leaderboard.models import MetricDefinition

logger = get_logger(__name__)

__all__ = ["MetricRegistry", "build_registry"]

_CATALOG_KEYS = frozenset(
    {
        "name",
        "field_name",
        "sort",
        "formatter",
        "hidden",
        "additional_fields",
        "extra_display",
        "leaderboard",
    }
)


class MetricRegistry:
    """In-memory catalog of metric definitions."""

    def __init__(self, definitions: Iterable[MetricDefinition] = ()) -> None:
        self._definitions: Dict[Tuple[str, str], MetricDefinition] = {}
        for definition in definitions:
            self.register(definition)
        if self._definitions:
            self.validate()

    # =========================================================================
    # REGISTRATION
    # =========================================================================

    def register(self, definition: MetricDefinition) -> MetricDefinition:
        """
        Add a definition.

        Raises:
            ConfigValidationError: If the (entity_type, field_key) pair exists
        """
        key = (definition.entity_type, definition.field_key)
        if key in self._definitions:
            raise ConfigValidationError(
                f"Duplicate metric definition for {definition.entity_type}.{definition.field_key}"
            )
        self._definitions[key] = definition
        return definition

    def validate(self) -> None:
        """
        Check cross-references between definitions.

        Raises:
            ConfigValidationError: If an additional field has no definition
        """
        for definition in self._definitions.values():
            for extra in definition.additional_fields:
                if (definition.entity_type, extra) not in self._definitions:
                    raise ConfigValidationError(
                        f"{definition.entity_type}.{definition.field_key} lists additional "
                        f"field '{extra}' which has no definition"
                    )

    # =========================================================================
    # LOOKUP
    # =========================================================================

    def get(self, entity_type: str, field_key: str) -> Optional[MetricDefinition]:
        return self._definitions.get((entity_type, field_key))

    def get_field(self, entity_type: str, field_key: str) -> MetricDefinition:
        """Any registered definition, display-only ones included."""
        definition = self.get(entity_type, field_key)
        if definition is None:
            raise UnknownMetric(entity_type, field_key)
        return definition

    def get_leaderboard_field(self, entity_type: str, field_key: str) -> MetricDefinition:
        """
        A rankable definition.

        Raises:
            UnknownMetric: If the field is missing or display-only
        """
        definition = self.get(entity_type, field_key)
        if definition is None or not definition.leaderboard:
            raise UnknownMetric(entity_type, field_key)
        return definition

    def leaderboard_fields(self, entity_type: str) -> List[str]:
        """Rankable field keys of `entity_type`, in registration order."""
        return [
            definition.field_key
            for (registered_type, _), definition in self._definitions.items()
            if registered_type == entity_type and definition.leaderboard
        ]

    def entity_types(self) -> List[str]:
        return list(dict.fromkeys(entity_type for entity_type, _ in self._definitions))

    def __len__(self) -> int:
        return len(self._definitions)

    def __contains__(self, key: object) -> bool:
        return key in self._definitions

    def __iter__(self) -> Iterator[MetricDefinition]:
        return iter(self._definitions.values())

    # =========================================================================
    # CATALOG LOADING
    # =========================================================================

    @classmethod
    def load_catalog(cls: Type["MetricRegistry"], catalog: Mapping[str, Any]) -> "MetricRegistry":
        """
        Build a registry from `{entity_type: {field_key: entry}}`.

        Raises:
            ConfigValidationError: On malformed entries, unknown keys, unknown
                sort orders or formatter names, or dangling additional fields
        """
        if not isinstance(catalog, Mapping):
            raise ConfigValidationError(
                f"Leaderboard catalog must be a mapping, got {type(catalog).__name__}"
            )

        registry = cls()
        for entity_type, fields in catalog.items():
            if not isinstance(fields, Mapping):
                raise ConfigValidationError(
                    f"Catalog entry for {entity_type} must map field keys to definitions"
                )
            for field_key, entry in fields.items():
                registry.register(_definition_from_entry(str(entity_type), str(field_key), entry))

        registry.validate()

        logger.info(
            "Leaderboard catalog loaded",
            extra={
                "entity_types": registry.entity_types(),
                "definition_count": len(registry),
            },
        )
        return registry


def _definition_from_entry(entity_type: str, field_key: str, entry: Any) -> MetricDefinition:
    where = f"{entity_type}.{field_key}"
    if not isinstance(entry, Mapping):
        raise ConfigValidationError(f"Catalog entry {where} must be a mapping")

    unknown = set(entry) - _CATALOG_KEYS
    if unknown:
        raise ConfigValidationError(f"Catalog entry {where} has unknown keys: {sorted(unknown)}")

    name = entry.get("name")
    if not isinstance(name, str) or not name.strip():
        raise ConfigValidationError(f"Catalog entry {where} needs a non-empty 'name'")

    try:
        sort = SortOrder.from_string(entry.get("sort", SortOrder.DESC))
        formatter = get_formatter(entry.get("formatter"))
    except (KeyError, ValueError) as exc:
        raise ConfigValidationError(f"Catalog entry {where}: {exc}") from exc

    additional = entry.get("additional_fields") or ()
    if isinstance(additional, str) or not isinstance(additional, (list, tuple)):
        raise ConfigValidationError(f"Catalog entry {where}: additional_fields must be a list")

    return MetricDefinition(
        entity_type=entity_type,
        field_key=field_key,
        name=name,
        field_name=str(entry.get("field_name") or name),
        sort=sort,
        formatter=formatter,
        hidden=bool(entry.get("hidden", False)),
        additional_fields=tuple(str(key) for key in additional),
        extra_display=entry.get("extra_display"),
        leaderboard=bool(entry.get("leaderboard", True)),
    )


def build_registry(config_key: str = "leaderboards") -> MetricRegistry:
    """Registry built from the catalog under `config_key` in ConfigManager."""
    return MetricRegistry.load_catalog(ConfigManager.get(config_key, {}))
