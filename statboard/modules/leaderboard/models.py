"""
Leaderboard value types.

Definitions are immutable and built once at startup; pages, rows and ranks
are built fresh per query and never persisted.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from statboard.core.redis.sorted_set import SortOrder
from statboard.modules.leaderboard.formatters import Formatter


class AddressingMode(str, Enum):
    """How a leaderboard query picks its window."""

    PAGE = "page"  # 0-based page index
    INPUT = "input"  # free text resolved to a rank
    POSITION = "position"  # 1-based rank


@dataclass(frozen=True)
class MetricDefinition:
    """
    Metadata for one rankable (or display-only) field of an entity type.

    `leaderboard=False` marks a display-only definition: it can be listed in
    another metric's `additional_fields` but is never ranked.
    """

    entity_type: str
    field_key: str
    name: str
    field_name: str
    sort: SortOrder = SortOrder.DESC
    formatter: Optional[Formatter] = field(default=None, compare=False)
    hidden: bool = False
    additional_fields: Tuple[str, ...] = ()
    extra_display: Optional[str] = None
    leaderboard: bool = True

    @property
    def display_fields(self) -> List[str]:
        """Field keys the auxiliary resolver must supply for each row."""
        keys = list(self.additional_fields)
        if self.extra_display:
            keys.append(self.extra_display)
        return keys

    def format(self, value: Any) -> Any:
        if self.formatter is None or value is None:
            return value
        return self.formatter(value)


@dataclass(frozen=True)
class RankWindow:
    """Half-open rank window `[top, bottom)`; `highlight` is a 0-based rank or None."""

    top: int
    bottom: int
    highlight: Optional[int] = None

    @property
    def end_inclusive(self) -> int:
        return self.bottom - 1


@dataclass(frozen=True)
class DisplayRecord:
    """
    Auxiliary display data for one entity.

    `entity_id` is optional; when a resolver sets it, the reader checks it
    against the id it asked for.
    """

    name: str
    fields: Dict[str, Any] = field(default_factory=dict)
    entity_id: Optional[str] = None


@dataclass
class LeaderboardRow:
    id: str
    fields: List[Any]
    name: str
    position: int
    highlight: bool = False


@dataclass
class LeaderboardPage:
    name: str
    fields: List[str]
    data: List[LeaderboardRow]
    page: int

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class FieldRank:
    """1-based rank of an entity for one field; 0 means unranked."""

    field: str
    rank: int

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
