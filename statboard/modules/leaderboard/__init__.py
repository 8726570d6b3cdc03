"""
Leaderboard engine.

Keeps one global ranking per metric in Redis sorted sets and answers page,
position, free-text and rank queries against it.
"""

from statboard.modules.leaderboard.constants import PAGE_SIZE, RESET_MARKER, ranking_key
from statboard.modules.leaderboard.exceptions import (
    InputNotFound,
    InvalidLeaderboardQuery,
    LeaderboardError,
    ResolverMismatch,
    ResolverUnavailable,
    StoreUnavailable,
    UnknownMetric,
)
from statboard.modules.leaderboard.formatters import FORMATTERS, get_formatter
from statboard.modules.leaderboard.models import (
    AddressingMode,
    DisplayRecord,
    FieldRank,
    LeaderboardPage,
    LeaderboardRow,
    MetricDefinition,
    RankWindow,
)
from statboard.modules.leaderboard.reader import RankingReader, compute_window
from statboard.modules.leaderboard.registry import MetricRegistry, build_registry
from statboard.modules.leaderboard.resolvers import (
    AuxiliaryDataResolver,
    EntityLookup,
    InputResolver,
    RankedInputResolver,
    RedisHashDisplayResolver,
    RedisNameIndexLookup,
)
from statboard.modules.leaderboard.service import LeaderboardService
from statboard.modules.leaderboard.writer import RankingWriter, WriteAction, classify_value

__all__ = [
    "PAGE_SIZE",
    "RESET_MARKER",
    "ranking_key",
    "LeaderboardError",
    "UnknownMetric",
    "InvalidLeaderboardQuery",
    "InputNotFound",
    "ResolverMismatch",
    "ResolverUnavailable",
    "StoreUnavailable",
    "FORMATTERS",
    "get_formatter",
    "AddressingMode",
    "DisplayRecord",
    "FieldRank",
    "LeaderboardPage",
    "LeaderboardRow",
    "MetricDefinition",
    "RankWindow",
    "RankingReader",
    "compute_window",
    "MetricRegistry",
    "build_registry",
    "AuxiliaryDataResolver",
    "EntityLookup",
    "InputResolver",
    "RankedInputResolver",
    "RedisHashDisplayResolver",
    "RedisNameIndexLookup",
    "LeaderboardService",
    "RankingWriter",
    "WriteAction",
    "classify_value",
]
