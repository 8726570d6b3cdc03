"""
Operation tracing for ordered-set store traffic.

Purpose
-------
Time a logical store operation, emit its outcome to RedisMetrics and write
a structured debug log. The active LogContext (entity type, field, mode,
correlation id) is attached to the log record by the logging subsystem, so
every traced call is attributable to the leaderboard request that made it.

Usage
-----
>>> async with traced_operation("ZREVRANGE", "player.wins [0, 9]") as trace:
...     rows = await client.zrevrange("player.wins", 0, 9, withscores=True)
"""

from __future__ import annotations

import time
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncGenerator, Dict, Optional

from statboard.core.logging.logger import get_logger
from statboard.core.redis.metrics import RedisMetrics

logger = get_logger(__name__)

__all__ = ["TraceContext", "traced_operation"]


@dataclass
class TraceContext:
    """Outcome of one traced operation, filled in on exit."""

    operation: str
    description: str
    duration_ms: float = 0.0
    success: bool = False
    error_type: Optional[str] = None
    extra_tags: Optional[Dict[str, Any]] = None


@asynccontextmanager
async def traced_operation(
    operation: str,
    description: str,
    *,
    extra_tags: Optional[Dict[str, Any]] = None,
) -> AsyncGenerator[TraceContext, None]:
    """
    Time a store operation and emit metrics and a debug log.

    Parameters
    ----------
    operation : str
        Stable command identifier used as the metrics bucket (e.g. "BATCH").
    description : str
        Human-readable detail for the log line (e.g. the key and range).
    extra_tags : Optional[dict]
        Additional structured fields for the log record.

    Notes
    -----
    Exceptions are always re-raised after the outcome is recorded.
    """
    start = time.perf_counter()
    ctx = TraceContext(operation=operation, description=description, extra_tags=extra_tags)

    try:
        yield ctx
        ctx.success = True
    except BaseException as exc:
        ctx.error_type = type(exc).__name__
        raise
    finally:
        ctx.duration_ms = (time.perf_counter() - start) * 1000.0
        RedisMetrics.record_operation(ctx.operation, ctx.duration_ms, success=ctx.success)

        logger.debug(
            "Traced store operation",
            extra={
                "command": ctx.operation,
                "description": ctx.description,
                "duration_ms": round(ctx.duration_ms, 3),
                "success": ctx.success,
                "error_type": ctx.error_type,
                **(ctx.extra_tags or {}),
            },
        )
