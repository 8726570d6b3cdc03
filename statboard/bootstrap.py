"""
Statboard - Engine Bootstrap
============================

Startup and shutdown for a process embedding the leaderboard engine.

Startup order:
    1. Logging (idempotent; already up after import)
    2. YAML config defaults (`ConfigManager`)
    3. Redis connection (`RedisService`)
    4. Metric catalog and `LeaderboardService.from_redis`

Shutdown closes Redis first and stops logging last, so every shutdown
line still reaches the handlers.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Optional

from statboard.core.config import Config, ConfigManager
from statboard.core.logging.logger import (
    get_logger,
    get_logging_health,
    setup_logging,
    shutdown_logging,
)
from statboard.core.redis.service import RedisService
from statboard.modules.leaderboard.registry import build_registry
from statboard.modules.leaderboard.service import LeaderboardService

logger = get_logger(__name__)

__all__ = ["startup", "shutdown", "get_health"]


async def startup(
    redis_url: Optional[str] = None, config_dir: Optional[Path] = None
) -> LeaderboardService:
    """
    Bring up infrastructure and return a Redis-backed engine.

    Raises:
        ConfigError: If the YAML config or the catalog is invalid
        RuntimeError: If Redis cannot be reached
    """
    setup_logging()
    logger.info("Statboard startup", extra={"environment": Config.ENVIRONMENT})

    try:
        ConfigManager.initialize(config_dir)
        registry = build_registry()
    except Exception as exc:
        logger.critical(
            "Configuration failed to load",
            extra={"error": str(exc), "error_type": type(exc).__name__},
            exc_info=True,
        )
        raise

    await RedisService.initialize(url=redis_url)

    service = LeaderboardService.from_redis(registry)
    logger.info(
        "Statboard ready",
        extra={"entity_types": registry.entity_types(), "definition_count": len(registry)},
    )
    return service


async def shutdown() -> None:
    """Close Redis, then stop the logging listener. Safe to call twice."""
    logger.info("Statboard shutdown")
    await RedisService.shutdown()
    shutdown_logging()


def get_health() -> Dict[str, Any]:
    """Cached health of Redis and the logging pipeline; performs no I/O."""
    return {
        "redis": RedisService.get_status(),
        "logging": get_logging_health().to_dict(),
    }
