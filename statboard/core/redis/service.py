"""
RedisService: async Redis infrastructure for Statboard

Purpose
-------
Own the process-wide Redis connection pool and the resilience layer shared
by every store client, and expose health and status snapshots.

Responsibilities
----------------
- Initialize and manage a singleton `redis.asyncio` client
- Hold the shared RedisResilience instance
- Hand out `RedisSortedSetStore` instances bound to the shared client
- Health check via PING, recorded in RedisMetrics
- Graceful shutdown

Non-Responsibilities
--------------------
- Leaderboard logic of any kind
- Key naming

Configuration
-------------
Static (environment, via Config):
- REDIS_URL, REDIS_MAX_CONNECTIONS, REDIS_SOCKET_TIMEOUT
- LEADERBOARD_TIMEOUT_SECONDS (default deadline for store clients)

Architecture Notes
------------------
- Initialization is idempotent and guarded by an asyncio.Lock
- `retry_on_timeout=False`: retries belong to RedisResilience only
"""

from __future__ import annotations

import asyncio
import time
from typing import Any, Optional

from redis.asyncio.client import Redis as AsyncRedis  # type: ignore[misc]
from redis.exceptions import RedisError

from statboard.core.config.config import Config
from statboard.core.logging.logger import get_logger
from statboard.core.redis.metrics import RedisMetrics
from statboard.core.redis.resilience import RedisResilience
from statboard.core.redis.sorted_set import RedisSortedSetStore

logger = get_logger(__name__)


class RedisService:
    """
    Singleton-style async Redis infrastructure service.

    All members are class-level; call `await RedisService.initialize()` once
    at startup and `await RedisService.shutdown()` on exit.
    """

    _client: Optional[AsyncRedis] = None
    _resilience: Optional[RedisResilience] = None
    _init_lock: asyncio.Lock = asyncio.Lock()
    _is_healthy: bool = False

    # ═══════════════════════════════════════════════════════════════════════
    # LIFECYCLE MANAGEMENT
    # ═══════════════════════════════════════════════════════════════════════

    @classmethod
    async def initialize(cls, url: Optional[str] = None) -> None:
        """
        Initialize the singleton Redis client and resilience layer.

        Parameters
        ----------
        url : Optional[str]
            Override for `Config.REDIS_URL` (tests point this at a container).

        Raises
        ------
        RuntimeError
            If the connection cannot be established.
        """
        if cls._client is not None:
            logger.debug("RedisService already initialized, skipping")
            return

        async with cls._init_lock:
            if cls._client is not None:
                return

            target_url = url or Config.REDIS_URL
            url_scheme = target_url.split("://")[0] if "://" in target_url else "unknown"
            start_time = time.monotonic()
            client: Optional[AsyncRedis] = None

            try:
                client = AsyncRedis.from_url(
                    target_url,
                    socket_timeout=Config.REDIS_SOCKET_TIMEOUT,
                    encoding="utf-8",
                    decode_responses=True,
                    max_connections=Config.REDIS_MAX_CONNECTIONS,
                    retry_on_timeout=False,
                    health_check_interval=30,
                )
                await client.ping()  # type: ignore[misc]
            except (RedisError, OSError) as exc:
                if client is not None:
                    await client.aclose()

                cls._is_healthy = False
                logger.critical(
                    "Failed to initialize RedisService",
                    extra={
                        "error": str(exc),
                        "error_type": type(exc).__name__,
                        "url_scheme": url_scheme,
                    },
                    exc_info=True,
                )
                raise RuntimeError(f"Failed to initialize RedisService: {exc}") from exc

            cls._client = client
            cls._resilience = RedisResilience()
            cls._is_healthy = True

            logger.info(
                "RedisService initialized successfully",
                extra={
                    "url_scheme": url_scheme,
                    "socket_timeout_seconds": Config.REDIS_SOCKET_TIMEOUT,
                    "max_connections": Config.REDIS_MAX_CONNECTIONS,
                    "initialization_time_ms": round((time.monotonic() - start_time) * 1000, 2),
                },
            )

    @classmethod
    async def shutdown(cls) -> None:
        """Close the Redis client. Safe to call even if not initialized."""
        if cls._client is None:
            logger.debug("RedisService not initialized, nothing to shutdown")
            return

        client = cls._client
        cls._client = None
        cls._resilience = None
        cls._is_healthy = False

        try:
            await client.aclose()
        except (RedisError, OSError) as exc:
            logger.error(
                "Error during RedisService shutdown",
                extra={"error": str(exc), "error_type": type(exc).__name__},
                exc_info=True,
            )
            return

        logger.info("RedisService shutdown complete")

    # ═══════════════════════════════════════════════════════════════════════
    # HEALTH & STATUS
    # ═══════════════════════════════════════════════════════════════════════

    @classmethod
    async def health_check(cls) -> bool:
        """Verify Redis connectivity via PING."""
        if cls._client is None:
            logger.warning("Health check failed: RedisService not initialized")
            cls._is_healthy = False
            return False

        start_time = time.monotonic()
        try:
            pong = await cls._client.ping()  # type: ignore[misc]
        except (RedisError, OSError) as exc:
            latency_ms = (time.monotonic() - start_time) * 1000
            RedisMetrics.record_health_check(False, latency_ms)
            cls._is_healthy = False
            logger.error(
                "Redis health check failed",
                extra={"error": str(exc), "error_type": type(exc).__name__},
            )
            return False

        latency_ms = (time.monotonic() - start_time) * 1000
        cls._is_healthy = bool(pong)
        RedisMetrics.record_health_check(cls._is_healthy, latency_ms)

        if cls._is_healthy:
            logger.debug("Redis health check passed", extra={"latency_ms": round(latency_ms, 2)})
        else:
            logger.warning("Redis health check failed: PING returned False")
        return cls._is_healthy

    @classmethod
    def is_healthy(cls) -> bool:
        """Return cached health status without performing I/O."""
        return cls._is_healthy

    @classmethod
    def get_status(cls) -> dict[str, Any]:
        return {
            "initialized": cls._client is not None,
            "healthy": cls._is_healthy,
            "resilience": cls._resilience.get_status() if cls._resilience else None,
            "metrics": RedisMetrics.get_summary(),
        }

    # ═══════════════════════════════════════════════════════════════════════
    # CLIENT & UTILITIES ACCESS
    # ═══════════════════════════════════════════════════════════════════════

    @classmethod
    def client(cls) -> AsyncRedis:
        """
        Return the singleton Redis client.

        Raises
        ------
        RuntimeError
            If RedisService has not been initialized.
        """
        if cls._client is None:
            raise RuntimeError(
                "RedisService not initialized. "
                "Call `await RedisService.initialize()` first."
            )
        return cls._client

    @classmethod
    def get_resilience(cls) -> RedisResilience:
        if cls._resilience is None:
            raise RuntimeError("RedisService resilience layer not initialized")
        return cls._resilience

    @classmethod
    def sorted_set_store(cls, default_timeout: Optional[float] = None) -> RedisSortedSetStore:
        """Ordered-set store bound to the shared client and resilience layer."""
        return RedisSortedSetStore(
            cls.client(),
            cls.get_resilience(),
            default_timeout=(
                default_timeout if default_timeout is not None else Config.LEADERBOARD_TIMEOUT_SECONDS
            ),
        )
