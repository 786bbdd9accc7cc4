from __future__ import annotations

import asyncio
import logging
from functools import lru_cache

import asyncpg  # type: ignore[import-untyped]

from app.core.config import get_settings
from app.services.errors import RepositoryUnavailableError

logger = logging.getLogger(__name__)


class Database:
    """Process-owned asyncpg pool, created lazily on first use.

    Repositories receive an instance at construction and only borrow
    connections from it; closing the pool is the application's job.
    """

    def __init__(
        self,
        database_url: str | None,
        min_pool_size: int,
        max_pool_size: int,
        command_timeout_seconds: float | None = None,
    ) -> None:
        self.database_url = database_url
        self.min_pool_size = min_pool_size
        self.max_pool_size = max_pool_size
        self.command_timeout_seconds = command_timeout_seconds
        self._pool: asyncpg.Pool | None = None
        self._pool_lock = asyncio.Lock()

    async def get_pool(self) -> asyncpg.Pool:
        if not self.database_url:
            raise RepositoryUnavailableError("LP_DATABASE_URL is required", operation="connect")

        if self._pool is not None:
            return self._pool

        async with self._pool_lock:
            if self._pool is not None:
                return self._pool
            try:
                self._pool = await asyncpg.create_pool(
                    dsn=self.database_url,
                    min_size=self.min_pool_size,
                    max_size=self.max_pool_size,
                    command_timeout=self.command_timeout_seconds,
                )
            except Exception as exc:  # pragma: no cover - depends on environment
                logger.warning("database pool creation failed error=%r", exc)
                raise RepositoryUnavailableError("database unavailable", operation="connect") from exc
            logger.info("database pool ready min_size=%s max_size=%s", self.min_pool_size, self.max_pool_size)
            return self._pool

    async def ping(self) -> None:
        pool = await self.get_pool()
        try:
            async with pool.acquire() as conn:
                await conn.fetchval("select 1")
        except (OSError, asyncio.TimeoutError, asyncpg.PostgresError, asyncpg.InterfaceError) as exc:
            logger.warning("database ping failed error=%r", exc)
            raise RepositoryUnavailableError("database unavailable", operation="ping") from exc

    async def close(self) -> None:
        if self._pool is not None:
            await self._pool.close()
            self._pool = None


@lru_cache
def get_database() -> Database:
    settings = get_settings()
    return Database(
        database_url=settings.database_url,
        min_pool_size=settings.database_pool_min_size,
        max_pool_size=settings.database_pool_max_size,
        command_timeout_seconds=settings.database_command_timeout_seconds,
    )
