from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any

import asyncpg  # type: ignore[import-untyped]
from asyncpg import exceptions as pg_exc

from app.services.cursor import CursorCodec
from app.services.database import Database
from app.services.errors import (
    RepositoryConflictError,
    RepositoryError,
    RepositoryInternalError,
    RepositoryNotFoundError,
    RepositoryRollbackError,
    RepositoryUnavailableError,
    RepositoryValidationError,
)
from app.services.mapper import link_from_row, post_from_row
from app.services.records import Link, Post

logger = logging.getLogger(__name__)

UNAVAILABLE_ERRORS: tuple[type[BaseException], ...] = (
    OSError,
    asyncio.TimeoutError,
    pg_exc.PostgresConnectionError,
    pg_exc.CannotConnectNowError,
    pg_exc.TooManyConnectionsError,
)

POST_COLUMNS_SQL = """
  p.id::text as id,
  p.user_id::text as user_id,
  p.link_id::text as link_id,
  p.title,
  p.comment as body,
  p.created_by::text as created_by,
  p.created_at,
  p.updated_by::text as updated_by,
  p.updated_at
"""

SOURCE_HEADS_SUBQUERY_SQL = """
  (
    select string_agg(lsh.source_id::text, ',' order by lsh.source_id)
    from link_source_heads lsh
    where lsh.link_id = l.id
  )
"""

GET_POST_SQL = f"""
select
{POST_COLUMNS_SQL}
from posts p
where p.id = $1::uuid
"""

GET_LINK_SQL = f"""
select
  l.id::text as id,
  l.url,
  l.created_by::text as created_by,
  l.created_at,
  l.updated_by::text as updated_by,
  l.updated_at,
{SOURCE_HEADS_SUBQUERY_SQL} as source_head_ids
from links l
where {{predicate}}
"""

# Fixed predicates only; the looked-up value is always bound as $1.
LINK_PREDICATES = {
    "id": "l.id = $1::uuid",
    "url": "l.url = $1",
}

USER_POSTS_SQL = f"""
select
{POST_COLUMNS_SQL},
  l.id::text as l_id,
  l.url as l_url,
  l.created_by::text as l_created_by,
  l.created_at as l_created_at,
  l.updated_by::text as l_updated_by,
  l.updated_at as l_updated_at,
{SOURCE_HEADS_SUBQUERY_SQL} as l_source_head_ids
from posts p
join links l on l.id = p.link_id
where p.user_id = $1::uuid
"""

CREATE_POST_SQL = """
insert into posts (
  id,
  user_id,
  link_id,
  title,
  comment,
  created_by,
  created_at,
  updated_by,
  updated_at
)
values ($1::uuid, $2::uuid, $3::uuid, $4, $5, $6::uuid, $7, $8::uuid, $9)
"""

CREATE_LINK_SQL = """
insert into links (
  id,
  url,
  created_by,
  created_at,
  updated_by,
  updated_at
)
values ($1::uuid, $2, $3::uuid, $4, $5::uuid, $6)
"""

CREATE_LINK_SOURCE_HEAD_SQL = """
insert into link_source_heads (
  link_id,
  source_id
)
values ($1::uuid, $2::uuid)
"""


class PostgresPostStore:
    """Statements over ``posts``, ``links`` and ``link_source_heads``.

    Every call borrows its own pooled connection. Writes run inside a single
    transaction that is either committed or rolled back; driver exceptions are
    logged and re-raised as ``RepositoryError`` subclasses.
    """

    def __init__(self, database: Database, cursor_codec: CursorCodec) -> None:
        self._database = database
        self.cursor_codec = cursor_codec

    async def fetch_post(self, post_id: str) -> Post:
        params = {"post_id": post_id}
        row = await self._fetchrow("get_post", params, GET_POST_SQL, post_id)
        if row is None:
            raise RepositoryNotFoundError("post not found", operation="get_post", params=params)
        return post_from_row(row)

    async def fetch_link_by_id(self, link_id: str) -> Link:
        return await self._fetch_link("id", link_id)

    async def fetch_link_by_url(self, url: str) -> Link:
        return await self._fetch_link("url", url)

    async def fetch_user_posts(
        self,
        user_id: str,
        *,
        cursor: str | None,
        page_size: int,
    ) -> tuple[list[Post], list[Link]]:
        sql, args = self.cursor_codec.apply_to_query(USER_POSTS_SQL, [user_id], cursor=cursor, page_size=page_size)
        rows = await self._fetch("list_user_posts", {"user_id": user_id, "cursor": cursor}, sql, *args)
        posts = [post_from_row(row) for row in rows]
        links = [link_from_row(row, prefix="l_") for row in rows]
        return posts, links

    async def insert_post(self, post: Post) -> None:
        async def work(conn: asyncpg.Connection) -> None:
            await conn.execute(
                CREATE_POST_SQL,
                post.id,
                post.user_id,
                post.link_id,
                post.title,
                post.body,
                post.created_by,
                post.created_at,
                post.updated_by,
                post.updated_at,
            )

        await self._run_in_transaction("create_post", {"post_id": post.id, "link_id": post.link_id}, work)

    async def insert_link(self, link: Link) -> None:
        async def work(conn: asyncpg.Connection) -> None:
            await conn.execute(
                CREATE_LINK_SQL,
                link.id,
                link.url,
                link.created_by,
                link.created_at,
                link.updated_by,
                link.updated_at,
            )
            if not link.source_head_ids:
                return
            statement = await conn.prepare(CREATE_LINK_SOURCE_HEAD_SQL)
            await statement.executemany([(link.id, source_head_id) for source_head_id in link.source_head_ids])

        await self._run_in_transaction("create_link", {"link_id": link.id, "url": link.url}, work)

    async def _fetch_link(self, selector: str, value: str) -> Link:
        operation = f"get_link_by_{selector}"
        params = {selector: value}
        sql = GET_LINK_SQL.format(predicate=LINK_PREDICATES[selector])
        row = await self._fetchrow(operation, params, sql, value)
        if row is None:
            raise RepositoryNotFoundError("link not found", operation=operation, params=params)
        return link_from_row(row)

    async def _fetchrow(self, operation: str, params: dict[str, Any], sql: str, *args: Any) -> asyncpg.Record | None:
        pool = await self._database.get_pool()
        try:
            async with pool.acquire() as conn:
                return await conn.fetchrow(sql, *args)
        except Exception as exc:
            raise self._wrap(exc, operation=operation, params=params, phase="execute") from exc

    async def _fetch(self, operation: str, params: dict[str, Any], sql: str, *args: Any) -> list[asyncpg.Record]:
        pool = await self._database.get_pool()
        try:
            async with pool.acquire() as conn:
                return await conn.fetch(sql, *args)
        except Exception as exc:
            raise self._wrap(exc, operation=operation, params=params, phase="execute") from exc

    async def _run_in_transaction(
        self,
        operation: str,
        params: dict[str, Any],
        work: Callable[[asyncpg.Connection], Awaitable[None]],
    ) -> None:
        pool = await self._database.get_pool()
        try:
            async with pool.acquire() as conn:
                transaction = conn.transaction()
                try:
                    await transaction.start()
                except Exception as exc:
                    raise self._wrap(exc, operation=operation, params=params, phase="begin") from exc

                try:
                    await work(conn)
                except BaseException as exc:
                    await self._rollback(transaction, exc, operation=operation, params=params)
                    if isinstance(exc, Exception) and not isinstance(exc, RepositoryError):
                        raise self._wrap(exc, operation=operation, params=params, phase="execute") from exc
                    raise

                # A failed COMMIT ends the transaction on the server side.
                try:
                    await transaction.commit()
                except Exception as exc:
                    raise self._wrap(exc, operation=operation, params=params, phase="commit") from exc
        except RepositoryError:
            raise
        except Exception as exc:
            raise self._wrap(exc, operation=operation, params=params, phase="acquire") from exc
        logger.info("storage write committed operation=%s params=%s", operation, params)

    async def _rollback(
        self,
        transaction: Any,
        cause: BaseException,
        *,
        operation: str,
        params: dict[str, Any],
    ) -> None:
        try:
            await transaction.rollback()
        except Exception as rollback_exc:
            logger.error(
                "storage rollback failed operation=%s params=%s cause=%r error=%r",
                operation,
                params,
                cause,
                rollback_exc,
            )
            if isinstance(cause, asyncio.CancelledError):
                return
            raise RepositoryRollbackError(
                f"{operation} failed and the transaction could not be rolled back",
                cause=cause,
                rollback_error=rollback_exc,
                operation=operation,
                params=params,
            ) from cause
        logger.info("storage write rolled back operation=%s params=%s cause=%r", operation, params, cause)

    @staticmethod
    def _wrap(exc: Exception, *, operation: str, params: dict[str, Any], phase: str) -> RepositoryError:
        logger.warning("storage failure operation=%s phase=%s params=%s error=%r", operation, phase, params, exc)
        if isinstance(exc, pg_exc.IntegrityConstraintViolationError):
            return RepositoryConflictError(
                f"{operation} violates a storage constraint",
                operation=operation,
                params=params,
            )
        if isinstance(exc, (pg_exc.InvalidTextRepresentationError, asyncpg.DataError)):
            return RepositoryValidationError(
                f"{operation} rejected malformed input",
                operation=operation,
                params=params,
            )
        if isinstance(exc, UNAVAILABLE_ERRORS):
            return RepositoryUnavailableError(
                f"storage unavailable during {operation}",
                operation=operation,
                params=params,
            )
        return RepositoryInternalError(
            f"{operation} failed during {phase}",
            operation=operation,
            params=params,
        )
