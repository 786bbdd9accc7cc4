from __future__ import annotations

import logging
from functools import lru_cache
from typing import Literal

from opentelemetry import trace

from app.core.config import get_settings
from app.services.cursor import CursorCodec
from app.services.database import Database, get_database
from app.services.errors import (
    RepositoryConflictError,
    RepositoryError,
    RepositoryInternalError,
    RepositoryNotFoundError,
    RepositoryRollbackError,
    RepositoryUnavailableError,
    RepositoryValidationError,
)
from app.services.mapper import parse_identifier
from app.services.records import Link, Post, PostPage
from app.services.store import PostgresPostStore

__all__ = [
    "LinkSelector",
    "PostsRepository",
    "RepositoryConflictError",
    "RepositoryError",
    "RepositoryInternalError",
    "RepositoryNotFoundError",
    "RepositoryRollbackError",
    "RepositoryUnavailableError",
    "RepositoryValidationError",
    "get_repository",
]

LinkSelector = Literal["id", "url"]

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


class PostsRepository:
    """Entry point for reading and writing posts and links."""

    def __init__(
        self,
        database: Database,
        cursor_codec: CursorCodec,
        *,
        default_page_size: int = 20,
        max_page_size: int = 100,
    ) -> None:
        self._store = PostgresPostStore(database, cursor_codec)
        self.default_page_size = max(1, default_page_size)
        self.max_page_size = max(self.default_page_size, max_page_size)

    async def get_post(self, post_id: str) -> Post:
        normalized_post_id = parse_identifier(post_id, field="post_id", operation="get_post")
        with tracer.start_as_current_span("repository.get_post"):
            return await self._store.fetch_post(normalized_post_id)

    async def get_link(self, selector: LinkSelector, value: str) -> Link:
        with tracer.start_as_current_span("repository.get_link") as span:
            span.set_attribute("link.selector", selector)
            if selector == "id":
                link_id = parse_identifier(value, field="link_id", operation="get_link_by_id")
                return await self._store.fetch_link_by_id(link_id)
            if selector == "url":
                if not isinstance(value, str) or not value.strip():
                    raise RepositoryValidationError(
                        "url must be a non-empty string",
                        operation="get_link_by_url",
                        params={"url": value},
                    )
                return await self._store.fetch_link_by_url(value)
            raise RepositoryValidationError(
                "link selector must be one of: id, url",
                operation="get_link",
                params={"selector": selector},
            )

    async def list_user_posts(
        self,
        user_id: str,
        cursor: str | None = None,
        page_size: int | None = None,
    ) -> PostPage:
        normalized_user_id = parse_identifier(user_id, field="user_id", operation="list_user_posts")
        size = self.default_page_size if page_size is None else page_size
        if size < 1 or size > self.max_page_size:
            raise RepositoryValidationError(
                f"page size must be between 1 and {self.max_page_size}",
                operation="list_user_posts",
                params={"user_id": normalized_user_id, "page_size": size},
            )

        with tracer.start_as_current_span("repository.list_user_posts") as span:
            posts, links = await self._store.fetch_user_posts(normalized_user_id, cursor=cursor, page_size=size)
            span.set_attribute("posts.count", len(posts))
        next_cursor = self._store.cursor_codec.next_cursor([post.created_at for post in posts], size)
        return PostPage(posts=posts, links=links, next_cursor=next_cursor)

    async def create_post(self, post: Post) -> Post:
        for field in ("id", "user_id", "link_id", "created_by"):
            parse_identifier(getattr(post, field), field=field, operation="create_post")
        if not post.title:
            raise RepositoryValidationError("title is required", operation="create_post", params={"post_id": post.id})
        with tracer.start_as_current_span("repository.create_post"):
            await self._store.insert_post(post)
        logger.info("post created post_id=%s link_id=%s", post.id, post.link_id)
        return post

    async def create_link(self, link: Link) -> Link:
        for field in ("id", "created_by"):
            parse_identifier(getattr(link, field), field=field, operation="create_link")
        for source_head_id in link.source_head_ids:
            parse_identifier(source_head_id, field="source_head_ids", operation="create_link")
        if not link.url:
            raise RepositoryValidationError("url is required", operation="create_link", params={"link_id": link.id})
        with tracer.start_as_current_span("repository.create_link") as span:
            span.set_attribute("link.source_head_count", len(link.source_head_ids))
            await self._store.insert_link(link)
        logger.info("link created link_id=%s source_heads=%s", link.id, len(link.source_head_ids))
        return link


@lru_cache
def get_repository() -> PostsRepository:
    settings = get_settings()
    return PostsRepository(
        database=get_database(),
        cursor_codec=CursorCodec(settings.cursor_secret),
        default_page_size=settings.posts_page_size,
        max_page_size=settings.posts_page_size_max,
    )
