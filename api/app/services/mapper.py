"""Translation between storage rows, domain records and API payloads.

Identifiers are canonical UUID text inside the service and 16-byte binary
UUIDs on the wire. Source heads arrive from storage as one comma-joined
aggregate column.
"""

from __future__ import annotations

import time
import uuid
from collections.abc import Mapping
from typing import Any

from app.schemas.common import AuditFieldsOut
from app.schemas.links import LinkCreateRequest, LinkOut
from app.schemas.posts import PostCreateRequest, PostOut, PostPageOut
from app.services.errors import RepositoryValidationError
from app.services.records import Link, Post, PostPage

SOURCE_HEAD_SEPARATOR = ","


def parse_identifier(value: Any, *, field: str, operation: str | None = None) -> str:
    """Return the canonical text form of a UUID given as text."""
    if not isinstance(value, str):
        raise RepositoryValidationError(f"{field} must be a UUID string", operation=operation, params={field: value})
    try:
        return str(uuid.UUID(value.strip()))
    except ValueError as exc:
        raise RepositoryValidationError(
            f"{field} must be a valid UUID",
            operation=operation,
            params={field: value},
        ) from exc


def identifier_to_bytes(value: str, *, field: str) -> bytes:
    return uuid.UUID(parse_identifier(value, field=field)).bytes


def identifier_from_bytes(raw: bytes, *, field: str) -> str:
    if len(raw) != 16:
        raise RepositoryValidationError(f"{field} must be a 16-byte UUID", params={field: raw.hex()})
    return str(uuid.UUID(bytes=raw))


def parse_source_heads(aggregate: str | None) -> list[str]:
    if not aggregate:
        return []
    return [item for item in aggregate.split(SOURCE_HEAD_SEPARATOR) if item]


def link_from_row(row: Mapping[str, Any], *, prefix: str = "") -> Link:
    return Link(
        id=row[f"{prefix}id"],
        url=row[f"{prefix}url"],
        source_head_ids=parse_source_heads(row[f"{prefix}source_head_ids"]),
        created_by=row[f"{prefix}created_by"],
        created_at=int(row[f"{prefix}created_at"]),
        updated_by=row[f"{prefix}updated_by"],
        updated_at=_optional_int(row[f"{prefix}updated_at"]),
    )


def post_from_row(row: Mapping[str, Any]) -> Post:
    return Post(
        id=row["id"],
        user_id=row["user_id"],
        link_id=row["link_id"],
        title=row["title"],
        body=row["body"],
        created_by=row["created_by"],
        created_at=int(row["created_at"]),
        updated_by=row["updated_by"],
        updated_at=_optional_int(row["updated_at"]),
    )


def audit_fields_to_external(record: Post | Link) -> AuditFieldsOut:
    updated_by = None
    if record.updated_by is not None:
        updated_by = identifier_to_bytes(record.updated_by, field="updated_by")
    return AuditFieldsOut(
        created_by=identifier_to_bytes(record.created_by, field="created_by"),
        created_at=record.created_at,
        updated_by=updated_by,
        updated_at=record.updated_at,
    )


def link_to_external(link: Link) -> LinkOut:
    return LinkOut(
        id=identifier_to_bytes(link.id, field="id"),
        url=link.url,
        source_head_ids=[identifier_to_bytes(item, field="source_head_ids") for item in link.source_head_ids],
        audit_fields=audit_fields_to_external(link),
    )


def post_to_external(post: Post, *, link: Link | None = None) -> PostOut:
    return PostOut(
        id=identifier_to_bytes(post.id, field="id"),
        user_id=identifier_to_bytes(post.user_id, field="user_id"),
        link_id=identifier_to_bytes(post.link_id, field="link_id"),
        title=post.title,
        body=post.body,
        audit_fields=audit_fields_to_external(post),
        link=link_to_external(link) if link is not None else None,
    )


def page_to_external(page: PostPage) -> PostPageOut:
    return PostPageOut(
        posts=[post_to_external(post, link=link) for post, link in zip(page.posts, page.links, strict=True)],
        next_cursor=page.next_cursor,
    )


def hydrate_link_for_create(
    request: LinkCreateRequest,
    *,
    actor_user_id: str,
    now: int | None = None,
) -> Link:
    actor = parse_identifier(actor_user_id, field="actor_user_id")
    source_head_ids: list[str] = []
    for raw in request.source_head_ids:
        source_head_id = identifier_from_bytes(raw, field="source_head_ids")
        if source_head_id not in source_head_ids:
            source_head_ids.append(source_head_id)
    created_at = _now() if now is None else now
    return Link(
        id=str(uuid.uuid4()),
        url=request.url,
        source_head_ids=source_head_ids,
        created_by=actor,
        created_at=created_at,
        updated_by=actor,
        updated_at=created_at,
    )


def hydrate_post_for_create(
    request: PostCreateRequest,
    *,
    actor_user_id: str,
    now: int | None = None,
) -> Post:
    actor = parse_identifier(actor_user_id, field="actor_user_id")
    created_at = _now() if now is None else now
    return Post(
        id=str(uuid.uuid4()),
        user_id=identifier_from_bytes(request.user_id, field="user_id"),
        link_id=identifier_from_bytes(request.link_id, field="link_id"),
        title=request.title,
        body=request.body,
        created_by=actor,
        created_at=created_at,
        updated_by=actor,
        updated_at=created_at,
    )


def _now() -> int:
    return int(time.time())


def _optional_int(value: Any) -> int | None:
    if value is None:
        return None
    return int(value)
