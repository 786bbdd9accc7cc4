from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(slots=True)
class Link:
    id: str
    url: str
    created_by: str
    created_at: int
    source_head_ids: list[str] = field(default_factory=list)
    updated_by: str | None = None
    updated_at: int | None = None


@dataclass(slots=True)
class Post:
    id: str
    user_id: str
    link_id: str
    title: str
    body: str
    created_by: str
    created_at: int
    updated_by: str | None = None
    updated_at: int | None = None


@dataclass(slots=True)
class PostPage:
    """One page of a user's posts; ``links[i]`` is the link of ``posts[i]``.

    ``next_cursor`` is ``None`` once the page came back short, which marks the
    end of the list.
    """

    posts: list[Post]
    links: list[Link]
    next_cursor: str | None = None
