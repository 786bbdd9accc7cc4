from __future__ import annotations

import base64
import uuid

import pytest
from fastapi.testclient import TestClient

from app.main import app
from app.services.cursor import CursorCodec
from app.services.records import Link, Post, PostPage
from app.services.repository import (
    RepositoryConflictError,
    RepositoryNotFoundError,
    RepositoryUnavailableError,
    RepositoryValidationError,
    get_repository,
)

ACTOR = uuid.UUID("8a0c5f52-3b2d-4b0e-9a57-0f3c2e6d1a11")
SOURCE_1 = uuid.UUID("11111111-1111-4111-8111-111111111111")
SOURCE_2 = uuid.UUID("22222222-2222-4222-8222-222222222222")
ACTOR_HEADERS = {"X-User-Id": str(ACTOR)}


def _b64(value: uuid.UUID) -> str:
    return base64.b64encode(value.bytes).decode("ascii")


def _uuid_from_b64(value: str) -> uuid.UUID:
    return uuid.UUID(bytes=base64.b64decode(value))


class FakePostsRepository:
    def __init__(self) -> None:
        self.links: dict[str, Link] = {}
        self.posts: dict[str, Post] = {}
        self.codec = CursorCodec("api-test-secret")
        self.unavailable = False

    async def get_post(self, post_id: str) -> Post:
        self._check_available()
        post = self.posts.get(post_id)
        if post is None:
            raise RepositoryNotFoundError("post not found", operation="get_post", params={"post_id": post_id})
        return post

    async def get_link(self, selector: str, value: str) -> Link:
        self._check_available()
        for link in self.links.values():
            if (selector == "id" and link.id == value) or (selector == "url" and link.url == value):
                return link
        raise RepositoryNotFoundError("link not found", operation=f"get_link_by_{selector}", params={selector: value})

    async def create_link(self, link: Link) -> Link:
        self._check_available()
        if any(existing.url == link.url for existing in self.links.values()):
            raise RepositoryConflictError("create_link violates a storage constraint", operation="create_link")
        self.links[link.id] = link
        return link

    async def create_post(self, post: Post) -> Post:
        self._check_available()
        self.posts[post.id] = post
        return post

    async def list_user_posts(self, user_id: str, cursor: str | None = None, page_size: int | None = None) -> PostPage:
        self._check_available()
        size = page_size or 20
        boundary = self.codec.decode(cursor) if cursor is not None else None
        rows = sorted(
            (post for post in self.posts.values() if post.user_id == user_id),
            key=lambda post: post.created_at,
            reverse=True,
        )
        if boundary is not None:
            rows = [post for post in rows if post.created_at < boundary]
        rows = rows[:size]
        return PostPage(
            posts=rows,
            links=[self.links[post.link_id] for post in rows],
            next_cursor=self.codec.next_cursor([post.created_at for post in rows], size),
        )

    def _check_available(self) -> None:
        if self.unavailable:
            raise RepositoryUnavailableError("storage unavailable during test")


@pytest.fixture
def fake_repository() -> FakePostsRepository:
    return FakePostsRepository()


@pytest.fixture
def api_client(fake_repository: FakePostsRepository) -> TestClient:
    app.dependency_overrides[get_repository] = lambda: fake_repository

    with TestClient(app) as client:
        yield client

    app.dependency_overrides.clear()


def test_link_post_and_listing_scenario(api_client: TestClient) -> None:
    link_response = api_client.post(
        "/links",
        json={"url": "https://example.com", "source_head_ids": [_b64(SOURCE_1), _b64(SOURCE_2)]},
        headers=ACTOR_HEADERS,
    )
    assert link_response.status_code == 201

    by_url = api_client.get("/links", params={"url": "https://example.com"})
    assert by_url.status_code == 200
    link_body = by_url.json()
    assert {_uuid_from_b64(item) for item in link_body["source_head_ids"]} == {SOURCE_1, SOURCE_2}
    assert link_body["id"] == link_response.json()["id"]
    assert _uuid_from_b64(link_body["audit_fields"]["created_by"]) == ACTOR
    link_id = _uuid_from_b64(link_body["id"])

    post_response = api_client.post(
        "/posts",
        json={"user_id": _b64(ACTOR), "link_id": _b64(link_id), "title": "hi", "body": "first"},
        headers=ACTOR_HEADERS,
    )
    assert post_response.status_code == 201
    post_id = _uuid_from_b64(post_response.json()["id"])

    fetched = api_client.get(f"/posts/{post_id}")
    assert fetched.status_code == 200
    assert _uuid_from_b64(fetched.json()["link_id"]) == link_id
    assert fetched.json()["title"] == "hi"

    first_page = api_client.get(f"/users/{ACTOR}/posts", params={"limit": 1})
    assert first_page.status_code == 200
    first_body = first_page.json()
    assert [_uuid_from_b64(post["id"]) for post in first_body["posts"]] == [post_id]
    assert _uuid_from_b64(first_body["posts"][0]["link"]["id"]) == link_id
    assert first_body["next_cursor"]

    second_page = api_client.get(
        f"/users/{ACTOR}/posts",
        params={"limit": 1, "cursor": first_body["next_cursor"]},
    )
    assert second_page.status_code == 200
    assert second_page.json() == {"posts": [], "next_cursor": None}


def test_create_link_with_no_source_heads_returns_empty_list(api_client: TestClient) -> None:
    response = api_client.post("/links", json={"url": "https://example.org"}, headers=ACTOR_HEADERS)

    assert response.status_code == 201
    assert response.json()["source_head_ids"] == []


def test_create_requires_acting_user_header(api_client: TestClient) -> None:
    response = api_client.post("/links", json={"url": "https://example.org"})

    assert response.status_code == 401


def test_create_rejects_malformed_acting_user(api_client: TestClient) -> None:
    response = api_client.post("/links", json={"url": "https://example.org"}, headers={"X-User-Id": "nobody"})

    assert response.status_code == 422


def test_create_post_for_unknown_link_is_not_found(api_client: TestClient) -> None:
    response = api_client.post(
        "/posts",
        json={"user_id": _b64(ACTOR), "link_id": _b64(uuid.uuid4()), "title": "hi"},
        headers=ACTOR_HEADERS,
    )

    assert response.status_code == 404


def test_create_post_rejects_short_binary_identifier(api_client: TestClient) -> None:
    response = api_client.post(
        "/posts",
        json={"user_id": base64.b64encode(b"abc").decode(), "link_id": _b64(uuid.uuid4()), "title": "hi"},
        headers=ACTOR_HEADERS,
    )

    assert response.status_code == 422


def test_duplicate_link_url_is_conflict(api_client: TestClient) -> None:
    payload = {"url": "https://example.net"}
    assert api_client.post("/links", json=payload, headers=ACTOR_HEADERS).status_code == 201

    response = api_client.post("/links", json=payload, headers=ACTOR_HEADERS)

    assert response.status_code == 409


def test_get_post_unknown_is_not_found(api_client: TestClient) -> None:
    response = api_client.get(f"/posts/{uuid.uuid4()}")

    assert response.status_code == 404


def test_list_with_undecodable_cursor_is_client_error(api_client: TestClient) -> None:
    response = api_client.get(f"/users/{ACTOR}/posts", params={"cursor": "definitely-not-a-cursor"})

    assert response.status_code == 422
    assert "cursor" in response.json()["detail"]


def test_storage_outage_maps_to_service_unavailable(
    api_client: TestClient,
    fake_repository: FakePostsRepository,
) -> None:
    fake_repository.unavailable = True

    response = api_client.get(f"/posts/{uuid.uuid4()}")

    assert response.status_code == 503


def test_fake_repository_validation_errors_match_real_type(fake_repository: FakePostsRepository) -> None:
    with pytest.raises(RepositoryValidationError):
        fake_repository.codec.decode("x")
