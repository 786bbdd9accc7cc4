from fastapi import APIRouter, Depends, status

from app.api.errors import to_http_exception
from app.core.security import get_acting_user_id
from app.schemas.posts import PostCreateRequest, PostOut
from app.services.mapper import hydrate_post_for_create, post_to_external
from app.services.repository import RepositoryError, get_repository

router = APIRouter()


@router.post("", response_model=PostOut, status_code=status.HTTP_201_CREATED)
async def create_post(
    payload: PostCreateRequest,
    actor_user_id: str = Depends(get_acting_user_id),
    repository=Depends(get_repository),
) -> PostOut:
    try:
        post = hydrate_post_for_create(payload, actor_user_id=actor_user_id)
        # Posts may only reference a link that already exists.
        link = await repository.get_link("id", post.link_id)
        created = await repository.create_post(post)
        return post_to_external(created, link=link)
    except RepositoryError as exc:
        raise to_http_exception(exc) from exc


@router.get("/{post_id}", response_model=PostOut)
async def get_post(post_id: str, repository=Depends(get_repository)) -> PostOut:
    try:
        post = await repository.get_post(post_id)
        return post_to_external(post)
    except RepositoryError as exc:
        raise to_http_exception(exc) from exc
