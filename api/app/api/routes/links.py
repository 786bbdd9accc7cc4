from fastapi import APIRouter, Depends, Query, status

from app.api.errors import to_http_exception
from app.core.security import get_acting_user_id
from app.schemas.links import LinkCreateRequest, LinkOut
from app.services.mapper import hydrate_link_for_create, link_to_external
from app.services.repository import RepositoryError, get_repository

router = APIRouter()


@router.post("", response_model=LinkOut, status_code=status.HTTP_201_CREATED)
async def create_link(
    payload: LinkCreateRequest,
    actor_user_id: str = Depends(get_acting_user_id),
    repository=Depends(get_repository),
) -> LinkOut:
    try:
        link = hydrate_link_for_create(payload, actor_user_id=actor_user_id)
        created = await repository.create_link(link)
        return link_to_external(created)
    except RepositoryError as exc:
        raise to_http_exception(exc) from exc


@router.get("", response_model=LinkOut)
async def get_link_by_url(
    url: str = Query(min_length=1),
    repository=Depends(get_repository),
) -> LinkOut:
    try:
        link = await repository.get_link("url", url)
        return link_to_external(link)
    except RepositoryError as exc:
        raise to_http_exception(exc) from exc


@router.get("/{link_id}", response_model=LinkOut)
async def get_link(link_id: str, repository=Depends(get_repository)) -> LinkOut:
    try:
        link = await repository.get_link("id", link_id)
        return link_to_external(link)
    except RepositoryError as exc:
        raise to_http_exception(exc) from exc
