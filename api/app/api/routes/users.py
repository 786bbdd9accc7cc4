from fastapi import APIRouter, Depends, Query

from app.api.errors import to_http_exception
from app.schemas.posts import PostPageOut
from app.services.mapper import page_to_external
from app.services.repository import RepositoryError, get_repository

router = APIRouter()


@router.get("/{user_id}/posts", response_model=PostPageOut)
async def list_user_posts(
    user_id: str,
    cursor: str | None = Query(default=None),
    limit: int | None = Query(default=None, ge=1),
    repository=Depends(get_repository),
) -> PostPageOut:
    try:
        page = await repository.list_user_posts(user_id, cursor=cursor, page_size=limit)
        return page_to_external(page)
    except RepositoryError as exc:
        raise to_http_exception(exc) from exc
