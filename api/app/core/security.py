from fastapi import Depends, Header, HTTPException, status

from app.core.config import Settings, get_settings
from app.services.mapper import parse_identifier
from app.services.repository import RepositoryValidationError


async def get_acting_user_id(
    settings: Settings = Depends(get_settings),
    x_user_id: str | None = Header(default=None, alias="X-User-Id"),
) -> str:
    """Identity recorded in the audit fields of created records."""
    if not x_user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"create requests require {settings.actor_header}",
        )
    try:
        return parse_identifier(x_user_id, field="actor_user_id")
    except RepositoryValidationError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_CONTENT, detail=str(exc)) from exc
