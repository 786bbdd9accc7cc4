from fastapi import APIRouter, Depends, HTTPException, status

from app.services.database import Database, get_database
from app.services.repository import RepositoryUnavailableError

router = APIRouter()


@router.get("/")
async def root() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/healthz")
async def healthz() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/readyz")
async def readyz(database: Database = Depends(get_database)) -> dict[str, str]:
    try:
        await database.ping()
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    return {"status": "ok", "database": "ok"}
