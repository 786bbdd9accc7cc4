from fastapi import APIRouter

from app.api.routes import health, links, posts, users

api_router = APIRouter()
api_router.include_router(health.router, tags=["health"])
api_router.include_router(links.router, prefix="/links", tags=["links"])
api_router.include_router(posts.router, prefix="/posts", tags=["posts"])
api_router.include_router(users.router, prefix="/users", tags=["posts"])
