from pydantic import BaseModel, Field

from app.schemas.common import AuditFieldsOut, BinaryId
from app.schemas.links import LinkOut


class PostOut(BaseModel):
    id: BinaryId
    user_id: BinaryId
    link_id: BinaryId
    title: str
    body: str
    audit_fields: AuditFieldsOut
    link: LinkOut | None = None


class PostCreateRequest(BaseModel):
    user_id: BinaryId
    link_id: BinaryId
    title: str = Field(min_length=1)
    body: str = ""


class PostPageOut(BaseModel):
    posts: list[PostOut] = Field(default_factory=list)
    next_cursor: str | None = None
