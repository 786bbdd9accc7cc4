from pydantic import BaseModel, Field

from app.schemas.common import AuditFieldsOut, BinaryId


class LinkOut(BaseModel):
    id: BinaryId
    url: str
    source_head_ids: list[BinaryId] = Field(default_factory=list)
    audit_fields: AuditFieldsOut


class LinkCreateRequest(BaseModel):
    url: str = Field(min_length=1)
    source_head_ids: list[BinaryId] = Field(default_factory=list)
