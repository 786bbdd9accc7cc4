import base64
import binascii
from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator, PlainSerializer


def _decode_base64(value: Any) -> Any:
    if isinstance(value, str):
        try:
            return base64.b64decode(value, validate=True)
        except binascii.Error as exc:
            raise ValueError("identifier must be base64 encoded") from exc
    return value


def _encode_base64(value: bytes) -> str:
    return base64.b64encode(value).decode("ascii")


# 16-byte UUIDs, carried as standard base64 in JSON.
BinaryId = Annotated[
    bytes,
    BeforeValidator(_decode_base64),
    PlainSerializer(_encode_base64, return_type=str, when_used="json"),
]


class AuditFieldsOut(BaseModel):
    created_by: BinaryId
    created_at: int
    updated_by: BinaryId | None = None
    updated_at: int | None = None
