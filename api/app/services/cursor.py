"""Keyset pagination cursors for newest-first listings.

A cursor is ``<payload>.<signature>``: the payload is URL-safe base64 (no
padding) of a small JSON object holding the boundary ``created_at``, the
signature is an HMAC-SHA256 of the payload text. Both halves use the URL-safe
alphabet so a token survives a query string or a JSON field unchanged.

Rows sharing the boundary second are ordered by timestamp only, so same-second
writes can be dropped or repeated across a page boundary.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import json
import re
from collections.abc import Sequence
from typing import Any

from app.services.errors import RepositoryValidationError

CURSOR_VERSION = 1
_WHERE_TOKEN_RE = re.compile(r"\(|\)|\bwhere\b", re.IGNORECASE)


def _b64encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def _b64decode(text: str) -> bytes:
    padded = text + "=" * (-len(text) % 4)
    return base64.b64decode(padded, altchars=b"-_", validate=True)


def _has_top_level_where(sql: str) -> bool:
    depth = 0
    for match in _WHERE_TOKEN_RE.finditer(sql):
        token = match.group(0)
        if token == "(":
            depth += 1
        elif token == ")":
            depth -= 1
        elif depth == 0:
            return True
    return False


class CursorCodec:
    def __init__(self, secret: str, *, key: str = "p.created_at") -> None:
        if not secret:
            raise ValueError("cursor secret must be a non-empty string")
        self._secret = secret.encode("utf-8")
        self.key = key
        self._order_by_tail = re.compile(
            rf"\s+order\s+by\s+{re.escape(key)}\s+desc\s*;?\s*$",
            re.IGNORECASE,
        )

    def encode(self, boundary: int) -> str:
        payload = json.dumps({"v": CURSOR_VERSION, "created_at": int(boundary)}, separators=(",", ":"))
        encoded = _b64encode(payload.encode("utf-8"))
        return f"{encoded}.{self._sign(encoded)}"

    def decode(self, token: str) -> int:
        payload_text, separator, signature = token.partition(".")
        if not separator or not payload_text or not token.isascii():
            raise self._invalid(token)
        if not hmac.compare_digest(signature, self._sign(payload_text)):
            raise self._invalid(token)

        try:
            payload: Any = json.loads(_b64decode(payload_text))
        except (binascii.Error, ValueError) as exc:
            raise self._invalid(token) from exc

        if not isinstance(payload, dict) or payload.get("v") != CURSOR_VERSION:
            raise self._invalid(token)
        boundary = payload.get("created_at")
        if isinstance(boundary, bool) or not isinstance(boundary, int) or boundary < 0:
            raise self._invalid(token)
        return boundary

    def apply_to_query(
        self,
        query: str,
        params: Sequence[Any],
        *,
        cursor: str | None,
        page_size: int,
    ) -> tuple[str, list[Any]]:
        """Append the keyset predicate, ordering and limit to ``query``.

        ``params`` are the values already bound by ``query`` as ``$1..$n``; the
        returned list extends them with the boundary and the page size.
        """
        if page_size < 1:
            raise RepositoryValidationError(
                "page size must be a positive integer",
                operation="apply_cursor",
                params={"page_size": page_size},
            )

        bound = list(params)

        def bind(value: Any) -> str:
            bound.append(value)
            return f"${len(bound)}"

        sql = self._order_by_tail.sub("", query.rstrip())
        if cursor is not None:
            boundary = self.decode(cursor)
            joiner = "and" if _has_top_level_where(sql) else "where"
            sql = f"{sql}\n{joiner} {self.key} < {bind(boundary)}"
        sql = f"{sql}\norder by {self.key} desc\nlimit {bind(page_size)}"
        return sql, bound

    def next_cursor(self, boundaries: Sequence[int], page_size: int) -> str | None:
        """Cursor resuming after the last boundary, or ``None`` after a short page."""
        if not boundaries or len(boundaries) < page_size:
            return None
        return self.encode(boundaries[-1])

    def _sign(self, payload_text: str) -> str:
        digest = hmac.new(self._secret, payload_text.encode("ascii"), hashlib.sha256).digest()
        return _b64encode(digest)

    @staticmethod
    def _invalid(token: str) -> RepositoryValidationError:
        return RepositoryValidationError(
            "invalid pagination cursor",
            operation="decode_cursor",
            params={"cursor": token},
        )
