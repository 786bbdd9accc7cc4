import base64
import json

import pytest

from app.services.cursor import CursorCodec
from app.services.errors import RepositoryValidationError

BASE_QUERY = """
select p.id, (select count(*) from links l where l.id = p.link_id) as n
from posts p
where p.user_id = $1::uuid
"""


def _codec() -> CursorCodec:
    return CursorCodec("cursor-test-secret")


def test_cursor_decodes_to_the_boundary_that_produced_it() -> None:
    codec = _codec()
    token = codec.encode(1_700_000_000)

    assert codec.decode(token) == 1_700_000_000
    assert codec.encode(1_700_000_000) == token
    assert token.isascii()
    assert "=" not in token and "+" not in token and "/" not in token


@pytest.mark.parametrize(
    "token",
    [
        "",
        "garbage",
        "not.base64!",
        ".signature-only",
        "eyJ2IjoxfQ",
    ],
)
def test_undecodable_cursor_is_invalid_input(token: str) -> None:
    with pytest.raises(RepositoryValidationError, match="invalid pagination cursor"):
        _codec().decode(token)


def test_tampered_payload_is_rejected() -> None:
    codec = _codec()
    payload, signature = codec.encode(1_700_000_000).split(".")
    forged = base64.urlsafe_b64encode(json.dumps({"v": 1, "created_at": 1}).encode()).rstrip(b"=").decode()

    with pytest.raises(RepositoryValidationError):
        codec.decode(f"{forged}.{signature}")


def test_cursor_signed_with_other_secret_is_rejected() -> None:
    token = CursorCodec("some-other-secret").encode(1_700_000_000)

    with pytest.raises(RepositoryValidationError):
        _codec().decode(token)


def test_apply_without_cursor_orders_newest_first_and_limits() -> None:
    sql, params = _codec().apply_to_query(BASE_QUERY, ["user-1"], cursor=None, page_size=10)

    assert "p.created_at <" not in sql
    assert sql.rstrip().endswith("order by p.created_at desc\nlimit $2")
    assert params == ["user-1", 10]


def test_apply_with_cursor_appends_strictly_older_predicate() -> None:
    codec = _codec()
    sql, params = codec.apply_to_query(BASE_QUERY, ["user-1"], cursor=codec.encode(42), page_size=5)

    assert "\nand p.created_at < $2\norder by p.created_at desc\nlimit $3" in sql
    assert params == ["user-1", 42, 5]


def test_apply_uses_where_when_base_query_has_no_top_level_predicate() -> None:
    codec = _codec()
    base = "select p.id, (select 1 from links l where l.id = p.link_id) as x from posts p"
    sql, _ = codec.apply_to_query(base, [], cursor=codec.encode(42), page_size=5)

    assert "\nwhere p.created_at < $1" in sql


def test_apply_does_not_duplicate_existing_ordering() -> None:
    base = BASE_QUERY.rstrip() + "\nORDER BY p.created_at DESC"
    sql, _ = _codec().apply_to_query(base, ["user-1"], cursor=None, page_size=5)

    assert sql.lower().count("order by p.created_at desc") == 1


def test_apply_rejects_non_positive_page_size() -> None:
    with pytest.raises(RepositoryValidationError):
        _codec().apply_to_query(BASE_QUERY, ["user-1"], cursor=None, page_size=0)


def test_malformed_cursor_is_not_treated_as_first_page() -> None:
    with pytest.raises(RepositoryValidationError):
        _codec().apply_to_query(BASE_QUERY, ["user-1"], cursor="", page_size=5)


def test_next_cursor_is_emitted_only_for_full_pages() -> None:
    codec = _codec()

    assert codec.next_cursor([30, 20, 10], 3) == codec.encode(10)
    assert codec.next_cursor([30, 20], 3) is None
    assert codec.next_cursor([], 3) is None
