"""Tests for the credential store key layout and record encoding."""

import pytest

from qwen_code_proxy.exceptions import ValidationError
from qwen_code_proxy.store import AccountCredential, CredentialStore, MemoryKeyValueStore
from qwen_code_proxy.store.credentials import parse_failed_ids, validate_account_id


STORED_RECORD = (
    '{"access_token":"at-1","refresh_token":"rt-1","scope":"openid profile",'
    '"token_type":"Bearer","expiry_date":1748779200000,"resource_url":"portal.qwen.ai",'
    '"id_token":"eyJhbGciOi"}'
)


@pytest.mark.unit
async def test_record_round_trips_byte_identically(kv: MemoryKeyValueStore, store: CredentialStore) -> None:
    await kv.put("ACCOUNT:source", STORED_RECORD)

    credential = await store.get("source")
    assert credential is not None
    assert credential.resource_url == "portal.qwen.ai"
    assert credential.extra == {"id_token": "eyJhbGciOi"}

    await store.put("copy", credential)
    assert await kv.get("ACCOUNT:copy") == STORED_RECORD


@pytest.mark.unit
async def test_record_without_resource_url_omits_the_field(store: CredentialStore, kv: MemoryKeyValueStore) -> None:
    credential = AccountCredential(access_token="at", refresh_token="rt", expiry_date=1)
    await store.put("plain", credential)

    assert await kv.get("ACCOUNT:plain") == (
        '{"access_token":"at","refresh_token":"rt","scope":"","token_type":"Bearer","expiry_date":1}'
    )


@pytest.mark.unit
@pytest.mark.parametrize(
    "raw",
    [
        "not json",
        "[1, 2]",
        '{"refresh_token": "rt", "expiry_date": 1}',
        '{"access_token": "at", "expiry_date": "soon"}',
        '{"access_token": "", "expiry_date": 1}',
    ],
)
async def test_undecodable_record_is_treated_as_absent(
    raw: str, kv: MemoryKeyValueStore, store: CredentialStore
) -> None:
    await kv.put("ACCOUNT:broken", raw)

    assert await store.get("broken") is None


@pytest.mark.unit
async def test_missing_account_returns_none(store: CredentialStore) -> None:
    assert await store.get("nobody") is None


@pytest.mark.unit
async def test_list_account_ids_only_sees_account_keys(kv: MemoryKeyValueStore, store: CredentialStore) -> None:
    await kv.put("ACCOUNT:first", STORED_RECORD)
    await kv.put("FAILED_ACCOUNTS", "first")
    await kv.put("ACCOUNT:second", STORED_RECORD)
    await kv.put("LAST_FAILED_RESET_DATE", "2025-06-01")

    assert await store.list_account_ids() == ["first", "second"]


@pytest.mark.unit
async def test_put_stores_out_of_band_account_ids(kv: MemoryKeyValueStore, store: CredentialStore) -> None:
    credential = AccountCredential(access_token="at", refresh_token="rt", expiry_date=1)

    await store.put("me+work@example.com", credential)

    assert await kv.get("ACCOUNT:me+work@example.com") is not None
    assert await store.list_account_ids() == ["me+work@example.com"]


@pytest.mark.unit
@pytest.mark.parametrize("account_id", ["", "a,b", "with space", "x" * 65])
def test_validate_account_id_rejects_unusable_ids(account_id: str) -> None:
    with pytest.raises(ValidationError):
        validate_account_id(account_id)


@pytest.mark.unit
def test_validate_account_id_accepts_email_style_ids() -> None:
    assert validate_account_id("dev.team@example.com") == "dev.team@example.com"


@pytest.mark.unit
async def test_delete(kv: MemoryKeyValueStore, store: CredentialStore) -> None:
    await kv.put("ACCOUNT:gone", STORED_RECORD)

    assert await store.delete("gone") is True
    assert await store.delete("gone") is False
    assert await store.list_account_ids() == []


@pytest.mark.unit
@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        (None, []),
        ("", []),
        ("a", ["a"]),
        ("a,b", ["a", "b"]),
        (",a,,b,", ["a", "b"]),
        ("a,b,a", ["a", "b"]),
    ],
)
def test_parse_failed_ids(raw: str | None, expected: list[str]) -> None:
    assert parse_failed_ids(raw) == expected


@pytest.mark.unit
async def test_failed_set_is_stored_comma_joined(kv: MemoryKeyValueStore, store: CredentialStore) -> None:
    await store.set_failed_set(["a", "b"], reset_date="2025-06-01")

    assert await kv.get("FAILED_ACCOUNTS") == "a,b"
    assert await kv.get("LAST_FAILED_RESET_DATE") == "2025-06-01"

    failed = await store.get_failed_set()
    assert failed.ids == ["a", "b"]
    assert failed.reset_date == "2025-06-01"
    assert "a" in failed


@pytest.mark.unit
async def test_set_failed_set_without_date_keeps_stored_date(
    kv: MemoryKeyValueStore, store: CredentialStore
) -> None:
    await kv.put("LAST_FAILED_RESET_DATE", "2025-05-31")

    await store.set_failed_set(["a"])

    assert await kv.get("LAST_FAILED_RESET_DATE") == "2025-05-31"
