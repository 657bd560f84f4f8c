"""Credential store: account records and the failed-account list on top of a KV store.

Key layout:

- ``ACCOUNT:<id>``: JSON credential record
- ``FAILED_ACCOUNTS``: comma-joined account ids (empty string when none)
- ``LAST_FAILED_RESET_DATE``: ``YYYY-MM-DD`` in UTC

Nothing here locks. Two instances refreshing the same account at once both
write, and whichever write lands last is kept.
"""

import re

import orjson
from structlog import get_logger

from qwen_code_proxy.core.validators import parse_comma_separated
from qwen_code_proxy.exceptions import ValidationError

from .base import KeyValueStore
from .models import AccountCredential, FailedAccountSet


logger = get_logger(__name__)

ACCOUNT_KEY_PREFIX = "ACCOUNT:"
FAILED_ACCOUNTS_KEY = "FAILED_ACCOUNTS"
LAST_FAILED_RESET_DATE_KEY = "LAST_FAILED_RESET_DATE"

# Ids provisioned out of band are stored as given; only new ids from the CLI
# are held to this pattern
ACCOUNT_ID_PATTERN = re.compile(r"^[A-Za-z0-9_.@-]{1,64}$")


def validate_account_id(account_id: str) -> str:
    """Check an id entered for a new account.

    Raises:
        ValidationError: If the id does not match ``ACCOUNT_ID_PATTERN``
    """
    if not ACCOUNT_ID_PATTERN.match(account_id):
        raise ValidationError(
            f"Invalid account id '{account_id}': use 1-64 letters, digits, '_', '-', '.' or '@'"
        )
    return account_id


def account_key(account_id: str) -> str:
    return f"{ACCOUNT_KEY_PREFIX}{account_id}"


def parse_failed_ids(raw: str | None) -> list[str]:
    """Split a stored ``FAILED_ACCOUNTS`` value, dropping empty segments and duplicates."""
    return parse_comma_separated(raw, unique=True)


class CredentialStore:
    """Typed access to account credentials and the failed-account set."""

    def __init__(self, kv: KeyValueStore) -> None:
        self.kv = kv

    async def get(self, account_id: str) -> AccountCredential | None:
        """Load an account's credential.

        Returns:
            The credential, or None if it is missing or cannot be decoded
        """
        raw = await self.kv.get(account_key(account_id))
        if raw is None:
            return None
        try:
            data = orjson.loads(raw)
            if not isinstance(data, dict):
                raise ValueError(f"expected object, got {type(data).__name__}")
            return AccountCredential.from_dict(data)
        except (orjson.JSONDecodeError, KeyError, ValueError) as e:
            logger.warning("invalid_credential_skipped", account=account_id, error=str(e))
            return None

    async def put(self, account_id: str, credential: AccountCredential) -> None:
        await self.kv.put(account_key(account_id), orjson.dumps(credential.to_dict()).decode())
        logger.debug("credential_saved", account=account_id)

    async def delete(self, account_id: str) -> bool:
        deleted = await self.kv.delete(account_key(account_id))
        if deleted:
            logger.info("credential_deleted", account=account_id)
        return deleted

    async def list_account_ids(self) -> list[str]:
        keys = await self.kv.list_keys(ACCOUNT_KEY_PREFIX)
        return [key.removeprefix(ACCOUNT_KEY_PREFIX) for key in keys]

    async def get_failed_set(self) -> FailedAccountSet:
        raw_ids = await self.kv.get(FAILED_ACCOUNTS_KEY)
        reset_date = await self.kv.get(LAST_FAILED_RESET_DATE_KEY)
        return FailedAccountSet(ids=parse_failed_ids(raw_ids), reset_date=reset_date or None)

    async def set_failed_set(self, ids: list[str], reset_date: str | None = None) -> None:
        """Overwrite the failed ids, and the reset date when one is given."""
        await self.kv.put(FAILED_ACCOUNTS_KEY, ",".join(ids))
        if reset_date is not None:
            await self.kv.put(LAST_FAILED_RESET_DATE_KEY, reset_date)

    async def close(self) -> None:
        await self.kv.close()
