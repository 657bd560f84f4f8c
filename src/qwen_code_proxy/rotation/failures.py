"""Failed-account bookkeeping with a lazy daily reset.

Accounts land in the failed set on quota errors and on unrecoverable 401s.
The set has no per-entry expiry: it is emptied the first time it is read on
a new UTC day. Concurrent readers may each perform that reset; writing the
same empty set and date twice is harmless, and a failure recorded by another
instance in the same instant can be lost.
"""

from structlog import get_logger

from qwen_code_proxy.core.clock import Clock, utc_date, utc_now
from qwen_code_proxy.store import CredentialStore, FailedAccountSet


logger = get_logger(__name__)

FAILED_IDS_SEPARATOR = ","


class FailureRegistry:
    """Tracks which accounts are excluded from selection."""

    def __init__(self, store: CredentialStore, clock: Clock = utc_now) -> None:
        self.store = store
        self._clock = clock

    async def ensure_daily_reset(self) -> FailedAccountSet:
        """Load the failed set, clearing it first if it was last reset on an earlier day."""
        failed = await self.store.get_failed_set()
        today = utc_date(self._clock())
        if failed.reset_date == today:
            return failed

        await self.store.set_failed_set([], reset_date=today)
        if failed.ids:
            logger.info(
                "failed_accounts_reset",
                cleared=len(failed.ids),
                previous_reset_date=failed.reset_date,
            )
        return FailedAccountSet(ids=[], reset_date=today)

    async def list_failed(self) -> list[str]:
        return list((await self.ensure_daily_reset()).ids)

    async def is_failed(self, account_id: str) -> bool:
        return account_id in await self.ensure_daily_reset()

    async def mark_failed(self, account_id: str) -> None:
        """Exclude an account until the next daily reset. No-op if already failed."""
        if FAILED_IDS_SEPARATOR in account_id:
            # Would split into other ids once joined into FAILED_ACCOUNTS
            logger.warning("account_not_markable", account=account_id)
            return
        failed = await self.ensure_daily_reset()
        if account_id in failed:
            return
        await self.store.set_failed_set([*failed.ids, account_id])
        logger.warning("account_marked_failed", account=account_id, failed_count=len(failed.ids) + 1)

    async def clear(self) -> int:
        """Empty the failed set now.

        Returns:
            Number of accounts that were cleared
        """
        failed = await self.ensure_daily_reset()
        await self.store.set_failed_set([], reset_date=utc_date(self._clock()))
        if failed.ids:
            logger.info("failed_accounts_cleared", cleared=len(failed.ids))
        return len(failed.ids)
