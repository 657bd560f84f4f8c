"""Retry and failover policy for failed provider calls."""

from dataclasses import dataclass

from structlog import get_logger

from qwen_code_proxy.exceptions import ErrorKind, ProviderError, RefreshFailedError
from qwen_code_proxy.store import AccountCredential

from .failures import FailureRegistry
from .refresh import TokenRefresher


logger = get_logger(__name__)

MAX_RETRIES = 1


@dataclass(frozen=True)
class RetryDecision:
    """What the executor does next.

    ``credential`` is set when the same account was refreshed and should be
    retried with it.
    """

    retry: bool
    force_reselect: bool
    credential: AccountCredential | None = None


class RetryCoordinator:
    """Classifies provider failures and updates account health accordingly."""

    def __init__(
        self,
        refresher: TokenRefresher,
        registry: FailureRegistry,
        max_retries: int = MAX_RETRIES,
    ) -> None:
        self.refresher = refresher
        self.registry = registry
        self.max_retries = min(max_retries, MAX_RETRIES)

    @staticmethod
    def classify(error: BaseException) -> ErrorKind:
        """Retry bucket for an error; anything without a provider status is OTHER."""
        if isinstance(error, ProviderError):
            return error.kind
        return ErrorKind.OTHER

    async def handle(
        self,
        account_id: str,
        credential: AccountCredential,
        error: BaseException,
        attempt: int,
    ) -> RetryDecision:
        """Decide whether to retry after ``attempt`` (0-based) failed.

        Failure bookkeeping happens on every attempt; only the retry flag is
        limited by the retry budget.
        """
        kind = self.classify(error)
        can_retry = attempt < self.max_retries
        logger.info(
            "provider_call_failed",
            account=account_id,
            kind=kind.value,
            attempt=attempt,
            will_retry=can_retry,
        )

        if kind is ErrorKind.UNAUTHORIZED:
            if can_retry and credential.refresh_token:
                try:
                    refreshed = await self.refresher.refresh(
                        account_id, credential.refresh_token, current=credential
                    )
                except RefreshFailedError as e:
                    logger.warning(
                        "reactive_refresh_failed", account=account_id, error=e.provider_error
                    )
                else:
                    return RetryDecision(retry=True, force_reselect=False, credential=refreshed)
            await self.registry.mark_failed(account_id)
            return RetryDecision(retry=can_retry, force_reselect=True)

        if kind is ErrorKind.QUOTA_EXCEEDED:
            await self.registry.mark_failed(account_id)
            return RetryDecision(retry=can_retry, force_reselect=True)

        # Provider outages and unclassified errors: move on without a registry write
        return RetryDecision(retry=can_retry, force_reselect=True)
