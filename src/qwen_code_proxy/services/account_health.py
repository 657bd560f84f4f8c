"""Per-account health report.

Makes a minimal completion call with every account's token so operators can
see which accounts actually work. The failed set is reported but never
modified here.

Example:
    >>> checker = AccountHealthChecker(store, registry, refresher, provider)
    >>> for health in await checker.check_all():
    ...     print(health.account, health.status, health.expires_in)
"""

from dataclasses import dataclass
from typing import Literal

from structlog import get_logger
from typing_extensions import TypedDict

from qwen_code_proxy.core.async_utils import gather_with_concurrency
from qwen_code_proxy.core.clock import Clock, utc_now
from qwen_code_proxy.exceptions import RefreshFailedError
from qwen_code_proxy.rotation.constants import HEALTH_CHECK_CONCURRENCY
from qwen_code_proxy.rotation.failures import FailureRegistry
from qwen_code_proxy.rotation.refresh import TokenRefresher
from qwen_code_proxy.store import AccountCredential, CredentialStore

from .provider_client import ProviderClient


logger = get_logger(__name__)

HealthStatus = Literal["healthy", "quota_exceeded", "error", "missing_credentials"]


class AccountHealthDict(TypedDict):
    """Typed dictionary for AccountHealth.to_dict() return value."""

    account: str
    status: HealthStatus
    error: str | None
    expires_in: str
    is_failed: bool
    api_status: int | None


@dataclass
class AccountHealth:
    account: str
    status: HealthStatus
    expires_in: str
    is_failed: bool
    error: str | None = None
    api_status: int | None = None

    def to_dict(self) -> AccountHealthDict:
        return AccountHealthDict(
            account=self.account,
            status=self.status,
            error=self.error,
            expires_in=self.expires_in,
            is_failed=self.is_failed,
            api_status=self.api_status,
        )


def format_expires_in(credential: AccountCredential, clock: Clock = utc_now) -> str:
    minutes_left = credential.minutes_left(clock())
    if minutes_left < 0:
        return "expired"
    return f"{int(minutes_left)} min"


class AccountHealthChecker:
    """Checks every stored account with a live provider call."""

    def __init__(
        self,
        store: CredentialStore,
        registry: FailureRegistry,
        refresher: TokenRefresher,
        provider: ProviderClient,
        clock: Clock = utc_now,
    ) -> None:
        self.store = store
        self.registry = registry
        self.refresher = refresher
        self.provider = provider
        self._clock = clock

    async def _credential_for_check(self, account_id: str) -> AccountCredential | None:
        credential = await self.store.get(account_id)
        if credential is None or not credential.is_expired(self._clock()):
            return credential
        try:
            return await self.refresher.refresh(
                account_id, credential.refresh_token, current=credential
            )
        except RefreshFailedError:
            # Test with the expired token; the provider call reports the failure
            logger.info("health_check_refresh_failed", account=account_id)
            return credential

    async def check(self, account_id: str, failed: list[str]) -> AccountHealth:
        is_failed = account_id in failed
        credential = await self._credential_for_check(account_id)
        if credential is None:
            return AccountHealth(
                account=account_id,
                status="missing_credentials",
                expires_in="unknown",
                is_failed=is_failed,
                error="No credentials found",
            )

        expires_in = format_expires_in(credential, self._clock)
        api_status, error = await self.provider.ping(credential)
        status: HealthStatus
        if api_status == 200:
            status = "healthy"
        elif api_status == 429:
            status = "quota_exceeded"
        else:
            status = "error"
        return AccountHealth(
            account=account_id,
            status=status,
            expires_in=expires_in,
            is_failed=is_failed,
            error=error,
            api_status=api_status,
        )

    async def check_all(self) -> list[AccountHealth]:
        account_ids = await self.store.list_account_ids()
        failed = await self.registry.list_failed()
        results = await gather_with_concurrency(
            HEALTH_CHECK_CONCURRENCY,
            *(self.check(account_id, failed) for account_id in account_ids),
        )
        logger.info(
            "account_health_checked",
            total=len(results),
            healthy=sum(1 for health in results if health.status == "healthy"),
        )
        return results
