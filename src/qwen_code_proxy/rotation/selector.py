"""Freshness-weighted account selection.

Most traffic goes to the account whose token has the most time left, so
refreshes rarely happen for several accounts at once. Expired accounts keep
a 10% weight: picking one triggers a proactive refresh, which keeps tokens
from all lapsing together without a background job.
"""

import random
from collections.abc import Sequence
from dataclasses import dataclass

from structlog import get_logger

from qwen_code_proxy.core.clock import Clock, utc_now
from qwen_code_proxy.exceptions import NoAccountsAvailableError, RefreshFailedError
from qwen_code_proxy.store import AccountCredential, CredentialStore

from .constants import (
    EXPIRED_PROBABILITY,
    FRESHEST_PROBABILITY,
    FRESHNESS_PROBABILITIES,
    STALE_PROBABILITY,
)
from .failures import FailureRegistry
from .refresh import TokenRefresher


logger = get_logger(__name__)


@dataclass
class SelectionState:
    """The account chosen for one logical request and its credential snapshot."""

    account_id: str
    credential: AccountCredential


@dataclass
class Candidate:
    account_id: str
    credential: AccountCredential
    minutes_left: float


def selection_probability(minutes_left: float, max_freshness: float) -> float:
    """Weight for one candidate; the first matching rule wins."""
    if minutes_left < 0:
        return EXPIRED_PROBABILITY
    if minutes_left == max_freshness:
        return FRESHEST_PROBABILITY
    for threshold, probability in FRESHNESS_PROBABILITIES:
        if minutes_left > threshold:
            return probability
    return STALE_PROBABILITY


def weighted_pick(probabilities: Sequence[float], draw: float) -> int:
    """Index of the first entry whose cumulative probability reaches ``draw``.

    Falls back to index 0 when ``draw`` exceeds the total weight.
    """
    cumulative = 0.0
    for index, probability in enumerate(probabilities):
        cumulative += probability
        if draw <= cumulative:
            return index
    return 0


class AccountSelector:
    """Picks one account per request from the non-failed pool."""

    def __init__(
        self,
        store: CredentialStore,
        registry: FailureRegistry,
        refresher: TokenRefresher,
        rng: random.Random | None = None,
        clock: Clock = utc_now,
    ) -> None:
        self.store = store
        self.registry = registry
        self.refresher = refresher
        self._rng = rng or random.Random()
        self._clock = clock

    async def load_candidates(self) -> list[Candidate]:
        """Non-failed accounts with a loadable credential, in enumeration order.

        Raises:
            NoAccountsAvailableError: If no candidate remains
        """
        account_ids = await self.store.list_account_ids()
        failed = set(await self.registry.list_failed())
        available = [account_id for account_id in account_ids if account_id not in failed]
        if not available:
            logger.warning("no_available_accounts", total=len(account_ids), failed=len(failed))
            raise NoAccountsAvailableError()

        now = self._clock()
        candidates: list[Candidate] = []
        for account_id in available:
            credential = await self.store.get(account_id)
            if credential is None:
                logger.debug("account_credentials_missing", account=account_id)
                continue
            candidates.append(Candidate(account_id, credential, credential.minutes_left(now)))

        if not candidates:
            logger.warning("no_loadable_credentials", available=len(available))
            raise NoAccountsAvailableError()
        return candidates

    async def select(self) -> SelectionState:
        """Choose an account, refreshing it first if its token has expired.

        Raises:
            NoAccountsAvailableError: If every account is failed or unloadable,
                or the pick is expired, cannot be refreshed and no other
                candidate has a live token
        """
        candidates = await self.load_candidates()
        max_freshness = max(candidate.minutes_left for candidate in candidates)
        probabilities = [
            selection_probability(candidate.minutes_left, max_freshness)
            for candidate in candidates
        ]
        chosen = candidates[weighted_pick(probabilities, self._rng.random())]
        logger.info(
            "account_selected",
            account=chosen.account_id,
            minutes_left=round(chosen.minutes_left, 1),
            candidates=len(candidates),
        )

        if chosen.minutes_left >= 0:
            return SelectionState(chosen.account_id, chosen.credential)

        try:
            refreshed = await self.refresher.refresh(
                chosen.account_id,
                chosen.credential.refresh_token,
                current=chosen.credential,
            )
        except RefreshFailedError as e:
            # Expiry alone is not a failure; leave the registry alone
            logger.warning(
                "proactive_refresh_failed",
                account=chosen.account_id,
                error=e.provider_error,
            )
        else:
            return SelectionState(chosen.account_id, refreshed)

        live = [candidate for candidate in candidates if candidate.minutes_left >= 0]
        if not live:
            raise NoAccountsAvailableError(
                f"No valid accounts available. Proactive refresh failed for {chosen.account_id}."
            )
        fallback = max(live, key=lambda candidate: candidate.minutes_left)
        logger.info("account_fallback_selected", account=fallback.account_id, replaced=chosen.account_id)
        return SelectionState(fallback.account_id, fallback.credential)
