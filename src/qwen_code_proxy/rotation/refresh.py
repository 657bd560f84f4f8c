"""Token refresh for pooled accounts.

A refresh is a single refresh-token grant with no internal retry loop: the
selector and the retry coordinator decide what to do when it fails.
"""

import httpx
from structlog import get_logger

from qwen_code_proxy.auth.oauth.token_exchange import (
    credential_from_token_response,
    refresh_access_token,
)
from qwen_code_proxy.config.oauth import OAuthSettings
from qwen_code_proxy.core.clock import Clock, to_millis, utc_now
from qwen_code_proxy.exceptions import RefreshFailedError, TokenExchangeError
from qwen_code_proxy.store import AccountCredential, CredentialStore


logger = get_logger(__name__)


class TokenRefresher:
    """Exchanges refresh tokens for access tokens and persists the result."""

    def __init__(
        self,
        store: CredentialStore,
        config: OAuthSettings | None = None,
        client: httpx.AsyncClient | None = None,
        clock: Clock = utc_now,
    ) -> None:
        self.store = store
        self.config = config or OAuthSettings()
        self._client = client
        self._clock = clock

    async def refresh(
        self,
        account_id: str,
        refresh_token: str,
        *,
        current: AccountCredential | None = None,
    ) -> AccountCredential:
        """Refresh one account's access token and store the new credential.

        Args:
            account_id: Account being refreshed
            refresh_token: Refresh token to exchange
            current: Credential being replaced; loaded from the store when omitted.
                Its refresh token, resource_url and extra fields are kept when
                the token response does not supply new ones.

        Returns:
            The stored credential

        Raises:
            RefreshFailedError: If there is no refresh token, the token endpoint
                rejects the grant, or the request fails in transport
        """
        if not refresh_token:
            raise RefreshFailedError(account_id, "No refresh token available")

        logger.info("token_refresh_started", account=account_id)
        try:
            data = await refresh_access_token(refresh_token, config=self.config, client=self._client)
        except TokenExchangeError as e:
            logger.warning(
                "token_refresh_failed",
                account=account_id,
                status=e.status_code,
                oauth_error=e.oauth_error,
            )
            raise RefreshFailedError(account_id, e.response_text or e.message) from e
        except httpx.HTTPError as e:
            logger.warning("token_refresh_failed", account=account_id, error=repr(e))
            raise RefreshFailedError(account_id, str(e) or type(e).__name__) from e

        if current is None:
            current = await self.store.get(account_id)
        credential = credential_from_token_response(
            data,
            now_ms=to_millis(self._clock()),
            previous=current,
            fallback_refresh_token=refresh_token,
        )
        await self.store.put(account_id, credential)

        logger.info(
            "token_refresh_success",
            account=account_id,
            expires_in_minutes=round(credential.minutes_left(self._clock()), 1),
        )
        return credential
