"""OAuth protocol constants for the Qwen device flow.

Endpoint URLs and the client id are configuration (``OAuthSettings``); the
values here are fixed by RFC 8628 and the token endpoint's response format.
"""

DEVICE_CODE_GRANT_TYPE = "urn:ietf:params:oauth:grant-type:device_code"
REFRESH_TOKEN_GRANT_TYPE = "refresh_token"
CODE_CHALLENGE_METHOD = "S256"

# Device-flow poll errors that mean "ask again later"
PENDING_OAUTH_ERRORS = frozenset({"authorization_pending", "slow_down"})

DEFAULT_TOKEN_EXPIRY_SECONDS = 3600
CODE_VERIFIER_BYTES = 96

FORM_HEADERS = {
    "Content-Type": "application/x-www-form-urlencoded",
    "Accept": "application/json",
}
