"""Qwen OAuth device flow and token refresh."""

from .token_exchange import (
    DeviceAuthorization,
    credential_from_token_response,
    generate_code_challenge,
    generate_code_verifier,
    generate_pkce_pair,
    poll_device_token,
    refresh_access_token,
    request_device_code,
    start_device_flow,
)


__all__ = [
    "DeviceAuthorization",
    "credential_from_token_response",
    "generate_code_challenge",
    "generate_code_verifier",
    "generate_pkce_pair",
    "poll_device_token",
    "refresh_access_token",
    "request_device_code",
    "start_device_flow",
]
