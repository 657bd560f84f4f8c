"""Request execution, provider calls and stream relaying."""

from .account_health import AccountHealth, AccountHealthChecker
from .executor import RequestExecutor
from .provider_client import ProviderClient, build_payload, resolve_endpoint
from .stream_relay import StreamRelay, StreamSession


__all__ = [
    "AccountHealth",
    "AccountHealthChecker",
    "ProviderClient",
    "RequestExecutor",
    "StreamRelay",
    "StreamSession",
    "build_payload",
    "resolve_endpoint",
]
