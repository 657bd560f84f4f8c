"""Multi-account rotation: selection, refresh, failure tracking and failover."""

from .failures import FailureRegistry
from .refresh import TokenRefresher
from .retry import RetryCoordinator, RetryDecision
from .selector import AccountSelector, SelectionState, selection_probability, weighted_pick


__all__ = [
    "AccountSelector",
    "FailureRegistry",
    "RetryCoordinator",
    "RetryDecision",
    "SelectionState",
    "TokenRefresher",
    "selection_probability",
    "weighted_pick",
]
