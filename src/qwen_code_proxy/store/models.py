"""Records kept in the credential store."""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from qwen_code_proxy.core.clock import to_millis


_KNOWN_FIELDS = (
    "access_token",
    "refresh_token",
    "scope",
    "token_type",
    "expiry_date",
    "resource_url",
)


@dataclass
class AccountCredential:
    """OAuth state for one provider account.

    ``expiry_date`` is the Unix time in milliseconds after which the access
    token must not be used without a refresh.
    """

    access_token: str
    refresh_token: str
    expiry_date: int
    scope: str = ""
    token_type: str = "Bearer"
    resource_url: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    @property
    def expires_at_datetime(self) -> datetime:
        """Convert expiry_date to datetime."""
        return datetime.fromtimestamp(self.expiry_date / 1000, tz=UTC)

    def minutes_left(self, now: datetime) -> float:
        """Minutes until expiry (negative once expired)."""
        return (self.expiry_date - to_millis(now)) / 60000

    def is_expired(self, now: datetime) -> bool:
        return self.minutes_left(now) < 0

    def to_dict(self) -> dict[str, Any]:
        """Convert to the stored JSON shape.

        Known fields come first in a fixed order, followed by any extra fields
        the record was loaded with.
        """
        data: dict[str, Any] = {
            "access_token": self.access_token,
            "refresh_token": self.refresh_token,
            "scope": self.scope,
            "token_type": self.token_type,
            "expiry_date": self.expiry_date,
        }
        if self.resource_url is not None:
            data["resource_url"] = self.resource_url
        data.update(self.extra)
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AccountCredential":
        """Create from a stored JSON object.

        Raises:
            KeyError: If ``access_token`` or ``expiry_date`` is missing
            ValueError: If a field has an unusable value
        """
        access_token = data["access_token"]
        if not isinstance(access_token, str) or not access_token:
            raise ValueError("access_token must be a non-empty string")

        expiry_date = data["expiry_date"]
        if isinstance(expiry_date, bool) or not isinstance(expiry_date, int | float):
            raise ValueError("expiry_date must be a number of milliseconds")

        return cls(
            access_token=access_token,
            refresh_token=data.get("refresh_token") or "",
            expiry_date=int(expiry_date),
            scope=data.get("scope") or "",
            token_type=data.get("token_type") or "Bearer",
            resource_url=data.get("resource_url"),
            extra={k: v for k, v in data.items() if k not in _KNOWN_FIELDS},
        )


@dataclass
class FailedAccountSet:
    """Accounts excluded from selection plus the UTC day the set was last cleared."""

    ids: list[str] = field(default_factory=list)
    reset_date: str | None = None

    def __contains__(self, account_id: object) -> bool:
        return account_id in self.ids
