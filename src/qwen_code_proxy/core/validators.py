"""Field types and parsing helpers shared by settings and the credential store."""

from typing import Annotated

from pydantic import Field


__all__ = [
    "Port",
    "PositiveTimeout",
    "NonEmptyStr",
    "parse_comma_separated",
]


Port = Annotated[int, Field(ge=1, le=65535, description="TCP port")]
PositiveTimeout = Annotated[float, Field(gt=0, description="Seconds")]
NonEmptyStr = Annotated[str, Field(min_length=1)]


def parse_comma_separated(value: str | None, unique: bool = False) -> list[str]:
    """Split a comma-joined value into trimmed, non-empty items.

    Used for the client API key setting and the stored ``FAILED_ACCOUNTS``
    list. With ``unique`` set, later repeats of an item are dropped.
    """
    if not value:
        return []
    items: list[str] = []
    for raw in value.split(","):
        item = raw.strip()
        if item and not (unique and item in items):
            items.append(item)
    return items
