"""Credential store backend settings."""

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field


DEFAULT_STORE_PATH = Path("~/.qwen/proxy-store.json")


class StoreSettings(BaseModel):
    """Which key-value backend holds account credentials."""

    backend: Literal["memory", "file", "redis"] = Field(
        default="file",
        description="Key-value backend for credentials and the failed-account list",
    )
    path: Path = Field(
        default=DEFAULT_STORE_PATH,
        description="JSON document used by the file backend",
    )
    redis_url: str | None = Field(
        default=None,
        description="Connection URL used by the redis backend",
    )

    @property
    def resolved_path(self) -> Path:
        return Path(self.path).expanduser()
