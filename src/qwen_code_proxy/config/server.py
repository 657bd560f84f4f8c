"""Server configuration settings."""

from typing import Literal

from pydantic import BaseModel, Field

from qwen_code_proxy.core.validators import Port


class ServerSettings(BaseModel):
    """HTTP server and logging settings."""

    host: str = Field(default="127.0.0.1", description="Server host address")
    port: Port = Field(default=8000, description="Server port number")
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )
    log_format: Literal["console", "json"] = Field(
        default="console",
        description="Log renderer: human-readable console or JSON lines",
    )
    reload: bool = Field(default=False, description="Enable auto-reload for development")
