"""OAuth configuration for the Qwen token endpoints."""

from pydantic import BaseModel, Field

from qwen_code_proxy.core.validators import PositiveTimeout


QWEN_OAUTH_BASE_URL = "https://chat.qwen.ai"


class OAuthSettings(BaseModel):
    """Qwen OAuth client and endpoint settings."""

    base_url: str = Field(default=QWEN_OAUTH_BASE_URL)
    client_id: str = Field(default="f0304373b74a44d2b584a3fb70ca9e56")
    scope: str = Field(default="openid profile email model.completion")
    device_code_path: str = Field(default="/api/v1/oauth2/device/code")
    token_path: str = Field(default="/api/v1/oauth2/token")
    timeout: PositiveTimeout = Field(default=30.0, description="Token endpoint timeout")
    device_poll_interval: float = Field(
        default=10.0,
        ge=0,
        description="Seconds between device-flow token polls",
    )
    device_poll_attempts: int = Field(
        default=30,
        ge=1,
        description="Maximum device-flow token polls before giving up",
    )

    @property
    def device_code_url(self) -> str:
        return f"{self.base_url.rstrip('/')}{self.device_code_path}"

    @property
    def token_url(self) -> str:
        return f"{self.base_url.rstrip('/')}{self.token_path}"
