"""Security configuration settings."""

from pydantic import BaseModel, Field

from qwen_code_proxy.core.validators import parse_comma_separated


class SecuritySettings(BaseModel):
    """Client API keys and admin secret."""

    api_keys: str = Field(
        default="",
        description="Comma-separated list of accepted client API keys (empty disables auth)",
    )
    admin_secret: str | None = Field(
        default=None,
        description="Secret required by the account debug endpoints",
    )

    @property
    def api_key_list(self) -> list[str]:
        """Client API keys as a list."""
        return parse_comma_separated(self.api_keys)

    @property
    def api_keys_enabled(self) -> bool:
        """Whether client API key authentication is required."""
        return bool(self.api_key_list)
