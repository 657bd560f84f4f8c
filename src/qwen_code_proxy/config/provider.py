"""Chat-completion provider settings."""

from pydantic import BaseModel, Field

from qwen_code_proxy.core.validators import NonEmptyStr, PositiveTimeout


class ProviderSettings(BaseModel):
    """Upstream chat-completion API settings."""

    base_url: NonEmptyStr = Field(
        default="https://dashscope.aliyuncs.com/compatible-mode/v1",
        description="Endpoint used when a credential has no resource_url",
    )
    default_model: NonEmptyStr = Field(default="qwen3-coder-plus")
    timeout: PositiveTimeout = Field(default=300.0, description="Per-call timeout")
    user_agent: str = Field(default="QwenCodeProxy/1.0.0")
    max_retries: int = Field(
        default=1,
        ge=0,
        le=1,
        description="Failover retries per request (at most one)",
    )
