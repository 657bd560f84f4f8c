"""Service description and liveness routes."""

from datetime import UTC, datetime
from typing import Any

from fastapi import APIRouter

from qwen_code_proxy import __version__


router = APIRouter(tags=["root"])


@router.get("/")
async def root() -> dict[str, Any]:
    return {
        "name": "Qwen Code Proxy",
        "version": __version__,
        "description": "OpenAI-compatible proxy for Qwen models with multi-account OAuth rotation",
        "endpoints": {
            "chat_completions": "/v1/chat/completions",
            "models": "/v1/models",
            "health": "/health",
            "debug": {
                "accounts": "/v1/debug/accounts",
                "failed": "/v1/debug/failed",
            },
        },
    }


@router.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok", "timestamp": datetime.now(UTC).isoformat()}
