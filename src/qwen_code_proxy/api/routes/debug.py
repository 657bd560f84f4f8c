"""Account introspection routes, guarded by the admin secret."""

from typing import Any

from fastapi import APIRouter, Depends

from qwen_code_proxy.api.dependencies import Services, require_admin_secret


router = APIRouter(
    prefix="/v1/debug",
    tags=["debug"],
    dependencies=[Depends(require_admin_secret)],
)


@router.get("/accounts")
async def accounts_health(services: Services) -> dict[str, Any]:
    """Live health check of every stored account."""
    results = await services.health_checker.check_all()
    return {
        "accounts": [health.to_dict() for health in results],
        "summary": {
            "total": len(results),
            "healthy": sum(1 for health in results if health.status == "healthy"),
            "failed": sum(1 for health in results if health.is_failed),
        },
    }


@router.get("/failed")
async def failed_accounts(services: Services) -> dict[str, Any]:
    failed = await services.registry.ensure_daily_reset()
    return {"failed_accounts": failed.ids, "last_reset_date": failed.reset_date}
