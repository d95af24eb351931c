"""Health check endpoint.

Reports which upstream dependencies are configured. It does not probe them:
the gateway holds no connections of its own worth checking, and the endpoint
always returns 200 so load balancers keep routing.
"""

from __future__ import annotations

from collections.abc import Callable

from fastapi import APIRouter, Depends

from gateway.config import Settings, get_settings
from gateway.utils.errors import BackendNotConfigured

router = APIRouter(tags=["health"])


def _configured(accessor: Callable[[], object]) -> str:
    try:
        accessor()
    except BackendNotConfigured:
        return "not_configured"
    return "configured"


@router.get("/health")
async def health_check(settings: Settings = Depends(get_settings)) -> dict:
    return {
        "status": "ok",
        "version": "0.1.0",
        "environment": settings.environment,
        "agent": _configured(settings.agent_endpoint),
        "merchant": _configured(settings.admin_endpoint),
        "accounts": _configured(settings.accounts_origin),
    }
