from __future__ import annotations

import httpx
from fastapi import Request


def get_http_client(request: Request) -> httpx.AsyncClient:
    """The process-wide client opened in the app lifespan; overridden in tests."""
    return request.app.state.http_client
