"""Shared fixtures: the ASGI app under test plus a scripted fake upstream.

Every outbound call the gateway makes goes through ``httpx.MockTransport``
into ``FakeUpstream``, which records the request and answers with whatever
handler the test installed.
"""

from __future__ import annotations

import json
from collections.abc import Callable

import httpx
import pytest

from gateway.api.deps import get_http_client
from gateway.config import Settings, get_settings
from gateway.main import app

AGENT_URL = "https://agent.test/agent/shop/v1/invoke"
MERCHANT_URL = "https://merchant.test"
ACCOUNTS_URL = "https://accounts.test/accounts"


class FakeUpstream:
    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.handler: Callable[[httpx.Request], httpx.Response] = lambda _: httpx.Response(
            200, json={}
        )

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.handler(request)

    def reply(self, status: int = 200, **kwargs) -> None:
        """Answer every request with the same response."""
        self.handler = lambda _: httpx.Response(status, **kwargs)

    @property
    def last(self) -> httpx.Request:
        return self.requests[-1]

    def last_json(self) -> dict:
        return json.loads(self.last.content)


@pytest.fixture
def upstream() -> FakeUpstream:
    return FakeUpstream()


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        agent_url=AGENT_URL,
        agent_bearer_token="bearer-token",
        agent_api_key="agent-key",
        merchant_api_base_url=MERCHANT_URL,
        merchant_admin_key="admin-key",
        accounts_upstream_base=ACCOUNTS_URL,
    )


@pytest.fixture
async def upstream_client(upstream):
    async with httpx.AsyncClient(transport=httpx.MockTransport(upstream)) as c:
        yield c


@pytest.fixture
async def client(settings, upstream_client):
    """In-process client for the gateway app, wired to the fake upstream."""
    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_http_client] = lambda: upstream_client
    try:
        async with httpx.AsyncClient(
            transport=httpx.ASGITransport(app=app), base_url="http://test"
        ) as c:
            yield c
    finally:
        app.dependency_overrides.clear()
