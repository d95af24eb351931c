from __future__ import annotations

import re
from dataclasses import dataclass

from pydantic import field_validator
from pydantic_settings import BaseSettings

from gateway.utils.errors import BackendNotConfigured

_SHOP_INVOKE_PATH = "/agent/shop/v1/invoke"
_CREATOR_INVOKE_PATH = "/agent/creator/v1/invoke"
_INVOKE_SUFFIX_RE = re.compile(r"/agent/(shop|creator)/v1/invoke/?$")


def sanitize_env_value(raw: str | None) -> str:
    """Strip stray CR/LF (real or escaped) and wrapping quotes from an env value."""
    value = str(raw or "")
    for junk in ("\r", "\n", "\\r", "\\n"):
        value = value.replace(junk, "")
    return value.strip().strip("'\"").strip()


def to_shop_invoke_url(raw: str) -> str:
    value = sanitize_env_value(raw)
    if not value or _SHOP_INVOKE_PATH in value:
        return value
    return value.replace(_CREATOR_INVOKE_PATH, _SHOP_INVOKE_PATH)


@dataclass(frozen=True)
class AgentEndpoint:
    """Resolved shopping-agent target plus its two independent credential slots."""

    invoke_url: str
    bearer_token: str = ""
    api_key: str = ""

    def auth_headers(self) -> dict[str, str]:
        headers: dict[str, str] = {}
        if self.bearer_token:
            headers["Authorization"] = f"Bearer {self.bearer_token}"
        if self.api_key:
            headers["X-Agent-API-Key"] = self.api_key
        return headers


@dataclass(frozen=True)
class AdminEndpoint:
    base_url: str
    admin_key: str

    def url(self, path: str, query: str = "") -> str:
        return f"{self.base_url}{path}{query}"


class Settings(BaseSettings):
    model_config = {
        "env_file": "../.env",
        "extra": "ignore",
        "env_prefix": "",
        "case_sensitive": False,
    }

    # Shopping agent
    agent_url: str = ""
    agent_base_url: str = ""
    agent_bearer_token: str = ""
    agent_api_key: str = ""
    checkout_agent_url: str = ""
    checkout_agent_api_key: str = ""

    # Merchant admin backend
    merchant_api_base_url: str = ""
    merchant_admin_key: str = ""

    # Accounts / reviews
    accounts_upstream_base: str = ""
    reviews_upstream_base: str = ""

    # App
    environment: str = "development"
    log_level: str = "INFO"

    @field_validator("*", mode="before")
    @classmethod
    def _sanitize(cls, value: object) -> object:
        if isinstance(value, str):
            return sanitize_env_value(value)
        return value

    @field_validator(
        "agent_base_url",
        "merchant_api_base_url",
        "accounts_upstream_base",
        "reviews_upstream_base",
    )
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")

    @field_validator("agent_url", "checkout_agent_url")
    @classmethod
    def _normalize_invoke_url(cls, value: str) -> str:
        return to_shop_invoke_url(value)

    # --- per-operation accessors: raise instead of handing out blanks ---

    def agent_endpoint(self) -> AgentEndpoint:
        if not self.agent_url:
            raise BackendNotConfigured("AGENT_URL is not configured")
        return AgentEndpoint(
            invoke_url=self.agent_url,
            bearer_token=self.agent_bearer_token,
            api_key=self.agent_api_key,
        )

    def checkout_endpoint(self) -> AgentEndpoint:
        invoke_url = self.checkout_agent_url or self.agent_url
        if not invoke_url:
            raise BackendNotConfigured("CHECKOUT_AGENT_URL (or AGENT_URL) is not configured")
        return AgentEndpoint(
            invoke_url=invoke_url,
            api_key=self.checkout_agent_api_key or self.agent_api_key,
        )

    def agent_base(self) -> str:
        if self.agent_base_url:
            return self.agent_base_url
        base = _INVOKE_SUFFIX_RE.sub("", self.agent_url).rstrip("/")
        if not base:
            raise BackendNotConfigured("AGENT_BASE_URL (or AGENT_URL) is not configured")
        return base

    def admin_endpoint(self) -> AdminEndpoint:
        if not self.merchant_api_base_url or not self.merchant_admin_key:
            raise BackendNotConfigured("Merchant backend is not configured.")
        return AdminEndpoint(base_url=self.merchant_api_base_url, admin_key=self.merchant_admin_key)

    def accounts_origin(self) -> str:
        base = self.accounts_upstream_base
        if not base:
            raise BackendNotConfigured("ACCOUNTS_UPSTREAM_BASE is not configured")
        return base.removesuffix("/accounts")

    def reviews_base(self) -> str:
        if self.reviews_upstream_base:
            return self.reviews_upstream_base
        return self.accounts_origin()


settings = Settings()


def get_settings() -> Settings:
    """FastAPI dependency; overridden in tests."""
    return settings
