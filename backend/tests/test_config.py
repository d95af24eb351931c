"""Tests for settings sanitization and per-operation endpoint resolution."""

from __future__ import annotations

import pytest

from gateway.config import Settings, sanitize_env_value, to_shop_invoke_url
from gateway.utils.errors import BackendNotConfigured


def _settings(**values) -> Settings:
    return Settings(_env_file=None, **values)


class TestSanitize:
    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ('"https://agent.test"\n', "https://agent.test"),
            ("'secret'\\r\\n", "secret"),
            ("  plain  ", "plain"),
            (None, ""),
        ],
    )
    def test_strips_quotes_and_line_breaks(self, raw, expected):
        assert sanitize_env_value(raw) == expected

    def test_applies_to_every_field(self):
        s = _settings(agent_api_key='"key"\r\n', merchant_api_base_url="https://m.test/")
        assert s.agent_api_key == "key"
        assert s.merchant_api_base_url == "https://m.test"


class TestInvokeUrl:
    def test_creator_path_rewritten_to_shop(self):
        url = to_shop_invoke_url("https://agent.test/agent/creator/v1/invoke")
        assert url == "https://agent.test/agent/shop/v1/invoke"

    def test_shop_path_untouched(self):
        url = "https://agent.test/agent/shop/v1/invoke"
        assert to_shop_invoke_url(url) == url

    def test_applied_on_load(self):
        s = _settings(checkout_agent_url="https://c.test/agent/creator/v1/invoke")
        assert s.checkout_agent_url == "https://c.test/agent/shop/v1/invoke"


class TestAccessors:
    @pytest.mark.parametrize(
        "accessor",
        ["agent_endpoint", "checkout_endpoint", "agent_base", "admin_endpoint", "accounts_origin"],
    )
    def test_unconfigured_raises(self, accessor):
        with pytest.raises(BackendNotConfigured):
            getattr(_settings(), accessor)()

    def test_admin_needs_both_url_and_key(self):
        with pytest.raises(BackendNotConfigured):
            _settings(merchant_api_base_url="https://m.test").admin_endpoint()
        endpoint = _settings(merchant_api_base_url="https://m.test", merchant_admin_key="k")
        assert endpoint.admin_endpoint().url("/x", "?a=1") == "https://m.test/x?a=1"

    def test_agent_base_strips_invoke_suffix(self):
        s = _settings(agent_url="https://agent.test/root/agent/shop/v1/invoke")
        assert s.agent_base() == "https://agent.test/root"
        assert _settings(agent_base_url="https://base.test/").agent_base() == "https://base.test"

    def test_checkout_falls_back_to_agent(self):
        s = _settings(agent_url="https://agent.test/agent/shop/v1/invoke", agent_api_key="a")
        endpoint = s.checkout_endpoint()
        assert endpoint.invoke_url == s.agent_url
        assert endpoint.api_key == "a"
        assert endpoint.bearer_token == ""

    def test_accounts_origin_and_reviews_base(self):
        s = _settings(accounts_upstream_base="https://acc.test/accounts/")
        assert s.accounts_origin() == "https://acc.test"
        assert s.reviews_base() == "https://acc.test"
        s = _settings(reviews_upstream_base="https://reviews.test")
        assert s.reviews_base() == "https://reviews.test"
