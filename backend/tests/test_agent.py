"""Tests for the shopping-agent client: envelope handling and per-operation payloads."""

from __future__ import annotations

import httpx
import pytest

from gateway.config import AgentEndpoint, Settings
from gateway.models.contracts import ChatMessage, SearchOptions
from gateway.services import agent
from gateway.utils.errors import (
    BackendNotConfigured,
    NotFoundError,
    RequestValidationFailed,
    UpstreamError,
)


def _user(text: str) -> list[ChatMessage]:
    return [ChatMessage(role="user", content=text)]


class TestUnwrap:
    def test_strategy_order(self):
        assert agent.ENVELOPE_STRATEGIES == ("flat", "output", "data")
        data = {"output": {"products": [2]}, "data": {"products": [3]}}
        assert agent.unwrap(data, "products") == [2]
        assert agent.unwrap({**data, "products": [1]}, "products") == [1]

    def test_fields_tried_in_order(self):
        data = {"data": {"items": ["a"]}, "output": {"products": ["b"]}}
        assert agent.unwrap(data, "products", "items") == ["b"]
        assert agent.unwrap({"data": {"items": ["a"]}}, "products", "items") == ["a"]

    def test_non_dict(self):
        assert agent.unwrap(None, "products") is None
        assert agent.unwrap([1, 2], "products") is None


class TestEnvelope:
    def test_source_always_set(self):
        envelope = agent.build_envelope("op", {"a": 1}, {"source": "other", "creator_id": "c"})
        assert envelope == {
            "operation": "op",
            "payload": {"a": 1},
            "metadata": {"source": "creator-agent-ui", "creator_id": "c"},
        }

    def test_auth_headers_only_when_configured(self):
        assert AgentEndpoint(invoke_url="https://agent.test").auth_headers() == {}
        headers = AgentEndpoint(invoke_url="https://agent.test", api_key="k").auth_headers()
        assert headers == {"X-Agent-API-Key": "k"}


class TestInvokeAgent:
    @pytest.mark.asyncio
    async def test_posts_envelope_with_credentials(self, upstream, upstream_client, settings):
        upstream.reply(200, json={"ok": True})
        result = await agent.invoke_agent(
            upstream_client, settings.agent_endpoint(), "get_product_detail", {"x": 1}
        )
        assert result == {"ok": True}
        assert str(upstream.last.url) == settings.agent_url
        assert upstream.last.headers["Authorization"] == "Bearer bearer-token"
        assert upstream.last.headers["X-Agent-API-Key"] == "agent-key"
        assert upstream.last_json()["operation"] == "get_product_detail"

    @pytest.mark.asyncio
    async def test_non_2xx_raises_with_status_and_body(self, upstream, upstream_client, settings):
        upstream.reply(429, text='{"detail":"slow down"}')
        with pytest.raises(UpstreamError) as exc_info:
            await agent.invoke_agent(upstream_client, settings.agent_endpoint(), "op", {})
        assert exc_info.value.upstream_status == 429
        assert exc_info.value.message == 'op failed with status 429 body: {"detail":"slow down"}'


class TestNormalizeQuery:
    @pytest.mark.parametrize("text", ["Show me popular items", "  recommend something  ", ""])
    def test_generic_intents_become_empty(self, text):
        assert agent.normalize_query(text) == ""

    def test_trims(self):
        assert agent.normalize_query("  linen shirt ") == "linen shirt"


class TestDerivePageInfo:
    def test_upstream_fields(self):
        info = agent.derive_page_info(
            {"page": 2, "page_size": 10, "total": 35}, product_count=10, page=1, limit=24
        )
        assert (info.page, info.page_size, info.total, info.has_more) == (2, 10, 35, True)

    def test_last_page_from_total(self):
        info = agent.derive_page_info({"page": 4, "pageSize": 10, "total": 35}, 5, 1, 24)
        assert info.has_more is False

    def test_explicit_has_more_wins(self):
        info = agent.derive_page_info({"total": 1000, "hasMore": False}, 24, 1, 24)
        assert info.has_more is False

    def test_fallback_to_request_and_count(self):
        info = agent.derive_page_info({}, product_count=24, page=3, limit=24)
        assert (info.page, info.page_size, info.total, info.has_more) == (3, 24, None, True)
        assert agent.derive_page_info({}, 5, 1, 24).has_more is False


class TestRunCreatorAgentTurn:
    @pytest.mark.asyncio
    async def test_validation_before_network(self, upstream, upstream_client, settings):
        with pytest.raises(RequestValidationFailed):
            await agent.run_creator_agent_turn(upstream_client, settings, None, _user("hi"))
        with pytest.raises(NotFoundError):
            await agent.run_creator_agent_turn(upstream_client, settings, "nobody", _user("hi"))
        with pytest.raises(BackendNotConfigured):
            await agent.run_creator_agent_turn(
                upstream_client, Settings(_env_file=None), "creator_demo_001", _user("hi")
            )
        assert upstream.requests == []

    @pytest.mark.asyncio
    async def test_payload(self, upstream, upstream_client, settings):
        upstream.reply(200, json={"products": []})
        await agent.run_creator_agent_turn(
            upstream_client,
            settings,
            "creator_demo_001",
            _user("Show me popular items"),
            user_id="u1",
            recent_queries=["a", "", "b", "c", "d", "e", "f"],
            trace_id="t-1",
            search=SearchOptions(page=2.7, limit=0),
        )
        sent = upstream.last_json()
        assert sent["operation"] == "find_products_multi"
        search = sent["payload"]["search"]
        assert search["query"] == ""
        assert search["page"] == 2
        assert search["limit"] == 24
        assert sent["payload"]["user"] == {"id": "u1", "recent_queries": ["b", "c", "d", "e", "f"]}
        metadata = sent["metadata"]
        assert metadata["creator_id"] == "creator_demo_001"
        assert metadata["creator_name"] == "Nina Studio"
        assert metadata["trace_id"] == "t-1"
        assert metadata["source"] == "creator-agent-ui"

    @pytest.mark.asyncio
    async def test_search_query_overrides_message(self, upstream, upstream_client, settings):
        upstream.reply(200, json={})
        await agent.run_creator_agent_turn(
            upstream_client,
            settings,
            "creator_demo_001",
            _user("anything"),
            search=SearchOptions(query=" trail shoes "),
        )
        assert upstream.last_json()["payload"]["search"]["query"] == "trail shoes"

    @pytest.mark.asyncio
    async def test_products_and_upstream_reply(self, upstream, upstream_client, settings):
        product = {
            "id": "p1",
            "title": "Tee",
            "description": "",
            "price": 20,
            "currency": "USD",
            "image_url": "https://img.test/p1.jpg",
            "inventory_quantity": 1,
        }
        upstream.reply(200, json={"output": {"products": [product], "reply": "Try these."}})
        result = await agent.run_creator_agent_turn(
            upstream_client, settings, "creator_demo_001", _user("tee")
        )
        assert result.reply == "Try these."
        assert result.products[0]["imageUrl"] == "https://img.test/p1.jpg"
        assert result.agent_url_used == settings.agent_url
        assert result.page_info.has_more is False

    @pytest.mark.asyncio
    async def test_fallback_replies(self, upstream, upstream_client, settings):
        upstream.reply(200, json={"products": []})
        with_query = await agent.run_creator_agent_turn(
            upstream_client, settings, "creator_demo_001", _user("purple wellies")
        )
        assert with_query.reply == agent.REPLY_NO_RESULTS
        no_query = await agent.run_creator_agent_turn(
            upstream_client, settings, "creator_demo_001", []
        )
        assert no_query.reply == agent.REPLY_EMPTY


class TestFindSimilarProducts:
    @pytest.mark.asyncio
    async def test_validation(self, upstream, upstream_client, settings):
        with pytest.raises(RequestValidationFailed):
            await agent.find_similar_products(upstream_client, settings, "nina-studio", None)
        with pytest.raises(NotFoundError):
            await agent.find_similar_products(upstream_client, settings, "ghost", "p1")
        assert upstream.requests == []

    @pytest.mark.asyncio
    async def test_items_with_item_level_deals(self, upstream, upstream_client, settings):
        upstream.reply(
            200,
            json={
                "strategy_used": "content_embedding",
                "items": [
                    {
                        "product": {
                            "id": "p2",
                            "title": "Shorts",
                            "description": "",
                            "price": 30,
                            "currency": "USD",
                            "image_url": "https://img.test/p2.jpg",
                            "inventory_quantity": 3,
                        },
                        "best_deal": {"deal_id": "d9", "type": "FLASH_SALE"},
                    }
                ],
            },
        )
        result = await agent.find_similar_products(upstream_client, settings, "nina-studio", "p1")
        assert result.base_product_id == "p1"
        assert result.strategy_used == "content_embedding"
        assert result.products[0].best_deal.deal_id == "d9"
        sent = upstream.last_json()["payload"]
        assert sent == {
            "product_id": "p1",
            "creator_id": "creator_demo_001",
            "limit": 12,
            "strategy": "auto",
        }

    @pytest.mark.asyncio
    async def test_partial_item_skipped(self, upstream, upstream_client, settings):
        good = {
            "id": "p2",
            "title": "Shorts",
            "description": "",
            "price": 30,
            "currency": "USD",
            "image_url": "https://img.test/p2.jpg",
            "inventory_quantity": 3,
        }
        partial = {"id": "p3", "title": "Cap", "price": 12, "currency": "USD", "image_url": ""}
        upstream.reply(200, json={"items": [{"product": good}, {"product": partial}]})
        result = await agent.find_similar_products(upstream_client, settings, "nina-studio", "p1")
        assert [p.id for p in result.products] == ["p2"]


class TestGetPdp:
    @pytest.mark.asyncio
    async def test_requires_both_ids(self, upstream, upstream_client, settings):
        with pytest.raises(RequestValidationFailed):
            await agent.get_pdp(upstream_client, settings, "  ", "p1")
        assert upstream.requests == []

    @pytest.mark.asyncio
    async def test_payload(self, upstream, upstream_client, settings):
        upstream.reply(200, json={"modules": []})
        await agent.get_pdp(
            upstream_client, settings, "m1", "p1", include=["offers", ""], debug=True
        )
        sent = upstream.last_json()
        assert sent["operation"] == "get_pdp_v2"
        assert sent["payload"] == {
            "product_ref": {"product_id": "p1", "merchant_id": "m1"},
            "options": {"debug": True},
            "include": ["offers"],
        }


class TestRecommendations:
    def test_item_without_currency_has_no_default(self):
        item = agent.to_recommendation_item({"id": "p1", "price": 12.5})
        assert item.price == {"amount": 12.5}
        assert item.title == "p1"

    def test_item_requires_id(self):
        assert agent.to_recommendation_item({"title": "nameless"}) is None

    @pytest.mark.asyncio
    async def test_degrades_to_empty(self, upstream, upstream_client, settings):
        upstream.reply(503, text="unavailable")
        items = await agent.get_recommendations(upstream_client, settings, "m1", "p1")
        assert items == []

    @pytest.mark.asyncio
    async def test_transport_failure_degrades_to_empty(self, upstream, upstream_client, settings):
        def boom(request):
            raise httpx.ConnectError("refused", request=request)

        upstream.handler = boom
        assert await agent.get_recommendations(upstream_client, settings, "m1", "p1") == []

    @pytest.mark.asyncio
    async def test_payload_and_items(self, upstream, upstream_client, settings):
        upstream.reply(
            200,
            json={
                "data": {
                    "products": [
                        {
                            "product_id": "p2",
                            "title": "Cap",
                            "price": {"amount": 9, "currency": "EUR"},
                        }
                    ]
                }
            },
        )
        items = await agent.get_recommendations(upstream_client, settings, "m1", "p1", limit=3.9)
        assert [i.product_id for i in items] == ["p2"]
        assert items[0].price == {"amount": 9, "currency": "EUR"}
        payload = upstream.last_json()["payload"]
        assert payload["limit"] == 3
        assert payload["similar"] == {"merchant_id": "m1", "product_id": "p1", "limit": 3}


class TestResolveCandidates:
    @pytest.mark.asyncio
    async def test_payload(self, upstream, upstream_client, settings):
        upstream.reply(200, json={"candidates": []})
        result = await agent.resolve_product_candidates(
            upstream_client, settings, "p1", country="US", cache_bypass=True
        )
        assert result == {"candidates": []}
        assert upstream.last_json()["payload"] == {
            "product_ref": {"product_id": "p1"},
            "context": {"country": "US"},
            "options": {"limit": 10, "include_offers": True, "cache_bypass": True},
        }


class TestInvokeCheckout:
    @pytest.mark.asyncio
    async def test_rejects_unknown_operation(self, upstream, upstream_client, settings):
        with pytest.raises(RequestValidationFailed):
            await agent.invoke_checkout(
                upstream_client, settings, {"operation": "refund"}, trace_id="t"
            )
        assert upstream.requests == []

    @pytest.mark.asyncio
    async def test_checkout_token_replaces_api_key(self, upstream, upstream_client, settings):
        upstream.reply(200, json={"ok": True})
        body = {"operation": "create_order", "payload": {"order": {}}}
        await agent.invoke_checkout(
            upstream_client, settings, body, trace_id="t-9", checkout_token="ck"
        )
        sent = upstream.last
        assert sent.headers["X-Checkout-Token"] == "ck"
        assert "X-Agent-API-Key" not in sent.headers
        assert sent.headers["X-Trace-Id"] == "t-9"
        assert upstream.last_json() == body

    @pytest.mark.asyncio
    async def test_service_key_without_token(self, upstream, upstream_client, settings):
        upstream.reply(402, json={"error": "payment_required"})
        response = await agent.invoke_checkout(
            upstream_client, settings, {"operation": "submit_payment"}, trace_id="t"
        )
        assert response.status_code == 402
        assert upstream.last.headers["X-Agent-API-Key"] == "agent-key"
