"""Tests for the upstream error classifier and status policy."""

from __future__ import annotations

import pytest

from gateway.utils.errors import (
    RETRYABLE_STATUSES,
    BackendNotConfigured,
    RequestValidationFailed,
    UpstreamError,
    UpstreamErrorInfo,
    client_status,
    parse_upstream_error,
)


class TestParseUpstreamError:
    def test_status_and_json_detail(self):
        info = parse_upstream_error('request failed: status 503, body: {"detail":"rate limited"}')
        assert info == UpstreamErrorInfo(status=503, detail="rate limited")

    def test_plain_message(self):
        info = parse_upstream_error("timeout")
        assert info.status is None
        assert info.detail == "timeout"

    def test_body_that_is_not_json(self):
        info = parse_upstream_error("op failed with status 500 body: Internal Server Error ")
        assert info == UpstreamErrorInfo(status=500, detail="Internal Server Error")

    def test_json_without_string_detail_keeps_body_text(self):
        info = parse_upstream_error('x failed with status 422 body: {"detail": [{"loc": "a"}]}')
        assert info.status == 422
        assert info.detail == '{"detail": [{"loc": "a"}]}'

    def test_status_without_body(self):
        info = parse_upstream_error("find_products_multi failed with status 404")
        assert info.status == 404
        assert info.detail == "find_products_multi failed with status 404"

    def test_round_trips_upstream_error_message(self):
        exc = UpstreamError("get_product_detail", 429, '{"detail":"slow down"}')
        assert parse_upstream_error(exc.message) == UpstreamErrorInfo(429, "slow down")


class TestClientStatus:
    @pytest.mark.parametrize("status", sorted(RETRYABLE_STATUSES))
    def test_retryable_pass_through(self, status):
        assert client_status(status) == status

    @pytest.mark.parametrize("status", [400, 401, 404, 500, 502, None])
    def test_everything_else_collapses_to_500(self, status):
        assert client_status(status) == 500


class TestErrorTaxonomy:
    def test_upstream_error_message_shape(self):
        exc = UpstreamError("get_pdp_v2", 502, "bad gateway")
        assert exc.message == "get_pdp_v2 failed with status 502 body: bad gateway"
        assert exc.status_code == 500

    def test_upstream_error_without_body(self):
        assert UpstreamError("op", 503).message == "op failed with status 503"
        assert UpstreamError("op", 503).status_code == 503

    def test_fixed_statuses(self):
        assert RequestValidationFailed("x").status_code == 400
        assert BackendNotConfigured("x").status_code == 500
