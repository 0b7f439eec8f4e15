"""Tests for API key extraction and validation."""

import logging

import httpx
import pytest

from kntor_mcp.auth import Authenticator, extract_api_key
from kntor_mcp.models import AuthErrorKind, IndustryType, Tier

from .conftest import VALID_KEY, body, validation_payload


class TestExtractApiKey:
    def test_x_api_key_preferred(self) -> None:
        headers = {"x-api-key": "kntor_a", "authorization": "Bearer kntor_b"}
        assert extract_api_key(headers) == "kntor_a"

    def test_bearer_with_prefix(self) -> None:
        assert extract_api_key({"authorization": "Bearer kntor_b"}) == "kntor_b"

    def test_bearer_without_prefix_ignored(self) -> None:
        assert extract_api_key({"authorization": "Bearer eyJhbGciOi"}) is None

    def test_nothing(self) -> None:
        assert extract_api_key({}) is None


class TestAuthenticator:
    async def test_valid_key_builds_context(self, rest_client, fake_supabase) -> None:
        outcome = await Authenticator(rest_client).authenticate(VALID_KEY)

        assert outcome.valid
        ctx = outcome.context
        assert ctx.brand_id == "brand-1"
        assert ctx.tier is Tier.PRO
        assert ctx.brand_industry_type is IndustryType.TRAVEL
        assert len(ctx.service_types) == 3
        assert not ctx.quota_exhausted

        request = fake_supabase.calls("rpc/validate_mcp_api_key")[0]
        assert body(request) == {"p_api_key": VALID_KEY}

    async def test_missing_key_makes_no_call(self, rest_client, fake_supabase) -> None:
        outcome = await Authenticator(rest_client).authenticate(None)
        assert outcome.error is AuthErrorKind.MISSING
        assert fake_supabase.requests == []

    async def test_wrong_prefix_makes_no_call(self, rest_client, fake_supabase, caplog) -> None:
        with caplog.at_level(logging.WARNING, logger="kntor_mcp.security"):
            outcome = await Authenticator(rest_client).authenticate("sk_live_123")
        assert outcome.error is AuthErrorKind.INVALID_FORMAT
        assert fake_supabase.requests == []
        assert any("auth.failed" in record.message for record in caplog.records)

    @pytest.mark.parametrize(
        ("tag", "expected"),
        [
            ("inactive", AuthErrorKind.INACTIVE),
            ("expired", AuthErrorKind.EXPIRED),
            ("rate_limit", AuthErrorKind.RATE_LIMIT),
            ("not_found", AuthErrorKind.NOT_FOUND),
            ("something_new", AuthErrorKind.NOT_FOUND),
            (None, AuthErrorKind.NOT_FOUND),
        ],
    )
    async def test_invalid_result_maps_tag(self, rest_client, fake_supabase, tag, expected) -> None:
        fake_supabase.routes.clear()
        fake_supabase.route(
            "POST", "rpc/validate_mcp_api_key", {"valid": False, "error": tag, "message": "nope"}
        )
        outcome = await Authenticator(rest_client).authenticate(VALID_KEY)
        assert outcome.error is expected
        assert outcome.message == "nope"

    async def test_list_payload_uses_first_row(self, rest_client, fake_supabase) -> None:
        fake_supabase.routes.clear()
        fake_supabase.route("POST", "rpc/validate_mcp_api_key", [validation_payload(brand_id="brand-9")])
        outcome = await Authenticator(rest_client).authenticate(VALID_KEY)
        assert outcome.context.brand_id == "brand-9"

    @pytest.mark.parametrize(
        ("status", "expected"),
        [
            (401, AuthErrorKind.CONFIG_ERROR),
            (403, AuthErrorKind.CONFIG_ERROR),
            (500, AuthErrorKind.INTERNAL_ERROR),
            (404, AuthErrorKind.INTERNAL_ERROR),
        ],
    )
    async def test_backend_failure_is_never_valid(self, rest_client, fake_supabase, status, expected) -> None:
        fake_supabase.routes.clear()
        fake_supabase.route("POST", "rpc/validate_mcp_api_key", httpx.Response(status, text="error"))
        outcome = await Authenticator(rest_client).authenticate(VALID_KEY)
        assert not outcome.valid
        assert outcome.error is expected

    async def test_non_json_body_is_internal_error(self, rest_client, fake_supabase) -> None:
        fake_supabase.routes.clear()
        fake_supabase.route("POST", "rpc/validate_mcp_api_key", httpx.Response(200, text="<html>"))
        outcome = await Authenticator(rest_client).authenticate(VALID_KEY)
        assert outcome.error is AuthErrorKind.INTERNAL_ERROR

    async def test_incomplete_payload_is_internal_error(self, rest_client, fake_supabase) -> None:
        fake_supabase.routes.clear()
        fake_supabase.route("POST", "rpc/validate_mcp_api_key", {"valid": True, "brand_id": "b"})
        outcome = await Authenticator(rest_client).authenticate(VALID_KEY)
        assert outcome.error is AuthErrorKind.INTERNAL_ERROR

    async def test_invalid_service_type_row_is_skipped(self, rest_client, fake_supabase, caplog) -> None:
        fake_supabase.routes.clear()
        fake_supabase.route(
            "POST",
            "rpc/validate_mcp_api_key",
            validation_payload(service_types=[{"code": "x", "name": None}, {"code": "hotel", "name": "Hotel"}]),
        )
        with caplog.at_level(logging.WARNING, logger="kntor_mcp.auth"):
            outcome = await Authenticator(rest_client).authenticate(VALID_KEY)

        assert outcome.valid
        assert [st.code for st in outcome.context.service_types] == ["hotel"]
        assert "Skipping invalid service type" in caplog.text

    async def test_every_request_revalidates(self, rest_client, fake_supabase) -> None:
        authenticator = Authenticator(rest_client)
        await authenticator.authenticate(VALID_KEY)
        await authenticator.authenticate(VALID_KEY)
        assert len(fake_supabase.calls("rpc/validate_mcp_api_key")) == 2
