"""Tests for JSON-RPC envelope helpers and the auth error table."""

from datetime import date

import pytest

from kntor_mcp.mcp import (
    AUTH_ERRORS,
    INVALID_REQUEST,
    RATE_LIMIT_CODE,
    auth_error_body,
    is_notification,
    jsonrpc_error,
    jsonrpc_response,
    quota_exceeded_error,
    validate_message,
)
from kntor_mcp.mcp.errors import next_reset_date
from kntor_mcp.models import AuthErrorKind


class TestEnvelopes:
    def test_response_echoes_id(self) -> None:
        assert jsonrpc_response(7, {"ok": True}) == {"jsonrpc": "2.0", "id": 7, "result": {"ok": True}}

    def test_error_omits_data_when_absent(self) -> None:
        error = jsonrpc_error("a", -32601, "Method not found: x")
        assert error == {"jsonrpc": "2.0", "id": "a", "error": {"code": -32601, "message": "Method not found: x"}}

    def test_error_includes_data(self) -> None:
        assert jsonrpc_error(None, -32000, "boom", {"k": 1})["error"]["data"] == {"k": 1}

    def test_notification_is_missing_id_key(self) -> None:
        assert is_notification({"jsonrpc": "2.0", "method": "notifications/initialized"})
        assert not is_notification({"jsonrpc": "2.0", "method": "ping", "id": None})


class TestValidateMessage:
    def test_well_formed(self) -> None:
        assert validate_message({"jsonrpc": "2.0", "id": 1, "method": "ping"}) is None

    @pytest.mark.parametrize("message", [42, "ping", None, ["x"]])
    def test_non_object(self, message) -> None:
        error = validate_message(message)
        assert error["id"] is None
        assert error["error"]["code"] == INVALID_REQUEST

    def test_wrong_version_echoes_id(self) -> None:
        error = validate_message({"jsonrpc": "1.0", "id": 5, "method": "ping"})
        assert error["id"] == 5
        assert error["error"]["code"] == INVALID_REQUEST

    def test_missing_method(self) -> None:
        assert validate_message({"jsonrpc": "2.0", "id": 1})["error"]["code"] == INVALID_REQUEST

    @pytest.mark.parametrize("bad_id", [True, {"a": 1}, [1]])
    def test_bad_id_type(self, bad_id) -> None:
        error = validate_message({"jsonrpc": "2.0", "id": bad_id, "method": "ping"})
        assert error["id"] is None


class TestAuthErrors:
    def test_table_covers_every_kind(self) -> None:
        assert set(AUTH_ERRORS) == set(AuthErrorKind)

    def test_codes_are_distinct(self) -> None:
        codes = [spec.code for spec in AUTH_ERRORS.values()]
        assert len(set(codes)) == len(codes)

    @pytest.mark.parametrize(
        ("kind", "code", "status"),
        [
            (AuthErrorKind.MISSING, -32001, 401),
            (AuthErrorKind.INVALID_FORMAT, -32002, 401),
            (AuthErrorKind.NOT_FOUND, -32003, 401),
            (AuthErrorKind.RATE_LIMIT, -32006, 401),
            (AuthErrorKind.CONFIG_ERROR, -32007, 500),
            (AuthErrorKind.INTERNAL_ERROR, -32008, 500),
        ],
    )
    def test_code_and_status(self, kind, code, status) -> None:
        assert AUTH_ERRORS[kind].code == code
        assert AUTH_ERRORS[kind].http_status == status

    def test_body_shape(self) -> None:
        body = auth_error_body(AuthErrorKind.EXPIRED)
        assert body["id"] is None
        assert body["error"]["code"] == -32005
        assert body["error"]["data"]["error"] == "expired"
        assert body["error"]["data"]["hint"]
        assert body["error"]["data"]["docs"].endswith("#expired-api-key")

    def test_body_message_override(self) -> None:
        body = auth_error_body(AuthErrorKind.INACTIVE, "Key revoked by admin")
        assert body["error"]["message"] == "Key revoked by admin"


class TestQuota:
    @pytest.mark.parametrize(
        ("today", "expected"),
        [
            (date(2026, 1, 15), date(2026, 2, 1)),
            (date(2026, 12, 31), date(2027, 1, 1)),
            (date(2026, 3, 1), date(2026, 4, 1)),
        ],
    )
    def test_next_reset_date(self, today, expected) -> None:
        assert next_reset_date(today) == expected

    def test_quota_error(self, auth_context) -> None:
        ctx = auth_context.model_copy(update={"remaining_calls": 0})
        error = quota_exceeded_error(3, ctx)
        assert error["id"] == 3
        assert error["error"]["code"] == RATE_LIMIT_CODE
        assert "1000" in error["error"]["message"]
        data = error["error"]["data"]
        assert data["tier"] == "pro"
        assert data["monthly_limit"] == 1000
        assert date.fromisoformat(data["reset_date"]).day == 1
        assert data["upgrade_hint"]
        assert data["docs"]
