"""Shared fixtures: a recording fake of the Supabase REST API and the app wired to it."""

import json
from collections import defaultdict
from typing import Any

import httpx
import pytest
from fastapi.testclient import TestClient

from kntor_mcp.db import RestClient, get_rest
from kntor_mcp.models import AuthContext
from kntor_mcp.server import app
from kntor_mcp.usage import UsageMeter, get_meter

VALID_KEY = "kntor_live_0123456789abcdef"
REST_BASE_URL = "http://supabase.test/rest/v1"


def validation_payload(**overrides: Any) -> dict[str, Any]:
    """Successful ``validate_mcp_api_key`` result."""
    payload = {
        "valid": True,
        "api_key_id": "key-1",
        "brand_id": "brand-1",
        "brand_name": "Acme Travel",
        "brand_industry_type": "travel",
        "service_types": [
            {"code": "hotel", "name": "Hotel", "category": "lodging", "subcategory": None},
            {"code": "flight", "name": "Flight", "category": "transport", "subcategory": "air"},
            {"code": "insurance", "name": "Travel insurance", "category": "transport"},
        ],
        "tier": "pro",
        "user_id": "user-1",
        "user_email": "owner@acme.test",
        "user_role": "admin",
        "monthly_limit": 1000,
        "current_usage": 10,
        "remaining_calls": 990,
    }
    payload.update(overrides)
    return payload


class FakeSupabase:
    """MockTransport handler standing in for PostgREST.

    Responses are queued per ``(method, path)``; the last queued response is
    reused once the queue runs down. Unrouted GETs return ``[]`` and unrouted
    writes return ``{}``. Every request is recorded.
    """

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.routes: dict[tuple[str, str], list[Any]] = defaultdict(list)
        self.route("POST", "rpc/validate_mcp_api_key", validation_payload())

    def route(self, method: str, path: str, *responses: Any) -> None:
        self.routes[(method, path)].extend(responses)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path.removeprefix("/rest/v1/")
        queue = self.routes.get((request.method, path))

        if not queue:
            if request.method == "GET":
                return httpx.Response(200, json=[])
            if request.method == "DELETE" or path == "rpc/log_mcp_usage":
                return httpx.Response(204)
            return httpx.Response(201, json={})

        response = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(response, httpx.Response):
            return response
        return httpx.Response(200, json=response)

    # ============ INSPECTION ============

    def calls(self, path: str, method: str | None = None) -> list[httpx.Request]:
        return [
            r
            for r in self.requests
            if r.url.path.removeprefix("/rest/v1/") == path and (method is None or r.method == method)
        ]

    def tool_calls(self) -> list[httpx.Request]:
        """Requests other than key validation and usage logging."""
        ignored = {"rpc/validate_mcp_api_key", "rpc/log_mcp_usage"}
        return [r for r in self.requests if r.url.path.removeprefix("/rest/v1/") not in ignored]


def body(request: httpx.Request) -> Any:
    return json.loads(request.content)


def params(request: httpx.Request) -> dict[str, list[str]]:
    collected: dict[str, list[str]] = defaultdict(list)
    for key, value in request.url.params.multi_items():
        collected[key].append(value)
    return dict(collected)


@pytest.fixture
def fake_supabase() -> FakeSupabase:
    return FakeSupabase()


@pytest.fixture
def rest_client(fake_supabase: FakeSupabase) -> RestClient:
    return RestClient(
        base_url=REST_BASE_URL,
        service_key="service-role-key",
        transport=httpx.MockTransport(fake_supabase),
    )


@pytest.fixture
def meter(rest_client: RestClient) -> UsageMeter:
    return UsageMeter(rest_client)


@pytest.fixture
def auth_context() -> AuthContext:
    payload = validation_payload()
    payload.pop("valid")
    return AuthContext.model_validate(payload)


@pytest.fixture
def client(rest_client: RestClient, meter: UsageMeter):
    """TestClient with the REST backend replaced by the fake."""
    app.dependency_overrides[get_rest] = lambda: rest_client
    app.dependency_overrides[get_meter] = lambda: meter
    try:
        with TestClient(app) as test_client:
            yield test_client
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def auth_headers() -> dict[str, str]:
    return {"x-api-key": VALID_KEY}
