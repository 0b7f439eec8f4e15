"""Supabase REST (PostgREST) client used by the authenticator, tools and usage meter.

Queries are described by an immutable ``Query`` value and executed by a single
``RestClient.execute_query`` call. Every request carries the service-role
credential, so tenant isolation is the caller's job: tenant-scoped queries
must include an explicit ``brand_id`` equality filter.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

import httpx

from .config import settings

logger = logging.getLogger(__name__)


class FilterOp(StrEnum):
    """PostgREST comparison operators used by the tools."""

    EQ = "eq"
    NEQ = "neq"
    LT = "lt"
    GT = "gt"
    ILIKE = "ilike"
    IS = "is"


@dataclass(frozen=True)
class Filter:
    """A single ``column=op.value`` condition."""

    column: str
    op: FilterOp
    value: Any

    def expression(self) -> str:
        """Render as an ``or=(...)`` member (``column.op.value``)."""
        return f"{self.column}.{self.op.value}.{_format_value(self.value)}"

    def param(self) -> tuple[str, str]:
        return self.column, f"{self.op.value}.{_format_value(self.value)}"


@dataclass(frozen=True)
class Order:
    """Ordering clause, e.g. ``created_at.desc.nullslast``."""

    column: str
    ascending: bool = False
    nulls_last: bool = False

    def render(self) -> str:
        text = f"{self.column}.{'asc' if self.ascending else 'desc'}"
        if self.nulls_last:
            text += ".nullslast"
        return text


@dataclass(frozen=True)
class Query:
    """Description of a ``select`` against one table.

    ``filters`` are AND-ed; ``any_of`` is rendered as a single ``or=(...)``
    group of raw PostgREST expressions.
    """

    table: str
    columns: str = "*"
    filters: tuple[Filter, ...] = ()
    any_of: tuple[str, ...] = ()
    order: tuple[Order, ...] = ()
    limit: int | None = None

    def params(self) -> list[tuple[str, str]]:
        params = [("select", self.columns)]
        params.extend(f.param() for f in self.filters)
        if self.any_of:
            params.append(("or", f"({','.join(self.any_of)})"))
        if self.order:
            params.append(("order", ",".join(o.render() for o in self.order)))
        if self.limit is not None:
            params.append(("limit", str(self.limit)))
        return params


def eq(column: str, value: Any) -> Filter:
    return Filter(column, FilterOp.EQ, value)


def ilike(column: str, value: Any) -> Filter:
    return Filter(column, FilterOp.ILIKE, value)


def _format_value(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


class StoreError(Exception):
    """Raised when the REST backend rejects a request or cannot be reached."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


@dataclass
class RestClient:
    """Thin async wrapper over ``httpx.AsyncClient`` for the PostgREST API."""

    base_url: str
    service_key: str
    timeout: float = 10.0
    transport: httpx.AsyncBaseTransport | None = None
    _client: httpx.AsyncClient = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            headers={
                "apikey": self.service_key,
                "Authorization": f"Bearer {self.service_key}",
            },
            timeout=self.timeout,
            transport=self.transport,
        )

    async def execute_query(self, query: Query) -> list[dict[str, Any]]:
        """Run a select and return the decoded rows."""
        response = await self._request("GET", query.table, params=query.params())
        data = response.json()
        return data if isinstance(data, list) else []

    async def insert(self, table: str, row: dict[str, Any]) -> dict[str, Any]:
        """Insert one row and return its stored representation."""
        response = await self._request(
            "POST", table, json=row, prefer="return=representation"
        )
        data = response.json()
        if isinstance(data, list):
            return data[0] if data else {}
        return data

    async def update(
        self, table: str, filters: tuple[Filter, ...], values: dict[str, Any]
    ) -> list[dict[str, Any]]:
        """Patch every row matching ``filters``."""
        response = await self._request(
            "PATCH",
            table,
            params=[f.param() for f in filters],
            json=values,
            prefer="return=representation",
        )
        data = response.json()
        return data if isinstance(data, list) else [data]

    async def delete(self, table: str, filters: tuple[Filter, ...]) -> None:
        if not filters:
            raise StoreError(f"Refusing unfiltered delete on {table}")
        await self._request("DELETE", table, params=[f.param() for f in filters])

    async def rpc(self, function: str, params: dict[str, Any] | None = None) -> Any:
        """Invoke a stored procedure via ``POST /rpc/<function>``."""
        response = await self._request("POST", f"rpc/{function}", json=params or {})
        if not response.content:
            return None
        return response.json()

    async def _request(
        self,
        method: str,
        path: str,
        params: list[tuple[str, str]] | None = None,
        json: Any = None,
        prefer: str | None = None,
    ) -> httpx.Response:
        headers = {"Prefer": prefer} if prefer else None
        try:
            response = await self._client.request(
                method, f"/{path}", params=params, json=json, headers=headers
            )
        except httpx.HTTPError as e:
            logger.error(f"REST request {method} /{path} failed: {e}")
            raise StoreError(f"Backend request failed: {e}") from e

        if response.is_error:
            logger.warning(f"REST {method} /{path} returned {response.status_code}: {response.text}")
            raise StoreError(response.text or response.reason_phrase, response.status_code)
        return response

    async def aclose(self) -> None:
        await self._client.aclose()


# Global client instance shared by all requests
_client: RestClient | None = None
_lock = asyncio.Lock()


async def get_rest() -> RestClient:
    """Get or create the shared REST client."""
    global _client

    async with _lock:
        if _client is None:
            _client = RestClient(
                base_url=settings.rest_base_url,
                service_key=settings.supabase_service_role_key,
                timeout=settings.rest_timeout_seconds,
            )
            logger.info(f"REST client created for {settings.rest_base_url}")
        return _client


async def close_rest() -> None:
    """Close the shared REST client."""
    global _client
    async with _lock:
        if _client is not None:
            try:
                await _client.aclose()
                logger.info("REST client closed")
            except Exception as e:
                logger.warning(f"Error closing REST client: {e}")
            finally:
                _client = None
