"""MCP method handling.

Maps one well-formed JSON-RPC message plus the caller's AuthContext to a
response envelope. Transports are responsible for authentication, parsing
and formation checks; this layer only knows MCP methods.
"""

import json
import logging
from typing import Any, Awaitable, Callable

from .. import __version__
from ..config import settings
from ..models import AuthContext
from ..tools import ToolDispatcher
from ..usage import log_security_event
from .errors import quota_exceeded_error
from .jsonrpc import INVALID_PARAMS, METHOD_NOT_FOUND, is_notification, jsonrpc_error, jsonrpc_response

logger = logging.getLogger(__name__)

MethodHandler = Callable[[Any, dict, AuthContext], Awaitable[dict]]


class ProtocolHandler:
    """Dispatches MCP methods; notifications produce no response."""

    def __init__(self, dispatcher: ToolDispatcher):
        self.dispatcher = dispatcher
        self._methods: dict[str, MethodHandler] = {
            "initialize": self._initialize,
            "initialized": self._empty,
            "notifications/initialized": self._empty,
            "tools/list": self._tools_list,
            "tools/call": self._tools_call,
            "resources/list": self._resources_list,
            "resources/read": self._resources_read,
            "prompts/list": self._prompts_list,
            "prompts/get": self._prompts_get,
            "ping": self._empty,
        }

    async def handle(self, message: dict, ctx: AuthContext) -> dict | None:
        method = message["method"]
        msg_id = message.get("id")

        handler = self._methods.get(method)
        if handler is None:
            response = jsonrpc_error(msg_id, METHOD_NOT_FOUND, f"Method not found: {method}")
        else:
            response = await handler(msg_id, message, ctx)

        if is_notification(message):
            logger.debug(f"Notification {method} handled, no response sent")
            return None
        return response

    # ============ LIFECYCLE ============

    async def _initialize(self, msg_id: Any, message: dict, ctx: AuthContext) -> dict:
        logger.info(f"MCP session initialized for brand {ctx.brand_id}")
        return jsonrpc_response(
            msg_id,
            {
                "protocolVersion": settings.protocol_version,
                "serverInfo": {"name": settings.server_name, "version": __version__},
                "capabilities": {"tools": {}, "resources": {}, "prompts": {}},
            },
        )

    async def _empty(self, msg_id: Any, message: dict, ctx: AuthContext) -> dict:
        return jsonrpc_response(msg_id, {})

    # ============ TOOLS ============

    async def _tools_list(self, msg_id: Any, message: dict, ctx: AuthContext) -> dict:
        return jsonrpc_response(msg_id, {"tools": self.dispatcher.list_tools()})

    async def _tools_call(self, msg_id: Any, message: dict, ctx: AuthContext) -> dict:
        params = message.get("params")
        if params is not None and not isinstance(params, dict):
            return jsonrpc_error(msg_id, INVALID_PARAMS, "Invalid params: params must be an object")
        params = params or {}

        name = params.get("name")
        if not name or not isinstance(name, str):
            return jsonrpc_error(msg_id, INVALID_PARAMS, "Invalid params: tool name required")

        arguments = params.get("arguments")
        if arguments is None:
            arguments = {}
        elif not isinstance(arguments, dict):
            return jsonrpc_error(msg_id, INVALID_PARAMS, "Invalid params: arguments must be an object")

        if ctx.quota_exhausted:
            log_security_event(
                "quota.exceeded", "api_key", ctx.api_key_id, ctx.user_id or "anonymous",
                details={"tool": name, "monthly_limit": ctx.monthly_limit},
            )
            return quota_exceeded_error(msg_id, ctx)

        result = await self.dispatcher.invoke(name, arguments, ctx)
        if result.success:
            return jsonrpc_response(msg_id, {"content": [_text_content(result.data)]})
        return jsonrpc_response(
            msg_id,
            {"content": [_text_content({"error": result.error})], "isError": True},
        )

    # ============ RESOURCES / PROMPTS ============

    async def _resources_list(self, msg_id: Any, message: dict, ctx: AuthContext) -> dict:
        return jsonrpc_response(msg_id, {"resources": []})

    async def _resources_read(self, msg_id: Any, message: dict, ctx: AuthContext) -> dict:
        return jsonrpc_error(msg_id, METHOD_NOT_FOUND, "Resources not implemented")

    async def _prompts_list(self, msg_id: Any, message: dict, ctx: AuthContext) -> dict:
        return jsonrpc_response(msg_id, {"prompts": []})

    async def _prompts_get(self, msg_id: Any, message: dict, ctx: AuthContext) -> dict:
        return jsonrpc_error(msg_id, METHOD_NOT_FOUND, "Prompts not implemented")


def _text_content(payload: Any) -> dict:
    return {"type": "text", "text": json.dumps(payload, indent=2, default=str, ensure_ascii=False)}
