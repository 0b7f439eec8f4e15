"""MCP (Model Context Protocol) protocol layer.

This module contains the transport-independent pieces:
- JSON-RPC 2.0 helpers and envelope checks
- Authentication / quota error taxonomy
- The MCP method handler

The HTTP routes live in mcp_transport.py.
"""

from .errors import AUTH_ERRORS, RATE_LIMIT_CODE, auth_error_body, quota_exceeded_error
from .handler import ProtocolHandler
from .jsonrpc import (
    INTERNAL_ERROR,
    INVALID_PARAMS,
    INVALID_REQUEST,
    METHOD_NOT_FOUND,
    PARSE_ERROR,
    SERVER_ERROR,
    is_notification,
    jsonrpc_error,
    jsonrpc_response,
    validate_message,
)

__all__ = [
    # Protocol handler
    "ProtocolHandler",
    # Error taxonomy
    "AUTH_ERRORS",
    "RATE_LIMIT_CODE",
    "auth_error_body",
    "quota_exceeded_error",
    # JSON-RPC helpers
    "jsonrpc_response",
    "jsonrpc_error",
    "is_notification",
    "validate_message",
    "PARSE_ERROR",
    "INVALID_REQUEST",
    "METHOD_NOT_FOUND",
    "INVALID_PARAMS",
    "INTERNAL_ERROR",
    "SERVER_ERROR",
]
