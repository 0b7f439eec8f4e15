"""JSON-RPC 2.0 helpers for the MCP transports.

This module provides utility functions for creating JSON-RPC 2.0
responses and errors, and for checking that an inbound message is
well-formed before it is dispatched.

See: https://www.jsonrpc.org/specification
"""

from typing import Any

# Standard JSON-RPC error codes
PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603
SERVER_ERROR = -32000  # Base for application-specific errors


def jsonrpc_response(id: Any, result: Any) -> dict:
    """Create a JSON-RPC 2.0 success response.

    Args:
        id: Request ID (must match the request)
        result: The result payload

    Returns:
        JSON-RPC 2.0 response dict
    """
    return {"jsonrpc": "2.0", "id": id, "result": result}


def jsonrpc_error(id: Any, code: int, message: str, data: Any = None) -> dict:
    """Create a JSON-RPC 2.0 error response.

    Standard error codes:
        -32700: Parse error
        -32600: Invalid request
        -32601: Method not found
        -32602: Invalid params
        -32603: Internal error
        -32000 to -32099: Server errors (authentication, quota)

    Args:
        id: Request ID (None for errors not tied to a message)
        code: Error code (negative integer)
        message: Human-readable error message
        data: Optional structured details

    Returns:
        JSON-RPC 2.0 error response dict
    """
    error: dict[str, Any] = {"code": code, "message": message}
    if data is not None:
        error["data"] = data
    return {"jsonrpc": "2.0", "id": id, "error": error}


def is_notification(message: dict) -> bool:
    """A message without an ``id`` member never gets a response."""
    return "id" not in message


def validate_message(message: Any) -> dict | None:
    """Check JSON-RPC envelope formation.

    Returns None when the message may be dispatched, otherwise the
    -32600 error response to send (echoing the id when one is readable).
    """
    if not isinstance(message, dict):
        return jsonrpc_error(None, INVALID_REQUEST, "Invalid Request")

    msg_id = message.get("id")
    if not isinstance(msg_id, (str, int, float, type(None))) or isinstance(msg_id, bool):
        return jsonrpc_error(None, INVALID_REQUEST, "Invalid Request: id must be a string, number or null")
    if message.get("jsonrpc") != "2.0":
        return jsonrpc_error(msg_id, INVALID_REQUEST, "Invalid Request: jsonrpc must be \"2.0\"")
    method = message.get("method")
    if not isinstance(method, str) or not method:
        return jsonrpc_error(msg_id, INVALID_REQUEST, "Invalid Request: method is required")
    return None
