"""
JSON-RPC 2.0 envelope on top of ``NearProvider.request``.
"""

from .server import (
    RPCError,
    RPCErrorCode,
    RPCRequest,
    RPCResponse,
    error_code,
    handle_request,
)

__all__ = [
    "RPCError",
    "RPCErrorCode",
    "RPCRequest",
    "RPCResponse",
    "error_code",
    "handle_request",
]
