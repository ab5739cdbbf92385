"""
JSON-RPC 2.0 envelope around ``NearProvider.request``.

Accepts a raw body (``str``/``bytes``) or an already decoded object, answers
single calls and batches, drops responses to notifications, and turns the
provider's error categories into JSON-RPC error codes. Batch members run
concurrently; the response list keeps request order.
"""

import asyncio
import json
from dataclasses import dataclass
from enum import IntEnum
from typing import Any, Dict, List, Optional, Protocol, Union

from ..exceptions import (
    ContractExecutionError,
    InvalidArgumentError,
    MethodNotSupportedError,
    NearWeb3Exception,
    NotFoundError,
    SignerMismatchError,
    TransportError,
)
from ..logger import get_logger

logger = get_logger(__name__)

RequestId = Union[str, int, None]


class RPCErrorCode(IntEnum):
    PARSE_ERROR = -32700
    INVALID_REQUEST = -32600
    METHOD_NOT_FOUND = -32601
    INVALID_PARAMS = -32602
    INTERNAL_ERROR = -32603

    # Implementation-defined range
    SERVER_ERROR = -32000
    RESOURCE_NOT_FOUND = -32001
    RESOURCE_UNAVAILABLE = -32002
    EXECUTION_ERROR = -32015
    ACTION_NOT_ALLOWED = -32099


# Checked in order; subclasses must precede their bases
ERROR_CODES = (
    (MethodNotSupportedError, RPCErrorCode.METHOD_NOT_FOUND),
    (InvalidArgumentError, RPCErrorCode.INVALID_PARAMS),
    (NotFoundError, RPCErrorCode.RESOURCE_NOT_FOUND),
    (ContractExecutionError, RPCErrorCode.EXECUTION_ERROR),
    (TransportError, RPCErrorCode.RESOURCE_UNAVAILABLE),
    (SignerMismatchError, RPCErrorCode.ACTION_NOT_ALLOWED),
    (NearWeb3Exception, RPCErrorCode.SERVER_ERROR),
)


def error_code(exc: BaseException) -> RPCErrorCode:
    """JSON-RPC code for a provider exception."""
    return next(
        (code for exc_type, code in ERROR_CODES if isinstance(exc, exc_type)),
        RPCErrorCode.INTERNAL_ERROR,
    )


@dataclass
class RPCError(Exception):
    code: int
    message: str
    data: Optional[Any] = None

    @classmethod
    def from_exception(cls, exc: BaseException) -> "RPCError":
        return cls(error_code(exc), str(exc), getattr(exc, "data", None))

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"code": int(self.code), "message": self.message}
        if self.data is not None:
            body["data"] = self.data
        return body


@dataclass
class RPCRequest:
    jsonrpc: str
    method: Any
    params: Union[List, Dict, None]
    id: RequestId

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RPCRequest":
        return cls(
            jsonrpc=data.get("jsonrpc", "2.0"),
            method=data.get("method"),
            params=data.get("params"),
            id=data.get("id"),
        )

    @property
    def is_notification(self) -> bool:
        return self.id is None

    def problem(self) -> Optional[RPCError]:
        """Envelope defect that keeps the request from being dispatched."""
        if self.jsonrpc != "2.0":
            return RPCError(RPCErrorCode.INVALID_REQUEST, "Invalid JSON-RPC version")
        if not self.method or not isinstance(self.method, str):
            return RPCError(RPCErrorCode.INVALID_REQUEST, "Missing method")
        if isinstance(self.params, dict):
            return RPCError(RPCErrorCode.INVALID_PARAMS, "Params must be positional")
        return None


@dataclass
class RPCResponse:
    id: RequestId = None
    result: Any = None
    error: Optional[Dict[str, Any]] = None
    jsonrpc: str = "2.0"

    @classmethod
    def failure(cls, error: RPCError, id: RequestId = None) -> "RPCResponse":
        return cls(id=id, error=error.to_dict())

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"jsonrpc": self.jsonrpc, "id": self.id}
        if self.error is None:
            body["result"] = self.result
        else:
            body["error"] = self.error
        return body

    def to_json(self) -> str:
        return json.dumps(self.to_dict())


class SupportsRequest(Protocol):
    async def request(self, method: str, params: Any = None) -> Any: ...


async def handle_request(provider: SupportsRequest, data: Union[str, bytes, dict, list]) -> Optional[str]:
    """
    Answer one JSON-RPC payload.

    Returns the serialized response, or None when nothing is owed to the
    caller (a notification, or a batch made only of notifications).
    """
    if isinstance(data, (str, bytes)):
        try:
            data = json.loads(data)
        except json.JSONDecodeError as e:
            return RPCResponse.failure(RPCError(RPCErrorCode.PARSE_ERROR, f"Parse error: {e}")).to_json()

    if not isinstance(data, list):
        response = await _handle_single(provider, data)
        return None if response is None else json.dumps(response)

    if not data:
        return RPCResponse.failure(RPCError(RPCErrorCode.INVALID_REQUEST, "Empty batch")).to_json()

    answered = [
        response
        for response in await asyncio.gather(*(_handle_single(provider, item) for item in data))
        if response is not None
    ]
    return json.dumps(answered) if answered else None


async def _handle_single(provider: SupportsRequest, data: Any) -> Optional[Dict[str, Any]]:
    if not isinstance(data, dict):
        return RPCResponse.failure(RPCError(RPCErrorCode.INVALID_REQUEST, "Invalid request")).to_dict()

    request = RPCRequest.from_dict(data)
    problem = request.problem()
    if problem is not None:
        return RPCResponse.failure(problem, request.id).to_dict()

    try:
        result = await provider.request(request.method, request.params)
    except NearWeb3Exception as e:
        logger.warning(f"{request.method} failed: {e}")
        response = RPCResponse.failure(RPCError.from_exception(e), request.id)
    except Exception as e:
        logger.exception(f"Unexpected error in {request.method}")
        response = RPCResponse.failure(RPCError(RPCErrorCode.INTERNAL_ERROR, str(e)), request.id)
    else:
        response = RPCResponse(id=request.id, result=result)

    return None if request.is_notification else response.to_dict()
