"""
NEAR JSON-RPC client over httpx.

Implements ``HostChainClient`` against a NEAR node's ``/`` JSON-RPC 2.0
endpoint. Every call is a fresh request; nothing is cached and nothing is
retried. Host errors are mapped onto the provider's error categories by their
structured ``cause`` names, never by message text.
"""

import json
import time
from typing import Any, Dict, Optional, Sequence

import httpx

from ..codec import bytes_to_base64
from ..exceptions import (
    AccountAlreadyExistsError,
    ContractExecutionError,
    NotFoundError,
    TransportError,
)
from ..logger import get_logger
from .base import HostChainClient, Signer
from .types import (
    Action,
    BlockReference,
    NativeBlock,
    NativeChunk,
    NativeTransaction,
    NodeStatus,
)

logger = get_logger(__name__)

NOT_FOUND_CAUSES = frozenset({
    "UNKNOWN_BLOCK",
    "UNKNOWN_CHUNK",
    "UNKNOWN_TRANSACTION",
    "UNKNOWN_RECEIPT",
    "UNKNOWN_ACCOUNT",
    "UNKNOWN_ACCESS_KEY",
    "GARBAGE_COLLECTED_BLOCK",
})

EXECUTION_CAUSES = frozenset({
    "CONTRACT_EXECUTION_ERROR",
    "NO_CONTRACT_CODE",
    "INVALID_TRANSACTION",
})


def _find_account_already_exists(payload: Any) -> Optional[str]:
    """Walk an error payload looking for an ``AccountAlreadyExists`` action error."""
    if isinstance(payload, dict):
        for key, value in payload.items():
            if key == "AccountAlreadyExists":
                if isinstance(value, dict):
                    return value.get("account_id", "")
                return ""
            found = _find_account_already_exists(value)
            if found is not None:
                return found
    elif isinstance(payload, list):
        for item in payload:
            found = _find_account_already_exists(item)
            if found is not None:
                return found
    return None


def raise_for_failure(failure: Dict[str, Any]) -> None:
    """Raise the error category for a ``Failure`` execution status."""
    account_id = _find_account_already_exists(failure)
    if account_id is not None:
        raise AccountAlreadyExistsError(account_id, data=failure)
    raise ContractExecutionError(f"Transaction failed: {json.dumps(failure)}", data=failure)


def raise_for_rpc_error(method: str, error: Dict[str, Any]) -> None:
    """Raise the error category for a JSON-RPC ``error`` object."""
    cause = error.get("cause") or {}
    cause_name = cause.get("name", "") if isinstance(cause, dict) else ""
    detail = error.get("data") or error.get("message") or cause_name

    account_id = _find_account_already_exists(cause.get("info") if isinstance(cause, dict) else None)
    if account_id is None:
        account_id = _find_account_already_exists(error.get("data"))
    if account_id is not None:
        raise AccountAlreadyExistsError(account_id, data=error)

    if cause_name in NOT_FOUND_CAUSES:
        raise NotFoundError(f"{method}: {cause_name} ({detail})")
    if cause_name in EXECUTION_CAUSES:
        raise ContractExecutionError(f"{method}: {cause_name} ({detail})", data=error)
    raise TransportError(f"{method}: RPC error {error.get('code', '')} {detail}".strip())


class NearRpcClient(HostChainClient):
    """
    Async NEAR RPC client.

    The ``httpx.AsyncClient`` may be shared and injected by the caller; when
    none is given the client creates and owns one.
    """

    _rpc_id_counter = 0

    def __init__(
        self,
        url: str,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 30.0,
    ):
        self.url = url.rstrip("/")
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(timeout=timeout)

    async def aclose(self) -> None:
        if self._owns_client:
            await self.client.aclose()

    async def __aenter__(self) -> "NearRpcClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    # -----------------------------------------------------------------
    #  Low-level JSON-RPC transport
    # -----------------------------------------------------------------

    @classmethod
    def _next_id(cls) -> int:
        cls._rpc_id_counter += 1
        return cls._rpc_id_counter

    async def _rpc_call(self, method: str, params: Any) -> Any:
        """
        Send one JSON-RPC 2.0 request and return its ``result``.

        Raises:
            TransportError: network failure, HTTP error status or a body
                that is not a JSON-RPC response.
            NotFoundError / ContractExecutionError: classified RPC errors.
        """
        payload = {
            "jsonrpc": "2.0",
            "id": self._next_id(),
            "method": method,
            "params": params,
        }
        start_time = time.time()
        try:
            response = await self.client.post(
                self.url,
                json=payload,
                headers={"Content-Type": "application/json"},
            )
            response.raise_for_status()
            body = response.json()
        except httpx.RequestError as exc:
            elapsed = time.time() - start_time
            logger.warning(f"<-- {method} {self.url} NETWORK_ERROR ({elapsed:.3f}s)")
            raise TransportError(f"{method}: {exc}") from exc
        except httpx.HTTPStatusError as exc:
            elapsed = time.time() - start_time
            logger.warning(
                f"<-- {method} {self.url} {exc.response.status_code} ERROR ({elapsed:.3f}s)"
            )
            raise TransportError(f"{method}: HTTP {exc.response.status_code}") from exc
        except ValueError as exc:
            elapsed = time.time() - start_time
            logger.warning(f"<-- {method} {self.url} ERROR ({elapsed:.3f}s): {exc}")
            raise TransportError(f"{method}: response is not JSON") from exc

        elapsed = time.time() - start_time
        logger.debug(f"<-- {method} {self.url} ({elapsed:.3f}s)")

        if not isinstance(body, dict):
            raise TransportError(f"{method}: malformed JSON-RPC response")
        if body.get("error") is not None:
            raise_for_rpc_error(method, body["error"])
        if "result" not in body:
            raise TransportError(f"{method}: JSON-RPC response has no result")
        return body["result"]

    # -----------------------------------------------------------------
    #  HostChainClient
    # -----------------------------------------------------------------

    async def view_call(
        self,
        contract_id: str,
        method_name: str,
        args: bytes,
        block: BlockReference,
    ) -> bytes:
        params = {
            "request_type": "call_function",
            "account_id": contract_id,
            "method_name": method_name,
            "args_base64": bytes_to_base64(args),
            **block.to_params(),
        }
        result = await self._rpc_call("query", params)
        # Older nodes report contract panics inside a successful response
        if result.get("error"):
            raise ContractExecutionError(f"{method_name}: {result['error']}", data=result)
        return bytes(result.get("result") or [])

    async def send_transaction(
        self,
        signer: Signer,
        receiver_id: str,
        actions: Sequence[Action],
    ) -> NativeTransaction:
        signed = await signer.sign_transaction(receiver_id, actions)
        logger.debug(f"--> broadcast_tx_commit {signer.account_id} -> {receiver_id} ({len(actions)} actions)")
        result = await self._rpc_call("broadcast_tx_commit", [bytes_to_base64(signed)])
        outcome = NativeTransaction.from_rpc(result)
        if outcome.failure is not None:
            raise_for_failure(outcome.failure)
        return outcome

    async def block(self, reference: BlockReference) -> NativeBlock:
        return NativeBlock.from_rpc(await self._rpc_call("block", reference.to_params()))

    async def chunk(self, chunk_hash: str) -> NativeChunk:
        return NativeChunk.from_rpc(await self._rpc_call("chunk", {"chunk_id": chunk_hash}))

    async def tx_status(self, tx_hash: str, account_id: str) -> NativeTransaction:
        return NativeTransaction.from_rpc(await self._rpc_call("tx", [tx_hash, account_id]))

    async def status(self) -> NodeStatus:
        return NodeStatus.from_rpc(await self._rpc_call("status", []))
