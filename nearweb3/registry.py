"""
Method registry.

Closed table of every Ethereum JSON-RPC method the provider answers, built
once at import time. Each entry names the component that handles it, whether
it may change state, which EVM contract entry points it may reach and how many
positional params it takes.
"""

from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Any, List, Mapping, Sequence, Tuple

from .constants import (
    CALL_FUNCTION_METHOD_NAME,
    DEPLOY_CODE_METHOD_NAME,
    DEPOSIT_METHOD_NAME,
    GET_BALANCE_METHOD_NAME,
    GET_CODE_METHOD_NAME,
    GET_NONCE_METHOD_NAME,
    GET_STORAGE_AT_METHOD_NAME,
    TRANSFER_METHOD_NAME,
    VIEW_CALL_FUNCTION_METHOD_NAME,
    WITHDRAW_METHOD_NAME,
)
from .exceptions import InvalidArgumentError, MethodNotSupportedError


class Handler(Enum):
    """Component that executes a method."""
    NODE = "node"
    CONTRACT = "contract"
    BLOCK = "block"


class Mode(Enum):
    READ_ONLY = "read_only"
    STATE_CHANGING = "state_changing"


class EntryPoint(str, Enum):
    """EVM contract methods, named exactly as the contract exports them."""
    DEPLOY_CODE = DEPLOY_CODE_METHOD_NAME
    CALL_FUNCTION = CALL_FUNCTION_METHOD_NAME
    VIEW_CALL_FUNCTION = VIEW_CALL_FUNCTION_METHOD_NAME
    DEPOSIT = DEPOSIT_METHOD_NAME
    WITHDRAW = WITHDRAW_METHOD_NAME
    TRANSFER = TRANSFER_METHOD_NAME
    GET_BALANCE = GET_BALANCE_METHOD_NAME
    GET_STORAGE_AT = GET_STORAGE_AT_METHOD_NAME
    GET_CODE = GET_CODE_METHOD_NAME
    GET_NONCE = GET_NONCE_METHOD_NAME

    @property
    def mode(self) -> Mode:
        if self in _READ_ONLY_ENTRY_POINTS:
            return Mode.READ_ONLY
        return Mode.STATE_CHANGING


_READ_ONLY_ENTRY_POINTS = frozenset({
    EntryPoint.VIEW_CALL_FUNCTION,
    EntryPoint.GET_BALANCE,
    EntryPoint.GET_STORAGE_AT,
    EntryPoint.GET_CODE,
    EntryPoint.GET_NONCE,
})


@dataclass(frozen=True)
class MethodSpec:
    name: str
    handler: Handler
    mode: Mode
    entry_points: Tuple[EntryPoint, ...] = ()
    min_params: int = 0
    max_params: int = 0

    def __post_init__(self):
        for entry_point in self.entry_points:
            if entry_point.mode is not self.mode:
                raise ValueError(
                    f"{self.name} is {self.mode.value} but may reach "
                    f"{entry_point.value} ({entry_point.mode.value})"
                )
        if self.handler is Handler.CONTRACT and not self.entry_points:
            raise ValueError(f"{self.name} is a contract method without entry points")

    def validate_params(self, params: Any) -> List[Any]:
        """Check the positional param count and return the params as a list."""
        if params is None:
            params = []
        if not isinstance(params, (list, tuple)):
            raise InvalidArgumentError(f"{self.name}: params must be a list")
        if not self.min_params <= len(params) <= self.max_params:
            if self.min_params == self.max_params:
                expected = str(self.min_params)
            else:
                expected = f"{self.min_params} to {self.max_params}"
            raise InvalidArgumentError(
                f"{self.name}: expected {expected} params, got {len(params)}"
            )
        return list(params)


def _node(name: str, min_params: int = 0, max_params: int = 0) -> MethodSpec:
    return MethodSpec(name, Handler.NODE, Mode.READ_ONLY, (), min_params, max_params)


def _view(name: str, entry_point: EntryPoint, min_params: int, max_params: int) -> MethodSpec:
    return MethodSpec(name, Handler.CONTRACT, Mode.READ_ONLY, (entry_point,), min_params, max_params)


def _write(name: str, entry_points: Sequence[EntryPoint], min_params: int, max_params: int) -> MethodSpec:
    return MethodSpec(
        name, Handler.CONTRACT, Mode.STATE_CHANGING, tuple(entry_points), min_params, max_params
    )


def _block(name: str, min_params: int, max_params: int) -> MethodSpec:
    return MethodSpec(name, Handler.BLOCK, Mode.READ_ONLY, (), min_params, max_params)


_SPECS = (
    # Node info
    _node("web3_clientVersion"),
    _node("web3_sha3", 1, 1),
    _node("net_version"),
    _node("net_listening"),
    _node("eth_protocolVersion"),
    _node("eth_syncing"),
    _node("eth_gasPrice"),
    _node("eth_accounts"),
    _node("eth_blockNumber"),
    _node("eth_chainId"),

    # Account state and calls
    _view("eth_getBalance", EntryPoint.GET_BALANCE, 1, 2),
    _view("eth_getStorageAt", EntryPoint.GET_STORAGE_AT, 2, 3),
    _view("eth_getCode", EntryPoint.GET_CODE, 1, 2),
    _view("eth_getTransactionCount", EntryPoint.GET_NONCE, 1, 2),
    _view("eth_call", EntryPoint.VIEW_CALL_FUNCTION, 1, 2),
    _write(
        "eth_sendTransaction",
        (EntryPoint.DEPLOY_CODE, EntryPoint.CALL_FUNCTION, EntryPoint.TRANSFER),
        1, 1,
    ),
    _write("near_evmDeposit", (EntryPoint.DEPOSIT,), 2, 2),
    _write("near_evmWithdraw", (EntryPoint.WITHDRAW,), 2, 2),

    # Blocks and transactions
    _block("eth_getBlockByHash", 1, 2),
    _block("eth_getBlockByNumber", 1, 2),
    _block("eth_getBlockTransactionCountByHash", 1, 1),
    _block("eth_getBlockTransactionCountByNumber", 1, 1),
    _block("eth_getTransactionByHash", 1, 1),
    _block("eth_getTransactionReceipt", 1, 1),
    _block("eth_getTransactionByBlockHashAndIndex", 2, 2),
    _block("eth_getTransactionByBlockNumberAndIndex", 2, 2),
)

METHODS: Mapping[str, MethodSpec] = MappingProxyType({m.name: m for m in _SPECS})


def lookup(method: Any) -> MethodSpec:
    """Return the ``MethodSpec`` for ``method`` or raise ``MethodNotSupportedError``."""
    if not isinstance(method, str):
        raise InvalidArgumentError("method must be a string")
    try:
        return METHODS[method]
    except KeyError:
        raise MethodNotSupportedError(method) from None


def supported_methods() -> List[str]:
    return sorted(METHODS)
