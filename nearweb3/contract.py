"""
EVM contract call adapter.

Turns account-state and call requests into calls on the EVM contract deployed
on NEAR:

    - get_balance / get_storage_at / get_code / get_nonce / view_call_function
      run as view calls: no signature, no gas, no state change
    - deploy_code / call_function / deposit / withdraw / transfer are signed
      transactions carrying the fixed ``GAS_AMOUNT``

Ethereum-side gas parameters are accepted and ignored; NEAR fees are not
Ethereum fees.

Contract arguments are JSON with unprefixed lowercase hex for addresses and
byte strings. Results come back as raw bytes holding JSON and are decoded by
the entry point's return shape. An empty result decodes to the zero value of
that shape.
"""

import json
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Sequence

from .codec import (
    TxRef,
    account_id_to_address,
    base58_to_hex,
    bytes_to_hex,
    is_hex,
    normalize_address,
    strip_prefix,
    to_int,
    to_word,
)
from .constants import GAS_AMOUNT, ZERO_ADDRESS
from .exceptions import (
    AccountAlreadyExistsError,
    ContractExecutionError,
    InvalidArgumentError,
    SignerMismatchError,
)
from .logger import get_logger
from .near.base import HostChainClient, Signer
from .near.types import (
    Action,
    AddKey,
    BlockReference,
    CreateAccount,
    DeployContract,
    FunctionCall,
    NativeTransaction,
    Transfer,
)
from .registry import EntryPoint, Mode

logger = get_logger(__name__)


# ─── Result decoding ──────────────────────────────────────────────────────────

class ReturnShape(Enum):
    INTEGER = "integer"
    WORD = "word"
    BYTES = "bytes"
    NONE = "none"


RETURN_SHAPES: Dict[EntryPoint, ReturnShape] = {
    EntryPoint.GET_BALANCE: ReturnShape.INTEGER,
    EntryPoint.GET_NONCE: ReturnShape.INTEGER,
    EntryPoint.GET_STORAGE_AT: ReturnShape.WORD,
    EntryPoint.GET_CODE: ReturnShape.BYTES,
    EntryPoint.VIEW_CALL_FUNCTION: ReturnShape.BYTES,
    EntryPoint.CALL_FUNCTION: ReturnShape.BYTES,
    # deploy_code returns the new contract's address
    EntryPoint.DEPLOY_CODE: ReturnShape.BYTES,
    EntryPoint.DEPOSIT: ReturnShape.INTEGER,
    EntryPoint.WITHDRAW: ReturnShape.NONE,
    EntryPoint.TRANSFER: ReturnShape.NONE,
}


def _zero(shape: ReturnShape) -> Any:
    if shape is ReturnShape.INTEGER:
        return 0
    if shape is ReturnShape.WORD:
        return "0x" + to_word(0)
    if shape is ReturnShape.BYTES:
        return "0x"
    return None


def decode_result(entry_point: EntryPoint, raw: bytes) -> Any:
    """
    Decode a raw contract result.

    INTEGER → int, WORD → 0x-prefixed 32-byte hex, BYTES → 0x-prefixed hex,
    NONE → None. Empty or ``null`` results give the shape's zero value.
    Results that are not JSON are taken as the value's raw bytes.
    A result of the wrong shape raises ``ContractExecutionError``.
    """
    shape = RETURN_SHAPES[entry_point]
    if shape is ReturnShape.NONE or not raw or not raw.strip():
        return _zero(shape)

    try:
        value = json.loads(raw)
    except ValueError:
        if shape is ReturnShape.INTEGER:
            return int.from_bytes(raw, "big")
        if shape is ReturnShape.BYTES:
            return bytes_to_hex(raw)
        value = raw.hex()

    if value is None or value == "":
        return _zero(shape)
    try:
        return _coerce(shape, value)
    except InvalidArgumentError as e:
        raise ContractExecutionError(
            f"{entry_point.value}: unexpected {shape.value} result: {e}", data=value,
        ) from e


def _coerce(shape: ReturnShape, value: Any) -> Any:
    if shape is ReturnShape.INTEGER:
        if isinstance(value, (int, str)):
            return to_int(value)
        raise InvalidArgumentError(f"expected an integer, got {value!r}")
    if not isinstance(value, str) or not is_hex(value):
        raise InvalidArgumentError(f"expected hex, got {value!r}")
    if shape is ReturnShape.WORD:
        return "0x" + to_word(value)
    return "0x" + strip_prefix(value).lower()


def encode_args(args: Dict[str, Any]) -> bytes:
    return json.dumps(args, separators=(",", ":")).encode("utf-8")


def _address_arg(address: Any) -> str:
    return strip_prefix(normalize_address(address))


def _data_arg(data: Any) -> str:
    if data is None:
        return ""
    if not isinstance(data, str) or not is_hex(data):
        raise InvalidArgumentError(f"Invalid hex data: {data!r}")
    return strip_prefix(data).lower()


# ─── Call descriptor ──────────────────────────────────────────────────────────

@dataclass(frozen=True)
class ContractCall:
    """One call on the EVM contract, built fresh per request."""
    entry_point: EntryPoint
    signer_account: Optional[str]
    target_contract: str
    args: bytes
    mode: Mode
    gas: int = 0
    attached_value: int = 0

    def to_action(self) -> FunctionCall:
        return FunctionCall(
            method_name=self.entry_point.value,
            args=self.args,
            gas=self.gas,
            deposit=self.attached_value,
        )


@dataclass
class CallResult:
    value: Any
    outcome: Optional[NativeTransaction] = None

    @property
    def tx_ref(self) -> Optional[TxRef]:
        if self.outcome is None:
            return None
        return TxRef(base58_to_hex(self.outcome.hash), self.outcome.signer_id)


# ─── Adapter ──────────────────────────────────────────────────────────────────

class ContractCallAdapter:
    """
    Executes calls against the EVM contract through a ``HostChainClient``.

    The signer is optional; without one every state-changing call fails with
    ``SignerMismatchError`` while view calls keep working.
    """

    def __init__(
        self,
        client: HostChainClient,
        evm_contract: str,
        signer: Optional[Signer] = None,
    ):
        self.client = client
        self.evm_contract = evm_contract
        self.signer = signer

    @property
    def signer_address(self) -> Optional[str]:
        if self.signer is None:
            return None
        return account_id_to_address(self.signer.account_id)

    def build(
        self,
        entry_point: EntryPoint,
        args: Dict[str, Any],
        value: int = 0,
    ) -> ContractCall:
        mode = entry_point.mode
        if mode is Mode.READ_ONLY:
            if value:
                raise InvalidArgumentError(f"{entry_point.value} is read-only and cannot carry value")
            return ContractCall(
                entry_point=entry_point,
                signer_account=None,
                target_contract=self.evm_contract,
                args=encode_args(args),
                mode=mode,
            )
        return ContractCall(
            entry_point=entry_point,
            signer_account=self._require_signer().account_id,
            target_contract=self.evm_contract,
            args=encode_args(args),
            mode=mode,
            gas=GAS_AMOUNT,
            attached_value=value,
        )

    async def execute(
        self,
        call: ContractCall,
        block: Optional[BlockReference] = None,
    ) -> CallResult:
        if call.mode is Mode.READ_ONLY:
            raw = await self.client.view_call(
                call.target_contract,
                call.entry_point.value,
                call.args,
                block or BlockReference.latest(),
            )
            return CallResult(decode_result(call.entry_point, raw))

        if block is not None and not block.is_latest:
            raise InvalidArgumentError("State-changing calls always apply to the latest block")
        signer = self._require_signer()
        if call.signer_account != signer.account_id:
            raise SignerMismatchError(
                f"Call was built for {call.signer_account}, signer is {signer.account_id}"
            )
        logger.debug(
            f"{call.entry_point.value} on {call.target_contract} "
            f"as {signer.account_id} (deposit {call.attached_value})"
        )
        outcome = await self.client.send_transaction(signer, call.target_contract, [call.to_action()])
        return CallResult(decode_result(call.entry_point, outcome.success_value), outcome)

    def _require_signer(self) -> Signer:
        if self.signer is None:
            raise SignerMismatchError("No signer configured for state-changing calls")
        return self.signer

    def _check_sender(self, sender: Any) -> None:
        if sender is None:
            return
        signer_address = account_id_to_address(self._require_signer().account_id)
        if normalize_address(sender) != signer_address:
            raise SignerMismatchError(
                f"Transaction sender {sender} is not the signer account {self.signer.account_id}"
            )

    # ── Read-only RPC operations ──

    async def get_balance(self, address: str, block: Optional[BlockReference] = None) -> int:
        call = self.build(EntryPoint.GET_BALANCE, {"address": _address_arg(address)})
        return (await self.execute(call, block)).value

    async def get_storage_at(
        self,
        address: str,
        position: Any,
        block: Optional[BlockReference] = None,
    ) -> str:
        args = {"address": _address_arg(address), "key": to_word(_position(position))}
        call = self.build(EntryPoint.GET_STORAGE_AT, args)
        return (await self.execute(call, block)).value

    async def get_code(self, address: str, block: Optional[BlockReference] = None) -> str:
        call = self.build(EntryPoint.GET_CODE, {"address": _address_arg(address)})
        return (await self.execute(call, block)).value

    async def get_nonce(self, address: str, block: Optional[BlockReference] = None) -> int:
        call = self.build(EntryPoint.GET_NONCE, {"address": _address_arg(address)})
        return (await self.execute(call, block)).value

    async def view_call(self, tx: Dict[str, Any], block: Optional[BlockReference] = None) -> str:
        """``eth_call``: run contract code without changing state."""
        if not isinstance(tx, dict):
            raise InvalidArgumentError("eth_call expects a transaction object")
        if not tx.get("to"):
            raise InvalidArgumentError("eth_call requires a 'to' address")
        sender = tx.get("from") or self.signer_address or ZERO_ADDRESS
        args = {
            "contract_address": _address_arg(tx["to"]),
            "sender": _address_arg(sender),
            "encoded_input": _data_arg(tx.get("data", tx.get("input"))),
        }
        call = self.build(EntryPoint.VIEW_CALL_FUNCTION, args)
        return (await self.execute(call, block)).value

    # ── State-changing RPC operations ──

    async def send_transaction(self, tx: Dict[str, Any]) -> str:
        """
        ``eth_sendTransaction``.

        No ``to`` deploys ``data`` as new contract code; ``to`` with data calls
        that contract with ``value`` attached; ``to`` without data moves
        ``value`` inside the EVM. Returns ``"0x<hash>:<signer account>"``.
        """
        if not isinstance(tx, dict):
            raise InvalidArgumentError("eth_sendTransaction expects a transaction object")
        self._check_sender(tx.get("from"))
        if tx.get("gas") is not None:
            logger.debug(f"Ignoring caller gas {tx['gas']}; attaching {GAS_AMOUNT}")

        value = to_int(tx.get("value") or 0)
        data = _data_arg(tx.get("data", tx.get("input")))
        to = tx.get("to")

        if not to:
            if not data:
                raise InvalidArgumentError("Contract deployment requires 'data'")
            if value:
                raise InvalidArgumentError("Contract deployment cannot carry value")
            call = self.build(EntryPoint.DEPLOY_CODE, {"bytecode": data})
        elif data:
            call = self.build(
                EntryPoint.CALL_FUNCTION,
                {"contract_address": _address_arg(to), "encoded_input": data},
                value=value,
            )
        else:
            call = self.build(
                EntryPoint.TRANSFER,
                {"address": _address_arg(to), "amount": str(value)},
            )

        result = await self.execute(call)
        logger.info(f"{call.entry_point.value} submitted as {result.tx_ref}")
        return str(result.tx_ref)

    async def deposit(self, address: str, value: Any) -> str:
        """Move NEAR from the signer into the EVM balance of ``address``."""
        amount = to_int(value)
        if amount == 0:
            raise InvalidArgumentError("Deposit amount must be positive")
        call = self.build(EntryPoint.DEPOSIT, {"address": _address_arg(address)}, value=amount)
        return str((await self.execute(call)).tx_ref)

    async def withdraw(self, address: str, value: Any) -> str:
        """Move EVM balance of ``address`` back to the signer's NEAR account."""
        amount = to_int(value)
        if amount == 0:
            raise InvalidArgumentError("Withdraw amount must be positive")
        call = self.build(
            EntryPoint.WITHDRAW,
            {"address": _address_arg(address), "amount": str(amount)},
        )
        return str((await self.execute(call)).tx_ref)

    # ── EVM contract deployment ──

    async def deploy_evm_contract(
        self,
        code: bytes,
        public_key: str,
        initial_balance: int = 0,
    ) -> bool:
        """
        Create the EVM contract account and deploy its wasm.

        Returns True when the account was created, False when it already
        existed. Any other failure propagates.
        """
        signer = self._require_signer()
        actions: Sequence[Action] = [
            CreateAccount(),
            Transfer(deposit=initial_balance),
            AddKey(public_key=public_key),
            DeployContract(code=code),
        ]
        try:
            await self.client.send_transaction(signer, self.evm_contract, actions)
        except AccountAlreadyExistsError:
            logger.info(f"EVM contract {self.evm_contract} already deployed")
            return False
        logger.info(f"Deployed EVM contract {self.evm_contract} ({len(code)} bytes)")
        return True


def _position(position: Any) -> Any:
    """Storage positions arrive as ints, hex quantities or decimal strings."""
    if isinstance(position, str) and not position.startswith(("0x", "0X")):
        return to_int(position)
    return position


__all__ = [
    "CallResult",
    "ContractCall",
    "ContractCallAdapter",
    "RETURN_SHAPES",
    "ReturnShape",
    "decode_result",
    "encode_args",
]
