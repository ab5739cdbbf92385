"""
Block and transaction synthesizer.

Resolves Ethereum block parameters against NEAR and shapes the results as
Ethereum JSON-RPC objects. A NEAR block holds its transactions in chunks; the
block's transaction list is every chunk's list concatenated in chunk order.

Transactions are identified by ``"0x<hex hash>:<signer account>"`` references
since NEAR needs the signer to look a transaction up. Every lookup is a fresh
query to the node; nothing is cached.
"""

import asyncio
import json
from typing import Any, Awaitable, Dict, Iterable, List, Optional, Tuple, TypeVar

from .codec import (
    TxRef,
    account_id_to_address,
    add_prefix,
    base58_to_hex,
    convert_timestamp,
    dec_to_hex,
    hex_to_base58,
    is_hex,
    is_valid_account_id,
    split_tx_ref,
    strip_prefix,
    to_int,
)
from .constants import (
    BLOCK_GAS_LIMIT,
    EMPTY_BLOOM,
    GAS_PRICE,
    HASH_LENGTH,
    ZERO_ADDRESS,
    ZERO_HASH,
)
from .contract import decode_result
from .exceptions import ContractExecutionError, InvalidArgumentError
from .logger import get_logger
from .near.base import HostChainClient
from .near.types import BlockReference, ChunkTransaction, NativeBlock, NativeTransaction
from .registry import EntryPoint

logger = get_logger(__name__)

T = TypeVar("T")

_EMPTY_UNCLES_HASH = "0x1dcc4de8dec75d7aab85b567b6ccd41ad312451b948a7413f0a142fd40d49347"


def _hash_to_hex(value: str) -> str:
    if not value:
        return ZERO_HASH
    return base58_to_hex(value)


def _account_address(account_id: str) -> str:
    if not account_id or not is_valid_account_id(account_id):
        return ZERO_ADDRESS
    return account_id_to_address(account_id)


def _to_bool(value: Any, what: str) -> bool:
    if not isinstance(value, bool):
        raise InvalidArgumentError(f"{what} must be a boolean")
    return value


def _hex_arg(args: Dict[str, Any], key: str) -> Optional[str]:
    """``args[key]`` as 0x hex, or None when missing, empty or not hex."""
    value = args.get(key)
    if not isinstance(value, str):
        return None
    stripped = strip_prefix(value)
    if not stripped or not is_hex(stripped):
        return None
    return add_prefix(stripped.lower())


async def _fetch_all(coros: Iterable[Awaitable[T]]) -> List[T]:
    """
    Await ``coros`` concurrently, results in input order.

    The first failure cancels the fetches still in flight and is re-raised
    on its own, outside the task group's ``ExceptionGroup``.
    """
    try:
        async with asyncio.TaskGroup() as group:
            tasks = [group.create_task(coro) for coro in coros]
    except BaseExceptionGroup as eg:
        raise eg.exceptions[0] from None
    return [task.result() for task in tasks]


def block_hash_reference(block_hash: Any) -> BlockReference:
    """A 0x-prefixed 32-byte hex hash as a NEAR block reference."""
    if not isinstance(block_hash, str):
        raise InvalidArgumentError("Block hash must be a string")
    stripped = strip_prefix(block_hash)
    if stripped == block_hash or len(stripped) != HASH_LENGTH * 2 or not is_hex(stripped):
        raise InvalidArgumentError(f"Invalid block hash: {block_hash!r}")
    return BlockReference.by_hash(hex_to_base58(stripped))


def tx_hash_to_base58(tx_hash: str) -> str:
    """Transaction hashes arrive as 0x hex; bare strings are taken as base58."""
    if tx_hash.startswith(("0x", "0X")):
        stripped = strip_prefix(tx_hash)
        if len(stripped) != HASH_LENGTH * 2 or not is_hex(stripped):
            raise InvalidArgumentError(f"Invalid transaction hash: {tx_hash!r}")
        return hex_to_base58(stripped)
    if not tx_hash:
        raise InvalidArgumentError("Empty transaction hash")
    return tx_hash


class BlockSynthesizer:
    """
    Builds Ethereum-shaped blocks, transactions and receipts from NEAR data.

    ``evm_contract`` is used to recognise calls into the EVM contract so their
    Ethereum-side ``to`` and ``input`` can be recovered from the call args.
    """

    def __init__(self, client: HostChainClient, evm_contract: Optional[str] = None):
        self.client = client
        self.evm_contract = evm_contract

    # ══════════════════════════════════════════════════════════════════════
    #  RESOLUTION
    # ══════════════════════════════════════════════════════════════════════

    @staticmethod
    def resolve(tag: Any) -> BlockReference:
        """Block hash, height or ``"latest"`` to a block reference."""
        return BlockReference.from_tag(tag)

    async def fetch_block(self, reference: BlockReference) -> NativeBlock:
        block = await self.client.block(reference)
        logger.debug(f"Resolved block {block.height} ({len(block.chunk_hashes)} chunks)")
        return block

    async def chunk_transactions(self, block: NativeBlock) -> List[ChunkTransaction]:
        """All transactions of ``block``, chunk by chunk in chunk order."""
        chunks = await _fetch_all(
            self.client.chunk(chunk_hash) for chunk_hash in block.chunk_hashes
        )
        return [tx for chunk in chunks for tx in chunk.transactions]

    async def hydrate(self, refs: List[ChunkTransaction]) -> List[NativeTransaction]:
        """
        Fetch the full body of every transaction, concurrently.

        Results keep the order of ``refs``. The first failed fetch cancels the
        rest and fails the whole call.
        """
        return await _fetch_all(
            self.client.tx_status(ref.hash, ref.signer_id) for ref in refs
        )

    # ══════════════════════════════════════════════════════════════════════
    #  BLOCKS
    # ══════════════════════════════════════════════════════════════════════

    async def get_block(self, reference: BlockReference, full: bool = False) -> Dict[str, Any]:
        block = await self.fetch_block(reference)
        refs = await self.chunk_transactions(block)
        if full:
            txs = await self.hydrate(refs)
            transactions = [self.format_transaction(tx, block, i) for i, tx in enumerate(txs)]
            gas_used = sum(tx.gas_burnt for tx in txs)
        else:
            transactions = [str(TxRef(base58_to_hex(r.hash), r.signer_id)) for r in refs]
            gas_used = 0
        return self.format_block(block, transactions, gas_used)

    async def get_block_by_hash(self, block_hash: Any, full: Any = False) -> Dict[str, Any]:
        return await self.get_block(block_hash_reference(block_hash), _to_bool(full, "full"))

    async def get_block_by_number(self, tag: Any, full: Any = False) -> Dict[str, Any]:
        return await self.get_block(self.resolve(tag), _to_bool(full, "full"))

    async def get_block_transaction_count(self, reference: BlockReference) -> str:
        block = await self.fetch_block(reference)
        return dec_to_hex(len(await self.chunk_transactions(block)))

    def format_block(self, block: NativeBlock, transactions: List[Any], gas_used: int = 0) -> Dict[str, Any]:
        """Map a NEAR block onto an Ethereum block object."""
        return {
            "number": dec_to_hex(block.height),
            "hash": _hash_to_hex(block.hash),
            "parentHash": _hash_to_hex(block.prev_hash),
            "nonce": "0x0000000000000000",
            "sha3Uncles": _EMPTY_UNCLES_HASH,
            "logsBloom": EMPTY_BLOOM,
            "transactionsRoot": ZERO_HASH,
            "stateRoot": ZERO_HASH,
            "receiptsRoot": ZERO_HASH,
            "miner": _account_address(block.author),
            "difficulty": "0x0",
            "totalDifficulty": "0x0",
            "extraData": "0x",
            "size": "0x0",
            "gasLimit": dec_to_hex(BLOCK_GAS_LIMIT),
            "gasUsed": dec_to_hex(gas_used),
            "timestamp": dec_to_hex(convert_timestamp(block.timestamp)),
            "transactions": transactions,
            "uncles": [],
            "baseFeePerGas": dec_to_hex(GAS_PRICE),
            "mixHash": ZERO_HASH,
        }

    # ══════════════════════════════════════════════════════════════════════
    #  TRANSACTIONS
    # ══════════════════════════════════════════════════════════════════════

    def _evm_call(self, tx: NativeTransaction) -> Tuple[Optional[str], str]:
        """
        Ethereum ``to`` and ``input`` of a transaction.

        Anyone can call the EVM contract, so args that are not a JSON object
        of hex strings are ignored rather than rejected.
        """
        to = _account_address(tx.receiver_id)
        if self.evm_contract is None or tx.receiver_id != self.evm_contract:
            return to, "0x"
        method = tx.call_method
        if method is None:
            return to, "0x"
        try:
            args = json.loads(tx.call_args or b"{}")
        except ValueError:
            return to, "0x"
        if not isinstance(args, dict):
            return to, "0x"
        if method == EntryPoint.DEPLOY_CODE.value:
            return None, _hex_arg(args, "bytecode") or "0x"
        if method == EntryPoint.CALL_FUNCTION.value:
            contract_address = _hex_arg(args, "contract_address")
            if contract_address:
                return contract_address, _hex_arg(args, "encoded_input") or "0x"
        return _hex_arg(args, "address") or to, "0x"

    def format_transaction(
        self,
        tx: NativeTransaction,
        block: NativeBlock,
        index: Optional[int],
    ) -> Dict[str, Any]:
        to, input_data = self._evm_call(tx)
        return {
            "hash": str(TxRef(base58_to_hex(tx.hash), tx.signer_id)),
            "nonce": dec_to_hex(tx.nonce),
            "blockHash": _hash_to_hex(block.hash),
            "blockNumber": dec_to_hex(block.height),
            "transactionIndex": dec_to_hex(index) if index is not None else None,
            "from": _account_address(tx.signer_id),
            "to": to,
            "value": dec_to_hex(tx.deposit),
            "gasPrice": dec_to_hex(GAS_PRICE),
            "gas": dec_to_hex(tx.attached_gas),
            "input": input_data,
            "v": "0x0",
            "r": "0x0",
            "s": "0x0",
            "type": "0x0",
        }

    async def _locate(self, tx_ref: Any) -> Tuple[NativeTransaction, NativeBlock, Optional[int]]:
        """Fetch a transaction, its block and its index within that block."""
        ref = split_tx_ref(tx_ref)
        if not is_valid_account_id(ref.account_id):
            raise InvalidArgumentError(f"Invalid account id in transaction reference: {ref.account_id!r}")
        tx = await self.client.tx_status(tx_hash_to_base58(ref.tx_hash), ref.account_id)
        block = await self.fetch_block(BlockReference.by_hash(tx.block_hash))
        refs = await self.chunk_transactions(block)
        index = next((i for i, r in enumerate(refs) if r.hash == tx.hash), None)
        return tx, block, index

    async def get_transaction(self, tx_ref: Any) -> Dict[str, Any]:
        tx, block, index = await self._locate(tx_ref)
        return self.format_transaction(tx, block, index)

    async def get_transaction_by_block_and_index(
        self,
        reference: BlockReference,
        index: Any,
    ) -> Optional[Dict[str, Any]]:
        """Transaction at ``index`` of a block, or None past the end."""
        position = to_int(index)
        block = await self.fetch_block(reference)
        refs = await self.chunk_transactions(block)
        if position >= len(refs):
            return None
        ref = refs[position]
        tx = await self.client.tx_status(ref.hash, ref.signer_id)
        return self.format_transaction(tx, block, position)

    async def get_transaction_receipt(self, tx_ref: Any) -> Dict[str, Any]:
        tx, block, index = await self._locate(tx_ref)
        to, _ = self._evm_call(tx)

        contract_address = None
        if (
            tx.receiver_id == self.evm_contract
            and tx.call_method == EntryPoint.DEPLOY_CODE.value
            and tx.succeeded
        ):
            try:
                contract_address = decode_result(EntryPoint.DEPLOY_CODE, tx.success_value)
            except ContractExecutionError as e:
                logger.warning(f"Unreadable deploy result in {tx.hash}: {e}")
            if contract_address == "0x":
                contract_address = None

        return {
            "transactionHash": str(TxRef(base58_to_hex(tx.hash), tx.signer_id)),
            "transactionIndex": dec_to_hex(index) if index is not None else None,
            "blockHash": _hash_to_hex(block.hash),
            "blockNumber": dec_to_hex(block.height),
            "from": _account_address(tx.signer_id),
            "to": to,
            "cumulativeGasUsed": dec_to_hex(tx.gas_burnt),
            "gasUsed": dec_to_hex(tx.gas_burnt),
            "effectiveGasPrice": dec_to_hex(GAS_PRICE),
            "contractAddress": contract_address,
            "logs": [],
            "logsBloom": EMPTY_BLOOM,
            "status": "0x1" if tx.succeeded else "0x0",
            "type": "0x0",
        }
