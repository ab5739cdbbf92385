"""
Shared fixtures: an in-memory NEAR node and a signer.

``FakeHostClient`` keeps blocks, chunks and transactions in dicts, records
every view call and submission, and can delay or fail individual chunk and
transaction fetches to exercise concurrent hydration.
"""

import asyncio
import json
import os
import sys
from typing import Dict, List, Optional, Sequence, Tuple

import base58
import pytest

# ── Path setup ────────────────────────────────────────────────────────
ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from nearweb3.codec import bytes_to_base64
from nearweb3.exceptions import NotFoundError, TransportError
from nearweb3.near.base import HostChainClient, Signer
from nearweb3.near.types import (
    ChunkTransaction,
    NativeBlock,
    NativeChunk,
    NativeTransaction,
    NodeStatus,
)
from nearweb3.provider import NearProvider

SIGNER_ACCOUNT = "test.near"
EVM_CONTRACT = "evm"
# 2021-01-01T00:00:00Z in nanoseconds
GENESIS_TIMESTAMP_NS = 1_609_459_200_000_000_000


def hash_for(seed: int) -> str:
    """Deterministic base58 32-byte hash."""
    return base58.b58encode(bytes([seed % 256]) * 32).decode("ascii")


class FakeSigner(Signer):
    def __init__(self, account_id: str = SIGNER_ACCOUNT):
        self.account_id = account_id
        self.signed: List[Tuple[str, list]] = []

    async def sign_transaction(self, receiver_id, actions):
        self.signed.append((receiver_id, list(actions)))
        return b"signed:" + receiver_id.encode()


class FakeHostClient(HostChainClient):
    def __init__(self):
        self.view_results: Dict[str, bytes] = {}
        self.view_calls: List[tuple] = []
        self.submissions: List[tuple] = []
        self.submit_error: Optional[Exception] = None
        self.submit_value: bytes = b""
        self.blocks: List[NativeBlock] = []
        self.chunks: Dict[str, NativeChunk] = {}
        self.transactions: Dict[str, NativeTransaction] = {}
        self.delays: Dict[str, float] = {}
        self.failing: set = set()
        self.completed: List[str] = []
        self.node_status = NodeStatus(
            chain_id="localnet",
            version="1.0.0",
            latest_block_hash=hash_for(0),
            latest_block_height=0,
        )
        self._seed = 100

    # ── HostChainClient ──

    async def view_call(self, contract_id, method_name, args, block):
        self.view_calls.append((contract_id, method_name, json.loads(args), block))
        return self.view_results.get(method_name, b"")

    async def send_transaction(self, signer, receiver_id, actions):
        self.submissions.append((signer.account_id, receiver_id, list(actions)))
        await signer.sign_transaction(receiver_id, actions)
        if self.submit_error is not None:
            raise self.submit_error
        self._seed += 1
        return NativeTransaction(
            hash=hash_for(self._seed),
            signer_id=signer.account_id,
            receiver_id=receiver_id,
            nonce=len(self.submissions),
            actions=[action.to_rpc() for action in actions],
            status={"SuccessValue": bytes_to_base64(self.submit_value)},
            block_hash=self.blocks[-1].hash if self.blocks else hash_for(0),
        )

    async def block(self, reference):
        if reference.is_latest:
            if not self.blocks:
                raise NotFoundError("no blocks")
            return self.blocks[-1]
        for block in self.blocks:
            if reference.block_id in (block.height, block.hash):
                return block
        raise NotFoundError(f"block {reference.block_id}")

    async def chunk(self, chunk_hash):
        await self._maybe_delay(chunk_hash)
        if chunk_hash not in self.chunks:
            raise NotFoundError(f"chunk {chunk_hash}")
        return self.chunks[chunk_hash]

    async def tx_status(self, tx_hash, account_id):
        await self._maybe_delay(tx_hash)
        if tx_hash not in self.transactions:
            raise NotFoundError(f"transaction {tx_hash}")
        tx = self.transactions[tx_hash]
        if tx.signer_id != account_id:
            raise NotFoundError(f"transaction {tx_hash} not signed by {account_id}")
        self.completed.append(tx_hash)
        return tx

    async def status(self):
        return self.node_status

    async def _maybe_delay(self, key: str) -> None:
        delay = self.delays.get(key)
        if delay:
            await asyncio.sleep(delay)
        if key in self.failing:
            raise TransportError(f"fetch of {key} failed")

    # ── Chain building ──

    def add_transaction(
        self,
        tx_hash: str,
        signer_id: str,
        block_hash: str,
        receiver_id: str = EVM_CONTRACT,
        actions: Optional[list] = None,
        status: Optional[dict] = None,
        gas_burnt: int = 0,
    ) -> NativeTransaction:
        tx = NativeTransaction(
            hash=tx_hash,
            signer_id=signer_id,
            receiver_id=receiver_id,
            nonce=len(self.transactions) + 1,
            actions=actions if actions is not None else [],
            status=status if status is not None else {"SuccessValue": ""},
            block_hash=block_hash,
            gas_burnt=gas_burnt,
        )
        self.transactions[tx_hash] = tx
        return tx

    def add_block(self, chunks: Sequence[Sequence[Tuple[str, str]]] = ()) -> NativeBlock:
        """
        Append a block whose chunks hold ``(tx_hash, signer_id)`` pairs.
        Transactions are registered too so they can be hydrated.
        """
        height = len(self.blocks) + 1
        block_hash = hash_for(height)
        chunk_hashes = []
        for shard_id, txs in enumerate(chunks):
            chunk_hash = hash_for(200 + height * 4 + shard_id)
            chunk_hashes.append(chunk_hash)
            self.chunks[chunk_hash] = NativeChunk(
                chunk_hash=chunk_hash,
                shard_id=shard_id,
                transactions=[
                    ChunkTransaction(hash=h, signer_id=s, receiver_id=EVM_CONTRACT) for h, s in txs
                ],
            )
            for tx_hash, signer_id in txs:
                if tx_hash not in self.transactions:
                    self.add_transaction(tx_hash, signer_id, block_hash)
        block = NativeBlock(
            hash=block_hash,
            height=height,
            prev_hash=self.blocks[-1].hash if self.blocks else hash_for(0),
            timestamp=GENESIS_TIMESTAMP_NS + height * 1_500_000_000,
            author="validator.near",
            chunk_hashes=chunk_hashes,
        )
        self.blocks.append(block)
        self.node_status.latest_block_hash = block_hash
        self.node_status.latest_block_height = height
        return block


@pytest.fixture
def host():
    return FakeHostClient()


@pytest.fixture
def signer():
    return FakeSigner()


@pytest.fixture
def provider(host, signer):
    return NearProvider(host, signer=signer, evm_contract=EVM_CONTRACT, network_id="local")


@pytest.fixture
def read_only_provider(host):
    return NearProvider(host, evm_contract=EVM_CONTRACT, network_id="mainnet")
