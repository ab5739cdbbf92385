"""
NEAR Native Types

Thin dataclasses over the JSON shapes returned by the NEAR RPC, plus the
action types submitted in signed transactions.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

from ..codec import base64_to_bytes, bytes_to_base64, parse_block_tag


# ══════════════════════════════════════════════════════════════════════
#  BLOCK REFERENCES
# ══════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class BlockReference:
    """
    Either a concrete block (height or base58 hash) or a finality level.

    ``BlockReference.latest()`` asks the node for its newest final block.
    """
    block_id: Union[int, str, None] = None
    finality: Optional[str] = None

    @classmethod
    def latest(cls) -> "BlockReference":
        return cls(finality="final")

    @classmethod
    def by_height(cls, height: int) -> "BlockReference":
        return cls(block_id=height)

    @classmethod
    def by_hash(cls, block_hash: str) -> "BlockReference":
        return cls(block_id=block_hash)

    @classmethod
    def from_tag(cls, tag: Union[int, str]) -> "BlockReference":
        """Build from an Ethereum block parameter (hash, height or "latest")."""
        block_id = parse_block_tag(tag)
        if block_id is None:
            return cls.latest()
        return cls(block_id=block_id)

    @property
    def is_latest(self) -> bool:
        return self.block_id is None

    def to_params(self) -> Dict[str, Any]:
        if self.block_id is not None:
            return {"block_id": self.block_id}
        return {"finality": self.finality or "final"}


# ══════════════════════════════════════════════════════════════════════
#  ACTIONS
# ══════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class CreateAccount:
    def to_rpc(self) -> Any:
        return "CreateAccount"


@dataclass(frozen=True)
class DeployContract:
    code: bytes

    def to_rpc(self) -> Any:
        return {"DeployContract": {"code": bytes_to_base64(self.code)}}


@dataclass(frozen=True)
class FunctionCall:
    method_name: str
    args: bytes
    gas: int
    deposit: int = 0

    def to_rpc(self) -> Any:
        return {
            "FunctionCall": {
                "method_name": self.method_name,
                "args": bytes_to_base64(self.args),
                "gas": self.gas,
                "deposit": str(self.deposit),
            }
        }


@dataclass(frozen=True)
class Transfer:
    deposit: int

    def to_rpc(self) -> Any:
        return {"Transfer": {"deposit": str(self.deposit)}}


@dataclass(frozen=True)
class AddKey:
    public_key: str
    permission: str = "FullAccess"

    def to_rpc(self) -> Any:
        return {
            "AddKey": {
                "public_key": self.public_key,
                "access_key": {"nonce": 0, "permission": self.permission},
            }
        }


Action = Union[CreateAccount, DeployContract, FunctionCall, Transfer, AddKey]


# ══════════════════════════════════════════════════════════════════════
#  BLOCKS AND CHUNKS
# ══════════════════════════════════════════════════════════════════════

@dataclass
class NativeBlock:
    """``block`` RPC result. Hashes stay base58."""
    hash: str
    height: int
    prev_hash: str
    timestamp: int  # nanoseconds
    author: str = ""
    gas_price: int = 0
    chunk_hashes: List[str] = field(default_factory=list)

    @classmethod
    def from_rpc(cls, data: Dict[str, Any]) -> "NativeBlock":
        header = data["header"]
        return cls(
            hash=header["hash"],
            height=int(header["height"]),
            prev_hash=header.get("prev_hash", ""),
            timestamp=int(header.get("timestamp", 0)),
            author=data.get("author", ""),
            gas_price=int(header.get("gas_price", 0) or 0),
            # Chunk list is in shard order
            chunk_hashes=[c["chunk_hash"] for c in data.get("chunks", [])],
        )


@dataclass
class ChunkTransaction:
    """Transaction summary as embedded in a chunk."""
    hash: str
    signer_id: str
    receiver_id: str
    nonce: int = 0
    actions: List[Any] = field(default_factory=list)

    @classmethod
    def from_rpc(cls, data: Dict[str, Any]) -> "ChunkTransaction":
        return cls(
            hash=data["hash"],
            signer_id=data["signer_id"],
            receiver_id=data.get("receiver_id", ""),
            nonce=int(data.get("nonce", 0)),
            actions=list(data.get("actions", [])),
        )


@dataclass
class NativeChunk:
    """``chunk`` RPC result."""
    chunk_hash: str
    shard_id: int
    transactions: List[ChunkTransaction] = field(default_factory=list)

    @classmethod
    def from_rpc(cls, data: Dict[str, Any]) -> "NativeChunk":
        header = data.get("header", {})
        return cls(
            chunk_hash=header.get("chunk_hash", ""),
            shard_id=int(header.get("shard_id", 0)),
            transactions=[ChunkTransaction.from_rpc(t) for t in data.get("transactions", [])],
        )


# ══════════════════════════════════════════════════════════════════════
#  TRANSACTIONS AND OUTCOMES
# ══════════════════════════════════════════════════════════════════════

@dataclass
class NativeTransaction:
    """
    ``tx`` / ``broadcast_tx_commit`` result: the transaction plus its final
    execution status.
    """
    hash: str
    signer_id: str
    receiver_id: str
    nonce: int
    actions: List[Any]
    status: Dict[str, Any]
    block_hash: str = ""
    gas_burnt: int = 0
    logs: List[str] = field(default_factory=list)

    @classmethod
    def from_rpc(cls, data: Dict[str, Any]) -> "NativeTransaction":
        tx = data["transaction"]
        outcome = data.get("transaction_outcome", {})
        receipts = data.get("receipts_outcome", [])
        gas_burnt = int(outcome.get("outcome", {}).get("gas_burnt", 0))
        logs = list(outcome.get("outcome", {}).get("logs", []))
        for receipt in receipts:
            gas_burnt += int(receipt.get("outcome", {}).get("gas_burnt", 0))
            logs.extend(receipt.get("outcome", {}).get("logs", []))
        return cls(
            hash=tx["hash"],
            signer_id=tx["signer_id"],
            receiver_id=tx.get("receiver_id", ""),
            nonce=int(tx.get("nonce", 0)),
            actions=list(tx.get("actions", [])),
            status=data.get("status", {}) or {},
            block_hash=outcome.get("block_hash", ""),
            gas_burnt=gas_burnt,
            logs=logs,
        )

    @property
    def succeeded(self) -> bool:
        return "SuccessValue" in self.status or "SuccessReceiptId" in self.status

    @property
    def failure(self) -> Optional[Dict[str, Any]]:
        return self.status.get("Failure")

    @property
    def success_value(self) -> bytes:
        """Raw return value of the last call, empty if it returned nothing."""
        value = self.status.get("SuccessValue")
        if not value:
            return b""
        return base64_to_bytes(value)

    @property
    def deposit(self) -> int:
        total = 0
        for action in self.actions:
            if not isinstance(action, dict):
                continue
            for kind in ("FunctionCall", "Transfer"):
                if kind in action:
                    total += int(action[kind].get("deposit", 0))
        return total

    @property
    def attached_gas(self) -> int:
        return sum(
            int(a["FunctionCall"].get("gas", 0))
            for a in self.actions
            if isinstance(a, dict) and "FunctionCall" in a
        )

    @property
    def call_method(self) -> Optional[str]:
        for action in self.actions:
            if isinstance(action, dict) and "FunctionCall" in action:
                return action["FunctionCall"].get("method_name")
        return None

    @property
    def call_args(self) -> bytes:
        """Arguments of the first function call, empty if there is none."""
        for action in self.actions:
            if isinstance(action, dict) and "FunctionCall" in action:
                return base64_to_bytes(action["FunctionCall"].get("args", ""))
        return b""


@dataclass
class NodeStatus:
    """``status`` RPC result, reduced to what the provider reports."""
    chain_id: str
    version: str
    latest_block_hash: str
    latest_block_height: int
    latest_block_time: str = ""
    syncing: bool = False
    earliest_block_height: int = 0

    @classmethod
    def from_rpc(cls, data: Dict[str, Any]) -> "NodeStatus":
        sync = data.get("sync_info", {})
        version = data.get("version", {})
        return cls(
            chain_id=data.get("chain_id", ""),
            version=version.get("version", "") if isinstance(version, dict) else str(version),
            latest_block_hash=sync.get("latest_block_hash", ""),
            latest_block_height=int(sync.get("latest_block_height", 0)),
            latest_block_time=sync.get("latest_block_time", ""),
            syncing=bool(sync.get("syncing", False)),
            earliest_block_height=int(sync.get("earliest_block_height", 0) or 0),
        )
