"""
NEAR host-chain layer: native types, client and signer interfaces, and the
httpx-based JSON-RPC client.
"""

from .base import HostChainClient, Signer
from .client import NearRpcClient
from .types import (
    Action,
    AddKey,
    BlockReference,
    ChunkTransaction,
    CreateAccount,
    DeployContract,
    FunctionCall,
    NativeBlock,
    NativeChunk,
    NativeTransaction,
    NodeStatus,
    Transfer,
)

__all__ = [
    "HostChainClient",
    "Signer",
    "NearRpcClient",
    "Action",
    "AddKey",
    "BlockReference",
    "ChunkTransaction",
    "CreateAccount",
    "DeployContract",
    "FunctionCall",
    "NativeBlock",
    "NativeChunk",
    "NativeTransaction",
    "NodeStatus",
    "Transfer",
]
