"""
Host-chain interfaces.

The provider only ever talks to NEAR through ``HostChainClient`` and signs
through ``Signer``. Both are supplied from outside; ``NearRpcClient`` is the
stock HTTP implementation of the former.
"""

from abc import ABC, abstractmethod
from typing import Sequence

from .types import (
    Action,
    BlockReference,
    NativeBlock,
    NativeChunk,
    NativeTransaction,
    NodeStatus,
)


class Signer(ABC):
    """
    Signing credential for state-changing calls.

    Implementations own the key material, access-key nonces and the binary
    transaction encoding; the provider only hands over the receiver and the
    actions.
    """

    account_id: str

    @abstractmethod
    async def sign_transaction(self, receiver_id: str, actions: Sequence[Action]) -> bytes:
        """Return the serialized signed transaction."""


class HostChainClient(ABC):
    """Primitives the provider needs from a NEAR node."""

    @abstractmethod
    async def view_call(
        self,
        contract_id: str,
        method_name: str,
        args: bytes,
        block: BlockReference,
    ) -> bytes:
        """Run a read-only contract call and return its raw result bytes."""

    @abstractmethod
    async def send_transaction(
        self,
        signer: Signer,
        receiver_id: str,
        actions: Sequence[Action],
    ) -> NativeTransaction:
        """Sign, submit and wait for the final outcome of a transaction."""

    @abstractmethod
    async def block(self, reference: BlockReference) -> NativeBlock:
        """Look up a block."""

    @abstractmethod
    async def chunk(self, chunk_hash: str) -> NativeChunk:
        """Look up one chunk of a block."""

    @abstractmethod
    async def tx_status(self, tx_hash: str, account_id: str) -> NativeTransaction:
        """Look up a transaction by base58 hash and signer account."""

    @abstractmethod
    async def status(self) -> NodeStatus:
        """Node status and sync info."""
