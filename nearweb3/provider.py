"""
NEAR Web3 provider.

Answers Ethereum JSON-RPC methods from a NEAR node running the EVM contract.
``request(method, params)`` looks the method up in the registry, checks the
param count and dispatches to the node, contract or block handlers; errors
propagate unchanged as ``NearWeb3Exception`` subclasses.
"""

from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Union

from eth_utils import keccak

from .blocks import BlockSynthesizer, block_hash_reference
from .codec import (
    account_id_to_address,
    bytes_to_hex,
    dec_to_hex,
    hex_to_bytes,
    is_hex,
)
from .config import ProviderConfig
from .constants import (
    ETH_PROTOCOL_VERSION,
    GAS_PRICE,
    NEAR_EVM_CONTRACT,
    NEAR_NET_VERSION,
    NEAR_NET_VERSION_TEST,
    NEAR_NETWORK_ID,
    PROVIDER_VERSION,
    TEST_NETWORK_IDS,
)
from .contract import ContractCallAdapter
from .exceptions import InvalidArgumentError
from .known_accounts import KnownAccounts
from .logger import get_logger
from .near.base import HostChainClient, Signer
from .near.client import NearRpcClient
from .near.types import BlockReference
from .registry import METHODS, Handler, lookup
from .rpc.server import handle_request

logger = get_logger(__name__)

RPCHandler = Callable[..., Awaitable[Any]]


class NearProvider:
    """
    Ethereum JSON-RPC provider backed by NEAR.

    Args:
        client: Host-chain client (usually a ``NearRpcClient``)
        signer: Credential for state-changing calls; reads work without one
        evm_contract: Account id of the EVM contract
        network_id: NEAR network id, picks ``net_version``
        known_accounts: Account ids resolvable from their address
    """

    def __init__(
        self,
        client: HostChainClient,
        signer: Optional[Signer] = None,
        evm_contract: str = str(NEAR_EVM_CONTRACT),
        network_id: str = str(NEAR_NETWORK_ID),
        known_accounts: Union[KnownAccounts, List[str], None] = None,
    ):
        self.client = client
        self.signer = signer
        self.evm_contract = evm_contract
        self.network_id = network_id
        self.contract = ContractCallAdapter(client, evm_contract, signer)
        self.blocks = BlockSynthesizer(client, evm_contract)

        if not isinstance(known_accounts, KnownAccounts):
            account_ids = list(known_accounts or [])
            if signer is not None and signer.account_id not in account_ids:
                account_ids.append(signer.account_id)
            known_accounts = KnownAccounts(account_ids)
        self.known_accounts = known_accounts

        self._routes = self._build_routes()

    @classmethod
    def from_config(
        cls,
        config: ProviderConfig,
        signer: Optional[Signer] = None,
        client: Optional[HostChainClient] = None,
    ) -> "NearProvider":
        config.validate()
        if client is None:
            client = NearRpcClient(config.near.node_url, timeout=config.near.timeout)
        if signer is not None and signer.account_id != config.account_id:
            logger.warning(
                f"Signer account {signer.account_id} differs from configured {config.account_id}"
            )
        return cls(
            client,
            signer=signer,
            evm_contract=config.evm_contract,
            network_id=config.near.network_id,
            known_accounts=config.known_accounts,
        )

    async def aclose(self) -> None:
        if isinstance(self.client, NearRpcClient):
            await self.client.aclose()

    async def __aenter__(self) -> "NearProvider":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    # ══════════════════════════════════════════════════════════════════════
    #  DISPATCH
    # ══════════════════════════════════════════════════════════════════════

    def _build_routes(self) -> Mapping[Handler, Dict[str, RPCHandler]]:
        routes = {
            Handler.NODE: {
                "web3_clientVersion": self.web3_clientVersion,
                "web3_sha3": self.web3_sha3,
                "net_version": self.net_version,
                "net_listening": self.net_listening,
                "eth_protocolVersion": self.eth_protocolVersion,
                "eth_syncing": self.eth_syncing,
                "eth_gasPrice": self.eth_gasPrice,
                "eth_accounts": self.eth_accounts,
                "eth_blockNumber": self.eth_blockNumber,
                "eth_chainId": self.eth_chainId,
            },
            Handler.CONTRACT: {
                "eth_getBalance": self.eth_getBalance,
                "eth_getStorageAt": self.eth_getStorageAt,
                "eth_getCode": self.eth_getCode,
                "eth_getTransactionCount": self.eth_getTransactionCount,
                "eth_call": self.eth_call,
                "eth_sendTransaction": self.eth_sendTransaction,
                "near_evmDeposit": self.near_evmDeposit,
                "near_evmWithdraw": self.near_evmWithdraw,
            },
            Handler.BLOCK: {
                "eth_getBlockByHash": self.eth_getBlockByHash,
                "eth_getBlockByNumber": self.eth_getBlockByNumber,
                "eth_getBlockTransactionCountByHash": self.eth_getBlockTransactionCountByHash,
                "eth_getBlockTransactionCountByNumber": self.eth_getBlockTransactionCountByNumber,
                "eth_getTransactionByHash": self.eth_getTransactionByHash,
                "eth_getTransactionReceipt": self.eth_getTransactionReceipt,
                "eth_getTransactionByBlockHashAndIndex": self.eth_getTransactionByBlockHashAndIndex,
                "eth_getTransactionByBlockNumberAndIndex": self.eth_getTransactionByBlockNumberAndIndex,
            },
        }
        for method_spec in METHODS.values():
            if method_spec.name not in routes[method_spec.handler]:
                raise RuntimeError(f"No {method_spec.handler.value} handler for {method_spec.name}")
        return routes

    async def request(self, method: str, params: Optional[List[Any]] = None) -> Any:
        """
        Execute one Ethereum JSON-RPC method.

        Raises:
            MethodNotSupportedError: method is not in the registry
            InvalidArgumentError: wrong params, raised before any network call
            NotFoundError, ContractExecutionError, TransportError,
            SignerMismatchError: from the handlers, unchanged
        """
        method_spec = lookup(method)
        args = method_spec.validate_params(params)
        logger.debug(f"{method} {args}")
        return await self._routes[method_spec.handler][method_spec.name](*args)

    async def handle_request(self, data: Union[str, bytes, dict, list]) -> Optional[str]:
        """JSON-RPC 2.0 envelope (single or batch) around ``request``."""
        return await handle_request(self, data)

    async def deploy_evm_contract(self, code: bytes, public_key: str, initial_balance: int = 0) -> bool:
        """Deploy the EVM contract; an existing contract account counts as success."""
        return await self.contract.deploy_evm_contract(code, public_key, initial_balance)

    # ══════════════════════════════════════════════════════════════════════
    #  NODE
    # ══════════════════════════════════════════════════════════════════════

    async def web3_clientVersion(self) -> str:
        return f"NearWeb3/{PROVIDER_VERSION}/python"

    async def web3_sha3(self, data: Any) -> str:
        if not isinstance(data, str) or not is_hex(data):
            raise InvalidArgumentError("web3_sha3 expects hex data")
        return bytes_to_hex(keccak(hex_to_bytes(data)))

    async def net_version(self) -> str:
        if self.network_id in TEST_NETWORK_IDS:
            return NEAR_NET_VERSION_TEST
        return NEAR_NET_VERSION

    async def net_listening(self) -> bool:
        return True

    async def eth_protocolVersion(self) -> str:
        return dec_to_hex(ETH_PROTOCOL_VERSION)

    async def eth_syncing(self) -> Union[bool, Dict[str, str]]:
        status = await self.client.status()
        if not status.syncing:
            return False
        return {
            "startingBlock": dec_to_hex(status.earliest_block_height),
            "currentBlock": dec_to_hex(status.latest_block_height),
            "highestBlock": dec_to_hex(status.latest_block_height),
            "knownStates": "0x0",
            "pulledStates": "0x0",
        }

    async def eth_gasPrice(self) -> str:
        return dec_to_hex(GAS_PRICE)

    async def eth_accounts(self) -> List[str]:
        if self.signer is None:
            return []
        return [account_id_to_address(self.signer.account_id)]

    async def eth_blockNumber(self) -> str:
        block = await self.blocks.fetch_block(BlockReference.latest())
        return dec_to_hex(block.height)

    async def eth_chainId(self) -> str:
        return dec_to_hex(int(await self.net_version()))

    # ══════════════════════════════════════════════════════════════════════
    #  ACCOUNT STATE AND CALLS
    # ══════════════════════════════════════════════════════════════════════

    async def eth_getBalance(self, address: str, block: Any = "latest") -> str:
        reference = BlockReference.from_tag(block)
        return dec_to_hex(await self.contract.get_balance(address, reference))

    async def eth_getStorageAt(self, address: str, position: Any, block: Any = "latest") -> str:
        reference = BlockReference.from_tag(block)
        return await self.contract.get_storage_at(address, position, reference)

    async def eth_getCode(self, address: str, block: Any = "latest") -> str:
        reference = BlockReference.from_tag(block)
        return await self.contract.get_code(address, reference)

    async def eth_getTransactionCount(self, address: str, block: Any = "latest") -> str:
        reference = BlockReference.from_tag(block)
        return dec_to_hex(await self.contract.get_nonce(address, reference))

    async def eth_call(self, tx: Dict[str, Any], block: Any = "latest") -> str:
        reference = BlockReference.from_tag(block)
        return await self.contract.view_call(tx, reference)

    async def eth_sendTransaction(self, tx: Dict[str, Any]) -> str:
        return await self.contract.send_transaction(tx)

    async def near_evmDeposit(self, address: str, value: Any) -> str:
        return await self.contract.deposit(address, value)

    async def near_evmWithdraw(self, address: str, value: Any) -> str:
        return await self.contract.withdraw(address, value)

    # ══════════════════════════════════════════════════════════════════════
    #  BLOCKS AND TRANSACTIONS
    # ══════════════════════════════════════════════════════════════════════

    async def eth_getBlockByHash(self, block_hash: str, full: bool = False) -> Dict[str, Any]:
        return await self.blocks.get_block_by_hash(block_hash, full)

    async def eth_getBlockByNumber(self, block: Any, full: bool = False) -> Dict[str, Any]:
        return await self.blocks.get_block_by_number(block, full)

    async def eth_getBlockTransactionCountByHash(self, block_hash: str) -> str:
        return await self.blocks.get_block_transaction_count(block_hash_reference(block_hash))

    async def eth_getBlockTransactionCountByNumber(self, block: Any) -> str:
        return await self.blocks.get_block_transaction_count(self.blocks.resolve(block))

    async def eth_getTransactionByHash(self, tx_ref: str) -> Dict[str, Any]:
        return await self.blocks.get_transaction(tx_ref)

    async def eth_getTransactionReceipt(self, tx_ref: str) -> Dict[str, Any]:
        return await self.blocks.get_transaction_receipt(tx_ref)

    async def eth_getTransactionByBlockHashAndIndex(self, block_hash: str, index: Any) -> Optional[Dict[str, Any]]:
        return await self.blocks.get_transaction_by_block_and_index(
            block_hash_reference(block_hash), index
        )

    async def eth_getTransactionByBlockNumberAndIndex(self, block: Any, index: Any) -> Optional[Dict[str, Any]]:
        return await self.blocks.get_transaction_by_block_and_index(self.blocks.resolve(block), index)
