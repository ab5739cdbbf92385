"""
Provider façade tests: dispatch through the registry, node info methods and
the read/write split as seen from ``request``.
"""

import os
import sys
from unittest.mock import AsyncMock

import pytest
from eth_utils import keccak

# ── Path setup ────────────────────────────────────────────────────────
ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from conftest import hash_for

from nearweb3.codec import account_id_to_address, base58_to_hex
from nearweb3.config import NearNodeConfig, ProviderConfig
from nearweb3.constants import PROVIDER_VERSION
from nearweb3.exceptions import (
    ConfigurationError,
    InvalidArgumentError,
    MethodNotSupportedError,
    SignerMismatchError,
)
from nearweb3.known_accounts import KnownAccounts
from nearweb3.near.client import NearRpcClient
from nearweb3.provider import NearProvider
from nearweb3.registry import METHODS, Mode

ALICE = "0x" + "a1" * 20


class TestNodeMethods:

    @pytest.mark.asyncio
    async def test_client_version(self, provider):
        assert await provider.request("web3_clientVersion") == f"NearWeb3/{PROVIDER_VERSION}/python"

    @pytest.mark.asyncio
    async def test_sha3(self, provider):
        assert await provider.request("web3_sha3", ["0x68656c6c6f"]) == "0x" + keccak(b"hello").hex()

    @pytest.mark.asyncio
    async def test_sha3_rejects_non_hex(self, provider):
        with pytest.raises(InvalidArgumentError):
            await provider.request("web3_sha3", ["hello"])

    @pytest.mark.asyncio
    async def test_net_version(self, provider, read_only_provider):
        assert await provider.request("net_version") == "98"
        assert await read_only_provider.request("net_version") == "99"
        assert await provider.request("eth_chainId") == hex(98)

    @pytest.mark.asyncio
    async def test_constants(self, provider):
        assert await provider.request("eth_gasPrice") == "0x0"
        assert await provider.request("net_listening") is True
        assert await provider.request("eth_protocolVersion") == "0x3f"

    @pytest.mark.asyncio
    async def test_accounts(self, provider, read_only_provider):
        assert await provider.request("eth_accounts") == ["0xcbda96b3f2b8eb962f97ae50c3852ca976740e2b"]
        assert await read_only_provider.request("eth_accounts") == []

    @pytest.mark.asyncio
    async def test_block_number(self, provider, host):
        host.add_block()
        host.add_block()
        assert await provider.request("eth_blockNumber") == "0x2"

    @pytest.mark.asyncio
    async def test_syncing(self, provider, host):
        assert await provider.request("eth_syncing") is False

        host.node_status.syncing = True
        host.node_status.earliest_block_height = 10
        host.node_status.latest_block_height = 42
        assert await provider.request("eth_syncing") == {
            "startingBlock": "0xa",
            "currentBlock": "0x2a",
            "highestBlock": "0x2a",
            "knownStates": "0x0",
            "pulledStates": "0x0",
        }


class TestDispatch:

    @pytest.mark.asyncio
    async def test_unsupported_method(self, provider):
        with pytest.raises(MethodNotSupportedError):
            await provider.request("eth_mining", [])

    @pytest.mark.asyncio
    async def test_param_count_checked_before_network(self, provider, host):
        with pytest.raises(InvalidArgumentError):
            await provider.request("eth_getBalance", [])
        with pytest.raises(InvalidArgumentError):
            await provider.request("eth_getBalance", [ALICE, "latest", "extra"])
        assert host.view_calls == []

    @pytest.mark.asyncio
    async def test_bad_block_tag_checked_before_network(self, provider, host):
        with pytest.raises(InvalidArgumentError):
            await provider.request("eth_getBalance", [ALICE, "pending"])
        assert host.view_calls == []

    def test_every_method_has_a_route(self, provider):
        routed = {name for routes in provider._routes.values() for name in routes}
        assert routed == set(METHODS)

    @pytest.mark.asyncio
    async def test_balance_is_hex(self, provider, host):
        host.view_results["get_balance"] = b'"1000"'
        assert await provider.request("eth_getBalance", [ALICE, "latest"]) == "0x3e8"

    @pytest.mark.asyncio
    async def test_defaults_for_uninitialized_account(self, provider):
        assert await provider.request("eth_getBalance", [ALICE]) == "0x0"
        assert await provider.request("eth_getTransactionCount", [ALICE]) == "0x0"
        assert await provider.request("eth_getCode", [ALICE]) == "0x"
        assert await provider.request("eth_getStorageAt", [ALICE, "0x0"]) == "0x" + "0" * 64

    @pytest.mark.asyncio
    async def test_read_methods_never_submit(self, provider, host):
        host.add_block([[(hash_for(31), "alice.near")]])
        block_hash = base58_to_hex(host.blocks[-1].hash)
        tx_ref = f"{base58_to_hex(hash_for(31))}:alice.near"
        calls = {
            "eth_getBalance": [ALICE],
            "eth_getStorageAt": [ALICE, 1],
            "eth_getCode": [ALICE, "0x1"],
            "eth_getTransactionCount": [ALICE],
            "eth_call": [{"to": ALICE, "data": "0x00"}],
            "eth_getBlockByHash": [block_hash, True],
            "eth_getBlockByNumber": ["latest"],
            "eth_getBlockTransactionCountByHash": [block_hash],
            "eth_getBlockTransactionCountByNumber": ["0x1"],
            "eth_getTransactionByHash": [tx_ref],
            "eth_getTransactionReceipt": [tx_ref],
            "eth_getTransactionByBlockHashAndIndex": [block_hash, "0x0"],
            "eth_getTransactionByBlockNumberAndIndex": ["latest", 0],
        }
        for method, params in calls.items():
            assert METHODS[method].mode is Mode.READ_ONLY
            await provider.request(method, params)
        assert host.submissions == []

    @pytest.mark.asyncio
    async def test_send_transaction(self, provider, host):
        ref = await provider.request("eth_sendTransaction", [{"to": ALICE, "value": "0x1"}])
        assert ref.endswith(":test.near")
        assert len(host.submissions) == 1

    @pytest.mark.asyncio
    async def test_send_without_signer(self, read_only_provider, host):
        with pytest.raises(SignerMismatchError):
            await read_only_provider.request("near_evmDeposit", [ALICE, "0x10"])
        assert host.submissions == []

    @pytest.mark.asyncio
    async def test_deploy_evm_contract(self, provider, host):
        assert await provider.deploy_evm_contract(b"\x00asm", "ed25519:abc") is True
        assert host.submissions[0][1] == "evm"


class TestKnownAccounts:

    def test_signer_is_known(self, provider):
        assert provider.known_accounts.account_id(account_id_to_address("test.near")) == "test.near"

    def test_unknown_address_does_not_resolve(self, provider):
        assert provider.known_accounts.account_id(ALICE) is None
        assert ALICE not in provider.known_accounts

    def test_table(self):
        known = KnownAccounts(["alice.near", "bob.near"])
        assert len(known) == 2
        assert sorted(known) == ["alice.near", "bob.near"]
        assert account_id_to_address("bob.near").upper().replace("0X", "0x") in known

    def test_invalid_ids_rejected(self):
        with pytest.raises(InvalidArgumentError):
            KnownAccounts(["Alice.near"])


class TestFromConfig:

    def test_builds_rpc_client(self, signer):
        config = ProviderConfig(near=NearNodeConfig(node_url="http://node:3030", network_id="testnet"))
        provider = NearProvider.from_config(config, signer=signer)
        assert isinstance(provider.client, NearRpcClient)
        assert provider.client.url == "http://node:3030"
        assert provider.network_id == "testnet"

    def test_invalid_config(self):
        with pytest.raises(ConfigurationError):
            NearProvider.from_config(ProviderConfig(evm_contract="EVM"))

    @pytest.mark.asyncio
    async def test_closes_client(self, signer):
        config = ProviderConfig()
        async with NearProvider.from_config(config, signer=signer) as provider:
            provider.client.aclose = AsyncMock()
        provider.client.aclose.assert_awaited_once()
