"""
Method registry tests: the table is closed, immutable and internally
consistent about which methods may change state.
"""

import os
import sys

import pytest

# ── Path setup ────────────────────────────────────────────────────────
ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from nearweb3.exceptions import InvalidArgumentError, MethodNotSupportedError
from nearweb3.registry import (
    METHODS,
    EntryPoint,
    Handler,
    MethodSpec,
    Mode,
    lookup,
    supported_methods,
)


class TestLookup:

    def test_known_method(self):
        method_spec = lookup("eth_getBalance")
        assert method_spec.handler is Handler.CONTRACT
        assert method_spec.mode is Mode.READ_ONLY
        assert method_spec.entry_points == (EntryPoint.GET_BALANCE,)

    @pytest.mark.parametrize("method", ["eth_mining", "eth_getBalances", "", "ETH_GETBALANCE"])
    def test_unknown_method(self, method):
        with pytest.raises(MethodNotSupportedError, match="Method not supported"):
            lookup(method)

    def test_error_carries_method(self):
        with pytest.raises(MethodNotSupportedError) as info:
            lookup("eth_coinbase")
        assert info.value.method == "eth_coinbase"

    def test_non_string_method(self):
        with pytest.raises(InvalidArgumentError):
            lookup(42)

    def test_supported_methods_sorted(self):
        methods = supported_methods()
        assert methods == sorted(methods)
        assert "eth_getBlockByNumber" in methods


class TestTable:

    def test_immutable(self):
        with pytest.raises(TypeError):
            METHODS["eth_mining"] = METHODS["eth_gasPrice"]

    def test_read_methods_only_reach_read_entry_points(self):
        for method_spec in METHODS.values():
            for entry_point in method_spec.entry_points:
                assert entry_point.mode is method_spec.mode

    def test_state_changing_methods(self):
        writes = {name for name, method_spec in METHODS.items() if method_spec.mode is Mode.STATE_CHANGING}
        assert writes == {"eth_sendTransaction", "near_evmDeposit", "near_evmWithdraw"}

    def test_entry_point_names_match_contract(self):
        assert {e.value for e in EntryPoint} == {
            "deploy_code", "call_function", "view_call_function", "deposit", "withdraw",
            "transfer", "get_balance", "get_storage_at", "get_code", "get_nonce",
        }

    def test_inconsistent_spec_rejected(self):
        with pytest.raises(ValueError):
            MethodSpec("eth_bad", Handler.CONTRACT, Mode.READ_ONLY, (EntryPoint.DEPOSIT,), 1, 1)

    def test_contract_spec_needs_entry_point(self):
        with pytest.raises(ValueError):
            MethodSpec("eth_bad", Handler.CONTRACT, Mode.READ_ONLY)


class TestParams:

    def test_none_is_empty(self):
        assert lookup("eth_gasPrice").validate_params(None) == []

    def test_optional_block_param(self):
        method_spec = lookup("eth_getBalance")
        assert method_spec.validate_params(["0x" + "00" * 20]) == ["0x" + "00" * 20]
        assert len(method_spec.validate_params(("0x" + "00" * 20, "latest"))) == 2

    def test_too_many(self):
        with pytest.raises(InvalidArgumentError, match="expected 0 params"):
            lookup("eth_gasPrice").validate_params([1])

    def test_too_few(self):
        with pytest.raises(InvalidArgumentError, match="expected 2 to 3 params"):
            lookup("eth_getStorageAt").validate_params(["0x00"])

    def test_params_must_be_a_list(self):
        with pytest.raises(InvalidArgumentError):
            lookup("eth_getBalance").validate_params({"address": "0x00"})
