"""
Provider-wide constants.

Settings that operators may override come from a ``.env`` file in the
working directory and fall back to the defaults below. Everything else is
fixed by the NEAR EVM contract or by the Ethereum JSON-RPC conventions the
provider answers with.
"""
import re

from dotenv import dotenv_values

_env = dotenv_values(".env")


class _Setting:
    """Mixin remembering the built-in default next to the effective value."""

    _default = None

    def default(self):
        return self._default


class ConfigString(_Setting, str):
    """A ``.env`` string setting."""

    def __new__(cls, value, default):
        instance = super().__new__(cls, value)
        instance._default = default
        return instance


class ConfigBool(_Setting, int):
    """A ``.env`` flag. Compares, hashes and prints like ``bool``."""

    def __new__(cls, value, default):
        instance = super().__new__(cls, bool(value))
        instance._default = default
        return instance

    def __eq__(self, other):
        return bool(self) == other

    def __hash__(self):
        return hash(bool(self))

    def __str__(self):
        return "True" if self else "False"

    __repr__ = __str__


def parse_bool(raw):
    """``"true"``/``"false"`` in any casing as a bool; anything else unchanged."""
    if isinstance(raw, str):
        lowered = raw.strip().lower()
        if lowered == "true":
            return True
        if lowered == "false":
            return False
    return raw


def _setting(name, default):
    raw = _env.get(name)
    value = default if raw is None else raw
    flag = parse_bool(value)
    if isinstance(flag, bool):
        return ConfigBool(flag, parse_bool(default))
    return ConfigString(value, default)


# ==================================================================================
# HOST CHAIN SETTINGS
# ==================================================================================
NEAR_NODE_URL = _setting("NEAR_NODE_URL", "http://localhost:3030")
NEAR_NETWORK_ID = _setting("NEAR_NETWORK_ID", "local")
NEAR_ACCOUNT_ID = _setting("NEAR_ACCOUNT_ID", "test.near")
NEAR_EVM_CONTRACT = _setting("NEAR_EVM_CONTRACT", "evm")
NEAR_RPC_TIMEOUT = _setting("NEAR_RPC_TIMEOUT", "30")


# ==================================================================================
# LOGGING SETTINGS
# ==================================================================================
LOG_LEVEL = _setting("LOG_LEVEL", "INFO")
LOG_FORMAT = _setting("LOG_FORMAT", "%(asctime)s - %(levelname)s - %(name)s - %(message)s")
LOG_DATE_FORMAT = _setting("LOG_DATE_FORMAT", "%Y-%m-%dT%H:%M:%S")
LOG_CONSOLE_HIGHLIGHTING = _setting("LOG_CONSOLE_HIGHLIGHTING", "True")
LOG_FILE_OUTPUT = _setting("LOG_FILE_OUTPUT", "False")
LOG_MAX_FILE_SIZE = 10 * 1024 * 1024
LOG_BACKUP_COUNT = 5


# ==================================================================================
# PROVIDER IDENTITY
# ==================================================================================
PROVIDER_VERSION = '0.2.0'
NEAR_NET_VERSION = '99'
NEAR_NET_VERSION_TEST = '98'
TEST_NETWORK_IDS = frozenset({'local', 'test', 'ci', 'ci-betanet'})
ETH_PROTOCOL_VERSION = 63


# ==================================================================================
# EVM CONTRACT ENTRY POINTS
# ==================================================================================
# These names are part of the wire contract with the EVM contract and must
# match it exactly.
DEPLOY_CODE_METHOD_NAME = 'deploy_code'
CALL_FUNCTION_METHOD_NAME = 'call_function'
VIEW_CALL_FUNCTION_METHOD_NAME = 'view_call_function'
DEPOSIT_METHOD_NAME = 'deposit'
WITHDRAW_METHOD_NAME = 'withdraw'
TRANSFER_METHOD_NAME = 'transfer'
GET_BALANCE_METHOD_NAME = 'get_balance'
GET_STORAGE_AT_METHOD_NAME = 'get_storage_at'
GET_CODE_METHOD_NAME = 'get_code'
GET_NONCE_METHOD_NAME = 'get_nonce'


# ==================================================================================
# EXECUTION PARAMETERS
# ==================================================================================
# Every state-changing call attaches exactly this much gas
GAS_AMOUNT = 300_000_000_000_000
GAS_PRICE = 0
# Reported to Ethereum clients for blocks; NEAR gas is not comparable
BLOCK_GAS_LIMIT = 30_000_000

ZERO_ADDRESS = '0x' + '00' * 20
ZERO_HASH = '0x' + '00' * 32
ZERO_WORD = '0x' + '00' * 32
EMPTY_BLOOM = '0x' + '00' * 256

# Host chain timestamps are nanoseconds
NANOSECONDS_PER_SECOND = 1_000_000_000


# ==================================================================================
# VALIDATION PATTERNS
# ==================================================================================
# Regex pattern for validating hexadecimal strings (empty string is hex)
VALID_HEX_PATTERN = re.compile(r'^[0-9a-fA-F]*$')

# NEAR account id alphabet; edge and separator rules are checked in codec
VALID_ACCOUNT_ID_PATTERN = re.compile(r'^[a-z0-9_.\-]+$')
MIN_ACCOUNT_ID_LENGTH = 2
MAX_ACCOUNT_ID_LENGTH = 64

ADDRESS_LENGTH = 20
HASH_LENGTH = 32
WORD_LENGTH = 32

