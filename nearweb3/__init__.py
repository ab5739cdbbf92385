"""
NearWeb3 - Ethereum JSON-RPC provider for the NEAR EVM contract.
"""

from .constants import PROVIDER_VERSION
from .config import ProviderConfig, load_config
from .exceptions import (
    AccountAlreadyExistsError,
    ConfigurationError,
    ContractExecutionError,
    InvalidArgumentError,
    MethodNotSupportedError,
    NearWeb3Exception,
    NotFoundError,
    SignerMismatchError,
    TransportError,
)
from .known_accounts import KnownAccounts
from .near import HostChainClient, NearRpcClient, Signer
from .provider import NearProvider

__version__ = PROVIDER_VERSION

__all__ = [
    "AccountAlreadyExistsError",
    "ConfigurationError",
    "ContractExecutionError",
    "HostChainClient",
    "InvalidArgumentError",
    "KnownAccounts",
    "MethodNotSupportedError",
    "NearProvider",
    "NearRpcClient",
    "NearWeb3Exception",
    "NotFoundError",
    "ProviderConfig",
    "Signer",
    "SignerMismatchError",
    "TransportError",
    "load_config",
]
