"""
Provider TOML configuration.

Loads ``nearweb3.toml`` with environment variable overrides. Defaults come
from ``nearweb3.constants`` (and therefore from ``.env``).

Environment variable mapping:
    [near] node_url          → NEAR_NODE_URL
    [near] network_id        → NEAR_NETWORK_ID
    [near] timeout           → NEAR_RPC_TIMEOUT
    [provider] account_id    → NEAR_ACCOUNT_ID
    [provider] evm_contract  → NEAR_EVM_CONTRACT
    [logging] level          → LOG_LEVEL

Key material never goes in this file; signers are supplied in code.
"""

import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from . import constants
from .codec import is_valid_account_id
from .exceptions import ConfigurationError
from .logger import get_logger

logger = get_logger(__name__)

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass
class NearNodeConfig:
    """[near] section."""
    node_url: str = str(constants.NEAR_NODE_URL)
    network_id: str = str(constants.NEAR_NETWORK_ID)
    timeout: float = float(constants.NEAR_RPC_TIMEOUT)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "NearNodeConfig":
        return cls(
            node_url=data.get("node_url", str(constants.NEAR_NODE_URL)),
            network_id=data.get("network_id", str(constants.NEAR_NETWORK_ID)),
            timeout=float(data.get("timeout", float(constants.NEAR_RPC_TIMEOUT))),
        )

    def apply_env(self) -> None:
        if v := os.environ.get("NEAR_NODE_URL"):
            self.node_url = v
        if v := os.environ.get("NEAR_NETWORK_ID"):
            self.network_id = v
        if v := os.environ.get("NEAR_RPC_TIMEOUT"):
            self.timeout = float(v)


@dataclass
class ProviderConfig:
    """Top-level provider configuration."""
    near: NearNodeConfig = field(default_factory=NearNodeConfig)
    account_id: str = str(constants.NEAR_ACCOUNT_ID)
    evm_contract: str = str(constants.NEAR_EVM_CONTRACT)
    known_accounts: List[str] = field(default_factory=list)
    log_level: str = str(constants.LOG_LEVEL)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ProviderConfig":
        provider = data.get("provider", {})
        logging_section = data.get("logging", {})
        return cls(
            near=NearNodeConfig.from_dict(data.get("near", {})),
            account_id=provider.get("account_id", str(constants.NEAR_ACCOUNT_ID)),
            evm_contract=provider.get("evm_contract", str(constants.NEAR_EVM_CONTRACT)),
            known_accounts=list(provider.get("known_accounts", [])),
            log_level=logging_section.get("level", str(constants.LOG_LEVEL)),
        )

    @classmethod
    def from_file(cls, config_path: str) -> "ProviderConfig":
        """
        Load configuration from a TOML file.

        A missing file is not an error: defaults are used, with environment
        overrides applied on top either way.
        """
        path = Path(config_path)
        if not path.exists():
            logger.warning(f"Config file not found: {config_path}, using defaults")
            cfg = cls()
            cfg.apply_env()
            return cfg

        try:
            with open(path, "rb") as f:
                raw = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            raise ConfigurationError(f"Invalid TOML in {config_path}: {e}") from e

        cfg = cls.from_dict(raw)
        cfg.apply_env()
        return cfg

    def apply_env(self) -> None:
        """Apply environment variable overrides to all sections."""
        self.near.apply_env()
        if v := os.environ.get("NEAR_ACCOUNT_ID"):
            self.account_id = v
        if v := os.environ.get("NEAR_EVM_CONTRACT"):
            self.evm_contract = v
        if v := os.environ.get("LOG_LEVEL"):
            self.log_level = v

    def validate(self) -> bool:
        """
        Raises:
            ConfigurationError: on invalid config
        """
        if not self.near.node_url.startswith(("http://", "https://")):
            raise ConfigurationError(f"node_url must be an http(s) URL: {self.near.node_url}")
        if self.near.timeout <= 0:
            raise ConfigurationError("timeout must be positive")
        for name in (self.account_id, self.evm_contract, *self.known_accounts):
            if not is_valid_account_id(name):
                raise ConfigurationError(f"Invalid account id: {name!r}")
        if self.log_level.upper() not in _LOG_LEVELS:
            raise ConfigurationError(f"Invalid log level: {self.log_level}")
        return True

    @property
    def is_test_network(self) -> bool:
        return self.near.network_id in constants.TEST_NETWORK_IDS


def load_config(path: Optional[str] = None) -> ProviderConfig:
    """
    Load provider configuration.

    Resolution order:
        1. Explicit *path* argument
        2. NEARWEB3_CONFIG env var
        3. ./nearweb3.toml in current directory
        4. Defaults (with env overrides)
    """
    if path is None:
        path = os.environ.get("NEARWEB3_CONFIG", "nearweb3.toml")
    return ProviderConfig.from_file(path)
