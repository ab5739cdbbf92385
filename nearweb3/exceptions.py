"""
NEAR Web3 Provider Exceptions

Error categories raised by the provider. Validation errors are raised before
any host-chain call; execution and transport errors as soon as they are seen.
"""


class NearWeb3Exception(Exception):
    """Base exception for the provider."""
    pass


class InvalidArgumentError(NearWeb3Exception, ValueError):
    """Malformed address, hex string, account id, block tag or non-string input."""
    pass


class MethodNotSupportedError(NearWeb3Exception):
    """The RPC method name is not in the method registry."""

    def __init__(self, method: str):
        super().__init__(f"Method not supported: {method}")
        self.method = method


class NotFoundError(NearWeb3Exception):
    """A block, chunk, transaction or account reference did not resolve."""
    pass


class ContractExecutionError(NearWeb3Exception):
    """The host chain reported a revert or execution error."""

    def __init__(self, message: str, data=None):
        super().__init__(message)
        self.data = data


class AccountAlreadyExistsError(ContractExecutionError):
    """An account creation targeted an account id that is already taken."""

    def __init__(self, account_id: str, data=None):
        super().__init__(f"Account already exists: {account_id}", data)
        self.account_id = account_id


class TransportError(NearWeb3Exception):
    """Network or RPC-layer failure talking to the host chain."""
    pass


class SignerMismatchError(NearWeb3Exception):
    """No usable signing credential for a state-changing call."""
    pass


class ConfigurationError(NearWeb3Exception):
    """Configuration error."""
    pass
