"""
Reverse lookup for known NEAR identities.

Address derivation is one-way, so the only way back from an address to an
account id is a table of accounts registered up front (the signer, test
fixtures). Unregistered addresses simply do not resolve.
"""

from typing import Dict, Iterable, Iterator, Optional

from .codec import account_id_to_address, is_valid_account_id, normalize_address
from .exceptions import InvalidArgumentError


class KnownAccounts:
    """Fixed address → account id table built from a list of account ids."""

    def __init__(self, account_ids: Iterable[str] = ()):
        table: Dict[str, str] = {}
        for account_id in account_ids:
            if not is_valid_account_id(account_id):
                raise InvalidArgumentError(f"Invalid account id: {account_id!r}")
            table[account_id_to_address(account_id)] = account_id
        self._table = table

    def account_id(self, address: str) -> Optional[str]:
        return self._table.get(normalize_address(address))

    def __contains__(self, address: str) -> bool:
        return self.account_id(address) is not None

    def __iter__(self) -> Iterator[str]:
        return iter(self._table.values())

    def __len__(self) -> int:
        return len(self._table)
