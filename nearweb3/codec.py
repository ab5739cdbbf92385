"""
NEAR Web3 Codec

Pure conversions between the representations used on both sides of the
provider:

- hex (Ethereum side, 0x-prefixed) and base58 (NEAR hashes)
- base64 (NEAR call results and arguments) and decimal strings
- NEAR account ids and 20-byte Ethereum-style addresses

Nothing here performs I/O. Invalid inputs raise ``InvalidArgumentError``.
"""

import base64
import binascii
from dataclasses import dataclass
from typing import Union

import base58
from eth_utils import keccak

from .constants import (
    ADDRESS_LENGTH,
    HASH_LENGTH,
    MAX_ACCOUNT_ID_LENGTH,
    MIN_ACCOUNT_ID_LENGTH,
    NANOSECONDS_PER_SECOND,
    VALID_ACCOUNT_ID_PATTERN,
    VALID_HEX_PATTERN,
    WORD_LENGTH,
)
from .exceptions import InvalidArgumentError

HEX_PREFIX = "0x"
TX_REF_SEPARATOR = ":"


def _require_str(value, what: str = "value") -> str:
    if not isinstance(value, str):
        raise InvalidArgumentError(f"{what} must be a string, got {type(value).__name__}")
    return value


# ─── Hex prefix ───────────────────────────────────────────────────────────────

def strip_prefix(value: str) -> str:
    """Remove a leading 0x if present."""
    _require_str(value)
    if value.startswith("0x") or value.startswith("0X"):
        return value[2:]
    return value


def add_prefix(value: str) -> str:
    """Add a 0x prefix if missing. Idempotent."""
    _require_str(value)
    if value.startswith("0x") or value.startswith("0X"):
        return value
    return HEX_PREFIX + value


def is_hex(value: str) -> bool:
    """True if every character after an optional 0x prefix is a hex digit."""
    return VALID_HEX_PATTERN.match(strip_prefix(value)) is not None


def hex_to_bytes(value: str) -> bytes:
    """Decode a hex string, with or without prefix, into bytes."""
    stripped = strip_prefix(value)
    if not is_hex(stripped):
        raise InvalidArgumentError(f"Not a hex string: {value!r}")
    if len(stripped) % 2:
        stripped = "0" + stripped
    return bytes.fromhex(stripped)


def bytes_to_hex(data: bytes) -> str:
    return HEX_PREFIX + bytes(data).hex()


# ─── Account ids and addresses ────────────────────────────────────────────────

def is_valid_account_id(value: str) -> bool:
    """
    Check a NEAR account id.

    Valid ids are 2 to 64 characters from ``[a-z0-9-_.]``, contain no ``..``
    and neither start nor end with ``.`` or ``-``.
    """
    _require_str(value, "account id")
    if not MIN_ACCOUNT_ID_LENGTH <= len(value) <= MAX_ACCOUNT_ID_LENGTH:
        return False
    if not VALID_ACCOUNT_ID_PATTERN.match(value):
        return False
    if ".." in value:
        return False
    if value[0] in ".-" or value[-1] in ".-":
        return False
    return True


def account_id_to_address(account_id: str) -> str:
    """
    Derive the Ethereum-style address of a NEAR account.

    The address is the last 20 bytes of keccak256 over the UTF-8 bytes of the
    lowercased account id. This is one-way; see ``KnownAccounts`` for the
    reverse lookup of registered identities.
    """
    _require_str(account_id, "account id")
    digest = keccak(account_id.lower().encode("utf-8"))
    return bytes_to_hex(digest[-ADDRESS_LENGTH:])


def normalize_address(address: str) -> str:
    """Validate a 20-byte address and return it lowercase with prefix."""
    _require_str(address, "address")
    stripped = strip_prefix(address)
    if len(stripped) != ADDRESS_LENGTH * 2 or not is_hex(stripped):
        raise InvalidArgumentError(f"Invalid address: {address!r}")
    return HEX_PREFIX + stripped.lower()


# ─── base58 / base64 / decimal ────────────────────────────────────────────────

def base58_to_hex(value: str) -> str:
    _require_str(value)
    try:
        return bytes_to_hex(base58.b58decode(value))
    except ValueError as exc:
        raise InvalidArgumentError(f"Not a base58 string: {value!r}") from exc


def hex_to_base58(value: str) -> str:
    return base58.b58encode(hex_to_bytes(value)).decode("ascii")


def base64_to_bytes(value: str) -> bytes:
    _require_str(value)
    try:
        return base64.b64decode(value, validate=True)
    except binascii.Error as exc:
        raise InvalidArgumentError(f"Not a base64 string: {value!r}") from exc


def base64_to_hex(value: str) -> str:
    return bytes_to_hex(base64_to_bytes(value))


def base64_to_string(value: str) -> str:
    try:
        return base64_to_bytes(value).decode("utf-8")
    except UnicodeDecodeError as exc:
        raise InvalidArgumentError("base64 payload is not UTF-8 text") from exc


def bytes_to_base64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def dec_to_hex(value: Union[int, str]) -> str:
    """Non-negative decimal (int or string) → 0x-prefixed hex quantity."""
    if isinstance(value, bool):
        raise InvalidArgumentError("Boolean is not a decimal value")
    if isinstance(value, str):
        if not (value.isascii() and value.isdigit()):
            raise InvalidArgumentError(f"Not a decimal string: {value!r}")
        value = int(value)
    if not isinstance(value, int) or value < 0:
        raise InvalidArgumentError(f"Not a non-negative integer: {value!r}")
    return hex(value)


def hex_to_dec(value: str) -> str:
    """0x-prefixed hex quantity → decimal string."""
    stripped = strip_prefix(value)
    if not stripped or not is_hex(stripped):
        raise InvalidArgumentError(f"Not a hex quantity: {value!r}")
    return str(int(stripped, 16))


def to_int(value: Union[int, str]) -> int:
    """Accept an int, a hex quantity or a decimal string."""
    if isinstance(value, bool):
        raise InvalidArgumentError("Boolean is not a quantity")
    if isinstance(value, int):
        if value < 0:
            raise InvalidArgumentError(f"Negative quantity: {value}")
        return value
    _require_str(value, "quantity")
    if value.startswith("0x") or value.startswith("0X"):
        return int(hex_to_dec(value))
    if value.isascii() and value.isdigit():
        return int(value)
    raise InvalidArgumentError(f"Not a quantity: {value!r}")


def to_word(value: Union[int, str]) -> str:
    """Left-pad an int or hex string to an unprefixed 32-byte word."""
    if isinstance(value, int) and not isinstance(value, bool):
        if value < 0:
            raise InvalidArgumentError(f"Negative storage position: {value}")
        raw = format(value, "x")
    else:
        raw = strip_prefix(_require_str(value, "word"))
        if not is_hex(raw):
            raise InvalidArgumentError(f"Not a hex word: {value!r}")
    if len(raw) > WORD_LENGTH * 2:
        raise InvalidArgumentError(f"Word longer than {WORD_LENGTH} bytes: {value!r}")
    return raw.lower().rjust(WORD_LENGTH * 2, "0")


# ─── Transaction references ───────────────────────────────────────────────────

@dataclass(frozen=True)
class TxRef:
    """A NEAR transaction is addressed by its hash plus the signer account."""

    tx_hash: str
    account_id: str

    def __str__(self) -> str:
        return f"{self.tx_hash}{TX_REF_SEPARATOR}{self.account_id}"


def split_tx_ref(value: str) -> TxRef:
    """Split ``"<txHash>:<accountId>"`` on the first colon."""
    _require_str(value, "transaction reference")
    tx_hash, sep, account_id = value.partition(TX_REF_SEPARATOR)
    if not sep:
        raise InvalidArgumentError(
            f"Transaction reference must look like '<txHash>:<accountId>', got {value!r}"
        )
    return TxRef(tx_hash=tx_hash, account_id=account_id)


def convert_timestamp(value: Union[int, str]) -> int:
    """NEAR nanosecond timestamp → whole seconds."""
    return to_int(value) // NANOSECONDS_PER_SECOND


# ─── Block tags ───────────────────────────────────────────────────────────────

LATEST_TAG = "latest"


def parse_block_tag(value: Union[int, str]) -> Union[int, str, None]:
    """
    Parse an Ethereum block parameter.

    Returns ``None`` for ``"latest"``, an int height for integers and hex or
    decimal quantities, and a base58 NEAR hash for 32-byte hex hashes. Any
    other tag (``"earliest"``, ``"pending"``, ...) is rejected.
    """
    if isinstance(value, bool):
        raise InvalidArgumentError("Boolean is not a block reference")
    if isinstance(value, int):
        return to_int(value)
    _require_str(value, "block reference")
    if value == LATEST_TAG:
        return None
    stripped = strip_prefix(value)
    if value != stripped and len(stripped) == HASH_LENGTH * 2 and is_hex(stripped):
        return hex_to_base58(stripped)
    try:
        return to_int(value)
    except InvalidArgumentError:
        raise InvalidArgumentError(f"Unsupported block tag: {value!r}") from None
