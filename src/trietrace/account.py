"""
Leaf Encoders

Canonical leaf values for the two tries.

Account leaf value (fixed order and grouping):

    h1 = H(codehash_hi, codehash_lo)
    h3 = H(nonce, balance)
    h2 = H(h1, storage_root)
    value = H(h3, h2)

Storage leaf:

    value = H(slot_value_hi, slot_value_lo)
    leaf  = H(H(ONE, storage_key(slot_key)), value)

256-bit quantities do not fit in the field, so code hashes and slot values
enter as 128-bit halves. The balance is re-encoded positionally from its
64-bit digits and must be below the field modulus.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Optional, Tuple

from .errors import MalformedTrace
from .field import MODULUS, Fr, split_u256
from .hash import Hasher
from .key import storage_key
from .path import leaf_digest
from .tags import HashRole


U64_MAX = (1 << 64) - 1
U256_MAX = (1 << 256) - 1

_DIGIT_BASE = Fr(1 << 64)


@dataclass(frozen=True)
class AccountRecord:
    """Account fields stored in a leaf; the storage root is supplied separately."""
    nonce: int = 0
    balance: int = 0
    code_hash: int = 0

    def __post_init__(self):
        if not 0 <= self.nonce <= U64_MAX:
            raise MalformedTrace(f"Nonce out of range: {self.nonce}")
        if not 0 <= self.balance <= U256_MAX:
            raise MalformedTrace(f"Balance out of range: {self.balance}")
        if not 0 <= self.code_hash <= U256_MAX:
            raise MalformedTrace(f"Code hash out of range: {self.code_hash:#x}")

    def fields(self) -> Tuple[int, int, int]:
        """(nonce, balance, code_hash)"""
        return self.nonce, self.balance, self.code_hash


@dataclass(frozen=True)
class StorageSlot:
    """One storage slot of an account."""
    key: int
    value: int

    def __post_init__(self):
        if not 0 <= self.key <= U256_MAX:
            raise MalformedTrace(f"Storage key out of range: {self.key:#x}")
        if not 0 <= self.value <= U256_MAX:
            raise MalformedTrace(f"Storage value out of range: {self.value:#x}")


def hi_lo(value: int) -> Tuple[Fr, Fr]:
    """Split a 256-bit value into two field elements (high, low 128 bits)."""
    high, low = split_u256(value)
    return Fr.from_u128(high), Fr.from_u128(low)


def balance_to_field(balance: int) -> Fr:
    """
    Re-encode a balance from its 64-bit digits, most significant first.

    acc = acc * 2^64 + digit

    Balances at or above the field modulus would alias another balance and
    are rejected.
    """
    if balance >= MODULUS:
        raise MalformedTrace(f"Balance {balance:#x} exceeds the field modulus")
    acc = Fr.zero()
    for i in reversed(range(4)):
        acc = acc * _DIGIT_BASE + Fr((balance >> (64 * i)) & U64_MAX)
    return acc


def account_leaf_digest(
    account: AccountRecord,
    storage_root: Fr,
    hasher: Optional[Hasher] = None,
) -> Fr:
    """
    Canonical value digest of an account leaf.

    Args:
        account: Nonce, balance and code hash
        storage_root: Root of the account's storage trie
        hasher: Recording hasher

    Returns:
        H(H(nonce, balance), H(H(codehash_hi, codehash_lo), storage_root))
    """
    hasher = hasher if hasher is not None else Hasher()
    codehash_hi, codehash_lo = hi_lo(account.code_hash)
    h1 = hasher(HashRole.CODEHASH, codehash_hi, codehash_lo)
    h3 = hasher(HashRole.NONCE_BALANCE, Fr(account.nonce), balance_to_field(account.balance))
    h2 = hasher(HashRole.ACCOUNT_STORAGE, h1, storage_root)
    return hasher(HashRole.ACCOUNT, h3, h2)


def storage_value_digest(value: int, hasher: Optional[Hasher] = None) -> Fr:
    """Slot value packed into the field: H(value_hi, value_lo)"""
    hasher = hasher if hasher is not None else Hasher()
    value_hi, value_lo = hi_lo(value)
    return hasher(HashRole.STORAGE_VALUE, value_hi, value_lo)


def storage_leaf_digest(slot: StorageSlot, hasher: Optional[Hasher] = None) -> Fr:
    """Full leaf node hash of a storage slot."""
    hasher = hasher if hasher is not None else Hasher()
    key = storage_key(slot.key, hasher)
    return leaf_digest(key, storage_value_digest(slot.value, hasher), hasher)
