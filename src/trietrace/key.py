"""
Trie Key Derivation

Account key:
    key = H(address[0:16], address[16:20] << 96)

Storage key:
    key = H(slot >> 128, slot mod 2^128)

Bit i of a key picks the branch taken at trie depth i (depth 0 is the
root). Bits are numbered over the big-endian encoding: bit i lives in byte
(len - 1 - i // 8) at position i % 8, so bit i equals (int >> i) & 1.

A compressed path records one direction per stored level in `path_part`.
Paths are kept leaf-first, so level k (0 = nearest the leaf) of a path with
`length` levels sits at depth length - 1 - k and its direction is bit
length - 1 - k of both `path_part` and the key.
"""

from __future__ import annotations
from typing import Optional, Sequence, Tuple

from .errors import MalformedTrace
from .field import Fr, split_u256
from .hash import Hasher, poseidon_hash
from .tags import HashRole


ADDRESS_BYTES = 20


def _address_halves(address: bytes) -> Tuple[Fr, Fr]:
    if len(address) != ADDRESS_BYTES:
        raise MalformedTrace(f"Address must be {ADDRESS_BYTES} bytes, got {len(address)}")
    high = int.from_bytes(address[:16], 'big')
    low = int.from_bytes(address[16:], 'big') << 96
    return Fr(high), Fr(low)


def account_key(address: bytes, hasher: Optional[Hasher] = None) -> Fr:
    """
    Trie key of an account.

    Args:
        address: 20-byte account address
        hasher: optional recording hasher

    Returns:
        Field element whose bits select the account's trie position
    """
    high, low = _address_halves(address)
    if hasher is None:
        return poseidon_hash(high, low)
    return hasher(HashRole.ACCOUNT_KEY, high, low)


def storage_key(slot: int, hasher: Optional[Hasher] = None) -> Fr:
    """Trie key of a storage slot inside an account's storage trie."""
    try:
        high, low = split_u256(slot)
    except ValueError as e:
        raise MalformedTrace(f"Storage key out of range: {e}") from e
    if hasher is None:
        return poseidon_hash(Fr(high), Fr(low))
    return hasher(HashRole.STORAGE_KEY, Fr(high), Fr(low))


def address_bit(address: bytes, i: int) -> bool:
    """Bit i of an address: byte 19 - i // 8, bit i % 8; False out of range."""
    if i < 0 or i >= len(address) * 8:
        return False
    return bool((address[len(address) - 1 - i // 8] >> (i % 8)) & 1)


def direction_bits(path_part: int, length: int) -> Tuple[bool, ...]:
    """
    Decode per-level directions, leaf-first.

    Element k is bit (length - 1 - k) of path_part; True means the running
    digest is the right child at that level.

    Raises:
        MalformedTrace: path_part has bits at or above `length`
    """
    if path_part < 0 or path_part >> length:
        raise MalformedTrace(
            f"path_part {path_part:#x} does not fit in {length} levels"
        )
    return tuple(bool((path_part >> (length - 1 - k)) & 1) for k in range(length))


def check_directions(directions: Sequence[bool], key: Fr) -> None:
    """
    Cross-check decoded directions against the key they should follow.

    Raises:
        MalformedTrace: first level whose direction disagrees with the key
    """
    length = len(directions)
    for k, direction in enumerate(directions):
        if direction != key.bit(length - 1 - k):
            raise MalformedTrace(
                f"Direction at depth {length - 1 - k} disagrees with key {key.hex()}",
                level=k,
            )
