"""
BN254 Scalar Field Elements

Field: F_p where
    p = 21888242871839275222246405745257275088548364400416034343698204186575808495617

This is the scalar field of the BN254 curve, the native field of the
trie's compression function. A field element holds a little under 254 bits,
so 256-bit quantities (code hashes, storage values) are split into 128-bit
halves before they enter the field.

Wire encoding is 32 bytes little-endian; the bit-indexing convention used for
trie traversal reads the canonical big-endian encoding.
"""

from __future__ import annotations
from typing import Tuple


# BN254 scalar field modulus (Fr)
MODULUS = 21888242871839275222246405745257275088548364400416034343698204186575808495617

# Bytes in a canonical encoding
FIELD_BYTES = 32

# Usable key width: bits of p
MODULUS_BITS = MODULUS.bit_length()

_U128_MASK = (1 << 128) - 1


class Fr:
    """
    Element of the BN254 scalar field.

    Immutable value type. Construction from an integer reduces modulo p;
    construction from wire bytes (`from_bytes`) rejects non-canonical input.
    """

    __slots__ = ('value',)

    def __init__(self, value: int):
        """Create field element from integer (reduced mod p)."""
        object.__setattr__(self, 'value', value % MODULUS)

    def __setattr__(self, name, value):
        raise AttributeError("Fr is immutable")

    def __reduce__(self):
        return (Fr, (self.value,))

    # =========================================================================
    # Arithmetic Operations
    # =========================================================================

    def __add__(self, other: Fr) -> Fr:
        """Addition in F_p."""
        return Fr(self.value + other.value)

    def __sub__(self, other: Fr) -> Fr:
        """Subtraction in F_p."""
        return Fr(self.value - other.value)

    def __mul__(self, other: Fr) -> Fr:
        """Multiplication in F_p."""
        return Fr(self.value * other.value)

    def __neg__(self) -> Fr:
        return Fr(-self.value)

    # =========================================================================
    # Comparison Operations
    # =========================================================================

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Fr):
            return self.value == other.value
        if isinstance(other, int):
            return self.value == (other % MODULUS)
        return False

    def __ne__(self, other: object) -> bool:
        return not self.__eq__(other)

    def __hash__(self) -> int:
        return hash(self.value)

    def __repr__(self) -> str:
        return f"Fr({self.hex()})"

    def __str__(self) -> str:
        return str(self.value)

    # =========================================================================
    # Bits
    # =========================================================================

    def bit(self, i: int) -> bool:
        """
        Bit i of the canonical big-endian encoding.

        Bit 0 is the least significant bit of the last byte, i.e. byte
        31 - i // 8, bit i % 8. Out-of-range indices read as False.
        """
        if i < 0 or i >= FIELD_BYTES * 8:
            return False
        return bool((self.value >> i) & 1)

    # =========================================================================
    # Serialization
    # =========================================================================

    def to_bytes(self) -> bytes:
        """Serialize to 32 bytes (little-endian, wire order)."""
        return self.value.to_bytes(FIELD_BYTES, 'little')

    def to_bytes_be(self) -> bytes:
        """Serialize to 32 bytes (big-endian, canonical bit order)."""
        return self.value.to_bytes(FIELD_BYTES, 'big')

    @classmethod
    def from_bytes(cls, data: bytes) -> Fr:
        """
        Deserialize from 32 little-endian bytes.

        Raises:
            ValueError: wrong length or value >= p
        """
        if len(data) != FIELD_BYTES:
            raise ValueError(f"Field element must be {FIELD_BYTES} bytes, got {len(data)}")
        return cls.from_canonical(int.from_bytes(data, 'little'))

    @classmethod
    def from_canonical(cls, value: int) -> Fr:
        """Create from an integer that must already lie in [0, p)."""
        if not 0 <= value < MODULUS:
            raise ValueError(f"Non-canonical field element: {value:#x}")
        return cls(value)

    @classmethod
    def from_u128(cls, value: int) -> Fr:
        """Inject an unsigned 128-bit integer (always fits in the field)."""
        if not 0 <= value <= _U128_MASK:
            raise ValueError(f"Value does not fit in 128 bits: {value:#x}")
        return cls(value)

    def to_int(self) -> int:
        """Convert to integer."""
        return self.value

    def hex(self) -> str:
        """Big-endian hex, 0x-prefixed and zero-padded to 32 bytes."""
        return '0x' + self.to_bytes_be().hex()

    # =========================================================================
    # Predicates
    # =========================================================================

    def is_zero(self) -> bool:
        return self.value == 0

    # =========================================================================
    # Class Methods
    # =========================================================================

    @classmethod
    def zero(cls) -> Fr:
        """Additive identity, also the empty-subtree digest."""
        return cls(0)

    @classmethod
    def one(cls) -> Fr:
        """Multiplicative identity, also the leaf marker."""
        return cls(1)


# =============================================================================
# Helper Functions
# =============================================================================

def split_u256(value: int) -> Tuple[int, int]:
    """Split an unsigned 256-bit integer into (high 128 bits, low 128 bits)."""
    if not 0 <= value < (1 << 256):
        raise ValueError(f"Value does not fit in 256 bits: {value:#x}")
    return value >> 128, value & _U128_MASK
