"""
Hash Roles for Trie Verification

Every compression performed during verification is tagged with the role it
plays. The roles do not enter the hash (the compression function takes no
domain tag); they label rows of the hash-step table so a circuit layer can
route each row to the right constraint set.
"""

from enum import IntEnum


class HashRole(IntEnum):
    """Role of a single H(left, right) call."""

    # Keys
    ACCOUNT_KEY = 0x10      # H(address_hi, address_lo << 96)
    STORAGE_KEY = 0x11      # H(slot_hi, slot_lo)

    # Leaves
    LEAF_KEY = 0x20         # H(ONE, key_residue)
    LEAF = 0x21             # H(leaf_key, value)

    # Account leaf value
    CODEHASH = 0x30         # h1 = H(codehash_hi, codehash_lo)
    NONCE_BALANCE = 0x31    # h3 = H(nonce, balance)
    ACCOUNT_STORAGE = 0x32  # h2 = H(h1, storage_root)
    ACCOUNT = 0x33          # H(h3, h2)

    # Storage leaf value
    STORAGE_VALUE = 0x40    # H(value_hi, value_lo)

    # Internal nodes
    TRIE_NODE = 0x50        # H(left_child, right_child)
