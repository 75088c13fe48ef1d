"""
Shared fixtures: recorded trace records and a builder for synthetic tries.
"""

from pathlib import Path
from typing import Optional, Sequence

import pytest

from trietrace import (
    AccountRecord,
    CompressedPath,
    Fr,
    LeafRecord,
    PathNode,
    SMTTrace,
    StorageSlot,
    TriePath,
    account_key,
    account_leaf_digest,
    leaf_digest,
    load_traces,
    poseidon_hash,
    storage_key,
    storage_value_digest,
)


DATA_DIR = Path(__file__).parent / 'data'
TRACES_FILE = DATA_DIR / 'traces.json'


class TrieBuilder:
    """Builds self-consistent paths and traces with the library's own hashing."""

    @staticmethod
    def siblings(seed: int, count: int) -> list:
        return [poseidon_hash(Fr(seed), Fr(i + 1)) for i in range(count)]

    @staticmethod
    def side(
        key: Fr,
        leaf: Optional[LeafRecord],
        siblings: Sequence[Fr],
        path_part: Optional[int] = None,
    ) -> TriePath:
        """Leaf-first path following `key` (or `path_part`, when given)."""
        length = len(siblings)
        if path_part is None:
            path_part = key.value & ((1 << length) - 1)
        digest = leaf_digest(leaf.key_residue, leaf.value) if leaf is not None else Fr.zero()
        nodes = []
        for k, sibling in enumerate(siblings):
            nodes.append(PathNode(digest, sibling))
            if (path_part >> (length - 1 - k)) & 1:
                digest = poseidon_hash(sibling, digest)
            else:
                digest = poseidon_hash(digest, sibling)
        return TriePath(CompressedPath(tuple(nodes), path_part), leaf, digest)

    def account_trace(
        self,
        address: bytes,
        before: Optional[AccountRecord],
        after: Optional[AccountRecord],
        siblings: Sequence[Fr],
        storage_root: Fr = Fr.zero(),
        after_siblings: Optional[Sequence[Fr]] = None,
    ) -> SMTTrace:
        """Account-only trace; storage root shared by both sides."""
        key = account_key(address)
        sides = []
        for account, sibs in ((before, siblings), (after, after_siblings or siblings)):
            leaf = None
            if account is not None:
                leaf = LeafRecord(key, account_leaf_digest(account, storage_root))
            sides.append(self.side(key, leaf, sibs))
        return SMTTrace(
            address=address,
            account_key=key,
            account_path=(sides[0], sides[1]),
            account_update=(before, after),
            common_state_root=storage_root,
        )

    def storage_trace(
        self,
        address: bytes,
        account: AccountRecord,
        old: Optional[StorageSlot],
        new: Optional[StorageSlot],
        account_siblings: Sequence[Fr],
        storage_siblings: Sequence[Fr],
    ) -> SMTTrace:
        """Storage update under an unchanged account."""
        slot_key = storage_key((old or new).key)
        state_sides = []
        for slot in (old, new):
            leaf = None if slot is None else LeafRecord(slot_key, storage_value_digest(slot.value))
            state_sides.append(self.side(slot_key, leaf, storage_siblings))
        key = account_key(address)
        account_sides = [
            self.side(key, LeafRecord(key, account_leaf_digest(account, side.root)), account_siblings)
            for side in state_sides
        ]
        return SMTTrace(
            address=address,
            account_key=key,
            account_path=(account_sides[0], account_sides[1]),
            account_update=(account, account),
            state_path=(state_sides[0], state_sides[1]),
            state_key=slot_key,
            state_update=(old, new),
        )


@pytest.fixture(scope='session')
def builder() -> TrieBuilder:
    return TrieBuilder()


@pytest.fixture(scope='session')
def recorded_traces():
    """The seven recorded trace records, in file order."""
    return load_traces(TRACES_FILE)


@pytest.fixture(scope='session')
def traces_file() -> Path:
    return TRACES_FILE
