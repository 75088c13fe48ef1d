"""
Tests for compressed path verification.
"""

import dataclasses

import pytest

from trietrace import (
    CompressedPath,
    Fr,
    HashRole,
    Hasher,
    LeafRecord,
    MalformedTrace,
    RootMismatch,
    Tracer,
    leaf_digest,
    poseidon_hash,
    verify_path,
    verify_trie_path,
)


ACCOUNT_KEY_ONE = 0x208f6b727bb1106847c5235b8b62e7902687ff154df396fbbd026eaf49e706e4
ACCOUNT_DIGEST_NONCE_ONE = 0x1d28fc178be2acdad066f0a08cbed06dafaff87911b23cca1e713d785c43c533
LEAF_NONCE_ONE = 0x1a0d5272df41370aae2eca6ad90a391f2aa869a7c65da4e5992d1a9972b62b06


def sample_side(builder, levels=4, with_leaf=True):
    key = Fr(0b1011_0110)
    leaf = LeafRecord(key, Fr(99)) if with_leaf else None
    return builder.side(key, leaf, builder.siblings(7, levels))


class TestLeafDigest:
    """Tests for the leaf node hash."""

    def test_formula(self):
        """H(H(ONE, residue), value)."""
        expected = poseidon_hash(poseidon_hash(Fr.one(), Fr(5)), Fr(6))
        assert leaf_digest(Fr(5), Fr(6)) == expected

    def test_pinned_account_leaf(self):
        """Leaf of account 0x00..01 with nonce 1 matches the reference value."""
        digest = leaf_digest(Fr(ACCOUNT_KEY_ONE), Fr(ACCOUNT_DIGEST_NONCE_ONE))
        assert digest == Fr(LEAF_NONCE_ONE)

    def test_roles(self):
        """Leaf key and leaf steps are tagged."""
        hasher = Hasher()
        leaf_digest(Fr(5), Fr(6), hasher)
        assert [s.role for s in hasher.steps] == [HashRole.LEAF_KEY, HashRole.LEAF]


class TestVerifyPath:
    """Tests for verify_path."""

    def test_round_trip(self, builder):
        """A well-formed path recomputes its own root."""
        side = sample_side(builder)
        result = verify_path(side.path, side.leaf, side.root)
        assert result.root == side.root
        assert result.leaf_digest == side.path.nodes[0].value
        assert result.directions == side.path.directions()

    def test_hash_steps(self, builder):
        """Two leaf steps plus one node step per level."""
        side = sample_side(builder, levels=5)
        result = verify_trie_path(side)
        roles = [s.role for s in result.hash_steps]
        assert roles == [HashRole.LEAF_KEY, HashRole.LEAF] + [HashRole.TRIE_NODE] * 5
        assert result.hash_steps[-1].result == side.root
        assert all(step.verify() for step in result.hash_steps)

    def test_empty_subtree_starts_at_zero(self, builder):
        """Without a leaf the walk starts from zero."""
        side = sample_side(builder, with_leaf=False)
        result = verify_trie_path(side)
        assert result.leaf_digest == Fr.zero()
        assert side.path.nodes[0].value == Fr.zero()
        assert all(s.role == HashRole.TRIE_NODE for s in result.hash_steps)

    def test_zero_levels(self):
        """A path with no levels: the leaf digest is the root."""
        leaf = LeafRecord(Fr(3), Fr(4))
        root = leaf_digest(Fr(3), Fr(4))
        result = verify_path(CompressedPath((), 0), leaf, root)
        assert result.root == root
        assert result.directions == ()

    def test_root_mismatch(self, builder):
        """A wrong claimed root raises RootMismatch."""
        side = sample_side(builder)
        wrong = side.root + Fr.one()
        with pytest.raises(RootMismatch) as info:
            verify_path(side.path, side.leaf, wrong)
        assert info.value.expected == wrong
        assert info.value.actual == side.root
        assert info.value.level == 4

    def test_corrupted_node_value(self, builder):
        """A recorded value that disagrees with the running digest."""
        side = sample_side(builder)
        nodes = list(side.path.nodes)
        nodes[2] = dataclasses.replace(nodes[2], value=nodes[2].value + Fr.one())
        path = dataclasses.replace(side.path, nodes=tuple(nodes))
        with pytest.raises(MalformedTrace) as info:
            verify_path(path, side.leaf, side.root)
        assert info.value.level == 2

    def test_wrong_leaf(self, builder):
        """A different leaf breaks the first level."""
        side = sample_side(builder)
        with pytest.raises(MalformedTrace) as info:
            verify_path(side.path, LeafRecord(side.leaf.key_residue, Fr(100)), side.root)
        assert info.value.level == 0

    def test_flipped_direction(self, builder):
        """Flipping the lowest level's direction breaks the next level."""
        side = sample_side(builder)
        length = len(side.path)
        flipped = side.path.path_part ^ (1 << (length - 1))
        path = dataclasses.replace(side.path, path_part=flipped)
        with pytest.raises(MalformedTrace) as info:
            verify_path(path, side.leaf, side.root)
        assert info.value.level == 1

    def test_oversized_path_part(self, builder):
        """path_part wider than the path is malformed."""
        side = sample_side(builder)
        path = dataclasses.replace(side.path, path_part=1 << 10)
        with pytest.raises(MalformedTrace):
            verify_path(path, side.leaf, side.root)

    def test_tracing(self, builder):
        """Per-level and root events reach attached hooks."""
        side = sample_side(builder, levels=3)
        events = []
        tracer = Tracer([lambda event, fields: events.append(event)])
        verify_trie_path(side, Hasher(tracer))
        assert events.count('path.level') == 3
        assert events[-1] == 'path.root'
        assert events.count('hash') == 5
