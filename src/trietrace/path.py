"""
Compressed Trie Paths

A path is the list of (value, sibling) pairs recorded for one key, ordered
from the level nearest the leaf to the level nearest the root, plus a
`path_part` integer carrying one direction bit per recorded level. Empty
subtrees are skipped, so the path only has as many levels as the trie
actually branches above the leaf.

Verification walks the path bottom-up:

    digest_0 = 0                                  (no leaf)
             = H(H(ONE, key_residue), leaf_value) (leaf)

    for each level k:
        assert digest_k == node_k.value
        digest_{k+1} = H(sibling, digest_k)  if direction_k
                       H(digest_k, sibling)  otherwise

    assert digest_n == claimed_root
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Optional, Tuple

from .errors import MalformedTrace, RootMismatch
from .field import Fr
from .hash import Hasher, HashStep
from .key import direction_bits
from .tags import HashRole


@dataclass(frozen=True)
class PathNode:
    """One trie level: running digest at this level and its sibling."""
    value: Fr
    sibling: Fr


@dataclass(frozen=True)
class LeafRecord:
    """Terminal leaf reached by a path: stored key residue and value digest."""
    key_residue: Fr
    value: Fr


@dataclass(frozen=True)
class CompressedPath:
    """Leaf-first trie levels plus their packed directions."""
    nodes: Tuple[PathNode, ...]
    path_part: int

    def __len__(self) -> int:
        return len(self.nodes)

    @property
    def siblings(self) -> Tuple[Fr, ...]:
        return tuple(node.sibling for node in self.nodes)

    def directions(self) -> Tuple[bool, ...]:
        """Leaf-first direction bits decoded from path_part."""
        return direction_bits(self.path_part, len(self.nodes))


@dataclass(frozen=True)
class TriePath:
    """One side (before or after) of a trie proof."""
    path: CompressedPath
    leaf: Optional[LeafRecord]
    root: Fr


@dataclass(frozen=True)
class PathVerification:
    """Outcome of a successful path walk."""
    root: Fr
    leaf_digest: Fr
    directions: Tuple[bool, ...]
    hash_steps: Tuple[HashStep, ...]


def leaf_digest(key_residue: Fr, value: Fr, hasher: Optional[Hasher] = None) -> Fr:
    """Leaf node hash: H(H(ONE, key_residue), value)"""
    hasher = hasher if hasher is not None else Hasher()
    leaf_key = hasher(HashRole.LEAF_KEY, Fr.one(), key_residue)
    return hasher(HashRole.LEAF, leaf_key, value)


def fold(digest: Fr, sibling: Fr, direction: bool, hasher: Hasher) -> Fr:
    """Combine a running digest with its sibling at one level."""
    if direction:
        return hasher(HashRole.TRIE_NODE, sibling, digest)
    return hasher(HashRole.TRIE_NODE, digest, sibling)


def start_digest(leaf: Optional[LeafRecord], hasher: Hasher) -> Fr:
    """Digest the walk starts from: the leaf hash, or zero for an empty subtree."""
    if leaf is None:
        return Fr.zero()
    return leaf_digest(leaf.key_residue, leaf.value, hasher)


def verify_path(
    path: CompressedPath,
    leaf: Optional[LeafRecord],
    claimed_root: Fr,
    hasher: Optional[Hasher] = None,
) -> PathVerification:
    """
    Recompute a path's root and check it against the claimed root.

    Args:
        path: Leaf-first compressed path
        leaf: Leaf reached by the path, None for an empty subtree
        claimed_root: Root the trace claims for this side
        hasher: Recording hasher (a fresh one is used if omitted)

    Returns:
        PathVerification with the root, leaf digest, directions and the
        hash steps performed by this walk

    Raises:
        MalformedTrace: path_part does not fit, or a level's recorded value
            disagrees with the running digest
        RootMismatch: final digest differs from claimed_root
    """
    hasher = hasher if hasher is not None else Hasher()
    tracer = hasher.tracer
    mark = hasher.mark()

    directions = path.directions()
    start = start_digest(leaf, hasher)

    digest = start
    for k, (node, direction) in enumerate(zip(path.nodes, directions)):
        if digest != node.value:
            raise MalformedTrace(
                f"Recorded value {node.value.hex()} disagrees with "
                f"running digest {digest.hex()}",
                level=k,
            )
        digest = fold(digest, node.sibling, direction, hasher)
        if tracer.enabled:
            tracer.emit('path.level', level=k, direction=direction, digest=digest)

    if digest != claimed_root:
        raise RootMismatch(
            f"Recomputed root {digest.hex()} != claimed root {claimed_root.hex()}",
            expected=claimed_root,
            actual=digest,
            level=len(path.nodes),
        )
    if tracer.enabled:
        tracer.emit('path.root', root=digest)

    return PathVerification(
        root=digest,
        leaf_digest=start,
        directions=directions,
        hash_steps=tuple(hasher.since(mark)),
    )


def verify_trie_path(side: TriePath, hasher: Optional[Hasher] = None) -> PathVerification:
    """verify_path over a TriePath's own claimed root."""
    return verify_path(side.path, side.leaf, side.root, hasher)
