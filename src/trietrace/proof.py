"""
Proof Assembly

A Proof combines everything one trace establishes:

- the Claim (old root, new root, address, claim kind)
- the address hash trace: for each account trie level, leaf-first,
  (direction, value_before, value_after, sibling)
- the storage hash trace, built the same way, when a storage slot is involved
- every compression performed while assembling it, as HashSteps

Assembly verifies both sides of each path, zips them level by level and
requires identical siblings (an update changes values, never the trie shape
above the touched leaf). Proof.check then re-derives the hash chains from
the zipped traces alone, together with the roots, leaves and claim kind, and
is the last gate before a Proof is handed on.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Dict, Optional, Sequence, Tuple

from .account import AccountRecord, StorageSlot, account_leaf_digest, storage_value_digest
from .claim import Claim, ClaimKind, StorageUpdate, classify
from .config import DEFAULT_CONFIG, VerifierConfig
from .errors import InvariantViolation, MalformedTrace, RootMismatch
from .field import Fr
from .hash import Hasher, HashStep
from .key import account_key, check_directions, storage_key
from .path import CompressedPath, LeafRecord, fold, start_digest, verify_trie_path
from .trace import SMTTrace


Pair = Tuple[Any, Any]


@dataclass(frozen=True)
class HashTraceLevel:
    """One level of a zipped before/after path."""
    direction: bool
    value_before: Fr
    value_after: Fr
    sibling: Fr


def zip_paths(
    before: CompressedPath,
    after: CompressedPath,
    key: Fr,
    trie: str = 'account',
) -> Tuple[HashTraceLevel, ...]:
    """
    Zip the before and after paths of one key into a hash trace.

    Raises:
        MalformedTrace: lengths or path_part differ, or directions disagree
            with the key
        InvariantViolation: a sibling differs between the two sides
    """
    if len(before) != len(after):
        raise MalformedTrace(
            f"{trie} path length changed across update: {len(before)} -> {len(after)}"
        )
    if before.path_part != after.path_part:
        raise MalformedTrace(
            f"{trie} path_part changed across update: "
            f"{before.path_part:#x} -> {after.path_part:#x}"
        )
    directions = before.directions()
    check_directions(directions, key)

    levels = []
    for k, (old, new, direction) in enumerate(zip(before.nodes, after.nodes, directions)):
        if old.sibling != new.sibling:
            raise InvariantViolation(
                f"{trie} sibling changed across update: "
                f"{old.sibling.hex()} -> {new.sibling.hex()}",
                level=k,
            )
        levels.append(HashTraceLevel(direction, old.value, new.value, old.sibling))
    return tuple(levels)


def check_hash_trace(
    levels: Sequence[HashTraceLevel],
    key: Fr,
    leaf_digests: Pair,
    roots: Pair,
    hasher: Hasher,
    trie: str = 'account',
) -> None:
    """
    Re-derive both hash chains of a zipped trace.

    The bottom level must hold the leaf digests, each level's fold must be the
    next level's value, and the top fold must give the roots.
    """
    check_directions([level.direction for level in levels], key)

    if not levels:
        for side, digest, root in zip(('before', 'after'), leaf_digests, roots):
            if digest != root:
                raise RootMismatch(
                    f"{trie} {side} root {root.hex()} != leaf digest {digest.hex()}",
                    expected=root, actual=digest, level=0,
                )
        return

    bottom = levels[0]
    if (bottom.value_before, bottom.value_after) != tuple(leaf_digests):
        raise MalformedTrace(f"{trie} hash trace does not start at the leaf digests", level=0)

    for k, level in enumerate(levels):
        folded = (
            fold(level.value_before, level.sibling, level.direction, hasher),
            fold(level.value_after, level.sibling, level.direction, hasher),
        )
        if k + 1 < len(levels):
            above = levels[k + 1]
            if folded != (above.value_before, above.value_after):
                raise MalformedTrace(f"{trie} hash chain broken", level=k + 1)
            continue
        for side, digest, root in zip(('before', 'after'), folded, roots):
            if digest != root:
                raise RootMismatch(
                    f"{trie} {side} root {root.hex()} != top of hash trace {digest.hex()}",
                    expected=root, actual=digest, level=k,
                )


# =============================================================================
# Leaf cross-checks
# =============================================================================

def check_account_leaf(
    leaf: Optional[LeafRecord],
    account: Optional[AccountRecord],
    key: Fr,
    storage_root: Optional[Fr],
    hasher: Hasher,
    side: str,
) -> None:
    """A recorded account must be exactly what its leaf commits to."""
    if account is None:
        if leaf is not None and leaf.key_residue == key:
            raise MalformedTrace(f"{side}: leaf holds the account key but no account is recorded")
        return
    if leaf is None:
        raise MalformedTrace(f"{side}: account recorded but the path ends in an empty subtree")
    if leaf.key_residue != key:
        raise MalformedTrace(
            f"{side}: leaf key {leaf.key_residue.hex()} is not the account key {key.hex()}"
        )
    if storage_root is None:
        raise MalformedTrace(f"{side}: account recorded without a storage root")
    digest = account_leaf_digest(account, storage_root, hasher)
    if digest != leaf.value:
        raise MalformedTrace(
            f"{side}: account digest {digest.hex()} != leaf value {leaf.value.hex()}"
        )


def check_storage_leaf(
    leaf: Optional[LeafRecord],
    slot: Optional[StorageSlot],
    key: Fr,
    hasher: Hasher,
    side: str,
) -> None:
    """A recorded slot must be exactly what its storage leaf commits to."""
    if slot is None:
        if leaf is not None and leaf.key_residue == key:
            raise MalformedTrace(f"{side}: leaf holds the storage key but no slot is recorded")
        return
    if leaf is None:
        raise MalformedTrace(f"{side}: slot recorded but the storage path ends in an empty subtree")
    if leaf.key_residue != key:
        raise MalformedTrace(
            f"{side}: leaf key {leaf.key_residue.hex()} is not the storage key {key.hex()}"
        )
    digest = storage_value_digest(slot.value, hasher)
    if digest != leaf.value:
        raise MalformedTrace(
            f"{side}: slot digest {digest.hex()} != leaf value {leaf.value.hex()}"
        )


def _slots(update: Optional[StorageUpdate]) -> Pair:
    return update if update is not None else (None, None)


# =============================================================================
# Proof
# =============================================================================

@dataclass(frozen=True)
class Proof:
    """
    Verified summary of one trace, ready for a circuit layer.

    Storage fields are only populated when the trace carries a storage path;
    `storage_key` is None otherwise.
    """
    claim: Claim
    account_key: Fr
    address_trace: Tuple[HashTraceLevel, ...]
    account_leaves: Tuple[Optional[LeafRecord], Optional[LeafRecord]]
    account_update: Tuple[Optional[AccountRecord], Optional[AccountRecord]]
    storage_roots: Tuple[Optional[Fr], Optional[Fr]]
    storage_key: Optional[Fr] = None
    storage_trace: Tuple[HashTraceLevel, ...] = ()
    storage_leaves: Tuple[Optional[LeafRecord], Optional[LeafRecord]] = (None, None)
    storage_update: Optional[StorageUpdate] = None
    hash_steps: Tuple[HashStep, ...] = ()

    @property
    def old_root(self) -> Fr:
        return self.claim.old_root

    @property
    def new_root(self) -> Fr:
        return self.claim.new_root

    @property
    def kind(self) -> ClaimKind:
        return self.claim.kind

    @property
    def has_storage(self) -> bool:
        return self.storage_key is not None

    @classmethod
    def from_trace(
        cls,
        trace: SMTTrace,
        config: VerifierConfig = DEFAULT_CONFIG,
        hasher: Optional[Hasher] = None,
    ) -> Proof:
        """
        Assemble a Proof from a trace record.

        Args:
            trace: The trace to verify
            config: Which cross-checks to run
            hasher: Recording hasher (a fresh one is used if omitted)

        Returns:
            Proof whose hash_steps hold every compression performed

        Raises:
            TraceVerificationError: any failed check
        """
        hasher = hasher if hasher is not None else Hasher()
        mark = hasher.mark()

        key = account_key(trace.address, hasher)
        if config.check_account_key and key != trace.account_key:
            raise MalformedTrace(
                f"Account key {trace.account_key.hex()} does not match "
                f"derived key {key.hex()}"
            )

        before_path, after_path = trace.account_path
        old_root = verify_trie_path(before_path, hasher).root
        new_root = verify_trie_path(after_path, hasher).root
        address_trace = zip_paths(before_path.path, after_path.path, key, 'account')

        slots = _slots(trace.state_update)
        storage_key_value = None
        storage_trace: Tuple[HashTraceLevel, ...] = ()
        storage_leaves: Pair = (None, None)

        if trace.has_storage_path:
            state_before, state_after = trace.state_path
            if state_before is None or state_after is None:
                raise MalformedTrace("Storage path present on one side only")
            storage_roots = (
                verify_trie_path(state_before, hasher).root,
                verify_trie_path(state_after, hasher).root,
            )
            common = trace.common_state_root
            if common is not None and any(root != common for root in storage_roots):
                raise MalformedTrace("Storage path roots disagree with the common storage root")
            storage_key_value = _resolve_storage_key(trace, slots, config, hasher)
            storage_trace = zip_paths(state_before.path, state_after.path, storage_key_value, 'storage')
            storage_leaves = (state_before.leaf, state_after.leaf)
        else:
            if any(slot is not None for slot in slots):
                raise MalformedTrace("Storage slot recorded without a storage path")
            storage_roots = (trace.common_state_root, trace.common_state_root)

        if config.check_leaf_values:
            for side, leaf, account, root in zip(
                ('before', 'after'), (before_path.leaf, after_path.leaf),
                trace.account_update, storage_roots,
            ):
                check_account_leaf(leaf, account, key, root, hasher, side)
            if storage_key_value is not None:
                for side, leaf, slot in zip(('before', 'after'), storage_leaves, slots):
                    check_storage_leaf(leaf, slot, storage_key_value, hasher, side)

        before_account, after_account = trace.account_update
        claim = Claim(
            old_root=old_root,
            new_root=new_root,
            address=trace.address,
            kind=classify(before_account, after_account, trace.state_update),
        )

        proof = cls(
            claim=claim,
            account_key=key,
            address_trace=address_trace,
            account_leaves=(before_path.leaf, after_path.leaf),
            account_update=trace.account_update,
            storage_roots=storage_roots,
            storage_key=storage_key_value,
            storage_trace=storage_trace,
            storage_leaves=storage_leaves,
            storage_update=trace.state_update,
            hash_steps=tuple(hasher.since(mark)),
        )
        if hasher.tracer.enabled:
            hasher.tracer.emit(
                'proof.assembled',
                address=trace.address,
                claim=claim.kind,
                levels=len(address_trace),
                steps=len(proof.hash_steps),
            )
        return proof

    def check(self, config: VerifierConfig = DEFAULT_CONFIG, hasher: Optional[Hasher] = None) -> None:
        """
        Re-derive the proof from its own contents.

        Checks, in order: the account key against the address, the storage
        key against the recorded slot key, both account
        hash chains from the leaf digests up to the claimed roots (directions
        against the key bits), the storage hash chains up to the storage roots,
        the leaf values against the account and slot records, and the claim
        kind against a fresh classification.

        Raises:
            TraceVerificationError: any failed check
        """
        hasher = hasher if hasher is not None else Hasher()

        if account_key(self.claim.address, hasher) != self.account_key:
            raise MalformedTrace("Account key does not match the claimed address")

        account_digests = tuple(start_digest(leaf, hasher) for leaf in self.account_leaves)
        check_hash_trace(
            self.address_trace,
            self.account_key,
            account_digests,
            (self.claim.old_root, self.claim.new_root),
            hasher,
            'account',
        )

        slots = _slots(self.storage_update)
        if self.storage_key is not None:
            for slot in slots:
                if slot is not None and storage_key(slot.key, hasher) != self.storage_key:
                    raise MalformedTrace(
                        f"Storage key {self.storage_key.hex()} does not belong to slot {slot.key:#x}"
                    )
            storage_digests = tuple(start_digest(leaf, hasher) for leaf in self.storage_leaves)
            check_hash_trace(
                self.storage_trace,
                self.storage_key,
                storage_digests,
                self.storage_roots,
                hasher,
                'storage',
            )
        elif self.storage_trace or any(slot is not None for slot in slots):
            raise MalformedTrace("Storage trace recorded without a storage key")

        if config.check_leaf_values:
            for side, leaf, account, root in zip(
                ('before', 'after'), self.account_leaves, self.account_update, self.storage_roots,
            ):
                check_account_leaf(leaf, account, self.account_key, root, hasher, side)
            if self.storage_key is not None:
                for side, leaf, slot in zip(('before', 'after'), self.storage_leaves, slots):
                    check_storage_leaf(leaf, slot, self.storage_key, hasher, side)

        before_account, after_account = self.account_update
        kind = classify(before_account, after_account, self.storage_update)
        if kind != self.claim.kind:
            raise InvariantViolation(f"Claim kind {self.claim.kind!r} does not match delta {kind!r}")

    def to_dict(self) -> Dict[str, Any]:
        """Summary for reports."""
        return {
            **self.claim.to_dict(),
            'account_key': self.account_key.hex(),
            'account_levels': len(self.address_trace),
            'storage_levels': len(self.storage_trace),
            'hash_steps': len(self.hash_steps),
        }


def _resolve_storage_key(
    trace: SMTTrace,
    slots: Pair,
    config: VerifierConfig,
    hasher: Hasher,
) -> Fr:
    present = [slot for slot in slots if slot is not None]
    derived = storage_key(present[0].key, hasher) if present else None
    claimed = trace.state_key
    if derived is None and claimed is None:
        raise MalformedTrace("Storage path present but no storage key can be determined")
    if config.check_storage_key and derived is not None and claimed is not None and derived != claimed:
        raise MalformedTrace(
            f"Storage key {claimed.hex()} does not match derived key {derived.hex()}"
        )
    return derived if derived is not None else claimed


def prove(trace: SMTTrace, config: VerifierConfig = DEFAULT_CONFIG, hasher: Optional[Hasher] = None) -> Proof:
    """Assemble and check a Proof."""
    proof = Proof.from_trace(trace, config, hasher)
    proof.check(config)
    return proof
