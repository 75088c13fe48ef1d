"""
Claims and Classification

A Claim is the semantic summary of one trace: the old and new roots, the
address, and exactly one ClaimKind. The set of kinds is closed:

    IsEmpty(storage_key)
    Read:  ReadNonce, ReadBalance, ReadCodeHash, ReadStorage
    Write: WriteNonce, WriteBalance, WriteCodeHash, WriteStorage

Write variants carry optional old/new values; old is None for a creation.

classify() maps the before/after account records and the optional storage
slot pair onto one of these kinds. Storage changes are examined first; only
when no slot is involved does the account delta decide.
"""

from __future__ import annotations
from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional, Tuple

from .account import AccountRecord, StorageSlot
from .errors import InvariantViolation, MalformedTrace, UnsupportedUpdate
from .field import Fr


class ClaimKind:
    """Base of all claim kinds."""

    @property
    def name(self) -> str:
        return type(self).__name__

    def to_dict(self) -> Dict[str, Any]:
        return {'kind': self.name, **asdict(self)}


class Read(ClaimKind):
    """Value observed, unchanged."""


class Write(ClaimKind):
    """Exactly one field changed."""


@dataclass(frozen=True)
class IsEmpty(ClaimKind):
    """No account before or after."""
    storage_key: Optional[int] = None


@dataclass(frozen=True)
class ReadNonce(Read):
    value: int


@dataclass(frozen=True)
class ReadBalance(Read):
    value: int


@dataclass(frozen=True)
class ReadCodeHash(Read):
    value: int


@dataclass(frozen=True)
class ReadStorage(Read):
    key: int
    value: int


@dataclass(frozen=True)
class WriteNonce(Write):
    old: Optional[int]
    new: Optional[int]


@dataclass(frozen=True)
class WriteBalance(Write):
    old: Optional[int]
    new: Optional[int]


@dataclass(frozen=True)
class WriteCodeHash(Write):
    old: Optional[int]
    new: Optional[int]


@dataclass(frozen=True)
class WriteStorage(Write):
    key: int
    old_value: Optional[int]
    new_value: Optional[int]


@dataclass(frozen=True)
class Claim:
    """What a verified trace proves."""
    old_root: Fr
    new_root: Fr
    address: bytes
    kind: ClaimKind

    def to_dict(self) -> Dict[str, Any]:
        return {
            'old_root': self.old_root.hex(),
            'new_root': self.new_root.hex(),
            'address': '0x' + self.address.hex(),
            **self.kind.to_dict(),
        }


# Account fields in classification order, with their write variant.
ACCOUNT_FIELDS = (
    ('nonce', WriteNonce),
    ('balance', WriteBalance),
    ('code_hash', WriteCodeHash),
)


StorageUpdate = Tuple[Optional[StorageSlot], Optional[StorageSlot]]


def classify(
    before: Optional[AccountRecord],
    after: Optional[AccountRecord],
    storage_update: Optional[StorageUpdate] = None,
) -> ClaimKind:
    """
    Classify a before/after delta into exactly one ClaimKind.

    Args:
        before: Account before the update, None if absent
        after: Account after the update, None if absent
        storage_update: (before, after) slot pair, or None if no slot is involved

    Returns:
        The single matching ClaimKind

    Raises:
        UnsupportedUpdate: slot deletion or account removal
        InvariantViolation: account changed alongside a slot, or more than
            one account field changed
        MalformedTrace: account created with every field zero
    """
    if storage_update is not None:
        kind = _classify_storage(before, after, storage_update)
        if kind is not None:
            return kind
    return _classify_account(before, after)


def _classify_storage(
    before: Optional[AccountRecord],
    after: Optional[AccountRecord],
    storage_update: StorageUpdate,
) -> Optional[ClaimKind]:
    old, new = storage_update
    if old is None and new is None:
        return None
    if new is None:
        raise UnsupportedUpdate(f"Storage slot deletion is not supported (slot {old.key:#x})")
    if before != after:
        raise InvariantViolation("Account record changed alongside a storage update")
    if old is None:
        return WriteStorage(key=new.key, old_value=None, new_value=new.value)
    if old.key != new.key:
        raise MalformedTrace(f"Storage key changed across update: {old.key:#x} -> {new.key:#x}")
    if old.value == new.value:
        return ReadStorage(key=old.key, value=old.value)
    return WriteStorage(key=old.key, old_value=old.value, new_value=new.value)


def _classify_account(
    before: Optional[AccountRecord],
    after: Optional[AccountRecord],
) -> ClaimKind:
    if before is None and after is None:
        return IsEmpty(None)

    if after is None:
        raise UnsupportedUpdate("Account removal (self-destruct) is not supported")

    if before is None:
        created = [(name, write) for name, write in ACCOUNT_FIELDS if getattr(after, name) != 0]
        if not created:
            raise MalformedTrace("Account created with every field zero")
        if len(created) > 1:
            raise InvariantViolation(
                f"Account created with more than one non-zero field: "
                f"{', '.join(name for name, _ in created)}"
            )
        name, write = created[0]
        return write(old=None, new=getattr(after, name))

    changed = [
        (name, write) for name, write in ACCOUNT_FIELDS
        if getattr(before, name) != getattr(after, name)
    ]
    if not changed:
        # No marker says which field was read; nonce is the documented fallback.
        return ReadNonce(before.nonce)
    if len(changed) > 1:
        raise InvariantViolation(
            f"More than one account field changed: {', '.join(name for name, _ in changed)}"
        )
    name, write = changed[0]
    return write(old=getattr(before, name), new=getattr(after, name))
