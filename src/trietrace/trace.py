"""
Trace Records

An SMTTrace describes one address update: the account's trie path before
and after, the account records, and, when a storage slot is involved, the
storage trie paths and slots.

JSON binding (one object per record, camelCase keys):

    address          0x-prefixed 20-byte hex
    accountKey       field element
    accountPath      [side, side]
    accountUpdate    [account | null, account | null]
    commonStateRoot  field element | null
    statePath        [side | null, side | null]
    stateKey         field element | null
    stateUpdate      null | [slot | null, slot | null]

    side     {"root": fe, "leaf": {"value": fe, "sibling": fe} | null,
              "path": [{"value": fe, "sibling": fe}, ...], "pathPart": hex}
    account  {"nonce": int, "balance": hex, "codeHash": hex}
    slot     {"key": hex32, "value": hex32}

Field elements ("fe") are 32-byte little-endian hex. The `path` array is
stored root-first and reversed on load, since paths are leaf-first here.
A leaf's `sibling` carries its key residue.
"""

from __future__ import annotations
import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

import blake3

from .account import AccountRecord, StorageSlot
from .errors import MalformedTrace
from .field import FIELD_BYTES, Fr
from .key import ADDRESS_BYTES
from .path import CompressedPath, LeafRecord, PathNode, TriePath


@dataclass(frozen=True)
class SMTTrace:
    """One address update as recorded by the trace producer."""
    address: bytes
    account_key: Fr
    account_path: Tuple[TriePath, TriePath]
    account_update: Tuple[Optional[AccountRecord], Optional[AccountRecord]]
    common_state_root: Optional[Fr] = None
    state_path: Tuple[Optional[TriePath], Optional[TriePath]] = (None, None)
    state_key: Optional[Fr] = None
    state_update: Optional[Tuple[Optional[StorageSlot], Optional[StorageSlot]]] = None

    @property
    def has_storage_path(self) -> bool:
        return self.state_path[0] is not None or self.state_path[1] is not None

    def to_dict(self) -> Dict[str, Any]:
        return trace_to_dict(self)

    def fingerprint(self) -> str:
        """BLAKE3 of the canonical JSON form, hex."""
        canonical = json.dumps(self.to_dict(), sort_keys=True, separators=(',', ':'))
        return blake3.blake3(canonical.encode('utf-8')).hexdigest()


# =============================================================================
# Decoding
# =============================================================================

def _hex_bytes(value: Any, length: int, what: str) -> bytes:
    if not isinstance(value, str) or not value.startswith('0x'):
        raise MalformedTrace(f"{what}: expected 0x-prefixed hex, got {value!r}")
    try:
        data = bytes.fromhex(value[2:])
    except ValueError as e:
        raise MalformedTrace(f"{what}: invalid hex {value!r}") from e
    if len(data) != length:
        raise MalformedTrace(f"{what}: expected {length} bytes, got {len(data)}")
    return data


def _fr(value: Any, what: str) -> Fr:
    try:
        return Fr.from_bytes(_hex_bytes(value, FIELD_BYTES, what))
    except ValueError as e:
        raise MalformedTrace(f"{what}: {e}") from e


def _uint(value: Any, what: str) -> int:
    if isinstance(value, bool):
        raise MalformedTrace(f"{what}: expected integer, got {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value, 16) if value.startswith('0x') else int(value)
        except ValueError as e:
            raise MalformedTrace(f"{what}: invalid integer {value!r}") from e
    raise MalformedTrace(f"{what}: expected integer, got {value!r}")


def _pair(value: Any, what: str) -> Tuple[Any, Any]:
    if not isinstance(value, (list, tuple)) or len(value) != 2:
        raise MalformedTrace(f"{what}: expected a [before, after] pair")
    return value[0], value[1]


def _require(data: Dict[str, Any], key: str, what: str) -> Any:
    if not isinstance(data, dict):
        raise MalformedTrace(f"{what}: expected an object, got {data!r}")
    if key not in data:
        raise MalformedTrace(f"{what}: missing '{key}'")
    return data[key]


def trie_path_from_dict(data: Dict[str, Any], what: str = 'path') -> TriePath:
    """Decode one side of a trie proof."""
    if not isinstance(data, dict):
        raise MalformedTrace(f"{what}: expected an object")
    raw_nodes = _require(data, 'path', what)
    if not isinstance(raw_nodes, list):
        raise MalformedTrace(f"{what}: 'path' must be a list")
    nodes = tuple(
        PathNode(
            value=_fr(_require(node, 'value', what), f"{what}.path[{i}].value"),
            sibling=_fr(_require(node, 'sibling', what), f"{what}.path[{i}].sibling"),
        )
        for i, node in reversed(list(enumerate(raw_nodes)))
    )
    leaf = None
    raw_leaf = data.get('leaf')
    if raw_leaf is not None:
        leaf = LeafRecord(
            key_residue=_fr(_require(raw_leaf, 'sibling', what), f"{what}.leaf.sibling"),
            value=_fr(_require(raw_leaf, 'value', what), f"{what}.leaf.value"),
        )
    return TriePath(
        path=CompressedPath(nodes=nodes, path_part=_uint(_require(data, 'pathPart', what), f"{what}.pathPart")),
        leaf=leaf,
        root=_fr(_require(data, 'root', what), f"{what}.root"),
    )


def account_from_dict(data: Optional[Dict[str, Any]], what: str = 'account') -> Optional[AccountRecord]:
    if data is None:
        return None
    if not isinstance(data, dict):
        raise MalformedTrace(f"{what}: expected an object")
    return AccountRecord(
        nonce=_uint(data.get('nonce', 0), f"{what}.nonce"),
        balance=_uint(data.get('balance', 0), f"{what}.balance"),
        code_hash=_uint(data.get('codeHash', 0), f"{what}.codeHash"),
    )


def slot_from_dict(data: Optional[Dict[str, Any]], what: str = 'slot') -> Optional[StorageSlot]:
    if data is None:
        return None
    return StorageSlot(
        key=_uint(_require(data, 'key', what), f"{what}.key"),
        value=_uint(_require(data, 'value', what), f"{what}.value"),
    )


def _optional(value: Any, decode, what: str):
    return None if value is None else decode(value, what)


def trace_from_dict(data: Dict[str, Any]) -> SMTTrace:
    """
    Decode a trace record from its JSON object.

    Raises:
        MalformedTrace: missing keys, bad hex, or out-of-range values
    """
    if not isinstance(data, dict):
        raise MalformedTrace("trace: expected an object")

    before_path, after_path = _pair(_require(data, 'accountPath', 'trace'), 'accountPath')
    before_acc, after_acc = _pair(_require(data, 'accountUpdate', 'trace'), 'accountUpdate')
    before_state, after_state = _pair(data.get('statePath') or [None, None], 'statePath')

    state_update = None
    raw_update = data.get('stateUpdate')
    if raw_update is not None:
        old_slot, new_slot = _pair(raw_update, 'stateUpdate')
        state_update = (
            slot_from_dict(old_slot, 'stateUpdate[0]'),
            slot_from_dict(new_slot, 'stateUpdate[1]'),
        )

    return SMTTrace(
        address=_hex_bytes(_require(data, 'address', 'trace'), ADDRESS_BYTES, 'address'),
        account_key=_fr(_require(data, 'accountKey', 'trace'), 'accountKey'),
        account_path=(
            trie_path_from_dict(before_path, 'accountPath[0]'),
            trie_path_from_dict(after_path, 'accountPath[1]'),
        ),
        account_update=(
            account_from_dict(before_acc, 'accountUpdate[0]'),
            account_from_dict(after_acc, 'accountUpdate[1]'),
        ),
        common_state_root=_optional(data.get('commonStateRoot'), _fr, 'commonStateRoot'),
        state_path=(
            _optional(before_state, trie_path_from_dict, 'statePath[0]'),
            _optional(after_state, trie_path_from_dict, 'statePath[1]'),
        ),
        state_key=_optional(data.get('stateKey'), _fr, 'stateKey'),
        state_update=state_update,
    )


# =============================================================================
# Encoding
# =============================================================================

def _fe_hex(value: Fr) -> str:
    return '0x' + value.to_bytes().hex()


def _u256_hex(value: int) -> str:
    return '0x' + value.to_bytes(32, 'big').hex()


def trie_path_to_dict(side: TriePath) -> Dict[str, Any]:
    return {
        'root': _fe_hex(side.root),
        'leaf': None if side.leaf is None else {
            'value': _fe_hex(side.leaf.value),
            'sibling': _fe_hex(side.leaf.key_residue),
        },
        'path': [
            {'value': _fe_hex(node.value), 'sibling': _fe_hex(node.sibling)}
            for node in reversed(side.path.nodes)
        ],
        'pathPart': hex(side.path.path_part),
    }


def account_to_dict(account: Optional[AccountRecord]) -> Optional[Dict[str, Any]]:
    if account is None:
        return None
    return {
        'nonce': account.nonce,
        'balance': hex(account.balance),
        'codeHash': hex(account.code_hash),
    }


def slot_to_dict(slot: Optional[StorageSlot]) -> Optional[Dict[str, Any]]:
    if slot is None:
        return None
    return {'key': _u256_hex(slot.key), 'value': _u256_hex(slot.value)}


def trace_to_dict(trace: SMTTrace) -> Dict[str, Any]:
    """Encode a trace record into its JSON object."""
    return {
        'address': '0x' + trace.address.hex(),
        'accountKey': _fe_hex(trace.account_key),
        'accountPath': [trie_path_to_dict(side) for side in trace.account_path],
        'accountUpdate': [account_to_dict(acc) for acc in trace.account_update],
        'commonStateRoot': None if trace.common_state_root is None else _fe_hex(trace.common_state_root),
        'statePath': [None if side is None else trie_path_to_dict(side) for side in trace.state_path],
        'stateKey': None if trace.state_key is None else _fe_hex(trace.state_key),
        'stateUpdate': None if trace.state_update is None else [slot_to_dict(s) for s in trace.state_update],
    }


# =============================================================================
# Files
# =============================================================================

def parse_traces(document: Any) -> List[SMTTrace]:
    """Decode a JSON document holding one record or a list of records."""
    if isinstance(document, dict):
        document = [document]
    if not isinstance(document, list):
        raise MalformedTrace("Trace document must be an object or a list of objects")
    traces = []
    for i, record in enumerate(document):
        try:
            traces.append(trace_from_dict(record))
        except MalformedTrace as e:
            raise e.at_record(i)
    return traces


def load_traces(path: Union[str, Path]) -> List[SMTTrace]:
    """Read trace records from a JSON file."""
    with open(path, 'r', encoding='utf-8') as f:
        try:
            document = json.load(f)
        except json.JSONDecodeError as e:
            raise MalformedTrace(f"{path}: invalid JSON: {e}") from e
    return parse_traces(document)


def dump_traces(traces: List[SMTTrace], path: Union[str, Path]) -> None:
    """Write trace records to a JSON file."""
    with open(path, 'w', encoding='utf-8') as f:
        json.dump([trace_to_dict(t) for t in traces], f, indent=2)
        f.write('\n')
