"""
trietrace: Sparse Merkle Trie Trace Verification

Verifies state-transition traces recorded against a sparse Merkle trie
hashed with Poseidon over the BN254 scalar field.

For each trace record:
- every path is recomputed from leaf to root and checked against its root
- account and storage leaf values are rebuilt from their structured fields
- the before/after delta is classified into exactly one claim
  (read, write, or non-existence)

The resulting Proof carries the claim, the zipped before/after hash traces
and every compression performed, for consumption by a circuit layer.
"""

from .field import Fr, MODULUS
from .tags import HashRole
from .hash import HashStep, Hasher, poseidon_hash
from .errors import (
    TraceVerificationError,
    MalformedTrace,
    RootMismatch,
    UnsupportedUpdate,
    InvariantViolation,
)
from .key import (
    account_key,
    storage_key,
    address_bit,
    direction_bits,
    check_directions,
)
from .path import (
    PathNode,
    LeafRecord,
    CompressedPath,
    TriePath,
    PathVerification,
    leaf_digest,
    verify_path,
    verify_trie_path,
)
from .account import (
    AccountRecord,
    StorageSlot,
    hi_lo,
    balance_to_field,
    account_leaf_digest,
    storage_value_digest,
    storage_leaf_digest,
)
from .claim import (
    Claim,
    ClaimKind,
    Read,
    Write,
    IsEmpty,
    ReadNonce,
    ReadBalance,
    ReadCodeHash,
    ReadStorage,
    WriteNonce,
    WriteBalance,
    WriteCodeHash,
    WriteStorage,
    classify,
)
from .trace import (
    SMTTrace,
    trace_from_dict,
    trace_to_dict,
    parse_traces,
    load_traces,
    dump_traces,
)
from .proof import HashTraceLevel, Proof, prove
from .config import VerifierConfig
from .tracing import Tracer, logging_hook
from .verifier import (
    TraceVerifier,
    VerificationResult,
    BatchReport,
    verify_trace,
    verify_traces,
)

__version__ = '0.1.0'

__all__ = [
    # Field
    'Fr',
    'MODULUS',

    # Hashing
    'HashRole',
    'HashStep',
    'Hasher',
    'poseidon_hash',

    # Errors
    'TraceVerificationError',
    'MalformedTrace',
    'RootMismatch',
    'UnsupportedUpdate',
    'InvariantViolation',

    # Keys
    'account_key',
    'storage_key',
    'address_bit',
    'direction_bits',
    'check_directions',

    # Paths
    'PathNode',
    'LeafRecord',
    'CompressedPath',
    'TriePath',
    'PathVerification',
    'leaf_digest',
    'verify_path',
    'verify_trie_path',

    # Leaves
    'AccountRecord',
    'StorageSlot',
    'hi_lo',
    'balance_to_field',
    'account_leaf_digest',
    'storage_value_digest',
    'storage_leaf_digest',

    # Claims
    'Claim',
    'ClaimKind',
    'Read',
    'Write',
    'IsEmpty',
    'ReadNonce',
    'ReadBalance',
    'ReadCodeHash',
    'ReadStorage',
    'WriteNonce',
    'WriteBalance',
    'WriteCodeHash',
    'WriteStorage',
    'classify',

    # Traces
    'SMTTrace',
    'trace_from_dict',
    'trace_to_dict',
    'parse_traces',
    'load_traces',
    'dump_traces',

    # Proofs
    'HashTraceLevel',
    'Proof',
    'prove',

    # Verification
    'VerifierConfig',
    'Tracer',
    'logging_hook',
    'TraceVerifier',
    'VerificationResult',
    'BatchReport',
    'verify_trace',
    'verify_traces',

    '__version__',
]
