"""
Verification Errors

Every failed check raises a TraceVerificationError subclass naming the kind
of failure, the trie level it was detected at (leaf-first, when it applies)
and, once the batch verifier has seen it, the index of the trace record.
"""

from __future__ import annotations
from typing import Optional


class TraceVerificationError(Exception):
    """Base class for trace verification failures."""

    kind = 'error'

    def __init__(self, message: str, level: Optional[int] = None, index: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.level = level
        self.index = index

    def at_record(self, index: int) -> TraceVerificationError:
        """Stamp the record index (returns self for re-raising)."""
        self.index = index
        return self

    def __str__(self) -> str:
        where = []
        if self.index is not None:
            where.append(f"record {self.index}")
        if self.level is not None:
            where.append(f"level {self.level}")
        if where:
            return f"{self.message} ({', '.join(where)})"
        return self.message


class MalformedTrace(TraceVerificationError):
    """Trace is structurally present but internally inconsistent."""
    kind = 'malformed'


class RootMismatch(TraceVerificationError):
    """Recomputed root disagrees with the claimed root."""
    kind = 'root_mismatch'

    def __init__(self, message: str, expected=None, actual=None,
                 level: Optional[int] = None, index: Optional[int] = None):
        super().__init__(message, level=level, index=index)
        self.expected = expected
        self.actual = actual


class UnsupportedUpdate(TraceVerificationError):
    """Known but unmodelled update (self-destruct, slot deletion)."""
    kind = 'unsupported'


class InvariantViolation(TraceVerificationError):
    """A guarantee of the trace format does not hold."""
    kind = 'invariant'
