"""
Verifier Configuration

VerifierConfig selects which cross-checks run and how a batch is processed.
All fields are immutable; use `replace` to derive a modified copy.
"""

from __future__ import annotations
import dataclasses
from dataclasses import dataclass
from typing import Any, Mapping, Optional


@dataclass(frozen=True)
class VerifierConfig:
    """
    Verification policy.

    The defaults enforce every check; switching one off is meant for
    diagnosing producer bugs, not for accepting traces.
    """

    # ==========================================================================
    # Cross-checks
    # ==========================================================================

    check_account_key: bool = True
    """Derived account key must equal the trace's claimed key."""

    check_storage_key: bool = True
    """Derived storage key must equal the trace's claimed state key."""

    check_leaf_values: bool = True
    """
    Leaf digests must match the structured account and slot records.

    With this off, nothing ties the claim's values to a leaf. Such a proof
    must not be handed to a circuit layer; run `Proof.check()` with the
    default config first.
    """

    # ==========================================================================
    # Batch processing
    # ==========================================================================

    fail_fast: bool = True
    """Stop a batch at the first failing record."""

    parallel: bool = False
    """Verify batch records on a thread pool."""

    max_workers: Optional[int] = None
    """Thread pool size (None: executor default)."""

    def __post_init__(self):
        if self.max_workers is not None and self.max_workers < 1:
            raise ValueError(f"max_workers must be positive, got {self.max_workers}")

    def replace(self, **changes: Any) -> VerifierConfig:
        return dataclasses.replace(self, **changes)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> VerifierConfig:
        """Build from a mapping (e.g. parsed JSON); unknown keys are rejected."""
        known = {f.name for f in dataclasses.fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ValueError(f"Unknown config keys: {', '.join(unknown)}")
        return cls(**dict(data))

    def to_dict(self) -> dict:
        return dataclasses.asdict(self)


DEFAULT_CONFIG = VerifierConfig()
