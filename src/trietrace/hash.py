"""
Compression Function

H(a, b) is Poseidon over the BN254 scalar field with the iden3/circomlib
parameters for two inputs (state width 3, 8 full rounds, 57 partial rounds,
capacity element zero). The permutation itself comes from `circomlibpy`.

The Hasher wraps H with bookkeeping: each call is recorded as a HashStep
(role, left, right, result) so the full set of compressions behind a proof
can be handed to a circuit layer, and reported to an optional Tracer.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import List, Optional

from circomlibpy.poseidon import PoseidonHash

from .field import Fr
from .tags import HashRole
from .tracing import Tracer


_POSEIDON = PoseidonHash()


def poseidon_hash(left: Fr, right: Fr) -> Fr:
    """H(left, right) -> Fr"""
    return Fr(_POSEIDON.hash(2, [left.value, right.value]))


@dataclass(frozen=True)
class HashStep:
    """One verified compression: result == H(left, right)."""
    role: HashRole
    left: Fr
    right: Fr
    result: Fr

    def verify(self) -> bool:
        """Recompute the step."""
        return poseidon_hash(self.left, self.right) == self.result


class Hasher:
    """
    Recording compression function.

    A Hasher is cheap and holds per-verification state (its step log), so
    each verification uses its own instance.
    """

    def __init__(self, tracer: Optional[Tracer] = None):
        self.tracer = tracer if tracer is not None else Tracer()
        self.steps: List[HashStep] = []

    def __call__(self, role: HashRole, left: Fr, right: Fr) -> Fr:
        result = poseidon_hash(left, right)
        self.steps.append(HashStep(role, left, right, result))
        if self.tracer.enabled:
            self.tracer.emit('hash', role=role.name, left=left, right=right, result=result)
        return result

    def mark(self) -> int:
        """Current position in the step log."""
        return len(self.steps)

    def since(self, mark: int) -> List[HashStep]:
        """Steps recorded after `mark`."""
        return self.steps[mark:]
