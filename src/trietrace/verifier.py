"""
Batch Verification

TraceVerifier is the record boundary: it assembles and checks a Proof for
each trace, catches verification failures per record, stamps them with the
record index and reports them. A failed record never yields a Proof.

Records are independent, so a batch may be spread over a thread pool; results
always come back in input order.
"""

from __future__ import annotations
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from .config import DEFAULT_CONFIG, VerifierConfig
from .errors import TraceVerificationError
from .hash import Hasher
from .proof import Proof
from .trace import SMTTrace
from .tracing import Tracer


LOGGER = logging.getLogger(__name__)


@dataclass
class VerificationResult:
    """Outcome of verifying one trace record."""
    index: int
    valid: bool
    proof: Optional[Proof] = None
    error: Optional[str] = None
    kind: Optional[str] = None
    level: Optional[int] = None
    fingerprint: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            'index': self.index,
            'valid': self.valid,
            'fingerprint': self.fingerprint,
        }
        if self.proof is not None:
            result['proof'] = self.proof.to_dict()
        else:
            result.update(error=self.error, kind=self.kind, level=self.level)
        return result


@dataclass
class BatchReport:
    """Results of a batch, in input order."""
    results: List[VerificationResult] = field(default_factory=list)
    total: int = 0

    @property
    def valid(self) -> bool:
        """Every record was verified and passed."""
        return len(self.results) == self.total and all(r.valid for r in self.results)

    @property
    def proofs(self) -> List[Proof]:
        return [r.proof for r in self.results if r.proof is not None]

    @property
    def failures(self) -> List[VerificationResult]:
        return [r for r in self.results if not r.valid]

    @property
    def first_failure(self) -> Optional[VerificationResult]:
        failures = self.failures
        return failures[0] if failures else None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'valid': self.valid,
            'total': self.total,
            'verified': len(self.results),
            'failed': len(self.failures),
            'results': [r.to_dict() for r in self.results],
        }


class TraceVerifier:
    """
    Verify trace records one by one or in batches.

    Each record gets its own Hasher, so a verifier can be shared across
    threads.
    """

    def __init__(self, config: VerifierConfig = DEFAULT_CONFIG, tracer: Optional[Tracer] = None):
        self.config = config
        self.tracer = tracer

    def prove(self, trace: SMTTrace, index: Optional[int] = None) -> Proof:
        """
        Assemble and check a Proof, raising on failure.

        Raises:
            TraceVerificationError: stamped with `index` when given
        """
        try:
            proof = Proof.from_trace(trace, self.config, Hasher(self.tracer))
            proof.check(self.config)
        except TraceVerificationError as e:
            if index is not None:
                e.at_record(index)
            raise
        return proof

    def verify(self, trace: SMTTrace, index: int = 0) -> VerificationResult:
        """Verify one record without raising on verification failure."""
        fingerprint = trace.fingerprint()
        try:
            proof = self.prove(trace, index)
        except TraceVerificationError as e:
            LOGGER.warning("Record %d (%s) failed: %s", index, fingerprint[:16], e)
            if self.tracer is not None:
                self.tracer.emit('record.failed', index=index, kind=e.kind, level=e.level, message=e.message)
            return VerificationResult(
                index=index,
                valid=False,
                error=e.message,
                kind=e.kind,
                level=e.level,
                fingerprint=fingerprint,
            )

        LOGGER.debug("Record %d (%s) verified: %s", index, fingerprint[:16], proof.kind.name)
        if self.tracer is not None:
            self.tracer.emit('record.verified', index=index, claim=proof.kind)
        return VerificationResult(index=index, valid=True, proof=proof, fingerprint=fingerprint)

    def verify_batch(self, traces: Iterable[SMTTrace]) -> BatchReport:
        """
        Verify a batch of records.

        With `fail_fast` the report ends at the first failing record; records
        after it are not reported even when a thread pool already ran them.
        """
        traces = list(traces)
        report = BatchReport(total=len(traces))

        if self.config.parallel and len(traces) > 1:
            from concurrent.futures import ThreadPoolExecutor
            with ThreadPoolExecutor(max_workers=self.config.max_workers) as executor:
                results = list(executor.map(self.verify, traces, range(len(traces))))
        else:
            results = self._verify_sequential(traces)

        for result in results:
            report.results.append(result)
            if not result.valid and self.config.fail_fast:
                break

        LOGGER.info(
            "Verified %d/%d records, %d failed",
            len(report.results) - len(report.failures), report.total, len(report.failures),
        )
        return report

    def _verify_sequential(self, traces: List[SMTTrace]) -> Iterable[VerificationResult]:
        for index, trace in enumerate(traces):
            result = self.verify(trace, index)
            yield result
            if not result.valid and self.config.fail_fast:
                return


def verify_trace(trace: SMTTrace, config: VerifierConfig = DEFAULT_CONFIG) -> Proof:
    """
    Convenience function to verify a single trace.

    Returns:
        The checked Proof

    Raises:
        TraceVerificationError: the trace does not verify
    """
    return TraceVerifier(config).prove(trace)


def verify_traces(traces: Iterable[SMTTrace], config: VerifierConfig = DEFAULT_CONFIG) -> List[Proof]:
    """
    Convenience function to verify traces in order.

    Raises:
        TraceVerificationError: first failing record, with its index stamped
    """
    verifier = TraceVerifier(config)
    return [verifier.prove(trace, index) for index, trace in enumerate(traces)]
