"""
Tests for batch verification, configuration and tracing.
"""

import dataclasses
import logging

import pytest

from trietrace import (
    Fr,
    MalformedTrace,
    RootMismatch,
    Tracer,
    TraceVerifier,
    VerifierConfig,
    logging_hook,
    verify_trace,
    verify_traces,
)


def break_root(trace):
    before, after = trace.account_path
    return dataclasses.replace(
        trace, account_path=(before, dataclasses.replace(after, root=after.root + Fr.one())),
    )


@pytest.fixture(scope='module')
def mixed_batch(recorded_traces):
    """Records 0-6 with record 2 broken."""
    traces = list(recorded_traces)
    traces[2] = break_root(traces[2])
    return traces


class TestVerifierConfig:
    """Tests for VerifierConfig."""

    def test_defaults(self):
        config = VerifierConfig()
        assert config.check_account_key
        assert config.check_leaf_values
        assert config.fail_fast
        assert not config.parallel

    def test_from_mapping(self):
        config = VerifierConfig.from_mapping({'fail_fast': False, 'max_workers': 2})
        assert not config.fail_fast
        assert config.max_workers == 2

    def test_unknown_key(self):
        with pytest.raises(ValueError):
            VerifierConfig.from_mapping({'fail_slow': True})

    def test_bad_workers(self):
        with pytest.raises(ValueError):
            VerifierConfig(max_workers=0)

    def test_replace(self):
        config = VerifierConfig().replace(parallel=True)
        assert config.parallel
        assert config.to_dict()['parallel'] is True

    def test_frozen(self):
        with pytest.raises(dataclasses.FrozenInstanceError):
            VerifierConfig().fail_fast = False


class TestTraceVerifier:
    """Tests for TraceVerifier."""

    def test_verify_valid(self, recorded_traces):
        result = TraceVerifier().verify(recorded_traces[0], index=4)
        assert result.valid
        assert result.index == 4
        assert result.proof is not None
        assert result.error is None
        assert result.fingerprint == recorded_traces[0].fingerprint()

    def test_verify_invalid(self, recorded_traces):
        """A failure is reported, never a Proof."""
        result = TraceVerifier().verify(break_root(recorded_traces[0]), index=9)
        assert not result.valid
        assert result.proof is None
        assert result.kind == 'root_mismatch'
        assert result.level == 4
        assert result.to_dict()['kind'] == 'root_mismatch'

    def test_batch_all_valid(self, recorded_traces):
        report = TraceVerifier().verify_batch(recorded_traces)
        assert report.valid
        assert len(report.proofs) == 7
        assert report.first_failure is None

    def test_batch_fail_fast(self, mixed_batch):
        """Processing stops at the offending record."""
        report = TraceVerifier().verify_batch(mixed_batch)
        assert not report.valid
        assert len(report.results) == 3
        assert report.first_failure.index == 2
        assert len(report.proofs) == 2

    def test_batch_keep_going(self, mixed_batch):
        """Without fail_fast every record is reported."""
        report = TraceVerifier(VerifierConfig(fail_fast=False)).verify_batch(mixed_batch)
        assert len(report.results) == 7
        assert [r.index for r in report.failures] == [2]
        assert len(report.proofs) == 6
        assert report.to_dict()['failed'] == 1

    def test_batch_parallel(self, recorded_traces, mixed_batch):
        """Thread-pool results match sequential results, in order."""
        config = VerifierConfig(parallel=True, max_workers=3, fail_fast=False)
        parallel = TraceVerifier(config).verify_batch(mixed_batch)
        sequential = TraceVerifier(config.replace(parallel=False)).verify_batch(mixed_batch)
        assert [r.index for r in parallel.results] == list(range(7))
        assert [r.valid for r in parallel.results] == [r.valid for r in sequential.results]
        assert parallel.proofs == sequential.proofs

    def test_batch_parallel_fail_fast(self, mixed_batch):
        config = VerifierConfig(parallel=True, max_workers=2)
        report = TraceVerifier(config).verify_batch(mixed_batch)
        assert len(report.results) == 3
        assert not report.valid

    def test_empty_batch(self):
        report = TraceVerifier().verify_batch([])
        assert report.valid
        assert report.results == []

    def test_logs_failures(self, mixed_batch, caplog):
        with caplog.at_level(logging.WARNING, logger='trietrace.verifier'):
            TraceVerifier().verify_batch(mixed_batch)
        assert any('Record 2' in r.getMessage() for r in caplog.records)

    def test_tracer_events(self, recorded_traces):
        events = []
        tracer = Tracer([lambda event, fields: events.append((event, fields))])
        TraceVerifier(tracer=tracer).verify(recorded_traces[0])
        names = [event for event, _ in events]
        assert names.count('proof.assembled') == 1
        assert names[-1] == 'record.verified'
        assert 'hash' in names


class TestConvenience:
    """Tests for verify_trace and verify_traces."""

    def test_verify_trace(self, recorded_traces):
        proof = verify_trace(recorded_traces[3])
        assert proof.kind.name == 'WriteNonce'

    def test_verify_trace_raises(self, recorded_traces):
        with pytest.raises(RootMismatch):
            verify_trace(break_root(recorded_traces[0]))

    def test_verify_traces(self, recorded_traces):
        assert len(verify_traces(recorded_traces)) == 7

    def test_verify_traces_stamps_index(self, mixed_batch):
        with pytest.raises(RootMismatch) as info:
            verify_traces(mixed_batch)
        assert info.value.index == 2

    def test_relaxed_config(self, recorded_traces):
        trace = dataclasses.replace(recorded_traces[0], account_key=Fr(1))
        with pytest.raises(MalformedTrace):
            verify_trace(trace)
        verify_trace(trace, VerifierConfig(check_account_key=False))


class TestTracing:
    """Tests for Tracer and logging_hook."""

    def test_disabled_by_default(self):
        assert not Tracer().enabled

    def test_attach_detach(self):
        seen = []
        tracer = Tracer()
        hook = tracer.attach(lambda event, fields: seen.append(event))
        tracer.emit('a', x=1)
        tracer.detach(hook)
        tracer.emit('b')
        assert seen == ['a']

    def test_logging_hook(self, caplog):
        logger = logging.getLogger('trietrace.test')
        tracer = Tracer([logging_hook(logger)])
        with caplog.at_level(logging.DEBUG, logger='trietrace.test'):
            tracer.emit('path.root', root=Fr(1), level=3)
        assert caplog.records[0].getMessage() == f"path.root root={Fr(1).hex()} level=3"
