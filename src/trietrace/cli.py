"""
trietrace command line

Usage:
    trietrace verify FILE [FILE ...] [--keep-going] [--parallel] [--workers N]
                                     [--config JSON] [--json] [-v]
    trietrace key ADDRESS
    trietrace hash A B
"""

from __future__ import annotations
import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from .config import VerifierConfig
from .errors import TraceVerificationError
from .field import Fr
from .hash import poseidon_hash
from .key import account_key
from .trace import load_traces
from .tracing import Tracer, logging_hook
from .verifier import TraceVerifier


LOGGER = logging.getLogger('trietrace')


def _field_arg(text: str) -> Fr:
    try:
        value = int(text, 16) if text.lower().startswith('0x') else int(text)
        return Fr.from_canonical(value)
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"not a field element: {text}") from e


def _address_arg(text: str) -> bytes:
    digits = text[2:] if text.lower().startswith('0x') else text
    try:
        address = bytes.fromhex(digits)
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"not a hex address: {text}") from e
    if len(address) != 20:
        raise argparse.ArgumentTypeError(f"address must be 20 bytes: {text}")
    return address


def _load_config(args: argparse.Namespace) -> VerifierConfig:
    config = VerifierConfig()
    if args.config is not None:
        with open(args.config, 'r', encoding='utf-8') as f:
            config = VerifierConfig.from_mapping(json.load(f))
    changes = {}
    if args.keep_going:
        changes['fail_fast'] = False
    if args.parallel:
        changes['parallel'] = True
    if args.workers is not None:
        changes['max_workers'] = args.workers
    return config.replace(**changes) if changes else config


def cmd_verify(args: argparse.Namespace) -> int:
    try:
        config = _load_config(args)
    except (OSError, ValueError) as e:
        print(f"trietrace: bad config: {e}", file=sys.stderr)
        return 2
    tracer = None
    if args.verbose > 1:
        tracer = Tracer([logging_hook(LOGGER)])
    verifier = TraceVerifier(config, tracer)

    all_valid = True
    reports = []
    for path in args.files:
        try:
            traces = load_traces(path)
        except (TraceVerificationError, OSError) as e:
            kind = e.kind if isinstance(e, TraceVerificationError) else 'io'
            LOGGER.error("%s: %s", path, e)
            all_valid = False
            if args.json:
                reports.append({'file': str(path), 'valid': False, 'kind': kind, 'error': str(e)})
                print(f"{path}: FAIL {kind}: {e}", file=sys.stderr)
            else:
                print(f"{path}: FAIL {kind}: {e}")
            continue

        report = verifier.verify_batch(traces)
        all_valid = all_valid and report.valid
        if args.json:
            reports.append({'file': str(path), **report.to_dict()})
            continue

        for result in report.results:
            if result.valid:
                print(f"{path}[{result.index}]: OK {result.proof.kind!r}")
            else:
                level = '' if result.level is None else f" at level {result.level}"
                print(f"{path}[{result.index}]: FAIL {result.kind}{level}: {result.error}")
        skipped = report.total - len(report.results)
        if skipped:
            print(f"{path}: {skipped} record(s) not verified after first failure")

    if args.json:
        json.dump(reports, sys.stdout, indent=2)
        sys.stdout.write('\n')
    return 0 if all_valid else 1


def cmd_key(args: argparse.Namespace) -> int:
    print(account_key(args.address).hex())
    return 0


def cmd_hash(args: argparse.Namespace) -> int:
    print(poseidon_hash(args.left, args.right).hex())
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='trietrace',
        description='Verify sparse Merkle trie state-transition traces',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    trietrace verify traces.json               # Verify every record
    trietrace verify traces.json --keep-going  # Report all failures
    trietrace key 0x0000000000000000000000000000000000000001
    trietrace hash 1 2
        """
    )
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        '--verbose', '-v',
        action='count',
        default=0,
        help='More logging (-v: debug, -vv: also trace every hash)'
    )
    sub = parser.add_subparsers(dest='command', required=True)

    verify = sub.add_parser('verify', parents=[common], help='Verify trace files')
    verify.add_argument('files', nargs='+', type=Path, help='JSON trace files')
    verify.add_argument('--keep-going', action='store_true', help='Continue past failing records')
    verify.add_argument('--parallel', action='store_true', help='Verify records on a thread pool')
    verify.add_argument('--workers', type=int, default=None, help='Thread pool size')
    verify.add_argument('--config', type=Path, default=None, help='JSON verifier config')
    verify.add_argument('--json', action='store_true', help='Print a JSON report')
    verify.set_defaults(func=cmd_verify)

    key = sub.add_parser('key', parents=[common], help='Print the trie key of an address')
    key.add_argument('address', type=_address_arg, help='20-byte hex address')
    key.set_defaults(func=cmd_key)

    compress = sub.add_parser('hash', parents=[common], help='Print H(A, B)')
    compress.add_argument('left', type=_field_arg, help='Field element (decimal or 0x hex)')
    compress.add_argument('right', type=_field_arg, help='Field element (decimal or 0x hex)')
    compress.set_defaults(func=cmd_hash)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s - %(levelname)s - %(message)s",
    )
    return args.func(args)


if __name__ == '__main__':
    sys.exit(main())
