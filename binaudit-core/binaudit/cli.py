#!/usr/bin/env python3
"""
Binary Audit Command Line Interface

Usage:
    binaudit hash --file <binary>
    binaudit metrics --file <binary>
    binaudit analyze --file <binary> [--output <file>] [--backend-url <url>]
    binaudit audit --file <binary> --requester <id> [--target <id>]
    binaudit recommend "<module description>"
    binaudit demo
"""

import argparse
import asyncio
import json
import sys
from typing import List, Optional


def load_bytes(path: str) -> bytes:
    """Load a binary payload from file."""
    with open(path, 'rb') as f:
        return f.read()


def save_json(data: dict, path: str):
    """Save JSON to file."""
    with open(path, 'w') as f:
        json.dump(data, f, indent=2)


def _narrator(args):
    from binaudit import HttpNarrativeBackend, NarrativeService

    backend = None
    if getattr(args, "backend_url", None):
        backend = HttpNarrativeBackend(args.backend_url, timeout_seconds=args.backend_timeout)
    return NarrativeService(backend=backend, timeout_seconds=args.backend_timeout)


def cmd_hash(args):
    """Print the content digest of a binary."""
    from binaudit import digest

    print(f"sha256: {digest(load_bytes(args.file))}")
    return 0


def cmd_metrics(args):
    """Print size-derived structural metrics."""
    from binaudit import compute_metrics

    print(json.dumps(compute_metrics(load_bytes(args.file)).to_dict(), indent=2))
    return 0


def cmd_analyze(args):
    """Analyze a binary without storing a record."""
    from binaudit import AuditPipeline, AuditRegistry

    pipeline = AuditPipeline(AuditRegistry(), narrator=_narrator(args))
    report = pipeline.analyze(load_bytes(args.file))
    data = report.to_dict()

    if args.output:
        save_json(data, args.output)
        print(f"Report saved to: {args.output}")
    else:
        print(json.dumps(data, indent=2))

    print(f"\nOverall severity: {report.severity.value}", file=sys.stderr)
    for f in report.aggregation.findings:
        print(f"  - [{f.severity.value}] {f.category.value}: {f.title}", file=sys.stderr)
    return 0


def cmd_audit(args):
    """Run a full audit into a fresh registry and print the record."""
    from binaudit import AuditPipeline, AuditRegistry, AuditStatus

    registry = AuditRegistry()
    pipeline = AuditPipeline(registry, narrator=_narrator(args))
    outcome = asyncio.run(pipeline.audit(load_bytes(args.file), args.requester, target_id=args.target))

    print(json.dumps(outcome.record.to_dict() if outcome.record else {}, indent=2))

    if outcome.status == AuditStatus.COMPLETED:
        print(f"\n✓ Audit {outcome.audit_id} completed", file=sys.stderr)
        return 0
    print(f"\n✗ Audit {outcome.audit_id} ended as {outcome.status.value}", file=sys.stderr)
    return 1


def cmd_recommend(args):
    """Print security recommendations for a module description."""
    print(_narrator(args).recommend(args.description))
    return 0


def cmd_demo(args):
    """Run a demonstration of the audit flow."""
    from binaudit import AuditPipeline, AuditRegistry

    print("=" * 60)
    print("Binary Audit Demonstration")
    print("=" * 60)

    registry = AuditRegistry()
    pipeline = AuditPipeline(registry)

    scenarios = [
        ("Tiny module (10 bytes)", b"\x00asm\x01\x00\x00\x00\x00\x00", "demo-target-small"),
        ("Mid-size module (120 KB)", b"\x01" * 120_000, "demo-target-mid"),
        ("Large module (2 MB)", b"\x02" * 2_000_000, None),
    ]

    for title, payload, target in scenarios:
        print("\n" + "-" * 60)
        print(f"Scenario: {title}")
        print("-" * 60)

        outcome = asyncio.run(pipeline.audit(payload, "demo-requester", target_id=target))
        record = outcome.record
        print(f"Audit id: {outcome.audit_id}")
        print(f"Status:   {record.status.value}")
        print(f"Severity: {record.severity.value}")
        for f in record.findings:
            print(f"  [{f.severity.value}] {f.category.value}: {f.title}")
        print(f"Narrative: {record.narrative}")

    stats = registry.statistics()
    print("\n" + "=" * 60)
    print(f"Registry: total={stats.total} completed={stats.completed} "
          f"critical={stats.critical} high={stats.high}")
    print("=" * 60)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Binary Audit CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  binaudit demo                               Run demonstration
  binaudit hash -f module.wasm
  binaudit analyze -f module.wasm -o report.json
  binaudit audit -f module.wasm -r alice -t ledger
  binaudit recommend "token ledger with data storage"
        """
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    def add_backend_args(p):
        p.add_argument("-b", "--backend-url", help="Narrative backend URL")
        p.add_argument("--backend-timeout", type=float, default=30.0,
                       help="Narrative backend time budget in seconds")

    hash_parser = subparsers.add_parser("hash", help="Compute content digest")
    hash_parser.add_argument("-f", "--file", required=True, help="Binary file")

    metrics_parser = subparsers.add_parser("metrics", help="Compute structural metrics")
    metrics_parser.add_argument("-f", "--file", required=True, help="Binary file")

    analyze_parser = subparsers.add_parser("analyze", help="Analyze a binary")
    analyze_parser.add_argument("-f", "--file", required=True, help="Binary file")
    analyze_parser.add_argument("-o", "--output", help="Output file for report")
    add_backend_args(analyze_parser)

    audit_parser = subparsers.add_parser("audit", help="Audit a binary into a registry")
    audit_parser.add_argument("-f", "--file", required=True, help="Binary file")
    audit_parser.add_argument("-r", "--requester", required=True, help="Requester identity")
    audit_parser.add_argument("-t", "--target", help="Audited target id")
    add_backend_args(audit_parser)

    recommend_parser = subparsers.add_parser("recommend", help="Security recommendations")
    recommend_parser.add_argument("description", help="Free-text module description")
    add_backend_args(recommend_parser)

    subparsers.add_parser("demo", help="Run demonstration")

    return parser


COMMANDS = {
    "hash": cmd_hash,
    "metrics": cmd_metrics,
    "analyze": cmd_analyze,
    "audit": cmd_audit,
    "recommend": cmd_recommend,
    "demo": cmd_demo,
}


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    command = COMMANDS.get(args.command)
    if command is None:
        parser.print_help()
        return 2
    return command(args)


if __name__ == "__main__":
    sys.exit(main())
