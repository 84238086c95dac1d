"""
Binary Audit Finding Aggregator

Runs an ordered list of analyzers against a payload, concatenates their
findings and resolves one overall severity.

Severity resolution:
    Critical > High > Medium > Low
    Info findings never raise the verdict.
    No findings (or only Info findings) resolves to Low, never Info:
    absence of signal means "unknown risk", not "no risk".

Aggregation is deterministic and side-effect free. The same payload
always yields the same findings, in the same order, and the same
severity.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence

from .analyzers import Analyzer, create_analyzer, default_analyzers
from .models import CodeMetrics, Finding, Severity, SEVERITY_PRIORITY

logger = logging.getLogger(__name__)

MIN_ESTIMATED_LINES = 100
BYTES_PER_LINE = 10
BYTES_PER_FUNCTION = 1000
BYTES_PER_COMPLEXITY_POINT = 5000


def compute_metrics(payload: bytes) -> CodeMetrics:
    """
    Derive rough structural metrics from payload length n.

    estimated_lines  = max(100, n // 10)
    function_count   = max(1, n // 1000)
    complexity_score = max(1, n // 5000)

    These are size proxies only, never ground truth.
    """
    n = len(payload)
    return CodeMetrics(
        file_size_bytes=n,
        estimated_lines_of_code=max(MIN_ESTIMATED_LINES, n // BYTES_PER_LINE),
        function_count=max(1, n // BYTES_PER_FUNCTION),
        complexity_score=max(1, n // BYTES_PER_COMPLEXITY_POINT),
    )


def resolve_severity(findings: Iterable[Finding]) -> Severity:
    """Highest-priority severity present, or LOW when nothing outranks it."""
    resolved = Severity.LOW
    for finding in findings:
        if SEVERITY_PRIORITY[finding.severity] > SEVERITY_PRIORITY[resolved]:
            resolved = finding.severity
    return resolved


def stricter(a: Severity, b: Severity) -> Severity:
    """Return the more severe of two severities."""
    return a if SEVERITY_PRIORITY[a] >= SEVERITY_PRIORITY[b] else b


def count_by_severity(findings: Iterable[Finding]) -> Dict[Severity, int]:
    counts = {s: 0 for s in Severity}
    for finding in findings:
        counts[finding.severity] += 1
    return counts


@dataclass
class AggregationResult:
    """Findings and verdict for one payload."""
    findings: List[Finding]
    severity: Severity
    metrics: CodeMetrics
    tools_used: List[str]
    failed_analyzers: List[str] = field(default_factory=list)

    def complete(self) -> bool:
        """True when every analyzer ran to completion."""
        return not self.failed_analyzers

    def to_dict(self) -> Dict[str, Any]:
        return {
            "findings": [f.to_dict() for f in self.findings],
            "severity": self.severity.value,
            "metrics": self.metrics.to_dict(),
            "tools_used": list(self.tools_used),
            "failed_analyzers": list(self.failed_analyzers),
        }


class FindingAggregator:
    """
    Ordered collection of analyzers.

    Usage:
        aggregator = FindingAggregator()   # reference analyzers
        result = aggregator.aggregate(payload)
        result.severity, result.findings
    """

    def __init__(self, analyzers: Optional[Sequence[Analyzer]] = None):
        self.analyzers: List[Analyzer] = (
            list(analyzers) if analyzers is not None else default_analyzers()
        )

    @classmethod
    def from_names(cls, names: Iterable[str]) -> 'FindingAggregator':
        """Build an aggregator from analyzer type names, keeping their order."""
        return cls([create_analyzer(name.strip()) for name in names if name.strip()])

    def register(self, analyzer: Analyzer):
        """Append an analyzer; it runs after all previously registered ones."""
        self.analyzers.append(analyzer)

    @property
    def tools_used(self) -> List[str]:
        return [a.name for a in self.analyzers]

    def aggregate(self, payload: bytes, metrics: Optional[CodeMetrics] = None) -> AggregationResult:
        """
        Run every analyzer and resolve the overall severity.

        Findings are concatenated in registration order; each analyzer's
        own ordering is preserved. An analyzer that breaks the contract
        by raising contributes no findings and is listed in
        failed_analyzers.
        """
        if metrics is None:
            metrics = compute_metrics(payload)

        findings: List[Finding] = []
        failed: List[str] = []

        for analyzer in self.analyzers:
            try:
                produced = analyzer.analyze(payload)
            except Exception:
                logger.exception("Analyzer %s raised; its findings are discarded", analyzer.name)
                failed.append(analyzer.name)
                continue
            findings.extend(produced or [])

        return AggregationResult(
            findings=findings,
            severity=resolve_severity(findings),
            metrics=metrics,
            tools_used=self.tools_used,
            failed_analyzers=failed,
        )
