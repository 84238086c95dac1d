"""
Binary Audit Conformance Test Suite

Covers the deterministic core:
- Content digest and record id derivation
- Size-derived metrics and their floors
- Severity resolution (Low floor, Info never wins)
- Reference analyzers and the aggregator
- Fallback narrative composition and confidence
"""

import hashlib
import unittest

from binaudit import (
    # Content identity
    digest,
    new_record_id,
    digest_prefix,
    verify_digest,

    # Models
    AuditMetadata,
    Finding,
    FindingCategory,
    Severity,
    AuditStatus,

    # Analyzers
    Analyzer,
    SizeStructureAnalyzer,
    SymbolicExecutionAnalyzer,
    create_analyzer,

    # Aggregation
    FindingAggregator,
    compute_metrics,
    resolve_severity,

    # Narrative
    FallbackNarrativeGenerator,
    NarrativeSource,
    build_audit_prompt,
    fallback_recommendations,
)


def make_finding(severity, category=FindingCategory.OTHER, title="finding"):
    return Finding(
        severity=severity,
        category=category,
        title=title,
        description="test description",
        recommendation="test recommendation",
    )


class TestContentIdentity(unittest.TestCase):
    """Digest and record id derivation."""

    def test_digest_is_lowercase_sha256(self):
        payload = b"\x00asm\x01\x00\x00\x00"
        d = digest(payload)

        self.assertEqual(d, hashlib.sha256(payload).hexdigest())
        self.assertEqual(len(d), 64)
        self.assertEqual(d, d.lower())

    def test_digest_deterministic(self):
        self.assertEqual(digest(b"module"), digest(b"module"))
        self.assertNotEqual(digest(b"module-a"), digest(b"module-b"))

    def test_record_id_derivation(self):
        expected = hashlib.sha256(b"1700000000000000000-alice").hexdigest()[:16]
        self.assertEqual(new_record_id("alice", 1700000000000000000), expected)

    def test_record_id_depends_on_requester_and_time(self):
        base = new_record_id("alice", 1)
        self.assertNotEqual(base, new_record_id("bob", 1))
        self.assertNotEqual(base, new_record_id("alice", 2))
        self.assertEqual(base, new_record_id("alice", 1))

    def test_digest_prefix(self):
        d = digest(b"payload")
        self.assertEqual(digest_prefix(d), d[:16])
        self.assertEqual(digest_prefix(d, 8), d[:8])

    def test_verify_digest(self):
        payload = b"payload"
        self.assertTrue(verify_digest(digest(payload), payload))
        self.assertTrue(verify_digest(digest(payload).upper(), payload))
        self.assertFalse(verify_digest(digest(b"other"), payload))
        self.assertFalse(verify_digest(None, payload))


class TestCodeMetrics(unittest.TestCase):
    """Size-derived metrics."""

    def test_floors_for_tiny_payload(self):
        metrics = compute_metrics(b"x" * 10)

        self.assertEqual(metrics.file_size_bytes, 10)
        self.assertEqual(metrics.estimated_lines_of_code, 100)
        self.assertEqual(metrics.function_count, 1)
        self.assertEqual(metrics.complexity_score, 1)

    def test_empty_payload(self):
        metrics = compute_metrics(b"")
        self.assertEqual(metrics.file_size_bytes, 0)
        self.assertEqual(metrics.estimated_lines_of_code, 100)
        self.assertEqual(metrics.function_count, 1)
        self.assertEqual(metrics.complexity_score, 1)

    def test_scaling_for_large_payload(self):
        metrics = compute_metrics(b"\x00" * 2_000_000)

        self.assertEqual(metrics.estimated_lines_of_code, 200_000)
        self.assertEqual(metrics.function_count, 2_000)
        self.assertEqual(metrics.complexity_score, 400)

    def test_integer_division(self):
        metrics = compute_metrics(b"\x00" * 12_345)
        self.assertEqual(metrics.estimated_lines_of_code, 1_234)
        self.assertEqual(metrics.function_count, 12)
        self.assertEqual(metrics.complexity_score, 2)


class TestSeverityResolution(unittest.TestCase):
    """Overall severity from a findings sequence."""

    def test_empty_resolves_to_low(self):
        self.assertEqual(resolve_severity([]), Severity.LOW)

    def test_info_only_resolves_to_low(self):
        findings = [make_finding(Severity.INFO), make_finding(Severity.INFO)]
        self.assertEqual(resolve_severity(findings), Severity.LOW)

    def test_highest_priority_wins(self):
        findings = [
            make_finding(Severity.LOW),
            make_finding(Severity.CRITICAL),
            make_finding(Severity.MEDIUM),
        ]
        self.assertEqual(resolve_severity(findings), Severity.CRITICAL)

    def test_order_independent(self):
        findings = [make_finding(Severity.HIGH), make_finding(Severity.MEDIUM)]
        self.assertEqual(resolve_severity(findings), resolve_severity(list(reversed(findings))))

    def test_priority_ordering(self):
        ordered = [Severity.CRITICAL, Severity.HIGH, Severity.MEDIUM, Severity.LOW, Severity.INFO]
        priorities = [s.priority for s in ordered]
        self.assertEqual(priorities, sorted(priorities, reverse=True))


class TestAnalyzers(unittest.TestCase):
    """Reference analyzer thresholds."""

    def test_size_structure_small_payload(self):
        self.assertEqual(SizeStructureAnalyzer().analyze(b"x" * 100_000), [])

    def test_size_structure_memory_threshold(self):
        findings = SizeStructureAnalyzer().analyze(b"x" * 100_001)

        self.assertEqual(len(findings), 1)
        self.assertEqual(findings[0].severity, Severity.LOW)
        self.assertEqual(findings[0].category, FindingCategory.MEMORY_LEAK)

    def test_size_structure_large_threshold(self):
        findings = SizeStructureAnalyzer().analyze(b"x" * 1_000_001)

        self.assertEqual(
            [(f.severity, f.category) for f in findings],
            [
                (Severity.MEDIUM, FindingCategory.PERFORMANCE),
                (Severity.LOW, FindingCategory.MEMORY_LEAK),
            ],
        )

    def test_symbolic_execution_always_reports(self):
        findings = SymbolicExecutionAnalyzer().analyze(b"")

        self.assertEqual(len(findings), 1)
        self.assertEqual(findings[0].severity, Severity.INFO)
        self.assertEqual(findings[0].category, FindingCategory.OTHER)

    def test_symbolic_execution_arithmetic_threshold(self):
        findings = SymbolicExecutionAnalyzer().analyze(b"x" * 50_001)

        self.assertEqual(len(findings), 2)
        self.assertEqual(findings[1].severity, Severity.MEDIUM)
        self.assertEqual(findings[1].category, FindingCategory.INTEGER_OVERFLOW)

    def test_findings_carry_tool_name(self):
        analyzer = SymbolicExecutionAnalyzer()
        for f in analyzer.analyze(b"x" * 60_000):
            self.assertEqual(f.tool, analyzer.name)

    def test_parameters_tune_thresholds(self):
        analyzer = create_analyzer("size_structure", {"memory_threshold": 10})
        findings = analyzer.analyze(b"x" * 11)
        self.assertEqual(len(findings), 1)

    def test_unknown_parameter_rejected(self):
        with self.assertRaises(ValueError):
            create_analyzer("size_structure", {"bogus": 1})

    def test_unknown_analyzer_type(self):
        with self.assertRaises(ValueError):
            create_analyzer("fuzzer")

    def test_deterministic(self):
        payload = b"\x01" * 1_500_000
        a = [f.to_dict() for f in SizeStructureAnalyzer().analyze(payload)]
        b = [f.to_dict() for f in SizeStructureAnalyzer().analyze(payload)]
        self.assertEqual(a, b)


class ExplodingAnalyzer(Analyzer):
    name = "exploding"

    def analyze(self, payload):
        raise RuntimeError("analyzer broke its contract")


class TestAggregator(unittest.TestCase):
    """Finding aggregation across analyzers."""

    def test_two_megabyte_payload(self):
        result = FindingAggregator().aggregate(b"\x00" * 2_000_000)

        self.assertEqual(
            [(f.severity, f.category) for f in result.findings],
            [
                (Severity.MEDIUM, FindingCategory.PERFORMANCE),
                (Severity.LOW, FindingCategory.MEMORY_LEAK),
                (Severity.INFO, FindingCategory.OTHER),
                (Severity.MEDIUM, FindingCategory.INTEGER_OVERFLOW),
            ],
        )
        self.assertEqual(result.severity, Severity.MEDIUM)
        self.assertTrue(result.complete())

    def test_tiny_payload(self):
        result = FindingAggregator().aggregate(b"x" * 10)

        self.assertEqual(len(result.findings), 1)
        self.assertEqual(result.findings[0].severity, Severity.INFO)
        self.assertEqual(result.severity, Severity.LOW)

    def test_registration_order(self):
        aggregator = FindingAggregator([SymbolicExecutionAnalyzer(), SizeStructureAnalyzer()])
        result = aggregator.aggregate(b"\x00" * 2_000_000)

        self.assertEqual(result.findings[0].category, FindingCategory.OTHER)
        self.assertEqual(result.tools_used, [
            "symbolic-execution (mock)",
            "size-structure (mock)",
        ])

    def test_from_names(self):
        aggregator = FindingAggregator.from_names(["symbolic_execution", " ", "size_structure "])
        self.assertEqual(len(aggregator.analyzers), 2)
        self.assertIsInstance(aggregator.analyzers[0], SymbolicExecutionAnalyzer)

    def test_raising_analyzer_is_isolated(self):
        aggregator = FindingAggregator([ExplodingAnalyzer(), SymbolicExecutionAnalyzer()])

        with self.assertLogs("binaudit.aggregator", level="ERROR"):
            result = aggregator.aggregate(b"x" * 10)

        self.assertEqual(result.failed_analyzers, ["exploding"])
        self.assertFalse(result.complete())
        self.assertEqual(len(result.findings), 1)

        # Still usable afterwards
        again = FindingAggregator().aggregate(b"x" * 10)
        self.assertTrue(again.complete())

    def test_register_appends_in_order(self):
        aggregator = FindingAggregator([SymbolicExecutionAnalyzer()])
        aggregator.register(SizeStructureAnalyzer())

        result = aggregator.aggregate(b"\x00" * 2_000_000)

        self.assertEqual(result.tools_used, ["symbolic-execution (mock)", "size-structure (mock)"])
        self.assertEqual(result.findings[0].tool, "symbolic-execution (mock)")
        self.assertEqual(result.findings[-1].tool, "size-structure (mock)")

    def test_result_dict(self):
        data = FindingAggregator().aggregate(b"\x00" * 60_000).to_dict()

        self.assertEqual(data["severity"], "Medium")
        self.assertEqual(data["metrics"]["file_size_bytes"], 60_000)
        self.assertEqual(data["failed_analyzers"], [])
        self.assertEqual([f["severity"] for f in data["findings"]], ["Info", "Medium"])


class TestFallbackNarrative(unittest.TestCase):
    """Rule-based narrative."""

    def setUp(self):
        self.generator = FallbackNarrativeGenerator()

    def _narrate(self, payload, findings=None):
        if findings is None:
            findings = FindingAggregator().aggregate(payload).findings
        return self.generator.narrate(digest(payload), compute_metrics(payload), findings)

    def test_large_binary_clause(self):
        payload = b"\x00" * 2_000_000
        report = self._narrate(payload)

        self.assertTrue(report.summary.startswith(
            f"Security analysis completed for binary module (hash: {digest(payload)[:16]})."
        ))
        self.assertIn("Large binary detected - consider optimization", report.summary)
        self.assertIn("High complexity detected", report.summary)
        self.assertIn("MEDIUM: 2 moderate security issues found.", report.summary)
        self.assertEqual(report.source, NarrativeSource.FALLBACK)

    def test_small_binary_clause(self):
        report = self._narrate(b"x" * 10)

        self.assertIn("Small binary suggests minimal functionality", report.summary)
        self.assertIn("Low complexity", report.summary)

    def test_no_findings_clause(self):
        report = self._narrate(b"x" * 10, findings=[])
        self.assertIn("No immediate security vulnerabilities detected", report.summary)
        self.assertEqual(report.confidence, 0.7)

    def test_complexity_tiers(self):
        moderate = self._narrate(b"x" * 150_000, findings=[])
        self.assertIn("Moderate complexity", moderate.summary)

        low = self._narrate(b"x" * 100_000, findings=[])
        self.assertIn("Low complexity", low.summary)

    def test_patterns(self):
        report = self._narrate(b"\x00" * 2_000_000)

        self.assertEqual(report.patterns[0], "Standard binary module structure")
        self.assertIn("Complex multi-function module", report.patterns)
        self.assertIn("Memory management patterns detected", report.patterns)
        self.assertIn("Performance optimization opportunities identified", report.patterns)

        simple = self._narrate(b"x" * 10)
        self.assertEqual(simple.patterns, [
            "Standard binary module structure",
            "Simple function structure",
        ])

    def test_concerns(self):
        small = self._narrate(b"x" * 10, findings=[])
        self.assertEqual(len(small.concerns), 3)

        large = self._narrate(b"\x00" * 2_000_000, findings=[make_finding(Severity.HIGH)])
        self.assertEqual(len(large.concerns), 6)
        self.assertIn("High-severity security issues require immediate remediation", large.concerns)

    def test_recommendations(self):
        small = self._narrate(b"x" * 10, findings=[])
        self.assertEqual(len(small.recommendations), 4)

        large = self._narrate(b"\x00" * 2_000_000)
        self.assertIn("Consider code splitting or removing unused dependencies", large.recommendations)
        self.assertIn("Add comprehensive unit tests for all code paths", large.recommendations)
        self.assertIn(
            "Review memory allocation patterns and implement bounds checking",
            large.recommendations,
        )

    def test_confidence_critical_dominates(self):
        findings = [
            make_finding(Severity.CRITICAL, FindingCategory.REENTRANCY),
            make_finding(Severity.LOW),
            make_finding(Severity.LOW),
        ]
        report = self._narrate(b"x" * 10, findings=findings)

        self.assertEqual(report.confidence, 0.9)
        self.assertIn("CRITICAL: 1 critical security issues", report.summary)

    def test_confidence_default(self):
        report = self._narrate(b"x" * 10, findings=[make_finding(Severity.HIGH)])
        self.assertEqual(report.confidence, 0.8)

    def test_deterministic(self):
        payload = b"\x07" * 300_000
        self.assertEqual(self._narrate(payload).to_dict(), self._narrate(payload).to_dict())


class TestPrompts(unittest.TestCase):
    """Backend prompt and keyword recommendations."""

    def test_audit_prompt_lists_findings(self):
        payload = b"\x00" * 60_000
        findings = FindingAggregator().aggregate(payload).findings
        prompt = build_audit_prompt(digest(payload), compute_metrics(payload), findings)

        self.assertIn(digest(payload), prompt)
        self.assertIn("File Size: 60000 bytes", prompt)
        self.assertIn("Complex arithmetic operations detected (IntegerOverflow)", prompt)

    def test_audit_prompt_without_findings(self):
        prompt = build_audit_prompt(digest(b""), compute_metrics(b""), [])
        self.assertIn("No static analysis findings detected.", prompt)

    def test_fallback_recommendations_keywords(self):
        plain = fallback_recommendations("a simple counter")
        self.assertTrue(plain.startswith("Security Recommendations:"))
        self.assertNotIn("anti-reentrancy", plain)
        self.assertIn("temporarily unavailable", plain)

        token = fallback_recommendations("Token ledger")
        self.assertIn("Implement anti-reentrancy protection", token)

        storage = fallback_recommendations("user data vault")
        self.assertIn("Encrypt sensitive data at rest", storage)


class TestEnums(unittest.TestCase):
    """Wire values of the closed enums."""

    def test_status_terminality(self):
        self.assertFalse(AuditStatus.IN_PROGRESS.is_terminal())
        for status in (AuditStatus.COMPLETED, AuditStatus.FAILED, AuditStatus.REQUIRES_REVIEW):
            self.assertTrue(status.is_terminal())

    def test_finding_round_trip(self):
        finding = make_finding(Severity.HIGH, FindingCategory.ACCESS_CONTROL)
        finding.location = "entry point"
        self.assertEqual(Finding.from_dict(finding.to_dict()), finding)

    def test_metadata_from_dict(self):
        metadata = AuditMetadata.from_dict({"tools_used": ["manual review"], "lines_of_code": 12})
        self.assertEqual(metadata.tools_used, ["manual review"])
        self.assertEqual(metadata.lines_of_code, 12)
        self.assertEqual(metadata.analysis_duration_ms, 0)
        self.assertEqual(metadata.file_size_bytes, 0)
        self.assertEqual(AuditMetadata.from_dict(metadata.to_dict()), metadata)


if __name__ == "__main__":
    unittest.main(verbosity=2)
