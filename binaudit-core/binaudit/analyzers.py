"""
Binary Audit Analyzer Plugins

An analyzer inspects a payload and returns zero or more findings.

Contract:
- Pure: identical payloads produce identical findings, in the same order
- Total: never raises; "nothing found" is an empty list
- Parameters only tune thresholds; they never add randomness

The two reference analyzers below are calibration stubs standing in for
real static-analysis tools. They look at payload size only.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from .models import Finding, FindingCategory, Severity


class Analyzer(ABC):
    """Abstract base class for all analyzer plugins."""

    name: str = "analyzer"
    default_parameters: Dict[str, Any] = {}

    def __init__(self, parameters: Optional[Dict[str, Any]] = None):
        self.parameters = dict(self.default_parameters)
        if parameters:
            unknown = set(parameters) - set(self.default_parameters)
            if unknown:
                raise ValueError(f"Unknown parameters for {self.name}: {sorted(unknown)}")
            self.parameters.update(parameters)

    @abstractmethod
    def analyze(self, payload: bytes) -> List[Finding]:
        """Inspect the payload. Must return a list, never raise."""
        pass

    def _finding(
        self,
        severity: Severity,
        category: FindingCategory,
        title: str,
        description: str,
        recommendation: str,
        location: Optional[str] = None
    ) -> Finding:
        return Finding(
            severity=severity,
            category=category,
            title=title,
            description=description,
            recommendation=recommendation,
            location=location,
            tool=self.name,
        )

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.parameters!r})"


class SizeStructureAnalyzer(Analyzer):
    """
    size_structure

    Flags oversized binaries. Findings, in order:
    - Medium / Performance when payload exceeds large_threshold
    - Low / MemoryLeak when payload exceeds memory_threshold
    """

    name = "size-structure (mock)"
    default_parameters = {
        "large_threshold": 1_000_000,
        "memory_threshold": 100_000,
    }

    def analyze(self, payload: bytes) -> List[Finding]:
        size = len(payload)
        findings = []

        if size > self.parameters["large_threshold"]:
            findings.append(self._finding(
                Severity.MEDIUM,
                FindingCategory.PERFORMANCE,
                "Large binary detected",
                f"Binary is {size} bytes; large modules increase load cost and attack surface.",
                "Consider optimization and removing unused code",
            ))

        if size > self.parameters["memory_threshold"]:
            findings.append(self._finding(
                Severity.LOW,
                FindingCategory.MEMORY_LEAK,
                "Complex memory patterns detected",
                "Binary size suggests non-trivial memory management.",
                "Verify memory safety and bound all allocations",
                location="memory section",
            ))

        return findings


class SymbolicExecutionAnalyzer(Analyzer):
    """
    symbolic_execution

    Always reports completion (Info). Adds Medium / IntegerOverflow when
    the payload exceeds arithmetic_threshold.
    """

    name = "symbolic-execution (mock)"
    default_parameters = {
        "arithmetic_threshold": 50_000,
    }

    def analyze(self, payload: bytes) -> List[Finding]:
        findings = [self._finding(
            Severity.INFO,
            FindingCategory.OTHER,
            "Symbolic execution completed",
            "Symbolic execution completed - no critical paths identified.",
            "No action required",
        )]

        if len(payload) > self.parameters["arithmetic_threshold"]:
            findings.append(self._finding(
                Severity.MEDIUM,
                FindingCategory.INTEGER_OVERFLOW,
                "Complex arithmetic operations detected",
                "Arithmetic-heavy code paths may overflow without explicit checks.",
                "Verify overflow protection on all arithmetic",
                location="function implementations",
            ))

        return findings


ANALYZER_TYPES: Dict[str, type] = {
    "size_structure": SizeStructureAnalyzer,
    "symbolic_execution": SymbolicExecutionAnalyzer,
}

DEFAULT_ANALYZER_ORDER = ("size_structure", "symbolic_execution")


def create_analyzer(analyzer_type: str, parameters: Optional[Dict[str, Any]] = None) -> Analyzer:
    """Factory function to create an analyzer instance."""
    if analyzer_type not in ANALYZER_TYPES:
        raise ValueError(f"Unknown analyzer type: {analyzer_type}")

    return ANALYZER_TYPES[analyzer_type](parameters)


def default_analyzers() -> List[Analyzer]:
    """The two reference analyzers, in registration order."""
    return [create_analyzer(t) for t in DEFAULT_ANALYZER_ORDER]
