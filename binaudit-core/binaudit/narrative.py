"""
Binary Audit Risk Narrative

Turns structural metrics and aggregated findings into a human-readable
security summary.

Two sources:
- A generative backend (external collaborator) reached through the
  NarrativeBackend contract: generate(prompt) -> str
- FallbackNarrativeGenerator: rule-based and deterministic; used whenever
  the backend is missing, fails, times out or returns no text

The fallback never raises. A backend failure degrades the narrative's
richness; it never blocks an audit.

Confidence of the fallback:
    0.7 when there are no findings
    0.9 when any finding is Critical
    0.8 otherwise
More signal, even bad signal, raises confidence that the fallback text
is relevant. It is not a measure of correctness.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

from .aggregator import count_by_severity
from .hashing import digest_prefix
from .models import (
    CodeMetrics,
    Finding,
    Severity,
    MEMORY_CATEGORIES,
    PERFORMANCE_CATEGORIES,
)

logger = logging.getLogger(__name__)

# Summary clauses
LARGE_BINARY_BYTES = 1_000_000
SMALL_BINARY_BYTES = 10_000
HIGH_COMPLEXITY = 50
MODERATE_COMPLEXITY = 20

# Patterns
COMPLEX_FUNCTION_COUNT = 20
MODERATE_FUNCTION_COUNT = 5

# Concerns
CONCERN_SIZE_BYTES = 500_000
CONCERN_COMPLEXITY = 30

# Recommendations
RECOMMEND_SPLIT_BYTES = 1_000_000
RECOMMEND_TESTING_COMPLEXITY = 20

CONFIDENCE_NO_FINDINGS = 0.7
CONFIDENCE_CRITICAL = 0.9
CONFIDENCE_DEFAULT = 0.8

DEFAULT_BACKEND_TIMEOUT_SECONDS = 30.0

BASELINE_CONCERNS = (
    "Verify proper access controls for all public entry points",
    "Ensure comprehensive input validation for all parameters",
    "Monitor resource consumption to prevent denial-of-service attacks",
)

BASELINE_RECOMMENDATIONS = (
    "Implement comprehensive logging for security monitoring",
    "Add input sanitization for all user-provided data",
    "Protect critical state with integrity-checked storage",
    "Implement proper error handling without revealing internal details",
)


class NarrativeSource(str, Enum):
    BACKEND = "backend"
    FALLBACK = "fallback"


class BackendUnavailable(Exception):
    """The generative backend failed, timed out or returned nothing."""


@dataclass
class NarrativeReport:
    """Narrative security analysis for one payload."""
    summary: str
    patterns: List[str] = field(default_factory=list)
    concerns: List[str] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)
    confidence: float = CONFIDENCE_NO_FINDINGS
    source: NarrativeSource = NarrativeSource.FALLBACK

    def to_dict(self) -> Dict[str, Any]:
        return {
            "summary": self.summary,
            "patterns": list(self.patterns),
            "concerns": list(self.concerns),
            "recommendations": list(self.recommendations),
            "confidence": self.confidence,
            "source": self.source.value,
        }


def _has_category(findings: Sequence[Finding], categories) -> bool:
    return any(f.category in categories for f in findings)


class FallbackNarrativeGenerator:
    """Rule-based narrative composition. Deterministic and total."""

    def narrate(
        self,
        content_digest: str,
        metrics: CodeMetrics,
        findings: Sequence[Finding]
    ) -> NarrativeReport:
        return NarrativeReport(
            summary=self._summary(content_digest, metrics, findings),
            patterns=self._patterns(metrics, findings),
            concerns=self._concerns(metrics, findings),
            recommendations=self._recommendations(metrics, findings),
            confidence=self._confidence(findings),
            source=NarrativeSource.FALLBACK,
        )

    def _summary(self, content_digest: str, metrics: CodeMetrics, findings: Sequence[Finding]) -> str:
        parts = [
            f"Security analysis completed for binary module (hash: {digest_prefix(content_digest)})."
        ]

        size = metrics.file_size_bytes
        if size > LARGE_BINARY_BYTES:
            parts.append(
                "Large binary detected - consider optimization to reduce attack surface "
                "and improve performance."
            )
        elif size < SMALL_BINARY_BYTES:
            parts.append(
                "Small binary suggests minimal functionality - verify all required "
                "security controls are implemented."
            )

        complexity = metrics.complexity_score
        if complexity > HIGH_COMPLEXITY:
            parts.append(
                "High complexity detected - increased risk of logic vulnerabilities "
                "and harder to audit."
            )
        elif complexity > MODERATE_COMPLEXITY:
            parts.append("Moderate complexity - ensure proper testing coverage for all code paths.")
        else:
            parts.append(
                "Low complexity - reduced risk but verify core security patterns are implemented."
            )

        if findings:
            counts = count_by_severity(findings)
            if counts[Severity.CRITICAL]:
                parts.append(
                    f"CRITICAL: {counts[Severity.CRITICAL]} critical security issues identified "
                    "requiring immediate attention."
                )
            if counts[Severity.HIGH]:
                parts.append(f"HIGH: {counts[Severity.HIGH]} high-priority security concerns detected.")
            if counts[Severity.MEDIUM]:
                parts.append(f"MEDIUM: {counts[Severity.MEDIUM]} moderate security issues found.")
        else:
            parts.append("No immediate security vulnerabilities detected by static analysis.")

        return " ".join(parts)

    def _patterns(self, metrics: CodeMetrics, findings: Sequence[Finding]) -> List[str]:
        patterns = ["Standard binary module structure"]

        if metrics.function_count > COMPLEX_FUNCTION_COUNT:
            patterns.append("Complex multi-function module")
        elif metrics.function_count > MODERATE_FUNCTION_COUNT:
            patterns.append("Moderate function complexity")
        else:
            patterns.append("Simple function structure")

        if _has_category(findings, MEMORY_CATEGORIES):
            patterns.append("Memory management patterns detected")
        if _has_category(findings, PERFORMANCE_CATEGORIES):
            patterns.append("Performance optimization opportunities identified")

        return patterns

    def _concerns(self, metrics: CodeMetrics, findings: Sequence[Finding]) -> List[str]:
        concerns = []

        if metrics.file_size_bytes > CONCERN_SIZE_BYTES:
            concerns.append(
                "Large binary size may indicate bundled dependencies with potential vulnerabilities"
            )
        if metrics.complexity_score > CONCERN_COMPLEXITY:
            concerns.append("High complexity increases difficulty of security review and testing")
        if any(f.severity in (Severity.CRITICAL, Severity.HIGH) for f in findings):
            concerns.append("High-severity security issues require immediate remediation")

        concerns.extend(BASELINE_CONCERNS)
        return concerns

    def _recommendations(self, metrics: CodeMetrics, findings: Sequence[Finding]) -> List[str]:
        recommendations = list(BASELINE_RECOMMENDATIONS)

        if metrics.file_size_bytes > RECOMMEND_SPLIT_BYTES:
            recommendations.append("Consider code splitting or removing unused dependencies")
        if metrics.complexity_score > RECOMMEND_TESTING_COMPLEXITY:
            recommendations.append("Add comprehensive unit tests for all code paths")
            recommendations.append(
                "Consider refactoring complex functions into smaller, testable units"
            )
        if _has_category(findings, MEMORY_CATEGORIES):
            recommendations.append(
                "Review memory allocation patterns and implement bounds checking"
            )

        return recommendations

    def _confidence(self, findings: Sequence[Finding]) -> float:
        if not findings:
            return CONFIDENCE_NO_FINDINGS
        if any(f.severity == Severity.CRITICAL for f in findings):
            return CONFIDENCE_CRITICAL
        return CONFIDENCE_DEFAULT


def build_audit_prompt(content_digest: str, metrics: CodeMetrics, findings: Sequence[Finding]) -> str:
    """Prompt sent to a generative backend for one audit."""
    if findings:
        described = ", ".join(f"{f.title} ({f.category.value})" for f in findings)
        findings_summary = f"Static analysis identified {len(findings)} potential issues: {described}"
    else:
        findings_summary = "No static analysis findings detected."

    return (
        "You are a security auditor analyzing a compiled binary module.\n\n"
        f"Content Hash: {content_digest}\n"
        f"File Size: {metrics.file_size_bytes} bytes\n"
        f"Estimated Lines of Code: {metrics.estimated_lines_of_code}\n"
        f"Function Count: {metrics.function_count}\n"
        f"Complexity Score: {metrics.complexity_score}\n\n"
        f"Static Analysis Results: {findings_summary}\n\n"
        "Please provide a comprehensive security analysis focusing on:\n"
        "1. Potential security vulnerabilities\n"
        "2. Code quality and maintainability concerns\n"
        "3. Performance and resource consumption issues\n"
        "4. Recommendations for improvement\n\n"
        "Format your response as a structured analysis with clear sections for each concern."
    )


def build_recommendation_prompt(description: str) -> str:
    return (
        "You are a binary module security expert. Provide security recommendations "
        f"for a module with this description: {description}\n\n"
        "Focus on:\n"
        "1. Access control best practices\n"
        "2. Resource management and DoS prevention\n"
        "3. Input validation and sanitization\n"
        "4. Inter-module call security\n"
        "5. Data storage and privacy considerations\n\n"
        "Provide practical, actionable recommendations."
    )


FALLBACK_RECOMMENDATION_NOTE = (
    "Note: AI analysis is temporarily unavailable. "
    "These are general best practice recommendations."
)


def fallback_recommendations(description: str) -> str:
    """Keyword-driven recommendations used when the backend is unavailable."""
    lowered = description.lower()

    bullets = [
        "Implement proper access controls with caller verification",
        "Add resource usage monitoring and limits to prevent exhaustion",
        "Validate all input parameters thoroughly",
        "Use secure patterns for inter-module calls",
        "Implement proper error handling and logging",
    ]

    if "token" in lowered or "finance" in lowered:
        bullets.extend([
            "Implement anti-reentrancy protection",
            "Add transaction amount limits and rate limiting",
            "Use certified data for critical state",
        ])

    if "data" in lowered or "storage" in lowered:
        bullets.extend([
            "Encrypt sensitive data at rest",
            "Implement proper data retention policies",
            "Use durable storage for persistent data",
        ])

    listing = "\n".join(f"- {b}" for b in bullets)
    return f"Security Recommendations:\n\n{listing}\n\n{FALLBACK_RECOMMENDATION_NOTE}"


class NarrativeBackend(ABC):
    """
    Generative text backend.

    generate() may raise or return an empty string; callers treat both
    as "unavailable".
    """

    @abstractmethod
    def generate(self, prompt: str) -> str:
        pass

    async def agenerate(self, prompt: str) -> str:
        """Awaitable variant; runs generate() in a worker thread by default."""
        return await asyncio.to_thread(self.generate, prompt)


class HttpNarrativeBackend(NarrativeBackend):
    """
    Backend reached over HTTP.

    POSTs {"model": ..., "prompt": ...} and reads "text" (or "response")
    from the JSON reply.
    """

    def __init__(self, url: str, model: Optional[str] = None, timeout_seconds: float = DEFAULT_BACKEND_TIMEOUT_SECONDS):
        self.url = url
        self.model = model
        self.timeout_seconds = timeout_seconds

    def generate(self, prompt: str) -> str:
        import requests

        body = {"prompt": prompt}
        if self.model:
            body["model"] = self.model
        r = requests.post(self.url, json=body, timeout=self.timeout_seconds)
        r.raise_for_status()
        data = r.json()
        if not isinstance(data, dict):
            return ""
        return str(data.get("text") or data.get("response") or "")


class NarrativeService:
    """
    Backend-first narrative with deterministic fallback.

    On backend success the summary is the backend text; patterns,
    concerns, recommendations and confidence still come from the
    rule-based generator so the report shape never changes.
    """

    def __init__(
        self,
        backend: Optional[NarrativeBackend] = None,
        timeout_seconds: float = DEFAULT_BACKEND_TIMEOUT_SECONDS,
        generator: Optional[FallbackNarrativeGenerator] = None
    ):
        self.backend = backend
        self.timeout_seconds = timeout_seconds
        self.generator = generator or FallbackNarrativeGenerator()

    def narrate(self, content_digest: str, metrics: CodeMetrics, findings: Sequence[Finding]) -> NarrativeReport:
        report = self.generator.narrate(content_digest, metrics, findings)
        if self.backend is None:
            return report
        try:
            text = self._generate(build_audit_prompt(content_digest, metrics, findings))
        except BackendUnavailable as e:
            logger.warning("Narrative backend unavailable, using fallback: %s", e)
            return report
        return replace(report, summary=text, source=NarrativeSource.BACKEND)

    async def narrate_async(
        self,
        content_digest: str,
        metrics: CodeMetrics,
        findings: Sequence[Finding]
    ) -> NarrativeReport:
        report = self.generator.narrate(content_digest, metrics, findings)
        if self.backend is None:
            return report
        try:
            text = await self._generate_async(build_audit_prompt(content_digest, metrics, findings))
        except BackendUnavailable as e:
            logger.warning("Narrative backend unavailable, using fallback: %s", e)
            return report
        return replace(report, summary=text, source=NarrativeSource.BACKEND)

    def recommend(self, description: str) -> str:
        """Security recommendations for a free-text module description."""
        if self.backend is not None:
            try:
                return self._generate(build_recommendation_prompt(description))
            except BackendUnavailable as e:
                logger.warning("Recommendation backend unavailable, using fallback: %s", e)
        return fallback_recommendations(description)

    async def recommend_async(self, description: str) -> str:
        if self.backend is not None:
            try:
                return await self._generate_async(build_recommendation_prompt(description))
            except BackendUnavailable as e:
                logger.warning("Recommendation backend unavailable, using fallback: %s", e)
        return fallback_recommendations(description)

    def _generate(self, prompt: str) -> str:
        try:
            text = self.backend.generate(prompt)
        except Exception as e:
            raise BackendUnavailable(f"backend call failed: {e}") from e
        return self._require_text(text)

    async def _generate_async(self, prompt: str) -> str:
        try:
            text = await asyncio.wait_for(self.backend.agenerate(prompt), timeout=self.timeout_seconds)
        except asyncio.TimeoutError as e:
            raise BackendUnavailable(f"backend exceeded {self.timeout_seconds}s budget") from e
        except Exception as e:
            raise BackendUnavailable(f"backend call failed: {e}") from e
        return self._require_text(text)

    @staticmethod
    def _require_text(text: Any) -> str:
        text = (text or "").strip() if isinstance(text, str) else ""
        if not text:
            raise BackendUnavailable("backend returned an empty response")
        return text
