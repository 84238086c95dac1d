"""
Binary Audit Pipeline

Drives one submission through the system:

    submit (IN_PROGRESS)
        -> aggregate findings           (worker thread, done before the narrative)
        -> narrative                    (may await the backend)
        -> finalize (terminal status)   (re-validated under the registry lock)

While the backend call is awaited, other operations may run against the
same registry. The pipeline holds no record reference across that await:
finalize() re-checks existence and status, and the outcome reports
NOT_FOUND / ALREADY_TERMINAL instead of overwriting.

If the audit is cancelled or fails unexpectedly while its record is
IN_PROGRESS, the record is finalized as FAILED so it never stays in
progress. Resubmission always gets a fresh id.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple

from .aggregator import AggregationResult, FindingAggregator, compute_metrics
from .hashing import digest
from .models import AuditMetadata, AuditRecord, AuditStatus, Severity
from .narrative import NarrativeReport, NarrativeService
from .registry import AuditRegistry, UpdateOutcome
from .util import elapsed_ms, now_ns

logger = logging.getLogger(__name__)

GENERAL_RECOMMENDATIONS = (
    "Monitor resource consumption patterns",
    "Implement comprehensive input validation",
    "Follow platform security best practices",
)

FAILED_NARRATIVE = "Audit failed before analysis completed."
CANCELLED_NARRATIVE = "Audit cancelled before analysis completed."


@dataclass
class AnalysisReport:
    """Stand-alone analysis of a payload; nothing is stored."""
    content_digest: str
    aggregation: AggregationResult
    narrative: NarrativeReport
    recommendations: List[str] = field(default_factory=lambda: list(GENERAL_RECOMMENDATIONS))
    analyzed_at: int = 0

    @property
    def severity(self) -> Severity:
        return self.aggregation.severity

    def to_dict(self) -> Dict[str, Any]:
        return {
            "content_digest": self.content_digest,
            "static_analysis": self.aggregation.to_dict(),
            "narrative": self.narrative.to_dict(),
            "overall_severity": self.severity.value,
            "recommendations": list(self.recommendations),
            "analyzed_at": self.analyzed_at,
        }


@dataclass
class AuditOutcome:
    """Result of AuditPipeline.audit()."""
    audit_id: str
    update: UpdateOutcome
    status: AuditStatus
    report: Optional[AnalysisReport] = None
    record: Optional[AuditRecord] = None

    def stored(self) -> bool:
        return self.update == UpdateOutcome.UPDATED


class AuditPipeline:
    """
    Submission -> analysis -> terminal update.

    Usage:
        pipeline = AuditPipeline(AuditRegistry())
        outcome = await pipeline.audit(payload, requester="alice")
        outcome.record.severity
    """

    def __init__(
        self,
        registry: AuditRegistry,
        aggregator: Optional[FindingAggregator] = None,
        narrator: Optional[NarrativeService] = None
    ):
        self.registry = registry
        self.aggregator = aggregator or FindingAggregator()
        self.narrator = narrator or NarrativeService()

    def _aggregate(self, payload: bytes) -> Tuple[str, AggregationResult]:
        return digest(payload), self.aggregator.aggregate(payload, compute_metrics(payload))

    def analyze(self, payload: bytes) -> AnalysisReport:
        """Analyze without storing; the backend is called synchronously."""
        content_digest, aggregation = self._aggregate(payload)
        narrative = self.narrator.narrate(content_digest, aggregation.metrics, aggregation.findings)
        return AnalysisReport(
            content_digest=content_digest,
            aggregation=aggregation,
            narrative=narrative,
            analyzed_at=now_ns(),
        )

    async def analyze_async(self, payload: bytes) -> AnalysisReport:
        """
        Analyze without storing.

        Hashing and the analyzers run in a worker thread so large payloads
        do not block the event loop. The aggregation is complete before
        the narrative backend is awaited.
        """
        content_digest, aggregation = await asyncio.to_thread(self._aggregate, payload)
        narrative = await self.narrator.narrate_async(
            content_digest, aggregation.metrics, aggregation.findings
        )
        return AnalysisReport(
            content_digest=content_digest,
            aggregation=aggregation,
            narrative=narrative,
            analyzed_at=now_ns(),
        )

    async def audit(
        self,
        payload: bytes,
        requester: str,
        target_id: Optional[str] = None,
        metadata: Optional[AuditMetadata] = None,
        on_submitted: Optional[Callable[[str], None]] = None
    ) -> AuditOutcome:
        """
        Run a full audit and store the result in the registry.

        Args:
            payload: Module bytes
            requester: Submitting identity
            target_id: Optional deployment target
            metadata: Stored with the IN_PROGRESS record. On finalize only
                its tools_used is kept (listed first, followed by any
                analyzer not already named). analysis_duration_ms,
                lines_of_code and file_size_bytes are replaced by the
                values measured for this payload.
            on_submitted: Called with the new record id right after
                submission, before any analysis runs

        Returns:
            AuditOutcome with the final record (None if it was removed)
        """
        audit_id = self.registry.submit(payload, requester, target_id=target_id, metadata=metadata)
        if on_submitted is not None:
            on_submitted(audit_id)
        started = time.perf_counter()

        try:
            report = await self.analyze_async(payload)
        except asyncio.CancelledError:
            outcome = self._mark_failed(audit_id, CANCELLED_NARRATIVE, metadata, payload, started)
            logger.warning("Audit %s cancelled; record marked Failed (%s)", audit_id, outcome.value)
            raise
        except Exception:
            outcome = self._mark_failed(audit_id, FAILED_NARRATIVE, metadata, payload, started)
            logger.exception("Audit %s failed; record marked Failed (%s)", audit_id, outcome.value)
            return AuditOutcome(
                audit_id=audit_id,
                update=outcome,
                status=AuditStatus.FAILED,
                record=self.registry.get(audit_id),
            )

        aggregation = report.aggregation
        status = AuditStatus.COMPLETED if aggregation.complete() else AuditStatus.REQUIRES_REVIEW

        update = self.registry.finalize(
            audit_id,
            aggregation.findings,
            report.narrative.summary,
            aggregation.severity,
            status=status,
            metadata=self._metadata(metadata, payload, started, aggregation),
        )
        if update != UpdateOutcome.UPDATED:
            logger.warning("Audit %s result not stored: %s", audit_id, update.value)

        record = self.registry.get(audit_id)
        return AuditOutcome(
            audit_id=audit_id,
            update=update,
            status=record.status if record else status,
            report=report,
            record=record,
        )

    def _mark_failed(
        self,
        audit_id: str,
        narrative: str,
        supplied: Optional[AuditMetadata],
        payload: bytes,
        started: float
    ) -> UpdateOutcome:
        return self.registry.finalize(
            audit_id, [], narrative, status=AuditStatus.FAILED,
            metadata=self._metadata(supplied, payload, started, None),
        )

    @staticmethod
    def _metadata(
        supplied: Optional[AuditMetadata],
        payload: bytes,
        started: float,
        aggregation: Optional[AggregationResult]
    ) -> AuditMetadata:
        tools = list(aggregation.tools_used) if aggregation else []
        if supplied is not None:
            tools = list(supplied.tools_used) + [t for t in tools if t not in supplied.tools_used]
        return AuditMetadata(
            tools_used=tools,
            analysis_duration_ms=elapsed_ms(started),
            lines_of_code=aggregation.metrics.estimated_lines_of_code if aggregation else None,
            file_size_bytes=len(payload),
        )
