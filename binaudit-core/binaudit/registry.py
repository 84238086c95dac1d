"""
Binary Audit Registry

Stores audit records keyed by id and answers point lookups, filtered
listings and aggregate statistics.

Lifecycle per record:
    IN_PROGRESS -> COMPLETED | FAILED | REQUIRES_REVIEW   (all terminal)

Every operation is one short critical section under the registry lock.
No read-modify-write spans a suspension point, so callers that await
between submit() and finalize() must expect finalize() to report that
the record vanished or was already finalized.

Reads hand out deep copies; mutating a returned record never touches
storage.

Listing order is insertion order. An id collision that overwrites a
record keeps the original position.
"""

import copy
import logging
import threading
from enum import Enum
from typing import Callable, Dict, List, Optional, Sequence

from .aggregator import resolve_severity, stricter
from .hashing import digest, new_record_id
from .models import (
    AuditMetadata,
    AuditRecord,
    AuditStatistics,
    AuditStatus,
    AuditSummary,
    Finding,
    Severity,
)
from .util import now_ns

logger = logging.getLogger(__name__)

IN_PROGRESS_NARRATIVE = "Audit in progress..."
DEFAULT_TOOLS = ("AI Analysis",)


class CollisionPolicy(str, Enum):
    """What submit() does when a derived id already exists."""
    OVERWRITE = "overwrite"  # last write wins
    REJECT = "reject"


class UpdateOutcome(str, Enum):
    """Result of a terminal update."""
    UPDATED = "UPDATED"
    NOT_FOUND = "NOT_FOUND"
    ALREADY_TERMINAL = "ALREADY_TERMINAL"


class DuplicateRecordError(Exception):
    """Raised by submit() under CollisionPolicy.REJECT."""

    def __init__(self, record_id: str):
        self.record_id = record_id
        super().__init__(f"Audit record id collision: {record_id}")


class AuditRegistry:
    """
    In-memory audit registry.

    Usage:
        registry = AuditRegistry()
        audit_id = registry.submit(payload, requester="alice")
        registry.complete(audit_id, findings, narrative, Severity.MEDIUM)
        registry.get(audit_id).status   # AuditStatus.COMPLETED
    """

    def __init__(
        self,
        clock: Callable[[], int] = now_ns,
        collision_policy: CollisionPolicy = CollisionPolicy.OVERWRITE
    ):
        self._records: Dict[str, AuditRecord] = {}
        self._lock = threading.Lock()
        self._clock = clock
        self.collision_policy = collision_policy

    def submit(
        self,
        payload: bytes,
        requester: str,
        target_id: Optional[str] = None,
        metadata: Optional[AuditMetadata] = None
    ) -> str:
        """
        Create an IN_PROGRESS record for a payload and return its id.

        The record starts with no findings, INFO severity as a
        placeholder and a fixed in-progress narrative.
        """
        content_digest = digest(payload)
        timestamp = self._clock()
        record_id = new_record_id(requester, timestamp)

        if metadata is None:
            metadata = AuditMetadata(
                tools_used=list(DEFAULT_TOOLS),
                analysis_duration_ms=0,
                lines_of_code=None,
                file_size_bytes=len(payload),
            )

        record = AuditRecord(
            id=record_id,
            content_digest=content_digest,
            created_at=timestamp,
            requester=requester,
            target_id=target_id,
            severity=Severity.INFO,
            findings=[],
            narrative=IN_PROGRESS_NARRATIVE,
            status=AuditStatus.IN_PROGRESS,
            metadata=copy.deepcopy(metadata),
        )

        with self._lock:
            existing = self._records.get(record_id)
            if existing is not None:
                if self.collision_policy == CollisionPolicy.REJECT:
                    raise DuplicateRecordError(record_id)
                logger.warning(
                    "Audit id %s collided (previous digest %s, status %s); overwriting",
                    record_id, existing.content_digest, existing.status.value,
                )
            self._records[record_id] = record

        logger.debug("Submitted audit %s for requester %s", record_id, requester)
        return record_id

    def complete(
        self,
        audit_id: str,
        findings: Sequence[Finding],
        narrative: str,
        severity: Optional[Severity] = None,
        metadata: Optional[AuditMetadata] = None
    ) -> bool:
        """
        Write final results and move the record to COMPLETED.

        Returns False (without touching storage) when the id is unknown
        or the record already reached a terminal status.
        """
        outcome = self.finalize(
            audit_id, findings, narrative, severity,
            status=AuditStatus.COMPLETED, metadata=metadata,
        )
        return outcome == UpdateOutcome.UPDATED

    def finalize(
        self,
        audit_id: str,
        findings: Sequence[Finding],
        narrative: str,
        severity: Optional[Severity] = None,
        status: AuditStatus = AuditStatus.COMPLETED,
        metadata: Optional[AuditMetadata] = None
    ) -> UpdateOutcome:
        """
        Terminal update with an explicit target status.

        The stored severity is never looser than the severity resolved
        from the findings themselves.
        """
        if not status.is_terminal():
            raise ValueError(f"Cannot finalize audit into non-terminal status {status.value}")

        findings = copy.deepcopy(list(findings))
        resolved = resolve_severity(findings)
        final_severity = resolved if severity is None else stricter(severity, resolved)
        if severity is not None and final_severity != severity:
            logger.warning(
                "Audit %s: supplied severity %s is looser than findings (%s); storing %s",
                audit_id, severity.value, resolved.value, final_severity.value,
            )

        with self._lock:
            record = self._records.get(audit_id)
            if record is None:
                return UpdateOutcome.NOT_FOUND
            if record.status.is_terminal():
                return UpdateOutcome.ALREADY_TERMINAL

            record.findings = findings
            record.narrative = narrative
            record.severity = final_severity
            if metadata is not None:
                record.metadata = copy.deepcopy(metadata)
            record.status = status

        logger.debug("Finalized audit %s as %s", audit_id, status.value)
        return UpdateOutcome.UPDATED

    def get(self, audit_id: str) -> Optional[AuditRecord]:
        """Point lookup. None when absent."""
        with self._lock:
            record = self._records.get(audit_id)
            return copy.deepcopy(record) if record is not None else None

    def summarize(self, audit_id: str) -> Optional[AuditSummary]:
        """List-view projection of one record. None when absent."""
        with self._lock:
            record = self._records.get(audit_id)
            return record.summary() if record is not None else None

    def list_by_requester(self, requester: str) -> List[AuditSummary]:
        with self._lock:
            return [r.summary() for r in self._records.values() if r.requester == requester]

    def list_by_target(self, target_id: str) -> List[AuditSummary]:
        with self._lock:
            return [r.summary() for r in self._records.values() if r.target_id == target_id]

    def statistics(self) -> AuditStatistics:
        """(total, completed, critical, high) over one consistent snapshot."""
        with self._lock:
            records = list(self._records.values())
            return AuditStatistics(
                total=len(records),
                completed=sum(1 for r in records if r.status == AuditStatus.COMPLETED),
                critical=sum(1 for r in records if r.severity == Severity.CRITICAL),
                high=sum(1 for r in records if r.severity == Severity.HIGH),
            )

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def __contains__(self, audit_id: object) -> bool:
        with self._lock:
            return audit_id in self._records
