"""
Binary Audit Data Model

Value types shared by the aggregator, the narrative generator and the
audit registry.

An AuditRecord is the unit of persisted state. Its id, content digest,
creation time and requester never change after submission; severity,
findings and narrative are written once, by the terminal update.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, NamedTuple, Optional


class Severity(str, Enum):
    """Severity levels, most severe first."""
    CRITICAL = "Critical"
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"
    INFO = "Info"

    @property
    def priority(self) -> int:
        return SEVERITY_PRIORITY[self]


# Higher value = more severe. INFO never raises an overall verdict.
SEVERITY_PRIORITY: Dict[Severity, int] = {
    Severity.CRITICAL: 4,
    Severity.HIGH: 3,
    Severity.MEDIUM: 2,
    Severity.LOW: 1,
    Severity.INFO: 0,
}


class FindingCategory(str, Enum):
    """Closed set of finding categories."""
    REENTRANCY = "Reentrancy"
    UNAUTHORIZED_ACCESS = "UnauthorizedAccess"
    RESOURCE_EXHAUSTION = "ResourceExhaustion"
    MEMORY_LEAK = "MemoryLeak"
    INTEGER_OVERFLOW = "IntegerOverflow"
    DATA_VALIDATION = "DataValidation"
    ACCESS_CONTROL = "AccessControl"
    PERFORMANCE = "Performance"
    OTHER = "Other"


MEMORY_CATEGORIES = frozenset({FindingCategory.MEMORY_LEAK})
PERFORMANCE_CATEGORIES = frozenset({FindingCategory.PERFORMANCE})


class AuditStatus(str, Enum):
    """
    Record lifecycle.

    IN_PROGRESS -> COMPLETED | FAILED | REQUIRES_REVIEW
    All three targets are terminal.
    """
    IN_PROGRESS = "InProgress"
    COMPLETED = "Completed"
    FAILED = "Failed"
    REQUIRES_REVIEW = "RequiresReview"

    def is_terminal(self) -> bool:
        return self != AuditStatus.IN_PROGRESS


@dataclass
class Finding:
    """One analyzer's observation about a payload."""
    severity: Severity
    category: FindingCategory
    title: str
    description: str
    recommendation: str
    location: Optional[str] = None
    tool: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        d = {
            "severity": self.severity.value,
            "category": self.category.value,
            "title": self.title,
            "description": self.description,
            "recommendation": self.recommendation,
        }
        if self.location:
            d["location"] = self.location
        if self.tool:
            d["tool"] = self.tool
        return d

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Finding':
        return cls(
            severity=Severity(data["severity"]),
            category=FindingCategory(data.get("category", FindingCategory.OTHER.value)),
            title=data["title"],
            description=data.get("description", ""),
            recommendation=data.get("recommendation", ""),
            location=data.get("location"),
            tool=data.get("tool"),
        )


@dataclass(frozen=True)
class CodeMetrics:
    """
    Rough structural proxies derived from payload size alone.

    These are NOT real static metrics; see aggregator.compute_metrics.
    """
    file_size_bytes: int
    estimated_lines_of_code: int
    function_count: int
    complexity_score: int

    def to_dict(self) -> Dict[str, int]:
        return {
            "file_size_bytes": self.file_size_bytes,
            "estimated_lines_of_code": self.estimated_lines_of_code,
            "function_count": self.function_count,
            "complexity_score": self.complexity_score,
        }


@dataclass
class AuditMetadata:
    """Tooling and size information attached to a record."""
    tools_used: List[str] = field(default_factory=list)
    analysis_duration_ms: int = 0
    lines_of_code: Optional[int] = None
    file_size_bytes: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tools_used": list(self.tools_used),
            "analysis_duration_ms": self.analysis_duration_ms,
            "lines_of_code": self.lines_of_code,
            "file_size_bytes": self.file_size_bytes,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'AuditMetadata':
        return cls(
            tools_used=list(data.get("tools_used", [])),
            analysis_duration_ms=int(data.get("analysis_duration_ms", 0)),
            lines_of_code=data.get("lines_of_code"),
            file_size_bytes=int(data.get("file_size_bytes", 0)),
        )


@dataclass
class AuditRecord:
    """Persisted audit of one submitted payload."""
    id: str
    content_digest: str
    created_at: int
    requester: str
    target_id: Optional[str] = None
    severity: Severity = Severity.INFO
    findings: List[Finding] = field(default_factory=list)
    narrative: str = ""
    status: AuditStatus = AuditStatus.IN_PROGRESS
    metadata: AuditMetadata = field(default_factory=AuditMetadata)

    def summary(self) -> 'AuditSummary':
        return AuditSummary(
            id=self.id,
            target_id=self.target_id,
            content_digest=self.content_digest,
            created_at=self.created_at,
            requester=self.requester,
            severity=self.severity,
            findings_count=len(self.findings),
            status=self.status,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "target_id": self.target_id,
            "content_digest": self.content_digest,
            "created_at": self.created_at,
            "requester": self.requester,
            "severity": self.severity.value,
            "findings": [f.to_dict() for f in self.findings],
            "narrative": self.narrative,
            "status": self.status.value,
            "metadata": self.metadata.to_dict(),
        }


@dataclass(frozen=True)
class AuditSummary:
    """List-view projection of a record; carries no finding detail."""
    id: str
    target_id: Optional[str]
    content_digest: str
    created_at: int
    requester: str
    severity: Severity
    findings_count: int
    status: AuditStatus

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "target_id": self.target_id,
            "content_digest": self.content_digest,
            "created_at": self.created_at,
            "requester": self.requester,
            "severity": self.severity.value,
            "findings_count": self.findings_count,
            "status": self.status.value,
        }


class AuditStatistics(NamedTuple):
    """Aggregate counts over one consistent registry snapshot."""
    total: int
    completed: int
    critical: int
    high: int
