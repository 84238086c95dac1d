"""
Binary Audit Reference Implementation

Version: 1.0.0
License: Apache 2.0

Security review registry for compiled binary modules.

A submitted binary is given a stable content identity, analyzed by an
ordered set of pluggable analyzers, summarized into one severity verdict
and a risk narrative, and stored as an audit record that can be queried
by requester and by audited target.

Severity ordering:
    Critical > High > Medium > Low      (Info never raises the verdict)

An audit with no findings resolves to Low, never Info.

Usage:
    from binaudit import AuditPipeline, AuditRegistry

    registry = AuditRegistry()
    pipeline = AuditPipeline(registry)

    outcome = await pipeline.audit(payload, requester="alice", target_id="ledger")

    record = registry.get(outcome.audit_id)
    record.status        # AuditStatus.COMPLETED
    record.severity      # Severity.MEDIUM
    record.narrative     # backend text, or the rule-based fallback

    registry.list_by_requester("alice")
    registry.statistics()   # (total, completed, critical, high)
"""

__version__ = "1.0.0"
__license__ = "Apache-2.0"

# Data model
from .models import (
    Severity,
    SEVERITY_PRIORITY,
    FindingCategory,
    AuditStatus,
    Finding,
    CodeMetrics,
    AuditMetadata,
    AuditRecord,
    AuditSummary,
    AuditStatistics,
)

# Content identity
from .hashing import (
    digest,
    new_record_id,
    digest_prefix,
    verify_digest,
)

# Analyzers
from .analyzers import (
    Analyzer,
    SizeStructureAnalyzer,
    SymbolicExecutionAnalyzer,
    ANALYZER_TYPES,
    create_analyzer,
    default_analyzers,
)

# Aggregation
from .aggregator import (
    AggregationResult,
    FindingAggregator,
    compute_metrics,
    resolve_severity,
)

# Narrative
from .narrative import (
    BackendUnavailable,
    FallbackNarrativeGenerator,
    HttpNarrativeBackend,
    NarrativeBackend,
    NarrativeReport,
    NarrativeService,
    NarrativeSource,
    build_audit_prompt,
    fallback_recommendations,
)

# Registry
from .registry import (
    AuditRegistry,
    CollisionPolicy,
    DuplicateRecordError,
    UpdateOutcome,
)

# Pipeline
from .pipeline import (
    AnalysisReport,
    AuditOutcome,
    AuditPipeline,
)


__all__ = [
    # Version
    "__version__",

    # Models
    "Severity",
    "SEVERITY_PRIORITY",
    "FindingCategory",
    "AuditStatus",
    "Finding",
    "CodeMetrics",
    "AuditMetadata",
    "AuditRecord",
    "AuditSummary",
    "AuditStatistics",

    # Content identity
    "digest",
    "new_record_id",
    "digest_prefix",
    "verify_digest",

    # Analyzers
    "Analyzer",
    "SizeStructureAnalyzer",
    "SymbolicExecutionAnalyzer",
    "ANALYZER_TYPES",
    "create_analyzer",
    "default_analyzers",

    # Aggregation
    "AggregationResult",
    "FindingAggregator",
    "compute_metrics",
    "resolve_severity",

    # Narrative
    "BackendUnavailable",
    "FallbackNarrativeGenerator",
    "HttpNarrativeBackend",
    "NarrativeBackend",
    "NarrativeReport",
    "NarrativeService",
    "NarrativeSource",
    "build_audit_prompt",
    "fallback_recommendations",

    # Registry
    "AuditRegistry",
    "CollisionPolicy",
    "DuplicateRecordError",
    "UpdateOutcome",

    # Pipeline
    "AnalysisReport",
    "AuditOutcome",
    "AuditPipeline",
]
