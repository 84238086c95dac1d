from pydantic import BaseModel, Field
from typing import List, Optional

from binaudit import AuditMetadata, Finding, FindingCategory, Severity


class FindingModel(BaseModel):
    severity: Severity
    category: FindingCategory = FindingCategory.OTHER
    title: str
    description: str = ""
    recommendation: str = ""
    location: Optional[str] = None
    tool: Optional[str] = None

    def to_finding(self) -> Finding:
        return Finding(**self.model_dump())


class MetadataModel(BaseModel):
    tools_used: List[str] = Field(default_factory=list)
    analysis_duration_ms: int = Field(default=0, ge=0)
    lines_of_code: Optional[int] = Field(default=None, ge=0)
    file_size_bytes: int = Field(default=0, ge=0)

    def to_metadata(self) -> AuditMetadata:
        return AuditMetadata.from_dict(self.model_dump())


class SubmitRequest(BaseModel):
    payload_b64: str
    target_id: Optional[str] = None
    expected_digest: Optional[str] = None
    metadata: Optional[MetadataModel] = None


class AuditRequest(SubmitRequest):
    pass


class CompleteRequest(BaseModel):
    findings: List[FindingModel] = Field(default_factory=list)
    narrative: str
    severity: Optional[Severity] = None


class AnalyzeRequest(BaseModel):
    payload_b64: str
    expected_digest: Optional[str] = None


class RecommendationRequest(BaseModel):
    description: str
