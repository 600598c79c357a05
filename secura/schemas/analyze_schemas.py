from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field
from typing import Dict, List, Optional


class CamelModel(BaseModel):
    """Snake-case attributes, camelCase on the wire."""
    model_config = ConfigDict(populate_by_name=True, from_attributes=True)


class AnalyzeResponse(CamelModel):
    filename: str
    is_deepfake: bool = Field(alias="isDeepfake")
    is_ai_safe: bool = Field(alias="isAISafe")
    classification: str  # real | ai_safe | deepfake
    message: str
    confidence: float  # 0-100
    label: str
    details: str
    artifacts: List[str]
    risk_level: str = Field(alias="riskLevel")  # low | medium | high
    analysis_type: str = Field(alias="analysisType")  # ai-forensics | video | filename-rule | parse-fallback
    analysis_log_id: Optional[str] = Field(default=None, alias="analysisLogId")


class ImpersonationResponse(CamelModel):
    result: str  # REAL | AI_SAFE | FAKE
    confidence: float
    reason: str
    artifacts: List[str]
    should_block: bool = Field(alias="shouldBlock")
    risk_level: str = Field(alias="riskLevel")
    uncertainty_factors: List[str] = Field(alias="uncertaintyFactors")
    classification: str
    check_type: str = Field(alias="checkType")
    claimed_identity_id: Optional[str] = Field(default=None, alias="claimedIdentityId")
    claimed_identity_name: Optional[str] = Field(default=None, alias="claimedIdentityName")
    analysis_log_id: Optional[str] = Field(default=None, alias="analysisLogId")


class AnalysisLogOut(CamelModel):
    id: str
    filename: str
    classification: str
    confidence: float
    explanation: str
    artifacts: Optional[List[str]] = None
    image_hash: Optional[str] = Field(default=None, alias="imageHash")
    analysis_context: str = Field(alias="analysisContext")
    user_id: Optional[str] = Field(default=None, alias="userId")
    created_at: Optional[datetime] = Field(default=None, alias="createdAt")


class ReportRequest(CamelModel):
    """
    Report against an analysis. Fields are optional here so missing values
    get a 400 with a readable message instead of a validation error.
    """
    analysis_log_id: Optional[str] = Field(default=None, alias="analysisLogId")
    expected_classification: Optional[str] = Field(default=None, alias="expectedClassification")
    reason: Optional[str] = None


class ReportResponse(CamelModel):
    success: bool
    report_id: str = Field(alias="reportId")


class ReportOut(CamelModel):
    id: str
    analysis_log_id: str = Field(alias="analysisLogId")
    reporter_user_id: Optional[str] = Field(default=None, alias="reporterUserId")
    expected_classification: str = Field(alias="expectedClassification")
    reason: str
    status: str
    admin_notes: Optional[str] = Field(default=None, alias="adminNotes")
    reviewed_by: Optional[str] = Field(default=None, alias="reviewedBy")
    reviewed_at: Optional[datetime] = Field(default=None, alias="reviewedAt")
    created_at: Optional[datetime] = Field(default=None, alias="createdAt")
    updated_at: Optional[datetime] = Field(default=None, alias="updatedAt")


class ReportDetail(ReportOut):
    analysis_log: Optional[AnalysisLogOut] = Field(default=None, alias="analysisLog")


class ReportUpdateRequest(CamelModel):
    status: str
    admin_notes: Optional[str] = Field(default=None, alias="adminNotes")


class ReportActionRequest(CamelModel):
    admin_notes: Optional[str] = Field(default=None, alias="adminNotes")


class ReportStats(BaseModel):
    pending: int
    reviewed: int
    resolved: int
    dismissed: int
    total: int


class MeResponse(CamelModel):
    user_id: str = Field(alias="userId")
    roles: List[str]


class StatusResponse(BaseModel):
    status: str
    version: str
    environment: str
    filename_ruleset: str
    filename_rules_primary: bool
    rate_limit: Dict[str, int]
