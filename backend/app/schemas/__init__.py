"""Pydantic request/response schemas for API endpoints."""

from app.schemas.bookmarklet import (
    PreviewFill,
    PreviewRequest,
    PreviewResponse,
    CustomField,
    ProjectSnapshot,
    RequirementField,
    SubmissionReportRequest,
    SubmissionReportResponse,
    TokenIssueRequest,
    TokenIssueResponse,
)

__all__ = [
    # Embedded script data
    "CustomField",
    "ProjectSnapshot",
    "RequirementField",
    # Token issuance
    "TokenIssueRequest",
    "TokenIssueResponse",
    # Submission reports
    "SubmissionReportRequest",
    "SubmissionReportResponse",
    # Preview
    "PreviewFill",
    "PreviewRequest",
    "PreviewResponse",
]
