"""Bookmarklet request/response schemas.

The bookmarklet routes talk to a browser script running on third-party
pages, so their JSON uses camelCase keys (projectId, remainingUsage).
Python attributes stay snake_case; populate_by_name lets tests and services
build models with either spelling.

This module defines:
1. ProjectSnapshot: the project data embedded into the fill script
2. RequirementField: a directory link's declared form field
3. Request/response schemas for /tokens, /submissions and /preview
"""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Any, get_args, get_origin

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator
from pydantic.alias_generators import to_camel

from app.models import DirectoryLink, Project

# Upper bound for HTML posted to /preview (roughly a large directory form page)
_MAX_PREVIEW_HTML_LENGTH = 500_000


class _CamelModel(BaseModel):
    """Base for bookmarklet schemas serialized with camelCase keys."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="forbid",
    )


# =============================================================================
# Project Snapshot
# =============================================================================


def _coerce_text(value: Any) -> str:
    """Stored text value as a string; numbers are kept, anything else is ""."""
    if isinstance(value, str):
        return value
    if isinstance(value, int | float | Decimal) and not isinstance(value, bool):
        return str(value)
    return ""


class _SnapshotModel(_CamelModel):
    """Base for snapshot groups read from loosely typed JSONB columns.

    Stored project JSON may hold nulls, numbers or stray types where text
    is expected. These are normalized instead of rejected: a snapshot is
    built after the delivery token has been consumed.
    """

    model_config = ConfigDict(extra="ignore")

    @field_validator("*", mode="before")
    @classmethod
    def coerce_stored_value(cls, v: Any, info: ValidationInfo) -> Any:
        """Coerce a stored value to the shape its field expects."""
        annotation = cls.model_fields[info.field_name].annotation
        if annotation is str:
            return _coerce_text(v)
        if get_origin(annotation) is list:
            if not isinstance(v, list):
                return []
            (item_type,) = get_args(annotation)
            if item_type is str:
                return [_coerce_text(item) for item in v if item is not None]
            return [item for item in v if isinstance(item, dict | item_type)]
        if not isinstance(v, dict | BaseModel):
            return {}
        return v


class Address(_SnapshotModel):
    """Structured postal address of a project."""

    building: str = ""
    address_line1: str = ""
    address_line2: str = ""
    address_line3: str = ""
    district: str = ""
    city: str = ""
    state: str = ""
    country: str = ""
    pincode: str = ""


class SeoMetadata(_SnapshotModel):
    """SEO metadata of a project."""

    meta_title: str = ""
    meta_description: str = ""
    keywords: list[str] = Field(default_factory=list)
    target_keywords: list[str] = Field(default_factory=list)
    sitemap_url: str = ""
    robots_url: str = ""


class SocialHandles(_SnapshotModel):
    """Social profile URLs or handles."""

    facebook: str = ""
    twitter: str = ""
    instagram: str = ""
    linkedin: str = ""
    youtube: str = ""


class ArticleSubmission(_SnapshotModel):
    """Article used by article-directory submissions."""

    article_title: str = ""
    article_content: str = ""
    author_name: str = ""
    author_bio: str = ""
    tags: list[str] = Field(default_factory=list)


class Classified(_SnapshotModel):
    """Product listing used by classified-ad submissions."""

    product_name: str = ""
    price: str = ""
    condition: str = ""
    product_image_url: str = ""


class CustomField(_SnapshotModel):
    """A free-form key/value pair the project owner added.

    Custom fields take precedence over built-in resolvers when a directory
    declares a field whose normalized name equals the key.
    """

    key: str = ""
    value: str = ""


class ProjectSnapshot(_SnapshotModel):
    """Read-only view of a project at script synthesis time.

    Missing or null values are normalized to empty strings/lists and numbers
    to strings, so value resolution only ever sees text.
    """

    project_name: str = ""
    title: str = ""
    website_url: str = ""
    email: str = ""
    company_name: str = ""
    phone: str = ""
    whatsapp: str = ""
    business_description: str = ""
    category: str = ""
    keywords: list[str] = Field(default_factory=list)
    business_hours: str = ""
    established_year: str = ""
    logo_image_url: str = ""
    address: Address = Field(default_factory=Address)
    seo_metadata: SeoMetadata = Field(default_factory=SeoMetadata)
    social: SocialHandles = Field(default_factory=SocialHandles)
    article_submission: ArticleSubmission = Field(default_factory=ArticleSubmission)
    classified: Classified = Field(default_factory=Classified)
    custom_fields: list[CustomField] = Field(default_factory=list)

    @classmethod
    def from_project(cls, project: Project) -> "ProjectSnapshot":
        """Build a snapshot from a Project row.

        Args:
            project: Project ORM instance.

        Returns:
            ProjectSnapshot with None values replaced by defaults.
        """
        columns = {
            "project_name": project.project_name,
            "title": project.title,
            "website_url": project.website_url,
            "email": project.email,
            "company_name": project.company_name,
            "phone": project.phone,
            "whatsapp": project.whatsapp,
            "business_description": project.business_description,
            "category": project.category,
            "keywords": project.keywords,
            "business_hours": project.business_hours,
            "established_year": project.established_year,
            "logo_image_url": project.logo_image_url,
            "address": project.address,
            "seo_metadata": project.seo_metadata,
            "social": project.social,
            "article_submission": project.article_submission,
            "classified": project.classified,
            "custom_fields": project.custom_fields,
        }
        return cls.model_validate(
            {key: value for key, value in columns.items() if value is not None}
        )


class RequirementField(_CamelModel):
    """A form field a directory link declares as needed.

    Attributes:
        name: Value of the form control's name attribute.
        type: Control type hint (text, email, url, textarea, select, ...).
        required: Whether the directory marks the field mandatory.
        placeholder: Optional placeholder text shown by the directory.
    """

    model_config = ConfigDict(extra="ignore")

    name: str
    type: str = "text"
    required: bool = False
    placeholder: str | None = None


def requirement_set(link: DirectoryLink) -> list[RequirementField]:
    """Parse a link's stored requirement set, skipping nameless entries."""
    return [
        RequirementField.model_validate(item)
        for item in link.required_fields or []
        if isinstance(item, dict) and item.get("name")
    ]


# =============================================================================
# Request Schemas
# =============================================================================


class TokenIssueRequest(_CamelModel):
    """Request body for POST /bookmarklet/tokens.

    Attributes:
        project_id: Project to embed in the fill script.
        link_id: Directory link the script will fill.
    """

    project_id: uuid.UUID
    link_id: uuid.UUID


class SubmissionReportRequest(_CamelModel):
    """Request body for POST /bookmarklet/submissions.

    Sent by the fill script after it filled at least one field. Ids are
    kept as strings so malformed values map to INVALID_IDENTIFIER rather
    than a generic validation error.
    """

    token: str = Field(..., min_length=1, max_length=128)
    project_id: str = Field(..., min_length=1, max_length=64)
    link_id: str = Field(..., min_length=1, max_length=64)
    url: str = Field(default="", max_length=2048)
    title: str = Field(default="Untitled Page", max_length=500)
    description: str = Field(default="No description available", max_length=2000)


class PreviewRequest(_CamelModel):
    """Request body for POST /bookmarklet/preview.

    Attributes:
        project_id: Project whose data would be filled.
        link_id: Directory link whose requirement set drives phase one.
        html: Markup of the target page (or just its form).
    """

    project_id: uuid.UUID
    link_id: uuid.UUID
    html: str = Field(..., min_length=1, max_length=_MAX_PREVIEW_HTML_LENGTH)

    @field_validator("html")
    @classmethod
    def html_not_blank(cls, v: str) -> str:
        """Validate html is not only whitespace."""
        if not v.strip():
            msg = "html cannot be empty"
            raise ValueError(msg)
        return v


# =============================================================================
# Response Schemas
# =============================================================================


class TokenIssueResponse(_CamelModel):
    """Response data for POST /bookmarklet/tokens.

    Attributes:
        token_id: Opaque token the loader passes back.
        usage_limit: Script deliveries allowed.
        usage_count: Deliveries so far (0 at issue).
        expires_at: Token expiry.
        bookmarklet: Ready-to-save javascript: URL.
    """

    token_id: str
    usage_limit: int
    usage_count: int
    expires_at: datetime
    bookmarklet: str


class SubmissionReportResponse(_CamelModel):
    """Response body for POST /bookmarklet/submissions.

    Returned without a data envelope; the fill script reads these keys
    directly.
    """

    success: bool = True
    usage_count: int
    max_usage: int
    remaining_usage: int
    total_submissions: int


class PreviewFill(_CamelModel):
    """One field the fill script would set."""

    phase: str
    key: str
    name: str
    id: str
    value: str


class PreviewResponse(_CamelModel):
    """Response data for POST /bookmarklet/preview."""

    phase: str
    filled_count: int
    fills: list[PreviewFill]
    unmatched: list[str]
