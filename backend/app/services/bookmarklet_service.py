"""Bookmarklet workflow service.

Coordinates the token store, repositories and script synthesis for the
three steps of the bookmarklet flow:

1. issue_bookmarklet: dashboard asks for a token for (project, link)
2. deliver_script: loader on a third-party page exchanges the token for
   the fill script (consumes one use)
3. record_submission: fill script reports a successful fill

preview_fill runs the same matching server side against posted HTML
without touching any token.
"""

import logging
import uuid
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.errors import (
    NotFoundError,
    SubmissionLimitError,
    TokenExpiredError,
    TokenInvalidError,
    TokenMismatchError,
    TokenUsageLimitError,
)
from app.models import DirectoryLink, Project, User
from app.repositories.directory_link_repository import DirectoryLinkRepository
from app.repositories.project_repository import ProjectRepository
from app.repositories.submission_repository import SubmissionRepository
from app.repositories.user_repository import UserRepository
from app.schemas.bookmarklet import (
    ProjectSnapshot,
    SubmissionReportRequest,
    SubmissionReportResponse,
    requirement_set,
)
from app.services.bookmarklet_loader import build_loader
from app.services.bookmarklet_token_store import (
    BookmarkletToken,
    BookmarkletTokenStore,
    ConsumeResult,
    ConsumeStatus,
    canonical_id,
    token_prefix,
)
from app.services.field_matcher import FillPlan, match_form_controls
from app.services.field_rules import resolve_rules
from app.services.form_parser import parse_form_controls
from app.services.plan_limits import get_plan_limits, is_submission_limit_reached
from app.services.script_synthesizer import (
    UsageInfo,
    render_fill_script,
    resolve_requirements,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IssuedBookmarklet:
    """A freshly issued token and the loader that carries it."""

    token: BookmarkletToken
    bookmarklet: str


# =============================================================================
# Lookups
# =============================================================================


async def _get_user(db: AsyncSession, user_id: uuid.UUID) -> User:
    user = await UserRepository.get_by_id(db, user_id)
    if user is None:
        raise NotFoundError("User")
    return user


async def _get_link(db: AsyncSession, link_id: uuid.UUID) -> DirectoryLink:
    link = await DirectoryLinkRepository.get_by_id(db, link_id)
    if link is None:
        raise NotFoundError("Link")
    return link


async def _check_submission_quota(
    db: AsyncSession,
    user: User,
    status_code: int,
) -> None:
    limits = get_plan_limits(user.plan)
    used = await SubmissionRepository.count_successful(db, user.id)
    if is_submission_limit_reached(limits, used):
        # Unlimited plans never reach this branch
        raise SubmissionLimitError(used, limits.submissions or 0, status_code)


# =============================================================================
# Issue
# =============================================================================


async def issue_bookmarklet(
    db: AsyncSession,
    store: BookmarkletTokenStore,
    user_id: uuid.UUID,
    project_id: uuid.UUID,
    link_id: uuid.UUID,
) -> IssuedBookmarklet:
    """Issue a token for a project/link pair and build its loader.

    The usage limit comes from the user's plan.

    Args:
        db: Async database session.
        store: Token store.
        user_id: Authenticated caller.
        project_id: Project to embed; must belong to the caller.
        link_id: Directory link to fill.

    Returns:
        IssuedBookmarklet with the token record and javascript: URL.

    Raises:
        NotFoundError: If the user, project or link does not exist.
        SubmissionLimitError: If the plan's submission quota is used up (429).
    """
    user = await _get_user(db, user_id)
    project = await ProjectRepository.get_for_user(db, project_id, user_id)
    if project is None:
        raise NotFoundError("Project")
    await _get_link(db, link_id)
    await _check_submission_quota(db, user, status_code=429)

    limits = get_plan_limits(user.plan)
    record = store.issue(user_id, project_id, link_id, limits.bookmarklet_max_usage)
    loader = build_loader(
        settings.script_endpoint_url,
        record.token,
        record.project_id,
        record.link_id,
    )
    logger.info(
        "Issued bookmarklet token %s for project %s link %s (max_usage=%d)",
        token_prefix(record.token),
        record.project_id,
        record.link_id,
        record.max_usage,
    )
    return IssuedBookmarklet(token=record, bookmarklet=loader)


# =============================================================================
# Deliver
# =============================================================================


def consume_or_raise(
    store: BookmarkletTokenStore,
    token: str,
    project_id: str,
    link_id: str,
) -> ConsumeResult:
    """Consume one use of a token or raise the matching API error.

    Raises:
        TokenInvalidError: Unknown or already removed token (400).
        TokenExpiredError: Token past its expiry (400).
        TokenUsageLimitError: No uses left (429).
        TokenMismatchError: Token bound to another pair (400).
    """
    result = store.check_and_consume(token, project_id, link_id)
    if result.status is ConsumeStatus.OK:
        return result

    logger.info(
        "Bookmarklet token %s rejected: %s", token_prefix(token), result.status.value
    )
    if result.status is ConsumeStatus.EXPIRED:
        raise TokenExpiredError()
    if result.status is ConsumeStatus.LIMIT_REACHED:
        raise TokenUsageLimitError(result.usage_count, result.max_usage)
    if result.status is ConsumeStatus.MISMATCH:
        raise TokenMismatchError()
    raise TokenInvalidError()


async def deliver_script(
    db: AsyncSession,
    store: BookmarkletTokenStore,
    token: str,
    project_id: str,
    link_id: str,
) -> str:
    """Exchange a token for the fill script.

    Order matters: identifiers are format-checked, then the token is
    consumed, then the project and link are read. A use consumed here is
    not refunded if a later step fails.

    Args:
        db: Async database session.
        store: Token store.
        token: Capability token from the loader.
        project_id: Project id from the loader.
        link_id: Link id from the loader.

    Returns:
        JavaScript source of the fill script.

    Raises:
        InvalidIdentifierError: If an id is not a UUID (400).
        APIError: Token failures from consume_or_raise().
        NotFoundError: If the project or link no longer exists (404).
    """
    project_key = canonical_id(project_id, "project")
    link_key = canonical_id(link_id, "link")
    result = consume_or_raise(store, token, project_key, link_key)

    project = await ProjectRepository.get_by_id(db, uuid.UUID(project_key))
    if project is None or project.user_id != result.user_id:
        raise NotFoundError("Project")
    link = await _get_link(db, uuid.UUID(link_key))

    snapshot = ProjectSnapshot.from_project(project)
    script = render_fill_script(
        snapshot=snapshot,
        declared=resolve_requirements(requirement_set(link), snapshot),
        usage=UsageInfo(result.usage_count, result.max_usage),
        submission_url=settings.submission_endpoint_url,
        token=token,
        project_id=project_key,
        link_id=link_key,
    )
    logger.info(
        "Delivered fill script for token %s (usage %d/%d)",
        token_prefix(token),
        result.usage_count,
        result.max_usage,
    )
    return script


# =============================================================================
# Report
# =============================================================================


def _submission_notes(
    receipt: ConsumeResult,
    report: SubmissionReportRequest,
) -> str:
    return (
        f"Submitted via bookmarklet. "
        f"Usage: {receipt.usage_count}/{receipt.max_usage}. "
        f"Page: {report.url or 'unknown'}. "
        f"Title: {report.title}. "
        f"Description: {report.description}"
    )


async def record_submission(
    db: AsyncSession,
    store: BookmarkletTokenStore,
    report: SubmissionReportRequest,
) -> SubmissionReportResponse:
    """Record a submission reported by the fill script.

    Each script delivery can be reported once. The token's last delivery
    can still report after the token itself stopped resolving.

    Args:
        db: Async database session.
        store: Token store.
        report: Report body from the script.

    Returns:
        Updated counters for display in the page.

    Raises:
        InvalidIdentifierError: If an id is not a UUID (400).
        TokenInvalidError: No delivery waiting to be reported (400).
        TokenMismatchError: Report for another pair (400).
        NotFoundError: Link or owner no longer exists (404).
        SubmissionLimitError: Plan quota used up (403).
    """
    project_key = canonical_id(report.project_id, "project")
    link_key = canonical_id(report.link_id, "link")

    receipt = store.redeem_report(report.token, project_key, link_key)
    if receipt.status is ConsumeStatus.MISMATCH:
        raise TokenMismatchError()
    if receipt.status is not ConsumeStatus.OK or receipt.user_id is None:
        raise TokenInvalidError()

    link = await _get_link(db, uuid.UUID(link_key))
    user = await _get_user(db, receipt.user_id)
    await _check_submission_quota(db, user, status_code=403)

    await SubmissionRepository.create(
        db,
        user_id=user.id,
        project_id=uuid.UUID(project_key),
        link_id=link.id,
        directory=link.name,
        category=link.category or "",
        page_url=report.url,
        page_title=report.title,
        page_description=report.description,
        notes=_submission_notes(receipt, report),
    )
    total = await SubmissionRepository.count_successful(db, user.id)
    logger.info(
        "Recorded bookmarklet submission for token %s to %s (total=%d)",
        token_prefix(report.token),
        link.name,
        total,
    )
    return SubmissionReportResponse(
        success=True,
        usage_count=receipt.usage_count,
        max_usage=receipt.max_usage,
        remaining_usage=receipt.remaining,
        total_submissions=total,
    )


# =============================================================================
# Preview
# =============================================================================


async def preview_fill(
    db: AsyncSession,
    user_id: uuid.UUID,
    project_id: uuid.UUID,
    link_id: uuid.UUID,
    html: str,
) -> FillPlan:
    """Show what the fill script would do on a page.

    Args:
        db: Async database session.
        user_id: Authenticated caller.
        project_id: Project whose data would be filled.
        link_id: Directory link whose requirement set drives phase one.
        html: Page markup.

    Returns:
        FillPlan from the field matcher.

    Raises:
        NotFoundError: If the project (for this user) or link does not exist.
    """
    project: Project | None = await ProjectRepository.get_for_user(
        db, project_id, user_id
    )
    if project is None:
        raise NotFoundError("Project")
    link = await _get_link(db, link_id)

    snapshot = ProjectSnapshot.from_project(project)
    return match_form_controls(
        parse_form_controls(html),
        resolve_requirements(requirement_set(link), snapshot),
        resolve_rules(snapshot),
    )
