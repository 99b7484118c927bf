"""Bookmarklet API router.

Endpoints:
- POST /bookmarklet/tokens: issue a token and its javascript: loader
- GET /bookmarklet/script: exchange a token for the fill script
- POST /bookmarklet/submissions: fill script reports a successful fill
- POST /bookmarklet/preview: dry-run the field matcher on posted HTML

/script and /submissions are called from third-party pages without our
session cookie. PublicCORSMiddleware (app.main) puts wildcard CORS headers
on every response from those two paths, errors included, which is why
unexpected failures here are converted to InternalError instead of being
left to the server error middleware.
"""

from typing import Annotated

import structlog
from fastapi import APIRouter, Query, Request, Response, status

from app.api.deps import CurrentUserId, DbSession, TokenStore
from app.core.config import settings
from app.core.errors import APIError, InternalError
from app.core.rate_limiting import limiter
from app.core.responses import DataResponse
from app.schemas.bookmarklet import (
    PreviewFill,
    PreviewRequest,
    PreviewResponse,
    SubmissionReportRequest,
    SubmissionReportResponse,
    TokenIssueRequest,
    TokenIssueResponse,
)
from app.services import bookmarklet_service
from app.services.bookmarklet_token_store import token_prefix

logger = structlog.get_logger()

router = APIRouter()

# Fill scripts embed per-use counters and must never be cached
_NO_CACHE_HEADERS = {
    "Cache-Control": "no-cache, no-store, must-revalidate",
    "Pragma": "no-cache",
    "Expires": "0",
}


@router.post("/tokens", status_code=status.HTTP_201_CREATED)
@limiter.limit(settings.rate_limit_token_issue)
async def issue_token(
    request: Request,  # noqa: ARG001 - Required by rate limiter
    body: TokenIssueRequest,
    user_id: CurrentUserId,
    db: DbSession,
    store: TokenStore,
) -> DataResponse[TokenIssueResponse]:
    """Issue a bookmarklet token for a project/link pair.

    The usage limit follows the caller's plan. Refused with 429 when the
    plan's submission quota is already used up.

    Returns:
        DataResponse with tokenId, usageLimit, usageCount, expiresAt and
        the ready-to-save bookmarklet URL.
    """
    issued = await bookmarklet_service.issue_bookmarklet(
        db, store, user_id, body.project_id, body.link_id
    )
    logger.info(
        "bookmarklet_token_issued",
        token=token_prefix(issued.token.token),
        project_id=issued.token.project_id,
        link_id=issued.token.link_id,
    )
    return DataResponse(
        data=TokenIssueResponse(
            token_id=issued.token.token,
            usage_limit=issued.token.max_usage,
            usage_count=issued.token.usage_count,
            expires_at=issued.token.expires_at,
            bookmarklet=issued.bookmarklet,
        )
    )


@router.get("/script")
@limiter.limit(settings.rate_limit_script)
async def get_script(
    request: Request,  # noqa: ARG001 - Required by rate limiter
    db: DbSession,
    store: TokenStore,
    token: Annotated[str, Query(min_length=1, max_length=128)],
    project_id: Annotated[str, Query(alias="projectId", min_length=1, max_length=64)],
    link_id: Annotated[str, Query(alias="linkId", min_length=1, max_length=64)],
) -> Response:
    """Deliver the fill script for a token.

    Consumes one use of the token. The loader appends a cache-busting "t"
    parameter, which is ignored.

    Returns:
        application/javascript response with the fill script.
    """
    try:
        script = await bookmarklet_service.deliver_script(
            db, store, token, project_id, link_id
        )
    except APIError:
        raise
    except Exception as exc:
        logger.exception(
            "bookmarklet_script_failed",
            token=token_prefix(token),
            project_id=project_id,
            link_id=link_id,
        )
        raise InternalError("Failed to generate bookmarklet script") from exc

    return Response(
        content=script,
        media_type="application/javascript",
        headers=_NO_CACHE_HEADERS,
    )


@router.post("/submissions")
async def report_submission(
    body: SubmissionReportRequest,
    db: DbSession,
    store: TokenStore,
) -> SubmissionReportResponse:
    """Record a submission reported by the fill script.

    Returns:
        Flat body with success, usageCount, maxUsage, remainingUsage and
        totalSubmissions.
    """
    try:
        return await bookmarklet_service.record_submission(db, store, body)
    except APIError:
        raise
    except Exception as exc:
        logger.exception(
            "bookmarklet_submission_failed",
            token=token_prefix(body.token),
            project_id=body.project_id,
            link_id=body.link_id,
        )
        raise InternalError("Failed to record submission") from exc


@router.post("/preview")
async def preview(
    body: PreviewRequest,
    user_id: CurrentUserId,
    db: DbSession,
) -> DataResponse[PreviewResponse]:
    """Show which fields the fill script would set on the posted HTML.

    Does not consume any token.
    """
    plan = await bookmarklet_service.preview_fill(
        db, user_id, body.project_id, body.link_id, body.html
    )
    return DataResponse(
        data=PreviewResponse(
            phase=plan.phase,
            filled_count=plan.filled_count,
            fills=[
                PreviewFill(
                    phase=fill.phase,
                    key=fill.key,
                    name=fill.control.name,
                    id=fill.control.id,
                    value=fill.value,
                )
                for fill in plan.fills
            ],
            unmatched=list(plan.unmatched),
        )
    )
