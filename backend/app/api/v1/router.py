"""API v1 router aggregator.

URL structure with /api/v1 prefix. All v1 endpoint routers are included
here.
"""

from fastapi import APIRouter

from app.api.v1 import bookmarklet

router = APIRouter()

# =============================================================================
# Bookmarklet
# =============================================================================

BOOKMARKLET_PREFIX = "/bookmarklet"

router.include_router(
    bookmarklet.router, prefix=BOOKMARKLET_PREFIX, tags=["bookmarklet"]
)
