"""API error classes.

HTTP status codes and machine-readable error codes for every failure the
API reports.

WHY CUSTOM ERROR CLASSES:
- Consistent error response format across all endpoints
- Easy to map to HTTP status codes in exception handlers
- Bookmarklet token failures stay distinguishable (expired vs. limit vs.
  mismatch vs. not found) all the way to the client
"""


class APIError(Exception):
    """Base class for API errors.

    All API errors have a code, message, and HTTP status.
    Subclasses set default status_code.

    Attributes:
        code: Machine-readable error code (e.g., "NOT_FOUND").
        message: Human-readable error message.
        status_code: HTTP status code to return.
        details: Optional list of additional error details.
    """

    def __init__(
        self,
        code: str,
        message: str,
        status_code: int = 500,
        details: list[dict] | None = None,
    ) -> None:
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details
        super().__init__(message)


class ValidationError(APIError):
    """Field validation failed (400).

    Use for request body validation errors, query param errors, etc.
    """

    def __init__(
        self,
        message: str,
        details: list[dict] | None = None,
    ) -> None:
        super().__init__(
            code="VALIDATION_ERROR",
            message=message,
            status_code=400,
            details=details,
        )


class InvalidIdentifierError(APIError):
    """Malformed project or link identifier (400).

    Raised before any database lookup so malformed ids never cost a query.
    """

    def __init__(self, resource: str) -> None:
        super().__init__(
            code="INVALID_IDENTIFIER",
            message=f"Invalid {resource} ID format",
            status_code=400,
        )


class UnauthorizedError(APIError):
    """Authentication required (401)."""

    def __init__(self, message: str = "Authentication required") -> None:
        super().__init__(
            code="UNAUTHORIZED",
            message=message,
            status_code=401,
        )


class ForbiddenError(APIError):
    """Not allowed to access resource (403)."""

    def __init__(self, message: str = "Access denied") -> None:
        super().__init__(
            code="FORBIDDEN",
            message=message,
            status_code=403,
        )


class NotFoundError(APIError):
    """Resource not found (404).

    Use when requested resource doesn't exist OR doesn't belong to user.

    WHY NOT SEPARATE "FORBIDDEN" FOR WRONG OWNERSHIP:
    - Revealing "exists but not yours" leaks information
    - From user perspective, resource simply doesn't exist
    """

    def __init__(self, resource: str, resource_id: str | None = None) -> None:
        if resource_id:
            message = f"{resource} with id '{resource_id}' not found"
        else:
            message = f"{resource} not found"
        super().__init__(
            code="NOT_FOUND",
            message=message,
            status_code=404,
        )


# =============================================================================
# Bookmarklet token errors
# =============================================================================


class TokenInvalidError(APIError):
    """Token unknown, already removed, or forged (400).

    The client asks the user to generate a new bookmarklet.
    """

    def __init__(self) -> None:
        super().__init__(
            code="TOKEN_INVALID",
            message="Invalid or expired token",
            status_code=400,
        )


class TokenExpiredError(APIError):
    """Token found but past its expiry (400)."""

    def __init__(self) -> None:
        super().__init__(
            code="TOKEN_EXPIRED",
            message="Token expired",
            status_code=400,
        )


class TokenMismatchError(APIError):
    """Token is bound to a different project/link pair (400)."""

    def __init__(self) -> None:
        super().__init__(
            code="TOKEN_MISMATCH",
            message="Token does not match project/link",
            status_code=400,
        )


class TokenUsageLimitError(APIError):
    """Token has no remaining uses (429).

    The client tells the user they are out of quota rather than asking
    them to regenerate.
    """

    def __init__(self, usage_count: int, max_usage: int) -> None:
        super().__init__(
            code="TOKEN_USAGE_LIMIT",
            message="Token usage limit reached",
            status_code=429,
            details=[{"usage_count": usage_count, "max_usage": max_usage}],
        )


class SubmissionLimitError(APIError):
    """Plan submission quota exhausted (429 at issuance, 403 at submission).

    Args:
        current_usage: Successful submissions already recorded for the user.
        limit: Plan quota.
        status_code: 429 when refusing a new token, 403 when refusing a report.
    """

    def __init__(self, current_usage: int, limit: int, status_code: int = 429) -> None:
        super().__init__(
            code="SUBMISSION_LIMIT_EXCEEDED",
            message=(
                f"You have used {current_usage}/{limit} submissions. "
                "Upgrade your plan to continue."
            ),
            status_code=status_code,
            details=[{"current_usage": current_usage, "limit": limit}],
        )


class InternalError(APIError):
    """Unexpected server error (500).

    Use for unhandled exceptions. Never expose stack traces to clients.
    """

    def __init__(self, message: str = "An unexpected error occurred") -> None:
        super().__init__(
            code="INTERNAL_ERROR",
            message=message,
            status_code=500,
        )
