"""In-memory store for bookmarklet capability tokens.

A token binds a (project, directory link) pair to a usage quota and an
expiry. Every successful script delivery consumes one use; a token that is
expired or exhausted is removed immediately and never resolves again.

WHY IN-MEMORY:
- Tokens are short-lived (24h) and cheap to regenerate
- The original bookmarklet flow already kept them in process memory
- Can be replaced with a row-locked table for multi-instance deployments

Concurrency: check-and-consume is a compare-and-increment under a single
lock, so concurrent script fetches for one token (a double-clicked
bookmarklet) never push usage past the limit. The lock is a threading lock
because sync callers (tests, sweeps) may run outside the event loop.

Delivery receipts: each successful delivery leaves one pending submission
report on the token. When the final use exhausts the token, the record moves
to a tombstone table that validate() and check_and_consume() never see, so
the script delivered by that last use can still report its submission.
"""

import dataclasses
import secrets
import threading
import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from enum import Enum

from app.core.errors import InvalidIdentifierError, ValidationError

# Default TTL for bookmarklet tokens (24 hours)
DEFAULT_TOKEN_TTL_HOURS = 24

# 32 random bytes, hex encoded
_TOKEN_BYTES = 32

# Characters of the token that may appear in logs
_LOG_PREFIX_LENGTH = 8


def token_prefix(token: str) -> str:
    """Shorten a token for log correlation without leaking the secret."""
    return token[:_LOG_PREFIX_LENGTH] + "..."


def canonical_id(value: str | uuid.UUID, resource: str) -> str:
    """Normalize a project/link identifier to its canonical UUID string.

    Raises:
        InvalidIdentifierError: If value is not a UUID.
    """
    if isinstance(value, uuid.UUID):
        return str(value)
    try:
        return str(uuid.UUID(value))
    except (ValueError, AttributeError, TypeError) as exc:
        raise InvalidIdentifierError(resource) from exc


class ConsumeStatus(str, Enum):
    """Outcome of check_and_consume() and redeem_report()."""

    OK = "ok"
    NOT_FOUND = "not_found"
    EXPIRED = "expired"
    LIMIT_REACHED = "limit_reached"
    MISMATCH = "mismatch"


@dataclass(frozen=True)
class ConsumeResult:
    """Result of a token consumption attempt.

    Attributes:
        status: Outcome.
        user_id: Token owner (set when the token was found).
        usage_count: Usage after the attempt.
        max_usage: Usage limit.
    """

    status: ConsumeStatus
    user_id: uuid.UUID | None = None
    usage_count: int = 0
    max_usage: int = 0

    @property
    def ok(self) -> bool:
        return self.status is ConsumeStatus.OK

    @property
    def remaining(self) -> int:
        return max(self.max_usage - self.usage_count, 0)


@dataclass
class BookmarkletToken:
    """A capability token record.

    Attributes:
        token: Opaque identifier (hex).
        user_id: Owner; submissions are recorded against this user.
        project_id: Bound project (canonical UUID string).
        link_id: Bound directory link (canonical UUID string).
        max_usage: Maximum script deliveries.
        usage_count: Script deliveries so far.
        pending_reports: Deliveries not yet reported as submissions.
        created_at: Issue time.
        expires_at: When this token expires.
    """

    token: str
    user_id: uuid.UUID
    project_id: str
    link_id: str
    max_usage: int
    usage_count: int = 0
    pending_reports: int = 0
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    expires_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    def is_expired(self, now: datetime) -> bool:
        return now > self.expires_at

    def matches(self, project_id: str, link_id: str) -> bool:
        return self.project_id == project_id and self.link_id == link_id


class BookmarkletTokenStore:
    """In-memory store for bookmarklet tokens.

    Public methods return copies of the records; only the store mutates
    them.
    """

    def __init__(self, ttl_hours: int = DEFAULT_TOKEN_TTL_HOURS) -> None:
        """Initialize the token store.

        Args:
            ttl_hours: Token time-to-live in hours.
        """
        self._tokens: dict[str, BookmarkletToken] = {}
        self._spent: dict[str, BookmarkletToken] = {}
        self._ttl = timedelta(hours=ttl_hours)
        self._lock = threading.Lock()

    def issue(
        self,
        user_id: uuid.UUID,
        project_id: str | uuid.UUID,
        link_id: str | uuid.UUID,
        max_usage: int,
    ) -> BookmarkletToken:
        """Create a new token bound to a project/link pair.

        The pair is not checked for existence here; delivery looks both
        records up again.

        Args:
            user_id: Owner of the token.
            project_id: Project the script will embed.
            link_id: Directory link the script targets.
            max_usage: Number of script deliveries allowed.

        Returns:
            Copy of the new token record.

        Raises:
            InvalidIdentifierError: If project_id or link_id is not a UUID.
            ValidationError: If max_usage is less than 1.
        """
        project = canonical_id(project_id, "project")
        link = canonical_id(link_id, "link")
        if max_usage < 1:
            raise ValidationError(f"Usage limit must be at least 1, got {max_usage}")

        now = datetime.now(UTC)
        record = BookmarkletToken(
            token=secrets.token_hex(_TOKEN_BYTES),
            user_id=user_id,
            project_id=project,
            link_id=link,
            max_usage=max_usage,
            created_at=now,
            expires_at=now + self._ttl,
        )
        with self._lock:
            self._tokens[record.token] = record
        return dataclasses.replace(record)

    def validate(self, token: str) -> BookmarkletToken | None:
        """Look up a live token without consuming it.

        Args:
            token: Opaque token identifier.

        Returns:
            Copy of the record, or None if absent, exhausted, or expired.
        """
        with self._lock:
            record = self._tokens.get(token)
            if record is None:
                return None
            if record.is_expired(datetime.now(UTC)):
                del self._tokens[token]
                return None
            return dataclasses.replace(record)

    def check_and_consume(
        self,
        token: str,
        project_id: str,
        link_id: str,
    ) -> ConsumeResult:
        """Atomically check a token and consume one use.

        Checks, in order: existence, expiry (record removed), usage limit
        (record removed), project/link binding (record kept). On success the
        counter is incremented and the record is moved to the tombstone
        table once no uses remain.

        Args:
            token: Opaque token identifier.
            project_id: Project id supplied by the caller.
            link_id: Link id supplied by the caller.

        Returns:
            ConsumeResult with the outcome and the updated counters.
        """
        with self._lock:
            record = self._tokens.get(token)
            if record is None:
                return ConsumeResult(ConsumeStatus.NOT_FOUND)

            counters = {
                "user_id": record.user_id,
                "usage_count": record.usage_count,
                "max_usage": record.max_usage,
            }
            if record.is_expired(datetime.now(UTC)):
                del self._tokens[token]
                return ConsumeResult(ConsumeStatus.EXPIRED, **counters)
            if record.usage_count >= record.max_usage:
                del self._tokens[token]
                return ConsumeResult(ConsumeStatus.LIMIT_REACHED, **counters)
            if not record.matches(project_id, link_id):
                return ConsumeResult(ConsumeStatus.MISMATCH, **counters)

            record.usage_count += 1
            record.pending_reports += 1
            if record.usage_count >= record.max_usage:
                self._spent[token] = self._tokens.pop(token)

            return ConsumeResult(
                ConsumeStatus.OK,
                user_id=record.user_id,
                usage_count=record.usage_count,
                max_usage=record.max_usage,
            )

    def redeem_report(
        self,
        token: str,
        project_id: str,
        link_id: str,
    ) -> ConsumeResult:
        """Redeem one pending submission report left by a delivery.

        Args:
            token: Opaque token identifier.
            project_id: Project id supplied by the reporting script.
            link_id: Link id supplied by the reporting script.

        Returns:
            ConsumeResult with OK and the token's counters, NOT_FOUND when no
            delivery is waiting to be reported (or the token expired), or
            MISMATCH when the pair differs.
        """
        with self._lock:
            table = self._tokens if token in self._tokens else self._spent
            record = table.get(token)
            if record is None:
                return ConsumeResult(ConsumeStatus.NOT_FOUND)
            if record.is_expired(datetime.now(UTC)):
                del table[token]
                return ConsumeResult(ConsumeStatus.NOT_FOUND)
            if not record.matches(project_id, link_id):
                return ConsumeResult(ConsumeStatus.MISMATCH)
            if record.pending_reports < 1:
                return ConsumeResult(ConsumeStatus.NOT_FOUND)

            record.pending_reports -= 1
            if table is self._spent and record.pending_reports == 0:
                del self._spent[token]

            return ConsumeResult(
                ConsumeStatus.OK,
                user_id=record.user_id,
                usage_count=record.usage_count,
                max_usage=record.max_usage,
            )

    def cleanup_expired(self) -> int:
        """Remove all expired tokens and tombstones.

        Expiry is already enforced on access; this only reclaims memory.

        Returns:
            Number of records removed.
        """
        now = datetime.now(UTC)
        removed = 0
        with self._lock:
            for table in (self._tokens, self._spent):
                expired = [t for t, record in table.items() if record.is_expired(now)]
                for token in expired:
                    del table[token]
                removed += len(expired)
        return removed

    def __len__(self) -> int:
        """Number of live (usable) tokens."""
        with self._lock:
            return len(self._tokens)

    def clear(self) -> None:
        """Clear all tokens (for testing)."""
        with self._lock:
            self._tokens.clear()
            self._spent.clear()


# Singleton instance for the application
_token_store: BookmarkletTokenStore | None = None


def get_token_store() -> BookmarkletTokenStore:
    """Get the singleton token store instance.

    Returns:
        The BookmarkletTokenStore singleton.
    """
    global _token_store
    if _token_store is None:
        from app.core.config import settings

        _token_store = BookmarkletTokenStore(
            ttl_hours=settings.bookmarklet_token_ttl_hours
        )
    return _token_store


def reset_token_store() -> None:
    """Reset the token store singleton (for testing)."""
    global _token_store
    if _token_store is not None:
        _token_store.clear()
    _token_store = None
