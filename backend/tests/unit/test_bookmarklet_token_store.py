"""Tests for BookmarkletTokenStore — in-memory capability token store.

Covers:
- issue: token format, TTL, identifier and limit validation
- validate: lookup without consumption, expiry removal
- check_and_consume: check order, eager removal, counters
- concurrency: the usage counter never exceeds the limit
- redeem_report: one report per delivery, including the final one
- cleanup_expired / clear / singleton lifecycle
"""

import uuid
from concurrent.futures import ThreadPoolExecutor
from datetime import UTC, datetime, timedelta

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from app.core.errors import InvalidIdentifierError, ValidationError
from app.services.bookmarklet_token_store import (
    BookmarkletTokenStore,
    ConsumeStatus,
    get_token_store,
    reset_token_store,
    token_prefix,
)

# =============================================================================
# Constants
# =============================================================================

_USER = uuid.UUID("10000000-0000-0000-0000-000000000001")
_PROJECT = "20000000-0000-0000-0000-000000000002"
_LINK = "30000000-0000-0000-0000-000000000003"
_OTHER = "40000000-0000-0000-0000-000000000004"


# =============================================================================
# Helpers
# =============================================================================


def _issue(store: BookmarkletTokenStore, max_usage: int = 1) -> str:
    """Issue a token for the default pair and return its id."""
    return store.issue(_USER, _PROJECT, _LINK, max_usage).token


def _expire(store: BookmarkletTokenStore, token: str) -> None:
    """Move a token's expiry into the past (live or spent table)."""
    past = datetime.now(UTC) - timedelta(seconds=1)
    for table in (store._tokens, store._spent):
        if token in table:
            table[token].expires_at = past


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def store() -> BookmarkletTokenStore:
    """Fresh token store for each test."""
    return BookmarkletTokenStore(ttl_hours=24)


# =============================================================================
# Tests — issue
# =============================================================================


class TestIssue:
    """Token issuance."""

    def test_issue_returns_hex_token_with_fresh_counter(
        self, store: BookmarkletTokenStore
    ) -> None:
        """Tokens are 64 hex chars, start at 0 uses and expire in 24h."""
        record = store.issue(_USER, _PROJECT, _LINK, 3)

        assert len(record.token) == 64
        int(record.token, 16)
        assert record.usage_count == 0
        assert record.max_usage == 3
        assert record.expires_at - record.created_at == timedelta(hours=24)

    def test_issue_unique_tokens(self, store: BookmarkletTokenStore) -> None:
        """Every issue() generates a new token."""
        tokens = {_issue(store) for _ in range(20)}
        assert len(tokens) == 20

    def test_issue_canonicalizes_identifiers(
        self, store: BookmarkletTokenStore
    ) -> None:
        """Upper-case UUIDs and UUID objects are stored in canonical form."""
        record = store.issue(_USER, _PROJECT.upper(), uuid.UUID(_LINK), 1)
        assert record.project_id == _PROJECT
        assert record.link_id == _LINK

    def test_issue_rejects_malformed_project_id(
        self, store: BookmarkletTokenStore
    ) -> None:
        """A non-UUID project id raises INVALID_IDENTIFIER."""
        with pytest.raises(InvalidIdentifierError) as exc_info:
            store.issue(_USER, "not-a-uuid", _LINK, 1)
        assert exc_info.value.message == "Invalid project ID format"

    def test_issue_rejects_malformed_link_id(
        self, store: BookmarkletTokenStore
    ) -> None:
        """A non-UUID link id raises INVALID_IDENTIFIER."""
        with pytest.raises(InvalidIdentifierError) as exc_info:
            store.issue(_USER, _PROJECT, "42", 1)
        assert exc_info.value.message == "Invalid link ID format"

    def test_issue_rejects_zero_limit(self, store: BookmarkletTokenStore) -> None:
        """max_usage must be at least 1."""
        with pytest.raises(ValidationError):
            store.issue(_USER, _PROJECT, _LINK, 0)


# =============================================================================
# Tests — validate
# =============================================================================


class TestValidate:
    """Lookup without consumption."""

    def test_issue_then_validate_returns_bound_pair(
        self, store: BookmarkletTokenStore
    ) -> None:
        """Validating a fresh token returns the bound pair and counter 0."""
        token = _issue(store, max_usage=2)

        record = store.validate(token)

        assert record is not None
        assert (record.project_id, record.link_id) == (_PROJECT, _LINK)
        assert record.usage_count == 0
        assert record.user_id == _USER

    def test_validate_does_not_consume(self, store: BookmarkletTokenStore) -> None:
        """Repeated validation leaves the counter untouched."""
        token = _issue(store)
        store.validate(token)
        store.validate(token)
        assert store.check_and_consume(token, _PROJECT, _LINK).ok

    def test_validate_unknown_token(self, store: BookmarkletTokenStore) -> None:
        """Unknown tokens resolve to None."""
        assert store.validate("f" * 64) is None

    def test_validate_expired_token_removes_it(
        self, store: BookmarkletTokenStore
    ) -> None:
        """An expired token resolves to None and is dropped."""
        token = _issue(store)
        _expire(store, token)

        assert store.validate(token) is None
        assert len(store) == 0

    def test_validate_returns_copy(self, store: BookmarkletTokenStore) -> None:
        """Mutating the returned record does not change the store."""
        token = _issue(store)
        record = store.validate(token)
        assert record is not None
        record.usage_count = 99

        assert store.check_and_consume(token, _PROJECT, _LINK).ok


# =============================================================================
# Tests — check_and_consume
# =============================================================================


class TestCheckAndConsume:
    """The atomic check-and-increment."""

    def test_consume_increments_and_reports_remaining(
        self, store: BookmarkletTokenStore
    ) -> None:
        """Each success increments the counter and returns remaining uses."""
        token = _issue(store, max_usage=3)

        first = store.check_and_consume(token, _PROJECT, _LINK)
        second = store.check_and_consume(token, _PROJECT, _LINK)

        assert first.status is ConsumeStatus.OK
        assert (first.usage_count, first.remaining) == (1, 2)
        assert (second.usage_count, second.remaining) == (2, 1)
        assert second.user_id == _USER

    def test_final_use_removes_token(self, store: BookmarkletTokenStore) -> None:
        """Reaching the limit deletes the token eagerly."""
        token = _issue(store, max_usage=1)

        result = store.check_and_consume(token, _PROJECT, _LINK)

        assert result.ok
        assert result.remaining == 0
        assert store.validate(token) is None
        assert store.check_and_consume(token, _PROJECT, _LINK).status is (
            ConsumeStatus.NOT_FOUND
        )

    def test_third_of_three_uses_leaves_zero_remaining(
        self, store: BookmarkletTokenStore
    ) -> None:
        """After two recorded uses the third succeeds with nothing left."""
        token = _issue(store, max_usage=3)
        store.check_and_consume(token, _PROJECT, _LINK)
        store.check_and_consume(token, _PROJECT, _LINK)

        third = store.check_and_consume(token, _PROJECT, _LINK)

        assert third.ok
        assert third.usage_count == 3
        assert third.remaining == 0

    def test_unknown_token_not_found(self, store: BookmarkletTokenStore) -> None:
        """Forged tokens fail with NOT_FOUND."""
        result = store.check_and_consume("0" * 64, _PROJECT, _LINK)
        assert result.status is ConsumeStatus.NOT_FOUND

    def test_expired_token_fails_regardless_of_quota(
        self, store: BookmarkletTokenStore
    ) -> None:
        """Expiry wins over remaining quota and removes the token."""
        token = _issue(store, max_usage=25)
        _expire(store, token)

        result = store.check_and_consume(token, _PROJECT, _LINK)

        assert result.status is ConsumeStatus.EXPIRED
        assert store.check_and_consume(token, _PROJECT, _LINK).status is (
            ConsumeStatus.NOT_FOUND
        )

    def test_expired_checked_before_mismatch(
        self, store: BookmarkletTokenStore
    ) -> None:
        """An expired token reports EXPIRED even for the wrong pair."""
        token = _issue(store)
        _expire(store, token)

        result = store.check_and_consume(token, _OTHER, _LINK)

        assert result.status is ConsumeStatus.EXPIRED

    def test_record_at_limit_fails_with_limit_reached(
        self, store: BookmarkletTokenStore
    ) -> None:
        """A record whose counter already equals the limit is removed."""
        token = _issue(store, max_usage=2)
        store._tokens[token].usage_count = 2

        result = store.check_and_consume(token, _PROJECT, _LINK)

        assert result.status is ConsumeStatus.LIMIT_REACHED
        assert (result.usage_count, result.max_usage) == (2, 2)
        assert store.validate(token) is None

    @pytest.mark.parametrize(
        ("project_id", "link_id"),
        [(_OTHER, _LINK), (_PROJECT, _OTHER), (_OTHER, _OTHER)],
    )
    def test_mismatched_pair_fails_and_keeps_token(
        self,
        store: BookmarkletTokenStore,
        project_id: str,
        link_id: str,
    ) -> None:
        """A different pair fails with MISMATCH and consumes nothing."""
        token = _issue(store)

        result = store.check_and_consume(token, project_id, link_id)

        assert result.status is ConsumeStatus.MISMATCH
        record = store.validate(token)
        assert record is not None
        assert record.usage_count == 0


class TestConcurrency:
    """Concurrent consumption never exceeds the limit."""

    def test_concurrent_consumption_with_limit_one(
        self, store: BookmarkletTokenStore
    ) -> None:
        """Exactly one of many concurrent consumers succeeds."""
        token = _issue(store, max_usage=1)

        with ThreadPoolExecutor(max_workers=16) as pool:
            results = list(
                pool.map(
                    lambda _: store.check_and_consume(token, _PROJECT, _LINK),
                    range(64),
                )
            )

        successes = [r for r in results if r.ok]
        assert len(successes) == 1
        assert successes[0].usage_count == 1
        # Losers find the token already exhausted and removed
        assert {r.status for r in results if not r.ok} == {ConsumeStatus.NOT_FOUND}

    def test_concurrent_consumption_with_larger_limit(
        self, store: BookmarkletTokenStore
    ) -> None:
        """With limit N, exactly N consumers succeed with distinct counters."""
        token = _issue(store, max_usage=5)

        with ThreadPoolExecutor(max_workers=8) as pool:
            results = list(
                pool.map(
                    lambda _: store.check_and_consume(token, _PROJECT, _LINK),
                    range(40),
                )
            )

        counts = sorted(r.usage_count for r in results if r.ok)
        assert counts == [1, 2, 3, 4, 5]

    @settings(max_examples=50, deadline=None)
    @given(
        max_usage=st.integers(min_value=1, max_value=10),
        attempts=st.integers(min_value=0, max_value=30),
    )
    def test_usage_never_exceeds_limit(self, max_usage: int, attempts: int) -> None:
        """For any limit and number of attempts, successes <= limit."""
        store = BookmarkletTokenStore()
        token = _issue(store, max_usage=max_usage)

        results = [
            store.check_and_consume(token, _PROJECT, _LINK) for _ in range(attempts)
        ]

        successes = [r for r in results if r.ok]
        assert len(successes) == min(attempts, max_usage)
        assert all(r.usage_count <= max_usage for r in results)


# =============================================================================
# Tests — redeem_report
# =============================================================================


class TestRedeemReport:
    """Submission receipts left by deliveries."""

    def test_report_after_final_delivery(self, store: BookmarkletTokenStore) -> None:
        """The last delivery can report after the token stopped resolving."""
        token = _issue(store, max_usage=1)
        store.check_and_consume(token, _PROJECT, _LINK)

        receipt = store.redeem_report(token, _PROJECT, _LINK)

        assert receipt.ok
        assert (receipt.usage_count, receipt.max_usage) == (1, 1)
        assert receipt.user_id == _USER

    def test_one_report_per_delivery(self, store: BookmarkletTokenStore) -> None:
        """A second report for a single delivery is refused."""
        token = _issue(store, max_usage=3)
        store.check_and_consume(token, _PROJECT, _LINK)

        assert store.redeem_report(token, _PROJECT, _LINK).ok
        second = store.redeem_report(token, _PROJECT, _LINK)

        assert second.status is ConsumeStatus.NOT_FOUND

    def test_report_without_delivery_refused(
        self, store: BookmarkletTokenStore
    ) -> None:
        """A token that never delivered a script cannot report."""
        token = _issue(store)
        assert store.redeem_report(token, _PROJECT, _LINK).status is (
            ConsumeStatus.NOT_FOUND
        )

    def test_report_mismatch(self, store: BookmarkletTokenStore) -> None:
        """Reports for another pair fail with MISMATCH."""
        token = _issue(store)
        store.check_and_consume(token, _PROJECT, _LINK)

        result = store.redeem_report(token, _OTHER, _LINK)

        assert result.status is ConsumeStatus.MISMATCH

    def test_report_for_expired_token_refused(
        self, store: BookmarkletTokenStore
    ) -> None:
        """Receipts expire with their token."""
        token = _issue(store, max_usage=1)
        store.check_and_consume(token, _PROJECT, _LINK)
        _expire(store, token)

        assert store.redeem_report(token, _PROJECT, _LINK).status is (
            ConsumeStatus.NOT_FOUND
        )

    def test_spent_receipt_never_revives_token(
        self, store: BookmarkletTokenStore
    ) -> None:
        """A pending receipt does not make an exhausted token usable."""
        token = _issue(store, max_usage=1)
        store.check_and_consume(token, _PROJECT, _LINK)

        assert store.validate(token) is None
        assert not store.check_and_consume(token, _PROJECT, _LINK).ok
        assert store.redeem_report(token, _PROJECT, _LINK).ok


# =============================================================================
# Tests — cleanup / clear / singleton
# =============================================================================


class TestCleanup:
    """Memory hygiene."""

    def test_cleanup_removes_expired_tokens_and_receipts(
        self, store: BookmarkletTokenStore
    ) -> None:
        """Expired live tokens and spent receipts are both dropped."""
        live = _issue(store, max_usage=2)
        spent = _issue(store, max_usage=1)
        fresh = _issue(store, max_usage=1)
        store.check_and_consume(spent, _PROJECT, _LINK)
        _expire(store, live)
        _expire(store, spent)

        removed = store.cleanup_expired()

        assert removed == 2
        assert store.validate(fresh) is not None
        assert store.redeem_report(spent, _PROJECT, _LINK).status is (
            ConsumeStatus.NOT_FOUND
        )

    def test_cleanup_with_nothing_expired(self, store: BookmarkletTokenStore) -> None:
        """No-op when every token is still valid."""
        _issue(store)
        assert store.cleanup_expired() == 0
        assert len(store) == 1

    def test_clear(self, store: BookmarkletTokenStore) -> None:
        """clear() drops every token."""
        _issue(store)
        _issue(store)
        store.clear()
        assert len(store) == 0


class TestSingleton:
    """Application-wide store."""

    def test_get_token_store_returns_same_instance(self) -> None:
        """Repeated calls return the singleton."""
        assert get_token_store() is get_token_store()

    def test_reset_token_store_creates_new_instance(self) -> None:
        """reset_token_store() drops the singleton and its tokens."""
        first = get_token_store()
        token = _issue(first)

        reset_token_store()

        assert get_token_store() is not first
        assert get_token_store().validate(token) is None


def test_token_prefix_hides_secret() -> None:
    """Only the first 8 characters are logged."""
    assert token_prefix("abcdef0123456789") == "abcdef01..."
