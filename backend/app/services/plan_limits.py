"""Subscription plan limits for the bookmarklet flow.

Each plan grants a number of script deliveries per bookmarklet token and a
total number of recorded directory submissions.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class PlanLimits:
    """Limits attached to a subscription plan.

    Attributes:
        bookmarklet_max_usage: Script deliveries allowed per token.
        submissions: Total successful submissions, None for unlimited.
    """

    bookmarklet_max_usage: int
    submissions: int | None


PLAN_LIMITS: dict[str, PlanLimits] = {
    "free": PlanLimits(bookmarklet_max_usage=1, submissions=1),
    "pro": PlanLimits(bookmarklet_max_usage=5, submissions=750),
    "business": PlanLimits(bookmarklet_max_usage=10, submissions=1500),
    "enterprise": PlanLimits(bookmarklet_max_usage=25, submissions=None),
}

DEFAULT_PLAN = "free"


def get_plan_limits(plan: str | None) -> PlanLimits:
    """Look up limits for a plan name; unknown or missing plans get free."""
    return PLAN_LIMITS.get((plan or DEFAULT_PLAN).lower(), PLAN_LIMITS[DEFAULT_PLAN])


def is_submission_limit_reached(limits: PlanLimits, used: int) -> bool:
    """True when no more submissions are allowed.

    Args:
        limits: The user's plan limits.
        used: Successful submissions already recorded.
    """
    if limits.submissions is None:
        return False
    return used >= limits.submissions
