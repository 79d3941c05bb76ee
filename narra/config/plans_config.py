"""
Plan, billing and gating configuration
Static product rules shared by the request gate, usage accounting and billing.
Plan rows themselves (price, limits) live in the Supabase `plans` table.
"""

PLATFORMS = ("instagram", "tiktok")

BILLING_PERIODS = ("monthly", "yearly")

SUBSCRIPTION_STATUSES = ("active", "inactive", "trialing", "past_due", "canceled")
ACTIVE_SUBSCRIPTION_STATUSES = ("active", "trialing")
DEFAULT_SUBSCRIPTION_STATUS = "inactive"

USER_ROLES = ("user", "admin")

# Where the frontend should send the browser when a gate rejects the request
SIGN_IN_REDIRECT = "/sign-in"
DASHBOARD_REDIRECT = "/dashboard"
SELECT_PLAN_REDIRECT = "/select-plan"

# users.<counter column> -> plans.limits.<limit key>
USAGE_COUNTERS = {
    "monthly_profile_discoveries": {
        "limit_key": "profile_discoveries",
        "description": "Creator profiles looked up through discovery search",
    },
    "monthly_transcripts_viewed": {
        "limit_key": "transcript_views",
        "description": "Video transcripts fetched",
    },
}

DEFAULT_PLAN_LIMITS = {
    "profile_discoveries": 0,
    "transcript_views": 0,
    "profile_follows": 0,
}


def get_limit_key(counter: str) -> str:
    """Return the plan limit key backing a usage counter column"""
    if counter not in USAGE_COUNTERS:
        raise KeyError(f"Unknown usage counter: {counter}")
    return USAGE_COUNTERS[counter]["limit_key"]


def is_unlimited(limit) -> bool:
    """A missing or negative limit means the plan does not cap this counter"""
    return limit is None or limit < 0


def get_usage_level(used: int, limit, warning_ratio: float = 0.8) -> str:
    """Classify usage against a limit: ok, warning (>= warning_ratio) or exceeded (>= 100%)"""
    if is_unlimited(limit):
        return "ok"
    if limit == 0:
        return "exceeded"
    ratio = used / limit
    if ratio >= 1:
        return "exceeded"
    if ratio >= warning_ratio:
        return "warning"
    return "ok"
