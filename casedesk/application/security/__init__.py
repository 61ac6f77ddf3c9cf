from casedesk.application.security.subscription import (
    SubscriptionStatus,
    effective_status,
    has_access,
    trial_days_remaining,
    trial_end_for,
    trial_ending_soon,
)

__all__ = [
    "SubscriptionStatus",
    "effective_status",
    "has_access",
    "trial_days_remaining",
    "trial_end_for",
    "trial_ending_soon",
]
