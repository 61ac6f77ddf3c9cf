from __future__ import annotations

import math
from datetime import UTC, datetime, timedelta
from typing import Final, Literal

SubscriptionStatus = Literal[
    "trial_active",
    "trial_expired",
    "business_approved",
    "business_pending",
    "business_rejected",
]

TRIAL_LENGTH: Final = timedelta(days=30)
TRIAL_WARNING_DAYS: Final = 5

_SECONDS_PER_DAY: Final = 86400


def trial_days_remaining(trial_end: datetime | None, now: datetime | None = None) -> int:
    if trial_end is None:
        return 0
    current = _aware(now) if now is not None else datetime.now(UTC)
    seconds = (_aware(trial_end) - current).total_seconds()
    return max(0, math.ceil(seconds / _SECONDS_PER_DAY))


def effective_status(
    status: SubscriptionStatus,
    trial_end: datetime | None,
    now: datetime | None = None,
) -> SubscriptionStatus:
    if status == "trial_active" and trial_days_remaining(trial_end, now) <= 0:
        return "trial_expired"
    return status


def has_access(
    status: SubscriptionStatus,
    trial_end: datetime | None = None,
    now: datetime | None = None,
) -> bool:
    return effective_status(status, trial_end, now) in {"trial_active", "business_approved"}


def trial_ending_soon(
    status: SubscriptionStatus,
    trial_end: datetime | None,
    now: datetime | None = None,
) -> bool:
    if effective_status(status, trial_end, now) != "trial_active":
        return False
    return trial_days_remaining(trial_end, now) <= TRIAL_WARNING_DAYS


def trial_end_for(start: datetime) -> datetime:
    return _aware(start) + TRIAL_LENGTH


def _aware(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value
