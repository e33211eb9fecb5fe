"""
Plan limits for the monthly booking quota.

The quota is advisory: the count and the booking insert are separate
statements, so concurrent bookings can push a host slightly past the limit.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from dateutil.relativedelta import relativedelta
from sqlalchemy.orm import Session

from .domain.scheduling.intervals import utcnow
from .domain.scheduling.repository import SchedulingRepository
from .models import User

# Confirmed bookings per calendar month
PLAN_LIMITS = {"free": 10, "team": 50, "enterprise": None}  # None means unlimited


@dataclass
class BookingQuotaStatus:
    plan: str
    used: int
    limit: Optional[int]
    remaining: Optional[int]
    is_exceeded: bool


def get_user_plan(user: User) -> str:
    plan = (user.plan or "").strip().lower()
    return plan if plan in PLAN_LIMITS else "free"


def get_plan_limit(plan: Optional[str]) -> Optional[int]:
    """Get the booking limit for a plan. Returns None for unlimited."""
    return PLAN_LIMITS.get((plan or "free").lower(), PLAN_LIMITS["free"])


def month_bounds(current_time: datetime) -> tuple[datetime, datetime]:
    """First instant of the month and first instant of the next one"""
    start = datetime(current_time.year, current_time.month, 1)
    return start, start + relativedelta(months=1)


def get_booking_quota(user: User, db: Session, now: Optional[datetime] = None) -> BookingQuotaStatus:
    plan = get_user_plan(user)
    limit = get_plan_limit(plan)

    month_start, month_end = month_bounds(now or utcnow())
    used = SchedulingRepository.count_bookings_in_range(db, user.id, month_start, month_end)

    if limit is None:
        return BookingQuotaStatus(plan=plan, used=used, limit=None, remaining=None, is_exceeded=False)

    return BookingQuotaStatus(
        plan=plan,
        used=used,
        limit=limit,
        remaining=max(0, limit - used),
        is_exceeded=used >= limit,
    )
