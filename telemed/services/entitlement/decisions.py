"""
Pure Entitlement Decisions.

Selection and payment rules with no I/O, so they can be tested against
plain lists of billing records:

- the most recently created ACTIVE subscription is the current one
- a subscription is paid up while today falls inside the period covered by
  its latest confirmed payment (due date + one cycle + grace days)
"""

import calendar
from datetime import date, timedelta
from typing import Optional

from telemed.core.enums import BillingCycle, SubscriptionStatus
from telemed.models.billing import BillingPayment, BillingSubscription


def select_active_subscription(
    subscriptions: list[BillingSubscription],
) -> Optional[BillingSubscription]:
    """Most recently created active subscription; ties keep billing order."""
    active = [s for s in subscriptions if s.is_active]
    if not active:
        return None
    # max() keeps the first of equal keys, which preserves billing order on ties.
    return max(active, key=lambda s: s.date_created or date.min)


def add_months(start: date, months: int) -> date:
    """Shift a date by whole months, clamping to the end of shorter months."""
    month_index = start.month - 1 + months
    year = start.year + month_index // 12
    month = month_index % 12 + 1
    day = min(start.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def cycle_end(start: date, cycle: BillingCycle) -> date:
    """End of the billing period that starts on ``start``."""
    if cycle.months:
        return add_months(start, cycle.months)
    return start + timedelta(days=cycle.days)


def latest_confirmed_payment(payments: list[BillingPayment]) -> Optional[BillingPayment]:
    confirmed = [p for p in payments if p.is_confirmed]
    if not confirmed:
        return None
    return max(confirmed, key=lambda p: p.due_date)


def paid_through(
    payments: list[BillingPayment],
    cycle: BillingCycle,
    grace_days: int = 0,
) -> Optional[date]:
    """Last day covered by confirmed payments, or None when nothing is paid."""
    latest = latest_confirmed_payment(payments)
    if latest is None:
        return None
    return cycle_end(latest.due_date, cycle) + timedelta(days=grace_days)


def is_payment_current(
    payments: list[BillingPayment],
    cycle: BillingCycle,
    today: date,
    grace_days: int = 0,
) -> bool:
    covered_until = paid_through(payments, cycle, grace_days)
    return covered_until is not None and today <= covered_until


def snapshot_status(subscription: BillingSubscription, payment_current: bool) -> SubscriptionStatus:
    """Local snapshot status for a billing subscription."""
    if not subscription.is_active:
        return SubscriptionStatus.CANCELED
    return SubscriptionStatus.ACTIVE if payment_current else SubscriptionStatus.OVERDUE
