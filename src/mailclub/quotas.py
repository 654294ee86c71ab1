"""Subscription tier limits.

Every function here is pure: the tier comes in as an opaque enum supplied by
the payment service and the answer depends on nothing else.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Dict

from .models import SubscriptionTier

CUSTOM_TASK_DAILY_QUOTA = 5
SHIPPING_CYCLE_DAYS = 21


@dataclass(frozen=True, slots=True)
class PlanLimits:
    """Limits and features unlocked by a subscription tier."""

    max_children: float
    mails_per_month: int
    price_cents: int
    has_mail_rewards: bool
    has_custom_tasks: bool
    has_ai_verification: bool
    has_gift_card_rewards: bool

    @property
    def unlimited_children(self) -> bool:
        return math.isinf(self.max_children)


PLAN_LIMITS: Dict[SubscriptionTier, PlanLimits] = {
    SubscriptionTier.FREE: PlanLimits(
        max_children=1,
        mails_per_month=0,
        price_cents=0,
        has_mail_rewards=False,
        has_custom_tasks=False,
        has_ai_verification=False,
        has_gift_card_rewards=False,
    ),
    SubscriptionTier.BASIC: PlanLimits(
        max_children=1,
        mails_per_month=2,
        price_cents=999,
        has_mail_rewards=True,
        has_custom_tasks=False,
        has_ai_verification=False,
        has_gift_card_rewards=False,
    ),
    SubscriptionTier.STANDARD: PlanLimits(
        max_children=3,
        mails_per_month=4,
        price_cents=1999,
        has_mail_rewards=True,
        has_custom_tasks=True,
        has_ai_verification=True,
        has_gift_card_rewards=False,
    ),
    SubscriptionTier.PREMIUM: PlanLimits(
        max_children=math.inf,
        mails_per_month=5,
        price_cents=2999,
        has_mail_rewards=True,
        has_custom_tasks=True,
        has_ai_verification=True,
        has_gift_card_rewards=True,
    ),
}


def limits_for(tier: SubscriptionTier | str | None) -> PlanLimits:
    """Return the limits for ``tier``; unknown or missing tiers count as free."""

    if tier is None:
        return PLAN_LIMITS[SubscriptionTier.FREE]
    try:
        return PLAN_LIMITS[SubscriptionTier(tier)]
    except ValueError:
        return PLAN_LIMITS[SubscriptionTier.FREE]


def can_add_child(tier: SubscriptionTier | str | None, current_child_count: int) -> bool:
    return current_child_count < limits_for(tier).max_children


def custom_task_rewarded(custom_tasks_today: int) -> bool:
    """Whether the next custom task of the day still carries its points.

    The quota is the same for every tier.
    """

    return custom_tasks_today < CUSTOM_TASK_DAILY_QUOTA


def child_limit_message(tier: SubscriptionTier | str | None) -> str:
    limits = limits_for(tier)
    if limits.unlimited_children:
        return "Unlimited children"
    if limits.max_children == 1:
        return "1 child profile"
    return f"Up to {int(limits.max_children)} children"


def recommended_plan(child_count: int) -> SubscriptionTier:
    if child_count <= 1:
        return SubscriptionTier.BASIC
    if child_count <= 3:
        return SubscriptionTier.STANDARD
    return SubscriptionTier.PREMIUM


def next_shipping_date(signup_date: date, today: date) -> date:
    """Return the end of the current three-week mail cycle."""

    days_since_signup = max(0, (today - signup_date).days)
    current_cycle = days_since_signup // SHIPPING_CYCLE_DAYS
    return signup_date + timedelta(days=(current_cycle + 1) * SHIPPING_CYCLE_DAYS)


def days_until_shipping(signup_date: date, today: date) -> int:
    return max(0, (next_shipping_date(signup_date, today) - today).days)


__all__ = [
    "CUSTOM_TASK_DAILY_QUOTA",
    "PLAN_LIMITS",
    "PlanLimits",
    "SHIPPING_CYCLE_DAYS",
    "can_add_child",
    "child_limit_message",
    "custom_task_rewarded",
    "days_until_shipping",
    "limits_for",
    "next_shipping_date",
    "recommended_plan",
]
