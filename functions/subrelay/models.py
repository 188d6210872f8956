"""
Domain models for subscription reconciliation.
"""

from dataclasses import dataclass, field
from typing import Any, Optional

from subrelay.constants import PLAN_FREE, PLAN_PRO, PRO_STATUSES
from subrelay.errors import InvalidEventError


def plan_for_status(status: str) -> str:
    """Derive the local plan from a Stripe subscription status."""
    return PLAN_PRO if status in PRO_STATUSES else PLAN_FREE


def _optional_int(value: Any) -> Optional[int]:
    if value is None:
        return None
    return int(value)


@dataclass(frozen=True)
class SubscriptionSnapshot:
    """Latest known state of a subscription, applied wholesale to a user."""

    subscription_id: str
    price_id: str
    status: str
    current_period_end: int
    cancel_at_period_end: bool = False
    trial_end: Optional[int] = None

    @property
    def plan(self) -> str:
        return plan_for_status(self.status)

    @classmethod
    def from_stripe_subscription(cls, subscription: dict) -> "SubscriptionSnapshot":
        """Build a snapshot from a Stripe subscription object.

        current_period_end moved from the subscription to its items in newer
        Stripe API versions, so both locations are checked.
        """
        items = (subscription.get("items") or {}).get("data") or []
        item = items[0] if items else {}
        price_id = (item.get("price") or {}).get("id")

        subscription_id = subscription.get("id")
        status = subscription.get("status")
        if not subscription_id or not status or not price_id:
            raise InvalidEventError("Subscription is missing id, status or price")

        period_end = subscription.get("current_period_end")
        if period_end is None:
            period_end = item.get("current_period_end")
        if period_end is None:
            raise InvalidEventError("Subscription is missing current_period_end")

        try:
            return cls(
                subscription_id=subscription_id,
                price_id=price_id,
                status=status,
                current_period_end=int(period_end),
                cancel_at_period_end=bool(subscription.get("cancel_at_period_end", False)),
                trial_end=_optional_int(subscription.get("trial_end")),
            )
        except (TypeError, ValueError):
            raise InvalidEventError("Subscription has non-numeric period fields")

    def to_item(self) -> dict:
        """Serialize for the user record (camelCase keys, as clients read them)."""
        return {
            "subscriptionId": self.subscription_id,
            "priceId": self.price_id,
            "status": self.status,
            "currentPeriodEnd": self.current_period_end,
            "cancelAtPeriodEnd": self.cancel_at_period_end,
            "trialEnd": self.trial_end,
        }

    @classmethod
    def from_item(cls, item: dict) -> "SubscriptionSnapshot":
        return cls(
            subscription_id=item["subscriptionId"],
            price_id=item["priceId"],
            status=item["status"],
            current_period_end=int(item["currentPeriodEnd"]),
            cancel_at_period_end=bool(item.get("cancelAtPeriodEnd", False)),
            trial_end=_optional_int(item.get("trialEnd")),
        )


@dataclass(frozen=True)
class VerifiedEvent:
    """A webhook event whose signature has been checked."""

    id: str
    type: str
    data: dict = field(default_factory=dict)
    created: Optional[int] = None
    livemode: bool = False

    @property
    def object(self) -> dict:
        """The resource the event describes (data.object)."""
        obj = self.data.get("object")
        return obj if isinstance(obj, dict) else {}


@dataclass(frozen=True)
class Identity:
    """Caller identity established from a bearer token."""

    uid: str
    email: Optional[str] = None
