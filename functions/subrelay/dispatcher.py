"""
Webhook event dispatch.

Routes verified Stripe events to the reconciler. Unknown event types are
acknowledged and ignored so Stripe does not keep redelivering them.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from subrelay.constants import (
    EVENT_SUBSCRIPTION_CREATED,
    EVENT_SUBSCRIPTION_DELETED,
    EVENT_SUBSCRIPTION_UPDATED,
)
from subrelay.errors import InvalidEventError
from subrelay.models import SubscriptionSnapshot, VerifiedEvent
from subrelay.reconciler import SubscriptionReconciler

logger = logging.getLogger(__name__)

ACTION_UPSERTED = "upserted"
ACTION_CLEARED = "cleared"
ACTION_IGNORED = "ignored"


@dataclass(frozen=True)
class DispatchOutcome:
    event_type: str
    action: str
    customer_id: Optional[str] = None
    user_id: Optional[str] = None


def _customer_id(subscription: dict) -> str:
    customer = subscription.get("customer")
    # Expanded events carry the full customer object
    if isinstance(customer, dict):
        customer = customer.get("id")
    if not customer or not isinstance(customer, str):
        raise InvalidEventError("Subscription event has no customer")
    return customer


class EventDispatcher:
    """Maps event type tags to reconciler operations."""

    def __init__(self, reconciler: SubscriptionReconciler):
        self.reconciler = reconciler
        self._handlers = {
            EVENT_SUBSCRIPTION_CREATED: self._handle_subscription_changed,
            EVENT_SUBSCRIPTION_UPDATED: self._handle_subscription_changed,
            EVENT_SUBSCRIPTION_DELETED: self._handle_subscription_deleted,
        }

    def dispatch(self, event: VerifiedEvent) -> DispatchOutcome:
        handler = self._handlers.get(event.type)
        if handler is None:
            logger.info(f"Unhandled event type: {event.type}", extra={"event_id": event.id})
            return DispatchOutcome(event_type=event.type, action=ACTION_IGNORED)
        return handler(event)

    def _handle_subscription_changed(self, event: VerifiedEvent) -> DispatchOutcome:
        subscription = event.object
        customer_id = _customer_id(subscription)
        snapshot = SubscriptionSnapshot.from_stripe_subscription(subscription)
        user_id = self.reconciler.upsert(customer_id, snapshot)
        return DispatchOutcome(
            event_type=event.type,
            action=ACTION_UPSERTED,
            customer_id=customer_id,
            user_id=user_id,
        )

    def _handle_subscription_deleted(self, event: VerifiedEvent) -> DispatchOutcome:
        customer_id = _customer_id(event.object)
        user_id = self.reconciler.clear(customer_id)
        return DispatchOutcome(
            event_type=event.type,
            action=ACTION_CLEARED,
            customer_id=customer_id,
            user_id=user_id,
        )
