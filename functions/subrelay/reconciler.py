"""
Subscription reconciliation.

Applies subscription snapshots from billing events to the linked user record.
Stripe does not guarantee delivery order, so each write is a total overwrite
and the last write wins. An out-of-order event can briefly show a stale plan
until the next event for that subscription arrives.
"""

import logging
from typing import Optional

from subrelay.errors import UserNotFoundError
from subrelay.models import SubscriptionSnapshot
from subrelay.users import UserStore

logger = logging.getLogger(__name__)


class SubscriptionReconciler:
    """Keeps user subscription state in step with the billing provider."""

    def __init__(self, users: UserStore):
        self.users = users

    def upsert(self, customer_id: str, snapshot: SubscriptionSnapshot) -> str:
        """Store the snapshot on the customer's user and derive the plan.

        Raises UserNotFoundError when no user is linked to the customer yet
        (the customer may have been created before the local link was written).
        Returns the user id that was updated.
        """
        user = self.users.find_by_customer_id(customer_id)
        if user is None:
            logger.warning(
                f"No user found for billing customer {customer_id}",
                extra={"customer_id": customer_id, "subscription_id": snapshot.subscription_id},
            )
            raise UserNotFoundError(customer_id)

        user_id = user["pk"]
        previous = user.get("subscription")
        previous_status = SubscriptionSnapshot.from_item(previous).status if previous else None
        if not self.users.put_subscription(user_id, snapshot):
            raise UserNotFoundError(customer_id)

        logger.info(
            f"Subscription {snapshot.subscription_id} for {user_id}: "
            f"status {previous_status} -> {snapshot.status}, plan={snapshot.plan}",
            extra={
                "user_id": user_id,
                "customer_id": customer_id,
                "subscription_id": snapshot.subscription_id,
                "previous_status": previous_status,
                "status": snapshot.status,
                "plan": snapshot.plan,
            },
        )
        return user_id

    def clear(self, customer_id: str) -> Optional[str]:
        """Remove the customer's subscription and downgrade to free.

        An unknown customer is not an error: there is nothing to clear.
        Returns the user id that was cleared, or None.
        """
        user = self.users.find_by_customer_id(customer_id)
        if user is None:
            logger.info(
                f"Subscription deleted for unknown customer {customer_id}, nothing to clear",
                extra={"customer_id": customer_id},
            )
            return None

        user_id = user["pk"]
        if not self.users.clear_subscription(user_id):
            return None

        logger.info(
            f"Subscription cleared for {user_id}, downgraded to free",
            extra={"user_id": user_id, "customer_id": customer_id},
        )
        return user_id
