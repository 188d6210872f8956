"""
Checkout and customer-portal session creation.
"""

import logging

from subrelay.billing_utils import StripeBilling
from subrelay.constants import CHECKOUT_CANCEL_PARAM, CHECKOUT_SUCCESS_PARAM, CHECKOUT_TRIAL_DAYS
from subrelay.errors import NotFoundError
from subrelay.users import UserStore
from subrelay.validation import CheckoutSessionRequest, PortalSessionRequest

logger = logging.getLogger(__name__)


def _with_query(url: str, param: str) -> str:
    separator = "&" if "?" in url else "?"
    return f"{url}{separator}{param}"


class SessionFactory:
    """Creates hosted Stripe sessions for users."""

    def __init__(self, users: UserStore, billing: StripeBilling):
        self.users = users
        self.billing = billing

    def ensure_customer(self, user_id: str) -> str:
        """Return the user's billing customer id, creating it on first use.

        The id is written once; if a concurrent request linked a customer
        first, the stored id wins.
        """
        user = self.users.get(user_id)
        if user is None:
            raise NotFoundError("User not found")

        customer_id = user.get("billing_customer_id")
        if customer_id:
            return customer_id

        new_customer_id = self.billing.create_customer(user_id, email=user.get("email"))
        customer_id = self.users.assign_customer_id(user_id, new_customer_id)
        if customer_id == new_customer_id:
            logger.info(
                f"Linked billing customer {customer_id} to {user_id}",
                extra={"user_id": user_id, "customer_id": customer_id},
            )
        return customer_id

    def create_checkout_session(self, request: CheckoutSessionRequest) -> dict:
        customer_id = self.ensure_customer(request.user_id)

        session = self.billing.create_checkout_session(
            customer_id=customer_id,
            price_id=request.price_id,
            success_url=_with_query(request.return_url, CHECKOUT_SUCCESS_PARAM),
            cancel_url=_with_query(request.return_url, CHECKOUT_CANCEL_PARAM),
            trial_period_days=CHECKOUT_TRIAL_DAYS,
            client_reference_id=request.user_id,
        )

        logger.info(
            f"Created checkout session for user {request.user_id}, price {request.price_id}",
            extra={"user_id": request.user_id, "customer_id": customer_id, "price_id": request.price_id},
        )
        return {"sessionId": session.id}

    def create_portal_session(self, request: PortalSessionRequest) -> dict:
        session = self.billing.create_portal_session(
            customer_id=request.customer_id,
            return_url=request.return_url,
        )
        logger.info(
            f"Created billing portal session for customer {request.customer_id}",
            extra={"customer_id": request.customer_id},
        )
        return {"url": session.url}
