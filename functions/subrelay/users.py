"""
User record storage in DynamoDB.

Each user is a single USER_META item keyed by user id. The
billing-customer-index GSI maps a Stripe customer id back to its user.
"""

import logging
import os
from typing import Optional

from boto3.dynamodb.conditions import Key
from botocore.exceptions import ClientError

from subrelay.aws_clients import get_dynamodb
from subrelay.constants import BILLING_CUSTOMER_INDEX, PLAN_FREE, USER_META_SK
from subrelay.errors import AmbiguousCustomerError
from subrelay.models import SubscriptionSnapshot
from subrelay.types import UserItem

logger = logging.getLogger(__name__)

USERS_TABLE = os.environ.get("USERS_TABLE", "subrelay-users")


class UserStore:
    """Repository for user records.

    The table resource is injected so tests can hand in a moto-backed table.
    """

    def __init__(self, table=None):
        self.table = table if table is not None else get_dynamodb().Table(USERS_TABLE)

    def get(self, user_id: str) -> Optional[UserItem]:
        response = self.table.get_item(Key={"pk": user_id, "sk": USER_META_SK})
        return response.get("Item")

    def find_by_customer_id(self, customer_id: str) -> Optional[UserItem]:
        """Return the single user linked to a billing customer, or None.

        Queries for two items so a broken one-to-one mapping is detected
        instead of silently picking one of the matches.
        """
        response = self.table.query(
            IndexName=BILLING_CUSTOMER_INDEX,
            KeyConditionExpression=Key("billing_customer_id").eq(customer_id),
            Limit=2,
        )
        items = [item for item in response.get("Items", []) if item.get("sk") == USER_META_SK]
        if not items:
            return None
        if len(items) > 1:
            logger.error(
                f"Billing customer {customer_id} is linked to {len(items)} users",
                extra={"customer_id": customer_id, "user_ids": [item["pk"] for item in items]},
            )
            raise AmbiguousCustomerError(customer_id)
        return items[0]

    def assign_customer_id(self, user_id: str, customer_id: str) -> str:
        """Link a billing customer to a user, write-once.

        Returns the customer id stored on the record. If another request
        already assigned a different id, that id is kept and returned.
        """
        try:
            self.table.update_item(
                Key={"pk": user_id, "sk": USER_META_SK},
                UpdateExpression="SET billing_customer_id = :cid",
                ConditionExpression=(
                    "attribute_exists(pk) AND "
                    "(attribute_not_exists(billing_customer_id) OR billing_customer_id = :cid)"
                ),
                ExpressionAttributeValues={":cid": customer_id},
            )
            return customer_id
        except ClientError as e:
            if e.response["Error"]["Code"] != "ConditionalCheckFailedException":
                raise
            item = self.get(user_id)
            existing = (item or {}).get("billing_customer_id")
            if not existing:
                # Record vanished between read and write
                raise
        logger.warning(
            f"User {user_id} already linked to {existing}, discarding customer {customer_id}",
            extra={"user_id": user_id, "customer_id": customer_id, "existing_customer_id": existing},
        )
        return existing

    def put_subscription(self, user_id: str, snapshot: SubscriptionSnapshot) -> bool:
        """Overwrite the user's subscription and derived plan.

        Returns False if the record no longer exists.
        """
        return self._set_subscription(user_id, snapshot.to_item(), snapshot.plan)

    def clear_subscription(self, user_id: str) -> bool:
        """Drop the user's subscription and fall back to the free plan.

        Returns False if the record no longer exists.
        """
        return self._set_subscription(user_id, None, PLAN_FREE)

    def _set_subscription(self, user_id: str, subscription: Optional[dict], plan: str) -> bool:
        try:
            self.table.update_item(
                Key={"pk": user_id, "sk": USER_META_SK},
                UpdateExpression="SET #sub = :sub, #plan = :plan",
                ConditionExpression="attribute_exists(pk)",
                ExpressionAttributeNames={"#sub": "subscription", "#plan": "plan"},
                ExpressionAttributeValues={":sub": subscription, ":plan": plan},
            )
            return True
        except ClientError as e:
            if e.response["Error"]["Code"] == "ConditionalCheckFailedException":
                logger.info(f"User {user_id} not found, subscription not written")
                return False
            raise
