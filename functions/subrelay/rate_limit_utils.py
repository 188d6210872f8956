"""
Rate Limiting Utilities

Fixed-window request counters per route and client IP, stored in DynamoDB.
The check and the increment happen in one conditional update, so concurrent
Lambdas cannot both pass the last free slot.
"""

import os
from dataclasses import dataclass
from datetime import datetime, timezone

from botocore.exceptions import ClientError

from subrelay.aws_clients import get_dynamodb
from subrelay.errors import RateLimitExceededError

RATE_LIMIT_TABLE = os.environ.get("RATE_LIMIT_TABLE", "subrelay-rate-limits")


@dataclass(frozen=True)
class RateLimit:
    """A request budget per window. limit=0 disables the check."""

    limit: int
    window_seconds: int


API_RATE_LIMIT = RateLimit(
    limit=int(os.environ.get("API_RATE_LIMIT", "100")),
    window_seconds=int(os.environ.get("API_RATE_WINDOW_SECONDS", "900")),
)
WEBHOOK_RATE_LIMIT = RateLimit(
    limit=int(os.environ.get("WEBHOOK_RATE_LIMIT", "50")),
    window_seconds=int(os.environ.get("WEBHOOK_RATE_WINDOW_SECONDS", "60")),
)


def _window_start(now: int, window_seconds: int) -> int:
    return now - (now % window_seconds)


def check_rate_limit(route: str, client_ip: str, rate_limit: RateLimit, table=None) -> bool:
    """
    Count one request against the client's budget for this route.

    Args:
        route: Route name (e.g., "checkout", "webhook")
        client_ip: Verified source IP of the caller
        rate_limit: Budget for the route
        table: DynamoDB table resource (defaults to RATE_LIMIT_TABLE)

    Returns:
        True if request is allowed, False if rate limited
    """
    if rate_limit.limit <= 0:
        return True

    table = table if table is not None else get_dynamodb().Table(RATE_LIMIT_TABLE)
    now = int(datetime.now(timezone.utc).timestamp())
    window = _window_start(now, rate_limit.window_seconds)

    try:
        table.update_item(
            Key={"pk": f"{route}#{client_ip}", "sk": str(window)},
            UpdateExpression="SET calls = if_not_exists(calls, :zero) + :inc, #ttl = :ttl",
            ConditionExpression="attribute_not_exists(calls) OR calls < :limit",
            ExpressionAttributeNames={"#ttl": "ttl"},
            ExpressionAttributeValues={
                ":zero": 0,
                ":inc": 1,
                ":limit": rate_limit.limit,
                ":ttl": window + 2 * rate_limit.window_seconds,
            },
        )
        return True
    except ClientError as e:
        if e.response["Error"]["Code"] == "ConditionalCheckFailedException":
            return False
        raise


def enforce_rate_limit(route: str, client_ip: str, rate_limit: RateLimit, table=None) -> None:
    """Raise RateLimitExceededError if the client is over budget."""
    if check_rate_limit(route, client_ip, rate_limit, table=table):
        return
    now = int(datetime.now(timezone.utc).timestamp())
    retry_after = _window_start(now, rate_limit.window_seconds) + rate_limit.window_seconds - now
    raise RateLimitExceededError(rate_limit.limit, max(retry_after, 1))
