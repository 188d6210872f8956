"""
Shared Type Definitions for Lambda Handlers.

Provides TypedDict definitions for Lambda responses and stored records.
"""

from typing import Any, Optional, TypedDict


class LambdaResponse(TypedDict):
    """Standard Lambda response structure."""

    statusCode: int
    headers: dict[str, str]
    body: str


class UserItem(TypedDict, total=False):
    """User record as stored in the users table."""

    pk: str
    sk: str
    email: str
    billing_customer_id: str
    subscription: Optional[dict[str, Any]]
    plan: str
