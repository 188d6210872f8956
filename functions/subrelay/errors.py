"""
Standardized error types for the API.

Every error carries a machine-readable code and an HTTP status. Components
raise these; Lambda handlers turn them into the error envelope at the boundary.
"""

import json
from typing import Optional


class APIError(Exception):
    """Base class for API errors."""

    def __init__(
        self,
        code: str,
        message: str,
        status_code: int = 400,
        details: Optional[dict] = None,
    ):
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(message)

    def to_response(self) -> dict:
        """Convert to API Gateway response format."""
        body = {
            "error": {
                "code": self.code,
                "message": self.message,
            }
        }
        if self.details:
            body["error"]["details"] = self.details

        return {
            "statusCode": self.status_code,
            "headers": {"Content-Type": "application/json"},
            "body": json.dumps(body),
        }


class ValidationError(APIError):
    """Raised when a request body fails schema validation."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(
            code="validation_error",
            message=message,
            status_code=400,
            details=details,
        )


class InvalidJSONError(APIError):
    """Raised when a request body is not valid JSON."""

    def __init__(self, message: str = "Request body must be valid JSON"):
        super().__init__(code="invalid_json", message=message, status_code=400)


class AuthenticationError(APIError):
    """Raised when the bearer identity is missing or invalid."""

    def __init__(self, message: str = "Authentication required"):
        super().__init__(code="unauthorized", message=message, status_code=401)


class ForbiddenError(APIError):
    """Raised when an authenticated caller acts on someone else's resources."""

    def __init__(self, message: str = "Access forbidden"):
        super().__init__(code="forbidden", message=message, status_code=403)


class NotFoundError(APIError):
    """Raised when a resource does not exist."""

    def __init__(self, message: str = "Resource not found", code: str = "not_found"):
        super().__init__(code=code, message=message, status_code=404)


class UserNotFoundError(NotFoundError):
    """Raised when no user record is linked to a billing customer."""

    def __init__(self, customer_id: str):
        super().__init__(
            message="No user found for billing customer",
            code="user_not_found",
        )
        self.customer_id = customer_id


class RateLimitExceededError(APIError):
    """Raised when a client exceeds the per-route request limit."""

    def __init__(self, limit: int, retry_after_seconds: int):
        super().__init__(
            code="rate_limit_exceeded",
            message=f"Too many requests (limit {limit}), please try again later",
            status_code=429,
            details={"retry_after_seconds": retry_after_seconds},
        )
        self.retry_after_seconds = retry_after_seconds

    def to_response(self) -> dict:
        response = super().to_response()
        response["headers"]["Retry-After"] = str(self.retry_after_seconds)
        return response


class BillingProviderError(APIError):
    """Raised when a call to the billing provider fails.

    Transient failures (connection, rate limiting, provider outages) use 502 so
    callers can retry; request-level rejections use 400.
    """

    def __init__(self, message: str, transient: bool = False):
        super().__init__(
            code="billing_provider_unavailable" if transient else "billing_provider_error",
            message=message,
            status_code=502 if transient else 400,
        )
        self.transient = transient


class SignatureMissingError(APIError):
    """Raised when the webhook signature header or signing secret is absent."""

    def __init__(self, message: str = "Missing webhook signature"):
        super().__init__(code="missing_signature", message=message, status_code=400)


class SignatureInvalidError(APIError):
    """Raised when the webhook signature does not match the payload."""

    def __init__(self, message: str = "Invalid signature"):
        super().__init__(code="invalid_signature", message=message, status_code=400)


class InvalidPayloadError(APIError):
    """Raised when a correctly signed payload is not a well-formed event."""

    def __init__(self, message: str = "Invalid webhook payload"):
        super().__init__(code="invalid_webhook_payload", message=message, status_code=400)


class InvalidEventError(APIError):
    """Raised when event data lacks the fields needed to reconcile it."""

    def __init__(self, message: str = "Invalid event data"):
        super().__init__(code="invalid_event_data", message=message, status_code=400)


class ConfigurationError(APIError):
    """Raised when a required secret or setting is missing."""

    def __init__(self, message: str = "Service not configured", code: str = "not_configured"):
        super().__init__(code=code, message=message, status_code=500)


class InternalError(APIError):
    """Raised for internal server errors."""

    def __init__(self, message: str = "An internal error occurred", code: str = "internal_error"):
        super().__init__(code=code, message=message, status_code=500)


class AmbiguousCustomerError(InternalError):
    """Raised when more than one user record claims the same billing customer."""

    def __init__(self, customer_id: str):
        super().__init__(
            message="Billing customer is linked to more than one user",
            code="ambiguous_customer",
        )
        self.customer_id = customer_id
