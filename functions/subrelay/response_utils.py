"""
Response utilities for Lambda handlers.

Provides consistent response formatting for success and error responses.
"""

import json
import os
from decimal import Decimal
from typing import Any, Dict, List, Optional

from subrelay.errors import APIError
from subrelay.types import LambdaResponse

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Strict-Transport-Security": "max-age=31536000; includeSubDomains; preload",
    "Referrer-Policy": "no-referrer",
}


def get_allowed_origins() -> List[str]:
    """Origins allowed for CORS, from the comma-separated ALLOWED_ORIGINS env var."""
    raw = os.environ.get("ALLOWED_ORIGINS", "")
    return [origin.strip() for origin in raw.split(",") if origin.strip()]


def get_cors_headers(origin: Optional[str]) -> Dict[str, str]:
    """
    Get CORS headers if origin is allowed.

    Args:
        origin: The Origin header from the request

    Returns:
        Dict with CORS headers if origin is allowed, empty dict otherwise
    """
    if origin and origin in get_allowed_origins():
        return {
            "Access-Control-Allow-Origin": origin,
            "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
            "Access-Control-Allow-Headers": "Content-Type, Authorization, Accept, Stripe-Signature",
            "Access-Control-Allow-Credentials": "true",
            "Access-Control-Max-Age": "86400",
        }
    return {}


def decimal_default(obj: Any) -> Any:
    """JSON serializer for Decimal types from DynamoDB."""
    if isinstance(obj, Decimal):
        if obj % 1 == 0:
            return int(obj)
        return float(obj)
    raise TypeError(f"Object of type {type(obj)} is not JSON serializable")


def _build_headers(origin: Optional[str], headers: Optional[Dict[str, str]]) -> Dict[str, str]:
    response_headers = {"Content-Type": "application/json"}
    response_headers.update(SECURITY_HEADERS)
    response_headers.update(get_cors_headers(origin))
    if headers:
        response_headers.update(headers)
    return response_headers


def error_response(
    status_code: int,
    code: str,
    message: str,
    headers: Optional[Dict[str, str]] = None,
    details: Optional[Dict[str, Any]] = None,
    retry_after: Optional[int] = None,
    origin: Optional[str] = None,
) -> LambdaResponse:
    """
    Create an error response.

    Args:
        status_code: HTTP status code
        code: Machine-readable error code (snake_case)
        message: Human-readable error message
        headers: Additional response headers
        details: Optional additional error details
        retry_after: Optional Retry-After header value in seconds
        origin: Request Origin header for CORS

    Returns:
        Lambda response dict
    """
    response_headers = _build_headers(origin, headers)
    if retry_after is not None:
        response_headers["Retry-After"] = str(retry_after)

    body = {
        "error": {
            "code": code,
            "message": message,
        }
    }
    if details:
        body["error"]["details"] = details

    return {
        "statusCode": status_code,
        "headers": response_headers,
        "body": json.dumps(body, default=decimal_default),
    }


def api_error_response(error: APIError, origin: Optional[str] = None) -> LambdaResponse:
    """Translate an APIError into the error envelope."""
    return error_response(
        error.status_code,
        error.code,
        error.message,
        details=error.details or None,
        retry_after=getattr(error, "retry_after_seconds", None),
        origin=origin,
    )


def success_response(
    data: Any,
    status_code: int = 200,
    headers: Optional[Dict[str, str]] = None,
    origin: Optional[str] = None,
) -> LambdaResponse:
    """
    Create a success response.

    Args:
        data: Response body data
        status_code: HTTP status code (default 200)
        headers: Additional response headers
        origin: Request Origin header for CORS

    Returns:
        Lambda response dict
    """
    return {
        "statusCode": status_code,
        "headers": _build_headers(origin, headers),
        "body": json.dumps(data, default=decimal_default),
    }


def preflight_response(origin: Optional[str]) -> LambdaResponse:
    """Respond to a CORS preflight (OPTIONS) request."""
    response_headers = dict(SECURITY_HEADERS)
    response_headers.update(get_cors_headers(origin))
    return {
        "statusCode": 204,
        "headers": response_headers,
        "body": "",
    }
