"""
Health Check Endpoint - GET /health

Returns API status and a timestamp.
No authentication required.
"""

import logging
import os
import time
from datetime import datetime, timezone

from subrelay.logging_utils import configure_structured_logging, log_api_request, set_request_id
from subrelay.response_utils import success_response

logger = logging.getLogger(__name__)

VERSION = os.environ.get("APP_VERSION", "1.0.0")


def handler(event, context):
    """
    Lambda handler for health check.

    Returns:
        200 with status information
    """
    configure_structured_logging()
    start_time = time.time()

    # Set request ID for logging correlation
    set_request_id(event)

    response = success_response(
        {
            "status": "ok",
            "version": VERSION,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        },
        headers={"Cache-Control": "no-cache"},
    )

    latency_ms = (time.time() - start_time) * 1000
    log_api_request(logger, "GET", "/health", 200, latency_ms)

    return response
