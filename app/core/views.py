"""
Core views providing infrastructure endpoints and response helpers.

This module contains views that are not part of the business domain:
- health_check: liveness/readiness endpoint
- service_error_response: maps ServiceResult error codes to HTTP responses
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from django.core.cache import cache
from django.db import connection
from django.http import JsonResponse
from rest_framework import status
from rest_framework.response import Response

if TYPE_CHECKING:
    from core.services import ServiceResult


# Error codes grouped by the HTTP status they map to.
# Anything not listed is a validation failure (400).
ERROR_CODE_STATUS = {
    "UNAUTHENTICATED": status.HTTP_401_UNAUTHORIZED,
    "UNAUTHORIZED": status.HTTP_403_FORBIDDEN,
    "NOT_MEMBER": status.HTTP_403_FORBIDDEN,
    "NOT_ADMIN": status.HTTP_403_FORBIDDEN,
    "NOT_SENDER": status.HTTP_403_FORBIDDEN,
    "CONVERSATION_NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "MESSAGE_NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "USER_NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "GROUP_CAPACITY_EXCEEDED": status.HTTP_409_CONFLICT,
}


def service_error_response(result: ServiceResult) -> Response:
    """
    Build the error response for a failed service call.

    Body shape matches the rest of the API: {"error", "error_code"}.
    """
    status_code = ERROR_CODE_STATUS.get(
        result.error_code, status.HTTP_400_BAD_REQUEST
    )
    body = {"error": result.error, "error_code": result.error_code}
    if result.errors:
        body["errors"] = result.errors
    return Response(body, status=status_code)


def health_check(request):
    """
    Health check endpoint for monitoring and orchestration.

    Returns:
        JsonResponse with status and component health:
        - status: "healthy" or "unhealthy"
        - database: "connected" or "disconnected"
        - cache: "connected" or "disconnected"

    HTTP Status Codes:
        200: All systems operational
        503: Database unreachable
    """
    health_status = {
        "status": "healthy",
        "database": "unknown",
        "cache": "unknown",
    }
    is_healthy = True

    try:
        with connection.cursor() as cursor:
            cursor.execute("SELECT 1")
            cursor.fetchone()
        health_status["database"] = "connected"
    except Exception:
        health_status["database"] = "disconnected"
        health_status["status"] = "unhealthy"
        is_healthy = False

    try:
        cache.set("health_check", "ok", timeout=1)
        if cache.get("health_check") == "ok":
            health_status["cache"] = "connected"
        else:
            health_status["cache"] = "disconnected"
    except Exception:
        # Cache failure degrades realtime features but not the API
        health_status["cache"] = "disconnected"

    return JsonResponse(health_status, status=200 if is_healthy else 503)
