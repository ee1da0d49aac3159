"""
Core Application - Infrastructure & Base Classes

Generic building blocks shared by the domain apps (authentication, chat):

Models (import from core.models):
    - BaseModel: Abstract model with timestamps (created_at, updated_at)

Services (import from core.services):
    - BaseService: Base class for service layer
    - ServiceResult: Standard result wrapper for success/failure handling

Exceptions (import from core.exceptions):
    - BaseApplicationError: Base exception with error codes
    - ValidationError: Malformed client input
    - IdentityTokenError: Identity token verification failures

Views (import from core.views):
    - health_check: Liveness/readiness endpoint
    - service_error_response: ServiceResult failure to HTTP response

Note:
    Models are NOT imported here to avoid AppRegistryNotReady errors.
    Import them directly from their modules.
"""

from .services import BaseService, ServiceResult

from .exceptions import (
    BaseApplicationError,
    IdentityTokenError,
    ValidationError,
)

__all__ = [
    "BaseService",
    "ServiceResult",
    "BaseApplicationError",
    "IdentityTokenError",
    "ValidationError",
]
