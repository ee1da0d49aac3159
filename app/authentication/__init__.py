"""
Authentication application.

Maps identities verified by the external identity provider to internal
user records, and exposes the user directory.

Key components:
    - User model: one row per provider account (external_id)
    - IdentityTokenAuthentication: DRF authentication for provider JWTs
    - IdentityService: create-or-update on login, current user lookups
    - UserDirectoryService: search with offset pagination

Usage:
    from authentication.models import User
    from authentication.services import IdentityService, UserDirectoryService
"""
