"""
Tests for authentication app.

This package contains test modules for:
- test_backends.py: Identity token verification
- test_managers.py: UserManager tests
- test_services.py: Identity bridge and directory services
- test_views.py: API endpoint tests

Usage:
    pytest authentication/tests/
    pytest authentication/tests/test_services.py
"""
