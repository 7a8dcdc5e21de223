"""
Internal API key permission.

Callers send the shared key in the `X-Api-Key` header.
"""

import hmac

from django.conf import settings
from rest_framework.permissions import BasePermission


class HasInternalAPIKey(BasePermission):
    """Allow requests carrying the configured INTERNAL_API_KEY."""

    message = "Invalid or missing API key."

    def has_permission(self, request, view):
        expected = getattr(settings, "INTERNAL_API_KEY", "")
        provided = request.headers.get("X-Api-Key", "")
        if not expected or not provided:
            return False
        return hmac.compare_digest(provided.encode(), expected.encode())
