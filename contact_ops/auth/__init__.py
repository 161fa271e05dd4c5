"""
contact_ops.auth - Google OAuth credential management
"""

from contact_ops.auth.google_auth import (
    CONTACTS_SCOPE,
    SCOPES,
    AuthenticationError,
    GoogleAuth,
)

__all__ = [
    "GoogleAuth",
    "AuthenticationError",
    "SCOPES",
    "CONTACTS_SCOPE",
]
